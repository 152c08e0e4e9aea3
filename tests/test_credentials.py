from __future__ import annotations

import threading

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from catalog_gateway.credentials import TOMBSTONE_PREFIX, CredentialStore, normalize_scopes
from catalog_gateway.errors import InvalidRequestError
from catalog_gateway.models import Base, TenantCredential, utcnow


@pytest.fixture()
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'credentials.db'}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    finally:
        engine.dispose()


@pytest.fixture()
def store(session_factory):
    return CredentialStore(session_factory)


def _row_count(session_factory) -> int:
    with session_factory() as session:
        return session.scalar(select(func.count()).select_from(TenantCredential))


def _stored_updated_at(session_factory, domain: str):
    with session_factory() as session:
        return session.scalar(
            select(TenantCredential.updated_at).where(TenantCredential.canonical_domain == domain)
        )


def test_save_inserts_active_credential(store):
    record = store.save("Shop.MyShopify.com", "shpat_1", "read_products, read_inventory")

    assert record.canonical_domain == "shop.myshopify.com"
    assert record.active is True
    assert record.scopes == ["read_products", "read_inventory"]
    assert store.get("shop.myshopify.com") == "shpat_1"
    assert store.has_active("shop.myshopify.com")


def test_save_is_idempotent(store, session_factory):
    store.save("shop.myshopify.com", "shpat_1", "read_products")
    updated_at = _stored_updated_at(session_factory, "shop.myshopify.com")
    store.save("shop.myshopify.com", "shpat_1", "read_products")

    assert _row_count(session_factory) == 1
    assert _stored_updated_at(session_factory, "shop.myshopify.com") == updated_at
    assert store.get("shop.myshopify.com") == "shpat_1"


def test_save_updates_existing_row(store, session_factory):
    store.save("shop.myshopify.com", "shpat_1", "read_products")
    record = store.save("shop.myshopify.com", "shpat_2", "read_products,write_products")

    assert _row_count(session_factory) == 1
    assert record.scopes == ["read_products", "write_products"]
    assert store.get("shop.myshopify.com") == "shpat_2"


def test_get_returns_none_for_unknown_shop(store):
    assert store.get("missing.myshopify.com") is None
    assert not store.has_active("missing.myshopify.com")


def test_credential_lifecycle_deactivate_then_reactivate(store, session_factory):
    store.save("shop.myshopify.com", "shpat_1", "read_products")

    deactivated = store.deactivate("shop.myshopify.com")

    assert deactivated is not None
    assert deactivated.active is False
    assert deactivated.access_token.startswith(TOMBSTONE_PREFIX)
    assert store.get("shop.myshopify.com") is None
    assert _row_count(session_factory) == 1
    assert store.list_active_domains() == []

    store.save("shop.myshopify.com", "shpat_new", "read_products")

    assert store.get("shop.myshopify.com") == "shpat_new"
    assert store.list_active_domains() == ["shop.myshopify.com"]


def test_deactivate_unknown_shop_returns_none(store):
    assert store.deactivate("missing.myshopify.com") is None


def test_list_active_domains_skips_inactive_rows(store):
    store.save("b-v2.myshopify.com", "shpat_b", "read_products")
    store.save("a.myshopify.com", "shpat_a", "read_products")
    store.save("c.myshopify.com", "shpat_c", "read_products")
    store.deactivate("c.myshopify.com")

    assert store.list_active_domains() == ["a.myshopify.com", "b-v2.myshopify.com"]
    assert {record.canonical_domain for record in store.list_all()} == {
        "a.myshopify.com",
        "b-v2.myshopify.com",
        "c.myshopify.com",
    }


def test_save_rejects_blank_token(store):
    with pytest.raises(InvalidRequestError):
        store.save("shop.myshopify.com", "   ", "read_products")


def test_token_preview_never_exposes_full_token(store):
    record = store.save("shop.myshopify.com", "shpat_1234567890abcdef", "read_products")

    assert record.token_preview == "shpat_1234..."


def test_normalize_scopes_dedupes_and_trims():
    assert normalize_scopes(" read_products,,write_products,read_products ") == "read_products,write_products"
    assert normalize_scopes(["a", " b ", "a"]) == "a,b"
    assert normalize_scopes(None) == ""


def test_save_retries_as_update_after_losing_insert_race(store, session_factory, monkeypatch):
    original_upsert = store._upsert
    attempts: list[str] = []

    def racing_upsert(*, domain: str, token: str, scopes_csv: str):
        attempts.append(token)
        if len(attempts) == 1:
            CredentialStore(session_factory).save(domain, "shpat_other", "read_orders")
            with pytest.raises(IntegrityError) as exc_info:
                with session_factory() as session, session.begin():
                    now = utcnow()
                    session.add(
                        TenantCredential(
                            canonical_domain=domain,
                            access_token=token,
                            scopes=scopes_csv,
                            active=True,
                            created_at=now,
                            updated_at=now,
                        )
                    )
            raise exc_info.value
        return original_upsert(domain=domain, token=token, scopes_csv=scopes_csv)

    monkeypatch.setattr(store, "_upsert", racing_upsert)

    record = store.save("race.myshopify.com", "shpat_mine", "read_products")

    assert attempts == ["shpat_mine", "shpat_mine"]
    assert record.access_token == "shpat_mine"
    assert record.scopes == ["read_products"]
    assert _row_count(session_factory) == 1
    assert store.get("race.myshopify.com") == "shpat_mine"


def test_concurrent_saves_leave_one_consistent_row(store, session_factory):
    worker_count = 8
    barrier = threading.Barrier(worker_count)
    failures: list[Exception] = []

    def worker(index: int) -> None:
        barrier.wait()
        try:
            store.save("busy.myshopify.com", f"shpat_{index}", f"read_products,scope_{index}")
        except Exception as exc:
            failures.append(exc)

    threads = [threading.Thread(target=worker, args=(index,)) for index in range(worker_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert failures == []
    assert _row_count(session_factory) == 1
    with session_factory() as session:
        credential = session.scalars(select(TenantCredential)).one()
        assert credential.active is True
        winner = credential.access_token.removeprefix("shpat_")
        assert credential.scopes == f"read_products,scope_{winner}"
