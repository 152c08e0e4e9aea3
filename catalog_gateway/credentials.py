from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
import time

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from catalog_gateway.errors import InvalidRequestError
from catalog_gateway.models import TenantCredential, utcnow

logger = logging.getLogger(__name__)

TOMBSTONE_PREFIX = "DEACTIVATED_"


@dataclass(frozen=True)
class CredentialRecord:
    canonical_domain: str
    access_token: str
    scopes: list[str]
    active: bool
    created_at: datetime
    updated_at: datetime

    @property
    def token_preview(self) -> str | None:
        if not self.access_token:
            return None
        return f"{self.access_token[:10]}..."


def normalize_scopes(scopes: str | list[str] | None) -> str:
    if scopes is None:
        return ""
    raw_values = scopes.split(",") if isinstance(scopes, str) else scopes
    seen: set[str] = set()
    normalized: list[str] = []
    for raw in raw_values:
        scope = raw.strip()
        if not scope or scope in seen:
            continue
        seen.add(scope)
        normalized.append(scope)
    return ",".join(normalized)


def _normalize_domain(domain: str) -> str:
    normalized = (domain or "").strip().lower()
    if not normalized:
        raise InvalidRequestError(message="Canonical domain is required.")
    return normalized


def _snapshot(credential: TenantCredential) -> CredentialRecord:
    return CredentialRecord(
        canonical_domain=credential.canonical_domain,
        access_token=credential.access_token,
        scopes=[scope for scope in credential.scopes.split(",") if scope],
        active=credential.active,
        created_at=credential.created_at,
        updated_at=credential.updated_at,
    )


class CredentialStore:
    """Per-tenant Shopify access tokens, one row per canonical domain.

    Rows are never deleted. Deactivation tombstones the token so a revoked value
    cannot be handed out again; a later ``save`` reactivates the same row.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def save(self, canonical_domain: str, token: str, scopes: str | list[str] | None = None) -> CredentialRecord:
        domain = _normalize_domain(canonical_domain)
        cleaned_token = (token or "").strip()
        if not cleaned_token:
            raise InvalidRequestError(message="Access token is required.")
        scopes_csv = normalize_scopes(scopes)

        try:
            record = self._upsert(domain=domain, token=cleaned_token, scopes_csv=scopes_csv)
        except IntegrityError:
            # Lost the insert race for this domain; the row exists now.
            logger.info("Concurrent credential insert, retrying as update", extra={"shop_domain": domain})
            record = self._upsert(domain=domain, token=cleaned_token, scopes_csv=scopes_csv)

        logger.info(
            "Stored Shopify credential",
            extra={"shop_domain": domain, "scopes": record.scopes},
        )
        return record

    def _upsert(self, *, domain: str, token: str, scopes_csv: str) -> CredentialRecord:
        with self._session_factory() as session, session.begin():
            credential = session.scalars(
                select(TenantCredential).where(TenantCredential.canonical_domain == domain).with_for_update()
            ).first()
            if credential is None:
                now = utcnow()
                credential = TenantCredential(
                    canonical_domain=domain,
                    access_token=token,
                    scopes=scopes_csv,
                    active=True,
                    created_at=now,
                    updated_at=now,
                )
                session.add(credential)
            elif credential.access_token != token or credential.scopes != scopes_csv or not credential.active:
                credential.access_token = token
                credential.scopes = scopes_csv
                credential.active = True
                credential.updated_at = utcnow()
            session.flush()
            return _snapshot(credential)

    def get(self, canonical_domain: str) -> str | None:
        domain = _normalize_domain(canonical_domain)
        with self._session_factory() as session:
            token = session.scalars(
                select(TenantCredential.access_token).where(
                    TenantCredential.canonical_domain == domain,
                    TenantCredential.active.is_(True),
                )
            ).first()
        if token is None:
            logger.debug("No active credential", extra={"shop_domain": domain})
        return token

    def has_active(self, canonical_domain: str) -> bool:
        return self.get(canonical_domain) is not None

    def deactivate(self, canonical_domain: str) -> CredentialRecord | None:
        domain = _normalize_domain(canonical_domain)
        with self._session_factory() as session, session.begin():
            credential = session.scalars(
                select(TenantCredential).where(TenantCredential.canonical_domain == domain).with_for_update()
            ).first()
            if credential is None:
                logger.warning("Deactivation requested for unknown shop", extra={"shop_domain": domain})
                return None
            credential.active = False
            credential.access_token = f"{TOMBSTONE_PREFIX}{int(time.time() * 1000)}"
            credential.updated_at = utcnow()
            session.flush()
            record = _snapshot(credential)

        logger.info("Deactivated Shopify credential", extra={"shop_domain": domain})
        return record

    def list_active_domains(self) -> list[str]:
        with self._session_factory() as session:
            values = session.scalars(
                select(TenantCredential.canonical_domain)
                .where(TenantCredential.active.is_(True))
                .order_by(TenantCredential.canonical_domain.asc())
            ).all()
        return list(values)

    def list_all(self) -> list[CredentialRecord]:
        with self._session_factory() as session:
            credentials = session.scalars(
                select(TenantCredential).order_by(TenantCredential.updated_at.desc())
            ).all()
            return [_snapshot(credential) for credential in credentials]
