from __future__ import annotations

import threading

from catalog_gateway.domains import AliasCache, DomainResolver, public_domain_for


class FakeCredentials:
    def __init__(self, active_domains: list[str]) -> None:
        self.active_domains = list(active_domains)
        self.probes: list[str] = []
        self.listings = 0

    def has_active(self, canonical_domain: str) -> bool:
        self.probes.append(canonical_domain)
        return canonical_domain in self.active_domains

    def list_active_domains(self) -> list[str]:
        self.listings += 1
        return list(self.active_domains)


class BrokenCredentials(FakeCredentials):
    def has_active(self, canonical_domain: str) -> bool:
        raise RuntimeError("database unavailable")


def test_public_domain_strips_version_suffix_before_dot():
    assert public_domain_for("store-v7.example.com") == "store.example.com"
    assert public_domain_for("1ekhav-v12.myshopify.com") == "1ekhav.myshopify.com"
    assert public_domain_for("store.example.com") == "store.example.com"
    assert public_domain_for("store-v7x.example.com") == "store-v7x.example.com"


def test_direct_resolution_is_cached():
    credentials = FakeCredentials(["shop.myshopify.com"])
    resolver = DomainResolver(credentials)

    assert resolver.resolve("shop.myshopify.com") == "shop.myshopify.com"
    assert resolver.resolve("shop.myshopify.com") == "shop.myshopify.com"
    assert credentials.probes == ["shop.myshopify.com"]


def test_pattern_match_caches_both_directions():
    credentials = FakeCredentials(["store-v7.example.com"])
    cache = AliasCache()
    resolver = DomainResolver(credentials, cache)

    assert resolver.resolve("store.example.com") == "store-v7.example.com"
    assert cache.get("store.example.com") == "store-v7.example.com"
    assert cache.get("store-v7.example.com") == "store-v7.example.com"

    probes_before = list(credentials.probes)
    assert resolver.resolve("store-v7.example.com") == "store-v7.example.com"
    assert resolver.resolve("store.example.com") == "store-v7.example.com"
    assert credentials.probes == probes_before
    assert credentials.listings == 1


def test_unknown_domain_returns_none_and_is_not_cached():
    credentials = FakeCredentials(["store-v7.example.com"])
    resolver = DomainResolver(credentials)

    assert resolver.resolve("other.example.com") is None
    assert "other.example.com" not in resolver.cache
    assert resolver.resolve("") is None


def test_input_is_normalized_before_lookup():
    credentials = FakeCredentials(["shop.myshopify.com"])
    resolver = DomainResolver(credentials)

    assert resolver.resolve("  Shop.MyShopify.com ") == "shop.myshopify.com"


def test_remember_records_alias_and_identity():
    resolver = DomainResolver(FakeCredentials([]))

    resolver.remember("www.brand.com", "brand-v2.myshopify.com")

    assert resolver.resolve("www.brand.com") == "brand-v2.myshopify.com"
    assert resolver.resolve("brand-v2.myshopify.com") == "brand-v2.myshopify.com"
    assert len(resolver.cache) == 2


def test_is_known_origin_accepts_resolvable_hosts():
    resolver = DomainResolver(FakeCredentials(["store-v7.example.com"]))

    assert resolver.is_known_origin("https://store.example.com")
    assert resolver.is_known_origin("https://store-v7.example.com:443/path")


def test_is_known_origin_fails_closed():
    resolver = DomainResolver(FakeCredentials(["store-v7.example.com"]))

    assert not resolver.is_known_origin("not a url")
    assert not resolver.is_known_origin("http://[broken")
    assert not resolver.is_known_origin("")
    assert not resolver.is_known_origin(None)
    assert not resolver.is_known_origin("https://unknown.example.com")


def test_is_known_origin_denies_on_storage_errors():
    resolver = DomainResolver(BrokenCredentials(["store.example.com"]))

    assert not resolver.is_known_origin("https://store.example.com")


def test_alias_cache_handles_concurrent_writers_and_readers():
    cache = AliasCache()
    thread_count = 8
    per_thread = 200
    barrier = threading.Barrier(thread_count)
    mismatches: list[tuple[str, str | None]] = []

    def worker(index: int) -> None:
        barrier.wait()
        for item in range(per_thread):
            alias = f"alias-{index}-{item}.example.com"
            canonical = f"store-{index}-v{item}.example.com"
            cache.put(alias, canonical)
            cache.put("shared.example.com", "shared-v1.example.com")
            value = cache.get(alias)
            if value != canonical:
                mismatches.append((alias, value))

    threads = [threading.Thread(target=worker, args=(index,)) for index in range(thread_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert mismatches == []
    assert len(cache) == thread_count * per_thread + 1
    assert cache.get("shared.example.com") == "shared-v1.example.com"
    assert "alias-3-150.example.com" in cache
