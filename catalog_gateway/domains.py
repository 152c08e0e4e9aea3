from __future__ import annotations

import logging
import re
import threading
from typing import Protocol
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

# "-v7" right before a dot: store-v7.myshopify.com is served publicly as store.myshopify.com
_VERSION_SUFFIX_RE = re.compile(r"-v\d+(?=\.)")


class ActiveCredentialLookup(Protocol):
    def has_active(self, canonical_domain: str) -> bool: ...

    def list_active_domains(self) -> list[str]: ...


class AliasCache:
    """Alias -> canonical domain map shared across requests.

    Entries are only ever added; concurrent writers of the same alias write the
    same value, so last-writer-wins is fine.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, str] = {}

    def get(self, alias: str) -> str | None:
        with self._lock:
            return self._entries.get(alias)

    def put(self, alias: str, canonical_domain: str) -> None:
        with self._lock:
            self._entries[alias] = canonical_domain

    def __contains__(self, alias: object) -> bool:
        with self._lock:
            return alias in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def public_domain_for(canonical_domain: str) -> str:
    return _VERSION_SUFFIX_RE.sub("", canonical_domain, count=1)


def _normalize(domain: str) -> str:
    return (domain or "").strip().lower()


class DomainResolver:
    def __init__(self, credentials: ActiveCredentialLookup, cache: AliasCache | None = None) -> None:
        self._credentials = credentials
        self._cache = cache if cache is not None else AliasCache()

    @property
    def cache(self) -> AliasCache:
        return self._cache

    def resolve(self, input_domain: str) -> str | None:
        domain = _normalize(input_domain)
        if not domain:
            return None

        cached = self._cache.get(domain)
        if cached is not None:
            logger.debug("Domain cache hit", extra={"alias": domain, "canonical_domain": cached})
            return cached

        if self._credentials.has_active(domain):
            self._cache.put(domain, domain)
            return domain

        for canonical_domain in self._credentials.list_active_domains():
            candidate = public_domain_for(canonical_domain)
            if candidate == canonical_domain:
                continue
            if candidate == domain:
                logger.info(
                    "Resolved storefront alias by version suffix",
                    extra={"alias": domain, "canonical_domain": canonical_domain},
                )
                self.remember(domain, canonical_domain)
                return canonical_domain

        logger.warning("No domain mapping found", extra={"alias": domain})
        return None

    def remember(self, alias: str, canonical_domain: str) -> None:
        canonical = _normalize(canonical_domain)
        self._cache.put(_normalize(alias), canonical)
        self._cache.put(canonical, canonical)

    def is_known_origin(self, origin: str | None) -> bool:
        try:
            host = urlsplit(origin or "").hostname
            if not host:
                return False
            return self.resolve(host) is not None
        except Exception as exc:
            # Unknown origins are denied, including on parse or storage errors.
            logger.error("Origin check failed", extra={"origin": origin, "error": str(exc)})
            return False
