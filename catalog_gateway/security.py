from __future__ import annotations

import hmac
import logging
import re
from urllib.parse import urlsplit

from fastapi import Header, HTTPException, status

from catalog_gateway.config import settings
from catalog_gateway.errors import InvalidRequestError

logger = logging.getLogger(__name__)

_HOSTNAME_RE = re.compile(r"^(?=.{1,253}$)[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?(?:\.[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?)+$")


def normalize_shop_domain(shop: str | None) -> str:
    """Accept a bare domain or an origin URL and return the lowercase host."""
    candidate = (shop or "").strip().lower()
    if not candidate:
        raise InvalidRequestError(message="shop query parameter is required.")
    if "://" in candidate:
        try:
            candidate = urlsplit(candidate).hostname or ""
        except ValueError:
            candidate = ""
    candidate = candidate.rstrip("/")
    if not _HOSTNAME_RE.fullmatch(candidate):
        raise InvalidRequestError(message="shop must be a valid storefront domain")
    return candidate


def require_api_key(x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> None:
    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key is missing.",
        )
    supplied = x_api_key.strip()
    for valid_key in settings.api_keys:
        if hmac.compare_digest(supplied.encode("utf-8"), valid_key.encode("utf-8")):
            return
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid API key.",
    )


def warn_if_no_api_keys() -> None:
    if not settings.api_keys:
        logger.warning(
            "No CATALOG_GATEWAY_API_KEYS configured; administrative routes will deny all requests."
        )
