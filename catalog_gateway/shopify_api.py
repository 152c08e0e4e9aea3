from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

import httpx

from catalog_gateway.config import settings
from catalog_gateway.errors import (
    InvalidCredentialError,
    InvalidRequestError,
    ProductNotFoundError,
    RemoteQueryError,
    UpstreamTransportError,
)
from catalog_gateway.normalizer import PageInfo, flatten_connection, flatten_page_info
from catalog_gateway.query import SortKey

logger = logging.getLogger(__name__)

_PRODUCT_GID_PREFIX = "gid://shopify/Product/"

_PRODUCT_FIELDS = """
    id
    title
    handle
    descriptionHtml
    vendor
    productType
    status
    tags
    createdAt
    updatedAt
    publishedAt
    options {
        id
        name
        position
        values
    }
    featuredImage {
        id
        url
        altText
    }
    images(first: $imageCount) {
        edges {
            node {
                id
                url
                altText
            }
        }
    }
    variants(first: $variantCount) {
        edges {
            node {
                id
                title
                sku
                price
                inventoryQuantity
                selectedOptions {
                    name
                    value
                }
            }
        }
    }
"""

_PRODUCTS_QUERY = (
    """
query catalogProducts(
    $first: Int!
    $after: String
    $query: String
    $sortKey: ProductSortKeys
    $reverse: Boolean
    $imageCount: Int!
    $variantCount: Int!
) {
    shop {
        currencyCode
    }
    products(first: $first, after: $after, query: $query, sortKey: $sortKey, reverse: $reverse) {
        edges {
            cursor
            node {
"""
    + _PRODUCT_FIELDS
    + """
            }
        }
        pageInfo {
            hasNextPage
            hasPreviousPage
            startCursor
            endCursor
        }
    }
}
"""
)

_PRODUCT_BY_ID_QUERY = (
    """
query catalogProduct($id: ID!, $imageCount: Int!, $variantCount: Int!) {
    shop {
        currencyCode
    }
    product(id: $id) {
"""
    + _PRODUCT_FIELDS
    + """
    }
}
"""
)

_PRODUCT_BY_HANDLE_QUERY = (
    """
query catalogProductByHandle($handle: String!, $imageCount: Int!, $variantCount: Int!) {
    shop {
        currencyCode
    }
    productByIdentifier(identifier: {handle: $handle}) {
"""
    + _PRODUCT_FIELDS
    + """
    }
}
"""
)


@dataclass(frozen=True)
class RawProductPage:
    products: list[dict[str, Any]]
    page_info: PageInfo
    currency: str | None


def product_gid(product_id: str) -> str:
    cleaned = (product_id or "").strip()
    if cleaned.startswith(_PRODUCT_GID_PREFIX) and cleaned[len(_PRODUCT_GID_PREFIX):].isdigit():
        return cleaned
    if cleaned.isdigit():
        return f"{_PRODUCT_GID_PREFIX}{cleaned}"
    raise InvalidRequestError(message="Product id must be a numeric id or a Shopify Product GID.")


def _shop_currency(data: dict[str, Any]) -> str | None:
    shop = data.get("shop")
    if not isinstance(shop, dict):
        return None
    currency = shop.get("currencyCode")
    if isinstance(currency, str) and len(currency.strip()) == 3:
        return currency.strip().upper()
    return None


def product_node_cost(image_count: int, variant_count: int) -> int:
    """Requested cost of one product node in the fields above.

    Shopify charges 1 per object and 2 + ``first`` per connection, multiplied
    by the objects each connection node selects.
    """
    images = 2 + image_count
    variants = 2 + variant_count * 2  # variant + selectedOptions
    return 3 + images + variants  # node, options, featuredImage


def page_query_cost(page_size: int, image_count: int, variant_count: int) -> int:
    return 1 + 2 + page_size * product_node_cost(image_count, variant_count)  # shop + products connection


def max_page_size(image_count: int, variant_count: int, max_cost: int | None = None) -> int:
    limit = max_cost if max_cost is not None else settings.SHOPIFY_MAX_QUERY_COST
    available = limit - page_query_cost(0, image_count, variant_count)
    return max(0, available // product_node_cost(image_count, variant_count))


class ShopifyCatalogClient:
    """Admin GraphQL catalog reads. One request per call; paging is up to the caller."""

    def __init__(
        self,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        detail_image_count: int = 25,
        detail_variant_count: int = 100,
        page_image_count: int | None = None,
        page_variant_count: int | None = None,
    ) -> None:
        self._timeout = timeout if timeout is not None else settings.SHOPIFY_REQUEST_TIMEOUT_SECONDS
        self._transport = transport
        self._detail_image_count = detail_image_count
        self._detail_variant_count = detail_variant_count
        self._page_image_count = (
            page_image_count if page_image_count is not None else settings.CATALOG_PAGE_IMAGE_COUNT
        )
        self._page_variant_count = (
            page_variant_count if page_variant_count is not None else settings.CATALOG_PAGE_VARIANT_COUNT
        )
        self.max_page_size = max_page_size(self._page_image_count, self._page_variant_count)
        if settings.CATALOG_MAX_PAGE_SIZE is not None:
            self.max_page_size = min(self.max_page_size, settings.CATALOG_MAX_PAGE_SIZE)
        if self.max_page_size < 1:
            raise ValueError("Page image and variant counts leave no room for a product within the query cost limit")

    async def fetch_page(
        self,
        *,
        shop_domain: str,
        access_token: str,
        native_query: str,
        sort_key: SortKey = SortKey.RELEVANCE,
        reverse: bool = False,
        page_size: int = 20,
        cursor: str | None = None,
    ) -> RawProductPage:
        if not 1 <= page_size <= self.max_page_size:
            raise InvalidRequestError(message=f"first must be between 1 and {self.max_page_size}.")
        payload = {
            "query": _PRODUCTS_QUERY,
            "variables": {
                "first": page_size,
                "after": cursor or None,
                "query": native_query or None,
                "sortKey": sort_key.value,
                "reverse": reverse,
                "imageCount": self._page_image_count,
                "variantCount": self._page_variant_count,
            },
        }
        data = await self._admin_graphql(shop_domain=shop_domain, access_token=access_token, payload=payload)

        connection = data.get("products")
        if not isinstance(connection, dict):
            raise UpstreamTransportError(message="Shopify products response is missing the products connection")

        products = flatten_connection(connection)
        logger.debug(
            "Fetched product page",
            extra={"shop_domain": shop_domain, "count": len(products), "native_query": native_query},
        )
        return RawProductPage(
            products=products,
            page_info=flatten_page_info(connection.get("pageInfo")),
            currency=_shop_currency(data),
        )

    async def fetch_one(
        self,
        *,
        shop_domain: str,
        access_token: str,
        product_id: str,
    ) -> tuple[dict[str, Any], str | None]:
        gid = product_gid(product_id)
        payload = {
            "query": _PRODUCT_BY_ID_QUERY,
            "variables": {
                "id": gid,
                "imageCount": self._detail_image_count,
                "variantCount": self._detail_variant_count,
            },
        }
        try:
            data = await self._admin_graphql(shop_domain=shop_domain, access_token=access_token, payload=payload)
        except RemoteQueryError as exc:
            if "NOT_FOUND" in exc.codes or any("not found" in message.lower() for message in exc.messages):
                raise ProductNotFoundError(product_id=gid, shop_domain=shop_domain) from exc
            raise

        product = data.get("product")
        if not isinstance(product, dict):
            raise ProductNotFoundError(product_id=gid, shop_domain=shop_domain)
        return product, _shop_currency(data)

    async def fetch_by_handle(
        self,
        *,
        shop_domain: str,
        access_token: str,
        handle: str,
    ) -> tuple[dict[str, Any] | None, str | None]:
        cleaned_handle = handle.strip()
        if not cleaned_handle:
            raise InvalidRequestError(message="handle must be a non-empty string.")
        payload = {
            "query": _PRODUCT_BY_HANDLE_QUERY,
            "variables": {
                "handle": cleaned_handle,
                "imageCount": self._detail_image_count,
                "variantCount": self._detail_variant_count,
            },
        }
        data = await self._admin_graphql(shop_domain=shop_domain, access_token=access_token, payload=payload)
        product = data.get("productByIdentifier")
        return (product if isinstance(product, dict) else None), _shop_currency(data)

    async def _admin_graphql(
        self,
        *,
        shop_domain: str,
        access_token: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        url = f"https://{shop_domain}/admin/api/{settings.SHOPIFY_ADMIN_API_VERSION}/graphql.json"
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": access_token,
        }
        response = await self._post_json(url=url, payload=payload, headers=headers, shop_domain=shop_domain)
        errors = response.get("errors")
        if errors:
            messages, codes = _error_details(errors)
            logger.error(
                "Admin GraphQL errors",
                extra={"shop_domain": shop_domain, "errors": messages, "codes": codes},
            )
            raise RemoteQueryError(messages=messages, codes=codes)
        data = response.get("data")
        if not isinstance(data, dict):
            raise UpstreamTransportError(message="Admin GraphQL response is missing data")
        return data

    async def _post_json(
        self,
        *,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        shop_domain: str,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning("Shopify request timed out", extra={"shop_domain": shop_domain})
            raise UpstreamTransportError(message=f"Shopify request timed out for shop {shop_domain}") from exc
        except httpx.RequestError as exc:
            logger.warning("Shopify network error", extra={"shop_domain": shop_domain, "error": str(exc)})
            raise UpstreamTransportError(message=f"Network error while calling Shopify for shop {shop_domain}") from exc

        if response.status_code in (401, 403):
            raise InvalidCredentialError(shop_domain=shop_domain, upstream_status=response.status_code)
        if response.status_code >= 400:
            logger.error(
                "Shopify API call failed",
                extra={"shop_domain": shop_domain, "status_code": response.status_code, "body": response.text[:500]},
            )
            raise UpstreamTransportError(message=f"Shopify API call failed ({response.status_code})")

        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamTransportError(message="Shopify API returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise UpstreamTransportError(message="Shopify API response must be a JSON object")
        return body


def _error_details(errors: Any) -> tuple[list[str], list[str]]:
    if isinstance(errors, str):
        return [errors], []
    if not isinstance(errors, list):
        return [str(errors)], []
    messages: list[str] = []
    codes: list[str] = []
    for error in errors:
        if not isinstance(error, dict):
            messages.append(str(error))
            continue
        messages.append(str(error.get("message") or "Unknown Shopify error"))
        extensions = error.get("extensions")
        if isinstance(extensions, dict) and isinstance(extensions.get("code"), str):
            codes.append(extensions["code"])
    return messages, codes
