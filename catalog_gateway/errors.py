from __future__ import annotations

from collections.abc import Sequence


class CatalogGatewayError(RuntimeError):
    code = "gateway_error"

    def __init__(self, *, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code


class MissingCredentialError(CatalogGatewayError):
    code = "missing_credential"

    def __init__(self, *, shop_domain: str) -> None:
        super().__init__(
            message=(
                f"Access token not available for shop {shop_domain}. "
                "Please ensure the app is authorized."
            ),
            status_code=401,
        )
        self.shop_domain = shop_domain


class InvalidCredentialError(CatalogGatewayError):
    """Shopify rejected the stored token; the tenant has to re-authorize."""

    code = "invalid_credential"

    def __init__(self, *, shop_domain: str, upstream_status: int) -> None:
        super().__init__(
            message=(
                f"Shopify rejected the access token for shop {shop_domain} "
                f"({upstream_status}). Re-authorize the app."
            ),
            status_code=401,
        )
        self.shop_domain = shop_domain
        self.upstream_status = upstream_status


class RemoteQueryError(CatalogGatewayError):
    code = "remote_query_error"

    def __init__(self, *, messages: Sequence[str], codes: Sequence[str] = ()) -> None:
        self.messages = [message for message in messages if message] or ["Unknown Shopify error"]
        self.codes = [code for code in codes if code]
        super().__init__(
            message=f"Shopify rejected the catalog query: {'; '.join(self.messages)}",
            status_code=502,
        )


class UpstreamTransportError(CatalogGatewayError):
    code = "upstream_unavailable"


class ProductNotFoundError(CatalogGatewayError):
    code = "not_found"

    def __init__(self, *, product_id: str, shop_domain: str) -> None:
        super().__init__(
            message=f"Product {product_id} not found on shop {shop_domain}",
            status_code=404,
        )
        self.product_id = product_id


class DomainResolutionError(CatalogGatewayError):
    code = "unknown_origin"

    def __init__(self, *, origin: str) -> None:
        super().__init__(message=f"Origin is not a known storefront: {origin}", status_code=403)
        self.origin = origin


class InvalidRequestError(CatalogGatewayError):
    code = "invalid_request"

    def __init__(self, *, message: str) -> None:
        super().__init__(message=message, status_code=400)
