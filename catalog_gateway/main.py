from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import Decimal
import logging

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import ORJSONResponse

from catalog_gateway.config import settings
from catalog_gateway.credentials import CredentialRecord, CredentialStore
from catalog_gateway.db import SessionLocal, init_db
from catalog_gateway.domains import AliasCache, DomainResolver
from catalog_gateway.errors import CatalogGatewayError, DomainResolutionError, InvalidRequestError
from catalog_gateway.projections import to_detail, to_page_info, to_summary
from catalog_gateway.query import FilterSpec, clean_tags
from catalog_gateway.schemas import (
    CredentialResponse,
    ProductDetail,
    SearchProductsResponse,
    ShopifyInitRequest,
    ShopifyInitResponse,
)
from catalog_gateway.security import normalize_shop_domain, require_api_key, warn_if_no_api_keys
from catalog_gateway.service import CatalogService
from catalog_gateway.shopify_api import ShopifyCatalogClient

logger = logging.getLogger(__name__)

credential_store = CredentialStore(SessionLocal)
domain_resolver = DomainResolver(credential_store, AliasCache())
catalog_client = ShopifyCatalogClient()
catalog_service = CatalogService(
    credentials=credential_store,
    resolver=domain_resolver,
    client=catalog_client,
)
MAX_PAGE_SIZE = catalog_client.max_page_size
DEFAULT_PAGE_SIZE = min(settings.CATALOG_DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE)


@asynccontextmanager
async def _app_lifespan(_app: FastAPI) -> AsyncIterator[None]:
    init_db()
    warn_if_no_api_keys()
    yield


app = FastAPI(
    title="Storefront Catalog Gateway",
    default_response_class=ORJSONResponse,
    lifespan=_app_lifespan,
)


@app.exception_handler(CatalogGatewayError)
async def catalog_gateway_error_handler(_request: Request, exc: CatalogGatewayError) -> ORJSONResponse:
    if exc.status_code >= 500:
        logger.warning("Upstream catalog failure", extra={"code": exc.code, "detail": str(exc)})
    return ORJSONResponse(status_code=exc.status_code, content={"detail": str(exc), "code": exc.code})


@app.middleware("http")
async def storefront_origin_gate(request: Request, call_next):
    origin = request.headers.get("origin")
    if origin is None:
        return await call_next(request)

    if not domain_resolver.is_known_origin(origin):
        denied = DomainResolutionError(origin=origin)
        logger.warning("Denied cross-origin request", extra={"origin": origin})
        return ORJSONResponse(
            status_code=denied.status_code,
            content={"detail": str(denied), "code": denied.code},
        )

    if request.method == "OPTIONS" and "access-control-request-method" in request.headers:
        response = Response(status_code=status.HTTP_204_NO_CONTENT)
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = request.headers.get(
            "access-control-request-headers", "Content-Type"
        )
    else:
        response = await call_next(request)
    response.headers["Access-Control-Allow-Origin"] = origin
    response.headers["Vary"] = "Origin"
    return response


@app.get("/health")
def health() -> dict[str, bool]:
    return {"ok": True}


def _parse_in_stock(value: str | None) -> bool | None:
    if value is None or not value.strip():
        return None
    normalized = value.strip().lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    raise InvalidRequestError(message="in_stock must be 'true' or 'false'.")


def _serialize_credential(record: CredentialRecord) -> CredentialResponse:
    return CredentialResponse(
        shop=record.canonical_domain,
        active=record.active,
        hasToken=record.active,
        tokenPreview=record.token_preview if record.active else None,
        scopes=record.scopes,
        createdAt=record.created_at,
        updatedAt=record.updated_at,
    )


@app.get("/products", response_model=SearchProductsResponse)
async def search_products(
    shop: str | None = None,
    q: str | None = None,
    handle: str | None = None,
    product_type: str | None = None,
    vendor: str | None = None,
    price_min: Decimal | None = Query(default=None, ge=0),
    price_max: Decimal | None = Query(default=None, ge=0),
    tags_includeany: str | None = None,
    tags_includeall: str | None = None,
    color: str | None = None,
    size: str | None = None,
    in_stock: str | None = None,
    sort_by: str | None = None,
    first: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    after: str | None = None,
):
    shop_domain = normalize_shop_domain(shop)
    if price_min is not None and price_max is not None and price_min > price_max:
        raise InvalidRequestError(message="price_min must not be greater than price_max.")

    filters = FilterSpec(
        keyword=q,
        handle=handle,
        product_type=product_type,
        vendor=vendor,
        price_min=price_min,
        price_max=price_max,
        tags_any=clean_tags(tags_includeany),
        tags_all=clean_tags(tags_includeall),
        in_stock=_parse_in_stock(in_stock),
        color=color,
        size=size,
    )
    result = await catalog_service.search(
        shop_domain=shop_domain,
        filters=filters,
        sort_by=sort_by,
        first=first,
        after=after or None,
    )
    return SearchProductsResponse(
        shop=result.shop_domain,
        products=[to_summary(product) for product in result.products],
        pageInfo=to_page_info(result.page_info),
    )


@app.get("/products/{product_id:path}", response_model=ProductDetail)
async def get_product(product_id: str, shop: str | None = None):
    shop_domain = normalize_shop_domain(shop)
    product = await catalog_service.get_product(shop_domain=shop_domain, product_id=product_id)
    return to_detail(product, shop_domain=shop_domain)


@app.post(
    "/auth/shopify/init",
    response_model=ShopifyInitResponse,
    dependencies=[Depends(require_api_key)],
)
def shopify_init(payload: ShopifyInitRequest):
    shop_domain = normalize_shop_domain(payload.shop)
    record = catalog_service.register_credential(
        shop_domain=shop_domain,
        access_token=payload.accessToken,
        scopes=payload.scopes,
    )
    return ShopifyInitResponse(
        message=f"Shopify init successful for shop: {record.canonical_domain}. Token and scopes stored.",
        shop=record.canonical_domain,
        scopes=record.scopes,
    )


@app.get(
    "/admin/credentials",
    response_model=list[CredentialResponse],
    dependencies=[Depends(require_api_key)],
)
def list_credentials():
    return [_serialize_credential(record) for record in catalog_service.list_credentials()]


@app.post(
    "/admin/credentials/{shop}/deactivate",
    response_model=CredentialResponse,
    dependencies=[Depends(require_api_key)],
)
def deactivate_credential(shop: str):
    shop_domain = normalize_shop_domain(shop)
    record = catalog_service.deactivate_credential(shop_domain=shop_domain)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shop credential not found")
    return _serialize_credential(record)
