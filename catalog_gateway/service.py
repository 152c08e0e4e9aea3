from __future__ import annotations

from dataclasses import dataclass
import logging

from catalog_gateway import post_filters
from catalog_gateway.credentials import CredentialRecord, CredentialStore
from catalog_gateway.domains import DomainResolver
from catalog_gateway.errors import MissingCredentialError
from catalog_gateway.normalizer import PageInfo, Product, flatten, flatten_page
from catalog_gateway.query import FilterSpec, sort_spec_for, translate
from catalog_gateway.shopify_api import ShopifyCatalogClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchResult:
    shop_domain: str
    canonical_domain: str
    products: list[Product]
    page_info: PageInfo


@dataclass(frozen=True)
class TenantAccess:
    canonical_domain: str
    access_token: str


class CatalogService:
    def __init__(
        self,
        *,
        credentials: CredentialStore,
        resolver: DomainResolver,
        client: ShopifyCatalogClient,
    ) -> None:
        self._credentials = credentials
        self._resolver = resolver
        self._client = client

    def tenant_access(self, shop_domain: str) -> TenantAccess:
        canonical_domain = self._resolver.resolve(shop_domain)
        if canonical_domain is None:
            raise MissingCredentialError(shop_domain=shop_domain)
        token = self._credentials.get(canonical_domain)
        if token is None:
            logger.warning(
                "Resolved shop has no active credential",
                extra={"shop_domain": shop_domain, "canonical_domain": canonical_domain},
            )
            raise MissingCredentialError(shop_domain=shop_domain)
        return TenantAccess(canonical_domain=canonical_domain, access_token=token)

    async def search(
        self,
        *,
        shop_domain: str,
        filters: FilterSpec,
        sort_by: str | None = None,
        first: int = 20,
        after: str | None = None,
    ) -> SearchResult:
        access = self.tenant_access(shop_domain)

        if filters.handle and filters.handle.strip():
            raw_product, currency = await self._client.fetch_by_handle(
                shop_domain=access.canonical_domain,
                access_token=access.access_token,
                handle=filters.handle,
            )
            products = [flatten(raw_product, currency)] if raw_product is not None else []
            page_info = PageInfo()
        else:
            native_query, sort_key, reverse = translate(filters, sort_spec_for(sort_by))
            page = await self._client.fetch_page(
                shop_domain=access.canonical_domain,
                access_token=access.access_token,
                native_query=native_query,
                sort_key=sort_key,
                reverse=reverse,
                page_size=first,
                cursor=after,
            )
            products = flatten_page(page.products, page.currency)
            page_info = page.page_info

        filtered = post_filters.apply(products, color=filters.color, size=filters.size)
        logger.info(
            "Catalog search",
            extra={
                "shop_domain": shop_domain,
                "canonical_domain": access.canonical_domain,
                "fetched": len(products),
                "returned": len(filtered),
            },
        )
        return SearchResult(
            shop_domain=shop_domain,
            canonical_domain=access.canonical_domain,
            products=filtered,
            page_info=page_info,
        )

    async def get_product(self, *, shop_domain: str, product_id: str) -> Product:
        access = self.tenant_access(shop_domain)
        raw_product, currency = await self._client.fetch_one(
            shop_domain=access.canonical_domain,
            access_token=access.access_token,
            product_id=product_id,
        )
        return flatten(raw_product, currency)

    def register_credential(self, *, shop_domain: str, access_token: str, scopes: str) -> CredentialRecord:
        record = self._credentials.save(shop_domain, access_token, scopes)
        self._resolver.remember(record.canonical_domain, record.canonical_domain)
        return record

    def deactivate_credential(self, *, shop_domain: str) -> CredentialRecord | None:
        canonical_domain = self._resolver.resolve(shop_domain) or shop_domain
        return self._credentials.deactivate(canonical_domain)

    def list_credentials(self) -> list[CredentialRecord]:
        return self._credentials.list_all()
