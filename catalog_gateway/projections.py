from __future__ import annotations

from decimal import Decimal, InvalidOperation

from catalog_gateway.normalizer import PageInfo, Product, Variant
from catalog_gateway.schemas import (
    AggregateOffer,
    Brand,
    ImageObject,
    InventoryLevel,
    Offer,
    OfferAttribute,
    PageInfoResponse,
    ProductDetail,
    ProductSummary,
)

IN_STOCK = "https://schema.org/InStock"
OUT_OF_STOCK = "https://schema.org/OutOfStock"
DEFAULT_CURRENCY = "USD"
KEY_TAG_COUNT = 3


def _decimal(value: str | None) -> Decimal | None:
    if value is None:
        return None
    try:
        parsed = Decimal(value.strip())
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def _numeric_id(gid: str) -> str:
    return gid.rsplit("/", 1)[-1]


def product_url(shop_domain: str, product: Product) -> str | None:
    if not product.handle:
        return None
    return f"https://{shop_domain}/products/{product.handle}"


def to_page_info(page_info: PageInfo) -> PageInfoResponse:
    return PageInfoResponse(
        hasNextPage=page_info.has_next_page,
        hasPreviousPage=page_info.has_previous_page,
        startCursor=page_info.start_cursor,
        endCursor=page_info.end_cursor,
    )


def to_summary(product: Product) -> ProductSummary:
    primary_image = product.primary_image
    return ProductSummary(
        productId=product.id,
        title=product.title,
        mainImage=primary_image.url if primary_image else None,
        basePrice=product.variants[0].price if product.variants else None,
        keyTags=product.tags[:KEY_TAG_COUNT],
    )


def _offer(variant: Variant, *, currency: str, base_url: str | None) -> Offer:
    in_stock = (variant.inventory_quantity or 0) > 0
    return Offer(
        id=variant.id,
        sku=variant.sku,
        name=variant.title,
        price=variant.price,
        priceCurrency=variant.currency or currency,
        availability=IN_STOCK if in_stock else OUT_OF_STOCK,
        inventoryLevel=InventoryLevel(value=variant.inventory_quantity),
        attributes=[OfferAttribute(name=option.name, value=option.value) for option in variant.selected_options],
        url=f"{base_url}?variant={_numeric_id(variant.id)}" if base_url else None,
    )


def to_detail(product: Product, *, shop_domain: str) -> ProductDetail:
    base_url = product_url(shop_domain, product)
    currency = next((variant.currency for variant in product.variants if variant.currency), DEFAULT_CURRENCY)

    priced: list[tuple[Decimal, str]] = []
    for variant in product.variants:
        amount = _decimal(variant.price)
        if amount is not None and variant.price is not None:
            priced.append((amount, variant.price))
    low_price = min(priced, key=lambda item: item[0])[1] if priced else None
    high_price = max(priced, key=lambda item: item[0])[1] if priced else None

    return ProductDetail(
        id=product.id,
        name=product.title,
        description=product.description_html,
        url=base_url,
        handle=product.handle,
        brand=Brand(name=product.vendor),
        productType=product.product_type,
        tags=list(product.tags),
        status=product.status,
        createdAt=product.created_at,
        updatedAt=product.updated_at,
        publishedAt=product.published_at,
        images=[
            ImageObject(url=image.url, alternateName=image.alt or product.title, position=image.position)
            for image in product.images
        ],
        offers=AggregateOffer(
            lowPrice=low_price,
            highPrice=high_price,
            priceCurrency=currency,
            offerCount=len(product.variants),
            offers=[_offer(variant, currency=currency, base_url=base_url) for variant in product.variants],
        ),
    )
