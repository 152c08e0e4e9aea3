from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from catalog_gateway.errors import UpstreamTransportError


@dataclass(frozen=True)
class SelectedOption:
    name: str
    value: str


@dataclass(frozen=True)
class ProductOption:
    name: str
    values: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ProductImage:
    url: str
    alt: str | None
    position: int


@dataclass(frozen=True)
class Variant:
    id: str
    title: str | None
    sku: str | None
    price: str | None
    currency: str | None
    inventory_quantity: int | None
    selected_options: list[SelectedOption] = field(default_factory=list)


@dataclass(frozen=True)
class Product:
    id: str
    title: str
    handle: str | None
    vendor: str | None
    product_type: str | None
    status: str | None
    tags: list[str] = field(default_factory=list)
    images: list[ProductImage] = field(default_factory=list)
    variants: list[Variant] = field(default_factory=list)
    options: list[ProductOption] = field(default_factory=list)
    featured_image: ProductImage | None = None
    description_html: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    published_at: str | None = None

    @property
    def primary_image(self) -> ProductImage | None:
        if self.images:
            return self.images[0]
        return self.featured_image


@dataclass(frozen=True)
class PageInfo:
    has_next_page: bool = False
    has_previous_page: bool = False
    start_cursor: str | None = None
    end_cursor: str | None = None


def flatten_connection(value: Any) -> list[dict[str, Any]]:
    """Unwrap ``{edges: [{node}]}``, ``{nodes: [...]}`` or a plain list, keeping upstream order."""
    if value is None:
        return []
    if isinstance(value, list):
        items = value
    elif isinstance(value, dict):
        if isinstance(value.get("edges"), list):
            items = [edge.get("node") for edge in value["edges"] if isinstance(edge, dict)]
        elif isinstance(value.get("nodes"), list):
            items = value["nodes"]
        else:
            return []
    else:
        return []
    return [item for item in items if isinstance(item, dict)]


def flatten_page_info(value: Any) -> PageInfo:
    if not isinstance(value, dict):
        return PageInfo()
    start_cursor = value.get("startCursor")
    end_cursor = value.get("endCursor")
    return PageInfo(
        has_next_page=value.get("hasNextPage") is True,
        has_previous_page=value.get("hasPreviousPage") is True,
        start_cursor=start_cursor if isinstance(start_cursor, str) else None,
        end_cursor=end_cursor if isinstance(end_cursor, str) else None,
    )


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    return None


def _amount(value: Any) -> str | None:
    if isinstance(value, dict):
        value = value.get("amount")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return _optional_str(value)


def _tags(value: Any) -> list[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return []
    return [tag.strip() for tag in value if isinstance(tag, str) and tag.strip()]


def _image(node: Any, position: int) -> ProductImage | None:
    if not isinstance(node, dict):
        return None
    url = node.get("url") or node.get("src")
    if not isinstance(url, str) or not url:
        return None
    return ProductImage(url=url, alt=_optional_str(node.get("altText") or node.get("alt")), position=position)


def _images(value: Any) -> list[ProductImage]:
    images: list[ProductImage] = []
    for node in flatten_connection(value):
        image = _image(node, position=len(images) + 1)
        if image is not None:
            images.append(image)
    return images


def _selected_options(value: Any) -> list[SelectedOption]:
    if not isinstance(value, list):
        return []
    options: list[SelectedOption] = []
    for entry in value:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        option_value = entry.get("value")
        if isinstance(name, str) and name.strip() and isinstance(option_value, str):
            options.append(SelectedOption(name=name.strip(), value=option_value))
    return options


def _options(value: Any) -> list[ProductOption]:
    if not isinstance(value, list):
        return []
    options: list[ProductOption] = []
    for entry in value:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        if not isinstance(name, str) or not name.strip():
            continue
        values = entry.get("values")
        options.append(
            ProductOption(
                name=name.strip(),
                values=[item for item in values if isinstance(item, str)] if isinstance(values, list) else [],
            )
        )
    return options


def flatten_variant(raw_variant: dict[str, Any], currency: str | None = None) -> Variant:
    variant_id = raw_variant.get("id")
    if not isinstance(variant_id, str) or not variant_id:
        raise UpstreamTransportError(message="Shopify variant payload is missing variant.id")

    # priceV2 wins over the flat price field when both are present
    price_v2 = raw_variant.get("priceV2")
    price = _amount(price_v2) if isinstance(price_v2, dict) else None
    if price is None:
        price = _amount(raw_variant.get("price"))
    if isinstance(price_v2, dict) and isinstance(price_v2.get("currencyCode"), str):
        currency = price_v2["currencyCode"]

    inventory_quantity = raw_variant.get("inventoryQuantity")
    if not isinstance(inventory_quantity, int) or isinstance(inventory_quantity, bool):
        inventory_quantity = None

    sku = raw_variant.get("sku")
    return Variant(
        id=variant_id,
        title=_optional_str(raw_variant.get("title")),
        sku=sku if isinstance(sku, str) and sku else None,
        price=price,
        currency=currency,
        inventory_quantity=inventory_quantity,
        selected_options=_selected_options(raw_variant.get("selectedOptions")),
    )


def flatten(raw_product: dict[str, Any], currency: str | None = None) -> Product:
    product_id = raw_product.get("id")
    if not isinstance(product_id, str) or not product_id:
        raise UpstreamTransportError(message="Shopify product payload is missing product.id")

    return Product(
        id=product_id,
        title=_optional_str(raw_product.get("title")) or "",
        handle=_optional_str(raw_product.get("handle")),
        vendor=_optional_str(raw_product.get("vendor")),
        product_type=_optional_str(raw_product.get("productType")),
        status=_optional_str(raw_product.get("status")),
        tags=_tags(raw_product.get("tags")),
        images=_images(raw_product.get("images")),
        variants=[flatten_variant(node, currency) for node in flatten_connection(raw_product.get("variants"))],
        options=_options(raw_product.get("options")),
        featured_image=_image(raw_product.get("featuredImage"), position=1),
        description_html=_optional_str(raw_product.get("descriptionHtml")),
        created_at=_optional_str(raw_product.get("createdAt")),
        updated_at=_optional_str(raw_product.get("updatedAt")),
        published_at=_optional_str(raw_product.get("publishedAt")),
    )


def flatten_page(raw_products: Any, currency: str | None = None) -> list[Product]:
    return [flatten(node, currency) for node in flatten_connection(raw_products)]
