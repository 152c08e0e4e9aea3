"""Generic catalog filters -> Shopify Admin product search syntax."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class SortKey(str, Enum):
    RELEVANCE = "RELEVANCE"
    PRICE = "PRICE"
    PUBLISHED_AT = "PUBLISHED_AT"
    CREATED_AT = "CREATED_AT"


@dataclass(frozen=True)
class SortSpec:
    key: SortKey = SortKey.RELEVANCE
    reverse: bool = False


_SORT_TABLE: dict[str, SortSpec] = {
    "RELEVANCE": SortSpec(SortKey.RELEVANCE, False),
    "PRICE_ASC": SortSpec(SortKey.PRICE, False),
    "PRICE_DESC": SortSpec(SortKey.PRICE, True),
    "PUBLISHED_DESC": SortSpec(SortKey.PUBLISHED_AT, True),
    "PUBLISHED_AT_DESC": SortSpec(SortKey.PUBLISHED_AT, True),
    "CREATED_DESC": SortSpec(SortKey.CREATED_AT, True),
    "CREATED_AT_DESC": SortSpec(SortKey.CREATED_AT, True),
}

_KEYWORD_FIELDS = ("title", "description", "vendor", "product_type", "sku")


def sort_spec_for(sort_by: str | None) -> SortSpec:
    """Unknown or missing values sort by relevance."""
    if not sort_by:
        return SortSpec()
    return _SORT_TABLE.get(sort_by.strip().upper(), SortSpec())


def clean_tags(tags: Iterable[str] | str | None) -> tuple[str, ...]:
    if tags is None:
        return ()
    raw_values = tags.split(",") if isinstance(tags, str) else tags
    seen: set[str] = set()
    cleaned: list[str] = []
    for raw in raw_values:
        tag = raw.strip()
        if not tag or tag in seen:
            continue
        seen.add(tag)
        cleaned.append(tag)
    return tuple(cleaned)


@dataclass(frozen=True)
class FilterSpec:
    keyword: str | None = None
    handle: str | None = None
    product_type: str | None = None
    vendor: str | None = None
    price_min: Decimal | None = None
    price_max: Decimal | None = None
    tags_any: tuple[str, ...] = ()
    tags_all: tuple[str, ...] = ()
    in_stock: bool | None = None
    # Applied after normalization; Shopify option search is unreliable.
    color: str | None = None
    size: str | None = None


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _format_decimal(value: Decimal) -> str:
    return format(value, "f")


def _present(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def build_query_clauses(filters: FilterSpec) -> list[str]:
    clauses: list[str] = []

    keyword = _present(filters.keyword)
    if keyword:
        alternatives = " OR ".join(f"{field}:*{keyword}*" for field in _KEYWORD_FIELDS)
        clauses.append(f"({alternatives})")

    product_type = _present(filters.product_type)
    if product_type:
        clauses.append(f"product_type:{_quote(product_type)}")

    vendor = _present(filters.vendor)
    if vendor:
        clauses.append(f"vendor:{_quote(vendor)}")

    if filters.price_min is not None:
        clauses.append(f"variants.price:>={_format_decimal(filters.price_min)}")
    if filters.price_max is not None:
        clauses.append(f"variants.price:<={_format_decimal(filters.price_max)}")

    for tag in clean_tags(filters.tags_all):
        clauses.append(f"tag:{_quote(tag)}")

    any_tags = clean_tags(filters.tags_any)
    if any_tags:
        clauses.append("(" + " OR ".join(f"tag:{_quote(tag)}" for tag in any_tags) + ")")

    if filters.in_stock is True:
        clauses.append("inventory:>0")
    elif filters.in_stock is False:
        clauses.append("inventory:<=0")

    return clauses


def build_native_query(filters: FilterSpec) -> str:
    return " AND ".join(build_query_clauses(filters))


def translate(filters: FilterSpec, sort: SortSpec | None = None) -> tuple[str, SortKey, bool]:
    sort = sort or SortSpec()
    return build_native_query(filters), sort.key, sort.reverse
