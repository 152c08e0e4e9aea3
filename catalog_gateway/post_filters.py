from __future__ import annotations

from catalog_gateway.normalizer import Product


def _find_option_name(product: Product, keyword: str) -> str | None:
    for option in product.options:
        if keyword in option.name.lower():
            return option.name
    return None


def matches_option(product: Product, keyword: str, requested: str | None) -> bool:
    """True when a variant carries ``requested`` for the option whose name contains ``keyword``.

    An empty request matches everything; a product without such an option never matches.
    """
    wanted = (requested or "").strip().casefold()
    if not wanted:
        return True

    option_name = _find_option_name(product, keyword)
    if option_name is None:
        return False

    target_name = option_name.casefold()
    for variant in product.variants:
        for selected in variant.selected_options:
            if selected.name.casefold() == target_name and selected.value.strip().casefold() == wanted:
                return True
    return False


def apply(products: list[Product], color: str | None = None, size: str | None = None) -> list[Product]:
    return [
        product
        for product in products
        if matches_option(product, "color", color) and matches_option(product, "size", size)
    ]
