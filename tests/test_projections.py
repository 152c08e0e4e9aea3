from __future__ import annotations

from catalog_gateway.normalizer import PageInfo, flatten
from catalog_gateway.projections import IN_STOCK, OUT_OF_STOCK, to_detail, to_page_info, to_summary


def _product(**overrides):
    raw = {
        "id": "gid://shopify/Product/1",
        "title": "Linen Shirt",
        "handle": "linen-shirt",
        "descriptionHtml": "<p>Breathable</p>",
        "vendor": "Acme",
        "productType": "Shirts",
        "status": "ACTIVE",
        "tags": ["summer", "linen", "sale", "new"],
        "createdAt": "2024-01-01T00:00:00Z",
        "updatedAt": "2024-02-01T00:00:00Z",
        "publishedAt": "2024-01-02T00:00:00Z",
        "options": [{"name": "Size", "values": ["S", "M"]}],
        "images": {
            "edges": [
                {"node": {"url": "https://cdn.example.com/front.png", "altText": None}},
                {"node": {"url": "https://cdn.example.com/back.png", "altText": "Back view"}},
            ]
        },
        "variants": {
            "edges": [
                {
                    "node": {
                        "id": "gid://shopify/ProductVariant/11",
                        "title": "S",
                        "sku": "LS-S",
                        "price": "30.00",
                        "inventoryQuantity": 0,
                        "selectedOptions": [{"name": "Size", "value": "S"}],
                    }
                },
                {
                    "node": {
                        "id": "gid://shopify/ProductVariant/12",
                        "title": "M",
                        "sku": "LS-M",
                        "price": "9.50",
                        "inventoryQuantity": 4,
                        "selectedOptions": [{"name": "Size", "value": "M"}],
                    }
                },
            ]
        },
    }
    raw.update(overrides)
    return flatten(raw, currency="EUR")


def test_summary_uses_primary_image_first_price_and_three_tags():
    summary = to_summary(_product())

    assert summary.productId == "gid://shopify/Product/1"
    assert summary.mainImage == "https://cdn.example.com/front.png"
    assert summary.basePrice == "30.00"
    assert summary.keyTags == ["summer", "linen", "sale"]


def test_summary_without_images_or_variants():
    summary = to_summary(_product(images=None, variants=None))

    assert summary.mainImage is None
    assert summary.basePrice is None


def test_detail_projection_shape():
    detail = to_detail(_product(), shop_domain="store.example.com")

    assert detail.name == "Linen Shirt"
    assert detail.url == "https://store.example.com/products/linen-shirt"
    assert detail.brand.name == "Acme"
    assert [image.alternateName for image in detail.images] == ["Linen Shirt", "Back view"]
    assert [image.position for image in detail.images] == [1, 2]

    offers = detail.offers
    assert offers.lowPrice == "9.50"
    assert offers.highPrice == "30.00"
    assert offers.priceCurrency == "EUR"
    assert offers.offerCount == 2
    assert offers.offers[0].availability == OUT_OF_STOCK
    assert offers.offers[1].availability == IN_STOCK
    assert offers.offers[1].inventoryLevel.value == 4
    assert offers.offers[1].attributes[0].name == "Size"
    assert offers.offers[1].attributes[0].value == "M"
    assert offers.offers[1].url == "https://store.example.com/products/linen-shirt?variant=12"


def test_detail_without_variants_defaults_currency():
    detail = to_detail(_product(variants=None), shop_domain="store.example.com")

    assert detail.offers.lowPrice is None
    assert detail.offers.highPrice is None
    assert detail.offers.priceCurrency == "USD"
    assert detail.offers.offerCount == 0


def test_page_info_projection():
    info = to_page_info(PageInfo(has_next_page=True, end_cursor="abc"))

    assert info.hasNextPage is True
    assert info.hasPreviousPage is False
    assert info.endCursor == "abc"
