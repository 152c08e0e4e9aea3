from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class PageInfoResponse(BaseModel):
    hasNextPage: bool
    hasPreviousPage: bool
    startCursor: str | None = None
    endCursor: str | None = None


class ProductSummary(BaseModel):
    productId: str
    title: str
    mainImage: str | None = None
    basePrice: str | None = None
    keyTags: list[str] = Field(default_factory=list)


class SearchProductsResponse(BaseModel):
    shop: str
    products: list[ProductSummary]
    pageInfo: PageInfoResponse


class Brand(BaseModel):
    name: str | None = None


class ImageObject(BaseModel):
    url: str
    alternateName: str | None = None
    position: int


class InventoryLevel(BaseModel):
    value: int | None = None


class OfferAttribute(BaseModel):
    name: str
    value: str


class Offer(BaseModel):
    id: str
    sku: str | None = None
    name: str | None = None
    price: str | None = None
    priceCurrency: str
    availability: str
    inventoryLevel: InventoryLevel
    attributes: list[OfferAttribute] = Field(default_factory=list)
    url: str | None = None


class AggregateOffer(BaseModel):
    lowPrice: str | None = None
    highPrice: str | None = None
    priceCurrency: str
    offerCount: int
    offers: list[Offer] = Field(default_factory=list)


class ProductDetail(BaseModel):
    id: str
    name: str
    description: str | None = None
    url: str | None = None
    handle: str | None = None
    brand: Brand
    productType: str | None = None
    tags: list[str] = Field(default_factory=list)
    status: str | None = None
    createdAt: str | None = None
    updatedAt: str | None = None
    publishedAt: str | None = None
    images: list[ImageObject] = Field(default_factory=list)
    offers: AggregateOffer


class ShopifyInitRequest(BaseModel):
    shop: str = Field(min_length=1)
    accessToken: str = Field(min_length=1)
    scopes: str = Field(min_length=1)

    @field_validator("shop", "accessToken", "scopes")
    @classmethod
    def strip_value(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("must not be blank")
        return cleaned


class ShopifyInitResponse(BaseModel):
    message: str
    shop: str
    scopes: list[str]


class CredentialResponse(BaseModel):
    shop: str
    active: bool
    hasToken: bool
    tokenPreview: str | None = None
    scopes: list[str]
    createdAt: datetime
    updatedAt: datetime
