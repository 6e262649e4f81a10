from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from marketplace.schemas.category import CategorySummary
from marketplace.schemas.common import Pagination
from marketplace.schemas.user import OwnerSummary

MAX_IMAGES = 8
MAX_SPECIFICATIONS = 30

Condition = Literal["new", "like-new", "excellent", "good", "fair", "poor"]
Status = Literal["active", "sold", "expired", "pending", "draft"]
PriceType = Literal["fixed", "negotiable", "free", "contact"]

Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=5, max_length=100)]
Description = Annotated[str, StringConstraints(strip_whitespace=True, min_length=20, max_length=2000)]
Location = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
ImageUrl = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=500)]
SpecValue = str | int | float | bool


def _check_specifications(v: dict[str, SpecValue] | None) -> dict[str, SpecValue] | None:
    if v is None:
        return None
    if len(v) > MAX_SPECIFICATIONS:
        raise ValueError(f"at most {MAX_SPECIFICATIONS} specifications allowed")
    for key in v:
        if not key.strip() or len(key) > 50:
            raise ValueError("specification names must be 1-50 characters")
    return v


class ListingCreate(BaseModel):
    title: Title
    description: Description
    price: float = Field(ge=0)
    price_type: PriceType = "fixed"
    condition: Condition = "good"
    images: list[ImageUrl] = Field(min_length=1, max_length=MAX_IMAGES)
    category: str = Field(min_length=1, description="Category id or slug")
    subcategory: str | None = None
    location: Location
    specifications: dict[str, SpecValue] = Field(default_factory=dict)

    @field_validator("specifications")
    @classmethod
    def validate_specifications(cls, v: dict[str, SpecValue] | None) -> dict[str, SpecValue] | None:
        return _check_specifications(v)


class ListingUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Title | None = None
    description: Description | None = None
    price: float | None = Field(default=None, ge=0)
    price_type: PriceType | None = None
    condition: Condition | None = None
    status: Status | None = None
    images: list[ImageUrl] | None = Field(default=None, min_length=1, max_length=MAX_IMAGES)
    category: str | None = None
    subcategory: str | None = None
    location: Location | None = None
    specifications: dict[str, SpecValue] | None = None

    @field_validator("specifications")
    @classmethod
    def validate_specifications(cls, v: dict[str, SpecValue] | None) -> dict[str, SpecValue] | None:
        return _check_specifications(v)


class ListingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    slug: str
    description: str
    price: float
    price_type: str
    condition: str
    status: str
    featured: bool
    images: list[str]
    specifications: dict[str, SpecValue]
    location: str
    views: int
    category: CategorySummary | None = None
    subcategory: CategorySummary | None = None
    owner: OwnerSummary | None = None
    expires_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ListingSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    slug: str
    price: float
    images: list[str]
    condition: str
    location: str
    status: str
    owner: OwnerSummary | None = None


class ListingEnvelope(BaseModel):
    success: bool = True
    listing: ListingOut


class ListingDetailEnvelope(ListingEnvelope):
    related: list[ListingSummary] = Field(default_factory=list)
    seller_listings: list[ListingSummary] = Field(default_factory=list)


class ListingPageEnvelope(BaseModel):
    success: bool = True
    count: int
    pagination: Pagination
    listings: list[ListingOut]


class ListingListEnvelope(BaseModel):
    success: bool = True
    count: int
    listings: list[ListingOut]


class FeaturedEnvelope(BaseModel):
    success: bool = True
    featured: bool
