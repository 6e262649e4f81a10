from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from marketplace.schemas.common import Pagination
from marketplace.schemas.listing import ListingSummary


class FavoriteCreate(BaseModel):
    listing_id: str = Field(min_length=1, validation_alias=AliasChoices("listing_id", "listingId"))


class FavoriteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    listing_id: str
    created_at: datetime


class FavoriteWithListing(BaseModel):
    id: str
    created_at: datetime
    listing: ListingSummary


class FavoriteEnvelope(BaseModel):
    success: bool = True
    favorite: FavoriteOut


class FavoritePageEnvelope(BaseModel):
    success: bool = True
    count: int
    pagination: Pagination
    favorites: list[FavoriteWithListing]


class FavoriteCheckEnvelope(BaseModel):
    success: bool = True
    is_favorite: bool
