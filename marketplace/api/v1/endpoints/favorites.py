from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.db import get_db
from marketplace.schemas.common import MessageResponse, Pagination
from marketplace.schemas.favorite import (
    FavoriteCheckEnvelope,
    FavoriteCreate,
    FavoriteEnvelope,
    FavoriteOut,
    FavoritePageEnvelope,
    FavoriteWithListing,
)
from marketplace.schemas.listing import ListingSummary
from marketplace.services.auth import Actor, get_actor
from marketplace.services.favorites import (
    DEFAULT_LIMIT,
    add_favorite,
    is_favorite,
    list_for_user,
    remove_favorite,
)

router = APIRouter()


@router.get("/favorites", response_model=FavoritePageEnvelope)
async def get_favorites(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> FavoritePageEnvelope:
    result = await list_for_user(db, actor.user_id, page=page, limit=limit)
    favorites = [
        FavoriteWithListing(id=fav.id, created_at=fav.created_at, listing=ListingSummary.model_validate(listing))
        for fav, listing in result.items
    ]
    return FavoritePageEnvelope(
        count=len(favorites),
        pagination=Pagination(**result.pagination()),
        favorites=favorites,
    )


@router.post("/favorites", response_model=FavoriteEnvelope, status_code=201)
async def post_favorite(
    payload: FavoriteCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> FavoriteEnvelope:
    favorite = await add_favorite(db, actor.user_id, payload.listing_id)
    return FavoriteEnvelope(favorite=FavoriteOut.model_validate(favorite))


@router.delete("/favorites/{listing_id}", response_model=MessageResponse)
async def delete_favorite(
    listing_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await remove_favorite(db, actor.user_id, listing_id)
    return MessageResponse(message="Removed from favorites")


@router.get("/favorites/{listing_id}/check", response_model=FavoriteCheckEnvelope)
async def check_favorite(
    listing_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> FavoriteCheckEnvelope:
    return FavoriteCheckEnvelope(is_favorite=await is_favorite(db, actor.user_id, listing_id))
