from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.db import get_db
from marketplace.core.errors import Unauthenticated
from marketplace.schemas.common import MessageResponse, Pagination
from marketplace.schemas.listing import (
    FeaturedEnvelope,
    ListingCreate,
    ListingDetailEnvelope,
    ListingEnvelope,
    ListingListEnvelope,
    ListingOut,
    ListingPageEnvelope,
    ListingSummary,
    ListingUpdate,
)
from marketplace.services.auth import Actor, get_actor, get_optional_actor, require_admin
from marketplace.services.listing_query import ListingPage, parse_listing_params
from marketplace.services.listings import (
    create_listing,
    delete_listing,
    featured_listings,
    get_listing_detail,
    mark_sold,
    recent_listings,
    search_listings,
    toggle_featured,
    update_listing,
    user_listings,
)

router = APIRouter()


def _page_envelope(page: ListingPage) -> ListingPageEnvelope:
    return ListingPageEnvelope(
        count=len(page.items),
        pagination=Pagination(**page.pagination()),
        listings=[ListingOut.model_validate(item) for item in page.items],
    )


def _list_envelope(items) -> ListingListEnvelope:
    return ListingListEnvelope(count=len(items), listings=[ListingOut.model_validate(item) for item in items])


@router.get("/listings", response_model=ListingPageEnvelope)
async def get_listings(
    request: Request,
    actor: Actor | None = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
) -> ListingPageEnvelope:
    flt = parse_listing_params(request.query_params)
    return _page_envelope(await search_listings(db, flt, actor=actor))


# Fixed paths are registered before /listings/{id_or_slug} so they are not
# swallowed by the slug route.
@router.get("/listings/featured", response_model=ListingListEnvelope)
async def get_featured(limit: int = Query(8, ge=1), db: AsyncSession = Depends(get_db)) -> ListingListEnvelope:
    return _list_envelope(await featured_listings(db, limit))


@router.get("/listings/recent", response_model=ListingListEnvelope)
async def get_recent(limit: int = Query(8, ge=1), db: AsyncSession = Depends(get_db)) -> ListingListEnvelope:
    return _list_envelope(await recent_listings(db, limit))


@router.get("/listings/user/{user_id}", response_model=ListingPageEnvelope)
async def get_user_listings(
    user_id: str,
    request: Request,
    actor: Actor | None = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
) -> ListingPageEnvelope:
    if user_id == "me":
        if actor is None:
            raise Unauthenticated()
        user_id = actor.user_id
    page = await user_listings(db, viewer=actor, user_id=user_id, params=request.query_params)
    return _page_envelope(page)


@router.get("/listings/{id_or_slug}", response_model=ListingDetailEnvelope)
async def get_listing(id_or_slug: str, db: AsyncSession = Depends(get_db)) -> ListingDetailEnvelope:
    listing, related, seller_listings = await get_listing_detail(db, id_or_slug)
    return ListingDetailEnvelope(
        listing=ListingOut.model_validate(listing),
        related=[ListingSummary.model_validate(item) for item in related],
        seller_listings=[ListingSummary.model_validate(item) for item in seller_listings],
    )


@router.post("/listings", response_model=ListingEnvelope, status_code=201)
async def post_listing(
    payload: ListingCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> ListingEnvelope:
    listing = await create_listing(db, actor, payload)
    return ListingEnvelope(listing=ListingOut.model_validate(listing))


@router.put("/listings/{listing_id}", response_model=ListingEnvelope)
async def put_listing(
    listing_id: str,
    payload: ListingUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> ListingEnvelope:
    listing = await update_listing(db, actor, listing_id, payload)
    return ListingEnvelope(listing=ListingOut.model_validate(listing))


@router.delete("/listings/{listing_id}", response_model=MessageResponse)
async def remove_listing(
    listing_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await delete_listing(db, actor, listing_id)
    return MessageResponse(message="Listing removed")


@router.put("/listings/{listing_id}/sold", response_model=ListingEnvelope)
async def put_sold(
    listing_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> ListingEnvelope:
    listing = await mark_sold(db, actor, listing_id)
    return ListingEnvelope(listing=ListingOut.model_validate(listing))


@router.put("/listings/{listing_id}/feature", response_model=FeaturedEnvelope)
async def put_feature(
    listing_id: str,
    _: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> FeaturedEnvelope:
    return FeaturedEnvelope(featured=await toggle_featured(db, listing_id))
