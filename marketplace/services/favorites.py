from __future__ import annotations

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.errors import Conflict, NotFound
from marketplace.models.favorite import Favorite
from marketplace.models.listing import Listing
from marketplace.services.listing_query import ListingPage
from marketplace.services.retry import execute_with_retry

log = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 50


async def add_favorite(db: AsyncSession, user_id: str, listing_id: str) -> Favorite:
    """
    Save a listing for a user. Uniqueness is the (user_id, listing_id)
    constraint's job; a duplicate insert surfaces as 409, never as a no-op.
    """
    exists = (await db.execute(select(Listing.id).where(Listing.id == listing_id))).first()
    if exists is None:
        raise NotFound("Listing not found")

    favorite = Favorite(user_id=user_id, listing_id=listing_id)
    db.add(favorite)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        log.info("duplicate favorite user=%s listing=%s", user_id, listing_id)
        raise Conflict("Listing already in favorites")
    return favorite


async def remove_favorite(db: AsyncSession, user_id: str, listing_id: str) -> None:
    result = await db.execute(
        delete(Favorite).where(Favorite.user_id == user_id, Favorite.listing_id == listing_id)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise NotFound("Favorite not found")
    await db.commit()


async def is_favorite(db: AsyncSession, user_id: str, listing_id: str) -> bool:
    row = (
        await db.execute(select(Favorite.id).where(Favorite.user_id == user_id, Favorite.listing_id == listing_id))
    ).first()
    return row is not None


async def list_for_user(db: AsyncSession, user_id: str, *, page: int = 1, limit: int = DEFAULT_LIMIT) -> ListingPage:
    """
    Newest-first favorites joined with their listing.

    The inner join drops favorites whose listing no longer exists, and the
    count uses the same join, so `total` counts only resolvable entries.
    """
    page = max(1, page)
    limit = max(1, min(limit, MAX_LIMIT))

    where = Favorite.user_id == user_id
    count_stmt = select(func.count()).select_from(Favorite).join(Listing, Listing.id == Favorite.listing_id).where(where)
    page_stmt = (
        select(Favorite, Listing)
        .join(Listing, Listing.id == Favorite.listing_id)
        .where(where)
        .order_by(Favorite.created_at.desc(), Favorite.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    total = (await execute_with_retry(db, count_stmt)).scalar_one()
    rows = (await execute_with_retry(db, page_stmt)).unique().all()
    return ListingPage(items=[(fav, listing) for fav, listing in rows], total=total, page=page, limit=limit)
