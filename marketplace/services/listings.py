from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from datetime import timedelta
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.errors import Forbidden, NotFound, ValidationFailed, field_error
from marketplace.core.ids import looks_like_id
from marketplace.core.slugs import unique_slug
from marketplace.models.category import Category
from marketplace.models.conversation import Conversation
from marketplace.models.favorite import Favorite
from marketplace.models.listing import Listing
from marketplace.models.message import Message
from marketplace.models.base import utcnow
from marketplace.models.user import User
from marketplace.schemas.listing import ListingCreate, ListingUpdate
from marketplace.services.auth import Actor
from marketplace.services.categories import field_schema_slug, resolve_category
from marketplace.services.category_fields import validate_specifications
from marketplace.services.listing_query import (
    ListingFilter,
    ListingPage,
    build_listing_statements,
    parse_listing_params,
)
from marketplace.services.listing_state import ACTIVE, enforce_status_access
from marketplace.services.retry import execute_with_retry

log = logging.getLogger(__name__)

MAX_SHOWCASE_LIMIT = 50
RELATED_LIMIT = 4
SELLER_LISTINGS_LIMIT = 3


async def _reload(db: AsyncSession, listing_id: str) -> Listing:
    stmt = select(Listing).where(Listing.id == listing_id).execution_options(populate_existing=True)
    return (await db.execute(stmt)).scalar_one()


async def get_listing_or_404(db: AsyncSession, listing_id: str) -> Listing:
    listing = (await db.execute(select(Listing).where(Listing.id == listing_id))).scalar_one_or_none()
    if not listing:
        raise NotFound("Listing not found")
    return listing


async def find_listing(db: AsyncSession, id_or_slug: str) -> Listing | None:
    if looks_like_id(id_or_slug, "lst"):
        stmt = select(Listing).where(Listing.id == id_or_slug)
    else:
        stmt = select(Listing).where(Listing.slug == id_or_slug)
    return (await db.execute(stmt)).scalar_one_or_none()


async def search_listings(db: AsyncSession, flt: ListingFilter, *, actor: Actor | None = None) -> ListingPage:
    enforce_status_access(actor=actor, status=flt.status, owner_id=flt.user_id)

    category_id = subcategory_id = None
    if flt.category:
        category = await resolve_category(db, flt.category)
        if category is None:
            # unknown category: nothing can match
            return ListingPage(items=[], total=0, page=flt.page, limit=flt.limit)
        category_id = category.id
    if flt.subcategory:
        subcategory = await resolve_category(db, flt.subcategory)
        if subcategory is None:
            return ListingPage(items=[], total=0, page=flt.page, limit=flt.limit)
        subcategory_id = subcategory.id

    page_stmt, count_stmt = build_listing_statements(flt, category_id=category_id, subcategory_id=subcategory_id)
    total = (await execute_with_retry(db, count_stmt)).scalar_one()
    items = list((await execute_with_retry(db, page_stmt)).unique().scalars().all())
    return ListingPage(items=items, total=total, page=flt.page, limit=flt.limit)


async def _showcase(db: AsyncSession, *, limit: int, featured_only: bool) -> list[Listing]:
    limit = max(1, min(limit, MAX_SHOWCASE_LIMIT))
    stmt = select(Listing).where(Listing.status == ACTIVE)
    if featured_only:
        stmt = stmt.where(Listing.featured.is_(True))
    stmt = stmt.order_by(Listing.created_at.desc(), Listing.id.desc()).limit(limit)
    return list((await execute_with_retry(db, stmt)).unique().scalars().all())


async def featured_listings(db: AsyncSession, limit: int = 8) -> list[Listing]:
    return await _showcase(db, limit=limit, featured_only=True)


async def recent_listings(db: AsyncSession, limit: int = 8) -> list[Listing]:
    return await _showcase(db, limit=limit, featured_only=False)


async def get_listing_detail(db: AsyncSession, id_or_slug: str) -> tuple[Listing, list[Listing], list[Listing]]:
    """
    Single-item fetch. Increments the view counter exactly once, after the
    listing is known to exist, with an atomic `views = views + 1`.
    """
    listing = await find_listing(db, id_or_slug)
    if not listing:
        raise NotFound("Listing not found")

    await db.execute(update(Listing).where(Listing.id == listing.id).values(views=Listing.views + 1))
    await db.commit()
    listing = await _reload(db, listing.id)

    related_stmt = (
        select(Listing)
        .where(Listing.category_id == listing.category_id, Listing.id != listing.id, Listing.status == ACTIVE)
        .order_by(Listing.created_at.desc(), Listing.id.desc())
        .limit(RELATED_LIMIT)
    )
    seller_stmt = (
        select(Listing)
        .where(Listing.user_id == listing.user_id, Listing.id != listing.id, Listing.status == ACTIVE)
        .order_by(Listing.created_at.desc(), Listing.id.desc())
        .limit(SELLER_LISTINGS_LIMIT)
    )
    related = list((await db.execute(related_stmt)).unique().scalars().all())
    seller_listings = list((await db.execute(seller_stmt)).unique().scalars().all())
    return listing, related, seller_listings


async def _resolve_categories(
    db: AsyncSession, category_ref: str, subcategory_ref: str | None
) -> tuple[Category, Category | None]:
    category = await resolve_category(db, category_ref)
    if not category:
        raise ValidationFailed("Category not found", errors=[field_error("category", "not found")])

    subcategory = None
    if subcategory_ref:
        subcategory = await resolve_category(db, subcategory_ref)
        if not subcategory or subcategory.parent_id != category.id:
            raise ValidationFailed(
                "Invalid subcategory", errors=[field_error("subcategory", "must be a child of the category")]
            )
    return category, subcategory


async def _validate_specs(db: AsyncSession, category: Category, specs: dict[str, Any]) -> None:
    slug = await field_schema_slug(db, category)
    errors = validate_specifications(slug, specs)
    if errors:
        raise ValidationFailed("Invalid specifications", errors=errors)


async def _free_slug(db: AsyncSession, title: str) -> str:
    for _ in range(5):
        slug = unique_slug(title)
        taken = (await db.execute(select(Listing.id).where(Listing.slug == slug))).first()
        if taken is None:
            return slug
    raise ValidationFailed("Could not derive a unique slug", errors=[field_error("title", "try a different title")])


async def create_listing(db: AsyncSession, actor: Actor, payload: ListingCreate) -> Listing:
    category, subcategory = await _resolve_categories(db, payload.category, payload.subcategory)
    await _validate_specs(db, category, payload.specifications)

    listing = Listing(
        title=payload.title,
        slug=await _free_slug(db, payload.title),
        description=payload.description,
        price=payload.price,
        price_type=payload.price_type,
        condition=payload.condition,
        status=ACTIVE,
        featured=False,
        images=list(payload.images),
        specifications=dict(payload.specifications),
        category_id=category.id,
        subcategory_id=subcategory.id if subcategory else None,
        location=payload.location,
        user_id=actor.user_id,
        views=0,
        expires_at=utcnow() + timedelta(days=settings.listing_expiry_days),
    )
    db.add(listing)
    await db.commit()
    return await _reload(db, listing.id)


async def _get_managed_listing(db: AsyncSession, actor: Actor, listing_id: str) -> Listing:
    listing = await get_listing_or_404(db, listing_id)
    if not actor.can_manage(listing.user_id):
        raise Forbidden("Not authorized to modify this listing")
    return listing


async def update_listing(db: AsyncSession, actor: Actor, listing_id: str, payload: ListingUpdate) -> Listing:
    listing = await _get_managed_listing(db, actor, listing_id)
    fields = payload.model_fields_set

    category_touched = "category" in fields or "subcategory" in fields
    if category_touched:
        current = payload.category or listing.category_id
        sub_ref = payload.subcategory if "subcategory" in fields else listing.subcategory_id
        if "subcategory" not in fields and payload.category:
            target = await resolve_category(db, payload.category)
            if target is not None and target.id != listing.category_id:
                # moving to another category drops the old subcategory
                sub_ref = None
        category, subcategory = await _resolve_categories(db, current, sub_ref)
        listing.category_id = category.id
        listing.subcategory_id = subcategory.id if subcategory else None
    else:
        category = (await db.execute(select(Category).where(Category.id == listing.category_id))).scalar_one()

    if payload.specifications is not None:
        listing.specifications = dict(payload.specifications)
    if payload.specifications is not None or category_touched:
        await _validate_specs(db, category, listing.specifications or {})

    if payload.title is not None and payload.title != listing.title:
        listing.title = payload.title
        listing.slug = await _free_slug(db, payload.title)

    for name in ("description", "price", "price_type", "condition", "status", "location"):
        value = getattr(payload, name)
        if value is not None:
            setattr(listing, name, value)
    if payload.images is not None:
        listing.images = list(payload.images)

    await db.commit()
    return await _reload(db, listing.id)


async def purge_listing_dependents(db: AsyncSession, listing_ids: list[str]) -> None:
    """Delete favorites, messages and conversations that point at these listings."""
    if not listing_ids:
        return
    await db.execute(delete(Favorite).where(Favorite.listing_id.in_(listing_ids)))
    await db.execute(delete(Message).where(Message.listing_id.in_(listing_ids)))
    await db.execute(delete(Conversation).where(Conversation.listing_id.in_(listing_ids)))


async def delete_listing(db: AsyncSession, actor: Actor, listing_id: str) -> None:
    listing = await _get_managed_listing(db, actor, listing_id)

    await purge_listing_dependents(db, [listing.id])
    await db.execute(delete(Listing).where(Listing.id == listing.id))
    await db.commit()
    log.info("listing %s deleted by %s", listing_id, actor.user_id)


async def mark_sold(db: AsyncSession, actor: Actor, listing_id: str) -> Listing:
    listing = await get_listing_or_404(db, listing_id)
    if listing.user_id != actor.user_id:
        raise Forbidden("Only the owner can mark a listing as sold")
    listing.status = "sold"
    await db.commit()
    return await _reload(db, listing.id)


async def toggle_featured(db: AsyncSession, listing_id: str) -> bool:
    listing = await get_listing_or_404(db, listing_id)
    listing.featured = not listing.featured
    await db.commit()
    return listing.featured


async def user_listings(
    db: AsyncSession,
    *,
    viewer: Actor | None,
    user_id: str,
    params: Mapping[str, Any],
) -> ListingPage:
    exists = (await db.execute(select(User.id).where(User.id == user_id))).first()
    if exists is None:
        raise NotFound("User not found")

    flt = parse_listing_params(params, default_limit=10)
    is_owner = viewer is not None and viewer.can_manage(user_id)
    # strangers always see the active listings only
    flt = dataclasses.replace(flt, user_id=user_id, status=flt.status if is_owner else ACTIVE)
    return await search_listings(db, flt, actor=viewer)


async def listing_ids_for_user(db: AsyncSession, user_id: str) -> list[str]:
    rows = (await db.execute(select(Listing.id).where(Listing.user_id == user_id))).scalars().all()
    return list(rows)


async def delete_listings_for_user(db: AsyncSession, user_id: str) -> int:
    ids = await listing_ids_for_user(db, user_id)
    await purge_listing_dependents(db, ids)
    if ids:
        await db.execute(delete(Listing).where(Listing.id.in_(ids)))
    return len(ids)

