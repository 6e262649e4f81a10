from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.errors import Conflict, NotFound, ValidationFailed, field_error
from marketplace.core.ids import looks_like_id
from marketplace.core.slugs import slugify
from marketplace.models.category import DEFAULT_COLOR, DEFAULT_ICON, Category
from marketplace.models.listing import Listing
from marketplace.schemas.category import CategoryCreate, CategoryUpdate
from marketplace.services.retry import execute_with_retry

log = logging.getLogger(__name__)


@dataclass
class CategoryNode:
    category: Category
    subcategories: list[Category] = field(default_factory=list)
    parent: Category | None = None


# (name, slug, description, icon, color, parent slug)
DEFAULT_CATEGORIES: tuple[tuple[str, str, str, str, str, str | None], ...] = (
    ("Electronics", "electronics", "Laptops, phones, tablets, and other electronic devices", "laptop", "from-blue-500 to-blue-600", None),
    ("Vehicles", "vehicles", "Cars, motorcycles, bikes, and other vehicles", "car", "from-red-500 to-red-600", None),
    ("Furniture", "furniture", "Sofas, beds, chairs, tables, and other furniture", "couch", "from-green-500 to-green-600", None),
    ("Properties", "properties", "Houses, apartments, land, and other properties", "home", "from-yellow-500 to-yellow-600", None),
    ("Fashion", "fashion", "Clothing, shoes, accessories, and more", "tshirt", "from-purple-500 to-purple-600", None),
    ("Sports & Outdoors", "sports-outdoors", "Sports equipment, outdoor gear, and related items", "basketball-ball", "from-indigo-500 to-indigo-600", None),
    ("Collectibles", "collectibles", "Antiques, art, coins, stamps, and other collectibles", "gem", "from-pink-500 to-pink-600", None),
    ("Jobs", "jobs", "Job offerings and services", "briefcase", "from-teal-500 to-teal-600", None),
    ("Services", "services", "Repairs, lessons, events, and other services", "tools", "from-orange-500 to-orange-600", None),
    ("Laptops", "laptops", "Laptops and notebooks", "laptop", "from-blue-400 to-blue-500", "electronics"),
    ("Smartphones", "smartphones", "Mobile phones and accessories", "mobile", "from-blue-400 to-blue-500", "electronics"),
    ("Cars", "cars", "Used and new cars for sale", "car", "from-red-400 to-red-500", "vehicles"),
    ("Sofas", "sofas", "Couches, sofas, and sectionals", "couch", "from-green-400 to-green-500", "furniture"),
    ("Full-time", "full-time", "Full-time job opportunities", "briefcase", "from-teal-400 to-teal-500", "jobs"),
)


async def resolve_category(db: AsyncSession, id_or_slug: str) -> Category | None:
    """Look up by id when the value is id-shaped, otherwise by slug."""
    if looks_like_id(id_or_slug, "cat"):
        stmt = select(Category).where(Category.id == id_or_slug)
    else:
        stmt = select(Category).where(Category.slug == id_or_slug.lower())
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_category_or_404(db: AsyncSession, id_or_slug: str) -> Category:
    category = await resolve_category(db, id_or_slug)
    if not category:
        raise NotFound("Category not found")
    return category


async def children_by_parent(db: AsyncSession, parent_ids: list[str]) -> dict[str, list[Category]]:
    # One level only: reverse lookup on parent_id, no recursive descent.
    if not parent_ids:
        return {}
    stmt = select(Category).where(Category.parent_id.in_(parent_ids)).order_by(Category.name.asc())
    rows = (await execute_with_retry(db, stmt)).scalars().all()
    grouped: dict[str, list[Category]] = defaultdict(list)
    for row in rows:
        grouped[row.parent_id].append(row)
    return grouped


async def list_categories(db: AsyncSession, *, parent_only: bool = False) -> list[CategoryNode]:
    stmt = select(Category).order_by(Category.name.asc())
    if parent_only:
        stmt = stmt.where(Category.parent_id.is_(None))
    categories = (await execute_with_retry(db, stmt)).scalars().all()

    children = await children_by_parent(db, [c.id for c in categories])
    return [CategoryNode(category=c, subcategories=children.get(c.id, [])) for c in categories]


async def get_category_node(db: AsyncSession, id_or_slug: str) -> CategoryNode:
    category = await get_category_or_404(db, id_or_slug)
    children = await children_by_parent(db, [category.id])

    parent = None
    if category.parent_id:
        parent = (await db.execute(select(Category).where(Category.id == category.parent_id))).scalar_one_or_none()
    return CategoryNode(category=category, subcategories=children.get(category.id, []), parent=parent)


async def field_schema_slug(db: AsyncSession, category: Category) -> str:
    """Slug whose field schema applies: the category's own, or its parent's for a subcategory."""
    if not category.parent_id:
        return category.slug
    parent = (await db.execute(select(Category).where(Category.id == category.parent_id))).scalar_one_or_none()
    return parent.slug if parent else category.slug


async def _assert_name_available(db: AsyncSession, name: str, *, exclude_id: str | None = None) -> str:
    slug = slugify(name)
    if not slug:
        raise ValidationFailed(errors=[field_error("name", "must contain letters or digits")])

    stmt = select(Category.id).where(or_(func.lower(Category.name) == name.lower(), Category.slug == slug))
    if exclude_id:
        stmt = stmt.where(Category.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise Conflict("Category with this name already exists")
    return slug


async def _assert_parent_exists(db: AsyncSession, parent_id: str) -> None:
    exists = (await db.execute(select(Category.id).where(Category.id == parent_id))).first()
    if exists is None:
        raise ValidationFailed("Parent category not found", errors=[field_error("parent", "not found")])


async def _commit_or_conflict(db: AsyncSession, what: str) -> None:
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        log.exception("%s failed: integrity error", what)
        raise Conflict("Category with this name already exists")


async def create_category(db: AsyncSession, payload: CategoryCreate) -> Category:
    slug = await _assert_name_available(db, payload.name)
    if payload.parent:
        await _assert_parent_exists(db, payload.parent)

    category = Category(
        name=payload.name,
        slug=slug,
        description=payload.description,
        icon=payload.icon or DEFAULT_ICON,
        color=payload.color or DEFAULT_COLOR,
        image=payload.image or "",
        parent_id=payload.parent or None,
    )
    db.add(category)
    await _commit_or_conflict(db, "create category")
    return category


async def update_category(db: AsyncSession, category_id: str, payload: CategoryUpdate) -> Category:
    category = (await db.execute(select(Category).where(Category.id == category_id))).scalar_one_or_none()
    if not category:
        raise NotFound("Category not found")

    fields = payload.model_fields_set

    if "parent" in fields and payload.parent:
        # Only the direct self-reference is rejected; deeper cycles are not walked.
        if payload.parent == category.id:
            raise ValidationFailed("Category cannot be its own parent", errors=[field_error("parent", "cannot be itself")])
        await _assert_parent_exists(db, payload.parent)

    if payload.name is not None and payload.name != category.name:
        category.slug = await _assert_name_available(db, payload.name, exclude_id=category.id)
        category.name = payload.name

    if "description" in fields:
        category.description = payload.description
    if payload.icon is not None:
        category.icon = payload.icon
    if payload.color is not None:
        category.color = payload.color
    if payload.image is not None:
        category.image = payload.image
    if "parent" in fields:
        category.parent_id = payload.parent or None

    await _commit_or_conflict(db, "update category")
    return category


async def delete_category(db: AsyncSession, category_id: str) -> None:
    """
    Deletion is blocked while anything depends on the category: subcategories
    or listings filed under it (as category or subcategory).
    """
    category = (await db.execute(select(Category).where(Category.id == category_id))).scalar_one_or_none()
    if not category:
        raise NotFound("Category not found")

    child_count = (
        await db.execute(select(func.count()).select_from(Category).where(Category.parent_id == category.id))
    ).scalar_one()
    if child_count:
        raise Conflict(f"Category has {child_count} subcategories; move or delete them first")

    listing_count = (
        await db.execute(
            select(func.count())
            .select_from(Listing)
            .where(or_(Listing.category_id == category.id, Listing.subcategory_id == category.id))
        )
    ).scalar_one()
    if listing_count:
        raise Conflict(f"Category has {listing_count} listings; move or delete them first")

    await db.delete(category)
    await db.commit()


async def initialize_categories(db: AsyncSession) -> int:
    """Insert the default category tree. Existing slugs are left untouched."""
    existing = {
        row.slug: row.id
        for row in (await db.execute(select(Category.slug, Category.id))).all()
    }
    created = 0
    for name, slug, description, icon, color, parent_slug in DEFAULT_CATEGORIES:
        if slug in existing:
            continue
        parent_id = existing.get(parent_slug) if parent_slug else None
        if parent_slug and parent_id is None:
            log.warning("skipping %s: parent %s missing", slug, parent_slug)
            continue
        category = Category(
            name=name, slug=slug, description=description, icon=icon, color=color, image="", parent_id=parent_id
        )
        db.add(category)
        await db.flush()
        existing[slug] = category.id
        created += 1

    await db.commit()
    log.info("category seed: %s created", created)
    return created
