from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.db import get_db
from marketplace.models.category import Category
from marketplace.schemas.category import (
    CategoryCreate,
    CategoryEnvelope,
    CategoryFieldsEnvelope,
    CategoryInitEnvelope,
    CategoryListEnvelope,
    CategoryOut,
    CategorySummary,
    CategoryUpdate,
    FieldSpecOut,
)
from marketplace.schemas.common import MessageResponse
from marketplace.services.auth import Actor, require_admin
from marketplace.services.categories import (
    children_by_parent,
    create_category,
    delete_category,
    field_schema_slug,
    get_category_node,
    get_category_or_404,
    initialize_categories,
    list_categories,
    update_category,
)
from marketplace.services.category_fields import fields_for

router = APIRouter()


def _category_out(category: Category, subcategories: list[Category] | None = None) -> CategoryOut:
    return CategoryOut(
        id=category.id,
        name=category.name,
        slug=category.slug,
        description=category.description,
        icon=category.icon,
        color=category.color,
        image=category.image,
        parent_id=category.parent_id,
        subcategories=[CategorySummary.model_validate(s) for s in subcategories or []],
        created_at=category.created_at,
    )


@router.get("/categories", response_model=CategoryListEnvelope)
async def get_categories(
    parent_only: bool = Query(False, alias="parentOnly"),
    db: AsyncSession = Depends(get_db),
) -> CategoryListEnvelope:
    nodes = await list_categories(db, parent_only=parent_only)
    return CategoryListEnvelope(
        count=len(nodes),
        categories=[_category_out(n.category, n.subcategories) for n in nodes],
    )


@router.get("/categories/{id_or_slug}", response_model=CategoryEnvelope)
async def get_category(id_or_slug: str, db: AsyncSession = Depends(get_db)) -> CategoryEnvelope:
    node = await get_category_node(db, id_or_slug)
    return CategoryEnvelope(
        category=_category_out(node.category, node.subcategories),
        parent=CategorySummary.model_validate(node.parent) if node.parent else None,
    )


@router.get("/categories/{id_or_slug}/fields", response_model=CategoryFieldsEnvelope)
async def get_category_fields(id_or_slug: str, db: AsyncSession = Depends(get_db)) -> CategoryFieldsEnvelope:
    category = await get_category_or_404(db, id_or_slug)
    slug = await field_schema_slug(db, category)
    return CategoryFieldsEnvelope(
        category=category.slug,
        fields=[FieldSpecOut(**fs.as_dict()) for fs in fields_for(slug)],
    )


@router.post("/categories/init", response_model=CategoryInitEnvelope)
async def init_categories(_: Actor = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> CategoryInitEnvelope:
    return CategoryInitEnvelope(created=await initialize_categories(db))


@router.post("/categories", response_model=CategoryEnvelope, status_code=201)
async def post_category(
    payload: CategoryCreate,
    _: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> CategoryEnvelope:
    category = await create_category(db, payload)
    return CategoryEnvelope(category=_category_out(category))


@router.put("/categories/{category_id}", response_model=CategoryEnvelope)
async def put_category(
    category_id: str,
    payload: CategoryUpdate,
    _: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> CategoryEnvelope:
    category = await update_category(db, category_id, payload)
    children = await children_by_parent(db, [category.id])
    return CategoryEnvelope(category=_category_out(category, children.get(category.id, [])))


@router.delete("/categories/{category_id}", response_model=MessageResponse)
async def remove_category(
    category_id: str,
    _: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await delete_category(db, category_id)
    return MessageResponse(message="Category removed")
