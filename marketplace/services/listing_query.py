"""
Listing search: untrusted query parameters -> validated filter -> SQL.

The parsing half is pure (no I/O) so it can be unit tested without a database:

    flt = parse_listing_params(request.query_params, default_limit=12, max_limit=50)
    page_stmt, count_stmt = build_listing_statements(flt, category_id=..., subcategory_id=...)

Both statements share one WHERE clause, so `total` always describes exactly the
rows the pages are cut from.
"""
from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Select, and_, func, or_, select

from marketplace.core.errors import ValidationFailed, field_error
from marketplace.models.listing import CONDITIONS, STATUSES, Listing

DEFAULT_SORT = "newest"

_SORTS = {
    "newest": (Listing.created_at.desc(), Listing.id.desc()),
    "oldest": (Listing.created_at.asc(), Listing.id.asc()),
    "price-asc": (Listing.price.asc(), Listing.created_at.desc(), Listing.id.desc()),
    "price-desc": (Listing.price.desc(), Listing.created_at.desc(), Listing.id.desc()),
    "popular": (Listing.views.desc(), Listing.created_at.desc(), Listing.id.desc()),
}

# Older clients send these spellings.
_SORT_ALIASES = {
    "price-low": "price-asc",
    "price-high": "price-desc",
    "views": "popular",
}

_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


@dataclass(frozen=True)
class ListingFilter:
    search: str | None = None
    category: str | None = None
    subcategory: str | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    condition: str | None = None
    location: str | None = None
    featured: bool = False
    status: str = "active"
    status_explicit: bool = False
    user_id: str | None = None
    sort: str = DEFAULT_SORT
    page: int = 1
    limit: int = 12

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class ListingPage:
    items: list[Any] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 12

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    def pagination(self) -> dict[str, int]:
        return {"total": self.total, "pages": self.pages, "page": self.page, "limit": self.limit}


def _first(params: Mapping[str, Any], *names: str) -> str | None:
    for name in names:
        value = params.get(name)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            return value
    return None


def _parse_price(raw: str | None, name: str, errors: list[dict]) -> Decimal | None:
    if raw is None:
        return None
    try:
        value = Decimal(raw)
    except InvalidOperation:
        errors.append(field_error(name, "must be a number"))
        return None
    if not value.is_finite():
        errors.append(field_error(name, "must be a finite number"))
        return None
    if value < 0:
        errors.append(field_error(name, "must be zero or greater"))
        return None
    return value


def _parse_positive_int(raw: str | None, name: str, default: int, errors: list[dict]) -> int:
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        errors.append(field_error(name, "must be an integer"))
        return default
    if value < 1:
        errors.append(field_error(name, "must be at least 1"))
        return default
    return value


def normalize_sort(raw: str | None) -> str:
    # Unknown keys fall back to the default instead of failing.
    if not raw:
        return DEFAULT_SORT
    key = raw.lower()
    key = _SORT_ALIASES.get(key, key)
    return key if key in _SORTS else DEFAULT_SORT


def parse_listing_params(
    params: Mapping[str, Any],
    *,
    default_limit: int = 12,
    max_limit: int = 50,
) -> ListingFilter:
    """
    Validate a raw query-parameter bag. Every problem is collected and reported
    in one ValidationFailed (400) rather than failing on the first field.
    """
    errors: list[dict] = []

    min_price = _parse_price(_first(params, "minPrice", "min_price"), "minPrice", errors)
    max_price = _parse_price(_first(params, "maxPrice", "max_price"), "maxPrice", errors)
    if min_price is not None and max_price is not None and min_price > max_price:
        errors.append(field_error("minPrice", "must not be greater than maxPrice"))

    condition = _first(params, "condition")
    if condition is not None:
        condition = condition.lower()
        if condition not in CONDITIONS:
            errors.append(field_error("condition", f"must be one of: {', '.join(CONDITIONS)}"))

    status_raw = _first(params, "status")
    status = "active"
    if status_raw is not None:
        status = status_raw.lower()
        if status not in STATUSES:
            errors.append(field_error("status", f"must be one of: {', '.join(STATUSES)}"))

    featured = False
    featured_raw = _first(params, "featured")
    if featured_raw is not None:
        lowered = featured_raw.lower()
        if lowered in _TRUE:
            featured = True
        elif lowered not in _FALSE:
            errors.append(field_error("featured", "must be true or false"))

    page = _parse_positive_int(_first(params, "page"), "page", 1, errors)
    limit = _parse_positive_int(_first(params, "limit"), "limit", default_limit, errors)

    if errors:
        raise ValidationFailed("Invalid listing query", errors=errors)

    return ListingFilter(
        search=_first(params, "search", "q"),
        category=_first(params, "category"),
        subcategory=_first(params, "subcategory"),
        min_price=min_price,
        max_price=max_price,
        condition=condition,
        location=_first(params, "location"),
        featured=featured,
        status=status,
        status_explicit=status_raw is not None,
        user_id=_first(params, "user", "user_id"),
        sort=normalize_sort(_first(params, "sort")),
        page=page,
        limit=min(limit, max_limit),
    )


def escape_like(term: str) -> str:
    # LIKE wildcards in user input are matched literally
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _contains(column, term: str):
    return column.ilike(f"%{escape_like(term)}%", escape="\\")


def build_conditions(
    flt: ListingFilter,
    *,
    category_id: str | None = None,
    subcategory_id: str | None = None,
) -> list:
    conds = [Listing.status == flt.status]

    if category_id is not None:
        conds.append(Listing.category_id == category_id)
    if subcategory_id is not None:
        conds.append(Listing.subcategory_id == subcategory_id)
    if flt.user_id:
        conds.append(Listing.user_id == flt.user_id)
    if flt.featured:
        conds.append(Listing.featured.is_(True))
    if flt.min_price is not None:
        conds.append(Listing.price >= flt.min_price)
    if flt.max_price is not None:
        conds.append(Listing.price <= flt.max_price)
    if flt.condition:
        conds.append(Listing.condition == flt.condition)
    if flt.location:
        conds.append(_contains(Listing.location, flt.location))
    if flt.search:
        conds.append(or_(_contains(Listing.title, flt.search), _contains(Listing.description, flt.search)))
    return conds


def build_listing_statements(
    flt: ListingFilter,
    *,
    category_id: str | None = None,
    subcategory_id: str | None = None,
) -> tuple[Select, Select]:
    """Return (page_stmt, count_stmt) over the same WHERE clause."""
    where = and_(*build_conditions(flt, category_id=category_id, subcategory_id=subcategory_id))

    page_stmt = (
        select(Listing)
        .where(where)
        .order_by(*_SORTS[flt.sort])
        .offset(flt.offset)
        .limit(flt.limit)
    )
    count_stmt = select(func.count()).select_from(Listing).where(where)
    return page_stmt, count_stmt
