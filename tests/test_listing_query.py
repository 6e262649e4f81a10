from decimal import Decimal

import pytest

from marketplace.core.errors import ValidationFailed
from marketplace.services.listing_query import (
    ListingPage,
    build_listing_statements,
    escape_like,
    normalize_sort,
    parse_listing_params,
)


def test_defaults():
    flt = parse_listing_params({})
    assert flt.status == "active"
    assert flt.status_explicit is False
    assert flt.sort == "newest"
    assert (flt.page, flt.limit, flt.offset) == (1, 12, 0)
    assert flt.featured is False


def test_aliases_and_trimming():
    flt = parse_listing_params(
        {"q": "  bike ", "min_price": "10", "maxPrice": "20.5", "user": "usr_1", "featured": "yes", "page": "3", "limit": "5"}
    )
    assert flt.search == "bike"
    assert flt.min_price == Decimal("10")
    assert flt.max_price == Decimal("20.5")
    assert flt.user_id == "usr_1"
    assert flt.featured is True
    assert flt.offset == 10


def test_blank_values_are_ignored():
    flt = parse_listing_params({"search": "   ", "category": "", "minPrice": ""})
    assert flt.search is None
    assert flt.category is None
    assert flt.min_price is None


def test_limit_is_clamped():
    assert parse_listing_params({"limit": "500"}).limit == 50
    assert parse_listing_params({"limit": "500"}, max_limit=20).limit == 20


def test_all_errors_are_reported_together():
    with pytest.raises(ValidationFailed) as exc:
        parse_listing_params({"minPrice": "abc", "maxPrice": "-1", "condition": "mint", "page": "0", "featured": "maybe"})
    fields = {e["field"] for e in exc.value.errors}
    assert fields == {"minPrice", "maxPrice", "condition", "page", "featured"}
    assert exc.value.status_code == 400


def test_inverted_price_range_is_rejected():
    with pytest.raises(ValidationFailed) as exc:
        parse_listing_params({"minPrice": "100", "maxPrice": "10"})
    assert exc.value.errors[0]["field"] == "minPrice"


def test_non_finite_price_is_rejected():
    with pytest.raises(ValidationFailed):
        parse_listing_params({"minPrice": "NaN"})


def test_unknown_status_is_rejected_and_known_status_is_explicit():
    with pytest.raises(ValidationFailed):
        parse_listing_params({"status": "deleted"})
    flt = parse_listing_params({"status": "SOLD"})
    assert flt.status == "sold"
    assert flt.status_explicit is True


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, "newest"),
        ("price-asc", "price-asc"),
        ("price-low", "price-asc"),
        ("price-high", "price-desc"),
        ("views", "popular"),
        ("Oldest", "oldest"),
        ("random", "newest"),
    ],
)
def test_normalize_sort(raw, expected):
    assert normalize_sort(raw) == expected


def test_escape_like_treats_wildcards_literally():
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"


def test_page_and_count_share_the_where_clause():
    flt = parse_listing_params({"search": "bike", "minPrice": "5", "sort": "price-desc", "page": "2", "limit": "10"})
    page_stmt, count_stmt = build_listing_statements(flt, category_id="cat_x")

    page_where = str(page_stmt.whereclause.compile(compile_kwargs={"literal_binds": True}))
    count_where = str(count_stmt.whereclause.compile(compile_kwargs={"literal_binds": True}))
    assert page_where == count_where
    assert "category_id" in page_where

    sql = str(page_stmt)
    assert "ORDER BY listings.price DESC" in sql
    # id tiebreaker keeps pages disjoint
    assert "listings.id DESC" in sql


def test_listing_page_pages():
    assert ListingPage(total=0, limit=12).pages == 0
    assert ListingPage(total=12, limit=12).pages == 1
    assert ListingPage(total=13, limit=12).pages == 2
    assert ListingPage(items=[1], total=13, page=2, limit=12).pagination() == {
        "total": 13,
        "pages": 2,
        "page": 2,
        "limit": 12,
    }
