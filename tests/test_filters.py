"""Tests for filters.py"""

import pytest

from amzpulse.filters import filter_products, is_asin_query
from amzpulse.models import FilterState, ViewMode
from amzpulse.normalize import normalize_product


@pytest.fixture
def catalog():
    return [
        normalize_product({
            "asin": "B0AAAAAAA1", "title": "Wireless Headphones", "brand": "Sony",
            "category": "Electronics", "subCategory": "Headphones",
            "price": 100, "bsr": 500, "referralFee": 15, "fbaFee": 5,
        }),
        normalize_product({
            "asin": "B0AAAAAAA2", "title": "Office Chair", "brand": "Acme",
            "category": "Home & Kitchen", "subCategory": "Furniture",
            "price": 50, "bsr": 0, "seasonalityTags": ["Q4"],
        }),
        normalize_product({
            "asin": "B0AAAAAAA3", "title": "Yoga Mat", "brand": "Gaiam",
            "category": "Sports & Outdoors", "subCategory": "Sports & Fitness",
            "price": 20, "bsr": 20000, "referralFee": 3, "fbaFee": 8, "seasonalityTags": ["Summer"],
        }),
    ]


def _asins(products):
    return [p.asin for p in products]


def test_unset_criteria_return_catalog_unchanged(catalog):
    assert filter_products(catalog, ViewMode.DASHBOARD, FilterState(), set()) == catalog


def test_watchlist_view_is_subset_of_saved(catalog):
    result = filter_products(catalog, "watchlist", FilterState(), {"B0AAAAAAA2"})
    assert _asins(result) == ["B0AAAAAAA2"]


def test_watchlist_view_empty_without_saved(catalog):
    assert filter_products(catalog, ViewMode.WATCHLIST, FilterState(), set()) == []


def test_category_exact_match(catalog):
    result = filter_products(catalog, "dashboard", FilterState(category="Electronics"), set())
    assert _asins(result) == ["B0AAAAAAA1"]


def test_sub_category_applies_without_category(catalog):
    result = filter_products(catalog, "dashboard", FilterState(sub_category="Furniture"), set())
    assert _asins(result) == ["B0AAAAAAA2"]


def test_sub_category_excludes_products_outside_it(catalog):
    criteria = FilterState(category="Electronics", sub_category="Furniture")
    assert filter_products(catalog, "dashboard", criteria, set()) == []


def test_price_bounds_inclusive(catalog):
    criteria = FilterState(min_price=20, max_price=50)
    assert _asins(filter_products(catalog, "dashboard", criteria, set())) == ["B0AAAAAAA2", "B0AAAAAAA3"]


def test_zero_min_price_is_a_real_constraint(catalog):
    assert len(filter_products(catalog, "dashboard", FilterState(min_price=0.0), set())) == 3


def test_search_is_case_insensitive(catalog):
    assert _asins(filter_products(catalog, "dashboard", FilterState(search="SONY"), set())) == ["B0AAAAAAA1"]
    assert _asins(filter_products(catalog, "dashboard", FilterState(search="b0aaaaaaa3"), set())) == ["B0AAAAAAA3"]
    assert _asins(filter_products(catalog, "dashboard", FilterState(search="kitchen"), set())) == ["B0AAAAAAA2"]


def test_max_bsr_excludes_unknown_rank(catalog):
    result = filter_products(catalog, "dashboard", FilterState(max_bsr=100_000), set())
    assert _asins(result) == ["B0AAAAAAA1", "B0AAAAAAA3"]


def test_season_filter(catalog):
    assert _asins(filter_products(catalog, "dashboard", FilterState(season="Q4"), set())) == ["B0AAAAAAA2"]
    assert _asins(filter_products(catalog, "dashboard", FilterState(season="Evergreen"), set())) == ["B0AAAAAAA1"]


def test_min_roi_uses_estimated_profit(catalog):
    # Estimated ROI: headphones 100%, chair 150%, yoga mat 12.5%
    result = filter_products(catalog, "dashboard", FilterState(min_roi=50), set())
    assert _asins(result) == ["B0AAAAAAA1", "B0AAAAAAA2"]


def test_filtering_is_idempotent(catalog):
    criteria = FilterState(min_price=10, search="o")
    once = filter_products(catalog, "dashboard", criteria, set())
    assert filter_products(once, "dashboard", criteria, set()) == once


def test_form_values_of_zero_mean_unset():
    criteria = FilterState.from_form({"minPrice": 0, "maxPrice": "", "maxBSR": "0", "category": " Electronics "})
    assert criteria.min_price is None
    assert criteria.max_price is None
    assert criteria.max_bsr is None
    assert criteria.category == "Electronics"


def test_form_accepts_snake_case_keys():
    criteria = FilterState.from_form({"sub_category": "Headphones", "max_bsr": "5000", "min_roi": 25})
    assert criteria.sub_category == "Headphones"
    assert criteria.max_bsr == 5000
    assert criteria.min_roi == 25.0


def test_changing_category_clears_sub_category():
    criteria = FilterState(category="Electronics", sub_category="Headphones")
    assert criteria.updated(category="Toys & Games").sub_category == ""
    assert criteria.updated(min_price=5).sub_category == "Headphones"
    assert criteria.with_category("Baby").sub_category == ""


@pytest.mark.parametrize("term,expected", [
    ("B012345678", True),
    ("B0TEST1234", True),
    ("B01234567", False),
    ("A012345678", False),
    ("b012345678", False),
    ("", False),
    (None, False),
])
def test_is_asin_query(term, expected):
    assert is_asin_query(term) is expected
