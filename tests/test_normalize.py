"""Tests for normalize.py"""

import math

import pytest

from amzpulse.mock import generate_mock_product
from amzpulse.normalize import (
    AnalysisSchemaError,
    ProductValidationError,
    normalize_product,
    normalize_products,
    normalize_tag,
    parse_analysis,
)

ANALYSIS = {
    "grade": "B",
    "score": 72,
    "summary": "Decent.",
    "pros": ["Demand"],
    "cons": ["Fees"],
    "competitionLevel": "Low",
    "demandLevel": "High",
    "suggestedAction": "Test with 10 units.",
    "fbaAnalysis": "Viable",
    "fbmAnalysis": "Not viable",
}


def test_minimal_payload_gets_defaults():
    product = normalize_product({"asin": "B0TEST1234"})
    assert product.asin == "B0TEST1234"
    assert product.id == "B0TEST1234"
    assert product.price == 0
    assert product.storage_fee == 0.50
    assert product.sellers == 1
    assert product.rating == 4.0
    assert product.seasonality_tags == ["Evergreen"]
    assert product.name == "Product B0TEST1234"
    assert product.brand == "Unknown"
    assert product.category == "Misc"
    assert product.image == "https://picsum.photos/seed/B0TEST1234/400/400"
    assert product.price_history == []
    assert product.analysis is None


def test_aliases_are_resolved():
    product = normalize_product({"id": "B0ALIAS001", "title": "Kettle", "estSales": 420, "rank": 77, "reviewCount": 9})
    assert product.asin == "B0ALIAS001"
    assert product.name == "Kettle"
    assert product.estimated_sales == 420
    assert product.bsr == 77
    assert product.reviews == 9


def test_explicit_zero_is_kept():
    product = normalize_product({"asin": "B0ZERO0000", "rating": 0, "sellers": 0, "storageFee": 0})
    assert product.rating == 0.0
    assert product.sellers == 0
    assert product.storage_fee == 0.0


def test_nan_counts_as_missing():
    product = normalize_product({"asin": "B0NAN00000", "price": math.nan, "rating": float("nan")})
    assert product.price == 0.0
    assert product.rating == 4.0


def test_asin_argument_used_when_payload_has_no_identifier():
    assert normalize_product({"title": "X"}, asin="B0ARG00000").asin == "B0ARG00000"


def test_payload_without_identifier_is_rejected():
    with pytest.raises(ProductValidationError):
        normalize_product({"title": "Nameless"})


def test_non_mapping_is_rejected():
    with pytest.raises(ProductValidationError):
        normalize_product(["B0TEST1234"])


def test_currency_strings_are_parsed():
    assert normalize_product({"asin": "B0PRICE000", "price": "$1,299.99"}).price == 1299.99


def test_boolean_price_is_rejected():
    with pytest.raises(ProductValidationError):
        normalize_product({"asin": "B0BOOL0000", "price": True})


def test_flags_accept_strings():
    product = normalize_product({"asin": "B0FLAG0000", "isHazmat": "yes", "isIpRisk": "false", "isOversized": 1})
    assert product.is_hazmat is True
    assert product.is_ip_risk is False
    assert product.is_oversized is True


def test_seasonality_tags_are_canonicalised():
    product = normalize_product({"asin": "B0TAGS0000", "seasonalityTags": ["q4", "Back-to-School", "Q4"]})
    assert product.seasonality_tags == ["Q4", "Back to School"]
    assert normalize_tag("back_to_school") == "Back to School"


def test_unknown_seasonality_tag_is_rejected():
    with pytest.raises(ProductValidationError):
        normalize_product({"asin": "B0TAGS0001", "seasonalityTags": ["Winter"]})


def test_histories_are_parsed():
    product = normalize_product({
        "asin": "B0HIST0000",
        "priceHistory": [{"date": "Oct 1", "price": 10}, {"date": "Oct 2", "price": "11.5"}],
        "bsrHistory": [{"date": "Oct 1", "rank": 300}],
    })
    assert [p.price for p in product.price_history] == [10.0, 11.5]
    assert product.bsr_history[0].rank == 300
    assert product.chart_series() == [
        {"date": "Oct 1", "price": 10.0, "rank": 300},
        {"date": "Oct 2", "price": 11.5, "rank": 0},
    ]


def test_malformed_analysis_is_dropped():
    product = normalize_product({"asin": "B0BADAI000", "analysis": {"grade": "Z"}})
    assert product.analysis is None


def test_valid_analysis_is_attached():
    product = normalize_product({"asin": "B0GOODAI00", "analysis": ANALYSIS})
    assert product.analysis.grade == "B"
    assert product.analysis.pros == ("Demand",)


def test_to_dict_round_trips():
    product = generate_mock_product("B0ROUND001")
    assert normalize_product(product.to_dict()) == product


def test_normalize_products_rejects_non_list():
    with pytest.raises(ProductValidationError):
        normalize_products({"asin": "B0TEST1234"})


def test_normalize_products_replaces_bad_rows_via_on_error():
    payloads = [{"asin": "B0GOOD0001", "price": 5}, {"asin": "B0BAD00001", "price": "cheap"}]
    with pytest.raises(ProductValidationError):
        normalize_products(payloads)

    seen = []

    def on_error(index, item, exc):
        seen.append((index, item["asin"]))
        return generate_mock_product(item["asin"])

    products = normalize_products(payloads, on_error=on_error)
    assert [p.asin for p in products] == ["B0GOOD0001", "B0BAD00001"]
    assert products[0].price == 5
    assert seen == [(1, "B0BAD00001")]


def test_parse_analysis_clamps_score():
    assert parse_analysis({**ANALYSIS, "score": 140}).score == 100.0
    assert parse_analysis({**ANALYSIS, "score": -3}).score == 0.0


def test_parse_analysis_accepts_snake_case_and_optional_fields():
    data = {
        "grade": "A", "score": 90, "summary": "s", "pros": [], "cons": [],
        "competition_level": "Low", "demand_level": "High", "suggested_action": "Buy",
        "fba_analysis": "ok", "fbm_analysis": "ok", "seasonality_insight": "Q4 peak",
    }
    result = parse_analysis(data)
    assert result.seasonality_insight == "Q4 peak"
    assert result.ip_risk_assessment is None
    assert "seasonalityInsight" in result.to_dict()


@pytest.mark.parametrize("broken", [
    {k: v for k, v in ANALYSIS.items() if k != "summary"},
    {**ANALYSIS, "grade": "E"},
    {**ANALYSIS, "demandLevel": "Extreme"},
    {**ANALYSIS, "score": "high"},
    {**ANALYSIS, "pros": "Demand"},
    "not an object",
])
def test_parse_analysis_rejects_schema_violations(broken):
    with pytest.raises(AnalysisSchemaError):
        parse_analysis(broken)
