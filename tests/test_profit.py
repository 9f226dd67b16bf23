"""Tests for profit.py"""

import pytest

from amzpulse.normalize import normalize_product
from amzpulse.profit import FulfillmentMode, calculate_profit, estimate_profit, total_fees


@pytest.fixture
def product():
    return normalize_product({
        "asin": "B0PROFIT01", "price": 100, "referralFee": 15, "fbaFee": 5, "storageFee": 0.5,
    })


def test_fba_fees_include_fulfillment_storage_prep_and_inbound(product):
    assert total_fees(product, prep_cost=1, shipping_cost=2, mode=FulfillmentMode.FBA) == pytest.approx(23.5)


def test_fbm_fees_skip_fulfillment_and_storage(product):
    assert total_fees(product, prep_cost=1, shipping_cost=2, mode="FBM") == pytest.approx(18.0)


def test_fba_profit_roi_margin(product):
    result = calculate_profit(product, sale_price=100, buy_cost=40, prep_cost=1, shipping_cost=2)
    assert result.mode is FulfillmentMode.FBA
    assert result.total_fees == 23.5
    assert result.profit == 36.5
    assert result.roi_pct == 91.25
    assert result.margin_pct == 36.5


def test_fbm_profit(product):
    result = calculate_profit(product, 100, 40, prep_cost=1, shipping_cost=2, mode=FulfillmentMode.FBM)
    assert result.profit == 42.0
    assert result.roi_pct == 105.0
    assert result.margin_pct == 42.0


def test_profit_formula_holds(product):
    result = calculate_profit(product, sale_price=79.99, buy_cost=31.2, prep_cost=0.75, shipping_cost=1.1)
    assert result.profit == pytest.approx(round(79.99 - 31.2 - result.total_fees, 2), abs=0.01)


@pytest.mark.parametrize("buy_cost", [0, -5])
def test_roi_is_zero_without_positive_cost(product, buy_cost):
    result = calculate_profit(product, sale_price=100, buy_cost=buy_cost)
    assert result.roi_pct == 0.0
    assert result.context() is None


def test_margin_is_zero_without_positive_sale_price(product):
    result = calculate_profit(product, sale_price=0, buy_cost=10)
    assert result.margin_pct == 0.0
    assert result.profit < 0


def test_context_carries_user_financials(product):
    context = calculate_profit(product, sale_price=100, buy_cost=40).context()
    assert context.buy_cost == 40
    assert context.profit == 39.5
    assert context.roi == 98.75


def test_verdicts(product):
    assert calculate_profit(product, 100, 40).verdict() == {"profit": "good", "roi": "good", "margin": "good"}
    assert calculate_profit(product, 100, 70).verdict() == {"profit": "good", "roi": "fair", "margin": "fair"}
    assert calculate_profit(product, 100, 90).verdict() == {"profit": "poor", "roi": "poor", "margin": "poor"}


def test_as_dict_is_serialisable(product):
    data = calculate_profit(product, 100, 40).as_dict()
    assert data["mode"] == "FBA"
    assert data["verdict"]["roi"] == "good"


def test_estimate_assumes_cost_is_forty_percent_of_price(product):
    result = estimate_profit(product)
    assert result.buy_cost == 40.0
    assert result.total_fees == 20.0
    assert result.profit == 40.0
    assert result.roi_pct == 100.0


def test_estimate_for_free_product_has_zero_roi():
    result = estimate_profit(normalize_product({"asin": "B0FREE0000", "price": 0}))
    assert result.roi_pct == 0.0
    assert result.margin_pct == 0.0
