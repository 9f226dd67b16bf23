"""Fee, profit, ROI and margin arithmetic for a single product."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .models import Product

# Batch rows have no user-entered buy cost; assume the unit costs 40% of price.
_ESTIMATED_COST_RATIO = 0.4

_GOOD_ROI_PCT = 30.0
_GOOD_MARGIN_PCT = 15.0


class FulfillmentMode(str, Enum):
    FBA = "FBA"  # fulfilled by the marketplace
    FBM = "FBM"  # fulfilled by the merchant


@dataclass(frozen=True)
class FinancialContext:
    """User-specific numbers handed to the AI assessment prompt."""

    buy_cost: float
    profit: float
    roi: float


@dataclass(frozen=True)
class ProfitResult:
    mode: FulfillmentMode
    sale_price: float
    buy_cost: float
    total_fees: float
    profit: float
    roi_pct: float
    margin_pct: float

    def context(self) -> FinancialContext | None:
        """Financial context for an assessment, only once a buy cost is entered."""
        if self.buy_cost <= 0:
            return None
        return FinancialContext(buy_cost=self.buy_cost, profit=self.profit, roi=self.roi_pct)

    def verdict(self) -> dict[str, str]:
        """Display classification of each figure: good, fair or poor."""
        return {
            "profit": "good" if self.profit > 0 else "poor",
            "roi": _grade(self.roi_pct, _GOOD_ROI_PCT),
            "margin": _grade(self.margin_pct, _GOOD_MARGIN_PCT),
        }

    def as_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "sale_price": self.sale_price,
            "buy_cost": self.buy_cost,
            "total_fees": self.total_fees,
            "profit": self.profit,
            "roi_pct": self.roi_pct,
            "margin_pct": self.margin_pct,
            "verdict": self.verdict(),
        }


def _grade(value: float, good_above: float) -> str:
    if value > good_above:
        return "good"
    if value > 0:
        return "fair"
    return "poor"


def total_fees(
    product: Product,
    prep_cost: float = 0.0,
    shipping_cost: float = 0.0,
    mode: FulfillmentMode = FulfillmentMode.FBA,
) -> float:
    """
    Sum of deductions for one unit.

    FBA: referral + fulfillment + storage + prep + inbound shipping.
    FBM: referral + prep + outbound shipping.
    """
    if FulfillmentMode(mode) is FulfillmentMode.FBA:
        return product.referral_fee + product.fba_fee + product.storage_fee + prep_cost + shipping_cost
    return product.referral_fee + prep_cost + shipping_cost


def calculate_profit(
    product: Product,
    sale_price: float,
    buy_cost: float,
    prep_cost: float = 0.0,
    shipping_cost: float = 0.0,
    mode: FulfillmentMode = FulfillmentMode.FBA,
) -> ProfitResult:
    """
    Profit, ROI% and margin% for selling *product* at *sale_price*.

    ``shipping_cost`` is the inbound leg to the warehouse for FBA and the
    outbound leg to the customer for FBM.  Negative or zero inputs are not
    rejected; ROI is 0 whenever ``buy_cost <= 0`` and margin is 0 whenever
    ``sale_price <= 0``.
    """
    mode = FulfillmentMode(mode)
    fees = total_fees(product, prep_cost=prep_cost, shipping_cost=shipping_cost, mode=mode)
    profit = sale_price - buy_cost - fees
    roi = (profit / buy_cost) * 100 if buy_cost > 0 else 0.0
    margin = (profit / sale_price) * 100 if sale_price > 0 else 0.0
    return ProfitResult(
        mode=mode,
        sale_price=sale_price,
        buy_cost=buy_cost,
        total_fees=round(fees, 2),
        profit=round(profit, 2),
        roi_pct=round(roi, 2),
        margin_pct=round(margin, 2),
    )


def estimate_profit(product: Product) -> ProfitResult:
    """Rough per-unit estimate used by batch tables and the min-ROI filter."""
    buy_cost = product.price * _ESTIMATED_COST_RATIO
    fees = product.referral_fee + product.fba_fee
    profit = product.price - buy_cost - fees
    roi = (profit / buy_cost) * 100 if buy_cost > 0 else 0.0
    margin = (profit / product.price) * 100 if product.price > 0 else 0.0
    return ProfitResult(
        mode=FulfillmentMode.FBA,
        sale_price=product.price,
        buy_cost=round(buy_cost, 2),
        total_fees=round(fees, 2),
        profit=round(profit, 2),
        roi_pct=round(roi, 2),
        margin_pct=round(margin, 2),
    )
