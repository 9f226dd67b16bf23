"""Product, assessment and filter data classes shared across the package."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any

GRADES = ("A", "B", "C", "D", "F")
LEVELS = ("Low", "Medium", "High")
SEASONALITY_TAGS = ("Q1", "Q2", "Q3", "Q4", "Evergreen", "Summer", "Back to School")


class ViewMode(str, Enum):
    DASHBOARD = "dashboard"
    RESEARCH = "research"
    BATCH = "batch"
    WATCHLIST = "watchlist"
    SETTINGS = "settings"


@dataclass(frozen=True)
class PricePoint:
    date: str
    price: float


@dataclass(frozen=True)
class RankPoint:
    date: str
    rank: int


@dataclass(frozen=True)
class AnalysisResult:
    grade: str
    score: float
    summary: str
    pros: tuple[str, ...]
    cons: tuple[str, ...]
    competition_level: str
    demand_level: str
    suggested_action: str
    fba_analysis: str
    fbm_analysis: str
    ip_risk_assessment: str | None = None
    seasonality_insight: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "grade": self.grade,
            "score": self.score,
            "summary": self.summary,
            "pros": list(self.pros),
            "cons": list(self.cons),
            "competitionLevel": self.competition_level,
            "demandLevel": self.demand_level,
            "suggestedAction": self.suggested_action,
            "fbaAnalysis": self.fba_analysis,
            "fbmAnalysis": self.fbm_analysis,
        }
        if self.ip_risk_assessment is not None:
            data["ipRiskAssessment"] = self.ip_risk_assessment
        if self.seasonality_insight is not None:
            data["seasonalityInsight"] = self.seasonality_insight
        return data


@dataclass
class Product:
    id: str
    asin: str
    name: str
    brand: str
    category: str
    price: float
    image: str
    rating: float
    reviews: int
    trend: float
    description: str
    bsr: int
    estimated_sales: int
    referral_fee: float
    fba_fee: float
    storage_fee: float
    weight: str
    dimensions: str
    sellers: int
    sub_category: str | None = None
    price_history: list[PricePoint] = field(default_factory=list)
    bsr_history: list[RankPoint] = field(default_factory=list)
    is_hazmat: bool = False
    is_ip_risk: bool = False
    is_oversized: bool = False
    seasonality_tags: list[str] = field(default_factory=lambda: ["Evergreen"])
    supplier_url: str | None = None
    target_roi: float | None = None
    notes: str | None = None
    analysis: AnalysisResult | None = None

    @property
    def is_rare_find(self) -> bool:
        """High demand with three sellers or fewer."""
        return self.estimated_sales > 1000 and self.sellers <= 3

    @property
    def has_risk(self) -> bool:
        return self.is_ip_risk or self.is_hazmat

    def with_analysis(self, analysis: AnalysisResult) -> Product:
        return replace(self, analysis=analysis)

    def chart_series(self) -> list[dict[str, Any]]:
        """
        Merge price and rank histories for a dual-axis chart.

        The two histories are aligned by position, not by date label.  The
        series follows the price history; a missing rank point becomes 0.
        """
        series = []
        for index, point in enumerate(self.price_history):
            rank = self.bsr_history[index].rank if index < len(self.bsr_history) else 0
            series.append({"date": point.date, "price": point.price, "rank": rank})
        return series

    def to_dict(self) -> dict[str, Any]:
        """Serialise using the backend's camelCase field names."""
        return {
            "id": self.id,
            "asin": self.asin,
            "name": self.name,
            "brand": self.brand,
            "category": self.category,
            "subCategory": self.sub_category,
            "price": self.price,
            "image": self.image,
            "rating": self.rating,
            "reviews": self.reviews,
            "trend": self.trend,
            "description": self.description,
            "priceHistory": [asdict(p) for p in self.price_history],
            "bsrHistory": [asdict(r) for r in self.bsr_history],
            "bsr": self.bsr,
            "estimatedSales": self.estimated_sales,
            "referralFee": self.referral_fee,
            "fbaFee": self.fba_fee,
            "storageFee": self.storage_fee,
            "weight": self.weight,
            "dimensions": self.dimensions,
            "sellers": self.sellers,
            "isHazmat": self.is_hazmat,
            "isIpRisk": self.is_ip_risk,
            "isOversized": self.is_oversized,
            "seasonalityTags": list(self.seasonality_tags),
            "supplierUrl": self.supplier_url,
            "targetRoi": self.target_roi,
            "notes": self.notes,
            "analysis": self.analysis.to_dict() if self.analysis else None,
        }


def _positive_or_none(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


@dataclass(frozen=True)
class FilterState:
    """
    Filter criteria for the product list.

    Empty strings and ``None`` mean "no constraint".  Numeric bounds use
    ``None`` rather than 0 as the unset marker, so ``min_price=0.0`` is a
    real (if trivial) constraint.
    """

    category: str = ""
    sub_category: str = ""
    min_price: float | None = None
    max_price: float | None = None
    min_roi: float | None = None
    max_bsr: int | None = None
    search: str = ""
    season: str = ""

    @classmethod
    def from_form(cls, form: dict[str, Any]) -> FilterState:
        """Build criteria from raw form values, where blank or 0 means unset."""
        max_bsr = _positive_or_none(form.get("maxBSR", form.get("max_bsr")))
        return cls(
            category=str(form.get("category") or "").strip(),
            sub_category=str(form.get("subCategory", form.get("sub_category")) or "").strip(),
            min_price=_positive_or_none(form.get("minPrice", form.get("min_price"))),
            max_price=_positive_or_none(form.get("maxPrice", form.get("max_price"))),
            min_roi=_positive_or_none(form.get("minRoi", form.get("min_roi"))),
            max_bsr=int(max_bsr) if max_bsr is not None else None,
            search=str(form.get("search") or ""),
            season=str(form.get("season") or "").strip(),
        )

    def with_category(self, category: str) -> FilterState:
        """Change the category; the sub-category only makes sense within one."""
        return replace(self, category=category, sub_category="")

    def updated(self, **changes: Any) -> FilterState:
        if "category" in changes and "sub_category" not in changes:
            changes["sub_category"] = ""
        return replace(self, **changes)

    def is_empty(self) -> bool:
        return self == FilterState()
