"""Parsing of loosely-shaped product payloads into ``Product`` records."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from typing import Any

import pandas as pd

from .models import GRADES, LEVELS, SEASONALITY_TAGS, AnalysisResult, PricePoint, Product, RankPoint

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = "https://picsum.photos/seed/{seed}/400/400"

DEFAULT_STORAGE_FEE = 0.50
DEFAULT_RATING = 4.0
DEFAULT_SELLERS = 1
DEFAULT_SEASONALITY = ("Evergreen",)

# field -> accepted payload keys, first match wins
ALIASES: dict[str, tuple[str, ...]] = {
    "asin": ("asin", "id"),
    "id": ("asin", "id"),
    "name": ("title", "name"),
    "brand": ("brand",),
    "category": ("category",),
    "sub_category": ("subCategory", "sub_category"),
    "price": ("price",),
    "image": ("image", "imageUrl", "image_url"),
    "rating": ("rating",),
    "reviews": ("reviews", "reviewCount", "review_count"),
    "trend": ("trend",),
    "description": ("description",),
    "price_history": ("priceHistory", "price_history"),
    "bsr_history": ("bsrHistory", "rankHistory", "bsr_history"),
    "bsr": ("bsr", "rank"),
    "estimated_sales": ("estSales", "estimatedSales", "estimated_sales"),
    "referral_fee": ("referralFee", "referral_fee"),
    "fba_fee": ("fbaFee", "fba_fee", "fulfillmentFee"),
    "storage_fee": ("storageFee", "storage_fee"),
    "weight": ("weight",),
    "dimensions": ("dimensions",),
    "sellers": ("sellers", "sellerCount", "offers"),
    "is_hazmat": ("isHazmat", "is_hazmat"),
    "is_ip_risk": ("isIpRisk", "is_ip_risk"),
    "is_oversized": ("isOversized", "is_oversized"),
    "seasonality_tags": ("seasonalityTags", "seasonality_tags"),
    "supplier_url": ("supplierUrl", "supplier_url"),
    "target_roi": ("targetRoi", "target_roi"),
    "notes": ("notes",),
    "analysis": ("analysis",),
}

_TRUE_STRINGS = {"true", "yes", "1"}
_FALSE_STRINGS = {"false", "no", "0", ""}
_TAG_KEY = re.compile(r"[\s_-]+")
_TAGS_BY_KEY = {_TAG_KEY.sub(" ", tag.lower()): tag for tag in SEASONALITY_TAGS}


class ProductValidationError(ValueError):
    """Raised when a payload cannot be parsed into a product record."""


class AnalysisSchemaError(ValueError):
    """Raised when an assessment payload does not match the expected shape."""


def placeholder_image(seed: str) -> str:
    """Deterministic placeholder image URL for *seed*."""
    return PLACEHOLDER_IMAGE.format(seed=seed)


def _missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and pd.isna(value):
        return True
    return isinstance(value, str) and not value.strip()


def _pick(data: Mapping[str, Any], field_name: str) -> Any:
    for key in ALIASES[field_name]:
        value = data.get(key)
        if not _missing(value):
            return value
    return None


def _number(value: Any, default: float, field_name: str) -> float:
    if _missing(value):
        return default
    if isinstance(value, bool):
        raise ProductValidationError(f"{field_name}: expected a number, got {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip().lstrip("$").replace(",", ""))
        except ValueError:
            pass
    raise ProductValidationError(f"{field_name}: expected a number, got {value!r}")


def _integer(value: Any, default: int, field_name: str) -> int:
    return int(_number(value, default, field_name))


def _optional_number(value: Any, field_name: str) -> float | None:
    if _missing(value):
        return None
    return _number(value, 0.0, field_name)


def _text(value: Any, default: str, field_name: str) -> str:
    if _missing(value):
        return default
    if isinstance(value, (Mapping, list, tuple, set)):
        raise ProductValidationError(f"{field_name}: expected text, got {type(value).__name__}")
    return str(value).strip()


def _optional_text(value: Any, field_name: str) -> str | None:
    text = _text(value, "", field_name)
    return text or None


def _flag(value: Any, field_name: str) -> bool:
    if _missing(value):
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in _TRUE_STRINGS | _FALSE_STRINGS:
        return value.strip().lower() in _TRUE_STRINGS
    raise ProductValidationError(f"{field_name}: expected a boolean, got {value!r}")


def normalize_tag(raw: str) -> str:
    """
    Map a seasonality tag to its canonical spelling.

    - ``"q4"``             → ``"Q4"``
    - ``"Back-to-School"`` → ``"Back to School"``
    """
    key = _TAG_KEY.sub(" ", str(raw).strip().lower())
    if key not in _TAGS_BY_KEY:
        raise ProductValidationError(f"seasonality_tags: unknown tag {raw!r}")
    return _TAGS_BY_KEY[key]


def _tags(value: Any) -> list[str]:
    if _missing(value):
        return list(DEFAULT_SEASONALITY)
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ProductValidationError(f"seasonality_tags: expected a list, got {type(value).__name__}")
    tags = []
    for raw in value:
        tag = normalize_tag(raw)
        if tag not in tags:
            tags.append(tag)
    return tags or list(DEFAULT_SEASONALITY)


def _history(value: Any, value_keys: tuple[str, ...], field_name: str) -> list[tuple[str, float]]:
    if _missing(value):
        return []
    if not isinstance(value, (list, tuple)):
        raise ProductValidationError(f"{field_name}: expected a list, got {type(value).__name__}")
    points = []
    for entry in value:
        if not isinstance(entry, Mapping):
            raise ProductValidationError(f"{field_name}: expected {{date, value}} entries, got {entry!r}")
        raw = next((entry[k] for k in value_keys if k in entry), None)
        points.append((_text(entry.get("date"), "", field_name), _number(raw, 0.0, field_name)))
    return points


def parse_analysis(data: Any) -> AnalysisResult:
    """
    Validate an assessment mapping (camelCase or snake_case keys).

    Raises:
        AnalysisSchemaError: a required field is missing or an enum value is
            outside its allowed set.
    """
    if not isinstance(data, Mapping):
        raise AnalysisSchemaError(f"Expected an object, got {type(data).__name__}")

    def get(*keys: str) -> Any:
        for key in keys:
            if key in data and data[key] is not None:
                return data[key]
        raise AnalysisSchemaError(f"Missing field: {keys[0]}")

    def enum(value: Any, allowed: tuple[str, ...], name: str) -> str:
        if value not in allowed:
            raise AnalysisSchemaError(f"{name}: {value!r} not in {allowed}")
        return value

    def strings(value: Any, name: str) -> tuple[str, ...]:
        if not isinstance(value, (list, tuple)):
            raise AnalysisSchemaError(f"{name}: expected a list")
        return tuple(str(v) for v in value)

    score = get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise AnalysisSchemaError(f"score: expected a number, got {score!r}")

    ip_risk = data.get("ipRiskAssessment", data.get("ip_risk_assessment"))
    seasonality = data.get("seasonalityInsight", data.get("seasonality_insight"))
    return AnalysisResult(
        grade=enum(get("grade"), GRADES, "grade"),
        score=max(0.0, min(100.0, float(score))),
        summary=str(get("summary")),
        pros=strings(get("pros"), "pros"),
        cons=strings(get("cons"), "cons"),
        competition_level=enum(get("competitionLevel", "competition_level"), LEVELS, "competitionLevel"),
        demand_level=enum(get("demandLevel", "demand_level"), LEVELS, "demandLevel"),
        suggested_action=str(get("suggestedAction", "suggested_action")),
        fba_analysis=str(get("fbaAnalysis", "fba_analysis")),
        fbm_analysis=str(get("fbmAnalysis", "fbm_analysis")),
        ip_risk_assessment=str(ip_risk) if ip_risk is not None else None,
        seasonality_insight=str(seasonality) if seasonality is not None else None,
    )


def normalize_product(payload: Any, asin: str | None = None) -> Product:
    """
    Parse a backend (or hand-built) payload into a fully populated ``Product``.

    Every field is resolved independently through ``ALIASES``; absent fields
    take their default (0 for numbers, except storage fee 0.50, rating 4.0
    and sellers 1; False for flags; ``["Evergreen"]`` for seasonality; empty
    histories).  *asin* is used when the payload carries no identifier.

    Raises:
        ProductValidationError: the payload is not a mapping, has no
            identifier, or a field holds a value of the wrong kind.
    """
    if not isinstance(payload, Mapping):
        raise ProductValidationError(f"Expected a product object, got {type(payload).__name__}")

    identifier = _text(_pick(payload, "asin"), "", "asin") or (asin or "").strip()
    if not identifier:
        raise ProductValidationError("Payload has no asin or id")
    product_id = _text(_pick(payload, "id"), "", "id") or identifier

    analysis = None
    raw_analysis = _pick(payload, "analysis")
    if raw_analysis is not None:
        try:
            analysis = parse_analysis(raw_analysis)
        except AnalysisSchemaError as exc:
            logger.warning("Ignoring malformed analysis on %s: %s", identifier, exc)

    prices = _history(_pick(payload, "price_history"), ("price", "value"), "price_history")
    ranks = _history(_pick(payload, "bsr_history"), ("rank", "bsr", "value"), "bsr_history")

    return Product(
        id=product_id,
        asin=identifier,
        name=_text(_pick(payload, "name"), f"Product {identifier}", "name"),
        brand=_text(_pick(payload, "brand"), "Unknown", "brand"),
        category=_text(_pick(payload, "category"), "Misc", "category"),
        sub_category=_optional_text(_pick(payload, "sub_category"), "sub_category"),
        price=_number(_pick(payload, "price"), 0.0, "price"),
        image=_text(_pick(payload, "image"), placeholder_image(identifier), "image"),
        rating=_number(_pick(payload, "rating"), DEFAULT_RATING, "rating"),
        reviews=_integer(_pick(payload, "reviews"), 0, "reviews"),
        trend=_number(_pick(payload, "trend"), 0.0, "trend"),
        description=_text(_pick(payload, "description"), "", "description"),
        price_history=[PricePoint(date=d, price=v) for d, v in prices],
        bsr_history=[RankPoint(date=d, rank=int(v)) for d, v in ranks],
        bsr=_integer(_pick(payload, "bsr"), 0, "bsr"),
        estimated_sales=_integer(_pick(payload, "estimated_sales"), 0, "estimated_sales"),
        referral_fee=_number(_pick(payload, "referral_fee"), 0.0, "referral_fee"),
        fba_fee=_number(_pick(payload, "fba_fee"), 0.0, "fba_fee"),
        storage_fee=_number(_pick(payload, "storage_fee"), DEFAULT_STORAGE_FEE, "storage_fee"),
        weight=_text(_pick(payload, "weight"), "", "weight"),
        dimensions=_text(_pick(payload, "dimensions"), "", "dimensions"),
        sellers=_integer(_pick(payload, "sellers"), DEFAULT_SELLERS, "sellers"),
        is_hazmat=_flag(_pick(payload, "is_hazmat"), "is_hazmat"),
        is_ip_risk=_flag(_pick(payload, "is_ip_risk"), "is_ip_risk"),
        is_oversized=_flag(_pick(payload, "is_oversized"), "is_oversized"),
        seasonality_tags=_tags(_pick(payload, "seasonality_tags")),
        supplier_url=_optional_text(_pick(payload, "supplier_url"), "supplier_url"),
        target_roi=_optional_number(_pick(payload, "target_roi"), "target_roi"),
        notes=_optional_text(_pick(payload, "notes"), "notes"),
        analysis=analysis,
    )


def normalize_products(
    payloads: Any,
    on_error: Callable[[int, Any, ProductValidationError], Product] | None = None,
) -> list[Product]:
    """
    Parse a list of payloads.

    Without *on_error* the first bad record raises.  With it, each record is
    parsed on its own and a failing one is replaced by
    ``on_error(index, payload, exc)``; the other rows are kept.

    Raises:
        ProductValidationError: *payloads* is not a list, or a record is bad
            and no *on_error* was given.
    """
    if not isinstance(payloads, (list, tuple)):
        raise ProductValidationError(f"Expected a list of products, got {type(payloads).__name__}")
    products = []
    for index, item in enumerate(payloads):
        try:
            products.append(normalize_product(item))
        except ProductValidationError as exc:
            if on_error is None:
                raise
            products.append(on_error(index, item, exc))
    return products
