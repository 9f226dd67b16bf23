"""
Synthetic product records for the seed catalogue and offline fallbacks.

Every record is generated from a ``random.Random`` seeded with the product
identifier, so the same identifier always yields the same record.
"""
from __future__ import annotations

import random
import string
from dataclasses import replace
from datetime import date, timedelta
from typing import Any

from .models import PricePoint, Product, RankPoint
from .normalize import DEFAULT_STORAGE_FEE, normalize_product, placeholder_image

BRANDS = ["Anker", "Nike", "Lego", "Sony", "Keurig", "Logitech", "Adidas", "Instant Pot", "Funko", "Dove"]

HISTORY_DAYS = 90
_REFERRAL_RATE = 0.15
_FBA_BASE_FEE = 3.0
_FBA_FEE_PER_LB = 0.5
_OVERSIZE_LBS = 40.0
_SALES_CONSTANT = 300_000


def _label(day: date) -> str:
    return f"{day:%b} {day.day}"


def generate_history(
    base_price: float,
    base_bsr: int,
    rng: random.Random,
    days: int = HISTORY_DAYS,
    today: date | None = None,
) -> tuple[list[PricePoint], list[RankPoint]]:
    """
    Random-walk price and rank histories of ``days + 1`` daily points.

    Price moves up to ±5% per day.  Rank moves inversely: it improves 5% on
    a price drop and worsens 5% otherwise, plus ±100 noise, never below 1.
    """
    today = today or date.today()
    prices: list[PricePoint] = []
    ranks: list[RankPoint] = []
    price = base_price
    bsr = float(base_bsr)
    for i in range(days, -1, -1):
        label = _label(today - timedelta(days=i))

        delta = (rng.random() - 0.5) * 0.1
        price = price * (1 + delta)
        prices.append(PricePoint(date=label, price=round(price, 2)))

        noise = (rng.random() - 0.5) * 200
        bsr = max(1.0, bsr * 0.95) if delta < 0 else bsr * 1.05
        bsr += noise
        ranks.append(RankPoint(date=label, rank=max(1, int(bsr))))
    return prices, ranks


def _derived_asin(rng: random.Random) -> str:
    alphabet = string.ascii_uppercase + string.digits
    return "B0" + "".join(rng.choice(alphabet) for _ in range(8))


def generate_mock_product(
    asin_or_id: str,
    overrides: dict[str, Any] | None = None,
    today: date | None = None,
) -> Product:
    """
    Build a complete synthetic product for *asin_or_id*.

    Identifiers longer than five characters are used as the ASIN; short ids
    (the seed catalogue's "1".."7") get a derived ``B0`` code.  *overrides*
    use ``Product`` field names and win over generated values.
    """
    overrides = dict(overrides or {})
    rng = random.Random(asin_or_id)

    price = overrides.get("price") or round(rng.random() * 200 + 10, 2)
    bsr = overrides.get("bsr") or rng.randint(1, 50_000)
    price_history, bsr_history = generate_history(price, bsr, rng, today=today)

    weight_lbs = rng.random() * 5
    asin = asin_or_id if len(asin_or_id) > 5 else _derived_asin(rng)

    product = Product(
        id=asin_or_id,
        asin=asin,
        name=f"Sample Product Title {asin_or_id}",
        brand=rng.choice(BRANDS),
        category="Home & Kitchen",
        sub_category="General",
        price=price,
        image=placeholder_image(asin_or_id),
        rating=round(4 + rng.random(), 1),
        reviews=rng.randint(0, 4999),
        trend=float(rng.randint(-10, 29)),
        description=f"Automated mock description for {asin_or_id}",
        price_history=price_history,
        bsr_history=bsr_history,
        bsr=bsr,
        estimated_sales=_SALES_CONSTANT // bsr,
        referral_fee=round(price * _REFERRAL_RATE, 2),
        fba_fee=round(_FBA_BASE_FEE + weight_lbs * _FBA_FEE_PER_LB, 2),
        storage_fee=DEFAULT_STORAGE_FEE,
        weight=f"{weight_lbs:.1f} lbs",
        dimensions="10 x 8 x 4 in",
        sellers=rng.randint(1, 20),
        is_hazmat=rng.random() > 0.95,
        is_ip_risk=rng.random() > 0.90,
        is_oversized=weight_lbs > _OVERSIZE_LBS,
        seasonality_tags=["Q4"] if rng.random() > 0.7 else ["Evergreen"],
    )
    return replace(product, **overrides)


def fallback_product(asin: str) -> Product:
    """Placeholder row shown when the backend batch endpoint is unavailable."""
    return normalize_product({"asin": asin, "title": f"Fallback {asin}", "price": 0, "bsr": 0})


_SEED: list[tuple[str, dict[str, Any]]] = [
    ("1", {"name": "Wireless Noise Cancelling Headphones", "category": "Electronics",
           "sub_category": "Headphones", "price": 249.99, "bsr": 1542, "estimated_sales": 3400, "sellers": 12}),
    ("2", {"name": "Ergonomic Office Chair Mesh", "category": "Home & Kitchen",
           "sub_category": "Furniture", "price": 189.00, "bsr": 5200, "estimated_sales": 850}),
    ("3", {"name": "Organic Vitamin C Serum", "category": "Beauty & Personal Care",
           "sub_category": "Skin Care", "price": 24.50, "bsr": 245, "estimated_sales": 12000, "sellers": 45}),
    ("4", {"name": "Yoga Mat Non-Slip", "category": "Sports & Outdoors",
           "sub_category": "Sports & Fitness", "price": 35.99, "bsr": 1200, "estimated_sales": 4500}),
    ("5", {"name": "LEGO Star Wars Set", "category": "Toys & Games",
           "sub_category": "Building Toys", "price": 45.00, "bsr": 3200, "estimated_sales": 900, "is_ip_risk": True}),
    ("6", {"name": "Drill Driver Set", "category": "Tools & Home Improvement",
           "sub_category": "Power & Hand Tools", "price": 89.00, "bsr": 2100, "estimated_sales": 600}),
    ("7", {"name": "Keto Cookies", "category": "Grocery & Gourmet Food",
           "sub_category": "Snack Foods", "price": 14.99, "bsr": 650, "estimated_sales": 6200}),
]


def initial_products(today: date | None = None) -> list[Product]:
    """The seed catalogue shown before any lookup."""
    return [generate_mock_product(pid, overrides, today=today) for pid, overrides in _SEED]
