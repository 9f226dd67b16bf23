"""Product list filtering."""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable

from .models import FilterState, Product, ViewMode
from .profit import estimate_profit

logger = logging.getLogger(__name__)

ASIN_PREFIX = "B0"
ASIN_LENGTH = 10


def is_asin_query(term: str | None) -> bool:
    """True when a search term looks like a complete ASIN (``B0`` + 8 chars)."""
    if not term:
        return False
    return term.startswith(ASIN_PREFIX) and len(term) == ASIN_LENGTH


def matches_search(product: Product, term: str) -> bool:
    lower = term.lower()
    return (
        lower in product.name.lower()
        or lower in product.asin.lower()
        or lower in product.brand.lower()
        or lower in product.category.lower()
    )


def filter_products(
    catalog: Iterable[Product],
    view: ViewMode | str,
    criteria: FilterState,
    saved_ids: Collection[str],
) -> list[Product]:
    """
    Return the products satisfying every active constraint, in catalog order.

    Constraints are applied as successive narrowing passes:

    1. watchlist view: ids in *saved_ids*
    2. category (exact)
    3. sub-category (exact; honoured even without a category)
    4. min price
    5. max price
    6. search term, case-insensitive over name, ASIN, brand and category
    7. max sales rank (an unknown rank of 0 never passes)
    8. season tag
    9. min estimated ROI
    """
    result = list(catalog)

    if ViewMode(view) is ViewMode.WATCHLIST:
        result = [p for p in result if p.id in saved_ids]

    if criteria.category:
        result = [p for p in result if p.category == criteria.category]
    if criteria.sub_category:
        result = [p for p in result if p.sub_category == criteria.sub_category]
    if criteria.min_price is not None:
        result = [p for p in result if p.price >= criteria.min_price]
    if criteria.max_price is not None:
        result = [p for p in result if p.price <= criteria.max_price]
    if criteria.search:
        result = [p for p in result if matches_search(p, criteria.search)]
    if criteria.max_bsr is not None:
        result = [p for p in result if 0 < p.bsr <= criteria.max_bsr]
    if criteria.season:
        result = [p for p in result if criteria.season in p.seasonality_tags]
    if criteria.min_roi is not None:
        result = [p for p in result if estimate_profit(p).roi_pct >= criteria.min_roi]

    logger.debug("Filtered catalog to %d product(s) for view %s", len(result), ViewMode(view).value)
    return result
