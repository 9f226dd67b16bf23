"""Batch result tables and per-product analysis exports (CSV, Markdown)."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd
from dateutil import tz

from .models import Product
from .profit import ProfitResult, estimate_profit

logger = logging.getLogger(__name__)

BATCH_COLUMNS = [
    "asin",
    "name",
    "price",
    "bsr",
    "estimated_sales",
    "risk",
    "grade",
    "ai_note",
    "profit_estimate",
]

ANALYSIS_COLUMNS = [
    "Product",
    "ASIN",
    "Method",
    "Buy Cost",
    "Sale Price",
    "Shipping(FBM)",
    "Profit",
    "ROI",
    "Margin",
    "Grade",
    "FBA Verdict",
    "FBM Verdict",
]


def _now_local(timezone_str: str) -> datetime:
    local_tz = tz.gettz(timezone_str) or tz.tzlocal()
    return datetime.now(tz=local_tz)


def batch_row(product: Product) -> dict[str, Any]:
    analysis = product.analysis
    return {
        "asin": product.asin,
        "name": product.name,
        "price": product.price,
        "bsr": product.bsr,
        "estimated_sales": product.estimated_sales,
        "risk": "RISK" if product.has_risk else "OK",
        "grade": analysis.grade if analysis else None,
        "ai_note": (analysis.suggested_action or analysis.summary) if analysis else None,
        "profit_estimate": estimate_profit(product).profit,
    }


def batch_dataframe(products: list[Product]) -> pd.DataFrame:
    """One row per product with the batch table's columns."""
    return pd.DataFrame([batch_row(p) for p in products], columns=BATCH_COLUMNS)


def write_batch_csv(products: list[Product], path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    batch_dataframe(products).to_csv(path, index=False)
    logger.info("Batch export written: %s (%d rows)", path, len(products))
    return path


def batch_csv_text(products: list[Product]) -> str:
    return batch_dataframe(products).to_csv(index=False)


def analysis_dataframe(product: Product, result: ProfitResult, shipping_cost: float = 0.0) -> pd.DataFrame:
    """
    Single-row export of one product's calculator inputs, results and verdicts.

    Shipping is only meaningful for FBM and is reported as ``N/A`` for FBA.
    """
    analysis = product.analysis
    row = {
        "Product": product.name,
        "ASIN": product.asin,
        "Method": result.mode.value,
        "Buy Cost": result.buy_cost,
        "Sale Price": result.sale_price,
        "Shipping(FBM)": shipping_cost if result.mode.value == "FBM" else "N/A",
        "Profit": result.profit,
        "ROI": f"{result.roi_pct}%",
        "Margin": f"{result.margin_pct}%",
        "Grade": analysis.grade if analysis else "N/A",
        "FBA Verdict": analysis.fba_analysis if analysis else "",
        "FBM Verdict": analysis.fbm_analysis if analysis else "",
    }
    return pd.DataFrame([row], columns=ANALYSIS_COLUMNS)


def analysis_filename(product: Product) -> str:
    return f"{product.asin}_analysis.csv"


def generate_markdown_summary(
    products: list[Product],
    error: str | None = None,
    timezone_str: str = "America/Los_Angeles",
) -> str:
    """Markdown table of a batch run, flagging risky products."""
    generated = _now_local(timezone_str).strftime("%Y-%m-%d %H:%M %Z")
    lines = [
        "# AmzPulse — Batch Analysis",
        "",
        f"**Generated:** {generated}",
        f"**Processed:** {len(products)} ASIN(s)",
    ]
    if error:
        lines += ["", f"> Backend batch request failed ({error}); rows below are placeholders."]
    lines += [
        "",
        "| ASIN | Product | Price | BSR | Sales/mo | Risk | AI | Profit Est. |",
        "|---|---|---|---|---|---|---|---|",
    ]
    if not products:
        lines.append("| — | _No results._ | | | | | | |")
    for p in products:
        row = batch_row(p)
        lines.append(
            f"| `{row['asin']}` | {row['name']} | ${row['price']:.2f} | #{row['bsr']:,} "
            f"| {row['estimated_sales']:,} | {row['risk']} | {row['grade'] or 'No AI'} "
            f"| ${row['profit_estimate']:.2f} |"
        )
    return "\n".join(lines) + "\n"
