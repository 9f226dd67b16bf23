"""FastAPI service exposing the dashboard state to the browser front end."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from .assessment import AssessmentClient
from .backend import BackendClient
from .config import AppConfig, load_config
from .models import FilterState, Product, ViewMode
from .profit import FulfillmentMode, calculate_profit
from .report import batch_csv_text
from .storage import TokenStorage
from .store import Dashboard
from .taxonomy import TAXONOMY, categories, sub_categories

logger = logging.getLogger(__name__)

_dashboard: Dashboard | None = None


def build_dashboard(cfg: AppConfig) -> Dashboard:
    return Dashboard(
        backend=BackendClient(cfg.backend.base_url, timeout=cfg.backend.timeout),
        assessor=AssessmentClient(cfg.gemini.api_key, cfg.gemini.model, timeout=cfg.gemini.timeout),
        storage=TokenStorage(cfg.storage.state_dir),
        timeout=max(cfg.backend.timeout, cfg.gemini.timeout),
    )


def set_dashboard(dashboard: Dashboard | None) -> None:
    global _dashboard
    _dashboard = dashboard


def get_dashboard() -> Dashboard:
    global _dashboard
    if _dashboard is None:
        _dashboard = build_dashboard(load_config(os.environ.get("AMZPULSE_CONFIG")))
    return _dashboard


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    dashboard = get_dashboard()
    if await dashboard.bootstrap():
        logger.info("AmzPulse API started with a restored session.")
    else:
        logger.info("AmzPulse API started (signed out).")
    yield
    logger.info("AmzPulse API stopped.")


app = FastAPI(
    title="AmzPulse API",
    description="Product research dashboard: catalog filtering, FBA/FBM profit, AI sell-potential grading.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("CORS_ORIGINS", "*").split(","),
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# ── Request bodies ───────────────────────────────────────────────────────────

class Credentials(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    name: str | None = None


class AnalysisRequest(BaseModel):
    refresh: bool = False
    sale_price: float | None = Field(default=None, alias="salePrice")
    buy_cost: float = Field(default=0.0, alias="buyCost")
    prep_cost: float = Field(default=0.0, alias="prepCost")
    shipping_cost: float = Field(default=0.0, alias="shippingCost")
    mode: FulfillmentMode = FulfillmentMode.FBA

    model_config = {"populate_by_name": True}


class BatchRequest(BaseModel):
    asins: str = Field(..., description="ASINs separated by newlines or commas")


def _product_or_404(dashboard: Dashboard, product_id: str) -> Product:
    product = dashboard.find(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product '{product_id}' not found.")
    return product


def _session_view(dashboard: Dashboard) -> dict[str, Any]:
    session = dashboard.session
    return {
        "authenticated": session is not None,
        "user": session.user if session else None,
        "plan": session.plan if session else None,
        "role": session.role if session else None,
        "usage": dashboard.usage,
        "savedIds": sorted(dashboard.saved_ids),
        "authPromptOpen": dashboard.auth_prompt_open,
        "authError": dashboard.auth_error,
        "messages": [{"level": m.level, "text": m.text} for m in dashboard.messages],
    }


# ── Meta ─────────────────────────────────────────────────────────────────────

@app.get("/health", tags=["meta"])
def health() -> dict[str, str]:
    return {"status": "ok", "version": "1.0.0"}


@app.get("/taxonomy", tags=["meta"])
def taxonomy(category: str | None = Query(default=None)) -> dict[str, list[str]]:
    """Department → sub-category lists for the filter dropdowns."""
    if category is None:
        return {name: sub_categories(name) for name in categories()}
    if category not in TAXONOMY:
        raise HTTPException(status_code=404, detail=f"Unknown category '{category}'.")
    return {category: sub_categories(category)}


# ── Catalog ──────────────────────────────────────────────────────────────────

@app.get("/products", tags=["products"])
async def list_products(
    view: ViewMode = Query(default=ViewMode.DASHBOARD),
    category: str = Query(default=""),
    sub_category: str = Query(default="", alias="subCategory"),
    min_price: float = Query(default=0, alias="minPrice"),
    max_price: float = Query(default=0, alias="maxPrice"),
    min_roi: float = Query(default=0, alias="minRoi"),
    max_bsr: int = Query(default=0, alias="maxBSR"),
    search: str = Query(default=""),
    season: str = Query(default=""),
) -> dict[str, Any]:
    """
    Apply the filter bar and return the visible products.

    A full ASIN in ``search`` that is not in the catalog starts a background
    lookup; poll again to see the fetched record appear first in the list.
    """
    dashboard = get_dashboard()
    dashboard.set_view(view)
    criteria = FilterState.from_form(
        {
            "category": category,
            "subCategory": sub_category,
            "minPrice": min_price,
            "maxPrice": max_price,
            "minRoi": min_roi,
            "maxBSR": max_bsr,
            "season": season,
        }
    )
    dashboard.set_filters(criteria)
    dashboard.set_search(search)
    products = dashboard.visible_products()
    return {
        "count": len(products),
        "lookupPending": bool(search) and dashboard.is_lookup_pending(search),
        "products": [p.to_dict() for p in products],
    }


@app.get("/products/{product_id}", tags=["products"])
def get_product(product_id: str) -> dict[str, Any]:
    """Full record plus the merged price/rank chart series."""
    dashboard = get_dashboard()
    product = _product_or_404(dashboard, product_id)
    data = product.to_dict()
    data["chartSeries"] = product.chart_series()
    data["isSaved"] = product.id in dashboard.saved_ids
    data["isRareFind"] = product.is_rare_find
    return data


@app.get("/products/{product_id}/profit", tags=["products"])
def product_profit(
    product_id: str,
    sale_price: float | None = Query(default=None, alias="salePrice"),
    buy_cost: float = Query(default=0.0, alias="buyCost"),
    prep_cost: float = Query(default=0.0, alias="prepCost"),
    shipping_cost: float = Query(default=0.0, alias="shippingCost"),
    mode: FulfillmentMode = Query(default=FulfillmentMode.FBA),
) -> dict[str, Any]:
    """FBA/FBM profit calculator; sale price defaults to the current buy-box price."""
    product = _product_or_404(get_dashboard(), product_id)
    result = calculate_profit(
        product,
        sale_price=product.price if sale_price is None else sale_price,
        buy_cost=buy_cost,
        prep_cost=prep_cost,
        shipping_cost=shipping_cost,
        mode=mode,
    )
    return result.as_dict()


@app.post("/products/{product_id}/analysis", tags=["products"])
async def product_analysis(product_id: str, body: AnalysisRequest | None = None) -> dict[str, Any]:
    """Attach (or refresh) the AI sell-potential assessment for a product."""
    body = body or AnalysisRequest()
    dashboard = get_dashboard()
    product = _product_or_404(dashboard, product_id)
    profit = calculate_profit(
        product,
        sale_price=product.price if body.sale_price is None else body.sale_price,
        buy_cost=body.buy_cost,
        prep_cost=body.prep_cost,
        shipping_cost=body.shipping_cost,
        mode=body.mode,
    )
    result = await dashboard.request_analysis(product_id, context=profit.context(), refresh=body.refresh)
    status = dashboard.analysis_status.get(product_id)
    return {"status": status.value if status else "succeeded", "analysis": result.to_dict()}


@app.post("/lookup/{asin}", tags=["products"])
async def lookup(asin: str) -> dict[str, Any]:
    product = await get_dashboard().lookup(asin.upper())
    return product.to_dict()


# ── Watchlist ────────────────────────────────────────────────────────────────

@app.post("/watchlist/{product_id}/toggle", tags=["watchlist"])
async def toggle_watchlist(product_id: str) -> dict[str, Any]:
    dashboard = get_dashboard()
    committed = await dashboard.toggle_save(product_id)
    return {
        "committed": committed,
        "saved": product_id in dashboard.saved_ids,
        "authPromptOpen": dashboard.auth_prompt_open,
    }


# ── Batch ────────────────────────────────────────────────────────────────────

@app.post("/batch", tags=["batch"])
async def run_batch(body: BatchRequest) -> dict[str, Any]:
    dashboard = get_dashboard()
    results = await dashboard.run_batch(body.asins)
    return {
        "authPromptOpen": dashboard.auth_prompt_open,
        "error": dashboard.batch_error,
        "results": [p.to_dict() for p in results],
    }


@app.get("/batch/export", tags=["batch"], response_class=PlainTextResponse)
def export_batch() -> PlainTextResponse:
    csv_text = batch_csv_text(get_dashboard().batch_results)
    return PlainTextResponse(
        csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="batch_analysis.csv"'},
    )


# ── Session ──────────────────────────────────────────────────────────────────

@app.post("/auth/login", tags=["session"])
async def login(body: Credentials) -> dict[str, Any]:
    dashboard = get_dashboard()
    await dashboard.login(body.email, body.password)
    return _session_view(dashboard)


@app.post("/auth/register", tags=["session"])
async def register(body: Credentials) -> dict[str, Any]:
    dashboard = get_dashboard()
    await dashboard.register(body.email, body.password, body.name)
    return _session_view(dashboard)


@app.post("/auth/logout", tags=["session"])
def logout() -> dict[str, Any]:
    dashboard = get_dashboard()
    dashboard.logout()
    return _session_view(dashboard)


@app.get("/session", tags=["session"])
def session() -> dict[str, Any]:
    return _session_view(get_dashboard())
