"""Gemini "sell potential" assessment for a single product."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

import google.generativeai as genai

from .models import GRADES, LEVELS, AnalysisResult, Product
from .normalize import AnalysisSchemaError, parse_analysis
from .profit import FinancialContext

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_TIMEOUT = 30.0

FALLBACK_ANALYSIS = AnalysisResult(
    grade="C",
    score=50,
    summary="AI Analysis unavailable. Please check your API Key configuration.",
    pros=("Stable BSR",),
    cons=("Analysis failed",),
    competition_level="Medium",
    demand_level="Medium",
    suggested_action="Check manually.",
    fba_analysis="Data unavailable",
    fbm_analysis="Data unavailable",
    ip_risk_assessment="Data unavailable",
    seasonality_insight="Data unavailable",
)

RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "grade": {"type": "STRING", "format": "enum", "enum": list(GRADES)},
        "score": {"type": "NUMBER"},
        "summary": {"type": "STRING"},
        "fbaAnalysis": {"type": "STRING", "description": "Verdict on FBA viability"},
        "fbmAnalysis": {"type": "STRING", "description": "Verdict on FBM viability"},
        "pros": {"type": "ARRAY", "items": {"type": "STRING"}},
        "cons": {"type": "ARRAY", "items": {"type": "STRING"}},
        "competitionLevel": {"type": "STRING", "format": "enum", "enum": list(LEVELS)},
        "demandLevel": {"type": "STRING", "format": "enum", "enum": list(LEVELS)},
        "suggestedAction": {"type": "STRING"},
        "ipRiskAssessment": {"type": "STRING", "description": "Verdict on brand / IP complaint risk"},
        "seasonalityInsight": {"type": "STRING", "description": "When this product sells best"},
    },
    "required": [
        "grade",
        "score",
        "summary",
        "fbaAnalysis",
        "fbmAnalysis",
        "pros",
        "cons",
        "competitionLevel",
        "demandLevel",
        "suggestedAction",
    ],
}


class AssessmentStatus(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class Assessment:
    status: AssessmentStatus
    result: AnalysisResult
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is AssessmentStatus.SUCCEEDED


def _flag(value: bool) -> str:
    return "YES" if value else "no"


def build_prompt(product: Product, context: FinancialContext | None = None) -> str:
    """Prompt text embedding every product attribute and optional user financials."""
    financial = ""
    if context is not None:
        financial = f"""
User Specific Financials:
- Buy Cost: ${context.buy_cost:.2f}
- Potential Profit: ${context.profit:.2f}
- ROI: {context.roi:.2f}%

Please assume the user can source the product at ${context.buy_cost:.2f}. Evaluate if this ROI is sufficient for the risk.
"""

    category = product.category
    if product.sub_category:
        category = f"{category} > {product.sub_category}"
    seasons = ", ".join(product.seasonality_tags) or "Evergreen"

    return f"""Act as an expert Amazon FBA Seller (Arbitrage & Private Label specialist). Analyze this product.

Product Data:
- Name: {product.name}
- Brand: {product.brand}
- Category: {category}
- ASIN: {product.asin}
- Buy Box Price: ${product.price:.2f}
- Sales Rank (BSR): {product.bsr}
- Est. Monthly Sales: {product.estimated_sales} units
- Number of Sellers: {product.sellers}
- Referral Fee: ${product.referral_fee:.2f}
- FBA Fee: ${product.fba_fee:.2f}
- Storage Fee: ${product.storage_fee:.2f}
- Reviews: {product.rating} stars ({product.reviews} count)
- Weight/Dimensions: {product.weight} / {product.dimensions}
- Hazmat: {_flag(product.is_hazmat)}
- IP / Brand Risk: {_flag(product.is_ip_risk)}
- Oversized: {_flag(product.is_oversized)}
- Seasonality: {seasons}
{financial}
Provide a structured analysis:
1. Competition Analysis (Is the market saturated? Is BSR {product.bsr} good for {product.category}?).
2. Demand Velocity.
3. FBA Analysis: Is FBA viable considering fees and weight?
4. FBM Analysis: Is FBM viable considering shipping logistics vs Amazon fulfillment?
5. IP Risk: Is there a risk of brand-owner complaints or listing restrictions?
6. Seasonality: When does this product sell best, and is now a good time to buy stock?
7. Pros/Cons.
8. Final Grade (A-F). 'A' requires high demand, good profit potential, low risk.
9. Score (0-100).
10. Strategy: Specific actionable advice.
"""


class AssessmentClient:
    """
    Requests structured assessments from Gemini.

    Every failure (no API key, network error, timeout, empty or malformed
    reply) resolves to ``FALLBACK_ANALYSIS``; nothing is raised to callers
    and nothing is retried.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        model: Any = None,
    ) -> None:
        self.model_name = model_name or DEFAULT_MODEL
        self.timeout = timeout
        self.model = model
        if self.model is None:
            if not api_key:
                logger.warning("Gemini API key is missing; assessments will use the fallback result.")
            else:
                try:
                    genai.configure(api_key=api_key)
                    self.model = genai.GenerativeModel(self.model_name)
                except Exception as exc:  # noqa: BLE001
                    logger.error("Failed to initialise Gemini client: %s", exc)
                    self.model = None

    @property
    def is_enabled(self) -> bool:
        return self.model is not None

    def _generate(self, prompt: str) -> str:
        response = self.model.generate_content(
            prompt,
            generation_config=genai.GenerationConfig(
                response_mime_type="application/json",
                response_schema=RESPONSE_SCHEMA,
            ),
            request_options={"timeout": self.timeout},
        )
        return getattr(response, "text", "") or ""

    def assess(self, product: Product, context: FinancialContext | None = None) -> Assessment:
        if self.model is None:
            return _failed(product, "Gemini API client not initialised (missing API key)")

        prompt = build_prompt(product, context)
        try:
            text = self._generate(prompt)
        except Exception as exc:  # noqa: BLE001
            return _failed(product, f"Gemini request failed: {exc}")

        if not text.strip():
            return _failed(product, "Empty response from AI")
        try:
            result = parse_analysis(json.loads(text))
        except (ValueError, AnalysisSchemaError) as exc:
            return _failed(product, f"Unusable AI response: {exc}")

        logger.info("Assessed %s: grade %s (score %.0f)", product.asin, result.grade, result.score)
        return Assessment(status=AssessmentStatus.SUCCEEDED, result=result)


def _failed(product: Product, reason: str) -> Assessment:
    logger.warning("Assessment for %s fell back to default: %s", product.asin, reason)
    return Assessment(status=AssessmentStatus.FAILED, result=FALLBACK_ANALYSIS, error=reason)


def analyze_product_sell_potential(
    client: AssessmentClient,
    product: Product,
    context: FinancialContext | None = None,
) -> AnalysisResult:
    return client.assess(product, context).result
