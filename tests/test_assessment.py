"""Tests for assessment.py"""

import json

import pytest

from amzpulse.assessment import (
    FALLBACK_ANALYSIS,
    RESPONSE_SCHEMA,
    AssessmentClient,
    AssessmentStatus,
    analyze_product_sell_potential,
    build_prompt,
)
from amzpulse.normalize import normalize_product
from amzpulse.profit import FinancialContext

REPLY = {
    "grade": "A",
    "score": 91,
    "summary": "Fast mover with thin competition.",
    "fbaAnalysis": "FBA is viable.",
    "fbmAnalysis": "FBM is possible but slower.",
    "pros": ["High demand", "Few sellers"],
    "cons": ["Seasonal dip"],
    "competitionLevel": "Low",
    "demandLevel": "High",
    "suggestedAction": "Source 30 units.",
    "ipRiskAssessment": "No brand gating observed.",
    "seasonalityInsight": "Peaks in Q4.",
}


class _Response:
    def __init__(self, text):
        self.text = text


class FakeModel:
    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.prompts = []
        self.kwargs = []

    def generate_content(self, prompt, **kwargs):
        self.prompts.append(prompt)
        self.kwargs.append(kwargs)
        if self.error:
            raise self.error
        return _Response(self.text)


@pytest.fixture
def product():
    return normalize_product({
        "asin": "B0ASSESS01", "title": "Steel Water Bottle", "brand": "Hydra", "category": "Sports & Outdoors",
        "subCategory": "Outdoor Recreation", "price": 29.99, "bsr": 812, "isIpRisk": True,
        "seasonalityTags": ["Summer"],
    })


def test_successful_reply_is_parsed(product):
    model = FakeModel(json.dumps(REPLY))
    assessment = AssessmentClient(model=model, timeout=12).assess(product)
    assert assessment.status is AssessmentStatus.SUCCEEDED
    assert assessment.ok
    assert assessment.result.grade == "A"
    assert assessment.result.seasonality_insight == "Peaks in Q4."
    assert model.kwargs[0]["request_options"] == {"timeout": 12}


def test_prompt_embeds_product_and_financials(product):
    model = FakeModel(json.dumps(REPLY))
    context = FinancialContext(buy_cost=12.0, profit=8.5, roi=70.83)
    AssessmentClient(model=model).assess(product, context)
    prompt = model.prompts[0]
    assert "B0ASSESS01" in prompt
    assert "Sports & Outdoors > Outdoor Recreation" in prompt
    assert "IP / Brand Risk: YES" in prompt
    assert "Seasonality: Summer" in prompt
    assert "Buy Cost: $12.00" in prompt
    assert "ROI: 70.83%" in prompt


def test_prompt_without_context_has_no_financials(product):
    assert "User Specific Financials" not in build_prompt(product)


def test_missing_key_falls_back(product):
    client = AssessmentClient(api_key=None)
    assert client.is_enabled is False
    assessment = client.assess(product)
    assert assessment.status is AssessmentStatus.FAILED
    assert assessment.result == FALLBACK_ANALYSIS
    assert assessment.result.grade == "C"
    assert assessment.result.score == 50


def test_unreachable_service_falls_back(product):
    client = AssessmentClient(model=FakeModel(error=ConnectionError("unreachable")))
    assessment = client.assess(product)
    assert assessment.status is AssessmentStatus.FAILED
    assert assessment.result == FALLBACK_ANALYSIS
    assert "unreachable" in assessment.error


@pytest.mark.parametrize("text", ["", "   ", "not json", json.dumps({**REPLY, "grade": "Z"}), json.dumps([REPLY])])
def test_unusable_reply_falls_back(product, text):
    assessment = AssessmentClient(model=FakeModel(text)).assess(product)
    assert assessment.status is AssessmentStatus.FAILED
    assert assessment.result == FALLBACK_ANALYSIS


def test_analyze_returns_result_only(product):
    result = analyze_product_sell_potential(AssessmentClient(model=FakeModel(json.dumps(REPLY))), product)
    assert result.score == 91


def test_schema_requires_core_fields():
    assert "ipRiskAssessment" not in RESPONSE_SCHEMA["required"]
    assert set(RESPONSE_SCHEMA["required"]) <= set(RESPONSE_SCHEMA["properties"])
    assert RESPONSE_SCHEMA["properties"]["grade"]["enum"] == ["A", "B", "C", "D", "F"]
