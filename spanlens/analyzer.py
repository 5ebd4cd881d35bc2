"""
Analyzer — Upstream Classifier Call

Sends text to the LLM-backed classifier and turns its answer into the
definitive findings list:

  1. Normalize line endings once; offsets refer to the normalized text
  2. One request/response exchange with the classifier
  3. Validate/repair every finding against the text
  4. Drop categories the caller did not ask for
  5. Canonicalize: strictly non-overlapping, capped at max_findings

A classifier failure is returned as an error value, never raised.
"""

from __future__ import annotations

import math
from typing import Any, Optional

from spanlens.errors import ContractViolation
from spanlens.llm import LLMProvider
from spanlens.logging import get_logger
from spanlens.resolver import canonicalize, filter_categories
from spanlens.schemas.analysis import AnalysisSettings
from spanlens.validator import normalize_newlines, validate

logger = get_logger("analyzer")


CATEGORY_GUIDE: dict[str, str] = {
    "bias": (
        '- "bias": loaded or one-sided language, framing, selective emphasis, '
        "stereotyping (categoryId e.g. loaded_language, framing_bias)"
    ),
    "fallacy": (
        '- "fallacy": errors of reasoning such as ad hominem, strawman, false '
        "dilemma, hasty generalization (categoryId e.g. ad_hominem, strawman)"
    ),
    "tactic": (
        '- "tactic": persuasion techniques such as fear appeal, bandwagon, '
        "manufactured urgency (categoryId e.g. fear_appeal, bandwagon)"
    ),
}


SYSTEM_INSTRUCTION = (
    "You are a text analysis engine that flags bias, logical fallacies and "
    "persuasion tactics. Return ONLY a JSON object. All indices are CHARACTER "
    "indices into the exact input string. For each finding, quote MUST equal "
    "text[start:end] exactly. Do not produce overlapping spans. If uncertain, "
    "return fewer findings with lower confidence."
)


ANALYSIS_PROMPT = """Analyze the text below.

## Categories to detect
{category_guide}

## Output
Return a JSON object with:
1. "overall" — object with integer scores 0-100:
   "biasScore", "fallacyScore", "tacticScore", "verifiabilityScore"
   (100 = no problems found)
2. "findings" — array of at most {max_findings} objects, each with:
   - "id": short unique string
   - "category": one of {categories}
   - "categoryId": snake_case subtype
   - "label": human-friendly name
   - "severity": "low" | "medium" | "high"
   - "confidence": float 0.0 to 1.0
   - "start", "end": character offsets, end exclusive
   - "quote": the EXACT substring text[start:end]
   - "explanation": one or two sentences
   - "suggestion": a neutral rephrasing

## Text
{text}

Return ONLY valid JSON."""


def build_prompt(text: str, settings: AnalysisSettings) -> str:
    categories = settings.enabled_categories
    return ANALYSIS_PROMPT.format(
        category_guide="\n".join(CATEGORY_GUIDE[c] for c in categories),
        categories=", ".join(f'"{c}"' for c in categories),
        max_findings=settings.max_findings,
        text=text,
    )


def _clamp_scores(overall: Any) -> dict[str, int]:
    if not isinstance(overall, dict):
        return {}
    scores = {}
    for key, value in overall.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        # json.loads accepts NaN and Infinity
        if not math.isfinite(value):
            continue
        scores[key] = max(0, min(100, round(value)))
    return scores


async def analyze_text(
    text: str,
    llm: LLMProvider,
    settings: Optional[AnalysisSettings] = None,
) -> dict:
    """
    Run one classifier exchange and return canonical findings.

    Returns:
        {"text", "overall", "findings", "dropped_count"} on success, or
        {"text", "error", "source": "error"} when the classifier fails.
    """
    if not isinstance(text, str):
        raise ContractViolation(f"text must be a str, got {type(text).__name__}")
    settings = settings or AnalysisSettings()
    text = normalize_newlines(text)

    categories = settings.enabled_categories
    if not categories:
        return {"text": text, "overall": {}, "findings": [], "dropped_count": 0}

    try:
        raw = await llm.generate_json(
            build_prompt(text, settings),
            system_instruction=SYSTEM_INSTRUCTION,
            temperature=settings.temperature,
        )
    except Exception as e:
        logger.error(
            "Classifier call failed: %s", e,
            extra={"error": str(e), "error_type": type(e).__name__},
        )
        return {"text": text, "error": str(e), "source": "error"}

    raw_findings = raw.get("findings")
    if not isinstance(raw_findings, list):
        raw_findings = []

    validated = validate(text, raw_findings)
    requested = filter_categories(validated, categories)
    findings = canonicalize(requested, max_count=settings.max_findings)

    logger.info(
        "Analysis complete: %d findings", len(findings),
        extra={"findings_count": len(findings),
               "dropped": len(raw_findings) - len(findings)},
    )
    return {
        "text": text,
        "overall": _clamp_scores(raw.get("overall")),
        "findings": [f.to_json() for f in findings],
        "dropped_count": len(raw_findings) - len(findings),
    }
