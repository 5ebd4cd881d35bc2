"""
API Schemas — Request and Response Models

Pydantic models for the SpanLens API. Field names follow the upstream
service's camelCase JSON where the client sends them that way.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================
# ANALYZE
# ============================================================

class AnalysisSettings(BaseModel):
    """Which categories the classifier should look for, and how many findings."""

    model_config = ConfigDict(populate_by_name=True)

    detect_bias: bool = Field(True, alias="detectBias")
    detect_fallacies: bool = Field(True, alias="detectFallacies")
    detect_tactics: bool = Field(True, alias="detectTactics")
    max_findings: int = Field(10, alias="maxFindings",
                              description="Clamped into [1, 12].")
    temperature: float = Field(0.2, ge=0.0, le=2.0)

    @field_validator("max_findings", mode="before")
    @classmethod
    def _clamp_max_findings(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return max(1, min(int(v), 12))
        return v

    @property
    def enabled_categories(self) -> list[str]:
        out = []
        if self.detect_bias:
            out.append("bias")
        if self.detect_fallacies:
            out.append("fallacy")
        if self.detect_tactics:
            out.append("tactic")
        return out

    def cache_key(self) -> str:
        return self.model_dump_json()


class AnalyzeRequest(BaseModel):
    """POST /api/analyze request body."""
    text: str = Field(..., max_length=50_000,
                      description="The text to analyze (up to 50,000 characters).")
    settings: AnalysisSettings = Field(default_factory=AnalysisSettings)

    model_config = {"json_schema_extra": {"examples": [
        {"text": "Everyone knows the plan failed, so its author must be incompetent.",
         "settings": {"detectBias": True, "maxFindings": 5}},
    ]}}


class AnalyzeResponse(BaseModel):
    """POST /api/analyze response body."""
    text: str
    overall: dict[str, int]
    findings: list[dict]
    dropped_count: int = 0


# ============================================================
# HIGHLIGHT
# ============================================================

class HighlightRequest(BaseModel):
    """POST /api/highlight request body."""
    text: str = Field(..., max_length=50_000)
    findings: list[Any] = Field(default_factory=list,
                                description="Raw findings; invalid ones are dropped.")
    mode: str = Field("partition", pattern="^(partition|canonical)$")
    enabled_categories: Optional[list[str]] = None
    fuzzy: bool = Field(False, description="Re-anchor quotes instead of trusting offsets.")
    selected_id: Optional[str] = None


class SegmentResponse(BaseModel):
    start: int
    end: int
    annotation_ids: list[str]
    primary_id: Optional[str] = None


class RunResponse(BaseModel):
    start: int
    end: int
    text: str
    highlighted: bool
    annotation_id: Optional[str] = None
    annotation_ids: list[str] = []
    category: Optional[str] = None
    background: Optional[str] = None
    tooltip: Optional[str] = None


class HighlightResponse(BaseModel):
    """POST /api/highlight response body."""
    findings: list[dict]
    segments: list[SegmentResponse]
    runs: list[RunResponse]
    html: str
    dropped_count: int


# ============================================================
# PALETTE / HEALTH
# ============================================================

class PaletteResponse(BaseModel):
    categories: dict[str, dict[str, Any]]
    severity_weights: dict[str, float]
    alpha_cap: float
    css_variables: dict[str, str]


class HealthResponse(BaseModel):
    status: str
    version: str
    llm_provider: str
    cache: dict
