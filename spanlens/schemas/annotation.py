"""
Annotation Model

The validated annotation shape. Instances are only built from raw upstream
payloads by spanlens.validator, after offsets have been repaired against the
source text. Strict mode: a payload that does not already have the right
types is rejected, never coerced.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["low", "medium", "high"]

SEVERITIES: tuple[str, ...] = ("low", "medium", "high")
CATEGORIES: tuple[str, ...] = ("bias", "fallacy", "tactic")


class Annotation(BaseModel):
    """A classifier finding anchored to a character range of the source text."""

    model_config = ConfigDict(
        frozen=True, strict=True, populate_by_name=True, extra="ignore",
    )

    id: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1,
                          description="bias | fallacy | tactic (extensible)")
    category_id: str = Field("", alias="categoryId",
                             description="Subtype, e.g. 'ad_hominem'.")
    label: str = ""
    severity: Severity
    confidence: float = Field(..., ge=0.0, le=1.0)
    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)
    quote: str
    explanation: str = ""
    suggestion: Optional[str] = None

    @property
    def length(self) -> int:
        return self.end - self.start

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)
