"""
SpanLens — Annotation Highlighting Engine

Turns untrusted classifier findings (bias, fallacy, persuasion tactic)
into a renderable, non-overlapping highlight layer over the source text.

Public API:
  - validate:     Repair/validate raw findings against the text
  - resolve:      Canonical set or full render partition of the text
  - blend:        OKLab color mix for overlapping findings
  - render:       Segments + colors -> inline runs with stable ids
  - render_fuzzy: Re-anchor quotes when offsets can't be trusted
  - SelectionCorrelator: List <-> highlight selection and flash
  - DocumentView: Full recompute-and-replace orchestration
  - analyze_text: One upstream classifier exchange
  - LLMProvider:  Abstract LLM interface for provider swapping

Usage:
    from spanlens import validate, resolve, render
    findings = validate(text, raw_findings)
    runs = render(text, resolve(text, findings))
"""

__version__ = "0.3.0"

from spanlens.errors import SpanLensError, ContractViolation
from spanlens.schemas.annotation import Annotation
from spanlens.validator import validate
from spanlens.resolver import (
    CANONICAL,
    PARTITION,
    Segment,
    canonicalize,
    resolve,
)
from spanlens.colors import BlendedColor, blend
from spanlens.renderer import (
    RenderedRun,
    RenderPass,
    RenderTarget,
    HtmlTarget,
    render,
    render_fuzzy,
    to_html,
)
from spanlens.selection import SelectionCorrelator, SelectionView
from spanlens.view import DocumentView
from spanlens.analyzer import analyze_text
from spanlens.llm import LLMProvider
from spanlens.llm.factory import get_provider

__all__ = [
    "SpanLensError",
    "ContractViolation",
    "Annotation",
    "validate",
    "CANONICAL",
    "PARTITION",
    "Segment",
    "canonicalize",
    "resolve",
    "BlendedColor",
    "blend",
    "RenderedRun",
    "RenderPass",
    "RenderTarget",
    "HtmlTarget",
    "render",
    "render_fuzzy",
    "to_html",
    "SelectionCorrelator",
    "SelectionView",
    "DocumentView",
    "analyze_text",
    "LLMProvider",
    "get_provider",
]
