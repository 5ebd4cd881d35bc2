"""
Span Validator — Repair and Validate Upstream Annotations

Upstream findings are untrusted: offsets can be out of range, reversed,
or computed against a slightly different string. Each finding is either
repaired into a valid Annotation or dropped.

Repair rules:
  1. Clamp start/end into [0, len(text)], swap if reversed
  2. If text[start:end] != quote, re-anchor at the first exact
     occurrence of quote in text
  3. If the slice still differs (or quote is empty), drop

Nothing is invented or force-fitted. Labels, severity and confidence
pass through untouched.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from pydantic import ValidationError

from spanlens.errors import ContractViolation
from spanlens.logging import get_logger
from spanlens.schemas.annotation import Annotation

logger = get_logger("validator")


def normalize_newlines(text: str) -> str:
    """Offsets always refer to LF-only text."""
    return text.replace("\r\n", "\n")


def _as_offset(value: Any) -> int:
    # bool is an int subclass; treat it as garbage like any other non-int
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # JSON numbers like 14.0 are whole offsets
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return 0


def _repair_offsets(text: str, raw: Mapping) -> Optional[tuple[int, int]]:
    """Return corrected (start, end) for a raw finding, or None to drop it."""
    n = len(text)
    start = max(0, min(_as_offset(raw.get("start")), n))
    end = max(0, min(_as_offset(raw.get("end")), n))
    if end < start:
        start, end = end, start

    quote = raw.get("quote")
    if not isinstance(quote, str) or not quote:
        return None

    if text[start:end] != quote:
        idx = text.find(quote)
        if idx != -1:
            start, end = idx, idx + len(quote)

    if text[start:end] != quote:
        return None
    return start, end


def validate_one(text: str, raw: Any) -> Optional[Annotation]:
    """Repair and validate a single raw finding. Returns None when dropped."""
    if isinstance(raw, Annotation):
        raw = raw.to_json()
    if not isinstance(raw, Mapping):
        logger.debug("Dropped non-object finding", extra={"reason": "not_an_object"})
        return None

    annotation_id = raw.get("id")
    offsets = _repair_offsets(text, raw)
    if offsets is None:
        quote = raw.get("quote")
        reason = "degenerate_span" if not quote else "offset_mismatch"
        logger.debug(
            "Dropped finding %s", annotation_id,
            extra={"annotation_id": annotation_id, "reason": reason},
        )
        return None

    start, end = offsets
    try:
        return Annotation.model_validate({**raw, "start": start, "end": end})
    except ValidationError as e:
        logger.debug(
            "Dropped malformed finding %s", annotation_id,
            extra={
                "annotation_id": annotation_id,
                "reason": "malformed",
                "error": "; ".join(err["msg"] for err in e.errors()),
            },
        )
        return None


def validate(text: str, raw_annotations: Any) -> list[Annotation]:
    """
    Validate raw findings against the source text.

    Args:
        text: The exact source text the findings refer to.
        raw_annotations: List of finding dicts (or Annotation instances).

    Returns:
        Validated annotations in input order. Never longer than the input.

    Raises:
        ContractViolation: text is not a string or the findings are not a list.
    """
    if not isinstance(text, str):
        raise ContractViolation(
            f"text must be a str, got {type(text).__name__}"
        )
    if not isinstance(raw_annotations, (list, tuple)):
        raise ContractViolation(
            f"annotations must be a list, got {type(raw_annotations).__name__}"
        )

    validated = []
    for raw in raw_annotations:
        annotation = validate_one(text, raw)
        if annotation is not None:
            validated.append(annotation)

    dropped = len(raw_annotations) - len(validated)
    logger.info(
        "Validated %d/%d findings", len(validated), len(raw_annotations),
        extra={"kept": len(validated), "dropped": dropped},
    )
    return validated
