"""
Overlap Resolver — Canonical Set and Render Partition

One module, two modes over validated annotations:

  - canonical: a strictly non-overlapping annotation set, capped at a
    maximum count. Used to produce the definitive findings list returned
    by the analyzer.
  - partition: a full, exhaustive partition of the text into segments,
    each carrying every annotation that covers it plus one primary.
    Used for rendering, where categories may legitimately overlap.

Ranking in both modes is severity first, then confidence, then a
length tie-break. Only that ordering matters; the constants are tunable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from spanlens.config import settings
from spanlens.errors import ContractViolation
from spanlens.logging import get_logger
from spanlens.schemas.annotation import Annotation

logger = get_logger("resolver")

CANONICAL = "canonical"
PARTITION = "partition"
MODES = (CANONICAL, PARTITION)

_SEVERITY_RANK = {"low": 1, "medium": 2, "high": 3}


@dataclass(frozen=True)
class Segment:
    """A maximal sub-range of text with a constant covering set."""
    start: int
    end: int
    covering: tuple[Annotation, ...] = ()
    primary: Optional[Annotation] = None

    @property
    def signature(self) -> str:
        return "|".join(sorted(a.id for a in self.covering))

    @property
    def is_plain(self) -> bool:
        return not self.covering

    def slice(self, text: str) -> str:
        return text[self.start:self.end]


def severity_rank(severity: str) -> int:
    return _SEVERITY_RANK.get(severity, 1)


def canonical_score(annotation: Annotation) -> float:
    return severity_rank(annotation.severity) * 10 + annotation.confidence


def primary_score(annotation: Annotation) -> float:
    return (
        severity_rank(annotation.severity) * 1000
        + annotation.confidence * 100
        + annotation.length * 0.001
    )


def pick_primary(covering: Iterable[Annotation]) -> Optional[Annotation]:
    """Highest primary_score wins; ties keep the earliest candidate."""
    best = None
    best_score = float("-inf")
    for annotation in covering:
        score = primary_score(annotation)
        if score > best_score:
            best, best_score = annotation, score
    return best


# ============================================================
# CANONICAL MODE
# ============================================================

def canonicalize(
    annotations: Sequence[Annotation],
    max_count: Optional[int] = None,
) -> list[Annotation]:
    """
    Reduce annotations to a strictly non-overlapping set.

    Sweep in (start asc, end desc) order. An overlapping candidate only
    replaces the last accepted annotation when it scores strictly higher.
    The survivors are capped at max_count by score and returned in
    document order.
    """
    if max_count is None:
        max_count = settings.MAX_FINDINGS

    ordered = sorted(annotations, key=lambda a: (a.start, -a.end))

    kept: list[Annotation] = []
    for candidate in ordered:
        if not kept or candidate.start >= kept[-1].end:
            kept.append(candidate)
            continue
        if canonical_score(candidate) > canonical_score(kept[-1]):
            kept[-1] = candidate

    if len(kept) > max_count:
        # Stable sort: equal scores keep document order
        ranked = sorted(
            range(len(kept)), key=lambda i: canonical_score(kept[i]), reverse=True,
        )
        survivors = sorted(ranked[:max(0, max_count)])
        logger.debug(
            "Truncated %d findings over capacity", len(kept) - len(survivors),
            extra={"mode": CANONICAL, "dropped": len(kept) - len(survivors)},
        )
        kept = [kept[i] for i in survivors]

    return kept


# ============================================================
# RENDER-PARTITION MODE
# ============================================================

def _boundaries(text_len: int, annotations: Sequence[Annotation]) -> list[int]:
    points = {0, text_len}
    for a in annotations:
        start = max(0, min(text_len, a.start))
        end = max(0, min(text_len, a.end))
        if end > start:
            points.add(start)
            points.add(end)
    return sorted(points)


def partition(text: str, annotations: Sequence[Annotation]) -> list[Segment]:
    """Partition the whole text into merged, exhaustive segments."""
    if not text:
        return []

    points = _boundaries(len(text), annotations)

    segments: list[Segment] = []
    for a, b in zip(points, points[1:]):
        if b <= a:
            continue
        covering = tuple(f for f in annotations if f.start <= a and f.end >= b)
        seg = Segment(start=a, end=b, covering=covering,
                      primary=pick_primary(covering))

        prev = segments[-1] if segments else None
        if prev is not None and prev.end == seg.start and prev.signature == seg.signature:
            segments[-1] = Segment(
                start=prev.start, end=seg.end,
                covering=prev.covering, primary=prev.primary,
            )
        else:
            segments.append(seg)

    return segments


def filter_categories(
    annotations: Sequence[Annotation],
    enabled_categories: Optional[Iterable[str]],
) -> list[Annotation]:
    if enabled_categories is None:
        return list(annotations)
    enabled = set(enabled_categories)
    return [a for a in annotations if a.category in enabled]


def resolve(
    text: str,
    annotations: Sequence[Annotation],
    mode: str = PARTITION,
    *,
    enabled_categories: Optional[Iterable[str]] = None,
    max_count: Optional[int] = None,
) -> list[Segment]:
    """
    Resolve validated annotations into ordered, non-overlapping segments.

    Args:
        text: The source text the annotations were validated against.
        annotations: Output of spanlens.validator.validate.
        mode: "partition" keeps overlapping categories on shared segments;
            "canonical" first reduces to a non-overlapping capped set.
        enabled_categories: Active category filter. None means all.
        max_count: Canonical-mode cap (defaults to settings.MAX_FINDINGS).

    Returns:
        Segments covering [0, len(text)) exactly once, in order.
    """
    if not isinstance(text, str):
        raise ContractViolation(f"text must be a str, got {type(text).__name__}")
    if mode not in MODES:
        raise ValueError(f"Unknown resolve mode: {mode!r} (expected one of {MODES})")

    active = filter_categories(annotations, enabled_categories)
    if mode == CANONICAL:
        active = canonicalize(active, max_count=max_count)

    segments = partition(text, active)
    logger.debug(
        "Resolved %d segments", len(segments),
        extra={"mode": mode, "segments_count": len(segments),
               "findings_count": len(active)},
    )
    return segments
