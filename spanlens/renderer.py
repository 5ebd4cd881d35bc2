"""
Highlight Renderer — Segments to Inline Runs

Turns resolved segments plus their blended colors into a flat list of
runs in document order. Highlighted runs carry the primary annotation's
id (for click correlation), every covering id (for selection rings),
a background color and a tooltip. Plain runs carry only text.

The render target cannot display nested ranges, so runs never overlap
and never leave gaps.

Also here:
  - RenderPass: the single mutating boundary. Every apply() clears the
    previous output (and its click handlers) before mounting new output.
  - Fuzzy fallback: re-anchors findings whose offsets were computed
    against a different string than the one on screen.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from html import escape
from typing import Any, Callable, Iterable, Iterator, Optional, Sequence

from spanlens.colors import BlendedColor, blend
from spanlens.errors import ContractViolation
from spanlens.logging import get_logger
from spanlens.resolver import PARTITION, Segment, resolve
from spanlens.schemas.annotation import Annotation
from spanlens.validator import validate_one

logger = get_logger("renderer")

ClickHandler = Callable[[str], None]


@dataclass(frozen=True)
class RenderedRun:
    """One contiguous run of displayed text."""
    start: int
    end: int
    text: str
    annotation_id: Optional[str] = None       # primary finding, click target
    annotation_ids: tuple[str, ...] = ()      # every covering finding
    category: Optional[str] = None            # primary's category
    categories: tuple[str, ...] = ()          # parallel to annotation_ids
    color: Optional[BlendedColor] = None
    tooltip: Optional[str] = None

    @property
    def highlighted(self) -> bool:
        return self.annotation_id is not None

    def category_of(self, annotation_id: str) -> Optional[str]:
        """Category of any finding covering this run."""
        for covering_id, category in zip(self.annotation_ids, self.categories):
            if covering_id == annotation_id:
                return category
        return None

    def to_json(self) -> dict:
        return {
            "start": self.start,
            "end": self.end,
            "text": self.text,
            "highlighted": self.highlighted,
            "annotation_id": self.annotation_id,
            "annotation_ids": list(self.annotation_ids),
            "category": self.category,
            "background": self.color.css() if self.color else None,
            "tooltip": self.tooltip,
        }


def build_tooltip(segment: Segment) -> str:
    primary = segment.primary
    if primary is None:
        return ""
    tooltip = primary.label or primary.category_id or primary.category
    if primary.explanation:
        tooltip = f"{tooltip}: {primary.explanation}"
    others = [a.label or a.category for a in segment.covering if a.id != primary.id]
    if others:
        tooltip += "\nAlso: " + ", ".join(others)
    return tooltip


def render(
    text: str,
    segments: Sequence[Segment],
    colors: Optional[Sequence[Optional[BlendedColor]]] = None,
) -> list[RenderedRun]:
    """
    Build inline runs for resolved segments.

    Args:
        text: The text the segments partition.
        segments: Output of spanlens.resolver.resolve, in order.
        colors: One color per segment (None for plain). Blended from
            each segment's covering set when omitted.
    """
    if not isinstance(text, str):
        raise ContractViolation(f"text must be a str, got {type(text).__name__}")
    if colors is None:
        colors = [blend(seg.covering) for seg in segments]
    if len(colors) != len(segments):
        raise ContractViolation(
            f"got {len(colors)} colors for {len(segments)} segments"
        )

    runs = []
    for seg, color in zip(segments, colors):
        if seg.primary is None or color is None:
            runs.append(RenderedRun(start=seg.start, end=seg.end,
                                    text=seg.slice(text)))
            continue
        runs.append(RenderedRun(
            start=seg.start,
            end=seg.end,
            text=seg.slice(text),
            annotation_id=seg.primary.id,
            annotation_ids=tuple(a.id for a in seg.covering),
            category=seg.primary.category,
            categories=tuple(a.category for a in seg.covering),
            color=color,
            tooltip=build_tooltip(seg),
        ))
    return runs


# ============================================================
# HTML OUTPUT
# ============================================================

def _run_html(run: RenderedRun) -> str:
    if not run.highlighted:
        return escape(run.text)
    return (
        f'<mark class="highlight highlight-{escape(run.category or "")}" '
        f'data-annotation-id="{escape(run.annotation_id)}" '
        f'style="background-color: {run.color.css()}" '
        f'title="{escape(run.tooltip or "")}">'
        f"{escape(run.text)}</mark>"
    )


def to_html(runs: Sequence[RenderedRun], selected_id: Optional[str] = None) -> str:
    """
    Serialize runs to inline HTML.

    Consecutive runs that include the selected finding are wrapped in a
    single ring span so the selection reads as one highlight across
    internal boundaries. The ring takes the selected finding's category,
    which need not be the primary of the runs it wraps.
    """
    parts = []
    i = 0
    while i < len(runs):
        run = runs[i]
        if selected_id is None or selected_id not in run.annotation_ids:
            parts.append(_run_html(run))
            i += 1
            continue

        group = []
        while i < len(runs) and selected_id in runs[i].annotation_ids:
            group.append(_run_html(runs[i]))
            i += 1
        parts.append(
            f'<span class="selected-ring ring-{escape(run.category_of(selected_id) or "")}">'
            f'{"".join(group)}</span>'
        )
    return "".join(parts)


# ============================================================
# RENDER PASS
# ============================================================

class RenderTarget(ABC):
    """Where rendered runs are installed. Implementations own any listeners."""

    @abstractmethod
    def clear(self) -> None:
        """Remove all previously mounted output and its handlers."""
        ...

    @abstractmethod
    def mount(self, runs: Sequence[RenderedRun],
              on_click: Optional[ClickHandler] = None) -> None:
        """Install runs. Only called on a cleared target."""
        ...


class HtmlTarget(RenderTarget):
    """In-memory HTML target with a click-handler table keyed by annotation id."""

    def __init__(self):
        self.html = ""
        self.selected_id: Optional[str] = None
        self._handlers: dict[str, ClickHandler] = {}

    def clear(self) -> None:
        self.html = ""
        self._handlers.clear()

    def mount(self, runs, on_click=None) -> None:
        self.html = to_html(runs, self.selected_id)
        if on_click is None:
            return
        for run in runs:
            if run.highlighted:
                self._handlers[run.annotation_id] = on_click

    @property
    def clickable_ids(self) -> set[str]:
        return set(self._handlers)

    def click(self, annotation_id: str) -> bool:
        """Simulate a click on a highlight. False if no such highlight is mounted."""
        handler = self._handlers.get(annotation_id)
        if handler is None:
            return False
        handler(annotation_id)
        return True


class RenderPass:
    """Replace-in-full application of runs to a target."""

    def __init__(self, target: RenderTarget):
        self.target = target
        self.generation = 0
        self._runs: tuple[RenderedRun, ...] = ()

    @property
    def runs(self) -> tuple[RenderedRun, ...]:
        return self._runs

    def apply(self, runs: Iterable[RenderedRun],
              on_click: Optional[ClickHandler] = None) -> None:
        runs = tuple(runs)
        self.target.clear()
        self._runs = ()
        self.target.mount(runs, on_click)
        self._runs = runs
        self.generation += 1


# ============================================================
# FUZZY FALLBACK
# ============================================================

# Quoted sub-phrases inside a finding's quote: "...", “...”, ‘...’
_QUOTED = re.compile(r'"([^"]+)"|“([^”]+)”|‘([^’]+)’')


def _candidate_phrases(quote: str) -> Iterator[str]:
    yield quote
    words = quote.split()
    for size in range(min(8, len(words)), 3, -1):
        for i in range(len(words) - size + 1):
            yield " ".join(words[i:i + size])
    for i in range(len(words) - 2):
        yield " ".join(words[i:i + 3])
    for match in _QUOTED.finditer(quote):
        phrase = next(g for g in match.groups() if g)
        yield phrase.strip()


def locate_quote(display_text: str, quote: str) -> Optional[tuple[int, int]]:
    """
    Find a quote in text it was not necessarily computed against.

    Tries the exact quote, then 8- down to 4-word runs, then 3-word runs,
    then a quoted sub-phrase. The first occurrence of the first matching
    candidate wins, so a common short phrase can anchor to the wrong place.
    """
    if not quote:
        return None
    for phrase in _candidate_phrases(quote):
        if not phrase:
            continue
        idx = display_text.find(phrase)
        if idx != -1:
            return idx, idx + len(phrase)
    return None


def relocate(
    display_text: str,
    annotations: Iterable[Any],
) -> list[Annotation]:
    """Re-anchor findings onto display_text, possibly to a shorter span."""
    placed = []
    for item in annotations:
        raw = item.to_json() if isinstance(item, Annotation) else item
        if not isinstance(raw, Mapping):
            continue
        quote = raw.get("quote")
        found = locate_quote(display_text, quote) if isinstance(quote, str) else None
        if found is None:
            logger.info(
                "No match in render target for finding %s", raw.get("id"),
                extra={"annotation_id": raw.get("id"), "reason": "no_match"},
            )
            continue
        start, end = found
        annotation = validate_one(display_text, {
            **raw, "start": start, "end": end, "quote": display_text[start:end],
        })
        if annotation is not None:
            placed.append(annotation)
    return placed


def render_fuzzy(
    display_text: str,
    annotations: Iterable[Any],
    enabled_categories: Optional[Iterable[str]] = None,
) -> list[RenderedRun]:
    """relocate -> partition -> blend -> render, for untrusted offsets."""
    placed = relocate(display_text, annotations)
    segments = resolve(display_text, placed, PARTITION,
                       enabled_categories=enabled_categories)
    return render(display_text, segments)
