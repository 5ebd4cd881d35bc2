"""
Document View — One Analyzed Document, Rendered

Owns the mutable state of a single document on screen: text, the
validated findings, the active category filter and the selection.
Every change recomputes validate -> partition -> blend -> render from
scratch and replaces the target's output through a RenderPass.
"""

from __future__ import annotations

from typing import Iterable, Optional

from spanlens.errors import ContractViolation
from spanlens.logging import get_logger
from spanlens.renderer import HtmlTarget, RenderPass, RenderTarget, RenderedRun, render
from spanlens.resolver import PARTITION, Segment, filter_categories, resolve
from spanlens.schemas.annotation import CATEGORIES, Annotation
from spanlens.selection import SelectionCorrelator, SelectionView
from spanlens.validator import normalize_newlines, validate

logger = get_logger("view")


class DocumentView:
    """Single-threaded document state with full recompute on every change."""

    def __init__(
        self,
        target: Optional[RenderTarget] = None,
        selection_view: Optional[SelectionView] = None,
        categories: Iterable[str] = CATEGORIES,
        correlator: Optional[SelectionCorrelator] = None,
    ):
        self.target = target if target is not None else HtmlTarget()
        self.render_pass = RenderPass(self.target)
        self.correlator = correlator or SelectionCorrelator(view=selection_view)
        self.correlator.subscribe(self._on_selection_change)

        self._text = ""
        self._annotations: list[Annotation] = []
        self._enabled: dict[str, bool] = {c: True for c in categories}
        self._segments: list[Segment] = []
        self._dropped = 0

    # --- inputs ------------------------------------------------

    def load(self, text: str, raw_findings: Optional[list] = None) -> None:
        """Show a new document. Line endings are normalized once, here."""
        if not isinstance(text, str):
            raise ContractViolation(f"text must be a str, got {type(text).__name__}")
        self._text = normalize_newlines(text)
        self._set_findings([] if raw_findings is None else raw_findings)
        self.recompute()

    def set_findings(self, raw_findings: list) -> None:
        """Replace the findings with a new analysis batch."""
        self._set_findings(raw_findings)
        self.recompute()

    def set_category_enabled(self, category: str, enabled: bool) -> None:
        self._enabled[category] = enabled
        self.correlator.set_enabled_categories(self.enabled_categories)
        self.recompute()

    def toggle_category(self, category: str) -> bool:
        enabled = not self._enabled.get(category, True)
        self.set_category_enabled(category, enabled)
        return enabled

    def select(self, annotation_id: str) -> bool:
        return self.correlator.select(annotation_id)

    def click(self, annotation_id: str) -> bool:
        return self.correlator.on_highlight_click(annotation_id)

    # --- derived -----------------------------------------------

    @property
    def text(self) -> str:
        return self._text

    @property
    def annotations(self) -> list[Annotation]:
        return list(self._annotations)

    @property
    def dropped_count(self) -> int:
        return self._dropped

    @property
    def enabled_categories(self) -> frozenset[str]:
        # Categories the filter has never seen stay visible
        seen = {a.category for a in self._annotations} | set(self._enabled)
        return frozenset(c for c in seen if self._enabled.get(c, True))

    @property
    def visible_annotations(self) -> list[Annotation]:
        return filter_categories(self._annotations, self.enabled_categories)

    @property
    def segments(self) -> list[Segment]:
        return list(self._segments)

    @property
    def runs(self) -> tuple[RenderedRun, ...]:
        return self.render_pass.runs

    @property
    def html(self) -> str:
        return getattr(self.target, "html", "")

    # --- recompute ---------------------------------------------

    def _set_findings(self, raw_findings: list) -> None:
        self._annotations = validate(self._text, raw_findings)
        self._dropped = len(raw_findings) - len(self._annotations)
        self.correlator.set_annotations(self._annotations)
        self.correlator.set_enabled_categories(self.enabled_categories)

    def recompute(self) -> None:
        self._segments = resolve(
            self._text, self._annotations, PARTITION,
            enabled_categories=self.enabled_categories,
        )
        runs = render(self._text, self._segments)
        self._apply(runs)
        logger.debug(
            "Rendered %d segments", len(self._segments),
            extra={"segments_count": len(self._segments),
                   "findings_count": len(self._annotations)},
        )

    def _apply(self, runs: Iterable[RenderedRun]) -> None:
        if isinstance(self.target, HtmlTarget):
            self.target.selected_id = self.correlator.selected_id
        self.render_pass.apply(runs, on_click=self.click)
        self.correlator.bind_runs(self.render_pass.runs)

    def _on_selection_change(self, annotation_id: Optional[str]) -> None:
        # Re-mount so the selection ring follows the new selection
        if self.render_pass.generation:
            self._apply(self.render_pass.runs)
