"""
Selection Correlator — Findings List <-> Inline Highlights

Holds at most one selected finding id. Selecting from the list scrolls
the matching highlight into view and flashes it; clicking a highlight
selects its primary finding and flashes the list entry. The flash is
reverted after settings.FLASH_SECONDS.

The selection never points at an invisible finding: disabling the
selected finding's category (or dropping it from the annotation set)
clears the selection.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Callable, Iterable, Optional, Sequence

from spanlens.config import settings
from spanlens.logging import get_logger
from spanlens.renderer import RenderedRun
from spanlens.schemas.annotation import Annotation

logger = get_logger("selection")

HIGHLIGHT = "highlight"
LIST = "list"

Scheduler = Callable[[float, Callable[[], None]], object]
Listener = Callable[[Optional[str]], None]


class SelectionView(ABC):
    """Side effects the correlator drives on the two surfaces."""

    @abstractmethod
    def scroll_highlight_into_view(self, run: RenderedRun) -> None:
        ...

    @abstractmethod
    def scroll_list_entry_into_view(self, annotation_id: str) -> None:
        ...

    @abstractmethod
    def set_emphasis(self, surface: str, annotation_id: str, active: bool) -> None:
        ...


def _timer_scheduler(delay: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class SelectionCorrelator:
    """Bidirectional selection between the findings list and highlights."""

    def __init__(
        self,
        view: Optional[SelectionView] = None,
        flash_seconds: Optional[float] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.view = view
        self.flash_seconds = (
            settings.FLASH_SECONDS if flash_seconds is None else flash_seconds
        )
        self._schedule = scheduler or _timer_scheduler
        self._selected_id: Optional[str] = None
        self._annotations: dict[str, Annotation] = {}
        self._enabled: Optional[frozenset[str]] = None
        self._runs: tuple[RenderedRun, ...] = ()
        # Guards _pending against the timer thread; reentrant for nested flashes
        self._lock = threading.RLock()
        self._pending = None
        self._listeners: list[Listener] = []

    # --- state -------------------------------------------------

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def selected(self) -> Optional[Annotation]:
        if self._selected_id is None:
            return None
        return self._annotations.get(self._selected_id)

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def is_visible(self, annotation_id: str) -> bool:
        annotation = self._annotations.get(annotation_id)
        if annotation is None:
            return False
        return self._enabled is None or annotation.category in self._enabled

    def set_annotations(self, annotations: Iterable[Annotation]) -> None:
        self._annotations = {a.id: a for a in annotations}
        self._revalidate()

    def set_enabled_categories(self, categories: Optional[Iterable[str]]) -> None:
        self._enabled = None if categories is None else frozenset(categories)
        self._revalidate()

    def bind_runs(self, runs: Sequence[RenderedRun]) -> None:
        """Point the correlator at the latest render pass output."""
        self._runs = tuple(runs)

    def run_for(self, annotation_id: str) -> Optional[RenderedRun]:
        """First highlighted run that includes the finding."""
        for run in self._runs:
            if annotation_id in run.annotation_ids:
                return run
        return None

    def clear(self) -> None:
        self._cancel_pending()
        self._set(None)

    # --- events ------------------------------------------------

    def select(self, annotation_id: str) -> bool:
        """Selection from the findings list."""
        if not self.is_visible(annotation_id):
            logger.debug("Refused selection of hidden finding %s", annotation_id,
                         extra={"annotation_id": annotation_id})
            return False
        self._set(annotation_id)
        run = self.run_for(annotation_id)
        if run is not None and self.view is not None:
            self.view.scroll_highlight_into_view(run)
        self._flash(HIGHLIGHT, annotation_id)
        return True

    def on_highlight_click(self, annotation_id: str) -> bool:
        """Selection from an inline highlight (annotation_id is the run's primary)."""
        if not self.is_visible(annotation_id):
            return False
        self._set(annotation_id)
        if self.view is not None:
            self.view.scroll_list_entry_into_view(annotation_id)
        self._flash(LIST, annotation_id)
        return True

    # --- internals ---------------------------------------------

    def _set(self, annotation_id: Optional[str]) -> None:
        if annotation_id == self._selected_id:
            return
        self._selected_id = annotation_id
        for listener in list(self._listeners):
            listener(annotation_id)

    def _revalidate(self) -> None:
        if self._selected_id is not None and not self.is_visible(self._selected_id):
            logger.debug("Cleared selection of hidden finding %s", self._selected_id,
                         extra={"annotation_id": self._selected_id})
            self.clear()

    def _cancel_pending(self) -> None:
        with self._lock:
            if self._pending is None:
                return
            handle, surface, annotation_id, _ = self._pending
            self._pending = None
            cancel = getattr(handle, "cancel", None)
            if cancel is not None:
                cancel()
            if self.view is not None:
                self.view.set_emphasis(surface, annotation_id, False)

    def _flash(self, surface: str, annotation_id: str) -> None:
        with self._lock:
            self._cancel_pending()
            if self.view is None:
                return
            self.view.set_emphasis(surface, annotation_id, True)
            token = object()

            def revert():
                # Runs on the timer thread
                with self._lock:
                    if self._pending is None or self._pending[3] is not token:
                        return
                    self._pending = None
                    self.view.set_emphasis(surface, annotation_id, False)

            self._pending = (None, surface, annotation_id, token)
            handle = self._schedule(self.flash_seconds, revert)
            # A synchronous scheduler may already have reverted
            if self._pending is not None and self._pending[3] is token:
                self._pending = (handle, surface, annotation_id, token)
