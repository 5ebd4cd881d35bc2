"""
Selection Tests — List/Highlight Correlation and Flash Revert
"""

from __future__ import annotations

import threading

from spanlens.renderer import render
from spanlens.resolver import resolve
from spanlens.schemas.annotation import Annotation
from spanlens.selection import HIGHLIGHT, LIST, SelectionCorrelator, SelectionView


TEXT = "They always lie, and everyone knows the other side wants chaos."


def ann(id, start, end, category="bias", severity="medium") -> Annotation:
    return Annotation(
        id=id, category=category, severity=severity, confidence=0.7,
        start=start, end=end, quote=TEXT[start:end],
    )


A = ann("a", 5, 15)                       # "always lie"
B = ann("b", 21, 35, category="fallacy")  # "everyone knows"
C = ann("c", 36, 62, category="tactic")   # "the other side wants chaos"


class FakeView(SelectionView):

    def __init__(self):
        self.events = []

    def scroll_highlight_into_view(self, run):
        self.events.append(("scroll_highlight", run.annotation_id))

    def scroll_list_entry_into_view(self, annotation_id):
        self.events.append(("scroll_list", annotation_id))

    def set_emphasis(self, surface, annotation_id, active):
        self.events.append(("emphasis", surface, annotation_id, active))


class FakeHandle:

    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Collects scheduled callbacks instead of starting timers."""

    def __init__(self):
        self.scheduled = []

    def __call__(self, delay, callback):
        handle = FakeHandle()
        self.scheduled.append((delay, callback, handle))
        return handle

    def fire(self, index=-1):
        _, callback, _ = self.scheduled[index]
        callback()


def make_correlator(annotations=(A, B, C)):
    view = FakeView()
    scheduler = FakeScheduler()
    correlator = SelectionCorrelator(view=view, flash_seconds=1.8, scheduler=scheduler)
    correlator.set_annotations(annotations)
    correlator.bind_runs(render(TEXT, resolve(TEXT, list(annotations))))
    return correlator, view, scheduler


# ============================================================
# LIST -> HIGHLIGHT
# ============================================================

class TestSelectFromList:

    def test_select_scrolls_and_flashes_highlight(self):
        correlator, view, scheduler = make_correlator()
        assert correlator.select("b") is True

        assert correlator.selected_id == "b"
        assert correlator.selected == B
        assert view.events == [
            ("scroll_highlight", "b"),
            ("emphasis", HIGHLIGHT, "b", True),
        ]
        assert scheduler.scheduled[0][0] == 1.8

    def test_flash_reverts_when_timer_fires(self):
        correlator, view, scheduler = make_correlator()
        correlator.select("a")
        scheduler.fire()
        assert view.events[-1] == ("emphasis", HIGHLIGHT, "a", False)
        assert correlator.selected_id == "a"

    def test_unknown_id_refused(self):
        correlator, view, scheduler = make_correlator()
        assert correlator.select("zzz") is False
        assert correlator.selected_id is None
        assert view.events == []
        assert scheduler.scheduled == []

    def test_run_for_finds_first_run(self):
        correlator, _, _ = make_correlator()
        run = correlator.run_for("c")
        assert run.text == "the other side wants chaos"
        assert correlator.run_for("missing") is None

    def test_select_without_bound_run_still_flashes(self):
        correlator, view, _ = make_correlator()
        correlator.bind_runs(())
        correlator.select("a")
        assert view.events == [("emphasis", HIGHLIGHT, "a", True)]


# ============================================================
# HIGHLIGHT -> LIST
# ============================================================

class TestHighlightClick:

    def test_click_scrolls_list_and_flashes_entry(self):
        correlator, view, _ = make_correlator()
        assert correlator.on_highlight_click("c") is True
        assert correlator.selected_id == "c"
        assert view.events == [
            ("scroll_list", "c"),
            ("emphasis", LIST, "c", True),
        ]

    def test_click_hidden_refused(self):
        correlator, _, _ = make_correlator()
        correlator.set_enabled_categories({"bias"})
        assert correlator.on_highlight_click("c") is False


# ============================================================
# FLASH OVERLAP
# ============================================================

class TestFlashOverlap:

    def test_new_flash_cancels_previous(self):
        correlator, view, scheduler = make_correlator()
        correlator.select("a")
        correlator.on_highlight_click("b")

        first_handle = scheduler.scheduled[0][2]
        assert first_handle.cancelled
        assert ("emphasis", HIGHLIGHT, "a", False) in view.events
        assert view.events[-1] == ("emphasis", LIST, "b", True)

    def test_stale_revert_is_ignored(self):
        correlator, view, scheduler = make_correlator()
        correlator.select("a")
        correlator.select("b")
        before = list(view.events)

        scheduler.fire(0)
        assert view.events == before

        scheduler.fire(1)
        assert view.events[-1] == ("emphasis", HIGHLIGHT, "b", False)

    def test_timer_revert_waits_for_new_flash(self):
        """A revert firing on the timer thread mid-flash cannot clobber the newer flash."""
        correlator, view, scheduler = make_correlator()
        correlator.select("a")
        stale_revert = scheduler.scheduled[0][1]

        with correlator._lock:
            worker = threading.Thread(target=stale_revert)
            worker.start()
            worker.join(timeout=0.05)
            assert worker.is_alive()
            correlator.select("b")
        worker.join(timeout=1.0)
        assert not worker.is_alive()

        # The stale revert saw the newer token and left "b" pending
        assert view.events.count(("emphasis", HIGHLIGHT, "a", False)) == 1
        scheduler.fire()
        assert view.events[-1] == ("emphasis", HIGHLIGHT, "b", False)

    def test_synchronous_scheduler_reverts_immediately(self):
        view = FakeView()

        def immediate(delay, callback):
            callback()
            return FakeHandle()

        correlator = SelectionCorrelator(view=view, scheduler=immediate)
        correlator.set_annotations([A])
        correlator.select("a")
        assert view.events[-1] == ("emphasis", HIGHLIGHT, "a", False)
        correlator.clear()
        assert view.events.count(("emphasis", HIGHLIGHT, "a", False)) == 1

    def test_clear_cancels_pending_flash(self):
        correlator, view, scheduler = make_correlator()
        correlator.select("a")
        correlator.clear()
        assert correlator.selected_id is None
        assert scheduler.scheduled[0][2].cancelled
        assert view.events[-1] == ("emphasis", HIGHLIGHT, "a", False)


# ============================================================
# VISIBILITY
# ============================================================

class TestVisibility:

    def test_disabling_selected_category_clears_selection(self):
        correlator, _, _ = make_correlator()
        correlator.select("b")
        correlator.set_enabled_categories({"bias", "tactic"})
        assert correlator.selected_id is None

    def test_disabling_other_category_keeps_selection(self):
        correlator, _, _ = make_correlator()
        correlator.select("b")
        correlator.set_enabled_categories({"fallacy"})
        assert correlator.selected_id == "b"

    def test_cannot_select_disabled_category(self):
        correlator, _, _ = make_correlator()
        correlator.set_enabled_categories({"bias"})
        assert correlator.select("b") is False
        assert correlator.is_visible("a")
        assert not correlator.is_visible("b")

    def test_new_batch_without_selected_id_clears(self):
        correlator, _, _ = make_correlator()
        correlator.select("c")
        correlator.set_annotations([A, B])
        assert correlator.selected_id is None

    def test_new_batch_with_selected_id_keeps(self):
        correlator, _, _ = make_correlator()
        correlator.select("a")
        correlator.set_annotations([A])
        assert correlator.selected_id == "a"

    def test_none_filter_shows_all(self):
        correlator, _, _ = make_correlator()
        correlator.set_enabled_categories(set())
        correlator.set_enabled_categories(None)
        assert correlator.select("c")


# ============================================================
# LISTENERS
# ============================================================

class TestListeners:

    def test_listener_notified_on_change_only(self):
        correlator, _, _ = make_correlator()
        seen = []
        correlator.subscribe(seen.append)

        correlator.select("a")
        correlator.select("a")
        correlator.on_highlight_click("b")
        correlator.clear()
        assert seen == ["a", "b", None]

    def test_no_view_no_scheduling(self):
        scheduler = FakeScheduler()
        correlator = SelectionCorrelator(scheduler=scheduler)
        correlator.set_annotations([A])
        assert correlator.select("a")
        assert scheduler.scheduled == []

    def test_flash_seconds_defaults_to_settings(self):
        from spanlens.config import settings

        assert SelectionCorrelator().flash_seconds == settings.FLASH_SECONDS
