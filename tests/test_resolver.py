"""
Resolver Tests — Canonical Set and Render Partition

Tests spanlens.resolver:
  1. Primary selection (severity > confidence > length)
  2. Partition exhaustiveness, ordering and merging
  3. Canonical sweep and capacity
  4. Category filtering and idempotence
"""

from __future__ import annotations

import pytest

from spanlens.errors import ContractViolation
from spanlens.resolver import (
    CANONICAL,
    PARTITION,
    Segment,
    canonical_score,
    canonicalize,
    filter_categories,
    partition,
    pick_primary,
    primary_score,
    resolve,
    severity_rank,
)
from spanlens.schemas.annotation import Annotation


TEXT = "0123456789abcdefghijABCDEFGHIJ"


def ann(
    id: str,
    start: int,
    end: int,
    *,
    text: str = TEXT,
    severity: str = "medium",
    confidence: float = 0.5,
    category: str = "bias",
) -> Annotation:
    return Annotation(
        id=id,
        category=category,
        category_id=f"{category}_sample",
        label=id.upper(),
        severity=severity,
        confidence=confidence,
        start=start,
        end=end,
        quote=text[start:end],
        explanation=f"Explanation for {id}",
    )


def assert_exhaustive(text: str, segments: list[Segment]):
    assert "".join(s.slice(text) for s in segments) == text
    assert segments[0].start == 0
    assert segments[-1].end == len(text)
    for prev, cur in zip(segments, segments[1:]):
        assert prev.end == cur.start
        assert prev.start < prev.end


# ============================================================
# SCORING
# ============================================================

class TestScoring:

    def test_severity_rank_order(self):
        assert severity_rank("low") < severity_rank("medium") < severity_rank("high")

    def test_unknown_severity_ranks_as_low(self):
        assert severity_rank("unknown") == severity_rank("low")

    def test_severity_dominates_confidence(self):
        high = ann("a", 10, 20, severity="high", confidence=0.0)
        low = ann("b", 10, 20, severity="low", confidence=1.0)
        assert primary_score(high) > primary_score(low)
        assert canonical_score(high) > canonical_score(low)

    def test_confidence_dominates_length(self):
        short = ann("a", 10, 11, confidence=0.51)
        long = ann("b", 0, 30, confidence=0.5)
        assert primary_score(short) > primary_score(long)

    def test_pick_primary_high_beats_low(self):
        a = ann("A", 10, 20, severity="high", confidence=0.9)
        b = ann("B", 10, 20, severity="low", confidence=0.95)
        assert pick_primary([b, a]).id == "A"

    def test_pick_primary_confidence_breaks_severity_tie(self):
        a = ann("A", 10, 20, confidence=0.6)
        b = ann("B", 10, 20, confidence=0.7)
        assert pick_primary([a, b]).id == "B"

    def test_pick_primary_longer_breaks_exact_tie(self):
        a = ann("A", 0, 10)
        b = ann("B", 0, 20)
        assert pick_primary([a, b]).id == "B"

    def test_pick_primary_full_tie_keeps_first(self):
        a = ann("A", 0, 10)
        b = ann("B", 0, 10)
        assert pick_primary([a, b]).id == "A"
        assert pick_primary([b, a]).id == "B"

    def test_pick_primary_empty(self):
        assert pick_primary([]) is None


# ============================================================
# PARTITION MODE
# ============================================================

class TestPartition:

    def test_overlap_on_identical_range(self):
        a = ann("A", 10, 20, severity="high", confidence=0.9)
        b = ann("B", 10, 20, severity="low", confidence=0.95)
        segments = resolve(TEXT, [a, b])

        assert [(s.start, s.end) for s in segments] == [(0, 10), (10, 20), (20, 30)]
        middle = segments[1]
        assert {x.id for x in middle.covering} == {"A", "B"}
        assert middle.primary.id == "A"
        assert segments[0].is_plain and segments[2].is_plain

    def test_nested_annotation_splits_outer(self):
        outer = ann("outer", 0, 20)
        inner = ann("inner", 5, 10, severity="high")
        segments = resolve(TEXT, [outer, inner])

        assert [(s.start, s.end) for s in segments] == [(0, 5), (5, 10), (10, 20), (20, 30)]
        assert [s.signature for s in segments] == ["outer", "inner|outer", "outer", ""]
        assert segments[1].primary.id == "inner"
        assert segments[0].primary.id == "outer"

    def test_partial_overlap(self):
        a = ann("A", 2, 12)
        b = ann("B", 8, 18, category="fallacy")
        segments = resolve(TEXT, [a, b])
        assert [s.signature for s in segments] == ["", "A", "A|B", "B", ""]
        assert_exhaustive(TEXT, segments)

    def test_no_annotations_single_plain_segment(self):
        segments = resolve(TEXT, [])
        assert segments == [Segment(start=0, end=len(TEXT))]

    def test_empty_text_no_segments(self):
        assert resolve("", []) == []

    def test_full_coverage_has_no_plain_segments(self):
        segments = resolve(TEXT, [ann("all", 0, len(TEXT))])
        assert len(segments) == 1
        assert segments[0].primary.id == "all"

    def test_adjacent_equal_signatures_merge(self):
        """The same finding reported as two touching pieces is one segment."""
        first = ann("dup", 0, 5)
        second = ann("dup", 5, 10)
        segments = partition(TEXT, [first, second])
        assert [(s.start, s.end) for s in segments] == [(0, 10), (10, 30)]

    def test_touching_different_findings_not_merged(self):
        segments = resolve(TEXT, [ann("A", 0, 10), ann("B", 10, 20)])
        assert [s.signature for s in segments] == ["A", "B", ""]

    def test_exhaustive_and_ordered(self):
        annotations = [
            ann("a", 0, 7, severity="low"),
            ann("b", 3, 25, category="tactic"),
            ann("c", 12, 14, severity="high", category="fallacy"),
            ann("d", 12, 30, confidence=0.9),
            ann("e", 29, 30),
        ]
        segments = resolve(TEXT, annotations)
        assert_exhaustive(TEXT, segments)
        for seg in segments:
            assert seg.primary is None or seg.primary in seg.covering
            for a in seg.covering:
                assert a.start <= seg.start and seg.end <= a.end

    def test_primary_always_covers_when_covering_non_empty(self):
        segments = resolve(TEXT, [ann("A", 0, 10), ann("B", 5, 15)])
        for seg in segments:
            assert (seg.primary is None) == seg.is_plain


# ============================================================
# CANONICAL MODE
# ============================================================

class TestCanonical:

    def test_overlap_keeps_higher_score(self):
        weak = ann("weak", 0, 10, severity="low", confidence=0.9)
        strong = ann("strong", 5, 15, severity="high", confidence=0.1)
        assert [a.id for a in canonicalize([weak, strong])] == ["strong"]

    def test_overlap_equal_score_keeps_earlier(self):
        first = ann("first", 0, 10)
        second = ann("second", 5, 15)
        assert [a.id for a in canonicalize([second, first])] == ["first"]

    def test_touching_spans_both_kept(self):
        a = ann("A", 0, 10)
        b = ann("B", 10, 20)
        assert [x.id for x in canonicalize([b, a])] == ["A", "B"]

    def test_sweep_order_longer_first_on_same_start(self):
        short = ann("short", 0, 5)
        long = ann("long", 0, 20)
        assert [a.id for a in canonicalize([short, long])] == ["long"]

    def test_result_never_overlaps(self):
        annotations = [
            ann("a", 0, 8, severity="low"),
            ann("b", 4, 12, severity="high"),
            ann("c", 11, 20),
            ann("d", 19, 30, confidence=0.99),
            ann("e", 25, 28, severity="high"),
        ]
        result = canonicalize(annotations)
        for prev, cur in zip(result, result[1:]):
            assert prev.end <= cur.start

    def test_capacity_keeps_top_scores_in_document_order(self):
        text = "x" * 100
        annotations = [
            ann(f"f{i:02d}", i * 5, i * 5 + 3, text=text,
                severity="high" if i % 5 == 0 else "low")
            for i in range(15)
        ]
        result = canonicalize(annotations, max_count=12)
        ids = [a.id for a in result]

        assert len(result) == 12
        assert {"f00", "f05", "f10"} <= set(ids)
        assert ids == sorted(ids)
        # Equal-score ties fall back to document order, so the last lows go
        assert ids[-2:] == ["f10", "f11"]

    def test_default_capacity_from_settings(self):
        text = "y" * 200
        annotations = [ann(f"f{i:02d}", i * 10, i * 10 + 5, text=text) for i in range(20)]
        assert len(canonicalize(annotations)) == 12

    def test_canonical_mode_segments_have_single_cover(self):
        annotations = [
            ann("a", 0, 12),
            ann("b", 6, 20, severity="high"),
            ann("c", 22, 28),
        ]
        segments = resolve(TEXT, annotations, CANONICAL)
        assert_exhaustive(TEXT, segments)
        assert all(len(s.covering) <= 1 for s in segments)
        assert [s.primary.id for s in segments if s.primary] == ["b", "c"]

    def test_canonical_max_count_passed_through(self):
        annotations = [ann("a", 0, 5), ann("b", 10, 15), ann("c", 20, 25)]
        segments = resolve(TEXT, annotations, CANONICAL, max_count=1)
        assert [s.primary.id for s in segments if s.primary] == ["a"]


# ============================================================
# FILTERS, MODES, CONTRACT
# ============================================================

class TestResolveOptions:

    def test_disabled_category_not_rendered(self):
        a = ann("A", 0, 10, category="bias")
        b = ann("B", 5, 15, category="fallacy")
        segments = resolve(TEXT, [a, b], enabled_categories={"fallacy"})
        assert [s.signature for s in segments] == ["", "B", ""]

    def test_filter_none_keeps_all(self):
        items = [ann("A", 0, 1), ann("B", 1, 2, category="tactic")]
        assert filter_categories(items, None) == items

    def test_filter_empty_set_drops_all(self):
        assert filter_categories([ann("A", 0, 1)], set()) == []

    def test_idempotent(self):
        annotations = [ann("a", 0, 12), ann("b", 6, 20, severity="high")]
        assert resolve(TEXT, annotations) == resolve(TEXT, annotations)
        assert resolve(TEXT, annotations, CANONICAL) == resolve(TEXT, annotations, CANONICAL)

    def test_input_order_irrelevant_to_segment_ranges(self):
        annotations = [ann("a", 0, 12), ann("b", 6, 20), ann("c", 3, 4)]
        forward = resolve(TEXT, annotations, PARTITION)
        backward = resolve(TEXT, list(reversed(annotations)), PARTITION)
        assert [(s.start, s.end, s.signature) for s in forward] == \
               [(s.start, s.end, s.signature) for s in backward]

    def test_unknown_mode_raises(self):
        with pytest.raises(ValueError, match="Unknown resolve mode"):
            resolve(TEXT, [], "overlay")

    def test_non_string_text_raises(self):
        with pytest.raises(ContractViolation):
            resolve(None, [])
