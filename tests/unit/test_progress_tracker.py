"""Unit tests for weighted progress calculation."""

from itertools import permutations
from unittest.mock import MagicMock

import pytest

from lessonforge.models.schema import ProgressUpdate
from lessonforge.utils.progress_tracker import (
    DEFAULT_PHASE_WEIGHTS,
    LESSON_TYPE_SECTIONS,
    ProgressTracker,
    calculate_progress,
    get_applicable_sections,
    safe_progress_callback,
)


class TestApplicableSections:
    """Test lesson type to section mapping."""

    @pytest.mark.parametrize(
        "lesson_type,extra",
        [
            ("discussion", "discussion"),
            ("grammar", "grammar"),
            ("pronunciation", "pronunciation"),
            ("travel", "dialogue"),
            ("business", "dialogue"),
        ],
    )
    def test_extra_section_per_lesson_type(self, lesson_type, extra):
        sections = get_applicable_sections(lesson_type)
        assert sections[:5] == ["warmup", "vocabulary", "reading", "comprehension", "wrapup"]
        assert sections[5] == extra

    def test_unknown_type_has_base_sections_only(self):
        assert get_applicable_sections("cooking") == [
            "warmup", "vocabulary", "reading", "comprehension", "wrapup",
        ]


class TestCalculateProgress:
    """Test progress values for known completion states."""

    def test_discussion_progression(self):
        assert calculate_progress(["warmup"], None, "discussion") == 14
        assert calculate_progress(["warmup", "vocabulary"], None, "discussion") == 36
        assert calculate_progress(["warmup", "vocabulary", "reading"], None, "discussion") == 64

    def test_grammar_lesson(self):
        assert calculate_progress(["warmup", "vocabulary", "reading"], None, "grammar") == 60

    def test_pronunciation_lesson(self):
        assert calculate_progress(["warmup", "vocabulary"], None, "pronunciation") == 33

    def test_travel_lesson(self):
        completed = ["warmup", "vocabulary", "reading", "comprehension"]
        assert calculate_progress(completed, None, "travel") == 73

    def test_endpoints(self):
        assert calculate_progress([], None, "discussion") == 0
        everything = get_applicable_sections("discussion")
        assert calculate_progress(everything, None, "discussion") == 100

    def test_current_section_does_not_count(self):
        assert calculate_progress(["warmup"], "warmup", "discussion") == 0
        assert calculate_progress(["warmup", "vocabulary"], "vocabulary", "discussion") == 14

    def test_order_and_duplicates_are_irrelevant(self):
        names = ["warmup", "vocabulary", "reading"]
        expected = calculate_progress(names, None, "discussion")
        for order in permutations(names):
            assert calculate_progress(list(order) + ["warmup"], None, "discussion") == expected

    def test_inapplicable_sections_are_ignored(self):
        assert calculate_progress(["warmup", "grammar", "dialogue"], None, "discussion") == 14

    @pytest.mark.parametrize("lesson_type", sorted(LESSON_TYPE_SECTIONS) + ["cooking"])
    def test_monotonic_as_sections_complete(self, lesson_type):
        sections = get_applicable_sections(lesson_type)
        values = [calculate_progress(sections[:i], None, lesson_type) for i in range(len(sections) + 1)]
        assert all(earlier < later for earlier, later in zip(values, values[1:]))
        assert values[0] == 0
        assert values[-1] == 100

    def test_override_weights(self):
        weights = {"warmup": 1, "vocabulary": 1, "reading": 1, "comprehension": 1, "wrapup": 1, "discussion": 5}
        assert calculate_progress(["discussion"], None, "discussion", weights) == 50

    def test_sections_missing_from_override_weigh_zero(self):
        weights = {"warmup": 50, "vocabulary": 50}
        assert calculate_progress(["warmup"], None, "discussion", weights) == 50
        assert calculate_progress(["warmup", "reading"], None, "discussion", weights) == 50

    def test_zero_total_weight(self):
        assert calculate_progress(["warmup"], None, "discussion", {}) == 0

    def test_default_weights_are_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_PHASE_WEIGHTS["warmup"] = 99


class TestProgressTracker:
    """Test the tracker bound to one weight table."""

    def test_build_update(self):
        tracker = ProgressTracker()
        update = tracker.build_update(
            step="Generating vocabulary...",
            phase="vocabulary",
            completed_section_names=["warmup"],
            lesson_type="discussion",
            current_section_name="vocabulary",
            section="vocabulary",
        )

        assert update == ProgressUpdate(
            step="Generating vocabulary...", progress=14, phase="vocabulary", section="vocabulary"
        )

    def test_trackers_do_not_share_weights(self):
        custom = ProgressTracker({"warmup": 1, "wrapup": 1})
        default = ProgressTracker()

        assert custom.calculate_progress(["warmup"], None, "discussion") == 50
        assert default.calculate_progress(["warmup"], None, "discussion") == 14


class TestSafeProgressCallback:
    """Test that callbacks cannot break generation."""

    def test_delivers_update(self):
        callback = MagicMock()
        update = ProgressUpdate(step="x", progress=10, phase="warmup")

        safe_progress_callback(callback, update)

        callback.assert_called_once_with(update)

    def test_swallows_callback_errors(self):
        callback = MagicMock(side_effect=RuntimeError("boom"))

        safe_progress_callback(callback, ProgressUpdate(step="x", progress=10, phase="warmup"))

        callback.assert_called_once()

    def test_none_callback(self):
        safe_progress_callback(None, ProgressUpdate(step="x", progress=0, phase="warmup"))
