"""Weighted progress calculation for lesson generation.

Each section carries a relative cost weight. Progress is the share of the
applicable sections' total weight that has been fully completed, so a slow
section (reading) moves the bar further than a quick one (wrap-up).
"""

import logging
import math
from types import MappingProxyType
from typing import Callable, Iterable, List, Mapping, Optional

from lessonforge.models.schema import ProgressUpdate

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressUpdate], None]

# Relative cost of each section
DEFAULT_PHASE_WEIGHTS: Mapping[str, int] = MappingProxyType({
    "warmup": 10,
    "vocabulary": 15,
    "reading": 20,
    "comprehension": 10,
    "discussion": 10,
    "dialogue": 15,
    "grammar": 15,
    "pronunciation": 15,
    "wrapup": 5,
})

BASE_SECTIONS = ("warmup", "vocabulary", "reading", "comprehension", "wrapup")

# Extra section per lesson type
LESSON_TYPE_SECTIONS = MappingProxyType({
    "discussion": "discussion",
    "grammar": "grammar",
    "pronunciation": "pronunciation",
    "travel": "dialogue",
    "business": "dialogue",
})


def get_applicable_sections(lesson_type: str) -> List[str]:
    """Return the sections that count toward progress for a lesson type.

    Args:
        lesson_type: Lesson type, matched case-insensitively

    Returns:
        Base sections plus the lesson type's extra section, if any
    """
    sections = list(BASE_SECTIONS)
    extra = LESSON_TYPE_SECTIONS.get((lesson_type or "").strip().lower())
    if extra:
        sections.append(extra)
    return sections


def calculate_progress(
    completed_section_names: Iterable[str],
    current_section_name: Optional[str],
    lesson_type: str,
    weights: Optional[Mapping[str, int]] = None,
) -> int:
    """Compute overall progress as a weighted percentage.

    Only distinct, applicable, fully finished sections count; the section
    currently in flight contributes nothing.

    Args:
        completed_section_names: Names of finished sections (order and
            duplicates are irrelevant)
        current_section_name: Section being generated, or None
        lesson_type: Lesson type selecting the applicable sections
        weights: Weight table override; the default table when None. Sections
            missing from an override weigh zero.

    Returns:
        Integer percentage in [0, 100]
    """
    table = DEFAULT_PHASE_WEIGHTS if weights is None else weights
    applicable = get_applicable_sections(lesson_type)

    total = sum(table.get(name, 0) for name in applicable)
    if total <= 0:
        return 0

    completed = {name for name in completed_section_names if name in applicable}
    completed.discard(current_section_name)
    completed_weight = sum(table.get(name, 0) for name in completed)

    # Round half up
    progress = math.floor(100 * completed_weight / total + 0.5)
    return max(0, min(100, progress))


def safe_progress_callback(
    callback: Optional[ProgressCallback],
    update: ProgressUpdate,
) -> None:
    """Invoke a progress callback without letting it break generation.

    Args:
        callback: Caller-supplied callback, or None
        update: Progress update to deliver
    """
    if callback is None:
        return
    try:
        callback(update)
    except Exception as e:
        logger.error(f"Progress callback failed for phase={update.phase}: {e}")


class ProgressTracker:
    """Progress calculator bound to one weight table.

    Args:
        weights: Weight table override; the default table when None
    """

    def __init__(self, weights: Optional[Mapping[str, int]] = None):
        self.weights: Mapping[str, int] = MappingProxyType(
            dict(DEFAULT_PHASE_WEIGHTS if weights is None else weights)
        )

    def calculate_progress(
        self,
        completed_section_names: Iterable[str],
        current_section_name: Optional[str],
        lesson_type: str,
    ) -> int:
        return calculate_progress(
            completed_section_names, current_section_name, lesson_type, self.weights
        )

    def build_update(
        self,
        step: str,
        phase: str,
        completed_section_names: Iterable[str],
        lesson_type: str,
        current_section_name: Optional[str] = None,
        section: Optional[str] = None,
    ) -> ProgressUpdate:
        """Build a ProgressUpdate for the given completion state."""
        progress = self.calculate_progress(
            completed_section_names, current_section_name, lesson_type
        )
        return ProgressUpdate(step=step, progress=progress, phase=phase, section=section)
