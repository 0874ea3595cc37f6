"""
Lesson generators.

This module contains:
- Shared context construction and updates
- Progressive, per-section generation with validation and fallbacks
- Deterministic fallback content
- Whole-lesson orchestration and event streaming
"""

from lessonforge.generators.context_builder import ContextBuilder
from lessonforge.generators.lesson_runner import LessonRunner, build_section_plan, format_sse
from lessonforge.generators.section_generator import ProgressiveGenerator

__all__ = [
    "ContextBuilder",
    "LessonRunner",
    "ProgressiveGenerator",
    "build_section_plan",
    "format_sse",
]
