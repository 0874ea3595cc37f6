"""Whole-lesson orchestration.

Builds the shared context once, walks the section plan in order, feeds every
generated section back into the context and reports progress. ``run`` returns
the finished Lesson; ``stream_events`` exposes the same run as a sequence of
progress/complete/error events suitable for server-sent events.
"""

import json
import logging
from typing import Any, Dict, Generator, Iterator, List, Optional, Sequence, Union

from lessonforge.generators.context_builder import ContextBuilder
from lessonforge.generators.section_generator import ProgressiveGenerator
from lessonforge.models.schema import CEFRLevel, GeneratedSection, Lesson, LessonSection, ProgressUpdate
from lessonforge.utils.progress_tracker import (
    LESSON_TYPE_SECTIONS,
    ProgressCallback,
    safe_progress_callback,
)

logger = logging.getLogger(__name__)

# Declared dependencies of the default plan
SECTION_DEPENDENCIES: Dict[str, List[str]] = {
    "reading": ["vocabulary"],
    "comprehension": ["reading"],
}


def build_section_plan(lesson_type: str) -> List[LessonSection]:
    """Default ordered section plan for a lesson type.

    warmup, vocabulary, reading, comprehension, the lesson type's extra
    section (if any), then wrapup.

    Args:
        lesson_type: Lesson type, matched case-insensitively

    Returns:
        Ordered LessonSection requests
    """
    names = ["warmup", "vocabulary", "reading", "comprehension"]
    extra = LESSON_TYPE_SECTIONS.get((lesson_type or "").strip().lower())
    if extra:
        names.append(extra)
    names.append("wrapup")

    return [
        LessonSection(name=name, priority=index, dependencies=SECTION_DEPENDENCIES.get(name, []))
        for index, name in enumerate(names)
    ]


def format_sse(event: Dict[str, Any]) -> str:
    """Render an event as a server-sent events data frame."""
    return f"data: {json.dumps(event, ensure_ascii=False, default=str)}\n\n"


class LessonRunner:
    """Runs a full lesson generation.

    Args:
        generator: Section generator
        context_builder: Shared context builder
    """

    def __init__(self, generator: ProgressiveGenerator, context_builder: ContextBuilder):
        self.generator = generator
        self.context_builder = context_builder

    def run(
        self,
        source_text: str,
        lesson_type: str,
        difficulty_level: Union[CEFRLevel, str],
        target_language: str = "English",
        plan: Optional[Sequence[LessonSection]] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Lesson:
        """Generate a complete lesson.

        Args:
            source_text: Raw lesson source text
            lesson_type: Lesson type (e.g. "discussion", "travel")
            difficulty_level: Target CEFR level
            target_language: Language being learned
            plan: Section plan; ``build_section_plan(lesson_type)`` when None
            progress_callback: Optional callback receiving ProgressUpdates

        Returns:
            Generated Lesson

        Raises:
            UnknownSectionError: If the plan names an unsupported section
            SectionGenerationError: If a section cannot be generated at all
        """
        steps = self._run_steps(source_text, lesson_type, difficulty_level, target_language, plan)
        while True:
            try:
                update = next(steps)
            except StopIteration as stop:
                return stop.value
            safe_progress_callback(progress_callback, update)

    def stream_events(
        self,
        source_text: str,
        lesson_type: str,
        difficulty_level: Union[CEFRLevel, str],
        target_language: str = "English",
        plan: Optional[Sequence[LessonSection]] = None,
    ) -> Iterator[Dict[str, Any]]:
        """Run a lesson generation as an event stream.

        Yields ``{"type": "progress", ...}`` events, then a single
        ``{"type": "complete", "lesson": ...}`` event, or an ``{"type":
        "error", ...}`` event carrying the last progress update when the run
        fails. Errors are reported as events, never raised.
        """
        last_update = ProgressUpdate(step="Starting lesson generation", progress=0, phase="context")
        steps = self._run_steps(source_text, lesson_type, difficulty_level, target_language, plan)
        try:
            while True:
                try:
                    update = next(steps)
                except StopIteration as stop:
                    lesson = stop.value
                    break
                last_update = update
                yield {"type": "progress", **update.model_dump()}
        except Exception as e:
            logger.error(f"Lesson generation failed: {e}", exc_info=True)
            yield {"type": "error", "error": str(e), "progress": last_update.model_dump()}
            return

        yield {"type": "complete", "lesson": lesson.model_dump(mode="json")}

    def _run_steps(
        self,
        source_text: str,
        lesson_type: str,
        difficulty_level: Union[CEFRLevel, str],
        target_language: str,
        plan: Optional[Sequence[LessonSection]],
    ) -> Generator[ProgressUpdate, None, Lesson]:
        """Yield progress updates as the lesson is generated; return the Lesson.

        Each section's start update is yielded before the section is
        generated, so a failing section is the last phase a consumer sees.
        """
        tracker = self.generator.quality_tracker
        if tracker is not None:
            tracker.reset()

        yield ProgressUpdate(step="Analyzing source text...", progress=0, phase="context")
        context = self.context_builder.build_shared_context(
            source_text, lesson_type, difficulty_level, target_language
        )

        plan = list(plan) if plan is not None else build_section_plan(lesson_type)
        logger.info(
            f"Generating {lesson_type} lesson '{context.lesson_title}' at "
            f"{context.difficulty_level.value}: {[request.name for request in plan]}"
        )

        sections: List[GeneratedSection] = []
        for request in plan:
            completed = [section.section_name for section in sections]
            yield self.generator.section_update(request, context, completed)
            section = self.generator.generate_section(request, context, sections)
            sections.append(section)
            self.context_builder.update_context(context, section)
            yield self.generator.section_update(request, context, completed, finished=True)

        quality = None
        if tracker is not None:
            tracker.log_summary()
            quality = tracker.get_quality_report().model_dump(mode="json")

        total_tokens = sum(section.tokens_used for section in sections)
        logger.info(f"Lesson complete: {len(sections)} sections, ~{total_tokens} tokens")

        return Lesson(
            lesson_type=lesson_type,
            difficulty_level=context.difficulty_level,
            target_language=context.target_language,
            lesson_title=context.lesson_title,
            sections=sections,
            quality=quality,
        )
