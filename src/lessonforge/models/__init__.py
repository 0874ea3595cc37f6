"""Data models for lesson generation."""

from lessonforge.models.content import GrammarContent, GrammarExercise, PronunciationWord, TongueTwister
from lessonforge.models.quality import LessonQualityReport, SectionMetrics
from lessonforge.models.schema import (
    CEFRLevel,
    GeneratedSection,
    GenerationStrategy,
    IssueType,
    Lesson,
    LessonSection,
    ProgressUpdate,
    SectionKind,
    SharedContext,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    "CEFRLevel",
    "GeneratedSection",
    "GenerationStrategy",
    "GrammarContent",
    "GrammarExercise",
    "IssueType",
    "Lesson",
    "LessonQualityReport",
    "LessonSection",
    "ProgressUpdate",
    "PronunciationWord",
    "SectionKind",
    "SectionMetrics",
    "SharedContext",
    "TongueTwister",
    "ValidationIssue",
    "ValidationResult",
]
