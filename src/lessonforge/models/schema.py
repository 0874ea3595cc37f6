"""Pydantic models for lesson generation entities.

This module defines the data models passed between the context builder, the
section generator, the validators and the progress reporting layer.
"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lessonforge.exceptions import UnknownSectionError


# ============================================================================
# Enums
# ============================================================================


class CEFRLevel(str, Enum):
    """Common European Framework of Reference proficiency level."""

    A1 = "A1"
    A2 = "A2"
    B1 = "B1"
    B2 = "B2"
    C1 = "C1"
    C2 = "C2"

    @property
    def rank(self) -> int:
        """Zero-based position of the level, A1 lowest."""
        return list(CEFRLevel).index(self)


class SectionKind(str, Enum):
    """Closed set of lesson section kinds."""

    WARMUP = "warmup"
    VOCABULARY = "vocabulary"
    READING = "reading"
    COMPREHENSION = "comprehension"
    DISCUSSION = "discussion"
    DIALOGUE = "dialogue"
    GRAMMAR = "grammar"
    PRONUNCIATION = "pronunciation"
    WRAPUP = "wrapup"

    @classmethod
    def from_name(cls, name: str) -> "SectionKind":
        """Resolve a section name to its kind.

        Args:
            name: Section name as requested by the caller

        Returns:
            Matching SectionKind

        Raises:
            UnknownSectionError: If the name is not a supported section
        """
        try:
            return cls(name.strip().lower())
        except (ValueError, AttributeError):
            raise UnknownSectionError(name) from None


class IssueType(str, Enum):
    """Validation issue and warning types."""

    COUNT_ERROR = "count_error"
    FORMAT_ERROR = "format_error"
    CONTENT_ASSUMPTION = "content_assumption"
    COMPLEXITY_MISMATCH = "complexity_mismatch"
    VOCABULARY_INTEGRATION = "vocabulary_integration"
    FLOW_ISSUE = "flow_issue"
    VARIETY_ISSUE = "variety_issue"
    COMPLETENESS_ERROR = "completeness_error"
    COMPLETENESS_WARNING = "completeness_warning"
    QUALITY_ISSUE = "quality_issue"
    STYLE_WARNING = "style_warning"


class GenerationStrategy(str, Enum):
    """Code path that produced a section's content."""

    PROGRESSIVE = "progressive"
    FALLBACK = "fallback"


# ============================================================================
# Generation context
# ============================================================================


class SharedContext(BaseModel):
    """Cross-section analysis of the source text, reused by every section prompt.

    The identity fields (level, source text, lesson type, language, title)
    are frozen; vocabulary and themes grow as sections are generated.
    """

    key_vocabulary: List[str] = Field(
        default_factory=list,
        description="Distinct lowercase terms in relevance order",
    )
    main_themes: List[str] = Field(
        default_factory=list,
        description="Short topic phrases",
    )
    difficulty_level: CEFRLevel = Field(
        ..., frozen=True, description="Target CEFR level, fixed at creation"
    )
    content_summary: str = Field(
        default="", description="One paragraph summary of the source text"
    )
    source_text: str = Field(
        ..., frozen=True, description="Leading slice of the original input"
    )
    lesson_type: str = Field(
        ..., frozen=True, description="Lesson type selecting the extra section"
    )
    target_language: str = Field(
        default="English", frozen=True, description="Language being learned"
    )
    lesson_title: str = Field(
        default="", frozen=True, description="Display title chosen when the context is built"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "key_vocabulary": ["technology", "communicate", "smartphone"],
                "main_themes": ["technology", "communication"],
                "difficulty_level": "B1",
                "content_summary": "Technology has changed how people talk to each other.",
                "source_text": "Technology has revolutionized how we communicate...",
                "lesson_type": "discussion",
                "target_language": "English",
                "lesson_title": "Technology Today Discussion",
            }
        }
    }


class LessonSection(BaseModel):
    """A request to generate one section."""

    name: str = Field(..., description="Section name, e.g. 'warmup'")
    priority: int = Field(default=0, description="Ordering hint")
    dependencies: List[str] = Field(
        default_factory=list,
        description="Sections expected to be generated first (advisory)",
    )


class GeneratedSection(BaseModel):
    """Result of generating one section. Immutable once returned."""

    model_config = ConfigDict(frozen=True)

    section_name: str
    content: Any = Field(..., description="Section-kind specific content shape")
    tokens_used: int = Field(default=0, ge=0, description="Estimated tokens")
    generation_strategy: GenerationStrategy = GenerationStrategy.PROGRESSIVE


# ============================================================================
# Validation
# ============================================================================


class ValidationIssue(BaseModel):
    """A single validation finding (blocking issue or advisory warning)."""

    type: IssueType
    message: str
    item_index: Optional[int] = Field(None, description="Offending item, if any")
    suggestion: Optional[str] = None


class ValidationResult(BaseModel):
    """Outcome of validating one section's content."""

    is_valid: bool
    issues: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)
    score: int = Field(default=100, ge=0, le=100)

    def issue_types(self) -> List[str]:
        """Return the issue type values, in order."""
        return [issue.type.value for issue in self.issues]

    def warning_types(self) -> List[str]:
        """Return the warning type values, in order."""
        return [warning.type.value for warning in self.warnings]


# ============================================================================
# Progress and lesson output
# ============================================================================


class ProgressUpdate(BaseModel):
    """Progress report delivered to the caller's callback."""

    step: str = Field(..., description="Human readable label")
    progress: int = Field(..., ge=0, le=100)
    phase: str = Field(..., description="Section name")
    section: Optional[str] = Field(None, description="Sub-phase label")


class Lesson(BaseModel):
    """A fully generated lesson."""

    lesson_type: str
    difficulty_level: CEFRLevel
    target_language: str
    lesson_title: str = ""
    sections: List[GeneratedSection] = Field(default_factory=list)
    quality: Optional[dict] = None

    @field_validator("sections")
    @classmethod
    def unique_section_names(cls, v: List[GeneratedSection]) -> List[GeneratedSection]:
        names = [section.section_name for section in v]
        if len(names) != len(set(names)):
            raise ValueError("Lesson sections must have unique names")
        return v
