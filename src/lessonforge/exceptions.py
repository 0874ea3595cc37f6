"""Exceptions raised by the lesson generation pipeline."""


class LessonGenerationError(Exception):
    """Base class for lesson generation failures."""


class CompletionError(LessonGenerationError):
    """Raised when the completion service fails after all retry attempts."""


class UnknownSectionError(LessonGenerationError):
    """Raised for a section name outside the supported section kinds."""

    def __init__(self, section_name: str):
        self.section_name = section_name
        super().__init__(f"Unknown section: {section_name}")


class SectionGenerationError(LessonGenerationError):
    """Raised when both generation and the fallback path fail for a section."""

    def __init__(self, section_name: str, cause: object = None):
        self.section_name = section_name
        message = f"Failed to generate {section_name} section"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
