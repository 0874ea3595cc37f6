"""
Progressive Lesson Generator

This package turns a block of source text into a multi-section language lesson
(warm-up, vocabulary, reading, comprehension, discussion, dialogue, grammar,
pronunciation, wrap-up) through a sequence of dependent, independently
retryable LLM generation steps that share one analysis context.

**Version**: 0.1.0
**Key Dependencies**: openai, langfuse, pydantic, python-dotenv, loguru
"""

__version__ = "0.1.0"
__author__ = "Lessonforge"

# CEFR levels supported by every generator and validator
CEFR_LEVELS = ["A1", "A2", "B1", "B2", "C1", "C2"]

# Lesson types with a dedicated extra section
LESSON_TYPES = ["discussion", "grammar", "pronunciation", "travel", "business"]

__all__ = [
    "__version__",
    "__author__",
    "CEFR_LEVELS",
    "LESSON_TYPES",
]
