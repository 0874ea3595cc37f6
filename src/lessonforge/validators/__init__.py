"""Section validators."""

from lessonforge.validators.section_validators import (
    REQUIRED_EXAMPLES,
    VALIDATORS,
    required_example_count,
    validate_comprehension,
    validate_dialogue,
    validate_discussion,
    validate_grammar,
    validate_pronunciation,
    validate_reading,
    validate_section,
    validate_vocabulary,
    validate_wrapup,
)
from lessonforge.validators.warmup_validator import validate_warmup

__all__ = [
    "REQUIRED_EXAMPLES",
    "VALIDATORS",
    "required_example_count",
    "validate_comprehension",
    "validate_dialogue",
    "validate_discussion",
    "validate_grammar",
    "validate_pronunciation",
    "validate_reading",
    "validate_section",
    "validate_vocabulary",
    "validate_warmup",
    "validate_wrapup",
]
