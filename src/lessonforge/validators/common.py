"""Helpers shared by the section validators."""

import re
from typing import List, Union

from lessonforge.models.schema import CEFRLevel, IssueType, ValidationIssue, ValidationResult

QUESTION_WORDS = (
    "what", "why", "how", "when", "where", "who", "whom", "which", "whose",
    "do", "does", "did", "is", "are", "was", "were", "have", "has", "had",
    "can", "could", "would", "should", "will", "if", "imagine", "tell",
    "describe", "in", "to",
)

_WORD = re.compile(r"[A-Za-z']+")


def coerce_level(level: Union[CEFRLevel, str]) -> CEFRLevel:
    """Return the level as a CEFRLevel (accepts "b1", "B1" or CEFRLevel.B1)."""
    if isinstance(level, CEFRLevel):
        return level
    return CEFRLevel(str(level).strip().upper())


def words(text: str) -> List[str]:
    """Split text into alphabetic words."""
    return _WORD.findall(text or "")


def issue(issue_type: IssueType, message: str, item_index: int = None, suggestion: str = None) -> ValidationIssue:
    return ValidationIssue(type=issue_type, message=message, item_index=item_index, suggestion=suggestion)


def build_result(
    issues: List[ValidationIssue],
    warnings: List[ValidationIssue],
    issue_penalty: int = 20,
    warning_penalty: int = 5,
    bonus: int = 0,
) -> ValidationResult:
    """Assemble a ValidationResult with a 0-100 score.

    Args:
        issues: Blocking issues
        warnings: Advisory warnings
        issue_penalty: Points deducted per issue
        warning_penalty: Points deducted per warning
        bonus: Points added before clamping

    Returns:
        ValidationResult, valid when there are no issues
    """
    score = 100 - issue_penalty * len(issues) - warning_penalty * len(warnings) + bonus
    return ValidationResult(
        is_valid=not issues,
        issues=issues,
        warnings=warnings,
        score=max(0, min(100, score)),
    )


def validate_question_format(
    questions: List[str],
    min_length: int = 10,
    max_length: int = 200,
) -> List[ValidationIssue]:
    """Return a format_error for every entry that is not a usable question."""
    problems = []
    for index, question in enumerate(questions):
        text = (question or "").strip()
        if not text:
            problems.append(issue(IssueType.FORMAT_ERROR, f"Question {index + 1} is empty", index))
        elif not text.endswith("?"):
            problems.append(issue(
                IssueType.FORMAT_ERROR,
                f"Question {index + 1} does not end with a question mark",
                index,
                "Rephrase the entry as a question",
            ))
        elif len(text) < min_length:
            problems.append(issue(IssueType.FORMAT_ERROR, f"Question {index + 1} is too short", index))
        elif len(text) > max_length:
            problems.append(issue(IssueType.FORMAT_ERROR, f"Question {index + 1} is too long", index))
    return problems
