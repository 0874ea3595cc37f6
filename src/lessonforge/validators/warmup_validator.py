"""Warm-up question validator.

Warm-up questions are discussed before the learner sees the reading passage,
so they must stand on their own: any reference to "the text", "the story" or
the author is a blocking ``content_assumption`` issue.
"""

import logging
import re
from typing import List, Optional, Union

from lessonforge.models.schema import CEFRLevel, IssueType, ValidationResult
from lessonforge.validators.common import (
    QUESTION_WORDS,
    build_result,
    coerce_level,
    issue,
    validate_question_format,
    words,
)

logger = logging.getLogger(__name__)

REQUIRED_QUESTION_COUNT = 3
MIN_QUESTION_LENGTH = 10
MAX_QUESTION_LENGTH = 200

CONTENT_ASSUMPTION_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\bwhat happened\b",
        r"\bin the (text|story|article|passage|reading)\b",
        r"\baccording to (the )?(text|story|article|author|passage)\b",
        r"\bthe author (said|says|wrote|writes|mentioned|mentions|stated|states|explained|explains)\b",
        r"\bdo you remember (what|who|when|where|how|why) (the|he|she|they|it)\b",
        r"\bwhat did (?!you\b).+ do\b",
        r"\bwhy did (?!you\b).+ happen\b",
        r"\bwhen did (the|he|she|they|it|this|that)\b",
        r"\bwho (was|were) (the|this|that) (main|person|character|author|writer)\b",
        r"\bwhich (person|character|event)\b",
        r"\bthe (story|text|article|passage) (says|mentions|describes|tells)\b",
        r"\bin this (story|text|article|passage)\b",
        r"\bfrom the (story|text|article|passage)\b",
        r"\b(the|this) (text|story|article|passage)\b",
    )
]

# Vocabulary that signals C1+ register
ADVANCED_MARKERS = re.compile(
    r"\b(hypothetically|implications?|to what extent|ramifications|paradigm|juxtapos\w*|"
    r"notwithstanding|nevertheless|albeit|whereby|evaluat\w*|analy[sz]\w*|ubiquitous|"
    r"socio-?economic|epistemolog\w*)\b",
    re.IGNORECASE,
)

# Average words per question above which the set is too complex for the level
MAX_AVERAGE_WORDS = {CEFRLevel.A1: 14, CEFRLevel.A2: 18}
# Average words per question below which the set is too simple for the level
MIN_AVERAGE_WORDS = {CEFRLevel.C1: 5, CEFRLevel.C2: 5}

def find_content_assumptions(question: str) -> List[str]:
    """Return the content-dependent phrases found in a question."""
    found = []
    for pattern in CONTENT_ASSUMPTION_PATTERNS:
        match = pattern.search(question)
        if match:
            found.append(match.group(0))
    return found


def find_proper_nouns(question: str) -> List[str]:
    """Return capitalized words that are not the first word of the question."""
    return [w for w in words(question)[1:] if w[0].isupper() and w != "I"]


def _complexity_problem(questions: List[str], level: CEFRLevel) -> Optional[str]:
    if not questions:
        return None
    average = sum(len(words(q)) for q in questions) / len(questions)
    advanced = [q for q in questions if ADVANCED_MARKERS.search(q)]

    if level in MAX_AVERAGE_WORDS:
        if advanced:
            return f"Advanced vocabulary is not suitable for {level.value} learners"
        if average > MAX_AVERAGE_WORDS[level]:
            return (
                f"Questions average {average:.1f} words, too complex for {level.value} "
                f"(max {MAX_AVERAGE_WORDS[level]})"
            )
    if level in MIN_AVERAGE_WORDS and average < MIN_AVERAGE_WORDS[level]:
        return f"Questions average {average:.1f} words, too simple for {level.value}"
    return None


def validate_warmup(
    questions: List[str],
    level: Union[CEFRLevel, str],
    key_vocabulary: Optional[List[str]] = None,
) -> ValidationResult:
    """Validate warm-up questions.

    Args:
        questions: Warm-up questions (without the instruction line)
        level: Target CEFR level
        key_vocabulary: Unused; accepted for a uniform validator signature

    Returns:
        ValidationResult with count, format, content assumption and
        complexity issues plus style warnings
    """
    level = coerce_level(level)
    questions = [q.strip() for q in questions or []]
    issues = []
    warnings = []

    if len(questions) < REQUIRED_QUESTION_COUNT:
        issues.append(issue(
            IssueType.COUNT_ERROR,
            f"Expected {REQUIRED_QUESTION_COUNT} warm-up questions, got {len(questions)}",
        ))

    issues.extend(validate_question_format(questions, MIN_QUESTION_LENGTH, MAX_QUESTION_LENGTH))

    for index, question in enumerate(questions):
        phrases = find_content_assumptions(question)
        if phrases:
            issues.append(issue(
                IssueType.CONTENT_ASSUMPTION,
                f"Question {index + 1} assumes the learner has read the material: '{phrases[0]}'",
                index,
                "Ask about personal experience or opinions instead",
            ))

        first_word = (words(question) or [""])[0].lower()
        if question and first_word not in QUESTION_WORDS:
            warnings.append(issue(
                IssueType.STYLE_WARNING,
                f"Question {index + 1} does not start with a question word",
                index,
            ))

        proper_nouns = find_proper_nouns(question)
        if proper_nouns:
            warnings.append(issue(
                IssueType.STYLE_WARNING,
                f"Question {index + 1} mentions a specific name: {proper_nouns[0]}",
                index,
            ))

    problem = _complexity_problem(questions, level)
    if problem:
        issues.append(issue(IssueType.COMPLEXITY_MISMATCH, problem))

    result = build_result(issues, warnings)
    if not result.is_valid:
        logger.debug(f"Warm-up validation failed: {result.issue_types()}")
    return result
