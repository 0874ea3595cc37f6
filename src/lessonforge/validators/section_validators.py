"""Structural and pedagogical validators for every section kind.

Each validator is a pure function ``(content, level, key_vocabulary) ->
ValidationResult``. Issues block acceptance and make the generator fall back
to deterministic content; warnings are advisory.

Validators receive the section payload without its instruction line: the
question list for question sections, the entry list for vocabulary, the
passage for reading and the content dict for dialogue, grammar and
pronunciation.
"""

import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from lessonforge.models.schema import CEFRLevel, IssueType, SectionKind, ValidationResult
from lessonforge.validators.common import (
    build_result,
    coerce_level,
    issue,
    validate_question_format,
    words,
)
from lessonforge.validators.warmup_validator import validate_warmup

logger = logging.getLogger(__name__)

Validator = Callable[[Any, CEFRLevel, Optional[List[str]]], ValidationResult]

# Example sentences per vocabulary word; lower levels get more repetition
REQUIRED_EXAMPLES: Dict[CEFRLevel, int] = {
    CEFRLevel.A1: 5,
    CEFRLevel.A2: 5,
    CEFRLevel.B1: 4,
    CEFRLevel.B2: 3,
    CEFRLevel.C1: 2,
    CEFRLevel.C2: 2,
}

MIN_DIALOGUE_LINES = 12
DIALOGUE_MIN_WORDS: Dict[CEFRLevel, int] = {
    CEFRLevel.A1: 3,
    CEFRLevel.A2: 5,
    CEFRLevel.B1: 8,
    CEFRLevel.B2: 10,
    CEFRLevel.C1: 12,
    CEFRLevel.C2: 12,
}

DISCUSSION_QUESTION_COUNT = 5
COMPREHENSION_QUESTION_COUNT = 5
WRAPUP_QUESTION_COUNT = 3
MIN_PASSAGE_LENGTH = 50

MIN_GRAMMAR_EXAMPLES = 3
MIN_GRAMMAR_EXERCISES = 5
MIN_PRONUNCIATION_WORDS = 5
MIN_TONGUE_TWISTERS = 2

ANALYTICAL_PATTERN = re.compile(
    r"\b(why do you think|what factors|how might|to what extent|in what ways|"
    r"how would you evaluate|what are the (advantages|disadvantages|implications))\b",
    re.IGNORECASE,
)
ADVANCED_TERMS = re.compile(r"\b(hypothetically|analy[sz]e|evaluate|implications)\b", re.IGNORECASE)


def required_example_count(level: Union[CEFRLevel, str]) -> int:
    """Number of example sentences each vocabulary entry must carry."""
    return REQUIRED_EXAMPLES[coerce_level(level)]


def _field(content: Any, name: str, default: Any = None) -> Any:
    if isinstance(content, Mapping):
        return content.get(name, default)
    return getattr(content, name, default)


# ============================================================================
# QUESTION SECTIONS
# ============================================================================


def validate_comprehension(
    questions: List[str],
    level: Union[CEFRLevel, str],
    key_vocabulary: Optional[List[str]] = None,
) -> ValidationResult:
    questions = list(questions or [])
    issues = []
    if len(questions) < COMPREHENSION_QUESTION_COUNT:
        issues.append(issue(
            IssueType.COUNT_ERROR,
            f"Expected {COMPREHENSION_QUESTION_COUNT} comprehension questions, got {len(questions)}",
        ))
    issues.extend(validate_question_format(questions))
    return build_result(issues, [])


def validate_wrapup(
    questions: List[str],
    level: Union[CEFRLevel, str],
    key_vocabulary: Optional[List[str]] = None,
) -> ValidationResult:
    questions = list(questions or [])
    issues = []
    if len(questions) < WRAPUP_QUESTION_COUNT:
        issues.append(issue(
            IssueType.COUNT_ERROR,
            f"Expected {WRAPUP_QUESTION_COUNT} wrap-up questions, got {len(questions)}",
        ))
    issues.extend(validate_question_format(questions))
    return build_result(issues, [])


def validate_discussion(
    questions: List[str],
    level: Union[CEFRLevel, str],
    key_vocabulary: Optional[List[str]] = None,
) -> ValidationResult:
    """Validate discussion questions.

    Requires exactly five interrogative questions. Warns when the phrasing
    does not fit the level (no analytical prompts at B2+, advanced terms at
    A1/A2) or when the questions lack variety.
    """
    level = coerce_level(level)
    questions = [q.strip() for q in questions or []]
    issues = []
    warnings = []

    if len(questions) != DISCUSSION_QUESTION_COUNT:
        issues.append(issue(
            IssueType.COUNT_ERROR,
            f"Expected exactly {DISCUSSION_QUESTION_COUNT} discussion questions, got {len(questions)}",
        ))
    issues.extend(validate_question_format(questions))

    if level.rank >= CEFRLevel.B2.rank:
        if questions and not any(ANALYTICAL_PATTERN.search(q) for q in questions):
            warnings.append(issue(
                IssueType.COMPLEXITY_MISMATCH,
                f"No analytical questions for {level.value} learners",
                suggestion="Add questions such as 'Why do you think...' or 'To what extent...'",
            ))
    elif level.rank <= CEFRLevel.A2.rank:
        for index, question in enumerate(questions):
            if ADVANCED_TERMS.search(question):
                warnings.append(issue(
                    IssueType.COMPLEXITY_MISMATCH,
                    f"Question {index + 1} is too abstract for {level.value} learners",
                    index,
                ))

    openers = {(words(q) or [""])[0].lower() for q in questions if q}
    if len(questions) >= 3 and len(openers) < 3:
        warnings.append(issue(
            IssueType.VARIETY_ISSUE,
            f"Questions use only {len(openers)} different opening word(s)",
            suggestion="Vary how the questions begin",
        ))

    return build_result(issues, warnings)


# ============================================================================
# VOCABULARY AND READING
# ============================================================================


def validate_vocabulary(
    entries: List[Mapping[str, Any]],
    level: Union[CEFRLevel, str],
    key_vocabulary: Optional[List[str]] = None,
) -> ValidationResult:
    """Validate vocabulary entries (the INSTRUCTION sentinel is ignored)."""
    required = required_example_count(level)
    entries = [e for e in entries or [] if _field(e, "word") != "INSTRUCTION"]
    issues = []

    if not entries:
        issues.append(issue(IssueType.COUNT_ERROR, "No vocabulary entries"))

    for index, entry in enumerate(entries):
        word = _field(entry, "word", "") or ""
        if not word.strip():
            issues.append(issue(IssueType.COMPLETENESS_ERROR, f"Entry {index + 1} has no word", index))
        if not (_field(entry, "meaning", "") or "").strip():
            issues.append(issue(IssueType.COMPLETENESS_ERROR, f"'{word}' has no meaning", index))
        examples = [e for e in _field(entry, "examples", []) or [] if e and e.strip()]
        if len(examples) < required:
            issues.append(issue(
                IssueType.COUNT_ERROR,
                f"'{word}' has {len(examples)} examples, {required} required",
                index,
            ))

    return build_result(issues, [])


def validate_reading(
    passage: str,
    level: Union[CEFRLevel, str],
    key_vocabulary: Optional[List[str]] = None,
) -> ValidationResult:
    passage = (passage or "").strip()
    issues = []
    warnings = []
    if len(passage) < MIN_PASSAGE_LENGTH:
        issues.append(issue(
            IssueType.COMPLETENESS_ERROR,
            f"Reading passage is too short ({len(passage)} characters)",
        ))
    if key_vocabulary and passage:
        lowered = passage.lower()
        if not any(term.lower() in lowered for term in key_vocabulary):
            warnings.append(issue(
                IssueType.VOCABULARY_INTEGRATION,
                "Reading passage uses none of the key vocabulary",
            ))
    return build_result(issues, warnings)


# ============================================================================
# DIALOGUE
# ============================================================================


def validate_dialogue(
    content: Union[Mapping[str, Any], List[Mapping[str, str]]],
    level: Union[CEFRLevel, str],
    key_vocabulary: Optional[List[str]] = None,
) -> ValidationResult:
    """Validate a two-speaker dialogue.

    Args:
        content: Dialogue content dict (with a "dialogue" list) or the list
            of {"speaker", "text"} turns itself
        level: Target CEFR level
        key_vocabulary: Terms the dialogue should reuse

    Returns:
        ValidationResult; only a short dialogue is a blocking issue
    """
    level = coerce_level(level)
    turns = _field(content, "dialogue", []) if isinstance(content, Mapping) else list(content or [])
    key_vocabulary = key_vocabulary or []
    issues = []
    warnings = []

    if len(turns) < MIN_DIALOGUE_LINES:
        issues.append(issue(
            IssueType.COUNT_ERROR,
            f"Dialogue has {len(turns)} lines, at least {MIN_DIALOGUE_LINES} required",
        ))

    min_words = DIALOGUE_MIN_WORDS[level]
    for index, turn in enumerate(turns):
        text = _field(turn, "text", "") or ""
        if len(words(text)) < min_words:
            warnings.append(issue(
                IssueType.COMPLEXITY_MISMATCH,
                f"Line {index + 1} is shorter than {min_words} words expected at {level.value}",
                index,
            ))

    if key_vocabulary:
        all_text = " ".join((_field(t, "text", "") or "") for t in turns).lower()
        used = [term for term in key_vocabulary if term.lower() in all_text]
        threshold = min(3, len(key_vocabulary))
        if len(used) < threshold:
            warnings.append(issue(
                IssueType.VOCABULARY_INTEGRATION,
                f"Dialogue uses {len(used)} key vocabulary words, at least {threshold} expected",
            ))

    speakers = [_field(t, "speaker", "") for t in turns]
    for index in range(1, len(speakers)):
        if speakers[index] == speakers[index - 1]:
            warnings.append(issue(
                IssueType.FLOW_ISSUE,
                f"{speakers[index]} speaks twice in a row at line {index + 1}",
                index,
            ))
            break

    bonus = 10 if len(turns) >= MIN_DIALOGUE_LINES else 0
    return build_result(issues, warnings, bonus=bonus)


# ============================================================================
# GRAMMAR
# ============================================================================


def validate_grammar(
    content: Mapping[str, Any],
    level: Union[CEFRLevel, str],
    key_vocabulary: Optional[List[str]] = None,
) -> ValidationResult:
    """Validate a grammar section.

    ``rule``, ``form`` and ``usage`` are read from the content itself or from
    a nested ``explanation`` object.
    """
    content = content or {}
    explanation = _field(content, "explanation") or {}
    issues = []
    warnings = []

    for name in ("rule", "form", "usage"):
        value = _field(content, name) or _field(explanation, name) or ""
        if not str(value).strip():
            issues.append(issue(IssueType.COMPLETENESS_ERROR, f"Grammar section is missing '{name}'"))
        elif len(str(value).strip()) < 10:
            warnings.append(issue(IssueType.COMPLETENESS_WARNING, f"Grammar '{name}' is very short"))

    examples = [e for e in _field(content, "examples", []) or [] if str(e).strip()]
    if len(examples) < MIN_GRAMMAR_EXAMPLES:
        issues.append(issue(
            IssueType.COMPLETENESS_ERROR,
            f"Grammar section has {len(examples)} examples, at least {MIN_GRAMMAR_EXAMPLES} required",
        ))

    exercises = list(_field(content, "exercises", []) or [])
    if len(exercises) < MIN_GRAMMAR_EXERCISES:
        issues.append(issue(
            IssueType.COMPLETENESS_ERROR,
            f"Grammar section has {len(exercises)} exercises, at least {MIN_GRAMMAR_EXERCISES} required",
        ))

    for index, exercise in enumerate(exercises):
        prompt = str(_field(exercise, "prompt", "") or "").strip()
        answer = str(_field(exercise, "answer", "") or "").strip()
        if not prompt or not answer:
            issues.append(issue(
                IssueType.QUALITY_ISSUE,
                f"Exercise {index + 1} is missing its prompt or answer",
                index,
            ))

    return build_result(issues, warnings, issue_penalty=15)


# ============================================================================
# PRONUNCIATION
# ============================================================================


def validate_pronunciation(
    content: Mapping[str, Any],
    level: Union[CEFRLevel, str],
    key_vocabulary: Optional[List[str]] = None,
) -> ValidationResult:
    """Validate a pronunciation section with words and tongue twisters."""
    content = content or {}
    entries = list(_field(content, "words", []) or [])
    twisters = list(_field(content, "tongue_twisters", []) or [])
    issues = []
    warnings = []

    if len(entries) < MIN_PRONUNCIATION_WORDS:
        issues.append(issue(
            IssueType.COUNT_ERROR,
            f"Pronunciation section has {len(entries)} words, at least {MIN_PRONUNCIATION_WORDS} required",
        ))
    if len(twisters) < MIN_TONGUE_TWISTERS:
        issues.append(issue(
            IssueType.COUNT_ERROR,
            f"Pronunciation section has {len(twisters)} tongue twisters, at least {MIN_TONGUE_TWISTERS} required",
        ))

    for index, entry in enumerate(entries):
        word = str(_field(entry, "word", "") or "").strip()
        if not word:
            issues.append(issue(IssueType.COMPLETENESS_ERROR, f"Word {index + 1} has no text", index))
        if not str(_field(entry, "ipa", "") or "").strip():
            issues.append(issue(
                IssueType.COMPLETENESS_ERROR,
                f"'{word or index + 1}' has no IPA transcription",
                index,
            ))
        if not _field(entry, "tips"):
            warnings.append(issue(IssueType.COMPLETENESS_WARNING, f"'{word}' has no tips", index))
        if not str(_field(entry, "practice", "") or "").strip():
            warnings.append(issue(IssueType.COMPLETENESS_WARNING, f"'{word}' has no practice sentence", index))

    for index, twister in enumerate(twisters):
        if not str(_field(twister, "text", "") or "").strip():
            issues.append(issue(IssueType.COMPLETENESS_ERROR, f"Tongue twister {index + 1} has no text", index))
        if not _field(twister, "target_sounds"):
            issues.append(issue(
                IssueType.COMPLETENESS_ERROR,
                f"Tongue twister {index + 1} has no target sounds",
                index,
            ))

    return build_result(issues, warnings)


# ============================================================================
# DISPATCH
# ============================================================================

VALIDATORS: Dict[SectionKind, Validator] = {
    SectionKind.WARMUP: validate_warmup,
    SectionKind.VOCABULARY: validate_vocabulary,
    SectionKind.READING: validate_reading,
    SectionKind.COMPREHENSION: validate_comprehension,
    SectionKind.DISCUSSION: validate_discussion,
    SectionKind.DIALOGUE: validate_dialogue,
    SectionKind.GRAMMAR: validate_grammar,
    SectionKind.PRONUNCIATION: validate_pronunciation,
    SectionKind.WRAPUP: validate_wrapup,
}

_missing = set(SectionKind) - set(VALIDATORS)
if _missing:
    raise RuntimeError(f"No validator registered for: {sorted(k.value for k in _missing)}")


def validate_section(
    kind: Union[SectionKind, str],
    content: Any,
    level: Union[CEFRLevel, str],
    key_vocabulary: Optional[List[str]] = None,
) -> ValidationResult:
    """Validate section content with the validator for its kind.

    Args:
        kind: Section kind or name
        content: Section payload without its instruction line
        level: Target CEFR level
        key_vocabulary: Terms the content is expected to reuse

    Returns:
        ValidationResult

    Raises:
        UnknownSectionError: If the section name is not supported
    """
    if not isinstance(kind, SectionKind):
        kind = SectionKind.from_name(kind)
    result = VALIDATORS[kind](content, coerce_level(level), key_vocabulary)
    if result.warnings:
        logger.debug(f"{kind.value} validation warnings: {result.warning_types()}")
    return result
