"""Shared context builder.

Analyses the source text once (key vocabulary, main themes, summary, lesson
title) so that every section prompt can be built from a compact context
instead of the full text. Each analysis has its own deterministic fallback, so
a failing completion service degrades the context rather than breaking it.
"""

import logging
import re
from collections import Counter
from typing import Dict, List, Optional, Tuple, Union

from lessonforge import config
from lessonforge.exceptions import UnknownSectionError
from lessonforge.models.schema import CEFRLevel, GeneratedSection, SectionKind, SharedContext
from lessonforge.optimizer.prompt_optimizer import (
    GENERIC_VERBS,
    STOPWORDS,
    split_sentences,
    truncate_at_word_boundary,
)
from lessonforge.parsers.response_parsers import parse_lines, parse_terms
from lessonforge.prompts.section_prompts import (
    build_summary_prompt,
    build_theme_extraction_prompt,
    build_title_prompt,
    build_vocabulary_extraction_prompt,
)
from lessonforge.utils.llm_client import CompletionService
from lessonforge.utils.logging_config import stage_logger
from lessonforge.validators.common import coerce_level

logger = logging.getLogger(__name__)

VOCABULARY_REQUEST_COUNT = 6
FALLBACK_VOCABULARY_LIMIT = 8
FALLBACK_SUMMARY_LIMIT = 200

DEFAULT_VOCABULARY = [
    "communication",
    "important",
    "different",
    "example",
    "information",
    "situation",
]
DEFAULT_THEMES = ["general topic", "communication", "daily life"]

# Keyword -> theme lookup used when theme extraction fails
THEME_KEYWORDS: List[Tuple[Tuple[str, ...], str]] = [
    (("sport", "game", "team"), "sports"),
    (("business", "company", "work"), "business"),
    (("travel", "country", "culture"), "travel"),
    (("technology", "computer", "internet"), "technology"),
    (("health", "medical", "doctor"), "health"),
]

TITLE_LIMIT = 80
PROPER_NOUN_TITLE_LIMIT = 20

# Keyword -> topic lookup for titles when the model gives none
TITLE_TOPICS: List[Tuple[str, str]] = [
    ("travel", "Travel & Tourism"),
    ("business", "Business Communication"),
    ("technology", "Technology Today"),
    ("environment", "Environmental Issues"),
    ("health", "Health & Wellness"),
    ("education", "Education System"),
    ("culture", "Cultural Exchange"),
    ("food", "Food & Cuisine"),
    ("sport", "Sports & Recreation"),
    ("music", "Music & Arts"),
    ("history", "Historical Events"),
    ("science", "Science & Discovery"),
]

LESSON_TYPE_TITLES: Dict[str, str] = {
    "discussion": "Discussion",
    "grammar": "Grammar Focus",
    "travel": "Travel & Tourism",
    "business": "Business English",
    "pronunciation": "Pronunciation Practice",
}

_FALLBACK_TOKEN = re.compile(r"\b[a-z]{4,12}\b")
_PROPER_NOUN = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b")
_TITLE_LABEL = re.compile(r"^title:?\s*", re.IGNORECASE)


# ============================================================================
# DETERMINISTIC FALLBACKS
# ============================================================================


def extract_frequent_terms(text: str, limit: int = FALLBACK_VOCABULARY_LIMIT) -> List[str]:
    """Most frequent non-stopword tokens of a text.

    Args:
        text: Source text
        limit: Maximum number of terms

    Returns:
        Distinct lowercase tokens (4-12 letters), most frequent first; ties
        keep first-occurrence order. Falls back to a default word list when
        fewer than 4 tokens qualify.
    """
    tokens = [
        token for token in _FALLBACK_TOKEN.findall((text or "").lower())
        if token not in STOPWORDS and token not in GENERIC_VERBS
    ]
    counts = Counter(tokens)
    first_seen: Dict[str, int] = {}
    for index, token in enumerate(tokens):
        first_seen.setdefault(token, index)

    ranked = sorted(counts, key=lambda token: (-counts[token], first_seen[token]))[:limit]
    if len(ranked) < 4:
        logger.warning(f"Only {len(ranked)} usable tokens in source text, using default vocabulary")
        return list(DEFAULT_VOCABULARY)
    return ranked


def detect_themes(text: str, limit: int = config.MAX_MAIN_THEMES) -> List[str]:
    """Themes whose keywords appear in the text, in table order."""
    lowered = (text or "").lower()
    themes = [
        theme for keywords, theme in THEME_KEYWORDS
        if any(re.search(rf"\b{keyword}", lowered) for keyword in keywords)
    ]
    return themes[:limit]


def fallback_summary(text: str, limit: int = FALLBACK_SUMMARY_LIMIT) -> str:
    """Leading whole sentences of the text, or a word-boundary cut with '...'."""
    text = " ".join((text or "").split())
    if len(text) <= limit:
        return text

    kept: List[str] = []
    for sentence in split_sentences(text):
        candidate = " ".join(kept + [sentence])
        if len(candidate) > limit:
            break
        kept.append(sentence)
    if kept:
        return " ".join(kept)
    return truncate_at_word_boundary(text, limit, suffix="...")


def generic_title(lesson_type: str, level: Union[CEFRLevel, str]) -> str:
    """Title built from the lesson type and level alone."""
    level = level.value if isinstance(level, CEFRLevel) else str(level).upper()
    name = LESSON_TYPE_TITLES.get((lesson_type or "").strip().lower(), "English")
    return f"{name} - {level} Level"


def contextual_title(source_text: str, lesson_type: str, level: Union[CEFRLevel, str]) -> str:
    """Title from a known topic keyword, else the first short proper noun phrase.

    Falls back to ``generic_title`` when the text offers neither.
    """
    lowered = (source_text or "").lower()
    for keyword, topic in TITLE_TOPICS:
        if keyword in lowered:
            return f"{topic} Discussion"

    match = _PROPER_NOUN.search(source_text or "")
    if match and len(match.group(0)) < PROPER_NOUN_TITLE_LIMIT:
        return f"{match.group(0)} Discussion"

    return generic_title(lesson_type, level)


def clean_title(response: Optional[str]) -> str:
    """Normalise a model-written title; empty when it is unusable.

    Quotes and a leading "Title:" label are removed. Titles of 5 characters
    or fewer, of TITLE_LIMIT characters or more, or mentioning "lesson" are
    rejected.
    """
    text = response if isinstance(response, str) else ""
    title = _TITLE_LABEL.sub("", text.strip().replace('"', "").replace("'", ""))
    title = " ".join(title.split())[:TITLE_LIMIT]
    if len(title) <= 5 or len(title) >= TITLE_LIMIT or "lesson" in title.lower():
        return ""
    return title


# ============================================================================
# BUILDER
# ============================================================================


class ContextBuilder:
    """Builds and updates the SharedContext for a generation run.

    Args:
        completion_service: Text completion capability (``prompt(text) -> str``)
        max_key_vocabulary: Upper bound on ``key_vocabulary``
        max_themes: Upper bound on ``main_themes`` at creation
        max_updated_themes: Upper bound on ``main_themes`` after updates
    """

    def __init__(
        self,
        completion_service: CompletionService,
        max_key_vocabulary: int = config.MAX_KEY_VOCABULARY,
        max_themes: int = config.MAX_MAIN_THEMES,
        max_updated_themes: int = config.MAX_UPDATED_THEMES,
    ):
        self.completion_service = completion_service
        self.max_key_vocabulary = max_key_vocabulary
        self.max_themes = max_themes
        self.max_updated_themes = max_updated_themes

    def build_shared_context(
        self,
        source_text: str,
        lesson_type: str,
        difficulty_level: Union[CEFRLevel, str],
        target_language: str = "English",
    ) -> SharedContext:
        """Analyse the source text into a SharedContext.

        Vocabulary, themes, summary and title are requested independently;
        any of them that fails falls back to local extraction without affecting the
        others.

        Args:
            source_text: Raw lesson source text
            lesson_type: Lesson type (e.g. "discussion", "travel")
            difficulty_level: Target CEFR level
            target_language: Language being learned

        Returns:
            Populated SharedContext

        Raises:
            ValueError: If difficulty_level is not a CEFR level
        """
        level = coerce_level(difficulty_level)
        source_text = source_text or ""
        excerpt = source_text[:config.SOURCE_TEXT_LIMIT]

        with stage_logger("shared_context", lesson_type=lesson_type, level=level.value):
            vocabulary = self._extract_vocabulary(excerpt, source_text, level)
            themes = self._extract_themes(excerpt, source_text)
            summary = self._summarize(excerpt, source_text, level)
            title = self._generate_title(source_text, lesson_type, level)

        context = SharedContext(
            key_vocabulary=vocabulary,
            main_themes=themes,
            difficulty_level=level,
            content_summary=summary,
            source_text=excerpt,
            lesson_type=lesson_type,
            target_language=target_language,
            lesson_title=title,
        )
        logger.info(
            f"Shared context built: {len(vocabulary)} vocabulary terms, "
            f"themes={themes}, summary_length={len(summary)}, title='{title}'"
        )
        return context

    def _ask(self, prompt: str, what: str) -> Optional[str]:
        """Send a prompt, returning None (and logging) on any failure."""
        try:
            return self.completion_service.prompt(prompt)
        except Exception as e:
            logger.warning(f"{what} request failed, using fallback: {str(e)[:200]}")
            return None

    def _extract_vocabulary(self, excerpt: str, source_text: str, level: CEFRLevel) -> List[str]:
        response = self._ask(
            build_vocabulary_extraction_prompt(excerpt, level.value, VOCABULARY_REQUEST_COUNT),
            "Vocabulary extraction",
        )
        terms = parse_terms(response, limit=self.max_key_vocabulary, max_length=30) if response else []
        if terms:
            return terms
        logger.info("Using frequency-based fallback vocabulary")
        return extract_frequent_terms(source_text, min(FALLBACK_VOCABULARY_LIMIT, self.max_key_vocabulary))

    def _extract_themes(self, excerpt: str, source_text: str) -> List[str]:
        response = self._ask(build_theme_extraction_prompt(excerpt, self.max_themes), "Theme extraction")
        themes = []
        if response:
            for line in parse_lines(response, min_length=3, max_length=50):
                theme = line.strip(" .").lower()
                if theme not in themes:
                    themes.append(theme)
        if themes:
            return themes[:self.max_themes]
        logger.info("Using keyword-based fallback themes")
        return detect_themes(source_text, self.max_themes) or list(DEFAULT_THEMES)

    def _summarize(self, excerpt: str, source_text: str, level: CEFRLevel) -> str:
        response = self._ask(build_summary_prompt(excerpt, level.value), "Summary")
        summary = " ".join((response or "").split())
        if summary:
            return truncate_at_word_boundary(summary, config.SUMMARY_LIMIT)
        logger.info("Using truncation fallback summary")
        return fallback_summary(source_text)

    def _generate_title(self, source_text: str, lesson_type: str, level: CEFRLevel) -> str:
        title = clean_title(
            self._ask(build_title_prompt(source_text, lesson_type, level.value), "Title generation")
        )
        if title:
            return title
        logger.info("Using contextual fallback title")
        return contextual_title(source_text, lesson_type, level)

    # ------------------------------------------------------------------
    # Context updates
    # ------------------------------------------------------------------

    def update_context(self, context: SharedContext, section: GeneratedSection) -> SharedContext:
        """Absorb a generated section into the context, in place.

        Vocabulary sections contribute their words; reading sections
        contribute themes detected in the passage. Other kinds are ignored.

        Args:
            context: Context to update
            section: Freshly generated section

        Returns:
            The same (mutated) context
        """
        try:
            kind = SectionKind.from_name(section.section_name)
        except UnknownSectionError:
            return context

        if kind == SectionKind.VOCABULARY:
            added = 0
            for entry in section.content or []:
                word = str(entry.get("word", "")).strip().lower()
                if not word or word == "instruction" or word in context.key_vocabulary:
                    continue
                if len(context.key_vocabulary) >= self.max_key_vocabulary:
                    break
                context.key_vocabulary.append(word)
                added += 1
            logger.debug(f"Context update from vocabulary: {added} new terms")

        elif kind == SectionKind.READING:
            added = 0
            for theme in detect_themes(str(section.content or ""), limit=len(THEME_KEYWORDS)):
                if theme in context.main_themes:
                    continue
                if len(context.main_themes) >= self.max_updated_themes:
                    break
                context.main_themes.append(theme)
                added += 1
            logger.debug(f"Context update from reading: {added} new themes")

        return context
