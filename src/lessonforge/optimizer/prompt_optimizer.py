"""Prompt and token optimization for lesson generation.

Every section prompt is built from the shared context rather than the full
source text. This module owns the token arithmetic behind that: compact
per-section prompts, key term extraction, length-bounded summaries and
batching of small prompts into fewer completion round-trips.
"""

import logging
import math
import re
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, Field

from lessonforge import config
from lessonforge.models.schema import SectionKind, SharedContext

logger = logging.getLogger(__name__)


# ============================================================================
# WORD LISTS
# ============================================================================

STOPWORDS = frozenset("""
a about above after again against all also am an and any are as at be because
been before being below between both but by can could did do does doing down
during each few for from further had has have having he her here hers herself
him himself his how i if in into is it its itself just many me more most much
my myself no nor not now of off on once only or other our ours ourselves out
over own same she should so some such than that the their theirs them
themselves then there these they this those through to too under until up us
very was we were what when where which while who whom why will with would you
your yours yourself yourselves may might must shall upon within without
another every however therefore thus whether though although yet
""".split())

# Verbs that glue a sentence together without naming its subject matter
GENERIC_VERBS = frozenset("""
include includes included including use uses used using make makes made making
get gets got take takes took give gives gave go goes went come comes came
become becomes became becoming seem seems help helps allow allows provide
provides deliver delivers affect affects predict predicts assess assesses
facilitate facilitates promote promotes identify identifies process processes
transform transforms transforming create creates show shows need needs want
wants keep keeps play plays pumps pump offer offers convert converts harness
harnesses generate generates contain contains communicate said says
""".split())

_CHUNK_SPLIT = re.compile(r"[.,;:!?()\[\]{}\"“”\n\r\t]+")
_WORD = re.compile(r"[a-z][a-z'-]*")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")

# Optimization strategy per section kind
SECTION_STRATEGIES: Dict[SectionKind, str] = {
    SectionKind.WARMUP: "theme_activation",
    SectionKind.VOCABULARY: "focused_vocabulary_extraction",
    SectionKind.READING: "content_summarization",
    SectionKind.COMPREHENSION: "batch_question_generation",
    SectionKind.DISCUSSION: "theme_expansion",
    SectionKind.DIALOGUE: "vocabulary_reuse",
    SectionKind.GRAMMAR: "structured_json_output",
    SectionKind.PRONUNCIATION: "targeted_word_selection",
    SectionKind.WRAPUP: "summary_reflection",
}

MAX_KEY_TERMS = 10


# ============================================================================
# MODELS
# ============================================================================


class OptimizedPrompt(BaseModel):
    """A compact section prompt with its token estimate."""

    prompt: str
    estimated_tokens: int
    optimization_strategy: str


class PromptRequest(BaseModel):
    """One prompt waiting to be batched."""

    section: str
    content: str
    estimated_tokens: Optional[int] = Field(
        None, description="Token estimate; computed from content when omitted"
    )


class PromptBatch(BaseModel):
    """Consecutive prompts sent together in a single completion call."""

    prompts: List[PromptRequest] = Field(default_factory=list)
    sections: List[str] = Field(default_factory=list)
    combined_prompt: str = ""
    total_tokens: int = 0


# ============================================================================
# TEXT HELPERS
# ============================================================================


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters, rounded up."""
    return math.ceil(len(text or "") / 4)


def split_sentences(text: str) -> List[str]:
    """Split text into stripped, non-empty sentences."""
    return [s.strip() for s in _SENTENCE_END.split((text or "").strip()) if s.strip()]


def truncate_at_word_boundary(text: str, max_length: int, suffix: str = "") -> str:
    """Cut text to at most ``max_length`` characters without splitting a word.

    Args:
        text: Text to cut
        max_length: Maximum length of the result, suffix included
        suffix: Appended after the cut (e.g. "...")

    Returns:
        Text unchanged if it fits, otherwise the longest whole-word prefix
        plus suffix
    """
    text = (text or "").strip()
    if len(text) <= max_length:
        return text
    budget = max(0, max_length - len(suffix))
    cut = text[:budget + 1]
    if len(cut) > budget:
        space = cut.rfind(" ")
        cut = cut[:space] if space > 0 else ""
    cut = cut.rstrip(" ,;:-")
    return f"{cut}{suffix}" if cut else ""


def _context_value(context: Union[SharedContext, Mapping[str, Any]], name: str, default: Any) -> Any:
    if isinstance(context, Mapping):
        value = context.get(name, default)
    else:
        value = getattr(context, name, default)
    return default if value is None else value


class PromptOptimizer:
    """Stateless prompt and token optimizer.

    Args:
        batch_token_limit: Default per-batch token ceiling for ``batch_prompts``
        max_vocabulary: Vocabulary terms carried into a prompt
        max_themes: Themes carried into a prompt
        summary_length: Character budget for a summary inside a prompt
    """

    def __init__(
        self,
        batch_token_limit: int = config.BATCH_TOKEN_LIMIT,
        max_vocabulary: int = 8,
        max_themes: int = 3,
        summary_length: int = 300,
    ):
        self.batch_token_limit = batch_token_limit
        self.max_vocabulary = max_vocabulary
        self.max_themes = max_themes
        self.summary_length = summary_length

    # ------------------------------------------------------------------
    # Prompt construction
    # ------------------------------------------------------------------

    def optimize_prompt(
        self,
        section_kind: Union[SectionKind, str],
        context: Union[SharedContext, Mapping[str, Any]],
    ) -> OptimizedPrompt:
        """Build a compact prompt for a section from the shared context.

        Args:
            section_kind: Section kind or name
            context: SharedContext, or a mapping with the same field names

        Returns:
            OptimizedPrompt with the prompt, its token estimate and the name
            of the strategy that shaped it

        Raises:
            UnknownSectionError: If the section name is not supported
        """
        kind = section_kind if isinstance(section_kind, SectionKind) else SectionKind.from_name(section_kind)

        level = _context_value(context, "difficulty_level", "B1")
        level = getattr(level, "value", level)
        language = _context_value(context, "target_language", "English")
        vocabulary = list(_context_value(context, "key_vocabulary", []))[:self.max_vocabulary]
        themes = list(_context_value(context, "main_themes", []))[:self.max_themes]
        summary = self.summarize_content(
            _context_value(context, "content_summary", ""), self.summary_length
        )

        terms = ", ".join(vocabulary) or "none"
        topics = ", ".join(themes) or "general topic"
        header = f"Task: {kind.value} section of a {level} {language} lesson."

        body = {
            SectionKind.WARMUP: f"Write 3 personal warm-up questions about: {topics}. Do not mention any text.",
            SectionKind.VOCABULARY: f"Explain each vocabulary word with a {level} definition and example sentences: {terms}.",
            SectionKind.READING: f"Write a reading passage on {topics} using: {terms}. Summary: {summary}",
            SectionKind.COMPREHENSION: f"Write 5 comprehension questions on the reading. Summary: {summary}",
            SectionKind.DISCUSSION: f"Write 5 open discussion questions exploring: {topics}.",
            SectionKind.DIALOGUE: f"Write a 12-line Student/Tutor dialogue about {topics} reusing: {terms}.",
            SectionKind.GRAMMAR: f"Return JSON with focus, rule, form, usage, 3 examples and 5 exercises related to: {topics}.",
            SectionKind.PRONUNCIATION: f"Return JSON with word, ipa, tips and practice for the hardest of: {terms}.",
            SectionKind.WRAPUP: f"Write 3 reflective wrap-up questions about: {topics}.",
        }[kind]

        prompt = f"{header}\n{body}\nKeep the language at {level} level."
        strategy = SECTION_STRATEGIES[kind]
        return OptimizedPrompt(
            prompt=prompt,
            estimated_tokens=estimate_tokens(prompt),
            optimization_strategy=strategy,
        )

    # ------------------------------------------------------------------
    # Key terms
    # ------------------------------------------------------------------

    def extract_key_terms(self, text: str, limit: int = MAX_KEY_TERMS) -> List[str]:
        """Extract the most characteristic terms of a text.

        The text is cut into chunks at punctuation, stopwords and generic
        verbs. The first two words of a multi-word chunk form a phrase
        candidate ("machine learning"); remaining words are single-word
        candidates. Phrases outrank single words, frequent words outrank rare
        ones, and long words get a small bonus.

        Args:
            text: Source text
            limit: Maximum number of terms (at most 10)

        Returns:
            Up to ``limit`` lowercase terms, highest scoring first
        """
        limit = min(limit, MAX_KEY_TERMS)
        lowered = (text or "").lower()
        all_words = [w for w in _WORD.findall(lowered) if w not in STOPWORDS and w not in GENERIC_VERBS]
        frequency = Counter(all_words)

        scores: Dict[str, int] = {}
        first_seen: Dict[str, int] = {}
        position = 0

        def add(term: str, score: int) -> None:
            nonlocal position
            if term not in first_seen:
                first_seen[term] = position
                position += 1
            scores[term] = max(scores.get(term, 0), score)

        for chunk in _CHUNK_SPLIT.split(lowered):
            for run in self._content_runs(chunk):
                singles = run
                if len(run) >= 2:
                    phrase = " ".join(run[:2])
                    add(phrase, lowered.count(phrase) * 3 + 2)
                    singles = run[2:]
                for word in singles:
                    if len(word) > 3:
                        add(word, frequency[word] + (1 if len(word) >= 8 else 0))

        ranked = sorted(scores, key=lambda term: (-scores[term], first_seen[term]))
        return ranked[:limit]

    def _content_runs(self, chunk: str) -> List[List[str]]:
        """Split a chunk into runs of consecutive content words."""
        runs: List[List[str]] = []
        current: List[str] = []
        for word in _WORD.findall(chunk):
            word = word.strip("'-")
            if not word or word in STOPWORDS or word in GENERIC_VERBS or word.isdigit():
                if current:
                    runs.append(current)
                current = []
                continue
            current.append(word)
        if current:
            runs.append(current)
        return runs

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def summarize_content(self, text: str, max_length: int) -> str:
        """Shrink text to at most ``max_length`` characters.

        Whole leading sentences are kept while they fit. When not even the
        first sentence fits, the summary becomes a comma-separated digest of
        the text's key terms; if that is empty too, the first sentence is cut
        at a word boundary.

        Args:
            text: Text to summarize
            max_length: Maximum length of the result

        Returns:
            Text unchanged if already short enough, otherwise a summary of at
            most ``max_length`` characters that never ends mid-word
        """
        text = (text or "").strip()
        if len(text) <= max_length:
            return text

        kept: List[str] = []
        length = 0
        for sentence in split_sentences(text):
            extra = len(sentence) + (1 if kept else 0)
            if length + extra > max_length:
                break
            kept.append(sentence)
            length += extra
        if kept:
            return " ".join(kept)

        digest = ""
        for term in self.extract_key_terms(text):
            candidate = f"{digest}, {term}" if digest else term
            if len(candidate) > max_length:
                break
            digest = candidate
        if digest:
            return digest

        return truncate_at_word_boundary(text, max_length)

    # ------------------------------------------------------------------
    # Batching
    # ------------------------------------------------------------------

    def batch_prompts(
        self,
        prompts: Sequence[Union[PromptRequest, Mapping[str, Any]]],
        max_tokens: Optional[int] = None,
    ) -> List[PromptBatch]:
        """Group consecutive prompts into batches under a token ceiling.

        Order is preserved within and across batches. A prompt larger than
        the ceiling is placed in a batch of its own.

        Args:
            prompts: PromptRequest objects or mappings with section/content
                (and optionally estimated_tokens)
            max_tokens: Per-batch token ceiling (default: batch_token_limit)

        Returns:
            Batches in prompt order
        """
        limit = max_tokens or self.batch_token_limit
        requests = [
            p if isinstance(p, PromptRequest) else PromptRequest(**dict(p))
            for p in prompts
        ]

        batches: List[PromptBatch] = []
        current: List[PromptRequest] = []
        current_tokens = 0

        for request in requests:
            tokens = request.estimated_tokens
            if tokens is None:
                tokens = estimate_tokens(request.content)
                request = request.model_copy(update={"estimated_tokens": tokens})
            if current and current_tokens + tokens > limit:
                batches.append(self._build_batch(current))
                current, current_tokens = [], 0
            current.append(request)
            current_tokens += tokens
            if tokens > limit:
                logger.warning(f"Prompt for {request.section} exceeds batch limit: {tokens} > {limit}")

        if current:
            batches.append(self._build_batch(current))

        logger.debug(f"Batched {len(requests)} prompts into {len(batches)} batches")
        return batches

    def _build_batch(self, requests: List[PromptRequest]) -> PromptBatch:
        lines = ["Generate content for multiple lesson sections:"]
        for index, request in enumerate(requests, start=1):
            lines.append(f"{index}. {request.section.upper()}: {request.content}")
        lines.append("")
        lines.append("Please provide responses in the same order, clearly labeled by section.")
        return PromptBatch(
            prompts=list(requests),
            sections=[request.section for request in requests],
            combined_prompt="\n".join(lines),
            total_tokens=sum(request.estimated_tokens or 0 for request in requests),
        )
