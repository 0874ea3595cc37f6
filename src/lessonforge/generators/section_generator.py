"""Progressive section generator.

Generates one lesson section at a time from the shared context and the
sections generated so far. Every section follows the same pattern: build a
focused prompt, call the completion service, parse, validate, and fall back to
deterministic content when any of those steps fails. Only a failing fallback
raises.
"""

import logging
import re
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from lessonforge import config
from lessonforge.exceptions import SectionGenerationError
from lessonforge.generators import fallbacks
from lessonforge.models.content import GrammarContent, PronunciationWord, TongueTwister
from lessonforge.models.schema import (
    GeneratedSection,
    GenerationStrategy,
    LessonSection,
    ProgressUpdate,
    SectionKind,
    SharedContext,
    ValidationResult,
)
from lessonforge.optimizer.prompt_optimizer import (
    SECTION_STRATEGIES,
    PromptOptimizer,
    estimate_tokens,
    truncate_at_word_boundary,
)
from lessonforge.parsers.response_parsers import (
    extract_json,
    extract_json_object,
    parse_dialogue,
    parse_lines,
    parse_questions,
)
from lessonforge.prompts import section_prompts
from lessonforge.utils.llm_client import CompletionService
from lessonforge.utils.logging_config import stage_logger
from lessonforge.utils.progress_tracker import ProgressCallback, ProgressTracker, safe_progress_callback
from lessonforge.utils.quality_metrics import QualityMetricsTracker
from lessonforge.validators.section_validators import required_example_count, validate_section

logger = logging.getLogger(__name__)

# ============================================================================
# Fixed instruction strings
# ============================================================================

INSTRUCTIONS: Dict[SectionKind, str] = {
    SectionKind.WARMUP: "Have the following conversations or discussions with your tutor before reading the text:",
    SectionKind.VOCABULARY: "Study the following words with your tutor before reading the text:",
    SectionKind.READING: "Read the following text carefully. Your tutor will help you with any difficult words or concepts:",
    SectionKind.COMPREHENSION: "After reading the text, answer these comprehension questions:",
    SectionKind.DISCUSSION: "Discuss these questions with your tutor to explore the topic in depth:",
    SectionKind.DIALOGUE: "Practice this conversation with your tutor:",
    SectionKind.GRAMMAR: "Study this grammar point with your tutor, then complete the exercises:",
    SectionKind.PRONUNCIATION: "Practice pronunciation with your tutor. Focus on the difficult sounds and try the tongue twisters:",
    SectionKind.WRAPUP: "Reflect on your learning by discussing these wrap-up questions:",
}

STEP_LABELS: Dict[SectionKind, str] = {
    SectionKind.WARMUP: "warm-up questions",
    SectionKind.VOCABULARY: "vocabulary",
    SectionKind.READING: "reading passage",
    SectionKind.COMPREHENSION: "comprehension questions",
    SectionKind.DISCUSSION: "discussion questions",
    SectionKind.DIALOGUE: "dialogue practice",
    SectionKind.GRAMMAR: "grammar focus",
    SectionKind.PRONUNCIATION: "pronunciation practice",
    SectionKind.WRAPUP: "wrap-up questions",
}

QUESTION_COUNTS: Dict[SectionKind, int] = {
    SectionKind.WARMUP: 3,
    SectionKind.COMPREHENSION: 5,
    SectionKind.DISCUSSION: 5,
    SectionKind.WRAPUP: 3,
}

PRONUNCIATION_WORD_COUNT = 5
READING_VOCABULARY_COUNT = 5
READING_EXCERPT_LENGTH = 800
MEANING_LENGTH = 150

# Pronunciation difficulty scoring
_SOUND_SCORES = [
    (re.compile(r"th"), 5),
    (re.compile(r"ch"), 4),
    (re.compile(r"sh"), 4),
    (re.compile(r"gh"), 4),
    (re.compile(r"ph"), 3),
    (re.compile(r"ng"), 3),
    (re.compile(r"wh"), 3),
    (re.compile(r"[bcdfgkpt]r"), 4),
    (re.compile(r"(ough|augh|eigh|ou|ei|ie|eu)"), 2),
    (re.compile(r"(tion|sion|ture|sure)"), 3),
    (re.compile(r"(^kn|^wr|mb$|^gn|^ps)"), 3),
    (re.compile(r"[^aeiouy\s-]{3}"), 2),
]

SectionOutcome = Tuple[Any, GenerationStrategy, Optional[ValidationResult]]


def pronunciation_difficulty(word: str) -> int:
    """Score how hard a word is to pronounce for learners."""
    lowered = word.lower()
    score = sum(weight * len(pattern.findall(lowered)) for pattern, weight in _SOUND_SCORES)
    if len(lowered) > 8:
        score += 2
    return score


def select_challenging_words(vocabulary: Sequence[str], count: int = PRONUNCIATION_WORD_COUNT) -> List[str]:
    """Pick the hardest-to-pronounce terms, keeping vocabulary order on ties."""
    indexed = list(enumerate(dict.fromkeys(v for v in vocabulary if v)))
    ranked = sorted(indexed, key=lambda item: (-pronunciation_difficulty(item[1]), item[0]))
    return [word for _, word in ranked[:count]]


class _SectionRun:
    """Per-section bookkeeping: token estimate and completion attempts."""

    def __init__(self, kind: SectionKind):
        self.kind = kind
        self.tokens = 0
        self.attempts = 0
        self.start_time = time.time()

    @property
    def elapsed_ms(self) -> float:
        return (time.time() - self.start_time) * 1000


class ProgressiveGenerator:
    """Generates lesson sections one at a time.

    Args:
        completion_service: Text completion capability (``prompt(text) -> str``)
        optimizer: Prompt optimizer used for token estimates and excerpts
        progress_callback: Optional callback receiving ProgressUpdate objects
        weights: Phase weight override for progress reporting
        quality_tracker: Optional tracker recording per-section quality metrics
        warmup_max_attempts: Completion attempts for warm-up questions
        max_vocabulary_words: Words covered by the vocabulary section
    """

    def __init__(
        self,
        completion_service: CompletionService,
        optimizer: Optional[PromptOptimizer] = None,
        progress_callback: Optional[ProgressCallback] = None,
        weights: Optional[Mapping[str, int]] = None,
        quality_tracker: Optional[QualityMetricsTracker] = None,
        warmup_max_attempts: int = config.WARMUP_MAX_ATTEMPTS,
        max_vocabulary_words: int = config.MAX_VOCABULARY_WORDS,
    ):
        self.completion_service = completion_service
        self.optimizer = optimizer or PromptOptimizer()
        self.progress_callback = progress_callback
        self.progress = ProgressTracker(weights)
        self.quality_tracker = quality_tracker
        self.warmup_max_attempts = max(1, warmup_max_attempts)
        self.max_vocabulary_words = max_vocabulary_words

        self._handlers: Dict[SectionKind, Callable[..., SectionOutcome]] = {
            SectionKind.WARMUP: self._generate_warmup,
            SectionKind.VOCABULARY: self._generate_vocabulary,
            SectionKind.READING: self._generate_reading,
            SectionKind.COMPREHENSION: self._generate_comprehension,
            SectionKind.DISCUSSION: self._generate_discussion,
            SectionKind.DIALOGUE: self._generate_dialogue,
            SectionKind.GRAMMAR: self._generate_grammar,
            SectionKind.PRONUNCIATION: self._generate_pronunciation,
            SectionKind.WRAPUP: self._generate_wrapup,
        }

        self._single_prompts: Dict[SectionKind, Callable[..., str]] = {
            SectionKind.WARMUP: self._warmup_prompt,
            SectionKind.READING: self._reading_prompt,
            SectionKind.COMPREHENSION: self._comprehension_prompt,
            SectionKind.DISCUSSION: self._discussion_prompt,
            SectionKind.DIALOGUE: self._dialogue_prompt,
            SectionKind.GRAMMAR: self._grammar_prompt,
            SectionKind.WRAPUP: self._wrapup_prompt,
        }

    def set_progress_callback(self, callback: Optional[ProgressCallback]) -> None:
        """Register (or clear, with None) the default progress callback."""
        self.progress_callback = callback

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def section_update(
        self,
        section: Union[LessonSection, str],
        context: SharedContext,
        completed_section_names: Sequence[str],
        finished: bool = False,
    ) -> ProgressUpdate:
        """Progress snapshot for a section that is starting (or has just finished).

        Args:
            section: Section request (or bare section name)
            context: Shared context for this run
            completed_section_names: Sections completed before this one
            finished: Build the "Finished ..." snapshot instead of the start one

        Returns:
            ProgressUpdate with the phase set to the section name

        Raises:
            UnknownSectionError: If the section name is not supported
        """
        kind = SectionKind.from_name(section.name if isinstance(section, LessonSection) else section)
        label = STEP_LABELS[kind]
        completed = list(completed_section_names)
        if finished:
            step, completed, current = f"Finished {label}", completed + [kind.value], None
        else:
            step, current = f"Generating {label}...", kind.value
        return self.progress.build_update(
            step=step,
            phase=kind.value,
            completed_section_names=completed,
            lesson_type=context.lesson_type,
            current_section_name=current,
            section=label,
        )

    def generate_section(
        self,
        section: Union[LessonSection, str],
        context: SharedContext,
        previous_sections: Optional[Sequence[GeneratedSection]] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> GeneratedSection:
        """Generate a single lesson section.

        Dependencies declared on the request are advisory: missing ones are
        logged and generation proceeds.

        Args:
            section: Section request (or bare section name)
            context: Shared context for this run
            previous_sections: Sections already generated in this run
            progress_callback: Receives this call's start and finish updates
                (default: the generator's own callback)

        Returns:
            Immutable GeneratedSection

        Raises:
            UnknownSectionError: If the section name is not supported
            SectionGenerationError: If the fallback path fails too
        """
        request = section if isinstance(section, LessonSection) else LessonSection(name=section)
        kind = SectionKind.from_name(request.name)
        previous = list(previous_sections or [])
        completed = [s.section_name for s in previous]
        callback = progress_callback if progress_callback is not None else self.progress_callback

        missing = [d for d in request.dependencies if d not in completed]
        if missing:
            logger.warning(f"Generating {kind.value} before its dependencies: {missing}")

        if callback is not None:
            safe_progress_callback(callback, self.section_update(kind.value, context, completed))

        run = _SectionRun(kind)
        try:
            with stage_logger(
                f"section.{kind.value}",
                level=context.difficulty_level.value,
                strategy=SECTION_STRATEGIES[kind],
            ):
                content, strategy, validation = self._handlers[kind](context, previous, run)
        except Exception as e:
            raise SectionGenerationError(kind.value, e) from e

        generated = GeneratedSection(
            section_name=kind.value,
            content=content,
            tokens_used=run.tokens,
            generation_strategy=strategy,
        )
        self._record_quality(run, strategy, validation)

        if callback is not None:
            safe_progress_callback(
                callback, self.section_update(kind.value, context, completed, finished=True)
            )
        logger.info(
            f"Generated {kind.value} section: strategy={strategy.value}, "
            f"tokens={run.tokens}, attempts={run.attempts}"
        )
        return generated

    def plan_prompts(
        self,
        section: Union[LessonSection, str],
        context: SharedContext,
        previous_sections: Optional[Sequence[GeneratedSection]] = None,
    ) -> List[str]:
        """Prompts a section sends when every completion succeeds first time.

        Built by the same helpers the section handlers use, one entry per
        completion call: two per vocabulary word, one per pronunciation word
        plus the tongue twister request, one for every other section.

        Args:
            section: Section request (or bare section name)
            context: Shared context for this run
            previous_sections: Sections already generated in this run

        Returns:
            Prompt texts in call order

        Raises:
            UnknownSectionError: If the section name is not supported
        """
        kind = SectionKind.from_name(section.name if isinstance(section, LessonSection) else section)
        previous = list(previous_sections or [])

        if kind == SectionKind.VOCABULARY:
            example_count = required_example_count(context.difficulty_level)
            prompts = []
            for word in context.key_vocabulary[:self.max_vocabulary_words]:
                prompts.append(self._definition_prompt(word, context))
                prompts.append(self._examples_prompt(word, context, example_count))
            return prompts

        if kind == SectionKind.PRONUNCIATION:
            targets, stock = self._pronunciation_words(context)
            words = list(targets)
            while len(words) < PRONUNCIATION_WORD_COUNT:
                words.append(self._stock_entry(stock, len(words))["word"])
            prompts = [self._pronunciation_word_prompt(word, context) for word in targets]
            prompts.append(self._twister_prompt(words, context))
            return prompts

        return [self._single_prompts[kind](context, previous)]

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _call(self, run: _SectionRun, prompt: str) -> str:
        """Call the completion service, accounting tokens for the section."""
        run.attempts += 1
        run.tokens += estimate_tokens(prompt)
        response = self.completion_service.prompt(prompt)
        response = response if isinstance(response, str) else str(response or "")
        run.tokens += estimate_tokens(response)
        return response

    def _try_call(self, run: _SectionRun, prompt: str) -> Optional[str]:
        """Like ``_call`` but returns None when the completion fails."""
        try:
            return self._call(run, prompt)
        except Exception as e:
            logger.warning(f"Completion failed for {run.kind.value}: {str(e)[:200]}")
            return None

    def _record_quality(
        self,
        run: _SectionRun,
        strategy: GenerationStrategy,
        validation: Optional[ValidationResult],
    ) -> None:
        if self.quality_tracker is None:
            return
        self.quality_tracker.record_section(
            section_name=run.kind.value,
            validation_score=validation.score if validation else 100,
            attempt_count=run.attempts,
            generation_time_ms=run.elapsed_ms,
            issue_count=len(validation.issues) if validation else 0,
            warning_count=len(validation.warnings) if validation else 0,
            used_fallback=strategy == GenerationStrategy.FALLBACK,
        )

    def _validate(self, kind: SectionKind, content: Any, context: SharedContext) -> ValidationResult:
        result = validate_section(kind, content, context.difficulty_level, context.key_vocabulary)
        if not result.is_valid:
            logger.warning(
                f"{kind.value} content rejected: "
                + "; ".join(i.message for i in result.issues[:5])
            )
        return result

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    def _warmup_prompt(self, context: SharedContext, previous: List[GeneratedSection]) -> str:
        return section_prompts.build_warmup_prompt(
            context.main_themes,
            context.difficulty_level.value,
            context.target_language,
            QUESTION_COUNTS[SectionKind.WARMUP],
        )

    def _comprehension_prompt(self, context: SharedContext, previous: List[GeneratedSection]) -> str:
        reading = _find_section(previous, SectionKind.READING)
        if reading is not None:
            passage = str(reading.content).split("\n\n", 1)[-1]
        else:
            passage = context.content_summary
        return section_prompts.build_comprehension_prompt(
            passage, context.difficulty_level.value, QUESTION_COUNTS[SectionKind.COMPREHENSION]
        )

    def _discussion_prompt(self, context: SharedContext, previous: List[GeneratedSection]) -> str:
        return section_prompts.build_discussion_prompt(
            context.main_themes,
            context.key_vocabulary,
            context.difficulty_level.value,
            QUESTION_COUNTS[SectionKind.DISCUSSION],
        )

    def _wrapup_prompt(self, context: SharedContext, previous: List[GeneratedSection]) -> str:
        return section_prompts.build_wrapup_prompt(
            context.main_themes,
            context.key_vocabulary,
            context.difficulty_level.value,
            QUESTION_COUNTS[SectionKind.WRAPUP],
        )

    def _reading_prompt(self, context: SharedContext, previous: List[GeneratedSection]) -> str:
        vocabulary_section = _find_section(previous, SectionKind.VOCABULARY)
        if vocabulary_section is not None:
            vocabulary = [
                str(e.get("word", "")).lower()
                for e in vocabulary_section.content
                if e.get("word") != "INSTRUCTION"
            ][:READING_VOCABULARY_COUNT]
        else:
            vocabulary = context.key_vocabulary[:READING_VOCABULARY_COUNT]

        return section_prompts.build_reading_prompt(
            context.source_text,
            context.content_summary,
            context.main_themes,
            vocabulary,
            context.difficulty_level.value,
            context.target_language,
        )

    def _dialogue_prompt(self, context: SharedContext, previous: List[GeneratedSection]) -> str:
        return section_prompts.build_dialogue_prompt(
            context.main_themes, context.key_vocabulary[:8], context.difficulty_level.value
        )

    def _grammar_prompt(self, context: SharedContext, previous: List[GeneratedSection]) -> str:
        return section_prompts.build_grammar_prompt(
            context.main_themes, context.key_vocabulary, context.difficulty_level.value
        )

    def _definition_prompt(self, word: str, context: SharedContext) -> str:
        return section_prompts.build_definition_prompt(
            word, context.difficulty_level.value, context.target_language
        )

    def _examples_prompt(self, word: str, context: SharedContext, example_count: int) -> str:
        return section_prompts.build_examples_prompt(
            word, context.difficulty_level.value, context.main_themes, example_count
        )

    def _pronunciation_word_prompt(self, word: str, context: SharedContext) -> str:
        return section_prompts.build_pronunciation_word_prompt(
            word, context.difficulty_level.value, context.target_language
        )

    def _twister_prompt(self, words: List[str], context: SharedContext) -> str:
        return section_prompts.build_tongue_twister_prompt(words, context.difficulty_level.value)

    # ------------------------------------------------------------------
    # Question sections
    # ------------------------------------------------------------------

    def _question_section(
        self,
        kind: SectionKind,
        prompt: str,
        context: SharedContext,
        run: _SectionRun,
        fallback: Callable[[SharedContext], List[str]],
        attempts: int = 1,
    ) -> SectionOutcome:
        """Shared flow for sections whose content is a list of questions."""
        count = QUESTION_COUNTS[kind]
        for attempt in range(1, attempts + 1):
            response = self._try_call(run, prompt)
            if response is None:
                break
            questions = parse_questions(response, limit=count)
            validation = self._validate(kind, questions, context)
            if validation.is_valid:
                return [INSTRUCTIONS[kind]] + questions, GenerationStrategy.PROGRESSIVE, validation
            logger.info(f"{kind.value} attempt {attempt}/{attempts} rejected")

        questions = fallback(context)
        validation = validate_section(kind, questions, context.difficulty_level, context.key_vocabulary)
        logger.info(f"Using fallback {kind.value} questions")
        return [INSTRUCTIONS[kind]] + questions, GenerationStrategy.FALLBACK, validation

    def _generate_warmup(self, context, previous, run) -> SectionOutcome:
        return self._question_section(
            SectionKind.WARMUP,
            self._warmup_prompt(context, previous),
            context,
            run,
            fallbacks.fallback_warmup_questions,
            attempts=self.warmup_max_attempts,
        )

    def _generate_comprehension(self, context, previous, run) -> SectionOutcome:
        if _find_section(previous, SectionKind.READING) is None:
            logger.warning("Comprehension requested without a reading section, using the summary")
        return self._question_section(
            SectionKind.COMPREHENSION,
            self._comprehension_prompt(context, previous),
            context,
            run,
            fallbacks.fallback_comprehension_questions,
        )

    def _generate_discussion(self, context, previous, run) -> SectionOutcome:
        return self._question_section(
            SectionKind.DISCUSSION,
            self._discussion_prompt(context, previous),
            context,
            run,
            fallbacks.fallback_discussion_questions,
        )

    def _generate_wrapup(self, context, previous, run) -> SectionOutcome:
        return self._question_section(
            SectionKind.WRAPUP,
            self._wrapup_prompt(context, previous),
            context,
            run,
            fallbacks.fallback_wrapup_questions,
        )

    # ------------------------------------------------------------------
    # Vocabulary
    # ------------------------------------------------------------------

    def _generate_vocabulary(self, context, previous, run) -> SectionOutcome:
        words = context.key_vocabulary[:self.max_vocabulary_words]
        if not words:
            raise ValueError("No key vocabulary available")

        level = context.difficulty_level
        example_count = required_example_count(level)
        entries = []
        generated_any = False

        for word in words:
            entry, from_model = self._vocabulary_entry(word, context, example_count, run)
            entries.append(entry)
            generated_any = generated_any or from_model

        validation = self._validate(SectionKind.VOCABULARY, entries, context)
        strategy = GenerationStrategy.PROGRESSIVE if generated_any else GenerationStrategy.FALLBACK
        if not validation.is_valid:
            entries = [fallbacks.fallback_vocabulary_entry(w, context, example_count) for w in words]
            validation = validate_section(SectionKind.VOCABULARY, entries, level)
            strategy = GenerationStrategy.FALLBACK

        sentinel = {
            "word": "INSTRUCTION",
            "meaning": INSTRUCTIONS[SectionKind.VOCABULARY],
            "example": "",
            "examples": [],
        }
        return [sentinel] + entries, strategy, validation

    def _vocabulary_entry(
        self,
        word: str,
        context: SharedContext,
        example_count: int,
        run: _SectionRun,
    ) -> Tuple[Dict[str, Any], bool]:
        """Build one vocabulary entry; the flag tells whether the model contributed."""
        from_model = False

        meaning = ""
        response = self._try_call(run, self._definition_prompt(word, context))
        if response:
            meaning = truncate_at_word_boundary(" ".join(response.split()), MEANING_LENGTH)
        if meaning:
            from_model = True
        else:
            meaning = fallbacks.fallback_meaning(word, context)

        examples: List[str] = []
        response = self._try_call(run, self._examples_prompt(word, context, example_count))
        if response:
            examples = parse_lines(response, min_length=8, limit=example_count)
            from_model = from_model or bool(examples)
        if len(examples) < example_count:
            padding = fallbacks.fallback_examples(word, context, example_count)
            examples.extend(padding[:example_count - len(examples)])

        return {
            "word": fallbacks.title_case(word),
            "meaning": meaning,
            "example": examples[0],
            "examples": examples,
        }, from_model

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def _generate_reading(self, context, previous, run) -> SectionOutcome:
        response = self._try_call(run, self._reading_prompt(context, previous))
        passage = (response or "").strip()
        if passage:
            validation = self._validate(SectionKind.READING, passage, context)
            if validation.is_valid:
                content = f"{INSTRUCTIONS[SectionKind.READING]}\n\n{passage}"
                return content, GenerationStrategy.PROGRESSIVE, validation

        excerpt = self.optimizer.summarize_content(context.source_text, READING_EXCERPT_LENGTH)
        passage = fallbacks.fallback_reading_passage(context, excerpt)
        validation = validate_section(SectionKind.READING, passage, context.difficulty_level)
        return f"{INSTRUCTIONS[SectionKind.READING]}\n\n{passage}", GenerationStrategy.FALLBACK, validation

    # ------------------------------------------------------------------
    # Dialogue
    # ------------------------------------------------------------------

    def _generate_dialogue(self, context, previous, run) -> SectionOutcome:
        response = self._try_call(run, self._dialogue_prompt(context, previous))
        if response:
            content = self._dialogue_content(parse_dialogue(response))
            validation = self._validate(SectionKind.DIALOGUE, content, context)
            if validation.is_valid:
                return content, GenerationStrategy.PROGRESSIVE, validation

        content = self._dialogue_content(fallbacks.fallback_dialogue(context))
        validation = validate_section(
            SectionKind.DIALOGUE, content, context.difficulty_level, context.key_vocabulary
        )
        return content, GenerationStrategy.FALLBACK, validation

    def _dialogue_content(self, turns: List[Dict[str, str]]) -> Dict[str, Any]:
        return {
            "instruction": INSTRUCTIONS[SectionKind.DIALOGUE],
            "dialogue": turns,
            "follow_up_questions": list(fallbacks.DEFAULT_FOLLOW_UP_QUESTIONS),
        }

    # ------------------------------------------------------------------
    # Grammar
    # ------------------------------------------------------------------

    def _generate_grammar(self, context, previous, run) -> SectionOutcome:
        response = self._try_call(run, self._grammar_prompt(context, previous))
        if response:
            try:
                content = self._normalize_grammar(extract_json_object(response))
            except (ValueError, ValidationError) as e:
                logger.warning(f"Grammar response could not be parsed: {e}")
            else:
                validation = self._validate(SectionKind.GRAMMAR, content, context)
                if validation.is_valid:
                    return content, GenerationStrategy.PROGRESSIVE, validation

        content = {"instruction": INSTRUCTIONS[SectionKind.GRAMMAR], **fallbacks.fallback_grammar()}
        validation = validate_section(SectionKind.GRAMMAR, content, context.difficulty_level)
        return content, GenerationStrategy.FALLBACK, validation

    def _normalize_grammar(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Validate a parsed grammar object into the section's content shape.

        Raises:
            ValidationError: If the object does not describe a grammar point
        """
        grammar = GrammarContent.model_validate(data)
        return {"instruction": INSTRUCTIONS[SectionKind.GRAMMAR], **grammar.model_dump()}

    # ------------------------------------------------------------------
    # Pronunciation
    # ------------------------------------------------------------------

    def _pronunciation_words(self, context: SharedContext) -> Tuple[List[str], List[str]]:
        """Target words from the vocabulary, and the stock words available as padding."""
        targets = select_challenging_words(context.key_vocabulary, PRONUNCIATION_WORD_COUNT)
        stock = [
            entry["word"] for entry in fallbacks.STOCK_PRONUNCIATION
            if entry["word"] not in targets
        ]
        return targets, stock

    def _generate_pronunciation(self, context, previous, run) -> SectionOutcome:
        targets, stock = self._pronunciation_words(context)

        entries = []
        generated_any = False
        for word in targets:
            entry = None
            response = self._try_call(run, self._pronunciation_word_prompt(word, context))
            if response:
                try:
                    entry = self._normalize_pronunciation_word(extract_json_object(response), word)
                except (ValueError, ValidationError) as e:
                    logger.warning(f"Pronunciation entry for '{word}' could not be parsed: {e}")
            if entry is None:
                entry = self._stock_entry(stock, len(entries))
            else:
                generated_any = True
            entries.append(entry)

        while len(entries) < PRONUNCIATION_WORD_COUNT:
            entries.append(self._stock_entry(stock, len(entries)))

        twisters = []
        response = self._try_call(run, self._twister_prompt([e["word"] for e in entries], context))
        if response:
            try:
                twisters = self._normalize_twisters(extract_json(response))
            except ValueError as e:
                logger.warning(f"Tongue twisters could not be parsed: {e}")
        for stock_twister in fallbacks.fallback_pronunciation()["tongue_twisters"]:
            if len(twisters) >= 2:
                break
            twisters.append(stock_twister)

        content = {
            "instruction": INSTRUCTIONS[SectionKind.PRONUNCIATION],
            "words": entries,
            "tongue_twisters": twisters,
        }
        validation = self._validate(SectionKind.PRONUNCIATION, content, context)
        if validation.is_valid:
            strategy = GenerationStrategy.PROGRESSIVE if generated_any else GenerationStrategy.FALLBACK
            return content, strategy, validation

        content = {
            "instruction": INSTRUCTIONS[SectionKind.PRONUNCIATION],
            **fallbacks.fallback_pronunciation(PRONUNCIATION_WORD_COUNT),
        }
        validation = validate_section(SectionKind.PRONUNCIATION, content, context.difficulty_level)
        return content, GenerationStrategy.FALLBACK, validation

    def _stock_entry(self, stock_words: List[str], index: int) -> Dict[str, Any]:
        stock_index = index % len(stock_words) if stock_words else index
        word = stock_words[stock_index] if stock_words else None
        for position, entry in enumerate(fallbacks.STOCK_PRONUNCIATION):
            if entry["word"] == word:
                return fallbacks.fallback_pronunciation_entry(position)
        return fallbacks.fallback_pronunciation_entry(index)

    def _normalize_pronunciation_word(self, data: Dict[str, Any], word: str) -> Dict[str, Any]:
        entry = PronunciationWord.model_validate(data)
        if not entry.word:
            entry.word = word
        return entry.model_dump()

    def _normalize_twisters(self, data: Any) -> List[Dict[str, Any]]:
        if isinstance(data, dict):
            data = data.get("tongue_twisters") or data.get("tongueTwisters") or [data]
        twisters = []
        for item in data if isinstance(data, list) else []:
            try:
                twisters.append(TongueTwister.model_validate(item).model_dump())
            except ValidationError as e:
                logger.debug(f"Skipping tongue twister: {e.error_count()} validation errors")
        return twisters


def _find_section(sections: Sequence[GeneratedSection], kind: SectionKind) -> Optional[GeneratedSection]:
    for section in reversed(sections):
        if section.section_name == kind.value:
            return section
    return None
