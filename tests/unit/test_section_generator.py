"""Unit tests for the progressive section generator."""

import copy
import json
import logging
from unittest.mock import MagicMock

import pytest

from lessonforge.exceptions import SectionGenerationError, UnknownSectionError
from lessonforge.generators.fallbacks import DEFAULT_FOLLOW_UP_QUESTIONS, STOCK_PRONUNCIATION
from lessonforge.generators.section_generator import (
    INSTRUCTIONS,
    ProgressiveGenerator,
    pronunciation_difficulty,
    select_challenging_words,
)
from lessonforge.models.schema import (
    CEFRLevel,
    GeneratedSection,
    GenerationStrategy,
    LessonSection,
    SectionKind,
)
from lessonforge.optimizer.prompt_optimizer import estimate_tokens
from lessonforge.utils.quality_metrics import QualityMetricsTracker


WARMUP_RESPONSE = """1. How often do you use your phone to talk to friends?
2. What is your favourite way to keep in touch with family?
3. Do you prefer sending messages or making phone calls?"""

COMPREHENSION_RESPONSE = "\n".join([
    "What has changed the way people communicate?",
    "How do smartphones help people send messages?",
    "What does social media connect across the world?",
    "Why do some people worry about online communication?",
    "What might online communication replace?",
])

DIALOGUE_RESPONSE = "\n".join(
    ("Student: " if i % 2 == 0 else "Tutor: ")
    + f"I think my smartphone helps me talk with my family every day, point {i}."
    for i in range(12)
)

GRAMMAR_DATA = {
    "focus": "Present Perfect",
    "rule": "Use the present perfect for experiences up to now.",
    "form": "have/has + past participle",
    "usage": "Life experiences and recent changes with a present result.",
    "examples": [
        "I have used a smartphone for ten years.",
        "She has sent three messages today.",
        "We have never met online friends in person.",
    ],
    "exercises": [
        {"prompt": f"They ___ (send) message number {i}.", "answer": "have sent", "explanation": "Plural subject."}
        for i in range(5)
    ],
}

GRAMMAR_RESPONSE = "```json\n" + json.dumps(GRAMMAR_DATA) + "\n```"

PRONUNCIATION_WORD_RESPONSE = json.dumps({
    "ipa": "/test/",
    "difficult_sounds": ["th"],
    "tips": ["Slow down and stress the first syllable."],
    "practice": "Say it slowly three times.",
})

TWISTER_RESPONSE = json.dumps([
    {"text": "Three thin thinkers think things through.", "target_sounds": ["th"], "difficulty": "easy"},
    {"text": "Sally sends short smartphone messages.", "target_sounds": ["s", "sh"], "difficulty": "medium"},
])


@pytest.fixture
def scripted_service(scripted_completion):
    """Completion service with a good answer for every section prompt."""
    return scripted_completion(
        rules=[
            ("warm-up discussion questions", WARMUP_RESPONSE),
            ("Define the", "A device or system that helps people do things."),
            ("example sentences", "Technology helps me every day.\nI read about it online every week."),
            ("reading passage of", "Smartphones and social media changed how people communicate. " * 5),
            ("comprehension questions", COMPREHENSION_RESPONSE),
            ("conversation between a Student", DIALOGUE_RESPONSE),
            ("grammar lesson", GRAMMAR_RESPONSE),
            ("pronunciation guidance", PRONUNCIATION_WORD_RESPONSE),
            ("tongue twisters", TWISTER_RESPONSE),
            ("wrap-up questions", "What did you learn today?\nWhich new word will you use?\nHow will you practise at home?"),
        ]
    )


class TestGenerateSection:
    """Test the common generate_section flow."""

    def test_warmup_from_completion(self, scripted_service, b1_context):
        generator = ProgressiveGenerator(scripted_service)

        section = generator.generate_section("warmup", b1_context)

        assert section.section_name == "warmup"
        assert section.content == [
            INSTRUCTIONS[SectionKind.WARMUP],
            "How often do you use your phone to talk to friends?",
            "What is your favourite way to keep in touch with family?",
            "Do you prefer sending messages or making phone calls?",
        ]
        assert section.generation_strategy == GenerationStrategy.PROGRESSIVE

    def test_tokens_are_estimated_from_prompt_and_response(self, scripted_service, b1_context):
        section = ProgressiveGenerator(scripted_service).generate_section("warmup", b1_context)

        expected = estimate_tokens(scripted_service.prompts[0]) + estimate_tokens(WARMUP_RESPONSE)
        assert section.tokens_used == expected
        assert section.tokens_used > 0

    def test_accepts_lesson_section_and_normalizes_name(self, scripted_service, b1_context):
        section = ProgressiveGenerator(scripted_service).generate_section(
            LessonSection(name="  WarmUp "), b1_context
        )
        assert section.section_name == "warmup"

    def test_unknown_section(self, completion_service, b1_context):
        with pytest.raises(UnknownSectionError, match="Unknown section: unknown"):
            ProgressiveGenerator(completion_service).generate_section("unknown", b1_context)

        completion_service.prompt.assert_not_called()

    def test_fallback_failure_raises_section_error(self, failing_service, make_context):
        context = make_context(main_themes=[])

        with pytest.raises(SectionGenerationError, match="Failed to generate warmup section"):
            ProgressiveGenerator(failing_service).generate_section("warmup", context)

    def test_missing_dependencies_are_advisory(self, scripted_service, b1_context, caplog):
        request = LessonSection(name="comprehension", dependencies=["reading"])

        with caplog.at_level(logging.WARNING):
            section = ProgressiveGenerator(scripted_service).generate_section(request, b1_context)

        assert section.section_name == "comprehension"
        assert "before its dependencies" in caplog.text


class TestProgressReporting:
    """Test progress updates emitted around each section."""

    def test_updates_at_start_and_finish(self, failing_service, b1_context):
        callback = MagicMock()
        generator = ProgressiveGenerator(failing_service, progress_callback=callback)
        previous = [GeneratedSection(section_name="warmup", content=["Instruction", "Why?"])]

        generator.generate_section("vocabulary", b1_context, previous)

        updates = [c.args[0] for c in callback.call_args_list]
        assert [u.progress for u in updates] == [14, 36]
        assert updates[0].step == "Generating vocabulary..."
        assert updates[1].step == "Finished vocabulary"
        assert all(u.phase == "vocabulary" for u in updates)

    def test_throwing_callback_does_not_break_generation(self, scripted_service, b1_context):
        callback = MagicMock(side_effect=RuntimeError("client went away"))
        generator = ProgressiveGenerator(scripted_service, progress_callback=callback)

        section = generator.generate_section("warmup", b1_context)

        assert section.generation_strategy == GenerationStrategy.PROGRESSIVE
        assert callback.call_count == 2

    def test_set_progress_callback(self, scripted_service, b1_context):
        generator = ProgressiveGenerator(scripted_service)
        callback = MagicMock()

        generator.set_progress_callback(callback)
        generator.generate_section("warmup", b1_context)
        generator.set_progress_callback(None)
        generator.generate_section("warmup", b1_context)

        assert callback.call_count == 2

    def test_per_call_callback_replaces_default(self, scripted_service, b1_context):
        default = MagicMock()
        generator = ProgressiveGenerator(scripted_service, progress_callback=default)
        updates = []

        generator.generate_section("warmup", b1_context, progress_callback=updates.append)

        assert [u.step for u in updates] == ["Generating warm-up questions...", "Finished warm-up questions"]
        default.assert_not_called()
        assert generator.progress_callback is default

    def test_section_update(self, completion_service, b1_context):
        generator = ProgressiveGenerator(completion_service)

        start = generator.section_update(LessonSection(name="vocabulary"), b1_context, ["warmup"])
        finish = generator.section_update("vocabulary", b1_context, ["warmup"], finished=True)

        assert (start.step, start.progress, start.phase) == ("Generating vocabulary...", 14, "vocabulary")
        assert (finish.step, finish.progress, finish.section) == ("Finished vocabulary", 36, "vocabulary")

    def test_section_update_unknown_section(self, completion_service, b1_context):
        with pytest.raises(UnknownSectionError):
            ProgressiveGenerator(completion_service).section_update("karaoke", b1_context, [])


class TestQuestionSections:
    """Test warm-up, comprehension, discussion and wrap-up generation."""

    def test_warmup_retries_after_content_assumption(self, b1_context):
        bad = "What happened in the story?\nWho is the main character?\nWhat did the author say?"
        responses = iter([bad, WARMUP_RESPONSE])
        service = MagicMock()
        service.prompt.side_effect = lambda prompt: next(responses)

        section = ProgressiveGenerator(service).generate_section("warmup", b1_context)

        assert service.prompt.call_count == 2
        assert section.generation_strategy == GenerationStrategy.PROGRESSIVE

    def test_warmup_falls_back_after_two_rejections(self, completion_service, b1_context):
        completion_service.prompt.return_value = "According to the text, what happened?"

        section = ProgressiveGenerator(completion_service).generate_section("warmup", b1_context)

        assert completion_service.prompt.call_count == 2
        assert section.generation_strategy == GenerationStrategy.FALLBACK
        assert section.content[1] == "What do you already know about technology?"
        assert len(section.content) == 4

    def test_other_sections_make_one_attempt(self, completion_service, b1_context):
        completion_service.prompt.return_value = "Not a question."

        section = ProgressiveGenerator(completion_service).generate_section("wrapup", b1_context)

        assert completion_service.prompt.call_count == 1
        assert section.generation_strategy == GenerationStrategy.FALLBACK
        assert section.content[0] == INSTRUCTIONS[SectionKind.WRAPUP]

    def test_comprehension_uses_reading_passage(self, scripted_service, b1_context):
        reading = GeneratedSection(
            section_name="reading",
            content=f"{INSTRUCTIONS[SectionKind.READING]}\n\nPASSAGE MARKER about phones.",
        )

        section = ProgressiveGenerator(scripted_service).generate_section(
            "comprehension", b1_context, [reading]
        )

        assert "PASSAGE MARKER about phones." in scripted_service.prompts[-1]
        assert INSTRUCTIONS[SectionKind.READING] not in scripted_service.prompts[-1]
        assert len(section.content) == 6

    def test_comprehension_without_reading_uses_summary(self, scripted_service, b1_context):
        ProgressiveGenerator(scripted_service).generate_section("comprehension", b1_context)

        assert b1_context.content_summary in scripted_service.prompts[-1]

    def test_discussion_fallback_is_analytical_at_b2(self, failing_service, make_context):
        context = make_context(difficulty_level=CEFRLevel.B2)

        section = ProgressiveGenerator(failing_service).generate_section("discussion", context)

        assert section.generation_strategy == GenerationStrategy.FALLBACK
        assert section.content[0] == INSTRUCTIONS[SectionKind.DISCUSSION]
        assert section.content[1].startswith("Why do you think")
        assert len(section.content) == 6


class TestVocabularySection:
    """Test vocabulary generation."""

    def test_entries_from_completions(self, scripted_service, b1_context):
        section = ProgressiveGenerator(scripted_service).generate_section("vocabulary", b1_context)

        sentinel, *entries = section.content
        assert sentinel == {
            "word": "INSTRUCTION",
            "meaning": INSTRUCTIONS[SectionKind.VOCABULARY],
            "example": "",
            "examples": [],
        }
        assert [e["word"] for e in entries] == [
            "Technology", "Communicate", "Smartphone", "Social Media", "Message",
        ]
        assert all(len(e["examples"]) == 4 for e in entries)
        assert entries[0]["examples"][:2] == [
            "Technology helps me every day.",
            "I read about it online every week.",
        ]
        assert entries[0]["example"] == entries[0]["examples"][0]
        assert section.generation_strategy == GenerationStrategy.PROGRESSIVE

    @pytest.mark.parametrize(
        "level,count",
        [(CEFRLevel.A1, 5), (CEFRLevel.B1, 4), (CEFRLevel.B2, 3), (CEFRLevel.C1, 2)],
    )
    def test_example_count_per_level(self, failing_service, make_context, level, count):
        context = make_context(difficulty_level=level)

        section = ProgressiveGenerator(failing_service).generate_section("vocabulary", context)

        assert all(len(e["examples"]) == count for e in section.content[1:])
        assert section.generation_strategy == GenerationStrategy.FALLBACK

    def test_word_count_is_capped(self, failing_service, make_context):
        context = make_context(key_vocabulary=[f"term{i}" for i in range(12)])

        section = ProgressiveGenerator(failing_service).generate_section("vocabulary", context)

        assert len(section.content) == 9

    def test_long_definition_is_cut_at_a_word_boundary(self, scripted_completion, make_context):
        definition = (
            "A system of tools and machines that people use every day to share ideas and send messages "
            "and store information and work together with friends who live far away in other countries"
        )
        service = scripted_completion(rules=[("Define the", definition)])
        context = make_context(key_vocabulary=["technology"])

        section = ProgressiveGenerator(service).generate_section("vocabulary", context)

        meaning = section.content[1]["meaning"]
        assert len(definition) > 150
        assert 0 < len(meaning) <= 150
        assert definition.startswith(meaning)
        assert definition[len(meaning)] == " "

    def test_no_vocabulary(self, failing_service, make_context):
        context = make_context(key_vocabulary=[])

        with pytest.raises(SectionGenerationError, match="vocabulary"):
            ProgressiveGenerator(failing_service).generate_section("vocabulary", context)


class TestReadingSection:
    """Test reading passage generation."""

    def test_passage_from_completion(self, scripted_service, b1_context):
        section = ProgressiveGenerator(scripted_service).generate_section("reading", b1_context)

        assert section.content.startswith(INSTRUCTIONS[SectionKind.READING] + "\n\n")
        assert "Smartphones and social media" in section.content
        assert section.generation_strategy == GenerationStrategy.PROGRESSIVE

    def test_prompt_uses_vocabulary_section_words(self, scripted_service, b1_context):
        vocabulary = GeneratedSection(
            section_name="vocabulary",
            content=[
                {"word": "INSTRUCTION", "meaning": "Study:", "example": "", "examples": []},
                {"word": "Broadband", "meaning": "m", "example": "e", "examples": ["e"]},
            ],
        )

        ProgressiveGenerator(scripted_service).generate_section("reading", b1_context, [vocabulary])

        assert "naturally: broadband" in scripted_service.prompts[-1]

    def test_short_passage_falls_back(self, completion_service, b1_context):
        completion_service.prompt.return_value = "Too short."

        section = ProgressiveGenerator(completion_service).generate_section("reading", b1_context)

        assert section.generation_strategy == GenerationStrategy.FALLBACK
        assert b1_context.content_summary in section.content
        assert section.content.startswith(INSTRUCTIONS[SectionKind.READING])


class TestDialogueSection:
    """Test dialogue generation."""

    def test_dialogue_from_completion(self, scripted_service, b1_context):
        section = ProgressiveGenerator(scripted_service).generate_section("dialogue", b1_context)

        assert section.content["instruction"] == INSTRUCTIONS[SectionKind.DIALOGUE]
        assert len(section.content["dialogue"]) == 12
        assert section.content["dialogue"][0]["speaker"] == "Student"
        assert section.content["dialogue"][1]["speaker"] == "Tutor"
        assert section.content["follow_up_questions"] == DEFAULT_FOLLOW_UP_QUESTIONS
        assert section.generation_strategy == GenerationStrategy.PROGRESSIVE

    def test_fallback_dialogue(self, failing_service, b1_context):
        section = ProgressiveGenerator(failing_service).generate_section("dialogue", b1_context)

        assert section.generation_strategy == GenerationStrategy.FALLBACK
        assert len(section.content["dialogue"]) == 12
        assert "technology" in section.content["dialogue"][0]["text"]


class TestGrammarSection:
    """Test grammar generation."""

    def test_grammar_from_fenced_json(self, scripted_service, b1_context):
        section = ProgressiveGenerator(scripted_service).generate_section("grammar", b1_context)

        assert section.content["instruction"] == INSTRUCTIONS[SectionKind.GRAMMAR]
        assert section.content["focus"] == "Present Perfect"
        assert len(section.content["examples"]) == 3
        assert len(section.content["exercises"]) == 5
        assert section.generation_strategy == GenerationStrategy.PROGRESSIVE

    def test_nested_explanation_and_grammar_point_key(self, completion_service, b1_context):
        data = copy.deepcopy(GRAMMAR_DATA)
        data["grammarPoint"] = data.pop("focus")
        data["explanation"] = {"rule": data.pop("rule"), "form": data.pop("form"), "usage": data.pop("usage")}
        completion_service.prompt.return_value = json.dumps(data)

        section = ProgressiveGenerator(completion_service).generate_section("grammar", b1_context)

        assert section.content["focus"] == "Present Perfect"
        assert section.content["form"] == "have/has + past participle"
        assert section.generation_strategy == GenerationStrategy.PROGRESSIVE

    def test_unparsable_response_uses_canned_lesson(self, completion_service, b1_context):
        completion_service.prompt.return_value = "I cannot help with that."

        section = ProgressiveGenerator(completion_service).generate_section("grammar", b1_context)

        assert section.content["focus"] == "Present Simple Tense"
        assert len(section.content["examples"]) == 3
        assert len(section.content["exercises"]) == 3
        assert section.generation_strategy == GenerationStrategy.FALLBACK

    def test_failed_completion_uses_canned_lesson(self, failing_service, b1_context):
        section = ProgressiveGenerator(failing_service).generate_section("grammar", b1_context)

        assert section.content["focus"] == "Present Simple Tense"
        assert section.generation_strategy == GenerationStrategy.FALLBACK


class TestPronunciationSection:
    """Test pronunciation generation."""

    def test_pronunciation_from_completions(self, scripted_service, b1_context):
        section = ProgressiveGenerator(scripted_service).generate_section("pronunciation", b1_context)

        words = section.content["words"]
        assert section.content["instruction"] == INSTRUCTIONS[SectionKind.PRONUNCIATION]
        assert sorted(w["word"] for w in words) == sorted(b1_context.key_vocabulary)
        assert all(w["ipa"] == "/test/" for w in words)
        assert len(section.content["tongue_twisters"]) == 2
        assert section.generation_strategy == GenerationStrategy.PROGRESSIVE

    def test_unparsable_word_is_replaced_by_stock_entry(self, scripted_completion, b1_context):
        service = scripted_completion(
            rules=[
                ('"message"', "no json here"),
                ("pronunciation guidance", PRONUNCIATION_WORD_RESPONSE),
                ("tongue twisters", TWISTER_RESPONSE),
            ]
        )

        section = ProgressiveGenerator(service).generate_section("pronunciation", b1_context)

        words = [w["word"] for w in section.content["words"]]
        stock_words = {entry["word"] for entry in STOCK_PRONUNCIATION}
        assert len(words) == 5
        assert "message" not in words
        assert len([w for w in words if w in stock_words]) == 1
        assert section.generation_strategy == GenerationStrategy.PROGRESSIVE

    def test_camel_case_keys_and_missing_ipa(self, scripted_completion, b1_context):
        camel_case = json.dumps({
            "ipa": " /tɛkˈnɒlədʒi/ ",
            "difficultSounds": "dʒ",
            "tips": "Stress the second syllable.",
            "practiceSentence": "Technology is everywhere.",
        })
        service = scripted_completion(
            rules=[
                ("tongue twisters", TWISTER_RESPONSE),
                ('"technology"', camel_case),
                ("pronunciation guidance", json.dumps({"difficult_sounds": ["r"], "tips": ["Relax."]})),
            ]
        )

        section = ProgressiveGenerator(service).generate_section("pronunciation", b1_context)

        words = {w["word"]: w for w in section.content["words"]}
        assert words["technology"] == {
            "word": "technology",
            "ipa": "/tɛkˈnɒlədʒi/",
            "difficult_sounds": ["dʒ"],
            "tips": ["Stress the second syllable."],
            "practice": "Technology is everywhere.",
        }
        stock_words = {entry["word"] for entry in STOCK_PRONUNCIATION}
        assert len(words) == 5
        assert set(words) - {"technology"} <= stock_words
        assert section.generation_strategy == GenerationStrategy.PROGRESSIVE

    def test_stock_twisters_pad_the_list(self, scripted_completion, b1_context):
        service = scripted_completion(
            rules=[
                ("pronunciation guidance", PRONUNCIATION_WORD_RESPONSE),
                ("tongue twisters", RuntimeError("timeout")),
            ]
        )

        section = ProgressiveGenerator(service).generate_section("pronunciation", b1_context)

        assert len(section.content["tongue_twisters"]) == 2
        assert section.generation_strategy == GenerationStrategy.PROGRESSIVE

    def test_everything_failing_uses_stock_section(self, failing_service, b1_context):
        section = ProgressiveGenerator(failing_service).generate_section("pronunciation", b1_context)

        assert len(section.content["words"]) == 5
        assert all(w["ipa"] for w in section.content["words"])
        assert section.generation_strategy == GenerationStrategy.FALLBACK


class TestPlanPrompts:
    """Test the prompt plan against the prompts actually sent."""

    @pytest.mark.parametrize("section", ["warmup", "vocabulary", "grammar", "pronunciation", "wrapup"])
    def test_plan_matches_sent_prompts(self, scripted_service, b1_context, section):
        generator = ProgressiveGenerator(scripted_service)
        planned = generator.plan_prompts(section, b1_context)

        generator.generate_section(section, b1_context)

        assert planned == scripted_service.prompts

    def test_call_counts(self, completion_service, b1_context):
        generator = ProgressiveGenerator(completion_service)

        assert len(generator.plan_prompts("vocabulary", b1_context)) == 2 * 5
        assert len(generator.plan_prompts("pronunciation", b1_context)) == 5 + 1
        assert len(generator.plan_prompts("reading", b1_context)) == 1
        completion_service.prompt.assert_not_called()

    def test_reading_plan_uses_previous_vocabulary(self, scripted_service, b1_context):
        generator = ProgressiveGenerator(scripted_service)
        vocabulary = generator.generate_section("vocabulary", b1_context)
        scripted_service.prompts.clear()

        planned = generator.plan_prompts("reading", b1_context, [vocabulary])
        generator.generate_section("reading", b1_context, [vocabulary])

        assert planned == scripted_service.prompts

    def test_unknown_section(self, completion_service, b1_context):
        with pytest.raises(UnknownSectionError):
            ProgressiveGenerator(completion_service).plan_prompts("karaoke", b1_context)


class TestChallengingWords:
    """Test pronunciation difficulty ranking."""

    def test_difficulty_scores(self):
        assert pronunciation_difficulty("cat") == 0
        assert pronunciation_difficulty("through") == 13
        assert pronunciation_difficulty("strength") == 16

    def test_ranked_by_difficulty(self):
        assert select_challenging_words(["cat", "through", "strength"], 2) == ["strength", "through"]

    def test_ties_keep_vocabulary_order(self):
        assert select_challenging_words(["dog", "cat", "dog"], 5) == ["dog", "cat"]


class TestQualityTracking:
    """Test quality metrics recorded per section."""

    def test_successful_section(self, scripted_service, b1_context):
        tracker = QualityMetricsTracker()

        ProgressiveGenerator(scripted_service, quality_tracker=tracker).generate_section("warmup", b1_context)

        metrics = tracker.get_section_metrics("warmup")
        assert metrics.attempt_count == 1
        assert metrics.used_fallback is False
        assert metrics.validation_score == 100

    def test_fallback_section(self, failing_service, b1_context):
        tracker = QualityMetricsTracker()

        ProgressiveGenerator(failing_service, quality_tracker=tracker).generate_section("wrapup", b1_context)

        assert tracker.get_section_metrics("wrapup").used_fallback is True
