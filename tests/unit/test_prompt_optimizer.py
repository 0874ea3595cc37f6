"""Unit tests for the prompt/token optimizer."""

import pytest

from lessonforge.exceptions import UnknownSectionError
from lessonforge.optimizer import PromptOptimizer, PromptRequest, estimate_tokens
from lessonforge.optimizer.prompt_optimizer import truncate_at_word_boundary


@pytest.fixture
def optimizer():
    return PromptOptimizer()


class TestOptimizePrompt:
    """Test compact per-section prompts."""

    def test_vocabulary_prompt(self, optimizer):
        context = {
            "key_vocabulary": ["climate", "environment", "sustainability"],
            "main_themes": ["environmental science"],
            "difficulty_level": "B1",
            "content_summary": "Article about climate change and environmental protection",
        }

        result = optimizer.optimize_prompt("vocabulary", context)

        assert "vocabulary" in result.prompt
        assert "B1" in result.prompt
        assert result.estimated_tokens < 500
        assert result.optimization_strategy == "focused_vocabulary_extraction"

    def test_reading_prompt(self, optimizer):
        context = {
            "key_vocabulary": ["technology", "innovation", "digital"],
            "main_themes": ["technology advancement"],
            "difficulty_level": "B2",
            "content_summary": "Technology trends and digital transformation",
        }

        result = optimizer.optimize_prompt("reading", context)

        assert "reading" in result.prompt
        assert result.estimated_tokens < 800
        assert result.optimization_strategy == "content_summarization"

    def test_comprehension_prompt(self, optimizer):
        context = {
            "key_vocabulary": ["history", "culture", "tradition"],
            "main_themes": ["cultural heritage"],
            "difficulty_level": "A2",
            "content_summary": "Cultural traditions and historical significance",
        }

        result = optimizer.optimize_prompt("comprehension", context)

        assert "comprehension" in result.prompt
        assert result.estimated_tokens < 400
        assert result.optimization_strategy == "batch_question_generation"

    def test_dialogue_prompt_reuses_context(self, optimizer):
        context = {
            "key_vocabulary": ["travel", "hotel", "reservation"],
            "main_themes": ["travel and tourism"],
            "difficulty_level": "A2",
            "content_summary": "Hotel booking and travel arrangements",
        }

        result = optimizer.optimize_prompt("dialogue", context)

        assert "dialogue" in result.prompt
        assert "travel" in result.prompt
        assert result.estimated_tokens < 600
        assert result.optimization_strategy == "vocabulary_reuse"

    def test_accepts_shared_context(self, optimizer, b1_context):
        result = optimizer.optimize_prompt("warmup", b1_context)

        assert "B1" in result.prompt
        assert result.optimization_strategy == "theme_activation"
        assert result.estimated_tokens == estimate_tokens(result.prompt)

    def test_unknown_section(self, optimizer):
        with pytest.raises(UnknownSectionError):
            optimizer.optimize_prompt("karaoke", {"difficulty_level": "B1"})


class TestExtractKeyTerms:
    """Test key term extraction."""

    def test_extracts_multiword_terms(self, optimizer):
        content = (
            "Artificial intelligence and machine learning are transforming modern technology. "
            "Deep learning algorithms process vast amounts of data to identify patterns and "
            "make predictions."
        )

        terms = optimizer.extract_key_terms(content)

        assert "artificial intelligence" in terms
        assert "machine learning" in terms
        assert "deep learning" in terms
        assert "algorithms" in terms
        assert len(terms) <= 10

    def test_prioritizes_domain_vocabulary(self, optimizer):
        content = (
            "The cardiovascular system includes the heart, blood vessels, and blood. "
            "The heart pumps blood through arteries and veins to deliver oxygen and "
            "nutrients to body tissues."
        )

        terms = optimizer.extract_key_terms(content)

        assert "cardiovascular system" in terms
        assert "blood vessels" in terms
        assert "arteries" in terms
        assert "nutrients" in terms

    def test_mixed_complexity(self, optimizer):
        content = (
            "Climate change affects weather patterns globally. Scientists use sophisticated "
            "models to predict future environmental conditions and assess potential impacts "
            "on ecosystems."
        )

        terms = optimizer.extract_key_terms(content)

        assert 3 < len(terms) <= 10
        assert any("climate" in term for term in terms)

    def test_filters_common_words(self, optimizer):
        content = (
            "The economic impact of globalization has been significant. International trade "
            "agreements facilitate commerce between nations and promote economic growth."
        )

        terms = optimizer.extract_key_terms(content)

        for common in ("the", "has", "been"):
            assert common not in terms
        assert "globalization" in terms
        assert "international trade" in terms


class TestSummarizeContent:
    """Test length-bounded summaries."""

    def test_summary_within_limit_keeps_key_terms(self, optimizer):
        content = (
            "Renewable energy sources such as solar, wind, and hydroelectric power are becoming "
            "increasingly important in the fight against climate change. These technologies offer "
            "sustainable alternatives to fossil fuels and can significantly reduce greenhouse gas "
            "emissions. Solar panels convert sunlight into electricity, wind turbines harness wind "
            "power, and hydroelectric dams use flowing water to generate clean energy."
        )

        summary = optimizer.summarize_content(content, 100)

        assert len(summary) <= 100
        assert "renewable energy" in summary
        assert "climate change" in summary

    def test_preserves_key_information(self, optimizer):
        content = (
            "The human brain contains approximately 86 billion neurons that communicate through "
            "electrical and chemical signals. Neurotransmitters play a crucial role in this "
            "communication process, affecting mood, behavior, and cognitive functions."
        )

        summary = optimizer.summarize_content(content, 80)

        assert len(summary) <= 80
        assert any(word in summary.lower() for word in ("brain", "neuron", "neurotransmitter"))

    def test_short_content_unchanged(self, optimizer):
        assert optimizer.summarize_content("Short content example.", 100) == "Short content example."

    def test_keeps_whole_sentences_when_they_fit(self, optimizer):
        content = "First sentence here. Second sentence here. Third sentence is much longer than the rest."

        assert optimizer.summarize_content(content, 45) == "First sentence here. Second sentence here."

    def test_truncate_never_splits_words(self):
        assert truncate_at_word_boundary("alpha beta gamma", 12) == "alpha beta"
        assert truncate_at_word_boundary("alpha beta gamma", 13, suffix="...") == "alpha beta..."


class TestBatchPrompts:
    """Test prompt batching."""

    def test_batches_compatible_prompts(self, optimizer):
        prompts = [
            {"section": "vocabulary", "content": "vocab prompt 1", "estimated_tokens": 200},
            {"section": "vocabulary", "content": "vocab prompt 2", "estimated_tokens": 150},
            {"section": "comprehension", "content": "comp prompt 1", "estimated_tokens": 300},
            {"section": "comprehension", "content": "comp prompt 2", "estimated_tokens": 250},
        ]

        batches = optimizer.batch_prompts(prompts)

        assert len(batches) < len(prompts)
        assert any("vocabulary" in batch.sections for batch in batches)
        assert any("comprehension" in batch.sections for batch in batches)

    def test_respects_token_limit(self, optimizer):
        prompts = [
            {"section": "vocabulary", "content": "prompt 1", "estimated_tokens": 800},
            {"section": "vocabulary", "content": "prompt 2", "estimated_tokens": 800},
            {"section": "reading", "content": "prompt 3", "estimated_tokens": 400},
        ]

        batches = optimizer.batch_prompts(prompts)

        assert len(batches) == 3
        assert all(batch.total_tokens <= 1000 for batch in batches)

    def test_maintains_order(self, optimizer):
        prompts = [
            PromptRequest(section="warmup", content="warmup prompt", estimated_tokens=100),
            PromptRequest(section="vocabulary", content="vocab prompt", estimated_tokens=200),
            PromptRequest(section="reading", content="reading prompt", estimated_tokens=300),
        ]

        batches = optimizer.batch_prompts(prompts)

        assert batches[0].sections == ["warmup", "vocabulary", "reading"]
        assert "1. WARMUP: warmup prompt" in batches[0].combined_prompt

    def test_oversized_prompt_gets_own_batch(self, optimizer):
        prompts = [
            {"section": "warmup", "content": "small", "estimated_tokens": 100},
            {"section": "reading", "content": "huge", "estimated_tokens": 1500},
            {"section": "wrapup", "content": "small", "estimated_tokens": 100},
        ]

        batches = optimizer.batch_prompts(prompts)

        assert [batch.sections for batch in batches] == [["warmup"], ["reading"], ["wrapup"]]

    def test_estimates_missing_token_counts(self, optimizer):
        batches = optimizer.batch_prompts([{"section": "warmup", "content": "x" * 40}])
        assert batches[0].total_tokens == 10


class TestEstimateTokens:
    def test_rounds_up(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2
