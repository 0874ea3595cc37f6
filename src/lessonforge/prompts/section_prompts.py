"""Prompts for shared-context analysis and per-section generation.

Every prompt is built from the shared context (vocabulary, themes, summary,
level). Only the analysis prompts and the reading prompt see source text.
"""

from typing import Dict, List

# Level-specific guidance appended to question and dialogue prompts
LEVEL_GUIDANCE: Dict[str, str] = {
    "A1": "Use very simple present-tense sentences of 3-6 words and only everyday words.",
    "A2": "Use simple sentences about familiar topics and personal experience.",
    "B1": "Use clear standard language; ask about experiences, opinions and plans.",
    "B2": "Use varied structures; invite opinions with reasons and comparisons.",
    "C1": "Use sophisticated language; invite analysis, evaluation and nuance.",
    "C2": "Use precise, idiomatic language; invite abstract and critical reasoning.",
}

# Grammar focus suggestions by level
GRAMMAR_POINTS: Dict[str, str] = {
    "A1": "present simple, articles, basic prepositions",
    "A2": "past simple, comparatives, modal verbs",
    "B1": "present perfect, conditionals, passive voice",
    "B2": "relative clauses, advanced conditionals, reported speech",
    "C1": "subjunctive, cleft sentences, inversion",
    "C2": "subjunctive, cleft sentences, inversion",
}

# Sentence length guidance for dialogue lines
DIALOGUE_COMPLEXITY: Dict[str, str] = {
    "A1": "short sentences of at least 3 words",
    "A2": "simple sentences of at least 5 words",
    "B1": "connected sentences of at least 8 words",
    "B2": "complex sentences of at least 10 words",
    "C1": "sophisticated sentences of at least 12 words",
    "C2": "sophisticated sentences of at least 12 words",
}


def _join(items: List[str], default: str = "general topic") -> str:
    return ", ".join(items) if items else default


# ============================================================================
# SHARED CONTEXT ANALYSIS
# ============================================================================


def build_vocabulary_extraction_prompt(source_text: str, level: str, count: int = 6) -> str:
    return f"""Extract {count} key vocabulary words from this text that are useful for {level} level learners.
Return one word per line, with no numbering or explanations.

Text:
{source_text}"""


def build_theme_extraction_prompt(source_text: str, max_themes: int = 3) -> str:
    return f"""Identify up to {max_themes} main themes or topics of this text.
Return one short theme (1-4 words) per line, with no numbering or explanations.

Text:
{source_text}"""


def build_summary_prompt(source_text: str, level: str) -> str:
    return f"""Summarize this text in one short paragraph (at most 3 sentences) suitable for planning a {level} level lesson.

Text:
{source_text}"""


def build_title_prompt(source_text: str, lesson_type: str, level: str) -> str:
    return f"""Write a short lesson title (3-8 words) for a {level} level {lesson_type} lesson about:
{source_text[:150]}

Return only the title."""


# ============================================================================
# SECTION PROMPTS
# ============================================================================


def build_warmup_prompt(themes: List[str], level: str, language: str, count: int = 3) -> str:
    """Build the warm-up question prompt.

    Warm-up questions are asked before the student reads anything, so the
    prompt forbids references to the source material.
    """
    return f"""Write {count} warm-up discussion questions for a {level} {language} lesson about: {_join(themes)}.

Rules:
- Ask about the student's own experiences, opinions and habits.
- Do NOT refer to any text, story, article, passage or author.
- Do NOT mention specific people, places or events.
- {LEVEL_GUIDANCE.get(level, LEVEL_GUIDANCE["B1"])}
- Every question must end with a question mark.

Return exactly {count} questions, one per line, with no numbering."""


def build_definition_prompt(word: str, level: str, language: str) -> str:
    return f"""Define the {language} word "{word}" for a {level} level learner in one short sentence.
Return only the definition."""


def build_examples_prompt(word: str, level: str, themes: List[str], count: int) -> str:
    return f"""Write {count} example sentences using the word "{word}" at {level} level, related to: {_join(themes)}.
Return one sentence per line, with no numbering."""


def build_reading_prompt(
    source_text: str,
    summary: str,
    themes: List[str],
    vocabulary: List[str],
    level: str,
    language: str,
) -> str:
    return f"""Write a reading passage of 150-250 words in {language} for {level} level learners.

Base it on this source material:
{source_text}

Summary: {summary}
Themes: {_join(themes)}
Use these vocabulary words naturally: {_join(vocabulary, "none")}

{LEVEL_GUIDANCE.get(level, LEVEL_GUIDANCE["B1"])}
Return only the passage."""


def build_comprehension_prompt(passage: str, level: str, count: int = 5) -> str:
    return f"""Write {count} comprehension questions about this reading passage for {level} level learners.

Passage:
{passage}

Mix factual questions with questions about meaning and inference.
Return {count} questions, one per line, each ending with a question mark, with no numbering."""


def build_discussion_prompt(themes: List[str], vocabulary: List[str], level: str, count: int = 5) -> str:
    if level in ("B2", "C1", "C2"):
        style = (
            "analytical questions that ask learners to evaluate, compare and justify "
            "(e.g. 'Why do you think...', 'To what extent...', 'How might...')"
        )
    else:
        style = "experiential questions about the learner's own life, likes and opinions"
    return f"""Write exactly {count} open-ended discussion questions about: {_join(themes)}.
Use {style}.
Where natural, include these words: {_join(vocabulary, "none")}.
{LEVEL_GUIDANCE.get(level, LEVEL_GUIDANCE["B1"])}
Start the questions with different words.
Return {count} questions, one per line, with no numbering."""


def build_dialogue_prompt(themes: List[str], vocabulary: List[str], level: str, lines: int = 12) -> str:
    return f"""Write a conversation between a Student and a Tutor about: {_join(themes)}.

Requirements:
- At least {lines} lines, alternating speakers, starting with the Student.
- Use these vocabulary words: {_join(vocabulary, "none")}.
- Use {DIALOGUE_COMPLEXITY.get(level, DIALOGUE_COMPLEXITY["B1"])}, suitable for {level} learners.

Format every line as "Student: ..." or "Tutor: ..." with nothing else."""


def build_grammar_prompt(themes: List[str], vocabulary: List[str], level: str) -> str:
    return f"""Create a grammar lesson for {level} learners. Choose one grammar point suited to the level
(suggestions: {GRAMMAR_POINTS.get(level, GRAMMAR_POINTS["B1"])}) and relate the examples to: {_join(themes)}.
Where natural, use these words: {_join(vocabulary, "none")}.

Return ONLY a JSON object with this structure:
{{
  "focus": "name of the grammar point",
  "rule": "one or two sentence explanation of the rule",
  "form": "how the structure is built",
  "usage": "when the structure is used",
  "examples": ["example 1", "example 2", "example 3"],
  "exercises": [
    {{"prompt": "exercise sentence with a ___ gap", "answer": "correct answer", "explanation": "why"}}
  ]
}}
Include exactly 3 examples and 5 exercises."""


def build_pronunciation_word_prompt(word: str, level: str, language: str) -> str:
    return f"""Give pronunciation guidance for the {language} word "{word}" for a {level} learner.

Return ONLY a JSON object:
{{
  "word": "{word}",
  "ipa": "/IPA transcription/",
  "difficult_sounds": ["sound 1"],
  "tips": ["tip 1", "tip 2"],
  "practice": "a short practice sentence using the word"
}}"""


def build_tongue_twister_prompt(words: List[str], level: str, count: int = 2) -> str:
    return f"""Write {count} tongue twisters for {level} learners that practise the sounds in: {_join(words, "common words")}.

Return ONLY a JSON array:
[
  {{"text": "tongue twister", "target_sounds": ["th"], "difficulty": "easy|medium|hard"}}
]"""


def build_wrapup_prompt(themes: List[str], vocabulary: List[str], level: str, count: int = 3) -> str:
    return f"""Write {count} reflective wrap-up questions for the end of a {level} lesson about: {_join(themes)}.
The questions should help the learner review what they learned and use these words: {_join(vocabulary, "none")}.
{LEVEL_GUIDANCE.get(level, LEVEL_GUIDANCE["B1"])}
Return {count} questions, one per line, with no numbering."""
