"""Deterministic fallback content built from the shared context alone.

Used whenever a completion call fails or its output does not pass
validation. Builders raise ``ValueError`` when the context lacks the inputs
they need; the generator turns that into a section generation error.
"""

from itertools import cycle, islice
from typing import Any, Dict, List

from lessonforge.models.schema import CEFRLevel, SharedContext

DEFAULT_FOLLOW_UP_QUESTIONS = [
    "What did you learn from this conversation?",
    "How would you continue this discussion?",
    "What questions would you ask next?",
]


def title_case(term: str) -> str:
    """Capitalize each word of a term ("machine learning" -> "Machine Learning")."""
    return " ".join(part[:1].upper() + part[1:].lower() for part in term.split())


def _take(items: List[str], count: int) -> List[str]:
    """Return ``count`` items, cycling through ``items`` if there are too few."""
    return list(islice(cycle(items), count))


def _themes(context: SharedContext, section: str) -> List[str]:
    if not context.main_themes:
        raise ValueError(f"No themes available for {section} fallback")
    return list(context.main_themes)


# ============================================================================
# QUESTION SECTIONS
# ============================================================================


def fallback_warmup_questions(context: SharedContext, count: int = 3) -> List[str]:
    first, second, third = _take(_themes(context, "warmup"), 3)
    questions = [
        f"What do you already know about {first}?",
        f"How is {second} part of your daily life?",
        f"Why do you think people are interested in {third}?",
    ]
    return questions[:count]


def fallback_comprehension_questions(context: SharedContext, count: int = 5) -> List[str]:
    themes = _themes(context, "comprehension")
    vocabulary = context.key_vocabulary or themes
    first_theme, second_theme = _take(themes, 2)
    questions = [
        "What is the main idea of the text?",
        f"What does the text say about {first_theme}?",
        f"How is the word \"{vocabulary[0]}\" used in the text?",
        f"What new information did the text give you about {second_theme}?",
        "Which part of the text was most interesting to you, and why?",
    ]
    return questions[:count]


def fallback_discussion_questions(context: SharedContext, count: int = 5) -> List[str]:
    t1, t2, t3, t4, t5 = _take(_themes(context, "discussion"), 5)
    if context.difficulty_level.rank >= CEFRLevel.B2.rank:
        questions = [
            f"Why do you think {t1} matters so much today?",
            f"To what extent does {t2} affect people in your country?",
            f"How might {t3} change over the next ten years?",
            f"What factors make {t4} difficult for some people?",
            f"In what ways has {t5} influenced your own life?",
        ]
    else:
        questions = [
            f"Do you like talking about {t1}?",
            f"What is your own experience with {t2}?",
            f"How often do you think about {t3}?",
            f"Which part of {t4} is most interesting for you?",
            f"Would you like to learn more about {t5}?",
        ]
    return questions[:count]


def fallback_wrapup_questions(context: SharedContext, count: int = 3) -> List[str]:
    themes = _themes(context, "wrapup")
    words = ", ".join(context.key_vocabulary[:3]) or themes[0]
    questions = [
        f"What is the most important thing you learned today about {themes[0]}?",
        f"Can you make a new sentence with one of these words: {words}?",
        "How will you use what you learned in this lesson outside the classroom?",
    ]
    return questions[:count]


# ============================================================================
# VOCABULARY AND READING
# ============================================================================


def fallback_meaning(word: str, context: SharedContext) -> str:
    theme = context.main_themes[0] if context.main_themes else "this lesson"
    return f"A key word used when talking about {theme}."


def fallback_examples(word: str, context: SharedContext, count: int) -> List[str]:
    theme = context.main_themes[0] if context.main_themes else "everyday life"
    templates = [
        f"The word \"{word}\" is useful when we talk about {theme}.",
        f"My teacher explained the meaning of \"{word}\" in class.",
        f"I wrote \"{word}\" in my notebook so I can remember it.",
        f"We often hear \"{word}\" in conversations about {theme}.",
        f"Today I tried to use \"{word}\" in a sentence of my own.",
    ]
    return _take(templates, count)


def fallback_vocabulary_entry(word: str, context: SharedContext, example_count: int) -> Dict[str, Any]:
    examples = fallback_examples(word, context, example_count)
    return {
        "word": title_case(word),
        "meaning": fallback_meaning(word, context),
        "example": examples[0] if examples else "",
        "examples": examples,
    }


def fallback_reading_passage(context: SharedContext, source_excerpt: str) -> str:
    """Passage made of the summary and an excerpt of the source text."""
    parts = [p for p in (context.content_summary.strip(), source_excerpt.strip()) if p]
    if parts and parts[0] == parts[-1]:
        parts = parts[:1]
    passage = "\n\n".join(parts)
    if not passage:
        raise ValueError("No summary or source text available for reading fallback")
    return passage


# ============================================================================
# DIALOGUE
# ============================================================================


def fallback_dialogue(context: SharedContext) -> List[Dict[str, str]]:
    themes = _themes(context, "dialogue")
    t1, t2 = _take(themes, 2)
    v1, v2, v3, v4 = _take(context.key_vocabulary or themes, 4)
    lines = [
        f"Hello! Today I would like to talk about {t1}.",
        f"Great idea. What do you already know about {t1}?",
        f"I know the word {v1}, but I am not sure how to use it.",
        f"Good question. Let's make a sentence with {v1} together.",
        f"I think {v2} is also important for this topic.",
        f"Yes, {v2} is a very useful word. Can you give me an example?",
        f"Sure. I often read about {v3} in the news.",
        f"Excellent. How do you feel about {t2}?",
        f"I find {t2} interesting because it affects my daily life.",
        "That makes sense. Which new word do you want to practise more?",
        f"I want to practise {v4} because it is difficult for me.",
        f"Perfect. Let's review {v4} and the other words at the end of the lesson.",
    ]
    return [
        {"speaker": "Student" if index % 2 == 0 else "Tutor", "text": text}
        for index, text in enumerate(lines)
    ]


# ============================================================================
# GRAMMAR
# ============================================================================


def fallback_grammar() -> Dict[str, Any]:
    """Canned present simple lesson with 3 examples and 3 exercises."""
    return {
        "focus": "Present Simple Tense",
        "rule": "Use the present simple for habits, routines and facts that are generally true.",
        "form": "Subject + base verb; add -s or -es for he, she and it. Negatives use do/does not + base verb.",
        "usage": "Daily routines, general truths, timetables and permanent situations.",
        "examples": [
            "I drink coffee every morning.",
            "She works in a hospital.",
            "The sun rises in the east.",
        ],
        "exercises": [
            {
                "prompt": "He ___ (play) football on Saturdays.",
                "answer": "plays",
                "explanation": "Add -s to the verb after he, she or it.",
            },
            {
                "prompt": "They ___ (not like) cold weather.",
                "answer": "don't like",
                "explanation": "Use do not + base verb for negatives with they.",
            },
            {
                "prompt": "___ you ___ (speak) English at work?",
                "answer": "Do, speak",
                "explanation": "Questions use do/does + subject + base verb.",
            },
        ],
    }


# ============================================================================
# PRONUNCIATION
# ============================================================================

STOCK_PRONUNCIATION: List[Dict[str, Any]] = [
    {
        "word": "comfortable",
        "ipa": "/ˈkʌmftəbəl/",
        "difficult_sounds": ["mf", "schwa"],
        "tips": ["Say it in three syllables, not four: COMF-ta-ble.", "Stress the first syllable."],
        "practice": "This chair is very comfortable.",
    },
    {
        "word": "thought",
        "ipa": "/θɔːt/",
        "difficult_sounds": ["th", "ough"],
        "tips": ["Put your tongue between your teeth for 'th'.", "It has one syllable; the 'gh' is silent."],
        "practice": "I thought about it all day.",
    },
    {
        "word": "vegetable",
        "ipa": "/ˈvedʒtəbəl/",
        "difficult_sounds": ["dʒ", "schwa"],
        "tips": ["Say it in three syllables: VEG-ta-ble.", "Stress the first syllable."],
        "practice": "Eat a vegetable with every meal.",
    },
    {
        "word": "particularly",
        "ipa": "/pərˈtɪkjələrli/",
        "difficult_sounds": ["r", "l"],
        "tips": ["Stress the second syllable: par-TIC-u-lar-ly.", "Keep the unstressed vowels short."],
        "practice": "I particularly enjoy summer evenings.",
    },
    {
        "word": "world",
        "ipa": "/wɜːrld/",
        "difficult_sounds": ["rl"],
        "tips": ["Move from 'r' to 'l' without adding a vowel.", "It has only one syllable."],
        "practice": "She wants to travel around the world.",
    },
    {
        "word": "specific",
        "ipa": "/spəˈsɪfɪk/",
        "difficult_sounds": ["sp", "s"],
        "tips": ["Stress the second syllable: spe-CIF-ic.", "Do not add a vowel before 'sp'."],
        "practice": "Can you give me a specific example?",
    },
]

STOCK_TONGUE_TWISTERS: List[Dict[str, Any]] = [
    {
        "text": "She sells seashells by the seashore.",
        "target_sounds": ["s", "sh"],
        "difficulty": "easy",
    },
    {
        "text": "Thirty-three thin thinkers thought thoroughly.",
        "target_sounds": ["th"],
        "difficulty": "medium",
    },
]


def fallback_pronunciation_entry(index: int) -> Dict[str, Any]:
    """Stock pronunciation entry (IPA plus a syllable stress tip)."""
    entry = STOCK_PRONUNCIATION[index % len(STOCK_PRONUNCIATION)]
    return {**entry, "difficult_sounds": list(entry["difficult_sounds"]), "tips": list(entry["tips"])}


def fallback_pronunciation(word_count: int = 5) -> Dict[str, List[Dict[str, Any]]]:
    """Stock words and tongue twisters for a full pronunciation section."""
    return {
        "words": [fallback_pronunciation_entry(i) for i in range(word_count)],
        "tongue_twisters": [
            {**t, "target_sounds": list(t["target_sounds"])} for t in STOCK_TONGUE_TWISTERS
        ],
    }
