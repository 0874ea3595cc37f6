"""Pydantic models for structured section payloads returned by the model.

Grammar and pronunciation prompts ask for JSON. The model's output is
validated into these models with ``model_validate``; camelCase and
alternate keys are accepted through ``AliasChoices``. A ``ValidationError``
means the payload is unusable and the caller falls back.
"""

from typing import Any, List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _clean_strings(values: List[Any]) -> List[str]:
    return [str(v).strip() for v in values if v is not None and str(v).strip()]


class _Payload(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
    )


# ============================================================================
# Grammar
# ============================================================================


class GrammarExercise(_Payload):
    """One practice item; a bare string becomes a prompt without answer."""

    prompt: str = Field(default="", validation_alias=AliasChoices("prompt", "question"))
    answer: str = ""
    explanation: str = ""

    @model_validator(mode="before")
    @classmethod
    def from_text(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return data
        return {"prompt": data}

    @field_validator("prompt", "answer", "explanation", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class GrammarContent(_Payload):
    """Grammar focus with rule, form, usage, examples and exercises.

    ``rule``, ``form`` and ``usage`` may arrive nested under an
    ``explanation`` object; they are lifted to the top level.
    """

    focus: str = Field(
        default="", validation_alias=AliasChoices("focus", "grammarPoint", "grammar_point")
    )
    rule: str = ""
    form: str = ""
    usage: str = ""
    examples: List[str] = Field(default_factory=list)
    exercises: List[GrammarExercise] = Field(
        default_factory=list, validation_alias=AliasChoices("exercises", "exercise")
    )

    @model_validator(mode="before")
    @classmethod
    def lift_explanation(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        explanation = data.get("explanation")
        if not isinstance(explanation, dict):
            return data
        merged = {k: v for k, v in data.items() if k != "explanation"}
        for key, value in explanation.items():
            if not merged.get(key):
                merged[key] = value
        return merged

    @field_validator("focus", "rule", "form", "usage", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("examples", mode="before")
    @classmethod
    def clean_examples(cls, v: Any) -> List[str]:
        return _clean_strings(_as_list(v))

    @field_validator("exercises", mode="before")
    @classmethod
    def drop_blank_exercises(cls, v: Any) -> List[Any]:
        return [item for item in _as_list(v) if not (isinstance(item, str) and not item.strip())]


# ============================================================================
# Pronunciation
# ============================================================================


class PronunciationWord(_Payload):
    """Pronunciation guidance for one word. The IPA transcription is required."""

    word: str = ""
    ipa: str = Field(..., min_length=1)
    difficult_sounds: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("difficult_sounds", "difficultSounds")
    )
    tips: List[str] = Field(default_factory=list)
    practice: str = Field(
        default="",
        validation_alias=AliasChoices("practice", "practice_sentence", "practiceSentence"),
    )

    @field_validator("word", "practice", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("difficult_sounds", "tips", mode="before")
    @classmethod
    def as_string_list(cls, v: Any) -> List[str]:
        return _clean_strings(_as_list(v))


class TongueTwister(_Payload):
    """A tongue twister with the sounds it drills."""

    text: str = Field(..., min_length=1)
    target_sounds: List[str] = Field(
        ..., min_length=1, validation_alias=AliasChoices("target_sounds", "targetSounds")
    )
    difficulty: str = "medium"

    @field_validator("target_sounds", mode="before")
    @classmethod
    def as_string_list(cls, v: Any) -> List[str]:
        return _clean_strings(_as_list(v))

    @field_validator("difficulty", mode="before")
    @classmethod
    def default_difficulty(cls, v: Any) -> Any:
        return v or "medium"
