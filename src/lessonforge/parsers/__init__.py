"""Parsers turning raw completion text into lesson content values."""

from lessonforge.parsers.response_parsers import (
    extract_json,
    extract_json_object,
    parse_dialogue,
    parse_lines,
    parse_questions,
    parse_terms,
    repair_incomplete_json,
    strip_code_fences,
    strip_list_marker,
)

__all__ = [
    "extract_json",
    "extract_json_object",
    "parse_dialogue",
    "parse_lines",
    "parse_questions",
    "parse_terms",
    "repair_incomplete_json",
    "strip_code_fences",
    "strip_list_marker",
]
