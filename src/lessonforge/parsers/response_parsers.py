"""Parsers for raw completion responses.

Completions arrive as free text: newline separated lists (often numbered or
bulleted), speaker-labelled dialogue, or JSON that may be wrapped in code
fences or cut off mid-object. These helpers normalize them into Python values
and raise ``ValueError`` when nothing usable can be recovered.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

_LIST_MARKER = re.compile(r"^\s*(?:\d+\s*[\.\):-]|[-*•]+|Q\d+\s*[:.)])\s*", re.IGNORECASE)
_DIALOGUE_LINE = re.compile(r"^\**\s*(Student|Tutor)\s*\**\s*:\s*\**\s*(.+)$", re.IGNORECASE)
_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


# ============================================================================
# LINE-ORIENTED RESPONSES
# ============================================================================


def strip_list_marker(line: str) -> str:
    """Remove a leading list number or bullet from a line.

    Examples:
        "1. What do you like?" -> "What do you like?"
        "- technology" -> "technology"

    Args:
        line: Raw response line

    Returns:
        Line without the marker, stripped
    """
    return _LIST_MARKER.sub("", line.strip()).strip()


def parse_lines(
    text: str,
    min_length: int = 1,
    max_length: Optional[int] = None,
    limit: Optional[int] = None,
) -> List[str]:
    """Split a response into cleaned, non-empty lines.

    Args:
        text: Raw response text
        min_length: Minimum length of a kept line
        max_length: Maximum length of a kept line (no limit when None)
        limit: Maximum number of lines returned

    Returns:
        Cleaned lines in response order
    """
    lines = []
    for raw in (text or "").splitlines():
        line = strip_list_marker(raw).strip("\"'").strip()
        if len(line) < min_length:
            continue
        if max_length is not None and len(line) > max_length:
            continue
        lines.append(line)
        if limit is not None and len(lines) >= limit:
            break
    return lines


def parse_terms(text: str, limit: int = 10, max_length: int = 40) -> List[str]:
    """Parse a newline separated term list into distinct lowercase terms.

    Args:
        text: Raw response text
        limit: Maximum number of terms
        max_length: Longest accepted term

    Returns:
        Distinct lowercase terms in response order
    """
    terms: List[str] = []
    for line in parse_lines(text, min_length=2, max_length=max_length):
        term = line.lower().strip(" .,:;!")
        if term and term not in terms:
            terms.append(term)
        if len(terms) >= limit:
            break
    return terms


def parse_questions(text: str, min_length: int = 10, limit: Optional[int] = None) -> List[str]:
    """Extract question lines from a response.

    Args:
        text: Raw response text
        min_length: Shortest accepted question
        limit: Maximum number of questions

    Returns:
        Lines that end with a question mark, in response order
    """
    questions = [
        line for line in parse_lines(text, min_length=min_length) if line.endswith("?")
    ]
    return questions[:limit] if limit is not None else questions


def parse_dialogue(text: str) -> List[Dict[str, str]]:
    """Parse ``Student:``/``Tutor:`` labelled lines into dialogue turns.

    Args:
        text: Raw response text

    Returns:
        List of {"speaker", "text"} dicts; unlabelled lines are skipped
    """
    turns = []
    for raw in (text or "").splitlines():
        match = _DIALOGUE_LINE.match(raw.strip())
        if not match:
            continue
        line = match.group(2).strip().strip("*").strip()
        if line:
            turns.append({"speaker": match.group(1).capitalize(), "text": line})
    return turns


# ============================================================================
# JSON RESPONSES
# ============================================================================


def strip_code_fences(text: str) -> str:
    """Return the body of the first fenced block, or the text unchanged."""
    match = _CODE_FENCE.search(text or "")
    return match.group(1).strip() if match else (text or "").strip()


def repair_incomplete_json(text: str) -> str:
    """Close a JSON document that was cut off mid-way.

    Closes an unterminated string, drops a dangling comma or colon and
    appends the missing closing brackets in nesting order.

    Args:
        text: Possibly truncated JSON text

    Returns:
        Text with closers appended (unchanged if already balanced)
    """
    stack: List[str] = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "{[":
            stack.append("}" if char == "{" else "]")
        elif char in "}]" and stack and stack[-1] == char:
            stack.pop()

    repaired = text
    if in_string:
        repaired += '"'
    repaired = repaired.rstrip()
    while repaired.endswith((",", ":")):
        repaired = repaired[:-1].rstrip()
    return repaired + "".join(reversed(stack))


def extract_json(text: str) -> Any:
    """Parse JSON out of a completion, repairing truncation if needed.

    Args:
        text: Raw response text

    Returns:
        Parsed JSON value (object or array)

    Raises:
        ValueError: If no JSON value can be recovered
    """
    body = strip_code_fences(text)
    if not body:
        raise ValueError("Empty response")

    try:
        return json.loads(body)
    except json.JSONDecodeError:
        pass

    starts = [i for i in (body.find("{"), body.find("[")) if i >= 0]
    if not starts:
        raise ValueError("No JSON object found in response")
    start = min(starts)
    closer = "}" if body[start] == "{" else "]"
    end = body.rfind(closer)

    candidates = []
    if end > start:
        candidates.append(body[start:end + 1])
    candidates.append(repair_incomplete_json(body[start:]))

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue

    logger.debug(f"Unparsable JSON response: {body[:200]}")
    raise ValueError("Could not parse JSON from response")


def extract_json_object(text: str) -> Dict[str, Any]:
    """Like ``extract_json`` but requires a JSON object.

    Raises:
        ValueError: If the recovered value is not an object
    """
    value = extract_json(text)
    if not isinstance(value, dict):
        raise ValueError(f"Expected a JSON object, got {type(value).__name__}")
    return value
