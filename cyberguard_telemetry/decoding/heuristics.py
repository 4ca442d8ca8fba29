"""
Recovery heuristics for malformed JSON response bodies.

Each heuristic is a pure function taking the raw text and returning a
ParsedValue on success or None. RECOVERY_CHAIN lists them in the order the
decoder tries them; reorder or extend the tuple to change the policy.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple


@dataclass(frozen=True)
class ParsedValue:
    """Structured value extracted from a response body."""

    value: Any
    recovered_by: Optional[str] = None

    @property
    def recovered(self) -> bool:
        return self.recovered_by is not None


@dataclass(frozen=True)
class RecoveryHeuristic:
    """One numbered step of the recovery chain."""

    order: int
    name: str
    attempt: Callable[[str], Optional[ParsedValue]]

    def __call__(self, raw_text: str) -> Optional[ParsedValue]:
        return self.attempt(raw_text)


_MARKERS = ("\ufeff", "\u00ef\u00bb\u00bf")

# Bounds on the scanning heuristics; decoding runs on the event loop.
MAX_SCAN_CHARS = 64 * 1024
MAX_PARSE_ATTEMPTS = 32


def _try_parse(candidate: str, name: str) -> Optional[ParsedValue]:
    try:
        return ParsedValue(json.loads(candidate), recovered_by=name)
    except (json.JSONDecodeError, RecursionError):
        return None


def _matching_brace(text: str, start: int) -> Optional[int]:
    """
    Return the index of the brace closing the object opened at ``start``.

    Braces inside string literals are ignored. Returns None when the object
    is never closed.
    """
    depth = 0
    in_string = False
    escaped = False

    for index in range(start, len(text)):
        char = text[index]
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
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index

    return None


def _balanced_spans(text: str) -> List[Tuple[int, int]]:
    """
    Return ``(start, end)`` of every balanced-brace object in one pass.

    Quotes only open string literals inside an object, so braces in strings
    are ignored while stray quotes in surrounding junk are not.
    """
    spans: List[Tuple[int, int]] = []
    openings: List[int] = []
    in_string = False
    escaped = False

    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"' and openings:
            in_string = True
        elif char == "{":
            openings.append(index)
        elif char == "}" and openings:
            spans.append((openings.pop(), index + 1))

    return spans


def strip_marker_and_retry(raw_text: str) -> Optional[ParsedValue]:
    """Strip a leading byte-order mark and surrounding whitespace, then parse."""
    text = raw_text.strip()
    for marker in _MARKERS:
        if text.startswith(marker):
            text = text[len(marker):].strip()
            break
    return _try_parse(text, "strip_marker_and_retry")


def balanced_brace_extraction(raw_text: str) -> Optional[ParsedValue]:
    """Parse the first object up to its matching brace, dropping trailing content."""
    start = raw_text.find("{")
    if start == -1:
        return None

    end = _matching_brace(raw_text, start)
    if end is None:
        return None

    return _try_parse(raw_text[start:end + 1], "balanced_brace_extraction")


_MARKUP_AFTER_OBJECT = re.compile(r"\}\s*<[!/a-zA-Z]")


def leading_object_before_markup(raw_text: str) -> Optional[ParsedValue]:
    """Parse an object that opens the body and is immediately followed by a markup tag."""
    text = raw_text.lstrip()
    if not text.startswith("{"):
        return None

    for attempt, match in enumerate(_MARKUP_AFTER_OBJECT.finditer(text, 0, MAX_SCAN_CHARS)):
        if attempt >= MAX_PARSE_ATTEMPTS:
            break
        parsed = _try_parse(text[:match.start() + 1], "leading_object_before_markup")
        if parsed is not None:
            return parsed

    return None


_CODE_FRAGMENT = re.compile(r'"(?:code|status_code|status)"\s*:\s*"?(\d{3})\b')
_MESSAGE_FRAGMENT = re.compile(r'"(?:message|detail|error|msg)"\s*:\s*"((?:[^"\\]|\\.)*)("?)', re.DOTALL)


def _unescape(fragment: str) -> str:
    try:
        return json.loads(f'"{fragment}"')
    except json.JSONDecodeError:
        return fragment.replace('\\"', '"')


def partial_error_reconstruction(raw_text: str) -> Optional[ParsedValue]:
    """
    Rebuild a minimal error envelope from a truncated server error body.

    Picks up a three-digit status-code fragment and/or a message fragment
    (possibly cut off before its closing quote). The result carries
    ``reconstructed: True`` so callers can tell it apart from a real body.
    """
    code_match = _CODE_FRAGMENT.search(raw_text)
    message_match = _MESSAGE_FRAGMENT.search(raw_text)
    if code_match is None and message_match is None:
        return None

    envelope = {"reconstructed": True}
    if code_match is not None:
        envelope["code"] = int(code_match.group(1))
    if message_match is not None:
        message = message_match.group(1)
        if not message_match.group(2):
            # Truncated mid-string; a dangling escape cannot be decoded.
            message = message.rstrip("\\")
        envelope["message"] = _unescape(message)

    return ParsedValue(envelope, recovered_by="partial_error_reconstruction")


def largest_candidate_scan(raw_text: str) -> Optional[ParsedValue]:
    """
    Try balanced-brace substrings, longest first.

    Only the first MAX_SCAN_CHARS characters are scanned and at most
    MAX_PARSE_ATTEMPTS candidates are parsed.
    """
    text = raw_text[:MAX_SCAN_CHARS]
    spans = sorted(_balanced_spans(text), key=lambda span: span[1] - span[0], reverse=True)
    for start, end in spans[:MAX_PARSE_ATTEMPTS]:
        parsed = _try_parse(text[start:end], "largest_candidate_scan")
        if parsed is not None:
            return parsed
    return None


RECOVERY_CHAIN: Tuple[RecoveryHeuristic, ...] = (
    RecoveryHeuristic(1, "strip_marker_and_retry", strip_marker_and_retry),
    RecoveryHeuristic(2, "balanced_brace_extraction", balanced_brace_extraction),
    RecoveryHeuristic(3, "leading_object_before_markup", leading_object_before_markup),
    RecoveryHeuristic(4, "partial_error_reconstruction", partial_error_reconstruction),
    RecoveryHeuristic(5, "largest_candidate_scan", largest_candidate_scan),
)
