"""
Response Parser - Recovery-Oriented JSON Handling
Model output may be wrapped in prose, truncated mid-stream, or return only
partial updates. Each parser runs an ordered list of strategy tiers (strict
parse, bracket-repair parse, field-regex recovery) and records which tier won.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Optional, Tuple, TypeVar

from ..models import CoreSelfUpdate, StoryCard
from .errors import ParseFailureError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Window scanned for card fields around a recovered title
CARD_RECOVERY_WINDOW = 1000

_TITLE_PATTERN = re.compile(r'"title"\s*:\s*"((?:[^"\\]|\\.)*)"')


@dataclass
class ParseResult(Generic[T]):
    """Outcome of running the parser tiers over one response."""
    value: Optional[T] = None
    strategy: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.strategy is not None


def extract_json(text: str) -> str:
    """
    Slice the first bracketed region out of ``text``.

    The opening character is whichever of ``{`` / ``[`` comes first (brace on
    a tie); the region runs to the LAST matching closer in the whole text. If
    no closer exists the expected one is appended. Text without any opening
    bracket is returned unchanged.
    """
    start_brace = text.find("{")
    start_bracket = text.find("[")

    if start_brace != -1 and (start_bracket == -1 or start_brace < start_bracket):
        start, closer = start_brace, "}"
    elif start_bracket != -1:
        start, closer = start_bracket, "]"
    else:
        return text

    end = text.rfind(closer)
    if end != -1 and end >= start:
        return text[start:end + 1]
    return text[start:] + closer


def unescape_json_string(value: str) -> str:
    return value.replace("\\n", "\n").replace('\\"', '"').replace("\\\\", "\\")


def run_parser_tiers(text: str, tiers: List[Tuple[str, Callable[[str], T]]]) -> ParseResult:
    """Run ``tiers`` in order; the first one that does not raise wins."""
    result: ParseResult = ParseResult()
    for name, tier in tiers:
        try:
            result.value = tier(text)
            result.strategy = name
            logger.debug(f"[run_parser_tiers] Tier '{name}' succeeded")
            return result
        except ParseFailureError as e:
            logger.debug(f"[run_parser_tiers] Tier '{name}' failed: {e}")
            result.errors.append(f"{name}: {e}")
    return result


# ============================================================================
# Generic Tiers
# ============================================================================

def strict_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseFailureError(f"Invalid JSON: {e}") from e


def bracket_repair_json(text: str) -> Any:
    extracted = extract_json(text)
    if not extracted.strip():
        raise ParseFailureError("No JSON region found")
    try:
        return json.loads(extracted)
    except json.JSONDecodeError as e:
        raise ParseFailureError(f"Invalid JSON after bracket repair: {e}") from e


def regex_field(text: str, field_name: str) -> str:
    """Pull a string field out of text that failed to parse as JSON."""
    pattern = re.compile(r'"' + re.escape(field_name) + r'"\s*:\s*"((?:[^"\\]|\\.)*)"', re.DOTALL)
    match = pattern.search(text)
    if not match:
        raise ParseFailureError(f"Field '{field_name}' not found")
    return unescape_json_string(match.group(1))


def _json_tiers(interpret: Callable[[Any], T]) -> List[Tuple[str, Callable[[str], T]]]:
    return [
        ("strict", lambda text: interpret(strict_json(text.strip()))),
        ("bracket_repair", lambda text: interpret(bracket_repair_json(text))),
    ]


# ============================================================================
# Story Cards
# ============================================================================

def _card_from_dict(data: Any) -> Optional[StoryCard]:
    if not isinstance(data, dict):
        return None
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        return None

    fields = {"title": title.strip()}
    for key in ("keys", "value", "type"):
        if key not in data or data[key] is None:
            continue
        raw = data[key]
        if isinstance(raw, list):
            fields[key] = ", ".join(str(item) for item in raw)
        else:
            fields[key] = str(raw)
    return StoryCard(**fields)


def _interpret_cards(payload: Any) -> List[StoryCard]:
    if isinstance(payload, dict):
        entries = payload.get("cards", [])
    elif isinstance(payload, list):
        entries = payload
    else:
        raise ParseFailureError(f"Expected an object or array, got {type(payload).__name__}")

    if not isinstance(entries, list):
        raise ParseFailureError("'cards' is not an array")

    cards = []
    for entry in entries:
        card = _card_from_dict(entry)
        if card is not None:
            cards.append(card)
    return cards


def recover_cards_by_regex(text: str) -> List[StoryCard]:
    """
    Rebuild cards from a truncated or malformed payload.

    For each ``"title": "..."`` occurrence, the window from the enclosing
    ``{`` up to the next card (at most CARD_RECOVERY_WINDOW characters past
    the title) is searched for keys/value/type. A card is kept only when it
    has keys or a value.
    """
    matches = list(_TITLE_PATTERN.finditer(text))
    if not matches:
        raise ParseFailureError("No card titles found")

    starts = []
    for match in matches:
        brace = text.rfind("{", 0, match.start())
        starts.append(brace if brace != -1 else match.start())

    cards = []
    for index, match in enumerate(matches):
        window_end = min(len(text), match.start() + CARD_RECOVERY_WINDOW)
        if index + 1 < len(matches):
            window_end = min(window_end, max(starts[index + 1], match.end()))
        window_start = starts[index]
        if index > 0:
            window_start = max(window_start, matches[index - 1].end())
        window = text[window_start:window_end]

        fields = {"title": unescape_json_string(match.group(1))}
        for key in ("keys", "value", "type"):
            found = re.search(r'"' + key + r'"\s*:\s*"((?:[^"\\]|\\.)*)"', window, re.DOTALL)
            if found:
                fields[key] = unescape_json_string(found.group(1))

        if "keys" in fields or "value" in fields:
            cards.append(StoryCard(**fields))

    if not cards:
        raise ParseFailureError("Card titles found but no keys or values")
    return cards


def parse_cards_response(text: str) -> List[StoryCard]:
    """
    Parse a card-generation response into cards.

    Only fields present in the response are set on each card, so a merge
    never blanks out fields the model left alone. Finding no cards is a
    normal outcome and returns an empty list.
    """
    if not text or not text.strip():
        return []

    tiers = _json_tiers(_interpret_cards) + [("field_regex", recover_cards_by_regex)]
    result = run_parser_tiers(text, tiers)
    if not result.ok:
        logger.warning(f"[parse_cards_response] No cards recovered: {'; '.join(result.errors)}")
        return []
    if result.strategy != "strict":
        logger.info(f"[parse_cards_response] Recovered {len(result.value)} card(s) via {result.strategy}")
    return result.value


# ============================================================================
# Text Fields (summary, plot essentials, identity)
# ============================================================================

def _unwrap_nested(value: str, field_name: str) -> str:
    """A field value that is itself a JSON object gets one more parse pass."""
    if value.strip().startswith("{"):
        try:
            nested = json.loads(value)
        except json.JSONDecodeError:
            return value
        if isinstance(nested, dict) and isinstance(nested.get(field_name), str):
            return nested[field_name]
    return value


def _field_interpreter(field_name: str, join_lists: bool = False) -> Callable[[Any], str]:
    def interpret(payload: Any) -> str:
        if not isinstance(payload, dict) or field_name not in payload:
            raise ParseFailureError(f"No '{field_name}' key in payload")
        value = payload[field_name]
        if isinstance(value, list) and join_lists:
            return "\n\n".join(str(item) for item in value)
        if value is None:
            raise ParseFailureError(f"'{field_name}' is null")
        return value if isinstance(value, str) else str(value)
    return interpret


def parse_text_field(text: str, field_name: str, fallback: str = "", join_lists: bool = False) -> ParseResult:
    """
    Extract one text field from a response.

    Tiers: strict JSON, bracket-repaired JSON, escape-aware regex, and finally
    the raw response text. An empty response yields ``fallback``.
    """
    if not text or not text.strip():
        return ParseResult(value=fallback, strategy="fallback")

    tiers = _json_tiers(_field_interpreter(field_name, join_lists)) + [
        ("field_regex", lambda t: regex_field(t, field_name)),
        ("raw", lambda t: t.strip()),
    ]
    result = run_parser_tiers(text, tiers)
    result.value = _unwrap_nested(result.value, field_name)
    if not result.value.strip():
        return ParseResult(value=fallback, strategy="fallback")
    if result.strategy == "raw":
        logger.warning(f"[parse_text_field] Using raw response for '{field_name}' ({len(text)} chars)")
    return result


def parse_summary_response(text: str, fallback: str = "") -> str:
    return parse_text_field(text, "summary", fallback=fallback).value


def parse_plot_essentials_response(text: str, fallback: str = "") -> str:
    return parse_text_field(text, "plotEssentials", fallback=fallback, join_lists=True).value


def parse_identity_response(text: str, field_name: str) -> Optional[str]:
    """Parse a perspective ({"character"}) or title ({"title"}) response."""
    if not text or not text.strip():
        return None
    tiers = _json_tiers(_field_interpreter(field_name)) + [
        ("field_regex", lambda t: regex_field(t, field_name)),
    ]
    result = run_parser_tiers(text, tiers)
    if not result.ok:
        return None
    value = result.value.strip()
    return value or None


# ============================================================================
# Core Self
# ============================================================================

def _interpret_core_self(payload: Any) -> List[CoreSelfUpdate]:
    if not isinstance(payload, dict) or not isinstance(payload.get("coreSelfUpdates"), list):
        raise ParseFailureError("No 'coreSelfUpdates' array in payload")
    updates = []
    for entry in payload["coreSelfUpdates"]:
        if not isinstance(entry, dict):
            continue
        title, core_self = entry.get("title"), entry.get("core_self")
        if isinstance(title, str) and title and isinstance(core_self, str) and core_self:
            updates.append(CoreSelfUpdate(title=title, core_self=core_self))
    return updates


def parse_core_self_response(text: str) -> List[CoreSelfUpdate]:
    """Parse core-self updates; any failure yields an empty list."""
    if not text or not text.strip():
        return []
    result = run_parser_tiers(text, _json_tiers(_interpret_core_self))
    if not result.ok:
        logger.warning(f"[parse_core_self_response] Unparseable response: {'; '.join(result.errors)}")
        return []
    return result.value
