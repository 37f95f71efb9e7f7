"""
Card Filter/Merge
Classification, exclusion, per-stage projections and title-keyed merging of
story cards.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from ..models import CardKind, CoreSelfUpdate, ExclusionState, StoryCard

logger = logging.getLogger(__name__)

_BLANK_LINE = re.compile(r"\n\s*\n")

MERGEABLE_FIELDS = ("keys", "value", "type", "description", "core_self")


def classify_card(card: StoryCard) -> CardKind:
    """Single source of truth for brain / configuration detection."""
    card_type = card.type if isinstance(card.type, str) else ""
    if "brain" in card.title.lower() or card_type.lower() == "brain":
        return CardKind.BRAIN
    if "Configure" in card.title:
        return CardKind.CONFIGURATION
    return CardKind.REGULAR


def is_brain_card(card: StoryCard) -> bool:
    return classify_card(card) == CardKind.BRAIN


def is_default_excluded(card: StoryCard) -> bool:
    return classify_card(card) != CardKind.REGULAR


def is_excluded(card: StoryCard, exclusions: ExclusionState) -> bool:
    # Explicit inclusion overrides any default exclusion
    if card.title in exclusions.included_card_titles:
        return False
    return is_default_excluded(card) or card.title in exclusions.excluded_card_titles


@dataclass
class SeparatedCards:
    excluded_cards: List[StoryCard]
    regular_cards: List[StoryCard]


def separate_cards(cards: Sequence[StoryCard], exclusions: ExclusionState) -> SeparatedCards:
    excluded, regular = [], []
    for card in cards:
        (excluded if is_excluded(card, exclusions) else regular).append(card)
    return SeparatedCards(excluded_cards=excluded, regular_cards=regular)


def toggle_exclusion(exclusions: ExclusionState, card: StoryCard) -> ExclusionState:
    """
    Flip whether ``card`` is shown to generation tasks.

    Default-excluded cards toggle through ``included_card_titles``; all other
    cards through ``excluded_card_titles``. Returns a new state.
    """
    excluded = list(exclusions.excluded_card_titles)
    included = list(exclusions.included_card_titles)
    target = included if is_default_excluded(card) else excluded
    if card.title in target:
        target.remove(card.title)
    else:
        target.append(card.title)
    return ExclusionState(excluded_card_titles=excluded, included_card_titles=included)


# ============================================================================
# Projections
# ============================================================================

def _project(cards: Sequence[StoryCard], fields: Sequence[str]) -> List[Dict[str, Any]]:
    projected = []
    for card in cards:
        entry = {"title": card.title}
        for name in fields:
            value = getattr(card, name)
            if value is not None:
                entry[name] = value
        projected.append(entry)
    return projected


def strip_cards_for_context(cards: Sequence[StoryCard]) -> List[Dict[str, Any]]:
    """Title and value only, for summary and plot prompts."""
    return _project(cards, ("value",))


def strip_cards_for_card_generation(cards: Sequence[StoryCard]) -> List[Dict[str, Any]]:
    return _project(cards, ("keys", "type", "value"))


def strip_cards_for_core_self(cards: Sequence[StoryCard]) -> List[Dict[str, Any]]:
    return _project(cards, ("keys", "type", "value", "description"))


def cards_to_prompt_json(projected: List[Dict[str, Any]]) -> str:
    return json.dumps(projected, indent=2, ensure_ascii=False)


# ============================================================================
# Merging
# ============================================================================

def merge_cards(existing: Sequence[StoryCard], incoming: Sequence[StoryCard]) -> List[StoryCard]:
    """
    Title-keyed merge that overwrites only the fields an incoming card sets.

    Neither input list is mutated.
    """
    merged = [card.model_copy(deep=True) for card in existing]
    by_title = {card.title: index for index, card in enumerate(merged)}

    for card in incoming:
        updates = {name: getattr(card, name) for name in MERGEABLE_FIELDS if name in card.model_fields_set}
        if card.title in by_title:
            index = by_title[card.title]
            merged[index] = merged[index].model_copy(update=updates)
        else:
            by_title[card.title] = len(merged)
            merged.append(card.model_copy(deep=True))
    return merged


def build_final_cards(separated: SeparatedCards, generated: Sequence[StoryCard]) -> List[StoryCard]:
    """merge(regular, generated) followed by the untouched excluded cards."""
    excluded_titles = {card.title for card in separated.excluded_cards}
    allowed = []
    for card in generated:
        if card.title in excluded_titles:
            logger.info(f"[build_final_cards] Ignoring generated card for excluded title '{card.title}'")
            continue
        allowed.append(card)
    return merge_cards(separated.regular_cards, allowed) + list(separated.excluded_cards)


# ============================================================================
# Core Self
# ============================================================================

def splice_core_self(description: str, core_self: str) -> str:
    """
    Write ``core_self`` into a card description.

    JSON object descriptions get their ``core_self`` key set in place. Plain
    text loses any leading ``core_self:`` block (up to the first blank line)
    and gets the new block prepended.
    """
    try:
        parsed = json.loads(description)
    except (json.JSONDecodeError, TypeError):
        parsed = None
    if isinstance(parsed, dict):
        parsed["core_self"] = core_self
        return json.dumps(parsed, ensure_ascii=False, separators=(",", ":"))

    remainder = description
    if remainder.startswith("core_self:"):
        match = _BLANK_LINE.search(remainder)
        remainder = remainder[match.end():] if match else ""

    if remainder:
        return f"core_self: {core_self}\n\n{remainder}"
    return f"core_self: {core_self}"


def apply_core_self_updates(cards: Sequence[StoryCard], updates: Sequence[CoreSelfUpdate]) -> List[StoryCard]:
    """Apply updates to matching brain cards; other cards are returned unchanged."""
    by_title = {update.title: update for update in updates}
    result = []
    for card in cards:
        update = by_title.get(card.title)
        if update is None or not is_brain_card(card):
            result.append(card)
            continue
        description = splice_core_self(card.description or "", update.core_self)
        result.append(card.model_copy(update={"description": description}))
    return result
