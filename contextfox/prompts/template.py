"""
Prompt Template - Named Slot Substitution
Templates are plain strings with $placeholders. Substitution is a literal
find-and-replace of the known slots, followed by the stage's hard-rules suffix
that pins the expected JSON shape.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..core.errors import TemplateError


# Fixed per-stage suffixes that pin the JSON shape each parser expects
HARD_RULES: Dict[str, str] = {
    "perspective": '\n\nReturn ONLY a JSON object in this format: { "character": "name" }',
    "title": '\n\nReturn ONLY a JSON object in this format: { "title": "..." }',
    "cards": (
        '\n\nReturn ONLY a JSON object with a "cards" key containing an array of story cards. '
        'For each card, use "value" for the description. Format: { "cards": [ { "keys": '
        '"trigger1, trigger2", "value": "Detailed description of what this is", "type": '
        '"character/location/concept/faction", "title": "Name" } ] }'
    ),
    "summary": (
        '\n\nReturn ONLY a JSON object with the complete "summary" key containing the text '
        'of the final summary (ALWAYS include the current summary in that): { "summary": "..." }'
    ),
    "plot_essentials": '\n\nReturn ONLY a JSON object in this format: { "plotEssentials": "..." }',
    "core_self": (
        '\n\nReturn ONLY a JSON object in this format: { "coreSelfUpdates": [ { "title": '
        '"exact card title", "core_self": "2-5 sentence description" } ] }'
    ),
}

# Slot name -> PromptVariables attribute
SLOTS: Dict[str, str] = {
    "model": "model",
    "character": "character",
    "storyTitle": "story_title",
    "lastSummary": "last_summary",
    "lastPlotEssentials": "last_plot_essentials",
    "cards": "cards",
}

# Longest first so "$character" never eats the prefix of a longer slot
_SLOT_PATTERN = re.compile(
    r"\$(" + "|".join(sorted(SLOTS, key=len, reverse=True)) + r")"
)
_TOKEN_PATTERN = re.compile(r"\$([A-Za-z_]\w*)")


@dataclass
class PromptVariables:
    """Values substituted into a template's slots."""
    model: str = ""
    character: str = ""
    story_title: str = ""
    last_summary: str = ""
    last_plot_essentials: str = ""
    cards: str = ""


def find_unknown_placeholders(template: str) -> List[str]:
    """Return $tokens in a template that do not begin with a known slot name."""
    unknown = []
    for match in _TOKEN_PATTERN.finditer(template):
        token = match.group(1)
        if not any(token.startswith(slot) for slot in SLOTS):
            unknown.append(f"${token}")
    return unknown


class PromptTemplate:
    """A validated stage template bound to its hard-rules suffix."""

    def __init__(self, body: str, hard_rules_key: str):
        if hard_rules_key not in HARD_RULES:
            raise TemplateError(f"Unknown hard rules key: {hard_rules_key}")
        unknown = find_unknown_placeholders(body)
        if unknown:
            raise TemplateError(f"Unknown placeholders: {', '.join(unknown)}")
        self.body = body
        self.hard_rules_key = hard_rules_key

    @property
    def hard_rules(self) -> str:
        return HARD_RULES[self.hard_rules_key]

    def substitute(self, variables: PromptVariables) -> str:
        return _SLOT_PATTERN.sub(
            lambda m: getattr(variables, SLOTS[m.group(1)]),
            self.body,
        )

    def render(self, variables: PromptVariables, refusal: Optional[str] = None) -> str:
        """
        Build the final system prompt.

        When ``refusal`` is given (after a content-policy refusal) it is
        appended after the substituted body and before the hard rules, so the
        JSON shape instruction always stays last.
        """
        prompt = self.substitute(variables)
        if refusal:
            prompt += f"\n\n{refusal}"
        return prompt + self.hard_rules
