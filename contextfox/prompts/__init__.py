"""
ContextFox Prompts Module
Default stage prompt templates and the template engine.
"""

from .cards import CHARACTERS_PROMPT, CONCEPTS_PROMPT, LOCATIONS_PROMPT
from .core_self import CORE_SELF_PROMPT, DEFAULT_REFUSAL_PROMPT
from .identity import CONTENT_PREAMBLE, PERSPECTIVE_PROMPT, TITLE_PROMPT
from .plot_essentials import PLOT_ESSENTIALS_PROMPT, PLOT_ESSENTIALS_WITH_CONTEXT_PROMPT
from .summary import SUMMARY_PROMPT
from .template import (
    HARD_RULES,
    SLOTS,
    PromptTemplate,
    PromptVariables,
    find_unknown_placeholders,
)

# Stage name -> default template body
DEFAULT_PROMPTS = {
    "perspective": PERSPECTIVE_PROMPT,
    "title": TITLE_PROMPT,
    "characters": CHARACTERS_PROMPT,
    "locations": LOCATIONS_PROMPT,
    "concepts": CONCEPTS_PROMPT,
    "summary": SUMMARY_PROMPT,
    "plot_essentials": PLOT_ESSENTIALS_PROMPT,
    "plot_essentials_with_context": PLOT_ESSENTIALS_WITH_CONTEXT_PROMPT,
    "core_self": CORE_SELF_PROMPT,
}

__all__ = [
    "CHARACTERS_PROMPT",
    "CONCEPTS_PROMPT",
    "CONTENT_PREAMBLE",
    "CORE_SELF_PROMPT",
    "DEFAULT_PROMPTS",
    "DEFAULT_REFUSAL_PROMPT",
    "HARD_RULES",
    "LOCATIONS_PROMPT",
    "PERSPECTIVE_PROMPT",
    "PLOT_ESSENTIALS_PROMPT",
    "PLOT_ESSENTIALS_WITH_CONTEXT_PROMPT",
    "SLOTS",
    "SUMMARY_PROMPT",
    "TITLE_PROMPT",
    "PromptTemplate",
    "PromptVariables",
    "find_unknown_placeholders",
]
