"""
ContextFox Core Module
Parsing, retry, extraction, splitting, card merging and task tracking.
The story processor lives in ``contextfox.core.processor``.
"""

from .cards import (
    SeparatedCards,
    apply_core_self_updates,
    build_final_cards,
    classify_card,
    is_brain_card,
    is_default_excluded,
    is_excluded,
    merge_cards,
    separate_cards,
    splice_core_self,
    strip_cards_for_card_generation,
    strip_cards_for_context,
    strip_cards_for_core_self,
    toggle_exclusion,
)
from .errors import (
    ContextFoxError,
    InvalidTaskTransitionError,
    NoNewContentError,
    ParseFailureError,
    PartNotFoundError,
    RefusalError,
    ResumeNotAllowedError,
    StageFailedError,
    TaskNotFoundError,
    TemplateError,
    TransportError,
)
from .extraction import extract_content, extract_part_content, extract_single_file_content, get_part_indicator
from .parsing import (
    ParseResult,
    extract_json,
    parse_cards_response,
    parse_core_self_response,
    parse_identity_response,
    parse_plot_essentials_response,
    parse_summary_response,
)
from .retry import RetryResult, call_with_retry
from .splitting import SplitOutcome, apply_splitting, get_minimum_context_length, get_split_status_message
from .task_board import TaskBoard, TaskEvent, WriterTag

__all__ = [
    # Cards
    "SeparatedCards",
    "apply_core_self_updates",
    "build_final_cards",
    "classify_card",
    "is_brain_card",
    "is_default_excluded",
    "is_excluded",
    "merge_cards",
    "separate_cards",
    "splice_core_self",
    "strip_cards_for_card_generation",
    "strip_cards_for_context",
    "strip_cards_for_core_self",
    "toggle_exclusion",
    # Errors
    "ContextFoxError",
    "InvalidTaskTransitionError",
    "NoNewContentError",
    "ParseFailureError",
    "PartNotFoundError",
    "RefusalError",
    "ResumeNotAllowedError",
    "StageFailedError",
    "TaskNotFoundError",
    "TemplateError",
    "TransportError",
    # Extraction & splitting
    "extract_content",
    "extract_part_content",
    "extract_single_file_content",
    "get_part_indicator",
    "SplitOutcome",
    "apply_splitting",
    "get_minimum_context_length",
    "get_split_status_message",
    # Parsing
    "ParseResult",
    "extract_json",
    "parse_cards_response",
    "parse_core_self_response",
    "parse_identity_response",
    "parse_plot_essentials_response",
    "parse_summary_response",
    # Retry & tasks
    "RetryResult",
    "call_with_retry",
    "TaskBoard",
    "TaskEvent",
    "WriterTag",
]
