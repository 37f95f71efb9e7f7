"""
Context Splitter
Pre-partitions story content when the weakest assigned model has a small
context window. Each blob is halved once on line boundaries; this keeps chunks
closer to the window, it does not guarantee a token budget.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..models import StoryContent

logger = logging.getLogger(__name__)

DEFAULT_SPLIT_THRESHOLD = 150000


@dataclass
class SplitOutcome:
    content: StoryContent
    split: bool
    original_count: int
    new_count: int
    message: Optional[str] = None


def get_minimum_context_length(models: Iterable[str], context_lengths: Dict[str, int]) -> int:
    """Smallest known context length among ``models``; 0 when none is known."""
    known = [context_lengths[m] for m in models if context_lengths.get(m)]
    return min(known) if known else 0


def needs_split(min_context_length: int, threshold: int = DEFAULT_SPLIT_THRESHOLD) -> bool:
    return 0 < min_context_length < threshold


def split_in_half(content: str) -> List[str]:
    lines = content.split("\n")
    if len(lines) < 2:
        return [content]
    midpoint = len(lines) // 2
    return ["\n".join(lines[:midpoint]), "\n".join(lines[midpoint:])]


def get_split_status_message(original_count: int, new_count: int, min_context_length: int) -> str:
    plural = "" if original_count == 1 else "s"
    return (
        f"Low context detected ({min_context_length // 1000}k). "
        f"Split {original_count} file{plural} into {new_count} parts."
    )


def apply_splitting(
    content: StoryContent,
    min_context_length: int,
    threshold: int = DEFAULT_SPLIT_THRESHOLD,
) -> SplitOutcome:
    """
    Halve every blob once when ``min_context_length`` is below ``threshold``.

    Parts are renumbered sequentially. A split single file is promoted to
    partitioned content.
    """
    original_count = content.total_parts
    if not needs_split(min_context_length, threshold):
        return SplitOutcome(content=content, split=False, original_count=original_count, new_count=original_count)

    if content.is_partitioned:
        blobs = [content.parts[number] for number in sorted(content.parts)]
    elif content.text:
        blobs = [content.text]
    else:
        return SplitOutcome(content=content, split=False, original_count=original_count, new_count=original_count)

    pieces: List[str] = []
    for blob in blobs:
        pieces.extend(split_in_half(blob))

    if not content.is_partitioned and len(pieces) == 1:
        return SplitOutcome(content=content, split=False, original_count=1, new_count=1)

    new_content = StoryContent(parts={index + 1: piece for index, piece in enumerate(pieces)})
    message = get_split_status_message(original_count, len(pieces), min_context_length)
    logger.info(f"[apply_splitting] {message}")
    return SplitOutcome(
        content=new_content,
        split=True,
        original_count=original_count,
        new_count=len(pieces),
        message=message,
    )
