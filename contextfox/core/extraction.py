"""
Content Extractor
Selects the not-yet-processed chunk of a story given the last processed line.
Re-running with the marker it returned and no new text always yields
NoNewContentError.
"""

from typing import Dict

from ..models import ExtractionResult, StoryContent
from .errors import NoNewContentError, PartNotFoundError


def last_line_of(content: str) -> str:
    lines = content.rstrip().split("\n")
    return lines[-1]


def _after_marker(text: str, last_line: str) -> str:
    """Text after the last occurrence of ``last_line``; the whole text if absent."""
    if not last_line:
        return text
    pos = text.rfind(last_line)
    if pos == -1:
        # Stale or user-edited marker: fall back to the whole text
        return text
    return text[pos + len(last_line):].strip()


def extract_single_file_content(full_content: str, last_line: str) -> ExtractionResult:
    chunk = _after_marker(full_content, last_line)
    if not chunk.strip():
        raise NoNewContentError()
    return ExtractionResult(content=chunk, new_last_line=last_line_of(chunk), new_part=1)


def extract_part_content(parts: Dict[int, str], current_part: int, last_line: str) -> ExtractionResult:
    """
    Same rule as single-file mode, applied within ``parts[current_part]``.

    An exhausted part advances to the following part and selects its full
    text, skipping parts that are blank.
    """
    if current_part not in parts:
        raise PartNotFoundError(current_part)

    chunk = _after_marker(parts[current_part], last_line)
    if chunk.strip():
        return ExtractionResult(content=chunk, new_last_line=last_line_of(chunk), new_part=current_part)

    next_part = current_part + 1
    while next_part <= len(parts):
        if next_part not in parts:
            raise PartNotFoundError(next_part)
        next_content = parts[next_part]
        if next_content.strip():
            return ExtractionResult(
                content=next_content,
                new_last_line=last_line_of(next_content),
                new_part=next_part,
            )
        next_part += 1

    raise NoNewContentError()


def extract_content(content: StoryContent, current_part: int, last_line: str) -> ExtractionResult:
    if content.is_partitioned:
        return extract_part_content(content.parts, current_part, last_line)
    return extract_single_file_content(content.text or "", last_line)


def get_part_indicator(content: StoryContent, current_part: int) -> str:
    """Suffix such as " (2/5)" for task ids and names; empty for single files."""
    if not content.is_partitioned:
        return ""
    return f" ({current_part}/{content.total_parts})"
