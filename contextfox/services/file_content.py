"""
File Content Loader
Reads story text (a single file or a zip archive of part-NN files) and story
card exports for the command-line entry point.
"""

import json
import re
import zipfile
from pathlib import Path
from typing import List, Union

from ..models import StoryCard, StoryContent

_PART_NAME = re.compile(r"part-(\d+)\.[^/\\]+$", re.IGNORECASE)


def load_zip_parts(path: Union[str, Path]) -> StoryContent:
    """Parts sorted by their number, renumbered 1..N."""
    numbered = []
    with zipfile.ZipFile(path) as archive:
        for info in archive.infolist():
            if info.is_dir():
                continue
            match = _PART_NAME.search(info.filename)
            if match:
                text = archive.read(info).decode("utf-8")
                numbered.append((int(match.group(1)), text))

    if not numbered:
        raise ValueError(f"No part-NN files found in {path}")

    numbered.sort(key=lambda item: item[0])
    return StoryContent(parts={index + 1: text for index, (_, text) in enumerate(numbered)})


def load_story_file(path: Union[str, Path]) -> StoryContent:
    path = Path(path)
    if path.suffix.lower() == ".zip":
        return load_zip_parts(path)
    return StoryContent(text=path.read_text(encoding="utf-8"))


def load_cards_file(path: Union[str, Path]) -> List[StoryCard]:
    """Read a JSON array of story cards; unknown fields are preserved."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path} does not contain a JSON array of cards")
    return [StoryCard.model_validate(entry) for entry in data]


def dump_cards(cards: List[StoryCard]) -> str:
    return json.dumps(
        [card.model_dump(exclude_none=True) for card in cards],
        indent=2,
        ensure_ascii=False,
    )
