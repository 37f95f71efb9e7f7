"""
Pydantic data models for ContextFox.
Story cards, exclusion flags, per-story processing state and pipeline tasks.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CardKind(str, Enum):
    """Classification of a story card, derived from its title and type."""
    REGULAR = "regular"
    BRAIN = "brain"              # Holds a character's core-self reasoning data
    CONFIGURATION = "configuration"  # "Configure ..." cards used by scenario scripts


class TaskStatus(str, Enum):
    """Lifecycle status of a pipeline task."""
    WAITING = "waiting"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class TaskKind(str, Enum):
    """Which stage a task belongs to; decides how its output is routed."""
    PERSPECTIVE = "perspective"
    TITLE = "title"
    CARDS = "cards"
    SUMMARY = "summary"
    PLOT_ESSENTIALS = "plot_essentials"
    CORE_SELF = "core_self"


class ProcessorStatus(str, Enum):
    """States of a processing run."""
    IDLE = "idle"
    DETECTING_IDENTITY = "detecting_identity"
    GENERATING_CARDS_AND_SUMMARY = "generating_cards_and_summary"
    GENERATING_PLOT_AND_CORE_SELF = "generating_plot_and_core_self"
    PART_COMPLETE = "part_complete"
    AWAITING_PERMISSION = "awaiting_permission"
    DONE = "done"
    FAILED = "failed"


# ============================================================================
# Story Cards
# ============================================================================

class StoryCard(BaseModel):
    """
    A titled unit of narrative metadata (character, location, concept, faction).

    Cards are keyed by title. Fields the model did not return stay unset, so a
    merge only overwrites what an update actually carries. Unknown fields from
    imported card files (e.g. ``useForCharacterCreation``) are kept as extras.
    """
    model_config = ConfigDict(extra="allow")

    title: str
    keys: Optional[str] = Field(default=None, description="Comma-joined trigger terms")
    value: Optional[str] = Field(default=None, description="Card body text")
    type: Optional[str] = None
    description: Optional[str] = Field(
        default=None,
        description="Free text; may itself be JSON carrying a core_self field",
    )
    core_self: Optional[str] = None


class CoreSelfUpdate(BaseModel):
    """A regenerated core-self directive for one brain card."""
    title: str
    core_self: str


class ExclusionState(BaseModel):
    """User overrides for which cards generation tasks may see and overwrite."""
    excluded_card_titles: List[str] = Field(default_factory=list)
    included_card_titles: List[str] = Field(default_factory=list)


# ============================================================================
# Processing State
# ============================================================================

class ProcessingState(BaseModel):
    """
    Durable per-story state, carried across processing invocations.

    ``last_line`` is the last line already processed within ``current_part``
    and is reset whenever a part boundary is crossed.
    """
    last_line: str = ""
    current_part: int = Field(default=1, ge=1)
    accumulated_summary: str = ""
    accumulated_cards: List[StoryCard] = Field(default_factory=list)
    plot_essentials: str = ""
    character: str = ""
    story_title: str = ""
    exclusions: ExclusionState = Field(default_factory=ExclusionState)
    updated_at: Optional[datetime] = None


class StoryContent(BaseModel):
    """Story text as a single blob or as an ordered part-number -> text map."""
    text: Optional[str] = None
    parts: Optional[Dict[int, str]] = None

    @property
    def is_partitioned(self) -> bool:
        return self.parts is not None

    @property
    def total_parts(self) -> int:
        return len(self.parts) if self.parts is not None else 1


# ============================================================================
# Tasks
# ============================================================================

class Task(BaseModel):
    """One model call within a stage, as shown to the user."""
    id: str
    name: str
    kind: TaskKind
    status: TaskStatus = TaskStatus.WAITING
    model: str = ""
    system_prompt: str = ""
    user_content: str = ""
    context: str = ""
    output: str = ""
    retried: bool = False


@dataclass
class ExtractionResult:
    """The unprocessed chunk selected for the next part run."""
    content: str
    new_last_line: str
    new_part: int


class ProcessingOutcome(BaseModel):
    """What a process/resume call reports back to its caller."""
    status: ProcessorStatus
    message: str
    state: ProcessingState
    parts_processed: List[int] = Field(default_factory=list)
