"""
ContextFox Data Models Module
Pydantic schemas for story cards, processing state and tasks.
"""

from .schemas import (
    CardKind,
    CoreSelfUpdate,
    ExclusionState,
    ExtractionResult,
    ProcessingOutcome,
    ProcessingState,
    ProcessorStatus,
    StoryCard,
    StoryContent,
    Task,
    TaskKind,
    TaskStatus,
)

__all__ = [
    "CardKind",
    "CoreSelfUpdate",
    "ExclusionState",
    "ExtractionResult",
    "ProcessingOutcome",
    "ProcessingState",
    "ProcessorStatus",
    "StoryCard",
    "StoryContent",
    "Task",
    "TaskKind",
    "TaskStatus",
]
