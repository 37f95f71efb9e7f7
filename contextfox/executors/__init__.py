"""
ContextFox Executors Module
One executor per pipeline stage.
"""

from .base import SKIPPED_OUTPUT, StageExecutor
from .cards import CARD_STAGES, CardGenerationExecutor, CardStageResult
from .core_self import CoreSelfExecutor
from .identity import IdentityExecutor, IdentityResult, wrap_story_content
from .plot_essentials import PlotEssentialsExecutor

__all__ = [
    "SKIPPED_OUTPUT",
    "StageExecutor",
    "CARD_STAGES",
    "CardGenerationExecutor",
    "CardStageResult",
    "CoreSelfExecutor",
    "IdentityExecutor",
    "IdentityResult",
    "wrap_story_content",
    "PlotEssentialsExecutor",
]
