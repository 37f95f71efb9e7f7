"""
Card Generation Executor - Characters, Locations, Concepts & Summary
The four tasks run concurrently. Card task failures are tolerated; a summary
failure aborts the run because every later prompt depends on it.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Sequence

from ..core.cards import (
    cards_to_prompt_json,
    merge_cards,
    strip_cards_for_card_generation,
    strip_cards_for_context,
)
from ..core.errors import StageFailedError
from ..core.parsing import parse_cards_response, parse_summary_response
from ..models import StoryCard, TaskKind
from ..prompts import PromptVariables
from .base import StageExecutor

logger = logging.getLogger(__name__)

CARD_STAGES = (
    ("characters", "Generating Characters"),
    ("locations", "Generating Locations"),
    ("concepts", "Generating Concepts/Factions"),
)


@dataclass
class CardStageResult:
    """Cards generated this part plus the complete new summary."""
    cards: List[StoryCard] = field(default_factory=list)
    summary: str = ""
    failed_tasks: Dict[str, str] = field(default_factory=dict)


class CardGenerationExecutor(StageExecutor):
    """Runs the card-generation tasks and the summary task together."""

    async def run(
        self,
        content: str,
        regular_cards: Sequence[StoryCard],
        variables: PromptVariables,
        part_indicator: str = "",
    ) -> CardStageResult:
        card_variables = replace(variables, cards=cards_to_prompt_json(strip_cards_for_card_generation(regular_cards)))
        summary_variables = replace(variables, cards=cards_to_prompt_json(strip_cards_for_context(regular_cards)))

        # (task id, name, kind, coroutine)
        launched = []
        for stage, label in CARD_STAGES:
            model = self.model_for(stage)
            if model is None:
                continue
            task_id, name = f"{stage}{part_indicator}", f"{label}{part_indicator}"
            launched.append((task_id, name, TaskKind.CARDS, self.run_task(
                task_id, name, TaskKind.CARDS, model,
                self.settings.prompts.template(stage), card_variables, content,
            )))

        summary_model = self.model_for("summary")
        if summary_model is not None:
            task_id, name = f"summary{part_indicator}", f"Generating Summary{part_indicator}"
            launched.append((task_id, name, TaskKind.SUMMARY, self.run_task(
                task_id, name, TaskKind.SUMMARY, summary_model,
                self.settings.prompts.template("summary"), summary_variables, content,
            )))

        results = await asyncio.gather(*(coro for _, _, _, coro in launched))

        stage_result = CardStageResult(summary=variables.last_summary)
        summary_error = None
        for (task_id, name, kind, _), result in zip(launched, results):
            raw = self.route(task_id, result)
            if raw is None:
                stage_result.failed_tasks[task_id] = str(result.reason)
                if kind == TaskKind.SUMMARY:
                    summary_error = StageFailedError(name, result.reason)
                else:
                    logger.warning(f"[CardGenerationExecutor.run] {name} failed, continuing without its cards")
                continue

            if kind == TaskKind.CARDS:
                cards = parse_cards_response(raw)
                logger.info(f"[CardGenerationExecutor.run] {name} produced {len(cards)} card(s)")
                stage_result.cards = merge_cards(stage_result.cards, cards)
            else:
                stage_result.summary = parse_summary_response(raw, fallback=variables.last_summary)

        if summary_error is not None:
            logger.error(f"[CardGenerationExecutor.run] {summary_error}")
            raise summary_error
        return stage_result
