"""
Core Self Executor - Brain Card Directives
Regenerates the core-self blurb of brain cards. Without brain cards the stage
is skipped with no API call; failures change nothing.
"""

import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from ..core.cards import cards_to_prompt_json, is_brain_card, strip_cards_for_core_self
from ..core.parsing import parse_core_self_response
from ..models import CoreSelfUpdate, StoryCard, TaskKind
from ..prompts import PromptVariables
from .base import StageExecutor

logger = logging.getLogger(__name__)


class CoreSelfExecutor(StageExecutor):

    async def run(
        self,
        content: str,
        cards: Sequence[StoryCard],
        new_summary: str,
        variables: PromptVariables,
        part_indicator: str = "",
    ) -> Optional[List[CoreSelfUpdate]]:
        model = self.model_for("core_self")
        if model is None:
            logger.info("[CoreSelfExecutor.run] No model assigned, skipping")
            return None

        brain_cards = [card for card in cards if is_brain_card(card)]
        if not brain_cards:
            logger.info("[CoreSelfExecutor.run] No brain cards found, skipping")
            return None

        core_variables = replace(
            variables,
            last_summary=new_summary,
            cards=cards_to_prompt_json(strip_cards_for_core_self(brain_cards)),
        )
        task_id = f"core_self{part_indicator}"
        name = f"Core Self Populator/Enhancer{part_indicator}"

        result = await self.run_task(
            task_id, name, TaskKind.CORE_SELF, model,
            self.settings.prompts.template("core_self"), core_variables, content,
        )
        raw = self.route(task_id, result)
        if raw is None:
            logger.warning(f"[CoreSelfExecutor.run] {name} failed, brain cards unchanged")
            return None
        return parse_core_self_response(raw)
