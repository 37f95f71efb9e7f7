"""
Plot Essentials Executor
Uses the continuation template once plot essentials exist. A failure leaves
the previous plot essentials unchanged.
"""

import logging
from typing import Optional

from ..core.parsing import parse_plot_essentials_response
from ..models import TaskKind
from ..prompts import PromptVariables
from .base import StageExecutor

logger = logging.getLogger(__name__)


class PlotEssentialsExecutor(StageExecutor):

    async def run(self, content: str, variables: PromptVariables, part_indicator: str = "") -> Optional[str]:
        """New plot essentials, or None for no change (disabled or failed)."""
        model = self.model_for("plot_essentials")
        if model is None:
            logger.info("[PlotEssentialsExecutor.run] No model assigned, skipping")
            return None

        previous = variables.last_plot_essentials
        stage = "plot_essentials_with_context" if previous.strip() else "plot_essentials"
        task_id = f"plot_essentials{part_indicator}"
        name = f"Generating Plot Essentials{part_indicator}"

        result = await self.run_task(
            task_id, name, TaskKind.PLOT_ESSENTIALS, model,
            self.settings.prompts.template(stage), variables, content,
        )
        raw = self.route(task_id, result)
        if raw is None:
            logger.warning(f"[PlotEssentialsExecutor.run] {name} failed, keeping previous plot essentials")
            return None
        if not raw.strip():
            return None
        return parse_plot_essentials_response(raw, fallback=previous)
