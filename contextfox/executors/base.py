"""
Base Stage Executor
Shared task lifecycle for every stage: register the task, call the model
through the retry executor (rebuilding the prompt with the refusal addendum
after a refusal), record the outcome, then claim the value to route.
"""

import logging
from abc import ABC
from typing import Optional

from ..config import ProcessorSettings, is_disabled_model
from ..core.retry import RetryResult, call_with_retry
from ..core.task_board import TaskBoard
from ..models import TaskKind
from ..prompts import PromptTemplate, PromptVariables
from ..services import CompletionClient

logger = logging.getLogger(__name__)

SKIPPED_OUTPUT = "Skipped (no model)"


class StageExecutor(ABC):
    """Base class for all stage executors."""

    def __init__(self, client: CompletionClient, board: TaskBoard, settings: ProcessorSettings):
        self.client = client
        self.board = board
        self.settings = settings

    def model_for(self, stage: str) -> Optional[str]:
        """The stage's model, or None when the stage is disabled."""
        model = getattr(self.settings.task_models, stage)
        return None if is_disabled_model(model) else model

    async def run_task(
        self,
        task_id: str,
        name: str,
        kind: TaskKind,
        model: str,
        template: PromptTemplate,
        variables: PromptVariables,
        user_content: str,
    ) -> RetryResult:
        """Execute one task to completion; never raises for call failures."""
        prompt = template.render(variables)
        self.board.create(task_id, name, kind, model=model, system_prompt=prompt, user_content=user_content)
        self.board.start(task_id)
        logger.info(f"[run_task] {name}: model '{model}', prompt {len(prompt)} chars, content {len(user_content)} chars")

        def on_refusal() -> None:
            nonlocal prompt
            prompt = template.render(variables, refusal=self.settings.prompts.refusal)
            self.board.update_prompt(task_id, prompt)

        async def api_call() -> str:
            response = await self.client.complete(model, prompt, user_content, sampling=self.settings.sampling)
            return response.content

        result = await call_with_retry(
            name,
            api_call,
            on_refusal=on_refusal,
            max_attempts=self.settings.max_attempts,
            delay_seconds=self.settings.retry_delay_seconds,
        )

        if result.fulfilled:
            self.board.complete(task_id, result.value or "")
            logger.info(f"[run_task] {name} completed after {result.attempts} attempt(s)")
        else:
            self.board.fail(task_id, str(result.reason))
        return result

    def skip_task(self, task_id: str, name: str, kind: TaskKind) -> None:
        self.board.create(task_id, name, kind, model="None")
        self.board.complete(task_id, SKIPPED_OUTPUT)
        logger.info(f"[skip_task] {name} skipped (no model)")

    def route(self, task_id: str, result: RetryResult) -> Optional[str]:
        """Raw value to route for a task; a manual retry's result wins."""
        pipeline_value = result.value if result.fulfilled else None
        return self.board.claim_for_routing(task_id, pipeline_value)
