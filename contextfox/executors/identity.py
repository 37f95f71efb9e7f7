"""
Identity Executor - Perspective Character & Story Title
Runs on the first part only, for whichever of the two values is unknown.
Failures keep the previously known value.
"""

import asyncio
import logging
from dataclasses import dataclass

from ..core.parsing import parse_identity_response
from ..models import TaskKind
from ..prompts import CONTENT_PREAMBLE, PromptVariables
from .base import StageExecutor

logger = logging.getLogger(__name__)


@dataclass
class IdentityResult:
    character: str
    story_title: str


def wrap_story_content(content: str) -> str:
    return f"{CONTENT_PREAMBLE}\n\n{content}"


class IdentityExecutor(StageExecutor):
    """Detects the perspective character and a story title."""

    STAGES = (
        # stage, task id, task name, response field
        ("perspective", "perspective", "Detecting Perspective", "character"),
        ("title", "title", "Detecting Story Title", "title"),
    )

    async def run(self, content: str, character: str, story_title: str) -> IdentityResult:
        known = {"perspective": character, "title": story_title}
        wrapped = wrap_story_content(content)

        pending = []
        for stage, task_id, name, response_field in self.STAGES:
            if known[stage]:
                continue
            model = self.model_for(stage)
            if model is None:
                self.skip_task(task_id, name, TaskKind(stage))
                continue
            template = self.settings.prompts.template(stage)
            pending.append((stage, task_id, response_field, self.run_task(
                task_id, name, TaskKind(stage), model, template, PromptVariables(), wrapped,
            )))

        results = await asyncio.gather(*(coro for _, _, _, coro in pending))

        for (stage, task_id, response_field, _), result in zip(pending, results):
            raw = self.route(task_id, result)
            if raw is None:
                logger.warning(f"[IdentityExecutor.run] {stage} detection failed, keeping previous value")
                continue
            detected = parse_identity_response(raw, response_field)
            if detected:
                known[stage] = detected
                logger.info(f"[IdentityExecutor.run] Detected {response_field}: {detected}")

        return IdentityResult(character=known["perspective"], story_title=known["title"])
