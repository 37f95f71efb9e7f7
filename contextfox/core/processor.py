"""
Story Processor - Multi-Part Orchestration
Sequences the stages for each part of a story:

    extract -> identity (part 1, when unknown) -> cards + summary
            -> plot essentials + core self -> part complete

Stage outputs are merged into a working copy of the state after each stage
settles; the store only sees the state at part completion. With more parts
left the processor either continues immediately or suspends until resume().
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..config import ProcessorSettings, is_disabled_model
from ..executors import (
    CardGenerationExecutor,
    CoreSelfExecutor,
    IdentityExecutor,
    PlotEssentialsExecutor,
)
from ..models import (
    ExclusionState,
    ProcessingOutcome,
    ProcessingState,
    ProcessorStatus,
    StoryCard,
    StoryContent,
    Task,
    TaskKind,
)
from ..prompts import PromptVariables
from ..services import CompletionClient, StateStore
from .cards import (
    apply_core_self_updates,
    build_final_cards,
    cards_to_prompt_json,
    separate_cards,
    strip_cards_for_context,
    toggle_exclusion,
)
from .errors import (
    ContextFoxError,
    InvalidTaskTransitionError,
    NoNewContentError,
    ResumeNotAllowedError,
)
from .extraction import extract_content, get_part_indicator
from .parsing import (
    parse_cards_response,
    parse_core_self_response,
    parse_identity_response,
    parse_plot_essentials_response,
    parse_summary_response,
)
from .splitting import apply_splitting, get_minimum_context_length
from .task_board import TaskBoard, WriterTag

# Configure logging for the whole package
logger = logging.getLogger("contextfox")
logger.setLevel(logging.DEBUG)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(handler)

COMPLETE_MESSAGE = "Processing complete!"


class StoryProcessor:
    """
    Orchestrates processing runs for one story.

    The processor is the only writer of ProcessingState. A manual task retry
    (``retry_task``) reports its result through the task board; if the stage
    already routed that task, the result is applied here directly.
    """

    def __init__(
        self,
        story_id: str,
        client: CompletionClient,
        store: StateStore,
        settings: Optional[ProcessorSettings] = None,
        event_callback: Optional[Callable[[str, Dict[str, Any]], None]] = None,
    ):
        self.story_id = story_id
        self.client = client
        self.store = store
        self._settings_override = settings
        self.settings = settings or ProcessorSettings()
        self.event_callback = event_callback

        self.board = TaskBoard()
        self.board.add_listener(self._on_task_update)

        self.status = ProcessorStatus.IDLE
        self.message = ""
        self._pending_part: Optional[int] = None
        self._working: Optional[ProcessingState] = None
        self._run_generation = 0
        self._lock = asyncio.Lock()

    # ========================================================================
    # Events
    # ========================================================================

    def _emit_event(self, event_type: str, data: Dict[str, Any]) -> None:
        """Emit an event to the callback if registered."""
        if self.event_callback:
            self.event_callback(event_type, {
                "story_id": self.story_id,
                "timestamp": datetime.utcnow().isoformat(),
                **data,
            })

    def _on_task_update(self, task: Task) -> None:
        self._emit_event("task_update", {
            "task_id": task.id,
            "name": task.name,
            "status": task.status.value,
            "model": task.model,
            "retried": task.retried,
            "output": task.output,
        })

    def _set_status(self, status: ProcessorStatus, message: str = "") -> None:
        self.status = status
        self.message = message
        logger.info(f"[StoryProcessor] {self.story_id}: {status.value}{' - ' + message if message else ''}")
        self._emit_event("status", {"status": status.value, "message": message})

    # ========================================================================
    # Public API
    # ========================================================================

    @property
    def awaiting_permission(self) -> bool:
        return self.status == ProcessorStatus.AWAITING_PERMISSION

    async def _resolve_settings(self) -> ProcessorSettings:
        if self._settings_override is not None:
            return self._settings_override
        return await self.store.get_settings() or ProcessorSettings()

    async def load_content(
        self,
        content: StoryContent,
        context_lengths: Optional[Dict[str, int]] = None,
    ) -> Optional[str]:
        """
        Store story content, pre-splitting it for small-context models.

        Returns the split status message when content was split.
        """
        settings = await self._resolve_settings()
        message = None
        if context_lengths:
            min_context = get_minimum_context_length(settings.task_models.assigned_models(), context_lengths)
            outcome = apply_splitting(content, min_context, settings.context_split_threshold)
            content = outcome.content
            message = outcome.message
        await self.store.save_content(self.story_id, content)
        if message:
            self._emit_event("status", {"status": self.status.value, "message": message})
        return message

    async def process(
        self,
        content: Optional[StoryContent] = None,
        initial_cards: Optional[List[StoryCard]] = None,
        context_lengths: Optional[Dict[str, int]] = None,
    ) -> ProcessingOutcome:
        """
        Process whatever is new since the last run.

        ``content`` replaces the stored story content. ``initial_cards`` seeds
        a story that has no cards yet. Never raises processing errors: the
        outcome carries the status and a short message.
        """
        async with self._lock:
            self.settings = await self._resolve_settings()
            self.board.clear()
            self._run_generation += 1
            self._pending_part = None

            if content is not None:
                await self.load_content(content, context_lengths)

            state = await self.store.get_state(self.story_id) or ProcessingState()
            if initial_cards and not state.accumulated_cards:
                logger.info(f"[StoryProcessor.process] Seeding {len(initial_cards)} imported card(s)")
                state.accumulated_cards = [card.model_copy(deep=True) for card in initial_cards]
                await self.store.save_state(self.story_id, state)

            stored_content = await self.store.get_content(self.story_id)
            if stored_content is None:
                return self._fail(state, "No story content loaded", [])

            return await self._run(state, stored_content, state.current_part, state.last_line)

    async def resume(self) -> ProcessingOutcome:
        """Continue with the next part after a permission-gated stop."""
        async with self._lock:
            if not self.awaiting_permission or self._pending_part is None:
                raise ResumeNotAllowedError(
                    f"Story {self.story_id} is not awaiting permission (status: {self.status.value})"
                )
            next_part = self._pending_part
            self._pending_part = None

            state = await self.store.get_state(self.story_id) or ProcessingState()
            content = await self.store.get_content(self.story_id)
            if content is None:
                return self._fail(state, "No story content loaded", [])

            logger.info(f"[StoryProcessor.resume] Resuming {self.story_id} at part {next_part}")
            return await self._run(state, content, next_part, "")

    async def toggle_card(self, title: str) -> ExclusionState:
        """Flip a card between shown to and hidden from generation tasks."""
        state = await self.store.get_state(self.story_id) or ProcessingState()
        card = next((c for c in state.accumulated_cards if c.title == title), None)
        if card is None:
            raise KeyError(f"Card not found: {title}")
        state.exclusions = toggle_exclusion(state.exclusions, card)
        await self.store.save_state(self.story_id, state)
        if self._working is not None:
            self._working.exclusions = state.exclusions.model_copy(deep=True)
        return state.exclusions

    # ========================================================================
    # Run Loop
    # ========================================================================

    def _fail(self, state: ProcessingState, detail: str, parts_processed: List[int]) -> ProcessingOutcome:
        message = f"Error: {detail}"
        self._set_status(ProcessorStatus.FAILED, message)
        self._emit_event("run_failed", {"message": message})
        return ProcessingOutcome(
            status=ProcessorStatus.FAILED,
            message=message,
            state=state,
            parts_processed=parts_processed,
        )

    def _done(self, state: ProcessingState, message: str, parts_processed: List[int]) -> ProcessingOutcome:
        self._set_status(ProcessorStatus.DONE, message)
        self._emit_event("run_complete", {"message": message, "parts_processed": parts_processed})
        return ProcessingOutcome(
            status=ProcessorStatus.DONE,
            message=message,
            state=state,
            parts_processed=parts_processed,
        )

    async def _run(
        self,
        state: ProcessingState,
        content: StoryContent,
        part: int,
        last_line: str,
    ) -> ProcessingOutcome:
        parts_processed: List[int] = []
        total = content.total_parts

        while True:
            try:
                state = await self._process_part(state, content, part, last_line)
            except NoNewContentError as e:
                return self._done(state, str(e), parts_processed)
            except ContextFoxError as e:
                logger.error(f"[StoryProcessor._run] Run aborted for {self.story_id}: {e}")
                return self._fail(state, str(e), parts_processed)

            parts_processed.append(state.current_part)
            if not content.is_partitioned or state.current_part >= total:
                return self._done(state, COMPLETE_MESSAGE, parts_processed)

            next_part = state.current_part + 1
            if self.settings.require_permission_between_parts:
                self._pending_part = next_part
                message = f"Part {state.current_part}/{total} complete. Waiting for permission to continue."
                self._set_status(ProcessorStatus.AWAITING_PERMISSION, message)
                self._emit_event("awaiting_permission", {"next_part": next_part, "total_parts": total})
                return ProcessingOutcome(
                    status=ProcessorStatus.AWAITING_PERMISSION,
                    message=message,
                    state=state,
                    parts_processed=parts_processed,
                )

            self._set_status(
                ProcessorStatus.IDLE,
                f"Part {state.current_part}/{total} complete. Processing next part...",
            )
            part, last_line = next_part, ""

    def _variables(self, state: ProcessingState) -> PromptVariables:
        return PromptVariables(
            model=self.settings.underlying_model,
            character=state.character,
            story_title=state.story_title,
            last_summary=state.accumulated_summary,
            last_plot_essentials=state.plot_essentials,
        )

    async def _process_part(
        self,
        state: ProcessingState,
        content: StoryContent,
        current_part: int,
        last_line: str,
    ) -> ProcessingState:
        extraction = extract_content(content, current_part, last_line)
        part_indicator = get_part_indicator(content, extraction.new_part)
        logger.info(
            f"[StoryProcessor._process_part] Part {extraction.new_part}/{content.total_parts}: "
            f"{len(extraction.content)} chars to process"
        )

        working = state.model_copy(deep=True)
        self._working = working
        executor_args = (self.client, self.board, self.settings)
        try:
            if current_part == 1 and (not working.character or not working.story_title):
                self._set_status(ProcessorStatus.DETECTING_IDENTITY, "Detecting perspective and title...")
                identity = await IdentityExecutor(*executor_args).run(
                    extraction.content, working.character, working.story_title,
                )
                working.character = identity.character
                working.story_title = identity.story_title

            self._set_status(
                ProcessorStatus.GENERATING_CARDS_AND_SUMMARY,
                f"Generating cards and summary{part_indicator}...",
            )
            separated = separate_cards(working.accumulated_cards, working.exclusions)
            card_stage = await CardGenerationExecutor(*executor_args).run(
                extraction.content, separated.regular_cards, self._variables(working), part_indicator,
            )
            working.accumulated_cards = build_final_cards(separated, card_stage.cards)
            working.accumulated_summary = card_stage.summary

            self._set_status(
                ProcessorStatus.GENERATING_PLOT_AND_CORE_SELF,
                f"Generating plot essentials and core self{part_indicator}...",
            )
            regular_now = separate_cards(working.accumulated_cards, working.exclusions).regular_cards
            plot_variables = replace(
                self._variables(working),
                cards=cards_to_prompt_json(strip_cards_for_context(regular_now)),
            )
            plot_essentials, core_updates = await asyncio.gather(
                PlotEssentialsExecutor(*executor_args).run(extraction.content, plot_variables, part_indicator),
                CoreSelfExecutor(*executor_args).run(
                    extraction.content,
                    working.accumulated_cards,
                    working.accumulated_summary,
                    self._variables(working),
                    part_indicator,
                ),
            )
            if plot_essentials is not None:
                working.plot_essentials = plot_essentials
            if core_updates:
                working.accumulated_cards = apply_core_self_updates(working.accumulated_cards, core_updates)

            working.last_line = extraction.new_last_line
            working.current_part = extraction.new_part
            working.updated_at = datetime.utcnow()
            await self.store.save_state(self.story_id, working)
        finally:
            self._working = None

        self._set_status(ProcessorStatus.PART_COMPLETE, f"Part {working.current_part}/{content.total_parts} complete")
        self._emit_event("part_complete", {
            "part": working.current_part,
            "total_parts": content.total_parts,
            "cards": len(working.accumulated_cards),
        })
        return working

    # ========================================================================
    # Manual Task Retry
    # ========================================================================

    async def retry_task(self, task_id: str, system_prompt: Optional[str] = None) -> Task:
        """
        Re-run a finished task, optionally with an edited system prompt.

        The retry's result is authoritative over the pipeline's result for the
        same task id.
        """
        task = self.board.get(task_id)
        if is_disabled_model(task.model):
            raise InvalidTaskTransitionError(f"Task {task_id} has no model to retry with")
        task = self.board.begin_retry(task_id, system_prompt)
        generation = self._run_generation
        logger.info(f"[StoryProcessor.retry_task] Retrying {task.name} with model '{task.model}'")

        try:
            response = await self.client.complete(
                task.model, task.system_prompt, task.user_content, sampling=self.settings.sampling,
            )
        except ContextFoxError as e:
            logger.warning(f"[StoryProcessor.retry_task] Retry of {task.name} failed: {e}")
            if self._superseded(task, generation):
                return task
            self.board.fail(task_id, str(e), writer=WriterTag.RETRY)
            return task

        if self._superseded(task, generation):
            return task
        self.board.complete(task_id, response.content, writer=WriterTag.RETRY)
        if not self.board.submit_retry_result(task_id, response.content):
            await self._apply_late_result(task, response.content)
        return task

    def _superseded(self, task: Task, generation: int) -> bool:
        if generation == self._run_generation:
            return False
        logger.warning(f"[StoryProcessor.retry_task] A new run started while retrying {task.name}; result dropped")
        return True

    async def _apply_late_result(self, task: Task, raw: str) -> None:
        """Apply a retry result whose stage has already routed its output."""
        target = self._working
        persist = target is None
        if target is None:
            target = await self.store.get_state(self.story_id) or ProcessingState()

        if task.kind == TaskKind.CARDS:
            separated = separate_cards(target.accumulated_cards, target.exclusions)
            target.accumulated_cards = build_final_cards(separated, parse_cards_response(raw))
        elif task.kind == TaskKind.SUMMARY:
            target.accumulated_summary = parse_summary_response(raw, fallback=target.accumulated_summary)
        elif task.kind == TaskKind.PLOT_ESSENTIALS:
            target.plot_essentials = parse_plot_essentials_response(raw, fallback=target.plot_essentials)
        elif task.kind == TaskKind.CORE_SELF:
            target.accumulated_cards = apply_core_self_updates(target.accumulated_cards, parse_core_self_response(raw))
        elif task.kind == TaskKind.PERSPECTIVE:
            target.character = parse_identity_response(raw, "character") or target.character
        elif task.kind == TaskKind.TITLE:
            target.story_title = parse_identity_response(raw, "title") or target.story_title

        logger.info(f"[StoryProcessor._apply_late_result] Applied retry result of {task.name}")
        if persist:
            target.updated_at = datetime.utcnow()
            await self.store.save_state(self.story_id, target)
