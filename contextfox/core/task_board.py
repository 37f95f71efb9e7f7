"""
Task Board - Single-Writer Task State
Every task status change is recorded as an event in an append-only log. Two
writers exist: the pipeline and a manual retry. A retry's result wins over
the pipeline's for the same task id, resolved here rather than by callers.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from ..models import Task, TaskKind, TaskStatus
from .errors import InvalidTaskTransitionError, TaskNotFoundError

logger = logging.getLogger(__name__)

_STATUS_RANK = {
    TaskStatus.WAITING: 0,
    TaskStatus.PROCESSING: 1,
    TaskStatus.COMPLETED: 2,
    TaskStatus.ERROR: 2,
}


class WriterTag(str, Enum):
    PIPELINE = "pipeline"
    RETRY = "retry"


@dataclass
class TaskEvent:
    """One entry in the board's event log."""
    task_id: str
    action: str  # created, status, prompt, result, routed
    writer: WriterTag
    status: Optional[TaskStatus] = None
    detail: str = ""
    timestamp: datetime = field(default_factory=datetime.utcnow)


class TaskBoard:
    """Holds the tasks of the current run and arbitrates result ownership."""

    def __init__(self):
        self._tasks: Dict[str, Task] = {}
        self._retry_results: Dict[str, Any] = {}
        self._routed: Set[str] = set()
        self._listeners: List[Callable[[Task], None]] = []
        self.events: List[TaskEvent] = []

    def add_listener(self, listener: Callable[[Task], None]) -> None:
        self._listeners.append(listener)

    def _record(self, task: Task, action: str, writer: WriterTag, detail: str = "") -> None:
        self.events.append(TaskEvent(
            task_id=task.id,
            action=action,
            writer=writer,
            status=task.status,
            detail=detail,
        ))
        for listener in self._listeners:
            listener(task)

    # ========================================================================
    # Queries
    # ========================================================================

    def get(self, task_id: str) -> Task:
        if task_id not in self._tasks:
            raise TaskNotFoundError(f"Task {task_id} not found")
        return self._tasks[task_id]

    def tasks(self) -> List[Task]:
        return list(self._tasks.values())

    def is_routed(self, task_id: str) -> bool:
        return task_id in self._routed

    def clear(self) -> None:
        """Forget all tasks (a new run starts with an empty board)."""
        self._tasks.clear()
        self._retry_results.clear()
        self._routed.clear()

    # ========================================================================
    # Pipeline Writes
    # ========================================================================

    def create(
        self,
        task_id: str,
        name: str,
        kind: TaskKind,
        model: str = "",
        system_prompt: str = "",
        user_content: str = "",
    ) -> Task:
        """Register a task in ``waiting``; an existing id is replaced."""
        task = Task(
            id=task_id,
            name=name,
            kind=kind,
            model=model,
            system_prompt=system_prompt,
            user_content=user_content,
            context=build_context(system_prompt, user_content),
        )
        self._tasks[task_id] = task
        self._retry_results.pop(task_id, None)
        self._routed.discard(task_id)
        self._record(task, "created", WriterTag.PIPELINE)
        return task

    def _transition(self, task: Task, status: TaskStatus) -> None:
        if _STATUS_RANK[status] <= _STATUS_RANK[task.status]:
            raise InvalidTaskTransitionError(
                f"Task {task.id} cannot move from {task.status.value} to {status.value}"
            )
        task.status = status

    def _pipeline_task(self, task_id: str) -> Optional[Task]:
        """The task, or None when a retry has taken ownership of it."""
        task = self.get(task_id)
        if task.retried:
            logger.info(f"[TaskBoard] Ignoring pipeline write for retried task {task_id}")
            return None
        return task

    def start(self, task_id: str) -> None:
        task = self._pipeline_task(task_id)
        if task is None:
            return
        self._transition(task, TaskStatus.PROCESSING)
        self._record(task, "status", WriterTag.PIPELINE)

    def update_prompt(self, task_id: str, system_prompt: str, writer: WriterTag = WriterTag.PIPELINE) -> None:
        """Record the prompt actually sent (it changes after a refusal)."""
        task = self.get(task_id) if writer == WriterTag.RETRY else self._pipeline_task(task_id)
        if task is None:
            return
        task.system_prompt = system_prompt
        task.context = build_context(system_prompt, task.user_content)
        self._record(task, "prompt", writer)

    def complete(self, task_id: str, output: str, writer: WriterTag = WriterTag.PIPELINE) -> None:
        self._finish(task_id, TaskStatus.COMPLETED, output, writer)

    def fail(self, task_id: str, output: str, writer: WriterTag = WriterTag.PIPELINE) -> None:
        self._finish(task_id, TaskStatus.ERROR, output, writer)

    def _finish(self, task_id: str, status: TaskStatus, output: str, writer: WriterTag) -> None:
        task = self.get(task_id) if writer == WriterTag.RETRY else self._pipeline_task(task_id)
        if task is None:
            return
        self._transition(task, status)
        task.output = output
        self._record(task, "status", writer, detail=output[:200])

    def claim_for_routing(self, task_id: str, pipeline_value: Any) -> Any:
        """
        Hand the stage its value to route, exactly once per task.

        A retry result submitted before routing replaces the pipeline value.
        """
        task = self.get(task_id)
        self._routed.add(task_id)
        self._record(task, "routed", WriterTag.PIPELINE)
        if task_id in self._retry_results:
            logger.info(f"[TaskBoard] Routing retry result for {task_id} instead of pipeline result")
            return self._retry_results[task_id]
        return pipeline_value

    # ========================================================================
    # Retry Writes
    # ========================================================================

    def begin_retry(self, task_id: str, system_prompt: Optional[str] = None) -> Task:
        """Re-enter ``processing`` for a finished task; the retry now owns it."""
        task = self.get(task_id)
        if task.status not in (TaskStatus.COMPLETED, TaskStatus.ERROR):
            raise InvalidTaskTransitionError(
                f"Task {task_id} cannot be retried while {task.status.value}"
            )
        task.status = TaskStatus.PROCESSING
        task.retried = True
        task.output = ""
        if system_prompt is not None:
            task.system_prompt = system_prompt
            task.context = build_context(system_prompt, task.user_content)
        self._record(task, "status", WriterTag.RETRY, detail="retry started")
        return task

    def submit_retry_result(self, task_id: str, value: Any) -> bool:
        """
        Store a retry's raw result.

        Returns True when the pipeline has not routed this task yet (it will
        pick the value up), False when the caller must apply it itself.
        """
        task = self.get(task_id)
        self._retry_results[task_id] = value
        self._record(task, "result", WriterTag.RETRY)
        return task_id not in self._routed


def build_context(system_prompt: str, user_content: str) -> str:
    return f"System:\n{system_prompt}\n\nContent:\n{user_content}"
