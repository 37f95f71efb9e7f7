"""
Unit tests for the task board: lifecycle, event log and retry arbitration.
"""

import pytest

from contextfox.core.errors import InvalidTaskTransitionError, TaskNotFoundError
from contextfox.core.task_board import TaskBoard, WriterTag, build_context
from contextfox.models import TaskKind, TaskStatus


@pytest.fixture
def board():
    board = TaskBoard()
    board.create("summary", "Generating Summary", TaskKind.SUMMARY, model="m", system_prompt="sys", user_content="story")
    return board


class TestLifecycle:
    """Tests for pipeline task transitions."""

    def test_create(self, board):
        task = board.get("summary")
        assert task.status == TaskStatus.WAITING
        assert task.context == "System:\nsys\n\nContent:\nstory"
        assert not task.retried

    def test_forward_transitions(self, board):
        board.start("summary")
        board.complete("summary", "output")
        task = board.get("summary")
        assert task.status == TaskStatus.COMPLETED
        assert task.output == "output"

    def test_backward_transition_rejected(self, board):
        board.start("summary")
        board.fail("summary", "boom")
        with pytest.raises(InvalidTaskTransitionError):
            board.complete("summary", "late")

    def test_unknown_task(self, board):
        with pytest.raises(TaskNotFoundError):
            board.get("missing")

    def test_update_prompt_rebuilds_context(self, board):
        board.update_prompt("summary", "new sys")
        assert board.get("summary").context == build_context("new sys", "story")

    def test_events_are_appended(self, board):
        board.start("summary")
        board.complete("summary", "ok")
        actions = [(event.action, event.status) for event in board.events]
        assert actions == [
            ("created", TaskStatus.WAITING),
            ("status", TaskStatus.PROCESSING),
            ("status", TaskStatus.COMPLETED),
        ]

    def test_listeners_notified(self, board):
        seen = []
        board.add_listener(lambda task: seen.append(task.status))
        board.start("summary")
        assert seen == [TaskStatus.PROCESSING]

    def test_clear(self, board):
        board.clear()
        assert board.tasks() == []


class TestRetryArbitration:
    """Tests for retry-versus-pipeline ownership."""

    def test_retry_requires_finished_task(self, board):
        with pytest.raises(InvalidTaskTransitionError):
            board.begin_retry("summary")

    def test_retry_takes_ownership(self, board):
        board.start("summary")
        board.complete("summary", "pipeline")
        task = board.begin_retry("summary", system_prompt="edited")
        assert task.status == TaskStatus.PROCESSING
        assert task.retried
        assert task.system_prompt == "edited"
        assert task.context == build_context("edited", "story")

    def test_pipeline_writes_ignored_after_retry(self, board):
        board.start("summary")
        board.fail("summary", "boom")
        board.begin_retry("summary")
        board.complete("summary", "late pipeline write")
        assert board.get("summary").status == TaskStatus.PROCESSING
        board.complete("summary", "retry write", writer=WriterTag.RETRY)
        assert board.get("summary").output == "retry write"

    def test_retry_result_before_routing_wins(self, board):
        board.start("summary")
        board.complete("summary", "pipeline")
        board.begin_retry("summary")
        assert board.submit_retry_result("summary", "from retry") is True
        assert board.claim_for_routing("summary", "from pipeline") == "from retry"
        assert board.is_routed("summary")

    def test_retry_result_after_routing_reported(self, board):
        board.start("summary")
        board.complete("summary", "pipeline")
        assert board.claim_for_routing("summary", "from pipeline") == "from pipeline"
        board.begin_retry("summary")
        assert board.submit_retry_result("summary", "from retry") is False

    def test_recreate_resets_ownership(self, board):
        board.start("summary")
        board.complete("summary", "pipeline")
        board.begin_retry("summary")
        board.submit_retry_result("summary", "old")
        board.create("summary", "Generating Summary", TaskKind.SUMMARY)
        assert not board.get("summary").retried
        assert board.claim_for_routing("summary", "fresh") == "fresh"

    def test_writer_tags_recorded(self, board):
        board.start("summary")
        board.complete("summary", "pipeline")
        board.begin_retry("summary")
        assert board.events[-1].writer == WriterTag.RETRY
        assert board.events[-1].detail == "retry started"
