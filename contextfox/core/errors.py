"""
Error taxonomy for ContextFox processing runs.
"""

from typing import Optional


class ContextFoxError(Exception):
    """Base class for all processing errors."""


class NoNewContentError(ContextFoxError):
    """Extraction found nothing left to process."""

    def __init__(self, message: str = "No new content to process"):
        super().__init__(message)


class PartNotFoundError(ContextFoxError):
    """A requested part number is absent from the part map."""

    def __init__(self, part: int):
        self.part = part
        super().__init__(f"Part {part} not found in story parts")


class RefusalError(ContextFoxError):
    """The model withheld or filtered its response (content policy)."""

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason or "Content filtered"
        super().__init__(f"REFUSAL: {self.reason}")


class TransportError(ContextFoxError):
    """Network or API-level failure of a completion call."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ParseFailureError(ContextFoxError):
    """Structured model output could not be parsed by a parser tier."""


class TemplateError(ContextFoxError, ValueError):
    """A prompt template references an unknown placeholder."""


class ResumeNotAllowedError(ContextFoxError):
    """Resume was requested while the processor is not awaiting permission."""


class TaskNotFoundError(ContextFoxError):
    """No task with the given id exists on the task board."""


class InvalidTaskTransitionError(ContextFoxError):
    """A task status change would move backwards."""


class StageFailedError(ContextFoxError):
    """A load-bearing task exhausted its retries; the run cannot continue."""

    def __init__(self, task_name: str, reason: Exception):
        self.task_name = task_name
        self.reason = reason
        super().__init__(f"{task_name} failed: {reason}")
