"""Exceptions raised by the chart pipeline stages."""
from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base class for errors that abort a pipeline stage."""


class ConfigurationError(PipelineError):
    pass


class NotFoundError(PipelineError):
    """Raised when no "latest" snapshot of a kind has been written yet."""

    def __init__(self, kind: str, hint: Optional[str] = None):
        self.kind = kind
        message = f"No '{kind}' snapshot found."
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)


class SchemaError(PipelineError):
    """Raised when a payload does not have the expected top-level shape."""


class ChartSourceError(PipelineError):
    pass


class SubmissionError(PipelineError):
    """Raised when the remote task endpoint is unreachable or rejects a job."""


class RemoteTaskError(PipelineError):
    """Raised when a remote task reports failure or cannot be polled."""

    def __init__(self, task_id: str, message: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} failed: {message}")


class RemoteTaskTimeout(PipelineError):
    """Raised when a remote task is still running after the polling budget.

    The task may still finish on the remote side; rerun with the same task id
    to pick the result up.
    """

    def __init__(self, task_id: str, attempts: int):
        self.task_id = task_id
        self.attempts = attempts
        super().__init__(
            f"Task {task_id} still not finished after {attempts} status checks"
        )


class TaskCancelled(PipelineError):
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Polling for task {task_id} was cancelled")


class SearchError(PipelineError):
    pass


__all__ = [
    "PipelineError",
    "ConfigurationError",
    "NotFoundError",
    "SchemaError",
    "ChartSourceError",
    "SubmissionError",
    "RemoteTaskError",
    "RemoteTaskTimeout",
    "TaskCancelled",
    "SearchError",
]
