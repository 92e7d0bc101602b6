"""Collect TIDAL production credits for a chart through a remote agent task.

The agent API is asynchronous: one bulk job is submitted for the whole chart,
then its status is polled until it completes, fails, or the attempt budget is
spent. The returned payload is free-form JSON produced by the agent, so it is
validated and cleaned before anything downstream sees it.
"""
from __future__ import annotations

import json
import logging
import threading
from typing import Any, List, Optional, Sequence

import requests
from pydantic import ValidationError
from requests import Session

from config import PipelineConfig
from errors import (
    RemoteTaskError,
    RemoteTaskTimeout,
    SchemaError,
    SubmissionError,
    TaskCancelled,
)
from models import ChartEntry, CreditedEntry, CreditLine, RemoteTask

logger = logging.getLogger(__name__)

TASK_TYPE = "data_collection"
TASK_PARAMETERS = {"source": "tidal", "format": "json", "timeout": 1800}
_EXAMPLE_ROLES = (
    ("PRODUCER", "Producer 1, Producer 2"),
    ("COMPOSER", "Composer 1, Composer 2"),
    ("LYRICIST", "Lyricist 1, Lyricist 2"),
    ("MASTERING ENGINEER", "Mastering engineer"),
    ("MIXING ENGINEER", "Mixing engineer"),
)


def build_credits_prompt(entries: Sequence[ChartEntry]) -> str:
    first = entries[0]
    chart_lines = "\n".join(f"{e.rank}. {e.artist} - {e.title}" for e in entries)
    example_credits = ",\n".join(
        f'        {{"role": "{role}", "people": "{people}"}}' for role, people in _EXAMPLE_ROLES
    )
    return (
        f"Collect the TIDAL credits for every song of the global Spotify weekly chart, "
        f"ranks 1 to {len(entries)}.\n\n"
        f"Chart:\n{chart_lines}\n\n"
        "Search each song on TIDAL and return one object per song in this format:\n\n"
        "{\n"
        f"    \"rank\": {first.rank},\n"
        f"    \"artist\": {json.dumps(first.artist, ensure_ascii=False)},\n"
        f"    \"title\": {json.dumps(first.title, ensure_ascii=False)},\n"
        "    \"album\": \"Album name\",\n"
        "    \"credits\": [\n"
        f"{example_credits}\n"
        "    ]\n"
        "}\n\n"
        "Include every credit listed on TIDAL. Reply with a JSON array only."
    )


def _describe_http_error(exc: requests.RequestException) -> str:
    response = getattr(exc, "response", None)
    if response is not None and response.text:
        return f"{exc} ({response.text[:200]})"
    return str(exc)


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def _coerce_rank(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        rank = value
    elif isinstance(value, float) and value.is_integer():
        rank = int(value)
    elif isinstance(value, str) and value.strip().isdecimal():
        rank = int(value.strip())
    else:
        return None
    return rank if rank >= 1 else None


def _unwrap_payload(payload: Any) -> list:
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise SchemaError(f"Credits data is not valid JSON: {exc}") from exc
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        payload = payload["data"]
    if not isinstance(payload, list):
        raise SchemaError(
            f"Credits data must be an array, got {type(payload).__name__}"
        )
    return payload


def _clean_credits(raw: Any, label: str) -> List[CreditLine]:
    if not isinstance(raw, list):
        logger.warning(f"⚠️ Invalid credits format for {label}")
        return []
    return [
        CreditLine(role=line["role"], people=line["people"])
        for line in raw
        if isinstance(line, dict) and _is_text(line.get("role")) and _is_text(line.get("people"))
    ]


def validate_and_clean(payload: Any) -> List[CreditedEntry]:
    """Turn an agent result into credited entries, dropping what cannot be trusted.

    Raises :class:`SchemaError` when the payload is not a list. Items without a
    rank, artist, or title are dropped with a warning, malformed credit lines
    are dropped silently, and the surviving items keep their input order.
    """
    items = _unwrap_payload(payload)
    cleaned: List[CreditedEntry] = []
    for item in items:
        if not isinstance(item, dict):
            logger.warning(f"⚠️ Skipping non-object credits item: {item!r}")
            continue
        if not item.get("rank") or not item.get("artist") or not item.get("title"):
            logger.warning(f"⚠️ Missing required fields for item: {item!r}")
            continue
        rank = _coerce_rank(item["rank"])
        if rank is None:
            logger.warning(f"⚠️ Invalid rank for item: {item!r}")
            continue

        label = f"{item['artist']} - {item['title']}"
        album = item.get("album")
        try:
            entry = CreditedEntry(
                rank=rank,
                artist=item["artist"],
                title=item["title"],
                album=album if isinstance(album, str) else "",
                credits=_clean_credits(item.get("credits"), label),
            )
        except ValidationError as exc:
            logger.warning(f"⚠️ Dropping malformed item {label}: {exc}")
            continue
        cleaned.append(entry)

    logger.info(f"✅ Validated {len(cleaned)} credit entries ({len(items)} received)")
    return cleaned


class CreditsTaskClient:
    """Client for the remote agent task API (``/v1/tasks``)."""

    def __init__(self, config: PipelineConfig, session: Optional[Session] = None):
        self.base_url = config.manus_api_base_url.rstrip("/")
        self.poll_interval_ms = config.poll_interval_ms
        self.max_attempts = config.max_attempts
        self.timeout = config.request_timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {config.require_manus_key()}",
                "Content-Type": "application/json",
            }
        )

    def _task_url(self, task_id: Optional[str] = None) -> str:
        if task_id is None:
            return f"{self.base_url}/v1/tasks"
        return f"{self.base_url}/v1/tasks/{task_id}"

    def submit(self, entries: Sequence[ChartEntry]) -> str:
        if not entries:
            raise SchemaError("Cannot request credits for an empty chart")

        logger.info(f"🤖 Requesting credits collection for {len(entries)} tracks")
        body = {
            "type": TASK_TYPE,
            "prompt": build_credits_prompt(entries),
            "parameters": dict(TASK_PARAMETERS),
        }
        try:
            response = self.session.post(self._task_url(), json=body, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise SubmissionError(
                f"Could not create credits task: {_describe_http_error(exc)}"
            ) from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise SubmissionError(f"Task endpoint returned invalid JSON: {exc}") from exc

        task_id = payload.get("task_id") if isinstance(payload, dict) else None
        if not task_id:
            raise SubmissionError(f"Task endpoint did not return a task_id: {payload!r}")
        logger.info(f"📝 Task created: {task_id}")
        return str(task_id)

    def get_task(self, task_id: str) -> RemoteTask:
        try:
            response = self.session.get(self._task_url(task_id), timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise RemoteTaskError(
                task_id, f"status check failed: {_describe_http_error(exc)}"
            ) from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise SchemaError(f"Status for task {task_id} is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise SchemaError(f"Status for task {task_id} must be an object: {payload!r}")

        try:
            return RemoteTask(
                id=str(payload.get("id") or payload.get("task_id") or task_id),
                status=payload.get("status"),
                result=payload.get("result"),
                error=payload.get("error"),
            )
        except ValidationError as exc:
            raise SchemaError(f"Unexpected status for task {task_id}: {exc}") from exc

    def await_completion(
        self,
        task_id: str,
        poll_interval_ms: Optional[int] = None,
        max_attempts: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        """Poll ``task_id`` until it reaches a terminal status.

        Each non-terminal poll is followed by a wait on ``cancel_event``, so
        setting the event (or a Ctrl-C during the wait) stops polling with
        :class:`TaskCancelled`. The remote task itself is left running.
        """
        interval_ms = self.poll_interval_ms if poll_interval_ms is None else poll_interval_ms
        attempts = self.max_attempts if max_attempts is None else max_attempts
        cancel_event = cancel_event or threading.Event()
        logger.info(f"⏳ Waiting for task completion: {task_id}")

        try:
            for attempt in range(1, attempts + 1):
                if cancel_event.is_set():
                    raise TaskCancelled(task_id)

                task = self.get_task(task_id)
                logger.info(f"📊 Task status: {task.status} ({attempt}/{attempts})")
                if task.status == "completed":
                    logger.info("✅ Task completed successfully!")
                    return task.result
                if task.status == "failed":
                    raise RemoteTaskError(task_id, task.error or "no error message given")

                if attempt < attempts and cancel_event.wait(interval_ms / 1000):
                    raise TaskCancelled(task_id)
        except KeyboardInterrupt as exc:
            raise TaskCancelled(task_id) from exc

        raise RemoteTaskTimeout(task_id, attempts)

    def validate_and_clean(self, payload: Any) -> List[CreditedEntry]:
        return validate_and_clean(payload)

    def collect_credits(
        self,
        entries: Sequence[ChartEntry],
        *,
        cancel_event: Optional[threading.Event] = None,
        resume_task_id: Optional[str] = None,
    ) -> List[CreditedEntry]:
        if resume_task_id:
            logger.info(f"↻ Resuming existing task {resume_task_id}")
            task_id = resume_task_id
        else:
            task_id = self.submit(entries)
        result = self.await_completion(task_id, cancel_event=cancel_event)
        return self.validate_and_clean(result)


__all__ = [
    "CreditsTaskClient",
    "build_credits_prompt",
    "validate_and_clean",
    "TASK_TYPE",
    "TASK_PARAMETERS",
]
