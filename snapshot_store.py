"""Versioned per-period snapshots with a "latest" alias for each stage."""
from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from pydantic import ValidationError

from errors import NotFoundError, SchemaError
from models import Snapshot

logger = logging.getLogger(__name__)

# Stage that produces each snapshot kind, used in "run X first" hints.
PRODUCERS = {
    "chart": "chart",
    "credits": "credits",
    "youtube": "videos",
}


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _missing_hint(kind: str) -> str:
    stage = PRODUCERS.get(kind)
    if stage is None:
        return ""
    return f"Run the '{stage}' stage first."


def build_snapshot(
    data: Sequence, *, source: str, range_: Optional[int], now: datetime
) -> Snapshot:
    return Snapshot(
        timestamp=now.isoformat(),
        source=source,
        range=range_,
        count=len(data),
        data=list(data),
    )


class MemorySnapshotStore:
    """In-memory snapshot store; same contract as :class:`FileSnapshotStore`."""

    def __init__(self, clock: Callable[[], datetime] = _utc_now):
        self._clock = clock
        self._snapshots: Dict[str, Snapshot] = {}
        self._latest: Dict[str, str] = {}

    def write(self, kind: str, data: Sequence, *, source: str, range_: Optional[int] = None) -> str:
        now = self._clock()
        snapshot_id = f"{kind}-{now.date().isoformat()}"
        self._snapshots[snapshot_id] = build_snapshot(data, source=source, range_=range_, now=now)
        self._latest[kind] = snapshot_id
        return snapshot_id

    def read_latest(self, kind: str) -> Snapshot:
        snapshot_id = self._latest.get(kind)
        if snapshot_id is None:
            raise NotFoundError(kind, _missing_hint(kind))
        return self._snapshots[snapshot_id].model_copy(deep=True)

    def read(self, snapshot_id: str) -> Snapshot:
        if snapshot_id not in self._snapshots:
            raise NotFoundError(snapshot_id)
        return self._snapshots[snapshot_id].model_copy(deep=True)

    def list_snapshots(self, kind: str) -> List[str]:
        return sorted(sid for sid in self._snapshots if sid.startswith(f"{kind}-"))


class FileSnapshotStore:
    """Stores ``<kind>-<YYYY-MM-DD>.json`` plus ``latest-<kind>.json`` in one directory.

    A rerun within the same UTC day overwrites that day's file and the alias.
    Files are written to a temporary sibling first and moved into place, so a
    reader never sees a half-written document.
    """

    def __init__(self, data_dir: Path, clock: Callable[[], datetime] = _utc_now):
        self.data_dir = Path(data_dir)
        self._clock = clock

    def _period_path(self, snapshot_id: str) -> Path:
        return self.data_dir / f"{snapshot_id}.json"

    def _latest_path(self, kind: str) -> Path:
        return self.data_dir / f"latest-{kind}.json"

    def _write_json(self, path: Path, payload: dict) -> None:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, ensure_ascii=False, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _load(self, path: Path, kind: str) -> Snapshot:
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except FileNotFoundError as exc:
            raise NotFoundError(kind, _missing_hint(kind)) from exc
        except json.JSONDecodeError as exc:
            raise SchemaError(f"Snapshot {path} is not valid JSON: {exc}") from exc
        try:
            return Snapshot.model_validate(payload)
        except ValidationError as exc:
            raise SchemaError(f"Snapshot {path} has an unexpected shape: {exc}") from exc

    def write(self, kind: str, data: Sequence, *, source: str, range_: Optional[int] = None) -> str:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        now = self._clock()
        snapshot_id = f"{kind}-{now.date().isoformat()}"
        snapshot = build_snapshot(data, source=source, range_=range_, now=now)
        payload = snapshot.model_dump(mode="json")

        period_path = self._period_path(snapshot_id)
        self._write_json(period_path, payload)
        logger.info(f"💾 {kind} snapshot saved to: {period_path}")

        latest_path = self._latest_path(kind)
        self._write_json(latest_path, payload)
        logger.info(f"🔗 Latest {kind} snapshot linked: {latest_path}")
        return snapshot_id

    def read_latest(self, kind: str) -> Snapshot:
        snapshot = self._load(self._latest_path(kind), kind)
        logger.debug(f"Loaded latest {kind} snapshot: {snapshot.count} entries")
        return snapshot

    def read(self, snapshot_id: str) -> Snapshot:
        return self._load(self._period_path(snapshot_id), snapshot_id)

    def list_snapshots(self, kind: str) -> List[str]:
        if not self.data_dir.exists():
            return []
        return sorted(path.stem for path in self.data_dir.glob(f"{kind}-*.json"))


__all__ = ["MemorySnapshotStore", "FileSnapshotStore", "build_snapshot", "PRODUCERS"]
