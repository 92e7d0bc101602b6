"""Pipeline stages: each reads the latest snapshot of the previous kind and writes its own."""
from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from config import PipelineConfig
from errors import SchemaError
from models import ChartEntry, CreditedEntry, EnrichedEntry, dump_entries
from page_renderer import write_page

logger = logging.getLogger(__name__)

CHART_KIND = "chart"
CREDITS_KIND = "credits"
YOUTUBE_KIND = "youtube"

CREDITS_SOURCE = "manus-agent-tidal"
YOUTUBE_SOURCE = "youtube-api-v3"

M = TypeVar("M", bound=BaseModel)


def load_entries(store, kind: str, model: Type[M]) -> List[M]:
    snapshot = store.read_latest(kind)
    try:
        entries = [model.model_validate(item) for item in snapshot.data]
    except ValidationError as exc:
        raise SchemaError(f"Latest '{kind}' snapshot has malformed entries: {exc}") from exc
    logger.info(f"Loaded {kind} data: {len(entries)} entries ({snapshot.timestamp})")
    return entries


def run_chart_stage(config: PipelineConfig, store, source) -> str:
    entries = source.fetch()
    return store.write(
        CHART_KIND, dump_entries(entries), source=config.chart_url, range_=config.chart_range
    )


def run_credits_stage(
    config: PipelineConfig,
    store,
    client,
    *,
    cancel_event: Optional[threading.Event] = None,
    resume_task_id: Optional[str] = None,
) -> str:
    chart = load_entries(store, CHART_KIND, ChartEntry)
    credited = client.collect_credits(
        chart, cancel_event=cancel_event, resume_task_id=resume_task_id
    )
    if not credited:
        raise SchemaError(
            "Credits task returned no usable entries; previous credits snapshot kept"
        )
    if len(credited) < len(chart):
        logger.warning(
            f"⚠️ Credits cover {len(credited)} of {len(chart)} chart entries"
        )
    return store.write(
        CREDITS_KIND, dump_entries(credited), source=CREDITS_SOURCE, range_=len(chart)
    )


def run_video_stage(config: PipelineConfig, store, matcher) -> str:
    credited = load_entries(store, CREDITS_KIND, CreditedEntry)
    matcher.check_access()
    enriched = matcher.enrich_all(credited)
    return store.write(
        YOUTUBE_KIND, dump_entries(enriched), source=YOUTUBE_SOURCE, range_=len(credited)
    )


def run_render_stage(
    config: PipelineConfig, store, now: Optional[datetime] = None
) -> Dict[str, Path]:
    enriched = load_entries(store, YOUTUBE_KIND, EnrichedEntry)
    return write_page(config, enriched, now=now)


__all__ = [
    "CHART_KIND",
    "CREDITS_KIND",
    "YOUTUBE_KIND",
    "load_entries",
    "run_chart_stage",
    "run_credits_stage",
    "run_video_stage",
    "run_render_stage",
]
