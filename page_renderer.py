"""Render the enriched chart into the static HTML page."""
from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from config import PipelineConfig
from errors import ConfigurationError
from models import EnrichedEntry, PageStats

logger = logging.getLogger(__name__)

TEMPLATE_NAME = "chart-template.html"
UNKNOWN_ALBUM = "Unknown Album"
TOP_PRODUCER_COUNT = 5


def chart_items(entries: Sequence[EnrichedEntry]) -> List[dict]:
    items = []
    for entry in entries:
        item = {
            "rank": entry.rank,
            "artist": entry.artist,
            "title": entry.title,
            "album": entry.album or UNKNOWN_ALBUM,
            "credits": [line.model_dump() for line in entry.credits],
        }
        if entry.youtube is not None and entry.youtube.video_id:
            item["youtubeId"] = entry.youtube.video_id
            item["youtubeUrl"] = entry.youtube.url
        items.append(item)
    return items


def chart_data_js(entries: Sequence[EnrichedEntry]) -> str:
    payload = json.dumps(chart_items(entries), ensure_ascii=False, indent=4)
    # keep titles like "</script>" from closing the inline script block
    payload = payload.replace("</", "<\\/")
    return f"const chartData = {payload};"


def build_stats(entries: Sequence[EnrichedEntry]) -> PageStats:
    total = len(entries)
    with_videos = sum(1 for entry in entries if entry.youtube is not None)
    producers = [
        name.strip()
        for entry in entries
        for line in entry.credits
        if line.role.strip().upper() == "PRODUCER"
        for name in line.people.split(",")
        if name.strip()
    ]
    counts = pd.Series(producers, dtype="object").value_counts().head(TOP_PRODUCER_COUNT)
    return PageStats(
        total_tracks=total,
        tracks_with_videos=with_videos,
        unique_artists=len({entry.artist for entry in entries}),
        video_success_rate=round(with_videos / total * 100) if total else 0,
        top_producers={str(name): int(count) for name, count in counts.items()},
    )


def render(
    entries: Sequence[EnrichedEntry],
    template: str,
    now: Optional[datetime] = None,
    stats: Optional[PageStats] = None,
) -> str:
    now = now or datetime.now(UTC)
    if stats is None:
        stats = build_stats(entries)
    top_producers = ", ".join(f"{name} ({count})" for name, count in stats.top_producers.items())
    replacements = {
        "{{CHART_DATA}}": chart_data_js(entries),
        "{{CHART_DATE}}": f"{now:%B} {now.day}, {now.year}",
        "{{CHART_WEEK}}": f"Week {now.isocalendar().week}",
        "{{CHART_YEAR}}": str(now.year),
        "{{TIMESTAMP}}": now.isoformat(),
        "{{TOTAL_TRACKS}}": str(stats.total_tracks),
        "{{TRACKS_WITH_VIDEOS}}": str(stats.tracks_with_videos),
        "{{UNIQUE_ARTISTS}}": str(stats.unique_artists),
        "{{VIDEO_SUCCESS_RATE}}": str(stats.video_success_rate),
        "{{TOP_PRODUCERS}}": top_producers or "N/A",
    }
    html = template
    for placeholder, value in replacements.items():
        html = html.replace(placeholder, value)
    return html


def load_template(template_dir: Path) -> str:
    path = Path(template_dir) / TEMPLATE_NAME
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigurationError(f"HTML template not found: {path}") from exc


def write_page(
    config: PipelineConfig,
    entries: Sequence[EnrichedEntry],
    now: Optional[datetime] = None,
) -> Dict[str, Path]:
    now = now or datetime.now(UTC)
    stats = build_stats(entries)
    html = render(entries, load_template(config.template_dir), now=now, stats=stats)

    output_dir = Path(config.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    page_path = output_dir / f"chart-{now.date().isoformat()}.html"
    index_path = output_dir / "index.html"
    metadata_path = output_dir / "metadata.json"

    page_path.write_text(html, encoding="utf-8")
    index_path.write_text(html, encoding="utf-8")
    metadata = {
        "generated": now.isoformat(),
        "source": "kworb.net + tidal + youtube",
        "chartInfo": {
            "date": now.date().isoformat(),
            "week": now.isocalendar().week,
            "year": now.year,
            "range": f"1-{len(entries)}",
        },
        "statistics": {
            "totalTracks": stats.total_tracks,
            "tracksWithVideos": stats.tracks_with_videos,
            "uniqueArtists": stats.unique_artists,
            "videoSuccessRate": stats.video_success_rate,
            "topProducers": stats.top_producers,
        },
        "dataFiles": {
            "chart": "latest-chart.json",
            "credits": "latest-credits.json",
            "youtube": "latest-youtube.json",
        },
    }
    metadata_path.write_text(
        json.dumps(metadata, ensure_ascii=False, indent=2), encoding="utf-8"
    )

    logger.info(f"💾 HTML file saved to: {page_path}")
    logger.info(
        f"📊 Chart info: {stats.total_tracks} tracks, {stats.tracks_with_videos} with videos "
        f"({stats.video_success_rate}%)"
    )
    return {"page": page_path, "index": index_path, "metadata": metadata_path}


__all__ = ["build_stats", "chart_items", "chart_data_js", "render", "load_template", "write_page"]
