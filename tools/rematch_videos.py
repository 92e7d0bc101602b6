#!/usr/bin/env python3
"""Retry the video search for entries of the latest youtube snapshot that have no match."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List


def _ensure_project_root() -> None:
    root = Path(__file__).resolve().parents[1]
    root_str = str(root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)


_ensure_project_root()

from config import PipelineConfig
from errors import PipelineError
from models import EnrichedEntry, dump_entries
from snapshot_store import FileSnapshotStore
from stages import YOUTUBE_KIND, YOUTUBE_SOURCE, load_entries
from video_matcher import VideoMatcher, YouTubeSearchProvider

logger = logging.getLogger(__name__)


def rematch_missing(
    entries: List[EnrichedEntry], matcher: VideoMatcher
) -> tuple[List[EnrichedEntry], int, list[tuple[str, str]]]:
    updated: List[EnrichedEntry] = []
    filled = 0
    failures: list[tuple[str, str]] = []
    remaining = sum(1 for entry in entries if entry.youtube is None)

    for entry in entries:
        if entry.youtube is not None:
            updated.append(entry)
            continue

        try:
            match = matcher.match(entry)
        except Exception as exc:  # noqa: BLE001
            logger.error(f"❌ Search failed for '{entry.artist} - {entry.title}': {exc}")
            match = None

        if match:
            filled += 1
            print(f"Filled video for '{entry.artist} - {entry.title}': {match.url}")
        else:
            failures.append((entry.artist, entry.title))
            print(f"⚠️  No video match for '{entry.artist} - {entry.title}'")
        updated.append(entry.model_copy(update={"youtube": match}))

        remaining -= 1
        if remaining:
            matcher.pause()

    return updated, filled, failures


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fill missing YouTube matches in the latest youtube snapshot."
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Snapshot directory (default: DATA_DIR or ./data).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Perform searches without rewriting the snapshot.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    try:
        config = PipelineConfig.from_env().with_overrides(data_dir=args.data_dir)
        store = FileSnapshotStore(config.data_dir)
        entries = load_entries(store, YOUTUBE_KIND, EnrichedEntry)
        matcher = VideoMatcher(config, YouTubeSearchProvider(config))
        updated, filled, failures = rematch_missing(entries, matcher)
        if filled and not args.dry_run:
            store.write(
                YOUTUBE_KIND, dump_entries(updated), source=YOUTUBE_SOURCE, range_=len(updated)
            )
    except PipelineError as exc:
        logger.error(f"❌ {exc}")
        return 1

    print(
        f"Completed: {filled} video(s) filled"
        f"{' (dry run)' if args.dry_run else ''}, "
        f"{len(failures)} remaining without matches."
    )
    if failures:
        print("Unmatched tracks:")
        for artist, title in failures:
            print(f" - {artist} — {title}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
