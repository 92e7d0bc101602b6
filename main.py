#!/usr/bin/env python3
"""
main.py — weekly chart credits pipeline
---------------------------------------
• kworb.net          → chart snapshot
• remote agent task  → TIDAL credits snapshot
• YouTube Data API   → official video per track
• HTML template      → dist/index.html

Stages run strictly one after another; each reads the previous stage's
``latest-<kind>.json`` from the data directory and writes its own.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Optional, Sequence

from chart_source import KworbChartSource
from config import PipelineConfig
from credits_task import CreditsTaskClient
from errors import PipelineError, RemoteTaskTimeout, TaskCancelled
from snapshot_store import FileSnapshotStore
from stages import run_chart_stage, run_credits_stage, run_render_stage, run_video_stage
from video_matcher import VideoMatcher, YouTubeSearchProvider

logger = logging.getLogger(__name__)

STAGE_ORDER = ("chart", "credits", "videos", "render")
STAGE_DESCRIPTIONS = {
    "chart": "Scraping kworb chart data",
    "credits": "Collecting TIDAL credits via the agent task API",
    "videos": "Collecting YouTube video links",
    "render": "Generating HTML page",
}

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130


def run_stage(
    name: str,
    config: PipelineConfig,
    store,
    *,
    cancel_event: threading.Event,
    resume_task_id: Optional[str] = None,
):
    if name == "chart":
        return run_chart_stage(config, store, KworbChartSource(config))
    if name == "credits":
        return run_credits_stage(
            config,
            store,
            CreditsTaskClient(config),
            cancel_event=cancel_event,
            resume_task_id=resume_task_id,
        )
    if name == "videos":
        matcher = VideoMatcher(config, YouTubeSearchProvider(config))
        return run_video_stage(config, store, matcher)
    if name == "render":
        return run_render_stage(config, store)
    raise ValueError(f"Unknown stage: {name}")


def run_pipeline(
    config: PipelineConfig,
    stages: Sequence[str] = STAGE_ORDER,
    *,
    store=None,
    resume_task_id: Optional[str] = None,
    cancel_event: Optional[threading.Event] = None,
    stage_runner=run_stage,
) -> int:
    """Run ``stages`` in order and return the process exit code.

    The first failing stage aborts the rest of the run.
    """
    store = store if store is not None else FileSnapshotStore(config.data_dir)
    cancel_event = cancel_event or threading.Event()
    started = time.monotonic()

    for name in stages:
        logger.info(f"🚀 Starting: {STAGE_DESCRIPTIONS.get(name, name)}")
        try:
            result = stage_runner(
                name,
                config,
                store,
                cancel_event=cancel_event,
                resume_task_id=resume_task_id,
            )
        except TaskCancelled as exc:
            logger.error(f"🛑 Stage '{name}' cancelled: {exc}")
            logger.error(f"   Resume later with: --stage {name} --resume-task {exc.task_id}")
            return EXIT_CANCELLED
        except RemoteTaskTimeout as exc:
            logger.error(f"❌ Stage '{name}' failed: {exc}")
            logger.error(f"   Rerun with: --stage {name} --resume-task {exc.task_id}")
            return EXIT_FAILED
        except PipelineError as exc:
            logger.error(f"❌ Stage '{name}' failed: {exc}")
            return EXIT_FAILED
        except KeyboardInterrupt:
            logger.error(f"🛑 Stage '{name}' interrupted by user")
            return EXIT_CANCELLED
        logger.info(f"✅ Completed: {STAGE_DESCRIPTIONS.get(name, name)} ({result})")

    duration = round(time.monotonic() - started)
    logger.info(f"🎉 All stages completed in {duration} seconds")
    return EXIT_OK


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Build the weekly chart page with credits and videos."
    )
    parser.add_argument(
        "--stage",
        choices=("all",) + STAGE_ORDER,
        default="all",
        help="Run a single stage instead of the whole pipeline (default: all)",
    )
    parser.add_argument(
        "--resume-task",
        metavar="TASK_ID",
        help="Wait for an already submitted credits task instead of creating a new one",
    )
    parser.add_argument("--data-dir", type=Path, help="Snapshot directory (default: DATA_DIR or ./data)")
    parser.add_argument("--output-dir", type=Path, help="Page output directory (default: OUTPUT_DIR or ./dist)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        config = PipelineConfig.from_env().with_overrides(
            data_dir=args.data_dir, output_dir=args.output_dir
        )
    except PipelineError as exc:
        logger.error(f"❌ Invalid configuration: {exc}")
        return EXIT_FAILED

    cancel_event = threading.Event()

    def _terminate(signum, frame):
        cancel_event.set()
        raise KeyboardInterrupt

    signal.signal(signal.SIGTERM, _terminate)

    stages = STAGE_ORDER if args.stage == "all" else (args.stage,)
    logger.info(f"🎵 Chart pipeline started at {datetime.now(UTC).isoformat()}")
    logger.info(f"   Stages: {', '.join(stages)} | data: {config.data_dir} | output: {config.output_dir}")
    return run_pipeline(
        config,
        stages,
        resume_task_id=args.resume_task,
        cancel_event=cancel_event,
    )


if __name__ == "__main__":
    sys.exit(main())
