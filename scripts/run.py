#!/usr/bin/env python3
"""Alerter entrypoint — reads event keys from stdin and alerts on rates.

Each non-empty stdin line is one occurrence, keyed by its text.

Usage::

    # Run with default config
    tail -F app-errors.txt | python scripts/run.py

    # Custom config file
    python scripts/run.py --config config/settings.yaml

    # Override log level
    python scripts/run.py --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog

from src.core.config import load_settings
from src.core.exceptions import RecoveryIOError
from src.core.logging import setup_logging
from src.monitor.factory import create_alerter

logger = structlog.get_logger(__name__)


async def run(args: argparse.Namespace) -> int:
    """Start the alerter and feed it stdin until EOF."""
    settings = load_settings(args.config)
    setup_logging(level=args.log_level, config=settings.logging)

    alerter = create_alerter(settings)
    try:
        await alerter.start()
    except RecoveryIOError:
        logger.exception("alerter_start_failed")
        return 1

    loop = asyncio.get_running_loop()
    told = 0
    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            key = line.strip()
            if not key:
                continue
            for event_type, window in alerter.tell(key):
                logger.info("alert_fired", event_type=event_type, window=window.value)
            told += 1
    except Exception as exc:
        await alerter.on_fatal(exc)
        await alerter.close()
        raise

    logger.info("input_exhausted", occurrences=told)
    await alerter.close()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Error-rate alerter")
    parser.add_argument("--config", default=None, help="Path to settings YAML")
    parser.add_argument("--log-level", default=None, help="Override log level")
    args = parser.parse_args()

    try:
        code = asyncio.run(run(args))
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
