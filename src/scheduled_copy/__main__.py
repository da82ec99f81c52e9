"""
Service entry point.

Runs the scheduler until SIGINT or SIGTERM:

    python -m scheduled_copy --config config/config.yaml

Author: Scheduled Copy Project
License: MIT
"""

import argparse
import signal
import sys
import threading
from typing import List, Optional

from .config import load_config
from .core.orchestrator import FileTaskService
from .utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="scheduled-copy",
        description="Copy files between folders on a schedule."
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the YAML configuration file (default: $CONFIG_PATH or config/config.yaml)"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    setup_logging(
        log_level=config.app.log_level,
        log_to_file=config.app.log_to_file,
        log_file_path=config.app.log_file_path,
        log_rotation_size=config.app.log_rotation_size,
        log_retention_count=config.app.log_retention_count,
        json_format=config.app.json_logs
    )

    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info(f"Signal {signum} received, shutting down...")
        stop_main.set()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    with FileTaskService(config) as service:
        service.start_scheduler()
        logger.info(
            f"Scheduler running with {len(service.get_all_schedules())} schedules. "
            "Press Ctrl+C to stop."
        )
        stop_main.wait()

    logger.info("Bye.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
