"""Run the retention cleanup once, e.g. from a daily cron entry.

    python -m src.evidence.jobs.cleanup [--dry-run]
"""

from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

from src.evidence.config import settings
from src.evidence.container import ServiceContainer, build_container
from src.evidence.logging_config import setup_logging

logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Purge media binaries past their retention window.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="list the files that would be cleaned up without deleting anything",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None, container: Optional[ServiceContainer] = None) -> int:
    args = _parse_args(argv)
    setup_logging(settings.log_level, settings.log_json)

    container = container or build_container()
    try:
        if args.dry_run:
            preview = container.cleanup.preview()
            print(f"{preview.count} files ready for cleanup (completed on or before {preview.cutoff.isoformat()})")
            for candidate in preview.files:
                print(f"  {candidate.id}  {candidate.custom_filename or candidate.original_filename}")
            return 0

        report = container.cleanup.run()
        print(report.message)
        for failure in report.failures:
            print(f"  {failure.media_file_id}: {failure.reason}")
        return 1 if report.failures else 0
    finally:
        container.close()


if __name__ == "__main__":
    raise SystemExit(main())
