"""Command-line entry point: apply one change to a list of properties."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from gazetteer_multiedit.batch import BatchProgress, BatchSummary, MultiEditBatch
from gazetteer_multiedit.config import Settings
from gazetteer_multiedit.exceptions import GazetteerError
from gazetteer_multiedit.logging import configure_logging, get_logger
from gazetteer_multiedit.models import ChangeSpec, FieldError, parse_change
from gazetteer_multiedit.repository import HttpPropertyRepository

logger = get_logger(__name__)


def read_uprns(path: Path) -> list[int]:
    """Read UPRNs from a file, one per line or comma separated.

    Blank lines and ``#`` comments are ignored.
    """
    uprns: list[int] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.split("#", 1)[0]
        uprns.extend(int(token) for token in line.replace(",", " ").split())
    return uprns


def _print_progress(progress: BatchProgress) -> None:
    print(
        f"\rProcessed {progress.processed} of {progress.total} "
        f"({progress.succeeded} updated, {progress.failed} failed)",
        end="",
        flush=True,
    )


def print_validation_errors(errors: list[FieldError]) -> None:
    print("The change is not valid:")
    for error in errors:
        print(f"  {error.field}: {', '.join(error.errors)}")


def print_summary(summary: BatchSummary) -> None:
    print(f"\n{'=' * 60}")
    print(f"Updated {summary.succeeded_count} properties, {summary.failed_count} failed")
    print(f"{'=' * 60}")
    for failed in summary.failed_details:
        label = failed.address or "(address unknown)"
        print(f"\n[{failed.uprn}] {label}")
        for line in failed.errors.splitlines():
            print(f"  {line}")


async def run_batch(settings: Settings, uprns: list[int], change: ChangeSpec) -> int:
    """Run one batch against the configured gazetteer API.

    Returns:
        Process exit code: 0 when every property was updated, 1 otherwise.
    """
    repository = HttpPropertyRepository.from_settings(settings)
    try:
        batch = MultiEditBatch.from_settings(repository, settings)
        batch.subscribe(_print_progress)

        errors = await batch.start(uprns, change)
        if errors:
            print_validation_errors(errors)
            return 1

        summary = await batch.wait()
    finally:
        await repository.close()

    print_summary(summary)
    return 1 if summary.failed_count else 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Gazetteer multi-edit - apply one change to many properties"
    )
    parser.add_argument(
        "--change",
        type=Path,
        required=True,
        help="JSON file describing the change (must include a 'kind')",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--uprns",
        type=int,
        nargs="+",
        help="UPRNs of the properties to update",
    )
    source.add_argument(
        "--uprns-file",
        type=Path,
        help="File of UPRNs, one per line or comma separated",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug-level logging for troubleshooting",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines instead of console output",
    )
    args = parser.parse_args()

    try:
        settings = Settings()
    except ValueError as e:
        print(f"Error: Failed to load settings. {e}")
        print("Required: GAZETTEER_API_BASE_URL")
        print("Optional: GAZETTEER_API_TOKEN, GAZETTEER_AUTHORITY, GAZETTEER_LOOKUPS_PATH")
        sys.exit(2)

    configure_logging(
        json_output=args.json_logs or settings.json_logs,
        level=logging.DEBUG if args.debug else logging.INFO,
    )

    try:
        change = parse_change(args.change.read_bytes())
        uprns = args.uprns if args.uprns else read_uprns(args.uprns_file)
    except (OSError, ValueError) as e:
        logger.error("invalid_input", error=str(e))
        print(f"Error: {e}")
        sys.exit(2)

    logger.info(
        "starting_multi_edit",
        kind=change.kind,
        count=len(uprns),
        authority=settings.authority.value,
    )

    try:
        exit_code = asyncio.run(run_batch(settings, uprns, change))
    except GazetteerError as e:
        logger.error("multi_edit_failed", error=str(e))
        print(f"Error: {e}")
        sys.exit(2)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
