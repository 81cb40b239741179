"""Sync the TraiNex schedule and print it as JSON, CSV or a table.

Standalone CLI script. Logs into TraiNex with the credentials from .env,
fetches the iCal export for a month or a day, caches the decoded calendar and
prints the events.

Run with: python scripts/sync_schedule.py
Debug:    python scripts/sync_schedule.py --headed
Day:      python scripts/sync_schedule.py --day 14 --month 10 --year 2026
Table:    python scripts/sync_schedule.py --format table
CSV file: python scripts/sync_schedule.py --format csv --output data/events.csv
Offline:  python scripts/sync_schedule.py --from-cache
Import:   python scripts/sync_schedule.py --from-file ~/Downloads/plan.ics
Retries:  python scripts/sync_schedule.py --retries 2

Credentials: TRAINEX_USERNAME / TRAINEX_PASSWORD (environment or .env).

Exit codes:
  0 = success (events on stdout, or file written for --output)
  1 = error (message on stderr)
"""

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

from dotenv import load_dotenv
from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, wait_fixed

from trainex_sync.cache import IcsCache, import_ics_file
from trainex_sync.config import SyncConfig, get_config
from trainex_sync.encoding import decode_calendar_bytes
from trainex_sync.export import events_to_csv, events_to_json, format_table
from trainex_sync.ics import parse_ics
from trainex_sync.logging import create_sync_logger, setup_logging
from trainex_sync.models import RetrievalFailure, RetrievalResult
from trainex_sync.retrieval import sync_schedule

# Failures worth another run; bad credentials or a changed portal are not.
RETRYABLE_KINDS = frozenset({"timeout", "unexpected"})


def _log(msg: str) -> None:
    """Write diagnostic messages to stderr so stdout stays clean for data."""
    print(msg, file=sys.stderr)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    today = date.today()
    parser = argparse.ArgumentParser(
        description="Sync the TraiNex schedule and print it as JSON, CSV or a table.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--month", type=int, default=today.month, help="Month 1-12 (default: current).")
    parser.add_argument("--year", type=int, default=today.year, help="Year (default: current).")
    parser.add_argument(
        "--day",
        type=int,
        default=0,
        help="Day of month; 0 fetches the whole month (default: 0).",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Launch browser in headed mode (visible window).",
    )
    parser.add_argument(
        "--format",
        choices=("json", "csv", "table"),
        default="json",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write output to this file instead of stdout.",
    )

    source_group = parser.add_mutually_exclusive_group()
    source_group.add_argument(
        "--from-file",
        type=str,
        default=None,
        help="Decode a local .ics file instead of syncing.",
    )
    source_group.add_argument(
        "--from-cache",
        action="store_true",
        help="Use the last synced/imported calendar instead of syncing.",
    )

    parser.add_argument(
        "--retries",
        type=int,
        default=0,
        help="Extra sync attempts after a timeout or unexpected error (default: 0).",
    )
    parser.add_argument(
        "--retry-wait",
        type=float,
        default=10.0,
        help="Seconds between sync attempts (default: 10).",
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Directory for trainex-sync.log (default: <data_dir>/logs).",
    )
    return parser.parse_args(argv)


def _is_retryable(result: RetrievalResult) -> bool:
    return isinstance(result, RetrievalFailure) and result.kind in RETRYABLE_KINDS


async def _sync_with_retries(
    args: argparse.Namespace, config: SyncConfig, log_callback
) -> RetrievalResult:
    """Run sync_schedule, re-running it on retryable failures.

    The last result is returned as-is once attempts are used up.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(args.retries + 1),
        wait=wait_fixed(args.retry_wait),
        retry=retry_if_result(_is_retryable),
        retry_error_callback=lambda state: state.outcome.result(),
    )
    return await retrying(
        sync_schedule,
        config.username,
        config.password.get_secret_value(),
        args.month,
        args.year,
        args.day,
        status=_log,
        log=log_callback,
        config=config,
    )


def _render(events, fmt: str) -> str:
    if fmt == "csv":
        return events_to_csv(events)
    if fmt == "table":
        return format_table(events)
    return events_to_json(events)


async def main(args: argparse.Namespace) -> int:
    config = get_config()
    if args.headed:
        config = config.model_copy(update={"headless": False})
    cache = IcsCache(config.data_dir)

    if args.from_file:
        _log(f"sync_schedule: importing {args.from_file}")
        ics_text = import_ics_file(args.from_file)
        cache.write(ics_text)
    elif args.from_cache:
        ics_text = cache.load()
        if ics_text is None:
            _log(f"ERROR: No cached calendar at {cache.path}")
            return 1
        _log(f"sync_schedule: using cached calendar {cache.path}")
    else:
        if not config.username or not config.password.get_secret_value():
            _log("ERROR: Set TRAINEX_USERNAME and TRAINEX_PASSWORD (environment or .env)")
            return 1

        log_dir = Path(args.log_dir) if args.log_dir else Path(config.data_dir) / "logs"
        log_callback, log_path = create_sync_logger(log_dir)
        _log(f"sync_schedule: syncing {args.year}-{args.month:02d} (day={args.day})")

        result = await _sync_with_retries(args, config, log_callback)
        if isinstance(result, RetrievalFailure):
            _log(f"ERROR: {result.message}")
            if result.hint:
                _log(f"  Hint: {result.hint}")
            _log(f"  Log: {log_path}")
            return 1

        ics_text = decode_calendar_bytes(result.raw_bytes)
        log_callback("sync_decoded", {"bytes": len(result.raw_bytes), "chars": len(ics_text)})
        cache.write(ics_text)

    events = parse_ics(ics_text)
    if not events:
        # loaded fine, just nothing in it
        _log("  Loaded: 0 events (calendar empty or incompatible)")
    else:
        _log(f"  Loaded: {len(events)} events")

    output = _render(events, args.format)
    if args.output:
        output_file = Path(args.output)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(output, encoding="utf-8")
        _log(f"  Written -> {output_file}")
    else:
        print(output)

    _log("sync_schedule: done")
    return 0


if __name__ == "__main__":
    load_dotenv()
    args = _parse_args()
    config = get_config()
    setup_logging(json_output=config.log_json, log_level=config.log_level)
    try:
        sys.exit(asyncio.run(main(args)))
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
