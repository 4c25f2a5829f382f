# app/cli/reclamation.py
"""
CLI commands for report reclamation.

Usage:
    python -m app.cli.reclamation run --dry-run
    python -m app.cli.reclamation run --confirm
    python -m app.cli.reclamation preview --as-of 2026-01-31T02:00:00
    python -m app.cli.reclamation runs --limit 10
    python -m app.cli.reclamation schedule --run-now
    python -m app.cli.reclamation recover 6f1c...
"""

import argparse
import sys
import time
import uuid
from datetime import datetime

from dotenv import load_dotenv

load_dotenv()


def get_store():
    """Get the configured report store."""
    from app.store import get_report_store

    return get_report_store()


def _config(args):
    from dataclasses import replace

    from app.services.lifecycle.reclamation_service import ReclamationConfig

    config = ReclamationConfig.from_settings()
    if getattr(args, "batch_size", None):
        config = replace(config, batch_size=args.batch_size)
    if getattr(args, "max_per_run", None):
        config = replace(config, max_per_run=args.max_per_run)
    return config


def _print_result(result):
    print(f"Run ID: {result.run_id}")
    print(f"Soft deleted: {result.soft_deleted}")
    print(f"Hard deleted: {result.hard_deleted}")
    print(f"Skipped: {result.skipped}")
    print(f"Errors: {result.errors}")
    print(f"Batches: {result.batches}")
    print(f"Elapsed: {result.elapsed_ms}ms")
    if result.cap_reached:
        print("\nPer-run cap reached; remaining candidates wait for the next run")

    if result.error_details:
        print("\nErrors:")
        for error in result.error_details:
            print(f"  - {error}")


def cmd_run(args):
    """Run reclamation once."""
    from app.models import ReclamationTrigger
    from app.services.lifecycle.reclamation_service import run_reclamation

    # Safety check
    if not args.dry_run and not args.confirm:
        print("Error: Reclamation requires --confirm flag for non-dry-run operations")
        print("Use --dry-run to preview what would be deleted")
        sys.exit(1)

    print(f"\n{'DRY RUN - ' if args.dry_run else ''}Reclaiming reports...\n")

    result = run_reclamation(
        get_store(),
        config=_config(args),
        trigger=ReclamationTrigger.CLI,
        dry_run=args.dry_run,
    )
    _print_result(result)

    if result.errors:
        sys.exit(1)


def cmd_preview(args):
    """Show what a run would do, now or as of a given time."""
    from app.clock import ManualClock
    from app.models import ReclamationTrigger
    from app.services.lifecycle.reclamation_service import run_reclamation

    clock = ManualClock(args.as_of) if args.as_of else None
    when = args.as_of.isoformat() if args.as_of else "now"
    print(f"\n=== Reclamation Preview ({when}) ===\n")

    result = run_reclamation(
        get_store(),
        clock=clock,
        config=_config(args),
        trigger=ReclamationTrigger.CLI,
        dry_run=True,
    )
    print(f"Would soft delete: {result.soft_deleted}")
    print(f"Would hard delete: {result.hard_deleted}")
    print(f"Evaluated: {result.evaluated}")
    if result.cap_reached:
        print("Per-run cap reached; more candidates exist")
    print()


def cmd_runs(args):
    """List recent reclamation runs."""
    runs = get_store().list_runs(limit=args.limit)

    print("\n=== Recent Reclamation Runs ===\n")
    if not runs:
        print("No runs recorded")
    for run in runs:
        print(f"{run.started_at.isoformat()} [{run.trigger}] {run.status}")
        print(f"  Soft deleted: {run.soft_deleted}, hard deleted: {run.hard_deleted}")
        print(f"  Skipped: {run.skipped}, errors: {run.errors}, batches: {run.batches}")
        print(f"  Elapsed: {run.elapsed_ms}ms{' (cap reached)' if run.cap_reached else ''}")
        print()


def cmd_schedule(args):
    """Run the scheduler in the foreground until interrupted."""
    from app.config import get_settings
    from app.logging_config import configure_logging
    from app.services.lifecycle.scheduler import build_scheduler

    settings = get_settings()
    configure_logging(json_format=settings.LOG_JSON, level=settings.LOG_LEVEL)

    if args.interval_hours:
        settings = settings.model_copy(update={"RECLAMATION_INTERVAL_HOURS": args.interval_hours})

    scheduler = build_scheduler(get_store(), settings=settings, run_on_start=args.run_now)
    scheduler.start()
    print(f"Reclamation scheduler running every {settings.RECLAMATION_INTERVAL_HOURS}h (Ctrl+C to stop)")
    try:
        while scheduler.is_running:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nStopping scheduler...")
    finally:
        scheduler.stop()


def cmd_recover(args):
    """Recover a soft-deleted report (operator action)."""
    from app.clock import get_clock
    from app.errors import LifecycleError
    from app.services.lifecycle.policy import ExpirationPolicy
    from app.services.lifecycle.recovery_service import recover

    try:
        report = recover(
            get_store(),
            get_clock(),
            args.report_id,
            initiated_by="cli",
            policy=ExpirationPolicy.from_settings(),
        )
    except LifecycleError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Recovered report {report.id} ({report.stage.value}, owner {report.owner_id})")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Report Reclamation CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview what the next run would delete
  python -m app.cli.reclamation run --dry-run

  # Preview as of a future date
  python -m app.cli.reclamation preview --as-of 2026-02-01T02:00:00

  # Run once
  python -m app.cli.reclamation run --confirm

  # Run daily in the foreground
  python -m app.cli.reclamation schedule --interval-hours 24 --run-now
        """,
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # run command
    run_parser = subparsers.add_parser("run", help="Run reclamation once")
    run_parser.add_argument("--batch-size", type=int, help="Documents per batch (default: from settings)")
    run_parser.add_argument("--max-per-run", type=int, help="Max documents evaluated (default: from settings)")
    run_parser.add_argument("--dry-run", action="store_true", help="Preview only, don't delete")
    run_parser.add_argument("--confirm", action="store_true", help="Confirm reclamation")
    run_parser.set_defaults(func=cmd_run)

    # preview command
    preview_parser = subparsers.add_parser("preview", help="Dry run, optionally as of a given time")
    preview_parser.add_argument("--as-of", type=datetime.fromisoformat, help="ISO timestamp (UTC if naive)")
    preview_parser.add_argument("--max-per-run", type=int, help="Max documents evaluated (default: from settings)")
    preview_parser.set_defaults(func=cmd_preview)

    # runs command
    runs_parser = subparsers.add_parser("runs", help="List recent runs")
    runs_parser.add_argument("--limit", type=int, default=10, help="Number of runs (default: 10)")
    runs_parser.set_defaults(func=cmd_runs)

    # schedule command
    schedule_parser = subparsers.add_parser("schedule", help="Run the scheduler in the foreground")
    schedule_parser.add_argument("--interval-hours", type=float, help="Hours between runs (default: from settings)")
    schedule_parser.add_argument("--run-now", action="store_true", help="Run once immediately on start")
    schedule_parser.set_defaults(func=cmd_schedule)

    # recover command
    recover_parser = subparsers.add_parser("recover", help="Recover a soft-deleted report")
    recover_parser.add_argument("report_id", type=uuid.UUID, help="Report ID")
    recover_parser.set_defaults(func=cmd_recover)

    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
