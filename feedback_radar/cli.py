"""CLI commands for Feedback Radar."""

import argparse
import logging
import sys

from sqlalchemy.orm import Session

from feedback_radar.database import Base, SessionLocal, engine
from feedback_radar.seed_feedback import backfill_week_editions, seed_feedback
from feedback_radar.services.ai_service import ClaudeService
from feedback_radar.services.feedback_store import FeedbackStore
from feedback_radar.services.search_service import get_search_service
from feedback_radar.services.under_radar_service import BatchDetector, UnderRadarClassifier
from feedback_radar.services.workflow_queue_service import WorkflowQueueService
from feedback_radar.services.workflow_service import WorkflowRunner, run_async


def init_db(clean: bool = False) -> None:
    """Create all tables; optionally wipe existing pipeline data."""
    Base.metadata.create_all(bind=engine)
    print("Database tables created.")

    if clean:
        db: Session = SessionLocal()
        try:
            FeedbackStore(db).clean_database()
            print("All feedback, cases, flags, editions and workflows deleted.")
        finally:
            db.close()


def detect_under_radar() -> None:
    """Run one batch detection sweep in-process."""
    db: Session = SessionLocal()

    try:
        store = FeedbackStore(db)
        detector = BatchDetector(store, UnderRadarClassifier(store, ClaudeService()))
        flagged = run_async(detector.run_batch_detection())
        print(f"Under-radar detection complete: {flagged} new flags.")
    finally:
        db.close()


def seed(detect: bool = False, editions: bool = False) -> None:
    """
    Seed sample feedback, then optionally run detection and backfill editions.

    Editions are backfilled from Monday through today using one generated
    edition.
    """
    db: Session = SessionLocal()

    try:
        store = FeedbackStore(db)
        judgment = ClaudeService()

        seeded = run_async(
            seed_feedback(store, get_search_service(), WorkflowQueueService(db))
        )
        if seeded:
            print(f"Seeded {len(seeded)} feedback items.")
        else:
            print("Feedback already present. Skipping seed.")

        if detect:
            detector = BatchDetector(store, UnderRadarClassifier(store, judgment))
            flagged = run_async(detector.run_batch_detection())
            print(f"Under-radar detection complete: {flagged} new flags.")

        if editions:
            dates = run_async(backfill_week_editions(store, judgment))
            print(f"Stored editions for {dates[0]} through {dates[-1]}.")
    finally:
        db.close()


def daily_edition(edition_date: str | None = None, sync: bool = False) -> None:
    """
    Submit the daily edition workflow (intended for a daily cron entry).

    With sync, the instance runs in this process instead of a worker.
    """
    db: Session = SessionLocal()

    try:
        try:
            instance, created = WorkflowQueueService(db).submit_daily_edition(
                edition_date, enqueue=not sync
            )
        except ValueError as e:
            print(f"Error: {e}")
            sys.exit(1)

        if not created:
            print(f"Workflow {instance.id} already exists ({instance.status}).")

        if sync:
            instance = WorkflowRunner(
                db, judgment=ClaudeService(), search=get_search_service()
            ).run(instance.id)

        print(f"Workflow {instance.id}: {instance.status}")
        if instance.status == "failed":
            sys.exit(1)
    finally:
        db.close()


def run_workflow(instance_id: str) -> None:
    """Run or resume one workflow instance in-process."""
    db: Session = SessionLocal()

    try:
        try:
            instance = WorkflowRunner(
                db, judgment=ClaudeService(), search=get_search_service()
            ).run(instance_id)
        except LookupError:
            print(f"Error: Workflow instance '{instance_id}' not found.")
            sys.exit(1)

        print(f"Workflow {instance.id}: {instance.status}")
        if instance.status == "failed":
            print(f"Error: {instance.error_message}")
            sys.exit(1)
    finally:
        db.close()


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    parser = argparse.ArgumentParser(description="Feedback Radar CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init-db command
    init_db_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_db_parser.add_argument(
        "--clean", action="store_true", help="Delete all existing pipeline data"
    )

    # seed command
    seed_parser = subparsers.add_parser("seed", help="Insert sample feedback for development")
    seed_parser.add_argument(
        "--detect", action="store_true", help="Run under-radar detection after seeding"
    )
    seed_parser.add_argument(
        "--backfill-editions",
        action="store_true",
        help="Store daily editions from Monday through today",
    )

    subparsers.add_parser(
        "detect-under-radar", help="Classify recent unflagged feedback"
    )

    # daily-edition command
    edition_parser = subparsers.add_parser(
        "daily-edition", help="Generate the daily edition"
    )
    edition_parser.add_argument("--date", help="Edition date, YYYY-MM-DD (default: today UTC)")
    edition_parser.add_argument(
        "--sync", action="store_true", help="Run in this process instead of a worker"
    )

    # run-workflow command
    run_parser = subparsers.add_parser(
        "run-workflow", help="Run or resume a workflow instance"
    )
    run_parser.add_argument("instance_id", help="Workflow instance id, e.g. feedback-42")

    args = parser.parse_args()

    if args.command == "init-db":
        init_db(args.clean)
    elif args.command == "seed":
        seed(args.detect, args.backfill_editions)
    elif args.command == "detect-under-radar":
        detect_under_radar()
    elif args.command == "daily-edition":
        daily_edition(args.date, args.sync)
    elif args.command == "run-workflow":
        run_workflow(args.instance_id)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
