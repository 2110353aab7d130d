import json
import logging
from pathlib import Path

from apscheduler.schedulers.blocking import BlockingScheduler
from sqlalchemy.orm import Session, sessionmaker

from syncbatch.config import Settings
from syncbatch.ingest import IngestReport, ingest_file
from syncbatch.pipeline import BatchPipeline
from syncbatch.schemas import SyncFlags
from syncbatch.sync_source import archive_batch, pending_batches


logger = logging.getLogger(__name__)


def drain_inbox(
    settings: Settings,
    session_factory: sessionmaker[Session],
    pipeline: BatchPipeline,
) -> list[IngestReport]:
    inbox_dir = Path(settings.inbox_dir)
    archive_dir = Path(settings.archive_dir)
    reports: list[IngestReport] = []

    for input_path in pending_batches(inbox_dir):
        batch_key = f"scheduled-{input_path.stem}"
        try:
            report = ingest_file(
                pipeline,
                session_factory,
                input_path,
                batch_key=batch_key,
                flags=SyncFlags(is_manual_sync=False, is_provider_manual_sync=False),
                trigger_source="scheduled",
            )
        except (json.JSONDecodeError, UnicodeDecodeError):
            # An unreadable export never becomes readable; move it out of the inbox.
            logger.exception("unreadable batch file", extra={"batch_key": batch_key})
            archive_batch(input_path, archive_dir / "unreadable")
            continue

        archive_batch(input_path, archive_dir)
        reports.append(report)
        if report.result.status == "failed":
            logger.error(
                "scheduled batch failed",
                extra={"batch_key": batch_key, "error_count": report.result.error_count},
            )

    logger.info("inbox drained", extra={"batches": len(reports)})
    return reports


def start_scheduler(
    settings: Settings,
    session_factory: sessionmaker[Session],
    pipeline: BatchPipeline,
    *,
    run_now: bool = False,
) -> None:
    scheduler = BlockingScheduler(timezone="UTC")
    scheduler.add_job(
        drain_inbox,
        "interval",
        args=[settings, session_factory, pipeline],
        minutes=settings.poll_interval_minutes,
        id="drain_inbox",
        replace_existing=True,
        max_instances=1,
    )

    logger.info(
        "scheduler started",
        extra={
            "poll_interval_minutes": settings.poll_interval_minutes,
            "inbox_dir": settings.inbox_dir,
        },
    )

    if run_now:
        drain_inbox(settings, session_factory, pipeline)

    scheduler.start()
