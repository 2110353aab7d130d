import argparse
import logging
from pathlib import Path

from syncbatch.config import get_settings
from syncbatch.database import build_session_factory
from syncbatch.ingest import ingest_file
from syncbatch.pipeline import BatchPipeline
from syncbatch.scheduler import start_scheduler
from syncbatch.schemas import SyncFlags
from syncbatch.storage import SqlRecordStore


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest batches exported by the mail sync source")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest_parser = subparsers.add_parser("ingest", help="run one manual sync from a batch file")
    ingest_parser.add_argument("--input", required=True, help="Path to a .json or .jsonl batch file")
    ingest_parser.add_argument("--batch-key", required=False, help="Ledger key for this batch")
    ingest_parser.add_argument(
        "--provider-manual-sync",
        action="store_true",
        help="mark the batch as a manual sync requested through the mail provider",
    )

    schedule_parser = subparsers.add_parser("schedule", help="poll the inbox directory on an interval")
    schedule_parser.add_argument("--run-now", action="store_true", help="also drain the inbox once immediately")

    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    session_factory = build_session_factory(settings.database_url)
    store = SqlRecordStore(session_factory)

    with BatchPipeline.from_settings(settings, store) as pipeline:
        if args.command == "schedule":
            start_scheduler(settings, session_factory, pipeline, run_now=args.run_now)
            return

        input_path = Path(args.input)
        report = ingest_file(
            pipeline,
            session_factory,
            input_path,
            batch_key=args.batch_key or input_path.stem,
            flags=SyncFlags(is_manual_sync=True, is_provider_manual_sync=args.provider_manual_sync),
            trigger_source="manual",
        )

    result = report.result
    print(
        "batch_key={batch_key} status={status} total={total} processed={processed} skipped={skipped} errors={errors}".format(
            batch_key=report.batch_key,
            status=result.status,
            total=report.total_records,
            processed=result.processed_count,
            skipped=result.skipped_count,
            errors=result.error_count,
        )
    )
    for error in result.errors:
        print(f"error: {error.message}")

    if result.status == "failed":
        raise SystemExit(1)


if __name__ == "__main__":
    main()
