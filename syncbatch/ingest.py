from dataclasses import dataclass
import logging
from pathlib import Path

from sqlalchemy.orm import Session, sessionmaker

from syncbatch.pipeline import BatchPipeline
from syncbatch.run_store import record_batch_run
from syncbatch.schemas import PipelineResult, SyncFlags
from syncbatch.sync_source import load_batch


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestReport:
    batch_key: str
    trigger_source: str
    total_records: int
    result: PipelineResult


def ingest_file(
    pipeline: BatchPipeline,
    session_factory: sessionmaker[Session],
    input_path: Path,
    *,
    batch_key: str,
    flags: SyncFlags,
    trigger_source: str,
) -> IngestReport:
    """Load one exported batch, run it through the pipeline and record it in the ledger."""
    records = load_batch(input_path)
    result = pipeline.run_batch(records, flags)

    with session_factory() as db:
        record_batch_run(
            db,
            batch_key=batch_key,
            trigger_source=trigger_source,
            total_records=len(records),
            result=result,
        )

    logger.info(
        "batch ingested",
        extra={"batch_key": batch_key, "trigger_source": trigger_source, "status": result.status},
    )
    return IngestReport(
        batch_key=batch_key,
        trigger_source=trigger_source,
        total_records=len(records),
        result=result,
    )
