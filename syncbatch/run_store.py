from sqlalchemy import select
from sqlalchemy.orm import Session

from syncbatch.db_models import BatchRun, utc_now
from syncbatch.schemas import PipelineResult


def get_run_by_key(db: Session, batch_key: str) -> BatchRun | None:
    stmt = select(BatchRun).where(BatchRun.batch_key == batch_key).order_by(BatchRun.id.desc()).limit(1)
    return db.execute(stmt).scalar_one_or_none()


def record_batch_run(
    db: Session,
    *,
    batch_key: str,
    trigger_source: str,
    total_records: int,
    result: PipelineResult,
) -> BatchRun:
    run = BatchRun(
        batch_key=batch_key,
        trigger_source=trigger_source,
        status=result.status,
        total_records=total_records,
        processed_records=result.processed_count,
        skipped_records=result.skipped_count,
        error_count=result.error_count,
        error="\n".join(error.message for error in result.errors) or None,
        completed_at=utc_now(),
    )
    db.add(run)
    db.commit()
    db.refresh(run)
    return run
