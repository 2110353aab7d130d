from collections.abc import Iterable
import logging

from syncbatch.schemas import ChunkOutcome, Failure, PartialSuccess, PipelineResult, ProcessingError, Success


def fold(outcomes: Iterable[ChunkOutcome]) -> PipelineResult:
    """Combine per-chunk outcomes, in chunk order, into one batch result.

    No errors is a Success. Errors with at least one processed record is a
    PartialSuccess. Errors with nothing processed is a Failure.
    """
    processed = 0
    skipped = 0
    errors: list[ProcessingError] = []
    for outcome in outcomes:
        processed += outcome.processed_count
        skipped += outcome.skipped_count
        errors.extend(outcome.errors)

    if not errors:
        return Success(processed_count=processed, skipped_count=skipped)
    if processed > 0:
        return PartialSuccess(processed_count=processed, skipped_count=skipped, errors=tuple(errors))
    return Failure(errors=tuple(errors), skipped_count=skipped)


def log_result(logger: logging.Logger, result: PipelineResult, **context: object) -> None:
    extra = {
        "status": result.status,
        "processed_count": result.processed_count,
        "skipped_count": result.skipped_count,
        "error_count": result.error_count,
        **context,
    }
    if isinstance(result, Success):
        logger.info(
            "batch completed: %d processed, %d skipped",
            result.processed_count,
            result.skipped_count,
            extra=extra,
        )
    elif isinstance(result, PartialSuccess):
        logger.warning(
            "batch completed with errors: %d processed, %d skipped, %d errors",
            result.processed_count,
            result.skipped_count,
            result.error_count,
            extra=extra,
        )
    else:
        logger.error("batch failed: %d errors", result.error_count, extra=extra)
