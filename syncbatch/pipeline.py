from collections.abc import Callable, Sequence
from concurrent.futures import Executor, Future, ThreadPoolExecutor
import itertools
import logging

from syncbatch.aggregator import fold, log_result
from syncbatch.chunk_processor import ChunkProcessor, RecordStore
from syncbatch.chunking import split
from syncbatch.config import Settings
from syncbatch.schemas import ChunkOutcome, Failure, PipelineResult, RawRecord, SyncFlags
from syncbatch.validation import validate_batch
from syncbatch.worker import SerialWorker


DEFAULT_CHUNK_SIZE = 100

Continuation = Callable[[PipelineResult], None]


class BatchPipeline:
    """Validates, chunks and persists record batches through one serialized worker.

    Every chunk of every batch submitted to the same pipeline runs on the
    pipeline's single worker thread, so the record store never sees two
    chunks at once. Each batch's result goes to its continuation exactly once.
    """

    def __init__(
        self,
        processor: ChunkProcessor,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        callback_executor: Executor | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk size must be positive, got {chunk_size}")
        self.processor = processor
        self.chunk_size = chunk_size
        self.logger = logger or logging.getLogger(__name__)
        # Continuations never run on the storage worker thread.
        self._owns_callback_executor = callback_executor is None
        self.callback_executor = callback_executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="syncbatch-callbacks"
        )
        self._worker = SerialWorker()
        self._batch_ids = itertools.count(1)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: RecordStore,
        *,
        callback_executor: Executor | None = None,
    ) -> "BatchPipeline":
        processor = ChunkProcessor(
            store,
            max_retries=settings.max_chunk_retries,
            backoff_seconds=settings.retry_backoff_seconds,
        )
        return cls(processor, chunk_size=settings.chunk_size, callback_executor=callback_executor)

    def process_batch(
        self,
        records: Sequence[object],
        flags: SyncFlags | None = None,
        continuation: Continuation | None = None,
    ) -> "Future[PipelineResult]":
        if self._worker.closed:
            raise RuntimeError("pipeline is closed")

        flags = flags or SyncFlags()
        batch = list(records)
        batch_id = next(self._batch_ids)
        done: Future[PipelineResult] = Future()
        # Accepted batches always run to completion.
        done.set_running_or_notify_cancel()

        self.logger.info(
            "starting batch processing for %d records",
            len(batch),
            extra={"batch_id": batch_id, "manual_sync": flags.is_manual_sync},
        )

        self._transition(batch_id, "validating")
        validation = validate_batch(batch)
        if not validation.is_valid:
            self._transition(batch_id, "rejected")
            self.logger.error(
                "batch validation failed: %s",
                "; ".join(error.message for error in validation.errors),
                extra={"batch_id": batch_id, "error_count": len(validation.errors)},
            )
            result = Failure(errors=validation.errors, skipped_count=len(batch))
            self._deliver(batch_id, result, continuation, done)
            return done

        self._transition(batch_id, "chunking")
        chunks = split(batch, self.chunk_size)

        self._transition(batch_id, "processing")
        self.logger.info("processing %d chunks", len(chunks), extra={"batch_id": batch_id})
        outcomes: list[ChunkOutcome] = []
        tasks = [
            self._chunk_task(chunk, index, len(chunks), flags, batch_id, outcomes)
            for index, chunk in enumerate(chunks)
        ]
        tasks.append(lambda: self._aggregate(batch_id, outcomes, continuation, done))
        # All of a batch is queued at once, so a concurrent close() cannot split it.
        self._worker.submit_many(tasks)
        return done

    def run_batch(
        self,
        records: Sequence[object],
        flags: SyncFlags | None = None,
        *,
        timeout: float | None = None,
    ) -> PipelineResult:
        return self.process_batch(records, flags).result(timeout=timeout)

    def close(self) -> None:
        """Finish every queued chunk, then stop the worker and the owned callback executor."""
        self._worker.close(wait=True)
        if self._owns_callback_executor:
            self.callback_executor.shutdown(wait=True)

    def __enter__(self) -> "BatchPipeline":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _chunk_task(
        self,
        chunk: list[RawRecord],
        index: int,
        total: int,
        flags: SyncFlags,
        batch_id: int,
        outcomes: list[ChunkOutcome],
    ) -> Callable[[], ChunkOutcome]:
        def run() -> ChunkOutcome:
            outcome = self.processor.process(chunk, index, flags)
            outcomes.append(outcome)
            self.logger.debug(
                "chunk %d/%d done",
                index + 1,
                total,
                extra={"batch_id": batch_id, "processed_count": outcome.processed_count},
            )
            return outcome

        return run

    def _aggregate(
        self,
        batch_id: int,
        outcomes: list[ChunkOutcome],
        continuation: Continuation | None,
        done: "Future[PipelineResult]",
    ) -> None:
        # FIFO order guarantees every chunk task has already finished here.
        self._transition(batch_id, "aggregating")
        result = fold(outcomes)
        self._deliver(batch_id, result, continuation, done)

    def _deliver(
        self,
        batch_id: int,
        result: PipelineResult,
        continuation: Continuation | None,
        done: "Future[PipelineResult]",
    ) -> None:
        log_result(self.logger, result, batch_id=batch_id)
        self._transition(batch_id, "done")
        done.set_result(result)
        if continuation is None:
            return
        try:
            self.callback_executor.submit(self._invoke, continuation, result, batch_id)
        except RuntimeError:
            self.logger.warning(
                "callback executor unavailable, running continuation inline",
                extra={"batch_id": batch_id},
            )
            self._invoke(continuation, result, batch_id)

    def _invoke(self, continuation: Continuation, result: PipelineResult, batch_id: int) -> None:
        try:
            continuation(result)
        except Exception:
            self.logger.exception("batch continuation raised", extra={"batch_id": batch_id})

    def _transition(self, batch_id: int, state: str) -> None:
        self.logger.debug("batch %d -> %s", batch_id, state, extra={"batch_id": batch_id, "state": state})
