from collections.abc import Sequence
import logging
from typing import Protocol

from syncbatch.retry import RetryExhaustedError, run_with_retries
from syncbatch.schemas import ChunkOutcome, ChunkProcessingFailed, RawRecord, StorageError, SyncFlags


class RecordStore(Protocol):
    def persist(self, chunk: Sequence[RawRecord], flags: SyncFlags) -> None:
        """Write one chunk atomically, raising StorageError on failure.

        Must tolerate records that were already persisted by an earlier call.
        """
        ...


class ChunkProcessor:
    """Hands chunks to a record store and turns store failures into outcome data."""

    def __init__(
        self,
        store: RecordStore,
        *,
        max_retries: int = 0,
        backoff_seconds: float = 0,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.logger = logger or logging.getLogger(__name__)

    def process(self, chunk: Sequence[RawRecord], chunk_index: int, flags: SyncFlags) -> ChunkOutcome:
        try:
            run_with_retries(
                lambda: self.store.persist(chunk, flags),
                max_retries=self.max_retries,
                backoff_seconds=self.backoff_seconds,
                on_attempt_failure=lambda attempt, exc: self._log_attempt_failure(chunk_index, attempt, exc),
                should_retry=_is_retryable,
            )
        except RetryExhaustedError as exc:
            cause = exc.last_error
            if not isinstance(cause, StorageError):
                # The store contract only allows StorageError; keep the traceback for whoever owns it.
                self.logger.error(
                    "record store raised outside its contract",
                    exc_info=cause,
                    extra={"chunk_index": chunk_index},
                )
            self.logger.error(
                "chunk %d failed: %s",
                chunk_index,
                cause,
                extra={"chunk_index": chunk_index, "attempts": exc.attempts, "chunk_size": len(chunk)},
            )
            return ChunkOutcome(
                chunk_index=chunk_index,
                processed_count=0,
                skipped_count=len(chunk),
                errors=(ChunkProcessingFailed(chunk_index, cause),),
            )

        self.logger.debug("chunk %d persisted", chunk_index, extra={"chunk_index": chunk_index, "chunk_size": len(chunk)})
        return ChunkOutcome(chunk_index=chunk_index, processed_count=len(chunk), skipped_count=0)

    def _log_attempt_failure(self, chunk_index: int, attempt: int, exc: Exception) -> None:
        self.logger.warning(
            "chunk %d attempt %d failed",
            chunk_index,
            attempt,
            extra={"chunk_index": chunk_index, "attempt": attempt, "error": str(exc)},
        )


def _is_retryable(exc: Exception) -> bool:
    return isinstance(exc, StorageError) and exc.retryable
