import logging

import pytest

from syncbatch.aggregator import fold, log_result
from syncbatch.schemas import (
    ChunkOutcome,
    ChunkProcessingFailed,
    Failure,
    PartialSuccess,
    StorageSaveError,
    Success,
)


def failed(index: int, size: int) -> ChunkOutcome:
    error = ChunkProcessingFailed(index, StorageSaveError(f"chunk {index} broke"))
    return ChunkOutcome(chunk_index=index, processed_count=0, skipped_count=size, errors=(error,))


def ok(index: int, size: int) -> ChunkOutcome:
    return ChunkOutcome(chunk_index=index, processed_count=size, skipped_count=0)


def test_no_outcomes_is_empty_success() -> None:
    assert fold([]) == Success(0, 0)


def test_all_chunks_ok_is_success() -> None:
    result = fold([ok(0, 100), ok(1, 100), ok(2, 50)])

    assert result == Success(processed_count=250, skipped_count=0)
    assert result.is_successful is True
    assert result.status == "succeeded"


def test_some_chunks_failed_is_partial_success_in_chunk_order() -> None:
    first, third = failed(0, 100), failed(2, 10)

    result = fold([first, ok(1, 100), third])

    assert isinstance(result, PartialSuccess)
    assert result.processed_count == 100
    assert result.skipped_count == 110
    assert [error.chunk_index for error in result.errors] == [0, 2]
    assert result.is_successful is True


def test_every_chunk_failed_is_failure() -> None:
    result = fold([failed(0, 100), failed(1, 30)])

    assert isinstance(result, Failure)
    assert result.processed_count == 0
    assert result.skipped_count == 130
    assert result.error_count == 2
    assert result.is_successful is False


@pytest.mark.parametrize(
    ("result", "level"),
    [
        (Success(3, 0), logging.INFO),
        (fold([ok(0, 2), failed(1, 1)]), logging.WARNING),
        (fold([failed(0, 1)]), logging.ERROR),
    ],
)
def test_log_result_level_matches_outcome(caplog, result, level) -> None:
    logger = logging.getLogger("syncbatch.test")

    with caplog.at_level(logging.DEBUG, logger="syncbatch.test"):
        log_result(logger, result, batch_id=1)

    assert caplog.records[-1].levelno == level
    assert caplog.records[-1].status == result.status
