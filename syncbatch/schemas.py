from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TypeAlias


RawValue: TypeAlias = "str | int | float | bool | None | Mapping[str, RawValue]"
RawRecord: TypeAlias = Mapping[str, RawValue]


class StorageError(RuntimeError):
    """Raised by a record store when a chunk could not be persisted."""

    retryable = False


class DuplicateKeyError(StorageError):
    def __init__(self, key: str) -> None:
        super().__init__(f"duplicate message id: {key}")
        self.key = key


class StorageSaveError(StorageError):
    retryable = True


@dataclass(frozen=True)
class SyncFlags:
    is_manual_sync: bool = False
    is_provider_manual_sync: bool = False


# Validation errors: the batch is rejected before any side effect.


@dataclass(frozen=True)
class InvalidFormat:
    index: int

    @property
    def message(self) -> str:
        return f"invalid record format at index {self.index}"


@dataclass(frozen=True)
class MissingField:
    field_name: str
    index: int

    @property
    def message(self) -> str:
        return f"missing required field '{self.field_name}' at index {self.index}"


@dataclass(frozen=True)
class InvalidDate:
    raw_value: str
    index: int

    @property
    def message(self) -> str:
        return f"invalid date format '{self.raw_value}' at index {self.index}"


@dataclass(frozen=True)
class InvalidEmail:
    raw_value: str
    index: int

    @property
    def message(self) -> str:
        return f"invalid email address '{self.raw_value}' at index {self.index}"


ValidationError: TypeAlias = InvalidFormat | MissingField | InvalidDate | InvalidEmail


@dataclass(frozen=True)
class ValidationResult:
    errors: tuple[ValidationError, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors


# Processing errors: a side effect was attempted and a chunk failed.


@dataclass(frozen=True)
class StorageSaveFailed:
    cause: BaseException

    @property
    def message(self) -> str:
        return f"storage save failed: {self.cause}"


@dataclass(frozen=True)
class DuplicateKey:
    key: str

    @property
    def message(self) -> str:
        return f"duplicate message id: {self.key}"


@dataclass(frozen=True)
class ChunkProcessingFailed:
    chunk_index: int
    cause: BaseException

    @property
    def message(self) -> str:
        return f"chunk {self.chunk_index} processing failed: {self.cause}"

    @property
    def detail(self) -> "StorageSaveFailed | DuplicateKey":
        if isinstance(self.cause, DuplicateKeyError):
            return DuplicateKey(self.cause.key)
        return StorageSaveFailed(self.cause)


ProcessingError: TypeAlias = ChunkProcessingFailed | StorageSaveFailed | DuplicateKey


@dataclass(frozen=True)
class ChunkOutcome:
    chunk_index: int
    processed_count: int
    skipped_count: int
    errors: tuple[ProcessingError, ...] = ()

    @property
    def size(self) -> int:
        return self.processed_count + self.skipped_count


# Pipeline results: one per batch, handed to exactly one continuation.


@dataclass(frozen=True)
class Success:
    processed_count: int
    skipped_count: int
    errors: tuple[ProcessingError, ...] = field(default=(), init=False)

    status = "succeeded"
    is_successful = True

    @property
    def error_count(self) -> int:
        return 0


@dataclass(frozen=True)
class PartialSuccess:
    processed_count: int
    skipped_count: int
    errors: tuple[ProcessingError, ...]

    status = "partial"
    is_successful = True

    @property
    def error_count(self) -> int:
        return len(self.errors)


@dataclass(frozen=True)
class Failure:
    errors: tuple[ValidationError | ProcessingError, ...]
    skipped_count: int = 0

    status = "failed"
    is_successful = False

    @property
    def processed_count(self) -> int:
        return 0

    @property
    def error_count(self) -> int:
        return len(self.errors)


PipelineResult: TypeAlias = Success | PartialSuccess | Failure
