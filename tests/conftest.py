from collections.abc import Callable, Generator
from pathlib import Path
import threading
import time

import pytest
from sqlalchemy.orm import Session, sessionmaker

from syncbatch.chunk_processor import ChunkProcessor
from syncbatch.config import Settings
from syncbatch.database import build_session_factory
from syncbatch.pipeline import BatchPipeline
from syncbatch.schemas import StorageSaveError, SyncFlags


def make_record(index: int) -> dict[str, object]:
    return {
        "id": f"msg-{index}",
        "from_address": {"name": f"User {index}", "email": f"user{index}@example.com"},
        "date": "2026-02-22T10:15:30.123456Z",
        "subject": f"Subject {index}",
    }


def make_records(count: int) -> list[dict[str, object]]:
    return [make_record(index) for index in range(count)]


class FakeStore:
    """Records every persist call and fails on the configured call numbers."""

    def __init__(
        self,
        fail_on_calls: set[int] | None = None,
        error_factory: Callable[[], Exception] = lambda: StorageSaveError("disk full"),
        delay_seconds: float = 0,
    ) -> None:
        self.fail_on_calls = fail_on_calls or set()
        self.error_factory = error_factory
        self.delay_seconds = delay_seconds
        self.calls: list[tuple[list[object], SyncFlags]] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def persist(self, chunk, flags: SyncFlags) -> None:
        with self._lock:
            call_number = len(self.calls)
            self.calls.append((list(chunk), flags))
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay_seconds:
                time.sleep(self.delay_seconds)
            if call_number in self.fail_on_calls:
                raise self.error_factory()
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture()
def temp_workspace(tmp_path: Path) -> Path:
    (tmp_path / "data" / "inbox").mkdir(parents=True, exist_ok=True)
    (tmp_path / "data" / "archive").mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest.fixture()
def test_settings(temp_workspace: Path) -> Settings:
    return Settings(
        app_name="syncbatch",
        database_url=f"sqlite:///{temp_workspace / 'test.db'}",
        log_level="INFO",
        chunk_size=100,
        max_chunk_retries=0,
        retry_backoff_seconds=0,
        inbox_dir=str(temp_workspace / "data" / "inbox"),
        archive_dir=str(temp_workspace / "data" / "archive"),
        poll_interval_minutes=15,
    )


@pytest.fixture()
def session_factory(test_settings: Settings) -> sessionmaker[Session]:
    return build_session_factory(test_settings.database_url)


@pytest.fixture()
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def pipeline(fake_store: FakeStore) -> Generator[BatchPipeline, None, None]:
    with BatchPipeline(ChunkProcessor(fake_store), chunk_size=100) as batch_pipeline:
        yield batch_pipeline
