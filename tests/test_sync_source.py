import json
from pathlib import Path

import pytest
from conftest import make_records
from sqlalchemy import select

from syncbatch.db_models import BatchRun
from syncbatch.pipeline import BatchPipeline
from syncbatch.scheduler import drain_inbox
from syncbatch.storage import SqlRecordStore, count_messages
from syncbatch.sync_source import archive_batch, load_batch, pending_batches


def write_json(path: Path, payload: object) -> None:
    path.write_text(json.dumps(payload), encoding="utf-8")


def test_load_batch_reads_arrays_objects_and_jsonl(tmp_path: Path) -> None:
    write_json(tmp_path / "array.json", [{"id": "1"}, "junk"])
    write_json(tmp_path / "single.json", {"id": "2"})
    (tmp_path / "lines.jsonl").write_text('{"id": "3"}\n\n[1, 2]\n', encoding="utf-8")

    assert load_batch(tmp_path / "array.json") == [{"id": "1"}, "junk"]
    assert load_batch(tmp_path / "single.json") == [{"id": "2"}]
    assert load_batch(tmp_path / "lines.jsonl") == [{"id": "3"}, [1, 2]]


def test_load_batch_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_batch(tmp_path / "nope.json")


def test_pending_batches_are_sorted_and_filtered(tmp_path: Path) -> None:
    for name in ["b.jsonl", "a.json", "notes.txt"]:
        (tmp_path / name).write_text("[]", encoding="utf-8")

    assert [path.name for path in pending_batches(tmp_path)] == ["a.json", "b.jsonl"]
    assert pending_batches(tmp_path / "missing") == []

    moved = archive_batch(tmp_path / "a.json", tmp_path / "done")
    assert moved == tmp_path / "done" / "a.json"
    assert moved.exists()


def test_drain_inbox_ingests_records_and_archives_files(test_settings, session_factory) -> None:
    inbox = Path(test_settings.inbox_dir)
    archive = Path(test_settings.archive_dir)
    write_json(inbox / "001.json", make_records(120))
    write_json(inbox / "002.json", [{"from": "someone@example.com"}])
    (inbox / "003.json").write_text("{broken", encoding="utf-8")

    with BatchPipeline.from_settings(test_settings, SqlRecordStore(session_factory)) as pipeline:
        reports = drain_inbox(test_settings, session_factory, pipeline)

    assert [report.result.status for report in reports] == ["succeeded", "failed"]
    assert pending_batches(inbox) == []
    assert (archive / "001.json").exists()
    assert (archive / "unreadable" / "003.json").exists()

    with session_factory() as db:
        assert count_messages(db) == 120
        runs = db.execute(select(BatchRun).order_by(BatchRun.id)).scalars().all()
        assert [run.batch_key for run in runs] == ["scheduled-001", "scheduled-002"]
        assert all(run.trigger_source == "scheduled" for run in runs)
        assert runs[1].error == "missing required field 'id' at index 0"


def test_drain_inbox_moves_undecodable_files_aside(test_settings, session_factory) -> None:
    inbox = Path(test_settings.inbox_dir)
    archive = Path(test_settings.archive_dir)
    (inbox / "000.json").write_bytes(b"\xff\xfe[]")
    write_json(inbox / "001.json", make_records(2))

    with BatchPipeline.from_settings(test_settings, SqlRecordStore(session_factory)) as pipeline:
        reports = drain_inbox(test_settings, session_factory, pipeline)

    assert [report.batch_key for report in reports] == ["scheduled-001"]
    assert pending_batches(inbox) == []
    assert (archive / "unreadable" / "000.json").exists()
    assert (archive / "001.json").exists()
