import json
from pathlib import Path
import shutil


BATCH_SUFFIXES = (".json", ".jsonl")


def load_batch(input_path: Path) -> list[object]:
    """Read a raw batch exported by the sync source.

    ``.jsonl`` files hold one value per line; anything else is read as one JSON
    document, either an array of records or a single record. Values are
    returned as decoded, without any shape checks.
    """
    if not input_path.exists():
        raise FileNotFoundError(f"input file not found: {input_path}")

    with input_path.open("r", encoding="utf-8") as infile:
        if input_path.suffix == ".jsonl":
            return [json.loads(line) for line in infile if line.strip()]
        document = json.load(infile)

    if isinstance(document, list):
        return document
    return [document]


def pending_batches(inbox_dir: Path) -> list[Path]:
    if not inbox_dir.is_dir():
        return []
    return sorted(path for path in inbox_dir.iterdir() if path.is_file() and path.suffix in BATCH_SUFFIXES)


def archive_batch(input_path: Path, archive_dir: Path) -> Path:
    archive_dir.mkdir(parents=True, exist_ok=True)
    target = archive_dir / input_path.name
    shutil.move(str(input_path), target)
    return target
