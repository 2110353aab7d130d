from collections.abc import Mapping, Sequence
from datetime import datetime
import json
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from syncbatch.db_models import SyncedMessage
from syncbatch.schemas import DuplicateKeyError, RawRecord, StorageSaveError, SyncFlags
from syncbatch.validation import DATE_FORMAT


logger = logging.getLogger(__name__)


class SqlRecordStore:
    """Persists validated message records, one transaction per chunk."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def persist(self, chunk: Sequence[RawRecord], flags: SyncFlags) -> None:
        with self.session_factory() as db:
            try:
                inserted = self._insert_new(db, chunk, flags)
                db.commit()
            except DuplicateKeyError:
                db.rollback()
                raise
            except SQLAlchemyError as exc:
                db.rollback()
                raise StorageSaveError(f"failed to save chunk: {exc}") from exc

        logger.debug(
            "chunk saved",
            extra={"inserted": inserted, "skipped_existing": len(chunk) - inserted},
        )

    def _insert_new(self, db: Session, chunk: Sequence[RawRecord], flags: SyncFlags) -> int:
        keys = [message_key(record) for record in chunk]
        existing_stmt = select(SyncedMessage.message_id).where(SyncedMessage.message_id.in_(keys))
        seen = set(db.execute(existing_stmt).scalars().all())

        inserted = 0
        for key, record in zip(keys, chunk):
            # Re-synced messages are already stored; skip them.
            if key in seen:
                continue
            seen.add(key)
            db.add(
                SyncedMessage(
                    message_id=key,
                    sender=sender_of(record),
                    received_at=received_at(record),
                    payload=json.dumps(record, sort_keys=True, default=str),
                    manual_sync=flags.is_manual_sync,
                    provider_manual_sync=flags.is_provider_manual_sync,
                )
            )
            try:
                db.flush()
            except IntegrityError as exc:
                raise DuplicateKeyError(key) from exc
            inserted += 1
        return inserted


def message_key(record: RawRecord) -> str:
    return str(record["id"])


def sender_of(record: RawRecord) -> str | None:
    value = record.get("from_address")
    if value is None:
        value = record.get("from")
    if isinstance(value, Mapping):
        value = value.get("email") or value.get("name")
    if value is None:
        return None
    return str(value)


def received_at(record: RawRecord) -> datetime | None:
    value = record.get("date")
    if not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value, DATE_FORMAT)
    except ValueError:
        return None


def count_messages(db: Session) -> int:
    return db.scalar(select(func.count()).select_from(SyncedMessage)) or 0
