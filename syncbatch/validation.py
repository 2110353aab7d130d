from collections.abc import Mapping, Sequence
from datetime import datetime
import re

from syncbatch.schemas import (
    InvalidDate,
    InvalidEmail,
    InvalidFormat,
    MissingField,
    ValidationError,
    ValidationResult,
)


DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
# strptime alone accepts short fields; the export always writes fixed-width ones.
DATE_SHAPE = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{6}Z")
EMAIL_PATTERN = re.compile(r"[A-Z0-9a-z._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,64}")


def validate_batch(batch: Sequence[object]) -> ValidationResult:
    errors: list[ValidationError] = []
    for index, record in enumerate(batch):
        errors.extend(validate_record(record, index))
    return ValidationResult(errors=tuple(errors))


def validate_record(record: object, index: int) -> list[ValidationError]:
    """Return the structural defects of one raw record, in field-check order."""
    if not isinstance(record, Mapping):
        return [InvalidFormat(index)]

    errors: list[ValidationError] = []

    if _absent(record, "id"):
        errors.append(MissingField("id", index))

    if _absent(record, "from_address") and _absent(record, "from"):
        errors.append(MissingField("from_address/from", index))

    date_value = record.get("date")
    if isinstance(date_value, str) and not is_valid_date(date_value):
        errors.append(InvalidDate(date_value, index))

    from_address = record.get("from_address")
    if isinstance(from_address, Mapping):
        email = from_address.get("email")
        if isinstance(email, str) and not is_valid_email(email):
            errors.append(InvalidEmail(email, index))

    return errors


def is_valid_date(value: str) -> bool:
    if DATE_SHAPE.fullmatch(value) is None:
        return False
    try:
        datetime.strptime(value, DATE_FORMAT)
    except ValueError:
        return False
    return True


def is_valid_email(value: str) -> bool:
    return EMAIL_PATTERN.fullmatch(value) is not None


def _absent(record: Mapping, key: str) -> bool:
    # A JSON null is treated the same as a missing key.
    return record.get(key) is None
