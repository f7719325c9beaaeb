"""
Common primitives: identifiers, timestamps and canonical JSON.
"""

from __future__ import annotations

import hashlib
import json
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from ..errors import ValidationError


def generate_id() -> str:
    """Generate a random UUID4 string for new rows."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _normalize_numbers(value: Any) -> Any:
    # 1.0 and 1 are the same JSON number; bools are left alone
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {key: _normalize_numbers(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_normalize_numbers(item) for item in value]
    return value


def canonical_json(value: Any) -> str:
    """Serialize ``value`` so that equal documents produce equal strings."""
    return json.dumps(_normalize_numbers(value), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def config_digest(value: Any) -> str:
    """SHA-256 hex digest of the canonical JSON form of ``value``."""
    return hashlib.sha256(canonical_json(value).encode("utf-8")).hexdigest()


def parse_uuid(value: str, field: str) -> str:
    """Validate that ``value`` is a UUID and return its canonical string form."""
    try:
        return str(uuid.UUID(value))
    except (ValueError, AttributeError, TypeError):
        raise ValidationError(f"{field} {value!r} is not a valid identifier") from None


# YYYY-MM-DD HH:MM:SS followed by Z or a +HH:MM / -HH:MM offset
_TIMESTAMP_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2}(?:\.\d{1,6})?(?:Z|[+-]\d{2}:\d{2})$"
)

_FRACTION_RE = re.compile(r"\.(\d{1,6})")

TIMESTAMP_FORMAT = "YYYY-MM-DD HH:MM:SS+HH:MM"


def parse_timestamp(value: Optional[str], field: str) -> Optional[datetime]:
    """Parse a request timestamp into an aware UTC datetime.

    Empty values return ``None``. The zone designator is mandatory, either
    ``Z`` or a numeric offset; the date and time may be separated by a space
    or a ``T``.
    """
    if value is None or value == "":
        return None

    text = value.strip()
    if not _TIMESTAMP_RE.match(text):
        raise ValidationError(
            f"{field} {value!r} does not match the expected format {TIMESTAMP_FORMAT}"
        )

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat on 3.10 only takes 3 or 6 fractional digits
    text = _FRACTION_RE.sub(lambda match: "." + match.group(1).ljust(6, "0"), text)
    try:
        parsed = datetime.fromisoformat(text.replace(" ", "T", 1))
    except ValueError:
        raise ValidationError(f"{field} {value!r} is not a valid timestamp") from None

    return parsed.astimezone(timezone.utc)

