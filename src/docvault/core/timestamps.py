"""
Id and clock helpers (stdlib-only).

Every persisted timestamp in the document is an integer count of epoch
milliseconds, and every entity id is a time-sortable ULID-style string.
Keeping both here means the models, the migration history and the backup
filenames agree on one clock.

Features:
    - **now_ms():** Current time in epoch milliseconds
    - **utc_now():** Timezone-aware UTC datetime
    - **generate_ulid():** 26-char, Crockford base32, sorts by creation time
    - **ms_to_datetime():** Convert stored milliseconds back to a datetime

Tags:
    timestamps, ulid, utc, epoch-millis, docvault, stdlib-only

Doc-Types:
    - API Reference
"""

import random
import time
from datetime import UTC, datetime

DAY_MS = 24 * 60 * 60 * 1000


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def ms_to_datetime(value: int | None) -> datetime | None:
    """Convert epoch milliseconds to an aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, UTC)


def days_between(earlier_ms: int, later_ms: int) -> int:
    """Whole days elapsed between two epoch-millisecond instants."""
    return (later_ms - earlier_ms) // DAY_MS


def generate_ulid() -> str:
    """
    Generate a ULID-like identifier.

    Format: 26 characters, base32 encoded, time-sortable.
    """
    # Time component: milliseconds since epoch (48 bits -> 10 chars)
    timestamp_chars = _encode_base32(now_ms(), 10)

    # Random component (80 bits -> 16 chars)
    random_part = "".join(random.choices(_ENCODING, k=16))

    return timestamp_chars + random_part


# ULID base32 alphabet (Crockford's)
_ENCODING = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_ENCODING_LEN = len(_ENCODING)


def _encode_base32(value: int, length: int) -> str:
    """Encode integer to base32 string of fixed length."""
    result = []
    for _ in range(length):
        result.append(_ENCODING[value % _ENCODING_LEN])
        value //= _ENCODING_LEN
    return "".join(reversed(result))


__all__ = [
    "DAY_MS",
    "utc_now",
    "now_ms",
    "ms_to_datetime",
    "days_between",
    "generate_ulid",
]
