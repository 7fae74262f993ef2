"""Id generation for cells.

Two kinds of ids exist:

- Cell ids: unique, lexicographically sortable in creation order.
  26 lowercase hex characters: 12 for the millisecond timestamp, 4 for a
  per-millisecond sequence, 10 random.
- Short ids: compact base-36 references ("00", "A7", "2K") used by the
  ``[[short_id]]`` formula syntax. They expand to one more character when
  the namespace of the current length is exhausted.
"""

import time
import uuid
from typing import Iterable, Optional

SHORT_ID_CHARS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"

_last_timestamp = 0
_sequence = 0


def generate_cell_id() -> str:
    """Generate a unique, creation-ordered cell id."""
    global _last_timestamp, _sequence

    now = int(time.time() * 1000)
    if now <= _last_timestamp:
        now = _last_timestamp
        _sequence += 1
        if _sequence > 0xFFFF:
            now += 1
            _sequence = 0
    else:
        _sequence = 0
    _last_timestamp = now

    return f"{now:012x}{_sequence:04x}{uuid.uuid4().hex[:10]}"


class ShortIdGenerator:
    """Generates base-36 short ids, growing in length when exhausted."""

    def __init__(self, length: int = 2) -> None:
        if length < 1:
            raise ValueError("Short id length must be at least 1")
        self.length = length
        self.counter = 0
        self.max_value = len(SHORT_ID_CHARS) ** length

    def next(self) -> str:
        """Return the next short id."""
        if self.counter >= self.max_value:
            self._expand()

        short_id = self.encode(self.counter, self.length)
        self.counter += 1
        return short_id

    def _expand(self) -> None:
        self.length += 1
        self.max_value = len(SHORT_ID_CHARS) ** self.length
        # New namespace, so counting restarts
        self.counter = 0

    @staticmethod
    def encode(num: int, length: int) -> str:
        """Encode a number as a fixed-width base-36 string."""
        base = len(SHORT_ID_CHARS)
        digits = []
        for _ in range(length):
            digits.append(SHORT_ID_CHARS[num % base])
            num //= base
        return "".join(reversed(digits))

    @staticmethod
    def decode(short_id: str) -> Optional[int]:
        """Decode a short id back to its counter value, None if invalid."""
        base = len(SHORT_ID_CHARS)
        result = 0
        for ch in short_id:
            digit = SHORT_ID_CHARS.find(ch.upper())
            if digit < 0:
                return None
            result = result * base + digit
        return result

    @staticmethod
    def upgrade_id(short_id: str) -> str:
        """Widen an existing id by one character without changing its value."""
        return f"0{short_id}"

    @classmethod
    def from_existing(
        cls, existing_ids: Iterable[str], min_length: int = 2
    ) -> "ShortIdGenerator":
        """Create a generator that continues after the highest existing id."""
        ids = [i for i in existing_ids if i]
        if not ids:
            return cls(min_length)

        max_len = max(max(len(i) for i in ids), min_length)
        max_counter = -1
        for short_id in ids:
            if len(short_id) == max_len:
                value = cls.decode(short_id)
                if value is not None:
                    max_counter = max(max_counter, value)

        generator = cls(max_len)
        generator.counter = max_counter + 1
        return generator
