"""Checked byte accounting.

Sizes reported by AWS are untrusted signed numbers. They are converted one
at a time with `to_byte_count` and summed into a `SizeAccumulator`, which
refuses to go negative or past an unsigned 64-bit total.
"""

import math
from typing import Iterable

from s3du.providers.base import SizeOverflowError

U64_MAX = 2**64 - 1


def to_byte_count(value: object) -> int:
    """Convert a provider-reported size into a non-negative byte count.

    Integers are taken as-is. Floats (CloudWatch averages) must be finite
    and are truncated towards zero.

    Raises:
        SizeOverflowError: If the value is missing, not a number, negative or
            larger than an unsigned 64-bit integer.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SizeOverflowError(f"Invalid size {value!r}")

    if isinstance(value, float):
        if not math.isfinite(value):
            raise SizeOverflowError(f"Invalid size {value!r}")
        value = int(value)

    if value < 0:
        raise SizeOverflowError(f"Negative size {value}")
    if value > U64_MAX:
        raise SizeOverflowError(f"Size {value} does not fit in 64 bits")

    return value


class SizeAccumulator:
    """Running byte total for a single bucket."""

    def __init__(self) -> None:
        self._total = 0

    @property
    def total(self) -> int:
        return self._total

    def add(self, value: object) -> int:
        """Add one reported size, returning the new total.

        Raises:
            SizeOverflowError: If the value is invalid or the total would
                exceed 64 bits. The total is left unchanged.
        """
        total = self._total + to_byte_count(value)

        if total > U64_MAX:
            raise SizeOverflowError(f"Total size overflowed 64 bits ({self._total} + {value})")

        self._total = total
        return total

    def extend(self, values: Iterable[object]) -> int:
        for value in values:
            self.add(value)
        return self._total
