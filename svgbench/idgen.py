"""Generator of the shortest possible XML ids: a, b, ..., Z, aa, ab, ..."""

from __future__ import annotations

import string
from collections.abc import Iterator

ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits
# An id cannot start with a digit, so the leading position uses letters only.
LEADING_SIZE = len(string.ascii_letters)
MAX_LENGTH = 5


class ShortIdGenerator:
    """A counter whose textual form is a short, valid XML id."""

    def __init__(self) -> None:
        self._digits = [0]

    def advance(self) -> None:
        """Move to the next id."""
        digits = list(self._digits)
        for position in reversed(range(len(digits))):
            limit = LEADING_SIZE if position == 0 else len(ALPHABET)
            if digits[position] + 1 < limit:
                digits[position] += 1
                self._digits = digits
                return
            digits[position] = 0

        if len(digits) >= MAX_LENGTH:
            raise OverflowError("id space exhausted")
        self._digits = [0, *digits]

    def __str__(self) -> str:
        return "".join(ALPHABET[d] for d in self._digits)


def short_ids() -> Iterator[str]:
    """Yield ids in order: a, b, ..., Z, aa, ab, ..."""
    generator = ShortIdGenerator()
    while True:
        yield str(generator)
        generator.advance()