"""Square value object and coordinate helpers.

Files and ranks are both 1-based, matching how they are written:
file 1 is the a-file, rank 1 is White's back rank.
"""

from __future__ import annotations

from dataclasses import dataclass

from chessbridge.errors import OutOfRange

FILE_CHARS = "abcdefgh"


@dataclass(frozen=True, slots=True, order=True)
class Square:
    """Immutable board coordinate, e.g. ``Square(5, 4)`` is e4."""

    file: int
    rank: int

    def __post_init__(self) -> None:
        for value, label in ((self.file, "file"), (self.rank, "rank")):
            if isinstance(value, bool) or not isinstance(value, int):
                raise OutOfRange(f"Square {label} must be an int, got {value!r}")
            if not 1 <= value <= 8:
                raise OutOfRange(f"Square {label} out of range [1, 8]: {value}")

    # ── Construction helpers ─────────────────────────────────────────────

    @classmethod
    def from_chars(cls, file_char: str, rank_char: str) -> Square:
        """Build a square from a file letter and a rank digit, e.g. ('e', '4')."""
        if len(file_char) != 1 or file_char not in FILE_CHARS:
            raise OutOfRange(f"Invalid file letter: {file_char!r}")
        if len(rank_char) != 1 or rank_char not in "0123456789":
            raise OutOfRange(f"Invalid rank digit: {rank_char!r}")
        return cls(FILE_CHARS.index(file_char) + 1, int(rank_char))

    @classmethod
    def parse(cls, name: str) -> Square:
        """Parse square name, e.g. 'e4'."""
        if len(name) != 2:
            raise OutOfRange(f"Invalid square name: {name!r}")
        return cls.from_chars(name[0], name[1])

    # ── Display ──────────────────────────────────────────────────────────

    @property
    def file_char(self) -> str:
        return FILE_CHARS[self.file - 1]

    def offset(self, file_delta: int, rank_delta: int) -> Square:
        """Square shifted by the given deltas (raises OutOfRange off-board)."""
        return Square(self.file + file_delta, self.rank + rank_delta)

    def __str__(self) -> str:
        return f"{self.file_char}{self.rank}"

    def __repr__(self) -> str:
        return f"Square({self})"
