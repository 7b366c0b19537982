"""Move value object (UCI long-algebraic representation)."""

from __future__ import annotations

from dataclasses import dataclass

from chessbridge.core.enums import PieceClass
from chessbridge.core.piece import promotion_char, promotion_class
from chessbridge.core.types import Square
from chessbridge.errors import MalformedNotation


@dataclass(frozen=True, slots=True)
class Move:
    """Immutable value object representing a single chess move."""

    from_sq: Square
    to_sq: Square
    promotion: PieceClass | None = None

    @classmethod
    def parse(cls, text: str) -> Move:
        """Parse ``e2e4`` / ``e7e8q``.

        Raises:
            MalformedNotation: wrong length or unknown promotion letter.
            OutOfRange: a square component is off the board.
        """
        if len(text) not in (4, 5):
            raise MalformedNotation(f"Invalid move text: {text!r}")
        from_sq = Square.from_chars(text[0], text[1])
        to_sq = Square.from_chars(text[2], text[3])
        promotion = promotion_class(text[4]) if len(text) == 5 else None
        return cls(from_sq, to_sq, promotion)

    # ── Display ──────────────────────────────────────────────────────────

    def __str__(self) -> str:
        base = f"{self.from_sq}{self.to_sq}"
        if self.promotion is not None:
            base += promotion_char(self.promotion)
        return base

    @property
    def uci(self) -> str:
        """UCI long-algebraic notation."""
        return str(self)
