"""Core enumerations and flags for chess domain."""

from __future__ import annotations

from enum import IntEnum, IntFlag


class Color(IntEnum):
    """Side color."""

    WHITE = 0
    BLACK = 1

    @property
    def opposite(self) -> Color:
        return Color(1 - self.value)

    @property
    def home_rank(self) -> int:
        """Back rank (1 or 8) where this side's king and rooks start."""
        return 1 if self == Color.WHITE else 8

    @property
    def pawn_rank(self) -> int:
        """Rank (2 or 7) where this side's pawns start."""
        return 2 if self == Color.WHITE else 7

    @property
    def forward(self) -> int:
        """Rank delta of a single pawn step."""
        return 1 if self == Color.WHITE else -1

    def __str__(self) -> str:
        return self.name.lower()


class PieceClass(IntEnum):
    """Chess piece classes ordered by conventional value."""

    PAWN = 1
    KNIGHT = 2
    BISHOP = 3
    ROOK = 4
    QUEEN = 5
    KING = 6


class CastlingSide(IntFlag):
    """Per-colour bitmask for castling availability."""

    NONE = 0
    KING_SIDE = 1
    QUEEN_SIDE = 2

    BOTH = KING_SIDE | QUEEN_SIDE
