"""Piece entity tracked by the board."""

from __future__ import annotations

from dataclasses import dataclass

from chessbridge.core.enums import Color, PieceClass
from chessbridge.core.types import Square
from chessbridge.errors import MalformedNotation

# FEN character ↔ (Color, PieceClass)
_CHAR_MAP: dict[str, tuple[Color, PieceClass]] = {
    "P": (Color.WHITE, PieceClass.PAWN),
    "N": (Color.WHITE, PieceClass.KNIGHT),
    "B": (Color.WHITE, PieceClass.BISHOP),
    "R": (Color.WHITE, PieceClass.ROOK),
    "Q": (Color.WHITE, PieceClass.QUEEN),
    "K": (Color.WHITE, PieceClass.KING),
    "p": (Color.BLACK, PieceClass.PAWN),
    "n": (Color.BLACK, PieceClass.KNIGHT),
    "b": (Color.BLACK, PieceClass.BISHOP),
    "r": (Color.BLACK, PieceClass.ROOK),
    "q": (Color.BLACK, PieceClass.QUEEN),
    "k": (Color.BLACK, PieceClass.KING),
}

_FEN_CHARS: dict[tuple[Color, PieceClass], str] = {v: k for k, v in _CHAR_MAP.items()}

# Promotion letters exchanged with the engine are always lowercase.
_PROMOTION_CHARS: dict[PieceClass, str] = {
    PieceClass.QUEEN: "q",
    PieceClass.ROOK: "r",
    PieceClass.BISHOP: "b",
    PieceClass.KNIGHT: "n",
}
_PROMOTION_CLASSES: dict[str, PieceClass] = {v: k for k, v in _PROMOTION_CHARS.items()}


def piece_class_from_char(char: str) -> PieceClass:
    """Case-insensitive FEN letter → class, e.g. 'n' → KNIGHT."""
    try:
        return _CHAR_MAP[char.upper()][1]
    except KeyError:
        raise MalformedNotation(f"Invalid piece character: {char!r}") from None


def promotion_char(piece_class: PieceClass) -> str:
    """Lowercase promotion letter sent to the engine (q, r, b, n)."""
    try:
        return _PROMOTION_CHARS[piece_class]
    except KeyError:
        raise ValueError(f"Cannot promote to {piece_class.name}") from None


def promotion_class(char: str) -> PieceClass:
    """Inverse of :func:`promotion_char`."""
    try:
        return _PROMOTION_CLASSES[char]
    except KeyError:
        raise MalformedNotation(f"Invalid promotion character: {char!r}") from None


@dataclass(slots=True)
class Piece:
    """A piece on the board.

    ``deployed`` becomes true once the piece has left its original square;
    it drives castling-rights bookkeeping and pawn double-step eligibility.
    """

    color: Color
    piece_class: PieceClass
    square: Square
    deployed: bool = False

    # ── Serialisation ────────────────────────────────────────────────────

    @property
    def fen_char(self) -> str:
        """FEN character (uppercase = white, lowercase = black)."""
        return _FEN_CHARS[(self.color, self.piece_class)]

    @classmethod
    def from_char(cls, char: str, square: Square) -> Piece:
        """Create piece from FEN character, e.g. 'N' → white knight."""
        try:
            color, piece_class = _CHAR_MAP[char]
        except KeyError:
            raise MalformedNotation(f"Invalid piece character: {char!r}") from None
        return cls(color, piece_class, square)

    def copy(self) -> Piece:
        return Piece(self.color, self.piece_class, self.square, self.deployed)

    def __str__(self) -> str:
        return f"{self.fen_char}@{self.square}"
