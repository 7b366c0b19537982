"""Notation package: FEN parsing/serialization and board diagrams."""

from chessbridge.core.notation.diagram import fen_to_diagram
from chessbridge.core.notation.fen import (
    STARTING_FEN,
    PositionSnapshot,
    decode_fen,
    encode_fen,
)

__all__ = [
    "STARTING_FEN",
    "PositionSnapshot",
    "decode_fen",
    "encode_fen",
    "fen_to_diagram",
]
