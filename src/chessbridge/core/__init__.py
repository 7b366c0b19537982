"""Core domain layer — board state and FEN codec with zero external dependencies.

Quick start::

    from chessbridge.core import BoardState, Square

    board = BoardState()
    board.apply_move(Square.parse("e2"), Square.parse("e4"))
    print(board.fen)
"""

from chessbridge.core.board import BoardState
from chessbridge.core.enums import CastlingSide, Color, PieceClass
from chessbridge.core.move import Move
from chessbridge.core.notation import (
    STARTING_FEN,
    PositionSnapshot,
    decode_fen,
    encode_fen,
    fen_to_diagram,
)
from chessbridge.core.piece import Piece
from chessbridge.core.types import Square

__all__ = [
    # Enums / flags
    "CastlingSide",
    "Color",
    "PieceClass",
    # Domain objects
    "BoardState",
    "Move",
    "Piece",
    "PositionSnapshot",
    "Square",
    # Notation
    "STARTING_FEN",
    "decode_fen",
    "encode_fen",
    "fen_to_diagram",
]
