"""BoardState — live piece sets plus the FEN metadata that travels with them."""

from __future__ import annotations

from dataclasses import dataclass

from chessbridge.core.enums import CastlingSide, Color, PieceClass
from chessbridge.core.move import Move
from chessbridge.core.notation.diagram import fen_to_diagram
from chessbridge.core.notation.fen import (
    STARTING_FEN,
    PositionSnapshot,
    decode_fen,
    encode_fen,
)
from chessbridge.core.piece import Piece, promotion_char
from chessbridge.core.types import Square
from chessbridge.errors import NoPieceAtSquare

_ROOK_FILES: dict[int, CastlingSide] = {
    1: CastlingSide.QUEEN_SIDE,
    8: CastlingSide.KING_SIDE,
}


@dataclass(slots=True)
class _UndoRecord:
    """Snapshot saved before each move so we can revert it."""

    position: PositionSnapshot
    last_move_was_capture: bool


class BoardState:
    """Mutable game position owned by the game controller.

    Piece collections keep insertion order (FEN scan order on load), not
    board order. No legality checking is done here: moves are assumed to
    come from a collaborator that already validated them, usually the
    engine itself.
    """

    __slots__ = (
        "_pieces",
        "_history",
        "_undo",
        "_active_player",
        "_castling",
        "_en_passant",
        "_halfmove_clock",
        "_fullmove_number",
        "_initial_fen",
        "_last_move_was_capture",
    )

    def __init__(self, fen: str | None = None) -> None:
        self._pieces: dict[Color, list[Piece]] = {Color.WHITE: [], Color.BLACK: []}
        self._history: list[str] = []
        self._undo: list[_UndoRecord] = []
        self._active_player = Color.WHITE
        self._castling = {Color.WHITE: CastlingSide.BOTH, Color.BLACK: CastlingSide.BOTH}
        self._en_passant: Square | None = None
        self._halfmove_clock = 0
        self._fullmove_number = 1
        self._initial_fen = STARTING_FEN
        self._last_move_was_capture = False
        if fen is None:
            self.new_game()
        else:
            self.new_position(fen)

    # ── Position setup ───────────────────────────────────────────────────

    def new_game(self) -> None:
        """Reset to the standard starting arrangement."""
        self.new_position(STARTING_FEN)

    def new_position(self, fen: str) -> None:
        """Replace the whole state with the position described by *fen*.

        The current state is left untouched when *fen* fails to decode.
        """
        snapshot = decode_fen(fen)
        self._restore(snapshot)
        self._history = []
        self._undo = []
        self._initial_fen = " ".join(fen.split())
        self._last_move_was_capture = False

    # ── Move application ─────────────────────────────────────────────────

    def apply_move(self, from_sq: Square, to_sq: Square) -> str:
        """Move the piece on *from_sq* to *to_sq* and return the move text.

        Raises:
            NoPieceAtSquare: *from_sq* is empty.
        """
        return self._move(from_sq, to_sq, None)

    def promote_piece(
        self, from_sq: Square, to_sq: Square, new_class: PieceClass
    ) -> str:
        """Like :meth:`apply_move`, also turning the pawn into *new_class*."""
        promotion_char(new_class)  # validates the target class
        return self._move(from_sq, to_sq, new_class)

    def play(self, move: Move) -> str:
        """Apply a parsed :class:`Move`, promoting when it carries a class."""
        if move.promotion is not None:
            return self.promote_piece(move.from_sq, move.to_sq, move.promotion)
        return self.apply_move(move.from_sq, move.to_sq)

    def revert_last_move(self) -> str | None:
        """Undo the most recent move. Returns its text, or None if none."""
        if not self._history:
            return None
        record = self._undo.pop()
        self._restore(record.position)
        self._last_move_was_capture = record.last_move_was_capture
        return self._history.pop()

    # ── Queries ──────────────────────────────────────────────────────────

    def can_castle(self, color: Color, side: CastlingSide) -> bool:
        return bool(self._castling[color] & side)

    def castling_rights(self, color: Color) -> CastlingSide:
        return self._castling[color]

    def pieces(self, color: Color) -> tuple[Piece, ...]:
        """Copies of *color*'s pieces in insertion order."""
        return tuple(p.copy() for p in self._pieces[color])

    def all_pieces(self) -> tuple[Piece, ...]:
        return self.pieces(Color.WHITE) + self.pieces(Color.BLACK)

    def piece_at(self, square: Square) -> Piece | None:
        piece = self._find(square)
        return piece.copy() if piece is not None else None

    def king(self, color: Color) -> Piece | None:
        for piece in self._pieces[color]:
            if piece.piece_class == PieceClass.KING:
                return piece.copy()
        return None

    @property
    def move_history(self) -> tuple[str, ...]:
        return tuple(self._history)

    @property
    def active_player(self) -> Color:
        return self._active_player

    @property
    def en_passant(self) -> Square | None:
        return self._en_passant

    @property
    def halfmove_clock(self) -> int:
        return self._halfmove_clock

    @property
    def fullmove_number(self) -> int:
        return self._fullmove_number

    @property
    def last_move_was_capture(self) -> bool:
        return self._last_move_was_capture

    @property
    def initial_fen(self) -> str:
        """FEN the current game started from."""
        return self._initial_fen

    @property
    def fen(self) -> str:
        """Current position as FEN."""
        return encode_fen(self.snapshot())

    def snapshot(self) -> PositionSnapshot:
        """Detached copy of the full position."""
        return PositionSnapshot(
            pieces=self.all_pieces(),
            active_player=self._active_player,
            white_castling=self._castling[Color.WHITE],
            black_castling=self._castling[Color.BLACK],
            en_passant=self._en_passant,
            halfmove_clock=self._halfmove_clock,
            fullmove_number=self._fullmove_number,
        )

    def diagram(self) -> list[str]:
        """Bordered ASCII rendering of the board, rank 8 first."""
        return fen_to_diagram(self.fen)

    # ── Internal ─────────────────────────────────────────────────────────

    def _find(self, square: Square) -> Piece | None:
        for pieces in self._pieces.values():
            for piece in pieces:
                if piece.square == square:
                    return piece
        return None

    def _restore(self, snapshot: PositionSnapshot) -> None:
        self._pieces = {
            color: [p.copy() for p in snapshot.pieces_of(color)] for color in Color
        }
        self._active_player = snapshot.active_player
        self._castling = {
            Color.WHITE: snapshot.white_castling,
            Color.BLACK: snapshot.black_castling,
        }
        self._en_passant = snapshot.en_passant
        self._halfmove_clock = snapshot.halfmove_clock
        self._fullmove_number = snapshot.fullmove_number

    def _move(
        self, from_sq: Square, to_sq: Square, promotion: PieceClass | None
    ) -> str:
        piece = self._find(from_sq)
        if piece is None:
            raise NoPieceAtSquare(from_sq)
        if promotion is not None:
            if piece.piece_class != PieceClass.PAWN:
                raise ValueError(f"Only pawns can be promoted, got {piece}")
            if to_sq.rank != piece.color.opposite.home_rank:
                raise ValueError(f"Promotion must land on the last rank: {to_sq}")

        mover = piece.color
        enemy = mover.opposite
        target = self._find(to_sq)
        if target is not None and target.color == mover:
            raise ValueError(f"{to_sq} is occupied by a friendly piece {target}")

        self._undo.append(
            _UndoRecord(self.snapshot(), self._last_move_was_capture)
        )

        # En passant: the captured pawn sits beside the target square
        captured = target
        is_pawn = piece.piece_class == PieceClass.PAWN
        if (
            captured is None
            and is_pawn
            and from_sq.file != to_sq.file
            and to_sq == self._en_passant
        ):
            captured = self._find(to_sq.offset(0, -mover.forward))
            if captured is not None and captured.color != enemy:
                captured = None

        if captured is not None:
            self._pieces[enemy].remove(captured)
            self._revoke_for_captured(captured)

        # Castling bookkeeping uses the pre-move square and deployed flag
        if piece.piece_class == PieceClass.KING:
            self._castling[mover] = CastlingSide.NONE
            if abs(to_sq.file - from_sq.file) == 2:
                self._slide_castling_rook(mover, to_sq)
        elif (
            piece.piece_class == PieceClass.ROOK
            and not piece.deployed
            and from_sq.rank == mover.home_rank
            and from_sq.file in _ROOK_FILES
        ):
            self._castling[mover] &= ~_ROOK_FILES[from_sq.file]

        piece.square = to_sq
        piece.deployed = True
        if promotion is not None:
            piece.piece_class = promotion

        # En passant target for the opponent
        if is_pawn and abs(to_sq.rank - from_sq.rank) == 2:
            self._en_passant = from_sq.offset(0, mover.forward)
        else:
            self._en_passant = None

        # Clocks
        if is_pawn or captured is not None:
            self._halfmove_clock = 0
        else:
            self._halfmove_clock += 1
        if mover == Color.BLACK:
            self._fullmove_number += 1

        self._active_player = enemy
        self._last_move_was_capture = captured is not None

        text = f"{from_sq}{to_sq}"
        if promotion is not None:
            text += promotion_char(promotion)
        self._history.append(text)
        return text

    def _revoke_for_captured(self, captured: Piece) -> None:
        sq = captured.square
        if (
            captured.piece_class == PieceClass.ROOK
            and sq.rank == captured.color.home_rank
            and sq.file in _ROOK_FILES
        ):
            self._castling[captured.color] &= ~_ROOK_FILES[sq.file]

    def _slide_castling_rook(self, color: Color, king_to: Square) -> None:
        rank = color.home_rank
        rook_from, rook_to = (8, 6) if king_to.file == 7 else (1, 4)
        rook = self._find(Square(rook_from, rank))
        if rook is None or rook.piece_class != PieceClass.ROOK:
            return
        rook.square = Square(rook_to, rank)
        rook.deployed = True

    # ── Dunder helpers ───────────────────────────────────────────────────

    def __repr__(self) -> str:
        grid = {p.square: p.fen_char for p in self.all_pieces()}
        rows: list[str] = []
        for rank in range(8, 0, -1):
            row = [grid.get(Square(file, rank), ".") for file in range(1, 9)]
            rows.append(f"{rank} {' '.join(row)}")
        rows.append("  a b c d e f g h")
        return "\n".join(rows)
