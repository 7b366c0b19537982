"""FEN parsing and serialization."""

from __future__ import annotations

from dataclasses import dataclass

from chessbridge.core.enums import CastlingSide, Color, PieceClass
from chessbridge.core.piece import Piece
from chessbridge.core.types import Square
from chessbridge.errors import MalformedNotation, OutOfRange

STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

_MAX_PIECES_PER_SIDE = 16
_DIGITS = "0123456789"

_CASTLING_CHARS: dict[str, tuple[Color, CastlingSide]] = {
    "K": (Color.WHITE, CastlingSide.KING_SIDE),
    "Q": (Color.WHITE, CastlingSide.QUEEN_SIDE),
    "k": (Color.BLACK, CastlingSide.KING_SIDE),
    "q": (Color.BLACK, CastlingSide.QUEEN_SIDE),
}


@dataclass(frozen=True, slots=True)
class PositionSnapshot:
    """Everything a FEN string describes, detached from any live board."""

    pieces: tuple[Piece, ...]
    active_player: Color
    white_castling: CastlingSide
    black_castling: CastlingSide
    en_passant: Square | None
    halfmove_clock: int
    fullmove_number: int

    def pieces_of(self, color: Color) -> tuple[Piece, ...]:
        return tuple(p for p in self.pieces if p.color == color)


def decode_fen(fen: str) -> PositionSnapshot:
    """Parse a FEN string into a :class:`PositionSnapshot`.

    Raises:
        MalformedNotation: the text does not have six fields or a field
            violates its grammar.
    """
    parts = fen.split()
    if len(parts) != 6:
        raise MalformedNotation(f"Invalid FEN (need 6 fields): {fen!r}")

    placement, side_part, castling_part, ep_part, half_part, full_part = parts

    pieces = _decode_placement(placement, fen)

    # 2. Side to move
    if side_part == "w":
        side = Color.WHITE
    elif side_part == "b":
        side = Color.BLACK
    else:
        raise MalformedNotation(f"Invalid FEN side-to-move field: {side_part!r}")

    # 3. Castling
    rights = {Color.WHITE: CastlingSide.NONE, Color.BLACK: CastlingSide.NONE}
    if castling_part != "-":
        seen: set[str] = set()
        for ch in castling_part:
            entry = _CASTLING_CHARS.get(ch)
            if entry is None or ch in seen:
                raise MalformedNotation(f"Invalid FEN castling field: {castling_part!r}")
            seen.add(ch)
            color, wing = entry
            rights[color] |= wing

    # 4. En passant
    ep: Square | None = None
    if ep_part != "-":
        try:
            ep = Square.parse(ep_part)
        except OutOfRange:
            raise MalformedNotation(
                f"Invalid FEN en-passant square: {ep_part!r}"
            ) from None

    # 5–6. Clocks
    halfmove = _decode_counter(half_part, "halfmove clock")
    fullmove = _decode_counter(full_part, "fullmove number")

    return PositionSnapshot(
        pieces=tuple(pieces),
        active_player=side,
        white_castling=rights[Color.WHITE],
        black_castling=rights[Color.BLACK],
        en_passant=ep,
        halfmove_clock=halfmove,
        fullmove_number=fullmove,
    )


def encode_fen(position: PositionSnapshot) -> str:
    """Serialise a :class:`PositionSnapshot` to FEN."""
    # 1. Board
    grid: dict[Square, Piece] = {p.square: p for p in position.pieces}
    rows: list[str] = []
    for rank in range(8, 0, -1):
        empty = 0
        row = ""
        for file in range(1, 9):
            piece = grid.get(Square(file, rank))
            if piece is None:
                empty += 1
            else:
                if empty:
                    row += str(empty)
                    empty = 0
                row += piece.fen_char
        if empty:
            row += str(empty)
        rows.append(row)
    board_str = "/".join(rows)

    # 2. Side
    side_str = "w" if position.active_player == Color.WHITE else "b"

    # 3. Castling
    castling_str = _encode_castling(position.white_castling).upper()
    castling_str += _encode_castling(position.black_castling)
    if not castling_str:
        castling_str = "-"

    # 4. En passant
    ep_str = str(position.en_passant) if position.en_passant is not None else "-"

    return (
        f"{board_str} {side_str} {castling_str} {ep_str} "
        f"{position.halfmove_clock} {position.fullmove_number}"
    )


# ── Internal helpers ─────────────────────────────────────────────────────────


def _decode_placement(placement: str, fen: str) -> list[Piece]:
    pieces: list[Piece] = []
    kings = {Color.WHITE: 0, Color.BLACK: 0}
    counts = {Color.WHITE: 0, Color.BLACK: 0}
    rank = 8
    file = 1
    for ch in placement:
        if ch.isalpha():
            try:
                square = Square(file, rank)
            except OutOfRange:
                raise MalformedNotation(
                    f"Invalid FEN board, piece placed off the board: {fen!r}"
                ) from None
            piece = Piece.from_char(ch, square)
            piece.deployed = _starts_deployed(piece)
            counts[piece.color] += 1
            if piece.piece_class == PieceClass.KING:
                kings[piece.color] += 1
            pieces.append(piece)
            file += 1
        elif ch in _DIGITS:
            file += int(ch)
        elif ch == "/":
            file = 1
            rank -= 1
        else:
            break

    for color in Color:
        if counts[color] > _MAX_PIECES_PER_SIDE:
            raise MalformedNotation(f"Invalid FEN, too many {color} pieces: {fen!r}")
        if kings[color] > 1:
            raise MalformedNotation(f"Invalid FEN, more than one {color} king: {fen!r}")
    return pieces


def _starts_deployed(piece: Piece) -> bool:
    """Whether *piece* cannot be on its original square."""
    sq = piece.square
    home = piece.color.home_rank
    if piece.piece_class == PieceClass.PAWN:
        return sq.rank != piece.color.pawn_rank
    if piece.piece_class == PieceClass.ROOK:
        return sq.rank != home or sq.file not in (1, 8)
    if piece.piece_class == PieceClass.KING:
        return sq != Square(5, home)
    return False


def _decode_counter(text: str, label: str) -> int:
    if not text or any(ch not in _DIGITS for ch in text):
        raise MalformedNotation(f"Invalid FEN {label}: {text!r}")
    return int(text)


def _encode_castling(rights: CastlingSide) -> str:
    out = ""
    if rights & CastlingSide.KING_SIDE:
        out += "k"
    if rights & CastlingSide.QUEEN_SIDE:
        out += "q"
    return out
