"""ASCII board diagram in the style of an engine's ``d`` command."""

from __future__ import annotations

from chessbridge.errors import MalformedNotation

_EDGE = "+---+---+---+---+---+---+---+---+"


def fen_to_diagram(fen: str) -> list[str]:
    """Render the placement field of *fen* as bordered rows, rank 8 first."""
    fields = fen.split()
    if not fields:
        raise MalformedNotation(f"Invalid FEN: {fen!r}")

    lines = [_EDGE]
    for row in fields[0].split("/"):
        cells: list[str] = []
        for ch in row:
            if ch in "0123456789":
                cells.extend(" " * int(ch))
            else:
                cells.append(ch)
        lines.append("|" + "".join(f" {c} |" for c in cells))
        lines.append(_EDGE)
    return lines
