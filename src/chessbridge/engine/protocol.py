"""UCI protocol vocabulary: tokens, command builders and response parsing."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from chessbridge.core.notation.fen import STARTING_FEN


@dataclass(frozen=True, slots=True)
class EngineCommand:
    """A line to write plus the prefix of the line that completes it.

    An empty ``expected_prefix`` means the command has no textual response;
    the session synchronizes on a readiness check instead.
    """

    text: str
    expected_prefix: str = ""

    @property
    def synchronize_only(self) -> bool:
        return not self.expected_prefix


@dataclass(frozen=True, slots=True)
class UciDialect:
    """The set of command/response tokens a session speaks.

    Engines with non-standard spellings get their own instance instead of
    code changes in the session.
    """

    isready: str = "isready"
    readyok: str = "readyok"
    uci: str = "uci"
    uciok: str = "uciok"
    ucinewgame: str = "ucinewgame"
    position: str = "position"
    go_movetime: str = "go movetime"
    bestmove: str = "bestmove"
    setoption: str = "setoption"
    diagnostic: str = "d"
    # Empty: the dump has no reliable terminator, so synchronize on readyok.
    diagnostic_response: str = ""
    quit: str = "quit"
    no_move_payloads: tuple[str, ...] = ("(none)", "a1a1")
    # Spike 1.x reports a missing move with this line instead of bestmove.
    fatal_no_move_line: str = "Error: Fatal no best move"

    # ── Command builders ─────────────────────────────────────────────────

    def ready_check(self) -> EngineCommand:
        return EngineCommand(self.isready, self.readyok)

    def protocol_check(self) -> EngineCommand:
        return EngineCommand(self.uci, self.uciok)

    def handshake(self) -> tuple[EngineCommand, EngineCommand]:
        """Readiness check first, then protocol identification."""
        return (self.ready_check(), self.protocol_check())

    def new_game_command(self) -> EngineCommand:
        return EngineCommand(self.ucinewgame)

    def position_command(
        self, fen: str | None = None, moves: Iterable[str] = ()
    ) -> EngineCommand:
        """``position startpos|fen <fen> [moves ...]`` (no response expected)."""
        move_list = list(moves)
        if fen is None or " ".join(fen.split()) == STARTING_FEN:
            text = f"{self.position} startpos"
        else:
            text = f"{self.position} fen {fen}"
        if move_list:
            text += " moves " + " ".join(move_list)
        return EngineCommand(text)

    def go_command(self, movetime_ms: int) -> EngineCommand:
        return EngineCommand(f"{self.go_movetime} {movetime_ms}", self.bestmove)

    def set_option_command(self, name: str, value: object | None = None) -> EngineCommand:
        text = f"{self.setoption} name {name}"
        if value is not None:
            text += f" value {_option_value(value)}"
        return EngineCommand(text)

    def diagnostic_command(self) -> EngineCommand:
        return EngineCommand(self.diagnostic, self.diagnostic_response)

    # ── Response handling ────────────────────────────────────────────────

    def normalize(self, line: str) -> str:
        """Rewrite known engine quirks into regular protocol lines."""
        if line == self.fatal_no_move_line:
            return f"{self.bestmove} (none)"
        return line

    def parse_best_move(self, line: str) -> str | None:
        """Move text from a ``bestmove`` line, or None when there is no move.

        Raises:
            ValueError: *line* is not a ``bestmove`` response.
        """
        parts = line.split()
        if not parts or parts[0] != self.bestmove:
            raise ValueError(f"Not a {self.bestmove} response: {line!r}")
        if len(parts) < 2 or parts[1] in self.no_move_payloads:
            return None
        return parts[1]


def _option_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
