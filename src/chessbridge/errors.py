"""Exception taxonomy shared by the core, engine and game layers."""

from __future__ import annotations


class ChessBridgeError(Exception):
    """Base class for every error raised by chessbridge."""


class OutOfRange(ChessBridgeError, ValueError):
    """A file or rank outside a1–h8 was used to build a square."""


class MalformedNotation(ChessBridgeError, ValueError):
    """A FEN string or move text does not follow its grammar."""


class NoPieceAtSquare(ChessBridgeError):
    """A move was requested from an empty square.

    The local board and the engine have diverged; callers should treat this
    as fatal for the current game.
    """

    def __init__(self, square: object) -> None:
        super().__init__(f"No piece at {square}")
        self.square = square


# ── Engine process / session errors ──────────────────────────────────────────


class EngineError(ChessBridgeError):
    """Base class for engine process and protocol failures."""


class LaunchFailed(EngineError):
    """The engine executable could not be started."""


class HandshakeFailed(EngineError):
    """The engine never acknowledged the readiness/protocol handshake."""


class ChannelClosed(EngineError):
    """The engine's input or output channel is no longer usable."""
