"""Abstract interfaces for the game layer.

The controller depends on :class:`IEngineSession`, a structural protocol,
so tests can drive it with an in-memory session instead of a real engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import Future
from dataclasses import dataclass
from enum import IntEnum, auto
from typing import TYPE_CHECKING, Protocol

from chessbridge.core.enums import Color

if TYPE_CHECKING:
    from chessbridge.core.move import Move
    from chessbridge.engine.protocol import EngineCommand, UciDialect


# ── Game phase FSM states ────────────────────────────────────────────────────


class GamePhase(IntEnum):
    """Finite-state-machine states for a game against an engine."""

    NOT_STARTED = auto()
    AWAITING_MOVE = auto()
    THINKING = auto()  # engine is searching
    GAME_OVER = auto()


class GameOverReason(IntEnum):
    """Why automatic play stopped."""

    NO_MOVE = auto()  # engine answered with a no-move sentinel
    HALFMOVE_LIMIT = auto()
    ENGINE_LOST = auto()  # the session closed under us
    BOARD_DESYNC = auto()  # engine move does not fit the local board


@dataclass(frozen=True, slots=True)
class GameOver:
    """Game-over notification payload."""

    reason: GameOverReason
    fen: str


# ── Abstract interfaces ─────────────────────────────────────────────────────


class IEngineSession(Protocol):
    """The slice of :class:`~chessbridge.engine.session.EngineSession` the
    controller uses."""

    @property
    def dialect(self) -> UciDialect: ...

    def submit(self, command: EngineCommand) -> Future[str]: ...

    def quit(self) -> None: ...


class IGameController(ABC):
    """Public contract of a game controller."""

    @abstractmethod
    def new_game(self, human_color: Color = Color.WHITE) -> None: ...

    @abstractmethod
    def new_position(self, fen: str, human_color: Color = Color.WHITE) -> None: ...

    @abstractmethod
    def submit_move(self, move: Move | str) -> bool: ...

    @abstractmethod
    def request_best_move(self) -> bool: ...

    @abstractmethod
    def start_self_play(self) -> None: ...

    @abstractmethod
    def stop_self_play(self) -> None: ...

    @abstractmethod
    def undo_last_move(self) -> bool: ...

    @abstractmethod
    def quit(self) -> None: ...
