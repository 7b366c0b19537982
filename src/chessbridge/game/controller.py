"""GameController — drives a game between a local board and a UCI engine.

Coordinates: BoardState, EngineSession.
Emits events via simple callbacks so the UI / tests can subscribe.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING

from chessbridge.core.board import BoardState
from chessbridge.core.enums import Color
from chessbridge.core.move import Move
from chessbridge.errors import ChessBridgeError
from chessbridge.game.interfaces import (
    GameOver,
    GameOverReason,
    GamePhase,
    IEngineSession,
    IGameController,
)

if TYPE_CHECKING:
    from chessbridge.config import EngineSettings
    from chessbridge.engine.protocol import EngineCommand

_LOGGER = logging.getLogger(__name__)

DEFAULT_THINK_TIME_MS = 250
DEFAULT_DRAW_HALFMOVE_THRESHOLD = 50

# ── Event definitions ────────────────────────────────────────────────────────

MoveCallback = Callable[[str, BoardState], None]  # move text, board after it
GameOverCallback = Callable[[GameOver], None]
PhaseCallback = Callable[[GamePhase], None]


@dataclass
class GameEvents:
    """Observable callbacks. Multiple handlers per event."""

    on_move: list[MoveCallback] = field(default_factory=list)
    on_game_over: list[GameOverCallback] = field(default_factory=list)
    on_phase_changed: list[PhaseCallback] = field(default_factory=list)


# ── Controller ───────────────────────────────────────────────────────────────


class GameController(IGameController):
    """Keeps a :class:`BoardState` and an engine in step.

    Every local move is followed by a full ``position ... moves ...`` update
    and a timed search; the engine's answer is applied to the board. In
    self-play the engine's own move is fed straight back in.

    Thread-safety: engine answers arrive on the session's worker thread.
    All state changes happen under one re-entrant lock, and responses that
    belong to an abandoned game (new game, undo, quit) are dropped.
    """

    __slots__ = (
        "_session",
        "_board",
        "_phase",
        "_human_color",
        "_self_play",
        "_think_time_ms",
        "_draw_halfmove_threshold",
        "_generation",
        "_lock",
        "events",
    )

    def __init__(
        self,
        session: IEngineSession,
        *,
        think_time_ms: int = DEFAULT_THINK_TIME_MS,
        draw_halfmove_threshold: int = DEFAULT_DRAW_HALFMOVE_THRESHOLD,
    ) -> None:
        self._session = session
        self._board = BoardState()
        self._phase = GamePhase.NOT_STARTED
        self._human_color = Color.WHITE
        self._self_play = False
        self._think_time_ms = think_time_ms
        self._draw_halfmove_threshold = draw_halfmove_threshold
        self._generation = 0
        self._lock = threading.RLock()
        self.events = GameEvents()

    @classmethod
    def from_settings(
        cls, session: IEngineSession, settings: EngineSettings
    ) -> GameController:
        return cls(
            session,
            think_time_ms=settings.think_time_ms,
            draw_halfmove_threshold=settings.draw_halfmove_threshold,
        )

    # ── Properties ───────────────────────────────────────────────────────

    @property
    def board(self) -> BoardState:
        return self._board

    @property
    def phase(self) -> GamePhase:
        return self._phase

    @property
    def human_color(self) -> Color:
        return self._human_color

    @property
    def is_self_play(self) -> bool:
        return self._self_play

    @property
    def think_time_ms(self) -> int:
        return self._think_time_ms

    @think_time_ms.setter
    def think_time_ms(self, value: int) -> None:
        if value <= 0:
            raise ValueError(f"think time must be positive, got {value}")
        self._think_time_ms = value

    # ── IGameController impl ─────────────────────────────────────────────

    def new_game(self, human_color: Color = Color.WHITE) -> None:
        """Reset to the standard start; the engine opens unless the human is white."""
        with self._lock:
            self._board.new_game()
            self._restart(human_color)

    def new_position(self, fen: str, human_color: Color = Color.WHITE) -> None:
        """Start from *fen*. Raises MalformedNotation before touching anything.

        When *fen* has the engine's side to move, a search starts at once.
        """
        with self._lock:
            self._board.new_position(fen)
            self._restart(human_color)

    def submit_move(self, move: Move | str) -> bool:
        """Play a local move and hand the turn to the engine.

        Returns False when no move is expected right now (game not started,
        engine thinking, game over, or the engine's side to move).

        Raises:
            MalformedNotation: *move* text is not long algebraic.
            NoPieceAtSquare: the board has nothing on the origin square.
        """
        with self._lock:
            if self._phase != GamePhase.AWAITING_MOVE:
                return False
            if self._board.active_player != self._human_color:
                return False
            if isinstance(move, str):
                move = Move.parse(move)
            text = self._board.play(move)
            self._emit_move(text)
            self._sync_then_think()
            return True

    def request_best_move(self) -> bool:
        """Ask the engine to search the current position.

        Returns False without sending anything unless a move is awaited;
        a search already in flight is never doubled.
        """
        with self._lock:
            if self._phase != GamePhase.AWAITING_MOVE:
                return False
            self._search()
            return True

    def start_self_play(self) -> None:
        with self._lock:
            if self._phase == GamePhase.GAME_OVER:
                _LOGGER.info("Self-play not started: game is over")
                return
            if self._phase == GamePhase.NOT_STARTED:
                self.new_game()
            self._self_play = True
            _LOGGER.info("Self-play started")
            # Already thinking: the pending answer continues the loop
            if self._phase == GamePhase.AWAITING_MOVE:
                self._sync_then_think()

    def stop_self_play(self) -> None:
        with self._lock:
            if self._self_play:
                _LOGGER.info("Self-play stopped")
            self._self_play = False

    def undo_last_move(self) -> bool:
        """Take back the last engine reply and the move before it."""
        with self._lock:
            if self._self_play or self._phase == GamePhase.THINKING:
                return False
            if len(self._board.move_history) < 2:
                return False
            self._board.revert_last_move()
            self._board.revert_last_move()
            self._generation += 1
            self._watch(self._position_command())
            self._set_phase(GamePhase.AWAITING_MOVE)
            if self._board.active_player != self._human_color:
                self._search()
            return True

    def quit(self) -> None:
        with self._lock:
            self._self_play = False
            self._generation += 1
        self._session.quit()

    # ── Engine round-trips ───────────────────────────────────────────────

    def _restart(self, human_color: Color) -> None:
        self._human_color = human_color
        self._self_play = False
        self._generation += 1
        self._watch(self._session.dialect.new_game_command())
        self._watch(self._position_command())
        self._set_phase(GamePhase.AWAITING_MOVE)
        if self._board.active_player != human_color:
            self._search()

    def _position_command(self) -> EngineCommand:
        return self._session.dialect.position_command(
            self._board.initial_fen, self._board.move_history
        )

    def _search(self) -> None:
        self._set_phase(GamePhase.THINKING)
        command = self._session.dialect.go_command(self._think_time_ms)
        self._send(command, self._on_best_move)

    def _sync_then_think(self) -> None:
        self._set_phase(GamePhase.THINKING)
        self._send(self._position_command(), self._on_position_synced)

    def _send(
        self,
        command: EngineCommand,
        handler: Callable[[int, str], None],
    ) -> None:
        future = self._session.submit(command)
        future.add_done_callback(partial(self._deliver, self._generation, handler))

    def _deliver(
        self, generation: int, handler: Callable[[int, str], None], future: Future[str]
    ) -> None:
        exc = future.exception() if not future.cancelled() else None
        with self._lock:
            if generation != self._generation:
                return
            if future.cancelled() or exc is not None:
                _LOGGER.warning("Engine command failed: %s", exc or "cancelled")
                self._finish(GameOverReason.ENGINE_LOST, ask_engine=False)
                return
            handler(generation, future.result())

    def _on_position_synced(self, _generation: int, _response: str) -> None:
        if self._phase == GamePhase.THINKING:
            self._search()

    def _on_best_move(self, _generation: int, response: str) -> None:
        try:
            move_text = self._session.dialect.parse_best_move(response)
        except ValueError:
            _LOGGER.warning("Unexpected search response: %s", response)
            move_text = None

        if move_text is None:
            self._finish(GameOverReason.NO_MOVE)
            return
        if self._board.halfmove_clock >= self._draw_halfmove_threshold:
            self._finish(GameOverReason.HALFMOVE_LIMIT)
            return

        try:
            text = self._board.play(Move.parse(move_text))
        except (ChessBridgeError, ValueError) as exc:
            _LOGGER.error("Cannot apply engine move %s: %s", move_text, exc)
            self._finish(GameOverReason.BOARD_DESYNC)
            return

        self._set_phase(GamePhase.AWAITING_MOVE)
        self._emit_move(text)
        if self._self_play and self._phase == GamePhase.AWAITING_MOVE:
            self._sync_then_think()

    def _finish(self, reason: GameOverReason, *, ask_engine: bool = True) -> None:
        self._self_play = False
        self._generation += 1
        if ask_engine:
            self._watch(self._session.dialect.diagnostic_command())
        _LOGGER.info(
            "Game over (%s) after %d plies",
            reason.name,
            len(self._board.move_history),
        )
        for row in self._board.diagram():
            _LOGGER.info("%s", row)
        self._set_phase(GamePhase.GAME_OVER)
        result = GameOver(reason, self._board.fen)
        for cb in self.events.on_game_over:
            cb(result)

    def _watch(self, command: EngineCommand) -> None:
        """Send *command* without caring about its answer beyond failures."""
        self._session.submit(command).add_done_callback(
            partial(_log_failure, command)
        )

    # ── Event helpers ────────────────────────────────────────────────────

    def _set_phase(self, phase: GamePhase) -> None:
        if phase == self._phase:
            return
        self._phase = phase
        for cb in self.events.on_phase_changed:
            cb(phase)

    def _emit_move(self, text: str) -> None:
        for cb in self.events.on_move:
            cb(text, self._board)


def _log_failure(command: EngineCommand, future: Future[str]) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        _LOGGER.warning("Engine command %r failed: %s", command.text, exc)
