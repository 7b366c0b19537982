"""Qt bridge that re-emits session and game callbacks as queued signals."""

from __future__ import annotations

from typing import TYPE_CHECKING

from PyQt6.QtCore import QObject, pyqtSignal

from chessbridge.engine.events import CommandCompleted, VerboseLine

if TYPE_CHECKING:
    from chessbridge.core.board import BoardState
    from chessbridge.engine.session import EngineSession
    from chessbridge.game.controller import GameController
    from chessbridge.game.interfaces import GameOver, GamePhase


class EngineEventBridge(QObject):
    """Thread-affine signal hub living on the UI thread.

    Session and controller callbacks fire on worker threads; emitting from
    there lets Qt deliver them to slots on the bridge's own thread.
    """

    command_completed = pyqtSignal(str, str)  # command text, response line
    verbose_line = pyqtSignal(str)
    move_applied = pyqtSignal(str, str)  # move text, FEN after the move
    game_over = pyqtSignal(str, str)  # reason name, final FEN
    phase_changed = pyqtSignal(int)

    def attach_session(self, session: EngineSession) -> None:
        session.events.on_command_completed.append(self._on_command_completed)
        session.events.on_verbose_line.append(self._on_verbose_line)

    def attach_controller(self, controller: GameController) -> None:
        controller.events.on_move.append(self._on_move)
        controller.events.on_game_over.append(self._on_game_over)
        controller.events.on_phase_changed.append(self._on_phase_changed)

    # ── Callback adapters ────────────────────────────────────────────────

    def _on_command_completed(self, event: CommandCompleted) -> None:
        self.command_completed.emit(event.command.text, event.response)

    def _on_verbose_line(self, event: VerboseLine) -> None:
        self.verbose_line.emit(event.line)

    def _on_move(self, move_text: str, board: BoardState) -> None:
        self.move_applied.emit(move_text, board.fen)

    def _on_game_over(self, result: GameOver) -> None:
        self.game_over.emit(result.reason.name, result.fen)

    def _on_phase_changed(self, phase: GamePhase) -> None:
        self.phase_changed.emit(int(phase))
