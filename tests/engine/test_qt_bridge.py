"""Tests for the Qt signal bridge."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

from PyQt6.QtTest import QSignalSpy

from chessbridge.core.board import BoardState
from chessbridge.core.move import Move
from chessbridge.engine.events import CommandCompleted, VerboseLine
from chessbridge.engine.protocol import EngineCommand
from chessbridge.engine.qt_bridge import EngineEventBridge
from chessbridge.engine.session import SessionEvents
from chessbridge.game.controller import GameEvents
from chessbridge.game.interfaces import GameOver, GameOverReason, GamePhase


def _session_stub() -> Any:
    return SimpleNamespace(events=SessionEvents())


def _controller_stub() -> Any:
    return SimpleNamespace(events=GameEvents())


class TestSessionSignals:
    def test_command_completed(self) -> None:
        session = _session_stub()
        bridge = EngineEventBridge()
        bridge.attach_session(session)
        spy = QSignalSpy(bridge.command_completed)

        for cb in session.events.on_command_completed:
            cb(CommandCompleted(EngineCommand("go movetime 5", "bestmove"), "bestmove e2e4"))

        assert len(spy) == 1
        assert spy[0][0] == "go movetime 5"
        assert spy[0][1] == "bestmove e2e4"

    def test_verbose_line(self) -> None:
        session = _session_stub()
        bridge = EngineEventBridge()
        bridge.attach_session(session)
        spy = QSignalSpy(bridge.verbose_line)

        for cb in session.events.on_verbose_line:
            cb(VerboseLine("info depth 4"))

        assert len(spy) == 1
        assert spy[0][0] == "info depth 4"


class TestControllerSignals:
    def test_move_and_phase(self) -> None:
        controller = _controller_stub()
        bridge = EngineEventBridge()
        bridge.attach_controller(controller)
        moves = QSignalSpy(bridge.move_applied)
        phases = QSignalSpy(bridge.phase_changed)

        board = BoardState()
        text = board.play(Move.parse("e2e4"))
        for cb in controller.events.on_move:
            cb(text, board)
        for cb in controller.events.on_phase_changed:
            cb(GamePhase.THINKING)

        assert len(moves) == 1
        assert moves[0][0] == "e2e4"
        assert moves[0][1] == board.fen
        assert len(phases) == 1
        assert phases[0][0] == int(GamePhase.THINKING)

    def test_game_over(self) -> None:
        controller = _controller_stub()
        bridge = EngineEventBridge()
        bridge.attach_controller(controller)
        spy = QSignalSpy(bridge.game_over)

        fen = "8/8/8/8/8/8/8/8 w - - 0 1"
        for cb in controller.events.on_game_over:
            cb(GameOver(GameOverReason.NO_MOVE, fen))

        assert len(spy) == 1
        assert spy[0][0] == "NO_MOVE"
        assert spy[0][1] == fen

