"""Game layer — controller, phases and game-over notifications."""

from chessbridge.game.controller import GameController, GameEvents
from chessbridge.game.interfaces import (
    GameOver,
    GameOverReason,
    GamePhase,
    IEngineSession,
    IGameController,
)

__all__ = [
    "GameController",
    "GameEvents",
    "GameOver",
    "GameOverReason",
    "GamePhase",
    "IEngineSession",
    "IGameController",
]
