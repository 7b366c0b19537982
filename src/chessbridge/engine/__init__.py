"""Engine layer: UCI process management and command/response sessions.

The Qt bridge lives in :mod:`chessbridge.engine.qt_bridge` and is not
imported here, so headless users do not need a Qt platform plugin.
"""

from chessbridge.engine.events import CommandCompleted, EngineEvent, VerboseLine
from chessbridge.engine.process import EngineProcess
from chessbridge.engine.protocol import EngineCommand, UciDialect
from chessbridge.engine.session import EngineSession, SessionEvents, SessionState

__all__ = [
    "CommandCompleted",
    "EngineCommand",
    "EngineEvent",
    "EngineProcess",
    "EngineSession",
    "SessionEvents",
    "SessionState",
    "UciDialect",
    "VerboseLine",
]
