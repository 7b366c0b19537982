"""Typed events republished by the engine session.

Frozen so they can be handed across threads (dispatcher → UI bridge)
without copying.
"""

from __future__ import annotations

from dataclasses import dataclass

from chessbridge.engine.protocol import EngineCommand


@dataclass(frozen=True, slots=True)
class CommandCompleted:
    """The in-flight command saw its expected response line."""

    command: EngineCommand
    response: str


@dataclass(frozen=True, slots=True)
class VerboseLine:
    """Any engine output that did not complete a command (info, options…)."""

    line: str


# Union type for type-safe pattern matching in consumers
EngineEvent = CommandCompleted | VerboseLine
