"""Engine settings loaded from a YAML file.

Example ``engine.yaml``::

    engine:
      path: /usr/games/stockfish
      args: []
      handshake_timeout_s: 10
      options:
        Hash: 64
        Threads: 2
    game:
      think_time_ms: 250
      draw_halfmove_threshold: 50
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from chessbridge.engine.session import DEFAULT_HANDSHAKE_TIMEOUT_S
from chessbridge.game.controller import (
    DEFAULT_DRAW_HALFMOVE_THRESHOLD,
    DEFAULT_THINK_TIME_MS,
)


@dataclass
class EngineSettings:
    """Everything needed to launch an engine and run games against it."""

    engine_path: str
    engine_args: list[str] = field(default_factory=list)
    think_time_ms: int = DEFAULT_THINK_TIME_MS
    draw_halfmove_threshold: int = DEFAULT_DRAW_HALFMOVE_THRESHOLD
    handshake_timeout_s: float = DEFAULT_HANDSHAKE_TIMEOUT_S
    # Sent as ``setoption`` after the handshake; None means a button option
    options: dict[str, str | None] = field(default_factory=dict)


def load_settings(path: str | Path = "engine.yaml") -> EngineSettings:
    """
    Load and validate an engine settings file.

    Raises:
        FileNotFoundError: the file is missing.
        ValueError: required fields are absent or invalid.
    """
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(f"Settings file not found: {cfg_path.resolve()}")

    with cfg_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    try:
        engine_raw = raw.get("engine") or {}
        game_raw = raw.get("game") or {}
        options_raw = engine_raw.get("options") or {}
        settings = EngineSettings(
            engine_path=str(engine_raw["path"]),
            engine_args=[str(a) for a in engine_raw.get("args") or []],
            think_time_ms=int(game_raw.get("think_time_ms", DEFAULT_THINK_TIME_MS)),
            draw_halfmove_threshold=int(
                game_raw.get(
                    "draw_halfmove_threshold", DEFAULT_DRAW_HALFMOVE_THRESHOLD
                )
            ),
            handshake_timeout_s=float(
                engine_raw.get("handshake_timeout_s", DEFAULT_HANDSHAKE_TIMEOUT_S)
            ),
            options={
                str(name): _option_value(value) for name, value in options_raw.items()
            },
        )
    except (AttributeError, KeyError, TypeError) as exc:
        raise ValueError(f"Invalid settings structure in {cfg_path}: {exc}") from exc

    _validate(settings)
    return settings


def _validate(settings: EngineSettings) -> None:
    if not settings.engine_path:
        raise ValueError("engine.path must not be empty")
    if settings.think_time_ms <= 0:
        raise ValueError("game.think_time_ms must be > 0")
    if settings.draw_halfmove_threshold <= 0:
        raise ValueError("game.draw_halfmove_threshold must be > 0")
    if settings.handshake_timeout_s <= 0:
        raise ValueError("engine.handshake_timeout_s must be > 0")


def _option_value(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
