"""chessbridge — keep a local chess board in step with a UCI engine."""

__version__ = "0.1.0"
