"""UCI session: handshake, single-in-flight command admission and routing.

Every command carries the prefix of the engine line that completes it. At
most one command is outstanding at a time; further callers wait on an
admission gate. A dispatcher thread reads engine output, completes the
in-flight command when its prefix shows up and republishes everything else
as :class:`VerboseLine` events.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import IntEnum, auto
from types import TracebackType
from typing import TYPE_CHECKING, Protocol

from chessbridge.engine.events import CommandCompleted, EngineEvent, VerboseLine
from chessbridge.engine.process import EngineProcess
from chessbridge.engine.protocol import EngineCommand, UciDialect
from chessbridge.errors import ChannelClosed, HandshakeFailed

if TYPE_CHECKING:
    from chessbridge.config import EngineSettings

_LOGGER = logging.getLogger(__name__)

DEFAULT_HANDSHAKE_TIMEOUT_S = 10.0


class SessionState(IntEnum):
    """Lifecycle of an :class:`EngineSession`."""

    UNINITIALIZED = auto()
    HANDSHAKING = auto()
    IDLE = auto()
    AWAITING_RESPONSE = auto()
    CLOSED = auto()


class EngineChannel(Protocol):
    """What the session needs from a running engine."""

    def write_line(self, text: str) -> None: ...

    def lines(self) -> Iterator[str]: ...

    def quit(self, command: str = "quit") -> None: ...

    def terminate(self, timeout: float = 2.0) -> int: ...


@dataclass
class SessionEvents:
    """Callback registry for session notifications (called on the dispatcher)."""

    on_command_completed: list[Callable[[CommandCompleted], None]] = field(
        default_factory=list
    )
    on_verbose_line: list[Callable[[VerboseLine], None]] = field(
        default_factory=list
    )

    def clear(self) -> None:
        self.on_command_completed.clear()
        self.on_verbose_line.clear()


@dataclass(slots=True)
class _Pending:
    command: EngineCommand
    expected: str
    future: Future[str]


class EngineSession:
    """Conversation with one UCI engine.

    Build one with :meth:`launch` (or :meth:`from_settings`), which spawns
    the engine and completes the handshake before returning. A session
    constructed directly around an :class:`EngineChannel` accepts no
    commands until :meth:`start` has run.

    Usage::

        with EngineSession.launch("/usr/bin/stockfish") as session:
            session.set_position(moves=["e2e4"])
            print(session.go(500))

    :meth:`send_command` blocks the calling thread; event handlers run on
    the dispatcher thread and must use :meth:`send_command_async` instead,
    otherwise they wait for a line only they could deliver.
    """

    __slots__ = (
        "_process",
        "_dialect",
        "_handshake_timeout",
        "_state",
        "_gate",
        "_lock",
        "_pending",
        "_routing",
        "_last_response",
        "_executor",
        "_dispatcher",
        "events",
    )

    def __init__(
        self,
        process: EngineChannel,
        *,
        dialect: UciDialect | None = None,
        handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT_S,
    ) -> None:
        self._process = process
        self._dialect = dialect or UciDialect()
        self._handshake_timeout = handshake_timeout
        self._state = SessionState.UNINITIALIZED
        self._gate = threading.Semaphore(1)
        self._lock = threading.Lock()
        self._pending: _Pending | None = None
        self._routing = True
        self._last_response: str | None = None
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="uci-submit"
        )
        self._dispatcher: threading.Thread | None = None
        self.events = SessionEvents()

    # ── Construction helpers ─────────────────────────────────────────────

    @classmethod
    def launch(
        cls,
        path: str,
        args: Sequence[str] = (),
        *,
        dialect: UciDialect | None = None,
        handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT_S,
    ) -> EngineSession:
        """Start the engine at *path* and complete the handshake.

        Raises:
            LaunchFailed: the executable could not be started.
            HandshakeFailed: the engine never answered the handshake.
        """
        process = EngineProcess.start(path, args)
        session = cls(process, dialect=dialect, handshake_timeout=handshake_timeout)
        try:
            session.start()
        except HandshakeFailed:
            process.terminate()
            raise
        return session

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> EngineSession:
        """Launch using *settings* and apply its engine options."""
        session = cls.launch(
            settings.engine_path,
            settings.engine_args,
            handshake_timeout=settings.handshake_timeout_s,
        )
        try:
            session.configure(settings.options)
        except ChannelClosed:
            session.close()
            raise
        return session

    def start(self) -> None:
        """Run the dispatcher and the ``isready`` / ``uci`` handshake."""
        with self._lock:
            if self._state != SessionState.UNINITIALIZED:
                raise RuntimeError(f"Session already started ({self._state.name})")
            self._state = SessionState.HANDSHAKING
        self._dispatcher = threading.Thread(
            target=self._dispatch_loop, name="uci-dispatcher", daemon=True
        )
        self._dispatcher.start()

        for command in self._dialect.handshake():
            try:
                self._execute(command, self._handshake_timeout)
            except TimeoutError as exc:
                self._abandon()
                raise HandshakeFailed(
                    f"No {command.expected_prefix!r} within "
                    f"{self._handshake_timeout:.1f}s"
                ) from exc
            except HandshakeFailed:
                self._abandon()
                raise
            except ChannelClosed as exc:
                self._abandon()
                raise HandshakeFailed(
                    f"Engine closed before {command.expected_prefix!r}"
                ) from exc

        with self._lock:
            if self._state == SessionState.HANDSHAKING:
                self._state = SessionState.IDLE
        _LOGGER.info("Engine handshake complete")

    # ── Command submission ───────────────────────────────────────────────

    def send_command(
        self, text: str, expected_prefix: str = "", timeout: float | None = None
    ) -> str:
        """Write *text* and block until a line starting with the prefix arrives.

        With an empty *expected_prefix* the session appends a readiness check
        and returns its ``readyok`` line.

        Raises:
            ChannelClosed: the session is closed or the engine went away.
            TimeoutError: *timeout* elapsed (the command stays in flight).
        """
        return self._execute(EngineCommand(text, expected_prefix), timeout)

    def send_command_async(self, text: str, expected_prefix: str = "") -> Future[str]:
        """Queue *text* for submission; admission order equals call order."""
        return self.submit(EngineCommand(text, expected_prefix))

    def submit(self, command: EngineCommand) -> Future[str]:
        """Queue a prebuilt :class:`EngineCommand` (see :meth:`send_command_async`)."""
        if self.state == SessionState.CLOSED:
            future: Future[str] = Future()
            future.set_exception(ChannelClosed("Engine session is closed"))
            return future
        try:
            return self._executor.submit(self._execute, command, None)
        except RuntimeError:
            # Executor already shut down by quit()
            future = Future()
            future.set_exception(ChannelClosed("Engine session is closed"))
            return future

    # ── Convenience operations ───────────────────────────────────────────

    def new_game(self) -> None:
        self._execute(self._dialect.new_game_command(), None)

    def set_position(self, fen: str | None = None, moves: Iterable[str] = ()) -> None:
        """Send ``position``; *fen* None means the standard start."""
        self._execute(self._dialect.position_command(fen, moves), None)

    def set_option(self, name: str, value: object | None = None) -> None:
        self._execute(self._dialect.set_option_command(name, value), None)

    def configure(self, options: Mapping[str, object | None]) -> None:
        for name, value in options.items():
            self.set_option(name, value)

    def go(self, movetime_ms: int) -> str:
        """Search for *movetime_ms* and return the raw ``bestmove`` line."""
        return self._execute(self._dialect.go_command(movetime_ms), None)

    def diagnostic(self) -> str:
        """Ask the engine to print its board; the dump arrives as verbose lines."""
        return self._execute(self._dialect.diagnostic_command(), None)

    def reset(self, initial_fen: str | None = None) -> None:
        """``ucinewgame`` followed by a fresh position."""
        self.new_game()
        self.set_position(initial_fen)

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def dialect(self) -> UciDialect:
        return self._dialect

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def last_response(self) -> str | None:
        """Response line of the most recently completed command."""
        return self._last_response

    @property
    def is_closed(self) -> bool:
        return self.state == SessionState.CLOSED

    # ── Shutdown ─────────────────────────────────────────────────────────

    def quit(self) -> None:
        """Detach listeners, stop routing and tell the engine to quit."""
        with self._lock:
            was_closed = self._state == SessionState.CLOSED
            self._routing = False
            self._state = SessionState.CLOSED
            pending, self._pending = self._pending, None
        self.events.clear()
        self._process.quit(self._dialect.quit)
        if pending is not None:
            self._fail(pending, ChannelClosed("Engine session quit"))
        # Queued submissions still run and fail fast with ChannelClosed
        self._executor.shutdown(wait=False)
        if not was_closed:
            _LOGGER.info("Engine session closed")

    def close(self, timeout: float = 2.0) -> None:
        """Quit and wait for the engine process to exit."""
        self.quit()
        self._process.terminate(timeout)
        dispatcher = self._dispatcher
        if dispatcher is not None and dispatcher is not threading.current_thread():
            dispatcher.join(timeout)

    def __enter__(self) -> EngineSession:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # ── Internal: admission ──────────────────────────────────────────────

    def _execute(self, command: EngineCommand, timeout: float | None) -> str:
        if timeout is None:
            self._gate.acquire()
        elif not self._gate.acquire(timeout=timeout):
            raise TimeoutError(f"Timed out waiting to send {command.text!r}")

        expected = command.expected_prefix or self._dialect.readyok
        pending = _Pending(command, expected, Future())
        with self._lock:
            if self._state == SessionState.CLOSED:
                self._gate.release()
                raise ChannelClosed("Engine session is closed")
            if self._state == SessionState.UNINITIALIZED:
                self._gate.release()
                raise RuntimeError("Session not started")
            self._pending = pending
            if self._state == SessionState.IDLE:
                self._state = SessionState.AWAITING_RESPONSE

        try:
            _LOGGER.debug("=> %s", command.text)
            self._process.write_line(command.text)
            if command.synchronize_only:
                _LOGGER.debug("=> %s", self._dialect.isready)
                self._process.write_line(self._dialect.isready)
        except ChannelClosed as exc:
            if self._take_pending(pending):
                self._fail(pending, exc)

        return pending.future.result(timeout)

    def _take_pending(self, pending: _Pending) -> bool:
        """Clear the slot if it still holds *pending*. Caller releases the gate."""
        with self._lock:
            if self._pending is not pending:
                return False
            self._pending = None
            if self._state == SessionState.AWAITING_RESPONSE:
                self._state = SessionState.IDLE
            return True

    def _fail(self, pending: _Pending, exc: BaseException) -> None:
        if not pending.future.done():
            pending.future.set_exception(exc)
        self._gate.release()

    def _abandon(self) -> None:
        """Handshake failure: close without waiting for the engine."""
        self.quit()

    # ── Internal: dispatcher ─────────────────────────────────────────────

    def _dispatch_loop(self) -> None:
        for raw in self._process.lines():
            if not self._routing:
                break
            self._route(self._dialect.normalize(raw))
        self._output_ended()

    def _route(self, line: str) -> None:
        _LOGGER.debug("<= %s", line)
        with self._lock:
            pending = self._pending
            matched = pending is not None and line.startswith(pending.expected)
        if not matched or pending is None:
            self._publish(VerboseLine(line))
            return

        if not self._take_pending(pending):
            return
        self._last_response = line
        self._publish(CommandCompleted(pending.command, line))
        pending.future.set_result(line)
        self._gate.release()

    def _output_ended(self) -> None:
        with self._lock:
            if not self._routing:
                return
            handshaking = self._state == SessionState.HANDSHAKING
            self._state = SessionState.CLOSED
            pending, self._pending = self._pending, None
        _LOGGER.warning("Engine output ended unexpectedly")
        if pending is not None:
            message = f"Engine output ended while waiting for {pending.expected!r}"
            error = HandshakeFailed(message) if handshaking else ChannelClosed(message)
            self._fail(pending, error)

    def _publish(self, event: EngineEvent) -> None:
        if isinstance(event, CommandCompleted):
            callbacks: list[Callable[..., None]] = list(
                self.events.on_command_completed
            )
        else:
            callbacks = list(self.events.on_verbose_line)
        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                _LOGGER.exception("Engine event handler failed for %r", event)
