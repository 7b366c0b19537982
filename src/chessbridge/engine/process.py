"""Child-process wrapper that turns an engine's stdout into a line channel."""

from __future__ import annotations

import logging
import queue
import subprocess
import threading
from collections.abc import Iterator, Sequence
from types import TracebackType

from chessbridge.errors import ChannelClosed, LaunchFailed

_LOGGER = logging.getLogger(__name__)

# Pushed by the reader thread (or quit) when no more lines will come
_EOF = object()


class EngineProcess:
    """One running engine executable.

    A daemon reader thread drains stdout into a queue; :meth:`lines` is the
    single consumer of that queue. Stderr is discarded.
    """

    __slots__ = (
        "_popen",
        "_channel",
        "_reader",
        "_write_lock",
        "_quit_sent",
        "_exhausted",
    )

    def __init__(self, popen: subprocess.Popen[str]) -> None:
        self._popen = popen
        self._channel: queue.Queue[object] = queue.Queue()
        self._write_lock = threading.Lock()
        self._quit_sent = False
        self._exhausted = False
        self._reader = threading.Thread(
            target=self._read_loop,
            name=f"uci-reader-{popen.pid}",
            daemon=True,
        )
        self._reader.start()

    @classmethod
    def start(cls, path: str, args: Sequence[str] = ()) -> EngineProcess:
        """Launch the executable at *path*.

        Raises:
            LaunchFailed: the file is missing, not executable or the OS
                refused to spawn it.
        """
        command = [str(path), *args]
        try:
            popen = subprocess.Popen(
                command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as exc:
            raise LaunchFailed(f"Cannot start engine {path!r}: {exc}") from exc
        _LOGGER.info("Engine started: %s (pid %d)", path, popen.pid)
        return cls(popen)

    # ── Channel ──────────────────────────────────────────────────────────

    def write_line(self, text: str) -> None:
        """Send one command line to the engine.

        Raises:
            ChannelClosed: quit was already sent or the process has exited.
        """
        with self._write_lock:
            self._write_unlocked(text)

    def lines(self) -> Iterator[str]:
        """Yield stdout lines as they arrive; ends when the engine is gone."""
        while not self._exhausted:
            item = self._channel.get()
            if item is _EOF:
                self._exhausted = True
                return
            yield item  # type: ignore[misc]

    # ── Lifecycle ────────────────────────────────────────────────────────

    def quit(self, command: str = "quit") -> None:
        """Send *command* to make the engine exit and stop delivering lines.

        Does not wait; see :meth:`terminate`.
        """
        with self._write_lock:
            if self._quit_sent:
                return
            try:
                self._write_unlocked(command)
            except ChannelClosed:
                pass
            self._quit_sent = True
            stdin = self._popen.stdin
            if stdin is not None:
                try:
                    stdin.close()
                except OSError:
                    pass
        self._channel.put(_EOF)

    def terminate(self, timeout: float = 2.0) -> int:
        """Quit, wait up to *timeout* seconds, then kill. Returns exit code."""
        self.quit()
        try:
            code = self._popen.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            _LOGGER.warning(
                "Engine pid %d ignored quit for %.1fs, killing", self._popen.pid, timeout
            )
            self._popen.kill()
            code = self._popen.wait()
        self._reader.join(timeout=timeout)
        _LOGGER.info("Engine pid %d exited with code %d", self._popen.pid, code)
        return code

    @property
    def pid(self) -> int:
        return self._popen.pid

    @property
    def is_running(self) -> bool:
        return self._popen.poll() is None

    @property
    def returncode(self) -> int | None:
        return self._popen.poll()

    def __enter__(self) -> EngineProcess:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.terminate()

    # ── Internal ─────────────────────────────────────────────────────────

    def _write_unlocked(self, text: str) -> None:
        stdin = self._popen.stdin
        if self._quit_sent or stdin is None or self._popen.poll() is not None:
            raise ChannelClosed("Engine input channel is closed")
        try:
            stdin.write(text + "\n")
            stdin.flush()
        except (OSError, ValueError) as exc:
            raise ChannelClosed(f"Write to engine failed: {exc}") from exc

    def _read_loop(self) -> None:
        stdout = self._popen.stdout
        try:
            if stdout is not None:
                for raw in stdout:
                    self._channel.put(raw.rstrip("\r\n"))
        except (OSError, ValueError) as exc:
            _LOGGER.warning("Engine output read failed: %s", exc)
        finally:
            self._channel.put(_EOF)
