"""Tests for EngineSession admission, routing and lifecycle."""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from chessbridge.config import load_settings
from chessbridge.engine.events import CommandCompleted, VerboseLine
from chessbridge.engine.protocol import EngineCommand, UciDialect
from chessbridge.engine.session import EngineSession, SessionState
from chessbridge.errors import ChannelClosed, HandshakeFailed


def _uci_script(text: str) -> list[str]:
    if text == "isready":
        return ["readyok"]
    if text == "uci":
        return ["id name FakeEngine", "uciok"]
    if text.startswith("go"):
        return ["info depth 1 score cp 13", "bestmove e7e5 ponder g1f3"]
    return []


class FakeChannel:
    """In-memory engine: answers each written line through *script*."""

    def __init__(self, script: Callable[[str], list[str]] = _uci_script) -> None:
        self.written: list[str] = []
        self.quit_called = False
        self.quit_command: str | None = None
        self.terminated = False
        self._script = script
        self._queue: queue.Queue[str | None] = queue.Queue()
        self._closed = False

    def write_line(self, text: str) -> None:
        if self._closed:
            raise ChannelClosed("fake channel closed")
        self.written.append(text)
        for line in self._script(text):
            self._queue.put(line)

    def emit(self, *lines: str) -> None:
        for line in lines:
            self._queue.put(line)

    def end(self) -> None:
        self._closed = True
        self._queue.put(None)

    def lines(self) -> Iterator[str]:
        while True:
            item = self._queue.get()
            if item is None:
                return
            yield item

    def quit(self, command: str = "quit") -> None:
        self.quit_called = True
        self.quit_command = command
        self.end()

    def terminate(self, timeout: float = 2.0) -> int:
        self.terminated = True
        self.quit()
        return 0


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        time.sleep(0.01)


def _started(channel: FakeChannel | None = None) -> tuple[EngineSession, FakeChannel]:
    channel = channel or FakeChannel()
    session = EngineSession(channel, handshake_timeout=2.0)
    session.start()
    return session, channel


class TestHandshake:
    def test_handshake_order(self) -> None:
        session, channel = _started()
        try:
            assert channel.written == ["isready", "uci"]
            assert session.state == SessionState.IDLE
            assert session.last_response == "uciok"
        finally:
            session.close()

    def test_engine_id_is_verbose(self) -> None:
        channel = FakeChannel()
        session = EngineSession(channel)
        seen: list[str] = []
        session.events.on_verbose_line.append(lambda e: seen.append(e.line))
        session.start()
        try:
            assert seen == ["id name FakeEngine"]
        finally:
            session.close()

    def test_engine_gone(self) -> None:
        channel = FakeChannel()
        channel.end()
        session = EngineSession(channel)
        with pytest.raises(HandshakeFailed):
            session.start()
        assert session.state == SessionState.CLOSED

    def test_timeout(self) -> None:
        session = EngineSession(FakeChannel(lambda _text: []), handshake_timeout=0.2)
        with pytest.raises(HandshakeFailed):
            session.start()
        assert session.is_closed

    def test_commands_need_start(self) -> None:
        session = EngineSession(FakeChannel())
        with pytest.raises(RuntimeError):
            session.send_command("isready", "readyok")

    def test_start_twice(self) -> None:
        session, _channel = _started()
        try:
            with pytest.raises(RuntimeError):
                session.start()
        finally:
            session.close()


class TestSendCommand:
    def test_returns_matching_line(self) -> None:
        session, _channel = _started()
        try:
            assert session.send_command("go movetime 10", "bestmove") == (
                "bestmove e7e5 ponder g1f3"
            )
            assert session.state == SessionState.IDLE
        finally:
            session.close()

    def test_non_matching_lines_are_verbose(self) -> None:
        session, _channel = _started()
        verbose: list[str] = []
        completed: list[CommandCompleted] = []
        session.events.on_verbose_line.append(lambda e: verbose.append(e.line))
        session.events.on_command_completed.append(completed.append)
        try:
            session.send_command("go movetime 10", "bestmove")
            assert verbose == ["info depth 1 score cp 13"]
            assert completed == [
                CommandCompleted(
                    EngineCommand("go movetime 10", "bestmove"),
                    "bestmove e7e5 ponder g1f3",
                )
            ]
        finally:
            session.close()

    def test_empty_prefix_synchronizes(self) -> None:
        session, channel = _started()
        try:
            assert session.send_command("ucinewgame") == "readyok"
            assert channel.written[-2:] == ["ucinewgame", "isready"]
        finally:
            session.close()

    def test_idle_lines_are_verbose(self) -> None:
        session, channel = _started()
        verbose: list[VerboseLine] = []
        session.events.on_verbose_line.append(verbose.append)
        try:
            channel.emit("info string hello")
            wait_until(lambda: bool(verbose))
            assert verbose == [VerboseLine("info string hello")]
        finally:
            session.close()

    def test_spike_no_move_normalized(self) -> None:
        def script(text: str) -> list[str]:
            if text.startswith("go"):
                return ["Error: Fatal no best move"]
            return _uci_script(text)

        session, _channel = _started(FakeChannel(script))
        try:
            assert session.go(10) == "bestmove (none)"
        finally:
            session.close()

    def test_handler_error_does_not_stop_routing(self) -> None:
        session, _channel = _started()

        def boom(_event: CommandCompleted) -> None:
            raise RuntimeError("handler failure")

        session.events.on_command_completed.append(boom)
        try:
            assert session.send_command("isready", "readyok") == "readyok"
            assert session.send_command("isready", "readyok") == "readyok"
        finally:
            session.close()


class TestSingleFlight:
    def test_second_command_waits_for_first(self) -> None:
        def script(text: str) -> list[str]:
            if text.startswith("go"):
                return []  # answered manually below
            return _uci_script(text)

        session, channel = _started(FakeChannel(script))
        order: list[str] = []
        session.events.on_command_completed.append(
            lambda e: order.append(e.command.text)
        )
        try:
            first = session.send_command_async("go movetime 1000", "bestmove")
            second = session.send_command_async("ucinewgame")
            wait_until(lambda: channel.written[-1] == "go movetime 1000")
            time.sleep(0.05)
            assert channel.written[-1] == "go movetime 1000"
            assert session.state == SessionState.AWAITING_RESPONSE
            assert not second.done()

            channel.emit("bestmove e2e4")
            assert first.result(timeout=2.0) == "bestmove e2e4"
            assert second.result(timeout=2.0) == "readyok"
            assert channel.written[-2:] == ["ucinewgame", "isready"]
            assert order == ["go movetime 1000", "ucinewgame"]
        finally:
            session.close()

    def test_concurrent_callers_get_their_own_response(self) -> None:
        def script(text: str) -> list[str]:
            if text.startswith("go movetime "):
                return ["info depth 1", f"bestmove {text.split()[-1]}"]
            return _uci_script(text)

        session, channel = _started(FakeChannel(script))
        completed: list[str] = []
        session.events.on_command_completed.append(
            lambda e: completed.append(e.command.text)
        )
        results: dict[int, str] = {}

        def worker(n: int) -> None:
            results[n] = session.send_command(f"go movetime {n}", "bestmove")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(1, 9)]
        try:
            for t in threads:
                t.start()
            for t in threads:
                t.join(timeout=5.0)
            assert results == {n: f"bestmove {n}" for n in range(1, 9)}
            assert completed == [t for t in channel.written if t.startswith("go")]
        finally:
            session.close()

    def test_unrelated_readyok_does_not_complete_search(self) -> None:
        session, channel = _started(FakeChannel(lambda t: _uci_script(t) if t != "go movetime 5" else []))
        try:
            pending = session.send_command_async("go movetime 5", "bestmove")
            wait_until(lambda: "go movetime 5" in channel.written)
            channel.emit("readyok")
            time.sleep(0.05)
            assert not pending.done()
            channel.emit("bestmove a2a3")
            assert pending.result(timeout=2.0) == "bestmove a2a3"
        finally:
            session.close()


class TestClosing:
    def test_output_end_fails_pending(self) -> None:
        session, channel = _started(FakeChannel(lambda t: _uci_script(t) if t != "go movetime 5" else []))
        pending = session.send_command_async("go movetime 5", "bestmove")
        queued = session.send_command_async("isready", "readyok")
        wait_until(lambda: "go movetime 5" in channel.written)
        channel.end()
        with pytest.raises(ChannelClosed):
            pending.result(timeout=2.0)
        with pytest.raises(ChannelClosed):
            queued.result(timeout=2.0)
        assert session.state == SessionState.CLOSED
        with pytest.raises(ChannelClosed):
            session.send_command("isready", "readyok")

    def test_quit_unsubscribes_first(self) -> None:
        session, channel = _started()
        session.events.on_verbose_line.append(lambda e: None)
        session.events.on_command_completed.append(lambda e: None)
        session.quit()
        assert session.events.on_verbose_line == []
        assert session.events.on_command_completed == []
        assert channel.quit_called
        assert session.state == SessionState.CLOSED

    def test_quit_uses_dialect_token(self) -> None:
        channel = FakeChannel()
        session = EngineSession(channel, dialect=UciDialect(quit="exit"))
        session.start()
        session.quit()
        assert channel.quit_command == "exit"

    def test_commands_after_quit(self) -> None:
        session, _channel = _started()
        session.quit()
        with pytest.raises(ChannelClosed):
            session.send_command("isready", "readyok")
        future = session.send_command_async("isready", "readyok")
        with pytest.raises(ChannelClosed):
            future.result(timeout=1.0)

    def test_context_manager(self) -> None:
        channel = FakeChannel()
        with EngineSession(channel) as session:
            session.start()
        assert channel.terminated
        assert session.is_closed


class TestConvenience:
    def test_reset_and_position(self) -> None:
        session, channel = _started()
        try:
            session.reset()
            session.set_position(moves=["e2e4"])
            assert channel.written[2:] == [
                "ucinewgame",
                "isready",
                "position startpos",
                "isready",
                "position startpos moves e2e4",
                "isready",
            ]
        finally:
            session.close()

    def test_options_and_diagnostic(self) -> None:
        session, channel = _started()
        try:
            session.configure({"Hash": "64", "Clear Hash": None})
            assert session.diagnostic() == "readyok"
            assert channel.written[2:] == [
                "setoption name Hash value 64",
                "isready",
                "setoption name Clear Hash",
                "isready",
                "d",
                "isready",
            ]
        finally:
            session.close()


class TestRealProcess:
    def test_launch_and_search(self, fake_engine_cmd: list[str]) -> None:
        exe, *args = fake_engine_cmd
        with EngineSession.launch(exe, [*args, "--replies", "e7e5"]) as session:
            session.new_game()
            session.set_position(moves=["e2e4"])
            assert session.go(50) == "bestmove e7e5"
            assert session.diagnostic() == "readyok"
            assert session.go(50) == "bestmove (none)"

    def test_spike_engine(self, fake_engine_cmd: list[str]) -> None:
        exe, *args = fake_engine_cmd
        with EngineSession.launch(exe, [*args, "--spike"]) as session:
            assert session.go(10) == "bestmove (none)"

    def test_silent_engine(self, fake_engine_cmd: list[str]) -> None:
        exe, *args = fake_engine_cmd
        with pytest.raises(HandshakeFailed):
            EngineSession.launch(exe, [*args, "--silent"], handshake_timeout=0.5)

    def test_engine_dies_mid_search(self, fake_engine_cmd: list[str]) -> None:
        exe, *args = fake_engine_cmd
        with EngineSession.launch(exe, [*args, "--die-on-go"]) as session:
            with pytest.raises(ChannelClosed):
                session.go(10)
            assert session.is_closed

    def test_from_settings(self, settings_file: Path) -> None:
        settings = load_settings(settings_file)
        with EngineSession.from_settings(settings) as session:
            assert session.state == SessionState.IDLE
            assert session.send_command("isready", "readyok") == "readyok"
