"""
Unit tests for a single pooled engine instance.
"""

from collections.abc import Iterator

import pytest

from analysis_service.config import EngineConfig
from analysis_service.engine import EngineExited, EngineInstance
from analysis_service.protocol import BestMove, InfoLine, encode_handshake
from common import EngineError, EngineStartupError, EngineTimeoutError
from conftest import STARTING_FEN
from fake_engine import FakeEngineSession


def _collect_until_bestmove(instance: EngineInstance, timeout: float = 2.0) -> list:
    events = []
    while True:
        event = instance.next_event(timeout)
        assert event is not None, "engine produced no bestmove"
        events.append(event)
        if isinstance(event, (BestMove, EngineExited)):
            return events


class TestEngineInstanceStart:
    """Tests for handshake and readiness."""

    @pytest.fixture
    def session(self) -> FakeEngineSession:
        return FakeEngineSession()

    @pytest.fixture
    def instance(
        self, session: FakeEngineSession, engine_config: EngineConfig
    ) -> Iterator[EngineInstance]:
        instance = EngineInstance(session, engine_config, name="engine-test")
        yield instance
        instance.close()

    def test_init_not_started(self, instance: EngineInstance) -> None:
        """A new instance is neither ready nor busy."""
        assert not instance.ready
        assert not instance.busy
        assert instance.version == "unknown"

    def test_handshake_order(
        self, instance: EngineInstance, session: FakeEngineSession, engine_config: EngineConfig
    ) -> None:
        """Start sends the handshake in order, ending with isready."""
        instance.start()
        instance.wait_ready(timeout=2.0)

        assert session.commands == encode_handshake(
            engine_config.threads, engine_config.hash_mb, engine_config.multipv
        )
        assert instance.ready
        assert instance.is_alive()
        assert instance.version == "Fake Engine 1.0"

    def test_wait_ready_timeout(self, engine_config: EngineConfig) -> None:
        """An engine that never answers isready times out."""
        instance = EngineInstance(FakeEngineSession(answer_isready=False), engine_config)
        instance.start()

        with pytest.raises(EngineTimeoutError):
            instance.wait_ready(timeout=0.1)

        assert not instance.ready
        instance.close()

    def test_wait_ready_waits_for_outstanding_probe(
        self, instance: EngineInstance, session: FakeEngineSession
    ) -> None:
        """Readiness requires every isready probe to be answered."""
        instance.start()
        instance.wait_ready(timeout=2.0)

        session.answer_isready = False
        instance.send("isready")

        with pytest.raises(EngineTimeoutError):
            instance.wait_ready(timeout=0.1)

        session.emit("readyok")
        instance.wait_ready(timeout=2.0)

    def test_start_failure(self, engine_config: EngineConfig) -> None:
        """A session that cannot launch raises EngineStartupError."""
        instance = EngineInstance(FakeEngineSession(fail_start=True), engine_config)

        with pytest.raises(EngineStartupError):
            instance.start()


class TestEngineInstanceEvents:
    """Tests for analysis events and exits."""

    @pytest.fixture
    def session(self) -> FakeEngineSession:
        return FakeEngineSession(chunk_size=7)

    @pytest.fixture
    def instance(
        self, session: FakeEngineSession, engine_config: EngineConfig
    ) -> Iterator[EngineInstance]:
        instance = EngineInstance(session, engine_config)
        instance.start()
        instance.wait_ready(timeout=2.0)
        yield instance
        instance.close()

    def test_chunked_output_decodes(self, instance: EngineInstance) -> None:
        """Output split into small chunks still yields whole events."""
        instance.send_all([f"position fen {STARTING_FEN}", "go depth 9"])

        events = _collect_until_bestmove(instance)

        assert isinstance(events[0], InfoLine)
        assert events[0].line.depth == 9
        assert events[0].line.pv == ("e2e4", "e7e5")
        assert events[-1] == BestMove("e2e4", "e7e5")

    def test_next_event_timeout(self, instance: EngineInstance) -> None:
        assert instance.next_event(0.05) is None

    def test_drain_discards_stale_events(
        self, instance: EngineInstance, session: FakeEngineSession
    ) -> None:
        """Leftover events from an earlier exchange are discarded."""
        session.emit("bestmove a2a3")
        instance.send("isready")
        instance.wait_ready(timeout=2.0)

        assert instance.drain_events() == 1
        assert instance.next_event(0.05) is None

    def test_exit_is_reported(self, instance: EngineInstance, session: FakeEngineSession) -> None:
        """An engine dying on its own surfaces as EngineExited and EngineError."""
        session.crash()

        assert instance.next_event(2.0) == EngineExited()
        assert not instance.is_alive()
        with pytest.raises(EngineError, match="exited"):
            instance.wait_ready(timeout=1.0)

    def test_drain_keeps_exit_visible(
        self, instance: EngineInstance, session: FakeEngineSession
    ) -> None:
        session.emit("bestmove a2a3")
        session.crash()
        instance.kill()  # joins the reader, so both events are queued

        assert instance.drain_events() == 1
        assert instance.next_event(0.5) == EngineExited()

    def test_send_after_exit_raises(
        self, instance: EngineInstance, session: FakeEngineSession
    ) -> None:
        session.crash()

        with pytest.raises(EngineError):
            instance.send("isready")


class TestEngineInstanceStop:
    """Tests for close and kill."""

    def test_close(self, engine_config: EngineConfig) -> None:
        """Close marks the instance closed without killing the process."""
        session = FakeEngineSession()
        instance = EngineInstance(session, engine_config)
        instance.start()
        instance.wait_ready(timeout=2.0)

        instance.close()

        assert instance.closed
        assert not instance.is_alive()
        assert not session.killed

    def test_kill(self, engine_config: EngineConfig) -> None:
        session = FakeEngineSession()
        instance = EngineInstance(session, engine_config)
        instance.start()

        instance.kill()

        assert instance.closed
        assert session.killed
        assert not instance.is_alive()
