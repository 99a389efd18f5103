"""
Unit tests for the cancellable audit poller

Tests:
- Results are delivered only for the current polling context
- Cancellation and restart discard in-flight results
- Errors are reported, not raised
"""

import asyncio
import threading

from mapperstudio.api.audit_poller import AuditPoller
from mapperstudio.api.models import AuditEvent


# ============================================================================
# HELPERS
# ============================================================================


class Recorder:
    """Collects poller callbacks"""

    def __init__(self):
        self.events = []
        self.errors = []

    def on_events(self, conversation_id, events):
        self.events.append((conversation_id, events))

    def on_error(self, conversation_id, error):
        self.errors.append((conversation_id, str(error)))


def fetch_ok(conversation_id):
    return [AuditEvent(audit_id=1, conversation_id=conversation_id, stage="START")]


# ============================================================================
# TESTS
# ============================================================================


class TestAuditPoller:
    """Tests for AuditPoller"""

    def test_poll_once_delivers_current_results(self):
        recorder = Recorder()
        poller = AuditPoller(fetch_ok, recorder.on_events, recorder.on_error)

        delivered = asyncio.run(poller.poll_once(poller.generation, "c-1"))

        assert delivered is True
        assert recorder.events[0][0] == "c-1"
        assert recorder.events[0][1][0].stage == "START"

    def test_stale_generation_is_discarded(self):
        recorder = Recorder()
        poller = AuditPoller(fetch_ok, recorder.on_events, recorder.on_error)
        generation = poller.generation
        poller.cancel()

        delivered = asyncio.run(poller.poll_once(generation, "c-1"))

        assert delivered is False
        assert recorder.events == []

    def test_in_flight_fetch_cancelled_midway_is_discarded(self):
        """A response arriving after cancellation is never applied"""
        recorder = Recorder()
        started = threading.Event()
        release = threading.Event()

        def slow_fetch(conversation_id):
            started.set()
            release.wait(timeout=5)
            return fetch_ok(conversation_id)

        poller = AuditPoller(slow_fetch, recorder.on_events, recorder.on_error)

        async def scenario():
            generation = poller.generation
            pending = asyncio.ensure_future(poller.poll_once(generation, "c-1"))
            while not started.is_set():
                await asyncio.sleep(0.01)
            poller.cancel()
            release.set()
            return await pending

        assert asyncio.run(scenario()) is False
        assert recorder.events == []

    def test_errors_are_reported(self):
        recorder = Recorder()

        def failing_fetch(conversation_id):
            raise RuntimeError("Audit API error: 500")

        poller = AuditPoller(failing_fetch, recorder.on_events, recorder.on_error)
        assert asyncio.run(poller.poll_once(poller.generation, "c-1")) is False
        assert recorder.errors == [("c-1", "Audit API error: 500")]

    def test_stale_errors_are_dropped(self):
        recorder = Recorder()

        def failing_fetch(conversation_id):
            raise RuntimeError("boom")

        poller = AuditPoller(failing_fetch, recorder.on_events, recorder.on_error)
        generation = poller.generation
        poller.cancel()
        asyncio.run(poller.poll_once(generation, "c-1"))
        assert recorder.errors == []

    def test_loop_polls_until_stopped(self):
        recorder = Recorder()
        poller = AuditPoller(fetch_ok, recorder.on_events, interval=0.01)

        async def scenario():
            poller.start("c-1")
            assert poller.is_running
            await asyncio.sleep(0.1)
            await poller.stop()
            return len(recorder.events)

        count = asyncio.run(scenario())
        assert count >= 2
        assert poller.is_running is False
        assert len(recorder.events) == count

    def test_restart_replaces_context(self):
        recorder = Recorder()
        poller = AuditPoller(fetch_ok, recorder.on_events, interval=0.01)

        async def scenario():
            first = poller.start("c-1")
            await asyncio.sleep(0.05)
            second = poller.start("c-2")
            assert second != first
            assert poller.conversation_id == "c-2"
            await asyncio.sleep(0.05)
            await poller.stop()

        asyncio.run(scenario())
        conversations = [cid for cid, _ in recorder.events]
        assert "c-2" in conversations
        assert conversations == sorted(conversations)
