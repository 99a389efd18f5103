"""
Audit Poller - cancellable background refresh of a conversation's audit trail.

Each ``start`` opens a new polling context identified by a generation
number. A fetch that completes after its context was cancelled or
replaced is discarded, never handed to ``on_events``.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from mapperstudio.api.models import AuditEvent

logger = logging.getLogger(__name__)

AuditFetch = Callable[[str], List[AuditEvent]]
EventsCallback = Callable[[str, List[AuditEvent]], None]
ErrorCallback = Callable[[str, Exception], None]


class AuditPoller:
    """Polls one conversation's audit trail on a fixed interval."""

    def __init__(
        self,
        fetch: AuditFetch,
        on_events: EventsCallback,
        on_error: Optional[ErrorCallback] = None,
        interval: float = 2.0,
    ):
        """
        Initialize poller.

        Args:
            fetch: Blocking call returning the audit events of a conversation
            on_events: Receives (conversation_id, events) for current results
            on_error: Receives (conversation_id, error) for current failures
            interval: Seconds between polls
        """
        self.fetch = fetch
        self.on_events = on_events
        self.on_error = on_error
        self.interval = interval
        self.generation = 0
        self.conversation_id: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def start(self, conversation_id: str) -> int:
        """
        Begin polling ``conversation_id``, replacing any running context.

        Must be called from inside a running event loop.

        Returns:
            Generation number of the new context
        """
        self.cancel()
        self.conversation_id = conversation_id
        generation = self.generation
        self._task = asyncio.create_task(self._run(generation, conversation_id))
        logger.info(f"Started audit polling for {conversation_id} (every {self.interval}s)")
        return generation

    def cancel(self) -> None:
        """Tear down the current context; in-flight results become stale."""
        self.generation += 1
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info(f"Stopped audit polling for {self.conversation_id}")
        self.conversation_id = None

    async def stop(self) -> None:
        """Cancel and wait for the polling task to unwind."""
        task = self._task
        self.cancel()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def poll_once(self, generation: int, conversation_id: str) -> bool:
        """
        Fetch once and deliver the result if ``generation`` is still current.

        Returns:
            True if events were delivered
        """
        try:
            events = await asyncio.to_thread(self.fetch, conversation_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not self.is_current(generation):
                logger.debug(f"Discarding stale audit error for {conversation_id}: {e}")
                return False
            logger.warning(f"Audit fetch failed for {conversation_id}: {e}")
            if self.on_error is not None:
                self.on_error(conversation_id, e)
            return False

        if not self.is_current(generation):
            logger.debug(f"Discarding stale audit response for {conversation_id}")
            return False
        self.on_events(conversation_id, events)
        return True

    async def _run(self, generation: int, conversation_id: str) -> None:
        while self.is_current(generation):
            try:
                await self.poll_once(generation, conversation_id)
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break
        logger.debug(f"Audit polling loop for {conversation_id} finished")
