"""
Dispatcher: one-way sends (relay emissions, snapshot writes) that the
caller does not await.

Every send is tracked until it finishes and always ends in a ``Delivery``
result, which is handed to the registered observers. A send that raises is
turned into a failed ``Delivery`` instead of an unhandled task exception.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Set

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enums & data
# ---------------------------------------------------------------------------

class DeliveryKind(enum.Enum):
    RELAY = "relay"
    PERSIST = "persist"


@dataclass
class Delivery:
    """Completion result of a single one-way send."""
    kind: DeliveryKind
    participant_id: str
    ok: bool
    error: Optional[str] = None


Observer = Callable[[Delivery], None]


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

class Dispatcher:
    """Schedules fire-and-forget sends on the running loop.

    Usage
    -----
    >>> dispatcher = Dispatcher()
    >>> unsub = dispatcher.observe(print)
    >>> dispatcher.send(DeliveryKind.RELAY, pid, registry.relay(pid, "start_video", "v1"))
    >>> await dispatcher.drain()
    """

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()
        self._observers: List[Observer] = []

    @property
    def pending(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def observe(self, observer: Observer) -> Callable[[], None]:
        """Register *observer* for every completed send.

        Returns a callable that removes the observer.
        """
        self._observers.append(observer)

        def _unsubscribe() -> None:
            try:
                self._observers.remove(observer)
            except ValueError:
                pass  # already removed

        return _unsubscribe

    def _notify(self, delivery: Delivery) -> None:
        for observer in list(self._observers):
            try:
                observer(delivery)
            except Exception as e:
                logger.error(f"Delivery observer failed: {e}")

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    def send(
        self,
        kind: DeliveryKind,
        participant_id: str,
        send: Awaitable[Delivery],
    ) -> asyncio.Task:
        """Start *send* without waiting for it. Must be called from the loop."""
        task = asyncio.create_task(self._run(kind, participant_id, send))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        kind: DeliveryKind,
        participant_id: str,
        send: Awaitable[Delivery],
    ) -> Delivery:
        try:
            delivery = await send
        except asyncio.CancelledError:
            raise
        except Exception as e:
            delivery = Delivery(kind, participant_id, ok=False, error=str(e) or type(e).__name__)
        self._notify(delivery)
        return delivery

    async def drain(self) -> List[Delivery]:
        """Wait for every in-flight send, including ones started meanwhile."""
        results: List[Delivery] = []
        while self._tasks:
            results.extend(await asyncio.gather(*list(self._tasks)))
        return results
