"""
Change notification bridge: a payload-free publish/subscribe channel.

Viewers register for a party id (a provider or a customer). After every
durable booking write the service publishes to the parties involved and
each active subscriber receives a bare "something changed" signal, to which
it responds by re-reading the schedule or booking list.

Delivery is at-least-once with no ordering guarantee; a subscriber may see
several signals for one change.

Usage:
    bridge = ChangeBridge()
    sub = bridge.subscribe("prov-1", lambda: refresh())
    bridge.publish("prov-1", "cust-9")
    sub.unsubscribe()
"""

import asyncio
import itertools
import logging
from threading import Lock
from typing import Callable, Optional

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[], None]

_CLOSED = object()


class Subscription:
    """Handle returned by ``ChangeBridge.subscribe``."""

    def __init__(self, bridge: "ChangeBridge", party_id: str, token: int) -> None:
        self._bridge = bridge
        self.party_id = party_id
        self.token = token

    @property
    def active(self) -> bool:
        return self._bridge.is_subscribed(self)

    def unsubscribe(self) -> None:
        self._bridge.unsubscribe(self)


class ChangeBridge:
    """Registry of change subscribers keyed by party id."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._tokens = itertools.count(1)
        self._subscribers: dict[str, dict[int, ChangeCallback]] = {}

    def subscribe(self, party_id: str, callback: ChangeCallback) -> Subscription:
        with self._lock:
            token = next(self._tokens)
            self._subscribers.setdefault(party_id, {})[token] = callback
        logger.debug("Subscriber %d registered for %s", token, party_id)
        return Subscription(self, party_id, token)

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscriber. Unsubscribing twice is a no-op."""
        with self._lock:
            callbacks = self._subscribers.get(subscription.party_id)
            if callbacks is None:
                return
            callbacks.pop(subscription.token, None)
            if not callbacks:
                del self._subscribers[subscription.party_id]

    def is_subscribed(self, subscription: Subscription) -> bool:
        with self._lock:
            return subscription.token in self._subscribers.get(subscription.party_id, {})

    def subscriber_count(self, party_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(party_id, {}))

    def open_stream(self, party_id: str) -> "ChangeStream":
        """Open an async iterator of change signals for ``party_id``.

        Must be called from inside a running event loop.
        """
        return ChangeStream(self, party_id)

    def publish(self, *party_ids: str) -> int:
        """Signal every current subscriber of the given parties.

        A failing subscriber is logged and skipped; it never affects the
        write that triggered the publish. Returns the number of signals
        delivered.
        """
        targets: list[ChangeCallback] = []
        with self._lock:
            for party_id in dict.fromkeys(party_ids):
                targets.extend(self._subscribers.get(party_id, {}).values())

        delivered = 0
        for callback in targets:
            try:
                callback()
            except Exception:
                logger.exception("Change subscriber failed for parties %s", party_ids)
                continue
            delivered += 1
        logger.debug("Published change to %s (%d delivered)", party_ids, delivered)
        return delivered


class ChangeStream:
    """Async iterator yielding ``None`` once per received change signal.

    Signals may arrive from any thread; they are handed to the owning
    event loop with ``call_soon_threadsafe``.
    """

    def __init__(self, bridge: ChangeBridge, party_id: str) -> None:
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._subscription: Optional[Subscription] = bridge.subscribe(party_id, self._signal)

    @property
    def closed(self) -> bool:
        return self._closed

    def _signal(self) -> None:
        if self._closed:
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, None)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._loop.call_soon_threadsafe(self._queue.put_nowait, _CLOSED)

    def __aiter__(self) -> "ChangeStream":
        return self

    async def __anext__(self) -> None:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return None

    async def __aenter__(self) -> "ChangeStream":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()
