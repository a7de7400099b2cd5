"""
Live Queries

Publish-on-change plumbing between the store and its readers:
- ChangeNotifier: writers call ``notify(table)`` after a commit
- LiveQuery: re-runs its query on every change to the tables it reads
- ObservableValue: a current value plus a stream of its updates

Everything runs on one event loop; nothing here is thread-safe.
"""

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Generic, Iterable, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChangeSubscription:
    """A subscriber's view of change notifications for a set of tables.

    Notifications that arrive while the subscriber is busy are coalesced
    into a single pending change.
    """

    def __init__(self, notifier: "ChangeNotifier", tables: frozenset):
        self._notifier = notifier
        self.tables = tables
        self._pending = asyncio.Event()
        self.closed = False

    def _mark_changed(self) -> None:
        self._pending.set()

    async def wait(self) -> None:
        """Block until at least one change has been published since the last wait."""
        await self._pending.wait()
        self._pending.clear()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._notifier._unsubscribe(self)


class ChangeNotifier:
    """
    Fans table change notifications out to live query subscribers.
    """

    def __init__(self):
        self._subscriptions: Set[ChangeSubscription] = set()

    def subscribe(self, tables: Iterable[str]) -> ChangeSubscription:
        subscription = ChangeSubscription(self, frozenset(tables))
        self._subscriptions.add(subscription)
        logger.debug(
            f"Live query subscribed to {sorted(subscription.tables)}, "
            f"total_subscriptions={self.subscription_count}"
        )
        return subscription

    def _unsubscribe(self, subscription: ChangeSubscription) -> None:
        self._subscriptions.discard(subscription)
        logger.debug(f"Live query unsubscribed, total_subscriptions={self.subscription_count}")

    def notify(self, table: str) -> int:
        """
        Publish a change to ``table``.

        Returns:
            Number of subscriptions that were woken
        """
        woken = 0
        for subscription in list(self._subscriptions):
            if table in subscription.tables:
                subscription._mark_changed()
                woken += 1
        return woken

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)


class LiveQuery(Generic[T]):
    """
    A query whose result is re-delivered whenever its tables change.

    ``await query.get()`` evaluates once. ``async for result in query`` yields
    the current result immediately and a fresh one after every change, until
    the consuming task is cancelled or the loop is broken out of.
    """

    def __init__(
        self,
        notifier: ChangeNotifier,
        tables: Iterable[str],
        fetch: Callable[[], Awaitable[T]],
    ):
        self._notifier = notifier
        self._tables = frozenset(tables)
        self._fetch = fetch

    async def get(self) -> T:
        return await self._fetch()

    def __aiter__(self) -> AsyncIterator[T]:
        return self._stream()

    async def _stream(self) -> AsyncIterator[T]:
        # Subscribe before the first fetch so a write racing it is not lost
        subscription = self._notifier.subscribe(self._tables)
        try:
            yield await self._fetch()
            while True:
                await subscription.wait()
                yield await self._fetch()
        finally:
            subscription.close()


class ObservableValue(Generic[T]):
    """Holds the latest value and streams replacements to watchers.

    A watcher that falls behind skips straight to the newest value.
    """

    def __init__(self, initial: T):
        self._value = initial
        self._watchers: Set[asyncio.Queue] = set()

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        for queue in self._watchers:
            # Watchers only need the latest value
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(value)

    @property
    def watcher_count(self) -> int:
        return len(self._watchers)

    async def watch(self) -> AsyncIterator[T]:
        """Yield the current value, then each new value as it is set."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._watchers.add(queue)
        try:
            yield self._value
            while True:
                yield await queue.get()
        finally:
            self._watchers.discard(queue)
