"""In-process publish/subscribe channel and the stream sink built on it.

Channel      -- Fan-out of items to any number of asyncio.Queue-backed
                subscriptions.  ``publish`` never blocks and never awaits, so
                it is safe to call from synchronous sink hooks.
StreamSink   -- Pushes tagged envelope messages into a Channel for
                same-process consumers.
"""

from __future__ import annotations

import asyncio
from typing import Any, Generic, TypeVar

from stateline.models.records import Record
from stateline.observability.logging import get_logger
from stateline.sinks.base import (
    TimelineSink,
    bulk_import_message,
    clear_message,
    record_message,
    record_update_message,
)

_log = get_logger("sinks.stream")

T = TypeVar("T")

_CLOSED: Any = object()

DEFAULT_BUFFER = 256


class Subscription(Generic[T]):
    """One consumer's view of a Channel; iterate it with ``async for``."""

    def __init__(self, channel: Channel[T], maxsize: int) -> None:
        self._channel = channel
        # One slot is reserved for the close sentinel.
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize + 1)
        self._maxsize = maxsize
        self._dropped = 0

    @property
    def dropped(self) -> int:
        """Items discarded because this subscriber fell behind."""
        return self._dropped

    def __aiter__(self) -> Subscription[T]:
        return self

    async def __anext__(self) -> T:
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    def get_nowait(self) -> T | None:
        """Return the next buffered item, or None when nothing is pending."""
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def drain(self) -> list[T]:
        items: list[T] = []
        while (item := self.get_nowait()) is not None:
            items.append(item)
        return items

    def close(self) -> None:
        self._channel.unsubscribe(self)

    def _offer(self, item: T) -> None:
        if self._queue.qsize() >= self._maxsize:
            # Oldest message goes first when a consumer lags.
            self._queue.get_nowait()
            self._dropped += 1
        self._queue.put_nowait(item)

    def _finish(self) -> None:
        self._queue.put_nowait(_CLOSED)


class Channel(Generic[T]):
    """Broadcast channel: every subscription receives every published item."""

    def __init__(self, maxsize: int = DEFAULT_BUFFER) -> None:
        if maxsize <= 0:
            raise ValueError(f"maxsize must be positive, got {maxsize}")
        self._maxsize = maxsize
        self._subscriptions: list[Subscription[T]] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self) -> Subscription[T]:
        """Return a subscription receiving items published after this call."""
        subscription: Subscription[T] = Subscription(self, self._maxsize)
        if self._closed:
            subscription._finish()
        else:
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription[T]) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            subscription._finish()

    def publish(self, item: T) -> None:
        if self._closed:
            _log.debug("channel_publish_after_close")
            return
        for subscription in tuple(self._subscriptions):
            subscription._offer(item)

    def close(self) -> None:
        """End every subscription; later publishes are ignored."""
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscriptions:
            subscription._finish()
        self._subscriptions.clear()


class StreamSink(TimelineSink):
    """Mirrors timeline mutations as envelope dicts on an in-process Channel."""

    def __init__(self, channel: Channel[dict[str, Any]] | None = None) -> None:
        self._channel: Channel[dict[str, Any]] = channel if channel is not None else Channel()

    @property
    def sink_name(self) -> str:
        return "stream"

    @property
    def channel(self) -> Channel[dict[str, Any]]:
        return self._channel

    def subscribe(self) -> Subscription[dict[str, Any]]:
        return self._channel.subscribe()

    def on_record_added(self, record: Record) -> None:
        self._channel.publish(record_message(record))

    def on_record_mutated(self, record: Record) -> None:
        self._channel.publish(record_update_message(record))

    def on_records_cleared(self) -> None:
        self._channel.publish(clear_message())

    def on_bulk_import(self, records: tuple[Record, ...]) -> None:
        self._channel.publish(bulk_import_message(records))
