"""Generic capture helper for asynchronous value streams.

Framework-specific observers build on the same pattern: wrap the source,
capture one record per lifecycle step, and pass values through untouched.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator, Callable, Iterable, Mapping
from typing import Any, TypeVar

from stateline.capture.snapshot import describe_error, describe_value
from stateline.models.events import EventKind
from stateline.timeline.store import TimelineStore

T = TypeVar("T")

_UNSET: Any = object()


async def observe_async_iterable(
    iterable: AsyncIterable[T],
    origin: str,
    store: TimelineStore,
    *,
    summarize: Callable[[T], str] | None = None,
    runtime_type: str | None = None,
    tags: Iterable[str] = (),
    details: Mapping[str, Any] | None = None,
) -> AsyncIterator[T]:
    """Yield every item of *iterable* while recording it on *store*.

    Records ``add`` when iteration starts, ``update`` per item (diffed against
    the previous item), ``error`` when the source raises, and ``dispose`` when
    iteration ends for any reason.  Source exceptions are re-raised after
    being recorded.
    """
    describe = summarize or describe_value
    runtime = runtime_type or type(iterable).__name__
    tag_list = tuple(tags)
    extra = dict(details or {})

    store.capture(
        origin,
        EventKind.ADD,
        "stream subscribed",
        runtime_type=runtime,
        details=extra,
        tags=tag_list,
    )
    previous: Any = _UNSET
    try:
        async for value in iterable:
            if previous is _UNSET:
                store.capture(
                    origin,
                    EventKind.UPDATE,
                    describe(value),
                    state=value,
                    runtime_type=runtime,
                    tags=tag_list,
                )
            else:
                store.capture(
                    origin,
                    EventKind.UPDATE,
                    describe(value),
                    state=value,
                    previous_state=previous,
                    previous_summary=describe(previous),
                    runtime_type=runtime,
                    tags=tag_list,
                )
            previous = value
            yield value
    except Exception as exc:
        store.capture(
            origin,
            EventKind.ERROR,
            describe_error(exc),
            state=repr(exc),
            runtime_type=runtime,
            details={"error": str(exc), **extra},
            tags=tag_list,
        )
        raise
    finally:
        store.capture(origin, EventKind.DISPOSE, "stream closed", runtime_type=runtime, tags=tag_list)
