"""Debounced commit of free-text search input."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.5


class QueryDebouncer:
    """Turn rapidly changing input into a stable committed query.

    ``push`` is called on every keystroke. A commit is scheduled once the
    value has been left alone for ``delay`` seconds; each new ``push``
    cancels the pending commit and starts the timer again. Every schedule is
    tagged with an epoch and a timer that fires after a newer schedule exists
    is dropped without reaching ``on_commit``.

    The committed value only changes when the stable input differs from the
    last committed query. ``clear`` always commits ``""`` synchronously.
    Must be driven from inside a running event loop.
    """

    def __init__(
        self,
        on_commit: Callable[[str], object],
        *,
        delay: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        if delay < 0:
            raise ValueError("delay must not be negative")
        self._on_commit = on_commit
        self._delay = delay
        self._value = ""
        self._committed = ""
        self._schedule_epoch = 0
        self._pending: asyncio.TimerHandle | None = None

    @property
    def value(self) -> str:
        """Return the latest raw input."""

        return self._value

    @property
    def committed(self) -> str:
        return self._committed

    @property
    def is_pending(self) -> bool:
        """Return whether the input has not yet settled into a commit."""

        return self._value != self._committed

    def push(self, value: str) -> None:
        """Record new input and restart the quiet interval."""

        self._value = value
        self._cancel_pending()
        self._schedule_epoch += 1
        if value == self._committed:
            return
        loop = asyncio.get_running_loop()
        self._pending = loop.call_later(
            self._delay, self._fire, self._schedule_epoch, value
        )

    def clear(self) -> None:
        """Reset the input and commit an empty query immediately."""

        self._cancel_pending()
        self._schedule_epoch += 1
        self._value = ""
        self._commit("")

    def close(self) -> None:
        """Drop any pending commit."""

        self._cancel_pending()

    def _fire(self, epoch: int, value: str) -> None:
        self._pending = None
        if epoch != self._schedule_epoch:
            logger.debug("Dropping superseded query commit %r", value)
            return
        self._commit(value)

    def _commit(self, value: str) -> None:
        self._committed = value
        logger.debug("Committing search query %r", value)
        self._on_commit(value)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
