"""Scroll-driven pagination trigger."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Protocol

from .pagination import PaginationAccumulator

logger = logging.getLogger(__name__)

DEFAULT_MARGIN_PX = 500


@dataclass(frozen=True, slots=True)
class ProximityEvent:
    """Reported when a marker moves into or out of the trigger margin."""

    is_near: bool
    distance_px: float


ProximityCallback = Callable[[ProximityEvent], None]


class Subscription:
    """Handle returned by a notifier; ``cancel`` stops further events."""

    def __init__(self, on_cancel: Callable[[], object] | None = None):
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._on_cancel is not None:
            self._on_cancel()


class ViewportMarker:
    """End-of-list marker whose position is reported by the presentation layer.

    ``distance_px`` is the gap between the bottom edge of the viewport and the
    top of the marker. Zero or less means the marker is on screen.
    """

    def __init__(self, name: str = "listing-end"):
        self.name = name
        self._distance_px: float | None = None
        self._listeners: list[Callable[[float], None]] = []

    @property
    def distance_px(self) -> float | None:
        return self._distance_px

    def report(self, distance_px: float) -> None:
        self._distance_px = float(distance_px)
        for listener in list(self._listeners):
            listener(self._distance_px)

    def add_listener(self, listener: Callable[[float], None]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[float], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)


class ProximityNotifier(Protocol):
    def subscribe(
        self, target: ViewportMarker, margin_px: float, callback: ProximityCallback
    ) -> Subscription: ...


class _TransitionFilter:
    """Forward only changes of the near/far state to the callback."""

    def __init__(self, margin_px: float, callback: ProximityCallback):
        self._margin_px = margin_px
        self._callback = callback
        self._last: bool | None = None

    def feed(self, distance_px: float) -> None:
        is_near = distance_px <= self._margin_px
        if is_near == self._last:
            return
        self._last = is_near
        self._callback(ProximityEvent(is_near=is_near, distance_px=distance_px))


class PushProximityNotifier:
    """Evaluate proximity whenever the marker reports a new position."""

    def subscribe(
        self, target: ViewportMarker, margin_px: float, callback: ProximityCallback
    ) -> Subscription:
        tracker = _TransitionFilter(margin_px, callback)
        target.add_listener(tracker.feed)
        if target.distance_px is not None:
            tracker.feed(target.distance_px)
        return Subscription(lambda: target.remove_listener(tracker.feed))


class PollingProximityNotifier:
    """Sample the marker position on a fixed interval."""

    def __init__(self, interval: float = 0.1):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._interval = interval

    def subscribe(
        self, target: ViewportMarker, margin_px: float, callback: ProximityCallback
    ) -> Subscription:
        tracker = _TransitionFilter(margin_px, callback)
        task = asyncio.create_task(self._poll(target, tracker))
        return Subscription(task.cancel)

    async def _poll(self, target: ViewportMarker, tracker: _TransitionFilter) -> None:
        while True:
            distance = target.distance_px
            if distance is not None:
                tracker.feed(distance)
            await asyncio.sleep(self._interval)


class ScrollSentinel:
    """Ask the accumulator for the next page when the end marker comes near.

    The loading and exhaustion guards are read from the accumulator when an
    event arrives, never cached. When a load completes while the marker is
    still within the margin (the new page did not fill the viewport) the
    sentinel fires again.
    """

    def __init__(
        self,
        accumulator: PaginationAccumulator,
        notifier: ProximityNotifier,
        *,
        margin_px: float = DEFAULT_MARGIN_PX,
    ):
        self._accumulator = accumulator
        self._notifier = notifier
        self._margin_px = margin_px
        self._subscription: Subscription | None = None
        self._active = False
        self._is_near = False

    @property
    def attached(self) -> bool:
        return self._active

    @property
    def is_near(self) -> bool:
        return self._is_near

    def attach(self, marker: ViewportMarker) -> None:
        self.detach()
        self._active = True
        self._subscription = self._notifier.subscribe(
            marker, self._margin_px, self._handle_event
        )

    def detach(self) -> None:
        self._active = False
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self._is_near = False

    def watch(self, task: asyncio.Task[None] | None) -> asyncio.Task[None] | None:
        """Re-check proximity once ``task`` has been applied."""

        if task is not None:
            task.add_done_callback(self._after_load)
        return task

    def _handle_event(self, event: ProximityEvent) -> None:
        if not self.attached:
            return
        self._is_near = event.is_near
        if event.is_near:
            self._trigger()

    def _trigger(self) -> asyncio.Task[None] | None:
        if self._accumulator.is_loading or not self._accumulator.has_more:
            logger.debug(
                "Sentinel near but not loading (loading=%s, has_more=%s)",
                self._accumulator.is_loading,
                self._accumulator.has_more,
            )
            return None
        logger.debug("Sentinel requesting the next page")
        return self.watch(self._accumulator.load_more())

    def _after_load(self, task: asyncio.Task[None]) -> None:
        if task.cancelled() or not self.attached:
            return
        if self._is_near and self._accumulator.error is None:
            self._trigger()
