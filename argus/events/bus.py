# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Event bus implementation for per-task pub/sub."""
import contextlib
from collections import defaultdict
from collections.abc import Callable
from datetime import UTC, datetime

from loguru import logger

from argus.events.models import TaskEvent


EventCallback = Callable[[TaskEvent], None]


class EventBus:
    """Simple synchronous pub/sub event bus keyed by channel.

    Channels are strings of the form ``task:{task_id}``. Exceptions in
    subscribers are logged but don't prevent other subscribers from
    receiving events.

    Warning:
        All subscribers MUST be non-blocking. Since publish() runs
        synchronously in the caller's context, blocking operations
        in subscribers will halt the review loop.

    Attributes:
        _subscribers: Callbacks per channel, in registration order.
    """

    def __init__(self) -> None:
        """Initialize event bus with no subscribers."""
        self._subscribers: dict[str, list[EventCallback]] = defaultdict(list)

    def subscribe(self, channel: str, callback: EventCallback) -> Callable[[], None]:
        """Subscribe to events on a channel.

        Args:
            channel: Channel name.
            callback: Function to call when events are published.

        Returns:
            A function that removes this subscription when called.
        """
        self._subscribers[channel].append(callback)

        def _unsubscribe() -> None:
            self.unsubscribe(channel, callback)

        return _unsubscribe

    def unsubscribe(self, channel: str, callback: EventCallback) -> None:
        """Unsubscribe a callback from a channel. Unknown callbacks are ignored."""
        with contextlib.suppress(ValueError):
            self._subscribers[channel].remove(callback)
        if not self._subscribers[channel]:
            del self._subscribers[channel]

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, []))

    def publish(self, channel: str, event: TaskEvent) -> TaskEvent:
        """Stamp an event and deliver it to the channel's subscribers.

        Args:
            channel: Channel name.
            event: Event to deliver.

        Returns:
            The stamped event that was delivered.
        """
        stamped = event.model_copy(update={"timestamp": datetime.now(UTC)})
        for callback in list(self._subscribers.get(channel, [])):
            try:
                callback(stamped)
            except Exception as exc:
                # Use getattr to safely get callback name - functools.partial,
                # callable instances, etc. may not have __name__
                callback_name = getattr(callback, "__name__", repr(callback))
                logger.exception(
                    "Subscriber raised exception",
                    callback=callback_name,
                    channel=channel,
                    event_type=event.type,
                    error=str(exc),
                )
        return stamped
