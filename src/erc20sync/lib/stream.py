"""
Push channels used to wire the sync engines to the coordinator and the
coordinator to its callers.

`EventChannel` hands every event to every subscriber.
`LatestValueStream` also remembers the last value: new subscribers get it
right away, a subscriber never receives a value older than one it already
got, and pull subscribers (`listen()`) only see the newest value they have
not consumed yet, intermediate values are dropped.

Callbacks run on the publishing thread, outside of the channel lock.
"""

import threading
from typing import Any, Callable, List, Optional

_UNSET = object()


class Subscription:
    """Handle returned by `subscribe()`; `dispose()` stops the delivery."""

    def __init__(self, channel: 'EventChannel', callback: Callable[[Any], None]):
        self._channel = channel
        self._callback = callback
        self._disposed = False
        self._seq_lock = threading.Lock()
        self._last_seq = -1

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self):
        if not self._disposed:
            self._disposed = True
            self._channel._remove(self)

    def _deliver(self, value, seq=None):
        if seq is not None:
            with self._seq_lock:
                if seq <= self._last_seq:
                    return
                self._last_seq = seq
        if not self._disposed:
            self._callback(value)


class Mailbox(Subscription):
    """A pull subscription holding at most one undelivered value."""

    def __init__(self, channel: 'EventChannel'):
        super().__init__(channel, self._put)
        self._cond = threading.Condition()
        self._slot = _UNSET

    def _put(self, value):
        with self._cond:
            self._slot = value
            self._cond.notify_all()

    def get(self, timeout: Optional[float] = None):
        """Wait for a value newer than the last one returned.

        Raises:
            TimeoutError: nothing new arrived within `timeout` seconds.
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._slot is not _UNSET, timeout):
                raise TimeoutError('no new value')
            value, self._slot = self._slot, _UNSET
            return value


class EventChannel:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: List[Subscription] = []

    def subscribe(self, callback: Callable[[Any], None]) -> Subscription:
        return self._attach(Subscription(self, callback))

    def publish(self, event):
        with self._lock:
            subscribers = list(self._subscribers)
        for subscriber in subscribers:
            subscriber._deliver(event)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def _attach(self, subscription: Subscription) -> Subscription:
        with self._lock:
            self._subscribers.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription):
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)


class LatestValueStream(EventChannel):
    def __init__(self, value=_UNSET):
        super().__init__()
        self._value = value
        self._seq = 0

    @property
    def value(self):
        """The last published value, None before the first one."""
        return None if self._value is _UNSET else self._value

    def publish(self, value):
        with self._lock:
            self._value = value
            self._seq += 1
            seq = self._seq
            subscribers = list(self._subscribers)
        for subscriber in subscribers:
            subscriber._deliver(value, seq)

    def subscribe(self, callback: Callable[[Any], None]) -> Subscription:
        return self._attach_with_current(Subscription(self, callback))

    def listen(self) -> Mailbox:
        return self._attach_with_current(Mailbox(self))

    def _attach_with_current(self, subscription: Subscription) -> Subscription:
        with self._lock:
            self._subscribers.append(subscription)
            value, seq = self._value, self._seq
        if value is not _UNSET:
            subscription._deliver(value, seq)
        return subscription
