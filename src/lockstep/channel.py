"""
Closable single-producer channel used for result and error streams.

A channel of capacity N lets the producer run at most N items ahead of the
consumer; capacity 0 is a hand-off, where `put` returns only once the
consumer has taken the item. Closing wakes every waiter and ends iteration
once the buffered items are drained.

An optional cancellation event ties the channel to a streaming query: once
it is set, a blocked `put` withdraws its item, and `get` discards anything
still buffered, so no item is delivered after cancellation is observed.
"""
import collections
import logging
import threading
import time
from collections.abc import Iterator
from typing import Any

from lockstep.exceptions import ChannelClosed

logger = logging.getLogger(__name__)

__all__ = ['Channel']


class Channel:
    """Bounded, closable channel between one producer thread and its consumers.
    """

    def __init__(self, capacity: int = 0, cancel: threading.Event | None = None,
                 poll_interval: float = 0.05) -> None:
        if capacity < 0:
            raise ValueError('capacity must not be negative')
        self.capacity = capacity
        self.cancel = cancel
        self.poll_interval = poll_interval
        self._items: collections.deque = collections.deque()
        self._cond = threading.Condition()
        self._closed = False
        self._published = 0
        self._taken = 0
        self._discarded_through = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def _cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    def put(self, item: Any) -> bool:
        """Publish an item, blocking while the consumer is too far behind.

        Returns False if cancellation was observed before the consumer took
        the item; the item is then withdrawn. Raises ChannelClosed if the
        channel is closed.
        """
        with self._cond:
            if self._closed:
                raise ChannelClosed('put on closed channel')
            if self._cancelled():
                return False
            self._items.append(item)
            self._published += 1
            ticket = self._published
            self._cond.notify_all()
            while ticket - self._taken > self.capacity:
                if self._cancelled():
                    # single producer: an untaken item is still the newest one
                    if self._items and self._items[-1] is item:
                        self._items.pop()
                        self._published -= 1
                    return False
                if self._closed:
                    raise ChannelClosed('channel closed while publishing')
                self._cond.wait(self.poll_interval)
            return ticket > self._discarded_through

    def get(self, timeout: float | None = None) -> Any:
        """Take the next item.

        Blocks until an item arrives or the channel closes. Raises
        ChannelClosed once the channel is closed and drained, and TimeoutError
        if `timeout` elapses first.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while True:
                if self._cancelled() and self._items:
                    self._taken += len(self._items)
                    self._discarded_through = self._published
                    self._items.clear()
                    self._cond.notify_all()
                if self._items:
                    item = self._items.popleft()
                    self._taken += 1
                    self._cond.notify_all()
                    return item
                if self._closed:
                    raise ChannelClosed('channel closed')
                wait = self.poll_interval
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise TimeoutError('no item within timeout')
                    wait = min(wait, remaining)
                self._cond.wait(wait)

    def close(self) -> bool:
        """Close the channel. Returns True only for the call that closed it.
        """
        with self._cond:
            if self._closed:
                return False
            self._closed = True
            self._cond.notify_all()
            return True

    def __iter__(self) -> Iterator[Any]:
        while True:
            try:
                yield self.get()
            except ChannelClosed:
                return
