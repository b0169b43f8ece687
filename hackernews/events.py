# hackernews-graphql -- <project>/events.py
#
# Copyright © 2026 The hackernews-graphql authors.
#
# Permission is hereby granted, free of charge, to any person obtaining
# a copy of this software and associated documentation files (the
# "Software"), to deal in the Software without restriction, including
# without limitation the rights to use, copy, modify, merge, publish,
# distribute, sublicense, and/or sell copies of the Software, and to
# permit persons to whom the Software is furnished to do so, subject to
# the following conditions:
#
# The above copyright notice and this permission notice shall be
# included in all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND,
# EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF
# MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND
# NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS BE
# LIABLE FOR ANY CLAIM, DAMAGES OR OTHER LIABILITY, WHETHER IN AN ACTION
# OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN CONNECTION
# WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE SOFTWARE.

"""In-process publish/subscribe, used to push new links and votes to subscription clients.

Publishers are usually mutations running in a worker thread; subscribers are GraphQL subscriptions
iterating on the ASGI event loop. Delivery crosses that boundary with ``call_soon_threadsafe``, so
``publish()`` never blocks and never touches another thread's queue directly.
"""

import asyncio
import logging
import threading
from functools import lru_cache


logger = logging.getLogger(__name__)

NEW_LINK = 'NEW_LINK'
NEW_VOTE = 'NEW_VOTE'

_CLOSED = object()


class Subscriber(object):
    """An async iterator over the payloads published to one topic after it was created."""

    def __init__(self, channel, topic, loop):
        self.channel = channel
        self.topic = topic
        self.closed = False
        self._loop = loop
        self._queue = asyncio.Queue()

    def deliver(self, payload):
        # raises RuntimeError if the subscriber's loop has been closed
        self._loop.call_soon_threadsafe(self._queue.put_nowait, payload)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.closed:
            raise StopAsyncIteration
        try:
            payload = await self._queue.get()
        except asyncio.CancelledError:
            self.close()
            raise
        if payload is _CLOSED:
            raise StopAsyncIteration
        return payload

    async def aclose(self):
        self.close()

    def close(self):
        if self.closed:
            return
        self.closed = True
        self.channel.unsubscribe(self)
        try:
            # wake a reader that is waiting in __anext__
            self._loop.call_soon_threadsafe(self._queue.put_nowait, _CLOSED)
        except RuntimeError:
            pass


class EventChannel(object):
    """A topic-keyed subscriber registry. One instance per process, see get_event_channel()."""

    def __init__(self):
        self._lock = threading.Lock()
        self._topics = {}

    def subscribe(self, topic):
        """Register a subscriber for ``topic`` and return it.

        Must be called from a running event loop. Registration happens here, not on first
        iteration, so nothing published after this call is missed.
        """
        subscriber = Subscriber(self, topic, asyncio.get_running_loop())
        with self._lock:
            self._topics.setdefault(topic, []).append(subscriber)
        logger.debug('subscribed to %s (%d subscribers)', topic, self.subscriber_count(topic))
        return subscriber

    def unsubscribe(self, subscriber):
        with self._lock:
            subscribers = self._topics.get(subscriber.topic, [])
            if subscriber in subscribers:
                subscribers.remove(subscriber)
            if not subscribers:
                self._topics.pop(subscriber.topic, None)

    def publish(self, topic, payload):
        with self._lock:
            subscribers = list(self._topics.get(topic, ()))
        for subscriber in subscribers:
            try:
                subscriber.deliver(payload)
            except RuntimeError:
                logger.debug('dropping subscriber to %s: its event loop is closed', topic)
                subscriber.closed = True
                self.unsubscribe(subscriber)

    def subscriber_count(self, topic):
        with self._lock:
            return len(self._topics.get(topic, ()))


@lru_cache(maxsize=None)
def get_event_channel():
    """Return the process-wide EventChannel."""
    return EventChannel()
