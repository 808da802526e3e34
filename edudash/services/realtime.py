# edudash/services/realtime.py
"""
Change signals for the notification websocket.

Writers call ``publish_change(user_id)`` after committing. Subscribers do not
receive diffs, only a "changed" signal, and re-read the whole list.

With REALTIME_BACKEND=local the signal goes straight to the in-process hub.
With REALTIME_BACKEND=redis it is published on ``notifications:{user_id}`` and
every API process relays it to its own hub via ``relay_redis_events``.
"""
import asyncio
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field

from edudash.core.config import settings

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "notifications:"
CHANGED = "changed"


@dataclass(eq=False)
class Subscription:
    user_id: int
    loop: asyncio.AbstractEventLoop
    # one pending signal is enough, the reader refreshes wholesale
    queue: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=1))

    def _offer(self) -> None:
        try:
            self.queue.put_nowait(CHANGED)
        except asyncio.QueueFull:
            pass

    def signal(self) -> bool:
        try:
            self.loop.call_soon_threadsafe(self._offer)
        except RuntimeError:
            # event loop already closed
            return False
        return True

    async def wait(self) -> str:
        return await self.queue.get()


class NotificationHub:
    def __init__(self):
        self._subscribers: dict[int, set[Subscription]] = defaultdict(set)
        self._lock = threading.Lock()

    def subscribe(self, user_id: int) -> Subscription:
        sub = Subscription(user_id=user_id, loop=asyncio.get_running_loop())
        with self._lock:
            self._subscribers[user_id].add(sub)
        logger.debug("Realtime subscriber added for user %s", user_id)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscribers.get(sub.user_id)
            if subs is None:
                return
            subs.discard(sub)
            if not subs:
                del self._subscribers[sub.user_id]

    def subscriber_count(self, user_id: int) -> int:
        with self._lock:
            return len(self._subscribers.get(user_id, ()))

    def dispatch(self, user_id: int) -> None:
        with self._lock:
            subs = list(self._subscribers.get(user_id, ()))
        for sub in subs:
            if not sub.signal():
                self.unsubscribe(sub)


hub = NotificationHub()


def publish_change(user_id: int) -> None:
    if settings.REALTIME_BACKEND == "redis":
        from edudash.workers.queue import get_redis_connection

        try:
            get_redis_connection().publish(f"{CHANNEL_PREFIX}{user_id}", CHANGED)
        except Exception:
            # the write is already committed; subscribers catch up on reconnect
            logger.exception("Failed to publish notification change for user %s", user_id)
        return
    hub.dispatch(user_id)


async def relay_redis_events() -> None:
    """Forward Redis pub/sub change events to the local hub (runs forever)."""
    from redis import asyncio as aioredis

    client = aioredis.from_url(settings.REDIS_URL)
    pubsub = client.pubsub()
    await pubsub.psubscribe(f"{CHANNEL_PREFIX}*")
    logger.info("Relaying notification changes from Redis")
    try:
        async for message in pubsub.listen():
            if message.get("type") != "pmessage":
                continue
            channel = message["channel"]
            if isinstance(channel, bytes):
                channel = channel.decode()
            try:
                user_id = int(channel[len(CHANNEL_PREFIX):])
            except ValueError:
                logger.warning("Ignoring message on unexpected channel %s", channel)
                continue
            hub.dispatch(user_id)
    finally:
        await pubsub.aclose()
        await client.aclose()
