import asyncio
import json
import logging
from typing import Awaitable, Callable, Dict, Optional, Set

import redis.asyncio as redis
from redis.exceptions import RedisError

from flownote import config


logger = logging.getLogger(__name__)

OnMessage = Callable[[str], Awaitable[None]]


def conversations_channel(user_id: str) -> str:
    return f"conversations:{user_id}"


def messages_channel(conversation_id: str) -> str:
    return f"messages:{conversation_id}"


def prints_channel(school_id: str) -> str:
    return f"prints:{school_id}"


def events_channel(school_id: str) -> str:
    return f"events:{school_id}"


class LocalBus:
    """Fan-out inside this process only."""

    distributed = False

    def __init__(self) -> None:
        self._queues: Dict[str, Set[asyncio.Queue]] = {}

    async def publish(self, channel: str, message: str) -> None:
        for queue in list(self._queues.get(channel, ())):
            queue.put_nowait(message)

    async def subscribe(self, channel: str, on_message: OnMessage):
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.setdefault(channel, set()).add(queue)
        bus = self

        class _Sub:
            async def run(self_inner):
                while True:
                    data = await queue.get()
                    await on_message(data)

            async def cancel(self_inner):
                subscribers = bus._queues.get(channel)
                if subscribers is None:
                    return
                subscribers.discard(queue)
                if not subscribers:
                    del bus._queues[channel]

        return _Sub()

    def subscriber_count(self, channel: str) -> int:
        return len(self._queues.get(channel, ()))

    async def close(self) -> None:
        self._queues.clear()


class RedisBus:

    distributed = True

    def __init__(self, url: str) -> None:
        self._redis = redis.from_url(url)

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def subscribe(self, channel: str, on_message: OnMessage):
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)

        class _Sub:
            _running = True

            async def run(self_inner):
                while self_inner._running:
                    try:
                        msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                    except RedisError:
                        logger.warning("Redis subscription on %s failed, retrying", channel, exc_info=True)
                        await asyncio.sleep(0.5)
                        continue
                    if msg and msg.get("type") == "message":
                        data = msg.get("data")
                        if isinstance(data, bytes):
                            data = data.decode("utf-8")
                        await on_message(data)

            async def cancel(self_inner):
                self_inner._running = False
                try:
                    await pubsub.unsubscribe(channel)
                    await pubsub.aclose()
                except RedisError:
                    logger.warning("Failed to unsubscribe from %s", channel, exc_info=True)

        return _Sub()

    async def close(self) -> None:
        await self._redis.aclose()


_bus = None


async def get_bus():
    global _bus
    if _bus is not None:
        return _bus
    if config.REDIS_URL:
        _bus = RedisBus(config.REDIS_URL)
        logger.info("Realtime bus backed by Redis")
    else:
        _bus = LocalBus()
        logger.info("Realtime bus running in-process (REDIS_URL not set)")
    return _bus


async def close_bus() -> None:
    global _bus
    if _bus is not None:
        await _bus.close()
        _bus = None


async def notify(bus, channels, change: str, **data) -> None:
    # callers have already written; a lost notification only delays live views
    payload = json.dumps({"type": change, **data})
    for channel in channels:
        try:
            await bus.publish(channel, payload)
        except RedisError:
            logger.warning("Could not publish %s on %s", change, channel, exc_info=True)
