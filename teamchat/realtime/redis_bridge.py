"""Redis pub/sub bridge for fan-out across workers

When several application workers serve sockets, an event emitted in one
worker must also reach connections held by the others. Each gateway publishes
its emits to a shared Redis channel and delivers what the other workers
publish. Messages carry the publishing worker's origin id so a worker never
re-delivers its own emits.

Delivery stays best effort: a Redis failure is logged, never raised into the
request that produced the event. A lost subscription is logged and
re-established with exponential backoff.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional
from uuid import uuid4

import redis.asyncio as redis

logger = logging.getLogger(__name__)

Deliver = Callable[[str, str, Any], Awaitable[Any]]


def create_redis_client(redis_url: str) -> redis.Redis:
    """Build an async Redis client from a URL"""
    return redis.from_url(redis_url, decode_responses=True)


class RedisFanoutBridge:
    """Publishes local emits and feeds remote ones back into the gateway"""

    def __init__(
        self,
        redis_client: redis.Redis,
        channel: str = "teamchat:fanout",
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 30.0,
    ):
        """Initialize bridge

        Args:
            redis_client: Async Redis connection
            channel: Pub/sub channel shared by all workers
            reconnect_delay: First wait before resubscribing after a failure
            max_reconnect_delay: Upper bound for the doubling backoff
        """
        self.redis = redis_client
        self.channel = channel
        self.origin = uuid4().hex
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self._pubsub = None
        self._task: Optional[asyncio.Task] = None

    async def publish(self, room: str, event: str, data: Any) -> None:
        payload = json.dumps(
            {"origin": self.origin, "room": room, "event": event, "data": data}, default=str
        )
        try:
            await self.redis.publish(self.channel, payload)
        except Exception as e:
            logger.error(f"Failed to publish {event} to {self.channel}: {e}")

    async def start(self, deliver: Deliver) -> None:
        """Subscribe and start forwarding remote events to ``deliver``"""
        await self._subscribe()
        self._task = asyncio.create_task(self._listen(deliver))
        self._task.add_done_callback(self._on_listener_done)
        logger.info(f"Redis fan-out bridge listening on {self.channel} (origin={self.origin})")

    async def _subscribe(self) -> None:
        self._pubsub = self.redis.pubsub()
        await self._pubsub.subscribe(self.channel)

    async def _discard_pubsub(self) -> None:
        if self._pubsub is None:
            return
        try:
            await self._pubsub.aclose()
        except Exception as e:
            logger.debug(f"Error closing broken subscription: {e}")
        self._pubsub = None

    async def _listen(self, deliver: Deliver) -> None:
        """Forward subscription messages until cancelled, resubscribing on failure"""
        delay = self.reconnect_delay
        while True:
            try:
                if self._pubsub is None:
                    await self._subscribe()
                    logger.info(f"Redis fan-out bridge resubscribed to {self.channel}")
                async for message in self._pubsub.listen():
                    delay = self.reconnect_delay
                    await self.handle_message(message, deliver)
                logger.error(f"Redis subscription to {self.channel} ended; resubscribing")
            except Exception as e:
                logger.error(
                    f"Redis fan-out listener lost its subscription: {e}; "
                    f"retrying in {delay:.1f}s"
                )
            await self._discard_pubsub()
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.max_reconnect_delay)

    def _on_listener_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Redis fan-out listener stopped: {exc!r}", exc_info=exc)
        else:
            logger.error("Redis fan-out listener stopped")

    async def handle_message(self, message: dict, deliver: Deliver) -> bool:
        """Forward one pub/sub message; returns True if it was delivered"""
        if message.get("type") != "message":
            return False
        try:
            payload = json.loads(message["data"])
        except (TypeError, ValueError, KeyError):
            logger.warning("Ignoring malformed fan-out message")
            return False
        if payload.get("origin") == self.origin:
            return False
        try:
            await deliver(payload["room"], payload["event"], payload.get("data"))
        except Exception as e:
            logger.error(f"Failed to deliver remote event {payload.get('event')}: {e}")
            return False
        return True

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            except Exception:
                # Already reported by _on_listener_done
                pass
            self._task = None
        if self._pubsub is not None:
            try:
                await self._pubsub.unsubscribe(self.channel)
            except Exception as e:
                logger.debug(f"Error unsubscribing from {self.channel}: {e}")
            await self._discard_pubsub()
        await self.redis.aclose()
        logger.info("Redis fan-out bridge stopped")

    @property
    def listening(self) -> bool:
        return self._task is not None and not self._task.done()

    async def health_check(self) -> bool:
        if self._task is not None and self._task.done():
            logger.error("Redis fan-out listener is not running")
            return False
        try:
            await self.redis.ping()
            return True
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            return False
