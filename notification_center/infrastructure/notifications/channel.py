"""Redis pub/sub implementation of the notification push channel."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Callable
from functools import lru_cache
from typing import Any

from redis.asyncio import Redis
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

from notification_center.config import Settings
from notification_center.domain.errors import TransportError

logger = logging.getLogger(__name__)


class RedisPushTransport:
    """One pub/sub connection carrying ``{"eventType", "payload"}`` messages.

    Heartbeats are ``PING`` commands written on the subscribed connection, so
    a half-open socket surfaces as a write error instead of silence.
    """

    def __init__(self, redis: Redis) -> None:
        self._redis = redis
        self._pubsub: PubSub | None = None
        self._topic: str | None = None

    async def subscribe(self, topic: str) -> None:
        if self._pubsub is not None:
            raise TransportError("Transport already subscribed")
        self._topic = topic
        self._pubsub = self._redis.pubsub()
        try:
            await self._pubsub.subscribe(topic)
            while True:
                message = await self._pubsub.get_message(timeout=1.0)
                if message is None:
                    continue
                if message.get("type") == "subscribe" and _text(message.get("channel")) == topic:
                    return
        except (RedisError, OSError) as exc:
            raise TransportError(f"Could not subscribe to {topic}: {exc}") from exc

    async def messages(self) -> AsyncIterator[Any]:
        pubsub = self._require_pubsub()
        try:
            async for message in pubsub.listen():
                message_type = message.get("type")
                if message_type == "message":
                    yield message.get("data")
                elif message_type == "unsubscribe" and _text(message.get("channel")) == self._topic:
                    return
        except (RedisError, OSError) as exc:
            raise TransportError(f"Channel {self._topic} lost: {exc}") from exc

    async def send_heartbeat(self, payload: dict[str, Any]) -> None:
        pubsub = self._require_pubsub()
        try:
            await pubsub.ping(message=json.dumps({"type": "heartbeat", "payload": payload}))
        except (RedisError, OSError) as exc:
            raise TransportError(f"Heartbeat on {self._topic} failed: {exc}") from exc

    async def close(self) -> None:
        pubsub, self._pubsub = self._pubsub, None
        if pubsub is None:
            return
        try:
            if self._topic:
                await pubsub.unsubscribe(self._topic)
        except (RedisError, OSError):
            logger.debug("Unsubscribe from %s failed during close", self._topic, exc_info=True)
        finally:
            await pubsub.aclose()

    def _require_pubsub(self) -> PubSub:
        if self._pubsub is None:
            raise TransportError("Transport is not subscribed")
        return self._pubsub


@lru_cache(maxsize=None)
def get_async_redis(redis_url: str) -> Redis:
    return Redis.from_url(redis_url, decode_responses=True)


def redis_transport_factory(settings: Settings) -> Callable[[], RedisPushTransport]:
    """Return a factory building a fresh :class:`RedisPushTransport` per subscription."""

    redis = get_async_redis(settings.redis_url)

    def factory() -> RedisPushTransport:
        return RedisPushTransport(redis)

    return factory


def _text(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


__all__ = ["RedisPushTransport", "get_async_redis", "redis_transport_factory"]
