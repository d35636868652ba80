"""Push channel transports for realtime notifications."""

from .channel import RedisPushTransport, get_async_redis, redis_transport_factory

__all__ = ["RedisPushTransport", "get_async_redis", "redis_transport_factory"]
