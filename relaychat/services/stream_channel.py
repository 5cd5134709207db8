"""Resumable output channel for agent turns.

A turn's serialized events are written through a channel keyed by a
stream id generated before the model runs. With Redis available, the
producer runs in a background task that appends every event to a Redis
stream, so a client that disconnects can reattach and replay from the
start while the turn keeps running. Without Redis, events are passed
straight through to the requesting client and cannot be resumed.

Which implementation is used is decided once at startup by
open_stream_channel(); call sites never branch on availability.
"""

import asyncio
import logging
import os
from collections.abc import AsyncIterator, Callable
from typing import Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

from relaychat.errors import ChannelUnavailableError

logger = logging.getLogger(__name__)

STREAM_KEY_PREFIX = "relaychat:stream:"
DEFAULT_RETENTION_SECONDS = 86400

EventProducer = Callable[[], AsyncIterator[str]]


class StreamChannel(Protocol):
    """Interface shared by the Redis-backed and passthrough channels."""

    mode: str

    async def write(self, stream_id: str, producer: EventProducer) -> AsyncIterator[str]:
        """Start producing a stream and return the client-facing iterator."""
        ...

    async def resume(self, stream_id: str) -> AsyncIterator[str] | None:
        """Reattach to a stream, or None when it cannot be resumed."""
        ...

    async def close(self) -> None:
        """Release backing resources."""
        ...


class PassthroughStreamChannel:
    """Non-durable channel: events go only to the requesting client."""

    mode = "passthrough"

    async def write(self, stream_id: str, producer: EventProducer) -> AsyncIterator[str]:
        return producer()

    async def resume(self, stream_id: str) -> AsyncIterator[str] | None:
        return None

    async def close(self) -> None:
        return None


class RedisStreamChannel:
    """Durable channel backed by Redis streams.

    Each event is an entry ``{"data": <event>}`` under
    ``relaychat:stream:{stream_id}``; a final ``{"done": "1"}`` entry marks
    completion. Keys expire after the retention window.

    Args:
        redis: Connected client created with decode_responses=True.
        retention_seconds: TTL applied to every stream key.
        block_ms: XREAD block timeout while tailing.
    """

    mode = "redis"

    def __init__(
        self,
        redis: Redis,
        retention_seconds: int = DEFAULT_RETENTION_SECONDS,
        block_ms: int = 5000,
    ) -> None:
        self._redis = redis
        self._retention_seconds = retention_seconds
        self._block_ms = block_ms
        self._tasks: set[asyncio.Task[None]] = set()

    @staticmethod
    def key_for(stream_id: str) -> str:
        """Redis key holding a stream's events."""
        return f"{STREAM_KEY_PREFIX}{stream_id}"

    async def write(self, stream_id: str, producer: EventProducer) -> AsyncIterator[str]:
        """Run the producer in the background and tail its output.

        The producer keeps running if the returned iterator is abandoned.
        """
        key = self.key_for(stream_id)
        task = asyncio.create_task(self._pump(key, producer))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return self._read(key)

    async def _pump(self, key: str, producer: EventProducer) -> None:
        first = True
        try:
            async for event in producer():
                await self._redis.xadd(key, {"data": event})
                if first:
                    await self._redis.expire(key, self._retention_seconds)
                    first = False
        except Exception:
            logger.exception("Stream producer failed for %s", key)
        finally:
            try:
                await self._redis.xadd(key, {"done": "1"})
                await self._redis.expire(key, self._retention_seconds)
            except RedisError as e:
                logger.error("Failed to finalize stream %s: %s", key, e)

    async def _read(self, key: str) -> AsyncIterator[str]:
        last_id = "0-0"
        while True:
            response = await self._redis.xread(
                {key: last_id}, block=self._block_ms, count=100
            )
            if not response:
                # Key expired or was removed after we started reading.
                if last_id != "0-0" and not await self._redis.exists(key):
                    return
                continue
            for _stream_key, entries in response:
                for entry_id, fields in entries:
                    last_id = entry_id
                    if fields.get("done"):
                        return
                    yield fields["data"]

    async def resume(self, stream_id: str) -> AsyncIterator[str] | None:
        """Replay a stream from the start and tail it until completion."""
        key = self.key_for(stream_id)
        if not await self._redis.exists(key):
            return None
        return self._read(key)

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self._redis.aclose()


_channel: StreamChannel | None = None


async def connect_redis(redis_url: str) -> Redis:
    """Create a Redis client and verify it answers PING.

    Raises:
        ChannelUnavailableError: If the server cannot be reached.
    """
    client = Redis.from_url(redis_url, decode_responses=True)
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        await client.aclose()
        raise ChannelUnavailableError(f"Redis unreachable ({e})") from e
    return client


async def open_stream_channel() -> StreamChannel:
    """Select the process-wide stream channel, creating it on first call.

    Uses Redis when REDIS_URL is set and answers PING; otherwise falls
    back to passthrough and logs that resumption is disabled.
    """
    global _channel
    if _channel is not None:
        return _channel

    redis_url = os.environ.get("REDIS_URL", "").strip()
    if not redis_url:
        logger.info("Resumable streams are disabled due to missing REDIS_URL")
        _channel = PassthroughStreamChannel()
        return _channel

    retention = int(
        os.environ.get("STREAM_RETENTION_SECONDS", str(DEFAULT_RETENTION_SECONDS))
    )
    try:
        client = await connect_redis(redis_url)
    except ChannelUnavailableError as e:
        logger.warning("Resumable streams are disabled: %s", e.reason)
        _channel = PassthroughStreamChannel()
        return _channel

    logger.info("Resumable streams enabled (retention=%ss)", retention)
    _channel = RedisStreamChannel(client, retention_seconds=retention)
    return _channel


async def close_stream_channel() -> None:
    """Close and forget the process-wide channel."""
    global _channel
    if _channel is not None:
        await _channel.close()
        _channel = None
