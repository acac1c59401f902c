"""
Redis client for the look/lookboard key-value store
Uses Upstash Redis REST API so it works from serverless request handlers
Reference: https://upstash.com/docs/redis/features/restapi
"""
import httpx
import logging
from typing import Any, Optional
from functools import lru_cache

from app.core.config import settings
from app.core.exceptions import StoreException

logger = logging.getLogger(__name__)


@lru_cache()
def get_redis_client() -> 'RedisClient':
    """
    Get a singleton RedisClient instance.

    Reference: https://docs.python.org/3/library/functools.html#functools.lru_cache
    """
    return RedisClient(
        url=settings.UPSTASH_REDIS_REST_URL,
        token=settings.UPSTASH_REDIS_REST_TOKEN,
        timeout=settings.KV_TIMEOUT_SECONDS,
    )


def pairs_to_dict(flat: Optional[list]) -> dict[str, Any]:
    """Convert Redis' flat [field, value, field, value] replies into a dict."""
    if not flat:
        return {}
    if isinstance(flat, dict):
        return flat
    return {flat[i]: flat[i + 1] for i in range(0, len(flat) - 1, 2)}


class RedisClient:
    """
    Redis client using Upstash REST API.

    Commands are sent as JSON arrays in the POST body. Batches go to
    /pipeline (not atomic) or /multi-exec (MULTI/EXEC transaction).

    Unlike a cache client, failures are never swallowed: every transport or
    command error raises StoreException so callers abort before writing.
    """

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not url or not token:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")

        self.base_url = url.rstrip('/')
        self.token = token
        self.timeout = timeout
        # Injected by tests (httpx.MockTransport)
        self.transport = transport

    async def _post(self, path: str, payload: list) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}{path}",
                    headers={
                        "Authorization": f"Bearer {self.token}",
                    },
                    json=payload,
                )
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            detail = e.response.text
            logger.error(f"Redis request to {path or '/'} failed with {e.response.status_code}: {detail}", exc_info=True)
            raise StoreException(f"Store request failed: {detail}") from e
        except httpx.HTTPError as e:
            logger.error(f"Redis request to {path or '/'} failed: {type(e).__name__}: {e}", exc_info=True)
            raise StoreException("Store is unreachable") from e
        except ValueError as e:
            logger.error(f"Redis request to {path or '/'} returned a non-JSON body")
            raise StoreException("Store returned an invalid response") from e

    @staticmethod
    def _unwrap(reply: Any) -> Any:
        # Upstash returns {"result": ...} or {"error": "..."}
        if isinstance(reply, dict) and "error" in reply:
            raise StoreException(f"Store command failed: {reply['error']}")
        if isinstance(reply, dict):
            return reply.get("result")
        return reply

    async def execute(self, *command: Any) -> Any:
        """
        Run a single Redis command.

        Args:
            command: Command name followed by its arguments

        Returns:
            The command's result

        Raises:
            StoreException: If the request or the command fails
        """
        reply = await self._post("", [str(part) for part in command])
        return self._unwrap(reply)

    async def execute_batch(self, commands: list[list[str]], atomic: bool) -> list[Any]:
        if not commands:
            return []
        path = "/multi-exec" if atomic else "/pipeline"
        replies = await self._post(path, commands)
        if isinstance(replies, dict):
            # A failed transaction is reported as a single error object
            self._unwrap(replies)
            replies = replies.get("result") or []
        return [self._unwrap(reply) for reply in replies]

    def pipeline(self) -> 'RedisBatch':
        """Non-atomic batch, used for fan-out reads."""
        return RedisBatch(self, atomic=False)

    def transaction(self) -> 'RedisBatch':
        """Atomic MULTI/EXEC batch, used for every multi-key write."""
        return RedisBatch(self, atomic=True)

    async def ping(self) -> bool:
        return await self.execute("PING") == "PONG"

    async def get(self, key: str) -> Optional[str]:
        return await self.execute("GET", key)

    async def set(
        self,
        key: str,
        value: str,
        ex: Optional[int] = None,
        keepttl: bool = False,
        xx: bool = False,
    ) -> bool:
        """
        Set a key, optionally with expiration or keeping the current one.

        Args:
            key: Redis key
            value: Value to store
            ex: Expiration in seconds
            keepttl: Retain the time to live already associated with the key
            xx: Only write if the key already exists

        Returns:
            False when `xx` is set and the key does not exist
        """
        command = ["SET", key, value]
        if xx:
            command.append("XX")
        if ex is not None:
            command += ["EX", ex]
        elif keepttl:
            command.append("KEEPTTL")
        return await self.execute(*command) == "OK"

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self.execute("DEL", *keys) or 0)

    async def keys(self, pattern: str) -> list[str]:
        return list(await self.execute("KEYS", pattern) or [])

    async def mget(self, *keys: str) -> list[Optional[str]]:
        if not keys:
            raise ValueError("mget requires at least one key")
        return list(await self.execute("MGET", *keys) or [])

    async def hgetall(self, key: str) -> dict[str, Any]:
        return pairs_to_dict(await self.execute("HGETALL", key))

    async def smembers(self, key: str) -> list[str]:
        return list(await self.execute("SMEMBERS", key) or [])

    async def ttl(self, key: str) -> int:
        return int(await self.execute("TTL", key))


class RedisBatch:
    """
    Records commands and sends them in one request.

    Usage:
        batch = client.transaction()
        batch.set("a", "1").hdel("h", "f")
        await batch.execute()
    """

    def __init__(self, client: RedisClient, atomic: bool):
        self.client = client
        self.atomic = atomic
        self.commands: list[list[str]] = []

    def __len__(self) -> int:
        return len(self.commands)

    def command(self, *parts: Any) -> 'RedisBatch':
        self.commands.append([str(part) for part in parts])
        return self

    def get(self, key: str) -> 'RedisBatch':
        return self.command("GET", key)

    def set(self, key: str, value: str, ex: Optional[int] = None) -> 'RedisBatch':
        if ex is not None:
            return self.command("SET", key, value, "EX", ex)
        return self.command("SET", key, value)

    def delete(self, *keys: str) -> 'RedisBatch':
        if keys:
            self.command("DEL", *keys)
        return self

    def mset(self, mapping: dict[str, str]) -> 'RedisBatch':
        if mapping:
            args: list[str] = []
            for key, value in mapping.items():
                args += [key, value]
            self.command("MSET", *args)
        return self

    def hgetall(self, key: str) -> 'RedisBatch':
        return self.command("HGETALL", key)

    def hset(self, key: str, mapping: dict[str, str]) -> 'RedisBatch':
        if mapping:
            args: list[str] = []
            for field, value in mapping.items():
                args += [field, value]
            self.command("HSET", key, *args)
        return self

    def hdel(self, key: str, *fields: str) -> 'RedisBatch':
        if fields:
            self.command("HDEL", key, *fields)
        return self

    def smembers(self, key: str) -> 'RedisBatch':
        return self.command("SMEMBERS", key)

    def sadd(self, key: str, *members: str) -> 'RedisBatch':
        if members:
            self.command("SADD", key, *members)
        return self

    def srem(self, key: str, *members: str) -> 'RedisBatch':
        if members:
            self.command("SREM", key, *members)
        return self

    def incr(self, key: str) -> 'RedisBatch':
        return self.command("INCR", key)

    async def execute(self) -> list[Any]:
        """
        Send all recorded commands. An empty batch issues no request.

        Returns:
            One result per recorded command, in order
        """
        return await self.client.execute_batch(self.commands, atomic=self.atomic)
