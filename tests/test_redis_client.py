"""
Tests for the Upstash REST client.
"""

import httpx
import pytest

from app.core.exceptions import StoreException
from app.core.redis import RedisClient, pairs_to_dict

FAKE_URL = "https://fake-upstash.test"
FAKE_TOKEN = "test-token"


class TestCommands:

    async def test_single_command_round_trip(self, redis_client, fake_upstash):
        assert await redis_client.set("k", "v") is True
        assert await redis_client.get("k") == "v"
        assert fake_upstash.requests[-1] == ("/", ["GET", "k"])

    async def test_set_with_expiration_and_keepttl(self, redis_client, fake_upstash):
        await redis_client.set("k", "v1", ex=60)
        fake_upstash.advance(20)
        await redis_client.set("k", "v2", keepttl=True)

        assert await redis_client.ttl("k") == 40
        assert await redis_client.get("k") == "v2"

    async def test_set_xx_only_overwrites_existing_keys(self, redis_client, fake_upstash):
        assert await redis_client.set("missing", "v", keepttl=True, xx=True) is False
        assert not fake_upstash.has("missing")

        await redis_client.set("k", "v1", ex=60)
        assert await redis_client.set("k", "v2", keepttl=True, xx=True) is True
        assert await redis_client.ttl("k") == 60
        assert fake_upstash.requests[-2] == ("/", ["SET", "k", "v2", "XX", "KEEPTTL"])

    async def test_hash_and_set_commands(self, redis_client):
        await redis_client.transaction().hset("h", {"1": "a", "2": "b"}).sadd("s", "x", "y").srem("s", "x").execute()

        assert await redis_client.hgetall("h") == {"1": "a", "2": "b"}
        assert await redis_client.smembers("s") == ["y"]

    async def test_mget_requires_keys(self, redis_client, fake_upstash):
        with pytest.raises(ValueError):
            await redis_client.mget()
        assert fake_upstash.requests == []

    async def test_ping(self, redis_client):
        assert await redis_client.ping() is True


class TestBatches:

    async def test_transaction_uses_multi_exec(self, redis_client, fake_upstash):
        results = await redis_client.transaction().set("a", "1").incr("counter").execute()

        assert results == ["OK", 1]
        assert fake_upstash.requests[-1][0] == "/multi-exec"

    async def test_pipeline_uses_pipeline_endpoint(self, redis_client, fake_upstash):
        await redis_client.set("a", "1")

        results = await redis_client.pipeline().get("a").get("missing").execute()

        assert results == ["1", None]
        assert fake_upstash.requests[-1][0] == "/pipeline"

    async def test_empty_batch_sends_nothing(self, redis_client, fake_upstash):
        batch = redis_client.transaction().delete().hset("h", {}).sadd("s")

        assert len(batch) == 0
        assert await batch.execute() == []
        assert fake_upstash.requests == []


class TestErrors:

    async def test_command_error_raises(self, redis_client, fake_upstash):
        fake_upstash.cmd_hset("h", "f", "v")

        with pytest.raises(StoreException):
            await redis_client.get("h")

    async def test_batch_command_error_raises(self, redis_client, fake_upstash):
        fake_upstash.cmd_hset("h", "f", "v")

        with pytest.raises(StoreException):
            await redis_client.pipeline().get("h").execute()

    async def test_unauthorized_raises(self, fake_upstash):
        client = RedisClient(FAKE_URL, "wrong-token", transport=httpx.MockTransport(fake_upstash.handler))

        with pytest.raises(StoreException):
            await client.get("k")

    async def test_network_error_raises(self):
        def unreachable(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = RedisClient(FAKE_URL, FAKE_TOKEN, transport=httpx.MockTransport(unreachable))

        with pytest.raises(StoreException):
            await client.ping()

    def test_missing_configuration(self):
        with pytest.raises(ValueError):
            RedisClient("", "")


def test_pairs_to_dict():
    assert pairs_to_dict(["a", "1", "b", "2"]) == {"a": "1", "b": "2"}
    assert pairs_to_dict(None) == {}
