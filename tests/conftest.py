"""
Shared pytest fixtures for the Lookboard API tests.

Fixture Organization
--------------------
- **fake_upstash**: in-memory Upstash REST double with a controllable clock
- **redis_client**: the real RedisClient talking to the double through
  httpx.MockTransport
- **repository / engine / ingestion / shares / boards / admin**: services
  wired to that client
- **api**: FastAPI TestClient with the store dependency overridden
- **make_look / make_board**: entity builders
"""

import fnmatch
import json
import math
import os
from typing import Any, Dict, List, Optional

# Settings are read at import time
os.environ.setdefault("UPSTASH_REDIS_REST_URL", "https://fake-upstash.test")
os.environ.setdefault("UPSTASH_REDIS_REST_TOKEN", "test-token")
os.environ.setdefault("ALLOWED_ORIGINS", "http://localhost:3000")

import httpx
import pytest
from fastapi.testclient import TestClient

from app.api.v1.schemas.look import Look, Lookboard
from app.core.redis import RedisClient, get_redis_client
from app.main import app
from app.services.admin import AdminService
from app.services.board import BoardService
from app.services.ingestion import IngestionService
from app.services.repository import LookRepository
from app.services.sharing import ShareService
from app.services.storage import get_storage_service
from app.services.sync import SyncEngine

FAKE_URL = "https://fake-upstash.test"
FAKE_TOKEN = "test-token"


class CommandError(Exception):
    pass


class FakeUpstash:
    """
    Minimal Upstash Redis REST server.

    Supports the commands the repository issues, plus /pipeline and
    /multi-exec. Every request is recorded in `requests` as (path, body).
    """

    def __init__(self):
        self.strings: Dict[str, str] = {}
        self.hashes: Dict[str, Dict[str, str]] = {}
        self.sets: Dict[str, set] = {}
        self.expires: Dict[str, float] = {}
        self.token = FAKE_TOKEN
        self.now = 1_700_000_000.0
        self.requests: List[tuple] = []

    # -- clock ---------------------------------------------------------

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def _expire(self) -> None:
        for key, deadline in list(self.expires.items()):
            if deadline <= self.now:
                self._drop(key)

    def _drop(self, key: str) -> bool:
        self.expires.pop(key, None)
        found = False
        for space in (self.strings, self.hashes, self.sets):
            if key in space:
                del space[key]
                found = True
        return found

    def _all_keys(self) -> List[str]:
        return sorted(set(self.strings) | set(self.hashes) | set(self.sets))

    # -- inspection helpers for tests -----------------------------------

    def get_json(self, key: str) -> Any:
        self._expire()
        raw = self.strings.get(key)
        return json.loads(raw) if raw is not None else None

    def hash_json(self, key: str) -> Dict[str, Any]:
        self._expire()
        return {field: json.loads(value) for field, value in self.hashes.get(key, {}).items()}

    def members(self, key: str) -> set:
        self._expire()
        return set(self.sets.get(key, set()))

    def has(self, key: str) -> bool:
        self._expire()
        return key in self._all_keys()

    def keys_matching(self, pattern: str) -> List[str]:
        self._expire()
        return self.cmd_keys(pattern)

    def commands_named(self, name: str) -> List[list]:
        found = []
        for path, body in self.requests:
            commands = body if path in ("/pipeline", "/multi-exec") else [body]
            found.extend(command for command in commands if command[0].upper() == name)
        return found

    # -- command execution ---------------------------------------------

    def run(self, command: List[str]) -> Any:
        self._expire()
        name, args = command[0].upper(), command[1:]
        handler = getattr(self, f"cmd_{name.lower()}", None)
        if handler is None:
            raise CommandError(f"ERR unknown command '{name}'")
        return handler(*args)

    def cmd_ping(self):
        return "PONG"

    def cmd_get(self, key):
        if key in self.hashes or key in self.sets:
            raise CommandError("WRONGTYPE Operation against a key holding the wrong kind of value")
        return self.strings.get(key)

    def cmd_set(self, key, value, *options):
        options = [option.upper() for option in options]
        if "XX" in options and key not in self.strings:
            return None
        keep_ttl = "KEEPTTL" in options
        deadline = self.expires.get(key) if keep_ttl else None
        self._drop(key)
        self.strings[key] = value
        if "EX" in options:
            seconds = int(options[options.index("EX") + 1])
            self.expires[key] = self.now + seconds
        elif keep_ttl and deadline is not None:
            self.expires[key] = deadline
        return "OK"

    def cmd_del(self, *keys):
        return sum(1 for key in keys if self._drop(key))

    def cmd_keys(self, pattern):
        return [key for key in self._all_keys() if fnmatch.fnmatchcase(key, pattern)]

    def cmd_mget(self, *keys):
        if not keys:
            raise CommandError("ERR wrong number of arguments for 'mget' command")
        return [self.strings.get(key) for key in keys]

    def cmd_mset(self, *args):
        for key, value in zip(args[::2], args[1::2]):
            self._drop(key)
            self.strings[key] = value
        return "OK"

    def cmd_hgetall(self, key):
        flat: List[str] = []
        for field, value in self.hashes.get(key, {}).items():
            flat += [field, value]
        return flat

    def cmd_hset(self, key, *args):
        fields = self.hashes.setdefault(key, {})
        added = 0
        for field, value in zip(args[::2], args[1::2]):
            added += field not in fields
            fields[field] = value
        return added

    def cmd_hdel(self, key, *fields):
        stored = self.hashes.get(key, {})
        removed = sum(1 for field in fields if stored.pop(field, None) is not None)
        if key in self.hashes and not stored:
            del self.hashes[key]
        return removed

    def cmd_smembers(self, key):
        return sorted(self.sets.get(key, set()))

    def cmd_sadd(self, key, *members):
        stored = self.sets.setdefault(key, set())
        added = len(set(members) - stored)
        stored.update(members)
        return added

    def cmd_srem(self, key, *members):
        stored = self.sets.get(key, set())
        removed = len(stored & set(members))
        stored.difference_update(members)
        if key in self.sets and not stored:
            del self.sets[key]
        return removed

    def cmd_ttl(self, key):
        if key not in self._all_keys():
            return -2
        if key not in self.expires:
            return -1
        return math.ceil(self.expires[key] - self.now)

    def cmd_incr(self, key):
        value = int(self.strings.get(key) or 0) + 1
        self.strings[key] = str(value)
        return value

    # -- HTTP ----------------------------------------------------------

    def _reply(self, command: List[str]) -> Dict[str, Any]:
        try:
            return {"result": self.run(command)}
        except CommandError as e:
            return {"error": str(e)}

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.headers.get("Authorization") != f"Bearer {self.token}":
            return httpx.Response(401, json={"error": "Unauthorized"})

        path = request.url.path.rstrip("/")
        body = json.loads(request.content)
        self.requests.append((path or "/", body))

        if path == "":
            reply = self._reply(body)
            return httpx.Response(400 if "error" in reply else 200, json=reply)
        if path in ("/pipeline", "/multi-exec"):
            return httpx.Response(200, json=[self._reply(command) for command in body])
        return httpx.Response(404, json={"error": "Not found"})


@pytest.fixture
def fake_upstash() -> FakeUpstash:
    return FakeUpstash()


@pytest.fixture
def redis_client(fake_upstash) -> RedisClient:
    return RedisClient(
        url=FAKE_URL,
        token=FAKE_TOKEN,
        transport=httpx.MockTransport(fake_upstash.handler),
    )


@pytest.fixture
def repository(redis_client) -> LookRepository:
    return LookRepository(redis_client)


@pytest.fixture
def engine(repository) -> SyncEngine:
    return SyncEngine(repository)


@pytest.fixture
def ingestion(repository, engine) -> IngestionService:
    return IngestionService(repository, engine)


@pytest.fixture
def shares(repository) -> ShareService:
    return ShareService(repository)


@pytest.fixture
def boards(repository, engine) -> BoardService:
    return BoardService(repository, engine)


@pytest.fixture
def admin(repository) -> AdminService:
    return AdminService(repository)


@pytest.fixture
def api(redis_client):
    """TestClient without lifespan (no startup ping)."""
    app.dependency_overrides[get_redis_client] = lambda: redis_client
    app.dependency_overrides[get_storage_service] = lambda: None
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_look():
    def _make(
        look_id: int,
        email: Optional[str] = "a@x.com",
        visibility: str = "private",
        **fields: Any,
    ) -> Look:
        fields.setdefault("final_image", f"https://cdn.test/looks/{look_id}.jpg")
        return Look(id=look_id, created_by=email, visibility=visibility, **fields)

    return _make


@pytest.fixture
def make_board():
    def _make(
        board_id: int,
        public_id: str,
        email: Optional[str] = "a@x.com",
        visibility: str = "private",
        look_ids: Optional[List[int]] = None,
        **fields: Any,
    ) -> Lookboard:
        fields.setdefault("title", f"Board {board_id}")
        return Lookboard(
            id=board_id,
            public_id=public_id,
            created_by=email,
            visibility=visibility,
            look_ids=look_ids or [],
            **fields,
        )

    return _make
