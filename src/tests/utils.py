"""Shared helpers for tests (account creation, fake Redis, authenticated clients)."""

from __future__ import annotations

from typing import Dict
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase
from redis.exceptions import ConnectionError as RedisConnectionError
from rest_framework.test import APIClient

from access_control.roles import Role
from articles.state_machine import ArticleStateMachine
from authentication.managers import UserManager
from authentication.services import TokenService

User = get_user_model()


class FakeRedis:
    """Minimal Redis stub supporting the commands used by the token blocklist
    and the audit sequence counter.

    Set ``fail = True`` to make every command raise a connection error.
    """

    def __init__(self):
        self._store: Dict[str, str] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("Redis unavailable")

    def setex(self, key: str, ttl_seconds: int, value: str) -> None:
        """Mimic Redis SETEX; TTL is ignored in tests, value stored in-memory."""
        self._check()
        self._store[key] = str(value)

    def get(self, key: str):
        """Return stored value for key or None, matching Redis GET semantics."""
        self._check()
        return self._store.get(key)

    def set(self, key: str, value, nx: bool = False):
        """Mimic SET with optional NX; returns None when NX blocks the write."""
        self._check()
        if nx and key in self._store:
            return None
        self._store[key] = str(value)
        return True

    def incr(self, key: str) -> int:
        self._check()
        value = int(self._store.get(key, 0)) + 1
        self._store[key] = str(value)
        return value

    def flush(self) -> None:
        self._store.clear()
        self.fail = False


def create_user(email: str, password: str = "Password123", role: Role = Role.AUTHOR, **extra):
    """Create an account with a bcrypt-hashed password for tests."""

    return User.objects.create(
        email=email,
        password_hash=UserManager.hash_password(password),
        role=role,
        **extra,
    )


def create_article(author, title: str = "Hello World!", **fields):
    """Create a draft through the state machine so a first revision exists."""

    fields.setdefault("body", {"blocks": [{"type": "paragraph", "text": "Body"}]})
    return ArticleStateMachine.create(author=author, title=title, **fields)


class RedisPatchedTestCase(TestCase):
    """TestCase that routes every Redis client lookup to one in-memory fake."""

    redis_targets = (
        "core.redis_client.get_redis_client",
        "authentication.services.get_redis_client",
        "audit.services.get_redis_client",
    )

    @classmethod
    def setUpClass(cls):
        """Patch Redis clients to use the in-memory fake for all tests."""
        super().setUpClass()
        cls.fake_redis = FakeRedis()
        cls.patchers = [mock.patch(target, return_value=cls.fake_redis) for target in cls.redis_targets]
        for patcher in cls.patchers:
            patcher.start()

    @classmethod
    def tearDownClass(cls):
        """Stop Redis patches after all tests complete."""
        for patcher in cls.patchers:
            patcher.stop()
        super().tearDownClass()

    def setUp(self):
        """Each test starts with an empty, healthy fake Redis."""
        super().setUp()
        self.fake_redis.flush()

    @staticmethod
    def auth_client(user) -> APIClient:
        """Return an APIClient authenticated with a fresh access token."""
        token, _ = TokenService.generate_tokens(user)
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        return client
