"""
Identity resolution and access-rule tests.

The resolver reads session records the external auth service stores in
Redis; a small in-memory stand-in for the Redis client is enough to
exercise it, following the same ``cache._redis`` seam the other tests use
to disable caching.
"""
import json

import pytest
from httpx import AsyncClient

from blog_api.cache import cache
from blog_api.dependencies import get_identity
from blog_api.exceptions import ForbiddenError, NotFoundError, UnauthenticatedError
from blog_api.identity import Identity, identity_resolver
from blog_api.main import app
from blog_api.services import access


class _FakeRedis:
    def __init__(self, data: dict[str, str]) -> None:
        self.data = data

    async def get(self, key: str):
        return self.data.get(key)


@pytest.fixture
def sessions():
    store = _FakeRedis({
        "session:good-token": json.dumps({"id": "u1", "name": "Alice"}),
        "session:bad-shape": json.dumps({"name": "No id"}),
        "session:not-json": "{{{",
    })
    cache._redis = store
    yield store
    cache._redis = None


# ---------------------------------------------------------------------------
# SessionIdentityResolver
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_resolve_known_token(sessions):
    identity = await identity_resolver.resolve("good-token")
    assert identity == Identity(id="u1", name="Alice")


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, "", "unknown-token", "bad-shape", "not-json"])
async def test_unresolvable_tokens_are_anonymous(sessions, token):
    assert await identity_resolver.resolve(token) is None


@pytest.mark.asyncio
async def test_resolve_without_redis_is_anonymous():
    cache._redis = None
    assert await identity_resolver.resolve("good-token") is None


@pytest.mark.asyncio
async def test_session_lookup_does_not_touch_cache_stats(sessions):
    before = cache.stats
    await identity_resolver.resolve("good-token")
    assert cache.stats == before


@pytest.mark.asyncio
async def test_bearer_header_resolved_through_sessions(async_client: AsyncClient, sessions):
    """The production dependency maps the bearer token through the session store."""
    override = app.dependency_overrides.pop(get_identity)
    try:
        payload = {"name": "via-session", "title": "T", "content": "C", "thumbnail": "t.png"}
        resp = await async_client.post(
            "/api/v1/articles", json=payload, headers={"Authorization": "Bearer good-token"}
        )
        assert resp.status_code == 201
        assert resp.json()["author_id"] == "u1"
        assert resp.json()["author_name"] == "Alice"

        resp = await async_client.post(
            "/api/v1/articles",
            json={**payload, "name": "rejected"},
            headers={"Authorization": "Bearer unknown-token"},
        )
        assert resp.status_code == 401
    finally:
        app.dependency_overrides[get_identity] = override


# ---------------------------------------------------------------------------
# Authorization guard and draft gate
# ---------------------------------------------------------------------------

AUTHOR = Identity(id="a", name="Author")
READER = Identity(id="r", name="Reader")


def test_require_author():
    access.require_author("a", AUTHOR)
    with pytest.raises(ForbiddenError):
        access.require_author("a", READER)
    with pytest.raises(UnauthenticatedError):
        access.require_author("a", None)


def test_draft_gate():
    assert access.can_view("a", False, None)
    assert access.can_view("a", False, READER)
    assert access.can_view("a", True, AUTHOR)
    assert not access.can_view("a", True, READER)
    assert not access.can_view("a", True, None)

    with pytest.raises(NotFoundError):
        access.ensure_visible("a", True, READER)
