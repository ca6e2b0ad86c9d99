"""
Cache invalidation tests: cached article data is purged only once the
write that made it stale has committed.
"""
import fnmatch

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.cache import cache
from blog_api.database import commit, rollback
from blog_api.identity import Identity
from blog_api.schemas import ArticleCreate
from blog_api.services import article_service, comment_service, like_service
from conftest import auth

AUTHOR = Identity(id="author-1", name="Alice")
READER = Identity(id="reader-1", name="Bob")

DETAIL_KEY = "articles:detail:intro-go"


class _DictRedis:
    """The slice of the redis.asyncio client CacheManager uses, kept in a dict."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    async def get(self, key: str):
        return self.data.get(key)

    async def set(self, key: str, value: str, ex=None) -> None:
        self.data[key] = value

    async def scan_iter(self, match: str = "*"):
        for key in list(self.data):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self.data.pop(key, None)


@pytest_asyncio.fixture
async def redis_store(db_session: AsyncSession):
    store = _DictRedis()
    cache._redis = store
    yield store
    cache._redis = None


async def _published(db: AsyncSession) -> dict:
    data = ArticleCreate(name="intro-go", title="Intro", content="Hello", thumbnail="t.png")
    created = await article_service.create_article(db, AUTHOR, data)
    await commit(db)
    return created


@pytest.mark.asyncio
async def test_like_purges_detail_only_after_commit(db_session: AsyncSession, redis_store):
    created = await _published(db_session)
    await article_service.get_article(db_session, "intro-go")
    assert DETAIL_KEY in redis_store.data

    await like_service.toggle_like(db_session, created["id"], READER)
    assert DETAIL_KEY in redis_store.data

    await commit(db_session)
    assert DETAIL_KEY not in redis_store.data

    view = await article_service.get_article(db_session, "intro-go", READER)
    assert view["likes"] == 1
    assert view["liked"] is True


@pytest.mark.asyncio
async def test_comment_purges_listing_and_detail_after_commit(db_session: AsyncSession, redis_store):
    created = await _published(db_session)
    await article_service.get_articles(db_session)
    await article_service.get_article(db_session, "intro-go")
    cached = set(redis_store.data)
    assert DETAIL_KEY in cached
    assert any(key.startswith("articles:list:") for key in cached)

    await comment_service.add_comment(db_session, created["id"], READER, "hello")
    assert set(redis_store.data) == cached

    await commit(db_session)
    assert redis_store.data == {}


@pytest.mark.asyncio
async def test_rolled_back_write_keeps_cache(db_session: AsyncSession, redis_store):
    created = await _published(db_session)
    await article_service.get_article(db_session, "intro-go")

    await like_service.toggle_like(db_session, created["id"], READER)
    await rollback(db_session)
    assert DETAIL_KEY in redis_store.data

    # Nothing left queued for the next transaction on this session.
    await commit(db_session)
    assert DETAIL_KEY in redis_store.data


@pytest.mark.asyncio
async def test_like_then_read_through_cache(async_client: AsyncClient, redis_store):
    payload = {"name": "intro-go", "title": "Intro", "content": "Hello", "thumbnail": "t.png"}
    article_id = (
        await async_client.post("/api/v1/articles", json=payload, headers=auth("u1"))
    ).json()["id"]

    assert (await async_client.get("/api/v1/articles/intro-go")).json()["likes"] == 0
    assert DETAIL_KEY in redis_store.data

    resp = await async_client.post(f"/api/v1/articles/{article_id}/like", headers=auth("u2"))
    assert resp.json() == {"likes": 1, "liked": True}
    assert DETAIL_KEY not in redis_store.data

    article = (await async_client.get("/api/v1/articles/intro-go")).json()
    assert article["likes"] == 1
    assert article["liked_by"] == ["u2"]
