"""
Article service: business logic for the Article aggregate.

Design notes
------------
- Reads go through the cache-aside pattern (Redis, then the database).
  The cached detail aggregate does not depend on the viewer; the draft
  gate and the viewer's ``liked`` flag are applied after the lookup.
- ``selectinload`` is used for both one-to-many collections (comments,
  like entries) so a detail read costs three statements regardless of
  how many comments the article has.
- The like count reported in every view is ``len(liked_by)``.  The
  persisted ``likes`` column is only a sortable mirror.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.  Writes only
  queue their cache invalidation on the session; ``database.commit``
  purges the keys after the commit succeeds.
"""
import logging
import math
import re

from sqlalchemy import asc, delete, desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from blog_api.cache import cache
from blog_api.config import settings
from blog_api.exceptions import DuplicateNameError, NotFoundError, ValidationError
from blog_api.identity import Identity
from blog_api.models import Article, ArticleLike, Comment
from blog_api.schemas import ArticleCreate, ArticleUpdate, PaginatedResponse
from blog_api.services.access import (
    ensure_visible,
    require_author,
    require_identity,
    visible_to,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")

# Columns that are safe to sort by; guards against arbitrary attribute access.
_SORTABLE_COLUMNS: frozenset[str] = frozenset(
    {"created_at", "updated_at", "likes", "title"}
)

# Fields an update may not set to null.
_REQUIRED_ON_UPDATE: tuple[str, ...] = ("title", "content", "thumbnail", "is_draft")


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


def _resolve_sort_column(sort_by: str):
    """
    Return the SQLAlchemy column expression for *sort_by*.

    Falls back to ``Article.created_at`` for any unrecognised column name.
    """
    if sort_by in _SORTABLE_COLUMNS:
        return getattr(Article, sort_by)
    return Article.created_at


def _isoformat(value) -> str | None:
    return value.isoformat() if value else None


def _normalise_tag(tag: str | None) -> str | None:
    if tag is None:
        return None
    return tag.strip() or None


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def article_summary_to_dict(article: Article) -> dict:
    """Serialise an Article for listings.  ``like_entries`` must be loaded."""
    return {
        "id": article.id,
        "name": article.name,
        "title": article.title,
        "thumbnail": article.thumbnail,
        "author_id": article.author_id,
        "author_name": article.author_name,
        "tag": article.tag,
        "is_draft": article.is_draft,
        "likes": len(article.like_entries),
        "created_at": _isoformat(article.created_at),
        "updated_at": _isoformat(article.updated_at),
    }


def article_to_dict(article: Article) -> dict:
    """
    Serialise the full aggregate (viewer independent, safe to cache).

    Both ``comments`` and ``like_entries`` must be loaded.
    """
    data = article_summary_to_dict(article)
    data["content"] = article.content
    data["liked_by"] = article.liked_by
    data["comments"] = [
        {
            "id": c.id,
            "user_id": c.user_id,
            "username": c.username,
            "text": c.text,
            "created_at": _isoformat(c.created_at),
        }
        for c in article.comments
    ]
    return data


def view_for(data: dict, identity: Identity | None) -> dict:
    """Apply the draft gate to a cached aggregate and add ``liked``."""
    ensure_visible(data["author_id"], data["is_draft"], identity)
    view = dict(data)
    view["liked"] = identity is not None and identity.id in data["liked_by"]
    return view


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

async def load_article(db: AsyncSession, *criteria, expand: bool = True) -> Article:
    """
    Return the single Article matching *criteria* or raise NotFoundError.

    With *expand* the comment list and like entries are loaded as well.
    Rows already in the session are refreshed from the database.
    """
    q = select(Article).where(*criteria).execution_options(populate_existing=True)
    if expand:
        q = q.options(selectinload(Article.comments), selectinload(Article.like_entries))
    result = await db.execute(q)
    article = result.scalar_one_or_none()
    if article is None:
        raise NotFoundError()
    return article


async def find_by_name(db: AsyncSession, name: str) -> Article:
    """Return the article called *name* with comments and likes expanded."""
    return await load_article(db, Article.name == name)


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_articles(
    db: AsyncSession,
    identity: Identity | None = None,
    page: int = 1,
    page_size: int = 20,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    tag: str | None = None,
    author_id: str | None = None,
) -> PaginatedResponse:
    """
    Return one page of the articles *identity* may browse.

    Published articles are visible to everyone; drafts only to their
    author.  *tag* and *author_id* narrow the listing further (the latter
    backs the author's own dashboard).
    """
    viewer = identity.id if identity else "anon"
    cache_key = (
        f"articles:list:{viewer}:{page}:{page_size}:{sort_by}:{sort_order}:"
        f"{tag or ''}:{author_id or ''}"
    )
    cached = await cache.get(cache_key)
    if cached:
        return PaginatedResponse(**cached)

    criteria = [visible_to(identity)]
    if tag:
        criteria.append(Article.tag == tag)
    if author_id:
        criteria.append(Article.author_id == author_id)

    count_q = select(func.count()).select_from(Article).where(*criteria)
    total: int = (await db.execute(count_q)).scalar_one()

    sort_col = _resolve_sort_column(sort_by)
    order_expr = desc(sort_col) if sort_order == "desc" else asc(sort_col)

    articles_q = (
        select(Article)
        .where(*criteria)
        .options(selectinload(Article.like_entries))
        .order_by(order_expr, Article.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(articles_q)
    articles = result.scalars().all()

    response = PaginatedResponse(
        items=[article_summary_to_dict(a) for a in articles],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total > 0 else 0,
    )
    await cache.set(cache_key, response.model_dump(), ttl=settings.CACHE_TTL_LIST)
    return response


async def get_article(db: AsyncSession, name: str, identity: Identity | None = None) -> dict:
    """
    Return the article view for *name* as seen by *identity*.

    Raises NotFoundError for unknown names and for drafts requested by
    anyone but their author.
    """
    cache_key = f"articles:detail:{name}"
    data = await cache.get(cache_key)
    if not data:
        article = await find_by_name(db, name)
        data = article_to_dict(article)
        await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return view_for(data, identity)


async def create_article(db: AsyncSession, identity: Identity | None, data: ArticleCreate) -> dict:
    """
    Create a new article owned by *identity* and return its view.

    The name is stored exactly as given and must already be a slug
    (``slugify(name) == name``); anything else is rejected rather than
    rewritten, so the caller can always fetch the article by the name it
    chose.  A name that is already taken raises DuplicateNameError before
    anything is written.
    """
    identity = require_identity(identity)
    name = data.name
    if not name or slugify(name) != name:
        raise ValidationError(
            "Article name must be lowercase letters, digits and single dashes"
        )

    existing = await db.execute(select(Article.id).where(Article.name == name))
    if existing.scalar_one_or_none() is not None:
        raise DuplicateNameError(name)

    article = Article(
        name=name,
        title=data.title,
        content=data.content,
        thumbnail=data.thumbnail,
        tag=_normalise_tag(data.tag),
        is_draft=data.is_draft,
        author_id=identity.id,
        author_name=identity.name,
        likes=0,
        comments=[],
        like_entries=[],
    )
    db.add(article)
    try:
        await db.flush()
    except IntegrityError as exc:
        # Lost a race with a concurrent create of the same name.
        raise DuplicateNameError(name) from exc

    logger.info("Article %r created by %s (draft=%s)", name, identity.id, article.is_draft)
    cache.invalidate_on_commit(db, name)
    return view_for(article_to_dict(article), identity)


async def update_article(
    db: AsyncSession,
    article_id: int,
    identity: Identity | None,
    data: ArticleUpdate,
) -> dict:
    """
    Apply the fields explicitly set in *data* and return the updated view.

    Only the author may update.  ``name`` is immutable and is not part of
    ``ArticleUpdate``.  Toggling ``is_draft`` is the only way an article
    moves between draft and published.
    """
    identity = require_identity(identity)
    article = await load_article(db, Article.id == article_id)
    ensure_visible(article.author_id, article.is_draft, identity)
    require_author(article.author_id, identity)

    changes = data.model_dump(exclude_unset=True)
    for field in _REQUIRED_ON_UPDATE:
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be empty")
    if "tag" in changes:
        changes["tag"] = _normalise_tag(changes["tag"])

    for field, value in changes.items():
        setattr(article, field, value)

    await db.flush()
    cache.invalidate_on_commit(db, article.name)
    return view_for(article_to_dict(article), identity)


async def delete_article(db: AsyncSession, article_id: int, identity: Identity | None) -> None:
    """
    Delete the article and everything that references it.

    Comments and like entries are removed explicitly before the article so
    no comment is ever left pointing at a missing article, whether or not
    the database enforces the foreign-key cascade.
    """
    identity = require_identity(identity)
    article = await load_article(db, Article.id == article_id, expand=False)
    ensure_visible(article.author_id, article.is_draft, identity)
    require_author(article.author_id, identity)

    removed = await db.execute(delete(Comment).where(Comment.article_id == article.id))
    await db.execute(delete(ArticleLike).where(ArticleLike.article_id == article.id))
    await db.delete(article)
    await db.flush()

    logger.info(
        "Article %r deleted by %s with %d comment(s)", article.name, identity.id, removed.rowcount
    )
    cache.invalidate_on_commit(db, article.name)
