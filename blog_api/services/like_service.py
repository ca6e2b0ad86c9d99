"""
Like ledger: one toggle endpoint over the set of identities that liked
an article.

The ``article_likes`` rows are the source of truth.  A toggle locks the
article row, flips membership with a conditional DELETE (inserting when
nothing was deleted) and then rewrites ``Article.likes`` from a COUNT over
the set.  The row lock serialises toggles on the same article, so two
readers liking at once both land and the count never drifts from the set.
"""
import logging

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.cache import cache
from blog_api.exceptions import NotFoundError
from blog_api.identity import Identity
from blog_api.models import Article, ArticleLike
from blog_api.services.access import ensure_visible, require_identity

logger = logging.getLogger(__name__)


async def toggle_like(db: AsyncSession, article_id: int, identity: Identity | None) -> dict:
    """
    Like the article if *identity* has not liked it yet, otherwise unlike it.

    Returns ``{"likes": <count>, "liked": <membership after the toggle>}``.
    Anonymous callers get UnauthenticatedError; unknown articles and
    hidden drafts get NotFoundError.
    """
    identity = require_identity(identity)

    q = (
        select(Article)
        .where(Article.id == article_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    article = (await db.execute(q)).scalar_one_or_none()
    if article is None:
        raise NotFoundError()
    ensure_visible(article.author_id, article.is_draft, identity)

    removed = await db.execute(
        delete(ArticleLike).where(
            ArticleLike.article_id == article_id,
            ArticleLike.user_id == identity.id,
        )
    )
    liked = removed.rowcount == 0
    if liked:
        db.add(ArticleLike(article_id=article_id, user_id=identity.id))
        await db.flush()

    count_q = select(func.count()).select_from(ArticleLike).where(ArticleLike.article_id == article_id)
    likes: int = (await db.execute(count_q)).scalar_one()
    article.likes = likes
    await db.flush()

    logger.debug("Article %r %s by %s (likes=%d)", article.name, "liked" if liked else "unliked", identity.id, likes)
    cache.invalidate_on_commit(db, article.name)
    return {"likes": likes, "liked": liked}
