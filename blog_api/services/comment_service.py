"""
Comment service: append-only comments on the Article aggregate.

Comments cannot be edited, and they disappear only together with their
article.  The new comment is attached through ``Article.comments`` in the
same flush that inserts it, so the article's ordered list and the
comment's ``article_id`` never disagree.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.cache import cache
from blog_api.exceptions import ValidationError
from blog_api.identity import Identity
from blog_api.models import Article, Comment
from blog_api.services.access import ensure_visible, require_identity
from blog_api.services.article_service import article_to_dict, load_article, view_for

logger = logging.getLogger(__name__)


async def add_comment(
    db: AsyncSession,
    article_id: int,
    identity: Identity | None,
    text: str,
) -> dict:
    """
    Append a comment by *identity* to the article and return the article view.

    Raises ValidationError for blank text and NotFoundError when the
    article does not exist or is a draft hidden from *identity*.
    """
    identity = require_identity(identity)
    text = (text or "").strip()
    if not text:
        raise ValidationError("Comment text must not be empty")

    article = await load_article(db, Article.id == article_id)
    ensure_visible(article.author_id, article.is_draft, identity)

    comment = Comment(text=text, user_id=identity.id, username=identity.name)
    article.comments.append(comment)
    await db.flush()

    logger.debug("Comment %d added to article %r by %s", comment.id, article.name, identity.id)
    cache.invalidate_on_commit(db, article.name)
    return view_for(article_to_dict(article), identity)
