from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from blog_api.database import get_db
from blog_api.models import Article, ArticleLike, Comment
from blog_api.schemas import MetricsResponse
from blog_api.cache import cache

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])

@router.get("", response_model=MetricsResponse)
async def get_metrics(db: AsyncSession = Depends(get_db)):
    # Public endpoint: drafts contribute to none of the totals.
    published = select(Article.id).where(Article.is_draft.is_(False))

    published_articles = (
        await db.execute(select(func.count()).select_from(Article).where(Article.is_draft.is_(False)))
    ).scalar_one()

    total_comments = (
        await db.execute(
            select(func.count()).select_from(Comment).where(Comment.article_id.in_(published))
        )
    ).scalar_one()

    # Counted from the ledger itself, not from the per-article mirror column.
    total_likes = (
        await db.execute(
            select(func.count()).select_from(ArticleLike).where(ArticleLike.article_id.in_(published))
        )
    ).scalar_one()

    avg_comments = total_comments / published_articles if published_articles > 0 else 0

    return MetricsResponse(
        published_articles=published_articles,
        total_comments=total_comments,
        total_likes=total_likes,
        avg_comments_per_article=round(avg_comments, 2),
        cache_info=cache.stats,
    )
