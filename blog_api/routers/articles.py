from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.database import get_db
from blog_api.dependencies import PaginationParams, get_identity, require_identity
from blog_api.identity import Identity
from blog_api.schemas import (
    ArticleCreate,
    ArticleUpdate,
    ArticleView,
    CommentCreate,
    LikeResult,
    PaginatedResponse,
)
from blog_api.services import article_service, comment_service, like_service

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])

@router.get("", response_model=PaginatedResponse)
async def list_articles(
    pagination: PaginationParams = Depends(),
    tag: str | None = Query(None, description="Only articles with this tag."),
    author_id: str | None = Query(None, description="Only articles by this author."),
    identity: Identity | None = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.get_articles(
        db,
        identity,
        pagination.page,
        pagination.page_size,
        pagination.sort_by,
        pagination.sort_order,
        tag=tag,
        author_id=author_id,
    )

@router.get("/{name}", response_model=ArticleView)
async def get_article(
    name: str,
    identity: Identity | None = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.get_article(db, name, identity)

@router.post("", status_code=201, response_model=ArticleView)
async def create_article(
    data: ArticleCreate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.create_article(db, identity, data)

@router.put("/{article_id}", response_model=ArticleView)
async def update_article(
    article_id: int,
    data: ArticleUpdate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.update_article(db, article_id, identity, data)

@router.delete("/{article_id}", status_code=204)
async def delete_article(
    article_id: int,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    await article_service.delete_article(db, article_id, identity)

@router.post("/{article_id}/comments", status_code=201, response_model=ArticleView)
async def add_comment(
    article_id: int,
    data: CommentCreate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.add_comment(db, article_id, identity, data.text)

@router.post("/{article_id}/like", response_model=LikeResult)
async def toggle_like(
    article_id: int,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return await like_service.toggle_like(db, article_id, identity)
