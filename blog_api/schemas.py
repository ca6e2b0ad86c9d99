from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _require_text(value: str | None, strip: bool = True) -> str | None:
    """Reject values that are empty once surrounding whitespace is removed."""
    if value is None:
        return None
    if not value.strip():
        raise ValueError("must not be blank")
    return value.strip() if strip else value


# --- Comment ---

class CommentCreate(BaseModel):
    text: str = Field(min_length=1)

    @field_validator("text")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return _require_text(value)


class CommentResponse(BaseModel):
    id: int
    user_id: str
    username: str
    text: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# --- Article ---

class ArticleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=300)
    title: str = Field(min_length=1, max_length=300)
    content: str = Field(min_length=1)
    thumbnail: str = Field(min_length=1, max_length=1000)
    tag: str | None = Field(None, max_length=100)
    is_draft: bool = False

    @field_validator("name", "title", "thumbnail")
    @classmethod
    def strip_required(cls, value: str) -> str:
        return _require_text(value)

    # Content is stored exactly as written.
    @field_validator("content")
    @classmethod
    def check_content(cls, value: str) -> str:
        return _require_text(value, strip=False)


class ArticleUpdate(BaseModel):
    """Partial update; ``name`` is deliberately absent."""

    title: str | None = Field(None, max_length=300)
    content: str | None = None
    thumbnail: str | None = Field(None, max_length=1000)
    tag: str | None = Field(None, max_length=100)
    is_draft: bool | None = None

    @field_validator("title", "thumbnail")
    @classmethod
    def strip_required(cls, value: str | None) -> str | None:
        return _require_text(value)

    @field_validator("content")
    @classmethod
    def check_content(cls, value: str | None) -> str | None:
        return _require_text(value, strip=False)


class ArticleSummary(BaseModel):
    id: int
    name: str
    title: str
    thumbnail: str
    author_id: str
    author_name: str | None
    tag: str | None
    is_draft: bool
    likes: int
    created_at: datetime
    updated_at: datetime | None


class ArticleView(ArticleSummary):
    content: str
    liked_by: list[str] = []
    liked: bool = False
    comments: list[CommentResponse] = []


class LikeResult(BaseModel):
    likes: int
    liked: bool


# --- Pagination ---

class PaginatedResponse(BaseModel):
    items: list  # Will be typed in router
    total: int
    page: int
    page_size: int
    pages: int


# --- Metrics ---

class MetricsResponse(BaseModel):
    published_articles: int
    total_comments: int
    total_likes: int
    avg_comments_per_article: float
    cache_info: dict = {}
