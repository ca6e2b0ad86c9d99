from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from blog_api.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Article
# ---------------------------------------------------------------------------
class Article(Base):
    __tablename__ = "articles"

    __table_args__ = (
        # Author dashboard: one author's articles sorted by date
        Index("ix_articles_author_id_created_at", "author_id", "created_at"),
        # Public feed: published articles sorted by date
        Index("ix_articles_is_draft_created_at", "is_draft", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(350), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    thumbnail: Mapped[str] = mapped_column(String(1000), nullable=False)
    tag: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    is_draft: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # External identity reference plus a display-name snapshot taken at
    # creation time. The snapshot is never refreshed.
    author_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    author_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)

    # Mirror of the article_likes row count, rewritten by every toggle.
    likes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    # Relationships: lazy="raise" makes every service load them explicitly
    # with selectinload.
    # Children are removed with explicit DELETE statements before the
    # article itself, hence passive_deletes.
    comments: Mapped[List["Comment"]] = relationship(
        "Comment",
        back_populates="article",
        lazy="raise",
        order_by="Comment.id",
        passive_deletes=True,
    )
    like_entries: Mapped[List["ArticleLike"]] = relationship(
        "ArticleLike",
        lazy="raise",
        order_by="ArticleLike.created_at",
        passive_deletes=True,
    )

    @property
    def liked_by(self) -> list[str]:
        return [entry.user_id for entry in self.like_entries]


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    username: Mapped[str] = mapped_column(String(150), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    article_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True
    )

    article: Mapped["Article"] = relationship("Article", back_populates="comments", lazy="raise")


# ---------------------------------------------------------------------------
# ArticleLike: one row per (article, identity); the composite key is what
# makes a second like from the same identity impossible.
# ---------------------------------------------------------------------------
class ArticleLike(Base):
    __tablename__ = "article_likes"

    article_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("articles.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
