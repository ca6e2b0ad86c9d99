"""
Authorization guard and draft/publish gate.

Both checks work on plain ``author_id`` / ``is_draft`` values so they apply
equally to ORM rows and to article aggregates served from the cache.

A draft viewed by anyone other than its author is reported as missing,
never as forbidden, so its existence is not disclosed.
"""
from sqlalchemy import or_

from blog_api.exceptions import ForbiddenError, NotFoundError, UnauthenticatedError
from blog_api.identity import Identity
from blog_api.models import Article


def require_identity(identity: Identity | None) -> Identity:
    if identity is None:
        raise UnauthenticatedError()
    return identity


def is_author(author_id: str, identity: Identity | None) -> bool:
    return identity is not None and identity.id == author_id


def require_author(author_id: str, identity: Identity | None) -> None:
    require_identity(identity)
    if not is_author(author_id, identity):
        raise ForbiddenError()


def can_view(author_id: str, is_draft: bool, identity: Identity | None) -> bool:
    return not is_draft or is_author(author_id, identity)


def ensure_visible(author_id: str, is_draft: bool, identity: Identity | None) -> None:
    if not can_view(author_id, is_draft, identity):
        raise NotFoundError()


def visible_to(identity: Identity | None):
    """SQL filter selecting the articles *identity* may browse."""
    published = Article.is_draft.is_(False)
    if identity is None:
        return published
    return or_(published, Article.author_id == identity.id)
