from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from blog_api.config import settings
from blog_api.exceptions import UnauthenticatedError
from blog_api.identity import Identity, identity_resolver

bearer_scheme = HTTPBearer(auto_error=False)


async def get_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Identity | None:
    """
    Resolve the acting identity from the ``Authorization: Bearer`` header.

    Returns None for anonymous requests and for tokens the auth service
    does not recognise; read endpoints accept both.
    """
    if credentials is None:
        return None
    return await identity_resolver.resolve(credentials.credentials)


async def require_identity(identity: Identity | None = Depends(get_identity)) -> Identity:
    """Same as ``get_identity`` but rejects anonymous callers with 401."""
    if identity is None:
        raise UnauthenticatedError()
    return identity


class PaginationParams:
    """
    Reusable FastAPI dependency that parses and validates pagination /
    sorting query parameters.

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    page_size:
        Number of items per page, clamped to ``settings.MAX_PAGE_SIZE``
        regardless of the value supplied by the caller.
    sort_by:
        ORM column name to sort by.  The service layer maps unknown names
        back to ``created_at``.
    sort_order:
        ``"asc"`` or ``"desc"`` (enforced by the regex pattern).
    """

    def __init__(
        self,
        page: int = Query(
            1,
            ge=1,
            description="Page number (1-based).",
        ),
        page_size: int = Query(
            20,
            ge=1,
            le=100,
            description="Number of items returned per page (max 100).",
        ),
        sort_by: str = Query(
            "created_at",
            description="Column name to sort results by.",
        ),
        sort_order: str = Query(
            "desc",
            pattern="^(asc|desc)$",
            description="Sort direction: 'asc' or 'desc'.",
        ),
    ) -> None:
        self.page = page
        self.page_size = min(page_size, settings.MAX_PAGE_SIZE)
        self.sort_by = sort_by
        self.sort_order = sort_order
