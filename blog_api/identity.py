"""
Identity references supplied by the external auth service.

This service never issues or checks credentials.  The auth service stores
one JSON record per bearer token in Redis (``{"id": ..., "name": ...}``)
and we only read it back.  Anything we cannot read resolves to an
anonymous request.
"""
import logging

from pydantic import BaseModel, ConfigDict, ValidationError

from blog_api.cache import CacheManager, cache

logger = logging.getLogger(__name__)


class Identity(BaseModel):
    id: str
    name: str
    model_config = ConfigDict(frozen=True)


class SessionIdentityResolver:
    def __init__(self, store: CacheManager) -> None:
        self._store = store

    async def resolve(self, token: str | None) -> Identity | None:
        if not token:
            return None
        record = await self._store.get_session(token)
        if record is None:
            return None
        try:
            return Identity.model_validate(record)
        except ValidationError as exc:
            logger.warning("Ignoring session with unexpected shape: %s", exc.error_count())
            return None


identity_resolver = SessionIdentityResolver(cache)
