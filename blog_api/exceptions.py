"""
Domain exceptions for the engagement core.

Services raise these; ``main.py`` registers a single handler that renders
them as ``{"detail": ...}`` with the class's ``status_code``.
"""


class EngagementError(Exception):
    """Base class for every error a service reports to its caller."""

    status_code: int = 400
    default_detail: str = "Request could not be processed"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(EngagementError):
    """A required field is missing or blank."""

    status_code = 422
    default_detail = "Invalid request"


class DuplicateNameError(ValidationError):
    """Another article already uses this name."""

    status_code = 409

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"An article named {name!r} already exists")


class NotFoundError(EngagementError):
    """Unknown article, or a draft the requester may not see."""

    status_code = 404
    default_detail = "Article not found"


class UnauthenticatedError(EngagementError):
    status_code = 401
    default_detail = "Authentication required"


class ForbiddenError(EngagementError):
    status_code = 403
    default_detail = "Only the author may modify this article"
