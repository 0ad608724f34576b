"""Exceptions raised by the feed client."""

from typing import Optional


class FeedError(Exception):
    """Base class for all errors raised by umoparse."""


class TransportError(FeedError):
    """The feed could not be reached, or answered with a non-success status."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ConfigError(FeedError, ValueError):
    """Invalid configuration, detected before any request is made."""


class DecodeError(FeedError, ValueError):
    """A response body does not have the expected shape."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(FeedError, LookupError):
    """A lookup by tag or id found nothing."""

    kind = "Entity"

    def __init__(self, tag: str, message: Optional[str] = None):
        super().__init__(message or f"{self.kind} {tag} not found.")
        self.tag = tag


class AgencyNotFound(NotFoundError):
    kind = "Agency"


class RouteNotFound(NotFoundError):
    kind = "Route"


class ServiceNotFound(NotFoundError):
    kind = "Service"


class StopNotFound(NotFoundError):
    kind = "Stop"


class DetachedEntityError(FeedError, RuntimeError):
    """An entity has no handler (or agency) to fetch through."""
