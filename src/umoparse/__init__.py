"""umoparse - Client for the UmoIQ (NextBus) public JSON transit feed."""

__version__ = "0.1.0"

from .config import CacheOptions, TransportConfig
from .exceptions import (
    AgencyNotFound,
    ConfigError,
    DecodeError,
    DetachedEntityError,
    FeedError,
    NotFoundError,
    RouteNotFound,
    ServiceNotFound,
    StopNotFound,
    TransportError,
)
from .handler import FeedHandler, default_handler
from .models import Agency, Prediction, Route, Service, Stop
from .normalize import sequence
from .transport import FEED_BASE_URI, FeedTransport

__all__ = [
    "FeedHandler",
    "default_handler",
    "FeedTransport",
    "FEED_BASE_URI",
    "TransportConfig",
    "CacheOptions",
    "Agency",
    "Route",
    "Service",
    "Stop",
    "Prediction",
    "sequence",
    "FeedError",
    "TransportError",
    "ConfigError",
    "DecodeError",
    "DetachedEntityError",
    "NotFoundError",
    "AgencyNotFound",
    "RouteNotFound",
    "ServiceNotFound",
    "StopNotFound",
]
