"""Data models for the transit feed.

Ownership runs downward: a handler owns its agencies, an agency its routes,
a route its stops and services, a stop its latest predictions. The upward
attributes (handler, agency, route, service, stop) are plain references for
navigation only; they are excluded from repr and comparison, and entities
compare by identity.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from .config import CacheOptions
from .exceptions import DetachedEntityError, RouteNotFound, ServiceNotFound, StopNotFound

if TYPE_CHECKING:
    from .handler import FeedHandler


@dataclass(eq=False)
class Agency:
    """A transit operator."""

    tag: str
    title: str
    short_title: str = ""
    region_title: str = ""
    # None until the first routes fetch; [] means fetched and empty.
    routes: Optional[List["Route"]] = field(default=None, repr=False)
    handler: Optional["FeedHandler"] = field(default=None, repr=False)
    routes_refreshed_at: Optional[float] = field(default=None, repr=False)

    def _require_handler(self) -> "FeedHandler":
        if self.handler is None:
            raise DetachedEntityError(f"Agency {self.tag} is not attached to a FeedHandler")
        return self.handler

    def get_routes(self, options: Optional[CacheOptions] = None) -> List["Route"]:
        return self._require_handler().get_routes(self, options)

    def get_route(self, route_tag: str, options: Optional[CacheOptions] = None) -> "Route":
        return self._require_handler().get_route(self, route_tag, options)

    def get_service(self, service_tag: str, options: Optional[CacheOptions] = None) -> "Service":
        return self._require_handler().get_service(self, service_tag, options)

    def get_service_by_route(self, route_tag: str, service_tag: str) -> "Service":
        return self._require_handler().get_service_by_route(self, route_tag, service_tag)

    def get_stop(self, stop_id: str) -> "Stop":
        return self._require_handler().get_stop(self, stop_id)

    def get_stop_routes(self, stop_id: str) -> List["Route"]:
        return self._require_handler().get_stop_routes(self, stop_id)

    def get_stop_service_routes(self, stop_id: str) -> List["Service"]:
        return self._require_handler().get_stop_service_routes(self, stop_id)

    def get_stops(self, options: Optional[CacheOptions] = None) -> List["Stop"]:
        return self._require_handler().get_stops(self, options)


@dataclass(eq=False)
class Route:
    """A route operated by an agency, with every stop any of its services uses."""

    tag: str
    title: str = ""
    short_title: str = ""
    stops: List["Stop"] = field(default_factory=list, repr=False)
    services: List["Service"] = field(default_factory=list, repr=False)
    agency: Optional[Agency] = field(default=None, repr=False)

    def get_service(self, service_tag: str) -> "Service":
        """Find one of this route's services by tag."""
        for service in self.services:
            if service.tag == service_tag:
                return service
        raise ServiceNotFound(service_tag, f"Service {service_tag} not found on route {self.tag}.")

    def get_stop(self, stop_id: str) -> "Stop":
        """Find a stop on this route by its agency-wide stop id."""
        for stop in self.stops:
            if stop.stop_id == stop_id:
                return stop
        raise StopNotFound(stop_id, f"Stop {stop_id} not found on route {self.tag}.")

    def get_stop_by_tag(self, stop_tag: str) -> "Stop":
        """Find a stop on this route by its route-scoped tag."""
        for stop in self.stops:
            if stop.tag == stop_tag:
                return stop
        raise StopNotFound(stop_tag, f"Stop tag {stop_tag} not found on route {self.tag}.")

    def has_stop(self, stop_id: str) -> bool:
        return any(stop.stop_id == stop_id for stop in self.stops)


@dataclass(eq=False)
class Service:
    """
    A directional variant of a route, called a "direction" by the feed.

    A service lists the stops it calls at, in order. The Stop objects are the
    route's own; a stop shared by two services of a route is one object.
    """

    tag: str
    name: str = ""
    title: str = ""
    use_for_ui: bool = False
    stops: List["Stop"] = field(default_factory=list, repr=False)
    route: Optional[Route] = field(default=None, repr=False)
    agency: Optional[Agency] = field(default=None, repr=False)

    def has_stop(self, stop_id: str) -> bool:
        return any(stop.stop_id == stop_id for stop in self.stops)


@dataclass(eq=False)
class Stop:
    """A physical stop location."""

    tag: str
    stop_id: str = ""
    title: str = ""
    short_title: str = ""
    longitude: float = 0.0
    latitude: float = 0.0
    # None until the first predictions fetch; replaced wholesale on refresh.
    predictions: Optional[List["Prediction"]] = field(default=None, repr=False)
    agency: Optional[Agency] = field(default=None, repr=False)
    route: Optional[Route] = field(default=None, repr=False)
    predictions_refreshed_at: Optional[float] = field(default=None, repr=False)

    def get_predictions(self, options: Optional[CacheOptions] = None) -> List["Prediction"]:
        """Fetch (or reuse) arrival predictions for this stop."""
        if self.agency is None or self.agency.handler is None:
            raise DetachedEntityError(f"Stop {self.stop_id or self.tag} is not attached to a FeedHandler")
        return self.agency.handler.get_predictions(self, options)


@dataclass(eq=False)
class Prediction:
    """A real-time or schedule-based arrival estimate."""

    # Estimated arrival (or departure, see is_departure), timezone-aware UTC.
    eta: datetime
    service: Optional[Service] = field(default=None, repr=False)
    route: Optional[Route] = field(default=None, repr=False)
    stop: Optional[Stop] = field(default=None, repr=False)
    agency: Optional[Agency] = field(default=None, repr=False)
    # The feed recommends minutes for display and seconds for refresh timing.
    minutes: int = 0
    seconds: int = 0
    # Only populated by agencies that publish branches (TTC).
    branch: str = ""
    # The vehicle dwells on a layover first, so the estimate is less reliable.
    affected_by_layover: bool = False
    # The trip starts here; eta is when the vehicle leaves.
    is_departure: bool = False
    trip_tag: str = ""
    schedule_based: bool = False
    # The vehicle has been running slower than expected.
    delayed: bool = False
    produced_at: Optional[datetime] = None
