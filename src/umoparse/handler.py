"""Cached access to the agency/route/stop graph of the feed."""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from . import commands
from .commands import FeedCommand
from .config import DEFAULT_CACHE_MAX_AGE, CacheOptions, TransportConfig
from .exceptions import (
    AgencyNotFound,
    DetachedEntityError,
    RouteNotFound,
    ServiceNotFound,
    StopNotFound,
)
from .models import Agency, Prediction, Route, Service, Stop
from .normalize import decode_document
from .parsers import parse_agencies, parse_predictions, parse_route_config, parse_route_tags
from .transport import FeedTransport

logger = logging.getLogger(__name__)


class FeedHandler:
    """
    Fetches feed entities on first use and keeps them for a bounded time.

    This class provides methods to:
    - List agencies and look one up by tag
    - Load an agency's routes, with their stops and services
    - Find stops and services across an agency, and the routes serving a stop
    - Get arrival predictions for a stop

    Each cached collection (the agency list, an agency's routes, a stop's
    predictions) records when it was fetched. It is reused while it is
    younger than the max age in effect for the call; otherwise, or when the
    call disables the cache, it is fetched again and replaced wholesale. A
    failed refresh leaves the previous collection in place.

    A handler takes no locks. Share one between threads only if the callers
    serialize their access to it.
    """

    def __init__(
        self,
        config: Optional[TransportConfig] = None,
        cache_options: Optional[CacheOptions] = None,
        prediction_options: Optional[CacheOptions] = None,
        transport: Optional[FeedTransport] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the handler.

        Args:
            config: Request settings, used when transport is not given.
            cache_options: Default cache options for agencies and routes
                (reused for 60 seconds).
            prediction_options: Default cache options for predictions
                (max age 0: refreshed on every call).
            transport: Transport to fetch through. Built from config and
                session if None.
            session: requests session for the transport built here.
        """
        self.transport = transport if transport is not None else FeedTransport(config, session=session)
        self.cache_options = cache_options if cache_options is not None else CacheOptions()
        self.prediction_options = (
            prediction_options if prediction_options is not None else CacheOptions(max_age=0)
        )
        self._agencies: Optional[List[Agency]] = None
        self._agencies_refreshed_at: Optional[float] = None
        self._clock = time.monotonic  # overridable for testing

    def __enter__(self) -> "FeedHandler":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Release the transport's HTTP resources."""
        self.transport.close()

    # -- raw access ---------------------------------------------------------

    def get(self, command: FeedCommand) -> bytes:
        """Fetch the raw response body for any feed command."""
        return self.transport.fetch(command)

    def get_json(self, command: FeedCommand) -> Dict[str, Any]:
        """Fetch a feed command and decode its JSON object."""
        return decode_document(self.get(command), field=command.name)

    # -- freshness ----------------------------------------------------------

    def _is_fresh(
        self, collection: Optional[list], refreshed_at: Optional[float], options: CacheOptions
    ) -> bool:
        if collection is None or refreshed_at is None:
            return False
        if not options.use_cache or options.max_age <= 0:
            return False
        return self._clock() - refreshed_at <= options.max_age

    # -- agencies -----------------------------------------------------------

    def get_agencies(self, options: Optional[CacheOptions] = None) -> List[Agency]:
        """
        Get all agencies published by the feed.

        Args:
            options: Cache options for this call; defaults to cache_options.

        Returns:
            List of Agency objects. Refreshing the list replaces every
            Agency object, along with any routes cached on them.

        Raises:
            TransportError: If the feed could not be reached.
            DecodeError: If the response is malformed.
        """
        options = options or self.cache_options
        if self._is_fresh(self._agencies, self._agencies_refreshed_at, options):
            logger.debug("Using cached agency list")
            return self._agencies

        logger.info("Refreshing agency list")
        agencies = parse_agencies(self.get_json(commands.agency_list()), self)
        self._agencies = agencies
        self._agencies_refreshed_at = self._clock()
        return agencies

    def get_agency(self, agency_tag: str, options: Optional[CacheOptions] = None) -> Agency:
        """
        Get an agency by tag.

        Raises:
            AgencyNotFound: If no agency has this tag.
        """
        for agency in self.get_agencies(options):
            if agency.tag == agency_tag:
                return agency
        raise AgencyNotFound(agency_tag)

    # -- routes -------------------------------------------------------------

    def get_routes(self, agency: Agency, options: Optional[CacheOptions] = None) -> List[Route]:
        """
        Get an agency's routes, with their stops and services.

        A refresh issues one routeList request and then one routeConfig
        request per route. If any of them fails, nothing is replaced.

        Args:
            agency: Agency whose routes to load.
            options: Cache options for this call; defaults to cache_options.

        Returns:
            List of Route objects in routeList order.

        Raises:
            TransportError: If any request failed.
            DecodeError: If any response is malformed.
        """
        options = options or self.cache_options
        if self._is_fresh(agency.routes, agency.routes_refreshed_at, options):
            logger.debug(f"Using cached routes for {agency.tag}")
            return agency.routes

        logger.info(f"Refreshing routes for {agency.tag}")
        try:
            route_tags = parse_route_tags(self.get_json(commands.route_list(agency.tag)))
            routes = [
                parse_route_config(self.get_json(commands.route_config(agency.tag, tag)), agency)
                for tag in route_tags
            ]
        except Exception as e:
            logger.error(f"Failed to refresh routes for {agency.tag}: {e}")
            raise

        agency.routes = routes
        agency.routes_refreshed_at = self._clock()
        logger.info(f"Loaded {len(routes)} routes for {agency.tag}")
        return routes

    def _ensure_routes(self, agency: Agency) -> List[Route]:
        """Routes already loaded for agency, fetched once if they never were."""
        if agency.routes is None:
            return self.get_routes(agency)
        return agency.routes

    def get_route(
        self, agency: Agency, route_tag: str, options: Optional[CacheOptions] = None
    ) -> Route:
        """
        Get one of an agency's routes by tag.

        Raises:
            RouteNotFound: If the agency has no route with this tag.
        """
        for route in self.get_routes(agency, options):
            if route.tag == route_tag:
                return route
        raise RouteNotFound(route_tag, f"Route {route_tag} not found for agency {agency.tag}.")

    # -- services -----------------------------------------------------------

    def get_service(
        self, agency: Agency, service_tag: str, options: Optional[CacheOptions] = None
    ) -> Service:
        """
        Get the first service with this tag on any of the agency's routes.

        Raises:
            ServiceNotFound: If no route of the agency has this service.
        """
        for route in self.get_routes(agency, options):
            for service in route.services:
                if service.tag == service_tag:
                    return service
        raise ServiceNotFound(
            service_tag, f"Service {service_tag} not found for agency {agency.tag}."
        )

    def get_service_by_route(self, agency: Agency, route_tag: str, service_tag: str) -> Service:
        """Get a service by tag within a specific route."""
        return self.get_route(agency, route_tag).get_service(service_tag)

    # -- stops --------------------------------------------------------------

    def get_stop(self, agency: Agency, stop_id: str) -> Stop:
        """
        Get a stop by its agency-wide stop id.

        Routes are fetched only if they never were; a cached route graph is
        searched as-is, whatever its age.

        Returns:
            The first matching Stop, in route order.

        Raises:
            StopNotFound: If no route of the agency has this stop.
        """
        for route in self._ensure_routes(agency):
            for stop in route.stops:
                if stop.stop_id == stop_id:
                    return stop
        raise StopNotFound(stop_id, f"Stop {stop_id} not found for agency {agency.tag}.")

    def get_stop_routes(self, agency: Agency, stop_id: str) -> List[Route]:
        """Get every route of the agency that serves a stop."""
        return [route for route in self._ensure_routes(agency) if route.has_stop(stop_id)]

    def get_stop_service_routes(self, agency: Agency, stop_id: str) -> List[Service]:
        """
        Get the services (directions) that call at a stop.

        Only the services whose own stop list includes the stop are returned,
        not every service of the routes serving it.
        """
        return [
            service
            for route in self.get_stop_routes(agency, stop_id)
            for service in route.services
            if service.has_stop(stop_id)
        ]

    def get_stops(self, agency: Agency, options: Optional[CacheOptions] = None) -> List[Stop]:
        """
        Get every stop of the agency.

        A stop served by several routes is listed once, where it is first
        seen. Stops without a stop id are never merged.
        """
        stops: List[Stop] = []
        seen_ids = set()
        for route in self.get_routes(agency, options):
            for stop in route.stops:
                if stop.stop_id:
                    if stop.stop_id in seen_ids:
                        continue
                    seen_ids.add(stop.stop_id)
                stops.append(stop)
        return stops

    # -- predictions --------------------------------------------------------

    def get_predictions(self, stop: Stop, options: Optional[CacheOptions] = None) -> List[Prediction]:
        """
        Get arrival predictions for a stop.

        Args:
            stop: Stop from this handler's route graph.
            options: Cache options for this call; defaults to
                prediction_options, which refresh on every call.

        Each prediction's direction tag is resolved with get_service() under
        cache_options. If the agency's routes are older than that max age,
        the first prediction triggers a full routes refresh, and the
        predictions then point at Service and Route objects of the new graph
        while stop still belongs to the old one.

        Returns:
            List of Prediction objects. A successful refresh replaces the
            stop's previous predictions entirely.

        Raises:
            TransportError: If the feed could not be reached.
            DecodeError: If the response is malformed.
            ServiceNotFound: If a prediction names a direction the agency's
                routes do not have.
            DetachedEntityError: If stop has no agency.
        """
        options = options or self.prediction_options
        if self._is_fresh(stop.predictions, stop.predictions_refreshed_at, options):
            logger.debug(f"Using cached predictions for stop {stop.stop_id}")
            return stop.predictions

        agency = stop.agency
        if agency is None:
            raise DetachedEntityError(f"Stop {stop.stop_id or stop.tag} has no agency")

        started_at = datetime.now(timezone.utc)
        logger.info(f"Refreshing predictions for stop {agency.tag}/{stop.stop_id}")
        try:
            document = self.get_json(commands.predictions(agency.tag, stop.stop_id))
            predictions = parse_predictions(
                document,
                stop,
                lambda service_tag: self.get_service(agency, service_tag),
                started_at,
            )
        except Exception as e:
            logger.error(f"Failed to refresh predictions for stop {stop.stop_id}: {e}")
            raise

        stop.predictions = predictions
        stop.predictions_refreshed_at = self._clock()
        return predictions


def default_handler(
    timeout: float = 30,
    retry_limit: int = 0,
    retry_delay: int = 100,
    headers: Optional[Dict[str, str]] = None,
    cache_max_age: float = DEFAULT_CACHE_MAX_AGE,
) -> FeedHandler:
    """
    Build a handler for the common case.

    Args:
        timeout: Per-attempt deadline in seconds (0 for none).
        retry_limit: Retries after a failed attempt.
        retry_delay: Milliseconds between attempts (minimum 50).
        headers: Extra request headers.
        cache_max_age: Seconds that agencies and routes are reused for.

    Returns:
        A FeedHandler with its own HTTP session.
    """
    config = TransportConfig(
        timeout=timeout,
        retry_limit=retry_limit,
        retry_delay=retry_delay,
        headers=dict(headers or {}),
    )
    return FeedHandler(config=config, cache_options=CacheOptions(max_age=cache_max_age))
