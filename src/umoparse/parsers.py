"""Builds entities from decoded feed responses."""

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Dict, List

from .coerce import to_bool, to_float, to_int, to_string
from .exceptions import DecodeError
from .models import Agency, Prediction, Route, Service, Stop
from .normalize import JSONObject, field_sequence, mapping, optional, required

if TYPE_CHECKING:
    from .handler import FeedHandler

logger = logging.getLogger(__name__)

# Present on a prediction group when a direction has nothing scheduled.
NO_PREDICTIONS_MARKER = "dirTitleBecauseNoPredictions"


def parse_agencies(document: JSONObject, handler: "FeedHandler") -> List[Agency]:
    """
    Parse an agencyList response.

    Args:
        document: Decoded response body.
        handler: Handler the agencies are attached to.

    Returns:
        Agencies in feed order, with routes not yet fetched.
    """
    agencies: List[Agency] = []
    for item in field_sequence(document, "agency"):
        title = required(item, "title", to_string)
        agencies.append(
            Agency(
                tag=required(item, "tag", to_string),
                title=title,
                short_title=optional(item, "shortTitle", to_string, title),
                region_title=optional(item, "regionTitle", to_string, ""),
                handler=handler,
            )
        )
    logger.debug(f"Parsed {len(agencies)} agencies")
    return agencies


def parse_route_tags(document: JSONObject) -> List[str]:
    """Parse a routeList response into route tags. No "route" field means no routes."""
    return [required(item, "tag", to_string) for item in field_sequence(document, "route", required=False)]


def _parse_stop(item: JSONObject, route: Route, agency: Agency) -> Stop:
    title = optional(item, "title", to_string, "")
    return Stop(
        tag=required(item, "tag", to_string),
        stop_id=optional(item, "stopId", to_string, ""),
        title=title,
        short_title=optional(item, "shortTitle", to_string, title),
        longitude=optional(item, "lon", to_float, 0.0),
        latitude=optional(item, "lat", to_float, 0.0),
        agency=agency,
        route=route,
    )


def _parse_service(item: JSONObject, route: Route, stops_by_tag: Dict[str, Stop]) -> Service:
    service = Service(
        tag=required(item, "tag", to_string),
        name=optional(item, "name", to_string, ""),
        title=optional(item, "title", to_string, ""),
        use_for_ui=optional(item, "useForUI", to_bool, False),
        route=route,
        agency=route.agency,
    )

    for stop_ref in field_sequence(item, "stop", required=False):
        stop_tag = to_string(stop_ref.get("tag"))
        stop = stops_by_tag.get(stop_tag) if stop_tag is not None else None
        if stop is None:
            logger.debug(f"Service {service.tag} references unknown stop {stop_tag}; skipping")
            continue
        service.stops.append(stop)

    return service


def parse_route_config(document: JSONObject, agency: Agency) -> Route:
    """
    Parse a verbose routeConfig response into a Route with its stops and services.

    Args:
        document: Decoded response body.
        agency: Agency the route belongs to.

    Returns:
        The route. Its services reference the route's own Stop objects.

    Raises:
        DecodeError: If the route, its stops or its directions are malformed.
    """
    body = mapping(document, "route")
    title = optional(body, "title", to_string, "")
    route = Route(
        tag=required(body, "tag", to_string),
        title=title,
        short_title=optional(body, "shortTitle", to_string, title),
        agency=agency,
    )

    stops_by_tag: Dict[str, Stop] = {}
    for item in field_sequence(body, "stop"):
        stop = _parse_stop(item, route, agency)
        if stop.tag in stops_by_tag:
            continue
        stops_by_tag[stop.tag] = stop
        route.stops.append(stop)

    for item in field_sequence(body, "direction"):
        route.services.append(_parse_service(item, route, stops_by_tag))

    logger.debug(
        f"Parsed route {agency.tag}/{route.tag}: {len(route.stops)} stops, {len(route.services)} services"
    )
    return route


def epoch_millis_to_datetime(millis: int) -> datetime:
    """Convert feed epoch milliseconds to an aware UTC datetime.

    Raises:
        DecodeError: If millis is outside the platform's timestamp range.
    """
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise DecodeError(f"epochTime {millis} is out of range: {e}", field="epochTime") from e


def parse_prediction(
    item: JSONObject,
    stop: Stop,
    resolve_service: Callable[[str], Service],
    produced_at: datetime,
) -> Prediction:
    """
    Parse one prediction.

    Args:
        item: The prediction object.
        stop: Stop the prediction is for.
        resolve_service: Looks up a Service by direction tag; raises if unknown.
        produced_at: When the refresh that produced this prediction started.
    """
    service = resolve_service(required(item, "dirTag", to_string))
    eta = epoch_millis_to_datetime(required(item, "epochTime", to_int))

    return Prediction(
        eta=eta,
        service=service,
        route=service.route,
        stop=stop,
        agency=stop.agency,
        minutes=optional(item, "minutes", to_int, 0),
        seconds=optional(item, "seconds", to_int, 0),
        branch=optional(item, "branch", to_string, ""),
        affected_by_layover=optional(item, "affectedByLayover", to_bool, False),
        is_departure=optional(item, "isDeparture", to_bool, False),
        trip_tag=optional(item, "tripTag", to_string, ""),
        schedule_based=optional(item, "isScheduleBased", to_bool, False),
        delayed=optional(item, "delayed", to_bool, False),
        produced_at=produced_at,
    )


def parse_predictions(
    document: JSONObject,
    stop: Stop,
    resolve_service: Callable[[str], Service],
    produced_at: datetime,
) -> List[Prediction]:
    """
    Parse a predictions response.

    The response nests three levels, each of which may be a bare object:
    prediction groups (one per route/direction title), the directions within
    a group, and the predictions within a direction.

    Returns:
        Every prediction in feed order.

    Raises:
        DecodeError: If a level is malformed or a prediction lacks a
            required field.
        ServiceNotFound: If a prediction's direction tag is unknown.
    """
    predictions: List[Prediction] = []

    for group in field_sequence(document, "predictions"):
        if NO_PREDICTIONS_MARKER in group:
            logger.debug(
                f"No predictions for {group.get('routeTag')} "
                f"({group.get(NO_PREDICTIONS_MARKER)}) at stop {stop.stop_id}"
            )
            continue

        for direction in field_sequence(group, "direction", required=False):
            for item in field_sequence(direction, "prediction", required=False):
                predictions.append(parse_prediction(item, stop, resolve_service, produced_at))

    return predictions
