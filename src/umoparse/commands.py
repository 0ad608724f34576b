"""Feed command descriptors.

Every feed request is a GET against a single endpoint, with the command and
its arguments passed in the query string.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import quote


@dataclass(frozen=True)
class FeedCommand:
    """A feed command and its query parameters.

    A parameter whose value is None is rendered as a bare flag
    (routeConfig's ``verbose``).
    """

    name: str
    params: Tuple[Tuple[str, Optional[str]], ...] = ()

    def query(self) -> str:
        """Render the query string, without the leading '?'."""
        parts = [f"command={quote(self.name, safe='')}"]
        for key, value in self.params:
            if value is None:
                parts.append(quote(key, safe=""))
            else:
                parts.append(f"{quote(key, safe='')}={quote(str(value), safe='')}")
        return "&".join(parts)

    def url(self, base_uri: str) -> str:
        """Full request URL against base_uri."""
        return f"{base_uri}?{self.query()}"

    def __str__(self) -> str:
        return self.query()


def agency_list() -> FeedCommand:
    return FeedCommand("agencyList")


def route_list(agency: str) -> FeedCommand:
    return FeedCommand("routeList", (("a", agency),))


def route_config(agency: str, route: str) -> FeedCommand:
    return FeedCommand("routeConfig", (("a", agency), ("r", route), ("verbose", None)))


def schedule(agency: str, route: str) -> FeedCommand:
    return FeedCommand("schedule", (("a", agency), ("r", route)))


def vehicle_locations(agency: str, route: str, since: str) -> FeedCommand:
    """Vehicle positions on a route.

    Args:
        agency: Agency tag.
        route: Route tag.
        since: Epoch milliseconds; only positions reported after it are returned.
    """
    return FeedCommand("vehicleLocations", (("a", agency), ("r", route), ("t", str(since))))


def vehicle_location(agency: str, vehicle_id: str) -> FeedCommand:
    return FeedCommand("vehicleLocation", (("a", agency), ("v", vehicle_id)))


def predictions(agency: str, stop_id: str, route: Optional[str] = None) -> FeedCommand:
    """Arrival predictions for a stop, optionally limited to one route."""
    params = [("a", agency), ("stopId", stop_id)]
    if route:
        params.append(("routeTag", route))
    return FeedCommand("predictions", tuple(params))
