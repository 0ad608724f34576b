"""Example usage of FeedHandler."""

import logging
import sys
from pathlib import Path

# Add src to path so we can import umoparse
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from umoparse import FeedError, NotFoundError, default_handler

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def print_stop_predictions(agency_tag: str, stop_id: str):
    """
    Fetch and display the services and upcoming arrivals at a stop.

    Args:
        agency_tag: Agency tag (e.g., "ttc")
        stop_id: Agency-wide stop ID (e.g., "1002")
    """
    print(f"\n{'='*70}")
    print(f"Fetching data for: {agency_tag} stop {stop_id}")
    print(f"{'='*70}\n")

    try:
        with default_handler(retry_limit=2, retry_delay=500) as handler:
            agency = handler.get_agency(agency_tag)
            print(f"Agency: {agency.title} ({agency.region_title})")

            # Loads every route of the agency on first use; this may take a while.
            stop = handler.get_stop(agency, stop_id)
            print(f"Stop: {stop.title} ({stop.latitude:.5f}, {stop.longitude:.5f})\n")

            print("SERVICES AT THIS STOP:")
            print("-" * 70)
            for service in handler.get_stop_service_routes(agency, stop_id):
                print(f"  {service.route.title}: {service.title}")

            print("\nPREDICTIONS:")
            print("-" * 70)
            predictions = handler.get_predictions(stop)
            if predictions:
                for prediction in sorted(predictions, key=lambda p: p.eta):
                    flags = []
                    if prediction.schedule_based:
                        flags.append("scheduled")
                    if prediction.delayed:
                        flags.append("delayed")
                    suffix = f" [{', '.join(flags)}]" if flags else ""
                    print(f"  {prediction.route.title}: {prediction.minutes} min → {prediction.service.title}{suffix}")
            else:
                print("  No predictions")

        print("\n" + "=" * 70 + "\n")

    except NotFoundError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except FeedError as e:
        logger.error(f"Failed to fetch data: {e}", exc_info=True)
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("Usage: example.py AGENCY_TAG STOP_ID")
        sys.exit(2)
    print_stop_predictions(sys.argv[1], sys.argv[2])
