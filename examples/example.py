"""Example usage of ArrivalPredictionEngine."""

import logging
import sys
from pathlib import Path

# Add src to path so we can import railtrack
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from railtrack import (
    ArrivalPredictionEngine,
    FeedClient,
    LocationKind,
    NotFoundError,
    ReferenceDataStore,
    Settings,
    UpstreamUnavailableError,
)
from railtrack.station_resolver import derive_line_code

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def build_engine() -> ArrivalPredictionEngine:
    settings = Settings.from_env()
    store = ReferenceDataStore(settings)
    store.load_from_url()
    return ArrivalPredictionEngine(store, FeedClient(settings), settings)


def print_station_data(engine: ArrivalPredictionEngine, station_input: str):
    """
    Fetch and display current trains and predicted arrivals for a station.

    Args:
        engine: A ready engine with reference data loaded.
        station_input: Station name or ID (e.g., "新宿" or "E001")
    """
    occupancy = engine.trains_at_location(station_input)
    line = engine.formatter.describe_line(derive_line_code(occupancy.station_id))

    print(f"\n{'='*70}")
    print(f"{occupancy.station_name} ({occupancy.station_id}) - {line.name}")
    print(f"Updated: {occupancy.updated_at}")
    print(f"{'='*70}\n")

    print("TRAINS HERE NOW:")
    print("-" * 70)
    if occupancy.trains:
        for train in occupancy.trains:
            delay = f"+{train.delay_minutes} min" if train.delay_minutes else "on time"
            print(f"  {train.train_number} {train.type.name} for {train.destination.name} ({delay})")
    else:
        print("  No trains")

    if occupancy.station_kind is not LocationKind.STATION:
        return

    result = engine.predict_arrivals(station_input)
    print("\nNEXT ARRIVALS:")
    print("-" * 70)
    if result.arrivals:
        for arrival in result.arrivals:
            delay = f" (+{arrival.delay_minutes})" if arrival.delay_minutes else ""
            print(
                f"  {arrival.estimated_time}{delay} {arrival.type.name} "
                f"{arrival.train_number} → {arrival.destination.name}"
            )
            if arrival.free_text_info:
                print(f"    {arrival.free_text_info}")
    else:
        print("  No arrivals found")
    print()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: example.py <station name or ID>")
        sys.exit(2)

    try:
        engine = build_engine()
        print_station_data(engine, " ".join(sys.argv[1:]))
    except NotFoundError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except UpstreamUnavailableError as e:
        logger.error(f"Failed to fetch data: {e}")
        sys.exit(1)
