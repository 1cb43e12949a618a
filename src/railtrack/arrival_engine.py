"""Arrival prediction: merges the live feed with per-train schedules."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from .config import Settings
from .descriptors import DescriptorFormatter
from .errors import NotFoundError, UpstreamUnavailableError
from .feed_client import FeedClient, format_timestamp
from .models import (
    ArrivalPrediction,
    LiveSnapshot,
    OccupancyResult,
    PredictionResult,
    ScheduleEstimate,
    ScheduleStop,
    StationRecord,
    StopEstimate,
    StopFlag,
    TrainDisplayRecord,
    TrainPositionRecord,
    TrainSchedule,
)
from .reference_loader import ReferenceDataStore
from .schedule_time import estimate, resolve_instant
from .station_resolver import (
    UNKNOWN_LINE,
    StationResolver,
    derive_line_code,
    normalize_station_id,
)

logger = logging.getLogger(__name__)


def find_stop(schedule: TrainSchedule, target_key: str) -> Optional[ScheduleStop]:
    """
    Locate the stop matching a normalized station identifier.

    Schedule IDs are compared both as delivered and after the same
    normalization applied to the target.
    """
    for stop in schedule.stops:
        if stop.station_id == target_key or normalize_station_id(stop.station_id) == target_key:
            return stop
    return None


class ArrivalPredictionEngine:
    """
    Predicts upcoming arrivals at a station and reports current occupancy.

    This class provides methods to:
    - Predict delay-adjusted arrivals at a station
    - List trains currently at a station or section
    - Expand a single train's timetable with its current delay
    """

    def __init__(
        self,
        store: ReferenceDataStore,
        provider: FeedClient,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            store: Reference tables (stations, train types, destinations).
            provider: Source of the live snapshot and train schedules.
            settings: Worker limits and line filtering; defaults to Settings().
            clock: Returns the current wall-clock time. Captured once per request.
        """
        self.store = store
        self.provider = provider
        self.settings = settings or Settings()
        self.resolver = StationResolver(store.get_station_registry)
        self.formatter = DescriptorFormatter(store)
        self._clock = clock

    def predict_arrivals(self, station_identifier: str) -> PredictionResult:
        """
        Predict which active trains will stop at a station, and when.

        Args:
            station_identifier: Station ID (e.g. "E001") or exact display name.

        Returns:
            PredictionResult with arrivals ordered by estimated time. Trains
            that do not serve the station, only pass through it, or are
            already past it are left out.

        Raises:
            NotFoundError: If the station does not exist or is a section.
            UpstreamUnavailableError: If the live snapshot cannot be fetched.
        """
        station = self.resolver.resolve_station(station_identifier)
        snapshot = self.provider.get_live_snapshot()
        now = self._clock()

        trains = self._collect_trains(station, snapshot)
        schedules = self._fetch_schedules(trains)
        target_key = normalize_station_id(station.id)

        timed: List[Tuple[datetime, ArrivalPrediction]] = []
        for train in trains:
            schedule = schedules.get(train.number)
            if schedule is None:
                continue

            stop = find_stop(schedule, target_key)
            if stop is None:
                continue
            if not stop.scheduled_time:
                logger.debug(f"Train {train.number} passes {station.id} without a timed event")
                continue

            try:
                estimated_time = estimate(stop.scheduled_time, train.delay_minutes)
                instant = resolve_instant(estimated_time, now)
            except ValueError as e:
                logger.warning(f"Skipping train {train.number}: {e}")
                continue
            if instant < now:
                logger.debug(f"Train {train.number} already left {station.id} at {estimated_time}")
                continue

            timed.append((instant, self._build_prediction(train, estimated_time)))

        timed.sort(key=lambda item: item[0])
        return PredictionResult(
            station_id=station.id,
            station_name=station.name,
            updated_at=format_timestamp(snapshot.timestamp),
            arrivals=[prediction for _, prediction in timed],
        )

    def trains_at_location(self, identifier: str) -> OccupancyResult:
        """
        List the trains currently at a station or section.

        Args:
            identifier: Station/section ID or exact display name.

        Raises:
            NotFoundError: If the location does not exist.
            UpstreamUnavailableError: If the live snapshot cannot be fetched.
        """
        location = self.resolver.resolve(identifier)
        snapshot = self.provider.get_live_snapshot()

        result = OccupancyResult(
            station_id=location.id,
            station_name=location.name,
            station_kind=location.kind,
            updated_at=format_timestamp(snapshot.timestamp),
            trains=[],
        )
        if not snapshot.has_positions:
            logger.warning("No train positions in the live feed")
            return result

        occupancies = snapshot.stationed if location.is_station else snapshot.in_transit
        for occupancy in occupancies:
            if occupancy.location_id == location.id:
                result.trains = [self._build_display_record(t) for t in occupancy.trains]
                break
        return result

    def train_schedule(self, train_id: str, delay_minutes: Optional[int] = None) -> ScheduleEstimate:
        """
        Get a train's timetable with a delay applied to every timed stop.

        Args:
            train_id: Train number; surrounding whitespace is ignored.
            delay_minutes: Delay to apply. When None, the train's current
                delay from the live feed is used (0 if it is not running).

        Raises:
            NotFoundError: If the train has no schedule.
        """
        train_id = train_id.strip()
        schedule = self.provider.get_train_schedule(train_id)

        if delay_minutes is None:
            delay_minutes = 0
            for train in self.provider.get_live_snapshot().all_trains():
                if train.number == train_id:
                    delay_minutes = train.delay_minutes
                    break

        return ScheduleEstimate(
            train_id=schedule.train_id,
            delay_minutes=delay_minutes,
            stops=[StopEstimate(stop=s, estimated_time=estimate(s.scheduled_time, delay_minutes)) for s in schedule.stops],
        )

    def _collect_trains(self, station: StationRecord, snapshot: LiveSnapshot) -> List[TrainPositionRecord]:
        """Flatten stationed and in-transit trains, optionally limited to the station's line."""
        line_code = derive_line_code(station.id)
        filter_line = self.settings.filter_by_line and line_code != UNKNOWN_LINE

        trains: List[TrainPositionRecord] = []
        for occupancy in snapshot.stationed + snapshot.in_transit:
            if filter_line and derive_line_code(occupancy.location_id) != line_code:
                continue
            trains.extend(t for t in occupancy.trains if t.number)
        return trains

    def _fetch_schedules(self, trains: List[TrainPositionRecord]) -> Dict[str, TrainSchedule]:
        """
        Fetch every train's schedule on a bounded worker pool.

        Failed or malformed schedules are logged and left out of the result.
        """
        numbers = list(dict.fromkeys(t.number for t in trains))
        if not numbers:
            return {}

        schedules: Dict[str, TrainSchedule] = {}
        workers = min(self.settings.max_workers, len(numbers))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="schedule") as pool:
            futures = {number: pool.submit(self.provider.get_train_schedule, number) for number in numbers}
            for number, future in futures.items():
                try:
                    schedules[number] = future.result()
                except NotFoundError as e:
                    logger.warning(f"Skipping train {number}: {e}")
                except UpstreamUnavailableError as e:
                    logger.warning(f"Skipping train {number}, schedule unavailable: {e}")
        return schedules

    def _build_prediction(self, train: TrainPositionRecord, estimated_time: str) -> ArrivalPrediction:
        return ArrivalPrediction(
            train_number=train.number,
            type=self.formatter.describe_type(train.type_code),
            direction=train.direction,
            destination=self.formatter.describe_destination(train.destination_code),
            delay_minutes=train.delay_minutes,
            is_currently_at_station=train.is_in_station,
            estimated_time=estimated_time,
            classification=StopFlag.STOP,
            free_text_info=train.free_text_info,
        )

    def _build_display_record(self, train: TrainPositionRecord) -> TrainDisplayRecord:
        return TrainDisplayRecord(
            train_number=train.number,
            type=self.formatter.describe_type(train.type_code),
            direction=train.direction,
            destination=self.formatter.describe_destination(train.destination_code),
            delay_minutes=train.delay_minutes,
            car_count=train.car_count,
            free_text_info=train.free_text_info,
            is_in_station=train.is_in_station,
            position_code=train.position_flag,
        )
