"""Live position feed and per-train schedule fetcher."""

import logging
import threading
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import requests

from .config import Settings
from .errors import MalformedScheduleError, NotFoundError, UpstreamUnavailableError
from .models import (
    Direction,
    LiveSnapshot,
    ScheduleStop,
    StationOccupancy,
    StopFlag,
    TrainPositionRecord,
    TrainSchedule,
)

logger = logging.getLogger(__name__)

TRAFFIC_INFO_PATH = "/data/traffic_info.json"
SCHEDULE_PATH = "/dia/{train_id}.json"

UPDATED_AT_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_feed_timestamp(payload: Dict[str, Any]) -> Optional[datetime]:
    """Read the feed's update time from up[0].dt[0] ({yy, mt, dy, hh, mm, ss})."""
    try:
        dt = payload["up"][0]["dt"][0]
        return datetime(
            int(dt["yy"]), int(dt["mt"]), int(dt["dy"]),
            int(dt["hh"]), int(dt["mm"]), int(dt["ss"]),
        )
    except (KeyError, IndexError, TypeError, ValueError):
        return None


def format_timestamp(timestamp: Optional[datetime]) -> str:
    if timestamp is None:
        return "Unknown"
    return timestamp.strftime(UPDATED_AT_FORMAT)


def parse_delay(raw: Any) -> int:
    """Delay in minutes; "00" and anything unparsable count as on schedule."""
    try:
        delay = int(str(raw).strip())
    except (TypeError, ValueError):
        logger.debug(f"Unparsable delay value {raw!r}, treating as on schedule")
        return 0
    return max(delay, 0)


def parse_train(raw: Dict[str, Any]) -> TrainPositionRecord:
    """Convert one feed train entry into a TrainPositionRecord."""
    car_count = str(raw.get("sr") or "").strip()
    return TrainPositionRecord(
        number=str(raw.get("tr") or "").strip(),
        type_code=raw.get("sy_tr", ""),
        direction=Direction.UP if raw.get("ki") == "0" else Direction.DOWN,
        position_flag=raw.get("bs", ""),
        delay_minutes=parse_delay(raw.get("dl")),
        destination_code=raw.get("ik_tr", ""),
        car_count=car_count if car_count and car_count != "0" else None,
        free_text_info=raw.get("inf") or None,
    )


def parse_snapshot(payload: Dict[str, Any]) -> LiveSnapshot:
    """Convert a decoded traffic_info document into a LiveSnapshot."""
    stationed_raw = payload.get("TS")
    in_transit_raw = payload.get("TB")
    has_positions = stationed_raw is not None and in_transit_raw is not None

    return LiveSnapshot(
        timestamp=parse_feed_timestamp(payload),
        stationed=_parse_occupancies(stationed_raw or []),
        in_transit=_parse_occupancies(in_transit_raw or []),
        has_positions=has_positions,
    )


def _parse_occupancies(entries: Any) -> List[StationOccupancy]:
    occupancies: List[StationOccupancy] = []
    if not isinstance(entries, list):
        logger.warning(f"Ignoring position list of type {type(entries).__name__}")
        return occupancies
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        trains = entry.get("ps")
        if not isinstance(trains, list):
            continue
        occupancies.append(
            StationOccupancy(
                location_id=entry.get("id", ""),
                trains=[parse_train(t) for t in trains if isinstance(t, dict)],
            )
        )
    return occupancies


def parse_schedule(train_id: str, payload: Any) -> TrainSchedule:
    """
    Convert a decoded dia document into a TrainSchedule.

    Raises:
        MalformedScheduleError: If the payload has no "dy" stop list, or a
            stop is not an object or carries a non-string time.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("dy"), list):
        raise MalformedScheduleError(train_id)

    stops = []
    for index, stop in enumerate(payload["dy"]):
        if not isinstance(stop, dict):
            raise MalformedScheduleError(train_id, f"stop {index} is not an object")
        ht = stop.get("ht")
        if ht is not None and not isinstance(ht, str):
            raise MalformedScheduleError(train_id, f"stop {index} has non-string time {ht!r}")
        scheduled = (ht or "").strip() or None
        stops.append(
            ScheduleStop(
                station_id=str(stop.get("st", "")).strip(),
                station_name=stop.get("sn", ""),
                scheduled_time=scheduled,
                stop_flag=StopFlag.STOP if stop.get("pa") == "1" else StopFlag.PASS,
            )
        )
    return TrainSchedule(train_id=train_id, stops=stops)


class FeedClient:
    """Fetches the live snapshot and train schedules over HTTP."""

    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or Settings()
        self._session = session or requests.Session()
        self._session.headers.setdefault("Accept", "application/json")
        self._snapshot_cache: Optional[Tuple[LiveSnapshot, float]] = None  # (snapshot, fetched_at)
        self._lock = threading.Lock()

    def get_live_snapshot(self) -> LiveSnapshot:
        """
        Get the current live feed, cached for settings.snapshot_ttl seconds.

        Raises:
            UpstreamUnavailableError: If the feed cannot be fetched or decoded.
        """
        now = time.time()
        with self._lock:
            cached = self._snapshot_cache
        if cached is not None and now - cached[1] < self.settings.snapshot_ttl:
            logger.debug("Using cached live snapshot")
            return cached[0]

        url = f"{self.settings.base_url}{TRAFFIC_INFO_PATH}"
        payload = self._get_json(url, params={"ts": int(now * 1000)})
        if not isinstance(payload, dict):
            raise UpstreamUnavailableError(url, ValueError(f"unexpected body of type {type(payload).__name__}"))
        snapshot = parse_snapshot(payload)
        with self._lock:
            self._snapshot_cache = (snapshot, now)
        return snapshot

    def get_train_schedule(self, train_id: str) -> TrainSchedule:
        """
        Get the static timetable for one train.

        Args:
            train_id: Trimmed train number (e.g. "0715").

        Raises:
            NotFoundError: If no schedule exists for the train.
            MalformedScheduleError: If the schedule has no stop list.
            UpstreamUnavailableError: On transport failure.
        """
        url = f"{self.settings.base_url}{SCHEDULE_PATH.format(train_id=train_id)}"
        try:
            payload = self._get_json(url)
        except UpstreamUnavailableError as e:
            response = getattr(e.cause, "response", None)
            if response is not None and response.status_code == 404:
                raise NotFoundError(f"Train schedule not found: {train_id}") from e
            raise
        return parse_schedule(train_id, payload)

    def clear_cache(self) -> None:
        with self._lock:
            self._snapshot_cache = None

    def close(self) -> None:
        self._session.close()

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        logger.debug(f"Fetching {url}")
        try:
            response = self._session.get(url, params=params, timeout=self.settings.request_timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Failed to fetch {url}: {e}")
            raise UpstreamUnavailableError(url, e) from e
