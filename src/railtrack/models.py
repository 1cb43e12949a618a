"""Data models for the railtrack arrival predictor."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

# Rendered in place of a clock time when no usable time exists
NO_TIME = "--:--"

UNKNOWN_NAME = "unknown"


class LocationKind(Enum):
    """Whether a location is a platform stop or a track segment."""
    STATION = "station"
    SECTION = "section"


class Direction(Enum):
    """Direction of travel as reported by the live feed."""
    UP = "up"
    DOWN = "down"


class StopFlag(Enum):
    """Whether a train stops at or passes through a location."""
    STOP = "stop"
    PASS = "pass"


@dataclass(frozen=True)
class StationRecord:
    """A station or inter-station section from the reference registry."""
    id: str  # E001 (station), U001 / D001 (up / down section)
    name: str
    kind: LocationKind
    max_display: Optional[int] = None  # Sections only

    @property
    def is_station(self) -> bool:
        return self.kind is LocationKind.STATION


@dataclass(frozen=True)
class TrainPositionRecord:
    """One train as it appears in the live feed."""
    number: str  # Already trimmed
    type_code: str
    direction: Direction
    position_flag: str  # "0" means stopped at a station
    delay_minutes: int  # 0 means on schedule
    destination_code: str
    car_count: Optional[str] = None
    free_text_info: Optional[str] = None

    @property
    def is_in_station(self) -> bool:
        return self.position_flag == "0"


@dataclass(frozen=True)
class StationOccupancy:
    """Trains currently reported at a single station or section."""
    location_id: str
    trains: List[TrainPositionRecord] = field(default_factory=list)


@dataclass(frozen=True)
class LiveSnapshot:
    """The live feed at one point in time."""
    timestamp: Optional[datetime]
    stationed: List[StationOccupancy]
    in_transit: List[StationOccupancy]
    has_positions: bool = True  # False when the feed carries no position lists

    def all_trains(self) -> List[TrainPositionRecord]:
        trains: List[TrainPositionRecord] = []
        for occupancy in self.stationed + self.in_transit:
            trains.extend(occupancy.trains)
        return trains


@dataclass(frozen=True)
class ScheduleStop:
    """A single entry in a train's timetable."""
    station_id: str  # Numeric form, e.g. "01" for E001
    station_name: str
    scheduled_time: Optional[str]  # Zero-padded HH:MM or None
    stop_flag: StopFlag


@dataclass(frozen=True)
class TrainSchedule:
    """Static ordered timetable for one train."""
    train_id: str
    stops: List[ScheduleStop]


@dataclass(frozen=True)
class TypeDescriptor:
    code: str
    name: str
    icon: str


@dataclass(frozen=True)
class DestinationDescriptor:
    code: str
    name: str


@dataclass(frozen=True)
class LineDescriptor:
    code: str
    name: str


@dataclass
class ArrivalPrediction:
    """Predicted arrival of one train at the requested station."""
    train_number: str
    type: TypeDescriptor
    direction: Direction
    destination: DestinationDescriptor
    delay_minutes: int
    is_currently_at_station: bool
    estimated_time: str  # HH:MM or NO_TIME
    classification: StopFlag
    free_text_info: Optional[str] = None


@dataclass
class PredictionResult:
    """Upcoming arrivals at a station."""
    station_id: str
    station_name: str
    updated_at: str  # YYYY-MM-DD HH:MM:SS
    arrivals: List[ArrivalPrediction]


@dataclass
class TrainDisplayRecord:
    """A train currently at a station or section, ready for display."""
    train_number: str
    type: TypeDescriptor
    direction: Direction
    destination: DestinationDescriptor
    delay_minutes: int
    car_count: Optional[str]
    free_text_info: Optional[str]
    is_in_station: bool
    position_code: str


@dataclass
class OccupancyResult:
    """Trains currently occupying a station or section."""
    station_id: str
    station_name: str
    station_kind: LocationKind
    updated_at: str
    trains: List[TrainDisplayRecord]


@dataclass
class StopEstimate:
    """A schedule stop together with its delay-adjusted time."""
    stop: ScheduleStop
    estimated_time: str


@dataclass
class ScheduleEstimate:
    """A train's full timetable with delay applied to every timed stop."""
    train_id: str
    delay_minutes: int
    stops: List[StopEstimate]
