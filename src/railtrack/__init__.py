"""railtrack - Live train positions and arrival predictions for a railway network."""

__version__ = "0.1.0"

from .models import (
    ArrivalPrediction,
    Direction,
    LiveSnapshot,
    LocationKind,
    OccupancyResult,
    PredictionResult,
    StationRecord,
    StopFlag,
    TrainPositionRecord,
    TrainSchedule,
)
from .errors import MalformedScheduleError, NotFoundError, UpstreamUnavailableError
from .config import Settings
from .reference_loader import ReferenceDataStore
from .feed_client import FeedClient
from .station_resolver import StationResolver
from .descriptors import DescriptorFormatter
from .arrival_engine import ArrivalPredictionEngine

__all__ = [
    "ArrivalPredictionEngine",
    "ReferenceDataStore",
    "FeedClient",
    "StationResolver",
    "DescriptorFormatter",
    "Settings",
    "NotFoundError",
    "MalformedScheduleError",
    "UpstreamUnavailableError",
    "ArrivalPrediction",
    "Direction",
    "LiveSnapshot",
    "LocationKind",
    "OccupancyResult",
    "PredictionResult",
    "StationRecord",
    "StopFlag",
    "TrainPositionRecord",
    "TrainSchedule",
]
