"""Station and section lookup."""

import logging
import re
from typing import Callable, List, Mapping, Tuple

from .errors import NotFoundError
from .models import StationRecord

logger = logging.getLogger(__name__)

UNKNOWN_LINE = "unknown"

# (first, last, line_code), inclusive. Derived from the identifier numbering
# scheme, not from an authoritative line table: branch stations and
# through-services near the range boundaries are known to be misclassified.
LINE_CODE_RANGES: Tuple[Tuple[int, int, str], ...] = (
    (1, 32, "1"),  # Main line
    (36, 54, "1"),
    (33, 35, "2"),  # New line
    (101, 103, "2"),  # New line branch
    (81, 97, "3"),  # Inokashira line
)

_LEADING_LETTER = re.compile(r"^[A-Za-z]")


def normalize_station_id(raw_id: str) -> str:
    """
    Convert an identifier to the numeric form used by train schedules.

    Strips one leading letter and then a single leading zero, so "E001"
    becomes "01". Only one zero is removed: a 3-digit code padded to 4 digits
    keeps an extra zero and will not match its unpadded form.
    """
    stripped = _LEADING_LETTER.sub("", raw_id.strip(), count=1)
    if stripped.startswith("0"):
        stripped = stripped[1:]
    return stripped


def derive_line_code(station_id: str) -> str:
    """
    Guess the line a station or section belongs to from its identifier.

    Args:
        station_id: A registry identifier ("E033") or its numeric form ("33").

    Returns:
        Line code from LINE_CODE_RANGES, or UNKNOWN_LINE.
    """
    digits = _LEADING_LETTER.sub("", station_id.strip(), count=1)
    try:
        number = int(digits)
    except ValueError:
        return UNKNOWN_LINE

    for first, last, line_code in LINE_CODE_RANGES:
        if first <= number <= last:
            return line_code
    return UNKNOWN_LINE


class StationResolver:
    """Resolves identifiers or display names to registry records."""

    def __init__(self, registry: Callable[[], Mapping[str, StationRecord]]):
        """
        Args:
            registry: Returns the current station/section registry keyed by ID.
                Called once per lookup so refreshed tables are picked up.
        """
        self._registry = registry

    def resolve(self, identifier: str) -> StationRecord:
        """
        Get a station or section by ID or exact display name.

        Raises:
            NotFoundError: If neither the ID nor the name matches.
        """
        registry = self._registry()
        record = registry.get(identifier)
        if record is not None:
            return record

        for candidate in registry.values():
            if candidate.name == identifier:
                return candidate

        raise NotFoundError(f"Station not found: {identifier}")

    def resolve_station(self, identifier: str) -> StationRecord:
        """Like resolve(), but sections are rejected."""
        record = self.resolve(identifier)
        if not record.is_station:
            raise NotFoundError(f"Not a station: {identifier}")
        return record

    def stations(self) -> List[StationRecord]:
        return [r for r in self._registry().values() if r.is_station]

    def sections(self) -> List[StationRecord]:
        return [r for r in self._registry().values() if not r.is_station]

    def stations_on_line(self, line_code: str) -> List[StationRecord]:
        """All stations whose derived line code equals line_code."""
        matches = [s for s in self.stations() if derive_line_code(s.id) == line_code]
        if not matches:
            logger.warning(f"No stations found for line {line_code}")
        return matches
