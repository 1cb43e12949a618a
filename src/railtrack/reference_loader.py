"""Reference table loader: stations, train types, destinations and lines."""

import json
import logging
import os
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import requests

from .config import Settings
from .errors import UpstreamUnavailableError
from .models import (
    DestinationDescriptor,
    LineDescriptor,
    LocationKind,
    StationRecord,
    TypeDescriptor,
)

logger = logging.getLogger(__name__)

POSITION_FILE = "position.json"
TRAIN_TYPE_FILE = "syasyu.json"
DESTINATION_FILE = "ikisaki.json"
LINE_FILE = "line.json"
VERSION_FILE = "assets_version.json"

ASSET_FILES = (POSITION_FILE, TRAIN_TYPE_FILE, DESTINATION_FILE, LINE_FILE)

# Values of the registry "kind" field
STATION_KIND = "駅"
SECTION_KIND = "駅間"


def _frozen(mapping: Dict[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class ReferenceTables:
    """One immutable generation of every reference table."""
    stations: Mapping[str, StationRecord] = field(default_factory=lambda: _frozen({}))
    train_types: Mapping[str, TypeDescriptor] = field(default_factory=lambda: _frozen({}))
    destinations: Mapping[str, DestinationDescriptor] = field(default_factory=lambda: _frozen({}))
    lines: Mapping[str, LineDescriptor] = field(default_factory=lambda: _frozen({}))
    version: str = ""


class ReferenceDataStore:
    """
    Loads and serves the reference tables.

    Tables are never mutated in place. Each load builds a new ReferenceTables
    and replaces the previous one with a single assignment, so a reader that
    grabbed a registry keeps a consistent view for the rest of its request.
    """

    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or Settings()
        self._session = session or requests.Session()
        self._tables = ReferenceTables()

    def get_station_registry(self) -> Mapping[str, StationRecord]:
        return self._tables.stations

    def get_train_type_registry(self) -> Mapping[str, TypeDescriptor]:
        return self._tables.train_types

    def get_destination_registry(self) -> Mapping[str, DestinationDescriptor]:
        return self._tables.destinations

    def get_line_registry(self) -> Mapping[str, LineDescriptor]:
        return self._tables.lines

    @property
    def version(self) -> str:
        return self._tables.version

    def load_from_url(self) -> None:
        """Refresh the local asset copies if stale, then load them."""
        assets_dir = self.settings.assets_dir
        self._update_assets_if_needed(assets_dir)
        self.load_from_files(assets_dir)

    def load_from_files(self, directory: str) -> None:
        """
        Load reference tables from JSON files in a local directory.

        Args:
            directory: Folder holding position.json, syasyu.json, ikisaki.json
                and optionally line.json.

        Raises:
            FileNotFoundError: If a required file is missing.
        """
        logger.info(f"Loading reference data from {directory}")
        payloads = {}
        for filename in ASSET_FILES:
            path = os.path.join(directory, filename)
            if filename == LINE_FILE and not os.path.exists(path):
                logger.warning(f"{filename} not found in {directory}, line names unavailable")
                continue
            with open(path, "r", encoding="utf-8") as f:
                payloads[filename] = json.load(f)

        self.load_from_payloads(
            positions=payloads[POSITION_FILE],
            train_types=payloads[TRAIN_TYPE_FILE],
            destinations=payloads[DESTINATION_FILE],
            lines=payloads.get(LINE_FILE),
            version=self._read_version_info(directory).get("version", ""),
        )

    def load_from_payloads(
        self,
        positions: Dict[str, Any],
        train_types: Dict[str, Any],
        destinations: Dict[str, Any],
        lines: Optional[Dict[str, Any]] = None,
        version: str = "",
    ) -> None:
        """Build a new table generation from decoded JSON documents."""
        tables = ReferenceTables(
            stations=_frozen(self._parse_positions(positions)),
            train_types=_frozen(self._parse_train_types(train_types)),
            destinations=_frozen(self._parse_destinations(destinations)),
            lines=_frozen(self._parse_lines(lines or {})),
            version=version,
        )
        self._tables = tables
        logger.info(
            f"Loaded {len(tables.stations)} locations, {len(tables.train_types)} train types "
            f"and {len(tables.destinations)} destinations"
        )

    def clear(self) -> None:
        """Drop all loaded tables."""
        self._tables = ReferenceTables()
        logger.info("Cleared reference data")

    @staticmethod
    def _parse_positions(payload: Dict[str, Any]) -> Dict[str, StationRecord]:
        stations: Dict[str, StationRecord] = {}
        for row in payload.get("pos") or []:
            location_id = (row.get("ID") or "").strip()
            if not location_id:
                continue

            kind_raw = row.get("kind", "")
            if kind_raw == STATION_KIND:
                kind = LocationKind.STATION
            elif kind_raw == SECTION_KIND:
                kind = LocationKind.SECTION
            else:
                # Fall back to the identifier prefix: E is a station
                kind = LocationKind.STATION if location_id.startswith("E") else LocationKind.SECTION

            max_display = row.get("max_disp")
            try:
                max_display = int(max_display) if max_display not in (None, "") else None
            except (TypeError, ValueError):
                max_display = None

            stations[location_id] = StationRecord(
                id=location_id,
                name=row.get("name", ""),
                kind=kind,
                max_display=max_display,
            )
        return stations

    @staticmethod
    def _parse_train_types(payload: Dict[str, Any]) -> Dict[str, TypeDescriptor]:
        return {
            row["code"]: TypeDescriptor(code=row["code"], name=row.get("name", ""), icon=row.get("iconname", ""))
            for row in payload.get("syasyu") or []
            if row.get("code")
        }

    @staticmethod
    def _parse_destinations(payload: Dict[str, Any]) -> Dict[str, DestinationDescriptor]:
        return {
            row["code"]: DestinationDescriptor(code=row["code"], name=row.get("name", ""))
            for row in payload.get("ikisaki") or []
            if row.get("code")
        }

    @staticmethod
    def _parse_lines(payload: Dict[str, Any]) -> Dict[str, LineDescriptor]:
        return {
            row["code"]: LineDescriptor(code=row["code"], name=row.get("name", ""))
            for row in payload.get("line") or []
            if row.get("code")
        }

    def _update_assets_if_needed(self, directory: str) -> None:
        """Download fresh asset files when the cached copy is old or outdated."""
        os.makedirs(directory, exist_ok=True)
        version_info = self._read_version_info(directory)
        now = time.time()

        checked_at = version_info.get("checked_at", 0)
        files_present = all(
            os.path.exists(os.path.join(directory, name)) for name in ASSET_FILES if name != LINE_FILE
        )
        if files_present and version_info.get("version") and now - checked_at < self.settings.assets_max_age:
            logger.debug("Reference assets are up to date")
            return

        logger.info("Checking for reference data updates")
        system = self._get_json(f"{self.settings.base_url}/config/system.json", params={"ver": int(now * 1000)})
        new_version = next(
            (entry["version"] for entry in system.get("system", []) if entry.get("version")),
            None,
        )
        if not new_version:
            logger.warning("system.json carries no version, keeping current assets")
            return

        if new_version != version_info.get("version") or not files_present:
            self._download_assets(directory, new_version)

        with open(os.path.join(directory, VERSION_FILE), "w", encoding="utf-8") as f:
            json.dump({"version": new_version, "checked_at": now}, f)

    def _download_assets(self, directory: str, version: str) -> None:
        logger.info(f"Downloading reference data version {version}")
        for filename in ASSET_FILES:
            url = f"{self.settings.base_url}/config/{filename}"
            try:
                data = self._get_json(url, params={"ver": version})
            except UpstreamUnavailableError as e:
                logger.warning(f"Failed to download {filename}: {e}")
                continue
            with open(os.path.join(directory, filename), "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = self._session.get(url, params=params, timeout=self.settings.request_timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            raise UpstreamUnavailableError(url, e) from e

    @staticmethod
    def _read_version_info(directory: str) -> Dict[str, Any]:
        path = os.path.join(directory, VERSION_FILE)
        if not os.path.exists(path):
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read {VERSION_FILE}: {e}")
            return {}
