"""Runtime settings for railtrack."""

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_BASE_URL = "https://i.opentidkeio.jp"
DEFAULT_ASSETS_DIR = str(Path.home() / ".cache" / "railtrack" / "assets")
ONE_WEEK_SECONDS = 7 * 24 * 60 * 60

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Endpoints, cache lifetimes and worker limits."""

    base_url: str = DEFAULT_BASE_URL
    assets_dir: str = DEFAULT_ASSETS_DIR
    request_timeout: float = 10.0
    snapshot_ttl: float = 30.0
    max_workers: int = 8
    filter_by_line: bool = True
    assets_max_age: float = ONE_WEEK_SECONDS

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from RAILTRACK_* environment variables."""
        return cls(
            base_url=os.environ.get("RAILTRACK_BASE_URL", cls.base_url).rstrip("/"),
            assets_dir=os.environ.get("RAILTRACK_ASSETS_DIR", cls.assets_dir),
            request_timeout=_number("RAILTRACK_TIMEOUT", cls.request_timeout, float),
            snapshot_ttl=_number("RAILTRACK_SNAPSHOT_TTL", cls.snapshot_ttl, float),
            max_workers=_number("RAILTRACK_MAX_WORKERS", cls.max_workers, int),
            filter_by_line=_flag("RAILTRACK_FILTER_BY_LINE", cls.filter_by_line),
            assets_max_age=_number("RAILTRACK_ASSETS_MAX_AGE", cls.assets_max_age, float),
        )


def _number(name: str, default, cast):
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise RuntimeError(f"Invalid value for {name}: {raw!r}") from None
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {raw!r}")
    return value


def _flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise RuntimeError(f"Invalid value for {name}: {raw!r}")
