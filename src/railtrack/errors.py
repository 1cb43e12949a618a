"""Exceptions raised by railtrack."""


class NotFoundError(ValueError):
    """A station, section or train schedule does not exist."""


class MalformedScheduleError(NotFoundError):
    """A schedule payload arrived without a usable stop list."""

    def __init__(self, train_id: str, reason: str = "missing stop list"):
        self.train_id = train_id
        super().__init__(f"Malformed schedule for train {train_id}: {reason}")


class UpstreamUnavailableError(RuntimeError):
    """The live feed or schedule source could not be reached."""

    def __init__(self, url: str, cause: Exception):
        self.url = url
        self.cause = cause
        super().__init__(f"Failed to fetch {url}: {cause}")
