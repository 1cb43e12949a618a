"""Expand short reference codes into display descriptors."""

import logging

from .models import (
    UNKNOWN_NAME,
    DestinationDescriptor,
    LineDescriptor,
    TypeDescriptor,
)
from .reference_loader import ReferenceDataStore

logger = logging.getLogger(__name__)


class DescriptorFormatter:
    """Looks codes up in the reference tables; misses degrade to "unknown"."""

    def __init__(self, store: ReferenceDataStore):
        self._store = store

    def describe_type(self, code: str) -> TypeDescriptor:
        train_type = self._store.get_train_type_registry().get(code)
        if train_type is None:
            logger.debug(f"Unknown train type code {code!r}")
            return TypeDescriptor(code=code, name=UNKNOWN_NAME, icon="")
        return train_type

    def describe_destination(self, code: str) -> DestinationDescriptor:
        destination = self._store.get_destination_registry().get(code)
        if destination is None:
            logger.debug(f"Unknown destination code {code!r}")
            return DestinationDescriptor(code=code, name=UNKNOWN_NAME)
        return destination

    def describe_line(self, code: str) -> LineDescriptor:
        line = self._store.get_line_registry().get(code)
        if line is None:
            logger.debug(f"Unknown line code {code!r}")
            return LineDescriptor(code=code, name=UNKNOWN_NAME)
        return line
