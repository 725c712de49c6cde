"""Merge payloads invoked by the writer when an incoming record meets a stored
record with the same key.
"""

from enum import Enum
from typing import Any, Dict, Mapping, Optional, Type

import pyarrow as pa

from insertplanner.core.options import WriteOptionKeys
from insertplanner.core.schema import RECORD_KEY_METADATA_FIELD
from insertplanner.exceptions import DuplicateKeyError

Record = Dict[str, Any]


class DefaultMergePayload:
    """Combine-by-ordering-field payload.

    The incoming record replaces the stored one when its ordering value is
    greater than or equal to the stored record's ordering value.
    """

    def __init__(self, record: Optional[Record], ordering_value: Any = 0):
        self.record = record
        self.ordering_value = ordering_value

    def combine_and_get_update_value(
        self,
        current_value: Record,
        schema: Optional[pa.Schema] = None,
        properties: Optional[Mapping[str, str]] = None,
    ) -> Optional[Record]:
        """Return the record to keep, or None to keep nothing."""
        if self.record is None:
            return None
        ordering_field = (properties or {}).get(WriteOptionKeys.PRECOMBINE_FIELD)
        if ordering_field is None or ordering_field not in current_value:
            return self.record

        stored_ordering = current_value[ordering_field]
        if stored_ordering is None or self.ordering_value is None:
            return self.record
        if self.ordering_value >= stored_ordering:
            return self.record
        return current_value


class DuplicateKeyGuard(DefaultMergePayload):
    """Payload for strict inserts into keyed copy-on-write tables.

    Never merges: meeting a stored record is itself the failure.
    """

    def combine_and_get_update_value(
        self,
        current_value: Record,
        schema: Optional[pa.Schema] = None,
        properties: Optional[Mapping[str, str]] = None,
    ) -> Optional[Record]:
        key = current_value.get(RECORD_KEY_METADATA_FIELD)
        raise DuplicateKeyError(str(key))


class PayloadStrategy(Enum):
    """Merge policy selected by the planner."""

    DEFAULT_MERGE = "default-merge"
    STRICT_DUPLICATE_REJECT = "strict-duplicate-reject"

    @property
    def class_name(self) -> str:
        """Writer-side identifier of the payload implementation."""
        payload = payload_for(self)
        return f"{payload.__module__}.{payload.__qualname__}"


_PAYLOADS: Dict[PayloadStrategy, Type[DefaultMergePayload]] = {
    PayloadStrategy.DEFAULT_MERGE: DefaultMergePayload,
    PayloadStrategy.STRICT_DUPLICATE_REJECT: DuplicateKeyGuard,
}


def payload_for(strategy: PayloadStrategy) -> Type[DefaultMergePayload]:
    return _PAYLOADS[strategy]


def payload_from_class_name(class_name: str) -> Type[DefaultMergePayload]:
    """Resolve a payload identifier from a writer config map.

    Raises:
        ValueError: If the identifier names no known payload
    """
    for strategy in PayloadStrategy:
        if strategy.class_name == class_name:
            return payload_for(strategy)
    raise ValueError(f"Unknown payload class: {class_name}")
