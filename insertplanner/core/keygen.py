"""Record key generation strategies."""

import uuid
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

NULL_RECORDKEY_PLACEHOLDER = "__null__"
EMPTY_RECORDKEY_PLACEHOLDER = "__empty__"


class KeyGenerator(Enum):
    """Key generators the planner can select for a table."""

    COMPLEX = "complex"
    UUID = "uuid"

    @property
    def class_name(self) -> str:
        """Writer-side identifier of the key generator."""
        return _CLASS_NAMES[self]

    @classmethod
    def default_for(cls, primary_key_columns: Sequence[str]) -> "KeyGenerator":
        return cls.COMPLEX if primary_key_columns else cls.UUID

    @classmethod
    def from_class_name(cls, class_name: str) -> Optional["KeyGenerator"]:
        for generator, name in _CLASS_NAMES.items():
            if name == class_name:
                return generator
        return None


_CLASS_NAMES = {
    KeyGenerator.COMPLEX: "insertplanner.keygen.ComplexKeyGenerator",
    KeyGenerator.UUID: "insertplanner.keygen.UuidKeyGenerator",
}


def _key_part(value: Any) -> str:
    if value is None:
        return NULL_RECORDKEY_PLACEHOLDER
    text = str(value)
    return text if text else EMPTY_RECORDKEY_PLACEHOLDER


def complex_record_key(record: Mapping[str, Any], key_columns: Sequence[str]) -> str:
    """Build a ``col1:value1,col2:value2`` record key.

    Raises:
        ValueError: If every key column is null or empty
    """
    parts = [f"{column}:{_key_part(record.get(column))}" for column in key_columns]
    if all(
        part.endswith((NULL_RECORDKEY_PLACEHOLDER, EMPTY_RECORDKEY_PLACEHOLDER))
        for part in parts
    ):
        raise ValueError(
            f"Record key values for fields {', '.join(key_columns)} cannot all be "
            "null or empty"
        )
    return ",".join(parts)


def generate_record_key(
    generator: KeyGenerator, record: Mapping[str, Any], key_columns: Sequence[str]
) -> str:
    if generator is KeyGenerator.UUID:
        return str(uuid.uuid4())
    return complex_record_key(record, key_columns)
