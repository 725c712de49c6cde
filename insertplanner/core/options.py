"""Option keys, defaults and the session option view used by the planner."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import yaml

from insertplanner.exceptions import ConfigurationError
from insertplanner.logging import get_logger

logger = get_logger(__name__)


class SessionOptionKeys:
    """Session-level keys recognised by the planner."""

    DROP_DUPLICATES = "insert.drop.duplicates"
    ENABLE_BULK_INSERT = "sql.bulk.insert.enable"
    INSERT_MODE = "sql.insert.mode"
    META_SYNC_ENABLED = "meta.sync.enable"


class WriteOptionKeys:
    """Keys of the configuration map handed to the table writer."""

    PATH = "path"
    TABLE_NAME = "write.table.name"
    TABLE_TYPE = "write.table.type"
    PRECOMBINE_FIELD = "write.precombine.field"
    OPERATION = "write.operation"
    PAYLOAD_CLASS = "write.payload.class"
    KEYGENERATOR_CLASS = "write.keygenerator.class"
    RECORDKEY_FIELD = "write.recordkey.field"
    PARTITIONPATH_FIELD = "write.partitionpath.field"
    PARTITION_SCHEMA = "write.partition.schema"
    HIVE_STYLE_PARTITIONING = "write.hive_style_partitioning"
    URL_ENCODE_PARTITIONING = "write.partitionpath.urlencode"
    ENABLE_ROW_WRITER = "write.row.writer.enable"
    COMBINE_BEFORE_INSERT = "write.combine.before.insert"
    INSERT_PARALLELISM = "write.insert.shuffle.parallelism"
    UPSERT_PARALLELISM = "write.upsert.shuffle.parallelism"
    META_SYNC_ENABLED = "meta.sync.enable"
    META_SYNC_MODE = "meta.sync.mode"
    META_SYNC_USE_JDBC = "meta.sync.use_jdbc"
    META_SYNC_DATABASE = "meta.sync.database"
    META_SYNC_TABLE = "meta.sync.table"
    META_SYNC_SUPPORT_TIMESTAMP = "meta.sync.support_timestamp"
    META_SYNC_PARTITION_FIELDS = "meta.sync.partition_fields"
    META_SYNC_PARTITION_EXTRACTOR_CLASS = "meta.sync.partition_extractor.class"


DEFAULT_PARALLELISM = "200"
MULTI_PART_KEYS_EXTRACTOR_CLASS = "insertplanner.sync.MultiPartKeysValueExtractor"
DEFAULT_DATABASE = "default"

DEFAULT_WRITE_OPTIONS: Dict[str, str] = {
    WriteOptionKeys.INSERT_PARALLELISM: DEFAULT_PARALLELISM,
    WriteOptionKeys.UPSERT_PARALLELISM: DEFAULT_PARALLELISM,
    WriteOptionKeys.META_SYNC_PARTITION_EXTRACTOR_CLASS: MULTI_PART_KEYS_EXTRACTOR_CLASS,
    WriteOptionKeys.META_SYNC_USE_JDBC: "false",
}


class InsertMode(Enum):
    """How strictly an insert into a keyed table is checked."""

    STRICT = "strict"
    NON_STRICT = "non-strict"

    @classmethod
    def of(cls, value: str) -> "InsertMode":
        normalized = value.strip().lower().replace("_", "-")
        for mode in cls:
            if mode.value == normalized:
                return mode
        raise ConfigurationError(
            f"Invalid value '{value}' for {SessionOptionKeys.INSERT_MODE}. "
            f"Must be one of: {', '.join(m.value for m in cls)}",
            options=[SessionOptionKeys.INSERT_MODE],
        )


def parse_bool(key: str, value: Any) -> bool:
    """Parse a boolean option value.

    Raises:
        ConfigurationError: If the value is not true/false
    """
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text == "true":
        return True
    if text == "false":
        return False
    raise ConfigurationError(
        f"Invalid boolean value '{value}' for option {key}", options=[key]
    )


def stringify_options(options: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Render option values as the strings the writer consumes."""
    result = {}
    for key, value in (options or {}).items():
        if isinstance(value, bool):
            result[str(key)] = "true" if value else "false"
        else:
            result[str(key)] = str(value)
    return result


@dataclass(frozen=True)
class SessionOptions:
    """String-keyed session configuration overlay.

    Passed explicitly to the planner instead of being looked up from any
    process-wide session.
    """

    values: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "values", stringify_options(self.values))

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.values.get(key, default)

    def get_bool(self, key: str, default: bool = False) -> bool:
        if key not in self.values:
            return default
        return parse_bool(key, self.values[key])

    @property
    def drop_duplicates(self) -> bool:
        return self.get_bool(SessionOptionKeys.DROP_DUPLICATES)

    @property
    def meta_sync_enabled(self) -> bool:
        return self.get_bool(SessionOptionKeys.META_SYNC_ENABLED)

    def as_dict(self) -> Dict[str, str]:
        return dict(self.values)

    @classmethod
    def from_dict(cls, values: Optional[Mapping[str, Any]]) -> "SessionOptions":
        return cls(values=dict(values or {}))

    @classmethod
    def from_yaml(cls, path: str) -> "SessionOptions":
        """Load session options from the ``options`` mapping of a YAML profile.

        Raises:
            ConfigurationError: If the file has no usable options mapping
        """
        logger.debug(f"Loading session options from {path}")
        with open(path, "r") as f:
            document = yaml.safe_load(f) or {}

        if not isinstance(document, dict):
            raise ConfigurationError(f"Session profile {path} must be a mapping")
        options = document.get("options", {})
        if not isinstance(options, dict):
            raise ConfigurationError(
                f"'options' in session profile {path} must be a mapping"
            )
        return cls.from_dict(options)
