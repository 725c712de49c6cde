"""Table schema model used by the planner, the aligner and the writers.

Column types are SQL type names normalised to DuckDB spelling so that two
columns have the same type exactly when their normalised names are equal.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

import pyarrow as pa

from insertplanner.exceptions import ConfigurationError

COMMIT_TIME_METADATA_FIELD = "_meta_commit_time"
COMMIT_SEQNO_METADATA_FIELD = "_meta_commit_seqno"
RECORD_KEY_METADATA_FIELD = "_meta_record_key"
PARTITION_PATH_METADATA_FIELD = "_meta_partition_path"
FILE_NAME_METADATA_FIELD = "_meta_file_name"

METADATA_FIELDS = (
    COMMIT_TIME_METADATA_FIELD,
    COMMIT_SEQNO_METADATA_FIELD,
    RECORD_KEY_METADATA_FIELD,
    PARTITION_PATH_METADATA_FIELD,
    FILE_NAME_METADATA_FIELD,
)

_TYPE_ALIASES = {
    "INT": "INTEGER",
    "INT4": "INTEGER",
    "INT32": "INTEGER",
    "SIGNED": "INTEGER",
    "INT8": "BIGINT",
    "INT64": "BIGINT",
    "LONG": "BIGINT",
    "INT2": "SMALLINT",
    "SHORT": "SMALLINT",
    "INT1": "TINYINT",
    "BYTE": "TINYINT",
    "FLOAT": "REAL",
    "FLOAT4": "REAL",
    "FLOAT8": "DOUBLE",
    "TEXT": "VARCHAR",
    "STRING": "VARCHAR",
    "CHAR": "VARCHAR",
    "BPCHAR": "VARCHAR",
    "BOOL": "BOOLEAN",
    "LOGICAL": "BOOLEAN",
    "BYTEA": "BLOB",
    "BINARY": "BLOB",
    "DATETIME": "TIMESTAMP",
    "NUMERIC": "DECIMAL(18,3)",
    "DECIMAL": "DECIMAL(18,3)",
}

_ARROW_TYPES = {
    "BOOLEAN": pa.bool_(),
    "TINYINT": pa.int8(),
    "SMALLINT": pa.int16(),
    "INTEGER": pa.int32(),
    "BIGINT": pa.int64(),
    "REAL": pa.float32(),
    "DOUBLE": pa.float64(),
    "VARCHAR": pa.string(),
    "BLOB": pa.binary(),
    "DATE": pa.date32(),
    "TIMESTAMP": pa.timestamp("us"),
}

_DECIMAL_PATTERN = re.compile(r"^DECIMAL\s*\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\)$")


def normalize_type(data_type: str) -> str:
    """Normalize a SQL type name to its DuckDB spelling."""
    upper = " ".join(data_type.strip().upper().split())
    # Length-qualified strings compare as plain VARCHAR
    if re.match(r"^(VARCHAR|CHAR|STRING)\s*\(", upper):
        return "VARCHAR"
    decimal = re.match(r"^(DECIMAL|NUMERIC)\s*(\(.*\))$", upper)
    if decimal:
        return f"DECIMAL{decimal.group(2).replace(' ', '')}"
    return _TYPE_ALIASES.get(upper, upper)


def to_arrow_type(data_type: str) -> pa.DataType:
    """Map a normalized SQL type name to the equivalent pyarrow type."""
    normalized = normalize_type(data_type)
    if normalized in _ARROW_TYPES:
        return _ARROW_TYPES[normalized]
    decimal = _DECIMAL_PATTERN.match(normalized)
    if decimal:
        precision = int(decimal.group(1))
        scale = int(decimal.group(2) or 0)
        return pa.decimal128(precision, scale)
    raise ValueError(f"Unsupported column type: {data_type}")


def is_metadata_field(name: str) -> bool:
    return name in METADATA_FIELDS


@dataclass(frozen=True)
class Column:
    """A typed column of a table or of a producer output."""

    name: str
    data_type: str
    nullable: bool = True

    def __post_init__(self):
        object.__setattr__(self, "data_type", normalize_type(self.data_type))

    def same_type(self, other: "Column") -> bool:
        return self.data_type == other.data_type

    def to_ddl(self) -> str:
        ddl = f"{self.name} {self.data_type}"
        if not self.nullable:
            ddl += " NOT NULL"
        return ddl

    def to_arrow_field(self) -> pa.Field:
        return pa.field(self.name, to_arrow_type(self.data_type), self.nullable)

    @classmethod
    def from_dict(cls, config: Dict) -> "Column":
        """Create a Column from a ``{name, type, nullable}`` mapping.

        Raises:
            ValueError: If name or type is missing
        """
        name = config.get("name")
        data_type = config.get("type") or config.get("data_type")
        if not name or not data_type:
            raise ValueError(f"Column definition requires 'name' and 'type': {config}")
        return cls(name=name, data_type=data_type, nullable=config.get("nullable", True))


def schema_to_ddl(columns: List[Column]) -> str:
    """Serialize columns as a comma separated ``name TYPE`` list."""
    return ", ".join(column.to_ddl() for column in columns)


@dataclass(frozen=True)
class TableIdentifier:
    """Identity of a catalog table."""

    table: str
    database: Optional[str] = None

    @property
    def unquoted(self) -> str:
        if self.database:
            return f"{self.database}.{self.table}"
        return self.table

    def __str__(self) -> str:
        return self.unquoted


class TableType(Enum):
    """Storage layout of a versioned table."""

    COPY_ON_WRITE = "COPY_ON_WRITE"
    MERGE_ON_READ = "MERGE_ON_READ"

    @classmethod
    def parse(cls, value: str) -> "TableType":
        """Parse a table type name, accepting the short forms ``cow``/``mor``."""
        normalized = value.strip().upper().replace("-", "_")
        short_forms = {"COW": cls.COPY_ON_WRITE, "MOR": cls.MERGE_ON_READ}
        if normalized in short_forms:
            return short_forms[normalized]
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(t.value for t in cls)
            raise ConfigurationError(
                f"Invalid table type: {value}. Valid types are: {valid}",
                options=["write.table.type"],
            ) from None


@dataclass(frozen=True)
class TableConfig:
    """Configuration stored with an existing table.

    Typed fields are ``None`` when the stored config does not set them.
    """

    hive_style_partitioning: Optional[bool] = None
    url_encode_partitioning: Optional[bool] = None
    key_generator_class: Optional[str] = None
    properties: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TableDescriptor:
    """Catalog view of the target table of an insert."""

    identifier: TableIdentifier
    location: str
    data_schema: Tuple[Column, ...]
    partition_schema: Tuple[Column, ...] = ()
    primary_key_columns: Tuple[str, ...] = ()
    table_type: TableType = TableType.COPY_ON_WRITE
    properties: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "data_schema", tuple(self.data_schema))
        object.__setattr__(self, "partition_schema", tuple(self.partition_schema))
        object.__setattr__(
            self, "primary_key_columns", tuple(self.primary_key_columns)
        )
        if not self.write_data_schema:
            raise ValueError(
                f"Table {self.identifier} declares no data columns "
                "besides metadata columns"
            )

    @property
    def schema(self) -> Tuple[Column, ...]:
        """Data columns followed by partition columns."""
        return self.data_schema + self.partition_schema

    @property
    def write_data_schema(self) -> Tuple[Column, ...]:
        """Data columns without bookkeeping metadata columns."""
        return tuple(c for c in self.data_schema if not is_metadata_field(c.name))

    @property
    def partition_column_names(self) -> List[str]:
        return [column.name for column in self.partition_schema]

    @property
    def is_partitioned(self) -> bool:
        return bool(self.partition_schema)

    @property
    def is_primary_key_table(self) -> bool:
        return bool(self.primary_key_columns)

    def get_column(self, name: str) -> Optional[Column]:
        for column in self.schema:
            if column.name.lower() == name.lower():
                return column
        return None
