"""Load a table and insert request description from YAML.

Example document::

    table:
      database: default
      name: orders
      location: /data/orders
      type: cow
      primary_key: [id]
      columns:
        - {name: id, type: int, nullable: false}
        - {name: name, type: string}
      partition_columns:
        - {name: dt, type: string}
    insert:
      columns:
        - {name: id, type: int}
        - {name: name, type: string}
        - {name: dt, type: string}
      partition: {dt: null}
      overwrite: false
      options: {}
    session:
      sql.insert.mode: strict
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import yaml

from insertplanner.core.options import SessionOptions
from insertplanner.core.request import InsertRequest
from insertplanner.core.schema import Column, TableDescriptor, TableIdentifier, TableType
from insertplanner.exceptions import ConfigurationError
from insertplanner.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PlanRequest:
    """Table and insert request read from a YAML document."""

    table: TableDescriptor
    request: InsertRequest


def _require_mapping(document: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = document.get(key)
    if not isinstance(value, dict):
        raise ConfigurationError(f"'{key}' section must be a mapping")
    return value


def _columns(definitions: Optional[List[Dict[str, Any]]], section: str) -> List[Column]:
    if definitions is None:
        return []
    if not isinstance(definitions, list):
        raise ConfigurationError(f"'{section}' must be a list of columns")
    try:
        return [Column.from_dict(d) for d in definitions]
    except (AttributeError, ValueError) as e:
        raise ConfigurationError(f"Invalid column in '{section}': {e}") from e


def table_from_dict(config: Dict[str, Any]) -> TableDescriptor:
    """Create a TableDescriptor from the ``table`` section."""
    name = config.get("name")
    location = config.get("location")
    if not name or not location:
        raise ConfigurationError("Table requires 'name' and 'location'")

    properties = config.get("properties") or {}
    try:
        return TableDescriptor(
            identifier=TableIdentifier(table=name, database=config.get("database")),
            location=location,
            data_schema=tuple(_columns(config.get("columns"), "table.columns")),
            partition_schema=tuple(
                _columns(config.get("partition_columns"), "table.partition_columns")
            ),
            primary_key_columns=tuple(config.get("primary_key") or ()),
            table_type=TableType.parse(str(config.get("type", "COPY_ON_WRITE"))),
            properties={str(k): str(v) for k, v in properties.items()},
        )
    except ValueError as e:
        raise ConfigurationError(str(e)) from e


def request_from_dict(
    config: Dict[str, Any], session: Optional[SessionOptions] = None
) -> InsertRequest:
    """Create an InsertRequest from the ``insert`` section."""
    partition = config.get("partition") or {}
    if not isinstance(partition, dict):
        raise ConfigurationError("'insert.partition' must be a mapping")

    return InsertRequest(
        producer_output_schema=tuple(_columns(config.get("columns"), "insert.columns")),
        partition_spec={
            str(k): (None if v is None else str(v)) for k, v in partition.items()
        },
        overwrite=bool(config.get("overwrite", False)),
        session_options=session or SessionOptions(),
        extra_options=config.get("options") or {},
    )


def load_plan_request(
    path: str, session: Optional[SessionOptions] = None
) -> PlanRequest:
    """Read a plan request document.

    Session options given in the document are overridden by ``session``.

    Raises:
        ConfigurationError: If the document is malformed
    """
    logger.debug(f"Loading plan request from {path}")
    with open(path, "r") as f:
        try:
            document = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(document, dict):
        raise ConfigurationError(f"Plan request {path} must be a mapping")

    session_values = dict(document.get("session") or {})
    if session is not None:
        session_values.update(session.as_dict())

    return PlanRequest(
        table=table_from_dict(_require_mapping(document, "table")),
        request=request_from_dict(
            _require_mapping(document, "insert"),
            SessionOptions.from_dict(session_values),
        ),
    )
