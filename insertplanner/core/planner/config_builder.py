"""Assembly of the writer configuration map.

Merges configuration from multiple layers with priority (later wins):
1. Built-in write defaults (lowest priority)
2. Table properties and the table's stored config
3. Session options
4. Per-request extra options (highest priority)

The entries resolved by the planner are laid on top of the merged layers.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from insertplanner.core.options import (
    DEFAULT_DATABASE,
    DEFAULT_WRITE_OPTIONS,
    WriteOptionKeys,
)
from insertplanner.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ConfigLayers:
    """Option layers in increasing priority."""

    defaults: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_WRITE_OPTIONS))
    table: Dict[str, str] = field(default_factory=dict)
    session: Dict[str, str] = field(default_factory=dict)
    extra: Dict[str, str] = field(default_factory=dict)

    def merged(self) -> Dict[str, str]:
        merged = dict(self.defaults)
        for layer in (self.table, self.session, self.extra):
            merged.update(layer)
        return merged

    def user_options(self) -> Dict[str, str]:
        """Merged view without the built-in defaults."""
        merged = dict(self.table)
        merged.update(self.session)
        merged.update(self.extra)
        return merged


@dataclass(frozen=True)
class ResolvedWriteSettings:
    """Values resolved by the planner that always reach the writer."""

    path: str
    table_name: str
    database: Optional[str]
    table_type: str
    precombine_field: str
    operation: str
    payload_class: str
    key_generator_class: str
    record_key_fields: str
    partition_fields: str
    partition_schema: str
    hive_style_partitioning: bool
    url_encode_partitioning: bool
    bulk_insert_enabled: bool
    is_primary_key_table: bool
    meta_sync_enabled: bool


def _flag(value: bool) -> str:
    return "true" if value else "false"


def build_config_map(
    layers: ConfigLayers, settings: ResolvedWriteSettings
) -> Mapping[str, str]:
    """Merge ``layers`` and lay the resolved ``settings`` on top.

    Returns:
        Read-only configuration map for the writer
    """
    config = layers.merged()
    config.update(
        {
            WriteOptionKeys.PATH: settings.path,
            WriteOptionKeys.TABLE_TYPE: settings.table_type,
            WriteOptionKeys.TABLE_NAME: settings.table_name,
            WriteOptionKeys.PRECOMBINE_FIELD: settings.precombine_field,
            WriteOptionKeys.OPERATION: settings.operation,
            WriteOptionKeys.HIVE_STYLE_PARTITIONING: _flag(
                settings.hive_style_partitioning
            ),
            WriteOptionKeys.URL_ENCODE_PARTITIONING: _flag(
                settings.url_encode_partitioning
            ),
            WriteOptionKeys.KEYGENERATOR_CLASS: settings.key_generator_class,
            WriteOptionKeys.RECORDKEY_FIELD: settings.record_key_fields,
            WriteOptionKeys.PARTITIONPATH_FIELD: settings.partition_fields,
            WriteOptionKeys.PAYLOAD_CLASS: settings.payload_class,
            WriteOptionKeys.ENABLE_ROW_WRITER: _flag(settings.bulk_insert_enabled),
            WriteOptionKeys.COMBINE_BEFORE_INSERT: _flag(
                settings.is_primary_key_table
            ),
            WriteOptionKeys.META_SYNC_ENABLED: _flag(settings.meta_sync_enabled),
            WriteOptionKeys.META_SYNC_MODE: "hms",
            WriteOptionKeys.META_SYNC_DATABASE: settings.database or DEFAULT_DATABASE,
            WriteOptionKeys.META_SYNC_TABLE: settings.table_name,
            WriteOptionKeys.META_SYNC_SUPPORT_TIMESTAMP: "true",
            WriteOptionKeys.META_SYNC_PARTITION_FIELDS: settings.partition_fields,
            WriteOptionKeys.PARTITION_SCHEMA: settings.partition_schema,
        }
    )
    logger.debug(f"Resolved writer config with {len(config)} entries")
    return MappingProxyType(config)
