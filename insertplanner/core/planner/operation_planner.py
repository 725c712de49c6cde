"""Operation planning for inserts into versioned, key-addressable tables."""

from dataclasses import dataclass
from typing import Mapping, Optional

from insertplanner.core.keygen import KeyGenerator
from insertplanner.core.options import (
    InsertMode,
    SessionOptionKeys,
    WriteOptionKeys,
    parse_bool,
)
from insertplanner.core.payload import PayloadStrategy
from insertplanner.core.planner.config_builder import (
    ConfigLayers,
    ResolvedWriteSettings,
    build_config_map,
)
from insertplanner.core.planner.rules import (
    OperationSignals,
    WriteOperation,
    resolve_operation,
)
from insertplanner.core.protocols import SaveMode, TableConfigReader
from insertplanner.core.request import InsertRequest
from insertplanner.core.schema import (
    TableConfig,
    TableDescriptor,
    TableType,
    schema_to_ddl,
)
from insertplanner.exceptions import ConfigurationError
from insertplanner.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class OperationPlan:
    """Operation, merge policy and writer configuration of one insert."""

    operation: WriteOperation
    payload_strategy: PayloadStrategy
    config_map: Mapping[str, str]
    save_mode: SaveMode


def resolve_payload_strategy(
    operation: WriteOperation, table_type: TableType, insert_mode: InsertMode
) -> PayloadStrategy:
    """Select the merge policy.

    Duplicates are only rejected for strict upserts into copy-on-write
    tables. Merge-on-read tables resolve duplicates at read time through the
    default payload.
    """
    if (
        operation is WriteOperation.UPSERT
        and table_type is TableType.COPY_ON_WRITE
        and insert_mode is InsertMode.STRICT
    ):
        return PayloadStrategy.STRICT_DUPLICATE_REJECT
    return PayloadStrategy.DEFAULT_MERGE


def resolve_save_mode(table: TableDescriptor, overwrite: bool) -> SaveMode:
    # insert overwrite of a non-partitioned table replaces the whole table,
    # insert into and insert overwrite partition append
    if overwrite and not table.is_partitioned:
        return SaveMode.OVERWRITE
    return SaveMode.APPEND


class OperationPlanner:
    """Resolves the write operation and writer configuration of an insert."""

    def __init__(self, config_reader: TableConfigReader):
        """Initialize OperationPlanner.

        Args:
            config_reader: Reader for the configuration stored with tables
        """
        self.config_reader = config_reader

    def plan(self, table: TableDescriptor, request: InsertRequest) -> OperationPlan:
        """Resolve operation, payload strategy and config map.

        Args:
            table: Target table
            request: Insert request

        Returns:
            OperationPlan for the request

        Raises:
            ConfigurationError: If the request options contradict each other
            TableConfigReadError: If the existing table config cannot be read
        """
        self._validate_partition_spec(table, request)

        table_config = self.config_reader.read(table.location)
        if table_config is None:
            logger.debug(f"Table {table.identifier} does not exist yet")

        stored = table_config.properties if table_config else {}
        layers = ConfigLayers(
            table={**table.properties, **stored},
            session=request.session_options.as_dict(),
            extra=dict(request.extra_options),
        )
        options = layers.user_options()

        insert_mode = InsertMode.of(
            options.get(SessionOptionKeys.INSERT_MODE, InsertMode.STRICT.value)
        )
        bulk_insert = parse_bool(
            SessionOptionKeys.ENABLE_BULK_INSERT,
            options.get(SessionOptionKeys.ENABLE_BULK_INSERT, "false"),
        )
        signals = OperationSignals(
            is_primary_key_table=table.is_primary_key_table,
            bulk_insert_requested=bulk_insert,
            is_overwrite=request.overwrite,
            drop_duplicates_requested=request.session_options.drop_duplicates,
            is_partitioned=table.is_partitioned,
            insert_mode=insert_mode,
        )
        operation = resolve_operation(signals)
        payload_strategy = resolve_payload_strategy(
            operation, table.table_type, insert_mode
        )
        logger.info(
            f"insert statement use write operation type: {operation.value}, "
            f"payloadClass: {payload_strategy.class_name}"
        )

        settings = ResolvedWriteSettings(
            path=table.location,
            table_name=table.identifier.table,
            database=table.identifier.database,
            table_type=table.table_type.value,
            precombine_field=self._resolve_precombine_field(table, options),
            operation=operation.value,
            payload_class=payload_strategy.class_name,
            key_generator_class=self._resolve_key_generator(table, table_config),
            record_key_fields=",".join(table.primary_key_columns),
            partition_fields=",".join(table.partition_column_names),
            partition_schema=schema_to_ddl(list(table.partition_schema)),
            hive_style_partitioning=self._stored_flag(
                table_config, "hive_style_partitioning", default=True
            ),
            url_encode_partitioning=self._stored_flag(
                table_config, "url_encode_partitioning", default=False
            ),
            bulk_insert_enabled=bulk_insert,
            is_primary_key_table=table.is_primary_key_table,
            meta_sync_enabled=request.session_options.meta_sync_enabled,
        )
        return OperationPlan(
            operation=operation,
            payload_strategy=payload_strategy,
            config_map=build_config_map(layers, settings),
            save_mode=resolve_save_mode(table, request.overwrite),
        )

    def _validate_partition_spec(
        self, table: TableDescriptor, request: InsertRequest
    ) -> None:
        if not request.partition_spec:
            return
        if set(request.partition_spec) != set(table.partition_column_names):
            raise ConfigurationError(
                "Insert partition fields mismatch: "
                f"[{' '.join(request.partition_spec)}] not equal to the defined "
                f"partition in table[{','.join(table.partition_column_names)}]",
                options=list(request.partition_spec),
            )

    @staticmethod
    def _stored_flag(
        table_config: Optional[TableConfig], name: str, default: bool
    ) -> bool:
        if table_config is None:
            return default
        value = getattr(table_config, name)
        return default if value is None else value

    @staticmethod
    def _resolve_key_generator(
        table: TableDescriptor, table_config: Optional[TableConfig]
    ) -> str:
        if table_config is not None and table_config.key_generator_class:
            return table_config.key_generator_class
        return KeyGenerator.default_for(table.primary_key_columns).class_name

    @staticmethod
    def _resolve_precombine_field(
        table: TableDescriptor, options: Mapping[str, str]
    ) -> str:
        """Use the configured precombine field or the last data column.

        The last-column default is not checked for sortability.
        """
        configured = options.get(WriteOptionKeys.PRECOMBINE_FIELD)
        if configured:
            column = table.get_column(configured)
            if column is None:
                raise ConfigurationError(
                    f"Precombine field '{configured}' is not a column of table "
                    f"{table.identifier}",
                    options=[WriteOptionKeys.PRECOMBINE_FIELD],
                )
            return column.name
        return table.write_data_schema[-1].name
