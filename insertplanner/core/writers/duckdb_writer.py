"""DuckDB table writer.

Executes a resolved writer configuration against tables held in a DuckDB
connection. Each table carries a record key metadata column computed with
the configured key generator; merges of records sharing a key go through the
configured payload.
"""

from typing import Any, Dict, List, Mapping, Optional

import duckdb
import pyarrow as pa

from insertplanner.core.keygen import KeyGenerator, generate_record_key
from insertplanner.core.options import WriteOptionKeys, parse_bool
from insertplanner.core.payload import DefaultMergePayload, payload_from_class_name
from insertplanner.core.planner.rules import WriteOperation
from insertplanner.core.protocols import SaveMode, TableWriter
from insertplanner.core.schema import RECORD_KEY_METADATA_FIELD, TableConfig
from insertplanner.exceptions import InsertPlannerError, WriterError
from insertplanner.logging import get_logger
from insertplanner.utils.sql_security import SQLSafeFormatter

logger = get_logger(__name__)

INCOMING_VIEW = "incoming_rows"
REPLACED_VIEW = "replaced_rows"


def _split_fields(value: Optional[str]) -> List[str]:
    return [f.strip() for f in (value or "").split(",") if f.strip()]


class DuckDBTableWriter(TableWriter):
    """Writes aligned rows into DuckDB tables."""

    def __init__(
        self,
        connection: Optional[duckdb.DuckDBPyConnection] = None,
        config_store: Optional[Any] = None,
    ):
        """Initialize a DuckDBTableWriter.

        Args:
            connection: DuckDB connection, or None to create an in-memory one
            config_store: Optional table-config store saved to when a table is
                created, so later planning sees an existing table
        """
        self.connection = connection or duckdb.connect()
        self.config_store = config_store
        self.formatter = SQLSafeFormatter("duckdb")
        self._registered = set()

    def write(
        self, save_mode: SaveMode, config: Mapping[str, str], rows: pa.Table
    ) -> bool:
        table_name = config[WriteOptionKeys.TABLE_NAME]
        operation = WriteOperation(config[WriteOptionKeys.OPERATION])
        logger.info(
            f"Writing {rows.num_rows} rows to DuckDB table {table_name} "
            f"({operation.value}, {save_mode.value})"
        )

        records = self._with_record_keys(config, rows)
        if parse_bool(
            WriteOptionKeys.COMBINE_BEFORE_INSERT,
            config.get(WriteOptionKeys.COMBINE_BEFORE_INSERT, "false"),
        ):
            records = self._combine_incoming(config, records)
        schema = pa.schema(
            [pa.field(RECORD_KEY_METADATA_FIELD, pa.string(), False)]
            + list(rows.schema)
        )

        created = False
        self.connection.execute("BEGIN TRANSACTION")
        try:
            if not self.table_exists(table_name):
                self._create_table(table_name, schema)
                created = True

            if save_mode is SaveMode.OVERWRITE or (
                operation is WriteOperation.INSERT_OVERWRITE_TABLE
            ):
                self.connection.execute(self.formatter.build_delete_query(table_name))
            elif operation is WriteOperation.INSERT_OVERWRITE:
                self._delete_partitions(config, table_name, schema, records)

            if operation is WriteOperation.UPSERT:
                records = self._merge_existing(config, table_name, schema, records)

            self._insert(table_name, schema, records)
            self.connection.execute("COMMIT")
        except InsertPlannerError:
            self.connection.execute("ROLLBACK")
            raise
        except duckdb.Error as e:
            self.connection.execute("ROLLBACK")
            logger.error(f"Error writing to DuckDB table {table_name}: {e}")
            return False
        except Exception as e:
            self.connection.execute("ROLLBACK")
            raise WriterError(
                f"Error writing to DuckDB table {table_name}: {e}", table_name
            ) from e
        finally:
            self._unregister_all()

        if created:
            self._save_table_config(config)
        logger.info(f"Successfully wrote data to table {table_name}")
        return True

    def table_exists(self, table_name: str) -> bool:
        result = self.connection.execute(
            "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?",
            [table_name],
        ).fetchone()
        return bool(result and result[0])

    def read_table(self, table_name: str) -> pa.Table:
        """Return the stored rows of ``table_name`` ordered by record key."""
        quoted = self.formatter.quote_identifier(table_name)
        key = self.formatter.quote_identifier(RECORD_KEY_METADATA_FIELD)
        return self.connection.execute(
            f"SELECT * FROM {quoted} ORDER BY {key}"
        ).fetch_arrow_table()

    def _with_record_keys(
        self, config: Mapping[str, str], rows: pa.Table
    ) -> List[Dict[str, Any]]:
        key_columns = _split_fields(config.get(WriteOptionKeys.RECORDKEY_FIELD))
        generator = KeyGenerator.from_class_name(
            config.get(WriteOptionKeys.KEYGENERATOR_CLASS, "")
        ) or KeyGenerator.default_for(key_columns)

        records = []
        for row in rows.to_pylist():
            try:
                key = generate_record_key(generator, row, key_columns)
            except ValueError as e:
                raise WriterError(str(e)) from e
            records.append({RECORD_KEY_METADATA_FIELD: key, **row})
        return records

    def _combine_incoming(
        self, config: Mapping[str, str], records: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        """Keep one incoming record per key, preferring the latest ordering value."""
        ordering_field = config.get(WriteOptionKeys.PRECOMBINE_FIELD)
        combined: Dict[str, Dict[str, Any]] = {}
        for record in records:
            key = record[RECORD_KEY_METADATA_FIELD]
            if key in combined:
                payload = DefaultMergePayload(record, record.get(ordering_field))
                record = payload.combine_and_get_update_value(combined[key], None, config)
            combined[key] = record
        if len(combined) < len(records):
            logger.debug(f"Combined {len(records) - len(combined)} duplicate records")
        return list(combined.values())

    def _register(self, name: str, data: pa.Table) -> None:
        self.connection.register(name, data)
        self._registered.add(name)

    def _unregister_all(self) -> None:
        for name in sorted(self._registered):
            self.connection.unregister(name)
        self._registered.clear()

    def _create_table(self, table_name: str, schema: pa.Schema) -> None:
        logger.debug(f"Creating table {table_name} with schema from data")
        self._register(INCOMING_VIEW, schema.empty_table())
        self.connection.execute(
            f"CREATE TABLE {self.formatter.quote_identifier(table_name)} AS "
            f"SELECT * FROM {INCOMING_VIEW} WHERE 1=0"
        )

    def _save_table_config(self, config: Mapping[str, str]) -> None:
        if self.config_store is not None:
            self.config_store.save(
                config[WriteOptionKeys.PATH],
                TableConfig(
                    hive_style_partitioning=parse_bool(
                        WriteOptionKeys.HIVE_STYLE_PARTITIONING,
                        config.get(WriteOptionKeys.HIVE_STYLE_PARTITIONING, "true"),
                    ),
                    url_encode_partitioning=parse_bool(
                        WriteOptionKeys.URL_ENCODE_PARTITIONING,
                        config.get(WriteOptionKeys.URL_ENCODE_PARTITIONING, "false"),
                    ),
                    key_generator_class=config.get(WriteOptionKeys.KEYGENERATOR_CLASS),
                ),
            )

    def _delete_partitions(
        self,
        config: Mapping[str, str],
        table_name: str,
        schema: pa.Schema,
        records: List[Dict[str, Any]],
    ) -> None:
        partition_fields = _split_fields(config.get(WriteOptionKeys.PARTITIONPATH_FIELD))
        if not partition_fields or not records:
            return
        self._register(INCOMING_VIEW, pa.Table.from_pylist(records, schema=schema))
        quoted_table = self.formatter.quote_identifier(table_name)
        conditions = " AND ".join(
            f"{quoted_table}.{self.formatter.quote_identifier(f)} = "
            f"i.{self.formatter.quote_identifier(f)}"
            for f in partition_fields
        )
        self.connection.execute(
            self.formatter.build_delete_query(
                table_name,
                where_clause=(
                    f"EXISTS (SELECT 1 FROM {INCOMING_VIEW} i WHERE {conditions})"
                ),
            )
        )

    def _merge_existing(
        self,
        config: Mapping[str, str],
        table_name: str,
        schema: pa.Schema,
        records: List[Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        """Merge incoming records with stored records sharing their key.

        Returns:
            The records to insert after the merged stored records were removed
        """
        if not records:
            return records
        payload_class = payload_from_class_name(config[WriteOptionKeys.PAYLOAD_CLASS])
        ordering_field = config.get(WriteOptionKeys.PRECOMBINE_FIELD)

        self._register(INCOMING_VIEW, pa.Table.from_pylist(records, schema=schema))
        key = self.formatter.quote_identifier(RECORD_KEY_METADATA_FIELD)
        existing = self.connection.execute(
            f"SELECT t.* FROM {self.formatter.quote_identifier(table_name)} t "
            f"WHERE t.{key} IN (SELECT {key} FROM {INCOMING_VIEW})"
        ).fetch_arrow_table()
        stored = {r[RECORD_KEY_METADATA_FIELD]: r for r in existing.to_pylist()}
        if not stored:
            return records

        to_insert = []
        replaced_keys = []
        for record in records:
            current = stored.get(record[RECORD_KEY_METADATA_FIELD])
            if current is None:
                to_insert.append(record)
                continue
            payload = payload_class(record, record.get(ordering_field))
            merged = payload.combine_and_get_update_value(current, schema, config)
            replaced_keys.append(current[RECORD_KEY_METADATA_FIELD])
            if merged is not None:
                to_insert.append(merged)

        if replaced_keys:
            replaced = pa.array(replaced_keys, pa.string())
            self._register(
                REPLACED_VIEW, pa.table({RECORD_KEY_METADATA_FIELD: replaced})
            )
            self.connection.execute(
                self.formatter.build_delete_query(
                    table_name,
                    where_clause=f"{key} IN (SELECT {key} FROM {REPLACED_VIEW})",
                )
            )
        return to_insert

    def _insert(
        self, table_name: str, schema: pa.Schema, records: List[Dict[str, Any]]
    ) -> None:
        if not records:
            return
        self._register(INCOMING_VIEW, pa.Table.from_pylist(records, schema=schema))
        self.connection.execute(
            self.formatter.build_insert_select_query(
                table_name, schema.names, INCOMING_VIEW
            )
        )
        logger.debug(f"Inserted {len(records)} records into {table_name}")
