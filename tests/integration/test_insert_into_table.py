"""End-to-end inserts through the command and the DuckDB table writer."""

import os

import duckdb
import pyarrow as pa
import pytest

from insertplanner.core.command import InsertIntoTableCommand
from insertplanner.core.protocols import Catalog
from insertplanner.core.schema import TableConfig
from insertplanner.core.table_config import PropertiesTableConfigReader
from insertplanner.core.writers import DuckDBTableWriter
from insertplanner.exceptions import ConfigurationError, DuplicateKeyError


class RecordingCatalog(Catalog):
    def __init__(self):
        self.refreshed = []

    def refresh_table(self, identifier):
        self.refreshed.append(identifier)


@pytest.fixture
def warehouse(temp_dir):
    return os.path.join(temp_dir, "warehouse")


@pytest.fixture
def environment(warehouse):
    """Command wired to an on-disk config store and a DuckDB writer."""
    reader = PropertiesTableConfigReader()
    connection = duckdb.connect()
    writer = DuckDBTableWriter(connection, config_store=reader)
    catalog = RecordingCatalog()
    yield InsertIntoTableCommand(reader, writer, catalog), writer, catalog, reader
    connection.close()


def batch(ids, names, dts):
    return pa.table(
        {
            "id": pa.array(ids, pa.int32()),
            "name": pa.array(names, pa.string()),
            "dt": pa.array(dts, pa.string()),
        }
    )


class TestInsertIntoTable:
    """Inserts against a keyed, partitioned copy-on-write table."""

    def test_duplicate_key_rejected_on_second_insert(
        self, environment, warehouse, table_factory, request_factory
    ):
        command, writer, catalog, reader = environment
        table = table_factory(location=os.path.join(warehouse, "t"))

        assert command.run(
            table, request_factory(), batch([1], ["a1"], ["2021-01-01"])
        )
        assert catalog.refreshed == ["default.t"]
        assert reader.table_exists(table.location)

        with pytest.raises(DuplicateKeyError) as exc_info:
            command.run(table, request_factory(), batch([1], ["a1"], ["2021-01-01"]))

        assert "Duplicate key found for insert statement, key is: id:1" in str(
            exc_info.value
        )
        assert catalog.refreshed == ["default.t"]
        assert writer.read_table("t").num_rows == 1

    def test_non_strict_mode_appends_duplicates(
        self, environment, warehouse, table_factory, request_factory
    ):
        command, writer, _, _ = environment
        table = table_factory(location=os.path.join(warehouse, "t"))
        request = request_factory(session={"sql.insert.mode": "non-strict"})

        command.run(table, request, batch([1], ["a1"], ["2021-01-01"]))
        command.run(table, request, batch([1], ["b1"], ["2021-01-01"]))

        assert writer.read_table("t").column("id").to_pylist() == [1, 1]

    def test_overwrite_partition_with_static_value(
        self, environment, warehouse, table_factory, request_factory
    ):
        command, writer, _, _ = environment
        table = table_factory(location=os.path.join(warehouse, "t"))
        command.run(
            table,
            request_factory(),
            batch([1, 2], ["a1", "a2"], ["2021-01-01", "2021-01-02"]),
        )

        request = request_factory(
            columns=(("id", "int"), ("name", "string")),
            partition_spec={"dt": "2021-01-02"},
            overwrite=True,
        )
        rows = pa.table({"id": pa.array([5], pa.int32()), "name": ["a5"]})
        assert command.run(table, request, rows)

        stored = writer.read_table("t").to_pylist()
        assert [(r["id"], r["dt"]) for r in stored] == [
            (1, "2021-01-01"),
            (5, "2021-01-02"),
        ]

    def test_bulk_insert_into_plain_table(
        self, environment, warehouse, table_factory, request_factory
    ):
        command, writer, _, reader = environment
        table = table_factory(
            primary_key=(), partitioned=False, location=os.path.join(warehouse, "p")
        )
        request = request_factory(
            columns=(("id", "int"), ("name", "string")),
            session={"sql.bulk.insert.enable": "true"},
        )
        rows = pa.table({"id": pa.array([1, 1], pa.int32()), "name": ["x", "y"]})

        assert command.run(table, request, rows)
        assert writer.read_table("t").num_rows == 2

        stored = reader.read(table.location)
        assert stored.key_generator_class == "insertplanner.keygen.UuidKeyGenerator"

    def test_stored_config_respected(
        self, environment, warehouse, table_factory, request_factory
    ):
        command, writer, _, reader = environment
        table = table_factory(location=os.path.join(warehouse, "t"))
        reader.save(table.location, TableConfig(hive_style_partitioning=False))

        plan = command.planner.plan(table, request_factory())

        assert plan.config_map["write.hive_style_partitioning"] == "false"

    def test_contradictory_options_never_write(
        self, environment, warehouse, table_factory, request_factory
    ):
        command, writer, catalog, _ = environment
        table = table_factory(location=os.path.join(warehouse, "t"))
        request = request_factory(
            session={"sql.bulk.insert.enable": "true", "sql.insert.mode": "strict"}
        )

        with pytest.raises(ConfigurationError, match="primaryKey"):
            command.run(table, request, batch([1], ["a1"], ["2021-01-01"]))
        assert not writer.table_exists("t")
        assert catalog.refreshed == []
