"""Tests for SchemaAligner and AlignedProjection."""

import pyarrow as pa
import pytest

from insertplanner.core.aligner import (
    AlignedProjection,
    ColumnReference,
    Literal,
    SchemaAligner,
)
from insertplanner.core.schema import (
    COMMIT_TIME_METADATA_FIELD,
    RECORD_KEY_METADATA_FIELD,
    Column,
    TableDescriptor,
    TableIdentifier,
)
from insertplanner.exceptions import SchemaMismatchError


@pytest.fixture
def aligner():
    return SchemaAligner()


@pytest.fixture
def hourly_table():
    """Table partitioned by an integer year and a string hour."""
    return TableDescriptor(
        identifier=TableIdentifier("events", "default"),
        location="/warehouse/events",
        data_schema=(Column("id", "bigint", nullable=False), Column("payload", "text")),
        partition_schema=(Column("year", "int"), Column("hh", "string")),
        primary_key_columns=("id",),
    )


class TestDynamicPartitions:
    """Test alignment when partition values come from the producer."""

    def test_matching_types_need_no_casts(self, aligner, keyed_table, request_factory):
        projection = aligner.align(keyed_table, request_factory())

        assert projection.column_names == ["id", "name", "dt"]
        assert [c.target_type for c in projection] == ["INTEGER", "VARCHAR", "VARCHAR"]
        assert not projection.has_casts
        assert projection[2].source == ColumnReference(2, "dt", "VARCHAR")

    def test_cast_inserted_when_types_differ(
        self, aligner, keyed_table, request_factory
    ):
        request = request_factory(
            columns=(("id", "bigint"), ("name", "string"), ("dt", "date"))
        )
        projection = aligner.align(keyed_table, request)

        assert [c.cast for c in projection] == [True, False, True]

    def test_positional_matching_renames_to_target(
        self, aligner, keyed_table, request_factory
    ):
        request = request_factory(
            columns=(("order_id", "int"), ("label", "string"), ("day", "string"))
        )
        projection = aligner.align(keyed_table, request)

        assert projection.column_names == ["id", "name", "dt"]
        assert projection[0].source.name == "order_id"

    def test_nullability_propagated(self, aligner, hourly_table, request_factory):
        request = request_factory(
            columns=(
                ("id", "bigint"),
                ("payload", "string"),
                ("year", "int"),
                ("hh", "string"),
            )
        )
        projection = aligner.align(hourly_table, request)

        assert [c.target_nullable for c in projection] == [False, True, True, True]

    def test_unpartitioned_table(self, aligner, plain_table, request_factory):
        request = request_factory(columns=(("id", "int"), ("name", "string")))
        projection = aligner.align(plain_table, request)

        assert projection.column_names == ["id", "name"]

    def test_column_count_mismatch(self, aligner, keyed_table, request_factory):
        request = request_factory(columns=(("id", "int"), ("name", "string")))

        with pytest.raises(SchemaMismatchError) as exc_info:
            aligner.align(keyed_table, request)
        assert exc_info.value.expected_columns == ["id", "name", "dt"]
        assert exc_info.value.actual_columns == ["id", "name"]
        assert "Required select columns count: 3" in str(exc_info.value)


class TestStaticPartitions:
    """Test alignment when partition values are fixed by the request."""

    def test_static_string_partition(self, aligner, keyed_table, request_factory):
        request = request_factory(
            columns=(("id", "int"), ("name", "string")),
            partition_spec={"dt": "2021-01-01"},
        )
        projection = aligner.align(keyed_table, request)

        assert projection.column_names == ["id", "name", "dt"]
        assert projection[2].source == Literal("2021-01-01")
        assert projection[2].cast is False

    def test_static_literal_cast_to_target_type(
        self, aligner, hourly_table, request_factory
    ):
        request = request_factory(
            columns=(("id", "bigint"), ("payload", "string")),
            partition_spec={"year": "2021", "hh": "10"},
        )
        projection = aligner.align(hourly_table, request)

        year, hh = projection[2], projection[3]
        assert (year.target_name, year.cast) == ("year", True)
        assert (hh.target_name, hh.cast) == ("hh", False)
        assert "CAST('2021' AS INTEGER) AS \"year\"" in projection.to_sql("src")

    def test_partial_static_partition_rejected(
        self, aligner, hourly_table, request_factory
    ):
        request = request_factory(
            columns=(("id", "bigint"), ("payload", "string"), ("hh", "string")),
            partition_spec={"year": "2021", "hh": None},
        )

        with pytest.raises(SchemaMismatchError) as exc_info:
            aligner.align(hourly_table, request)
        message = str(exc_info.value)
        assert "Required partition columns is: [year, hh]" in message
        assert "year=2021" in message

    def test_static_counts_toward_column_count(
        self, aligner, keyed_table, request_factory
    ):
        request = request_factory(partition_spec={"dt": "2021-01-01"})

        with pytest.raises(SchemaMismatchError) as exc_info:
            aligner.align(keyed_table, request)
        assert exc_info.value.actual_columns == ["id", "name", "dt", "dt"]

    def test_missing_static_value(self, aligner, keyed_table, request_factory):
        request = request_factory(
            columns=(("id", "int"), ("name", "string")),
            partition_spec={"region": "eu"},
        )

        with pytest.raises(SchemaMismatchError) as exc_info:
            aligner.align(keyed_table, request)
        assert "Missing static partition value for: dt" in str(exc_info.value)


class TestMetadataColumns:
    """Test that bookkeeping metadata columns are never projected."""

    @pytest.fixture
    def table_with_metadata(self):
        return TableDescriptor(
            identifier=TableIdentifier("t", "default"),
            location="/warehouse/t",
            data_schema=(
                Column(COMMIT_TIME_METADATA_FIELD, "string"),
                Column(RECORD_KEY_METADATA_FIELD, "string"),
                Column("id", "int"),
                Column("name", "string"),
            ),
            partition_schema=(Column("dt", "string"),),
            primary_key_columns=("id",),
        )

    def test_metadata_columns_dropped(
        self, aligner, table_with_metadata, request_factory
    ):
        request = request_factory(
            columns=(
                (COMMIT_TIME_METADATA_FIELD, "string"),
                (RECORD_KEY_METADATA_FIELD, "string"),
                ("id", "int"),
                ("name", "string"),
                ("dt", "string"),
            )
        )
        projection = aligner.align(table_with_metadata, request)

        assert projection.column_names == ["id", "name", "dt"]
        assert projection[0].source.index == 2
        assert len(projection) == (
            len(table_with_metadata.write_data_schema)
            + len(table_with_metadata.partition_schema)
        )

    def test_metadata_columns_hidden_in_mismatch_message(
        self, aligner, table_with_metadata, request_factory
    ):
        with pytest.raises(SchemaMismatchError) as exc_info:
            aligner.align(table_with_metadata, request_factory())
        assert exc_info.value.expected_columns == ["id", "name", "dt"]


class TestProjectionInvariants:
    """Properties that hold for every successful alignment."""

    @pytest.mark.parametrize(
        "columns,partition_spec",
        [
            ((("id", "int"), ("name", "string"), ("dt", "string")), None),
            ((("id", "bigint"), ("name", "int"), ("dt", "date")), {"dt": None}),
            ((("id", "int"), ("name", "string")), {"dt": "2021-01-01"}),
        ],
    )
    def test_length_and_partition_tail(
        self, aligner, keyed_table, request_factory, columns, partition_spec
    ):
        request = request_factory(columns=columns, partition_spec=partition_spec)
        projection = aligner.align(keyed_table, request)

        assert len(projection) == len(keyed_table.write_data_schema) + len(
            keyed_table.partition_schema
        )
        tail = projection[-len(keyed_table.partition_schema) :]
        assert [c.target_name for c in tail] == keyed_table.partition_column_names

    def test_matching_schema_round_trip(self, aligner, hourly_table, request_factory):
        request = request_factory(
            columns=[(c.name, c.data_type) for c in hourly_table.schema]
        )
        projection = aligner.align(hourly_table, request)

        assert not projection.has_casts
        assert projection.column_names == [c.name for c in hourly_table.schema]

    def test_projection_is_immutable_and_comparable(
        self, aligner, keyed_table, request_factory
    ):
        first = aligner.align(keyed_table, request_factory())
        second = aligner.align(keyed_table, request_factory())

        assert first == second
        with pytest.raises(TypeError):
            first[0] = second[1]


class TestProjectionRendering:
    """Test SQL rendering and application of a projection."""

    def test_to_sql(self, aligner, keyed_table, request_factory):
        request = request_factory(
            columns=(("id", "bigint"), ("name", "string"), ("dt", "string"))
        )
        sql = aligner.align(keyed_table, request).to_sql("source_rows")

        assert sql == (
            "SELECT\n"
            '  CAST("id" AS INTEGER) AS "id",\n'
            '  "name" AS "name",\n'
            '  "dt" AS "dt"\n'
            'FROM "source_rows"'
        )

    def test_to_sql_escapes_literals(self, aligner, keyed_table, request_factory):
        request = request_factory(
            columns=(("id", "int"), ("name", "string")),
            partition_spec={"dt": "o'clock"},
        )
        sql = aligner.align(keyed_table, request).to_sql("src")

        assert "'o''clock' AS \"dt\"" in sql

    def test_apply_casts_and_renames(self, aligner, keyed_table, request_factory):
        request = request_factory(
            columns=(("key", "bigint"), ("label", "string"), ("day", "string"))
        )
        rows = pa.table(
            {
                "key": pa.array([1, 2], pa.int64()),
                "label": ["a1", "a2"],
                "day": ["2021-01-01", "2021-01-02"],
            }
        )
        aligned = aligner.align(keyed_table, request).apply(rows)

        assert aligned.column_names == ["id", "name", "dt"]
        assert aligned.schema.field("id").type == pa.int32()
        assert aligned.column("id").to_pylist() == [1, 2]

    def test_apply_fills_static_partitions(
        self, aligner, keyed_table, request_factory
    ):
        request = request_factory(
            columns=(("id", "int"), ("name", "string")),
            partition_spec={"dt": "2021-01-01"},
        )
        rows = pa.table({"id": pa.array([1, 2], pa.int32()), "name": ["a", "b"]})
        aligned = aligner.align(keyed_table, request).apply(rows)

        assert aligned.column("dt").to_pylist() == ["2021-01-01", "2021-01-01"]

    def test_apply_rejects_nulls_in_required_column(
        self, aligner, hourly_table, request_factory
    ):
        request = request_factory(
            columns=(("id", "bigint"), ("payload", "string")),
            partition_spec={"year": "2021", "hh": "10"},
        )
        rows = pa.table(
            {"id": pa.array([1, None], pa.int64()), "payload": ["x", "y"]}
        )

        with pytest.raises(SchemaMismatchError) as exc_info:
            aligner.align(hourly_table, request).apply(rows)
        assert exc_info.value.expected_columns == ["id"]

    def test_output_schema(self, aligner, hourly_table, request_factory):
        request = request_factory(
            columns=(("id", "bigint"), ("payload", "string")),
            partition_spec={"year": "2021", "hh": "10"},
        )
        schema = aligner.align(hourly_table, request).output_schema()

        assert schema.field("id").nullable is False
        assert schema.field("year").type == pa.int32()

    def test_empty_projection(self):
        projection = AlignedProjection([])

        assert len(projection) == 0
        assert projection.column_names == []

    def test_apply_rejects_uncastable_static_literal(
        self, aligner, hourly_table, request_factory
    ):
        request = request_factory(
            columns=(("id", "bigint"), ("payload", "string")),
            partition_spec={"year": "abc", "hh": "10"},
        )
        rows = pa.table({"id": pa.array([1], pa.int64()), "payload": ["x"]})

        with pytest.raises(SchemaMismatchError) as exc_info:
            aligner.align(hourly_table, request).apply(rows)
        assert exc_info.value.expected_columns == ["year"]
        assert "to INTEGER for column year" in str(exc_info.value)

    def test_apply_rejects_uncastable_producer_values(
        self, aligner, keyed_table, request_factory
    ):
        request = request_factory(
            columns=(("id", "string"), ("name", "string"), ("dt", "string"))
        )
        rows = pa.table({"id": ["1", "two"], "name": ["a", "b"], "dt": ["d", "d"]})

        with pytest.raises(SchemaMismatchError, match="for column id"):
            aligner.align(keyed_table, request).apply(rows)

    def test_to_sql_quotes_keyword_and_spaced_names(self, aligner, request_factory):
        table = TableDescriptor(
            identifier=TableIdentifier("order", "default"),
            location="/warehouse/order",
            data_schema=(Column("commit", "int"), Column("order date", "string")),
            partition_schema=(Column("event-ts", "string"),),
        )
        request = request_factory(
            columns=(("update", "int"), ('say "hi"', "string"), ("event-ts", "string"))
        )
        sql = aligner.align(table, request).to_sql("source rows")

        assert sql == (
            "SELECT\n"
            '  "update" AS "commit",\n'
            '  "say ""hi""" AS "order date",\n'
            '  "event-ts" AS "event-ts"\n'
            'FROM "source rows"'
        )
