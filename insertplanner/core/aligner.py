"""Alignment of a row producer's output with the target table schema.

The producer's columns are matched to the table **by position**, not by name:
data columns first, in the table's declared order, followed by the dynamic
partition columns in the table's declared partition order. A query that
emits its columns in a different order is aligned wrongly without any error,
so row producers must honour this ordering.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple, Union

import pyarrow as pa

from insertplanner.core.request import InsertRequest
from insertplanner.core.schema import (
    Column,
    TableDescriptor,
    is_metadata_field,
    to_arrow_type,
)
from insertplanner.exceptions import SchemaMismatchError
from insertplanner.logging import get_logger
from insertplanner.utils.sql_security import SQLSafeFormatter

logger = get_logger(__name__)

STATIC_LITERAL_TYPE = "VARCHAR"


@dataclass(frozen=True)
class ColumnReference:
    """A column of the producer output, addressed by position."""

    index: int
    name: str
    data_type: str

    def to_sql(self, formatter: SQLSafeFormatter) -> str:
        return formatter.quote_identifier(self.name)


@dataclass(frozen=True)
class Literal:
    """A static partition value supplied by the request."""

    value: str
    data_type: str = STATIC_LITERAL_TYPE

    def to_sql(self, formatter: SQLSafeFormatter) -> str:
        return formatter.quote_literal(self.value)


SourceExpression = Union[ColumnReference, Literal]


@dataclass(frozen=True)
class ProjectedColumn:
    """One output column of the aligned projection."""

    source: SourceExpression
    target_name: str
    target_type: str
    target_nullable: bool
    cast: bool

    def to_sql(self, formatter: SQLSafeFormatter) -> str:
        expression = self.source.to_sql(formatter)
        if self.cast:
            expression = f"CAST({expression} AS {self.target_type})"
        return f"{expression} AS {formatter.quote_identifier(self.target_name)}"


class AlignedProjection(Sequence[ProjectedColumn]):
    """Ordered, immutable projection from producer rows to table rows."""

    def __init__(self, columns: Sequence[ProjectedColumn]):
        self._columns: Tuple[ProjectedColumn, ...] = tuple(columns)

    def __getitem__(self, index):
        return self._columns[index]

    def __len__(self) -> int:
        return len(self._columns)

    def __iter__(self) -> Iterator[ProjectedColumn]:
        return iter(self._columns)

    def __eq__(self, other) -> bool:
        if isinstance(other, AlignedProjection):
            return self._columns == other._columns
        return NotImplemented

    def __repr__(self) -> str:
        return f"AlignedProjection({list(self._columns)!r})"

    @property
    def column_names(self) -> List[str]:
        return [column.target_name for column in self._columns]

    @property
    def has_casts(self) -> bool:
        return any(column.cast for column in self._columns)

    def to_sql(self, source_relation: str, dialect: str = "duckdb") -> str:
        """Render the projection as a ``SELECT`` over ``source_relation``."""
        formatter = SQLSafeFormatter(dialect)
        select_list = ",\n  ".join(c.to_sql(formatter) for c in self._columns)
        return (
            f"SELECT\n  {select_list}\n"
            f"FROM {formatter.quote_identifier(source_relation)}"
        )

    def output_schema(self) -> pa.Schema:
        return pa.schema(
            [
                pa.field(c.target_name, to_arrow_type(c.target_type), c.target_nullable)
                for c in self._columns
            ]
        )

    def apply(self, rows: pa.Table) -> pa.Table:
        """Reshape producer rows into the table's write schema.

        Raises:
            SchemaMismatchError: If a value cannot be cast to its target column
                type, or a non-nullable target column receives nulls
        """
        arrays = []
        for column in self._columns:
            if isinstance(column.source, Literal):
                array = pa.array([column.source.value] * rows.num_rows, pa.string())
            else:
                array = rows.column(column.source.index)
            try:
                target_type = to_arrow_type(column.target_type)
                if column.cast or not array.type.equals(target_type):
                    array = array.cast(target_type)
            except (pa.ArrowException, ValueError) as e:
                raise SchemaMismatchError(
                    f"Cannot cast {column.source.data_type} value to "
                    f"{column.target_type} for column {column.target_name}: {e}",
                    expected_columns=[column.target_name],
                ) from e
            if not column.target_nullable and array.null_count:
                raise SchemaMismatchError(
                    f"Column {column.target_name} is not nullable but received "
                    f"{array.null_count} null values",
                    expected_columns=[column.target_name],
                )
            arrays.append(array)
        return pa.Table.from_arrays(arrays, schema=self.output_schema())


def _column_names(columns: Sequence[Column]) -> List[str]:
    return [c.name for c in columns if not is_metadata_field(c.name)]


class SchemaAligner:
    """Aligns the name, type and nullability of producer output columns."""

    def align(self, table: TableDescriptor, request: InsertRequest) -> AlignedProjection:
        """Build the projection writing ``request``'s rows into ``table``.

        Args:
            table: Target table
            request: Insert request carrying the producer output schema

        Returns:
            Projection of data columns followed by partition columns

        Raises:
            SchemaMismatchError: If the producer output does not fit the table
        """
        static_values = request.static_partition_values
        producer = list(request.producer_output_schema)
        self._validate_column_counts(table, producer, static_values)

        partition_count = len(table.partition_schema)
        if static_values:
            producer_data = producer
        else:
            producer_data = producer[: len(producer) - partition_count]

        data_projects = [
            self._align_column(index, source, target)
            for index, (source, target) in enumerate(
                zip(producer_data, table.data_schema)
            )
        ]

        if static_values:
            partition_projects = [
                self._align_static_partition(target, static_values.get(target.name))
                for target in table.partition_schema
            ]
        else:
            # Dynamic partition values follow the data columns
            offset = len(table.data_schema)
            partition_projects = [
                self._align_column(offset + i, producer[offset + i], target)
                for i, target in enumerate(table.partition_schema)
            ]

        # Bookkeeping metadata columns are never written
        data_projects = [
            p for p in data_projects if not is_metadata_field(p.target_name)
        ]
        projection = AlignedProjection(data_projects + partition_projects)
        logger.debug(
            f"Aligned {len(producer)} producer columns to table {table.identifier}: "
            f"{projection.column_names}"
        )
        return projection

    def _validate_column_counts(
        self,
        table: TableDescriptor,
        producer: List[Column],
        static_values: dict,
    ) -> None:
        partition_names = table.partition_column_names
        if static_values and len(static_values) != len(partition_names):
            raise SchemaMismatchError(
                f"Required partition columns is: [{', '.join(partition_names)}], "
                "Current static partitions is: "
                f"[{', '.join(f'{k}={v}' for k, v in static_values.items())}]",
                expected_columns=partition_names,
                actual_columns=list(static_values),
            )

        if len(static_values) + len(producer) != len(table.schema):
            expected = _column_names(table.schema)
            actual = _column_names(producer) + list(static_values)
            raise SchemaMismatchError(
                f"Required select columns count: {len(expected)}, "
                "Current select columns(including static partition column) "
                f"count: {len(actual)}, columns: ({','.join(actual)}). "
                f"Expected columns: ({','.join(expected)})",
                expected_columns=expected,
                actual_columns=actual,
            )

    @staticmethod
    def _align_column(index: int, source: Column, target: Column) -> ProjectedColumn:
        return ProjectedColumn(
            source=ColumnReference(index, source.name, source.data_type),
            target_name=target.name,
            target_type=target.data_type,
            target_nullable=target.nullable,
            cast=not source.same_type(target),
        )

    @staticmethod
    def _align_static_partition(
        target: Column, value: Optional[str]
    ) -> ProjectedColumn:
        if value is None:
            raise SchemaMismatchError(
                f"Missing static partition value for: {target.name}",
                expected_columns=[target.name],
            )
        return ProjectedColumn(
            source=Literal(value),
            target_name=target.name,
            target_type=target.data_type,
            target_nullable=target.nullable,
            cast=target.data_type != STATIC_LITERAL_TYPE,
        )
