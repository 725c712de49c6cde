"""Insert-into-table command."""

from typing import Optional

import pyarrow as pa

from insertplanner.core.plan import InsertPlanner, WritePlan
from insertplanner.core.protocols import Catalog, TableConfigReader, TableWriter
from insertplanner.core.request import InsertRequest
from insertplanner.core.schema import TableDescriptor
from insertplanner.exceptions import SchemaMismatchError
from insertplanner.logging import get_logger

logger = get_logger(__name__)


class InsertIntoTableCommand:
    """Plans an insert, writes the aligned rows and refreshes the catalog.

    Both dynamic partition inserts and static partition inserts are
    supported. The writer is invoked at most once per run.
    """

    def __init__(
        self,
        config_reader: TableConfigReader,
        writer: TableWriter,
        catalog: Optional[Catalog] = None,
    ):
        self.planner = InsertPlanner(config_reader)
        self.writer = writer
        self.catalog = catalog

    def run(
        self,
        table: TableDescriptor,
        request: InsertRequest,
        rows: pa.Table,
        refresh_table: bool = True,
    ) -> bool:
        """Run the insert.

        Args:
            table: Target table
            request: Insert request
            rows: Producer output, columns in producer output schema order
            refresh_table: Whether to refresh the catalog after the write

        Returns:
            True if the write succeeded

        Raises:
            ConfigurationError: If the operation options are contradictory
            SchemaMismatchError: If the rows do not fit the table
            DuplicateKeyError: If a strict upsert meets an existing key
        """
        plan = self.planner.plan(table, request)
        aligned_rows = self._align_rows(plan, request, rows)

        logger.info(
            f"Writing {aligned_rows.num_rows} rows into {table.identifier} "
            f"with operation {plan.operation.value} ({plan.save_mode.value})"
        )
        success = self.writer.write(plan.save_mode, plan.config_map, aligned_rows)
        if not success:
            logger.warning(f"Write into {table.identifier} failed")
            return False

        if refresh_table and self.catalog is not None:
            self.catalog.refresh_table(table.identifier.unquoted)
        return True

    @staticmethod
    def _align_rows(
        plan: WritePlan, request: InsertRequest, rows: pa.Table
    ) -> pa.Table:
        if rows.num_columns != len(request.producer_output_schema):
            raise SchemaMismatchError(
                f"Row producer emitted {rows.num_columns} columns but declared "
                f"{len(request.producer_output_schema)}",
                expected_columns=request.producer_column_names,
                actual_columns=rows.column_names,
            )
        return plan.aligned_projection.apply(rows)
