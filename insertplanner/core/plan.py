"""Write plan produced for one insert request."""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from insertplanner.core.aligner import AlignedProjection, SchemaAligner
from insertplanner.core.payload import PayloadStrategy
from insertplanner.core.planner.operation_planner import OperationPlanner
from insertplanner.core.planner.rules import WriteOperation
from insertplanner.core.protocols import SaveMode, TableConfigReader
from insertplanner.core.request import InsertRequest
from insertplanner.core.schema import TableDescriptor


@dataclass(frozen=True)
class WritePlan:
    """Everything the writer needs to execute an insert.

    The config map and the projection are immutable and may be shared with
    the write step by reference.
    """

    operation: WriteOperation
    payload_strategy: PayloadStrategy
    config_map: Mapping[str, str]
    aligned_projection: AlignedProjection
    save_mode: SaveMode

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation.value,
            "payload_strategy": self.payload_strategy.value,
            "save_mode": self.save_mode.value,
            "config": dict(self.config_map),
            "projection": [
                {
                    "source": getattr(c.source, "name", None)
                    or getattr(c.source, "value", None),
                    "target": c.target_name,
                    "type": c.target_type,
                    "nullable": c.target_nullable,
                    "cast": c.cast,
                }
                for c in self.aligned_projection
            ],
        }


class InsertPlanner:
    """Runs operation planning and schema alignment for an insert."""

    def __init__(
        self,
        config_reader: TableConfigReader,
        aligner: Optional[SchemaAligner] = None,
    ):
        self.operation_planner = OperationPlanner(config_reader)
        self.aligner = aligner or SchemaAligner()

    def plan(self, table: TableDescriptor, request: InsertRequest) -> WritePlan:
        """Plan ``request`` against ``table``.

        Raises:
            ConfigurationError: If the operation options are contradictory
            SchemaMismatchError: If the producer output does not fit the table
            TableConfigReadError: If the existing table config cannot be read
        """
        operation_plan = self.operation_planner.plan(table, request)
        projection = self.aligner.align(table, request)
        return WritePlan(
            operation=operation_plan.operation,
            payload_strategy=operation_plan.payload_strategy,
            config_map=operation_plan.config_map,
            aligned_projection=projection,
            save_mode=operation_plan.save_mode,
        )
