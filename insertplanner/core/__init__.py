"""Planning core: operation selection, schema alignment and merge payloads."""

from insertplanner.core.aligner import AlignedProjection, ProjectedColumn, SchemaAligner
from insertplanner.core.command import InsertIntoTableCommand
from insertplanner.core.options import InsertMode, SessionOptions
from insertplanner.core.payload import DuplicateKeyGuard, PayloadStrategy
from insertplanner.core.plan import InsertPlanner, WritePlan
from insertplanner.core.planner import OperationPlanner, WriteOperation
from insertplanner.core.request import InsertRequest
from insertplanner.core.schema import (
    Column,
    TableConfig,
    TableDescriptor,
    TableIdentifier,
    TableType,
)

__all__ = [
    "AlignedProjection",
    "Column",
    "DuplicateKeyGuard",
    "InsertIntoTableCommand",
    "InsertMode",
    "InsertPlanner",
    "InsertRequest",
    "OperationPlanner",
    "PayloadStrategy",
    "ProjectedColumn",
    "SchemaAligner",
    "SessionOptions",
    "TableConfig",
    "TableDescriptor",
    "TableIdentifier",
    "TableType",
    "WriteOperation",
    "WritePlan",
]
