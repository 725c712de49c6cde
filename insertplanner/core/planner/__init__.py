"""Write operation planning."""

from insertplanner.core.planner.operation_planner import OperationPlan, OperationPlanner
from insertplanner.core.planner.rules import (
    OPERATION_RULES,
    OperationSignals,
    WriteOperation,
    resolve_operation,
)

__all__ = [
    "OPERATION_RULES",
    "OperationPlan",
    "OperationPlanner",
    "OperationSignals",
    "WriteOperation",
    "resolve_operation",
]
