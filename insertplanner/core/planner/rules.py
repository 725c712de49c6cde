"""Ordered decision rules selecting the write operation of an insert.

Rules are scanned in order and the first matching rule wins. A rule either
resolves an operation or rejects the combination of signals.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from insertplanner.core.options import InsertMode, SessionOptionKeys
from insertplanner.exceptions import ConfigurationError


class WriteOperation(Enum):
    """Write operations understood by the table writer."""

    INSERT = "insert"
    UPSERT = "upsert"
    BULK_INSERT = "bulk_insert"
    INSERT_OVERWRITE = "insert_overwrite"
    INSERT_OVERWRITE_TABLE = "insert_overwrite_table"


@dataclass(frozen=True)
class OperationSignals:
    """Facts about the request that select the operation."""

    is_primary_key_table: bool
    bulk_insert_requested: bool
    is_overwrite: bool
    drop_duplicates_requested: bool
    is_partitioned: bool
    insert_mode: InsertMode = InsertMode.STRICT

    @property
    def is_strict(self) -> bool:
        return self.insert_mode is InsertMode.STRICT


@dataclass(frozen=True)
class OperationRule:
    """One row of the decision table."""

    name: str
    matches: Callable[[OperationSignals], bool]
    operation: Optional[WriteOperation] = None
    error: Optional[str] = None
    options: Tuple[str, ...] = ()
    suggestions: Tuple[str, ...] = ()

    def apply(self, signals: OperationSignals) -> WriteOperation:
        if self.operation is None:
            raise ConfigurationError(
                self.error.format(mode=signals.insert_mode.value),
                options=self.options,
                suggestions=list(self.suggestions),
            )
        return self.operation


OPERATION_RULES: List[OperationRule] = [
    OperationRule(
        name="bulk-insert-into-keyed-table-in-strict-mode",
        matches=lambda s: s.is_primary_key_table
        and s.bulk_insert_requested
        and s.is_strict,
        error="Table with primaryKey can not use bulk insert in {mode} mode.",
        options=(SessionOptionKeys.ENABLE_BULK_INSERT, SessionOptionKeys.INSERT_MODE),
        suggestions=(
            f"Set {SessionOptionKeys.INSERT_MODE}=non-strict",
            f"Disable {SessionOptionKeys.ENABLE_BULK_INSERT}",
        ),
    ),
    OperationRule(
        name="bulk-insert-overwrite-partition",
        matches=lambda s: s.bulk_insert_requested
        and s.is_overwrite
        and s.is_partitioned,
        error="Insert Overwrite Partition can not use bulk insert.",
        options=(SessionOptionKeys.ENABLE_BULK_INSERT, "overwrite"),
        suggestions=(
            f"Disable {SessionOptionKeys.ENABLE_BULK_INSERT} and try again",
        ),
    ),
    OperationRule(
        name="bulk-insert-drop-duplicates",
        matches=lambda s: s.bulk_insert_requested and s.drop_duplicates_requested,
        error="Bulk insert cannot support drop duplication.",
        options=(
            SessionOptionKeys.ENABLE_BULK_INSERT,
            SessionOptionKeys.DROP_DUPLICATES,
        ),
        suggestions=(
            f"Disable {SessionOptionKeys.DROP_DUPLICATES} and try again",
        ),
    ),
    OperationRule(
        name="bulk-insert-overwrite-table",
        matches=lambda s: s.bulk_insert_requested
        and s.is_overwrite
        and not s.is_partitioned,
        operation=WriteOperation.BULK_INSERT,
    ),
    OperationRule(
        name="overwrite-partition",
        matches=lambda s: s.is_overwrite and s.is_partitioned,
        operation=WriteOperation.INSERT_OVERWRITE,
    ),
    OperationRule(
        name="overwrite-table",
        matches=lambda s: s.is_overwrite and not s.is_partitioned,
        operation=WriteOperation.INSERT_OVERWRITE_TABLE,
    ),
    OperationRule(
        name="strict-upsert-into-keyed-table",
        matches=lambda s: s.is_primary_key_table
        and not s.bulk_insert_requested
        and not s.drop_duplicates_requested
        and s.is_strict,
        operation=WriteOperation.UPSERT,
    ),
    OperationRule(
        name="bulk-insert-into-non-keyed-table",
        matches=lambda s: not s.is_primary_key_table and s.bulk_insert_requested,
        operation=WriteOperation.BULK_INSERT,
    ),
    OperationRule(
        name="bulk-insert-into-keyed-table-in-non-strict-mode",
        matches=lambda s: s.is_primary_key_table
        and s.bulk_insert_requested
        and not s.is_strict,
        operation=WriteOperation.BULK_INSERT,
    ),
    OperationRule(
        name="insert",
        matches=lambda s: True,
        operation=WriteOperation.INSERT,
    ),
]


def match_rule(signals: OperationSignals) -> OperationRule:
    """Return the first rule matching ``signals``."""
    for rule in OPERATION_RULES:
        if rule.matches(signals):
            return rule
    # The last rule always matches
    raise AssertionError("operation rules are not exhaustive")


def resolve_operation(signals: OperationSignals) -> WriteOperation:
    """Resolve the write operation for ``signals``.

    Raises:
        ConfigurationError: If the signals form a rejected combination
    """
    return match_rule(signals).apply(signals)
