"""Exception hierarchy for insert planning and writing.

Planning errors are raised before the writer is invoked and are never
retried. ``DuplicateKeyError`` is the only error raised during the write
itself; it is propagated through the writer call.
"""

from typing import List, Optional, Sequence


class InsertPlannerError(Exception):
    """Base exception for insert planning with optional fix suggestions."""

    def __init__(self, message: str, suggestions: Optional[List[str]] = None):
        self.message = message
        self.suggestions = suggestions or []
        super().__init__(message)


class ConfigurationError(InsertPlannerError):
    """Raised when operation-selection options are invalid or contradictory."""

    def __init__(
        self,
        message: str,
        options: Optional[Sequence[str]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        self.options = list(options or [])
        super().__init__(message, suggestions)


class SchemaMismatchError(InsertPlannerError):
    """Raised when the producer output cannot be aligned to the table schema."""

    def __init__(
        self,
        message: str,
        expected_columns: Optional[Sequence[str]] = None,
        actual_columns: Optional[Sequence[str]] = None,
    ):
        self.expected_columns = list(expected_columns or [])
        self.actual_columns = list(actual_columns or [])
        super().__init__(message)


class TableConfigReadError(InsertPlannerError):
    """Raised when an existing table's stored configuration cannot be read."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to read table config at {path}: {reason}")


class DuplicateKeyError(InsertPlannerError):
    """Raised when a strict upsert meets a record key that already exists."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Duplicate key found for insert statement, key is: {key}")


class WriterError(InsertPlannerError):
    """Raised when the table writer fails for reasons other than duplicates."""

    def __init__(self, message: str, table_name: Optional[str] = None):
        self.table_name = table_name
        super().__init__(message)
