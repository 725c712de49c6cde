"""insertplanner - operation planning and schema alignment for table inserts."""

__version__ = "0.1.0"
__package_name__ = "insertplanner"

# Initialize logging with default configuration
from insertplanner.logging import configure_logging

configure_logging()

from .exceptions import (  # noqa: E402
    ConfigurationError,
    DuplicateKeyError,
    InsertPlannerError,
    SchemaMismatchError,
    TableConfigReadError,
    WriterError,
)

__all__ = [
    "InsertPlannerError",
    "ConfigurationError",
    "SchemaMismatchError",
    "DuplicateKeyError",
    "TableConfigReadError",
    "WriterError",
]
