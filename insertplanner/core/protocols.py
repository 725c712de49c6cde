"""Interfaces of the collaborators the insert command talks to."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Mapping, Optional

import pyarrow as pa

from insertplanner.core.schema import TableConfig


class SaveMode(Enum):
    """How the writer treats data already stored at the table path."""

    APPEND = "append"
    OVERWRITE = "overwrite"


class TableConfigReader(ABC):
    """Reads the configuration stored with a table."""

    @abstractmethod
    def read(self, base_path: str) -> Optional[TableConfig]:
        """Read the stored config of the table at ``base_path``.

        Returns:
            The stored config, or None when no table exists at the path

        Raises:
            TableConfigReadError: If the table exists but its config is unreadable
        """


class TableWriter(ABC):
    """Writes aligned rows into a table."""

    @abstractmethod
    def write(
        self, save_mode: SaveMode, config: Mapping[str, str], rows: pa.Table
    ) -> bool:
        """Write ``rows`` using the resolved writer configuration.

        Returns:
            True if the write committed, False otherwise
        """


class Catalog(ABC):
    """Catalog notified after a successful write."""

    @abstractmethod
    def refresh_table(self, identifier: str) -> None:
        """Invalidate cached metadata of ``identifier``."""
