"""Readers for the configuration stored alongside a table."""

import os
from typing import Dict, Optional

from insertplanner.core.options import parse_bool
from insertplanner.core.protocols import TableConfigReader
from insertplanner.core.schema import TableConfig
from insertplanner.exceptions import ConfigurationError, TableConfigReadError
from insertplanner.logging import get_logger

logger = get_logger(__name__)

METADATA_FOLDER = ".table_meta"
PROPERTIES_FILE = "table.properties"

HIVE_STYLE_PARTITIONING_KEY = "table.hive_style_partitioning"
URL_ENCODE_PARTITIONING_KEY = "table.partitionpath.urlencode"
KEY_GENERATOR_CLASS_KEY = "table.keygenerator.class"


def table_config_from_properties(properties: Dict[str, str]) -> TableConfig:
    """Build a TableConfig from stored key/value properties."""

    def optional_bool(key: str) -> Optional[bool]:
        if key not in properties:
            return None
        return parse_bool(key, properties[key])

    return TableConfig(
        hive_style_partitioning=optional_bool(HIVE_STYLE_PARTITIONING_KEY),
        url_encode_partitioning=optional_bool(URL_ENCODE_PARTITIONING_KEY),
        key_generator_class=properties.get(KEY_GENERATOR_CLASS_KEY) or None,
        properties=dict(properties),
    )


def table_config_to_properties(config: TableConfig) -> Dict[str, str]:
    properties = dict(config.properties)
    if config.hive_style_partitioning is not None:
        properties[HIVE_STYLE_PARTITIONING_KEY] = str(
            config.hive_style_partitioning
        ).lower()
    if config.url_encode_partitioning is not None:
        properties[URL_ENCODE_PARTITIONING_KEY] = str(
            config.url_encode_partitioning
        ).lower()
    if config.key_generator_class is not None:
        properties[KEY_GENERATOR_CLASS_KEY] = config.key_generator_class
    return properties


def parse_properties(text: str) -> Dict[str, str]:
    """Parse ``key=value`` lines, skipping blanks and ``#``/``!`` comments.

    Raises:
        ValueError: If a non-comment line has no separator
    """
    properties = {}
    for line_number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith(("#", "!")):
            continue
        separators = [i for i in (line.find("="), line.find(":")) if i > 0]
        if not separators:
            raise ValueError(f"Malformed property at line {line_number}: {line}")
        index = min(separators)
        properties[line[:index].strip()] = line[index + 1 :].strip()
    return properties


class PropertiesTableConfigReader(TableConfigReader):
    """Reads ``<base_path>/.table_meta/table.properties``.

    A missing metadata folder means the table does not exist yet.
    """

    @staticmethod
    def properties_path(base_path: str) -> str:
        return os.path.join(base_path, METADATA_FOLDER, PROPERTIES_FILE)

    def table_exists(self, base_path: str) -> bool:
        return os.path.isdir(os.path.join(base_path, METADATA_FOLDER))

    def read(self, base_path: str) -> Optional[TableConfig]:
        if not self.table_exists(base_path):
            logger.debug(f"No table found at {base_path}, using default config")
            return None

        path = self.properties_path(base_path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                properties = parse_properties(f.read())
            config = table_config_from_properties(properties)
        except (OSError, ValueError, ConfigurationError) as e:
            raise TableConfigReadError(path, str(e)) from e

        logger.debug(f"Loaded {len(properties)} table properties from {path}")
        return config

    def save(self, base_path: str, config: TableConfig) -> None:
        """Store ``config`` so that later reads see an existing table."""
        os.makedirs(os.path.join(base_path, METADATA_FOLDER), exist_ok=True)
        properties = table_config_to_properties(config)
        with open(self.properties_path(base_path), "w", encoding="utf-8") as f:
            f.write("# table config\n")
            for key in sorted(properties):
                f.write(f"{key}={properties[key]}\n")


class InMemoryTableConfigReader(TableConfigReader):
    """Table configs kept in a dictionary keyed by base path."""

    def __init__(self, configs: Optional[Dict[str, TableConfig]] = None):
        self.configs = dict(configs or {})

    def read(self, base_path: str) -> Optional[TableConfig]:
        return self.configs.get(base_path)

    def save(self, base_path: str, config: TableConfig) -> None:
        self.configs[base_path] = config
