from insertplanner.core.writers.duckdb_writer import DuckDBTableWriter

__all__ = ["DuckDBTableWriter"]
