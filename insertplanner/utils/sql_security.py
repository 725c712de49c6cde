"""
SQL quoting utilities for the statements rendered by the planner and the
DuckDB writer.

Every identifier is quoted, with embedded quote characters doubled, so table
and column names taken from catalog metadata can never inject SQL. Keywords
and names with spaces or punctuation are legal once quoted.
"""

from typing import Any, List, Optional


class SQLIdentifierValidator:
    """Validator for SQL identifiers about to be quoted."""

    @classmethod
    def is_valid_identifier(cls, identifier: str) -> bool:
        """
        Check if an identifier can be quoted.

        Args:
            identifier: The identifier to validate

        Returns:
            True unless the identifier is empty, not a string or contains NUL
        """
        if not identifier or not isinstance(identifier, str):
            return False
        return "\x00" not in identifier


class SQLSafeFormatter:
    """Safe SQL query formatter that prevents injection attacks."""

    def __init__(self, dialect: str = "duckdb"):
        """
        Initialize the formatter.

        Args:
            dialect: SQL dialect ("duckdb", "postgres", "mysql", "sqlite")
        """
        self.dialect = dialect.lower()
        self.validator = SQLIdentifierValidator()

    def quote_identifier(self, identifier: str) -> str:
        """
        Quote an SQL identifier (table name, column name, etc.).

        Embedded quote characters are doubled, so any non-empty name
        round-trips, including keywords and names with spaces.

        Raises:
            ValueError: If the identifier is empty or contains NUL
        """
        if not self.validator.is_valid_identifier(identifier):
            raise ValueError(f"Invalid identifier: {identifier!r}")

        quote = "`" if self.dialect == "mysql" else '"'
        return f"{quote}{identifier.replace(quote, quote * 2)}{quote}"

    def quote_literal(self, value: Any) -> str:
        """Render ``value`` as a string literal, doubling embedded quotes."""
        if value is None:
            return "NULL"
        text = str(value).replace("'", "''")
        return f"'{text}'"

    def quote_schema_table(
        self, table_name: str, schema_name: Optional[str] = None
    ) -> str:
        """
        Safely quote a schema.table reference.

        Args:
            table_name: The table name
            schema_name: Optional schema name

        Returns:
            Properly quoted schema.table reference
        """
        quoted_table = self.quote_identifier(table_name)

        if schema_name:
            quoted_schema = self.quote_identifier(schema_name)
            return f"{quoted_schema}.{quoted_table}"

        return quoted_table

    def format_column_list(self, columns: List[str]) -> str:
        """
        Safely format a list of column names.

        Returns:
            Comma-separated, quoted column list
        """
        if not columns:
            return "*"

        quoted_columns = [self.quote_identifier(col) for col in columns]
        return ", ".join(quoted_columns)

    def build_delete_query(
        self,
        table_name: str,
        schema_name: Optional[str] = None,
        where_clause: Optional[str] = None,
    ) -> str:
        """
        Build a safe DELETE query with proper identifier quoting.

        Args:
            table_name: Target table name
            schema_name: Optional schema name
            where_clause: Optional WHERE clause (should use parameters for values)

        Returns:
            Safe DELETE query
        """
        table_ref = self.quote_schema_table(table_name, schema_name)
        query = f"DELETE FROM {table_ref}"

        if where_clause:
            query += f" WHERE {where_clause}"

        return query

    def build_insert_select_query(
        self, table_name: str, columns: List[str], source_name: str
    ) -> str:
        """Build ``INSERT INTO t (cols) SELECT cols FROM source``."""
        if not columns:
            raise ValueError("Columns list cannot be empty for INSERT")

        column_str = self.format_column_list(columns)
        return (
            f"INSERT INTO {self.quote_identifier(table_name)} ({column_str}) "
            f"SELECT {column_str} FROM {self.quote_identifier(source_name)}"
        )
