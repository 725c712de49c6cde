"""Pytest configuration for insertplanner tests."""

import tempfile
from typing import Dict, Generator, Optional

import pyarrow as pa
import pytest

from insertplanner.core.options import SessionOptions
from insertplanner.core.request import InsertRequest
from insertplanner.core.schema import (
    Column,
    TableDescriptor,
    TableIdentifier,
    TableType,
)
from insertplanner.core.table_config import InMemoryTableConfigReader


@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Create a temporary directory for tests.

    Yields
    ------
        Path to the temporary directory

    """
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield tmp_dir


def make_table(
    primary_key=("id",),
    partitioned: bool = True,
    table_type: TableType = TableType.COPY_ON_WRITE,
    name: str = "t",
    location: Optional[str] = None,
    properties: Optional[Dict[str, str]] = None,
) -> TableDescriptor:
    """Table ``t(id INT, name STRING) PARTITIONED BY (dt STRING)``."""
    return TableDescriptor(
        identifier=TableIdentifier(table=name, database="default"),
        location=location or f"/warehouse/{name}",
        data_schema=(Column("id", "int"), Column("name", "string")),
        partition_schema=(Column("dt", "string"),) if partitioned else (),
        primary_key_columns=tuple(primary_key),
        table_type=table_type,
        properties=properties or {},
    )


def make_request(
    columns=(("id", "int"), ("name", "string"), ("dt", "string")),
    partition_spec: Optional[Dict[str, Optional[str]]] = None,
    overwrite: bool = False,
    session: Optional[Dict[str, str]] = None,
    extra: Optional[Dict[str, str]] = None,
) -> InsertRequest:
    return InsertRequest(
        producer_output_schema=tuple(Column(n, t) for n, t in columns),
        partition_spec=partition_spec or {},
        overwrite=overwrite,
        session_options=SessionOptions.from_dict(session),
        extra_options=extra or {},
    )


@pytest.fixture
def keyed_table() -> TableDescriptor:
    return make_table()


@pytest.fixture
def plain_table() -> TableDescriptor:
    return make_table(primary_key=(), partitioned=False)


@pytest.fixture
def config_reader() -> InMemoryTableConfigReader:
    return InMemoryTableConfigReader()


@pytest.fixture
def sample_rows() -> pa.Table:
    return pa.table(
        {
            "id": pa.array([1, 2], pa.int32()),
            "name": pa.array(["a1", "a2"], pa.string()),
            "dt": pa.array(["2021-01-01", "2021-01-02"], pa.string()),
        }
    )


@pytest.fixture
def table_factory():
    """Factory for variants of the keyed, partitioned test table."""
    return make_table


@pytest.fixture
def request_factory():
    """Factory for insert requests against the test table."""
    return make_request
