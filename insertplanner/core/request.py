"""Insert request model."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from insertplanner.core.options import SessionOptions, stringify_options
from insertplanner.core.schema import Column


@dataclass(frozen=True)
class InsertRequest:
    """A declarative "insert into table select ..." request.

    Example:
    -------
        INSERT INTO t PARTITION (dt = '2021-01-01') SELECT id, name FROM src

    is ``partition_spec={"dt": "2021-01-01"}`` with the producer emitting
    ``(id, name)``. A partition key mapped to ``None`` is dynamic and its
    value comes from the producer's trailing columns.
    """

    producer_output_schema: Tuple[Column, ...]
    partition_spec: Dict[str, Optional[str]] = field(default_factory=dict)
    overwrite: bool = False
    session_options: SessionOptions = field(default_factory=SessionOptions)
    extra_options: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(
            self, "producer_output_schema", tuple(self.producer_output_schema)
        )
        object.__setattr__(self, "extra_options", stringify_options(self.extra_options))

    @property
    def static_partition_values(self) -> Dict[str, str]:
        return {k: v for k, v in self.partition_spec.items() if v is not None}

    @property
    def producer_column_names(self) -> List[str]:
        return [column.name for column in self.producer_output_schema]
