"""Identity types shared by the aggregation engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, NamedTuple

UNKNOWN = "unknown"
KEY_DELIMITER = ":"


class MetricKey(NamedTuple):
    """(node_id, node_type, flow_id) bucket used by every per-node instrument.

    The tuple itself is the map key; the colon-joined form only exists for
    logging and for callers that need a flat string.
    """

    node_id: str
    node_type: str
    flow_id: str

    @classmethod
    def parse(cls, text: str) -> "MetricKey":
        parts = text.split(KEY_DELIMITER)
        if len(parts) != 3:
            raise ValueError(f"Expected 3 '{KEY_DELIMITER}'-separated fields, got {len(parts)}: {text!r}")
        return cls(*parts)

    @classmethod
    def unknown(cls) -> "MetricKey":
        return cls(UNKNOWN, UNKNOWN, UNKNOWN)

    def serialize(self) -> str:
        return KEY_DELIMITER.join(self)

    def labels(self) -> Dict[str, str]:
        return {"node_id": self.node_id, "node_type": self.node_type, "flow_id": self.flow_id}


class Direction(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


@dataclass(frozen=True)
class BatchRecord:
    """Pending count update waiting in the ingestion batcher."""

    key: MetricKey
    direction: Direction


@dataclass
class CounterState:
    """Cumulative message totals for one key. Never decremented."""

    incoming_total: int = 0
    outgoing_total: int = 0

    def to_dict(self) -> dict:
        return {"incoming_total": self.incoming_total, "outgoing_total": self.outgoing_total}
