"""Flow and node inventory derived from observed traffic.

Nothing here is stored: every scrape rescans the counter key set, so the
inventory can never drift away from the counters it is computed from.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Callable, Dict, Iterable, Set

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector

from .keys import MetricKey

KeySource = Callable[[], Iterable[MetricKey]]


def compute_inventory(keys: Iterable[MetricKey]) -> dict:
    flow_ids: Set[str] = set()
    nodes_by_type: Dict[str, Set[str]] = defaultdict(set)

    for key in keys:
        if key.flow_id:
            flow_ids.add(key.flow_id)
        if key.node_type:
            nodes_by_type[key.node_type].add(key.node_id)

    all_nodes = set()
    for node_ids in nodes_by_type.values():
        all_nodes.update(node_ids)

    return {
        "flows": len(flow_ids),
        "flow_ids": sorted(flow_ids),
        "nodes_by_type": {node_type: len(ids) for node_type, ids in sorted(nodes_by_type.items())},
        "total_nodes": len(all_nodes),
    }


class InventoryCollector(Collector):
    """Emits nodered_flows_* and nodered_nodes_* gauges at collect time."""

    def __init__(self, key_source: KeySource) -> None:
        self._key_source = key_source

    def describe(self):
        return [
            GaugeMetricFamily("nodered_flows_total", "Total number of flows"),
            GaugeMetricFamily("nodered_flows_active", "Number of active flows"),
            GaugeMetricFamily("nodered_nodes_total", "Total number of nodes", labels=["type"]),
            GaugeMetricFamily("nodered_nodes_active", "Number of active nodes", labels=["type"]),
        ]

    def collect(self):
        inventory = compute_inventory(self._key_source())

        # Every observed flow has carried traffic, so total and active match.
        yield GaugeMetricFamily("nodered_flows_total", "Total number of flows", value=inventory["flows"])
        yield GaugeMetricFamily("nodered_flows_active", "Number of active flows", value=inventory["flows"])

        nodes_total = GaugeMetricFamily("nodered_nodes_total", "Total number of nodes", labels=["type"])
        nodes_active = GaugeMetricFamily("nodered_nodes_active", "Number of active nodes", labels=["type"])
        for node_type, count in inventory["nodes_by_type"].items():
            nodes_total.add_metric([node_type], count)
            nodes_active.add_metric([node_type], count)
        yield nodes_total
        yield nodes_active
