"""
测试公共夹具

- FakeStatsSource: 内存数据源，可指定在某个节点上抛出 StatsSourceError
- RecordingEmitter: 记录所有上报的指标
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

# 添加项目路径到 sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from aerospike_monitor.config import MetricsConfig
from aerospike_monitor.orchestrator import CycleOrchestrator
from aerospike_monitor.source import StatsSourceError


class FakeStatsSource:
    """内存节点统计数据源"""

    def __init__(self, nodes: Optional[Dict[str, Dict[str, Any]]] = None, fail_on: Optional[str] = None):
        # {node_id: 与 HTTP 统计文档相同结构的字典}
        self.nodes: Dict[str, Dict[str, Any]] = nodes or {}
        self.fail_on = fail_on

    def _doc(self, node_id: str) -> Dict[str, Any]:
        if node_id == self.fail_on:
            raise StatsSourceError(f"connection refused: {node_id}")
        return self.nodes[node_id]

    def list_nodes(self) -> List[str]:
        return list(self.nodes)

    def node_statistics(self, node_id):
        return self._doc(node_id).get("statistics", {})

    def node_capability_flag(self, node_id):
        return self._doc(node_id).get("new_format", False)

    def node_memory_stats(self, node_id):
        return self._doc(node_id).get("memory", {})

    def node_disk_stats(self, node_id):
        return self._doc(node_id).get("disk", {})

    def node_throughput(self, node_id):
        return self._doc(node_id).get("throughput")

    def node_latency(self, node_id):
        return self._doc(node_id).get("latency", {})

    def list_namespaces(self):
        namespaces = []
        for doc in self.nodes.values():
            for ns in doc.get("namespaces", {}):
                if ns not in namespaces:
                    namespaces.append(ns)
        return namespaces

    def namespace_statistics(self, namespace, node_id):
        return self._doc(node_id).get("namespaces", {}).get(namespace, {})


class RecordingEmitter:
    """记录上报的指标"""

    def __init__(self):
        self.emitted: List[Tuple[str, str, float]] = []
        self.flushes = 0

    def emit(self, path: str, unit: str, value: float) -> None:
        self.emitted.append((path, unit, value))

    @property
    def metrics(self) -> Dict[str, float]:
        return {path: value for path, _unit, value in self.emitted}

    async def flush(self) -> int:
        self.flushes += 1
        return len(self.emitted)


def make_node(
    cluster_size: Optional[str] = "2",
    new_format: bool = False,
    reads=None,
    writes=None,
    latency=None,
    memory=None,
    disk=None,
    namespaces=None,
    **stats,
) -> Dict[str, Any]:
    """构造一个节点的统计文档"""
    statistics = dict(stats)
    if cluster_size is not None:
        statistics["cluster_size"] = cluster_size
    throughput = None
    if reads is not None or writes is not None:
        throughput = {"reads": reads, "writes": writes}
    return {
        "statistics": statistics,
        "new_format": new_format,
        "memory": memory or {},
        "disk": disk or {},
        "throughput": throughput,
        "latency": latency or {},
        "namespaces": namespaces or {},
    }


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def metrics_config():
    return MetricsConfig()


@pytest.fixture
def two_node_source():
    """一个新版节点 + 一个旧版节点"""
    return FakeStatsSource({
        "node-a": make_node(
            cluster_size="2",
            new_format=True,
            objects="100",
            reads={"success": "10", "total": "12"},
            writes={"success": "4", "total": "5"},
            latency={"ns1-query": {">1ms": "5;0.5", ">8ms": "1;0.1", ">64ms": "0;0.0"}},
            memory={"used_bytes_memory": "1000"},
            disk={"used_bytes_disk": "5000"},
            namespaces={"ns1": {"objects": "60", "stop_writes": "false"}},
        ),
        "node-b": make_node(
            cluster_size="2",
            new_format=False,
            objects="80",
            reads={"success": "6", "total": "7"},
            writes={"success": None, "total": "3"},
            latency={"query": {">1ms": "3;0.3", ">8ms": "1;0.1", ">64ms": "0;0.0"}},
            namespaces={"ns1": {"objects": "40"}},
        ),
    })


@pytest.fixture
def orchestrator(two_node_source, emitter, metrics_config):
    return CycleOrchestrator(two_node_source, emitter, metrics_config)
