"""
轮询周期编排

一个周期：清零累加器 -> 逐节点读取统计并上报节点级指标、累加 ->
上报集群级延迟 -> 命名空间统计 -> 集群摘要 -> 集群读写合计。

数据源异常在周期边界捕获并记录，当前周期提前结束，下个周期开始时状态无条件重置。
"""

import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from .config import MetricsConfig
from .emitter import MetricEmitter
from .latency import LatencyAggregator, iter_emission_values
from .models import CycleReport, NodeSnapshot, ThroughputTotals, TpsHistoryEntry, parse_stats
from .paths import READS, UNITLESS, WRITES, MetricPaths
from .source import NodeStatsSource, StatsSourceError, read_node_snapshot
from .summary import CLUSTER_SIZE_STAT, SummaryComputer
from .throughput import SUCCESS, TOTAL, ThroughputAccumulator

logger = logging.getLogger(__name__)

USED_BYTES_MEMORY = "used_bytes_memory"
USED_BYTES_DISK = "used_bytes_disk"


def utc_now() -> str:
    return datetime.utcnow().isoformat() + "Z"


class CycleState(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"


class CycleInProgressError(RuntimeError):
    """周期进行中再次触发"""


class CycleContext:
    """
    跨周期状态

    由编排器持有，包含本周期的累加器以及上一周期的结果：
    - tps_history: 每个节点最近一次上报的吞吐量
    - node_stats: 上一周期各节点的已解析统计
    - previous_totals: 上一周期的集群读写合计
    """

    def __init__(self, metrics: MetricsConfig):
        self.throughput = ThroughputAccumulator()
        self.latency = LatencyAggregator(metrics.latency_buckets, metrics.namespace_delimiter)
        self.summary = SummaryComputer()

        self.tps_history: Dict[str, TpsHistoryEntry] = {}
        self.node_stats: Dict[str, Dict[str, float]] = {}
        self.previous_totals: Optional[ThroughputTotals] = None
        self.last_report: Optional[CycleReport] = None

    def seed_history(self, node_ids: List[str]):
        """为新出现的节点设置空的吞吐量历史"""
        ts = utc_now()
        for node_id in node_ids:
            self.tps_history.setdefault(node_id, TpsHistoryEntry(ts=ts))

    def reset(self):
        """清零本周期累加器"""
        self.throughput.reset()
        self.latency.reset()
        self.summary.reset()


class CycleOrchestrator:
    """轮询周期编排器（同一时间只允许一个周期）"""

    def __init__(
        self,
        source: NodeStatsSource,
        emitter: MetricEmitter,
        metrics: Optional[MetricsConfig] = None,
    ):
        self.source = source
        self.emitter = emitter
        self.metrics = metrics or MetricsConfig()
        self.paths = MetricPaths(self.metrics.base_name)
        self.context = CycleContext(self.metrics)
        self.state = CycleState.IDLE
        self._lock = threading.Lock()
        self._emitted = 0

    def _emit(self, path: str, value: float, unit: str = UNITLESS):
        self.emitter.emit(path, unit, value)
        self._emitted += 1
        logger.debug(f"Reporting metric {path} = {value}")

    def run_cycle(self) -> CycleReport:
        """
        执行一个完整的轮询周期

        Returns:
            本周期报告；数据源异常记录在 report.error 中，不向外抛出

        Raises:
            CycleInProgressError: 上一个周期尚未结束
        """
        if not self._lock.acquire(blocking=False):
            raise CycleInProgressError("A polling cycle is already in progress")

        report = CycleReport(started_at=utc_now())
        try:
            self.state = CycleState.COLLECTING
            self._emitted = 0
            self.context.reset()
            self._collect(report)
        except StatsSourceError as e:
            logger.error(f"Stats source failure, cycle aborted: {e}")
            report.error = str(e)
        except Exception as e:
            logger.error(f"Unexpected error in polling cycle: {e}", exc_info=True)
            report.error = f"{type(e).__name__}: {e}"
        finally:
            report.metrics_emitted = self._emitted
            report.finished_at = utc_now()
            self.context.last_report = report
            self.state = CycleState.IDLE
            self._lock.release()

        logger.info(
            f"Cycle finished: {report.node_count} nodes, {report.metrics_emitted} metrics"
            + (f", error: {report.error}" if report.error else "")
        )
        return report

    def _collect(self, report: CycleReport):
        nodes = list(self.source.list_nodes())
        report.node_count = len(nodes)
        if not nodes:
            logger.info("No cluster nodes available yet, cluster may be starting")
            return

        logger.info(f"Reporting stats for {len(nodes)} nodes")
        self.context.seed_history(nodes)

        snapshots: List[NodeSnapshot] = []
        for node_id in nodes:
            snapshot = read_node_snapshot(self.source, node_id)
            snapshots.append(snapshot)
            self._report_node(snapshot)

        self._report_cluster_latency(len(nodes))
        self._report_namespace_stats(nodes)
        report.summary = self._report_summary(snapshots[0])
        report.previous_totals = self.context.previous_totals
        report.totals = self._report_total_tps()

    def _report_node(self, snapshot: NodeSnapshot):
        node_id = snapshot.node_id
        self.context.node_stats[node_id] = dict(snapshot.stats)

        for stat, value in snapshot.stats.items():
            self._emit(self.paths.node_stat(node_id, stat), value)

        if snapshot.new_format:
            # 新版格式直接上报资源使用量，缺失按 0
            resources = snapshot.resources
            self._emit(self.paths.node_stat(node_id, USED_BYTES_MEMORY), resources.used_bytes_memory or 0.0)
            self._emit(self.paths.node_stat(node_id, USED_BYTES_DISK), resources.used_bytes_disk or 0.0)
            self.context.summary.absorb(node_id, True, resources)

        self._report_throughput(snapshot)
        self._report_node_latency(snapshot)

    def _report_throughput(self, snapshot: NodeSnapshot):
        node_id = snapshot.node_id
        record = snapshot.throughput
        node_values = self.context.throughput.absorb(record.reads, record.writes)

        for operation in (READS, WRITES):
            values = node_values.get(operation)
            if values is None:
                continue
            self._emit(self.paths.node_throughput(node_id, operation, SUCCESS), values[SUCCESS])
            self._emit(self.paths.node_throughput(node_id, operation, TOTAL), values[TOTAL])

        self.context.tps_history[node_id] = TpsHistoryEntry(
            ts=utc_now(), reads=record.reads, writes=record.writes
        )

    def _report_node_latency(self, snapshot: NodeSnapshot):
        node_id = snapshot.node_id
        for sample in snapshot.latency:
            self._emit(self.paths.node_latency(node_id, sample.category, sample.bucket, "value"), sample.value)
            if sample.pct is not None:
                self._emit(self.paths.node_latency(node_id, sample.category, sample.bucket, "pct"), sample.pct)
        self.context.latency.absorb(node_id, snapshot.new_format, snapshot.latency)

    def _report_cluster_latency(self, cluster_size: int):
        totals = self.context.latency.cluster_wide_totals()
        for table in (totals.overall, totals.namespace_scoped):
            for category, bucket, value in iter_emission_values(table, cluster_size, self.metrics.query_token):
                self._emit(self.paths.summary_latency(category, bucket), value)

    def _report_namespace_stats(self, nodes: List[str]):
        for namespace in self.source.list_namespaces():
            logger.debug(f"Reporting namespace stats for {namespace}")
            for node_id in nodes:
                stats = parse_stats(self.source.namespace_statistics(namespace, node_id))
                for stat, value in stats.items():
                    self._emit(self.paths.namespace_stat(node_id, namespace, stat), value)

    def _report_summary(self, representative: NodeSnapshot):
        summary = self.context.summary.compute(representative.stats)
        if summary.cluster_size is not None:
            self._emit(self.paths.summary(CLUSTER_SIZE_STAT), summary.cluster_size)
        self._emit(self.paths.summary(USED_BYTES_MEMORY), summary.used_bytes_memory)
        self._emit(self.paths.summary(USED_BYTES_DISK), summary.used_bytes_disk)
        return summary

    def _report_total_tps(self) -> ThroughputTotals:
        totals = self.context.throughput.totals()
        self._emit(self.paths.summary(READS, SUCCESS), totals.read_success)
        self._emit(self.paths.summary(READS, TOTAL), totals.read_total)
        self._emit(self.paths.summary(WRITES, SUCCESS), totals.write_success)
        self._emit(self.paths.summary(WRITES, TOTAL), totals.write_total)
        self.context.previous_totals = totals
        return totals
