"""
集群吞吐量累加

每个周期开始时清零，逐节点累加读写的 success/total，缺失值按 0 计。
"""

from typing import Dict, Optional

from .models import ThroughputPair, ThroughputTotals
from .paths import READS, WRITES


SUCCESS = "success"
TOTAL = "total"


class ThroughputCounter:
    """单个操作类型的 success/total 累加器"""

    def __init__(self):
        self.success_sum = 0.0
        self.total_sum = 0.0

    def reset(self):
        self.success_sum = 0.0
        self.total_sum = 0.0

    def add(self, pair: ThroughputPair) -> Dict[str, float]:
        """累加一个节点的值，返回该节点应上报的值（缺失为 0）"""
        success = pair.success if pair.success is not None else 0.0
        total = pair.total if pair.total is not None else 0.0
        self.success_sum += success
        self.total_sum += total
        return {SUCCESS: success, TOTAL: total}


class ThroughputAccumulator:
    """
    集群读写吞吐量累加器

    absorb() 返回节点级上报值：某一侧（读/写）整体缺失时不上报，
    存在但 success/total 缺失时以显式 0 上报。
    """

    def __init__(self):
        self.reads = ThroughputCounter()
        self.writes = ThroughputCounter()

    def reset(self):
        """清零读写计数"""
        self.reads.reset()
        self.writes.reset()

    def absorb(
        self,
        read_tps: Optional[ThroughputPair],
        write_tps: Optional[ThroughputPair],
    ) -> Dict[str, Dict[str, float]]:
        node_values: Dict[str, Dict[str, float]] = {}
        if read_tps is not None:
            node_values[READS] = self.reads.add(read_tps)
        if write_tps is not None:
            node_values[WRITES] = self.writes.add(write_tps)
        return node_values

    def totals(self) -> ThroughputTotals:
        return ThroughputTotals(
            read_success=self.reads.success_sum,
            read_total=self.reads.total_sum,
            write_success=self.writes.success_sum,
            write_total=self.writes.total_sum,
        )
