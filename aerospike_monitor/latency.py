"""
集群延迟聚合

维护两张表：
- overall: category -> {bucket: 累加值}
- namespace_scoped: category -> {bucket: 累加值}

新版统计格式（new_format=True）的节点按命名空间上报延迟，类别形如 "test-read"：
完整类别累加到 namespace_scoped，分隔符之后的部分累加到 overall。
旧版节点或不含分隔符的类别直接累加到 overall。

已知限制：分隔符固定且不转义，命名空间名本身含分隔符时拆分结果未定义。
以分隔符结尾的类别（如 "test-"）没有子类别，只累加到 namespace_scoped。
"""

import logging
from typing import Dict, Iterable, Iterator, List, NamedTuple, Sequence, Tuple

from .models import LatencySample

logger = logging.getLogger(__name__)

LatencyMap = Dict[str, Dict[str, float]]


class LatencyTotals(NamedTuple):
    """集群级延迟累加结果（副本）"""
    overall: LatencyMap
    namespace_scoped: LatencyMap


class LatencyAggregator:
    """按类别和分桶累加各节点的延迟值"""

    def __init__(self, buckets: Sequence[str], delimiter: str = "-"):
        self.buckets: List[str] = list(buckets)
        self.delimiter = delimiter
        self._overall: LatencyMap = {}
        self._namespace_scoped: LatencyMap = {}

    def reset(self):
        """清空两张累加表（每个周期开始时调用）"""
        self._overall.clear()
        self._namespace_scoped.clear()

    def _category_entry(self, table: LatencyMap, category: str) -> Dict[str, float]:
        # 类别首次出现时所有分桶置 0
        entry = table.get(category)
        if entry is None:
            entry = {bucket: 0.0 for bucket in self.buckets}
            table[category] = entry
        return entry

    def _accumulate(self, table: LatencyMap, category: str, bucket: str, value: float):
        entry = self._category_entry(table, category)
        entry[bucket] = entry.get(bucket, 0.0) + value

    def absorb(self, node_id: str, new_format: bool, samples: Iterable[LatencySample]):
        """
        累加一个节点本周期的延迟样本

        Args:
            node_id: 节点标识（仅用于日志）
            new_format: 节点是否为新版统计格式
            samples: 已解析的延迟样本
        """
        count = 0
        for sample in samples:
            count += 1
            category = sample.category
            if new_format and self.delimiter in category:
                _namespace, _, subcategory = category.partition(self.delimiter)
                self._accumulate(self._namespace_scoped, category, sample.bucket, sample.value)
                if not subcategory:
                    logger.debug(f"Latency category {category!r} from node {node_id} has no subcategory, skipping overall roll-up")
                    continue
                category = subcategory
            self._accumulate(self._overall, category, sample.bucket, sample.value)
        logger.debug(f"Absorbed {count} latency samples from node {node_id}")

    def cluster_wide_totals(self) -> LatencyTotals:
        return LatencyTotals(
            overall={k: dict(v) for k, v in self._overall.items()},
            namespace_scoped={k: dict(v) for k, v in self._namespace_scoped.items()},
        )


def iter_emission_values(
    table: LatencyMap,
    cluster_size: int,
    query_token: str = "query",
) -> Iterator[Tuple[str, str, float]]:
    """
    生成集群级延迟的上报值 (category, bucket, value)

    query 类操作只落在单个节点上，累加值除以集群节点数得到平均值；
    节点数为 0 时不上报这些类别。其他类别直接上报累加值。
    """
    for category, buckets in table.items():
        is_query = query_token in category
        if is_query and cluster_size <= 0:
            logger.debug(f"Skipping query latency {category}: cluster size is {cluster_size}")
            continue
        for bucket, value in buckets.items():
            if is_query:
                value = value / cluster_size
            yield category, bucket, value
