"""
集群摘要计算

cluster_size 取自代表节点（节点列表中的第一个），
used_bytes_memory / used_bytes_disk 为新版格式节点上报值之和。
"""

import logging
from typing import Mapping, Optional

from .models import ClusterSummary, ResourceRecord

logger = logging.getLogger(__name__)

CLUSTER_SIZE_STAT = "cluster_size"


class SummaryComputer:
    """累加节点资源使用量并计算集群摘要"""

    def __init__(self):
        self.used_bytes_memory = 0.0
        self.used_bytes_disk = 0.0

    def reset(self):
        self.used_bytes_memory = 0.0
        self.used_bytes_disk = 0.0

    def absorb(self, node_id: str, new_format: bool, resources: ResourceRecord):
        """旧版格式节点或缺失值按 0 计"""
        if not new_format:
            return
        if resources.used_bytes_memory is not None:
            self.used_bytes_memory += resources.used_bytes_memory
        if resources.used_bytes_disk is not None:
            self.used_bytes_disk += resources.used_bytes_disk

    def compute(self, representative_stats: Optional[Mapping[str, float]]) -> ClusterSummary:
        """
        计算集群摘要

        Args:
            representative_stats: 代表节点的已解析统计；节点不存在时为 None

        Returns:
            ClusterSummary，cluster_size 无法获得时为 None（不上报，也不以 0 代替）
        """
        cluster_size = None
        if representative_stats is not None:
            cluster_size = representative_stats.get(CLUSTER_SIZE_STAT)
        if cluster_size is None:
            logger.debug("cluster_size unavailable on representative node")

        return ClusterSummary(
            cluster_size=cluster_size,
            used_bytes_memory=self.used_bytes_memory,
            used_bytes_disk=self.used_bytes_disk,
        )
