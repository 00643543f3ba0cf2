"""
指标路径

所有上报路径均为 "/" 分隔的层级：<base>/<category>/<node>/<stat>/...
"""

NODE_STATS = "node_stats"
THROUGHPUT_STATS = "throughput"
LATENCY_STATS = "latency"
NAMESPACE_STATS = "namespace_stats"
SUMMARY = "summary"
LATENCY = "latency"
READS = "reads"
WRITES = "writes"

SLASH = "/"

# 指标单位（New Relic 插件格式中的 [unit]），当前所有指标均无单位
UNITLESS = ""


def metric_path(*parts) -> str:
    """拼接指标路径，忽略空段"""
    return SLASH.join(str(p) for p in parts if p is not None and str(p) != "")


class MetricPaths:
    """按基础名生成各类指标路径"""

    def __init__(self, base_name: str = "aerospike"):
        self.base_name = base_name

    def node_stat(self, node_id: str, stat: str) -> str:
        return metric_path(self.base_name, NODE_STATS, node_id, stat)

    def node_throughput(self, node_id: str, operation: str, kind: str) -> str:
        """operation 为 reads/writes，kind 为 success/total"""
        return metric_path(self.base_name, THROUGHPUT_STATS, node_id, operation, kind)

    def node_latency(self, node_id: str, category: str, bucket: str, field: str) -> str:
        """field 为 value/pct"""
        return metric_path(self.base_name, LATENCY_STATS, node_id, category, bucket, field)

    def namespace_stat(self, node_id: str, namespace: str, stat: str) -> str:
        return metric_path(self.base_name, NAMESPACE_STATS, node_id, namespace, stat)

    def summary(self, *parts) -> str:
        return metric_path(self.base_name, SUMMARY, *parts)

    def summary_latency(self, category: str, bucket: str) -> str:
        return self.summary(LATENCY, category, bucket, "value")
