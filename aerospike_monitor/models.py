"""
数据模型定义

包括：
- 节点统计的类型化记录（吞吐量、延迟、资源）
- 原始统计字符串的解析函数（仅在采集边界调用一次）
- 周期报告与 API 响应模型
"""

import logging
import math
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# 节点未启用某项统计时 Aerospike 返回的占位值
NOT_SUPPORTED = "n/s"


def parse_stat_value(raw: Any) -> Optional[float]:
    """
    将原始统计值解析为 float

    缺失、"n/s"、非数值、NaN/Inf 均返回 None（视为缺失，而不是 0）。
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw or raw == NOT_SUPPORTED:
            return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def _as_mapping(raw: Any, family: str) -> Mapping[str, Any]:
    """非字典的统计数据按缺失处理"""
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        logger.debug(f"Ignoring malformed {family} payload: {raw!r}")
        return {}
    return raw


def parse_stats(raw: Optional[Mapping[str, Any]]) -> Dict[str, float]:
    """解析统计字典，丢弃无法解析的项"""
    raw = _as_mapping(raw, "statistics")
    if not raw:
        return {}
    parsed = {}
    for name, value in raw.items():
        number = parse_stat_value(value)
        if number is None:
            logger.debug(f"Skipping non-numeric stat {name}={value!r}")
            continue
        parsed[name] = number
    return parsed


# =============================================================================
# 类型化记录
# =============================================================================

class ThroughputPair(BaseModel):
    """单个操作类型（读或写）的吞吐量"""
    success: Optional[float] = None
    total: Optional[float] = None


class ThroughputRecord(BaseModel):
    """节点吞吐量（读写任一可能缺失）"""
    reads: Optional[ThroughputPair] = None
    writes: Optional[ThroughputPair] = None


class LatencySample(BaseModel):
    """一个节点一个周期内某类别某分桶的延迟样本"""
    category: str
    bucket: str
    value: float
    # 百分比不参与聚合，无法解析时为 None
    pct: Optional[float] = None


class ResourceRecord(BaseModel):
    """新版统计格式下节点直接上报的资源使用量"""
    used_bytes_memory: Optional[float] = None
    used_bytes_disk: Optional[float] = None


class NodeSnapshot(BaseModel):
    """单个节点一个周期的已解析统计"""
    node_id: str
    stats: Dict[str, float] = Field(default_factory=dict)
    new_format: bool = False
    resources: ResourceRecord = Field(default_factory=ResourceRecord)
    throughput: ThroughputRecord = Field(default_factory=ThroughputRecord)
    latency: List[LatencySample] = Field(default_factory=list)


def _parse_pair(raw: Any) -> Optional[ThroughputPair]:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        logger.debug(f"Ignoring malformed throughput entry: {raw!r}")
        return None
    return ThroughputPair(
        success=parse_stat_value(raw.get("success")),
        total=parse_stat_value(raw.get("total")),
    )


def parse_throughput(raw: Optional[Mapping[str, Any]]) -> ThroughputRecord:
    """
    解析节点吞吐量

    格式：{"reads": {"success": "..", "total": ".."}, "writes": {...}}
    """
    raw = _as_mapping(raw, "throughput")
    if not raw:
        return ThroughputRecord()
    return ThroughputRecord(
        reads=_parse_pair(raw.get("reads")),
        writes=_parse_pair(raw.get("writes")),
    )


def parse_latency(raw: Optional[Mapping[str, Mapping[str, Any]]]) -> List[LatencySample]:
    """
    解析节点延迟直方图

    输入为 {category: {bucket: "value;pct"}}，每个值只拆分一次。
    格式错误的条目直接跳过；百分比无法解析时仍保留数值。
    """
    samples: List[LatencySample] = []
    raw = _as_mapping(raw, "latency")
    if not raw:
        return samples

    for category, buckets in raw.items():
        if not isinstance(buckets, Mapping):
            continue
        for bucket, encoded in buckets.items():
            parts = str(encoded).split(";")
            if len(parts) != 2:
                logger.debug(f"Skipping malformed latency {category}/{bucket}: {encoded!r}")
                continue
            value = parse_stat_value(parts[0])
            pct = parse_stat_value(parts[1])
            if value is None:
                logger.debug(f"Skipping non-numeric latency {category}/{bucket}: {encoded!r}")
                continue
            samples.append(LatencySample(category=category, bucket=bucket, value=value, pct=pct))
    return samples


def parse_resources(
    memory: Optional[Mapping[str, Any]],
    disk: Optional[Mapping[str, Any]],
) -> ResourceRecord:
    """解析 used_bytes_memory / used_bytes_disk"""
    return ResourceRecord(
        used_bytes_memory=parse_stat_value(_as_mapping(memory, "memory").get("used_bytes_memory")),
        used_bytes_disk=parse_stat_value(_as_mapping(disk, "disk").get("used_bytes_disk")),
    )


# =============================================================================
# 周期报告（供状态 API 使用）
# =============================================================================

class ThroughputTotals(BaseModel):
    """集群级读写吞吐量合计"""
    read_success: float = 0.0
    read_total: float = 0.0
    write_success: float = 0.0
    write_total: float = 0.0


class ClusterSummary(BaseModel):
    """集群摘要"""
    cluster_size: Optional[float] = None
    used_bytes_memory: float = 0.0
    used_bytes_disk: float = 0.0


class CycleReport(BaseModel):
    """一次轮询周期的结果"""
    started_at: str
    finished_at: Optional[str] = None
    node_count: int = 0
    metrics_emitted: int = 0
    error: Optional[str] = None
    totals: ThroughputTotals = Field(default_factory=ThroughputTotals)
    previous_totals: Optional[ThroughputTotals] = None
    summary: Optional[ClusterSummary] = None


class TpsHistoryEntry(BaseModel):
    """节点上一次上报的吞吐量"""
    ts: str
    reads: Optional[ThroughputPair] = None
    writes: Optional[ThroughputPair] = None


class HealthResponse(BaseModel):
    """GET /api/health 响应"""
    status: str = "ok"
    state: str
    cluster: str
    last_cycle_at: Optional[str] = None


class NodeStatusResponse(BaseModel):
    """GET /api/nodes 响应项"""
    node_id: str
    stats: Dict[str, float] = Field(default_factory=dict)
    throughput: Optional[TpsHistoryEntry] = None
