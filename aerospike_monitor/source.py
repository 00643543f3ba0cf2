"""
节点统计数据源

- NodeStatsSource: 数据源接口（节点发现、统计读取）
- read_node_snapshot: 采集边界，一次性把原始字符串解析为类型化记录
- HttpStatsSource: 通过 HTTP 拉取各节点 JSON 统计文档的实现
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol

import httpx

from .config import NodeEndpoint, SourceConfig
from .models import (
    NodeSnapshot,
    parse_latency,
    parse_resources,
    parse_stats,
    parse_throughput,
)

logger = logging.getLogger(__name__)


class StatsSourceError(RuntimeError):
    """数据源连接或协议错误，终止当前周期"""


class NodeStatsSource(Protocol):
    """节点统计数据源接口"""

    def list_nodes(self) -> List[str]: ...

    def node_statistics(self, node_id: str) -> Mapping[str, str]: ...

    def node_capability_flag(self, node_id: str) -> bool: ...

    def node_memory_stats(self, node_id: str) -> Mapping[str, str]: ...

    def node_disk_stats(self, node_id: str) -> Mapping[str, str]: ...

    def node_throughput(self, node_id: str) -> Optional[Mapping[str, Any]]: ...

    def node_latency(self, node_id: str) -> Mapping[str, Mapping[str, str]]: ...

    def list_namespaces(self) -> List[str]: ...

    def namespace_statistics(self, namespace: str, node_id: str) -> Mapping[str, str]: ...


def read_node_snapshot(source: NodeStatsSource, node_id: str) -> NodeSnapshot:
    """
    读取并解析一个节点的全部统计

    数据源抛出的异常原样向上传递，由周期编排层统一处理。
    """
    new_format = bool(source.node_capability_flag(node_id))
    snapshot = NodeSnapshot(
        node_id=node_id,
        stats=parse_stats(source.node_statistics(node_id)),
        new_format=new_format,
        throughput=parse_throughput(source.node_throughput(node_id)),
        latency=parse_latency(source.node_latency(node_id)),
    )
    if new_format:
        snapshot.resources = parse_resources(
            source.node_memory_stats(node_id),
            source.node_disk_stats(node_id),
        )
    return snapshot


class HttpStatsSource:
    """
    HTTP 节点统计数据源

    每个配置的节点暴露一个 JSON 统计文档，节点顺序即配置顺序。
    文档在一个周期内缓存，list_nodes() 时清空缓存。
    """

    def __init__(
        self,
        endpoints: List[NodeEndpoint],
        config: Optional[SourceConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.config = config or SourceConfig()
        self._endpoints: Dict[str, NodeEndpoint] = {ep.node_id: ep for ep in endpoints}
        self._documents: Dict[str, Dict[str, Any]] = {}

        headers = {}
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        self._client = httpx.Client(
            timeout=self.config.timeout,
            headers=headers,
            transport=transport,
        )

    def close(self):
        self._client.close()

    def _url(self, endpoint: NodeEndpoint) -> str:
        return f"{self.config.scheme}://{endpoint.host}:{endpoint.port}{self.config.path}"

    def _fetch(self, node_id: str) -> Dict[str, Any]:
        endpoint = self._endpoints.get(node_id)
        if endpoint is None:
            raise StatsSourceError(f"Unknown node {node_id}")

        url = self._url(endpoint)
        try:
            response = self._client.get(url)
            response.raise_for_status()
            document = response.json()
        except httpx.HTTPError as e:
            raise StatsSourceError(f"Failed to fetch stats from {node_id} ({url}): {e}") from e
        except ValueError as e:
            raise StatsSourceError(f"Invalid stats document from {node_id}: {e}") from e

        if not isinstance(document, dict):
            raise StatsSourceError(f"Invalid stats document from {node_id}: expected object")
        return document

    def _document(self, node_id: str) -> Dict[str, Any]:
        document = self._documents.get(node_id)
        if document is None:
            document = self._fetch(node_id)
            self._documents[node_id] = document
        return document

    def list_nodes(self) -> List[str]:
        self._documents.clear()
        return list(self._endpoints)

    def node_statistics(self, node_id: str) -> Mapping[str, str]:
        return self._document(node_id).get("statistics") or {}

    def node_capability_flag(self, node_id: str) -> bool:
        return bool(self._document(node_id).get("new_format", False))

    def node_memory_stats(self, node_id: str) -> Mapping[str, str]:
        return self._document(node_id).get("memory") or {}

    def node_disk_stats(self, node_id: str) -> Mapping[str, str]:
        return self._document(node_id).get("disk") or {}

    def node_throughput(self, node_id: str) -> Optional[Mapping[str, Any]]:
        return self._document(node_id).get("throughput")

    def node_latency(self, node_id: str) -> Mapping[str, Mapping[str, str]]:
        return self._document(node_id).get("latency") or {}

    def list_namespaces(self) -> List[str]:
        """已拉取文档中出现过的命名空间（按首次出现顺序）"""
        namespaces: List[str] = []
        for document in self._documents.values():
            for namespace in (document.get("namespaces") or {}):
                if namespace not in namespaces:
                    namespaces.append(namespace)
        return namespaces

    def namespace_statistics(self, namespace: str, node_id: str) -> Mapping[str, str]:
        namespaces = self._document(node_id).get("namespaces") or {}
        return namespaces.get(namespace) or {}
