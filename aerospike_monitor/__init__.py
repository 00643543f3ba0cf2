"""
Aerospike Monitor - Aerospike 集群指标聚合服务

负责：
- 按固定间隔轮询集群各节点统计
- 汇总集群吞吐量、延迟直方图和资源使用量
- 将层级指标上报到 New Relic
- 提供状态 REST API
"""

__version__ = "2.0.1"
