"""
配置加载模块

从 config.yaml 加载配置，支持 Pydantic 验证和环境变量覆盖。
"""

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


CLUSTER_FALLBACK_NAME = "Aerospike"


class NodeEndpoint(BaseModel):
    """节点统计接口地址"""
    name: Optional[str] = None
    host: str
    port: int = 9145

    @property
    def node_id(self) -> str:
        """节点标识：优先使用配置的名称，否则为 host:port"""
        return self.name or f"{self.host}:{self.port}"


class ClusterConfig(BaseModel):
    """集群配置"""
    name: Optional[str] = CLUSTER_FALLBACK_NAME
    nodes: List[NodeEndpoint] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or CLUSTER_FALLBACK_NAME


class SourceConfig(BaseModel):
    """节点统计拉取配置"""
    scheme: str = "http"
    path: str = "/v1/stats"
    timeout: float = 2.0
    token: Optional[str] = None


class MetricsConfig(BaseModel):
    """指标命名与聚合配置"""
    base_name: str = "aerospike"
    latency_buckets: List[str] = Field(default_factory=lambda: [">1ms", ">8ms", ">64ms"])
    namespace_delimiter: str = "-"
    query_token: str = "query"


class PollerConfig(BaseModel):
    """轮询配置"""
    interval: int = 60


class EmitterConfig(BaseModel):
    """指标上报配置"""
    type: str = "newrelic"
    endpoint: str = "https://platform-api.newrelic.com/platform/v1/metrics"
    license_key: Optional[str] = None
    guid: str = "com.aerospike.newrelic.connector"
    agent_version: str = "2.0.1"
    timeout: float = 10.0


class APIConfig(BaseModel):
    """状态 API 配置"""
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8090


class LoggingConfig(BaseModel):
    """日志配置"""
    level: str = "INFO"
    file: Optional[str] = None


class AppConfig(BaseModel):
    """应用配置（完整配置）"""
    cluster: ClusterConfig = Field(default_factory=ClusterConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    poller: PollerConfig = Field(default_factory=PollerConfig)
    emitter: EmitterConfig = Field(default_factory=EmitterConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class EnvOverrides(BaseSettings):
    """环境变量覆盖（AEROSPIKE_MONITOR_*）"""
    model_config = SettingsConfigDict(env_prefix="AEROSPIKE_MONITOR_")

    license_key: Optional[str] = None
    log_level: Optional[str] = None


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    加载配置文件

    优先级：
    1. 参数指定的路径
    2. 环境变量 AEROSPIKE_MONITOR_CONFIG
    3. 默认路径 config.yaml

    配置文件不存在时使用默认配置，license key 和日志级别可被环境变量覆盖。
    """
    if config_path is None:
        config_path = os.environ.get("AEROSPIKE_MONITOR_CONFIG", "config.yaml")

    config_file = Path(config_path)
    raw_config = None
    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)

    config = AppConfig(**raw_config) if raw_config else AppConfig()

    overrides = EnvOverrides()
    if overrides.license_key:
        config.emitter.license_key = overrides.license_key
    if overrides.log_level:
        config.logging.level = overrides.log_level

    return config


# 全局配置实例（延迟加载）
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """获取全局配置实例（单例模式）"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    """重置配置（主要用于测试）"""
    global _config
    _config = None
