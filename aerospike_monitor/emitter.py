"""
指标上报

- MetricEmitter: 上报接口 emit(path, unit, value)
- NewRelicEmitter: 缓冲一个周期的指标，flush() 时一次性 POST 到 New Relic 插件 API
- LogEmitter: 仅写日志（未配置 license key 时使用）
"""

import logging
import os
import socket
import time
from typing import Dict, Optional, Protocol

import httpx

from .config import EmitterConfig

logger = logging.getLogger(__name__)


class MetricEmitter(Protocol):
    """指标上报接口"""

    def emit(self, path: str, unit: str, value: float) -> None: ...


class LogEmitter:
    """把指标写入日志"""

    def emit(self, path: str, unit: str, value: float) -> None:
        logger.info(f"{path}[{unit}] = {value}")

    async def flush(self) -> int:
        return 0


class NewRelicEmitter:
    """
    New Relic 插件 API 上报

    指标名格式为 "Component/<path>[<unit>]"，同名指标在同一周期内后写覆盖前写。
    无论上报成功与否，flush() 之后缓冲区都会清空。
    """

    def __init__(
        self,
        config: EmitterConfig,
        component_name: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.component_name = component_name
        self._transport = transport
        self._metrics: Dict[str, float] = {}
        self._last_flush = time.monotonic()

    @staticmethod
    def metric_name(path: str, unit: str) -> str:
        return f"Component/{path}[{unit}]"

    def emit(self, path: str, unit: str, value: float) -> None:
        self._metrics[self.metric_name(path, unit)] = float(value)

    @property
    def pending(self) -> int:
        return len(self._metrics)

    def build_payload(self, duration: int) -> Dict:
        """构建插件 API 请求体"""
        return {
            "agent": {
                "host": socket.gethostname(),
                "pid": os.getpid(),
                "version": self.config.agent_version,
            },
            "components": [
                {
                    "name": self.component_name,
                    "guid": self.config.guid,
                    "duration": duration,
                    "metrics": dict(self._metrics),
                }
            ],
        }

    async def flush(self) -> int:
        """
        上报缓冲区中的全部指标

        Returns:
            成功上报的指标数量（失败时为 0）
        """
        now = time.monotonic()
        duration = max(int(round(now - self._last_flush)), 1)
        count = len(self._metrics)

        if count == 0:
            self._last_flush = now
            return 0

        payload = self.build_payload(duration)
        self._metrics.clear()
        headers = {
            "X-License-Key": self.config.license_key or "",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
                response = await client.post(self.config.endpoint, json=payload, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Failed to deliver {count} metrics to New Relic: {e}")
            return 0

        self._last_flush = now
        logger.debug(f"Delivered {count} metrics to New Relic (duration={duration}s)")
        return count


def create_emitter(config: EmitterConfig, component_name: str):
    """按配置创建上报器；未配置 license key 时退化为日志上报"""
    if config.type == "newrelic" and config.license_key:
        return NewRelicEmitter(config, component_name)
    if config.type == "newrelic":
        logger.warning("No New Relic license key configured, metrics will only be logged")
    return LogEmitter()
