"""
FastAPI 应用配置

注册状态查询路由，编排器通过 app.state 注入。
"""

import logging
from typing import Optional

from fastapi import FastAPI

from .. import __version__
from ..config import AppConfig, get_config
from ..orchestrator import CycleOrchestrator
from .routers import cycles, nodes

logger = logging.getLogger(__name__)


def create_app(
    orchestrator: Optional[CycleOrchestrator] = None,
    config: Optional[AppConfig] = None,
) -> FastAPI:
    """创建 FastAPI 应用实例"""
    config = config or get_config()

    app = FastAPI(
        title="Aerospike Monitor",
        description="Aerospike 集群指标聚合状态 API",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )
    app.state.orchestrator = orchestrator
    app.state.cluster_name = config.cluster.display_name

    app.include_router(cycles.router)
    app.include_router(nodes.router)

    @app.on_event("startup")
    async def startup_event():
        logger.info("Status API starting up...")

    return app
