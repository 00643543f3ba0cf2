"""
主程序入口

启动两个并发任务：
1. 轮询循环（每个周期在工作线程中执行，结束后上报指标）
2. 状态 REST API 服务（可选）
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import uvicorn

from . import __version__
from .config import AppConfig, get_config
from .emitter import create_emitter
from .orchestrator import CycleInProgressError, CycleOrchestrator
from .source import HttpStatsSource


def setup_logging(config: Optional[AppConfig] = None):
    """配置日志"""
    config = config or get_config()

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    level = getattr(logging, config.logging.level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    # 如果配置了文件日志
    if config.logging.file:
        log_path = Path(config.logging.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(str(log_path), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(log_format))
        logging.getLogger().addHandler(file_handler)

    # 降低第三方库日志级别
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def build_orchestrator(config: AppConfig) -> CycleOrchestrator:
    """按配置组装数据源、上报器和编排器"""
    source = HttpStatsSource(config.cluster.nodes, config.source)
    emitter = create_emitter(config.emitter, config.cluster.display_name)
    return CycleOrchestrator(source, emitter, config.metrics)


async def run_poller(orchestrator: CycleOrchestrator, emitter, interval: int):
    """
    运行轮询循环

    周期之间串行执行；周期内的错误由编排器处理，这里只兜底循环本身的异常。
    """
    logger = logging.getLogger(__name__)
    logger.info(f"Starting poller loop (interval={interval}s)")

    while True:
        try:
            await asyncio.to_thread(orchestrator.run_cycle)
            await emitter.flush()
        except asyncio.CancelledError:
            logger.info("Poller task cancelled")
            raise
        except CycleInProgressError as e:
            logger.warning(str(e))
        except Exception as e:
            logger.error(f"Poller loop error: {e}", exc_info=True)

        await asyncio.sleep(interval)


async def run_api_server(orchestrator: CycleOrchestrator, config: AppConfig):
    """运行 API 服务器"""
    from .api.app import create_app

    app = create_app(orchestrator, config)

    server_config = uvicorn.Config(
        app=app,
        host=config.api.host,
        port=config.api.port,
        log_level="info",
        access_log=False
    )
    server = uvicorn.Server(server_config)
    await server.serve()


async def main():
    """主函数：启动所有任务"""
    logger = logging.getLogger(__name__)

    config = get_config()
    setup_logging(config)
    logger.info("=" * 60)
    logger.info(f"Aerospike Monitor v{__version__}")
    logger.info("=" * 60)
    logger.info(f"Cluster: {config.cluster.display_name} ({len(config.cluster.nodes)} nodes configured)")

    orchestrator = build_orchestrator(config)

    tasks = [run_poller(orchestrator, orchestrator.emitter, config.poller.interval)]
    if config.api.enabled:
        logger.info(f"Status API: {config.api.host}:{config.api.port}")
        tasks.append(run_api_server(orchestrator, config))

    try:
        await asyncio.gather(*tasks)
    except asyncio.CancelledError:
        logger.info("Tasks cancelled, shutting down...")
    finally:
        orchestrator.source.close()


def cli():
    """命令行入口"""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutdown requested, exiting...")
        sys.exit(0)


if __name__ == "__main__":
    cli()
