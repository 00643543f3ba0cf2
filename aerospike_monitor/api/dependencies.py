"""
依赖注入模块

提供 FastAPI 依赖项。
"""

from fastapi import HTTPException, Request, status

from ..orchestrator import CycleOrchestrator


async def get_orchestrator(request: Request) -> CycleOrchestrator:
    """获取应用绑定的周期编排器"""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Poller not initialized"
        )
    return orchestrator
