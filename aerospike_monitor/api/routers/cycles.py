"""
周期状态 API

提供健康检查和最近一次周期报告。
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ...models import CycleReport, HealthResponse
from ...orchestrator import CycleOrchestrator
from ..dependencies import get_orchestrator

router = APIRouter(prefix="/api", tags=["cycles"])


@router.get("/health", response_model=HealthResponse)
async def health(request: Request, orchestrator: CycleOrchestrator = Depends(get_orchestrator)):
    """轮询器状态"""
    report = orchestrator.context.last_report
    return HealthResponse(
        state=orchestrator.state.value,
        cluster=request.app.state.cluster_name,
        last_cycle_at=report.finished_at if report else None,
    )


@router.get("/cycles/latest", response_model=CycleReport)
async def latest_cycle(orchestrator: CycleOrchestrator = Depends(get_orchestrator)):
    """
    最近一次周期报告

    包含节点数、上报指标数、集群读写合计（及上一周期合计）、集群摘要和错误信息。
    """
    report = orchestrator.context.last_report
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No polling cycle has completed yet"
        )
    return report
