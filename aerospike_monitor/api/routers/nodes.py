"""
节点状态 API
"""

from typing import List

from fastapi import APIRouter, Depends

from ...models import NodeStatusResponse
from ...orchestrator import CycleOrchestrator
from ..dependencies import get_orchestrator

router = APIRouter(prefix="/api/nodes", tags=["nodes"])


@router.get("", response_model=List[NodeStatusResponse])
async def list_nodes(orchestrator: CycleOrchestrator = Depends(get_orchestrator)):
    """各节点最近一次的统计和吞吐量"""
    context = orchestrator.context
    node_ids = list(context.tps_history)
    for node_id in context.node_stats:
        if node_id not in node_ids:
            node_ids.append(node_id)

    return [
        NodeStatusResponse(
            node_id=node_id,
            stats=context.node_stats.get(node_id, {}),
            throughput=context.tps_history.get(node_id),
        )
        for node_id in node_ids
    ]
