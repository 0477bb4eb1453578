from fastapi import APIRouter, Depends, HTTPException, status

from pos_console.auth.context import EffectiveContext
from pos_console.auth.dependencies import get_current_context
from pos_console.observability import metrics_snapshot

router = APIRouter(prefix="/api/observability", tags=["observability"])


@router.get("/metrics")
async def get_metrics(ctx: EffectiveContext = Depends(get_current_context)):
    if not ctx.is_super_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Super admin required")
    return {"counters": metrics_snapshot()}
