"""
Shared route dependencies.

Authentication lives in the product's main API; requests reaching this
service carry the already-authenticated user's ID in ``X-User-Id``.
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from insights.workers.runtime import AnalysisRuntime


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header(alias="X-User-Id")] = None
) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header"
        )
    return x_user_id.strip()


async def get_runtime(request: Request) -> AnalysisRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Analysis runtime is not running"
        )
    return runtime


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
Runtime = Annotated[AnalysisRuntime, Depends(get_runtime)]
