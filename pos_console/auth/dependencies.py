from fastapi import Depends, HTTPException, Request, status

from pos_console.auth.context import Capability, EffectiveContext, has_capability
from pos_console.config import settings
from pos_console.session.console import ConsoleSession
from pos_console.session.errors import NotAuthenticatedError


async def get_console(request: Request) -> ConsoleSession:
    """The ConsoleSession built at startup and attached to the app."""
    return request.app.state.console


async def get_current_context(console: ConsoleSession = Depends(get_console)) -> EffectiveContext:
    try:
        return console.context
    except NotAuthenticatedError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "type": "not_authenticated",
                "message": "Not authenticated",
                "redirect_to": settings.login_path,
            },
        ) from None


def require_capability(capability: Capability):
    async def _require(ctx: EffectiveContext = Depends(get_current_context)) -> EffectiveContext:
        if not has_capability(ctx, capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Capability required: {capability.value}",
            )
        return ctx

    return _require
