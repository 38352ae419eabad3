"""Admin diagnostics endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

if TYPE_CHECKING:
    from prize_wheel.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.get("/sessions/{session_id}", dependencies=[Depends(require_admin)])
async def session_detail(session_id: str, request: Request) -> dict[str, object]:
    """Return a stored spin session with its remaining lifetime."""
    container: AppContainer = request.app.state.container
    session = await container.session_manager.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    ttl = await container.session_manager.remaining_ttl(session_id)
    return {"session": session.to_dict(), "ttlSeconds": ttl}


@router.get("/subscribers", dependencies=[Depends(require_admin)])
async def list_subscribers(request: Request) -> dict[str, object]:
    """Return the subscribed chat ids."""
    container: AppContainer = request.app.state.container
    subscribers = await container.dispatcher.get_subscribers()
    return {"subscribers": sorted(subscribers)}
