"""FastAPI dependencies resolving services and the calling owner."""

from typing import Annotated

from fastapi import Depends, Request

from deskspace.config import Settings
from deskspace.desktop.errors import DeskError, ErrorCode
from deskspace.desktop.repositories import (
    AccessGate,
    DesktopRepository,
    DockRepository,
    OrderingService,
    TreeStore,
)
from deskspace.desktop.schemas import Desktop


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_desktops(request: Request) -> DesktopRepository:
    return request.app.state.desktops


def get_tree(request: Request) -> TreeStore:
    return request.app.state.tree


def get_ordering(request: Request) -> OrderingService:
    return request.app.state.ordering


def get_access(request: Request) -> AccessGate:
    return request.app.state.access


def get_dock(request: Request) -> DockRepository:
    return request.app.state.dock


SettingsDep = Annotated[Settings, Depends(get_settings)]
DesktopsDep = Annotated[DesktopRepository, Depends(get_desktops)]
TreeDep = Annotated[TreeStore, Depends(get_tree)]
OrderingDep = Annotated[OrderingService, Depends(get_ordering)]
AccessDep = Annotated[AccessGate, Depends(get_access)]
DockDep = Annotated[DockRepository, Depends(get_dock)]


async def require_user(request: Request, settings: SettingsDep) -> str:
    """Account id set by the identity gateway.

    Raises:
        DeskError: UNAUTHORIZED when the identity header is missing.
    """
    user_id = request.headers.get(settings.identity_header, "").strip()
    if not user_id:
        raise DeskError(ErrorCode.UNAUTHORIZED, "Authentication required")
    return user_id


async def owner_desktop(
    user_id: Annotated[str, Depends(require_user)],
    desktops: DesktopsDep,
) -> Desktop:
    """The caller's desktop, created on first access."""
    return desktops.get_or_create(user_id)


OwnerDesktop = Annotated[Desktop, Depends(owner_desktop)]
