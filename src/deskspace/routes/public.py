"""Visitor endpoints, addressed by the desktop's public handle."""

import structlog
from fastapi import APIRouter
from pydantic import BaseModel

from deskspace.dependencies import AccessDep, DesktopsDep, DockDep, SettingsDep
from deskspace.desktop.errors import DeskError, ErrorCode
from deskspace.desktop.repositories import AccessGate, DesktopRepository
from deskspace.desktop.schemas import (
    Desktop,
    DockItem,
    Envelope,
    Item,
    UnlockRequest,
    UnlockStatus,
    ViewMode,
)
from deskspace.views import (
    DesktopProjection,
    EndBehavior,
    PageProjection,
    PresentProjection,
    Viewer,
    project_desktop,
    project_page,
    project_present,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/public", tags=["public"])


class PublicProfile(BaseModel):
    """What a visitor sees before choosing a view."""

    handle: str
    title: str | None
    description: str | None
    theme: str
    background_url: str | None
    background_position: str
    active_mode: ViewMode
    dock: list[DockItem]


def _public_desktop(desktops: DesktopRepository, handle: str) -> Desktop:
    desktop = desktops.get_by_handle(handle)
    if not desktop.is_public:
        raise DeskError(ErrorCode.FORBIDDEN, "This desktop is private")
    return desktop


def _viewer(access: AccessGate, desktop: Desktop, email: str | None) -> Viewer:
    return Viewer(unlocked=access.is_unlocked(email, desktop.id))


@router.get("/{handle}", response_model=Envelope[PublicProfile])
async def get_profile(
    handle: str,
    desktops: DesktopsDep,
    dock: DockDep,
) -> Envelope[PublicProfile]:
    """Profile, landing view mode and dock of a public desktop.

    Raises:
        DeskError: NOT_FOUND for unknown handles, FORBIDDEN for private
            desktops.
    """
    desktop = _public_desktop(desktops, handle)
    view = desktops.get_view_settings(desktop.id)
    profile = PublicProfile(
        handle=desktop.handle,
        title=desktop.title,
        description=desktop.description,
        theme=desktop.theme,
        background_url=desktop.background_url,
        background_position=desktop.background_position,
        active_mode=view.active_mode,
        dock=dock.list_dock(desktop.id),
    )
    return Envelope[PublicProfile](data=profile)


@router.get("/{handle}/desktop", response_model=Envelope[DesktopProjection])
async def get_desktop_view(
    handle: str,
    desktops: DesktopsDep,
    access: AccessDep,
    folder_id: str | None = None,
    email: str | None = None,
) -> Envelope[DesktopProjection]:
    """Canvas projection of the desktop or one of its folders.

    Args:
        folder_id: Folder to browse; omit for the top level.
        email: Visitor email, reveals locked items once unlocked.
    """
    desktop = _public_desktop(desktops, handle)
    viewer = _viewer(access, desktop, email)
    projection = project_desktop(desktops.snapshot(desktop.id), viewer, folder_id)
    return Envelope[DesktopProjection](data=projection)


@router.get("/{handle}/page", response_model=Envelope[PageProjection])
async def get_page_view(
    handle: str,
    desktops: DesktopsDep,
    access: AccessDep,
    email: str | None = None,
) -> Envelope[PageProjection]:
    """Published documents as one scrolling page."""
    desktop = _public_desktop(desktops, handle)
    viewer = _viewer(access, desktop, email)
    projection = project_page(desktops.snapshot(desktop.id), viewer)
    return Envelope[PageProjection](data=projection)


@router.get("/{handle}/present", response_model=Envelope[PresentProjection])
async def get_present_view(
    handle: str,
    desktops: DesktopsDep,
    access: AccessDep,
    settings: SettingsDep,
    email: str | None = None,
) -> Envelope[PresentProjection]:
    """Published documents as slides with slideshow settings."""
    desktop = _public_desktop(desktops, handle)
    viewer = _viewer(access, desktop, email)
    projection = project_present(
        desktops.snapshot(desktop.id),
        viewer,
        EndBehavior(settings.present_end_behavior),
    )
    return Envelope[PresentProjection](data=projection)


@router.get("/{handle}/items/{item_id}", response_model=Envelope[Item])
async def get_item(
    handle: str,
    item_id: str,
    desktops: DesktopsDep,
    access: AccessDep,
    email: str | None = None,
) -> Envelope[Item]:
    """Read one published item.

    Raises:
        DeskError: NOT_FOUND for drafts, FORBIDDEN for locked items the
            email has not unlocked.
    """
    desktop = _public_desktop(desktops, handle)
    return Envelope[Item](data=access.resolve_visitor_item(desktop.id, item_id, email))


@router.post("/{handle}/unlock", response_model=Envelope[Item])
async def unlock(
    handle: str,
    body: UnlockRequest,
    desktops: DesktopsDep,
    access: AccessDep,
) -> Envelope[Item]:
    """Pass the email gate of a locked item.

    The unlock covers every locked item on the desktop.

    Returns:
        The unlocked item with its content.
    """
    desktop = _public_desktop(desktops, handle)
    item = access.visitor_unlock(desktop.id, body.item_id, body.email)
    return Envelope[Item](data=item)


@router.get("/{handle}/unlock", response_model=Envelope[UnlockStatus])
async def check_unlock(
    handle: str,
    email: str,
    desktops: DesktopsDep,
    access: AccessDep,
) -> Envelope[UnlockStatus]:
    """Whether an email has unlocked the desktop.

    Unknown handles and private desktops report false.
    """
    try:
        desktop = _public_desktop(desktops, handle)
    except DeskError as e:
        logger.debug("unlock_check_unavailable", handle=handle, code=e.code.value)
        return Envelope[UnlockStatus](data=UnlockStatus(unlocked=False))
    unlocked = access.is_unlocked(email, desktop.id)
    return Envelope[UnlockStatus](data=UnlockStatus(unlocked=unlocked))
