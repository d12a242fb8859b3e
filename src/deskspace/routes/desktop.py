"""Owner endpoints for desktop settings, view settings and previews."""

from fastapi import APIRouter

from deskspace.dependencies import DesktopsDep, OwnerDesktop, SettingsDep
from deskspace.desktop.schemas import (
    Desktop,
    DesktopPatch,
    Envelope,
    ViewMode,
    ViewSettings,
    ViewSettingsUpdate,
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

router = APIRouter(prefix="/desktop", tags=["desktop"])

Projection = DesktopProjection | PageProjection | PresentProjection


@router.get("", response_model=Envelope[Desktop])
async def get_desktop(desktop: OwnerDesktop) -> Envelope[Desktop]:
    """Return the caller's desktop, creating it on first access."""
    return Envelope[Desktop](data=desktop)


@router.patch("", response_model=Envelope[Desktop])
async def update_desktop(
    patch: DesktopPatch,
    desktop: OwnerDesktop,
    desktops: DesktopsDep,
) -> Envelope[Desktop]:
    """Update display settings.

    Args:
        patch: Fields to change; null clears optional fields.

    Returns:
        The updated desktop.
    """
    return Envelope[Desktop](data=desktops.update(desktop.id, patch))


@router.get("/view", response_model=Envelope[ViewSettings])
async def get_view_settings(
    desktop: OwnerDesktop,
    desktops: DesktopsDep,
) -> Envelope[ViewSettings]:
    """Return view settings, defaults included."""
    return Envelope[ViewSettings](data=desktops.get_view_settings(desktop.id))


@router.put("/view", response_model=Envelope[ViewSettings])
async def set_view_settings(
    update: ViewSettingsUpdate,
    desktop: OwnerDesktop,
    desktops: DesktopsDep,
) -> Envelope[ViewSettings]:
    """Merge and store view settings."""
    return Envelope[ViewSettings](data=desktops.set_view_settings(desktop.id, update))


@router.get("/projections/{mode}", response_model=Envelope[Projection])
async def preview_projection(
    mode: ViewMode,
    desktop: OwnerDesktop,
    desktops: DesktopsDep,
    settings: SettingsDep,
    folder_id: str | None = None,
) -> Envelope[Projection]:
    """Preview a projection with owner visibility.

    Drafts and locked items appear on the canvas; the page and present
    views still list only published documents.

    Args:
        mode: Which projection to build.
        folder_id: Folder to browse in desktop mode.
    """
    snapshot = desktops.snapshot(desktop.id)
    viewer = Viewer(is_owner=True)
    projection: Projection
    if mode is ViewMode.DESKTOP:
        projection = project_desktop(snapshot, viewer, folder_id)
    elif mode is ViewMode.PAGE:
        projection = project_page(snapshot, viewer)
    else:
        projection = project_present(
            snapshot, viewer, EndBehavior(settings.present_end_behavior)
        )
    return Envelope[Projection](data=projection)
