"""Owner endpoints for dock shortcuts."""

from fastapi import APIRouter, status

from deskspace.dependencies import DockDep, OrderingDep, OwnerDesktop
from deskspace.desktop.schemas import (
    DeletedItems,
    DockItem,
    DockItemCreate,
    DockItemPatch,
    Envelope,
    OrderEntry,
)

router = APIRouter(prefix="/desktop/dock", tags=["dock"])


@router.get("", response_model=Envelope[list[DockItem]])
async def list_dock(desktop: OwnerDesktop, dock: DockDep) -> Envelope[list[DockItem]]:
    """List dock shortcuts in order."""
    return Envelope[list[DockItem]](data=dock.list_dock(desktop.id))


@router.post(
    "",
    response_model=Envelope[DockItem],
    status_code=status.HTTP_201_CREATED,
)
async def add_dock_item(
    data: DockItemCreate,
    desktop: OwnerDesktop,
    dock: DockDep,
) -> Envelope[DockItem]:
    """Append a shortcut; fails once the dock is full."""
    return Envelope[DockItem](data=dock.add(desktop.id, data))


@router.put("/reorder", response_model=Envelope[list[DockItem]])
async def reorder_dock(
    entries: list[OrderEntry],
    desktop: OwnerDesktop,
    ordering: OrderingDep,
) -> Envelope[list[DockItem]]:
    """Apply a batch of dock orders atomically."""
    return Envelope[list[DockItem]](data=ordering.reorder_dock(desktop.id, entries))


@router.patch("/{dock_id}", response_model=Envelope[DockItem])
async def update_dock_item(
    dock_id: str,
    patch: DockItemPatch,
    desktop: OwnerDesktop,
    dock: DockDep,
) -> Envelope[DockItem]:
    return Envelope[DockItem](data=dock.update(desktop.id, dock_id, patch))


@router.delete("/{dock_id}", response_model=Envelope[DeletedItems])
async def delete_dock_item(
    dock_id: str,
    desktop: OwnerDesktop,
    dock: DockDep,
) -> Envelope[DeletedItems]:
    dock.remove(desktop.id, dock_id)
    return Envelope[DeletedItems](data=DeletedItems(ids=[dock_id]))
