"""Owner endpoints for the desktop's content tree."""

from fastapi import APIRouter, status

from deskspace.dependencies import AccessDep, OrderingDep, OwnerDesktop, TreeDep
from deskspace.desktop.schemas import (
    DeletedItems,
    Envelope,
    Item,
    ItemCreate,
    ItemPatch,
    MoveRequest,
    OrderEntry,
    PositionEntry,
)

router = APIRouter(prefix="/desktop/items", tags=["items"])

# Query values that select root-level items
ROOT_ALIASES = frozenset({"root", "null"})


@router.get("", response_model=Envelope[list[Item]])
async def list_items(
    desktop: OwnerDesktop,
    tree: TreeDep,
    parent_id: str | None = None,
) -> Envelope[list[Item]]:
    """List items of the desktop.

    Args:
        parent_id: Only return children of this folder; "root" selects
            top-level items. Omit for every item.
    """
    if parent_id is None:
        items = tree.list_items(desktop.id)
    elif parent_id in ROOT_ALIASES:
        items = tree.list_children(desktop.id, None)
    else:
        items = tree.list_children(desktop.id, parent_id)
    return Envelope[list[Item]](data=items)


@router.post(
    "",
    response_model=Envelope[Item],
    status_code=status.HTTP_201_CREATED,
)
async def create_item(
    data: ItemCreate,
    desktop: OwnerDesktop,
    tree: TreeDep,
) -> Envelope[Item]:
    """Create an item at the end of its parent's children."""
    return Envelope[Item](data=tree.create_item(desktop.id, data))


@router.put("/reorder", response_model=Envelope[list[Item]])
async def reorder_items(
    entries: list[OrderEntry],
    desktop: OwnerDesktop,
    ordering: OrderingDep,
) -> Envelope[list[Item]]:
    """Apply a batch of sibling orders atomically.

    Returns:
        The shared parent's children in their new order.
    """
    return Envelope[list[Item]](data=ordering.reorder_siblings(desktop.id, entries))


@router.put("/positions", response_model=Envelope[list[Item]])
async def reposition_items(
    entries: list[PositionEntry],
    desktop: OwnerDesktop,
    ordering: OrderingDep,
) -> Envelope[list[Item]]:
    """Apply a batch of canvas positions atomically."""
    return Envelope[list[Item]](data=ordering.reposition_items(desktop.id, entries))


@router.get("/{item_id}", response_model=Envelope[Item])
async def get_item(item_id: str, desktop: OwnerDesktop, tree: TreeDep) -> Envelope[Item]:
    """Fetch one item with its tabs and blocks."""
    return Envelope[Item](data=tree.get_item(desktop.id, item_id))


@router.patch("/{item_id}", response_model=Envelope[Item])
async def update_item(
    item_id: str,
    patch: ItemPatch,
    desktop: OwnerDesktop,
    tree: TreeDep,
) -> Envelope[Item]:
    """Partially update an item; null clears a field, omitted leaves it."""
    return Envelope[Item](data=tree.update_item(desktop.id, item_id, patch))


@router.delete("/{item_id}", response_model=Envelope[DeletedItems])
async def delete_item(
    item_id: str,
    desktop: OwnerDesktop,
    tree: TreeDep,
) -> Envelope[DeletedItems]:
    """Delete an item and everything inside it.

    Returns:
        Ids of all removed items.
    """
    removed = tree.delete_item(desktop.id, item_id)
    return Envelope[DeletedItems](data=DeletedItems(ids=removed))


@router.post("/{item_id}/move", response_model=Envelope[Item])
async def move_item(
    item_id: str,
    body: MoveRequest,
    desktop: OwnerDesktop,
    tree: TreeDep,
) -> Envelope[Item]:
    """Move an item into a folder, or to the root with a null parent."""
    return Envelope[Item](data=tree.move_item(desktop.id, item_id, body.parent_id))


@router.post("/{item_id}/publish", response_model=Envelope[Item])
async def publish_item(item_id: str, desktop: OwnerDesktop, access: AccessDep) -> Envelope[Item]:
    return Envelope[Item](data=access.publish(desktop.id, item_id))


@router.delete("/{item_id}/publish", response_model=Envelope[Item])
async def unpublish_item(item_id: str, desktop: OwnerDesktop, access: AccessDep) -> Envelope[Item]:
    return Envelope[Item](data=access.unpublish(desktop.id, item_id))


@router.post("/{item_id}/lock", response_model=Envelope[Item])
async def lock_item(item_id: str, desktop: OwnerDesktop, access: AccessDep) -> Envelope[Item]:
    return Envelope[Item](data=access.lock(desktop.id, item_id))


@router.delete("/{item_id}/lock", response_model=Envelope[Item])
async def unlock_item(item_id: str, desktop: OwnerDesktop, access: AccessDep) -> Envelope[Item]:
    return Envelope[Item](data=access.unlock(desktop.id, item_id))
