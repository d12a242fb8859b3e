"""Desktop, page and present projections over a desktop snapshot.

Each projection is a pure function of a ``DesktopSnapshot`` and the
``Viewer`` looking at it. Callers resolve ownership and unlock state
before projecting.
"""

from collections.abc import Iterable
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from deskspace.desktop.errors import DeskError, ErrorCode
from deskspace.desktop.schemas import (
    AccessLevel,
    Desktop,
    DesktopSnapshot,
    FileType,
    Item,
    ItemVariant,
    PublishStatus,
)
from deskspace.views.slideshow import EndBehavior, Slideshow, SlideshowStatus

# File types that read as documents in the page and present views
DOCUMENT_TYPES = frozenset({FileType.NOTE, FileType.CASE_STUDY})


class Viewer(BaseModel):
    """Who is looking at a projection.

    Attributes:
        is_owner: The desktop's owner sees drafts and locked items.
        unlocked: The visitor's email is in the desktop's unlock ledger.
    """

    model_config = ConfigDict(frozen=True)

    is_owner: bool = False
    unlocked: bool = False


class DesktopTile(BaseModel):
    """An item placed on the canvas."""

    item: Item
    x: float
    y: float
    z_index: int


class DesktopProjection(BaseModel):
    """Items of one canvas level in paint order."""

    desktop: Desktop
    folder_id: str | None = None
    tiles: list[DesktopTile]


class PageProjection(BaseModel):
    """Documents laid out as one scrolling page."""

    desktop: Desktop
    items: list[Item]


class PresentProjection(BaseModel):
    """Documents as slides, with the slideshow settings and timer state."""

    desktop: Desktop
    slides: list[Item]
    auto: bool
    delay_ms: int
    end_behavior: EndBehavior
    initial: SlideshowStatus


def is_visible(item: Item, viewer: Viewer) -> bool:
    """Whether an item itself may be shown to the viewer."""
    if viewer.is_owner:
        return True
    if item.publish_status is not PublishStatus.PUBLISHED:
        return False
    return item.access_level is AccessLevel.FREE or viewer.unlocked


def visible_ids(snapshot: DesktopSnapshot, viewer: Viewer) -> set[str]:
    """Ids of items visible to the viewer, including through their ancestors.

    An item inside a hidden folder is hidden as well.
    """
    by_id = {item.id: item for item in snapshot.items}
    cache: dict[str, bool] = {}

    def check(item_id: str, trail: frozenset[str]) -> bool:
        if item_id in cache:
            return cache[item_id]
        item = by_id.get(item_id)
        if item is None or item_id in trail or not is_visible(item, viewer):
            cache[item_id] = False
            return False
        result = item.parent_id is None or check(item.parent_id, trail | {item_id})
        cache[item_id] = result
        return result

    return {item.id for item in snapshot.items if check(item.id, frozenset())}


def order_by_preference(items: Iterable[Item], preferred: list[str]) -> list[Item]:
    """Items listed in ``preferred`` first, then the rest newest-published first.

    Repeated ids keep their first position and ids that are not among
    ``items`` are skipped.
    """
    by_id = {item.id: item for item in items}
    ordered: list[Item] = []
    seen: set[str] = set()
    for item_id in preferred:
        if item_id in by_id and item_id not in seen:
            seen.add(item_id)
            ordered.append(by_id[item_id])

    def recency(item: Item) -> tuple[datetime, str]:
        return (item.published_at or item.created_at, item.id)

    rest = sorted(
        (item for item in by_id.values() if item.id not in seen),
        key=recency,
        reverse=True,
    )
    return ordered + rest


def _documents(snapshot: DesktopSnapshot, viewer: Viewer) -> list[Item]:
    visible = visible_ids(snapshot, viewer)
    return [
        item
        for item in snapshot.items
        if item.id in visible
        and item.variant is ItemVariant.CONTENT_FILE
        and item.file_type in DOCUMENT_TYPES
        and item.publish_status is PublishStatus.PUBLISHED
    ]


def project_desktop(
    snapshot: DesktopSnapshot,
    viewer: Viewer,
    folder_id: str | None = None,
) -> DesktopProjection:
    """Lay out one level of the canvas.

    Args:
        snapshot: Desktop state.
        viewer: Who is looking.
        folder_id: Folder being browsed, or None for the desktop itself.

    Returns:
        Tiles sorted by z_index, then sibling order.

    Raises:
        DeskError: NOT_FOUND when the folder does not exist, is not a
            folder, or is hidden from the viewer.
    """
    visible = visible_ids(snapshot, viewer)
    if folder_id is not None:
        folder = next((i for i in snapshot.items if i.id == folder_id), None)
        if folder is None or not folder.is_folder or folder_id not in visible:
            raise DeskError(ErrorCode.NOT_FOUND, "Folder not found")

    level = [
        item
        for item in snapshot.items
        if item.parent_id == folder_id and item.id in visible
    ]
    level.sort(key=lambda i: (i.z_index, i.order, i.created_at, i.id))
    return DesktopProjection(
        desktop=snapshot.desktop,
        folder_id=folder_id,
        tiles=[
            DesktopTile(
                item=item,
                x=item.position.x,
                y=item.position.y,
                z_index=item.z_index,
            )
            for item in level
        ],
    )


def project_page(snapshot: DesktopSnapshot, viewer: Viewer) -> PageProjection:
    """Published notes and case studies in page order."""
    return PageProjection(
        desktop=snapshot.desktop,
        items=order_by_preference(
            _documents(snapshot, viewer), snapshot.view.page_order
        ),
    )


def project_present(
    snapshot: DesktopSnapshot,
    viewer: Viewer,
    end_behavior: EndBehavior = EndBehavior.LOOP,
    now_ms: int = 0,
) -> PresentProjection:
    """Published notes and case studies as slides, with the opening timer state."""
    slides = order_by_preference(
        _documents(snapshot, viewer), snapshot.view.present_order
    )
    view = snapshot.view
    show = Slideshow(
        len(slides),
        view.present_delay,
        auto=view.present_auto,
        end_behavior=end_behavior,
        now_ms=now_ms,
    )
    return PresentProjection(
        desktop=snapshot.desktop,
        slides=slides,
        auto=view.present_auto,
        delay_ms=show.delay_ms,
        end_behavior=end_behavior,
        initial=show.status(now_ms),
    )
