"""Batch ordering of siblings, canvas positions and dock shortcuts."""

from collections.abc import Callable
from datetime import datetime

import structlog

from deskspace.desktop.database import Database, utc_now
from deskspace.desktop.errors import DeskError, ErrorCode
from deskspace.desktop.repositories.dock import fetch_dock
from deskspace.desktop.repositories.items import fetch_children, fetch_items
from deskspace.desktop.schemas import DockItem, Item, OrderEntry, PositionEntry

logger = structlog.get_logger()


def _require_unique(ids: list[str]) -> None:
    if not ids:
        raise DeskError(ErrorCode.VALIDATION_ERROR, "At least one entry is required")
    if len(ids) != len(set(ids)):
        raise DeskError(ErrorCode.VALIDATION_ERROR, "Duplicate ids in batch")


class OrderingService:
    """Applies multi-row order changes as single transactions.

    Every row of a batch is checked before the first write, and all
    writes share one transaction, so a rejected batch leaves the stored
    order exactly as it was.
    """

    def __init__(
        self,
        db: Database,
        *,
        dock_limit: int = 8,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize ordering service.

        Args:
            db: Shared database handle.
            dock_limit: Maximum number of dock shortcuts per desktop.
            clock: Source of timestamps.
        """
        self._db = db
        self._dock_limit = dock_limit
        self._clock = clock

    def reorder_siblings(self, desktop_id: str, entries: list[OrderEntry]) -> list[Item]:
        """Assign new sibling order values to items sharing one parent.

        Args:
            desktop_id: Owning desktop.
            entries: Item ids with their new order.

        Returns:
            The parent's children in their new order.

        Raises:
            DeskError: NOT_FOUND if an id is not an item of the desktop,
                VALIDATION_ERROR if ids repeat or span several parents.
        """
        ids = [entry.id for entry in entries]
        _require_unique(ids)

        with self._db.transaction() as conn:
            placeholders = ",".join("?" for _ in ids)
            rows = conn.execute(
                f"SELECT id, parent_id FROM items "
                f"WHERE desktop_id = ? AND id IN ({placeholders})",
                [desktop_id, *ids],
            ).fetchall()
            if len(rows) != len(ids):
                raise DeskError(ErrorCode.NOT_FOUND, "Item not found")

            parents = {row["parent_id"] for row in rows}
            if len(parents) != 1:
                raise DeskError(
                    ErrorCode.VALIDATION_ERROR,
                    "Reordered items must share the same parent",
                )
            (parent_id,) = parents

            now = self._clock().isoformat()
            conn.executemany(
                "UPDATE items SET sort_order = ?, updated_at = ? WHERE id = ?",
                [(entry.order, now, entry.id) for entry in entries],
            )
            children = fetch_children(conn, desktop_id, parent_id)

        logger.info(
            "items_reordered",
            desktop_id=desktop_id,
            parent_id=parent_id,
            count=len(entries),
        )
        return children

    def reposition_items(
        self,
        desktop_id: str,
        entries: list[PositionEntry],
    ) -> list[Item]:
        """Move items on the canvas, optionally updating their order too.

        Coordinates arrive already clamped to [0, 100].

        Returns:
            Every item of the desktop.

        Raises:
            DeskError: NOT_FOUND or VALIDATION_ERROR, as for reorders.
        """
        ids = [entry.id for entry in entries]
        _require_unique(ids)

        with self._db.transaction() as conn:
            placeholders = ",".join("?" for _ in ids)
            found = conn.execute(
                f"SELECT COUNT(*) FROM items "
                f"WHERE desktop_id = ? AND id IN ({placeholders})",
                [desktop_id, *ids],
            ).fetchone()[0]
            if found != len(ids):
                raise DeskError(ErrorCode.NOT_FOUND, "Item not found")

            now = self._clock().isoformat()
            for entry in entries:
                if entry.order is None:
                    conn.execute(
                        "UPDATE items SET position_x = ?, position_y = ?, "
                        "updated_at = ? WHERE id = ?",
                        (entry.x, entry.y, now, entry.id),
                    )
                else:
                    conn.execute(
                        "UPDATE items SET position_x = ?, position_y = ?, "
                        "sort_order = ?, updated_at = ? WHERE id = ?",
                        (entry.x, entry.y, entry.order, now, entry.id),
                    )
            items = fetch_items(conn, desktop_id)

        logger.info("items_repositioned", desktop_id=desktop_id, count=len(entries))
        return items

    def reorder_dock(self, desktop_id: str, entries: list[OrderEntry]) -> list[DockItem]:
        """Assign new order values to dock shortcuts.

        Returns:
            The dock in its new order.

        Raises:
            DeskError: VALIDATION_ERROR for oversized or repeated batches,
                NOT_FOUND if an id is not a dock item of the desktop.
        """
        if len(entries) > self._dock_limit:
            raise DeskError(
                ErrorCode.VALIDATION_ERROR,
                f"Dock holds at most {self._dock_limit} items",
            )
        ids = [entry.id for entry in entries]
        _require_unique(ids)

        with self._db.transaction() as conn:
            placeholders = ",".join("?" for _ in ids)
            found = conn.execute(
                f"SELECT COUNT(*) FROM dock_items "
                f"WHERE desktop_id = ? AND id IN ({placeholders})",
                [desktop_id, *ids],
            ).fetchone()[0]
            if found != len(ids):
                raise DeskError(ErrorCode.NOT_FOUND, "Dock item not found")

            now = self._clock().isoformat()
            conn.executemany(
                "UPDATE dock_items SET sort_order = ?, updated_at = ? WHERE id = ?",
                [(entry.order, now, entry.id) for entry in entries],
            )
            dock = fetch_dock(conn, desktop_id)

        logger.info("dock_reordered", desktop_id=desktop_id, count=len(entries))
        return dock
