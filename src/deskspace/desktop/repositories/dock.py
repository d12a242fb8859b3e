"""Dock shortcut storage."""

import sqlite3
from collections.abc import Callable
from datetime import datetime

import structlog

from deskspace.desktop.database import Database, utc_now
from deskspace.desktop.errors import DeskError, ErrorCode
from deskspace.desktop.schemas import (
    DockItem,
    DockItemCreate,
    DockItemPatch,
    new_id,
    validate_dock_target,
)

logger = structlog.get_logger()


def _row_to_dock_item(row: sqlite3.Row) -> DockItem:
    return DockItem(
        id=row["id"],
        desktop_id=row["desktop_id"],
        icon=row["icon"],
        label=row["label"],
        action=row["action"],
        target=row["target"],
        order=row["sort_order"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def fetch_dock(conn: sqlite3.Connection, desktop_id: str) -> list[DockItem]:
    """A desktop's dock shortcuts in display order."""
    rows = conn.execute(
        "SELECT * FROM dock_items WHERE desktop_id = ? "
        "ORDER BY sort_order, created_at, id",
        (desktop_id,),
    ).fetchall()
    return [_row_to_dock_item(row) for row in rows]


def _require_dock_item(
    conn: sqlite3.Connection,
    desktop_id: str,
    dock_id: str,
) -> sqlite3.Row:
    row = conn.execute("SELECT * FROM dock_items WHERE id = ?", (dock_id,)).fetchone()
    if row is None:
        raise DeskError(ErrorCode.NOT_FOUND, "Dock item not found")
    if row["desktop_id"] != desktop_id:
        raise DeskError(ErrorCode.FORBIDDEN, "Not authorized")
    return row


class DockRepository:
    """CRUD for a desktop's capped list of dock shortcuts."""

    def __init__(
        self,
        db: Database,
        *,
        dock_limit: int = 8,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._db = db
        self._dock_limit = dock_limit
        self._clock = clock

    def list_dock(self, desktop_id: str) -> list[DockItem]:
        """All dock shortcuts of a desktop, in order."""
        with self._db.read() as conn:
            return fetch_dock(conn, desktop_id)

    def add(self, desktop_id: str, data: DockItemCreate) -> DockItem:
        """Append a shortcut to the end of the dock.

        Raises:
            DeskError: LIMIT_REACHED when the dock is full.
        """
        with self._db.transaction() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n, MAX(sort_order) AS max_order "
                "FROM dock_items WHERE desktop_id = ?",
                (desktop_id,),
            ).fetchone()
            if row["n"] >= self._dock_limit:
                raise DeskError(
                    ErrorCode.LIMIT_REACHED,
                    f"Maximum {self._dock_limit} dock items allowed",
                )

            dock_id = new_id()
            order = 0 if row["max_order"] is None else row["max_order"] + 1
            now = self._clock().isoformat()
            conn.execute(
                "INSERT INTO dock_items (id, desktop_id, icon, label, action, "
                "target, sort_order, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    dock_id,
                    desktop_id,
                    data.icon,
                    data.label,
                    data.action.value,
                    data.target,
                    order,
                    now,
                    now,
                ),
            )
            created = _require_dock_item(conn, desktop_id, dock_id)

        logger.info(
            "dock_item_created",
            desktop_id=desktop_id,
            dock_id=dock_id,
            action=data.action.value,
        )
        return _row_to_dock_item(created)

    def update(self, desktop_id: str, dock_id: str, patch: DockItemPatch) -> DockItem:
        """Apply a partial update, re-checking the merged action and target.

        Raises:
            DeskError: NOT_FOUND, FORBIDDEN, or VALIDATION_ERROR when the
                merged target no longer suits the action.
        """
        changes = patch.changes()

        with self._db.transaction() as conn:
            row = _require_dock_item(conn, desktop_id, dock_id)
            merged_item = _row_to_dock_item(row).model_copy(update=changes)
            try:
                validate_dock_target(merged_item.action, merged_item.target)
            except ValueError as e:
                raise DeskError(ErrorCode.VALIDATION_ERROR, str(e)) from e

            conn.execute(
                "UPDATE dock_items SET icon = ?, label = ?, action = ?, target = ?, "
                "updated_at = ? WHERE id = ?",
                (
                    merged_item.icon,
                    merged_item.label,
                    merged_item.action.value,
                    merged_item.target,
                    self._clock().isoformat(),
                    dock_id,
                ),
            )
            updated = _require_dock_item(conn, desktop_id, dock_id)

        logger.info(
            "dock_item_updated",
            desktop_id=desktop_id,
            dock_id=dock_id,
            fields=sorted(changes),
        )
        return _row_to_dock_item(updated)

    def remove(self, desktop_id: str, dock_id: str) -> None:
        """Delete a shortcut.

        Raises:
            DeskError: NOT_FOUND or FORBIDDEN.
        """
        with self._db.transaction() as conn:
            _require_dock_item(conn, desktop_id, dock_id)
            conn.execute("DELETE FROM dock_items WHERE id = ?", (dock_id,))

        logger.info("dock_item_deleted", desktop_id=desktop_id, dock_id=dock_id)
