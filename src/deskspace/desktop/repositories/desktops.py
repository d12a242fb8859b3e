"""Desktop records, view settings and read snapshots."""

import json
import re
import sqlite3
from collections.abc import Callable
from datetime import datetime

import structlog

from deskspace.desktop.database import Database, utc_now
from deskspace.desktop.errors import DeskError, ErrorCode
from deskspace.desktop.repositories.items import fetch_items
from deskspace.desktop.schemas import (
    Desktop,
    DesktopPatch,
    DesktopSnapshot,
    ViewSettings,
    ViewSettingsUpdate,
    new_id,
)

logger = structlog.get_logger()


def _row_to_desktop(row: sqlite3.Row) -> Desktop:
    return Desktop(
        id=row["id"],
        user_id=row["user_id"],
        handle=row["handle"],
        theme=row["theme"],
        background_url=row["background_url"],
        background_position=row["background_position"],
        title=row["title"],
        description=row["description"],
        is_public=bool(row["is_public"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _base_handle(user_id: str) -> str:
    handle = re.sub(r"[^a-z0-9_-]", "-", user_id.strip().lower()).strip("-")
    return (handle or "desktop")[:32]


def fetch_view_settings(conn: sqlite3.Connection, desktop_id: str) -> ViewSettings:
    """Stored view settings, or the defaults when none were saved."""
    row = conn.execute(
        "SELECT * FROM view_settings WHERE desktop_id = ?", (desktop_id,)
    ).fetchone()
    if row is None:
        return ViewSettings()
    return ViewSettings(
        active_mode=row["active_mode"],
        page_order=json.loads(row["page_order"]),
        present_order=json.loads(row["present_order"]),
        present_auto=bool(row["present_auto"]),
        present_delay=row["present_delay"],
    )


class DesktopRepository:
    """One desktop per account, addressed by owner id or public handle."""

    def __init__(
        self,
        db: Database,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._db = db
        self._clock = clock

    def get_or_create(self, user_id: str) -> Desktop:
        """Return the account's desktop, creating it on first access.

        The handle defaults to the user id, with a numeric suffix when
        that handle is already taken.
        """
        with self._db.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM desktops WHERE user_id = ?", (user_id,)
            ).fetchone()
            if row is not None:
                return _row_to_desktop(row)

            base = _base_handle(user_id)
            handle = base
            suffix = 1
            while conn.execute(
                "SELECT 1 FROM desktops WHERE handle = ?", (handle,)
            ).fetchone():
                suffix += 1
                handle = f"{base}-{suffix}"

            desktop_id = new_id()
            now = self._clock().isoformat()
            conn.execute(
                "INSERT INTO desktops (id, user_id, handle, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (desktop_id, user_id, handle, now, now),
            )
            row = conn.execute(
                "SELECT * FROM desktops WHERE id = ?", (desktop_id,)
            ).fetchone()

        logger.info("desktop_created", desktop_id=desktop_id, handle=handle)
        return _row_to_desktop(row)

    def get_by_handle(self, handle: str) -> Desktop:
        """Look a desktop up by its public handle (case-insensitive).

        Raises:
            DeskError: NOT_FOUND.
        """
        with self._db.read() as conn:
            row = conn.execute(
                "SELECT * FROM desktops WHERE handle = ?", (handle.strip().lower(),)
            ).fetchone()
        if row is None:
            raise DeskError(ErrorCode.NOT_FOUND, "Desktop not found")
        return _row_to_desktop(row)

    def update(self, desktop_id: str, patch: DesktopPatch) -> Desktop:
        """Apply a partial update of display settings.

        Raises:
            DeskError: NOT_FOUND, or DUPLICATE when the handle is taken.
        """
        changes = patch.changes()
        columns = sorted(changes)
        params = [
            int(changes[c]) if c == "is_public" else changes[c] for c in columns
        ]
        assignments = [f"{c} = ?" for c in columns] + ["updated_at = ?"]

        with self._db.transaction() as conn:
            try:
                cursor = conn.execute(
                    f"UPDATE desktops SET {', '.join(assignments)} WHERE id = ?",
                    [*params, self._clock().isoformat(), desktop_id],
                )
            except sqlite3.IntegrityError as e:
                raise DeskError(ErrorCode.DUPLICATE, "Handle is already taken") from e
            if cursor.rowcount == 0:
                raise DeskError(ErrorCode.NOT_FOUND, "Desktop not found")
            row = conn.execute(
                "SELECT * FROM desktops WHERE id = ?", (desktop_id,)
            ).fetchone()

        logger.info("desktop_updated", desktop_id=desktop_id, fields=columns)
        return _row_to_desktop(row)

    def get_view_settings(self, desktop_id: str) -> ViewSettings:
        """Current view settings, defaults included."""
        with self._db.read() as conn:
            return fetch_view_settings(conn, desktop_id)

    def set_view_settings(
        self,
        desktop_id: str,
        update: ViewSettingsUpdate,
    ) -> ViewSettings:
        """Merge an update into the stored view settings and upsert them."""
        with self._db.transaction() as conn:
            current = fetch_view_settings(conn, desktop_id)
            merged = current.model_copy(update=update.changes())
            conn.execute(
                """
                INSERT INTO view_settings (
                    desktop_id, active_mode, page_order, present_order,
                    present_auto, present_delay, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (desktop_id) DO UPDATE SET
                    active_mode = excluded.active_mode,
                    page_order = excluded.page_order,
                    present_order = excluded.present_order,
                    present_auto = excluded.present_auto,
                    present_delay = excluded.present_delay,
                    updated_at = excluded.updated_at
                """,
                (
                    desktop_id,
                    merged.active_mode.value,
                    json.dumps(merged.page_order),
                    json.dumps(merged.present_order),
                    int(merged.present_auto),
                    merged.present_delay,
                    self._clock().isoformat(),
                ),
            )

        logger.info(
            "view_settings_updated",
            desktop_id=desktop_id,
            active_mode=merged.active_mode.value,
        )
        return merged

    def snapshot(self, desktop_id: str) -> DesktopSnapshot:
        """Desktop, items and view settings read under one lock.

        Raises:
            DeskError: NOT_FOUND.
        """
        with self._db.read() as conn:
            row = conn.execute(
                "SELECT * FROM desktops WHERE id = ?", (desktop_id,)
            ).fetchone()
            if row is None:
                raise DeskError(ErrorCode.NOT_FOUND, "Desktop not found")
            return DesktopSnapshot(
                desktop=_row_to_desktop(row),
                items=tuple(fetch_items(conn, desktop_id)),
                view=fetch_view_settings(conn, desktop_id),
            )
