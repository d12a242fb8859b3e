"""Publish and access state of items, plus the visitor unlock ledger."""

import sqlite3
from collections.abc import Callable
from datetime import datetime

import structlog

from deskspace.desktop.database import Database, utc_now
from deskspace.desktop.errors import DeskError, ErrorCode
from deskspace.desktop.repositories.items import fetch_item, iter_ancestors, require_owned
from deskspace.desktop.schemas import AccessLevel, Item, PublishStatus, normalize_email

logger = structlog.get_logger()


def ledger_contains(conn: sqlite3.Connection, email: str, desktop_id: str) -> bool:
    """Whether a normalized email has unlocked a desktop."""
    row = conn.execute(
        "SELECT 1 FROM unlock_ledger WHERE email = ? AND desktop_id = ?",
        (email, desktop_id),
    ).fetchone()
    return row is not None


def folder_gates(conn: sqlite3.Connection, item_id: str) -> tuple[bool, bool]:
    """Publish and lock state inherited from the folders above an item.

    Returns:
        (hidden, locked): hidden if any ancestor folder is a draft, locked
        if any ancestor folder is behind the email gate.
    """
    hidden = locked = False
    for ancestor_id in list(iter_ancestors(conn, item_id))[1:]:
        row = conn.execute(
            "SELECT publish_status, access_level FROM items WHERE id = ?",
            (ancestor_id,),
        ).fetchone()
        if row is None or row["publish_status"] != PublishStatus.PUBLISHED.value:
            hidden = True
        elif row["access_level"] == AccessLevel.LOCKED.value:
            locked = True
    return hidden, locked


class AccessGate:
    """Owner-side publish/lock toggles and visitor-side email unlocks.

    Publish status decides whether visitors can see an item at all;
    access level decides whether they can read its content. Unlocks are
    recorded per desktop, so one verified email opens every locked item
    on that desktop.
    """

    def __init__(
        self,
        db: Database,
        *,
        restamp_on_republish: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize access gate.

        Args:
            db: Shared database handle.
            restamp_on_republish: Refresh published_at when publishing an
                item that is already published.
            clock: Source of timestamps.
        """
        self._db = db
        self._restamp = restamp_on_republish
        self._clock = clock

    def publish(self, desktop_id: str, item_id: str) -> Item:
        """Make an item visible to visitors and stamp published_at.

        Raises:
            DeskError: NOT_FOUND or FORBIDDEN.
        """
        with self._db.transaction() as conn:
            row = require_owned(conn, desktop_id, item_id)
            now = self._clock().isoformat()
            already = row["publish_status"] == PublishStatus.PUBLISHED.value
            published_at = row["published_at"] if already and not self._restamp else now
            conn.execute(
                "UPDATE items SET publish_status = ?, published_at = ?, updated_at = ? "
                "WHERE id = ?",
                (PublishStatus.PUBLISHED.value, published_at, now, item_id),
            )
            item = fetch_item(conn, item_id)

        logger.info(
            "item_published",
            desktop_id=desktop_id,
            item_id=item_id,
            republished=already,
        )
        assert item is not None
        return item

    def unpublish(self, desktop_id: str, item_id: str) -> Item:
        """Return an item to draft; published_at is kept.

        Raises:
            DeskError: NOT_FOUND or FORBIDDEN.
        """
        return self._set_column(
            desktop_id, item_id, "publish_status", PublishStatus.DRAFT.value,
            event="item_unpublished",
        )

    def lock(self, desktop_id: str, item_id: str) -> Item:
        """Put an item's content behind the email gate."""
        return self._set_column(
            desktop_id, item_id, "access_level", AccessLevel.LOCKED.value,
            event="item_locked",
        )

    def unlock(self, desktop_id: str, item_id: str) -> Item:
        """Make an item's content freely readable again."""
        return self._set_column(
            desktop_id, item_id, "access_level", AccessLevel.FREE.value,
            event="item_unlocked",
        )

    def visitor_unlock(self, desktop_id: str, item_id: str, email: str) -> Item:
        """Record that a visitor passed the email gate on a locked item.

        The ledger row is upserted, so repeated or concurrent unlocks by
        the same email never fail on the unique key.

        Args:
            desktop_id: Desktop the item belongs to.
            item_id: Locked item the visitor is opening.
            email: Visitor email, normalized before storage.

        Returns:
            The unlocked item, content included.

        Raises:
            DeskError: NOT_FOUND if the item is missing, unpublished, on
                another desktop or not locked; VALIDATION_ERROR for a
                malformed email.
        """
        try:
            email = normalize_email(email)
        except ValueError as e:
            raise DeskError(ErrorCode.VALIDATION_ERROR, str(e)) from e

        with self._db.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM items WHERE id = ? AND desktop_id = ?",
                (item_id, desktop_id),
            ).fetchone()
            if (
                row is None
                or row["publish_status"] != PublishStatus.PUBLISHED.value
                or row["access_level"] != AccessLevel.LOCKED.value
                or folder_gates(conn, item_id)[0]
            ):
                raise DeskError(ErrorCode.NOT_FOUND, "Item not found or not locked")

            now = self._clock().isoformat()
            conn.execute(
                """
                INSERT INTO unlock_ledger
                    (email, desktop_id, source_item_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (email, desktop_id) DO UPDATE SET
                    updated_at = excluded.updated_at
                """,
                (email, desktop_id, item_id, now, now),
            )
            item = fetch_item(conn, item_id)

        # Email is not logged
        logger.info("visitor_unlocked", desktop_id=desktop_id, item_id=item_id)
        assert item is not None
        return item

    def is_unlocked(self, email: str | None, desktop_id: str) -> bool:
        """Whether an email has unlocked a desktop. Malformed emails never have."""
        if not email:
            return False
        try:
            email = normalize_email(email)
        except ValueError:
            return False
        with self._db.read() as conn:
            return ledger_contains(conn, email, desktop_id)

    def resolve_visitor_item(
        self,
        desktop_id: str,
        item_id: str,
        email: str | None = None,
    ) -> Item:
        """Fetch an item as a visitor sees it.

        Folders pass their state down: an item inside a draft folder is
        hidden and one inside a locked folder is locked.

        Raises:
            DeskError: NOT_FOUND for missing or draft items, FORBIDDEN for
                locked items the email has not unlocked.
        """
        with self._db.read() as conn:
            item = fetch_item(conn, item_id)
            if (
                item is None
                or item.desktop_id != desktop_id
                or item.publish_status is not PublishStatus.PUBLISHED
            ):
                raise DeskError(ErrorCode.NOT_FOUND, "Item not found")
            hidden, folder_locked = folder_gates(conn, item_id)
            if hidden:
                raise DeskError(ErrorCode.NOT_FOUND, "Item not found")
            if item.access_level is AccessLevel.LOCKED or folder_locked:
                unlocked = False
                if email:
                    try:
                        unlocked = ledger_contains(
                            conn, normalize_email(email), desktop_id
                        )
                    except ValueError:
                        unlocked = False
                if not unlocked:
                    raise DeskError(ErrorCode.FORBIDDEN, "Item is locked")
        return item

    def _set_column(
        self,
        desktop_id: str,
        item_id: str,
        column: str,
        value: str,
        *,
        event: str,
    ) -> Item:
        with self._db.transaction() as conn:
            require_owned(conn, desktop_id, item_id)
            conn.execute(
                f"UPDATE items SET {column} = ?, updated_at = ? WHERE id = ?",
                (value, self._clock().isoformat(), item_id),
            )
            item = fetch_item(conn, item_id)

        logger.info(event, desktop_id=desktop_id, item_id=item_id)
        assert item is not None
        return item
