"""Tree store: creation, mutation, reparenting and deletion of items."""

import json
import sqlite3
from collections import defaultdict
from collections.abc import Callable, Iterator
from datetime import datetime
from typing import Any

import structlog

from deskspace.desktop.blocks import Block, parse_block
from deskspace.desktop.database import Database, utc_now
from deskspace.desktop.errors import DeskError, ErrorCode
from deskspace.desktop.schemas import (
    DetailEntry,
    FileType,
    GalleryEntry,
    Item,
    ItemCreate,
    ItemPatch,
    ItemVariant,
    LinkEntry,
    Position,
    Price,
    PublishStatus,
    Tab,
    new_id,
)

logger = structlog.get_logger()

# Patch fields stored as plain columns of the items table
_SCALAR_COLUMNS: dict[str, str] = {
    "title": "title",
    "subtitle": "subtitle",
    "description": "description",
    "body": "body",
    "header_image": "header_image",
    "thumbnail_url": "thumbnail_url",
    "url": "url",
    "window_width": "window_width",
    "z_index": "z_index",
    "order": "sort_order",
}

_JSON_COLUMNS = ("details", "gallery", "links")


def _dump_entries(entries: list[Any] | None) -> str | None:
    if entries is None:
        return None
    return json.dumps([entry.model_dump(mode="json") for entry in entries])


def _load_entries(raw: str | None, model: type[Any]) -> list[Any] | None:
    if raw is None:
        return None
    return [model.model_validate(entry) for entry in json.loads(raw)]


def _timestamp(raw: str | None) -> datetime | None:
    return datetime.fromisoformat(raw) if raw else None


def _hydrate(conn: sqlite3.Connection, rows: list[sqlite3.Row]) -> list[Item]:
    """Build Item models for item rows, attaching their tabs and blocks."""
    if not rows:
        return []

    ids = [row["id"] for row in rows]
    placeholders = ",".join("?" for _ in ids)

    tab_rows = conn.execute(
        f"SELECT * FROM tabs WHERE item_id IN ({placeholders}) "
        "ORDER BY sort_order, id",
        ids,
    ).fetchall()
    block_rows = conn.execute(
        f"SELECT * FROM blocks WHERE item_id IN ({placeholders}) "
        "ORDER BY sort_order, rowid",
        ids,
    ).fetchall()

    top_blocks: dict[str, list[Block]] = defaultdict(list)
    tab_blocks: dict[tuple[str, str], list[Block]] = defaultdict(list)
    for row in block_rows:
        block = parse_block(
            {
                "id": row["id"],
                "type": row["type"],
                "order": row["sort_order"],
                "data": json.loads(row["data"]),
            }
        )
        if row["tab_id"] is None:
            top_blocks[row["item_id"]].append(block)
        else:
            tab_blocks[(row["item_id"], row["tab_id"])].append(block)

    tabs: dict[str, list[Tab]] = defaultdict(list)
    for row in tab_rows:
        tabs[row["item_id"]].append(
            Tab(
                id=row["id"],
                label=row["label"],
                icon=row["icon"],
                order=row["sort_order"],
                blocks=tab_blocks[(row["item_id"], row["id"])],
            )
        )

    items: list[Item] = []
    for row in rows:
        price = None
        if row["price_currency"] is not None:
            price = Price(amount=row["price_amount"], currency=row["price_currency"])
        items.append(
            Item(
                id=row["id"],
                desktop_id=row["desktop_id"],
                parent_id=row["parent_id"],
                variant=ItemVariant(row["variant"]),
                file_type=FileType(row["file_type"]) if row["file_type"] else None,
                title=row["title"],
                subtitle=row["subtitle"],
                description=row["description"],
                body=row["body"],
                header_image=row["header_image"],
                thumbnail_url=row["thumbnail_url"],
                url=row["url"],
                details=_load_entries(row["details"], DetailEntry),
                gallery=_load_entries(row["gallery"], GalleryEntry),
                links=_load_entries(row["links"], LinkEntry),
                use_tabs=bool(row["use_tabs"]),
                window_width=row["window_width"],
                tabs=tabs[row["id"]],
                blocks=top_blocks[row["id"]],
                order=row["sort_order"],
                position=Position(x=row["position_x"], y=row["position_y"]),
                z_index=row["z_index"],
                publish_status=PublishStatus(row["publish_status"]),
                published_at=_timestamp(row["published_at"]),
                access_level=row["access_level"],
                price=price,
                created_at=datetime.fromisoformat(row["created_at"]),
                updated_at=datetime.fromisoformat(row["updated_at"]),
            )
        )
    return items


def fetch_items(conn: sqlite3.Connection, desktop_id: str) -> list[Item]:
    """Every item of a desktop, in sibling order."""
    rows = conn.execute(
        "SELECT * FROM items WHERE desktop_id = ? "
        "ORDER BY sort_order, created_at, id",
        (desktop_id,),
    ).fetchall()
    return _hydrate(conn, rows)


def fetch_children(
    conn: sqlite3.Connection,
    desktop_id: str,
    parent_id: str | None,
) -> list[Item]:
    """Direct children of a folder (or root items when parent_id is None)."""
    rows = conn.execute(
        "SELECT * FROM items WHERE desktop_id = ? AND parent_id IS ? "
        "ORDER BY sort_order, created_at, id",
        (desktop_id, parent_id),
    ).fetchall()
    return _hydrate(conn, rows)


def fetch_item(conn: sqlite3.Connection, item_id: str) -> Item | None:
    """Load a single item, or None when it does not exist."""
    row = conn.execute("SELECT * FROM items WHERE id = ?", (item_id,)).fetchone()
    if row is None:
        return None
    return _hydrate(conn, [row])[0]


def require_owned(
    conn: sqlite3.Connection,
    desktop_id: str,
    item_id: str,
) -> sqlite3.Row:
    """Load an item row, enforcing that it belongs to the caller's desktop.

    Raises:
        DeskError: NOT_FOUND if missing, FORBIDDEN if on another desktop.
    """
    row = conn.execute("SELECT * FROM items WHERE id = ?", (item_id,)).fetchone()
    if row is None:
        raise DeskError(ErrorCode.NOT_FOUND, "Item not found")
    if row["desktop_id"] != desktop_id:
        raise DeskError(ErrorCode.FORBIDDEN, "Not authorized")
    return row


def require_folder(
    conn: sqlite3.Connection,
    desktop_id: str,
    parent_id: str,
) -> sqlite3.Row:
    """Load a prospective parent, which must be a folder on the same desktop.

    Raises:
        DeskError: INVALID_PARENT otherwise.
    """
    row = conn.execute("SELECT * FROM items WHERE id = ?", (parent_id,)).fetchone()
    if row is None or row["desktop_id"] != desktop_id:
        raise DeskError(ErrorCode.INVALID_PARENT, "Parent folder not found")
    if row["file_type"] != FileType.FOLDER.value:
        raise DeskError(ErrorCode.INVALID_PARENT, "Parent must be a folder")
    return row


def iter_ancestors(conn: sqlite3.Connection, start_id: str) -> Iterator[str]:
    """Yield start_id and then each ancestor up to the root.

    Stops early if the stored parent chain loops back on itself.
    """
    visited: set[str] = set()
    current: str | None = start_id
    while current is not None and current not in visited:
        visited.add(current)
        yield current
        row = conn.execute(
            "SELECT parent_id FROM items WHERE id = ?", (current,)
        ).fetchone()
        current = row["parent_id"] if row else None


def next_sibling_order(
    conn: sqlite3.Connection,
    desktop_id: str,
    parent_id: str | None,
) -> int:
    """Order value that places a new item after all current siblings."""
    row = conn.execute(
        "SELECT MAX(sort_order) AS max_order FROM items "
        "WHERE desktop_id = ? AND parent_id IS ?",
        (desktop_id, parent_id),
    ).fetchone()
    return 0 if row["max_order"] is None else row["max_order"] + 1


def replace_tabs(conn: sqlite3.Connection, item_id: str, tabs: list[Tab]) -> None:
    """Replace an item's tabs and the blocks nested under them."""
    conn.execute(
        "DELETE FROM blocks WHERE item_id = ? AND tab_id IS NOT NULL", (item_id,)
    )
    conn.execute("DELETE FROM tabs WHERE item_id = ?", (item_id,))
    for tab in tabs:
        conn.execute(
            "INSERT INTO tabs (item_id, id, label, icon, sort_order) "
            "VALUES (?, ?, ?, ?, ?)",
            (item_id, tab.id, tab.label, tab.icon, tab.order),
        )
        _insert_blocks(conn, item_id, tab.id, tab.blocks)


def replace_blocks(
    conn: sqlite3.Connection,
    item_id: str,
    blocks: list[Block],
) -> None:
    """Replace an item's top-level blocks."""
    conn.execute("DELETE FROM blocks WHERE item_id = ? AND tab_id IS NULL", (item_id,))
    _insert_blocks(conn, item_id, None, blocks)


def _insert_blocks(
    conn: sqlite3.Connection,
    item_id: str,
    tab_id: str | None,
    blocks: list[Block],
) -> None:
    conn.executemany(
        "INSERT INTO blocks (item_id, id, tab_id, type, data, sort_order) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        [
            (
                item_id,
                block.id,
                tab_id,
                block.type,
                json.dumps(block.data.model_dump(mode="json")),
                block.order,
            )
            for block in blocks
        ],
    )


class TreeStore:
    """Owns the item hierarchy of every desktop.

    All methods take the caller's desktop id; items belonging to a
    different desktop are reported as FORBIDDEN.
    """

    def __init__(
        self,
        db: Database,
        *,
        desktop_icon_limit: int = 20,
        content_file_limit: int = 100,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize tree store.

        Args:
            db: Shared database handle.
            desktop_icon_limit: Quota for generic desktop icons.
            content_file_limit: Quota for content files.
            clock: Source of timestamps.
        """
        self._db = db
        self._limits = {
            ItemVariant.DESKTOP_ICON: desktop_icon_limit,
            ItemVariant.CONTENT_FILE: content_file_limit,
        }
        self._clock = clock

    def create_item(self, desktop_id: str, data: ItemCreate) -> Item:
        """Create an item at the end of its sibling list.

        Args:
            desktop_id: Owning desktop.
            data: Validated creation request.

        Returns:
            The stored item.

        Raises:
            DeskError: INVALID_PARENT or LIMIT_REACHED.
        """
        with self._db.transaction() as conn:
            if data.parent_id is not None:
                require_folder(conn, desktop_id, data.parent_id)
            self._check_quota(conn, desktop_id, data.variant)

            item_id = new_id()
            now = self._clock().isoformat()
            order = next_sibling_order(conn, desktop_id, data.parent_id)

            # Plain desktop icons have no draft workflow
            if data.variant is ItemVariant.DESKTOP_ICON:
                status, published_at = PublishStatus.PUBLISHED, now
            else:
                status, published_at = PublishStatus.DRAFT, None

            conn.execute(
                """
                INSERT INTO items (
                    id, desktop_id, parent_id, variant, file_type,
                    title, subtitle, description, body, header_image,
                    thumbnail_url, url, details, gallery, links,
                    use_tabs, window_width, sort_order, position_x, position_y,
                    z_index, publish_status, published_at, access_level,
                    price_amount, price_currency, created_at, updated_at
                ) VALUES (
                    ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?,
                    ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?
                )
                """,
                (
                    item_id,
                    desktop_id,
                    data.parent_id,
                    data.variant.value,
                    data.file_type.value if data.file_type else None,
                    data.title,
                    data.subtitle,
                    data.description,
                    data.body,
                    data.header_image,
                    data.thumbnail_url,
                    data.url,
                    _dump_entries(data.details),
                    _dump_entries(data.gallery),
                    _dump_entries(data.links),
                    int(data.use_tabs),
                    data.window_width,
                    order,
                    data.position.x,
                    data.position.y,
                    data.z_index,
                    status.value,
                    published_at,
                    data.access_level.value,
                    data.price.amount if data.price else None,
                    data.price.currency if data.price else None,
                    now,
                    now,
                ),
            )
            replace_tabs(conn, item_id, data.tabs)
            replace_blocks(conn, item_id, data.blocks)
            item = fetch_item(conn, item_id)

        assert item is not None
        logger.info(
            "item_created",
            desktop_id=desktop_id,
            item_id=item_id,
            variant=data.variant.value,
            parent_id=data.parent_id,
            order=order,
        )
        return item

    def get_item(self, desktop_id: str, item_id: str) -> Item:
        """Retrieve one of the desktop's items.

        Raises:
            DeskError: NOT_FOUND or FORBIDDEN.
        """
        with self._db.read() as conn:
            require_owned(conn, desktop_id, item_id)
            item = fetch_item(conn, item_id)
        assert item is not None
        return item

    def list_items(self, desktop_id: str) -> list[Item]:
        """Every item of the desktop, sorted by sibling order."""
        with self._db.read() as conn:
            return fetch_items(conn, desktop_id)

    def list_children(self, desktop_id: str, parent_id: str | None) -> list[Item]:
        """Children of a folder, or root items when parent_id is None.

        Raises:
            DeskError: NOT_FOUND or FORBIDDEN for an unknown parent.
        """
        with self._db.read() as conn:
            if parent_id is not None:
                require_owned(conn, desktop_id, parent_id)
            return fetch_children(conn, desktop_id, parent_id)

    def update_item(self, desktop_id: str, item_id: str, patch: ItemPatch) -> Item:
        """Apply a partial update.

        Fields absent from the patch are untouched; fields sent as null
        are cleared; tabs or blocks sent as null are removed.

        Raises:
            DeskError: NOT_FOUND or FORBIDDEN.
        """
        changes = patch.changes()

        assignments: list[str] = []
        params: list[Any] = []
        for field, column in _SCALAR_COLUMNS.items():
            if field in changes:
                assignments.append(f"{column} = ?")
                params.append(changes[field])
        for field in _JSON_COLUMNS:
            if field in changes:
                assignments.append(f"{field} = ?")
                params.append(_dump_entries(changes[field]))
        if "use_tabs" in changes:
            assignments.append("use_tabs = ?")
            params.append(int(changes["use_tabs"]))
        if "position" in changes:
            assignments.extend(["position_x = ?", "position_y = ?"])
            params.extend([changes["position"].x, changes["position"].y])
        if "price" in changes:
            price: Price | None = changes["price"]
            assignments.extend(["price_amount = ?", "price_currency = ?"])
            params.extend([price.amount, price.currency] if price else [None, None])

        with self._db.transaction() as conn:
            require_owned(conn, desktop_id, item_id)

            assignments.append("updated_at = ?")
            params.append(self._clock().isoformat())
            conn.execute(
                f"UPDATE items SET {', '.join(assignments)} WHERE id = ?",
                [*params, item_id],
            )
            if "tabs" in changes:
                replace_tabs(conn, item_id, changes["tabs"] or [])
            if "blocks" in changes:
                replace_blocks(conn, item_id, changes["blocks"] or [])
            item = fetch_item(conn, item_id)

        assert item is not None
        logger.info(
            "item_updated",
            desktop_id=desktop_id,
            item_id=item_id,
            fields=sorted(changes),
        )
        return item

    def move_item(
        self,
        desktop_id: str,
        item_id: str,
        new_parent_id: str | None,
    ) -> Item:
        """Reparent an item, appending it to the new parent's children.

        Args:
            desktop_id: Owning desktop.
            item_id: Item to move.
            new_parent_id: Target folder, or None for the desktop root.

        Raises:
            DeskError: NOT_FOUND, FORBIDDEN or INVALID_PARENT.
        """
        with self._db.transaction() as conn:
            row = require_owned(conn, desktop_id, item_id)

            if new_parent_id is not None:
                if new_parent_id == item_id:
                    raise DeskError(
                        ErrorCode.INVALID_PARENT, "Cannot move item into itself"
                    )
                require_folder(conn, desktop_id, new_parent_id)
                if item_id in iter_ancestors(conn, new_parent_id):
                    raise DeskError(
                        ErrorCode.INVALID_PARENT,
                        "Cannot move folder into its own subfolder",
                    )

            if row["parent_id"] != new_parent_id:
                order = next_sibling_order(conn, desktop_id, new_parent_id)
                conn.execute(
                    "UPDATE items SET parent_id = ?, sort_order = ?, updated_at = ? "
                    "WHERE id = ?",
                    (new_parent_id, order, self._clock().isoformat(), item_id),
                )
            item = fetch_item(conn, item_id)

        assert item is not None
        logger.info(
            "item_moved",
            desktop_id=desktop_id,
            item_id=item_id,
            from_parent=row["parent_id"],
            to_parent=new_parent_id,
        )
        return item

    def delete_item(self, desktop_id: str, item_id: str) -> list[str]:
        """Delete an item together with all of its descendants.

        Returns:
            Ids of every removed item, the requested one first.

        Raises:
            DeskError: NOT_FOUND or FORBIDDEN.
        """
        with self._db.transaction() as conn:
            require_owned(conn, desktop_id, item_id)

            removed = [item_id]
            frontier = [item_id]
            while frontier:
                placeholders = ",".join("?" for _ in frontier)
                children = conn.execute(
                    f"SELECT id FROM items WHERE parent_id IN ({placeholders})",
                    frontier,
                ).fetchall()
                frontier = [child["id"] for child in children]
                removed.extend(frontier)

            placeholders = ",".join("?" for _ in removed)
            conn.execute(f"DELETE FROM items WHERE id IN ({placeholders})", removed)

        logger.info(
            "item_deleted",
            desktop_id=desktop_id,
            item_id=item_id,
            descendants=len(removed) - 1,
        )
        return removed

    def _check_quota(
        self,
        conn: sqlite3.Connection,
        desktop_id: str,
        variant: ItemVariant,
    ) -> None:
        limit = self._limits[variant]
        count = conn.execute(
            "SELECT COUNT(*) FROM items WHERE desktop_id = ? AND variant = ?",
            (desktop_id, variant.value),
        ).fetchone()[0]
        if count >= limit:
            noun = "desktop icons" if variant is ItemVariant.DESKTOP_ICON else "content files"
            raise DeskError(
                ErrorCode.LIMIT_REACHED, f"Maximum {limit} {noun} allowed"
            )
