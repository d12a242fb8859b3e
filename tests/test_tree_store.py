"""Tree store tests: creation, patching, reparenting and deletion."""

from collections.abc import Callable

import pytest
from pydantic import ValidationError

from deskspace.desktop.database import Database
from deskspace.desktop.errors import DeskError, ErrorCode
from deskspace.desktop.repositories import DesktopRepository, TreeStore
from deskspace.desktop.schemas import (
    Desktop,
    FileType,
    Item,
    ItemCreate,
    ItemPatch,
    ItemVariant,
    Position,
    PublishStatus,
)


def test_create_assigns_increasing_sibling_order(make_item: Callable[..., Item]) -> None:
    """New items go after their existing siblings."""
    first = make_item("First")
    second = make_item("Second")
    assert (first.order, second.order) == (0, 1)


def test_create_order_is_per_parent(make_item: Callable[..., Item]) -> None:
    """Children of a folder are numbered independently of the root."""
    make_item("Root note")
    folder = make_item("Folder", file_type=FileType.FOLDER)
    child = make_item("Child", parent_id=folder.id)
    assert child.order == 0
    assert child.parent_id == folder.id


@pytest.mark.parametrize(
    ("x", "y", "expected"),
    [
        (-50.0, 250.0, (0.0, 100.0)),
        (1e9, -1e9, (100.0, 0.0)),
        (42.5, 7.0, (42.5, 7.0)),
    ],
)
def test_create_clamps_position(
    make_item: Callable[..., Item],
    x: float,
    y: float,
    expected: tuple[float, float],
) -> None:
    """Positions are always stored within [0, 100]."""
    item = make_item(position={"x": x, "y": y})
    assert (item.position.x, item.position.y) == expected


def test_content_files_start_as_draft_and_icons_published(
    make_item: Callable[..., Item],
) -> None:
    note = make_item("Note")
    icon = make_item("Icon", variant=ItemVariant.DESKTOP_ICON)
    assert note.publish_status is PublishStatus.DRAFT
    assert note.published_at is None
    assert icon.publish_status is PublishStatus.PUBLISHED
    assert icon.file_type is None


def test_create_under_non_folder_is_invalid_parent(
    make_item: Callable[..., Item],
) -> None:
    note = make_item("Note")
    with pytest.raises(DeskError) as exc_info:
        make_item("Child", parent_id=note.id)
    assert exc_info.value.code is ErrorCode.INVALID_PARENT


def test_create_under_missing_parent_is_invalid_parent(
    make_item: Callable[..., Item],
) -> None:
    with pytest.raises(DeskError) as exc_info:
        make_item("Orphan", parent_id="missing")
    assert exc_info.value.code is ErrorCode.INVALID_PARENT


def test_create_under_other_desktops_folder_is_invalid_parent(
    tree: TreeStore,
    desktops: DesktopRepository,
    make_item: Callable[..., Item],
) -> None:
    """Parents must live on the same desktop."""
    folder = make_item("Folder", file_type=FileType.FOLDER)
    other = desktops.get_or_create("bob")
    with pytest.raises(DeskError) as exc_info:
        tree.create_item(
            other.id,
            ItemCreate(title="Intruder", file_type=FileType.NOTE, parent_id=folder.id),
        )
    assert exc_info.value.code is ErrorCode.INVALID_PARENT


def test_content_file_quota_boundary(db: Database, desktop: Desktop) -> None:
    """The last allowed item succeeds and the next one is refused."""
    tree = TreeStore(db, content_file_limit=20)
    for i in range(20):
        tree.create_item(desktop.id, ItemCreate(title=f"Note {i}", file_type=FileType.NOTE))

    with pytest.raises(DeskError) as exc_info:
        tree.create_item(desktop.id, ItemCreate(title="One too many", file_type=FileType.NOTE))
    assert exc_info.value.code is ErrorCode.LIMIT_REACHED
    assert exc_info.value.message == "Maximum 20 content files allowed"


def test_default_desktop_icon_quota(tree: TreeStore, desktop: Desktop) -> None:
    """The 20th generic icon succeeds and the 21st is refused."""
    for i in range(20):
        tree.create_item(
            desktop.id, ItemCreate(title=f"Icon {i}", variant=ItemVariant.DESKTOP_ICON)
        )

    with pytest.raises(DeskError) as exc_info:
        tree.create_item(
            desktop.id, ItemCreate(title="Icon 21", variant=ItemVariant.DESKTOP_ICON)
        )
    assert exc_info.value.code is ErrorCode.LIMIT_REACHED
    assert exc_info.value.message == "Maximum 20 desktop icons allowed"


def test_default_content_file_quota(tree: TreeStore, desktop: Desktop) -> None:
    """The 100th content file succeeds and the 101st is refused."""
    for i in range(100):
        tree.create_item(desktop.id, ItemCreate(title=f"Note {i}", file_type=FileType.NOTE))

    with pytest.raises(DeskError) as exc_info:
        tree.create_item(desktop.id, ItemCreate(title="Note 101", file_type=FileType.NOTE))
    assert exc_info.value.code is ErrorCode.LIMIT_REACHED
    assert exc_info.value.message == "Maximum 100 content files allowed"


def test_desktop_icon_quota_is_separate(db: Database, desktop: Desktop) -> None:
    tree = TreeStore(db, desktop_icon_limit=2, content_file_limit=2)
    for i in range(2):
        tree.create_item(
            desktop.id, ItemCreate(title=f"Icon {i}", variant=ItemVariant.DESKTOP_ICON)
        )
    with pytest.raises(DeskError) as exc_info:
        tree.create_item(
            desktop.id, ItemCreate(title="Icon 3", variant=ItemVariant.DESKTOP_ICON)
        )
    assert exc_info.value.code is ErrorCode.LIMIT_REACHED

    # Content files still have room
    tree.create_item(desktop.id, ItemCreate(title="Note", file_type=FileType.NOTE))


def test_create_rejects_unknown_block_type() -> None:
    with pytest.raises(ValidationError):
        ItemCreate(
            title="Note",
            file_type=FileType.NOTE,
            blocks=[{"type": "hologram", "data": {}}],
        )


def test_create_requires_file_type_for_content_files() -> None:
    with pytest.raises(ValidationError):
        ItemCreate(title="Note", variant=ItemVariant.CONTENT_FILE)


def test_tabs_and_blocks_round_trip_in_order(make_item: Callable[..., Item]) -> None:
    item = make_item(
        "Case study",
        file_type=FileType.CASE_STUDY,
        use_tabs=True,
        tabs=[
            {
                "id": "overview",
                "label": "Overview",
                "order": 0,
                "blocks": [
                    {"type": "heading", "order": 0, "data": {"text": "Hello", "level": 1}},
                    {"type": "text", "order": 1, "data": {"content": "Body"}},
                ],
            },
            {"id": "results", "label": "Results", "order": 1},
        ],
        blocks=[{"type": "divider", "order": 0}],
    )

    assert [tab.id for tab in item.tabs] == ["overview", "results"]
    assert [block.type for block in item.tabs[0].blocks] == ["heading", "text"]
    assert item.tabs[0].blocks[0].data.text == "Hello"
    assert item.tabs[1].blocks == []
    assert [block.type for block in item.blocks] == ["divider"]


def test_get_item_enforces_ownership(
    tree: TreeStore,
    desktops: DesktopRepository,
    make_item: Callable[..., Item],
) -> None:
    note = make_item("Note")
    other = desktops.get_or_create("bob")

    with pytest.raises(DeskError) as forbidden:
        tree.get_item(other.id, note.id)
    assert forbidden.value.code is ErrorCode.FORBIDDEN

    with pytest.raises(DeskError) as missing:
        tree.get_item(other.id, "missing")
    assert missing.value.code is ErrorCode.NOT_FOUND


class TestUpdate:
    """Patch semantics: omitted unchanged, null clears."""

    def test_omitted_fields_are_unchanged(
        self,
        tree: TreeStore,
        desktop: Desktop,
        make_item: Callable[..., Item],
    ) -> None:
        note = make_item("Note", subtitle="Sub", description="Desc")
        updated = tree.update_item(desktop.id, note.id, ItemPatch(title="Renamed"))
        assert updated.title == "Renamed"
        assert updated.subtitle == "Sub"
        assert updated.description == "Desc"

    def test_null_clears_optional_fields(
        self,
        tree: TreeStore,
        desktop: Desktop,
        make_item: Callable[..., Item],
    ) -> None:
        note = make_item("Note", subtitle="Sub", description="Desc")
        patch = ItemPatch.model_validate({"subtitle": None})
        updated = tree.update_item(desktop.id, note.id, patch)
        assert updated.subtitle is None
        assert updated.description == "Desc"

    def test_null_tabs_and_blocks_remove_them(
        self,
        tree: TreeStore,
        desktop: Desktop,
        make_item: Callable[..., Item],
    ) -> None:
        note = make_item(
            "Note",
            tabs=[{"label": "One", "blocks": [{"type": "text", "data": {"content": "x"}}]}],
            blocks=[{"type": "text", "data": {"content": "y"}}],
        )
        patch = ItemPatch.model_validate({"tabs": None, "blocks": None})
        updated = tree.update_item(desktop.id, note.id, patch)
        assert updated.tabs == []
        assert updated.blocks == []

    @pytest.mark.parametrize("field", ["title", "position", "z_index", "order", "use_tabs"])
    def test_required_fields_cannot_be_cleared(self, field: str) -> None:
        with pytest.raises(ValidationError):
            ItemPatch.model_validate({field: None})

    def test_position_patch_is_clamped(
        self,
        tree: TreeStore,
        desktop: Desktop,
        make_item: Callable[..., Item],
    ) -> None:
        note = make_item("Note")
        patch = ItemPatch(position=Position(x=-5, y=105))
        updated = tree.update_item(desktop.id, note.id, patch)
        assert (updated.position.x, updated.position.y) == (0.0, 100.0)

    def test_price_can_be_set_and_cleared(
        self,
        tree: TreeStore,
        desktop: Desktop,
        make_item: Callable[..., Item],
    ) -> None:
        note = make_item("Note")
        priced = tree.update_item(
            desktop.id,
            note.id,
            ItemPatch.model_validate({"price": {"amount": 9.5, "currency": "usd"}}),
        )
        assert priced.price is not None
        assert priced.price.currency == "USD"

        cleared = tree.update_item(
            desktop.id, note.id, ItemPatch.model_validate({"price": None})
        )
        assert cleared.price is None

    def test_last_write_wins(
        self,
        tree: TreeStore,
        desktop: Desktop,
        make_item: Callable[..., Item],
    ) -> None:
        """Two updates based on the same read both apply; the later one wins.

        There is no version check, so the earlier writer's title is lost.
        """
        note = make_item("Original")
        tree.update_item(desktop.id, note.id, ItemPatch(title="Writer A"))
        tree.update_item(desktop.id, note.id, ItemPatch(title="Writer B"))
        assert tree.get_item(desktop.id, note.id).title == "Writer B"


class TestMove:
    """Reparenting rules."""

    def test_move_into_folder_appends(
        self,
        tree: TreeStore,
        desktop: Desktop,
        make_item: Callable[..., Item],
    ) -> None:
        folder = make_item("Folder", file_type=FileType.FOLDER)
        make_item("Existing", parent_id=folder.id)
        note = make_item("Note")

        moved = tree.move_item(desktop.id, note.id, folder.id)
        assert moved.parent_id == folder.id
        assert moved.order == 1

    def test_move_to_root(
        self,
        tree: TreeStore,
        desktop: Desktop,
        make_item: Callable[..., Item],
    ) -> None:
        folder = make_item("Folder", file_type=FileType.FOLDER)
        note = make_item("Note", parent_id=folder.id)
        moved = tree.move_item(desktop.id, note.id, None)
        assert moved.parent_id is None

    def test_move_into_self_rejected(
        self,
        tree: TreeStore,
        desktop: Desktop,
        make_item: Callable[..., Item],
    ) -> None:
        folder = make_item("Folder", file_type=FileType.FOLDER)
        with pytest.raises(DeskError) as exc_info:
            tree.move_item(desktop.id, folder.id, folder.id)
        assert exc_info.value.code is ErrorCode.INVALID_PARENT

    def test_move_into_descendant_rejected(
        self,
        tree: TreeStore,
        desktop: Desktop,
        make_item: Callable[..., Item],
    ) -> None:
        outer = make_item("Outer", file_type=FileType.FOLDER)
        middle = make_item("Middle", file_type=FileType.FOLDER, parent_id=outer.id)
        inner = make_item("Inner", file_type=FileType.FOLDER, parent_id=middle.id)

        with pytest.raises(DeskError) as exc_info:
            tree.move_item(desktop.id, outer.id, inner.id)
        assert exc_info.value.code is ErrorCode.INVALID_PARENT
        assert tree.get_item(desktop.id, outer.id).parent_id is None

    def test_move_into_non_folder_rejected(
        self,
        tree: TreeStore,
        desktop: Desktop,
        make_item: Callable[..., Item],
    ) -> None:
        note = make_item("Note")
        other = make_item("Other")
        with pytest.raises(DeskError) as exc_info:
            tree.move_item(desktop.id, other.id, note.id)
        assert exc_info.value.code is ErrorCode.INVALID_PARENT


class TestDelete:
    def test_delete_cascades_to_descendants(
        self,
        tree: TreeStore,
        desktop: Desktop,
        make_item: Callable[..., Item],
    ) -> None:
        folder = make_item("Folder", file_type=FileType.FOLDER)
        sub = make_item("Sub", file_type=FileType.FOLDER, parent_id=folder.id)
        leaf = make_item("Leaf", parent_id=sub.id)
        keep = make_item("Keep")

        removed = tree.delete_item(desktop.id, folder.id)

        assert removed[0] == folder.id
        assert set(removed) == {folder.id, sub.id, leaf.id}
        assert [item.id for item in tree.list_items(desktop.id)] == [keep.id]

    def test_delete_other_desktops_item_forbidden(
        self,
        tree: TreeStore,
        desktops: DesktopRepository,
        make_item: Callable[..., Item],
    ) -> None:
        note = make_item("Note")
        other = desktops.get_or_create("bob")
        with pytest.raises(DeskError) as exc_info:
            tree.delete_item(other.id, note.id)
        assert exc_info.value.code is ErrorCode.FORBIDDEN
