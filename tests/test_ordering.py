"""Batch reorder and reposition tests."""

from collections.abc import Callable

import pytest

from deskspace.desktop.errors import DeskError, ErrorCode
from deskspace.desktop.repositories import (
    DesktopRepository,
    DockRepository,
    OrderingService,
    TreeStore,
)
from deskspace.desktop.schemas import (
    Desktop,
    DockAction,
    DockItemCreate,
    FileType,
    Item,
    OrderEntry,
    PositionEntry,
)


def _titles(items: list[Item]) -> list[str]:
    return [item.title for item in items]


def test_reorder_reads_back_submitted_order(
    ordering: OrderingService,
    tree: TreeStore,
    desktop: Desktop,
    make_item: Callable[..., Item],
) -> None:
    a, b, c = make_item("A"), make_item("B"), make_item("C")

    result = ordering.reorder_siblings(
        desktop.id,
        [OrderEntry(id=c.id, order=0), OrderEntry(id=a.id, order=1), OrderEntry(id=b.id, order=2)],
    )

    assert _titles(result) == ["C", "A", "B"]
    assert _titles(tree.list_children(desktop.id, None)) == ["C", "A", "B"]


def test_equal_orders_fall_back_to_creation_time(
    ordering: OrderingService,
    tree: TreeStore,
    desktop: Desktop,
    make_item: Callable[..., Item],
) -> None:
    """Ties sort stably by creation time."""
    a, b = make_item("A"), make_item("B")
    ordering.reorder_siblings(
        desktop.id, [OrderEntry(id=b.id, order=5), OrderEntry(id=a.id, order=5)]
    )
    assert _titles(tree.list_children(desktop.id, None)) == ["A", "B"]


def test_reorder_with_foreign_id_changes_nothing(
    ordering: OrderingService,
    tree: TreeStore,
    desktop: Desktop,
    make_item: Callable[..., Item],
) -> None:
    """One bad row fails the whole batch."""
    a, b = make_item("A"), make_item("B")

    with pytest.raises(DeskError) as exc_info:
        ordering.reorder_siblings(
            desktop.id,
            [
                OrderEntry(id=b.id, order=0),
                OrderEntry(id=a.id, order=1),
                OrderEntry(id="not-on-this-desktop", order=2),
            ],
        )

    assert exc_info.value.code is ErrorCode.NOT_FOUND
    assert _titles(tree.list_children(desktop.id, None)) == ["A", "B"]
    assert [item.order for item in tree.list_children(desktop.id, None)] == [0, 1]


def test_reorder_item_of_other_desktop_is_not_found(
    ordering: OrderingService,
    desktops: DesktopRepository,
    make_item: Callable[..., Item],
) -> None:
    note = make_item("Note")
    other = desktops.get_or_create("bob")
    with pytest.raises(DeskError) as exc_info:
        ordering.reorder_siblings(other.id, [OrderEntry(id=note.id, order=3)])
    assert exc_info.value.code is ErrorCode.NOT_FOUND


def test_reorder_across_parents_rejected(
    ordering: OrderingService,
    desktop: Desktop,
    make_item: Callable[..., Item],
) -> None:
    folder = make_item("Folder", file_type=FileType.FOLDER)
    inside = make_item("Inside", parent_id=folder.id)
    outside = make_item("Outside")

    with pytest.raises(DeskError) as exc_info:
        ordering.reorder_siblings(
            desktop.id,
            [OrderEntry(id=inside.id, order=0), OrderEntry(id=outside.id, order=1)],
        )
    assert exc_info.value.code is ErrorCode.VALIDATION_ERROR


@pytest.mark.parametrize("entries", [[], None])
def test_reorder_rejects_empty_and_duplicate_batches(
    ordering: OrderingService,
    desktop: Desktop,
    make_item: Callable[..., Item],
    entries: list[OrderEntry] | None,
) -> None:
    if entries is None:
        note = make_item("Note")
        entries = [OrderEntry(id=note.id, order=0), OrderEntry(id=note.id, order=1)]
    with pytest.raises(DeskError) as exc_info:
        ordering.reorder_siblings(desktop.id, entries)
    assert exc_info.value.code is ErrorCode.VALIDATION_ERROR


def test_reposition_clamps_and_keeps_order_when_omitted(
    ordering: OrderingService,
    desktop: Desktop,
    make_item: Callable[..., Item],
) -> None:
    a, b = make_item("A"), make_item("B")

    items = ordering.reposition_items(
        desktop.id,
        [
            PositionEntry(id=a.id, x=-20, y=500),
            PositionEntry(id=b.id, x=30, y=40, order=-1),
        ],
    )

    by_id = {item.id: item for item in items}
    assert (by_id[a.id].position.x, by_id[a.id].position.y) == (0.0, 100.0)
    assert by_id[a.id].order == 0
    assert by_id[b.id].order == -1
    assert _titles(items) == ["B", "A"]


def test_reposition_is_atomic(
    ordering: OrderingService,
    tree: TreeStore,
    desktop: Desktop,
    make_item: Callable[..., Item],
) -> None:
    a = make_item("A", position={"x": 10, "y": 10})
    with pytest.raises(DeskError):
        ordering.reposition_items(
            desktop.id,
            [PositionEntry(id=a.id, x=90, y=90), PositionEntry(id="missing", x=1, y=1)],
        )
    stored = tree.get_item(desktop.id, a.id)
    assert (stored.position.x, stored.position.y) == (10.0, 10.0)


class TestDockReorder:
    def _fill(self, dock: DockRepository, desktop: Desktop, count: int) -> list[str]:
        return [
            dock.add(
                desktop.id,
                DockItemCreate(
                    icon="link",
                    label=f"Link {i}",
                    action=DockAction.OPEN_URL,
                    target=f"https://example.com/{i}",
                ),
            ).id
            for i in range(count)
        ]

    def test_reorder_dock(
        self,
        ordering: OrderingService,
        dock: DockRepository,
        desktop: Desktop,
    ) -> None:
        first, second, third = self._fill(dock, desktop, 3)
        result = ordering.reorder_dock(
            desktop.id,
            [
                OrderEntry(id=third, order=0),
                OrderEntry(id=first, order=1),
                OrderEntry(id=second, order=2),
            ],
        )
        assert [entry.id for entry in result] == [third, first, second]

    def test_reorder_dock_caps_batch_size(
        self,
        ordering: OrderingService,
        desktop: Desktop,
    ) -> None:
        entries = [OrderEntry(id=f"d{i}", order=i) for i in range(9)]
        with pytest.raises(DeskError) as exc_info:
            ordering.reorder_dock(desktop.id, entries)
        assert exc_info.value.code is ErrorCode.VALIDATION_ERROR

    def test_reorder_dock_unknown_id(
        self,
        ordering: OrderingService,
        dock: DockRepository,
        desktop: Desktop,
    ) -> None:
        (only,) = self._fill(dock, desktop, 1)
        with pytest.raises(DeskError) as exc_info:
            ordering.reorder_dock(
                desktop.id,
                [OrderEntry(id=only, order=1), OrderEntry(id="nope", order=0)],
            )
        assert exc_info.value.code is ErrorCode.NOT_FOUND
        assert dock.list_dock(desktop.id)[0].order == 0
