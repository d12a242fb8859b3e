"""Desktop settings and view settings tests."""

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from deskspace.desktop.errors import DeskError, ErrorCode
from deskspace.desktop.repositories import DesktopRepository
from deskspace.desktop.schemas import (
    Desktop,
    DesktopPatch,
    ViewMode,
    ViewSettingsUpdate,
)

VIEW = "/api/v1/desktop/view"


class TestDesktopRepository:
    def test_get_or_create_is_idempotent(self, desktops: DesktopRepository) -> None:
        first = desktops.get_or_create("alice")
        second = desktops.get_or_create("alice")
        assert first.id == second.id
        assert first.handle == "alice"
        assert first.theme == "sketch"
        assert first.is_public is True

    def test_default_handle_avoids_collisions(self, desktops: DesktopRepository) -> None:
        desktops.get_or_create("Alice")
        other = desktops.get_or_create("alice")
        assert other.handle == "alice-2"

    def test_handle_conflict_is_duplicate(
        self,
        desktops: DesktopRepository,
        desktop: Desktop,
    ) -> None:
        other = desktops.get_or_create("bob")
        with pytest.raises(DeskError) as exc_info:
            desktops.update(other.id, DesktopPatch(handle="alice"))
        assert exc_info.value.code is ErrorCode.DUPLICATE

    def test_handle_is_normalized(
        self,
        desktops: DesktopRepository,
        desktop: Desktop,
    ) -> None:
        updated = desktops.update(desktop.id, DesktopPatch(handle="  Studio-Nine "))
        assert updated.handle == "studio-nine"
        assert desktops.get_by_handle("STUDIO-NINE").id == desktop.id

    def test_patch_clears_optional_fields(
        self,
        desktops: DesktopRepository,
        desktop: Desktop,
    ) -> None:
        desktops.update(desktop.id, DesktopPatch(title="Hi", description="There"))
        updated = desktops.update(desktop.id, DesktopPatch.model_validate({"title": None}))
        assert updated.title is None
        assert updated.description == "There"

    def test_unknown_handle(self, desktops: DesktopRepository) -> None:
        with pytest.raises(DeskError) as exc_info:
            desktops.get_by_handle("ghost")
        assert exc_info.value.code is ErrorCode.NOT_FOUND


class TestViewSettings:
    def test_defaults_without_row(
        self,
        desktops: DesktopRepository,
        desktop: Desktop,
    ) -> None:
        view = desktops.get_view_settings(desktop.id)
        assert view.active_mode is ViewMode.DESKTOP
        assert view.page_order == []
        assert view.present_auto is False
        assert view.present_delay == 5000

    def test_updates_merge(
        self,
        desktops: DesktopRepository,
        desktop: Desktop,
    ) -> None:
        desktops.set_view_settings(desktop.id, ViewSettingsUpdate(present_delay=2000))
        desktops.set_view_settings(
            desktop.id, ViewSettingsUpdate(active_mode=ViewMode.PRESENT)
        )
        view = desktops.get_view_settings(desktop.id)
        assert view.present_delay == 2000
        assert view.active_mode is ViewMode.PRESENT

    @pytest.mark.parametrize("delay", [999, 30001])
    def test_delay_bounds(self, delay: int) -> None:
        with pytest.raises(ValidationError):
            ViewSettingsUpdate(present_delay=delay)

    def test_delay_bounds_inclusive(self) -> None:
        assert ViewSettingsUpdate(present_delay=1000).present_delay == 1000
        assert ViewSettingsUpdate(present_delay=30000).present_delay == 30000


def test_desktop_api(client: TestClient, owner_headers: dict[str, str]) -> None:
    created = client.get("/api/v1/desktop", headers=owner_headers)
    assert created.status_code == 200
    assert created.json()["data"]["handle"] == "alice"

    patched = client.patch(
        "/api/v1/desktop",
        json={"background_position": "contain", "description": "Portfolio"},
        headers=owner_headers,
    )
    data = patched.json()["data"]
    assert data["background_position"] == "contain"
    assert data["description"] == "Portfolio"


def test_desktop_api_duplicate_handle(
    client: TestClient,
    owner_headers: dict[str, str],
    other_headers: dict[str, str],
) -> None:
    client.get("/api/v1/desktop", headers=owner_headers)
    response = client.patch("/api/v1/desktop", json={"handle": "alice"}, headers=other_headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "DUPLICATE"


def test_view_api(client: TestClient, owner_headers: dict[str, str]) -> None:
    default = client.get(VIEW, headers=owner_headers).json()["data"]
    assert default["active_mode"] == "desktop"

    updated = client.put(
        VIEW,
        json={"active_mode": "present", "present_auto": True},
        headers=owner_headers,
    ).json()["data"]
    assert updated["active_mode"] == "present"
    assert updated["present_auto"] is True
    assert updated["present_delay"] == 5000


@pytest.mark.parametrize(
    "body",
    [
        {"present_delay": 500},
        {"active_mode": "slideshow"},
        {"active_mode": None},
    ],
)
def test_view_api_rejects_invalid(
    client: TestClient,
    owner_headers: dict[str, str],
    body: dict[str, object],
) -> None:
    response = client.put(VIEW, json=body, headers=owner_headers)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
