"""Pydantic schemas for desktops, items, dock shortcuts and view settings."""

import math
import re
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Generic, Literal, Self, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from deskspace.desktop.blocks import Block

T = TypeVar("T")

POSITION_MIN = 0.0
POSITION_MAX = 100.0

PRESENT_DELAY_MIN = 1000
PRESENT_DELAY_MAX = 30000
PRESENT_DELAY_DEFAULT = 5000

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 5000
BODY_MAX_LENGTH = 500_000

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
URL_PATTERN = re.compile(r"^https?://\S+$")
HANDLE_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]{1,38}$")


def new_id() -> str:
    """Generate an opaque identifier."""
    return uuid.uuid4().hex


def clamp_coordinate(value: float) -> float:
    """Clamp a canvas coordinate into the [0, 100] percentage range.

    Raises:
        ValueError: If the value is NaN.
    """
    if math.isnan(value):
        raise ValueError("Coordinate must be a number")
    return min(max(value, POSITION_MIN), POSITION_MAX)


def normalize_email(value: str) -> str:
    """Lower-case and trim an email address, validating its shape.

    Raises:
        ValueError: If the value does not look like an email address.
    """
    email = value.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email address")
    return email


class ItemVariant(str, Enum):
    """Kind of desktop item."""

    DESKTOP_ICON = "generic-desktop-icon"
    CONTENT_FILE = "content-file"


class FileType(str, Enum):
    """Type of a content-file item."""

    NOTE = "note"
    CASE_STUDY = "case-study"
    FOLDER = "folder"
    IMAGE = "image"
    LINK = "link"
    EMBED = "embed"
    DOWNLOAD = "download"


class PublishStatus(str, Enum):
    """Visitor visibility of an item."""

    DRAFT = "draft"
    PUBLISHED = "published"


class AccessLevel(str, Enum):
    """Visitor access to an item's content."""

    FREE = "free"
    LOCKED = "locked"


class ViewMode(str, Enum):
    """Projection a visitor lands on."""

    DESKTOP = "desktop"
    PAGE = "page"
    PRESENT = "present"


class DockAction(str, Enum):
    """What a dock shortcut does when clicked."""

    OPEN_URL = "open-url"
    COMPOSE_EMAIL = "compose-email"
    TRIGGER_DOWNLOAD = "trigger-download"


# === Envelope ===


class ErrorBody(BaseModel):
    """Error detail inside a failed envelope."""

    code: str
    message: str


class ErrorResponse(BaseModel):
    """Envelope returned for every failed request."""

    success: Literal[False] = False
    error: ErrorBody


class Envelope(BaseModel, Generic[T]):
    """Envelope returned for every successful request."""

    success: Literal[True] = True
    data: T


# === Patch support ===


class PatchModel(BaseModel):
    """Partial update where each field is absent, null, or a value.

    Pydantic records which fields the caller actually sent in
    ``model_fields_set``; ``changes()`` returns only those, so an
    explicit null (clear) stays distinguishable from an omitted field
    (leave unchanged).
    """

    model_config = ConfigDict(extra="forbid")

    required_fields: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def reject_cleared_required(self) -> Self:
        for name in sorted(self.required_fields & self.model_fields_set):
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict[str, Any]:
        """Fields explicitly present in the request, including nulls."""
        return {name: getattr(self, name) for name in self.model_fields_set}


# === Item building blocks ===


class Position(BaseModel):
    """Percentage placement on the desktop canvas, clamped to [0, 100]."""

    x: float = 50.0
    y: float = 50.0

    @field_validator("x", "y")
    @classmethod
    def clamp(cls, v: float) -> float:
        """Clamp drag overshoot instead of rejecting it."""
        return clamp_coordinate(v)


class Price(BaseModel):
    """Price attached to a monetized item."""

    amount: float = Field(ge=0)
    currency: str = Field(pattern=r"^[A-Z]{3}$")

    @field_validator("currency", mode="before")
    @classmethod
    def upper_currency(cls, v: object) -> object:
        """Accept lower-case ISO codes."""
        return v.strip().upper() if isinstance(v, str) else v


class DetailEntry(BaseModel):
    """Label/value pair shown in an item's detail list."""

    label: str
    value: str


class GalleryEntry(BaseModel):
    """Image or video in an item's gallery."""

    type: Literal["image", "video"]
    url: str


class LinkEntry(BaseModel):
    """External link shown on an item."""

    label: str
    url: str


class Tab(BaseModel):
    """Ordered sub-grouping of an item's blocks."""

    id: str = Field(default_factory=new_id)
    label: str = Field(min_length=1, max_length=60)
    icon: str | None = None
    order: int = 0
    blocks: list[Block] = Field(default_factory=list)


def _unique_tab_ids(tabs: list[Tab] | None) -> list[Tab] | None:
    if tabs is not None:
        ids = [tab.id for tab in tabs]
        if len(ids) != len(set(ids)):
            raise ValueError("Tab ids must be unique")
    return tabs


# === Items ===


class Item(BaseModel):
    """A node of a desktop's content tree."""

    id: str
    desktop_id: str
    parent_id: str | None = None
    variant: ItemVariant
    file_type: FileType | None = None

    title: str
    subtitle: str | None = None
    description: str | None = None
    body: str | None = None
    header_image: str | None = None
    thumbnail_url: str | None = None
    url: str | None = None
    details: list[DetailEntry] | None = None
    gallery: list[GalleryEntry] | None = None
    links: list[LinkEntry] | None = None
    use_tabs: bool = False
    window_width: int | None = None
    tabs: list[Tab] = Field(default_factory=list)
    blocks: list[Block] = Field(default_factory=list)

    order: int
    position: Position
    z_index: int = 0

    publish_status: PublishStatus
    published_at: datetime | None = None
    access_level: AccessLevel = AccessLevel.FREE
    price: Price | None = None

    created_at: datetime
    updated_at: datetime

    @property
    def is_folder(self) -> bool:
        """Whether other items may be placed inside this one."""
        return self.file_type is FileType.FOLDER


class ItemCreate(BaseModel):
    """Request body for creating an item."""

    model_config = ConfigDict(extra="forbid")

    variant: ItemVariant = ItemVariant.CONTENT_FILE
    file_type: FileType | None = None
    parent_id: str | None = None

    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    subtitle: str | None = Field(default=None, max_length=TITLE_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    body: str | None = Field(default=None, max_length=BODY_MAX_LENGTH)
    header_image: str | None = None
    thumbnail_url: str | None = None
    url: str | None = None
    details: list[DetailEntry] | None = None
    gallery: list[GalleryEntry] | None = None
    links: list[LinkEntry] | None = None
    use_tabs: bool = False
    window_width: int | None = Field(default=None, gt=0)
    tabs: list[Tab] = Field(default_factory=list)
    blocks: list[Block] = Field(default_factory=list)

    position: Position = Field(default_factory=Position)
    z_index: int = 0
    access_level: AccessLevel = AccessLevel.FREE
    price: Price | None = None

    @field_validator("tabs")
    @classmethod
    def check_tabs(cls, v: list[Tab] | None) -> list[Tab] | None:
        """Tab ids key the stored rows."""
        return _unique_tab_ids(v)

    @model_validator(mode="after")
    def check_variant(self) -> Self:
        if self.variant is ItemVariant.CONTENT_FILE and self.file_type is None:
            raise ValueError("file_type is required for content files")
        if self.variant is ItemVariant.DESKTOP_ICON and self.file_type is not None:
            raise ValueError("Desktop icons do not have a file_type")
        return self


class ItemPatch(PatchModel):
    """Partial update of an item's content and layout fields."""

    required_fields: ClassVar[frozenset[str]] = frozenset(
        {"title", "position", "z_index", "order", "use_tabs"}
    )

    title: str | None = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    subtitle: str | None = Field(default=None, max_length=TITLE_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    body: str | None = Field(default=None, max_length=BODY_MAX_LENGTH)
    header_image: str | None = None
    thumbnail_url: str | None = None
    url: str | None = None
    details: list[DetailEntry] | None = None
    gallery: list[GalleryEntry] | None = None
    links: list[LinkEntry] | None = None
    use_tabs: bool | None = None
    window_width: int | None = Field(default=None, gt=0)
    tabs: list[Tab] | None = None
    blocks: list[Block] | None = None
    position: Position | None = None
    z_index: int | None = None
    order: int | None = None
    price: Price | None = None

    @field_validator("tabs")
    @classmethod
    def check_tabs(cls, v: list[Tab] | None) -> list[Tab] | None:
        """Tab ids key the stored rows."""
        return _unique_tab_ids(v)


class MoveRequest(BaseModel):
    """Request body for reparenting an item; null moves it to the root."""

    parent_id: str | None


class OrderEntry(BaseModel):
    """One row of a batch reorder."""

    id: str
    order: int


class PositionEntry(BaseModel):
    """One row of a batch reposition."""

    id: str
    x: float
    y: float
    order: int | None = None

    @field_validator("x", "y")
    @classmethod
    def clamp(cls, v: float) -> float:
        """Clamp drag overshoot instead of rejecting it."""
        return clamp_coordinate(v)


class DeletedItems(BaseModel):
    """Ids removed by a cascading delete."""

    ids: list[str]


# === Desktop ===


class Desktop(BaseModel):
    """Owner-scoped container for items, dock shortcuts and view settings."""

    id: str
    user_id: str
    handle: str
    theme: str = "sketch"
    background_url: str | None = None
    background_position: Literal["cover", "contain", "center"] = "cover"
    title: str | None = None
    description: str | None = None
    is_public: bool = True
    created_at: datetime
    updated_at: datetime


class DesktopPatch(PatchModel):
    """Partial update of a desktop's display settings."""

    required_fields: ClassVar[frozenset[str]] = frozenset(
        {"handle", "theme", "background_position", "is_public"}
    )

    handle: str | None = None
    theme: str | None = Field(default=None, min_length=1, max_length=40)
    background_url: str | None = None
    background_position: Literal["cover", "contain", "center"] | None = None
    title: str | None = Field(default=None, max_length=60)
    description: str | None = Field(default=None, max_length=160)
    is_public: bool | None = None

    @field_validator("handle")
    @classmethod
    def check_handle(cls, v: str | None) -> str | None:
        """Handles are lower-case URL segments."""
        if v is None:
            return v
        handle = v.strip().lower()
        if not HANDLE_PATTERN.match(handle):
            raise ValueError(
                "Handle must be 2-39 characters of a-z, 0-9, '-' or '_'"
            )
        return handle


# === Dock ===


def _check_dock_target(action: DockAction, target: str) -> None:
    if action is DockAction.COMPOSE_EMAIL:
        normalize_email(target)
    elif not URL_PATTERN.match(target):
        raise ValueError(f"Target for {action.value} must be an http(s) URL")


class DockItem(BaseModel):
    """Shortcut shown in the desktop's dock."""

    id: str
    desktop_id: str
    icon: str
    label: str
    action: DockAction
    target: str
    order: int
    created_at: datetime
    updated_at: datetime


class DockItemCreate(BaseModel):
    """Request body for adding a dock shortcut."""

    model_config = ConfigDict(extra="forbid")

    icon: str = Field(min_length=1)
    label: str = Field(min_length=1, max_length=30)
    action: DockAction
    target: str = Field(min_length=1)

    @model_validator(mode="after")
    def check_target(self) -> Self:
        _check_dock_target(self.action, self.target)
        return self


class DockItemPatch(PatchModel):
    """Partial update of a dock shortcut."""

    required_fields: ClassVar[frozenset[str]] = frozenset(
        {"icon", "label", "action", "target"}
    )

    icon: str | None = Field(default=None, min_length=1)
    label: str | None = Field(default=None, min_length=1, max_length=30)
    action: DockAction | None = None
    target: str | None = Field(default=None, min_length=1)


def validate_dock_target(action: DockAction, target: str) -> None:
    """Check that a merged dock action/target pair is consistent.

    Raises:
        ValueError: If the target does not suit the action.
    """
    _check_dock_target(action, target)


# === View settings ===


class ViewSettings(BaseModel):
    """Per-desktop projection preferences."""

    active_mode: ViewMode = ViewMode.DESKTOP
    page_order: list[str] = Field(default_factory=list)
    present_order: list[str] = Field(default_factory=list)
    present_auto: bool = False
    present_delay: int = Field(
        default=PRESENT_DELAY_DEFAULT,
        ge=PRESENT_DELAY_MIN,
        le=PRESENT_DELAY_MAX,
    )


class ViewSettingsUpdate(PatchModel):
    """Partial update of view settings."""

    required_fields: ClassVar[frozenset[str]] = frozenset(
        {"active_mode", "page_order", "present_order", "present_auto", "present_delay"}
    )

    active_mode: ViewMode | None = None
    page_order: list[str] | None = None
    present_order: list[str] | None = None
    present_auto: bool | None = None
    present_delay: int | None = Field(
        default=None,
        ge=PRESENT_DELAY_MIN,
        le=PRESENT_DELAY_MAX,
    )


# === Visitor access ===


class UnlockRequest(BaseModel):
    """Visitor email submitted to unlock a gated item."""

    item_id: str = Field(min_length=1)
    email: str = Field(min_length=3, max_length=254)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        """Normalize so ledger keys match regardless of casing."""
        return normalize_email(v)


class UnlockStatus(BaseModel):
    """Whether an email has passed a desktop's email gate."""

    unlocked: bool


# === Snapshots ===


class DesktopSnapshot(BaseModel):
    """Consistent read-only view of one desktop, taken under a single lock.

    Projections are pure functions of a snapshot, so everything they need
    is captured here.
    """

    model_config = ConfigDict(frozen=True)

    desktop: Desktop
    items: tuple[Item, ...]
    view: ViewSettings
