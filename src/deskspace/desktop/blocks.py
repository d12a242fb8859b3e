"""Typed content blocks, discriminated by their ``type`` tag."""

import uuid
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


def _new_id() -> str:
    return uuid.uuid4().hex


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid")


class TextData(_Payload):
    content: str = ""


class HeadingData(_Payload):
    text: str = ""
    level: Literal[1, 2, 3] = 2


class DividerData(_Payload):
    style: Literal["line", "dots", "space"] = "line"


class QuoteData(_Payload):
    text: str = ""
    attribution: str | None = None
    source: str | None = None
    style: Literal["simple", "large", "testimonial"] = "simple"


class CalloutData(_Payload):
    text: str = ""
    icon: str | None = None
    style: Literal["info", "warning", "success", "note"] = "info"


class LabeledValue(_Payload):
    label: str
    value: str
    color: str | None = None


class DetailsData(_Payload):
    items: list[LabeledValue] = Field(default_factory=list)


class Stat(_Payload):
    value: str
    label: str
    prefix: str | None = None
    suffix: str | None = None


class StatsData(_Payload):
    items: list[Stat] = Field(default_factory=list)


class TimelineEntry(_Payload):
    date: str
    title: str
    subtitle: str | None = None
    description: str | None = None


class TimelineData(_Payload):
    items: list[TimelineEntry] = Field(default_factory=list)


class ListData(_Payload):
    style: Literal["bullet", "numbered", "check"] = "bullet"
    items: list[str] = Field(default_factory=list)


class TableData(_Payload):
    headers: list[str] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)


class ImageData(_Payload):
    url: str
    caption: str | None = None
    alt: str | None = None
    aspect_ratio: Literal["16:9", "4:3", "1:1", "auto"] = "auto"


class GalleryImage(_Payload):
    url: str
    caption: str | None = None


class GalleryData(_Payload):
    columns: Literal[2, 3, 4] = 2
    images: list[GalleryImage] = Field(default_factory=list)
    expandable: bool = True


class VideoData(_Payload):
    url: str
    caption: str | None = None
    autoplay: bool = False


class EmbedData(_Payload):
    url: str
    embed_type: str | None = None
    height: int | None = Field(default=None, gt=0)


class Button(_Payload):
    label: str
    url: str
    style: Literal["primary", "secondary"] = "primary"


class ButtonsData(_Payload):
    buttons: list[Button] = Field(default_factory=list)


class Link(_Payload):
    label: str
    url: str
    description: str | None = None


class LinksData(_Payload):
    links: list[Link] = Field(default_factory=list)


class DownloadData(_Payload):
    url: str
    file_name: str
    file_size: str | None = None


class _Block(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=_new_id)
    order: int = 0


class TextBlock(_Block):
    type: Literal["text"]
    data: TextData


class HeadingBlock(_Block):
    type: Literal["heading"]
    data: HeadingData


class DividerBlock(_Block):
    type: Literal["divider"]
    data: DividerData = Field(default_factory=DividerData)


class QuoteBlock(_Block):
    type: Literal["quote"]
    data: QuoteData


class CalloutBlock(_Block):
    type: Literal["callout"]
    data: CalloutData


class DetailsBlock(_Block):
    type: Literal["details"]
    data: DetailsData


class StatsBlock(_Block):
    type: Literal["stats"]
    data: StatsData


class TimelineBlock(_Block):
    type: Literal["timeline"]
    data: TimelineData


class ListBlock(_Block):
    type: Literal["list"]
    data: ListData


class TableBlock(_Block):
    type: Literal["table"]
    data: TableData


class ImageBlock(_Block):
    type: Literal["image"]
    data: ImageData


class GalleryBlock(_Block):
    type: Literal["gallery"]
    data: GalleryData


class VideoBlock(_Block):
    type: Literal["video"]
    data: VideoData


class EmbedBlock(_Block):
    type: Literal["embed"]
    data: EmbedData


class ButtonsBlock(_Block):
    type: Literal["buttons"]
    data: ButtonsData


class LinksBlock(_Block):
    type: Literal["links"]
    data: LinksData


class DownloadBlock(_Block):
    type: Literal["download"]
    data: DownloadData


Block = Annotated[
    Union[
        TextBlock,
        HeadingBlock,
        DividerBlock,
        QuoteBlock,
        CalloutBlock,
        DetailsBlock,
        StatsBlock,
        TimelineBlock,
        ListBlock,
        TableBlock,
        ImageBlock,
        GalleryBlock,
        VideoBlock,
        EmbedBlock,
        ButtonsBlock,
        LinksBlock,
        DownloadBlock,
    ],
    Field(discriminator="type"),
]

block_adapter: TypeAdapter[Block] = TypeAdapter(Block)


def parse_block(raw: dict[str, object]) -> Block:
    """Validate a stored or submitted block against its type's schema.

    Args:
        raw: Mapping with ``id``, ``type``, ``order`` and ``data`` keys.

    Returns:
        The typed block model.

    Raises:
        pydantic.ValidationError: If the type is unknown or the payload
            does not match the schema for that type.
    """
    return block_adapter.validate_python(raw)
