"""Content domain models: pure Pydantic v2 data types.

Every published unit is an Item: a tagged union on ``type`` with one
variant per section of the magazine (critic reviews, news, interviews
and charts).  The on-disk and on-the-wire JSON uses camelCase field
names; attributes are snake_case and either spelling is accepted on
input.  Unknown client fields are dropped rather than stored.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

SCORE_MIN = 0.0
SCORE_MAX = 10.0


class ItemType(StrEnum):
    """Section an item belongs to."""

    CRITIC = "critic"
    NEWS = "news"
    INTERVIEW = "interview"
    CHART = "chart"


class ItemStatus(StrEnum):
    PUBLISHED = "published"


class Movement(StrEnum):
    """Chart movement of an entry since the previous issue."""

    UP = "up"
    DOWN = "down"
    NEW = "new"
    SAME = "same"
    REENTRY = "reentry"


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class CamelModel(BaseModel):
    """Base model serialising to camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Dump to the camelCase JSON shape used on disk and on the wire."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ChartEntry(CamelModel):
    """One ranked line of a chart."""

    position: int
    track_title: str = ""
    artist: str = ""
    movement: Movement = Movement.SAME
    last_position: int | None = None


class BaseItem(CamelModel):
    """Fields common to every item type."""

    id: str = ""
    status: str = ItemStatus.PUBLISHED.value
    published_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    is_demo: bool = False

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_id(cls, data: Any) -> Any:
        """Older clients send the id as ``__backendId``."""
        if isinstance(data, dict) and not data.get("id") and data.get("__backendId"):
            data = dict(data)
            data["id"] = str(data["__backendId"])
        return data

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("published_at", "created_at", "updated_at", mode="after")
    @classmethod
    def _force_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @property
    def sort_key(self) -> datetime:
        """Timestamp used for newest-first ordering."""
        return self.published_at or self.created_at or EPOCH


class CriticItem(BaseItem):
    """An album review."""

    type: Literal["critic"] = "critic"
    album: str = ""
    artist: str = ""
    score: float | None = None
    content: str = ""
    author: str = ""
    cover_image_url: str = ""
    subtitle: str = ""
    pull_quote: str = ""

    @field_validator("score", mode="after")
    @classmethod
    def _score_in_range(cls, value: float | None) -> float | None:
        if value is not None and not SCORE_MIN <= value <= SCORE_MAX:
            raise ValueError("Score must be between 0 and 10")
        return value


class NewsItem(BaseItem):
    """A news article."""

    type: Literal["news"] = "news"
    category: str = ""
    headline: str = ""
    subtitle: str = ""
    content: str = ""
    pull_quote: str = ""
    author: str = ""
    hero_image_url: str = ""


class InterviewItem(BaseItem):
    """A Q&A feature with a guest."""

    type: Literal["interview"] = "interview"
    guest: str = ""
    title: str = ""
    subtitle: str = ""
    content: str = ""
    key_quote: str = ""
    author: str = ""
    hero_image_url: str = ""


class ChartItem(BaseItem):
    """A ranked chart issue."""

    type: Literal["chart"] = "chart"
    chart_title: str = ""
    issue_number: int | str | None = None
    entries: list[ChartEntry] = Field(default_factory=list)


Item = Annotated[
    CriticItem | NewsItem | InterviewItem | ChartItem,
    Field(discriminator="type"),
]

_ITEM_ADAPTER: TypeAdapter[Item] = TypeAdapter(Item)


def parse_item(data: dict[str, Any]) -> Item:
    """Validate a raw JSON dict into the matching Item variant.

    Raises:
        pydantic.ValidationError: If ``type`` is unknown or a field is invalid.
    """
    return _ITEM_ADAPTER.validate_python(data)


class Cover(CamelModel):
    """The single live magazine cover."""

    issue_number: str = ""
    issue_date: str = ""
    description: str = ""
    cover_image_url: str = ""
    updated_at: datetime | None = None

    @field_validator("issue_number", "issue_date", "description", "cover_image_url", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("updated_at", mode="after")
    @classmethod
    def _force_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    def to_json_dict(self) -> dict[str, Any]:
        data = super().to_json_dict()
        data["type"] = "cover"
        return data


def sort_newest_first(items: list[Item]) -> list[Item]:
    """Order items by ``publishedAt`` descending (``createdAt``, then epoch)."""
    return sorted(items, key=lambda item: item.sort_key, reverse=True)
