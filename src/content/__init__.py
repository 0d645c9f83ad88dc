"""Content domain: item and cover models, validation and the file store."""

from editorial.content.models import (
    ChartEntry,
    ChartItem,
    Cover,
    CriticItem,
    InterviewItem,
    Item,
    ItemStatus,
    ItemType,
    Movement,
    NewsItem,
    parse_item,
)
from editorial.content.store import CoverStore, ItemStore, UploadStore

__all__ = [
    "ChartEntry",
    "ChartItem",
    "Cover",
    "CoverStore",
    "CriticItem",
    "InterviewItem",
    "Item",
    "ItemStatus",
    "ItemStore",
    "ItemType",
    "Movement",
    "NewsItem",
    "UploadStore",
    "parse_item",
]
