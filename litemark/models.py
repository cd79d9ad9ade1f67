from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone


UNCATEGORIZED = ""

THEMES = ("light", "dark", "twilight", "forest", "ocean", "sunrise")
SITE_TITLE_MAX_LENGTH = 60
SITE_ICON_MAX_LENGTH = 512

DEFAULT_THEME = "light"
DEFAULT_SITE_TITLE = "个人书签"
DEFAULT_SITE_ICON = "🔖"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_bookmark_id() -> str:
    return str(uuid.uuid4())


def normalize_category(value) -> str:
    if not isinstance(value, str):
        return UNCATEGORIZED
    return value.strip()


def _coerce_position(value) -> int:
    if isinstance(value, bool):
        return -1
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return -1


def _coerce_bool(value, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class BookmarkInput:
    title: str
    url: str
    category: str = UNCATEGORIZED
    description: str | None = None
    visible: bool = True


@dataclass
class Bookmark:
    id: str
    title: str
    url: str
    category: str = UNCATEGORIZED
    description: str | None = None
    visible: bool = True
    position: int = 0

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "category": self.category,
            "description": self.description,
            "visible": self.visible,
            "position": self.position,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Bookmark":
        """Build a bookmark from a stored record.

        Stored records may come from older writers: ``order`` is read as an
        alias of ``position``, and a missing or unusable position is reported
        as ``-1`` so the loader can place the record after positioned ones.
        """
        raw_position = data.get("position")
        if raw_position is None:
            raw_position = data.get("order")
        description = data.get("description")
        return cls(
            id=str(data.get("id") or "").strip() or new_bookmark_id(),
            title=str(data.get("title") or ""),
            url=str(data.get("url") or ""),
            category=normalize_category(data.get("category")),
            description=description if isinstance(description, str) else None,
            visible=_coerce_bool(data.get("visible"), default=True),
            position=_coerce_position(raw_position),
        )


@dataclass
class BookmarkCollection:
    bookmarks: list[Bookmark] = field(default_factory=list)
    category_order: list[str] = field(default_factory=list)

    def find(self, bookmark_id: str) -> Bookmark | None:
        for bookmark in self.bookmarks:
            if bookmark.id == bookmark_id:
                return bookmark
        return None

    def in_category(self, category: str) -> list[Bookmark]:
        return [b for b in self.bookmarks if b.category == category]


@dataclass
class Settings:
    theme: str = DEFAULT_THEME
    site_title: str = DEFAULT_SITE_TITLE
    site_icon: str = DEFAULT_SITE_ICON

    def as_dict(self) -> dict:
        return {
            "theme": self.theme,
            "siteTitle": self.site_title,
            "siteIcon": self.site_icon,
        }

    @classmethod
    def from_dict(cls, data) -> "Settings":
        if not isinstance(data, dict):
            return cls()
        defaults = cls()
        theme = data.get("theme")
        site_title = data.get("siteTitle")
        site_icon = data.get("siteIcon")
        return cls(
            theme=theme if isinstance(theme, str) and theme else defaults.theme,
            site_title=site_title if isinstance(site_title, str) else defaults.site_title,
            site_icon=site_icon if isinstance(site_icon, str) else defaults.site_icon,
        )

    def copy(self) -> "Settings":
        return copy.copy(self)
