from __future__ import annotations

import re

from litemark.errors import ValidationError
from litemark.models import (
    SITE_ICON_MAX_LENGTH,
    SITE_TITLE_MAX_LENGTH,
    THEMES,
    BookmarkInput,
    normalize_category,
)


_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def to_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def sanitize_url(url: str) -> str:
    trimmed = (url or "").strip()
    if not trimmed:
        return ""
    if _SCHEME_RE.match(trimmed):
        return trimmed
    return f"https://{trimmed}"


def _optional_text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _required_text(payload: dict, field: str) -> str:
    value = payload.get(field)
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationError(f"{field} is required")
    return text


def clean_bookmark_input(payload) -> BookmarkInput:
    if isinstance(payload, BookmarkInput):
        payload = {
            "title": payload.title,
            "url": payload.url,
            "category": payload.category,
            "description": payload.description,
            "visible": payload.visible,
        }
    if not isinstance(payload, dict):
        raise ValidationError("bookmark payload must be an object")

    return BookmarkInput(
        title=_required_text(payload, "title"),
        url=sanitize_url(_required_text(payload, "url")),
        category=normalize_category(payload.get("category")),
        description=_optional_text(payload.get("description")),
        visible=to_bool(payload.get("visible"), default=True),
    )


def clean_bookmark_changes(payload) -> dict:
    """Validate a partial bookmark update; only supplied fields are returned."""
    if not isinstance(payload, dict):
        raise ValidationError("bookmark payload must be an object")

    changes: dict = {}
    if "title" in payload:
        changes["title"] = _required_text(payload, "title")
    if "url" in payload:
        changes["url"] = sanitize_url(_required_text(payload, "url"))
    if "category" in payload:
        changes["category"] = normalize_category(payload.get("category"))
    if "description" in payload:
        changes["description"] = _optional_text(payload.get("description"))
    if "visible" in payload:
        changes["visible"] = to_bool(payload.get("visible"), default=True)
    return changes


def clean_settings_changes(payload) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("settings payload must be an object")

    changes: dict = {}
    theme = payload.get("theme")
    if theme is not None:
        if not isinstance(theme, str) or theme.strip() not in THEMES:
            raise ValidationError(f"theme must be one of {'/'.join(THEMES)}")
        changes["theme"] = theme.strip()

    site_title = payload.get("siteTitle")
    if site_title is not None:
        if not isinstance(site_title, str):
            raise ValidationError("siteTitle must be a string")
        site_title = site_title.strip()
        if len(site_title) > SITE_TITLE_MAX_LENGTH:
            raise ValidationError(
                f"siteTitle must be at most {SITE_TITLE_MAX_LENGTH} characters"
            )
        changes["site_title"] = site_title

    site_icon = payload.get("siteIcon")
    if site_icon is not None:
        if not isinstance(site_icon, str):
            raise ValidationError("siteIcon must be a string")
        site_icon = site_icon.strip()
        if len(site_icon) > SITE_ICON_MAX_LENGTH:
            raise ValidationError(
                f"siteIcon must be at most {SITE_ICON_MAX_LENGTH} characters"
            )
        changes["site_icon"] = site_icon
    return changes
