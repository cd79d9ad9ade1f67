from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone

from dateutil import tz

from litemark.errors import LiteMarkError, ValidationError
from litemark.services.common import sanitize_url, to_bool
from litemark.storage.webdav import WebDAVClient


BACKUP_VERSION = "1.0"
BACKUP_FILE_PREFIX = "litemark-backup-"
DEFAULT_BACKUP_PATH = "litemark-backup/"
DEFAULT_TIMEZONE = "Asia/Shanghai"

_BACKUP_NAME_RE = re.compile(
    r"^litemark-backup-(\d{4})-(\d{2})-(\d{2})(?:-(\d{2})-(\d{2})-(\d{2}))?\.json$"
)

logger = logging.getLogger("litemark.backup")


def backup_now(timezone_name: str = DEFAULT_TIMEZONE) -> datetime:
    zone = tz.gettz(timezone_name) or timezone.utc
    return datetime.now(zone)


def export_snapshot(repository, timezone_name: str = DEFAULT_TIMEZONE) -> dict:
    bookmarks = repository.list_bookmarks()
    settings = repository.get_settings()
    return {
        "version": BACKUP_VERSION,
        "exportedAt": backup_now(timezone_name).isoformat(timespec="milliseconds"),
        "settings": settings.as_dict(),
        "bookmarks": [bookmark.as_dict() for bookmark in bookmarks],
    }


def restore_snapshot(repository, payload, overwrite: bool | None = None) -> dict:
    """Import a snapshot produced by ``export_snapshot``.

    Invalid bookmark entries are reported in ``errors`` and skipped; the valid
    ones are written in one go. Bookmarks always get fresh ids.
    """
    if not isinstance(payload, dict):
        raise ValidationError("backup payload must be an object")
    if overwrite is None:
        overwrite = to_bool(payload.get("overwrite"), default=False)

    errors: list[str] = []
    valid: list[dict] = []
    raw_bookmarks = payload.get("bookmarks")
    if raw_bookmarks is not None and not isinstance(raw_bookmarks, list):
        raise ValidationError("bookmarks must be an array")

    for index, item in enumerate(raw_bookmarks or []):
        if not isinstance(item, dict):
            errors.append(f"skipped entry {index}: not an object")
            continue
        title = (item.get("title") or "").strip() if isinstance(item.get("title"), str) else ""
        url = (item.get("url") or "").strip() if isinstance(item.get("url"), str) else ""
        if not title or not url:
            errors.append(f"skipped entry {index}: title and url are required")
            continue
        valid.append(
            {
                "title": title,
                "url": sanitize_url(url),
                "category": item.get("category"),
                "description": item.get("description"),
                "visible": item.get("visible", True),
            }
        )

    imported = []
    if valid or overwrite:
        imported = repository.import_bookmarks(valid, overwrite=overwrite)

    updated_settings = False
    settings = payload.get("settings")
    if isinstance(settings, dict):
        try:
            repository.update_settings(settings)
            updated_settings = True
        except ValidationError as exc:
            errors.append(f"settings not imported: {exc}")

    return {
        "success": True,
        "importedBookmarks": len(imported),
        "updatedSettings": updated_settings,
        "totalBookmarks": len(repository.list_bookmarks()),
        "errors": errors or None,
    }


@dataclass
class WebDAVBackupConfig:
    url: str | None = None
    username: str | None = None
    password: str | None = None
    path: str = DEFAULT_BACKUP_PATH
    enabled: bool = False
    keep_backups: int = 7

    @classmethod
    def from_app_config(cls, config) -> "WebDAVBackupConfig":
        return cls(
            url=config.get("WEBDAV_BACKUP_URL"),
            username=config.get("WEBDAV_BACKUP_USERNAME"),
            password=config.get("WEBDAV_BACKUP_PASSWORD"),
            path=config.get("WEBDAV_BACKUP_PATH") or DEFAULT_BACKUP_PATH,
            enabled=bool(config.get("WEBDAV_BACKUP_ENABLED")),
            keep_backups=int(config.get("WEBDAV_KEEP_BACKUPS", 7)),
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.url and self.username and self.password)

    def public_dict(self) -> dict:
        return {
            "provider": "webdav",
            "url": self.url,
            "username": self.username,
            "path": self.path,
            "enabled": self.enabled,
            "keepBackups": self.keep_backups,
        }

    def client(self, **kwargs) -> WebDAVClient:
        return WebDAVClient(self.url, self.username, self.password, **kwargs)


@dataclass
class BackupFile:
    name: str
    created_at: datetime


def backup_filename(now: datetime) -> str:
    return f"{BACKUP_FILE_PREFIX}{now.strftime('%Y-%m-%d-%H-%M-%S')}.json"


def backup_directory(path: str) -> str:
    path = path or DEFAULT_BACKUP_PATH
    if path.endswith("/"):
        return path
    if path.endswith(".json"):
        return path[: path.rfind("/") + 1] or "/"
    return f"{path}/"


def backup_target(path: str, now: datetime) -> str:
    path = path or DEFAULT_BACKUP_PATH
    if path.endswith(".json"):
        return path
    return f"{backup_directory(path)}{backup_filename(now)}"


def parse_backup_name(name: str) -> datetime | None:
    match = _BACKUP_NAME_RE.match(name)
    if not match:
        return None
    parts = [int(value) if value else 0 for value in match.groups()]
    try:
        return datetime(*parts, tzinfo=timezone.utc)
    except ValueError:
        return None


def list_backup_files(client: WebDAVClient, directory: str) -> list[BackupFile]:
    files: list[BackupFile] = []
    for entry in client.list_directory(directory):
        if entry.is_collection:
            continue
        created_at = parse_backup_name(entry.name)
        if created_at is not None:
            files.append(BackupFile(name=entry.name, created_at=created_at))
    files.sort(key=lambda item: item.created_at, reverse=True)
    return files


def cleanup_old_backups(
    client: WebDAVClient, config: WebDAVBackupConfig, log: logging.Logger | None = None
) -> int:
    log = log or logger
    if config.keep_backups <= 0:
        return 0

    directory = backup_directory(config.path)
    try:
        files = list_backup_files(client, directory)
    except LiteMarkError as exc:
        log.error("Listing WebDAV backups in %s failed: %s", directory, exc)
        return 0

    deleted = 0
    for item in files[config.keep_backups :]:
        try:
            client.delete(f"{directory}{item.name}")
            deleted += 1
        except Exception as exc:
            log.error("Deleting old backup %s failed: %s", item.name, exc)
    return deleted


def backup_to_webdav(
    repository,
    config: WebDAVBackupConfig,
    client: WebDAVClient | None = None,
    timezone_name: str = DEFAULT_TIMEZONE,
    log: logging.Logger | None = None,
) -> dict:
    log = log or logger
    if not config.is_complete:
        raise ValidationError("WebDAV url, username and password are required")

    snapshot = export_snapshot(repository, timezone_name)
    content = json.dumps(snapshot, indent=2, ensure_ascii=False)
    target = backup_target(config.path, backup_now(timezone_name))

    owns_client = client is None
    client = client or config.client(logger=log)
    try:
        log.info("Uploading backup to WebDAV: %s", target)
        client.ensure_directory(target)
        client.upload(target, content)
        deleted = 0
        if config.keep_backups > 0:
            deleted = cleanup_old_backups(client, config, log)
    finally:
        if owns_client:
            client.close()

    return {
        "path": target,
        "timestamp": snapshot["exportedAt"],
        "bookmarksCount": len(snapshot["bookmarks"]),
        "deletedBackups": deleted,
    }
