import json
from datetime import datetime

import httpx
import pytest

from litemark.errors import BackendUnavailableError, ValidationError
from litemark.services.backup import (
    WebDAVBackupConfig,
    backup_directory,
    backup_target,
    backup_to_webdav,
    cleanup_old_backups,
    export_snapshot,
    parse_backup_name,
    restore_snapshot,
)
from litemark.storage.webdav import WebDAVClient


BASE_URL = "https://dav.example.com/remote.php/dav"


def _propfind_body(directory, names):
    responses = [f"<d:response><d:href>/remote.php/dav/{directory}</d:href>"
                 "<d:propstat><d:prop><d:resourcetype><d:collection/></d:resourcetype>"
                 "</d:prop></d:propstat></d:response>"]
    for name in names:
        responses.append(
            f"<d:response><d:href>/remote.php/dav/{directory}{name}</d:href>"
            "<d:propstat><d:prop><d:resourcetype/>"
            "<d:getlastmodified>Mon, 01 Jan 2024 00:00:00 GMT</d:getlastmodified>"
            "</d:prop></d:propstat></d:response>"
        )
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<d:multistatus xmlns:d="DAV:">' + "".join(responses) + "</d:multistatus>"
    )


def _client(handler, sleeps=None):
    sleeps = sleeps if sleeps is not None else []
    return WebDAVClient(
        BASE_URL,
        "user",
        "pass",
        transport=httpx.MockTransport(handler),
        sleep=sleeps.append,
    )


def _config(**overrides):
    values = {
        "url": BASE_URL,
        "username": "user",
        "password": "pass",
        "path": "litemark-backup/",
        "enabled": True,
        "keep_backups": 2,
    }
    values.update(overrides)
    return WebDAVBackupConfig(**values)


def test_upload_retries_gateway_errors():
    statuses = iter([504, 502, 201])
    sleeps = []

    def handler(request):
        assert request.method == "PUT"
        return httpx.Response(next(statuses))

    client = _client(handler, sleeps)
    client.upload("litemark-backup/file.json", "{}")
    assert sleeps == [3.0, 6.0]


def test_upload_gives_up_after_three_attempts():
    calls = []

    def handler(request):
        calls.append(request.method)
        raise httpx.ConnectTimeout("timed out", request=request)

    client = _client(handler)
    with pytest.raises(BackendUnavailableError, match="after 3 attempts"):
        client.upload("file.json", "{}")
    assert calls == ["PUT", "PUT", "PUT"]


def test_upload_does_not_retry_client_errors():
    calls = []

    def handler(request):
        calls.append(request.method)
        return httpx.Response(401, text="unauthorized")

    client = _client(handler)
    with pytest.raises(BackendUnavailableError, match="401"):
        client.upload("file.json", "{}")
    assert calls == ["PUT"]


def test_cleanup_keeps_newest_and_continues_past_delete_failures():
    names = [
        "litemark-backup-2024-01-03-02-00-00.json",
        "litemark-backup-2024-01-01-02-00-00.json",
        "litemark-backup-2024-01-04-02-00-00.json",
        "litemark-backup-2024-01-02.json",
        "notes.txt",
    ]
    deleted = []

    def handler(request):
        if request.method == "PROPFIND":
            assert request.headers["Depth"] == "1"
            return httpx.Response(207, text=_propfind_body("litemark-backup/", names))
        if request.method == "DELETE":
            name = request.url.path.rsplit("/", 1)[-1]
            deleted.append(name)
            if name == "litemark-backup-2024-01-02.json":
                return httpx.Response(500)
            return httpx.Response(204)
        raise AssertionError(request.method)

    count = cleanup_old_backups(_client(handler), _config(keep_backups=2))

    assert deleted == [
        "litemark-backup-2024-01-02.json",
        "litemark-backup-2024-01-01-02-00-00.json",
    ]
    assert count == 1


def test_cleanup_is_disabled_with_zero_retention():
    def handler(request):
        raise AssertionError("no request expected")

    assert cleanup_old_backups(_client(handler), _config(keep_backups=0)) == 0


def test_backup_to_webdav_uploads_snapshot(repository):
    repository.create_bookmark({"title": "A", "url": "https://a.example", "category": "Work"})
    repository.update_settings({"theme": "ocean"})
    seen = {}

    def handler(request):
        seen.setdefault(request.method, []).append(request.url.path)
        if request.method == "MKCOL":
            return httpx.Response(405)
        if request.method == "PUT":
            seen["body"] = json.loads(request.content)
            return httpx.Response(201)
        if request.method == "PROPFIND":
            return httpx.Response(207, text=_propfind_body("litemark-backup/", []))
        raise AssertionError(request.method)

    result = backup_to_webdav(repository, _config(), client=_client(handler))

    assert seen["MKCOL"] == ["/remote.php/dav/litemark-backup/"]
    assert result["path"].startswith("litemark-backup/litemark-backup-")
    assert parse_backup_name(result["path"].rsplit("/", 1)[-1]) is not None
    assert result["bookmarksCount"] == 1
    assert result["deletedBackups"] == 0
    assert seen["body"]["version"] == "1.0"
    assert seen["body"]["settings"]["theme"] == "ocean"
    assert seen["body"]["bookmarks"][0]["category"] == "Work"


def test_backup_requires_complete_config(repository):
    with pytest.raises(ValidationError):
        backup_to_webdav(repository, _config(password=None))


def test_backup_paths():
    now = datetime(2024, 5, 6, 7, 8, 9)
    assert backup_directory("") == "litemark-backup/"
    assert backup_directory("backups") == "backups/"
    assert backup_directory("backups/latest.json") == "backups/"
    assert backup_target("backups", now) == "backups/litemark-backup-2024-05-06-07-08-09.json"
    assert backup_target("backups/latest.json", now) == "backups/latest.json"
    assert parse_backup_name("litemark-backup-2024-13-01.json") is None


def test_connection_check_accepts_multistatus_and_not_found():
    def ok(request):
        assert request.headers["Depth"] == "0"
        return httpx.Response(207)

    def missing(request):
        return httpx.Response(404)

    def denied(request):
        return httpx.Response(401)

    assert _client(ok).test_connection() is True
    assert _client(missing).test_connection() is True
    assert _client(denied).test_connection() is False


def test_export_then_restore_reproduces_bookmarks_and_settings(repository, make_repository):
    repository.create_bookmark({"title": "A", "url": "https://a.example", "category": "Work"})
    repository.create_bookmark(
        {"title": "B", "url": "https://b.example", "description": "b", "visible": False}
    )
    repository.update_settings({"theme": "dark", "siteTitle": "Mine"})
    snapshot = export_snapshot(repository, "UTC")
    assert snapshot["exportedAt"].endswith("+00:00")

    target = make_repository()
    result = restore_snapshot(target, json.loads(json.dumps(snapshot)))

    assert result["success"] is True
    assert result["importedBookmarks"] == 2
    assert result["updatedSettings"] is True
    assert result["errors"] is None

    def fields(bookmarks):
        return [
            (b.title, b.url, b.category, b.description, b.visible, b.position)
            for b in bookmarks
        ]

    assert fields(target.list_bookmarks()) == fields(repository.list_bookmarks())
    assert target.get_settings() == repository.get_settings()


def test_restore_reports_invalid_entries(repository):
    result = restore_snapshot(
        repository,
        {
            "bookmarks": [
                {"title": "ok", "url": "ok.example"},
                {"title": "", "url": "https://x"},
                "junk",
            ],
            "settings": {"theme": "neon"},
        },
    )

    assert result["importedBookmarks"] == 1
    assert result["updatedSettings"] is False
    assert len(result["errors"]) == 3
    assert repository.list_bookmarks()[0].url == "https://ok.example"
