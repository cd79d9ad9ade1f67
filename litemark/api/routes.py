from __future__ import annotations

import hmac

from flask import current_app, jsonify, request

from litemark.api import api_bp
from litemark.errors import BackendUnavailableError, MalformedDocumentError, ValidationError
from litemark.extensions import get_repository
from litemark.services.backup import (
    WebDAVBackupConfig,
    backup_to_webdav,
    export_snapshot,
    restore_snapshot,
)
from litemark.services.bookmark_import import parse_bookmark_html
from litemark.services.common import to_bool
from litemark.services.security import api_auth_required, get_authenticated_user


NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
}


@api_bp.errorhandler(ValidationError)
def _validation_error(exc):
    return jsonify({"error": str(exc)}), 400


@api_bp.errorhandler(BackendUnavailableError)
@api_bp.errorhandler(MalformedDocumentError)
def _storage_error(exc):
    current_app.logger.error("Storage error: %s", exc)
    return jsonify({"error": str(exc)}), 500


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("request body must be a JSON object")
    return payload


def _order_from_body():
    order = _json_body().get("order")
    if not isinstance(order, list):
        raise ValidationError("order must be an array")
    return order


def _backup_timezone() -> str:
    return current_app.config.get("BACKUP_TIMEZONE") or "Asia/Shanghai"


def _webdav_config(overrides: dict | None = None) -> WebDAVBackupConfig:
    config = WebDAVBackupConfig.from_app_config(current_app.config)
    overrides = overrides or {}
    for field in ("url", "username", "password", "path"):
        value = overrides.get(field)
        if isinstance(value, str) and value.strip():
            setattr(config, field, value.strip())
    if "keepBackups" in overrides:
        try:
            config.keep_backups = int(overrides["keepBackups"])
        except (TypeError, ValueError):
            raise ValidationError("keepBackups must be an integer")
    return config


@api_bp.get("/health")
def health():
    store = get_repository().store
    return jsonify(
        {
            "status": "ok",
            "storage": store.kind,
            "degraded": store.degraded,
        }
    )


@api_bp.get("/bookmarks")
def list_bookmarks():
    bookmarks = get_repository().list_bookmarks()
    if not get_authenticated_user():
        bookmarks = [bookmark for bookmark in bookmarks if bookmark.visible]
    return (
        jsonify([bookmark.as_dict() for bookmark in bookmarks]),
        200,
        NO_CACHE_HEADERS,
    )


@api_bp.post("/bookmarks")
@api_auth_required()
def create_bookmark():
    bookmark = get_repository().create_bookmark(_json_body())
    return jsonify(bookmark.as_dict()), 201


@api_bp.put("/bookmarks/<bookmark_id>")
@api_auth_required()
def update_bookmark(bookmark_id: str):
    bookmark = get_repository().update_bookmark(bookmark_id, _json_body())
    if bookmark is None:
        return jsonify({"error": "bookmark not found"}), 404
    return jsonify(bookmark.as_dict())


@api_bp.delete("/bookmarks/<bookmark_id>")
@api_auth_required()
def delete_bookmark(bookmark_id: str):
    bookmark = get_repository().delete_bookmark(bookmark_id)
    if bookmark is None:
        return jsonify({"error": "bookmark not found"}), 404
    return jsonify({"deleted": True, "bookmark": bookmark.as_dict()})


@api_bp.post("/bookmarks/reorder")
@api_auth_required()
def reorder_bookmarks():
    bookmarks = get_repository().reorder_bookmarks(_order_from_body())
    return jsonify([bookmark.as_dict() for bookmark in bookmarks])


@api_bp.post("/bookmarks/reorder-categories")
@api_auth_required()
def reorder_categories():
    repository = get_repository()
    bookmarks = repository.reorder_categories(_order_from_body())
    return jsonify(
        {
            "categories": repository.list_categories(),
            "bookmarks": [bookmark.as_dict() for bookmark in bookmarks],
        }
    )


@api_bp.get("/bookmarks/categories")
def list_categories():
    repository = get_repository()
    categories = repository.list_categories()
    if not get_authenticated_user():
        shown = {b.category for b in repository.list_bookmarks() if b.visible}
        categories = [name for name in categories if name in shown]
    return jsonify(categories), 200, NO_CACHE_HEADERS


@api_bp.post("/bookmarks/import")
@api_auth_required()
def import_bookmarks():
    upload = request.files.get("file")
    if upload is not None:
        html = upload.read().decode("utf-8", errors="replace")
        overwrite = to_bool(request.form.get("overwrite"), default=False)
    else:
        payload = _json_body()
        html = payload.get("html")
        overwrite = to_bool(payload.get("overwrite"), default=False)

    if not isinstance(html, str) or not html.strip():
        raise ValidationError("a bookmarks HTML file is required")

    parsed = parse_bookmark_html(html)
    created = get_repository().import_bookmarks(
        [item.as_input() for item in parsed], overwrite=overwrite
    )
    current_app.logger.info("Imported %s bookmarks from HTML", len(created))
    return jsonify({"imported": len(created), "total": len(parsed)})


@api_bp.post("/bookmarks/refresh")
@api_auth_required()
def refresh_bookmarks():
    bookmarks = get_repository().force_refresh_bookmarks_cache()
    return jsonify([bookmark.as_dict() for bookmark in bookmarks])


@api_bp.get("/settings")
def get_settings():
    return jsonify(get_repository().get_settings().as_dict()), 200, NO_CACHE_HEADERS


@api_bp.put("/settings")
@api_auth_required()
def update_settings():
    settings = get_repository().update_settings(_json_body())
    return jsonify(settings.as_dict())


@api_bp.post("/settings/refresh")
@api_auth_required()
def refresh_settings():
    return jsonify(get_repository().force_refresh_settings_cache().as_dict())


@api_bp.get("/backup/export")
@api_auth_required()
def export_backup():
    snapshot = export_snapshot(get_repository(), _backup_timezone())
    filename = f"litemark-backup-{snapshot['exportedAt'][:10]}.json"
    response = jsonify(snapshot)
    response.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


@api_bp.post("/backup/import")
@api_auth_required()
def import_backup():
    payload = _json_body()
    overwrite = request.args.get("overwrite")
    result = restore_snapshot(
        get_repository(),
        payload,
        overwrite=to_bool(overwrite) if overwrite is not None else None,
    )
    return jsonify(result)


@api_bp.get("/backup/webdav")
@api_auth_required()
def webdav_backup_config():
    config = _webdav_config()
    body = {"config": config.public_dict(), "configured": config.is_complete}
    if to_bool(request.args.get("test")):
        if not config.is_complete:
            raise ValidationError("WebDAV url, username and password are required")
        with config.client(logger=current_app.logger) as client:
            body["connected"] = client.test_connection()
    return jsonify(body)


@api_bp.post("/backup/webdav")
@api_auth_required()
def webdav_backup():
    config = _webdav_config(request.get_json(silent=True) or {})
    result = backup_to_webdav(
        get_repository(),
        config,
        timezone_name=_backup_timezone(),
        log=current_app.logger,
    )
    return jsonify({"success": True, **result})


@api_bp.post("/cron/backup")
def cron_backup():
    secret = current_app.config.get("CRON_SECRET")
    if secret:
        auth_header = request.headers.get("Authorization", "")
        expected = f"Bearer {secret}"
        if not hmac.compare_digest(auth_header.encode("utf-8"), expected.encode("utf-8")):
            return jsonify({"error": "unauthorized"}), 401

    config = _webdav_config()
    if not config.enabled:
        return jsonify({"success": False, "skipped": True, "reason": "backup disabled"})
    result = backup_to_webdav(
        get_repository(),
        config,
        timezone_name=_backup_timezone(),
        log=current_app.logger,
    )
    return jsonify({"success": True, **result})
