from __future__ import annotations

from litemark.storage.base import (
    BOOKMARKS,
    DOCUMENT_KEYS,
    SETTINGS,
    DocumentStore,
)


STORAGE_DRIVERS = ("local", "vercel-blob", "s3", "r2", "oss", "cos", "webdav")


def document_paths(config) -> dict[str, str]:
    return {
        BOOKMARKS: config.get("BOOKMARKS_KEY") or "litemark/data/bookmarks.json",
        SETTINGS: config.get("SETTINGS_KEY") or "litemark/data/settings.json",
    }


def create_store(config, logger=None) -> DocumentStore:
    """Build the document store selected by ``STORAGE_DRIVER``.

    Backend modules are imported here so only the SDK of the configured
    driver has to be installed.
    """
    driver = (config.get("STORAGE_DRIVER") or "local").strip().lower()
    paths = document_paths(config)
    timeout = float(config.get("STORAGE_TIMEOUT") or 15)

    if driver == "local":
        from litemark.storage.local import LocalDocumentStore

        return LocalDocumentStore(paths, config["LOCAL_STORAGE_DIR"], logger=logger)
    if driver == "vercel-blob":
        from litemark.storage.vercel_blob import VercelBlobDocumentStore

        return VercelBlobDocumentStore(paths, config, timeout=timeout, logger=logger)
    if driver in ("s3", "r2"):
        from litemark.storage.s3 import S3DocumentStore

        return S3DocumentStore(paths, config, driver=driver, timeout=timeout, logger=logger)
    if driver == "oss":
        from litemark.storage.oss import OSSDocumentStore

        return OSSDocumentStore(paths, config, timeout=timeout, logger=logger)
    if driver == "cos":
        from litemark.storage.cos import COSDocumentStore

        return COSDocumentStore(paths, config, timeout=timeout, logger=logger)
    if driver == "webdav":
        from litemark.storage.webdav import WebDAVDocumentStore

        return WebDAVDocumentStore(paths, config, timeout=timeout, logger=logger)

    raise ValueError(
        f"unknown STORAGE_DRIVER {driver!r}; expected one of {', '.join(STORAGE_DRIVERS)}"
    )


__all__ = [
    "BOOKMARKS",
    "DOCUMENT_KEYS",
    "SETTINGS",
    "STORAGE_DRIVERS",
    "DocumentStore",
    "create_store",
    "document_paths",
]
