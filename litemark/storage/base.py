from __future__ import annotations

import copy
import json
import logging

from litemark.errors import BackendUnavailableError, MalformedDocumentError


BOOKMARKS = "bookmarks"
SETTINGS = "settings"
DOCUMENT_KEYS = (BOOKMARKS, SETTINGS)


def require_option(name: str, value, backend: str):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise BackendUnavailableError(
            f"storage configuration missing: set {name}", backend=backend
        )
    return value


class DocumentStore:
    """Reads and writes whole JSON documents at a logical key.

    Subclasses implement ``fetch_text`` (return ``None`` when the object does
    not exist) and ``store_text`` (overwrite the object). Unless a read is
    strict, backend errors are logged and the fallback is returned. A body
    that is present but not JSON raises ``MalformedDocumentError``. Writes
    raise ``BackendUnavailableError``.
    """

    kind = "base"

    def __init__(self, paths: dict[str, str], logger: logging.Logger | None = None):
        self.paths = dict(paths)
        self.logger = logger or logging.getLogger("litemark.storage")
        self.degraded = False

    def resolve_path(self, key: str) -> str:
        try:
            return self.paths[key]
        except KeyError:
            raise ValueError(f"unknown document key: {key!r}") from None

    def fetch_text(self, path: str) -> str | None:
        raise NotImplementedError

    def store_text(self, path: str, body: str) -> None:
        raise NotImplementedError

    def read_document(self, key: str, fallback, strict: bool = False):
        """Return the parsed document at ``key``, or ``fallback`` when absent.

        With ``strict`` a backend failure raises ``BackendUnavailableError``
        instead of serving the fallback; read-modify-write callers use it so a
        failed read is never written back as an empty document.
        """
        path = self.resolve_path(key)
        try:
            text = self.fetch_text(path)
        except Exception as exc:
            self.degraded = True
            if strict:
                self.logger.error(
                    "[storage:%s] failed to read %s: %s", self.kind, path, exc
                )
                if isinstance(exc, BackendUnavailableError):
                    raise
                raise BackendUnavailableError(
                    f"failed to read {path}: {exc}", backend=self.kind
                ) from exc
            self.logger.error(
                "[storage:%s] failed to read %s, serving fallback: %s",
                self.kind,
                path,
                exc,
            )
            return copy.deepcopy(fallback)

        self.degraded = False
        if text is None or not text.strip():
            return copy.deepcopy(fallback)
        try:
            return json.loads(text)
        except ValueError as exc:
            self.logger.error(
                "[storage:%s] document %s at %s is not valid JSON", self.kind, key, path
            )
            raise MalformedDocumentError(key, path, str(exc)) from exc

    def write_document(self, key: str, value) -> None:
        path = self.resolve_path(key)
        body = json.dumps(value, indent=2, ensure_ascii=False)
        try:
            self.store_text(path, body)
        except BackendUnavailableError as exc:
            self.logger.error("[storage:%s] failed to write %s: %s", self.kind, path, exc)
            raise
        except Exception as exc:
            self.logger.error("[storage:%s] failed to write %s: %s", self.kind, path, exc)
            raise BackendUnavailableError(
                f"failed to write {path}: {exc}", backend=self.kind
            ) from exc
