from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Protocol

from litemark.errors import MalformedDocumentError, ValidationError
from litemark.models import (
    Bookmark,
    BookmarkCollection,
    Settings,
    new_bookmark_id,
    utcnow,
)
from litemark.services import ordering
from litemark.services.common import (
    clean_bookmark_changes,
    clean_bookmark_input,
    clean_settings_changes,
)
from litemark.storage import BOOKMARKS, DOCUMENT_KEYS, SETTINGS, DocumentStore


class RefreshTimers(Protocol):
    def schedule(self, name: str, delay_seconds: float, func: Callable[[], None]) -> None:
        ...

    def cancel(self, name: str) -> None:
        ...


@dataclass
class CacheEntry:
    value: object
    loaded_at: datetime


class CachedDocumentRepository:
    """Typed access to the bookmarks and settings documents.

    Reads are served from an in-memory cache that a background timer refreshes
    every ``refresh_interval_ms`` (``<= 0`` disables the timer). Mutations
    always start from a fresh read of the store, never from the cache, and
    replace the cache entry and re-arm its timer once the write succeeded.
    Every value handed out is a copy.
    """

    def __init__(
        self,
        store: DocumentStore,
        refresh_interval_ms: int = 60_000,
        timers: RefreshTimers | None = None,
        logger: logging.Logger | None = None,
    ):
        self.store = store
        self.refresh_interval_ms = refresh_interval_ms
        self.timers = timers
        self.logger = logger or logging.getLogger("litemark.repository")
        self._entries: dict[str, CacheEntry] = {}
        self._armed: set[str] = set()
        self._lock = threading.RLock()
        self._write_locks = {key: threading.Lock() for key in DOCUMENT_KEYS}

    # cache lifecycle

    def populate(self, key: str, value) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(value=value, loaded_at=utcnow())

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def cached(self, key: str) -> CacheEntry | None:
        with self._lock:
            return self._entries.get(key)

    def schedule_refresh(self, key: str) -> None:
        if self.timers is None or self.refresh_interval_ms <= 0:
            return
        with self._lock:
            self._armed.add(key)
        self.timers.schedule(
            key, self.refresh_interval_ms / 1000.0, lambda: self._background_refresh(key)
        )

    def cancel_refresh(self, key: str) -> None:
        with self._lock:
            self._armed.discard(key)
        if self.timers is not None:
            self.timers.cancel(key)

    def shutdown(self) -> None:
        for key in DOCUMENT_KEYS:
            self.cancel_refresh(key)

    def _ensure_refresh(self, key: str) -> None:
        with self._lock:
            armed = key in self._armed
        if not armed:
            self.schedule_refresh(key)

    def _background_refresh(self, key: str) -> None:
        with self._lock:
            self._armed.discard(key)
        try:
            # Holding the write lock keeps a slow fetch of the old document
            # from landing after a concurrent write populated the new one.
            with self._write_locks[key]:
                self.populate(key, self._load(key, strict=True))
        except Exception as exc:
            self.logger.warning(
                "Background refresh of %s failed, keeping cached value: %s", key, exc
            )
        finally:
            self.schedule_refresh(key)

    # document I/O

    def _load(self, key: str, strict: bool = False):
        if key == BOOKMARKS:
            raw = self.store.read_document(BOOKMARKS, [], strict=strict)
            if not isinstance(raw, list):
                raise MalformedDocumentError(
                    BOOKMARKS, self.store.resolve_path(BOOKMARKS), "expected a JSON array"
                )
            return ordering.load_collection(raw)
        raw = self.store.read_document(SETTINGS, Settings().as_dict(), strict=strict)
        return Settings.from_dict(raw)

    def _dump(self, key: str, value):
        if key == BOOKMARKS:
            return ordering.dump_collection(value)
        return value.as_dict()

    def _read(self, key: str):
        entry = self.cached(key)
        if entry is not None:
            self._ensure_refresh(key)
            return copy.deepcopy(entry.value)
        value = self._load(key)
        self.populate(key, value)
        self._ensure_refresh(key)
        return copy.deepcopy(value)

    def _write(self, key: str, value) -> None:
        self.store.write_document(key, self._dump(key, value))
        self.cancel_refresh(key)
        self.populate(key, copy.deepcopy(value))
        self.schedule_refresh(key)

    def _force_refresh(self, key: str):
        self.cancel_refresh(key)
        with self._write_locks[key]:
            value = self._load(key)
            self.populate(key, value)
        self.schedule_refresh(key)
        return copy.deepcopy(value)

    def _mutate_bookmarks(self, mutation: Callable[[BookmarkCollection], object]):
        with self._write_locks[BOOKMARKS]:
            collection = self._load(BOOKMARKS, strict=True)
            result = mutation(collection)
            if result is None:
                return None
            self._write(BOOKMARKS, collection)
            return copy.deepcopy(result)

    # settings

    def get_settings(self) -> Settings:
        return self._read(SETTINGS)

    def update_settings(self, partial: dict) -> Settings:
        changes = clean_settings_changes(partial)
        with self._write_locks[SETTINGS]:
            settings = self._load(SETTINGS, strict=True)
            for field, value in changes.items():
                setattr(settings, field, value)
            self._write(SETTINGS, settings)
            return settings.copy()

    def force_refresh_settings_cache(self) -> Settings:
        return self._force_refresh(SETTINGS)

    # bookmarks

    def list_bookmarks(self) -> list[Bookmark]:
        collection = self._read(BOOKMARKS)
        return ordering.sorted_bookmarks(collection)

    def list_categories(self) -> list[str]:
        return ordering.ordered_categories(self._read(BOOKMARKS))

    def force_refresh_bookmarks_cache(self) -> list[Bookmark]:
        return ordering.sorted_bookmarks(self._force_refresh(BOOKMARKS))

    def create_bookmark(self, data) -> Bookmark:
        cleaned = clean_bookmark_input(data)

        def mutation(collection):
            bookmark = Bookmark(
                id=new_bookmark_id(),
                title=cleaned.title,
                url=cleaned.url,
                category=cleaned.category,
                description=cleaned.description,
                visible=cleaned.visible,
            )
            return ordering.insert_bookmark(collection, bookmark)

        return self._mutate_bookmarks(mutation)

    def update_bookmark(self, bookmark_id: str, data) -> Bookmark | None:
        changes = clean_bookmark_changes(data)
        return self._mutate_bookmarks(
            lambda collection: ordering.apply_changes(collection, bookmark_id, changes)
        )

    def delete_bookmark(self, bookmark_id: str) -> Bookmark | None:
        return self._mutate_bookmarks(
            lambda collection: ordering.remove_bookmark(collection, bookmark_id)
        )

    def reorder_bookmarks(self, order) -> list[Bookmark]:
        if not isinstance(order, (list, tuple)):
            raise ValidationError("order must be an array of bookmark ids")

        def mutation(collection):
            ordering.reorder_bookmarks(collection, order)
            return collection.bookmarks

        return self._mutate_bookmarks(mutation)

    def reorder_categories(self, order) -> list[Bookmark]:
        if not isinstance(order, (list, tuple)):
            raise ValidationError("order must be an array of category names")

        def mutation(collection):
            ordering.reorder_categories(collection, order)
            return collection.bookmarks

        return self._mutate_bookmarks(mutation)

    def import_bookmarks(self, items, overwrite: bool = False) -> list[Bookmark]:
        """Append many bookmarks in a single write.

        Items must already be valid; ``overwrite`` drops every existing
        bookmark first.
        """
        cleaned = [clean_bookmark_input(item) for item in items]

        def mutation(collection):
            if overwrite:
                collection.bookmarks = []
                collection.category_order = []
            created = []
            for item in cleaned:
                bookmark = Bookmark(
                    id=new_bookmark_id(),
                    title=item.title,
                    url=item.url,
                    category=item.category,
                    description=item.description,
                    visible=item.visible,
                )
                created.append(ordering.insert_bookmark(collection, bookmark))
            return created

        return self._mutate_bookmarks(mutation)
