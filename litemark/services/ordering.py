"""Bookmark and category ordering.

Every bookmark carries a ``position`` that is dense and 0-based within its
category. Categories are ordered by ``BookmarkCollection.category_order``; a
category missing from that list sorts after the listed ones, in the order it
is first seen. The user-visible order is always derived from those two values
on read: no combined rank is stored, so reorder operations only ever touch one
of them.

All functions mutate the collection in place. After each mutation the
collection is *settled*: ``category_order`` is rewritten to the effective
order of the categories that still have bookmarks, and ``bookmarks`` is
sorted into listing order, which is also the order the document is written
in. Writing grouped by category is what persists the category order inside a
plain JSON array.
"""

from __future__ import annotations

from collections.abc import Iterable

from litemark.models import Bookmark, BookmarkCollection, new_bookmark_id, normalize_category


def ordered_categories(collection: BookmarkCollection) -> list[str]:
    present: list[str] = []
    seen: set[str] = set()
    for bookmark in collection.bookmarks:
        if bookmark.category not in seen:
            seen.add(bookmark.category)
            present.append(bookmark.category)

    result: list[str] = []
    for category in collection.category_order:
        if category in seen and category not in result:
            result.append(category)
    for category in present:
        if category not in result:
            result.append(category)
    return result


def sorted_bookmarks(collection: BookmarkCollection) -> list[Bookmark]:
    rank = {category: index for index, category in enumerate(collection.category_order)}
    unknown = len(rank)
    return sorted(
        collection.bookmarks,
        key=lambda b: (rank.get(b.category, unknown), b.position),
    )


def settle(collection: BookmarkCollection) -> BookmarkCollection:
    collection.category_order = ordered_categories(collection)
    collection.bookmarks = sorted_bookmarks(collection)
    return collection


def next_position(collection: BookmarkCollection, category: str) -> int:
    positions = [b.position for b in collection.in_category(category)]
    return max(positions) + 1 if positions else 0


def _compact_after(
    collection: BookmarkCollection,
    category: str,
    position: int,
    exclude: Bookmark | None = None,
) -> None:
    for bookmark in collection.bookmarks:
        if bookmark is exclude:
            continue
        if bookmark.category == category and bookmark.position > position:
            bookmark.position -= 1


def insert_bookmark(collection: BookmarkCollection, bookmark: Bookmark) -> Bookmark:
    bookmark.category = normalize_category(bookmark.category)
    bookmark.position = next_position(collection, bookmark.category)
    collection.bookmarks.append(bookmark)
    settle(collection)
    return bookmark


def remove_bookmark(collection: BookmarkCollection, bookmark_id: str) -> Bookmark | None:
    removed = collection.find(bookmark_id)
    if removed is None:
        return None
    collection.bookmarks = [b for b in collection.bookmarks if b is not removed]
    _compact_after(collection, removed.category, removed.position)
    settle(collection)
    return removed


def move_bookmark(collection: BookmarkCollection, bookmark: Bookmark, category: str) -> None:
    category = normalize_category(category)
    if category == bookmark.category:
        return
    _compact_after(collection, bookmark.category, bookmark.position, exclude=bookmark)
    bookmark.position = next_position(collection, category)
    bookmark.category = category


def apply_changes(
    collection: BookmarkCollection, bookmark_id: str, changes: dict
) -> Bookmark | None:
    bookmark = collection.find(bookmark_id)
    if bookmark is None:
        return None
    for field in ("title", "url", "description", "visible"):
        if field in changes:
            setattr(bookmark, field, changes[field])
    if "category" in changes:
        move_bookmark(collection, bookmark, changes["category"])
    settle(collection)
    return bookmark


def reorder_bookmarks(collection: BookmarkCollection, order: Iterable) -> None:
    """Apply an explicit bookmark order.

    Positions are assigned per category: requested ids come first in request
    order, then the ids that were not mentioned, in their previous order.
    Unknown and repeated ids are ignored, so a client may send only the ids
    of one category view.
    """
    lookup = {b.id: b for b in collection.bookmarks}
    requested: dict[str, list[Bookmark]] = {}
    for raw_id in order:
        bookmark = lookup.pop(str(raw_id), None)
        if bookmark is None:
            continue
        requested.setdefault(bookmark.category, []).append(bookmark)

    for category in ordered_categories(collection):
        leftovers = sorted(
            (b for b in lookup.values() if b.category == category),
            key=lambda b: b.position,
        )
        for position, bookmark in enumerate(requested.get(category, []) + leftovers):
            bookmark.position = position
    settle(collection)


def reorder_categories(collection: BookmarkCollection, order: Iterable) -> None:
    existing = ordered_categories(collection)
    known = set(existing)

    result: list[str] = []
    for value in order:
        key = normalize_category(value)
        if key in known and key not in result:
            result.append(key)
    for key in existing:
        if key not in result:
            result.append(key)

    collection.category_order = result
    settle(collection)


def normalize_positions(collection: BookmarkCollection) -> BookmarkCollection:
    """Renumber every category densely, keeping the stored relative order.

    Records without a usable position (``-1``) follow the positioned ones in
    array order.
    """
    indexed = list(enumerate(collection.bookmarks))
    by_category: dict[str, list[tuple[int, Bookmark]]] = {}
    for index, bookmark in indexed:
        by_category.setdefault(bookmark.category, []).append((index, bookmark))

    for rows in by_category.values():
        rows.sort(key=lambda row: (row[1].position < 0, row[1].position, row[0]))
        for position, (_, bookmark) in enumerate(rows):
            bookmark.position = position
    return settle(collection)


def load_collection(records: list) -> BookmarkCollection:
    bookmarks: list[Bookmark] = []
    seen_ids: set[str] = set()
    for record in records:
        if not isinstance(record, dict):
            continue
        bookmark = Bookmark.from_dict(record)
        if bookmark.id in seen_ids:
            bookmark.id = new_bookmark_id()
        seen_ids.add(bookmark.id)
        bookmarks.append(bookmark)

    collection = BookmarkCollection(bookmarks=bookmarks)
    # Stored arrays are grouped by category, so first-seen order is the
    # persisted category order.
    collection.category_order = ordered_categories(collection)
    return normalize_positions(collection)


def dump_collection(collection: BookmarkCollection) -> list[dict]:
    return [bookmark.as_dict() for bookmark in sorted_bookmarks(collection)]
