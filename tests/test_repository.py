import json
import threading

import pytest

from litemark.errors import BackendUnavailableError, MalformedDocumentError, ValidationError
from litemark.services.repository import CachedDocumentRepository


BOOKMARKS_PATH = "data/bookmarks.json"
SETTINGS_PATH = "data/settings.json"


def test_missing_documents_fall_back_to_defaults(repository):
    settings = repository.get_settings()
    assert settings.as_dict() == {"theme": "light", "siteTitle": "个人书签", "siteIcon": "🔖"}
    assert repository.list_bookmarks() == []
    assert repository.list_categories() == []


def test_returned_values_are_copies(repository):
    repository.create_bookmark({"title": "A", "url": "https://a.example"})

    listed = repository.list_bookmarks()
    listed[0].title = "changed"
    listed.clear()
    settings = repository.get_settings()
    settings.theme = "dark"

    assert repository.list_bookmarks()[0].title == "A"
    assert repository.get_settings().theme == "light"


def test_update_settings_is_visible_immediately(store, repository):
    assert repository.get_settings().theme == "light"

    updated = repository.update_settings({"theme": "dark", "siteTitle": "Links"})
    assert updated.theme == "dark"
    assert repository.get_settings().theme == "dark"
    assert repository.get_settings().site_title == "Links"

    stored = json.loads(store.objects[SETTINGS_PATH])
    assert stored == {"theme": "dark", "siteTitle": "Links", "siteIcon": "🔖"}


@pytest.mark.parametrize(
    "payload",
    [
        {"theme": "neon"},
        {"siteTitle": "x" * 61},
        {"siteIcon": "x" * 513},
        {"siteTitle": 42},
    ],
)
def test_invalid_settings_are_rejected_without_writing(store, repository, payload):
    with pytest.raises(ValidationError):
        repository.update_settings(payload)
    assert store.writes == 0


def test_create_requires_title_and_url(store, repository):
    with pytest.raises(ValidationError, match="title is required"):
        repository.create_bookmark({"url": "https://a.example"})
    with pytest.raises(ValidationError, match="url is required"):
        repository.create_bookmark({"title": "A", "url": "   "})
    assert store.writes == 0


def test_read_failure_serves_fallback_and_flags_store(store, repository):
    store.fail_reads = True

    assert repository.list_bookmarks() == []
    assert repository.get_settings().theme == "light"
    assert store.degraded is True


def test_write_failure_propagates_and_keeps_cache(store, repository):
    first = repository.create_bookmark({"title": "A", "url": "https://a.example"})
    store.fail_writes = True

    with pytest.raises(BackendUnavailableError):
        repository.create_bookmark({"title": "B", "url": "https://b.example"})
    with pytest.raises(BackendUnavailableError):
        repository.update_settings({"theme": "dark"})

    assert [b.id for b in repository.list_bookmarks()] == [first.id]
    assert repository.get_settings().theme == "light"


def test_malformed_document_raises(store, repository):
    store.objects[BOOKMARKS_PATH] = "{not json"
    with pytest.raises(MalformedDocumentError):
        repository.list_bookmarks()

    store.objects[BOOKMARKS_PATH] = json.dumps({"bookmarks": []})
    with pytest.raises(MalformedDocumentError):
        repository.list_bookmarks()


def test_cached_reads_until_forced_refresh(store, repository):
    repository.create_bookmark({"title": "A", "url": "https://a.example"})
    reads_before = store.reads
    repository.list_bookmarks()
    repository.list_bookmarks()
    assert store.reads == reads_before

    store.objects[BOOKMARKS_PATH] = json.dumps(
        [{"id": "external", "title": "E", "url": "https://e.example", "position": 0}]
    )
    assert [b.title for b in repository.list_bookmarks()] == ["A"]

    refreshed = repository.force_refresh_bookmarks_cache()
    assert [b.id for b in refreshed] == ["external"]
    assert [b.id for b in repository.list_bookmarks()] == ["external"]


def test_force_refresh_settings(store, repository):
    repository.get_settings()
    store.objects[SETTINGS_PATH] = json.dumps({"theme": "ocean"})

    assert repository.get_settings().theme == "light"
    assert repository.force_refresh_settings_cache().theme == "ocean"


def test_background_refresh_reloads_and_rearms(store, timers):
    repository = CachedDocumentRepository(store, refresh_interval_ms=1500, timers=timers)
    repository.get_settings()
    assert timers.pending["settings"][0] == 1.5

    store.objects[SETTINGS_PATH] = json.dumps({"theme": "forest"})
    timers.fire("settings")

    assert repository.get_settings().theme == "forest"
    assert "settings" in timers.pending


def test_background_refresh_keeps_cache_when_backend_is_down(store, timers):
    repository = CachedDocumentRepository(store, refresh_interval_ms=1000, timers=timers)
    repository.update_settings({"theme": "dark"})

    store.fail_reads = True
    timers.fire("settings")

    assert repository.get_settings().theme == "dark"
    assert "settings" in timers.pending


def test_write_rearms_refresh_timer(store, timers):
    repository = CachedDocumentRepository(store, refresh_interval_ms=1000, timers=timers)
    repository.create_bookmark({"title": "A", "url": "https://a.example"})

    assert "bookmarks" in timers.cancelled
    assert "bookmarks" in timers.pending

    repository.shutdown()
    assert timers.pending == {}


def test_zero_interval_disables_timers(store, timers):
    repository = CachedDocumentRepository(store, refresh_interval_ms=0, timers=timers)
    repository.get_settings()
    repository.create_bookmark({"title": "A", "url": "https://a.example"})
    assert timers.pending == {}


def test_import_bookmarks_single_write_and_overwrite(store, repository):
    repository.create_bookmark({"title": "Old", "url": "https://old.example"})
    writes_before = store.writes

    created = repository.import_bookmarks(
        [
            {"title": "One", "url": "https://one.example", "category": "Imported"},
            {"title": "Two", "url": "https://two.example", "category": "Imported"},
        ],
        overwrite=True,
    )

    assert store.writes == writes_before + 1
    assert [b.position for b in created] == [0, 1]
    assert [b.title for b in repository.list_bookmarks()] == ["One", "Two"]


def test_reorder_requires_array(repository):
    with pytest.raises(ValidationError):
        repository.reorder_bookmarks("id1,id2")
    with pytest.raises(ValidationError):
        repository.reorder_categories({"Work": 0})


def test_failed_fresh_read_aborts_bookmark_mutation(store, repository):
    for title in ("A", "B", "C"):
        repository.create_bookmark({"title": title, "url": f"https://{title}.example"})
    writes_before = store.writes

    store.fail_reads = True
    with pytest.raises(BackendUnavailableError):
        repository.create_bookmark({"title": "D", "url": "https://d.example"})
    store.fail_reads = False

    assert store.writes == writes_before
    stored = json.loads(store.objects[BOOKMARKS_PATH])
    assert [row["title"] for row in stored] == ["A", "B", "C"]


def test_failed_fresh_read_aborts_settings_update(store, repository):
    repository.update_settings({"theme": "dark", "siteTitle": "Links"})
    before = store.objects[SETTINGS_PATH]
    writes_before = store.writes

    store.fail_reads = True
    with pytest.raises(BackendUnavailableError):
        repository.update_settings({"siteIcon": "x"})
    store.fail_reads = False

    assert store.writes == writes_before
    assert store.objects[SETTINGS_PATH] == before


def test_slow_background_refresh_does_not_overwrite_newer_write(store, timers):
    repository = CachedDocumentRepository(store, refresh_interval_ms=1000, timers=timers)
    repository.get_settings()

    entered = threading.Event()
    release = threading.Event()

    def hold(path):
        entered.set()
        release.wait(5)

    store.on_fetch = hold
    refresher = threading.Thread(target=timers.fire, args=("settings",))
    refresher.start()
    assert entered.wait(5)

    store.on_fetch = None
    writer = threading.Thread(target=repository.update_settings, args=({"theme": "dark"},))
    writer.start()
    release.set()
    refresher.join(5)
    writer.join(5)

    assert repository.get_settings().theme == "dark"
    assert json.loads(store.objects[SETTINGS_PATH])["theme"] == "dark"
