"""
Tests unitaires Storage

InMemoryStorage, SharedStorageArea (multi-onglets) et YamlFileStorage.
"""

import asyncio

import pytest
import yaml

from authcore.logging.interfaces import LogLevel
from authcore.logging.structured_logger import StructuredLogger
from authcore.storage import (
    IClientStorage,
    InMemoryStorage,
    SharedStorageArea,
    StorageEvent,
    StorageFileError,
    YamlFileStorage,
)


# ══════════════════════════════════════════════════════════════════════════════
# IN-MEMORY
# ══════════════════════════════════════════════════════════════════════════════


class TestInMemoryStorage:
    """Stockage volatile."""

    def test_set_get_remove(self):
        storage = InMemoryStorage()

        storage.set("k", "v")
        assert storage.get("k") == "v"
        assert len(storage) == 1

        storage.remove("k")
        storage.remove("k")
        assert storage.get("k") is None

    def test_subscribe_never_notifies(self):
        storage = InMemoryStorage()
        events = []
        unsubscribe = storage.subscribe(events.append)

        storage.set("k", "v")
        unsubscribe()

        assert events == []
        assert isinstance(storage, IClientStorage)


# ══════════════════════════════════════════════════════════════════════════════
# SHARED (MULTI-ONGLETS)
# ══════════════════════════════════════════════════════════════════════════════


class TestSharedStorage:
    """Vues partagées avec notification des autres vues."""

    def test_views_share_data(self):
        area = SharedStorageArea()
        tab_a = area.open_view()
        tab_b = area.open_view()

        tab_a.set("k", "v")

        assert tab_b.get("k") == "v"
        assert area.view_count == 2

    def test_writer_not_notified_outside_loop(self):
        """Hors boucle asyncio, la livraison est immédiate."""
        area = SharedStorageArea()
        tab_a = area.open_view()
        tab_b = area.open_view()
        seen_a, seen_b = [], []
        tab_a.subscribe(seen_a.append)
        tab_b.subscribe(seen_b.append)

        tab_a.set("k", "v1")

        assert seen_a == []
        assert seen_b == [StorageEvent(key="k", old_value=None, new_value="v1")]

    @pytest.mark.asyncio
    async def test_delivery_on_next_tick(self):
        """Dans une boucle, l'événement arrive au tick suivant."""
        area = SharedStorageArea()
        tab_a = area.open_view()
        tab_b = area.open_view()
        seen = []
        tab_b.subscribe(seen.append)

        tab_a.set("k", "v1")
        assert seen == []

        await asyncio.sleep(0)
        assert [e.new_value for e in seen] == ["v1"]

    def test_unchanged_value_not_notified(self):
        area = SharedStorageArea()
        tab_a = area.open_view()
        tab_b = area.open_view()
        seen = []
        tab_b.subscribe(seen.append)

        tab_a.set("k", "v")
        tab_a.set("k", "v")
        tab_a.remove("absent")

        assert len(seen) == 1

    def test_removal_event(self):
        area = SharedStorageArea()
        tab_a = area.open_view()
        tab_b = area.open_view()
        tab_a.set("k", "v")
        seen = []
        tab_b.subscribe(seen.append)

        tab_a.remove("k")

        assert seen[0].removed
        assert seen[0].old_value == "v"

    def test_unsubscribe_and_close(self):
        area = SharedStorageArea()
        tab_a = area.open_view()
        tab_b = area.open_view()
        tab_c = area.open_view()
        seen_b, seen_c = [], []
        unsubscribe = tab_b.subscribe(seen_b.append)
        tab_c.subscribe(seen_c.append)

        unsubscribe()
        tab_c.close()
        tab_a.set("k", "v")

        assert seen_b == []
        assert seen_c == []
        assert area.view_count == 2

    def test_listener_error_logged(self):
        logger = StructuredLogger("authcore.storage.test")
        area = SharedStorageArea(logger)
        tab_a = area.open_view()
        tab_b = area.open_view()
        seen = []

        def broken(event):
            raise ValueError("bad listener")

        tab_b.subscribe(broken)
        tab_b.subscribe(seen.append)

        tab_a.set("k", "v")

        assert len(seen) == 1
        errors = logger.get_entries_by_level(LogLevel.ERROR)
        assert errors[0].extra["error_type"] == "ValueError"


# ══════════════════════════════════════════════════════════════════════════════
# YAML
# ══════════════════════════════════════════════════════════════════════════════


class TestYamlFileStorage:
    """Stockage durable fichier."""

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "state" / "authcore.yaml"

        YamlFileStorage(path).set("authcore.active_company:t-1:u-1", "company-b")
        reopened = YamlFileStorage(path)

        assert reopened.get("authcore.active_company:t-1:u-1") == "company-b"
        assert yaml.safe_load(path.read_text(encoding="utf-8")) == {
            "authcore.active_company:t-1:u-1": "company-b"
        }

    def test_remove_rewrites_file(self, tmp_path):
        path = tmp_path / "authcore.yaml"
        storage = YamlFileStorage(path)
        storage.set("a", "1")
        storage.set("b", "2")

        storage.remove("a")

        assert YamlFileStorage(path).get("a") is None
        assert YamlFileStorage(path).get("b") == "2"

    def test_missing_file_is_empty(self, tmp_path):
        storage = YamlFileStorage(tmp_path / "absent.yaml")

        assert storage.get("k") is None
        assert storage.path == tmp_path / "absent.yaml"

    def test_empty_file_is_empty(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert YamlFileStorage(path).get("k") is None

    def test_invalid_content_raises(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(StorageFileError) as exc:
            YamlFileStorage(path)

        assert exc.value.code == "STORAGE_FILE_ERROR"

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("key: [unclosed", encoding="utf-8")

        with pytest.raises(StorageFileError):
            YamlFileStorage(path)
