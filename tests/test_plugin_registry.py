"""Tests for the plugin registry and its persistence."""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from matterbridge.plugins.discovery import PluginDiscovery
from matterbridge.plugins.events import PluginEvents
from matterbridge.plugins.registry import PluginRegistry, PluginState, RegisteredPlugin
from matterbridge.storage import NodeStorage, StorageUnavailableError


@pytest.fixture
def registry(tmp_path, storage):
    return PluginRegistry(PluginDiscovery(tmp_path / "global"), storage=storage, events=PluginEvents())


class TestRegisteredPlugin:
    """Tests for RegisteredPlugin state views."""

    def test_state_views(self):
        plugin = RegisteredPlugin(name="p", path="/p/plugin.json")
        assert (plugin.loaded, plugin.started, plugin.configured) == (False, False, False)

        plugin.state = PluginState.STARTED
        assert (plugin.loaded, plugin.started, plugin.configured) == (True, True, False)

        plugin.state = PluginState.CONFIGURED
        assert (plugin.loaded, plugin.started, plugin.configured) == (True, True, True)

    def test_storage_round_trip_keeps_only_persisted_fields(self):
        plugin = RegisteredPlugin(name="p", path="/p/plugin.json", enabled=True, error=True)
        plugin.state = PluginState.LOADED
        data = plugin.to_storage()

        assert "state" not in data and "error" not in data
        restored = RegisteredPlugin.from_storage(data)
        assert restored.name == "p" and restored.enabled is True
        assert restored.state == PluginState.IDLE
        assert restored.error is None


class TestPluginRegistry:
    """Tests for PluginRegistry."""

    def test_add_registers_enables_and_persists(self, registry, storage, write_plugin):
        added = []
        registry.events.on("added", added.append)
        manifest_path = write_plugin()

        plugin = asyncio.run(registry.add(str(manifest_path.parent)))

        assert plugin.name == "matterbridge-test"
        assert plugin.enabled is True
        assert plugin.path == str(manifest_path.resolve())
        assert registry.has("matterbridge-test")
        stored = asyncio.run(storage.get("plugins"))
        assert stored[0]["name"] == "matterbridge-test"
        assert stored[0]["enabled"] is True
        assert added == ["matterbridge-test"]

    def test_add_duplicate_is_rejected(self, registry, write_plugin, caplog):
        manifest_path = write_plugin()
        asyncio.run(registry.add(str(manifest_path)))
        with caplog.at_level(logging.INFO):
            assert asyncio.run(registry.add(str(manifest_path))) is None
        assert "already registered" in caplog.text
        assert len(registry) == 1

    def test_add_invalid_plugin(self, registry, write_plugin):
        assert asyncio.run(registry.add("missing-plugin")) is None
        assert asyncio.run(registry.add(str(write_plugin(manifest={"type": "script"})))) is None
        assert asyncio.run(registry.add("")) is None
        assert len(registry) == 0

    def test_enable_disable_remove_by_name_and_path(self, registry, storage, write_plugin):
        manifest_path = write_plugin()
        asyncio.run(registry.add(str(manifest_path)))

        assert asyncio.run(registry.disable("matterbridge-test")).enabled is False
        assert asyncio.run(storage.get("plugins"))[0]["enabled"] is False
        assert asyncio.run(registry.enable(str(manifest_path.parent))).enabled is True

        removed = asyncio.run(registry.remove(str(manifest_path)))
        assert removed.name == "matterbridge-test"
        assert len(registry) == 0
        assert asyncio.run(storage.get("plugins")) == []

    def test_lookup_of_unregistered_plugin(self, registry, write_plugin, caplog):
        manifest_path = write_plugin()
        with caplog.at_level(logging.ERROR):
            assert asyncio.run(registry.enable(str(manifest_path))) is None
        assert "plugin not registered" in caplog.text

        with caplog.at_level(logging.ERROR):
            assert asyncio.run(registry.disable("nowhere-to-be-found")) is None
        assert "plugin.json not found" in caplog.text

    def test_load_from_storage(self, tmp_path, write_plugin):
        storage = NodeStorage(tmp_path / "storage")
        first = PluginRegistry(PluginDiscovery(tmp_path), storage=storage)
        asyncio.run(first.add(str(write_plugin("matterbridge-a"))))
        asyncio.run(first.add(str(write_plugin("matterbridge-b"))))
        asyncio.run(first.disable("matterbridge-b"))

        second = PluginRegistry(PluginDiscovery(tmp_path), storage=NodeStorage(tmp_path / "storage"))
        loaded = asyncio.run(second.load_from_storage())

        assert [p.name for p in loaded] == ["matterbridge-a", "matterbridge-b"]
        assert second.get("matterbridge-b").enabled is False
        assert all(p.state == PluginState.IDLE for p in second)

    def test_save_clear_load_round_trip(self, registry, write_plugin):
        for name in ("matterbridge-a", "matterbridge-b", "matterbridge-c"):
            asyncio.run(registry.add(str(write_plugin(name))))

        assert asyncio.run(registry.save_to_storage()) == 3
        registry.clear()
        asyncio.run(registry.load_from_storage())

        assert [p.name for p in registry] == ["matterbridge-a", "matterbridge-b", "matterbridge-c"]

    def test_storage_unavailable(self, tmp_path):
        registry = PluginRegistry(PluginDiscovery(tmp_path))
        with pytest.raises(StorageUnavailableError):
            asyncio.run(registry.load_from_storage())
        with pytest.raises(StorageUnavailableError):
            asyncio.run(registry.save_to_storage())

    def test_failed_persist_keeps_change(self, registry, write_plugin, caplog):
        manifest_path = write_plugin()
        asyncio.run(registry.add(str(manifest_path)))
        registry.storage.set = AsyncMock(side_effect=OSError("disk full"))

        with caplog.at_level(logging.ERROR):
            plugin = asyncio.run(registry.disable("matterbridge-test"))

        assert plugin.enabled is False
        assert "Failed to save plugins to storage" in caplog.text

    def test_for_each_continues_after_failure(self, registry, caplog):
        for name in ("a", "b", "c"):
            registry.set(RegisteredPlugin(name=name, path=f"/{name}/plugin.json"))
        visited = []

        async def callback(plugin):
            visited.append(plugin.name)
            if plugin.name == "b":
                raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR):
            asyncio.run(registry.for_each(callback))

        assert visited == ["a", "b", "c"]
        assert "Error processing for_each plugin b" in caplog.text

    def test_for_each_when_every_callback_fails(self, registry):
        for name in ("a", "b", "c", "d"):
            registry.set(RegisteredPlugin(name=name, path=f"/{name}/plugin.json"))
        callback = AsyncMock(side_effect=RuntimeError("boom"))

        asyncio.run(registry.for_each(callback))

        assert callback.await_count == 4

    def test_container_views(self, registry):
        registry.set(RegisteredPlugin(name="a", path="/a/plugin.json", enabled=True))
        registry.set(RegisteredPlugin(name="b", path="/b/plugin.json", enabled=False))
        assert "a" in registry
        assert registry.size == registry.length == 2
        assert [p.name for p in registry.get_enabled()] == ["a"]
        registry.clear()
        assert len(registry) == 0
