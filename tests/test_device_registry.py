"""Tests for the device registry."""

import asyncio
import logging

import pytest

from matterbridge.devices import BridgedDevice, DeviceRegistry, create_unique_id


def make_device(unique_id="uid-1", name="Lamp", serial="SN1"):
    return BridgedDevice(unique_id=unique_id, device_name=name, serial_number=serial)


class TestDeviceRegistry:
    """Tests for DeviceRegistry."""

    def test_set_and_get(self):
        registry = DeviceRegistry()
        device = make_device()
        assert registry.set(device) is device
        assert registry.has("uid-1")
        assert registry.get("uid-1") is device
        assert len(registry) == 1
        assert registry.size == registry.length == 1

    def test_set_without_unique_id_raises(self):
        registry = DeviceRegistry()
        with pytest.raises(ValueError, match="unique_id is required"):
            registry.set(make_device(unique_id=None))
        assert len(registry) == 0

    def test_duplicate_is_logged_and_not_overwritten(self, caplog):
        registry = DeviceRegistry()
        first = make_device(name="First")
        registry.set(first)

        with caplog.at_level(logging.ERROR):
            result = registry.set(make_device(name="Second"))

        assert result is first
        assert registry.get("uid-1").device_name == "First"
        assert "already in the device manager" in caplog.text

    def test_remove(self):
        registry = DeviceRegistry()
        device = make_device()
        registry.set(device)
        assert registry.remove(device) is True
        assert not registry.has("uid-1")

    def test_remove_unknown_device_logs(self, caplog):
        registry = DeviceRegistry()
        with caplog.at_level(logging.ERROR):
            assert registry.remove(make_device()) is False
        assert "is not registered in the device manager" in caplog.text

    def test_remove_without_unique_id_raises(self):
        with pytest.raises(ValueError):
            DeviceRegistry().remove(make_device(unique_id=""))

    def test_array_is_a_snapshot_in_insertion_order(self):
        registry = DeviceRegistry()
        for i in range(3):
            registry.set(make_device(unique_id=f"uid-{i}", name=f"D{i}"))
        snapshot = registry.array()
        registry.clear()
        assert [d.unique_id for d in snapshot] == ["uid-0", "uid-1", "uid-2"]
        assert len(registry) == 0

    def test_for_each_isolates_failures(self, caplog):
        registry = DeviceRegistry()
        for i in range(3):
            registry.set(make_device(unique_id=f"uid-{i}", name=f"D{i}"))
        visited = []

        async def callback(device):
            visited.append(device.unique_id)
            if device.unique_id == "uid-1":
                raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR):
            asyncio.run(registry.for_each(callback))

        assert visited == ["uid-0", "uid-1", "uid-2"]
        assert "Error processing for_each device D1" in caplog.text

    def test_for_each_tolerates_removal_during_iteration(self):
        registry = DeviceRegistry()
        for i in range(3):
            registry.set(make_device(unique_id=f"uid-{i}", name=f"D{i}"))
        visited = []

        async def callback(device):
            visited.append(device.unique_id)
            registry.remove(device)

        asyncio.run(registry.for_each(callback))
        assert visited == ["uid-0", "uid-1", "uid-2"]
        assert len(registry) == 0


class TestCreateUniqueId:
    """Tests for create_unique_id."""

    def test_is_stable_md5_hex(self):
        uid = create_unique_id("plugin", "Lamp")
        assert uid == create_unique_id("plugin", "Lamp")
        assert len(uid) == 32
        assert uid != create_unique_id("plugin", "Other")
