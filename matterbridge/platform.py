"""Platform base classes that plugin entry factories return."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, TYPE_CHECKING

from matterbridge.devices.device import DeviceRecord

if TYPE_CHECKING:
    from matterbridge.host import Matterbridge

PlatformConfig = Dict[str, Any]


class MatterbridgePlatform(ABC):
    """Abstract base class for plugin platforms.

    A plugin's entry module exposes a factory `initialize_plugin(matterbridge, log, config)`
    returning an instance of a subclass. The host then drives it through
    on_start -> on_configure -> on_shutdown.
    """

    type = "AnyPlatform"

    def __init__(self, matterbridge: Matterbridge, log: logging.Logger, config: PlatformConfig):
        self.matterbridge = matterbridge
        self.log = log
        self.config = config
        self.name: str = config.get("name", "")
        self.version: str = config.get("version", "1.0.0")
        self._registered_devices: Dict[str, DeviceRecord] = {}

    @abstractmethod
    async def on_start(self, reason: Optional[str] = None) -> None:
        """Called when the plugin is started. Create and register devices here."""
        ...

    async def on_configure(self) -> None:
        """Called after the plugin has started. Override to configure registered devices."""
        self.log.debug(f"Configuring platform {self.name}")

    async def on_shutdown(self, reason: Optional[str] = None) -> None:
        """Called when the plugin is shut down. Override for cleanup, calling super()."""
        self.log.debug(f"Shutting down platform {self.name}: {reason}")
        if self.config.get("unregisterOnShutdown"):
            await self.unregister_all_devices()

    async def on_config_changed(self, config: PlatformConfig) -> None:
        """Called when a new config has been saved for this plugin."""
        self.log.debug(f"The plugin doesn't override on_config_changed. Received new config for {self.name}")

    async def register_device(self, device: DeviceRecord) -> bool:
        """Register a device with the bridge.

        Returns:
            True if the device was handed to the host
        """
        if not device.unique_id:
            self.log.error(f"Device with name {device.device_name} has no unique_id. The device will not be added.")
            return False
        if not device.device_name:
            self.log.error(f"Device with unique_id {device.unique_id} has no device_name. The device will not be added.")
            return False
        if not device.serial_number:
            self.log.error(f"Device with unique_id {device.unique_id} has no serial_number. The device will not be added.")
            return False
        if self.has_device_name(device.device_name):
            self.log.error(
                f"Device with name {device.device_name} is already registered. "
                f"The device will not be added. Please change the device name."
            )
            return False

        if not await self.matterbridge.add_bridged_endpoint(self.name, device):
            return False
        self._registered_devices[device.unique_id] = device
        return True

    async def unregister_device(self, device: DeviceRecord) -> None:
        await self.matterbridge.remove_bridged_endpoint(self.name, device)
        if device.unique_id:
            self._registered_devices.pop(device.unique_id, None)

    async def unregister_all_devices(self) -> None:
        await self.matterbridge.remove_all_bridged_endpoints(self.name)
        self._registered_devices.clear()

    def size(self) -> int:
        return len(self._registered_devices)

    def get_devices(self) -> list[DeviceRecord]:
        return list(self._registered_devices.values())

    def get_device_by_unique_id(self, unique_id: str) -> Optional[DeviceRecord]:
        return self._registered_devices.get(unique_id)

    def get_device_by_name(self, device_name: str) -> Optional[DeviceRecord]:
        return next((d for d in self._registered_devices.values() if d.device_name == device_name), None)

    def has_device_name(self, device_name: Optional[str]) -> bool:
        return self.get_device_by_name(device_name) is not None if device_name else False

    def validate_device(self, device: str | list[str], log: bool = True) -> bool:
        """Check device names against the blackList/whiteList config. The blackList wins."""
        names = [device] if isinstance(device, str) else list(device)

        black_list = self.config.get("blackList") or []
        if any(name in black_list for name in names):
            if log:
                self.log.info(f"Skipping device {', '.join(names)} because in blacklist")
            return False

        white_list = self.config.get("whiteList") or []
        if not white_list or any(name in white_list for name in names):
            return True
        if log:
            self.log.info(f"Skipping device {', '.join(names)} because not in whitelist")
        return False

    def validate_entity(self, device: str, entity: str, log: bool = True) -> bool:
        """Check an entity against entityBlackList, entityWhiteList and deviceEntityBlackList."""
        entity_black_list = self.config.get("entityBlackList") or []
        if entity in entity_black_list:
            if log:
                self.log.info(f"Skipping entity {entity} because in entityBlackList")
            return False

        entity_white_list = self.config.get("entityWhiteList") or []
        if entity_white_list and entity not in entity_white_list:
            if log:
                self.log.info(f"Skipping entity {entity} because not in entityWhiteList")
            return False

        device_entity_black_list = self.config.get("deviceEntityBlackList") or {}
        if entity in device_entity_black_list.get(device, []):
            if log:
                self.log.info(f"Skipping entity {entity} for device {device} because in deviceEntityBlackList")
            return False
        return True


class MatterbridgeAccessoryPlatform(MatterbridgePlatform):
    """Platform exposing a single accessory."""

    type = "AccessoryPlatform"


class MatterbridgeDynamicPlatform(MatterbridgePlatform):
    """Platform exposing any number of bridged devices."""

    type = "DynamicPlatform"
