"""Matterbridge host - owns the plugin manager and the device registry for one process."""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from matterbridge.constants import GLOBAL_MODULES_DIRECTORY, MATTERBRIDGE_DIRECTORY, PLUGIN_MANIFEST_FILE
from matterbridge.devices.device import DeviceRecord
from matterbridge.devices.registry import DeviceRegistry
from matterbridge.plugins.manager import PluginManager
from matterbridge.plugins.registry import RegisteredPlugin
from matterbridge.storage import NodeStorage

logger = logging.getLogger(__name__)


class EndpointServer(Protocol):
    """The protocol stack side of the bridge: the live aggregator devices are exposed through."""

    async def add_bridged_endpoint(self, device: DeviceRecord) -> None:
        ...

    async def remove_bridged_endpoint(self, device: DeviceRecord) -> None:
        ...


class Matterbridge:
    """The plugin host.

    Constructed once at process startup, started with start(), torn down with stop().
    Plugins reach it through the `matterbridge` argument of their entry factory.
    """

    def __init__(
        self,
        home_directory: Path = MATTERBRIDGE_DIRECTORY,
        storage: Optional[NodeStorage] = None,
        global_modules_directory: Path = GLOBAL_MODULES_DIRECTORY,
        manifest_file: str = PLUGIN_MANIFEST_FILE,
        aggregator: Optional[EndpointServer] = None,
    ):
        self.home_directory = Path(home_directory)
        self.global_modules_directory = Path(global_modules_directory)
        self.storage = storage
        self.aggregator = aggregator

        self.devices = DeviceRegistry()
        # unique_id -> name of the plugin that registered the device
        self._owners: Dict[str, str] = {}
        self.plugins = PluginManager(
            host=self,
            config_dir=self.home_directory,
            storage=storage,
            global_modules_directory=self.global_modules_directory,
            manifest_file=manifest_file,
        )

    async def start(self) -> None:
        """Load the registered plugins from storage, then load, start and configure the enabled ones."""
        logger.info(f"Starting Matterbridge host in {self.home_directory}")
        await self.plugins.registry.load_from_storage()

        async def activate(plugin: RegisteredPlugin) -> None:
            if not plugin.enabled:
                logger.info(f"Plugin {plugin.name} is disabled, skipping")
                return
            if await self.plugins.parse(plugin) is None:
                plugin.error = True
                return
            await self.plugins.load(plugin, start=True, message="Matterbridge is starting", configure=True)

        await self.plugins.registry.for_each(activate)

        started = [p for p in self.plugins.registry if p.started]
        logger.info(
            f"Plugin host initialized, "
            f"{len(started)}/{len(self.plugins.registry)} plugins started, "
            f"{len(self.devices)} devices registered"
        )

    async def stop(self, reason: str = "Matterbridge is shutting down") -> None:
        """Shut down every plugin, persist the registry and clear both registries."""
        logger.info("Stopping Matterbridge host")

        async def shutdown(plugin: RegisteredPlugin) -> None:
            remove_devices = bool(plugin.config_json and plugin.config_json.get("unregisterOnShutdown"))
            await self.plugins.shutdown(plugin, reason, remove_all_devices=remove_devices)

        await self.plugins.registry.for_each(shutdown)
        if self.storage is not None:
            try:
                await self.plugins.registry.save_to_storage()
            except Exception as e:
                logger.error(f"Failed to save plugins to storage while stopping: {e}")
        self.devices.clear()
        self._owners.clear()
        self.plugins.registry.clear()
        logger.info("All plugins stopped")

    def device_owner(self, device: DeviceRecord) -> Optional[str]:
        """Name of the plugin that registered the device, None if it is not registered."""
        return self._owners.get(device.unique_id)

    def plugin_devices(self, plugin_name: str) -> List[DeviceRecord]:
        """Snapshot of the devices registered by one plugin."""
        return [d for d in self.devices.array() if self._owners.get(d.unique_id) == plugin_name]

    async def add_bridged_endpoint(self, plugin_name: str, device: DeviceRecord) -> bool:
        """Expose a plugin device through the bridge and record it in the device registry.

        Returns:
            True if the device was added
        """
        plugin = self.plugins.get(plugin_name)
        if plugin is None:
            logger.error(f"Error adding bridged endpoint {device.device_name} ({device.unique_id}): plugin {plugin_name} not found")
            return False
        if not device.unique_id:
            raise ValueError(f"The device {device.device_name} has not been initialized: unique_id is required")
        if self.devices.has(device.unique_id):
            # Logs the duplicate and keeps the registered device
            self.devices.set(device)
            return False

        if hasattr(device, "plugin"):
            device.plugin = plugin_name
        if self.aggregator is not None:
            try:
                await self.aggregator.add_bridged_endpoint(device)
            except Exception as e:
                logger.error(f"Error adding bridged endpoint {device.device_name} ({device.unique_id}) for plugin {plugin_name}: {e}")
                return False

        self.devices.set(device)
        self._owners[device.unique_id] = plugin_name
        plugin.registered_devices = (plugin.registered_devices or 0) + 1
        plugin.added_devices = (plugin.added_devices or 0) + 1
        logger.info(f"Added bridged endpoint {device.device_name} ({device.unique_id}) for plugin {plugin_name}")
        return True

    async def remove_bridged_endpoint(self, plugin_name: str, device: DeviceRecord) -> bool:
        """Withdraw a plugin device from the bridge and the device registry."""
        if self.aggregator is not None:
            try:
                await self.aggregator.remove_bridged_endpoint(device)
            except Exception as e:
                logger.error(f"Error removing bridged endpoint {device.device_name} ({device.unique_id}) for plugin {plugin_name}: {e}")

        if not self.devices.remove(device):
            return False
        self._owners.pop(device.unique_id, None)

        plugin = self.plugins.get(plugin_name)
        if plugin is not None:
            if plugin.registered_devices:
                plugin.registered_devices -= 1
            if plugin.added_devices:
                plugin.added_devices -= 1
        logger.info(f"Removed bridged endpoint {device.device_name} ({device.unique_id}) for plugin {plugin_name}")
        return True

    async def remove_all_bridged_endpoints(self, plugin_name: str) -> int:
        """Withdraw every device owned by a plugin.

        Returns:
            Number of devices removed
        """
        removed = 0

        async def remove(device: DeviceRecord) -> None:
            nonlocal removed
            if self._owners.get(device.unique_id) != plugin_name:
                return
            if await self.remove_bridged_endpoint(plugin_name, device):
                removed += 1

        await self.devices.for_each(remove)
        logger.info(f"Removed {removed} bridged endpoint(s) for plugin {plugin_name}")
        return removed
