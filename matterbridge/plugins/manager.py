"""Plugin manager - top-level orchestrator for the plugin system."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING

from matterbridge.constants import GLOBAL_MODULES_DIRECTORY, PIP_COMMAND, PLUGIN_MANIFEST_FILE
from matterbridge.plugins.config import PlatformConfig, PlatformSchema, PluginConfigService
from matterbridge.plugins.discovery import PluginDiscovery
from matterbridge.plugins.events import PluginEvents
from matterbridge.plugins.installer import PackageInstaller
from matterbridge.plugins.lifecycle import PluginLifecycle
from matterbridge.plugins.manifest import PluginManifest
from matterbridge.plugins.registry import PluginRegistry, RegisteredPlugin
from matterbridge.storage import NodeStorage

if TYPE_CHECKING:
    from matterbridge.host import Matterbridge
    from matterbridge.platform import MatterbridgePlatform

logger = logging.getLogger(__name__)


class PluginManager:
    """Top-level plugin system orchestrator.

    Coordinates resolution, registration, configuration, lifecycle and
    package installation for the plugins of one host.
    """

    def __init__(
        self,
        host: Matterbridge,
        config_dir: Path,
        storage: Optional[NodeStorage] = None,
        global_modules_directory: Path = GLOBAL_MODULES_DIRECTORY,
        manifest_file: str = PLUGIN_MANIFEST_FILE,
        pip_command: Sequence[str] = PIP_COMMAND,
    ):
        self.host = host
        self.events = PluginEvents()
        self.discovery = PluginDiscovery(global_modules_directory, manifest_file)
        self.registry = PluginRegistry(self.discovery, storage=storage, events=self.events)
        self.config_service = PluginConfigService(config_dir)
        self.lifecycle = PluginLifecycle(host, self.registry, self.config_service, events=self.events)
        self.installer = PackageInstaller(pip_command, events=self.events)

    def __len__(self) -> int:
        return len(self.registry)

    # Registry

    def has(self, name: str) -> bool:
        return self.registry.has(name)

    def get(self, name: str) -> Optional[RegisteredPlugin]:
        return self.registry.get(name)

    def array(self) -> List[RegisteredPlugin]:
        return self.registry.array()

    async def add(self, name_or_path: str) -> Optional[RegisteredPlugin]:
        return await self.registry.add(name_or_path)

    async def remove(self, name_or_path: str) -> Optional[RegisteredPlugin]:
        return await self.registry.remove(name_or_path)

    async def enable(self, name_or_path: str) -> Optional[RegisteredPlugin]:
        return await self.registry.enable(name_or_path)

    async def disable(self, name_or_path: str) -> Optional[RegisteredPlugin]:
        return await self.registry.disable(name_or_path)

    # Resolver and parser

    async def resolve(self, name_or_path: str) -> Optional[PluginManifest]:
        return await self.discovery.resolve(name_or_path)

    async def parse(self, plugin: RegisteredPlugin) -> Optional[RegisteredPlugin]:
        return await self.discovery.parse(plugin)

    # Lifecycle

    async def load(
        self,
        plugin: RegisteredPlugin,
        start: bool = False,
        message: str = "",
        configure: bool = False,
    ) -> Optional[MatterbridgePlatform]:
        return await self.lifecycle.load(plugin, start=start, message=message, configure=configure)

    async def start(
        self,
        plugin: RegisteredPlugin,
        message: Optional[str] = None,
        configure: bool = False,
    ) -> Optional[RegisteredPlugin]:
        return await self.lifecycle.start(plugin, message=message, configure=configure)

    async def configure(self, plugin: RegisteredPlugin) -> Optional[RegisteredPlugin]:
        return await self.lifecycle.configure(plugin)

    async def shutdown(
        self,
        plugin: RegisteredPlugin,
        reason: Optional[str] = None,
        remove_all_devices: bool = False,
        force: bool = False,
    ) -> Optional[RegisteredPlugin]:
        return await self.lifecycle.shutdown(plugin, reason, remove_all_devices=remove_all_devices, force=force)

    # Config and schema

    async def load_config(self, plugin: RegisteredPlugin) -> PlatformConfig:
        return await self.config_service.load_config(plugin)

    async def save_config_from_plugin(self, plugin: RegisteredPlugin, restart_required: bool = False) -> None:
        await self.config_service.save_config_from_plugin(plugin, restart_required)

    async def save_config_from_json(
        self,
        plugin: RegisteredPlugin,
        config: PlatformConfig,
        restart_required: bool = False,
    ) -> None:
        await self.config_service.save_config_from_json(plugin, config, restart_required)

    async def load_schema(self, plugin: RegisteredPlugin) -> PlatformSchema:
        return await self.config_service.load_schema(plugin)

    def get_default_schema(self, plugin: RegisteredPlugin) -> PlatformSchema:
        return self.config_service.get_default_schema(plugin)

    # Package installer

    async def install(self, name: str) -> Optional[str]:
        return await self.installer.install(name)

    async def uninstall(self, name: str) -> Optional[str]:
        return await self.installer.uninstall(name)

    # Commands

    async def enable_plugin(self, name: str) -> Optional[RegisteredPlugin]:
        """Enable a plugin, then load, start and configure it.

        Args:
            name: Plugin name or path

        Returns:
            The plugin, or None if it is not registered
        """
        plugin = await self.enable(name)
        if plugin is None:
            return None
        if plugin.started:
            return plugin

        if await self.parse(plugin) is None:
            plugin.error = True
            return plugin
        if plugin.platform is None:
            await self.load(plugin, start=True, message="The plugin has been enabled", configure=True)
        else:
            await self.start(plugin, message="The plugin has been enabled", configure=True)
        return plugin

    async def disable_plugin(self, name: str) -> Optional[RegisteredPlugin]:
        """Disable a plugin and shut it down, withdrawing its devices.

        Returns:
            The plugin, or None if it is not registered
        """
        plugin = await self.disable(name)
        if plugin is None:
            return None
        await self.shutdown(plugin, "The plugin has been disabled", remove_all_devices=True, force=plugin.loaded)
        return plugin

    async def remove_plugin(self, name: str) -> Optional[RegisteredPlugin]:
        """Shut a plugin down and unregister it.

        Returns:
            The removed plugin, or None if it is not registered
        """
        plugin = self.get(name)
        if plugin is not None:
            await self.shutdown(plugin, "The plugin has been removed", remove_all_devices=True, force=plugin.loaded)
        return await self.remove(name)

    async def install_plugin(self, name: str) -> Optional[RegisteredPlugin]:
        """Install a plugin package and register it.

        Returns:
            The registered plugin, or None if the install failed
        """
        version = await self.install(name)
        if version is None:
            return None

        plugin = await self.add(name)
        if plugin is None:
            # Already registered: the new package is used after a restart
            manifest = await self.resolve(name)
            plugin = self.get(manifest.name) if manifest is not None and manifest.name else self.get(name)
            if plugin is not None:
                plugin.version = version
                plugin.restart_required = True
        return plugin

    async def uninstall_plugin(self, name: str) -> Optional[str]:
        """Shut down and unregister a plugin if needed, then uninstall its package.

        Returns:
            The uninstalled package name, or None if uninstalling failed
        """
        if self.has(name):
            await self.remove_plugin(name)
        return await self.uninstall(name)

    def list_plugins(self) -> List[Dict[str, Any]]:
        """List all plugins as dicts."""
        return [p.to_dict() for p in self.registry.array()]

    def get_plugin_info(self, name: str) -> Optional[Dict[str, Any]]:
        """Get plugin information as dict, including its config and schema."""
        plugin = self.get(name)
        if plugin is None:
            return None
        info = plugin.to_dict()
        info["config"] = plugin.config_json
        info["schema"] = plugin.schema_json
        return info
