"""Plugin lifecycle management - handles state transitions load → start → configure → shutdown."""
from __future__ import annotations

import importlib.util
import json
import logging
import re
import sys
from pathlib import Path
from typing import Any, Optional, TYPE_CHECKING

from matterbridge.constants import PLUGIN_ENTRY_FACTORY
from matterbridge.plugins.config import PluginConfigService
from matterbridge.plugins.registry import PluginRegistry, PluginState, RegisteredPlugin

if TYPE_CHECKING:
    from matterbridge.host import Matterbridge
    from matterbridge.platform import MatterbridgePlatform
    from matterbridge.plugins.events import PluginEvents

logger = logging.getLogger(__name__)

PLATFORM_HOOKS = ("on_start", "on_configure", "on_shutdown")


class PluginLifecycle:
    """Drives plugins through their states.

    Every public transition runs under the plugin's lock, so two transitions on
    the same plugin never interleave. Each transition re-checks its own guards.
    """

    def __init__(
        self,
        host: Matterbridge,
        registry: PluginRegistry,
        config_service: PluginConfigService,
        events: Optional[PluginEvents] = None,
    ):
        self.host = host
        self.registry = registry
        self.config_service = config_service
        self.events = events

    async def load(
        self,
        plugin: RegisteredPlugin,
        start: bool = False,
        message: str = "",
        configure: bool = False,
    ) -> Optional[MatterbridgePlatform]:
        """Import the plugin entry module and instantiate its platform.

        Args:
            plugin: Plugin to load
            start: Start the plugin right after loading
            message: Reason passed to on_start
            configure: Configure the plugin right after starting

        Returns:
            The platform instance, or None if loading failed
        """
        async with plugin.lock:
            platform = await self._load(plugin)
            if platform is None:
                return None
            if start and await self._start(plugin, message) is None:
                return platform
            if configure:
                await self._configure(plugin)
            return platform

    async def start(
        self,
        plugin: RegisteredPlugin,
        message: Optional[str] = None,
        configure: bool = False,
    ) -> Optional[RegisteredPlugin]:
        """Call the platform's on_start hook.

        Returns:
            The plugin if started, None otherwise
        """
        async with plugin.lock:
            result = await self._start(plugin, message)
            if result is not None and configure:
                await self._configure(plugin)
            return result

    async def configure(self, plugin: RegisteredPlugin) -> Optional[RegisteredPlugin]:
        """Call the platform's on_configure hook.

        Returns:
            The plugin if configured, None otherwise
        """
        async with plugin.lock:
            return await self._configure(plugin)

    async def shutdown(
        self,
        plugin: RegisteredPlugin,
        reason: Optional[str] = None,
        remove_all_devices: bool = False,
        force: bool = False,
    ) -> Optional[RegisteredPlugin]:
        """Call the platform's on_shutdown hook and release the plugin's runtime state.

        Unmet preconditions are normal idle states and only logged at debug level.

        Args:
            plugin: Plugin to shut down
            reason: Reason passed to on_shutdown
            remove_all_devices: Withdraw every device the plugin registered
            force: Shut down even if the plugin is not fully started

        Returns:
            The plugin once shut down, None if there was nothing to shut down
        """
        async with plugin.lock:
            return await self._shutdown(plugin, reason, remove_all_devices, force)

    async def _load(self, plugin: RegisteredPlugin) -> Optional[MatterbridgePlatform]:
        if not plugin.enabled:
            logger.error(f"Plugin {plugin.name} not enabled")
            return None
        if plugin.platform is not None:
            logger.error(f"Plugin {plugin.name} already loaded")
            return None

        logger.info(f"Loading plugin {plugin.name} type {plugin.type}")
        try:
            manifest_path = Path(plugin.path)
            with open(manifest_path, "r", encoding="utf-8") as f:
                manifest = json.load(f)

            entry_file, _, factory_name = str(manifest["main"]).partition(":")
            factory_name = factory_name or PLUGIN_ENTRY_FACTORY
            entry_path = (manifest_path.parent / entry_file).resolve()
            module = self._import_entry(plugin, entry_path)

            factory = getattr(module, factory_name, None)
            if factory is None or not callable(factory):
                logger.error(f"Plugin {plugin.name} does not provide an entry point '{factory_name}'")
                plugin.error = True
                sys.modules.pop(self._module_name(plugin), None)
                return None

            version = manifest.get("version") or plugin.version
            config = await self.config_service.load_config(plugin)
            schema = await self.config_service.load_schema(plugin)
            config["name"] = plugin.name
            config["version"] = version

            plugin_logger = logging.getLogger(f"plugin.{plugin.name}")
            if config.get("debug"):
                plugin_logger.setLevel(logging.DEBUG)

            platform = factory(self.host, plugin_logger, config)
            missing = [hook for hook in PLATFORM_HOOKS if not callable(getattr(platform, hook, None))]
            if missing:
                raise TypeError(f"platform does not implement {', '.join(missing)}")

            platform_type = getattr(platform, "type", None) or plugin.type
            config["type"] = platform_type
            platform.name = plugin.name
            platform.config = config
            platform.version = version

            plugin.version = version
            plugin.type = platform_type
            plugin.config_json = config
            plugin.schema_json = schema
            plugin.platform = platform
            plugin.state = PluginState.LOADED
            plugin.registered_devices = 0
            plugin.added_devices = 0

        except Exception as e:
            logger.error(f"Failed to load plugin {plugin.name}: {e}", exc_info=True)
            plugin.error = True
            sys.modules.pop(self._module_name(plugin), None)
            return None

        try:
            await self.registry.save_to_storage()
        except Exception as e:
            logger.error(f"Failed to save plugins to storage after loading plugin {plugin.name}: {e}")

        logger.info(f"Loaded plugin {plugin.name} type {plugin.type} (entrypoint {entry_path})")
        self._emit("loaded", plugin.name)
        return platform

    @staticmethod
    def _module_name(plugin: RegisteredPlugin) -> str:
        return "matterbridge_plugin_" + re.sub(r"\W", "_", plugin.name)

    def _import_entry(self, plugin: RegisteredPlugin, entry_path: Path) -> Any:
        """Import the entry module with its directory on sys.path."""
        plugin_dir = str(entry_path.parent)
        added = plugin_dir not in sys.path
        if added:
            sys.path.insert(0, plugin_dir)

        try:
            module_name = self._module_name(plugin)
            spec = importlib.util.spec_from_file_location(module_name, entry_path)
            if spec is None or spec.loader is None:
                raise ImportError(f"Cannot find entry module {entry_path}")

            logger.debug(f"Importing plugin {plugin.name} from {entry_path}")
            module = importlib.util.module_from_spec(spec)
            # dataclasses and typing resolve names through sys.modules[cls.__module__]
            sys.modules[module_name] = module
            try:
                spec.loader.exec_module(module)
            except BaseException:
                sys.modules.pop(module_name, None)
                raise
            logger.debug(f"Imported plugin {plugin.name} from {entry_path}")
            return module
        finally:
            if added and plugin_dir in sys.path:
                sys.path.remove(plugin_dir)

    async def _start(self, plugin: RegisteredPlugin, message: Optional[str]) -> Optional[RegisteredPlugin]:
        if not plugin.loaded:
            logger.error(f"Plugin {plugin.name} not loaded")
            return None
        if plugin.platform is None:
            logger.error(f"Plugin {plugin.name} no platform found")
            return None
        if plugin.started:
            logger.error(f"Plugin {plugin.name} already started")
            return None

        logger.info(f"Starting plugin {plugin.name} type {plugin.type}")
        try:
            await plugin.platform.on_start(message)
        except Exception as e:
            plugin.error = True
            logger.error(f"Failed to start plugin {plugin.name}: {e}", exc_info=True)
            return None

        plugin.state = PluginState.STARTED
        logger.info(f"Started plugin {plugin.name} type {plugin.type}")
        try:
            await self.config_service.save_config_from_plugin(plugin)
        except Exception as e:
            logger.warning(f"Started plugin {plugin.name} but its config could not be saved: {e}")
        self._emit("started", plugin.name)
        return plugin

    async def _configure(self, plugin: RegisteredPlugin) -> Optional[RegisteredPlugin]:
        if not plugin.loaded:
            logger.error(f"Plugin {plugin.name} not loaded")
            return None
        if not plugin.started:
            logger.error(f"Plugin {plugin.name} not started")
            return None
        if plugin.platform is None:
            logger.error(f"Plugin {plugin.name} no platform found")
            return None
        if plugin.configured:
            logger.debug(f"Plugin {plugin.name} already configured")
            return None

        logger.info(f"Configuring plugin {plugin.name} type {plugin.type}")
        try:
            await plugin.platform.on_configure()
        except Exception as e:
            plugin.error = True
            logger.error(f"Failed to configure plugin {plugin.name}: {e}", exc_info=True)
            return None

        plugin.state = PluginState.CONFIGURED
        logger.info(f"Configured plugin {plugin.name} type {plugin.type}")
        self._emit("configured", plugin.name)
        return plugin

    async def _shutdown(
        self,
        plugin: RegisteredPlugin,
        reason: Optional[str],
        remove_all_devices: bool,
        force: bool,
    ) -> Optional[RegisteredPlugin]:
        logger.debug(f"Shutting down plugin {plugin.name}")
        if not plugin.loaded:
            logger.debug(f"Plugin {plugin.name} not loaded")
            if not force:
                return None
        if not plugin.started:
            logger.debug(f"Plugin {plugin.name} not started")
            if not force:
                return None
        if not plugin.configured:
            logger.debug(f"Plugin {plugin.name} not configured")
        if plugin.platform is None:
            logger.debug(f"Plugin {plugin.name} no platform found")
            return None

        logger.info(f"Shutting down plugin {plugin.name}: {reason}...")
        try:
            await plugin.platform.on_shutdown(reason)
        except Exception as e:
            # Release the plugin anyway
            logger.error(f"Failed to shut down plugin {plugin.name}: {e}", exc_info=True)

        if remove_all_devices:
            logger.info(f"Removing all endpoints for plugin {plugin.name}: {reason}...")
            await self.host.remove_all_bridged_endpoints(plugin.name)

        plugin.platform = None
        plugin.config_json = None
        plugin.schema_json = None
        plugin.state = PluginState.IDLE
        plugin.error = None
        plugin.registered_devices = None
        plugin.added_devices = None
        sys.modules.pop(self._module_name(plugin), None)
        logger.info(f"Shutdown of plugin {plugin.name} completed")
        self._emit("shutdown", plugin.name)
        return plugin

    def _emit(self, event: str, *args: Any) -> None:
        if self.events is not None:
            self.events.emit(event, *args)
