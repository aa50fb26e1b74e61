"""Plugin registry - tracks all registered plugins and persists them to the node context."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional, TYPE_CHECKING

from matterbridge.constants import DEFAULT_PLUGIN_TYPE
from matterbridge.storage import NodeStorage, StorageUnavailableError

if TYPE_CHECKING:
    from matterbridge.platform import MatterbridgePlatform
    from matterbridge.plugins.discovery import PluginDiscovery
    from matterbridge.plugins.events import PluginEvents

logger = logging.getLogger(__name__)

STORAGE_KEY = "plugins"

# Fields written to the node context, the rest is runtime state
PERSISTED_FIELDS = ("name", "path", "type", "version", "description", "author", "enabled")


class PluginState(str, Enum):
    """Plugin lifecycle states."""

    IDLE = "idle"
    LOADED = "loaded"
    STARTED = "started"
    CONFIGURED = "configured"


_LOADED_STATES = (PluginState.LOADED, PluginState.STARTED, PluginState.CONFIGURED)
_STARTED_STATES = (PluginState.STARTED, PluginState.CONFIGURED)


@dataclass
class RegisteredPlugin:
    """One installed plugin package and its runtime attachments."""

    name: str
    path: str  # manifest location
    type: str = DEFAULT_PLUGIN_TYPE
    version: str = "1.0.0"
    description: str = "Unknown description"
    author: str = "Unknown author"
    homepage: Optional[str] = None
    help: Optional[str] = None
    changelog: Optional[str] = None
    funding: Optional[str] = None
    enabled: Optional[bool] = None
    error: Optional[bool] = None
    restart_required: Optional[bool] = None
    state: PluginState = PluginState.IDLE
    platform: Optional[MatterbridgePlatform] = field(default=None, repr=False)
    config_json: Optional[Dict[str, Any]] = field(default=None, repr=False)
    schema_json: Optional[Dict[str, Any]] = field(default=None, repr=False)
    registered_devices: Optional[int] = None
    added_devices: Optional[int] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def loaded(self) -> bool:
        return self.state in _LOADED_STATES

    @property
    def started(self) -> bool:
        return self.state in _STARTED_STATES

    @property
    def configured(self) -> bool:
        return self.state == PluginState.CONFIGURED

    @property
    def locked(self) -> bool:
        """True while a lifecycle transition holds this plugin."""
        return self.lock.locked()

    def to_storage(self) -> dict:
        return {key: getattr(self, key) for key in PERSISTED_FIELDS}

    @classmethod
    def from_storage(cls, data: Dict[str, Any]) -> RegisteredPlugin:
        known = {key: data[key] for key in PERSISTED_FIELDS if data.get(key) is not None}
        return cls(**known)

    def to_dict(self) -> dict:
        """Serialize plugin for API responses."""
        return {
            "name": self.name,
            "path": self.path,
            "type": self.type,
            "version": self.version,
            "description": self.description,
            "author": self.author,
            "homepage": self.homepage,
            "help": self.help,
            "changelog": self.changelog,
            "funding": self.funding,
            "enabled": self.enabled,
            "state": self.state.value,
            "loaded": self.loaded,
            "started": self.started,
            "configured": self.configured,
            "error": self.error,
            "locked": self.locked,
            "restart_required": self.restart_required,
            "registered_devices": self.registered_devices,
            "added_devices": self.added_devices,
        }


class PluginRegistry:
    """Central registry for all plugins, keyed by plugin name."""

    def __init__(
        self,
        discovery: PluginDiscovery,
        storage: Optional[NodeStorage] = None,
        events: Optional[PluginEvents] = None,
    ):
        self.discovery = discovery
        self.storage = storage
        self.events = events
        self._plugins: Dict[str, RegisteredPlugin] = {}

    def __len__(self) -> int:
        return len(self._plugins)

    def __iter__(self) -> Iterator[RegisteredPlugin]:
        return iter(list(self._plugins.values()))

    def __contains__(self, name: object) -> bool:
        return name in self._plugins

    @property
    def size(self) -> int:
        return len(self._plugins)

    @property
    def length(self) -> int:
        return len(self._plugins)

    def has(self, name: str) -> bool:
        """Check if a plugin is registered."""
        return name in self._plugins

    def get(self, name: str) -> Optional[RegisteredPlugin]:
        """Get a plugin by name."""
        return self._plugins.get(name)

    def set(self, plugin: RegisteredPlugin) -> RegisteredPlugin:
        """Insert or replace a plugin."""
        self._plugins[plugin.name] = plugin
        return plugin

    def clear(self) -> None:
        self._plugins.clear()

    def array(self) -> list[RegisteredPlugin]:
        """Snapshot of all registered plugins."""
        return list(self._plugins.values())

    def get_enabled(self) -> list[RegisteredPlugin]:
        return [p for p in self._plugins.values() if p.enabled]

    async def for_each(self, callback: Callable[[RegisteredPlugin], Awaitable[Any]]) -> None:
        """Await callback for every plugin, one at a time, in registration order.

        A failing callback is logged and iteration continues with the next plugin.
        """
        for plugin in self.array():
            try:
                await callback(plugin)
            except Exception as e:
                logger.error(f"Error processing for_each plugin {plugin.name}: {e}", exc_info=True)

    async def load_from_storage(self) -> list[RegisteredPlugin]:
        """Load registered plugins from the node context into the registry."""
        if self.storage is None:
            logger.error("Error loading plugins from storage: node context is not available")
            raise StorageUnavailableError("node context is not available")

        stored = await self.storage.get(STORAGE_KEY, [])
        plugins = []
        for data in stored:
            try:
                plugin = RegisteredPlugin.from_storage(data)
            except (TypeError, KeyError) as e:
                logger.error(f"Skipping invalid stored plugin entry {data!r}: {e}")
                continue
            self._plugins[plugin.name] = plugin
            plugins.append(plugin)
        logger.debug(f"Loaded {len(plugins)} plugin(s) from storage")
        return plugins

    async def save_to_storage(self) -> int:
        """Save all registered plugins to the node context.

        Returns:
            Number of plugins saved
        """
        if self.storage is None:
            logger.error("Error saving plugins to storage: node context is not available")
            raise StorageUnavailableError("node context is not available")

        plugins = [plugin.to_storage() for plugin in self._plugins.values()]
        await self.storage.set(STORAGE_KEY, plugins)
        logger.debug(f"Saved {len(plugins)} plugin(s) to storage")
        return len(plugins)

    async def add(self, name_or_path: str) -> Optional[RegisteredPlugin]:
        """Register a plugin by package name or path and enable it.

        Args:
            name_or_path: Installed package name, plugin directory or manifest path

        Returns:
            The registered plugin, or None if it could not be added
        """
        if not name_or_path:
            return None

        manifest = await self.discovery.resolve(name_or_path)
        if manifest is None:
            logger.error(f"Failed to add plugin {name_or_path}: {self.discovery.manifest_file} not found")
            return None

        plugin = RegisteredPlugin(name=manifest.name or name_or_path, path=str(manifest.path))
        if await self.discovery.parse(plugin) is None:
            logger.error(f"Failed to add plugin {name_or_path}: invalid {self.discovery.manifest_file}")
            return None

        if plugin.name in self._plugins:
            logger.info(f"Plugin {name_or_path} already registered")
            return None

        plugin.enabled = True
        self._plugins[plugin.name] = plugin
        logger.info(f"Added plugin {plugin.name}")
        await self._persist(f"adding plugin {plugin.name}")
        self._emit("added", plugin.name)
        return plugin

    async def remove(self, name_or_path: str) -> Optional[RegisteredPlugin]:
        """Unregister a plugin by name or path."""
        plugin = await self._lookup(name_or_path, "remove")
        if plugin is None:
            return None

        del self._plugins[plugin.name]
        logger.info(f"Removed plugin {plugin.name}")
        await self._persist(f"removing plugin {plugin.name}")
        self._emit("removed", plugin.name)
        return plugin

    async def enable(self, name_or_path: str) -> Optional[RegisteredPlugin]:
        """Enable a plugin by name or path."""
        plugin = await self._lookup(name_or_path, "enable")
        if plugin is None:
            return None

        plugin.enabled = True
        logger.info(f"Enabled plugin {plugin.name}")
        await self._persist(f"enabling plugin {plugin.name}")
        self._emit("enabled", plugin.name)
        return plugin

    async def disable(self, name_or_path: str) -> Optional[RegisteredPlugin]:
        """Disable a plugin by name or path."""
        plugin = await self._lookup(name_or_path, "disable")
        if plugin is None:
            return None

        plugin.enabled = False
        logger.info(f"Disabled plugin {plugin.name}")
        await self._persist(f"disabling plugin {plugin.name}")
        self._emit("disabled", plugin.name)
        return plugin

    async def _lookup(self, name_or_path: str, action: str) -> Optional[RegisteredPlugin]:
        """Find a registered plugin by name, or by resolving a path to its manifest name."""
        if not name_or_path:
            return None
        if name_or_path in self._plugins:
            return self._plugins[name_or_path]

        manifest = await self.discovery.resolve(name_or_path)
        if manifest is None:
            logger.error(f"Failed to {action} plugin {name_or_path}: {self.discovery.manifest_file} not found")
            return None

        plugin = self._plugins.get(manifest.name) if manifest.name else None
        if plugin is None:
            logger.error(f"Failed to {action} plugin {name_or_path}: plugin not registered")
            return None
        return plugin

    async def _persist(self, context: str) -> None:
        # The in-memory change stays applied even when persisting fails
        try:
            await self.save_to_storage()
        except Exception as e:
            logger.error(f"Failed to save plugins to storage after {context}: {e}")

    def _emit(self, event: str, *args: Any) -> None:
        if self.events is not None:
            self.events.emit(event, *args)
