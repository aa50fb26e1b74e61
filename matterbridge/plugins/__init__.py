"""Plugin system for matterbridge.

Imports are lazy so lightweight components like PluginDiscovery or
PluginConfigService can be used without pulling in the whole host.
"""

__all__ = [
    "PluginManifest",
    "PluginEvents",
    "PluginRegistry",
    "RegisteredPlugin",
    "PluginState",
    "PluginDiscovery",
    "PluginLifecycle",
    "PluginManager",
    "PluginConfigService",
    "PackageInstaller",
]


def __getattr__(name):
    if name == "PluginManifest":
        from matterbridge.plugins.manifest import PluginManifest
        return PluginManifest
    if name == "PluginEvents":
        from matterbridge.plugins.events import PluginEvents
        return PluginEvents
    if name in ("PluginRegistry", "RegisteredPlugin", "PluginState"):
        from matterbridge.plugins import registry
        return getattr(registry, name)
    if name == "PluginDiscovery":
        from matterbridge.plugins.discovery import PluginDiscovery
        return PluginDiscovery
    if name == "PluginLifecycle":
        from matterbridge.plugins.lifecycle import PluginLifecycle
        return PluginLifecycle
    if name == "PluginManager":
        from matterbridge.plugins.manager import PluginManager
        return PluginManager
    if name == "PluginConfigService":
        from matterbridge.plugins.config import PluginConfigService
        return PluginConfigService
    if name == "PackageInstaller":
        from matterbridge.plugins.installer import PackageInstaller
        return PackageInstaller
    raise AttributeError(f"module 'matterbridge.plugins' has no attribute {name!r}")
