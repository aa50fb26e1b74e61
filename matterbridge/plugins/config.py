"""Plugin configuration service - manages <plugin>.config.json and <plugin>.schema.json files."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, TYPE_CHECKING

if TYPE_CHECKING:
    from matterbridge.plugins.registry import RegisteredPlugin

logger = logging.getLogger(__name__)

PlatformConfig = Dict[str, Any]
PlatformSchema = Dict[str, Any]


class PluginConfigService:
    """Reads and writes the per-plugin config and schema files.

    Config format (extra keys are kept as they are):
    {
        "name": "matterbridge-example",
        "type": "DynamicPlatform",
        "debug": false,
        "unregisterOnShutdown": false
    }
    """

    def __init__(self, config_dir: Path):
        self.config_dir = Path(config_dir)

    def config_file(self, plugin: RegisteredPlugin) -> Path:
        return self.config_dir / f"{plugin.name}.config.json"

    def schema_file(self, plugin: RegisteredPlugin) -> Path:
        return self.config_dir / f"{plugin.name}.schema.json"

    @staticmethod
    def package_dir(plugin: RegisteredPlugin) -> Path:
        """Directory holding the plugin's manifest."""
        return Path(plugin.path).parent

    @staticmethod
    def default_config(plugin: RegisteredPlugin) -> PlatformConfig:
        return {
            "name": plugin.name,
            "type": plugin.type,
            "debug": False,
            "unregisterOnShutdown": False,
        }

    async def load_config(self, plugin: RegisteredPlugin) -> PlatformConfig:
        """Load the plugin config, creating the file with defaults if not found.

        Never raises: on file system errors a default config is returned.
        """
        config_file = self.config_file(plugin)

        if not config_file.exists():
            config = self._bundled_config(plugin)
            try:
                self._write_json(config_file, config)
                logger.debug(f"Created config file {config_file} for plugin {plugin.name}")
            except OSError as e:
                logger.error(f"Error creating config file {config_file} for plugin {plugin.name}: {e}")
            return config

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                config = json.load(f)
            if not isinstance(config, dict):
                raise ValueError("config is not a JSON object")
        except (OSError, ValueError) as e:
            logger.error(f"Error accessing config file {config_file} for plugin {plugin.name}: {e}")
            return self.default_config(plugin)

        logger.debug(f"Loaded config file {config_file} for plugin {plugin.name}")
        config["name"] = plugin.name
        config["type"] = plugin.type
        if config.get("debug") is None:
            config["debug"] = False
        if config.get("unregisterOnShutdown") is None:
            config["unregisterOnShutdown"] = False
        return config

    def _bundled_config(self, plugin: RegisteredPlugin) -> PlatformConfig:
        """Default config shipped in the plugin package, or the computed defaults."""
        template = self.package_dir(plugin) / f"{plugin.name}.config.json"
        if template.is_file():
            try:
                with open(template, "r", encoding="utf-8") as f:
                    config = json.load(f)
                if isinstance(config, dict):
                    logger.debug(f"Using default config {template} for plugin {plugin.name}")
                    config["name"] = plugin.name
                    config["type"] = plugin.type
                    if config.get("debug") is None:
                        config["debug"] = False
                    if config.get("unregisterOnShutdown") is None:
                        config["unregisterOnShutdown"] = False
                    return config
                logger.warning(f"Default config {template} of plugin {plugin.name} is not a JSON object")
            except (OSError, ValueError) as e:
                logger.warning(f"Error reading default config {template} of plugin {plugin.name}: {e}")
        return self.default_config(plugin)

    async def save_config_from_plugin(self, plugin: RegisteredPlugin, restart_required: bool = False) -> None:
        """Write the config currently held by the plugin's platform.

        Raises:
            ValueError: The plugin has no loaded platform config
            OSError: The file could not be written
        """
        if plugin.platform is None or not getattr(plugin.platform, "config", None):
            logger.error(f"Error saving config file for plugin {plugin.name}: config not found")
            raise ValueError(f"Error saving config file for plugin {plugin.name}: config not found")

        config_file = self.config_file(plugin)
        try:
            self._write_json(config_file, plugin.platform.config)
        except OSError as e:
            logger.error(f"Error saving config file {config_file} for plugin {plugin.name}: {e}")
            raise

        plugin.config_json = plugin.platform.config
        if restart_required:
            plugin.restart_required = True
        logger.debug(f"Saved config file {config_file} for plugin {plugin.name}")

    async def save_config_from_json(
        self,
        plugin: RegisteredPlugin,
        config: PlatformConfig,
        restart_required: bool = False,
    ) -> None:
        """Write a config supplied by the caller and push it to a loaded platform.

        Raises:
            ValueError: The config does not belong to this plugin
            OSError: The file could not be written
        """
        if not config.get("name") or not config.get("type") or config.get("name") != plugin.name:
            logger.error(f"Error saving config file for plugin {plugin.name}: wrong config data content {config}")
            raise ValueError(f"Error saving config file for plugin {plugin.name}: wrong config data content")

        config_file = self.config_file(plugin)
        try:
            self._write_json(config_file, config)
        except OSError as e:
            logger.error(f"Error saving config file {config_file} for plugin {plugin.name}: {e}")
            raise

        plugin.config_json = config
        if restart_required:
            plugin.restart_required = True
        logger.debug(f"Saved config file {config_file} for plugin {plugin.name}")

        if plugin.platform is not None:
            plugin.platform.config = config
            try:
                await plugin.platform.on_config_changed(config)
            except Exception as e:
                logger.error(f"Error calling on_config_changed for plugin {plugin.name}: {e}")

    async def load_schema(self, plugin: RegisteredPlugin) -> PlatformSchema:
        """Load the plugin schema from the instance directory or the plugin package.

        Falls back to the default schema, never raises.
        """
        for schema_file in (self.schema_file(plugin), self.package_dir(plugin) / f"{plugin.name}.schema.json"):
            if not schema_file.is_file():
                continue
            try:
                with open(schema_file, "r", encoding="utf-8") as f:
                    schema = json.load(f)
                if not isinstance(schema, dict):
                    raise ValueError("schema is not a JSON object")
            except (OSError, ValueError) as e:
                logger.error(f"Error reading schema file {schema_file} for plugin {plugin.name}: {e}")
                continue
            schema["title"] = plugin.description
            schema["description"] = self._schema_description(plugin)
            logger.debug(f"Loaded schema file {schema_file} for plugin {plugin.name}")
            return schema

        logger.debug(f"Schema file for plugin {plugin.name} not found. Loading default schema.")
        return self.get_default_schema(plugin)

    def get_default_schema(self, plugin: RegisteredPlugin) -> PlatformSchema:
        """Schema covering the baseline config properties."""
        return {
            "title": plugin.description,
            "description": self._schema_description(plugin),
            "type": "object",
            "properties": {
                "name": {
                    "description": "Plugin name",
                    "type": "string",
                    "readOnly": True,
                },
                "type": {
                    "description": "Plugin type",
                    "type": "string",
                    "readOnly": True,
                },
                "debug": {
                    "description": "Enable the debug for the plugin (development only)",
                    "type": "boolean",
                    "default": False,
                },
                "unregisterOnShutdown": {
                    "description": "Unregister all devices on shutdown (development only)",
                    "type": "boolean",
                    "default": False,
                },
            },
        }

    @staticmethod
    def _schema_description(plugin: RegisteredPlugin) -> str:
        return f"{plugin.name} v. {plugin.version} by {plugin.author}"

    def _write_json(self, file: Path, data: Dict[str, Any]) -> None:
        file.parent.mkdir(parents=True, exist_ok=True)
        with open(file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
