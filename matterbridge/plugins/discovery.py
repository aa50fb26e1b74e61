"""Plugin discovery - resolves plugin manifests and validates their content."""
from __future__ import annotations

import importlib.util
import json
import logging
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from pydantic import ValidationError

from matterbridge.constants import (
    GLOBAL_MODULES_DIRECTORY,
    HOST_PACKAGE_NAME,
    PLUGIN_MANIFEST_FILE,
    PLUGIN_MODULE_TYPE,
    PROTOCOL_STACK_PREFIXES,
)
from matterbridge.plugins.manifest import (
    PluginManifest,
    get_author,
    get_changelog,
    get_funding,
    get_help,
    get_homepage,
)

if TYPE_CHECKING:
    from matterbridge.plugins.registry import RegisteredPlugin

logger = logging.getLogger(__name__)


class PluginDiscovery:
    """Locates plugin manifests by path or installed package name and parses them."""

    def __init__(
        self,
        global_modules_directory: Path = GLOBAL_MODULES_DIRECTORY,
        manifest_file: str = PLUGIN_MANIFEST_FILE,
    ):
        self.global_modules_directory = Path(global_modules_directory)
        self.manifest_file = manifest_file

    async def resolve(self, name_or_path: str) -> Optional[PluginManifest]:
        """Locate and read the manifest of a plugin.

        The input is tried literally as a plugin directory or manifest path,
        then as the name of an installed package.

        Args:
            name_or_path: Package name, plugin directory or manifest path

        Returns:
            The parsed manifest (with `path` set), or None if it could not be resolved
        """
        candidate = Path(name_or_path).expanduser()
        if candidate.name != self.manifest_file:
            candidate = candidate / self.manifest_file
        manifest_path = candidate.resolve()
        logger.debug(f"Resolving plugin path {manifest_path}")

        if not manifest_path.is_file():
            logger.debug(f"{self.manifest_file} not found at {manifest_path}")
            installed = self._find_installed_manifest(name_or_path)
            if installed is None:
                logger.error(f"Failed to resolve plugin path {name_or_path}")
                return None
            manifest_path = installed
            logger.debug(f"Trying at {manifest_path}")

        try:
            manifest = self.read_manifest(manifest_path)
        except (json.JSONDecodeError, ValidationError, OSError, TypeError) as e:
            logger.error(f"Failed to resolve plugin path {name_or_path}: {e}")
            return None

        logger.debug(f"Resolved plugin path {name_or_path}: {manifest_path}")
        return manifest

    def read_manifest(self, manifest_path: Path) -> PluginManifest:
        """Read and validate a manifest file. Raises on any read or format error."""
        with open(manifest_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise TypeError(f"{manifest_path} does not contain a JSON object")
        manifest = PluginManifest.model_validate(data)
        manifest.path = Path(manifest_path)
        return manifest

    def _find_installed_manifest(self, name: str) -> Optional[Path]:
        """Locate the manifest of an installed package by import-system resolution."""
        module_name = name.replace("-", "_")
        if module_name.isidentifier():
            try:
                spec = importlib.util.find_spec(module_name)
            except (ImportError, ValueError) as e:
                logger.debug(f"Package {name} not importable: {e}")
                spec = None
            if spec is not None and spec.submodule_search_locations:
                for location in spec.submodule_search_locations:
                    manifest_path = Path(location) / self.manifest_file
                    if manifest_path.is_file():
                        return manifest_path

        manifest_path = self.global_modules_directory / name / self.manifest_file
        if manifest_path.is_file():
            return manifest_path
        return None

    async def parse(self, plugin: RegisteredPlugin) -> Optional[RegisteredPlugin]:
        """Re-read the manifest at plugin.path and refresh the plugin metadata.

        Soft fields are defaulted with a warning. A wrong module type, a missing
        entry point or a forbidden dependency makes the plugin unusable.

        Args:
            plugin: Registered plugin to update in place

        Returns:
            The updated plugin, or None if the manifest is invalid
        """
        try:
            logger.debug(f"Parsing {self.manifest_file} of plugin {plugin.name}")
            manifest = self.read_manifest(Path(plugin.path))

            if not manifest.name:
                logger.warning(f"Plugin {plugin.name} has no name in {self.manifest_file}")
            if not manifest.version:
                logger.warning(f"Plugin {plugin.name} has no version in {self.manifest_file}")
            if not manifest.description:
                logger.warning(f"Plugin {plugin.name} has no description in {self.manifest_file}")
            if not manifest.author:
                logger.warning(f"Plugin {plugin.name} has no author in {self.manifest_file}")
            if not manifest.homepage:
                logger.info(f"Plugin {plugin.name} has no homepage in {self.manifest_file}")
            if manifest.type != PLUGIN_MODULE_TYPE:
                logger.error(f"Plugin {plugin.name} is not a {PLUGIN_MODULE_TYPE}")
                return None
            if not manifest.main:
                logger.error(f"Plugin {plugin.name} has no main entrypoint in {self.manifest_file}")
                return None

            plugin.name = manifest.name or "Unknown name"
            plugin.version = manifest.version or plugin.version or "1.0.0"
            plugin.description = manifest.description or "Unknown description"
            plugin.author = get_author(manifest)
            plugin.homepage = get_homepage(manifest)
            plugin.help = get_help(manifest)
            plugin.changelog = get_changelog(manifest)
            plugin.funding = get_funding(manifest)
            if not plugin.type:
                logger.warning(f"Plugin {plugin.name} has no type")

            if not self.check_dependencies(plugin.name, manifest):
                return None

            return plugin

        except Exception as e:
            plugin.error = True
            logger.error(f"Failed to parse {self.manifest_file} of plugin {plugin.name}: {e}")
            return None

    def check_dependencies(self, plugin_name: str, manifest: PluginManifest) -> bool:
        """Reject plugins that bundle the host or the protocol stack.

        Returns:
            True if no forbidden package is found
        """
        for group, dependencies in manifest.dependency_groups().items():
            protocol_packages = [
                pkg for pkg in dependencies if pkg.startswith(PROTOCOL_STACK_PREFIXES)
            ]
            if protocol_packages:
                logger.error(
                    f'Found protocol stack packages "{", ".join(protocol_packages)}" '
                    f"in plugin {plugin_name} {group}."
                )
                logger.error("Please open an issue on the plugin repository to remove them.")
                return False
            if HOST_PACKAGE_NAME in dependencies:
                logger.error(f"Found {HOST_PACKAGE_NAME} package in the plugin {plugin_name} {group}.")
                logger.error("Please open an issue on the plugin repository to remove them.")
                return False
        return True
