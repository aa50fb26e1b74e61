"""Tests for manifest resolution and parsing."""

import asyncio
import json
import logging

from matterbridge.plugins.discovery import PluginDiscovery
from matterbridge.plugins.registry import RegisteredPlugin


def make_plugin(manifest_path, name="matterbridge-test"):
    return RegisteredPlugin(name=name, path=str(manifest_path))


class TestResolve:
    """Tests for PluginDiscovery.resolve."""

    def test_resolve_directory_and_manifest_path(self, tmp_path, write_plugin):
        manifest_path = write_plugin()
        discovery = PluginDiscovery(tmp_path / "global")

        by_dir = asyncio.run(discovery.resolve(str(manifest_path.parent)))
        by_file = asyncio.run(discovery.resolve(str(manifest_path)))

        assert by_dir.name == by_file.name == "matterbridge-test"
        assert by_dir.path == manifest_path.resolve()

    def test_resolve_installed_package(self, tmp_path):
        package_dir = tmp_path / "global" / "matterbridge-installed"
        package_dir.mkdir(parents=True)
        (package_dir / "plugin.json").write_text(
            json.dumps({"name": "matterbridge-installed", "type": "module", "main": "plugin.py"})
        )
        discovery = PluginDiscovery(tmp_path / "global")

        manifest = asyncio.run(discovery.resolve("matterbridge-installed"))
        assert manifest is not None
        assert manifest.path == package_dir / "plugin.json"

    def test_resolve_unknown_returns_none(self, tmp_path, caplog):
        discovery = PluginDiscovery(tmp_path / "global")
        with caplog.at_level(logging.ERROR):
            assert asyncio.run(discovery.resolve("does-not-exist-anywhere")) is None
        assert "Failed to resolve plugin path does-not-exist-anywhere" in caplog.text

    def test_resolve_invalid_json_returns_none(self, tmp_path):
        plugin_dir = tmp_path / "broken"
        plugin_dir.mkdir()
        (plugin_dir / "plugin.json").write_text("{not json")
        discovery = PluginDiscovery(tmp_path / "global")
        assert asyncio.run(discovery.resolve(str(plugin_dir))) is None


class TestParse:
    """Tests for PluginDiscovery.parse."""

    def test_parse_refreshes_metadata(self, tmp_path, write_plugin):
        manifest_path = write_plugin(
            manifest={"author": {"name": "Ann"}, "repository": "https://github.com/a/b"}
        )
        plugin = make_plugin(manifest_path)

        result = asyncio.run(PluginDiscovery(tmp_path).parse(plugin))

        assert result is plugin
        assert plugin.version == "1.2.3"
        assert plugin.author == "Ann"
        assert plugin.homepage == "https://github.com/a/b"
        assert plugin.help == "https://github.com/a/b/blob/main/README.md"

    def test_missing_soft_fields_are_defaulted(self, tmp_path, write_plugin, caplog):
        manifest_path = write_plugin(manifest={"author": None, "description": None})
        plugin = make_plugin(manifest_path)

        with caplog.at_level(logging.WARNING):
            result = asyncio.run(PluginDiscovery(tmp_path).parse(plugin))

        assert result is plugin
        assert plugin.author == "Unknown author"
        assert plugin.description == "Unknown description"
        assert "Plugin matterbridge-test has no author in plugin.json" in caplog.text

    def test_wrong_type_is_rejected(self, tmp_path, write_plugin, caplog):
        plugin = make_plugin(write_plugin(manifest={"type": "commonjs"}))
        with caplog.at_level(logging.ERROR):
            assert asyncio.run(PluginDiscovery(tmp_path).parse(plugin)) is None
        assert "is not a module" in caplog.text

    def test_missing_main_is_rejected(self, tmp_path, write_plugin):
        plugin = make_plugin(write_plugin(manifest={"main": None}))
        assert asyncio.run(PluginDiscovery(tmp_path).parse(plugin)) is None

    def test_protocol_stack_dependency_is_rejected(self, tmp_path, write_plugin, caplog):
        plugin = make_plugin(write_plugin(manifest={"dependencies": {"@project-chip/matter.js": "1.0"}}))
        with caplog.at_level(logging.ERROR):
            assert asyncio.run(PluginDiscovery(tmp_path).parse(plugin)) is None
        assert 'Found protocol stack packages "@project-chip/matter.js"' in caplog.text

    def test_host_dependency_is_rejected(self, tmp_path, write_plugin, caplog):
        plugin = make_plugin(write_plugin(manifest={"devDependencies": {"matterbridge": "*"}}))
        with caplog.at_level(logging.ERROR):
            assert asyncio.run(PluginDiscovery(tmp_path).parse(plugin)) is None
        assert "Found matterbridge package in the plugin matterbridge-test devDependencies" in caplog.text

    def test_similar_package_names_are_allowed(self, tmp_path, write_plugin):
        plugin = make_plugin(write_plugin(manifest={"dependencies": {"matterbridge-utils": "*"}}))
        assert asyncio.run(PluginDiscovery(tmp_path).parse(plugin)) is plugin

    def test_unreadable_manifest_sets_error(self, tmp_path, caplog):
        plugin = make_plugin(tmp_path / "missing" / "plugin.json")
        with caplog.at_level(logging.ERROR):
            assert asyncio.run(PluginDiscovery(tmp_path).parse(plugin)) is None
        assert plugin.error is True
        assert "Failed to parse plugin.json of plugin matterbridge-test" in caplog.text
