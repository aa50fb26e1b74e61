"""Shared fixtures for the plugin host tests."""

import json
import textwrap
from pathlib import Path

import pytest

from matterbridge.host import Matterbridge
from matterbridge.storage import NodeStorage

PLATFORM_SOURCE = textwrap.dedent(
    '''
    from matterbridge.devices import BridgedDevice
    from matterbridge.platform import MatterbridgeDynamicPlatform


    class TestPlatform(MatterbridgeDynamicPlatform):
        def __init__(self, matterbridge, log, config):
            super().__init__(matterbridge, log, config)
            self.calls = []

        async def on_start(self, reason=None):
            self.calls.append(("start", reason))
            if self.config.get("fail_start"):
                raise RuntimeError("start failed")
            for index in range(self.config.get("devices", 0)):
                await self.register_device(
                    BridgedDevice(
                        unique_id=f"{self.name}-{index}",
                        device_name=f"{self.name} device {index}",
                        serial_number=f"SN{index}",
                    )
                )

        async def on_configure(self):
            self.calls.append(("configure",))
            if self.config.get("fail_configure"):
                raise RuntimeError("configure failed")

        async def on_shutdown(self, reason=None):
            self.calls.append(("shutdown", reason))
            if self.config.get("fail_shutdown"):
                raise RuntimeError("shutdown failed")
            await super().on_shutdown(reason)

        async def on_config_changed(self, config):
            self.calls.append(("config_changed", config))


    def initialize_plugin(matterbridge, log, config):
        return TestPlatform(matterbridge, log, config)
    '''
)


@pytest.fixture
def write_plugin(tmp_path):
    """Factory writing a plugin package under tmp_path/plugins/<dirname>.

    Returns the path of the written plugin.json.
    """

    def _write(
        name="matterbridge-test",
        dirname=None,
        manifest=None,
        source=PLATFORM_SOURCE,
        config=None,
        entry="plugin.py",
    ) -> Path:
        plugin_dir = tmp_path / "plugins" / (dirname or name)
        plugin_dir.mkdir(parents=True, exist_ok=True)
        data = {
            "name": name,
            "version": "1.2.3",
            "description": f"{name} description",
            "author": "Tester",
            "type": "module",
            "main": entry,
        }
        if manifest:
            data.update(manifest)
        manifest_path = plugin_dir / "plugin.json"
        manifest_path.write_text(json.dumps(data), encoding="utf-8")
        if source is not None:
            (plugin_dir / entry.split(":")[0]).write_text(source, encoding="utf-8")
        if config is not None:
            (plugin_dir / f"{name}.config.json").write_text(json.dumps(config), encoding="utf-8")
        return manifest_path

    return _write


@pytest.fixture
def storage(tmp_path):
    return NodeStorage(tmp_path / "storage")


@pytest.fixture
def host(tmp_path, storage):
    global_dir = tmp_path / "global"
    global_dir.mkdir()
    return Matterbridge(
        home_directory=tmp_path / "home",
        storage=storage,
        global_modules_directory=global_dir,
    )
