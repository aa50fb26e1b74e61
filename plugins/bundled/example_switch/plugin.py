"""Example switch plugin entry point."""

import logging
from typing import Any, Dict, Optional

from matterbridge.devices import BridgedDevice, create_unique_id
from matterbridge.platform import MatterbridgeDynamicPlatform


class ExampleSwitchPlatform(MatterbridgeDynamicPlatform):
    """Exposes one virtual on/off switch per configured name."""

    def __init__(self, matterbridge, log: logging.Logger, config: Dict[str, Any]):
        super().__init__(matterbridge, log, config)
        self.switches = list(config.get("switches") or ["Switch"])

    async def on_start(self, reason: Optional[str] = None) -> None:
        self.log.info(f"onStart called with reason: {reason}")
        for index, switch_name in enumerate(self.switches):
            if not self.validate_device(switch_name):
                continue
            device = BridgedDevice(
                unique_id=create_unique_id(self.name, switch_name),
                device_name=switch_name,
                serial_number=f"SW-{index:04d}",
                device_type="onOffLight",
                product_name="Example switch",
                attributes={"on_off": False},
            )
            await self.register_device(device)

    async def on_configure(self) -> None:
        await super().on_configure()
        for device in self.get_devices():
            self.log.info(f"Configuring device {device.device_name}: on_off={device.attributes['on_off']}")

    async def on_config_changed(self, config: Dict[str, Any]) -> None:
        self.log.info(f"Config changed, switches: {config.get('switches')}")
        self.switches = list(config.get("switches") or [])


def initialize_plugin(matterbridge, log: logging.Logger, config: Dict[str, Any]) -> ExampleSwitchPlatform:
    """Plugin entry factory."""
    return ExampleSwitchPlatform(matterbridge, log, config)
