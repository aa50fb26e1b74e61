"""Device registry - the live bridged devices, keyed by unique id."""

import logging
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional

from matterbridge.devices.device import DeviceRecord

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """Bookkeeping for every device registered through the bridge, whatever plugin owns it."""

    def __init__(self):
        self._devices: Dict[str, DeviceRecord] = {}
        logger.debug("Device registry starting...")

    def __len__(self) -> int:
        return len(self._devices)

    def __iter__(self) -> Iterator[DeviceRecord]:
        return iter(list(self._devices.values()))

    @property
    def size(self) -> int:
        return len(self._devices)

    @property
    def length(self) -> int:
        return len(self._devices)

    def has(self, unique_id: str) -> bool:
        return unique_id in self._devices

    def get(self, unique_id: str) -> Optional[DeviceRecord]:
        return self._devices.get(unique_id)

    def set(self, device: DeviceRecord) -> DeviceRecord:
        """Register a device.

        Raises:
            ValueError: The device has no unique_id
        """
        unique_id = getattr(device, "unique_id", None)
        if not unique_id:
            raise ValueError(
                f"The device {_device_name(device)} has not been initialized: unique_id is required"
            )
        if unique_id in self._devices:
            logger.error(
                f"The device {_device_name(device)} with unique_id {unique_id} "
                f"serial_number {getattr(device, 'serial_number', None)} is already in the device manager"
            )
            return self._devices[unique_id]
        self._devices[unique_id] = device
        return device

    def remove(self, device: DeviceRecord) -> bool:
        """Unregister a device.

        Returns:
            True if the device was registered and has been removed

        Raises:
            ValueError: The device has no unique_id
        """
        unique_id = getattr(device, "unique_id", None)
        if not unique_id:
            raise ValueError(
                f"The device {_device_name(device)} has not been initialized: unique_id is required"
            )
        if unique_id not in self._devices:
            logger.error(
                f"The device {_device_name(device)} with unique_id {unique_id} "
                f"serial_number {getattr(device, 'serial_number', None)} is not registered in the device manager"
            )
            return False
        del self._devices[unique_id]
        return True

    def clear(self) -> None:
        self._devices.clear()

    def array(self) -> list[DeviceRecord]:
        """Snapshot of all registered devices."""
        return list(self._devices.values())

    async def for_each(self, callback: Callable[[DeviceRecord], Awaitable[Any]]) -> None:
        """Await callback for every device in a snapshot, one at a time.

        A failing callback is logged and iteration continues with the next device.
        """
        for device in self.array():
            try:
                await callback(device)
            except Exception as e:
                logger.error(
                    f"Error processing for_each device {_device_name(device)} "
                    f"serial_number {getattr(device, 'serial_number', None)} "
                    f"unique_id {getattr(device, 'unique_id', None)}: {e}",
                    exc_info=True,
                )


def _device_name(device: Any) -> Optional[str]:
    return getattr(device, "device_name", None) or getattr(device, "name", None)
