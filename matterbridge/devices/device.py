"""Bridged device records."""

import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class DeviceRecord(Protocol):
    """What the host needs to know about a device: its identity and descriptive names."""

    unique_id: Optional[str]
    serial_number: Optional[str]
    device_name: Optional[str]


@dataclass
class BridgedDevice:
    """A device exposed by a plugin through the bridge."""

    unique_id: Optional[str]
    device_name: Optional[str]
    serial_number: Optional[str] = None
    device_type: str = "bridgedNode"
    vendor_name: str = "Matterbridge"
    product_name: str = ""
    plugin: Optional[str] = None  # owning plugin, set on registration
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> Optional[str]:
        return self.device_name

    def to_dict(self) -> dict:
        return {
            "unique_id": self.unique_id,
            "device_name": self.device_name,
            "serial_number": self.serial_number,
            "device_type": self.device_type,
            "vendor_name": self.vendor_name,
            "product_name": self.product_name,
            "plugin": self.plugin,
        }


def create_unique_id(*parts: Any) -> str:
    """Stable identity for a device built from descriptive values (MD5 hex digest)."""
    joined = "".join(str(part) for part in parts)
    return hashlib.md5(joined.encode("utf-8")).hexdigest()
