"""Bridged devices and the registry that tracks them."""

from .device import BridgedDevice, DeviceRecord, create_unique_id
from .registry import DeviceRegistry

__all__ = ["BridgedDevice", "DeviceRecord", "DeviceRegistry", "create_unique_id"]
