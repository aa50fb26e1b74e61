"""Bridged device REST API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from matterbridge.dependencies import get_host
from matterbridge.host import Matterbridge

router = APIRouter(prefix="/api/devices", tags=["devices"])


def _serialize(host: Matterbridge, device) -> dict:
    if hasattr(device, "to_dict"):
        data = device.to_dict()
    else:
        data = {
            "unique_id": device.unique_id,
            "serial_number": device.serial_number,
            "device_name": device.device_name,
        }
    data["plugin"] = host.device_owner(device)
    return data


@router.get("/")
async def list_devices(plugin: Optional[str] = None, host: Matterbridge = Depends(get_host)):
    """List registered devices, optionally only those of one plugin."""
    items = host.devices.array() if plugin is None else host.plugin_devices(plugin)
    return {"devices": [_serialize(host, d) for d in items], "count": len(items)}


@router.get("/{unique_id}")
async def get_device(unique_id: str, host: Matterbridge = Depends(get_host)):
    """Get a registered device by unique id."""
    device = host.devices.get(unique_id)
    if device is None:
        raise HTTPException(status_code=404, detail=f"Device '{unique_id}' not found")
    return _serialize(host, device)
