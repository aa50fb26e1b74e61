"""Plugin management REST API endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from matterbridge.dependencies import get_plugin_manager
from matterbridge.plugins.manager import PluginManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plugins", tags=["plugins"])


class PluginAddRequest(BaseModel):
    """Request body for registering a plugin by package name or path."""

    name_or_path: str


class PluginInstallRequest(BaseModel):
    """Request body for installing a plugin package."""

    name: str


class PluginConfigUpdate(BaseModel):
    """Request body for replacing a plugin config."""

    config: dict
    restart_required: bool = False


@router.get("/")
async def list_plugins(manager: PluginManager = Depends(get_plugin_manager)):
    """List all registered plugins and their status."""
    return {"plugins": manager.list_plugins()}


@router.post("/")
async def add_plugin(body: PluginAddRequest, manager: PluginManager = Depends(get_plugin_manager)):
    """Register a plugin. It is enabled but not loaded until enabled again or the host restarts."""
    plugin = await manager.add(body.name_or_path)
    if not plugin:
        raise HTTPException(
            status_code=400,
            detail=f"Failed to add plugin '{body.name_or_path}'. Check logs for details.",
        )
    return {"message": f"Plugin '{plugin.name}' added", "plugin": plugin.to_dict()}


@router.post("/install")
async def install_plugin(body: PluginInstallRequest, manager: PluginManager = Depends(get_plugin_manager)):
    """Install a plugin package and register it."""
    plugin = await manager.install_plugin(body.name)
    if not plugin:
        raise HTTPException(
            status_code=400,
            detail="Failed to install plugin. Check logs for details.",
        )
    return {
        "message": f"Plugin '{plugin.name}' installed. Use /enable to activate.",
        "plugin": plugin.to_dict(),
    }


@router.get("/{name}")
async def get_plugin(name: str, manager: PluginManager = Depends(get_plugin_manager)):
    """Get detailed information about a specific plugin."""
    info = manager.get_plugin_info(name)
    if not info:
        raise HTTPException(status_code=404, detail=f"Plugin '{name}' not found")
    return info


@router.delete("/{name}")
async def remove_plugin(name: str, manager: PluginManager = Depends(get_plugin_manager)):
    """Shut down and unregister a plugin. The package stays installed."""
    plugin = await manager.remove_plugin(name)
    if not plugin:
        raise HTTPException(status_code=404, detail=f"Plugin '{name}' not found")
    return {"message": f"Plugin '{name}' removed", "plugin": plugin.to_dict()}


@router.post("/{name}/uninstall")
async def uninstall_plugin(name: str, manager: PluginManager = Depends(get_plugin_manager)):
    """Unregister a plugin and uninstall its package."""
    result: Optional[str] = await manager.uninstall_plugin(name)
    if not result:
        raise HTTPException(status_code=400, detail=f"Failed to uninstall plugin '{name}'")
    return {"message": f"Plugin '{name}' uninstalled"}


@router.post("/{name}/enable")
async def enable_plugin(name: str, manager: PluginManager = Depends(get_plugin_manager)):
    """Enable a plugin and start it."""
    plugin = await manager.enable_plugin(name)
    if not plugin:
        raise HTTPException(status_code=404, detail=f"Plugin '{name}' not found")
    return {"message": f"Plugin '{name}' enabled", "plugin": plugin.to_dict()}


@router.post("/{name}/disable")
async def disable_plugin(name: str, manager: PluginManager = Depends(get_plugin_manager)):
    """Disable a plugin and shut it down, withdrawing its devices."""
    plugin = await manager.disable_plugin(name)
    if not plugin:
        raise HTTPException(status_code=404, detail=f"Plugin '{name}' not found")
    return {"message": f"Plugin '{name}' disabled", "plugin": plugin.to_dict()}


@router.get("/{name}/config")
async def get_plugin_config(name: str, manager: PluginManager = Depends(get_plugin_manager)):
    """Get the plugin config, creating the default one if needed."""
    plugin = manager.get(name)
    if not plugin:
        raise HTTPException(status_code=404, detail=f"Plugin '{name}' not found")
    return await manager.load_config(plugin)


@router.get("/{name}/schema")
async def get_plugin_schema(name: str, manager: PluginManager = Depends(get_plugin_manager)):
    """Get the plugin config schema."""
    plugin = manager.get(name)
    if not plugin:
        raise HTTPException(status_code=404, detail=f"Plugin '{name}' not found")
    return await manager.load_schema(plugin)


@router.put("/{name}/config")
async def update_plugin_config(
    name: str,
    body: PluginConfigUpdate,
    manager: PluginManager = Depends(get_plugin_manager),
):
    """Replace the plugin config. A loaded plugin is notified through on_config_changed."""
    plugin = manager.get(name)
    if not plugin:
        raise HTTPException(status_code=404, detail=f"Plugin '{name}' not found")
    try:
        await manager.save_config_from_json(plugin, body.config, body.restart_required)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to write config: {e}")
    return {"message": f"Configuration updated for plugin '{name}'"}
