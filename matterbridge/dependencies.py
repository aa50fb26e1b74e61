"""Request dependencies for the REST routers."""

import logging

from fastapi import HTTPException, Request

from matterbridge.host import Matterbridge
from matterbridge.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


def get_host(request: Request) -> Matterbridge:
    """Get the host owned by the running application."""
    host = getattr(request.app.state, "host", None)
    if host is None:
        logger.error("Matterbridge host is not running")
        raise HTTPException(status_code=503, detail="Matterbridge host is not running")
    return host


def get_plugin_manager(request: Request) -> PluginManager:
    return get_host(request).plugins
