"""Main FastAPI application for the Matterbridge plugin host."""

import logging
import os
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv('.env')

# Configure logging BEFORE importing any modules that use logger
log_level = os.getenv('LOG_LEVEL', 'INFO')
logging.basicConfig(
    level=getattr(logging, log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Import after logging is configured
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from matterbridge import __version__
from matterbridge.constants import BUNDLED_PLUGINS_DIR, MATTERBRIDGE_DIRECTORY, STORAGE_DIRECTORY
from matterbridge.host import Matterbridge
from matterbridge.routers import devices_router, plugins_router
from matterbridge.storage import NodeStorage

# Create FastAPI app
app = FastAPI(
    title="Matterbridge",
    description="Plugin host for the Matterbridge bridge",
    version=__version__
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(plugins_router)  # /api/plugins endpoints
app.include_router(devices_router)  # /api/devices endpoints


@app.get("/")
async def root():
    return {"message": "Matterbridge plugin host", "docs": "/docs"}


async def register_bundled_plugins(host: Matterbridge) -> None:
    """Register and start the bundled plugins that are not registered yet."""
    if not BUNDLED_PLUGINS_DIR.is_dir():
        return
    for plugin_dir in sorted(p for p in BUNDLED_PLUGINS_DIR.iterdir() if p.is_dir()):
        manifest = await host.plugins.resolve(str(plugin_dir))
        if manifest is None or host.plugins.has(manifest.name):
            continue
        plugin = await host.plugins.add(str(plugin_dir))
        if plugin is not None:
            await host.plugins.enable_plugin(plugin.name)


@app.on_event("startup")
async def startup_event():
    """Application startup event."""
    logger.info("Starting Matterbridge")
    logger.info(f"Home directory: {MATTERBRIDGE_DIRECTORY}")

    host = Matterbridge(storage=NodeStorage(STORAGE_DIRECTORY))
    app.state.host = host
    await host.start()

    if os.getenv("MATTERBRIDGE_BUNDLED_PLUGINS", "true").lower() in ("1", "true", "yes"):
        await register_bundled_plugins(host)


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event."""
    logger.info("Shutting down Matterbridge")
    host = getattr(app.state, "host", None)
    if host is not None:
        await host.stop()
        app.state.host = None


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "8283"))
    uvicorn.run("app:app", host="0.0.0.0", port=port)
