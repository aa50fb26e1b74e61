"""Global constants for the Matterbridge plugin host."""

import os
import sys
import sysconfig
from pathlib import Path

# Directory paths
PROJECT_ROOT = Path(__file__).resolve().parent.parent
BUNDLED_PLUGINS_DIR = PROJECT_ROOT / "plugins" / "bundled"

# Instance directory (supports MATTERBRIDGE_HOME env var, defaults to ~/.matterbridge)
_home_env = os.getenv("MATTERBRIDGE_HOME", "")
MATTERBRIDGE_DIRECTORY = Path(_home_env).expanduser() if _home_env else Path.home() / ".matterbridge"
STORAGE_DIRECTORY = MATTERBRIDGE_DIRECTORY / "storage"   # persistent node context

# Where globally installed plugin packages end up
GLOBAL_MODULES_DIRECTORY = Path(sysconfig.get_paths()["purelib"])

# Plugin manifest
PLUGIN_MANIFEST_FILE = os.getenv("MATTERBRIDGE_PLUGIN_MANIFEST", "plugin.json")
PLUGIN_MODULE_TYPE = "module"
PLUGIN_ENTRY_FACTORY = "initialize_plugin"
DEFAULT_PLUGIN_TYPE = "AnyPlatform"

# Plugins must use the host's copy of these, never bundle their own
HOST_PACKAGE_NAME = "matterbridge"
PROTOCOL_STACK_PREFIXES = ("@project-chip", "@matter", "home-assistant-chip")

# Package manager used by the installer (space separated command prefix)
_pip_env = os.getenv("MATTERBRIDGE_PIP", "")
PIP_COMMAND = _pip_env.split() if _pip_env else [sys.executable, "-m", "pip"]
