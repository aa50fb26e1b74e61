"""Package installer - adds and removes plugin packages through the package manager."""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, TYPE_CHECKING

from matterbridge.constants import PIP_COMMAND

if TYPE_CHECKING:
    from matterbridge.plugins.events import PluginEvents

logger = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(r"^Version:\s*(\S+)", re.MULTILINE)


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class PackageInstaller:
    """Installs plugin packages globally by shelling out to pip.

    Never raises: failures are logged and reported as None.
    """

    def __init__(
        self,
        pip_command: Sequence[str] = PIP_COMMAND,
        events: Optional[PluginEvents] = None,
        timeout: float = 300,
    ):
        self.pip_command: List[str] = list(pip_command)
        self.events = events
        self.timeout = timeout

    async def install(self, name: str) -> Optional[str]:
        """Install a package, replacing any copy already installed.

        Args:
            name: Package name as known to the package index

        Returns:
            The installed version, or None if the install failed
        """
        logger.info(f"Installing plugin {name}...")
        # A stale copy is replaced, not upgraded in place
        await self._run("uninstall", "-y", name)

        result = await self._run("install", name)
        if result is None or not result.ok:
            logger.error(f"Failed to install package {name}")
            if result is not None:
                logger.debug(f"pip install {name} exited with {result.returncode}: {result.stderr.strip()}")
            return None
        logger.info(f"Installed plugin {name}")

        version = await self.get_version(name)
        if version is None:
            logger.error(f"Installed plugin {name} but could not read its version")
            return None

        logger.info(f"Installed plugin {name}@{version}")
        self._emit("installed", name, version)
        return version

    async def uninstall(self, name: str) -> Optional[str]:
        """Remove a globally installed package.

        Returns:
            The package name once removed, or None if removal failed
        """
        logger.info(f"Uninstalling plugin {name}...")
        result = await self._run("uninstall", "-y", name)
        if result is None or not result.ok:
            logger.error(f"Failed to uninstall package {name}")
            if result is not None:
                logger.debug(f"pip uninstall {name} exited with {result.returncode}: {result.stderr.strip()}")
            return None

        logger.info(f"Uninstalled plugin {name}")
        self._emit("uninstalled", name)
        return name

    async def get_version(self, name: str) -> Optional[str]:
        """Read the installed version of a package from `pip show`."""
        result = await self._run("show", name)
        if result is None or not result.ok:
            return None
        match = VERSION_PATTERN.search(result.stdout)
        return match.group(1) if match else None

    async def _run(self, *args: str) -> Optional[CommandResult]:
        cmd = [*self.pip_command, *args]
        logger.debug(f"Running {' '.join(cmd)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"Failed to run {' '.join(cmd)}: {e}")
            return None

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.error(f"{' '.join(cmd)} timed out after {self.timeout}s")
            return None

        return CommandResult(
            returncode=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )

    def _emit(self, event: str, *args: Any) -> None:
        if self.events is not None:
            self.events.emit(event, *args)
