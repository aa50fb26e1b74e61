#!/usr/bin/env python3
"""Plugin management CLI tool.

Works on the persisted plugin registry. Changes take effect the next time
the host starts.
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

# Ensure project root is in path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from rich.console import Console
from rich.table import Table

from matterbridge.constants import MATTERBRIDGE_DIRECTORY, STORAGE_DIRECTORY
from matterbridge.host import Matterbridge
from matterbridge.storage import NodeStorage

console = Console()


async def get_host() -> Matterbridge:
    """Create a host with the persisted registry loaded, without starting any plugin."""
    host = Matterbridge(storage=NodeStorage(STORAGE_DIRECTORY))
    await host.plugins.registry.load_from_storage()
    return host


async def cmd_list(args):
    """List all registered plugins."""
    host = await get_host()
    plugins = host.plugins.list_plugins()

    if not plugins:
        console.print("[yellow]No plugins registered.[/yellow]")
        return

    table = Table(title="Plugins")
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("Version")
    table.add_column("Enabled")
    table.add_column("Path")
    for p in plugins:
        table.add_row(p["name"], p["type"], p["version"], "Yes" if p["enabled"] else "No", p["path"])
    console.print(table)


async def cmd_info(args):
    """Show detailed plugin information."""
    host = await get_host()
    plugin = host.plugins.get(args.name)
    if not plugin:
        console.print(f"[red]Plugin '{args.name}' not found.[/red]")
        sys.exit(1)

    await host.plugins.parse(plugin)
    config = await host.plugins.load_config(plugin)

    console.print(f"Plugin: [cyan]{plugin.name}[/cyan]")
    console.print(f"  Version:     {plugin.version}")
    console.print(f"  Type:        {plugin.type}")
    console.print(f"  Description: {plugin.description}")
    console.print(f"  Author:      {plugin.author}")
    console.print(f"  Path:        {plugin.path}")
    console.print(f"  Enabled:     {plugin.enabled}")
    if plugin.homepage:
        console.print(f"  Homepage:    {plugin.homepage}")
    if plugin.help:
        console.print(f"  Help:        {plugin.help}")
    console.print(f"  Config:      {json.dumps(config, indent=4, ensure_ascii=False)}")


async def cmd_add(args):
    """Register a plugin by package name or path."""
    host = await get_host()
    plugin = await host.plugins.add(args.name_or_path)
    if not plugin:
        console.print(f"[red]Failed to add plugin '{args.name_or_path}'. Check logs for details.[/red]")
        sys.exit(1)
    console.print(f"[green]Plugin '{plugin.name}' added. Restart the host to load it.[/green]")


async def cmd_remove(args):
    """Unregister a plugin."""
    host = await get_host()
    plugin = await host.plugins.remove(args.name)
    if not plugin:
        console.print(f"[red]Plugin '{args.name}' not found.[/red]")
        sys.exit(1)
    console.print(f"[green]Plugin '{plugin.name}' removed.[/green]")


async def cmd_enable(args):
    """Enable a plugin."""
    host = await get_host()
    plugin = await host.plugins.enable(args.name)
    if not plugin:
        console.print(f"[red]Plugin '{args.name}' not found.[/red]")
        sys.exit(1)
    console.print(f"[green]Plugin '{plugin.name}' enabled. Restart the host to take effect.[/green]")


async def cmd_disable(args):
    """Disable a plugin."""
    host = await get_host()
    plugin = await host.plugins.disable(args.name)
    if not plugin:
        console.print(f"[red]Plugin '{args.name}' not found.[/red]")
        sys.exit(1)
    console.print(f"[green]Plugin '{plugin.name}' disabled. Restart the host to take effect.[/green]")


async def cmd_install(args):
    """Install a plugin package and register it."""
    host = await get_host()
    plugin = await host.plugins.install_plugin(args.name)
    if not plugin:
        console.print(f"[red]Failed to install plugin '{args.name}'. Check logs for details.[/red]")
        sys.exit(1)
    console.print(f"[green]Plugin '{plugin.name}' {plugin.version} installed.[/green]")


async def cmd_uninstall(args):
    """Unregister a plugin and uninstall its package."""
    host = await get_host()
    if not await host.plugins.uninstall_plugin(args.name):
        console.print(f"[red]Failed to uninstall plugin '{args.name}'. Check logs for details.[/red]")
        sys.exit(1)
    console.print(f"[green]Plugin '{args.name}' uninstalled.[/green]")


async def cmd_doctor(args):
    """Run health checks on the plugin system."""
    issues = []

    if not MATTERBRIDGE_DIRECTORY.exists():
        issues.append(f"Home directory missing: {MATTERBRIDGE_DIRECTORY}")

    host = await get_host()
    for plugin in host.plugins.registry.array():
        if not Path(plugin.path).is_file():
            issues.append(f"Plugin '{plugin.name}': manifest missing: {plugin.path}")
            continue
        if await host.plugins.parse(plugin) is None:
            issues.append(f"Plugin '{plugin.name}': invalid manifest {plugin.path}")

    if issues:
        console.print(f"[red]Found {len(issues)} issue(s):[/red]")
        for i, issue in enumerate(issues, 1):
            console.print(f"  {i}. {issue}")
        sys.exit(1)

    enabled = host.plugins.registry.get_enabled()
    console.print(
        f"[green]All checks passed. {len(host.plugins)} plugin(s) registered, {len(enabled)} enabled.[/green]"
    )


def setup_logging():
    """Log INFO and above to a file, only WARNING and above to the console."""
    log_dir = MATTERBRIDGE_DIRECTORY / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)

    file_handler = logging.FileHandler(
        log_dir / f"manage_plugins_{datetime.now().strftime('%Y%m%d')}.log",
        encoding="utf-8",
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )

    # Keep INFO logs out of the CLI output
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)


def main():
    setup_logging()

    parser = argparse.ArgumentParser(description="Matterbridge Plugin Manager")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # list
    subparsers.add_parser("list", help="List all plugins")

    # info
    info_parser = subparsers.add_parser("info", help="Show plugin details")
    info_parser.add_argument("name", help="Plugin name")

    # add
    add_parser = subparsers.add_parser("add", help="Register a plugin by package name or path")
    add_parser.add_argument("name_or_path", help="Package name, plugin directory or plugin.json path")

    # remove
    remove_parser = subparsers.add_parser("remove", help="Unregister a plugin")
    remove_parser.add_argument("name", help="Plugin name or path")

    # enable
    enable_parser = subparsers.add_parser("enable", help="Enable a plugin")
    enable_parser.add_argument("name", help="Plugin name or path")

    # disable
    disable_parser = subparsers.add_parser("disable", help="Disable a plugin")
    disable_parser.add_argument("name", help="Plugin name or path")

    # install
    install_parser = subparsers.add_parser("install", help="Install a plugin package")
    install_parser.add_argument("name", help="Package name")

    # uninstall
    uninstall_parser = subparsers.add_parser("uninstall", help="Uninstall a plugin package")
    uninstall_parser.add_argument("name", help="Package name")

    # doctor
    subparsers.add_parser("doctor", help="Run health checks")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "list": cmd_list,
        "info": cmd_info,
        "add": cmd_add,
        "remove": cmd_remove,
        "enable": cmd_enable,
        "disable": cmd_disable,
        "install": cmd_install,
        "uninstall": cmd_uninstall,
        "doctor": cmd_doctor,
    }

    asyncio.run(commands[args.command](args))


if __name__ == "__main__":
    main()
