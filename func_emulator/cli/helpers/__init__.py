"""CLI Helper Functions for the function emulator.

This module provides reusable helper functions for CLI commands:
- Project context and configuration loading
- Function selection with an interactive fallback
- Port and runtime variable resolution
- Consistent table and lifecycle event output
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Iterable, Optional

import click
import questionary
from rich.console import Console
from tabulate import tabulate

from func_emulator.models.events import LifecycleEvent, LifecycleEventKind
from func_emulator.models.function import FunctionConfig
from func_emulator.services.docker_service import DockerService
from func_emulator.services.exceptions import DockerServiceError
from func_emulator.utils.config_manager import ConfigError, ConfigManager
from func_emulator.utils.network import find_free_port, is_port_taken

EVENT_STYLES = {
    LifecycleEventKind.PULLED: "dim",
    LifecycleEventKind.BUILT: "cyan",
    LifecycleEventKind.STARTED: "green",
    LifecycleEventKind.STOPPED: "yellow",
    LifecycleEventKind.CLEANED: "dim",
    LifecycleEventKind.FAILED: "red",
}


def setup_logging(verbose: bool = False) -> None:
    """Configure root logging for CLI runs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s' if verbose else '%(message)s',
    )
    # The docker SDK is chatty at DEBUG
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def get_project_context() -> Path:
    """Get the project root (the current directory)."""
    return Path.cwd()


def get_config_manager(project_root: Path) -> ConfigManager:
    """Load the project configuration, exit with an error if it is missing or invalid."""
    config_manager = ConfigManager(project_root)
    try:
        config_manager.load()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    return config_manager


def get_docker_service() -> DockerService:
    """Initialize Docker service with error handling.

    Note:
        Exits with error message if Docker is not available.
    """
    try:
        return DockerService()
    except DockerServiceError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo("Docker Engine is required for local development: https://docs.docker.com/engine/install/", err=True)
        sys.exit(1)


def resolve_function(config_manager: ConfigManager, function_id: Optional[str]) -> FunctionConfig:
    """Find the function to run, prompting when no id was given."""
    functions = config_manager.get_functions()
    if not functions:
        click.echo("Error: No functions found in the project configuration.", err=True)
        sys.exit(1)

    if not function_id:
        if len(functions) == 1:
            return functions[0]
        function_id = questionary.select(
            "Which function would you like to run?",
            choices=[questionary.Choice(f"{f.name or f.id} ({f.id})", value=f.id) for f in functions],
        ).ask()
        if not function_id:
            sys.exit(1)

    func = config_manager.get_function(function_id)
    if func is None:
        click.echo(f"Error: Function '{function_id}' not found.", err=True)
        sys.exit(1)
    return func


def resolve_port(port: Optional[int]) -> int:
    """Validate a requested port or pick the first free one."""
    if port:
        if is_port_taken(port):
            click.echo(f"Error: Port {port} is already in use by another process.", err=True)
            sys.exit(1)
        return port

    free = find_free_port()
    if free is None:
        click.echo("Error: Could not find an available port. Please select one with --port.", err=True)
        sys.exit(1)
    return free


def parse_env_vars(pairs: Iterable[str]) -> Dict[str, str]:
    """Parse ``KEY=VALUE`` options into a dict."""
    variables = {}
    for pair in pairs:
        key, sep, value = pair.partition('=')
        if not sep or not key:
            raise click.BadParameter(f"'{pair}' is not in KEY=VALUE form", param_hint='--env')
        variables[key] = value
    return variables


def format_settings_table(func: FunctionConfig, port: int) -> str:
    """Format the local function settings as a table."""
    rows = [[
        func.id,
        func.runtime,
        func.entrypoint,
        func.path,
        func.commands,
        port,
    ]]
    return tabulate(rows, headers=["ID", "RUNTIME", "ENTRYPOINT", "PATH", "COMMANDS", "PORT"], tablefmt="simple")


def print_event(console: Console, event: LifecycleEvent) -> None:
    """Print a lifecycle event with a color for its kind."""
    style = EVENT_STYLES.get(event.kind, "")
    message = f"{event.function_id}: {event.kind.value}"
    if event.kind == LifecycleEventKind.STARTED and event.detail:
        message = f"Visit {event.detail} to execute your function."
    elif event.detail:
        message = f"{message} - {event.detail}"
    console.print(message, style=style, markup=False, highlight=False)
