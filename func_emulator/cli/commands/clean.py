"""Clean command for the function emulator."""

import asyncio
from pathlib import Path

import click

from ...core.runtime_manager import RuntimeContainerManager
from ...services.docker_service import DockerService
from ...services.exceptions import DockerServiceError
from ...utils.config_manager import ConfigError, ConfigManager


@click.command()
def clean():
    """Remove emulator containers and build artifacts of all functions"""
    project_root = Path.cwd()

    try:
        docker_service = DockerService()
    except DockerServiceError as e:
        click.echo(f"Error: {e}", err=True)
        return

    manager = RuntimeContainerManager(docker_service, project_root)

    config_manager = ConfigManager(project_root)
    if config_manager.exists():
        try:
            for func in config_manager.get_functions():
                manager.track(func)
        except ConfigError as e:
            click.echo(f"Warning: {e}. Only containers will be removed.")

    asyncio.run(manager.cleanup_all())
    click.echo("Cleaned up emulator containers and build artifacts")
