"""Run command for the function emulator."""

import asyncio
import sys
from typing import List, Optional

import click
from rich.console import Console

from func_emulator.cli.helpers import (
    format_settings_table,
    get_config_manager,
    get_docker_service,
    get_project_context,
    parse_env_vars,
    print_event,
    resolve_function,
    resolve_port,
)
from ...core.change_queue import ChangeQueue
from ...core.constants import API_KEY_ENV, DATA_DIR_NAME, ERRORS_FILE_NAME, LOGS_FILE_NAME
from ...core.credentials import CredentialManager
from ...core.file_watcher import FileWatcher, follow_log
from ...core.runtime_manager import RuntimeContainerManager
from ...core.session import EmulationSession
from ...services.auth_service import AuthService
from ...services.exceptions import ServiceError, UnknownRuntimeError


async def _run_session(session: EmulationSession, watcher: Optional[FileWatcher],
                       console: Console, poll_interval: float) -> None:
    data_dir = session.manager.function_dir(session.config) / DATA_DIR_NAME

    def echo(line: str) -> None:
        console.print(line, markup=False, highlight=False)

    tails: List[asyncio.Task] = [
        asyncio.create_task(follow_log(data_dir / name, echo, poll_interval))
        for name in (LOGS_FILE_NAME, ERRORS_FILE_NAME)
    ]
    try:
        await session.run(watcher)
    finally:
        for task in tails:
            task.cancel()
        await asyncio.gather(*tails, return_exceptions=True)


@click.command()
@click.option('--function-id', '-f', help='ID of the function to run')
@click.option('--port', '-p', type=int, help='Local port (defaults to the first free port from 3000)')
@click.option('--user-id', help='ID of the user to impersonate')
@click.option('--scope', 'scopes', multiple=True, help='Scope granted to the function token (repeatable)')
@click.option('--env', '-e', 'env_vars', multiple=True, help='Runtime variable as KEY=VALUE (repeatable)')
@click.option('--no-reload', is_flag=True, help='Do not rebuild when function files change')
@click.option('--endpoint', help='API endpoint used to issue tokens')
@click.option('--api-key', envvar=API_KEY_ENV, help='API key used to issue tokens')
def run(function_id, port, user_id, scopes, env_vars, no_reload, endpoint, api_key):
    """Run a function locally in its runtime container"""
    project_root = get_project_context()
    config_manager = get_config_manager(project_root)
    func = resolve_function(config_manager, function_id)
    settings = config_manager.get_settings()
    variables = parse_env_vars(env_vars)

    endpoint = endpoint or config_manager.get_endpoint()
    project_id = config_manager.get_project_id()
    if not endpoint or not project_id:
        click.echo("Error: An endpoint and projectId are required to issue function tokens.", err=True)
        click.echo("Set them in functions.json or pass --endpoint.", err=True)
        sys.exit(1)

    try:
        tool = func.tool
    except UnknownRuntimeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    port = resolve_port(port)
    docker_service = get_docker_service()

    console = Console()
    click.echo("Local function configuration:")
    click.echo(format_settings_table(func, port))
    click.echo("To change these settings, update functions.json and rerun the command.")

    manager = RuntimeContainerManager(
        docker_service,
        project_root,
        stop_grace=settings.stop_grace_seconds,
        start_grace=settings.start_grace_seconds,
        on_event=lambda event: print_event(console, event),
    )
    credentials = CredentialManager(
        AuthService(endpoint, project_id, api_key),
        lifetime=settings.token_lifetime_seconds,
        warn_ratio=settings.token_warn_ratio,
        on_error=lambda error: console.print(
            f"Warning: {error}. Stop and rerun the command to obtain new tokens.",
            style="yellow", markup=False,
        ),
    )
    session = EmulationSession(
        func,
        manager,
        ChangeQueue(settings.debounce_seconds),
        credentials,
        port,
        variables=variables,
        user_id=user_id,
        scopes=list(scopes),
    )
    watcher = None
    if not no_reload:
        watcher = FileWatcher(
            manager.function_dir(func), func.ignore, settings.poll_interval_seconds
        )

    kind = "compiled" if tool.is_compiled else "interpreted"
    click.echo(f"Starting {kind} {func.runtime} function '{func.id}'. Press Ctrl+C to stop.")
    try:
        asyncio.run(_run_session(session, watcher, console, settings.poll_interval_seconds))
    except KeyboardInterrupt:
        click.echo("Stopped and cleaned up.")
    except ServiceError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
