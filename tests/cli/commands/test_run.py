import json
from unittest.mock import MagicMock, patch

import pytest

from func_emulator.cli.commands.run import run
from func_emulator.core.file_watcher import FileWatcher
from func_emulator.core.session import EmulationSession
from func_emulator.services.exceptions import BuildError


@pytest.fixture
def run_env(temp_project_dir):
    """Patch the run command's collaborators around a temporary project."""
    with patch('func_emulator.cli.commands.run.get_project_context', return_value=temp_project_dir), \
         patch('func_emulator.cli.commands.run.get_docker_service') as mock_get_docker, \
         patch('func_emulator.cli.commands.run.resolve_port', side_effect=lambda port: port or 3000), \
         patch('func_emulator.cli.commands.run._run_session', new=MagicMock()) as mock_run_session, \
         patch('func_emulator.cli.commands.run.asyncio.run') as mock_asyncio_run:
        yield {
            'project': temp_project_dir,
            'docker': mock_get_docker,
            'run_session': mock_run_session,
            'asyncio_run': mock_asyncio_run,
        }


class TestRunCommand:
    """Smoke tests for run command."""

    def test_run_starts_session(self, cli_runner, run_env):
        result = cli_runner.invoke(run, ['--user-id', 'u1', '--scope', 'users.read', '-e', 'GREETING=hi'])

        assert result.exit_code == 0, result.output
        assert "Local function configuration:" in result.output
        assert "Starting interpreted node-18 function 'hello'" in result.output
        run_env['asyncio_run'].assert_called_once()

        session, watcher, _, interval = run_env['run_session'].call_args.args
        assert isinstance(session, EmulationSession)
        assert isinstance(watcher, FileWatcher)
        assert session.port == 3000
        assert session.user_id == "u1"
        assert session.scopes == ["users.read"]
        assert session.variables == {"GREETING": "hi"}
        assert session.queue.debounce == 0.05
        assert interval == 0.5

    def test_no_reload_skips_watcher(self, cli_runner, run_env):
        result = cli_runner.invoke(run, ['--no-reload', '--port', '3005'])

        assert result.exit_code == 0, result.output
        session, watcher, _, _ = run_env['run_session'].call_args.args
        assert watcher is None
        assert session.port == 3005

    def test_keyboard_interrupt(self, cli_runner, run_env):
        run_env['asyncio_run'].side_effect = KeyboardInterrupt

        result = cli_runner.invoke(run, [])

        assert result.exit_code == 0
        assert "Stopped and cleaned up." in result.output

    def test_service_error_exits(self, cli_runner, run_env):
        run_env['asyncio_run'].side_effect = BuildError("Build failed", "npm ERR!", function_id="hello")

        result = cli_runner.invoke(run, [])

        assert result.exit_code == 1
        assert "Error: Build failed" in result.output

    def test_missing_endpoint(self, cli_runner, run_env):
        config_file = run_env['project'] / "functions.json"
        data = json.loads(config_file.read_text())
        del data['endpoint']
        config_file.write_text(json.dumps(data))

        result = cli_runner.invoke(run, [])

        assert result.exit_code == 1
        assert "An endpoint and projectId are required" in result.output
        run_env['docker'].assert_not_called()

    def test_endpoint_option_overrides_config(self, cli_runner, run_env):
        result = cli_runner.invoke(run, ['--endpoint', 'http://localhost/v1', '--api-key', 'secret'])

        assert result.exit_code == 0, result.output
        session = run_env['run_session'].call_args.args[0]
        issuer = session.credentials.issuer
        assert issuer.endpoint == "http://localhost/v1"
        assert issuer.session.headers['X-Key'] == "secret"

    def test_unknown_runtime(self, cli_runner, run_env):
        config_file = run_env['project'] / "functions.json"
        data = json.loads(config_file.read_text())
        data['functions'][0]['runtime'] = "cobol-85"
        config_file.write_text(json.dumps(data))

        result = cli_runner.invoke(run, [])

        assert result.exit_code == 1
        assert "not supported" in result.output

    def test_no_config(self, cli_runner, tmp_path):
        with patch('func_emulator.cli.commands.run.get_project_context', return_value=tmp_path):
            result = cli_runner.invoke(run, [])

        assert result.exit_code == 1
        assert "No functions.json found" in result.output

    def test_invalid_env_var(self, cli_runner, run_env):
        result = cli_runner.invoke(run, ['-e', 'NOPE'])

        assert result.exit_code == 2
        assert "KEY=VALUE" in result.output
