"""Unit tests for CLI helper functions."""

from io import StringIO
from unittest import mock

import click
import pytest
from rich.console import Console

from func_emulator.cli.helpers import (
    format_settings_table,
    get_config_manager,
    get_docker_service,
    parse_env_vars,
    print_event,
    resolve_function,
    resolve_port,
)
from func_emulator.models.events import LifecycleEvent, LifecycleEventKind
from func_emulator.services.exceptions import DockerServiceError


class TestGetConfigManager:

    def test_loads_project(self, temp_project_dir):
        manager = get_config_manager(temp_project_dir)
        assert manager.get_project_id() == "demo"

    def test_missing_config_exits(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            get_config_manager(tmp_path)
        assert excinfo.value.code == 1


class TestGetDockerService:

    @mock.patch('func_emulator.cli.helpers.DockerService')
    def test_docker_unavailable_exits(self, mock_docker_service_class):
        mock_docker_service_class.side_effect = DockerServiceError("Docker daemon is not running")
        with pytest.raises(SystemExit) as excinfo:
            get_docker_service()
        assert excinfo.value.code == 1


class TestResolveFunction:
    """Test resolve_function."""

    def test_single_function_is_default(self, temp_project_dir):
        manager = get_config_manager(temp_project_dir)
        assert resolve_function(manager, None).id == "hello"

    def test_unknown_function_exits(self, temp_project_dir):
        manager = get_config_manager(temp_project_dir)
        with pytest.raises(SystemExit):
            resolve_function(manager, "missing")

    @mock.patch('func_emulator.cli.helpers.questionary.select')
    def test_prompts_when_several_functions(self, mock_select, temp_project_dir):
        manager = get_config_manager(temp_project_dir)
        hello = manager.get_function("hello")
        other = hello.model_copy(update={'id': "other"})
        manager.load().functions.append(other)
        mock_select.return_value.ask.return_value = "other"

        assert resolve_function(manager, None).id == "other"
        mock_select.assert_called_once()


class TestResolvePort:

    @mock.patch('func_emulator.cli.helpers.is_port_taken', return_value=True)
    def test_taken_port_exits(self, mock_taken):
        with pytest.raises(SystemExit):
            resolve_port(3000)

    @mock.patch('func_emulator.cli.helpers.find_free_port', return_value=3004)
    def test_picks_free_port(self, mock_find):
        assert resolve_port(None) == 3004

    @mock.patch('func_emulator.cli.helpers.find_free_port', return_value=None)
    def test_no_free_port_exits(self, mock_find):
        with pytest.raises(SystemExit):
            resolve_port(None)


class TestParseEnvVars:

    def test_parses_pairs(self):
        assert parse_env_vars(["A=1", "B=x=y", "C="]) == {"A": "1", "B": "x=y", "C": ""}

    def test_rejects_missing_separator(self):
        with pytest.raises(click.BadParameter):
            parse_env_vars(["NOPE"])


class TestFormatting:

    def test_settings_table(self, node_function):
        table = format_settings_table(node_function, 3001)
        assert "RUNTIME" in table
        assert "node-18" in table
        assert "3001" in table

    def test_started_event_shows_url(self):
        output = StringIO()
        console = Console(file=output, width=120)
        print_event(console, LifecycleEvent("hello", LifecycleEventKind.STARTED, "http://localhost:3000/"))
        assert "Visit http://localhost:3000/ to execute your function." in output.getvalue()

    def test_failed_event_shows_detail(self):
        output = StringIO()
        console = Console(file=output, width=120)
        print_event(console, LifecycleEvent("hello", LifecycleEventKind.FAILED, "build failed"))
        assert "hello: failed - build failed" in output.getvalue()
