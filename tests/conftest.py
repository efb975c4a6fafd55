import json
import tempfile
from itertools import count
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from func_emulator.models.credentials import IssuedToken
from func_emulator.models.function import FunctionConfig
from func_emulator.services.exceptions import (
    AuthServiceError,
    ContainerNotFoundError,
    DockerServiceError,
)


class FakeContainer:
    """Stand-in for docker.models.containers.Container."""

    def __init__(self, id: str, name: str, labels: Dict[str, str], port: Optional[int],
                 status: str = "running", exit_code: int = 0, logs: str = ""):
        self.id = id
        self.name = name
        self.labels = labels
        self.port = port
        self.status = status
        self.exit_code = exit_code
        self.logs = logs


class FakeDockerService:
    """In-memory DockerService that enforces unique names and host ports."""

    def __init__(self):
        self.containers: Dict[str, FakeContainer] = {}
        self.images = set()
        self.pulled: List[str] = []
        self.builds = 0
        self.starts = 0
        self.build_exit_code = 0
        self.build_logs = ""
        self._ids = count(1)

    def image_exists(self, image_name):
        return image_name in self.images

    def pull_image(self, image_name):
        self.pulled.append(image_name)
        self.images.add(image_name)

    def run_container(self, image, command=None, remove=True, detach=False, **kwargs):
        name = kwargs.get('name')
        if any(c.name == name for c in self.containers.values()):
            raise DockerServiceError(f"Conflict. The container name '{name}' is already in use")
        ports = kwargs.get('ports') or {}
        port = next(iter(ports.values()), None)
        if port is not None and self.running_on(port):
            raise DockerServiceError(f"Bind for 0.0.0.0:{port} failed: port is already allocated")

        container_id = f"c{next(self._ids)}"
        if name.endswith("-build"):
            self.builds += 1
            container = FakeContainer(container_id, name, kwargs.get('labels', {}), None,
                                      status="exited", exit_code=self.build_exit_code,
                                      logs=self.build_logs)
        else:
            self.starts += 1
            container = FakeContainer(container_id, name, kwargs.get('labels', {}), port)
        self.containers[container_id] = container
        return container

    def wait_container(self, container, timeout=None):
        return container.exit_code

    def container_logs(self, container, stdout=True, stderr=True):
        return container.logs

    def container_status(self, container):
        if container.id not in self.containers:
            raise ContainerNotFoundError("Container not found")
        return container.status

    def copy_from_container(self, container, src_path, dst_path):
        dst_path.parent.mkdir(parents=True, exist_ok=True)
        dst_path.write_bytes(b"archive")

    def stop_container(self, container, timeout=10):
        if container.id not in self.containers:
            raise ContainerNotFoundError("Container not found")
        container.status = "exited"

    def remove_container(self, container, force=False):
        if container.id not in self.containers:
            raise ContainerNotFoundError("Container not found")
        del self.containers[container.id]

    def list_containers(self, all=True, filters=None, labels=None):
        wanted = set((labels or {}).items())
        return [
            c for c in self.containers.values()
            if wanted <= set(c.labels.items())
        ]

    def get_container(self, container_id):
        for container in self.containers.values():
            if container.id == container_id or container.name == container_id:
                return container
        raise ContainerNotFoundError(f"Container '{container_id}' not found")

    def running_on(self, port):
        return [c for c in self.containers.values() if c.port == port and c.status == "running"]


class FakeIssuer:
    """Token issuer returning numbered tokens; can be switched to failing."""

    def __init__(self, lifetime: float = 3600):
        self.lifetime = lifetime
        self.fail = False
        self.calls: List[tuple] = []

    def _issue(self, prefix, *args):
        self.calls.append((prefix,) + args)
        if self.fail:
            raise AuthServiceError("endpoint unreachable")
        return IssuedToken(secret=f"{prefix}-{len(self.calls)}", lifetime=self.lifetime)

    def create_user_token(self, user_id, duration):
        return self._issue("user", user_id)

    def create_function_token(self, scopes, duration):
        return self._issue("function", tuple(scopes))

    def count(self, prefix):
        return sum(1 for call in self.calls if call[0] == prefix)


@pytest.fixture
def cli_runner():
    """Provides a Click CLI runner for testing commands."""
    return CliRunner()


@pytest.fixture
def mock_docker_service():
    """Provides a mocked DockerService."""
    service = MagicMock()
    service.image_exists.return_value = True
    service.list_containers.return_value = []
    service.wait_container.return_value = 0
    service.container_status.return_value = "running"
    return service


@pytest.fixture
def fake_docker():
    return FakeDockerService()


@pytest.fixture
def fake_issuer():
    return FakeIssuer()


@pytest.fixture
def node_function():
    return FunctionConfig(**{
        "$id": "hello",
        "name": "Hello",
        "runtime": "node-18",
        "entrypoint": "index.js",
        "path": "functions/hello",
        "commands": "npm install",
    })


@pytest.fixture
def temp_project_dir():
    """Creates a temporary project with one node function."""
    with tempfile.TemporaryDirectory() as tmpdir:
        project_path = Path(tmpdir)
        function_dir = project_path / "functions" / "hello"
        function_dir.mkdir(parents=True)
        (function_dir / "index.js").write_text("module.exports = async ({ res }) => res.send('hi');")
        (function_dir / "package.json").write_text('{"name": "hello"}')
        (project_path / "functions.json").write_text(json.dumps({
            "projectId": "demo",
            "endpoint": "https://cloud.example.com/v1",
            "functions": [{
                "$id": "hello",
                "name": "Hello",
                "runtime": "node-18",
                "entrypoint": "index.js",
                "path": "functions/hello",
                "commands": "npm install",
            }],
            "emulator": {"debounce_seconds": 0.05},
        }))

        yield project_path
