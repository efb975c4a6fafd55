"""Runtime container lifecycle for emulated functions."""

import asyncio
import hashlib
import logging
import shutil
from pathlib import Path
from typing import Callable, Dict, List, Optional

from docker.models.containers import Container

from ..models.container import ContainerState, RuntimeContainer
from ..models.events import LifecycleEvent, LifecycleEventKind
from ..models.function import FunctionConfig
from ..services.docker_service import DockerService
from ..services.exceptions import (
    BuildError,
    ContainerNotFoundError,
    DockerServiceError,
    EmulationError,
    ImagePullError,
    StartError,
)
from ..utils.network import is_port_taken
from .constants import (
    BUILD_ARCHIVE_NAME,
    CODE_ARCHIVE_IN_CONTAINER,
    CODE_MOUNT,
    CONTAINER_PORT,
    CONTAINER_PREFIX,
    DATA_DIR_NAME,
    ERRORS_FILE_NAME,
    ERRORS_MOUNT,
    LABEL_CACHE_KEY,
    LABEL_ENV,
    LABEL_ENV_VALUE,
    LABEL_FUNCTION,
    LOGS_FILE_NAME,
    LOGS_MOUNT,
    RUNTIME_BASE_ENVIRONMENT,
    START_GRACE_SECONDS,
    STOP_GRACE_SECONDS,
    TEMP_ARCHIVE_NAME,
)

logger = logging.getLogger(__name__)

EventCallback = Callable[[LifecycleEvent], None]


def compute_source_signature(function_dir: Path, dependency_files: List[str]) -> str:
    """Hash the declared dependency manifests; used as the build-cache key."""
    digest = hashlib.sha256()
    for name in sorted(dependency_files):
        digest.update(name.encode('utf-8'))
        path = function_dir / name
        if path.is_file():
            digest.update(path.read_bytes())
        else:
            digest.update(b"\0missing")
    return digest.hexdigest()


class RuntimeContainerManager:
    """Pulls, builds, starts, stops and cleans up function containers.

    Operations on the same function id are serialized; operations on
    different ids may run concurrently. Blocking Docker calls run in worker
    threads so the event loop only suspends on container runtime I/O.
    """

    def __init__(
        self,
        docker_service: DockerService,
        project_root: Path,
        stop_grace: int = STOP_GRACE_SECONDS,
        start_grace: float = START_GRACE_SECONDS,
        on_event: Optional[EventCallback] = None,
    ):
        self.docker_service = docker_service
        self.project_root = project_root
        self.stop_grace = stop_grace
        self.start_grace = start_grace
        self.on_event = on_event
        self.containers: Dict[str, RuntimeContainer] = {}
        self._configs: Dict[str, FunctionConfig] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    @staticmethod
    def container_name(function_id: str) -> str:
        return f"{CONTAINER_PREFIX}-{function_id}".lower()

    @staticmethod
    def build_container_name(function_id: str) -> str:
        return f"{CONTAINER_PREFIX}-{function_id}-build".lower()

    def function_dir(self, config: FunctionConfig) -> Path:
        return (self.project_root / config.path).resolve()

    def get(self, function_id: str) -> Optional[RuntimeContainer]:
        return self.containers.get(function_id)

    def track(self, config: FunctionConfig) -> RuntimeContainer:
        """Start tracking a function so cleanup knows its working files."""
        self._configs[config.id] = config
        return self.containers.setdefault(config.id, RuntimeContainer(function_id=config.id))

    async def pull(self, config: FunctionConfig) -> None:
        """Make sure the runtime image is available locally.

        Raises:
            ImagePullError: If the registry is unreachable or the tag does not exist
        """
        image = config.image_name
        async with self._lock(config.id):
            record = self.track(config)
            if await self._in_thread(self.docker_service.image_exists, image):
                logger.debug(f"Image {image} already present")
            else:
                logger.info(f"Pulling {image}. This may take a few minutes, but only happens once.")
                try:
                    await self._in_thread(self.docker_service.pull_image, image)
                except DockerServiceError as e:
                    raise self._fail(ImagePullError(
                        f"Failed to pull image '{image}': {e}", function_id=config.id
                    )) from e
            if record.state in (ContainerState.ABSENT, ContainerState.STOPPED):
                record.state = ContainerState.PULLED
            self._emit(config.id, LifecycleEventKind.PULLED, image)

    async def build(self, config: FunctionConfig, variables: Dict[str, str]) -> None:
        """Run the runtime's build helper and store the produced archive.

        A running container for the function is left untouched.

        Raises:
            BuildError: If the build exits non-zero; carries the captured stderr
        """
        async with self._lock(config.id):
            record = self.track(config)
            function_dir = self.function_dir(config)
            try:
                signature = await self._in_thread(
                    compute_source_signature, function_dir, config.dependency_files
                )
            except OSError as e:
                raise self._fail(BuildError(
                    f"Could not read dependency files of '{config.id}': {e}", function_id=config.id
                )) from e
            if config.requires_compile:
                logger.info(f"Compiling {config.id} ({config.runtime})")
            elif record.source_signature not in (None, signature):
                logger.info(f"Dependencies of {config.id} changed, reinstalling")
            else:
                logger.info(f"Building {config.id} ({config.runtime})")

            try:
                await self._in_thread(self._run_build, config, variables, function_dir, signature)
            except BuildError as e:
                raise self._fail(e)
            except (DockerServiceError, OSError) as e:
                raise self._fail(BuildError(
                    f"Build of '{config.id}' failed: {e}", function_id=config.id
                )) from e

            record.source_signature = signature
            if record.state != ContainerState.RUNNING:
                record.state = ContainerState.BUILT
            self._emit(config.id, LifecycleEventKind.BUILT, signature[:12])

    async def start(self, config: FunctionConfig, variables: Dict[str, str], port: int) -> RuntimeContainer:
        """Replace the function's running container with a fresh one bound to ``port``.

        Raises:
            StartError: If the port is taken by another process or the container
                exits within the start grace window
        """
        async with self._lock(config.id):
            record = self.track(config)
            try:
                await self._in_thread(self._replace_existing, record)
            except DockerServiceError as e:
                raise self._fail(StartError(
                    f"Could not stop the previous container of '{config.id}': {e}",
                    function_id=config.id,
                )) from e
            if record.state == ContainerState.RUNNING:
                record.state = ContainerState.STOPPED
                self._emit(config.id, LifecycleEventKind.STOPPED, "replaced")

            if await self._in_thread(is_port_taken, port):
                raise self._fail(StartError(
                    f"Port {port} is already in use by another process", function_id=config.id
                ))

            try:
                container = await self._in_thread(self._run_runtime, config, variables, port)
            except DockerServiceError as e:
                raise self._fail(StartError(
                    f"Failed to start '{config.id}': {e}", function_id=config.id
                )) from e

            await asyncio.sleep(self.start_grace)
            try:
                status = await self._in_thread(self.docker_service.container_status, container)
            except ContainerNotFoundError:
                status = "removed"
            if status in ("exited", "dead", "removed"):
                output = await self._in_thread(self._collect_logs, container)
                await self._in_thread(self._discard, container)
                raise self._fail(StartError(
                    f"Container for '{config.id}' exited right after starting",
                    output=output,
                    function_id=config.id,
                ))

            record.container_id = container.id
            record.port = port
            record.state = ContainerState.RUNNING
            self._emit(config.id, LifecycleEventKind.STARTED, f"http://localhost:{port}/")
            return record

    async def stop(self, container_id: str) -> None:
        """Stop and remove a container. Unknown ids are ignored."""
        await self._in_thread(self._stop_sync, container_id)
        for record in self.containers.values():
            if record.container_id == container_id:
                record.container_id = None
                record.state = ContainerState.STOPPED
                self._emit(record.function_id, LifecycleEventKind.STOPPED)

    async def cleanup(self, function_id: str) -> None:
        """Remove every container and build artifact of a function. Never raises."""
        try:
            async with self._lock(function_id):
                await self._in_thread(self._cleanup_sync, function_id)
        except Exception as e:
            logger.warning(f"Cleanup of {function_id} incomplete: {e}")
        self.containers.pop(function_id, None)
        self._emit(function_id, LifecycleEventKind.CLEANED)

    async def cleanup_all(self) -> None:
        """Clean every tracked function and any emulator container left behind."""
        for function_id in sorted(set(self.containers) | set(self._configs)):
            await self.cleanup(function_id)
        try:
            stale = await self._in_thread(
                self.docker_service.list_containers,
                all=True,
                labels={LABEL_ENV: LABEL_ENV_VALUE},
            )
        except Exception as e:
            logger.warning(f"Could not list leftover containers: {e}")
            return
        for container in stale:
            await self._in_thread(self._discard, container)

    async def _in_thread(self, func: Callable, *args, **kwargs):
        """Run a blocking Docker step in a worker thread.

        A cancelled caller still waits for the step to finish before the
        cancellation propagates. Threads cannot be interrupted, so this keeps
        the function's lock held until Docker is done with whatever the step
        created, and cleanup that follows will see it.
        """
        future = asyncio.ensure_future(asyncio.to_thread(func, *args, **kwargs))
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            await asyncio.wait({future})
            if not future.cancelled() and future.exception() is not None:
                logger.debug(f"Interrupted step failed: {future.exception()}")
            raise

    def _lock(self, function_id: str) -> asyncio.Lock:
        return self._locks.setdefault(function_id, asyncio.Lock())

    def _labels(self, function_id: str, **extra: str) -> Dict[str, str]:
        labels = {LABEL_ENV: LABEL_ENV_VALUE, LABEL_FUNCTION: function_id}
        labels.update(extra)
        return labels

    def _environment(self, config: FunctionConfig, variables: Dict[str, str]) -> Dict[str, str]:
        env = dict(RUNTIME_BASE_ENVIRONMENT)
        env['OPEN_RUNTIMES_ENTRYPOINT'] = config.entrypoint
        env.update(variables)
        return env

    def _emit(self, function_id: str, kind: LifecycleEventKind, detail: str = "") -> None:
        if self.on_event is None:
            return
        try:
            self.on_event(LifecycleEvent(function_id=function_id, kind=kind, detail=detail))
        except Exception as e:
            logger.error(f"Lifecycle event handler failed: {e}", exc_info=True)

    def _fail(self, error: EmulationError) -> EmulationError:
        self._emit(error.function_id or "", LifecycleEventKind.FAILED, str(error))
        return error

    def _run_build(self, config: FunctionConfig, variables: Dict[str, str],
                   function_dir: Path, signature: str) -> None:
        data_dir = function_dir / DATA_DIR_NAME
        data_dir.mkdir(parents=True, exist_ok=True)

        name = self.build_container_name(config.id)
        self._remove_by_name(name)
        container = self.docker_service.run_container(
            image=config.image_name,
            command=['sh', '-c', f'helpers/build.sh "{config.commands}"'],
            name=name,
            detach=True,
            remove=False,
            volumes={str(function_dir): {'bind': CODE_MOUNT, 'mode': 'rw'}},
            environment=self._environment(config, variables),
            labels=self._labels(config.id, **{LABEL_CACHE_KEY: signature[:12]}),
        )
        try:
            exit_code = self.docker_service.wait_container(container)
            if exit_code != 0:
                output = self.docker_service.container_logs(container, stdout=False, stderr=True)
                if not output.strip():
                    output = self.docker_service.container_logs(container)
                raise BuildError(
                    f"Build of '{config.id}' failed with exit code {exit_code}",
                    output=output.strip(),
                    function_id=config.id,
                )
            self.docker_service.copy_from_container(
                container, CODE_ARCHIVE_IN_CONTAINER, data_dir / BUILD_ARCHIVE_NAME
            )
        finally:
            self._discard(container)
            (function_dir / TEMP_ARCHIVE_NAME).unlink(missing_ok=True)

    def _run_runtime(self, config: FunctionConfig, variables: Dict[str, str], port: int) -> Container:
        data_dir = self.function_dir(config) / DATA_DIR_NAME
        data_dir.mkdir(parents=True, exist_ok=True)
        for name in (LOGS_FILE_NAME, ERRORS_FILE_NAME):
            (data_dir / name).touch(exist_ok=True)

        return self.docker_service.run_container(
            image=config.image_name,
            command=['sh', '-c', f'helpers/start.sh "{config.tool.start_command}"'],
            name=self.container_name(config.id),
            detach=True,
            remove=False,
            ports={f"{CONTAINER_PORT}/tcp": port},
            environment=self._environment(config, variables),
            labels=self._labels(config.id),
            volumes={
                str(data_dir / LOGS_FILE_NAME): {'bind': LOGS_MOUNT, 'mode': 'rw'},
                str(data_dir / ERRORS_FILE_NAME): {'bind': ERRORS_MOUNT, 'mode': 'rw'},
                str(data_dir / BUILD_ARCHIVE_NAME): {'bind': CODE_ARCHIVE_IN_CONTAINER, 'mode': 'ro'},
            },
        )

    def _replace_existing(self, record: RuntimeContainer) -> None:
        if record.container_id:
            self._stop_sync(record.container_id)
            record.container_id = None
        # Containers of an earlier session that was killed before cleaning up
        stale = self.docker_service.list_containers(
            all=True, labels=self._labels(record.function_id)
        )
        build_name = self.build_container_name(record.function_id)
        for container in stale:
            if container.name != build_name:
                self._discard(container)

    def _stop_sync(self, container_id: str) -> bool:
        try:
            container = self.docker_service.get_container(container_id)
        except ContainerNotFoundError:
            logger.debug(f"Container {container_id} already gone")
            return False
        try:
            self.docker_service.stop_container(container, timeout=self.stop_grace)
        except ContainerNotFoundError:
            return False
        except DockerServiceError as e:
            logger.warning(f"Graceful stop of {container_id} failed ({e}), forcing removal")
        try:
            self.docker_service.remove_container(container, force=True)
        except ContainerNotFoundError:
            pass
        return True

    def _cleanup_sync(self, function_id: str) -> None:
        record = self.containers.get(function_id)
        if record and record.container_id:
            try:
                self._stop_sync(record.container_id)
            except DockerServiceError as e:
                logger.warning(f"Could not stop {record.container_id}: {e}")

        try:
            containers = self.docker_service.list_containers(
                all=True, labels={LABEL_FUNCTION: function_id}
            )
        except DockerServiceError as e:
            logger.warning(f"Could not list containers of {function_id}: {e}")
            containers = []
        for container in containers:
            self._discard(container)

        config = self._configs.get(function_id)
        if config is not None:
            function_dir = self.function_dir(config)
            shutil.rmtree(function_dir / DATA_DIR_NAME, ignore_errors=True)
            (function_dir / TEMP_ARCHIVE_NAME).unlink(missing_ok=True)

    def _remove_by_name(self, name: str) -> None:
        try:
            container = self.docker_service.get_container(name)
        except ContainerNotFoundError:
            return
        self._discard(container)

    def _discard(self, container: Container) -> None:
        try:
            self.docker_service.remove_container(container, force=True)
        except ContainerNotFoundError:
            pass
        except DockerServiceError as e:
            logger.warning(f"Could not remove container {getattr(container, 'name', container)}: {e}")

    def _collect_logs(self, container: Container) -> str:
        try:
            return self.docker_service.container_logs(container).strip()
        except DockerServiceError:
            return ""
