"""Docker service for abstracting Docker operations."""

import io
import logging
import tarfile
from pathlib import Path
from typing import Any, Optional

import docker
import docker.errors
from docker.models.containers import Container
from docker.models.images import Image

from .exceptions import (
    ContainerNotFoundError,
    DockerServiceError,
    ImageNotFoundError,
)

logger = logging.getLogger(__name__)


class DockerService:
    """Service for Docker operations with clean abstractions."""

    def __init__(self):
        """Initialize Docker service and test connection."""
        try:
            self.client = docker.from_env()
            self.client.ping()
        except docker.errors.DockerException as e:
            if "connection refused" in str(e).lower() or "cannot connect" in str(e).lower():
                raise DockerServiceError(
                    "Docker daemon is not running. Please start Docker Desktop or the Docker service."
                ) from e
            else:
                raise DockerServiceError(f"Failed to connect to Docker: {e}") from e

    def pull_image(self, image_name: str) -> Image:
        """Pull an image from its registry.

        Args:
            image_name: Image reference including tag, e.g. ``openruntimes/node:v4-18.0``

        Returns:
            The pulled image

        Raises:
            ImageNotFoundError: If the repository or tag does not exist
            DockerServiceError: If the registry cannot be reached
        """
        repository, _, tag = image_name.rpartition(":")
        if not repository or "/" in tag:
            repository, tag = image_name, "latest"
        try:
            return self.client.images.pull(repository, tag=tag)
        except docker.errors.NotFound as e:
            raise ImageNotFoundError(f"Image '{image_name}' not found") from e
        except docker.errors.APIError as e:
            raise DockerServiceError(f"Failed to pull image '{image_name}': {e}") from e
        except Exception as e:
            raise DockerServiceError(f"Unexpected error pulling image: {e}") from e

    def image_exists(self, image_name: str) -> bool:
        """Check if an image exists.

        Args:
            image_name: Name of the image

        Returns:
            True if image exists, False otherwise
        """
        try:
            self.client.images.get(image_name)
            return True
        except docker.errors.ImageNotFound:
            return False
        except Exception as e:
            logger.warning(f"Error checking image existence: {e}")
            return False

    def run_container(
        self,
        image: str,
        command: Optional[Any] = None,
        remove: bool = True,
        detach: bool = False,
        **kwargs,
    ) -> Any:
        """Run a container and return output or container object.

        Args:
            image: Image name
            command: Command to run
            remove: Remove container after run
            detach: Run in background
            **kwargs: Additional Docker run parameters

        Returns:
            Container output (if not detached) or Container object (if detached)

        Raises:
            ImageNotFoundError: If image not found
            DockerServiceError: If run fails
        """
        try:
            return self.client.containers.run(
                image=image,
                command=command,
                remove=remove,
                detach=detach,
                **kwargs,
            )
        except docker.errors.ImageNotFound as e:
            raise ImageNotFoundError(f"Image '{image}' not found") from e
        except docker.errors.ContainerError as e:
            raise DockerServiceError(f"Container exited with error: {e}") from e
        except docker.errors.APIError as e:
            raise DockerServiceError(f"Failed to run container: {e}") from e
        except Exception as e:
            raise DockerServiceError(f"Unexpected error running container: {e}") from e

    def wait_container(self, container: Container, timeout: Optional[float] = None) -> int:
        """Block until a container exits and return its exit code.

        Raises:
            ContainerNotFoundError: If container not found
            DockerServiceError: If waiting fails
        """
        try:
            result = container.wait(timeout=timeout)
            return result.get('StatusCode', 0)
        except docker.errors.NotFound as e:
            raise ContainerNotFoundError("Container not found") from e
        except Exception as e:
            raise DockerServiceError(f"Failed waiting for container: {e}") from e

    def container_logs(self, container: Container, stdout: bool = True, stderr: bool = True) -> str:
        """Return a container's captured output as text."""
        try:
            logs = container.logs(stdout=stdout, stderr=stderr)
        except docker.errors.NotFound as e:
            raise ContainerNotFoundError("Container not found") from e
        except Exception as e:
            raise DockerServiceError(f"Failed to read container logs: {e}") from e
        if isinstance(logs, bytes):
            return logs.decode('utf-8', errors='replace')
        return logs

    def container_status(self, container: Container) -> str:
        """Refresh and return a container's status (``running``, ``exited``...)."""
        try:
            container.reload()
            return container.status
        except docker.errors.NotFound as e:
            raise ContainerNotFoundError("Container not found") from e
        except Exception as e:
            raise DockerServiceError(f"Failed to inspect container: {e}") from e

    def stop_container(self, container: Container, timeout: int = 10) -> None:
        """Stop a container, killing it if it outlives ``timeout`` seconds.

        Raises:
            ContainerNotFoundError: If container not found
            DockerServiceError: If stopping fails
        """
        try:
            container.stop(timeout=timeout)
        except docker.errors.NotFound as e:
            raise ContainerNotFoundError("Container not found") from e
        except docker.errors.APIError as e:
            raise DockerServiceError(f"Failed to stop container: {e}") from e
        except Exception as e:
            raise DockerServiceError(f"Unexpected error stopping container: {e}") from e

    def remove_container(self, container: Container, force: bool = False) -> None:
        """Remove a container.

        Args:
            container: Container object
            force: Force remove even if running

        Raises:
            ContainerNotFoundError: If container not found
            DockerServiceError: If removal fails
        """
        try:
            container.remove(force=force)
        except docker.errors.NotFound as e:
            raise ContainerNotFoundError("Container not found") from e
        except docker.errors.APIError as e:
            raise DockerServiceError(f"Failed to remove container: {e}") from e
        except Exception as e:
            raise DockerServiceError(f"Unexpected error removing container: {e}") from e

    def copy_from_container(
        self, container: Container, src_path: str, dst_path: Path
    ) -> None:
        """Copy a single file out of a container.

        Args:
            container: Container object
            src_path: File path inside the container
            dst_path: Destination file on the host

        Raises:
            ContainerNotFoundError: If container or file not found
            DockerServiceError: If copy fails
        """
        try:
            stream, _ = container.get_archive(src_path)
            tar_stream = io.BytesIO(b"".join(stream))
            with tarfile.open(fileobj=tar_stream, mode='r') as tar:
                member = next(m for m in tar.getmembers() if m.isfile())
                extracted = tar.extractfile(member)
                dst_path.parent.mkdir(parents=True, exist_ok=True)
                dst_path.write_bytes(extracted.read())
        except docker.errors.NotFound as e:
            raise ContainerNotFoundError(f"'{src_path}' not found in container") from e
        except StopIteration as e:
            raise DockerServiceError(f"'{src_path}' is not a file") from e
        except Exception as e:
            raise DockerServiceError(f"Failed to copy from container: {e}") from e

    def list_containers(
        self,
        all: bool = True,
        filters: Optional[dict[str, Any]] = None,
        labels: Optional[dict[str, str]] = None,
    ) -> list[Container]:
        """List containers with optional filters.

        Args:
            all: Include stopped containers
            filters: Docker filters
            labels: Label filters

        Returns:
            List of containers

        Raises:
            DockerServiceError: If listing fails
        """
        try:
            filter_dict = filters or {}
            if labels:
                filter_dict['label'] = [f"{k}={v}" for k, v in labels.items()]

            return self.client.containers.list(all=all, filters=filter_dict)
        except docker.errors.APIError as e:
            raise DockerServiceError(f"Failed to list containers: {e}") from e
        except Exception as e:
            raise DockerServiceError(f"Unexpected error listing containers: {e}") from e

    def get_container(self, container_id: str) -> Container:
        """Get a container by ID or name.

        Args:
            container_id: Container ID or name

        Returns:
            Container object

        Raises:
            ContainerNotFoundError: If container not found
            DockerServiceError: If retrieval fails
        """
        try:
            return self.client.containers.get(container_id)
        except docker.errors.NotFound as e:
            raise ContainerNotFoundError(
                f"Container '{container_id}' not found"
            ) from e
        except docker.errors.APIError as e:
            raise DockerServiceError(f"Failed to get container: {e}") from e
        except Exception as e:
            raise DockerServiceError(f"Unexpected error getting container: {e}") from e
