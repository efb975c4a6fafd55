"""Service layer for abstracting Docker and token issuance operations."""

from .docker_service import DockerService
from .auth_service import AuthService
from .exceptions import (
    ServiceError,
    DockerServiceError,
    ImageNotFoundError,
    ContainerNotFoundError,
    EmulationError,
    ImagePullError,
    BuildError,
    StartError,
    AuthServiceError,
    CredentialIssuanceError,
    UnknownRuntimeError,
)

__all__ = [
    "DockerService",
    "AuthService",
    "ServiceError",
    "DockerServiceError",
    "ImageNotFoundError",
    "ContainerNotFoundError",
    "EmulationError",
    "ImagePullError",
    "BuildError",
    "StartError",
    "AuthServiceError",
    "CredentialIssuanceError",
    "UnknownRuntimeError",
]
