"""Custom exceptions for service layer."""

from typing import Optional


class ServiceError(Exception):
    """Base exception for all service-related errors."""

    pass


class DockerServiceError(ServiceError):
    """Exception raised for Docker service operations."""

    pass


class ImageNotFoundError(DockerServiceError):
    """Exception raised when a Docker image is not found."""

    pass


class ContainerNotFoundError(DockerServiceError):
    """Exception raised when a Docker container is not found."""

    pass


class EmulationError(DockerServiceError):
    """Base exception for a failed pull/build/start cycle of one function.

    ``output`` holds the captured output of the failing container, unmodified,
    and is part of the message.
    """

    def __init__(self, message: str, function_id: Optional[str] = None, output: str = ""):
        super().__init__(message)
        self.function_id = function_id
        self.output = output

    def __str__(self) -> str:
        if self.output:
            return f"{self.args[0]}\n{self.output}"
        return self.args[0]


class ImagePullError(EmulationError):
    """Exception raised when a runtime image cannot be pulled."""

    pass


class BuildError(EmulationError):
    """Exception raised when the build step exits with an error."""

    def __init__(self, message: str, output: str = "", function_id: Optional[str] = None):
        super().__init__(message, function_id=function_id, output=output)


class StartError(EmulationError):
    """Exception raised when the runtime container cannot be started."""

    def __init__(self, message: str, output: str = "", function_id: Optional[str] = None):
        super().__init__(message, function_id=function_id, output=output)


class AuthServiceError(ServiceError):
    """Exception raised for token issuance endpoint operations."""

    pass


class CredentialIssuanceError(ServiceError):
    """Exception raised when a credential slot cannot obtain a valid token."""

    def __init__(self, message: str, slot: Optional[str] = None):
        super().__init__(message)
        self.slot = slot


class UnknownRuntimeError(ServiceError):
    """Exception raised for a runtime identifier with no system tool entry."""

    pass
