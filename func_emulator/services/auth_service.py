"""Client for the remote token issuance endpoint."""

import logging
from typing import Any, Dict, List, Optional

import requests

from ..core.constants import HTTP_TIMEOUT
from ..models.credentials import IssuedToken
from .exceptions import AuthServiceError

logger = logging.getLogger(__name__)


class AuthService:
    """Issues short-lived JWTs for the emulated function and impersonated users."""

    def __init__(
        self,
        endpoint: str,
        project_id: str,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = HTTP_TIMEOUT,
    ):
        """Initialize the client.

        Args:
            endpoint: Base URL of the API, e.g. ``https://cloud.example.com/v1``
            project_id: Project the function belongs to
            api_key: Key sent with every request
            session: Optional preconfigured requests session
            timeout: Per-request timeout in seconds
        """
        self.endpoint = endpoint.rstrip('/')
        self.project_id = project_id
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'X-Project': project_id,
        })
        if api_key:
            self.session.headers['X-Key'] = api_key

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.endpoint}{path}"
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise AuthServiceError(f"Could not reach {self.endpoint}: {e}") from e

        if response.status_code >= 400:
            try:
                message = response.json().get('message', response.text)
            except ValueError:
                message = response.text
            raise AuthServiceError(f"{method} {path} failed ({response.status_code}): {message}")

        try:
            return response.json()
        except ValueError as e:
            raise AuthServiceError(f"Invalid JSON in response to {method} {path}") from e

    @staticmethod
    def _token_from(data: Dict[str, Any], duration: float) -> IssuedToken:
        jwt = data.get('jwt')
        if not jwt:
            raise AuthServiceError("Response did not contain a token")
        return IssuedToken(secret=jwt, lifetime=float(data.get('duration', duration)))

    def create_user_token(self, user_id: str, duration: float) -> IssuedToken:
        """Issue a JWT that lets the function act as ``user_id``."""
        # Fails early with a readable error when the user does not exist
        self._request('GET', f"/users/{user_id}")
        data = self._request('POST', f"/users/{user_id}/jwts", {'duration': int(duration)})
        return self._token_from(data, duration)

    def create_function_token(self, scopes: List[str], duration: float) -> IssuedToken:
        """Issue a project-scoped JWT for the function's runtime identity."""
        data = self._request(
            'POST',
            f"/projects/{self.project_id}/jwts",
            {'scopes': list(scopes), 'duration': int(duration)},
        )
        return self._token_from(data, duration)
