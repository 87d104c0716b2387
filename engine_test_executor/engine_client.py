"""
REST client for the integration engine.

Covers the three calls the executor needs: fetching the component tree,
starting a component test and checking on a running test.
"""

import logging
from typing import Optional
from urllib.parse import urljoin

import requests
import urllib3

from .config import ExecutorConfig
from .exceptions import EngineError, PollTransportError, SubmissionError

logger = logging.getLogger(__name__)

USER_AGENT = "engine-test-executor/0.1.0"
CSRF_HEADER = "X-CSRF-Token"


def _status_line(response: requests.Response) -> str:
    return f"{response.status_code} {response.reason or ''}".strip()


class EngineClient:
    """Client for the engine REST API."""

    def __init__(self, base_url: str, username: Optional[str] = None, password: Optional[str] = None,
                 verify_tls: bool = False, timeout: float = 10.0):
        """
        Initialize the engine client.

        Args:
            base_url: Engine API root, e.g. "https://engine:8444"
            username: Basic auth user, anonymous if not provided
            password: Basic auth password
            verify_tls: If False, self-signed certificates are accepted
            timeout: Connect/read timeout in seconds for each request
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.csrf_token: Optional[str] = None
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": USER_AGENT,
            "Accept": "application/json"
        })
        if username:
            self.session.auth = (username, password or "")
        self.session.verify = verify_tls
        if not verify_tls:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        self.session.hooks["response"].append(self._remember_csrf)

    @classmethod
    def from_config(cls, config: ExecutorConfig) -> "EngineClient":
        return cls(config.require_url(), config.username, config.password,
                   verify_tls=config.verify_tls, timeout=config.http_timeout)

    def close(self):
        self.session.close()

    def _remember_csrf(self, response, *args, **kwargs):
        token = response.headers.get(CSRF_HEADER)
        if token:
            self.csrf_token = token

    def _headers(self) -> dict:
        return {CSRF_HEADER: self.csrf_token} if self.csrf_token else {}

    def get_components(self) -> dict:
        """Fetch the full component tree (folders, routes and their filters)."""
        url = f"{self.base_url}/api/components"
        try:
            response = self.session.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise EngineError(f"Failed to fetch components: {e}") from e
        logger.info(f"Received {response.status_code} response for component list")
        if response.status_code != 200:
            raise EngineError(f"Failed to fetch components: {_status_line(response)}")
        try:
            return response.json()
        except ValueError as e:
            raise EngineError(f"Component list is not valid JSON: {e}") from e

    def submit_test(self, component_id: str) -> str:
        """
        Ask the engine to start testing a component.

        Args:
            component_id: Engine identifier of the route or filter

        Returns:
            Absolute URL of the status resource for the started test
        """
        url = f"{self.base_url}/api/test/{component_id}"
        try:
            response = self.session.post(url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise SubmissionError(f"Exception requesting test execution: {e}") from e

        with response:
            if response.status_code != 202:
                raise SubmissionError(f"Unexpected response status: {_status_line(response)}")
            location = response.headers.get("Location")
        if not location:
            raise SubmissionError("Test request accepted without a status location")
        return urljoin(self.base_url + '/', location)

    def check_status(self, location: str, timeout: Optional[float] = None) -> dict:
        """
        Fetch the status of a running test.

        Args:
            location: Status URL returned by submit_test
            timeout: Upper bound for this request, capped at the client timeout

        Raises:
            PollTransportError: on anything but a 200 with a JSON object body
        """
        logger.debug(f"Checking test execution status at {location}")
        timeout = min(timeout, self.timeout) if timeout else self.timeout
        try:
            response = self.session.get(location, headers=self._headers(), timeout=timeout)
        except requests.RequestException as e:
            raise PollTransportError(f"Exception requesting test status: {e}") from e

        if response.status_code != 200:
            message = self._error_message(response)
            if message:
                raise PollTransportError(f"Error: {message}")
            raise PollTransportError(f"Unexpected status response: {_status_line(response)}")

        try:
            status = response.json()
        except ValueError as e:
            raise PollTransportError(f"Status response is not valid JSON: {e}") from e
        if not isinstance(status, dict):
            raise PollTransportError("Status response is not a JSON object")
        return status

    @staticmethod
    def _error_message(response: requests.Response) -> Optional[str]:
        """First message of an engine error body, if the body carries one."""
        if "json" not in response.headers.get("Content-Type", "") or not response.content:
            return None
        try:
            body = response.json()
        except ValueError:
            return None
        error = body.get("error") if isinstance(body, dict) else None
        messages = error.get("messages") if isinstance(error, dict) else None
        if messages:
            return str(messages[0])
        return None
