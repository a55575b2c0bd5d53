"""
ThingsString API Wrapper.

This module wraps the ThingsString REST API used by the console: device
snapshots, telemetry history, actuator control and schedule definitions. A
bearer token is either supplied up front or obtained with `login()` from the
account email and a password provided at runtime.
"""

import logging

import requests

from devices.snapshot import unwrap_device, unwrap_device_list, unwrap_telemetry_list
from runtime.defaults import DEFAULT_API_BASE_URL, DEFAULT_API_REQUEST_TIMEOUT_S, DEFAULT_TELEMETRY_HISTORY_LIMIT
from scheduling.model import normalize_schedule_list


class ThingsStringAPIError(Exception):
    """Base exception for ThingsString API errors."""
    pass


class AuthenticationError(ThingsStringAPIError):
    """Raised when authentication fails."""
    pass


def _error_message_from_response(response):
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code}"


class ThingsStringAPI:
    """
    Wrapper class for the ThingsString API.

    Every request carries the bearer token. A 401 response triggers one
    re-login when a password is known; any other failure is raised as
    ThingsStringAPIError.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        email: str = None,
        token: str = None,
        timeout_s: float = DEFAULT_API_REQUEST_TIMEOUT_S,
    ):
        """
        Initialize the ThingsString API wrapper.

        Args:
            base_url: The base URL for the API endpoints (including any /api prefix)
            email: The account email used by login()
            token: Optional pre-issued bearer token
            timeout_s: Per-request timeout in seconds
        """
        self.base_url = str(base_url).rstrip("/")
        self.email = email
        self.timeout_s = timeout_s
        self._password = None
        self._token = token or None

    def set_password(self, password: str):
        """
        Set the password for the current session.

        Args:
            password: The account password
        """
        self._password = password
        self._token = None  # Reset token when password changes

    def set_token(self, token: str):
        self._token = token or None

    def is_authenticated(self) -> bool:
        """Check if the current session has an authentication token."""
        return self._token is not None

    def login(self) -> str:
        """
        Authenticate with the API and obtain a token.

        Returns:
            The authentication token

        Raises:
            AuthenticationError: If authentication fails
        """
        if not self._password:
            raise AuthenticationError("Password not set. Call set_password() first.")

        url = f"{self.base_url}/auth/login"
        payload = {"email": self.email, "password": self._password}

        try:
            response = requests.post(url, json=payload, timeout=self.timeout_s)
        except requests.exceptions.RequestException as e:
            logging.error(f"ThingsString API: Login request failed - {e}")
            raise ThingsStringAPIError(f"Login request failed: {e}") from e

        if not response.ok:
            message = _error_message_from_response(response)
            logging.error(f"ThingsString API: Authentication failed - {message}")
            raise AuthenticationError(f"Authentication failed: {message}")

        try:
            self._token = response.json()["token"]
        except (ValueError, KeyError, TypeError) as e:
            raise AuthenticationError("Authentication failed: no token in response") from e

        logging.info("ThingsString API: Authentication successful")
        return self._token

    def _headers(self):
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _request(self, method: str, path: str, *, params: dict = None, body: dict = None, _retry: bool = True):
        """
        Internal method to call one endpoint and decode its JSON body.

        Raises:
            AuthenticationError: If the token is rejected and cannot be renewed
            ThingsStringAPIError: If the request fails
        """
        if not self.is_authenticated() and self._password:
            self.login()

        url = f"{self.base_url}{path}"
        try:
            response = requests.request(
                method,
                url,
                headers=self._headers(),
                params=params,
                json=body,
                timeout=self.timeout_s,
            )
        except requests.exceptions.RequestException as e:
            logging.error(f"ThingsString API: {method} {path} failed - {e}")
            raise ThingsStringAPIError(f"Request failed: {e}") from e

        if response.status_code == 401:
            if _retry and self._password:
                # Token expired, try to re-authenticate
                logging.warning("ThingsString API: Token rejected, re-authenticating...")
                self._token = None
                self.login()
                return self._request(method, path, params=params, body=body, _retry=False)
            raise AuthenticationError(f"Unauthorized: {_error_message_from_response(response)}")

        if not response.ok:
            message = _error_message_from_response(response)
            logging.error(f"ThingsString API: {method} {path} returned {response.status_code} - {message}")
            raise ThingsStringAPIError(message)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ThingsStringAPIError(f"Invalid JSON from {path}: {e}") from e

    def list_devices(self) -> list:
        """Fetch all device snapshots visible to the account."""
        return unwrap_device_list(self._request("GET", "/devices"))

    def get_device(self, device_id: str) -> dict:
        """Fetch one device snapshot."""
        return unwrap_device(self._request("GET", f"/devices/{device_id}"))

    def get_telemetry(self, device_id: str, limit: int = DEFAULT_TELEMETRY_HISTORY_LIMIT) -> list:
        """
        Fetch telemetry history rows for a device.

        Rows may come in any order; callers sort them.
        """
        response = self._request("GET", f"/devices/{device_id}/telemetry", params={"limit": int(limit)})
        return unwrap_telemetry_list(response)

    def send_control(self, device_id: str, payload: dict):
        """POST an actuator control payload (see control.actuators.build_control_payload)."""
        return self._request("POST", f"/devices/{device_id}/control", body=payload)

    def list_schedules(self, device_id: str) -> list:
        return normalize_schedule_list(self._request("GET", f"/schedules/devices/{device_id}/schedules"))

    def create_schedule(self, device_id: str, payload: dict):
        return self._request("POST", f"/schedules/devices/{device_id}/schedules", body=payload)

    def update_schedule(self, schedule_id: str, payload: dict):
        return self._request("PUT", f"/schedules/{schedule_id}", body=payload)

    def delete_schedule(self, schedule_id: str):
        return self._request("DELETE", f"/schedules/{schedule_id}")
