"""
This module holds the configuration for the Design Log dashboard client.

It is responsible for:
- Defining the constants shared by every layer (reserved user ids, feature tabs, endpoints).
- Building an explicit `ApiConfig` object from Streamlit secrets or environment variables.
- Producing the request headers that every call to the remote store carries.

The configuration is created once when the app starts and passed to the `ApiClient`,
which hands it to each resource client. There is no module-level client instance.
"""
# designlog/config.py

import os

from designlog.errors import ConfigurationError

# The administrator is identified by this reserved id, never by the role string.
ADMIN_USER_ID = "admin"
GUEST_USER_ID = "guest"

TAB_WIKI = "wiki"
TAB_LOGS = "logs"
TAB_RESOURCES = "resources"
TABS = (TAB_WIKI, TAB_LOGS, TAB_RESOURCES)

DEFAULT_TIMEOUT_SECONDS = 30.0

ENDPOINTS = {
    "logs": "/logs",
    "users": "/users",
    "wiki": "/wiki",
    "resources": "/resources",
    "upload_image": "/upload-image",
}

ENV_BASE_URL = "DESIGNLOG_API_BASE_URL"
ENV_TOKEN = "DESIGNLOG_API_TOKEN"
ENV_TIMEOUT = "DESIGNLOG_API_TIMEOUT"
ENV_LOG_LEVEL = "DESIGNLOG_LOG_LEVEL"


class ApiConfig:
    """Connection settings for the remote store.

    Attributes:
        base_url (str): The root URL of the REST service, without a trailing slash.
        token (str): The bearer token sent with every request.
        timeout (float): The request timeout in seconds.
        log_level (str): The logging level used by the Streamlit app.
    """
    def __init__(self, base_url, token="", timeout=DEFAULT_TIMEOUT_SECONDS, log_level="INFO"):
        base_url = (base_url or "").strip().rstrip("/")
        if not base_url:
            raise ConfigurationError("An API base URL is required.")
        try:
            timeout = float(timeout)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid API timeout: {timeout!r}") from exc
        if timeout <= 0:
            raise ConfigurationError("The API timeout must be positive.")
        self.base_url = base_url
        self.token = token or ""
        self.timeout = timeout
        self.log_level = (log_level or "INFO").upper()

    @classmethod
    def from_mapping(cls, values):
        """Builds a configuration from a mapping such as `st.secrets` or `os.environ`.

        Args:
            values (Mapping): A mapping holding the `DESIGNLOG_*` keys.

        Returns:
            ApiConfig: The resulting configuration.
        """
        return cls(
            base_url=values.get(ENV_BASE_URL, ""),
            token=values.get(ENV_TOKEN, ""),
            timeout=values.get(ENV_TIMEOUT, DEFAULT_TIMEOUT_SECONDS),
            log_level=values.get(ENV_LOG_LEVEL, "INFO"),
        )

    @classmethod
    def from_env(cls, environ=None):
        """Builds a configuration from the process environment."""
        return cls.from_mapping(os.environ if environ is None else environ)

    def headers(self, json_body=True) -> dict:
        """Returns the headers for a request.

        Multipart uploads pass `json_body=False` so the HTTP library can set the
        multipart content type with its boundary.
        """
        headers = {"Authorization": f"Bearer {self.token}"}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def __repr__(self):
        return f"ApiConfig(base_url={self.base_url!r}, timeout={self.timeout!r})"
