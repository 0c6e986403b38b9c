"""
This module provides the typed clients for the remote store's REST API.

It is responsible for:
- Sending JSON requests with the bearer token, and multipart image uploads.
- Translating transport failures and non-2xx answers into the `designlog.errors` types.
- Unwrapping the `{ "log": ... }` / `{ "users": [...] }` response envelopes.
- Normalizing every record read from the store before it is turned into a model.

Each request opens its own `httpx.AsyncClient`, so a client object can be shared by
code that runs on different event loops (Streamlit runs each intent with `asyncio.run`).
"""
# designlog/api.py

import logging

import httpx

from designlog.config import ENDPOINTS
from designlog.errors import GENERIC_ERROR_MESSAGE, NetworkError, NotFound, RemoteRejection
from designlog.models import DesignLog, Resource, User, WikiPage
from designlog.normalize import normalize

logger = logging.getLogger(__name__)


class BaseClient:
    """Shared HTTP plumbing for the resource clients."""

    def __init__(self, config, transport=None):
        self.config = config
        self._transport = transport

    def _client(self):
        return httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport)

    async def _request(self, method, endpoint, json_body=None, files=None, failure_message=GENERIC_ERROR_MESSAGE):
        """Performs a request and returns the decoded JSON body.

        Raises:
            NetworkError: If the store could not be reached or the request timed out.
            NotFound: If the store answered 404.
            RemoteRejection: For any other non-2xx answer, or a body that is not JSON.
        """
        url = f"{self.config.base_url}{endpoint}"
        headers = self.config.headers(json_body=files is None)
        try:
            async with self._client() as client:
                response = await client.request(method, url, json=json_body, files=files, headers=headers)
        except httpx.TimeoutException as exc:
            logger.error("%s %s timed out", method, endpoint)
            raise NetworkError("Request timeout") from exc
        except httpx.TransportError as exc:
            logger.error("%s %s failed: %s", method, endpoint, exc)
            raise NetworkError(f"Could not reach the server: {exc}") from exc

        if response.is_error:
            raise self._rejection(method, endpoint, response, failure_message)
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteRejection(response.status_code, "Malformed response from server") from exc

    @staticmethod
    def _rejection(method, endpoint, response, failure_message):
        try:
            details = response.json()
        except ValueError:
            details = {}
        if not isinstance(details, dict):
            details = {}
        message = details.get("error") or failure_message
        if not isinstance(message, str):
            message = failure_message
        logger.error("%s %s rejected (%s): %s", method, endpoint, response.status_code, message)
        if response.status_code == 404:
            return NotFound(message, details)
        return RemoteRejection(response.status_code, message, details)

    async def get(self, endpoint):
        return await self._request("GET", endpoint)

    async def post(self, endpoint, data=None):
        return await self._request("POST", endpoint, json_body=data)

    async def put(self, endpoint, data=None):
        return await self._request("PUT", endpoint, json_body=data)

    async def delete_http(self, endpoint):
        return await self._request("DELETE", endpoint)

    async def upload_file(self, endpoint, upload):
        files = {"file": (upload.filename, upload.content, upload.content_type)}
        return await self._request("POST", endpoint, files=files, failure_message="File upload failed")

    @staticmethod
    def _unwrap(payload, key):
        """Returns `payload[key]`, treating a missing envelope as a malformed answer."""
        if not isinstance(payload, dict) or key not in payload:
            raise RemoteRejection(200, f"Response is missing '{key}'")
        return payload[key]


class LogsClient(BaseClient):
    """Design log endpoints, including trash, comments and image upload."""

    base = ENDPOINTS["logs"]

    @staticmethod
    def _log(raw):
        return DesignLog.from_dict(normalize("log", raw))

    async def get_all(self):
        data = await self.get(self.base)
        return [self._log(raw) for raw in (data or {}).get("logs") or []]

    async def create(self, log_data):
        data = await self.post(self.base, log_data)
        return self._log(self._unwrap(data, "log"))

    async def update(self, log_id, log_data):
        data = await self.put(f"{self.base}/{log_id}", log_data)
        return self._log(self._unwrap(data, "log"))

    async def delete(self, log_id):
        """Moves a log to the trash."""
        await self.delete_http(f"{self.base}/{log_id}")

    async def restore(self, log_id):
        data = await self.post(f"{self.base}/{log_id}/restore")
        return self._log(self._unwrap(data, "log"))

    async def permanent_delete(self, log_id):
        await self.delete_http(f"{self.base}/{log_id}/permanent")

    async def add_comment(self, log_id, comment):
        data = await self.post(f"{self.base}/{log_id}/comments", comment)
        return self._log(self._unwrap(data, "log"))

    async def upload_image(self, upload):
        data = await self.upload_file(ENDPOINTS["upload_image"], upload)
        return self._unwrap(data, "imageUrl")


class UsersClient(BaseClient):
    base = ENDPOINTS["users"]

    @staticmethod
    def _user(raw):
        return User.from_dict(normalize("user", raw))

    async def get_all(self):
        data = await self.get(self.base)
        return [self._user(raw) for raw in (data or {}).get("users") or []]

    async def update_pin(self, user_id, pin):
        data = await self.put(f"{self.base}/{user_id}/pin", {"pin": pin})
        return self._user(self._unwrap(data, "user"))

    async def create(self, name, role):
        data = await self.post(self.base, {"name": name, "role": role})
        return self._user(self._unwrap(data, "user"))

    async def delete(self, user_id):
        await self.delete_http(f"{self.base}/{user_id}")

    async def update_access(self, user_id, accessible_tabs):
        data = await self.put(f"{self.base}/{user_id}/access", {"accessibleTabs": list(accessible_tabs)})
        return self._user(self._unwrap(data, "user"))


class WikiClient(BaseClient):
    base = ENDPOINTS["wiki"]

    @staticmethod
    def _page(raw):
        return WikiPage.from_dict(normalize("wiki", raw))

    async def get_pages(self):
        data = await self.get(self.base)
        return [self._page(raw) for raw in (data or {}).get("pages") or []]

    async def create_page(self, page_data):
        data = await self.post(self.base, page_data)
        return self._page(self._unwrap(data, "page"))

    async def update_page(self, page_id, updates):
        data = await self.put(f"{self.base}/{page_id}", updates)
        return self._page(self._unwrap(data, "page"))

    async def delete_page(self, page_id):
        await self.delete_http(f"{self.base}/{page_id}")


class ResourcesClient(BaseClient):
    base = ENDPOINTS["resources"]

    @staticmethod
    def _resource(raw):
        return Resource.from_dict(normalize("resource", raw))

    async def get_all(self):
        data = await self.get(self.base)
        return [self._resource(raw) for raw in (data or {}).get("resources") or []]

    async def create(self, resource_data):
        data = await self.post(self.base, resource_data)
        return self._resource(self._unwrap(data, "resource"))

    async def update(self, resource_id, updates):
        data = await self.put(f"{self.base}/{resource_id}", updates)
        return self._resource(self._unwrap(data, "resource"))

    async def delete(self, resource_id):
        await self.delete_http(f"{self.base}/{resource_id}")


class ApiClient:
    """Entry point to the remote store, exposing one client per resource.

    Args:
        config (ApiConfig): The connection settings, built once at start-up.
        transport (httpx.AsyncBaseTransport, optional): A custom transport, used by tests.
    """
    def __init__(self, config, transport=None):
        self.config = config
        self.logs = LogsClient(config, transport)
        self.users = UsersClient(config, transport)
        self.wiki = WikiClient(config, transport)
        self.resources = ResourcesClient(config, transport)
