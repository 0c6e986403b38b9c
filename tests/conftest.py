"""
Pytest configuration file for the Design Log test suite.

This file defines shared fixtures and setup functions used across different test files.
It includes:
- `FakeRemoteStore`, an in-memory stand-in for the REST service. It follows the
  service's contract (response envelopes, soft delete, comment stamping, user id
  generation) and can be told to fail, time out or answer late.
- Fixtures that build the API client, the managers and the `DashboardService` on top
  of the fake store through `httpx.MockTransport`, so no network is involved.
"""
import asyncio
import itertools
import json
import re
from datetime import date

import httpx
import pytest

from designlog.api import ApiClient
from designlog.auth import SessionManager
from designlog.config import ApiConfig
from designlog.logs import LogCollection
from designlog.models import User
from designlog.notifications import Notifier
from designlog.resources import ResourceLibrary
from designlog.service import DashboardService
from designlog.wiki import WikiManager

BASE_URL = "https://store.test/api"
ADMIN_PIN = "2703"
DESIGNER_PIN = "1111"


class FakeRemoteStore:
    """An in-memory REST store answering the dashboard's requests.

    Attributes:
        users, logs, wiki, resources (dict): The stored records, keyed by id.
        requests (list): `(method, path, body)` for every request received.
        uploads (list): The filenames of uploaded images.
    """
    def __init__(self):
        self.users = {
            "admin": {
                "id": "admin",
                "name": "Yamparala Rahul",
                "role": "Lead Design Engineer",
                "pin": ADMIN_PIN,
                "requiresPin": True,
                "accessibleTabs": ["wiki", "logs", "resources"],
            },
            "guest": {
                "id": "guest",
                "name": "Guest User",
                "role": "Guest",
                "pin": "",
                "requiresPin": False,
                "accessibleTabs": ["resources"],
            },
        }
        self.logs = {}
        self.wiki = {}
        self.resources = {}
        self.requests = []
        self.uploads = []
        self._ids = itertools.count(1000)
        self._failures = []
        self._delays = []

    # Test controls

    def next_id(self) -> str:
        return str(next(self._ids))

    def fail(self, method, path, status=500, message="Internal server error", times=1):
        """Makes the next `times` matching requests answer with an error status."""
        self._failures.append({"method": method, "path": path, "status": status,
                               "message": message, "times": times})

    def fail_network(self, method, path, error=httpx.ConnectError, times=1):
        """Makes the next `times` matching requests fail at the transport level."""
        self._failures.append({"method": method, "path": path, "error": error, "times": times})

    def delay(self, method, path, seconds, before_apply=False):
        """Delays the answer to the next matching request. The answer reflects the
        state of the store when the request arrived, unless `before_apply` is set, in
        which case the request only reaches the store after the delay."""
        self._delays.append({"method": method, "path": path, "seconds": seconds,
                             "before_apply": before_apply})

    def add_user(self, user_id, name, role="Designer", pin="", requires_pin=True, tabs=None):
        record = {"id": user_id, "name": name, "role": role, "pin": pin, "requiresPin": requires_pin}
        if tabs is not None:
            record["accessibleTabs"] = list(tabs)
        self.users[user_id] = record
        return record

    def add_log(self, user_id, title, log_date="2024-03-01", **fields):
        log_id = fields.pop("id", None) or self.next_id()
        record = {
            "id": log_id,
            "title": title,
            "description": fields.pop("description", f"About {title}"),
            "date": log_date,
            "userId": user_id,
            "linkedLogIds": fields.pop("linkedLogIds", []),
            "comments": fields.pop("comments", []),
        }
        record.update(fields)
        self.logs[log_id] = record
        return record

    def paths(self, method=None) -> list:
        return [path for m, path, _ in self.requests if method is None or m == method]

    # Transport

    @property
    def transport(self):
        return httpx.MockTransport(self.handle)

    def _take(self, entries, method, path):
        for entry in entries:
            if entry["method"] == method and entry["path"] == path:
                entry["times"] = entry.get("times", 1) - 1
                if entry["times"] <= 0:
                    entries.remove(entry)
                return entry
        return None

    async def handle(self, request):
        body = await request.aread()
        path = request.url.path[len("/api"):]
        method = request.method
        payload = None
        if request.headers.get("content-type", "").startswith("application/json") and body:
            payload = json.loads(body)
        self.requests.append((method, path, payload))

        delay = self._take(self._delays, method, path)
        if delay is not None and delay["before_apply"]:
            await asyncio.sleep(delay["seconds"])

        failure = self._take(self._failures, method, path)
        if failure is not None and "error" in failure:
            raise failure["error"]("Simulated transport failure", request=request)

        if failure is not None:
            response = httpx.Response(failure["status"], json={"error": failure["message"]})
        else:
            response = self._route(method, path, payload, request)

        if delay is not None and not delay["before_apply"]:
            await asyncio.sleep(delay["seconds"])
        return response

    def _route(self, method, path, payload, request):
        routes = [
            ("GET", r"/logs", self._list_logs),
            ("POST", r"/logs", self._create_log),
            ("PUT", r"/logs/(?P<id>[^/]+)", self._update_log),
            ("DELETE", r"/logs/(?P<id>[^/]+)", self._delete_log),
            ("POST", r"/logs/(?P<id>[^/]+)/restore", self._restore_log),
            ("DELETE", r"/logs/(?P<id>[^/]+)/permanent", self._purge_log),
            ("POST", r"/logs/(?P<id>[^/]+)/comments", self._comment_log),
            ("POST", r"/upload-image", lambda p: self._upload_image(request)),
            ("GET", r"/users", self._list_users),
            ("POST", r"/users", self._create_user),
            ("PUT", r"/users/(?P<id>[^/]+)/pin", self._update_pin),
            ("PUT", r"/users/(?P<id>[^/]+)/access", self._update_access),
            ("DELETE", r"/users/(?P<id>[^/]+)", self._delete_user),
            ("GET", r"/wiki", lambda p: self._list("pages", self.wiki)),
            ("POST", r"/wiki", lambda p: self._create("page", self.wiki, p)),
            ("PUT", r"/wiki/(?P<id>[^/]+)", lambda p, id: self._merge("page", self.wiki, id, p, "Wiki page")),
            ("DELETE", r"/wiki/(?P<id>[^/]+)", lambda p, id: self._remove(self.wiki, id)),
            ("GET", r"/resources", lambda p: self._list("resources", self.resources)),
            ("POST", r"/resources", lambda p: self._create("resource", self.resources, p)),
            ("PUT", r"/resources/(?P<id>[^/]+)",
             lambda p, id: self._merge("resource", self.resources, id, p, "Resource")),
            ("DELETE", r"/resources/(?P<id>[^/]+)", lambda p, id: self._remove(self.resources, id)),
        ]
        for route_method, pattern, view in routes:
            match = re.fullmatch(pattern, path)
            if route_method == method and match:
                return view(payload, **match.groupdict())
        return httpx.Response(404, json={"error": "Not found"})

    # Generic collections

    @staticmethod
    def _list(key, records):
        return httpx.Response(200, json={key: list(records.values())})

    def _create(self, key, records, payload):
        record = dict(payload, id=self.next_id())
        records[record["id"]] = record
        return httpx.Response(201, json={key: record})

    @staticmethod
    def _merge(key, records, record_id, payload, label):
        if record_id not in records:
            return httpx.Response(404, json={"error": f"{label} not found"})
        merged = dict(records[record_id])
        merged.update(payload)
        merged["id"] = record_id
        records[record_id] = merged
        return httpx.Response(200, json={key: records[record_id]})

    @staticmethod
    def _remove(records, record_id):
        records.pop(record_id, None)
        return httpx.Response(200, json={"success": True})

    # Logs

    def _list_logs(self, payload):
        return self._list("logs", self.logs)

    def _create_log(self, payload):
        return self._create("log", self.logs, payload)

    def _update_log(self, payload, id):
        return self._merge("log", self.logs, id, payload, "Log")

    def _delete_log(self, payload, id):
        if id not in self.logs:
            return httpx.Response(404, json={"error": "Log not found"})
        self.logs[id] = dict(self.logs[id], deleted=True, deletedAt="2024-05-01T10:00:00.000Z")
        return httpx.Response(200, json={"success": True})

    def _restore_log(self, payload, id):
        if id not in self.logs:
            return httpx.Response(404, json={"error": "Log not found"})
        restored = dict(self.logs[id], deleted=False)
        restored.pop("deletedAt", None)
        self.logs[id] = restored
        return httpx.Response(200, json={"log": restored})

    def _purge_log(self, payload, id):
        return self._remove(self.logs, id)

    def _comment_log(self, payload, id):
        if id not in self.logs:
            return httpx.Response(404, json={"error": "Log not found"})
        comment = {"id": self.next_id()}
        comment.update(payload)
        comment["date"] = date.today().isoformat()
        log = self.logs[id]
        self.logs[id] = dict(log, comments=list(log.get("comments") or []) + [comment])
        return httpx.Response(200, json={"log": self.logs[id]})

    def _upload_image(self, request):
        if not request.headers.get("content-type", "").startswith("multipart/form-data"):
            return httpx.Response(400, json={"error": "No file provided"})
        name = f"{self.next_id()}.png"
        self.uploads.append(name)
        return httpx.Response(200, json={"imageUrl": f"https://cdn.test/images/{name}"})

    # Users

    def _list_users(self, payload):
        return self._list("users", self.users)

    def _create_user(self, payload):
        user_id = re.sub(r"\s+", "-", payload["name"].lower()) + "-" + self.next_id()
        record = {"id": user_id, "name": payload["name"], "role": payload.get("role", ""), "pin": ""}
        self.users[user_id] = record
        return httpx.Response(201, json={"user": record})

    def _update_pin(self, payload, id):
        if id not in self.users:
            return httpx.Response(404, json={"error": "User not found"})
        self.users[id] = dict(self.users[id], pin=payload["pin"])
        return httpx.Response(200, json={"user": self.users[id]})

    def _update_access(self, payload, id):
        if id not in self.users:
            return httpx.Response(404, json={"error": "User not found"})
        self.users[id] = dict(self.users[id], accessibleTabs=payload["accessibleTabs"])
        return httpx.Response(200, json={"user": self.users[id]})

    def _delete_user(self, payload, id):
        return self._remove(self.users, id)


@pytest.fixture
def store():
    """Provides a fake store seeded with the administrator, the guest and a designer.

    The designer ("jane") has a PIN and may open the wiki and the logs.
    """
    fake = FakeRemoteStore()
    fake.add_user("jane", "Jane Doe", "Product Designer", pin=DESIGNER_PIN, tabs=["wiki", "logs"])
    return fake


@pytest.fixture
def config():
    return ApiConfig(BASE_URL, token="test-token", timeout=5)


@pytest.fixture
def api(store, config):
    """Provides an `ApiClient` talking to the fake store."""
    return ApiClient(config, transport=store.transport)


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def session_manager(api, notifier):
    return SessionManager(api, notifier)


@pytest.fixture
def collection(api, notifier):
    return LogCollection(api, notifier)


@pytest.fixture
def wiki_manager(api, notifier):
    return WikiManager(api, notifier)


@pytest.fixture
def library(api, notifier):
    return ResourceLibrary(api, notifier)


@pytest.fixture
def service(store, config):
    """Provides a `DashboardService` backed by the fake store."""
    return DashboardService(config, transport=store.transport)


@pytest.fixture
def admin():
    return User("admin", "Yamparala Rahul", "Lead Design Engineer", pin=ADMIN_PIN,
                accessible_tabs=["wiki", "logs", "resources"])


@pytest.fixture
def jane():
    return User("jane", "Jane Doe", "Product Designer", pin=DESIGNER_PIN, accessible_tabs=["wiki", "logs"])


@pytest.fixture
def guest():
    return User("guest", "Guest User", "Guest", requires_pin=False, accessible_tabs=["resources"])
