"""
This module provides the facade used by the Streamlit front end.

It defines the `DashboardService` class, which wires the API client, the notifier
and the managers together, and is responsible for:
- Logging in: authenticating a user from the roster, then loading their data.
- Logging out: clearing the identity and the log collection.
- Refreshing everything the current identity can see.
"""
# designlog/service.py

import logging

from designlog.api import ApiClient
from designlog.auth import AuthResult, SessionManager
from designlog.config import TAB_LOGS, TAB_RESOURCES, TAB_WIKI
from designlog.errors import DesignLogError, NotFound
from designlog.logs import LogCollection
from designlog.notifications import Notifier
from designlog.resources import ResourceLibrary
from designlog.wiki import WikiManager

logger = logging.getLogger(__name__)


class DashboardService:
    """Aggregates the managers behind one object kept in the Streamlit session.

    Args:
        config (ApiConfig): The connection settings.
        notifier (Notifier, optional): Where the managers report outcomes.
        transport (httpx.AsyncBaseTransport, optional): A custom transport, used by tests.
    """
    def __init__(self, config, notifier=None, transport=None):
        self.config = config
        self.notifier = notifier or Notifier()
        self.api = ApiClient(config, transport=transport)
        self.session = SessionManager(self.api, self.notifier)
        self.logs = LogCollection(self.api, self.notifier)
        self.wiki = WikiManager(self.api, self.notifier)
        self.resources = ResourceLibrary(self.api, self.notifier)

    @property
    def current_user(self):
        return self.session.current_user

    async def login(self, user_id, pin) -> AuthResult:
        """Authenticates `user_id` with `pin` and loads the data of their tabs.

        Returns:
            AuthResult: The authentication outcome. Data is only loaded on success.
        """
        if not self.session.users:
            await self.session.load_roster()
        candidate = self.session.find_user(user_id)
        if candidate is None:
            return AuthResult(error=NotFound("User not found"))
        result = await self.session.authenticate(candidate, pin)
        if result.ok:
            await self._load_for(result.user)
        return result

    def logout(self):
        self.session.logout()
        self.logs.clear()

    async def refresh(self):
        """Reloads the roster and every section the current identity can open."""
        await self.session.load_roster()
        if self.current_user is not None:
            await self._load_for(self.current_user)

    async def _load_for(self, user):
        tabs = user.effective_tabs()
        if TAB_LOGS not in tabs:
            self.logs.clear()
        try:
            if TAB_LOGS in tabs:
                await self.logs.load(user)
            if TAB_WIKI in tabs:
                await self.wiki.load()
            if TAB_RESOURCES in tabs:
                await self.resources.load()
        except DesignLogError as exc:
            logger.warning("Some dashboard data could not be loaded for %s: %s", user.id, exc)
