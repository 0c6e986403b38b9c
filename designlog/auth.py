"""
This module provides the session and identity management for the Design Log dashboard.

It defines the `SessionManager` class, which is responsible for:
- Loading the roster of known users from the remote store.
- PIN authentication, including the first-login flow that sets a user's PIN.
- Logging out (a purely local operation).
- PIN updates for the current user and, for the administrator, for anyone.
- Administrator user management: creating and deleting users and toggling tab access.

Role gating uses the reserved administrator id (`config.ADMIN_USER_ID`); the `role`
string on a user is a job title and plays no part in permissions.

Every remote-affecting operation leaves the local roster and identity untouched when
the remote call fails, notifies the user, and re-raises the error.
"""
# designlog/auth.py

import logging

from designlog.config import TABS
from designlog.errors import DesignLogError, InvalidPin, NotAuthorized, NotFound
from designlog.notifications import Notifier

logger = logging.getLogger(__name__)


class AuthResult:
    """The outcome of an authentication attempt.

    Attributes:
        user (User | None): The authenticated user on success.
        error (DesignLogError | None): `InvalidPin` on a mismatch, or the remote error
            raised while saving a first-time PIN.
        pin_created (bool): True when this login set the user's first PIN.
    """
    def __init__(self, user=None, error=None, pin_created=False):
        self.user = user
        self.error = error
        self.pin_created = pin_created

    @property
    def ok(self) -> bool:
        return self.error is None and self.user is not None

    def __bool__(self):
        return self.ok

    def __repr__(self):
        if self.ok:
            return f"AuthResult(user={self.user!r})"
        return f"AuthResult(error={self.error!r})"


class SessionManager:
    """Holds the authenticated identity and the roster of known users."""

    def __init__(self, api, notifier=None):
        """Initializes the manager with an API client and an optional notifier."""
        self.api = api
        self.notifier = notifier or Notifier()
        self.users = []
        self.current_user = None
        self.loading = False

    @property
    def is_admin(self) -> bool:
        return self.current_user is not None and self.current_user.is_admin

    def find_user(self, user_id):
        """Returns the roster entry for `user_id`, or None."""
        for user in self.users:
            if user.id == user_id:
                return user
        return None

    def _require_admin(self, action):
        if not self.is_admin:
            raise NotAuthorized(f"Only the administrator can {action}.")

    def _fail(self, message, error):
        logger.error("%s: %s", message, error)
        self.notifier.error(f"{message}: {error.message}")

    async def load_roster(self) -> list:
        """Fetches every known user and replaces the local roster.

        The clients normalize each record on the way in, so repeated loads of the
        same remote data produce the same roster.

        Returns:
            list[User]: The refreshed roster.

        Raises:
            NetworkError, RemoteRejection: If the users could not be fetched.
        """
        self.loading = True
        try:
            users = await self.api.users.get_all()
        except DesignLogError as exc:
            self._fail("Failed to load users", exc)
            raise
        finally:
            self.loading = False
        self.users = users
        if self.current_user is not None:
            refreshed = self.find_user(self.current_user.id)
            if refreshed is not None:
                self.current_user = refreshed
        logger.debug("Loaded %d users", len(users))
        return users

    async def authenticate(self, candidate, entered_pin) -> AuthResult:
        """Authenticates `candidate` with the PIN typed on the login screen.

        - A user with `requires_pin == False` is let in without a PIN.
        - A user with no stored PIN is let in with any non-empty value, which becomes
          their PIN.
        - Otherwise the entered PIN must match exactly.

        A mismatch returns a result carrying `InvalidPin` and changes nothing, so the
        caller can clear the field and let the user retry.

        Args:
            candidate (User): The user picked on the login screen.
            entered_pin (str): The PIN typed by the user.

        Returns:
            AuthResult: The outcome; `result.user` is the new current identity on success.
        """
        user = self.find_user(candidate.id) or candidate
        entered_pin = (entered_pin or "").strip()

        if user.requires_pin is False:
            return self._start_session(user)

        if not user.has_pin:
            if not entered_pin:
                return AuthResult(error=InvalidPin("Enter a PIN to set it"))
            try:
                updated = await self.api.users.update_pin(user.id, entered_pin)
            except DesignLogError as exc:
                self._fail("Failed to save PIN", exc)
                return AuthResult(error=exc)
            self._replace_user(updated)
            return self._start_session(updated, pin_created=True)

        if entered_pin != user.pin:
            logger.info("Rejected PIN for user %s", user.id)
            return AuthResult(error=InvalidPin())
        return self._start_session(user)

    def _start_session(self, user, pin_created=False):
        self.current_user = user
        logger.info("User %s logged in", user.id)
        self.notifier.success(f"Welcome, {user.name}!")
        return AuthResult(user=user, pin_created=pin_created)

    def _replace_user(self, user):
        self.users = [user if u.id == user.id else u for u in self.users]
        if self.find_user(user.id) is None:
            self.users.append(user)

    def logout(self):
        """Clears the current identity. No remote call is made."""
        if self.current_user is not None:
            logger.info("User %s logged out", self.current_user.id)
        self.current_user = None
        self.notifier.success("Logged out successfully")

    async def update_own_pin(self, new_pin):
        """Changes the current user's PIN, then refreshes the roster.

        Raises:
            NotAuthorized: If nobody is logged in.
            NetworkError, RemoteRejection: If the store rejected the change.
        """
        if self.current_user is None:
            raise NotAuthorized("Log in to change your PIN.")
        try:
            await self.api.users.update_pin(self.current_user.id, new_pin)
            await self.load_roster()
        except DesignLogError as exc:
            self._fail("Failed to update PIN", exc)
            raise
        self.notifier.success("PIN updated successfully")
        return self.current_user

    async def update_other_user_pin(self, user_id, new_pin):
        """Resets another user's PIN. Administrator only."""
        self._require_admin("change other users' PINs")
        try:
            await self.api.users.update_pin(user_id, new_pin)
            await self.load_roster()
        except DesignLogError as exc:
            self._fail("Failed to update user PIN", exc)
            raise
        self.notifier.success("User PIN updated successfully")
        return self.find_user(user_id)

    async def set_access(self, user_id, tab, enabled):
        """Grants or revokes one feature tab for a user. Administrator only.

        The full resulting tab list is sent to the store; the local roster is only
        updated once the store has accepted it.

        Args:
            user_id (str): The user whose access changes.
            tab (str): One of `config.TABS`.
            enabled (bool): True to grant the tab, False to revoke it.

        Returns:
            User: The updated roster entry.
        """
        self._require_admin("change user access")
        if tab not in TABS:
            raise ValueError(f"Unknown tab: {tab!r}")
        target = self.find_user(user_id)
        if target is None:
            raise NotFound("User not found")
        if target.is_admin:
            raise ValueError("The administrator always has access to every tab.")

        current = target.effective_tabs()
        if enabled:
            new_tabs = current if tab in current else current + [tab]
        else:
            new_tabs = [t for t in current if t != tab]
        # Keep the canonical tab order so repeated toggles produce identical payloads.
        new_tabs = [t for t in TABS if t in new_tabs]

        try:
            updated = await self.api.users.update_access(user_id, new_tabs)
        except DesignLogError as exc:
            self._fail("Failed to update user access", exc)
            raise
        self._replace_user(updated)
        self.notifier.success("User access updated")
        return updated

    async def create_user(self, name, role):
        """Creates a user and reloads the roster to pick up the id assigned by the store."""
        self._require_admin("add users")
        name = (name or "").strip()
        if not name:
            raise ValueError("A user name is required.")
        try:
            created = await self.api.users.create(name, (role or "").strip())
            await self.load_roster()
        except DesignLogError as exc:
            self._fail("Failed to add user", exc)
            raise
        self.notifier.success("User added successfully")
        return self.find_user(created.id) or created

    async def delete_user(self, user_id):
        """Deletes a user and reloads the roster. The administrator cannot be deleted."""
        self._require_admin("delete users")
        target = self.find_user(user_id)
        if target is not None and target.is_admin:
            raise ValueError("The administrator account cannot be deleted.")
        try:
            await self.api.users.delete(user_id)
            await self.load_roster()
        except DesignLogError as exc:
            self._fail("Failed to delete user", exc)
            raise
        self.notifier.success("User deleted successfully")
