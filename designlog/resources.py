"""
This module manages the shared resource library.

It defines the `ResourceLibrary` class, which is responsible for:
- Loading the shared links from the remote store.
- Adding links attributed to the logged-in user. A link added by the administrator
  is a team resource; any other is a personal one.
- Editing and deleting links, which only their author or the administrator may do.
"""
# designlog/resources.py

import logging
from datetime import date

from designlog.errors import DesignLogError, NotAuthorized, NotFound
from designlog.notifications import Notifier
from designlog.projection import partition_resources

logger = logging.getLogger(__name__)

EDITABLE_RESOURCE_FIELDS = ("title", "url", "description", "category")


class ResourceLibrary:
    def __init__(self, api, notifier=None):
        self.api = api
        self.notifier = notifier or Notifier()
        self.resources = []
        self.loading = False

    def get(self, resource_id):
        for resource in self.resources:
            if resource.id == resource_id:
                return resource
        return None

    def sections(self):
        """Returns `(team, personal)` resources for display."""
        return partition_resources(self.resources)

    def _fail(self, message, error):
        logger.error("%s: %s", message, error)
        self.notifier.error(f"{message}: {error.message}")

    def _check_owner(self, resource_id, actor):
        resource = self.get(resource_id)
        if resource is None:
            raise NotFound("Resource not found")
        if actor is None or not (actor.is_admin or resource.added_by_id == actor.id):
            raise NotAuthorized("Only the resource's author or the administrator can change it.")
        return resource

    @staticmethod
    def _validate(payload):
        for field in ("title", "url"):
            if field in payload and not (payload[field] or "").strip():
                raise ValueError(f"A resource needs a {field}.")

    async def load(self) -> list:
        self.loading = True
        try:
            self.resources = await self.api.resources.get_all()
        except DesignLogError as exc:
            self._fail("Failed to load resources", exc)
            raise
        finally:
            self.loading = False
        return self.resources

    async def add(self, actor, resource_data):
        """Adds a link attributed to `actor`.

        Args:
            actor (User): The logged-in user.
            resource_data (dict): `title` and `url`, optionally `description` and `category`.

        Returns:
            Resource: The resource as stored.
        """
        if actor is None:
            raise NotAuthorized("Log in to add resources.")
        payload = {field: resource_data.get(field, "") for field in EDITABLE_RESOURCE_FIELDS}
        self._validate(payload)
        payload.update({
            "addedBy": actor.name,
            "addedById": actor.id,
            "addedDate": date.today().isoformat(),
            "isAdminResource": actor.is_admin,
        })
        try:
            resource = await self.api.resources.create(payload)
        except DesignLogError as exc:
            self._fail("Failed to add resource", exc)
            raise
        self.resources.insert(0, resource)
        self.notifier.success("Resource added successfully")
        return resource

    async def update(self, resource_id, actor, updates):
        """Edits a link's content. Attribution and the team flag never change."""
        self._check_owner(resource_id, actor)
        payload = {field: updates[field] for field in EDITABLE_RESOURCE_FIELDS if field in updates}
        self._validate(payload)
        try:
            resource = await self.api.resources.update(resource_id, payload)
        except DesignLogError as exc:
            self._fail("Failed to update resource", exc)
            raise
        self.resources = [resource if r.id == resource_id else r for r in self.resources]
        self.notifier.success("Resource updated successfully")
        return resource

    async def delete(self, resource_id, actor):
        self._check_owner(resource_id, actor)
        try:
            await self.api.resources.delete(resource_id)
        except DesignLogError as exc:
            self._fail("Failed to delete resource", exc)
            raise
        self.resources = [r for r in self.resources if r.id != resource_id]
        self.notifier.success("Resource deleted successfully")
