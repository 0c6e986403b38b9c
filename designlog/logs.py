"""
This module manages the in-memory collection of design logs for the current session.

It defines the `LogCollection` class, which is responsible for:
- Loading every log the current identity may see (their own, or all of them for
  the administrator), newest first.
- Creating and editing logs, uploading an attached image before the log is saved.
- Moving logs to the trash optimistically, and reconciling with a full reload when
  the store refuses.
- Restoring and permanently deleting logs, and appending comments, with the store's
  answer as the source of truth.

The collection keeps deleted logs too; hiding them from the main view is the job of
`designlog.projection`. Mutations on one log are serialized in issue order through a
`RecordSequencer`, and answers that arrive for an identity that is no longer current
are discarded.
"""
# designlog/logs.py

import logging
from datetime import date

from designlog.errors import DesignLogError, NotAuthorized, NotFound
from designlog.models import DesignLog, utc_now_iso
from designlog.notifications import Notifier
from designlog.projection import is_visible_to, linked_logs
from designlog.sequencing import RecordSequencer

logger = logging.getLogger(__name__)

# Fields a caller may set on a log; ownership, trash state and comments are not among them.
EDITABLE_FIELDS = ("title", "description", "date", "category", "linkedLogIds", "imageUrl")


class LogCollection:
    """The authoritative copy of the design logs visible to the current identity."""

    def __init__(self, api, notifier=None, sequencer=None):
        self.api = api
        self.notifier = notifier or Notifier()
        self.sequencer = sequencer or RecordSequencer()
        self.logs = []
        self.identity = None
        self.loading = False
        self._epoch = 0
        self._load_ticket = 0

    # Lookups

    def get(self, log_id):
        """Returns the local copy of a log, or None."""
        for log in self.logs:
            if log.id == log_id:
                return log
        return None

    def linked_logs(self, log_id) -> list:
        """Resolves a log's links against the current collection."""
        log = self.get(log_id)
        if log is None:
            return []
        return linked_logs(log, self.logs)

    def pending(self) -> dict:
        return self.sequencer.pending()

    def _require_identity(self):
        if self.identity is None:
            raise NotAuthorized("Log in to manage design logs.")
        return self.identity

    def _require_log(self, log_id):
        log = self.get(log_id)
        if log is None:
            raise NotFound("Log not found")
        return log

    def _fail(self, message, error, log_id=None):
        logger.error("%s (log %s): %s", message, log_id, error)
        self.notifier.error(f"{message}: {error.message}")

    def _replace(self, log):
        """Replaces the local copy of `log` in place, or prepends it if it is new."""
        for index, existing in enumerate(self.logs):
            if existing.id == log.id:
                self.logs[index] = log
                break
        else:
            self.logs.insert(0, log)
        self.sequencer.commit(log.id)

    # Loading

    async def load(self, identity):
        """Fetches the store's logs and replaces the collection with those `identity` may see.

        Switching to another identity clears the collection before fetching, so the
        previous user's logs are never shown to the new one. Only the most recently
        issued load is applied; logs changed locally while it was in flight, and logs
        with an operation still pending, keep their local version.

        Args:
            identity (User | None): The logged-in user. None clears the collection.

        Returns:
            list[DesignLog]: The collection after the load.

        Raises:
            NetworkError, RemoteRejection: If the logs could not be fetched.
        """
        if identity is None:
            self._switch_identity(None)
            return self.logs
        if self.identity is None or self.identity.id != identity.id:
            self._switch_identity(identity)
        else:
            self.identity = identity

        epoch = self._epoch
        ticket = self.sequencer.ticket()
        self._load_ticket = ticket
        self.loading = True
        try:
            fetched = await self.api.logs.get_all()
        except DesignLogError as exc:
            if ticket == self._load_ticket:
                self._fail("Failed to load design logs", exc)
            raise
        finally:
            if ticket == self._load_ticket:
                self.loading = False

        if epoch != self._epoch or ticket != self._load_ticket:
            logger.warning("Discarding a stale log load")
            return self.logs

        visible = [log for log in fetched if is_visible_to(log, identity, include_trash=True)]
        visible.sort(key=lambda log: log.sort_key, reverse=True)
        self.logs = self._merge_local_changes(visible, ticket)
        logger.debug("Loaded %d logs for %s", len(self.logs), identity.id)
        return self.logs

    def clear(self):
        """Forgets the identity and every log, e.g. on logout."""
        self._switch_identity(None)

    async def reload(self):
        """Re-fetches the collection for the current identity."""
        return await self.load(self.identity)

    def _switch_identity(self, identity):
        self._epoch += 1
        self.identity = identity
        self.logs = []
        self.sequencer.reset()

    def _changed_locally(self, log_id, ticket):
        return self.sequencer.is_pending(log_id) or self.sequencer.committed_since(log_id, ticket)

    def _merge_local_changes(self, fetched, ticket):
        local = {log.id: log for log in self.logs}
        fetched_ids = {log.id for log in fetched}
        merged = []
        for log in fetched:
            if self._changed_locally(log.id, ticket):
                if log.id in local:
                    merged.append(local[log.id])
                continue
            merged.append(log)
        created_meanwhile = [
            log for log in self.logs
            if log.id not in fetched_ids and self._changed_locally(log.id, ticket)
        ]
        return created_meanwhile + merged

    # Mutations

    async def save(self, log_data, image=None):
        """Creates or updates a log.

        A log without an `id` is created and prepended to the collection; one with an
        `id` is updated and replaced in place. A new log is owned by the current
        identity and an edited log keeps the owner recorded in the collection; the
        caller's `userId` is ignored either way. An attached image is uploaded first
        and its reference saved with the log.

        Args:
            log_data (dict | DesignLog): The log fields, using wire field names for dicts.
            image (ImageUpload, optional): An image to attach.

        Returns:
            DesignLog: The log as saved by the store.
        """
        identity = self._require_identity()
        if isinstance(log_data, DesignLog):
            log_data = log_data.to_dict()
        payload = {field: log_data[field] for field in EDITABLE_FIELDS if field in log_data}
        log_id = log_data.get("id")
        if (log_id is None or "title" in payload) and not (payload.get("title") or "").strip():
            raise ValueError("A design log needs a title.")

        if log_id is None:
            return await self._create(identity, payload, image)
        async with self.sequencer.guard(log_id, "update"):
            existing = self._require_log(log_id)
            payload["userId"] = existing.user_id
            return await self._update(log_id, payload, image)

    async def _attach_image(self, payload, image):
        if image is not None:
            payload["imageUrl"] = await self.api.logs.upload_image(image)
        return payload

    async def _create(self, identity, payload, image):
        epoch = self._epoch
        payload["userId"] = identity.id
        payload.setdefault("date", date.today().isoformat())
        payload.setdefault("linkedLogIds", [])
        payload["comments"] = []
        try:
            await self._attach_image(payload, image)
            created = await self.api.logs.create(payload)
        except DesignLogError as exc:
            self._fail("Failed to save design log", exc)
            raise
        if epoch == self._epoch:
            self._replace(created)
        self.notifier.success("Design log added successfully")
        return created

    async def _update(self, log_id, payload, image):
        epoch = self._epoch
        try:
            await self._attach_image(payload, image)
            updated = await self.api.logs.update(log_id, payload)
        except DesignLogError as exc:
            self._fail("Failed to save design log", exc, log_id)
            raise
        if epoch == self._epoch and self.get(log_id) is not None:
            self._replace(updated)
        self.notifier.success("Design log updated successfully")
        return updated

    async def delete(self, log_id) -> bool:
        """Moves a log to the trash, optimistically.

        The log leaves the main view and the success notice is shown before the store
        is asked. If the store refuses, the collection is reloaded from the store
        rather than patched back by hand.

        Returns:
            bool: True if the store confirmed the deletion, False if it was rolled back.
        """
        self._require_identity()
        async with self.sequencer.guard(log_id, "delete"):
            log = self._require_log(log_id)
            epoch = self._epoch
            trashed = DesignLog.from_dict(dict(log.to_dict(), deleted=True, deletedAt=utc_now_iso()))
            self._replace(trashed)
            self.notifier.success("Design log moved to trash")
            try:
                await self.api.logs.delete(log_id)
            except DesignLogError as exc:
                self._fail("Failed to delete design log", exc, log_id)
            else:
                # Loads issued while the request was in flight may carry the live copy.
                self.sequencer.commit(log_id)
                return True
        # Reconciled outside the guard: a pending log keeps its local copy on load.
        if epoch == self._epoch:
            logger.warning("Rolling back deletion of log %s with a reload", log_id)
            await self._reconcile()
        return False

    async def _reconcile(self):
        try:
            await self.reload()
        except DesignLogError:
            logger.error("Reconciling reload failed; the collection may be out of date")

    async def restore(self, log_id):
        """Restores a log from the trash once the store confirms it.

        Returns:
            DesignLog: The store's restored copy.
        """
        self._require_identity()
        async with self.sequencer.guard(log_id, "restore"):
            epoch = self._epoch
            try:
                restored = await self.api.logs.restore(log_id)
            except DesignLogError as exc:
                self._fail("Failed to restore design log", exc, log_id)
                raise
            if epoch == self._epoch:
                self._replace(restored)
        self.notifier.success("Design log restored successfully")
        return restored

    async def permanently_delete(self, log_id):
        """Removes a trashed log for good, once the store confirms it.

        Raises:
            ValueError: If the log is still live; it has to be moved to the trash first.
            NetworkError, RemoteRejection: If the store refused. Nothing is removed locally.
        """
        self._require_identity()
        async with self.sequencer.guard(log_id, "permanent_delete"):
            log = self.get(log_id)
            if log is not None and not log.deleted:
                raise ValueError("Only logs in the trash can be permanently deleted.")
            epoch = self._epoch
            try:
                await self.api.logs.permanent_delete(log_id)
            except DesignLogError as exc:
                self._fail("Failed to permanently delete design log", exc, log_id)
                raise
            if epoch == self._epoch:
                self.logs = [log for log in self.logs if log.id != log_id]
                self.sequencer.commit(log_id)
        self.notifier.success("Design log permanently deleted successfully")

    async def add_comment(self, log_id, text):
        """Appends a comment; the store stamps its id and date and returns the whole log."""
        identity = self._require_identity()
        text = (text or "").strip()
        if not text:
            raise ValueError("A comment cannot be empty.")
        async with self.sequencer.guard(log_id, "comment"):
            epoch = self._epoch
            try:
                updated = await self.api.logs.add_comment(
                    log_id, {"text": text, "author": identity.name, "authorId": identity.id}
                )
            except DesignLogError as exc:
                self._fail("Failed to add comment", exc, log_id)
                raise
            if epoch == self._epoch and self.get(log_id) is not None:
                self._replace(updated)
        self.notifier.success("Comment added successfully")
        return updated
