"""
This module defines the data models for the Design Log dashboard.

These classes mirror the records held by the remote store. Each model can be built
from a wire record (`from_dict`, camelCase field names) and turned back into one
(`to_dict`). Records coming from the store are normalized before they reach these
constructors, so the models assume the current schema.
"""
# designlog/models.py

from datetime import date, datetime, timezone

from designlog.config import ADMIN_USER_ID, TABS


def parse_timestamp(value) -> datetime:
    """Parses an ISO date or timestamp into a naive UTC datetime for ordering.

    Unparseable or missing values sort before every real date.
    """
    if not value:
        return datetime.min
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return datetime.min
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def utc_now_iso() -> str:
    """Returns the current UTC time as an ISO string, as the store stamps it."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class User:
    """Represents a dashboard user.

    Attributes:
        id (str): The stable user key (e.g., "admin", "guest", "jane-1700000000").
        name (str): The display name.
        role (str): A job title shown next to the name. Display only.
        pin (str | None): The numeric PIN, or None when it has not been set yet.
        requires_pin (bool): False for PIN-less accounts such as the guest.
        accessible_tabs (list | None): The feature tabs the user may open, or None
            when the record predates per-user access control.
    """
    def __init__(self, id, name, role="", pin=None, requires_pin=True, accessible_tabs=None):
        self.id = id
        self.name = name
        self.role = role
        self.pin = pin or None
        self.requires_pin = requires_pin
        self.accessible_tabs = list(accessible_tabs) if accessible_tabs is not None else None

    @property
    def is_admin(self) -> bool:
        return self.id == ADMIN_USER_ID

    @property
    def has_pin(self) -> bool:
        return bool(self.pin)

    def effective_tabs(self) -> list:
        """Returns the tabs this user may open, in display order."""
        if self.is_admin or self.accessible_tabs is None:
            return list(TABS)
        return [tab for tab in TABS if tab in self.accessible_tabs]

    def can_access(self, tab) -> bool:
        return tab in self.effective_tabs()

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            role=data.get("role", ""),
            pin=data.get("pin"),
            requires_pin=data.get("requiresPin", True),
            accessible_tabs=data.get("accessibleTabs"),
        )

    def to_dict(self):
        data = {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "pin": self.pin or "",
            "requiresPin": self.requires_pin,
        }
        if self.accessible_tabs is not None:
            data["accessibleTabs"] = list(self.accessible_tabs)
        return data

    def __repr__(self):
        return f"User(id={self.id!r}, name={self.name!r})"


class Comment:
    """A comment attached to a design log or a wiki page. Immutable once created."""

    def __init__(self, id, text, author, author_id, date):
        self.id = id
        self.text = text
        self.author = author
        self.author_id = author_id
        self.date = date

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get("id", ""),
            text=data.get("text", ""),
            author=data.get("author", ""),
            author_id=data.get("authorId", ""),
            date=data.get("date", ""),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "text": self.text,
            "author": self.author,
            "authorId": self.author_id,
            "date": self.date,
        }


class DesignLog:
    """A single design log entry.

    Attributes:
        id (str): The record id assigned by the store.
        title (str): The headline of the entry.
        description (str): Free text describing the decision or outcome.
        date (str): The calendar date of the entry (ISO). Used for sorting.
        category (str | None): An optional free-text tag used for filtering.
        linked_log_ids (list): Ids of related logs. The relation may be cyclic.
        image_url (str | None): An opaque reference to an uploaded image.
        user_id (str): The owner of the entry.
        comments (list[Comment]): Comments in display order.
        deleted (bool): The soft-delete flag.
        deleted_at (str | None): When the log was moved to the trash.
    """
    VISIBLE_FIELDS = ("title", "description", "date", "category", "comments")

    def __init__(self, id, title, description, date, user_id, category=None, linked_log_ids=None,
                 image_url=None, comments=None, deleted=False, deleted_at=None):
        self.id = id
        self.title = title
        self.description = description
        self.date = date
        self.user_id = user_id
        self.category = category or None
        self.linked_log_ids = list(linked_log_ids or [])
        self.image_url = image_url or None
        self.comments = list(comments or [])
        self.deleted = bool(deleted)
        self.deleted_at = deleted_at if self.deleted else None

    @property
    def sort_key(self) -> datetime:
        return parse_timestamp(self.date)

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get("id"),
            title=data.get("title", ""),
            description=data.get("description", ""),
            date=data.get("date", ""),
            user_id=data.get("userId", ""),
            category=data.get("category"),
            linked_log_ids=data.get("linkedLogIds"),
            image_url=data.get("imageUrl"),
            comments=[Comment.from_dict(c) for c in data.get("comments") or []],
            deleted=data.get("deleted", False),
            deleted_at=data.get("deletedAt"),
        )

    def to_dict(self):
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "date": self.date,
            "userId": self.user_id,
            "linkedLogIds": list(self.linked_log_ids),
            "comments": [c.to_dict() for c in self.comments],
            "deleted": self.deleted,
        }
        if self.category:
            data["category"] = self.category
        if self.image_url:
            data["imageUrl"] = self.image_url
        if self.deleted_at:
            data["deletedAt"] = self.deleted_at
        return data

    def visible_fields(self) -> dict:
        """Returns the user-visible content of the log, ignoring trash bookkeeping."""
        data = self.to_dict()
        return {field: data.get(field) for field in self.VISIBLE_FIELDS}

    def __repr__(self):
        return f"DesignLog(id={self.id!r}, title={self.title!r}, user_id={self.user_id!r})"


class Resource:
    """A shared link in the resource library.

    `is_admin_resource` is fixed when the resource is created and only decides
    whether it is listed under the team section or the personal one.
    """
    def __init__(self, id, title, url, description="", category="", added_by="", added_by_id="",
                 added_date="", is_admin_resource=False):
        self.id = id
        self.title = title
        self.url = url
        self.description = description
        self.category = category
        self.added_by = added_by
        self.added_by_id = added_by_id
        self.added_date = added_date
        self.is_admin_resource = bool(is_admin_resource)

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get("id"),
            title=data.get("title", ""),
            url=data.get("url", ""),
            description=data.get("description", ""),
            category=data.get("category", ""),
            added_by=data.get("addedBy", ""),
            added_by_id=data.get("addedById", ""),
            added_date=data.get("addedDate", ""),
            is_admin_resource=data.get("isAdminResource", False),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "description": self.description,
            "category": self.category,
            "addedBy": self.added_by,
            "addedById": self.added_by_id,
            "addedDate": self.added_date,
            "isAdminResource": self.is_admin_resource,
        }


class WikiPage:
    """A wiki page. Every edit refreshes `last_modified`."""

    def __init__(self, id, title, content, created_by, created_by_name, last_modified, category="",
                 images=None, comments=None):
        self.id = id
        self.title = title
        self.content = content
        self.category = category or ""
        self.images = list(images or [])
        self.comments = list(comments or [])
        self.created_by = created_by
        self.created_by_name = created_by_name
        self.last_modified = last_modified

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get("id"),
            title=data.get("title", ""),
            content=data.get("content", ""),
            category=data.get("category", ""),
            images=data.get("images"),
            comments=[Comment.from_dict(c) for c in data.get("comments") or []],
            created_by=data.get("createdBy", ""),
            created_by_name=data.get("createdByName", ""),
            last_modified=data.get("lastModified", ""),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "images": list(self.images),
            "comments": [c.to_dict() for c in self.comments],
            "createdBy": self.created_by,
            "createdByName": self.created_by_name,
            "lastModified": self.last_modified,
        }


class ImageUpload:
    """An image picked by the user, waiting to be uploaded with a log."""

    def __init__(self, filename, content, content_type="application/octet-stream"):
        self.filename = filename
        self.content = content
        self.content_type = content_type
