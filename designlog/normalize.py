"""
Normalization of records read from the remote store.

The store has no schema enforcement, so records written by older versions of the
dashboard are still around: logs carrying the retired `tags` field, users created
before PIN-less accounts and per-user tab access existed, and so on. Instead of
patching those shapes wherever they are read, every read path goes through
`normalize(kind, raw)`, which returns a record in the current schema.

The functions here are pure and idempotent: normalizing a normalized record
returns an equal record.
"""
# designlog/normalize.py

from designlog.config import ADMIN_USER_ID, GUEST_USER_ID, TABS


def _unique(values):
    """De-duplicates a sequence while preserving first-seen order, dropping blanks."""
    seen = []
    for value in values or []:
        if value and value not in seen:
            seen.append(value)
    return seen


def normalize_comment(raw) -> dict:
    return {
        "id": str(raw.get("id", "")),
        "text": raw.get("text") or "",
        "author": raw.get("author") or "",
        "authorId": raw.get("authorId") or "",
        "date": raw.get("date") or "",
    }


def normalize_user(raw) -> dict:
    record = dict(raw)
    user_id = record.get("id")
    record["name"] = record.get("name") or user_id or ""
    record["role"] = record.get("role") or ""
    # An empty PIN means the user has not chosen one yet.
    record["pin"] = str(record["pin"]) if record.get("pin") else None
    if record.get("requiresPin") is None:
        record["requiresPin"] = user_id != GUEST_USER_ID
    else:
        record["requiresPin"] = bool(record["requiresPin"])
    if user_id == ADMIN_USER_ID:
        record["accessibleTabs"] = list(TABS)
    elif record.get("accessibleTabs") is not None:
        record["accessibleTabs"] = [tab for tab in _unique(record["accessibleTabs"]) if tab in TABS]
    else:
        record["accessibleTabs"] = None
    return record


def normalize_log(raw) -> dict:
    record = dict(raw)
    # Logs from before linking existed carried free-text tags that cannot be mapped to ids.
    tags = record.pop("tags", None)
    if tags is not None and record.get("linkedLogIds") is None:
        record["linkedLogIds"] = []
    record["linkedLogIds"] = [str(i) for i in _unique(record.get("linkedLogIds"))]
    record["comments"] = [normalize_comment(c) for c in record.get("comments") or []]
    record["deleted"] = bool(record.get("deleted", False))
    if not record["deleted"]:
        record.pop("deletedAt", None)
    if not record.get("category"):
        record.pop("category", None)
    if not record.get("imageUrl"):
        record.pop("imageUrl", None)
    record["title"] = record.get("title") or ""
    record["description"] = record.get("description") or ""
    record["date"] = record.get("date") or ""
    record["userId"] = record.get("userId") or ""
    if record.get("id") is not None:
        record["id"] = str(record["id"])
    return record


def normalize_wiki_page(raw) -> dict:
    record = dict(raw)
    record["images"] = list(record.get("images") or [])
    record["comments"] = [normalize_comment(c) for c in record.get("comments") or []]
    record["category"] = record.get("category") or ""
    record["title"] = record.get("title") or ""
    record["content"] = record.get("content") or ""
    if record.get("id") is not None:
        record["id"] = str(record["id"])
    return record


def normalize_resource(raw) -> dict:
    record = dict(raw)
    if record.get("isAdminResource") is None:
        record["isAdminResource"] = record.get("addedById") == ADMIN_USER_ID
    else:
        record["isAdminResource"] = bool(record["isAdminResource"])
    for field in ("title", "url", "description", "category", "addedBy", "addedById", "addedDate"):
        record[field] = record.get(field) or ""
    if record.get("id") is not None:
        record["id"] = str(record["id"])
    return record


NORMALIZERS = {
    "user": normalize_user,
    "log": normalize_log,
    "wiki": normalize_wiki_page,
    "resource": normalize_resource,
}


def normalize(kind, raw) -> dict:
    """Brings a raw store record of the given kind up to the current schema.

    Args:
        kind (str): One of "user", "log", "wiki", "resource".
        raw (dict): The record as returned by the store.

    Returns:
        dict: A new record in the current schema. The input is not modified.

    Raises:
        ValueError: If the kind is unknown or the record is not a mapping.
    """
    try:
        normalizer = NORMALIZERS[kind]
    except KeyError:
        raise ValueError(f"Unknown record kind: {kind!r}") from None
    if not isinstance(raw, dict):
        raise ValueError(f"Expected a {kind} record, got {type(raw).__name__}")
    return normalizer(raw)
