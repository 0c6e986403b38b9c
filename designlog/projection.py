"""
Derived views over the dashboard's records.

Everything here is a pure function of its arguments: nothing mutates the collections
it is given, so the views can be recomputed whenever the identity, the collection,
the selected user tab, the category filter or the sort order changes.
"""
# designlog/projection.py

from datetime import date

from designlog.config import GUEST_USER_ID, TAB_RESOURCES, TAB_WIKI
from designlog.models import parse_timestamp

SORT_NEWEST = "newest"
SORT_OLDEST = "oldest"
SORT_MODES = (SORT_NEWEST, SORT_OLDEST)
ALL_CATEGORIES = "all"


def is_visible_to(log, viewer, include_trash=False) -> bool:
    """Tells whether `viewer` may see `log`.

    The administrator sees every log. Anyone else sees only their own logs, and
    their deleted logs only when `include_trash` is set.
    """
    if viewer is None:
        return False
    if viewer.is_admin:
        return True
    if log.user_id != viewer.id:
        return False
    return include_trash or not log.deleted


def sort_logs(logs, sort_by=SORT_NEWEST) -> list:
    """Sorts logs by date. The sort is stable: logs sharing a date keep their order."""
    if sort_by not in SORT_MODES:
        raise ValueError(f"Unknown sort mode: {sort_by!r}")
    return sorted(logs, key=lambda log: parse_timestamp(log.date), reverse=sort_by == SORT_NEWEST)


def project_logs(logs, selected_user_id, category=ALL_CATEGORIES, sort_by=SORT_NEWEST) -> list:
    """Returns the logs shown on the selected user's tab.

    Args:
        logs (list[DesignLog]): The collection held by `LogCollection`.
        selected_user_id (str): The user whose tab is selected.
        category (str): A category to filter on, or `ALL_CATEGORIES`.
        sort_by (str): `SORT_NEWEST` or `SORT_OLDEST`.

    Returns:
        list[DesignLog]: The live logs of that user, filtered and sorted.
    """
    shown = [log for log in logs if log.user_id == selected_user_id and not log.deleted]
    if category and category != ALL_CATEGORIES:
        shown = [log for log in shown if log.category == category]
    return sort_logs(shown, sort_by)


def available_categories(logs, selected_user_id) -> list:
    """Lists the distinct non-empty categories among a user's live logs, first seen first."""
    categories = []
    for log in logs:
        if log.user_id == selected_user_id and not log.deleted and log.category:
            if log.category not in categories:
                categories.append(log.category)
    return categories


def trash(logs, identity) -> list:
    """Returns the identity's deleted logs, most recently deleted first."""
    if identity is None:
        return []
    deleted = [log for log in logs if log.user_id == identity.id and log.deleted]
    return sorted(deleted, key=lambda log: parse_timestamp(log.deleted_at), reverse=True)


def linked_logs(log, logs) -> list:
    """Resolves `log.linked_log_ids` against `logs`.

    Links are looked up by id each time; ids that point at missing or trashed logs,
    and a log's link to itself, are skipped.
    """
    by_id = {other.id: other for other in logs}
    resolved = []
    for linked_id in log.linked_log_ids:
        other = by_id.get(linked_id)
        if other is not None and other.id != log.id and not other.deleted:
            resolved.append(other)
    return resolved


def linkable_logs(logs, identity, exclude_id=None) -> list:
    """Lists the logs the identity can link a log to: their own live logs."""
    if identity is None:
        return []
    return [
        log for log in logs
        if log.user_id == identity.id and not log.deleted and log.id != exclude_id
    ]


def user_tabs(users, identity) -> list:
    """Returns the users whose logs get a tab: the identity first, then, for the
    administrator, every other user except the guest."""
    if identity is None:
        return []
    if not identity.is_admin:
        return [identity]
    others = [user for user in users if user.id not in (identity.id, GUEST_USER_ID)]
    return [identity] + others


def main_tabs(identity) -> list:
    """Returns the feature tabs shown to the identity. Anonymous visitors see resources."""
    if identity is None:
        return [TAB_RESOURCES]
    return identity.effective_tabs()


def dashboard_stats(logs, identity, today=None):
    """Summarizes the displayed logs for the stats cards.

    Returns:
        dict | None: `total`, `this_month` and `categories` counts, or None when the
        identity only has wiki access or is the guest (the cards are hidden for them).
    """
    if identity is None or identity.id == GUEST_USER_ID:
        return None
    if identity.effective_tabs() == [TAB_WIKI]:
        return None
    today = today or date.today()
    this_month = 0
    for log in logs:
        when = parse_timestamp(log.date)
        if when.year == today.year and when.month == today.month:
            this_month += 1
    return {
        "total": len(logs),
        "this_month": this_month,
        "categories": len({log.category for log in logs if log.category}),
    }


def partition_resources(resources):
    """Splits resources into the team section and the personal section.

    Returns:
        tuple[list, list]: `(team, personal)`, each keeping the input order.
    """
    team = [resource for resource in resources if resource.is_admin_resource]
    personal = [resource for resource in resources if not resource.is_admin_resource]
    return team, personal


def search_wiki(pages, query) -> list:
    """Filters wiki pages whose title or content contains `query`, ignoring case."""
    query = (query or "").strip().lower()
    if not query:
        return list(pages)
    return [page for page in pages if query in page.title.lower() or query in page.content.lower()]
