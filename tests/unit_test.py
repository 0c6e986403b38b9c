"""
Unit tests for the Design Log building blocks.

These tests exercise the pieces that do not need a running dashboard: the
configuration object, the error types, the models, the normalization of stored
records, the view projections, the notifier, the per-record sequencer and the
HTTP error mapping of the API clients.
"""
import asyncio
from datetime import date, datetime

import httpx
import pytest

from designlog.api import ApiClient
from designlog.config import TABS, ApiConfig
from designlog.errors import (
    ConfigurationError,
    DesignLogError,
    NetworkError,
    NotFound,
    RemoteRejection,
)
from designlog.models import DesignLog, ImageUpload, Resource, User, WikiPage, parse_timestamp
from designlog.normalize import normalize, normalize_log, normalize_user
from designlog.notifications import ERROR, SUCCESS, Notifier
from designlog.projection import (
    SORT_NEWEST,
    SORT_OLDEST,
    available_categories,
    dashboard_stats,
    is_visible_to,
    linkable_logs,
    linked_logs,
    main_tabs,
    partition_resources,
    project_logs,
    search_wiki,
    sort_logs,
    trash,
    user_tabs,
)
from designlog.sequencing import RecordSequencer


def _log(log_id, user_id="jane", log_date="2024-03-01", category=None, deleted=False, deleted_at=None,
         linked=None):
    return DesignLog(log_id, f"Log {log_id}", "", log_date, user_id, category=category,
                     linked_log_ids=linked, deleted=deleted, deleted_at=deleted_at)


# Configuration

def test_config_strips_trailing_slash_and_builds_headers():
    """
    Tests that the base URL is stored without a trailing slash and that JSON
    requests carry both the bearer token and the JSON content type.
    """
    config = ApiConfig("https://store.test/api/", token="secret")
    assert config.base_url == "https://store.test/api"
    assert config.headers() == {"Authorization": "Bearer secret", "Content-Type": "application/json"}
    assert config.headers(json_body=False) == {"Authorization": "Bearer secret"}


@pytest.mark.parametrize("base_url, timeout", [("", 30), ("https://store.test", "soon"), ("https://store.test", 0)])
def test_config_rejects_invalid_values(base_url, timeout):
    """
    Tests that a missing base URL or a non-positive or non-numeric timeout is
    reported as a ConfigurationError.
    """
    with pytest.raises(ConfigurationError):
        ApiConfig(base_url, timeout=timeout)


def test_config_from_env_reads_designlog_variables():
    """
    Tests that the configuration is read from the DESIGNLOG_* variables of the
    given environment mapping.
    """
    config = ApiConfig.from_env({
        "DESIGNLOG_API_BASE_URL": "https://store.test/api",
        "DESIGNLOG_API_TOKEN": "tok",
        "DESIGNLOG_API_TIMEOUT": "12.5",
        "DESIGNLOG_LOG_LEVEL": "debug",
    })
    assert config.base_url == "https://store.test/api"
    assert config.token == "tok"
    assert config.timeout == 12.5
    assert config.log_level == "DEBUG"


# Errors

def test_error_hierarchy_and_messages():
    """
    Tests that every client error derives from DesignLogError and that remote
    rejections keep their HTTP status.
    """
    missing = NotFound("Log not found")
    assert isinstance(missing, RemoteRejection)
    assert isinstance(missing, DesignLogError)
    assert missing.status == 404
    rejection = RemoteRejection(500, "Failed to fetch logs")
    assert str(rejection) == "Failed to fetch logs (HTTP 500)"
    assert rejection.message == "Failed to fetch logs"


# Models

def test_parse_timestamp_orders_dates_and_handles_garbage():
    """
    Tests that plain dates and UTC timestamps are parsed to naive UTC datetimes,
    and that unparseable values sort before every real date.
    """
    assert parse_timestamp("2024-01-02") == datetime(2024, 1, 2)
    assert parse_timestamp("2024-01-02T10:00:00Z") == datetime(2024, 1, 2, 10)
    assert parse_timestamp("not a date") == datetime.min
    assert parse_timestamp(None) == datetime.min


def test_user_effective_tabs():
    """
    Tests tab access: unrestricted legacy users and the administrator see every
    tab, others see their granted tabs in display order.
    """
    assert User("old", "Old Timer").effective_tabs() == list(TABS)
    assert User("admin", "Admin", accessible_tabs=["wiki"]).effective_tabs() == list(TABS)
    restricted = User("jane", "Jane", accessible_tabs=["logs", "wiki"])
    assert restricted.effective_tabs() == ["wiki", "logs"]
    assert not restricted.can_access("resources")


def test_design_log_to_dict_omits_empty_optional_fields():
    """
    Tests that a live log without a category or image serializes without those
    fields and without trash bookkeeping.
    """
    data = _log("1").to_dict()
    assert "category" not in data
    assert "imageUrl" not in data
    assert "deletedAt" not in data
    assert data["deleted"] is False
    assert data["linkedLogIds"] == []


def test_design_log_ignores_deleted_at_when_live():
    """Tests that a deletion timestamp is dropped from a log that is not deleted."""
    log = DesignLog("1", "T", "", "2024-01-01", "jane", deleted=False, deleted_at="2024-02-01T00:00:00Z")
    assert log.deleted_at is None


def test_design_log_visible_fields_ignore_trash_state():
    """Tests that moving a log to the trash does not change its visible content."""
    live = _log("1", category="ux")
    trashed = _log("1", category="ux", deleted=True, deleted_at="2024-04-01T00:00:00Z")
    assert live.visible_fields() == trashed.visible_fields()


# Normalization

def test_normalize_log_migrates_legacy_tags():
    """
    Tests that a log written before linking existed loses its free-text tags and
    gets an empty list of links, with its id coerced to a string.
    """
    record = normalize("log", {"id": 7, "title": "Old", "userId": "jane", "date": "2023-01-01",
                               "tags": ["color", "type"]})
    assert "tags" not in record
    assert record["linkedLogIds"] == []
    assert record["id"] == "7"
    assert record["deleted"] is False
    assert record["comments"] == []


def test_normalize_log_deduplicates_links_and_drops_stale_trash_fields():
    """
    Tests that duplicate link ids collapse, that empty optional fields are removed,
    and that a live log loses a stale deletion timestamp.
    """
    record = normalize_log({"id": "1", "linkedLogIds": ["2", "2", 3], "category": "", "imageUrl": "",
                            "deleted": False, "deletedAt": "2024-01-01"})
    assert record["linkedLogIds"] == ["2", "3"]
    assert "category" not in record
    assert "imageUrl" not in record
    assert "deletedAt" not in record


def test_normalize_is_idempotent():
    """Tests that normalizing an already normalized record changes nothing."""
    raw = {"id": 3, "title": "T", "userId": "jane", "tags": ["a"], "comments": [{"id": 9, "text": "hi"}],
           "deleted": 1, "deletedAt": "2024-02-02T00:00:00Z"}
    once = normalize("log", raw)
    assert normalize("log", once) == once
    user = normalize("user", {"id": "guest", "name": "Guest", "pin": ""})
    assert normalize("user", user) == user


def test_normalize_user_defaults():
    """
    Tests the user migration rules: the guest needs no PIN, others do, an empty
    PIN means none, unknown tabs are dropped and the administrator gets every tab.
    """
    guest = normalize_user({"id": "guest", "name": "Guest", "pin": ""})
    assert guest["requiresPin"] is False
    assert guest["pin"] is None
    assert guest["accessibleTabs"] is None

    jane = normalize_user({"id": "jane", "name": "Jane", "pin": 1234,
                           "accessibleTabs": ["logs", "logs", "chat"]})
    assert jane["requiresPin"] is True
    assert jane["pin"] == "1234"
    assert jane["accessibleTabs"] == ["logs"]

    admin = normalize_user({"id": "admin", "name": "Admin", "accessibleTabs": []})
    assert admin["accessibleTabs"] == list(TABS)


def test_normalize_resource_derives_team_flag():
    """Tests that a resource without the team flag is a team resource only when the administrator added it."""
    assert normalize("resource", {"id": "1", "addedById": "admin"})["isAdminResource"] is True
    assert normalize("resource", {"id": "2", "addedById": "jane"})["isAdminResource"] is False


def test_normalize_rejects_unknown_kinds_and_shapes():
    """Tests that unknown record kinds and non-mapping records are refused."""
    with pytest.raises(ValueError):
        normalize("ticket", {})
    with pytest.raises(ValueError):
        normalize("log", ["not", "a", "record"])


# Projection

def test_is_visible_to():
    """
    Tests visibility: the administrator sees everything, other users see only
    their own logs, and their trashed logs only when asked for the trash.
    """
    admin, jane = User("admin", "Admin"), User("jane", "Jane")
    someone_elses = _log("1", user_id="bob", deleted=True)
    own_trashed = _log("2", deleted=True)
    assert is_visible_to(someone_elses, admin)
    assert not is_visible_to(someone_elses, jane, include_trash=True)
    assert not is_visible_to(own_trashed, jane)
    assert is_visible_to(own_trashed, jane, include_trash=True)
    assert not is_visible_to(own_trashed, None)


def test_project_logs_filters_and_sorts():
    """
    Tests that the projection keeps the selected user's live logs, applies the
    category filter, and sorts by date in both directions.
    """
    logs = [
        _log("1", log_date="2024-01-05", category="ux"),
        _log("2", log_date="2024-03-01", category="research"),
        _log("3", log_date="2024-02-01", category="ux"),
        _log("4", log_date="2024-04-01", deleted=True),
        _log("5", user_id="bob", log_date="2024-05-01"),
    ]
    assert [log.id for log in project_logs(logs, "jane")] == ["2", "3", "1"]
    assert [log.id for log in project_logs(logs, "jane", sort_by=SORT_OLDEST)] == ["1", "3", "2"]
    assert [log.id for log in project_logs(logs, "jane", category="ux")] == ["3", "1"]
    assert [log.id for log in project_logs(logs, "bob")] == ["5"]


def test_sort_logs_is_stable_for_equal_dates():
    """Tests that logs sharing a date keep their relative order in both sort modes."""
    logs = [_log("a"), _log("b"), _log("c")]
    assert [log.id for log in sort_logs(logs, SORT_NEWEST)] == ["a", "b", "c"]
    assert [log.id for log in sort_logs(logs, SORT_OLDEST)] == ["a", "b", "c"]
    with pytest.raises(ValueError):
        sort_logs(logs, "alphabetical")


def test_available_categories_first_seen_order():
    """Tests that categories are distinct, non-empty, first-seen and ignore trashed logs."""
    logs = [
        _log("1", category="ux"),
        _log("2"),
        _log("3", category="research"),
        _log("4", category="ux"),
        _log("5", category="archive", deleted=True),
        _log("6", user_id="bob", category="sales"),
    ]
    assert available_categories(logs, "jane") == ["ux", "research"]


def test_trash_lists_own_deleted_logs_most_recent_first():
    """Tests that the trash holds only the identity's deleted logs, newest deletion first."""
    jane = User("jane", "Jane")
    logs = [
        _log("1", deleted=True, deleted_at="2024-04-01T08:00:00Z"),
        _log("2", deleted=True, deleted_at="2024-04-03T08:00:00Z"),
        _log("3"),
        _log("4", user_id="bob", deleted=True, deleted_at="2024-04-05T08:00:00Z"),
    ]
    assert [log.id for log in trash(logs, jane)] == ["2", "1"]
    assert trash(logs, None) == []


def test_linked_logs_resolve_by_id_and_tolerate_cycles():
    """
    Tests that links are resolved against the collection, skipping missing,
    trashed and self references, and that mutual links do not loop.
    """
    a = _log("a", linked=["b", "gone", "a", "c"])
    b = _log("b", linked=["a"])
    c = _log("c", deleted=True)
    logs = [a, b, c]
    assert linked_logs(a, logs) == [b]
    assert linked_logs(b, logs) == [a]


def test_linkable_logs_excludes_the_edited_log():
    """Tests that only the identity's own live logs, other than the one being edited, can be linked."""
    jane = User("jane", "Jane")
    logs = [_log("1"), _log("2"), _log("3", deleted=True), _log("4", user_id="bob")]
    assert [log.id for log in linkable_logs(logs, jane, exclude_id="1")] == ["2"]


def test_user_tabs_for_admin_and_designer():
    """
    Tests that the administrator gets their own tab followed by every other user
    except the guest, while anyone else gets only their own tab.
    """
    admin, jane, guest = User("admin", "Admin"), User("jane", "Jane"), User("guest", "Guest")
    users = [admin, guest, jane]
    assert [u.id for u in user_tabs(users, admin)] == ["admin", "jane"]
    assert user_tabs(users, jane) == [jane]
    assert user_tabs(users, None) == []


def test_main_tabs():
    """Tests that anonymous visitors see resources and users see their accessible tabs."""
    assert main_tabs(None) == ["resources"]
    assert main_tabs(User("jane", "Jane", accessible_tabs=["logs", "wiki"])) == ["wiki", "logs"]


def test_dashboard_stats_counts_and_hidden_cases():
    """
    Tests the stats cards: totals, logs dated this month and distinct categories,
    hidden for the guest and for wiki-only users.
    """
    jane = User("jane", "Jane", accessible_tabs=["wiki", "logs"])
    logs = [
        _log("1", log_date="2024-03-01", category="ux"),
        _log("2", log_date="2024-03-10", category="research"),
        _log("3", log_date="2024-02-01", category="ux"),
    ]
    assert dashboard_stats(logs, jane, today=date(2024, 3, 15)) == {"total": 3, "this_month": 2, "categories": 2}
    assert dashboard_stats(logs, User("guest", "Guest", requires_pin=False)) is None
    assert dashboard_stats(logs, User("writer", "Writer", accessible_tabs=["wiki"])) is None


def test_partition_resources_and_search_wiki():
    """Tests the resource split by team flag and the case-insensitive wiki search."""
    team = Resource("1", "Brand kit", "https://x", is_admin_resource=True)
    personal = Resource("2", "Icons", "https://y")
    assert partition_resources([personal, team]) == ([team], [personal])

    pages = [
        WikiPage("1", "Onboarding", "Start here", "admin", "Admin", ""),
        WikiPage("2", "Colors", "The PALETTE lives in Figma", "jane", "Jane", ""),
    ]
    assert search_wiki(pages, "palette") == [pages[1]]
    assert search_wiki(pages, "ONBOARD") == [pages[0]]
    assert search_wiki(pages, "  ") == pages


# Notifications

def test_notifier_records_and_forwards():
    """Tests that notifications reach the sink, are kept in order and can be drained."""
    received = []
    notifier = Notifier(sink=lambda level, message: received.append((level, message)))
    notifier.success("Saved")
    notifier.error("Failed to save: boom")
    assert received == [(SUCCESS, "Saved"), (ERROR, "Failed to save: boom")]
    assert notifier.messages() == ["Saved", "Failed to save: boom"]
    assert notifier.messages(ERROR) == ["Failed to save: boom"]
    assert len(notifier.drain()) == 2
    assert notifier.messages() == []


# Sequencing

@pytest.mark.asyncio
async def test_sequencer_runs_operations_on_one_record_in_issue_order():
    """
    Tests that two operations on the same record run one after the other in the
    order they were issued, and are reported as pending until they finish.
    """
    sequencer = RecordSequencer()
    events = []

    async def operation(name, pause):
        async with sequencer.guard("log-1", name):
            events.append(f"{name} start")
            await asyncio.sleep(pause)
            events.append(f"{name} end")

    first = asyncio.create_task(operation("first", 0.02))
    second = asyncio.create_task(operation("second", 0))
    await asyncio.sleep(0)
    assert sequencer.pending() == {"log-1": ["first", "second"]}
    await asyncio.gather(first, second)

    assert events == ["first start", "first end", "second start", "second end"]
    assert sequencer.pending() == {}
    assert not sequencer.is_pending("log-1")


def test_sequencer_commit_tracking():
    """Tests that commits are compared against load tickets and forgotten on reset."""
    sequencer = RecordSequencer()
    ticket = sequencer.ticket()
    assert not sequencer.committed_since("log-1", ticket)
    sequencer.commit("log-1")
    assert sequencer.committed_since("log-1", ticket)
    assert not sequencer.committed_since("log-1", sequencer.ticket())
    sequencer.reset()
    assert not sequencer.committed_since("log-1", ticket)


# API clients

@pytest.mark.asyncio
async def test_client_normalizes_records_on_read(api, store):
    """Tests that records read through the client are normalized before becoming models."""
    store.add_log("jane", "Legacy", id="1", tags=["old"], linkedLogIds=None)
    logs = await api.logs.get_all()
    assert len(logs) == 1
    assert logs[0].linked_log_ids == []
    assert logs[0].deleted is False


@pytest.mark.asyncio
async def test_client_maps_http_errors(api, store):
    """
    Tests that a 404 becomes NotFound with the server's message and that any other
    error status becomes a RemoteRejection carrying the status.
    """
    with pytest.raises(NotFound) as missing:
        await api.logs.update("nope", {"title": "x"})
    assert missing.value.message == "Log not found"

    store.fail("GET", "/logs", status=500, message="Failed to fetch logs")
    with pytest.raises(RemoteRejection) as rejected:
        await api.logs.get_all()
    assert rejected.value.status == 500
    assert rejected.value.message == "Failed to fetch logs"


@pytest.mark.asyncio
async def test_client_maps_transport_failures(api, store):
    """Tests that connection failures and timeouts both surface as NetworkError."""
    store.fail_network("GET", "/users")
    with pytest.raises(NetworkError):
        await api.users.get_all()

    store.fail_network("GET", "/users", error=httpx.ReadTimeout)
    with pytest.raises(NetworkError) as timed_out:
        await api.users.get_all()
    assert timed_out.value.message == "Request timeout"


@pytest.mark.asyncio
async def test_client_uses_generic_message_and_rejects_non_json(config):
    """
    Tests that an error body without an `error` field gets the generic message and
    that a successful answer that is not JSON is treated as a rejection.
    """
    bare_error = ApiClient(config, transport=httpx.MockTransport(lambda request: httpx.Response(503)))
    with pytest.raises(RemoteRejection) as rejected:
        await bare_error.logs.get_all()
    assert rejected.value.message == "API request failed"
    assert rejected.value.status == 503

    html = ApiClient(config, transport=httpx.MockTransport(
        lambda request: httpx.Response(200, text="<html>maintenance</html>")))
    with pytest.raises(RemoteRejection):
        await html.logs.get_all()


@pytest.mark.asyncio
async def test_client_uploads_images_as_multipart(api, store):
    """Tests that an image upload is sent as multipart form data and returns the stored reference."""
    url = await api.logs.upload_image(ImageUpload("sketch.png", b"\x89PNG", "image/png"))
    assert url.startswith("https://cdn.test/images/")
    assert store.uploads
    assert store.paths("POST") == ["/upload-image"]
