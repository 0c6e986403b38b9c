"""
This module defines the graphical user interface (GUI) for the Design Log dashboard using Streamlit.

It includes functions for rendering the login screen and the main dashboard: the design
log timeline with its filters, comments and trash, the team wiki, the resource library,
the administrator's user management panel, and the personal PIN settings.

Rendering is all this module does. Every action is handed to the `DashboardService`
kept in the session, and the outcome is reported through its notifier.
"""
# gui.py

import asyncio
import datetime

import streamlit as st

from designlog.config import TAB_LOGS, TAB_RESOURCES, TAB_WIKI, TABS
from designlog.errors import DesignLogError
from designlog.models import ImageUpload
from designlog.projection import (
    ALL_CATEGORIES,
    SORT_NEWEST,
    SORT_OLDEST,
    available_categories,
    dashboard_stats,
    linkable_logs,
    main_tabs,
    project_logs,
    trash,
    user_tabs,
)

TAB_LABELS = {TAB_WIKI: "Wiki", TAB_LOGS: "Design Logs", TAB_RESOURCES: "Resources"}
SORT_LABELS = {SORT_NEWEST: "Newest first", SORT_OLDEST: "Oldest first"}


def _run(coro):
    """Runs one service call to completion and reports failures on the page.

    Returns:
        tuple[bool, object]: Whether the call succeeded, and its result.
    """
    try:
        return True, asyncio.run(coro)
    except DesignLogError as exc:
        st.error(exc.message)
    except ValueError as exc:
        st.error(str(exc))
    return False, None


def toast_sink(level, message):
    """Shows a notifier message as a Streamlit toast."""
    icon = {"success": "✅", "error": "⚠️"}.get(level, "ℹ️")
    st.toast(message, icon=icon)


def _format_timestamp(timestamp_str):
    """Converts an ISO date or timestamp into a human-readable local time.

    Args:
        timestamp_str (str): The ISO-formatted date or timestamp.

    Returns:
        str: A formatted string (e.g., "Jan 01, 2024 • 14:30"), just the date for
             plain dates, or the original string if it cannot be parsed.
    """
    if not timestamp_str:
        return "Unknown time"
    try:
        if len(timestamp_str) == 10:
            return datetime.date.fromisoformat(timestamp_str).strftime("%b %d, %Y")
        timestamp = datetime.datetime.fromisoformat(timestamp_str.replace('Z', '+00:00'))
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=datetime.timezone.utc)
        return timestamp.astimezone().strftime("%b %d, %Y • %H:%M")
    except ValueError:
        return timestamp_str


def _parse_date(value):
    try:
        return datetime.date.fromisoformat((value or "")[:10])
    except ValueError:
        return datetime.date.today()


def _render_comments(comments):
    if not comments:
        st.caption("No comments yet.")
        return
    for comment in comments:
        st.markdown(f"**{comment.author}** · {_format_timestamp(comment.date)}")
        st.write(comment.text)


# Authentication

def show_login_screen(service):
    """Displays the login screen: a user picker and a PIN field.

    Users without a PIN yet can log in with any value, which becomes their PIN.

    Args:
        service (DashboardService): The session's service instance.
    """
    if not service.session.users:
        _run(service.session.load_roster())

    col1, col2, col3 = st.columns([1, 2, 1])
    with col2:
        st.markdown("<h1 style='text-align: center;'>Design Log</h1>", unsafe_allow_html=True)
        st.markdown("<p style='text-align: center;'>Select your name and enter your PIN.</p>",
                    unsafe_allow_html=True)
        users = service.session.users
        if not users:
            st.info("No users are available. Check the connection to the server.")
            return

        by_id = {user.id: user for user in users}
        user_id = st.selectbox(
            "User",
            options=list(by_id),
            format_func=lambda uid: f"{by_id[uid].name} ({by_id[uid].role})" if by_id[uid].role else by_id[uid].name,
            key="login_user",
        )
        selected = by_id[user_id]
        pin = ""
        if selected.requires_pin:
            if not selected.has_pin:
                st.info("No PIN set yet. The PIN you enter now will become your PIN.")
            pin = st.text_input("PIN", type="password", key="login_pin")

        login_error = st.session_state.pop("login_error", None)
        if login_error:
            st.error(login_error)
        st.button("Log In", key="login_btn", use_container_width=True, type="primary",
                  disabled=selected.requires_pin and not pin.strip(),
                  on_click=_attempt_login, args=(service,))


def _attempt_login(service):
    """Logs in with the picked user and PIN; a failed attempt clears the PIN field."""
    user_id = st.session_state["login_user"]
    user = service.session.find_user(user_id)
    requires_pin = user is not None and user.requires_pin
    pin = st.session_state.get("login_pin", "") if requires_pin else ""
    ok, result = _run(service.login(user_id, pin))
    if ok and result.ok:
        return
    if requires_pin:
        st.session_state["login_pin"] = ""
    if ok:
        st.session_state["login_error"] = result.error.message


# Main dashboard

def show_main_app(service):
    """Displays the dashboard with the tabs the logged-in user may open.

    Args:
        service (DashboardService): The session's service instance.
    """
    user = service.current_user
    header, actions = st.columns([4, 1])
    with header:
        st.markdown(f"## Design Log · {user.name}")
        if user.role:
            st.caption(user.role)
    with actions:
        if st.button("Refresh", key="refresh_btn", use_container_width=True):
            _run(service.refresh())
            st.rerun()
        if st.button("Log Out", key="logout_btn", use_container_width=True):
            service.logout()
            st.rerun()

    tabs = main_tabs(user)
    labels = [TAB_LABELS[tab] for tab in tabs]
    if service.session.is_admin:
        labels.append("Admin")
    if user.requires_pin:
        labels.append("Settings")

    renderers = {
        "Wiki": _render_wiki_tab,
        "Design Logs": _render_logs_tab,
        "Resources": _render_resources_tab,
        "Admin": _render_admin_panel,
        "Settings": _render_settings,
    }
    for label, container in zip(labels, st.tabs(labels)):
        with container:
            renderers[label](service)


# Design logs

def _render_stats(stats):
    cols = st.columns(3)
    cols[0].metric("Total logs", stats["total"])
    cols[1].metric("This month", stats["this_month"])
    cols[2].metric("Categories", stats["categories"])


def _render_logs_tab(service):
    """Renders the timeline for one user's tab, with filters, the add form and the trash."""
    user = service.current_user
    logs = service.logs.logs

    tab_users = user_tabs(service.session.users, user)
    names = {u.id: u.name for u in tab_users}
    selected_user_id = user.id
    if len(tab_users) > 1:
        selected_user_id = st.selectbox("Designer", options=list(names), format_func=names.get,
                                        key="selected_user")

    categories = available_categories(logs, selected_user_id)
    filter_col, sort_col = st.columns(2)
    category = filter_col.selectbox("Category", options=[ALL_CATEGORIES] + categories,
                                    format_func=lambda c: "All categories" if c == ALL_CATEGORIES else c,
                                    key=f"category_{selected_user_id}")
    sort_by = sort_col.radio("Sort", options=[SORT_NEWEST, SORT_OLDEST], format_func=SORT_LABELS.get,
                             horizontal=True, key="sort_by")

    shown = project_logs(logs, selected_user_id, category, sort_by)
    stats = dashboard_stats(project_logs(logs, selected_user_id), user)
    if stats is not None:
        _render_stats(stats)

    if selected_user_id == user.id:
        with st.expander("Add Design Log"):
            _render_log_form(service, None)

    st.divider()
    if not shown:
        st.info("No design logs to show.")
    for log in shown:
        with st.expander(f"**{log.title}** · {_format_timestamp(log.date)}"):
            _render_log_entry(service, log)

    if selected_user_id == user.id:
        _render_trash(service)


def _render_log_form(service, log):
    """Renders the add form, or the edit form when `log` is given."""
    user = service.current_user
    form_key = f"edit_log_{log.id}" if log else "add_log_form"
    candidates = linkable_logs(service.logs.logs, user, exclude_id=log.id if log else None)
    titles = {other.id: other.title for other in candidates}
    with st.form(form_key, clear_on_submit=log is None):
        title = st.text_input("Title", value=log.title if log else "")
        description = st.text_area("Description", value=log.description if log else "")
        log_date = st.date_input("Date", value=_parse_date(log.date) if log else datetime.date.today())
        category = st.text_input("Category (optional)", value=(log.category or "") if log else "")
        linked = st.multiselect("Linked logs", options=list(titles), format_func=titles.get,
                                default=[i for i in (log.linked_log_ids if log else []) if i in titles])
        uploaded = st.file_uploader("Image (optional)", type=["png", "jpg", "jpeg", "gif", "webp"])
        submitted = st.form_submit_button("Save Changes" if log else "Add Log")

    if submitted:
        if not title.strip():
            st.error("Title is required.")
            return
        log_data = {
            "title": title.strip(),
            "description": description,
            "date": log_date.isoformat(),
            "category": category.strip(),
            "linkedLogIds": linked,
        }
        if log is not None:
            log_data["id"] = log.id
        image = None
        if uploaded is not None:
            image = ImageUpload(uploaded.name, uploaded.getvalue(), uploaded.type or "application/octet-stream")
        ok, _ = _run(service.logs.save(log_data, image=image))
        if ok:
            st.rerun()


def _render_log_entry(service, log):
    user = service.current_user
    if log.category:
        st.caption(f"Category: {log.category}")
    st.write(log.description)
    if log.image_url:
        st.image(log.image_url)

    linked = service.logs.linked_logs(log.id)
    if linked:
        st.markdown("**Linked logs:** " + ", ".join(other.title for other in linked))

    st.markdown("##### Comments")
    _render_comments(log.comments)
    with st.form(f"comment_log_{log.id}", clear_on_submit=True):
        text = st.text_input("Add a comment")
        if st.form_submit_button("Comment"):
            ok, _ = _run(service.logs.add_comment(log.id, text))
            if ok:
                st.rerun()

    if user.is_admin or log.user_id == user.id:
        if st.toggle("Edit", key=f"editing_log_{log.id}"):
            _render_log_form(service, log)
        if st.button("Move to Trash", key=f"delete_log_{log.id}"):
            _run(service.logs.delete(log.id))
            st.rerun()


def _render_trash(service):
    deleted = trash(service.logs.logs, service.current_user)
    with st.expander(f"Trash ({len(deleted)})"):
        if not deleted:
            st.caption("The trash is empty.")
        for log in deleted:
            st.markdown(f"**{log.title}** · deleted {_format_timestamp(log.deleted_at)}")
            restore_col, delete_col = st.columns(2)
            if restore_col.button("Restore", key=f"restore_log_{log.id}"):
                _run(service.logs.restore(log.id))
                st.rerun()
            if delete_col.button("Delete Forever", key=f"purge_log_{log.id}", type="secondary"):
                _run(service.logs.permanently_delete(log.id))
                st.rerun()


# Wiki

def _render_wiki_tab(service):
    """Renders the searchable list of wiki pages with editing and comments."""
    user = service.current_user
    search_col, create_col = st.columns([3, 1])
    query = search_col.text_input("Search pages", key="wiki_search")
    if create_col.button("New Page", key="wiki_new_page", use_container_width=True):
        ok, page = _run(service.wiki.create_page(user))
        if ok:
            st.session_state.editing_page_id = page.id
            st.rerun()

    pages = service.wiki.search(query)
    if not pages:
        st.info("No wiki pages found.")
    for page in pages:
        label = f"**{page.title}** · {_format_timestamp(page.last_modified)}"
        with st.expander(label, expanded=st.session_state.get("editing_page_id") == page.id):
            can_manage = user.is_admin or page.created_by == user.id
            st.caption(f"Created by {page.created_by_name}" + (f" · {page.category}" if page.category else ""))
            if st.session_state.get("editing_page_id") == page.id:
                _render_page_editor(service, page)
            else:
                st.markdown(page.content)
                for image in page.images:
                    st.image(image)
                edit_col, delete_col = st.columns(2)
                if edit_col.button("Edit", key=f"edit_page_{page.id}"):
                    st.session_state.editing_page_id = page.id
                    st.rerun()
                if can_manage and delete_col.button("Delete", key=f"delete_page_{page.id}"):
                    _run(service.wiki.delete_page(page.id, user))
                    st.rerun()

            st.markdown("##### Comments")
            _render_comments(page.comments)
            with st.form(f"comment_page_{page.id}", clear_on_submit=True):
                text = st.text_input("Add a comment")
                if st.form_submit_button("Comment"):
                    ok, _ = _run(service.wiki.add_comment(page.id, user, text))
                    if ok:
                        st.rerun()


def _render_page_editor(service, page):
    with st.form(f"wiki_editor_{page.id}"):
        title = st.text_input("Title", value=page.title, key=f"page_title_{page.id}")
        category = st.text_input("Category", value=page.category)
        content = st.text_area("Content", value=page.content, height=300)
        removed = []
        for index, image in enumerate(page.images):
            image_col, remove_col = st.columns([3, 1])
            image_col.image(image, width=200)
            removed.append(remove_col.checkbox("Remove", key=f"remove_image_{page.id}_{index}"))
        uploaded = st.file_uploader("Add an image", type=["png", "jpg", "jpeg", "gif", "webp"])
        save_col, cancel_col = st.columns(2)
        saved = save_col.form_submit_button("Save Page")
        cancelled = cancel_col.form_submit_button("Cancel")
    if saved:
        updates = {
            "title": title,
            "category": category,
            "content": content,
            "images": [image for image, drop in zip(page.images, removed) if not drop],
        }
        image = None
        if uploaded is not None:
            image = ImageUpload(uploaded.name, uploaded.getvalue(), uploaded.type or "application/octet-stream")
        ok, _ = _run(service.wiki.save_page(page.id, updates, image=image))
        if ok:
            st.session_state.editing_page_id = None
            st.rerun()
    elif cancelled:
        st.session_state.editing_page_id = None
        st.rerun()


# Resources

def _render_resource(service, resource):
    user = service.current_user
    st.markdown(f"**[{resource.title}]({resource.url})**")
    if resource.description:
        st.write(resource.description)
    st.caption(f"Added by {resource.added_by} on {resource.added_date}"
               + (f" · {resource.category}" if resource.category else ""))
    if user is None or not (user.is_admin or resource.added_by_id == user.id):
        return
    if st.session_state.get("editing_resource_id") == resource.id:
        _render_resource_editor(service, resource)
        return
    edit_col, delete_col = st.columns(2)
    if edit_col.button("Edit", key=f"edit_resource_{resource.id}"):
        st.session_state.editing_resource_id = resource.id
        st.rerun()
    if delete_col.button("Delete", key=f"delete_resource_{resource.id}"):
        _run(service.resources.delete(resource.id, user))
        st.rerun()


def _render_resource_editor(service, resource):
    with st.form(f"edit_resource_form_{resource.id}"):
        title = st.text_input("Title", value=resource.title, key=f"resource_title_{resource.id}")
        url = st.text_input("URL", value=resource.url)
        description = st.text_area("Description", value=resource.description)
        category = st.text_input("Category", value=resource.category)
        save_col, cancel_col = st.columns(2)
        saved = save_col.form_submit_button("Save Changes")
        cancelled = cancel_col.form_submit_button("Cancel")
    if saved:
        updates = {"title": title, "url": url, "description": description, "category": category}
        ok, _ = _run(service.resources.update(resource.id, service.current_user, updates))
        if ok:
            st.session_state.editing_resource_id = None
            st.rerun()
    elif cancelled:
        st.session_state.editing_resource_id = None
        st.rerun()


def _render_resources_tab(service):
    """Renders the team and personal resource sections and the add form."""
    with st.expander("Add Resource"):
        with st.form("add_resource_form", clear_on_submit=True):
            title = st.text_input("Title")
            url = st.text_input("URL")
            description = st.text_area("Description")
            category = st.text_input("Category")
            if st.form_submit_button("Add Resource"):
                resource_data = {"title": title, "url": url, "description": description, "category": category}
                ok, _ = _run(service.resources.add(service.current_user, resource_data))
                if ok:
                    st.rerun()

    team, personal = service.resources.sections()
    st.markdown("### Team Resources")
    if not team:
        st.caption("No team resources yet.")
    for resource in team:
        _render_resource(service, resource)
    st.markdown("### Shared by the Team")
    if not personal:
        st.caption("No resources shared yet.")
    for resource in personal:
        _render_resource(service, resource)


# Administration

def _toggle_access(service, user_id, tab, key):
    enabled = st.session_state[key]
    ok, _ = _run(service.session.set_access(user_id, tab, enabled))
    if not ok:
        st.session_state[key] = not enabled


def _render_user_management_entry(service, user):
    """Renders one user in the admin panel: PIN reset, access toggles and deletion."""
    st.caption(f"ID: {user.id}" + ("" if user.has_pin or not user.requires_pin else " · no PIN set"))
    if not user.is_admin:
        cols = st.columns(len(TABS))
        for col, tab in zip(cols, TABS):
            key = f"access_{user.id}_{tab}"
            col.checkbox(TAB_LABELS[tab], value=user.can_access(tab), key=key,
                         on_change=_toggle_access, args=(service, user.id, tab, key))

    with st.form(f"reset_pin_{user.id}", clear_on_submit=True):
        new_pin = st.text_input("New PIN", type="password")
        if st.form_submit_button("Reset PIN"):
            if not new_pin.isdigit():
                st.error("The PIN must be numeric.")
            else:
                _run(service.session.update_other_user_pin(user.id, new_pin))

    if not user.is_admin and st.button("Delete User", key=f"delete_user_{user.id}", type="secondary"):
        ok, _ = _run(service.session.delete_user(user.id))
        if ok:
            st.rerun()


def _render_admin_panel(service):
    st.subheader("Team Members")
    for user in service.session.users:
        with st.expander(f"**{user.name}**" + (f" ({user.role})" if user.role else "")):
            _render_user_management_entry(service, user)

    st.divider()
    with st.expander("Add a New User"):
        with st.form("create_user_form", clear_on_submit=True):
            name = st.text_input("Name")
            role = st.text_input("Role")
            if st.form_submit_button("Add User"):
                if not name.strip():
                    st.error("Name is required.")
                else:
                    ok, _ = _run(service.session.create_user(name, role))
                    if ok:
                        st.rerun()


def _render_settings(service):
    st.subheader("Change PIN")
    with st.form("change_pin_form", clear_on_submit=True):
        new_pin = st.text_input("New PIN", type="password")
        confirm_pin = st.text_input("Confirm PIN", type="password")
        if st.form_submit_button("Update PIN"):
            if not new_pin or new_pin != confirm_pin:
                st.error("The PINs do not match.")
            elif not new_pin.isdigit():
                st.error("The PIN must be numeric.")
            else:
                _run(service.session.update_own_pin(new_pin))
