"""
This is the main entry point for the Design Log Streamlit application.

This script handles the following key responsibilities:
- Sets the overall page configuration for the Streamlit app and configures logging.
- Builds the API configuration once, from Streamlit secrets with environment overrides.
- Keeps one `DashboardService` per browser session, so identities never leak between visitors.
- Routes the visitor to the login screen or the dashboard based on their login status.
"""
# main.py

import logging
import os

import streamlit as st

import gui
from designlog.config import ENV_BASE_URL, ENV_LOG_LEVEL, ENV_TIMEOUT, ENV_TOKEN, ApiConfig
from designlog.errors import ConfigurationError
from designlog.notifications import Notifier
from designlog.service import DashboardService

CONFIG_KEYS = (ENV_BASE_URL, ENV_TOKEN, ENV_TIMEOUT, ENV_LOG_LEVEL)

# Set the basic configuration for the Streamlit page.
st.set_page_config(
    page_title="Design Log",
    layout="wide"
)


@st.cache_resource
def get_api_config():
    """
    Builds the API configuration shared by every session.

    Values from `.streamlit/secrets.toml` take precedence; the `DESIGNLOG_*`
    environment variables fill in whatever the secrets leave out.

    Returns:
        ApiConfig: The validated connection settings.
    """
    values = {key: os.environ[key] for key in CONFIG_KEYS if key in os.environ}
    try:
        values.update({key: st.secrets[key] for key in CONFIG_KEYS if key in st.secrets})
    except FileNotFoundError:
        pass
    config = ApiConfig.from_mapping(values)
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return config


try:
    api_config = get_api_config()
except ConfigurationError as exc:
    st.error(f"The dashboard is not configured: {exc.message}")
    st.stop()

# Session State Management
# Each browser session gets its own service, holding its own identity and collections.
if 'service' not in st.session_state:
    st.session_state.service = DashboardService(api_config, notifier=Notifier(sink=gui.toast_sink))

service = st.session_state.service

# Main App Router
if service.current_user is not None:
    gui.show_main_app(service)
else:
    gui.show_login_screen(service)
