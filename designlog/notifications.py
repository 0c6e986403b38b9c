"""
User-facing notifications raised by the managers.

The managers report outcomes ("Design log moved to trash", "Failed to add comment")
through a `Notifier` rather than talking to the UI directly. The Streamlit app plugs
`st.toast` in as the sink; tests read the recorded history.
"""
# designlog/notifications.py

import logging
from collections import deque

logger = logging.getLogger(__name__)

SUCCESS = "success"
INFO = "info"
ERROR = "error"

HISTORY_SIZE = 50


class Notification:
    def __init__(self, level, message):
        self.level = level
        self.message = message

    def __repr__(self):
        return f"Notification({self.level!r}, {self.message!r})"


class Notifier:
    """Records notifications and forwards them to an optional sink.

    Args:
        sink (callable, optional): Called as `sink(level, message)` for each notification.
    """
    def __init__(self, sink=None):
        self.sink = sink
        self.history = deque(maxlen=HISTORY_SIZE)

    def notify(self, level, message):
        self.history.append(Notification(level, message))
        log_level = logging.WARNING if level == ERROR else logging.INFO
        logger.log(log_level, "[%s] %s", level, message)
        if self.sink is not None:
            self.sink(level, message)

    def success(self, message):
        self.notify(SUCCESS, message)

    def info(self, message):
        self.notify(INFO, message)

    def error(self, message):
        self.notify(ERROR, message)

    def messages(self, level=None) -> list:
        """Returns the recorded messages, oldest first, optionally for one level."""
        return [n.message for n in self.history if level is None or n.level == level]

    def drain(self) -> list:
        """Returns and clears the recorded notifications."""
        drained = list(self.history)
        self.history.clear()
        return drained
