# This module defines notification engine settings as module-level constants.
# Values come from the environment (optionally via a .env file) so the same
# code can run against local, staging and production Supabase projects.

import os

from dotenv import load_dotenv

load_dotenv()

# Minutes added to an article's release time for "delay" mode notifications.
DEFAULT_HOLD_DELAY_MINUTES = 5

# Valid values for notification header fields.
SEND_MODES = ("immediate", "delay", "timed")
NOTIFICATION_STATUSES = ("draft", "pending", "sending", "sent", "failed", "cancelled")
# Final statuses a delivery can end in; anything else a method reports is "failed".
DELIVERY_STATUSES = ("sent", "failed")
CANCELLABLE_STATUSES = ("draft", "pending")

# Placeholder in recipient/method settings replaced with the year id at send time.
YEAR_PLACEHOLDER = "{V_[yearid]}"

# Table names used by the notification store. Any entry can be overridden with
# a NEWSAGENT_TABLE_<KEY> environment variable, e.g. NEWSAGENT_TABLE_ARTICLES.
TABLES = {
    "article_notify": "article_notify",
    "article_notify_rms": "article_notify_rms",
    "notify_matrix": "notify_matrix",
    "notify_matrix_cfg": "notify_matrix_cfg",
    "notify_recipients": "notify_recipients",
    "notify_methods": "notify_methods",
    "articles": "articles",
    "users": "users",
    "email_data": "notify_email_data",
}

for _key in TABLES:
    _override = os.getenv(f"NEWSAGENT_TABLE_{_key.upper()}")
    if _override:
        TABLES[_key] = _override


def get_hold_delay_minutes() -> int:
    """Hold delay for "delay" mode notifications, in minutes."""
    raw = os.getenv("NOTIFICATION_HOLD_DELAY")
    if not raw:
        return DEFAULT_HOLD_DELAY_MINUTES
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_HOLD_DELAY_MINUTES
    return value if value >= 0 else DEFAULT_HOLD_DELAY_MINUTES


def get_from_email() -> str:
    return os.getenv("NOTIFICATION_FROM_EMAIL", "newsagent@example.com")


def get_frontend_base_url() -> str:
    return os.getenv("FRONTEND_BASE_URL", "http://localhost:8000").rstrip("/")
