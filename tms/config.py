import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


LOG_LEVEL = os.getenv("TMS_LOG_LEVEL", "INFO").upper()

# Tasks created without an end time run this long
DEFAULT_TASK_MINUTES = int(os.getenv("TMS_DEFAULT_TASK_MINUTES", "30"))

# Conflict queue paging
CONFLICT_LIST_LIMIT = int(os.getenv("TMS_CONFLICT_LIST_LIMIT", "25"))
CONFLICT_LIST_MAX = int(os.getenv("TMS_CONFLICT_LIST_MAX", "100"))

# Secretary inbox paging
NOTIFICATION_LIST_LIMIT = int(os.getenv("TMS_NOTIFICATION_LIST_LIMIT", "20"))
NOTIFICATION_LIST_MAX = int(os.getenv("TMS_NOTIFICATION_LIST_MAX", "100"))

# Outgoing mail. Delivery itself is handled outside this service; when disabled
# nothing is handed to the mailer at all.
MAIL_ENABLED = _env_bool("TMS_MAIL_ENABLED", True)
MAIL_SENDER = os.getenv("TMS_MAIL_SENDER", "TMS Meeting Scheduler <noreply@tms.local>")
