"""
Configuration settings for EventCount.
All constants and configuration values centralized here.
"""

from enum import Enum
from pathlib import Path
import os

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("EVENTCOUNT_DATA_DIR", PROJECT_ROOT / "data"))
LOGS_DIR = Path(os.getenv("EVENTCOUNT_LOGS_DIR", PROJECT_ROOT / "logs"))
DB_PATH = DATA_DIR / "eventcount.db"
JOBS_DB_PATH = DATA_DIR / "jobs.db"
JOBS_DB_URL = f"sqlite:///{JOBS_DB_PATH}"

# Ensure directories exist
DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

# Persistence
SAVE_KEY = "SavedEvents"  # Single key holding the whole encoded collection

# Countdown display
TICK_INTERVAL = 1.0  # Seconds between refreshes of the displayed "now"

# Event defaults
DEFAULT_COLOR_NAME = "Blue"
DEFAULT_ICON_NAME = "calendar"

# Reminder content
REMINDER_TITLE = "Event Countdown"
REMINDER_BODY_TEMPLATE = "{title} is starting now!"

# Scheduler Configuration
SCHEDULER_MISFIRE_GRACE_TIME = 300  # Seconds (5 minutes)
SCHEDULER_COALESCE = True  # Merge multiple pending executions
SCHEDULER_MAX_INSTANCES = 1  # A reminder fires once
SCHEDULER_NAME = "eventcount"  # Stored with each job to route delivery

# First-run sample events: (title, days from today, hour, minute, color, icon)
SAMPLE_EVENTS = [
    ("Meeting with Team", 1, 14, 30, "Blue", "briefcase"),
    ("Movie Night", 3, 20, 0, "Purple", "film"),
    ("Birthday Party", 7, 19, 0, "Pink", "birthday.cake"),
]

# Logging
LOGGER_NAME = "eventcount"  # Parent of every module logger
LOG_FILE_NAME = "eventcount.log"
LOG_MAX_BYTES = 10 * 1024 * 1024  # Rotate at 10MB
LOG_BACKUP_COUNT = 5
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# System Configuration
DEBUG_MODE = os.getenv("DEBUG", "false").lower() == "true"


class StoreEvent(Enum):
    """Event bus topics published by the event store."""
    EVENTS_CHANGED = "events_changed"
    EVENT_ADDED = "event_added"
    EVENT_UPDATED = "event_updated"
    EVENT_DELETED = "event_deleted"
    REMINDER_FIRED = "reminder_fired"
    TICK = "tick"
