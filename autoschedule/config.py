"""
Runtime configuration for the auto-scheduler.
Values come from the environment (or a .env file) with sensible defaults.
"""

import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./autoschedule.db")

# Working hours used when a user has no schedule at all
DEFAULT_WORKING_HOURS_START = int(os.getenv("AUTOSCHEDULE_WORKING_HOURS_START", "9"))
DEFAULT_WORKING_HOURS_END = int(os.getenv("AUTOSCHEDULE_WORKING_HOURS_END", "22"))

BLOCK_DURATION_MINUTES = int(os.getenv("AUTOSCHEDULE_BLOCK_MINUTES", "60"))
DEFAULT_HORIZON_DAYS = int(os.getenv("AUTOSCHEDULE_HORIZON_DAYS", "14"))
GAP_MINUTES = int(os.getenv("AUTOSCHEDULE_GAP_MINUTES", "5"))
SKIP_WEEKENDS = os.getenv("AUTOSCHEDULE_SKIP_WEEKENDS", "false").lower() in ("1", "true", "yes")

# Reconciliation loop timing
DEBOUNCE_SECONDS = float(os.getenv("AUTOSCHEDULE_DEBOUNCE_SECONDS", "1"))
THROTTLE_SECONDS = float(os.getenv("AUTOSCHEDULE_THROTTLE_SECONDS", "5"))
