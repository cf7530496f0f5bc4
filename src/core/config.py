"""
Configuration constants and environment setup.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# =============================================================================
# PATHS
# =============================================================================

PROJECT_ROOT = Path(__file__).parent.parent.parent
DATA_DIR = PROJECT_ROOT / "data"
CACHE_DIR = DATA_DIR / "cache"
DB_PATH = DATA_DIR / "db" / "absence-tracker.db"
OUTPUT_DIR = PROJECT_ROOT / "output"

ABSENCE_EVENTS_PATH = DATA_DIR / "absenteeismRecords.json"
ABSENCE_LOG_CACHE_PATH = CACHE_DIR / "absenteeism-sheets-cache.json"
ABSENCE_API_CACHE_PATH = CACHE_DIR / "absenteeism-sync-cache.json"
ABSENCE_TAB_PATH = DATA_DIR / "absenteeismTab.json"
TEAM_MEMBERS_PATH = DATA_DIR / "teamMembers.json"
LEAVE_TRACKER_PATH = DATA_DIR / "leaveTracker.json"
PTO_PATH = DATA_DIR / "ptoUpdates.json"

# =============================================================================
# ABSENCE GRID LAYOUT
# =============================================================================

MONTH_NAMES = [
    "JANUARY", "FEBRUARY", "MARCH", "APRIL", "MAY", "JUNE",
    "JULY", "AUGUST", "SEPTEMBER", "OCTOBER", "NOVEMBER", "DECEMBER",
]

# A data row whose first cell equals one of these ends the month block
LEGEND_KEYWORDS = {"ATTENDED", "SICK", "PTO", "HOLIDAY", "OFFBOARDED", "EMERGENCY", "FUNERAL"}

ATTENDED_STATUS = "attended"
MAX_DAY_OF_MONTH = 31

# Ordered (substrings, type value) pairs, first match wins
ABSENCE_TYPE_RULES = [
    (("sick",), "Sick"),
    (("pto", "leave"), "PTO"),
    (("holiday",), "Holiday"),
    (("no show", "no call"), "No Show/No Call"),
    (("offboard",), "Offboarded"),
    (("emergency",), "Emergency"),
    (("funeral",), "Funeral"),
]

AUTHORIZED_MARKERS = ("pto", "sick", "holiday", "emergency", "funeral")
UNAUTHORIZED_MARKERS = ("no show", "no call", "offboard")

# =============================================================================
# RECORD NORMALIZATION
# =============================================================================

DEFAULT_ABSENTEE_NAME = "Unknown"
DEFAULT_CLIENT = "TBD"
DEFAULT_CSP = "N/A"
DEFAULT_COUNTRY = "Zimbabwe"
RECORD_SOURCE = "google-sheets"

# 17 positional columns, A through Q
ABSENCE_LOG_COLUMNS = "A2:Q"

# =============================================================================
# SUMMARIES & REPORTS
# =============================================================================

RECENT_ABSENCES_LIMIT = 10
SUMMARY_CATEGORIES = ["sick", "pto", "holiday", "no_show", "emergency", "funeral", "other"]

SUMMARY_HEADERS = [
    "Employee", "Total", "Authorised", "Unauthorised",
    "Sick", "PTO", "Holiday", "No Show", "Emergency", "Funeral", "Other",
]
DETAIL_HEADERS = ["Employee", "Date", "Month", "Day", "Status", "Type", "Authorised"]

# =============================================================================
# GOOGLE SHEETS (from environment)
# =============================================================================

SHEETS_API_BASE_URL = "https://sheets.googleapis.com/v4/spreadsheets"
GOOGLE_SHEETS_API_KEY = os.environ.get("GOOGLE_SHEETS_API_KEY", "")
ABSENTEEISM_SPREADSHEET_ID = os.environ.get("ABSENTEEISM_SPREADSHEET_ID", "")
ABSENTEEISM_GRID_RANGE = os.environ.get("ABSENTEEISM_GRID_RANGE", "Absenteesim tracker !A1:AH1000")
ABSENTEEISM_SHEET_NAME = os.environ.get("ABSENTEEISM_SHEET_NAME", "Absenteeism")
ABSENTEEISM_API_URL = os.environ.get("ABSENTEEISM_API_URL", "")
SHEETS_TIMEOUT_SECONDS = float(os.environ.get("SHEETS_TIMEOUT_SECONDS", "30"))

# Sheets carry no year of their own; unset means "current year at parse time"
GRID_YEAR = int(os.environ["GRID_YEAR"]) if os.environ.get("GRID_YEAR") else None

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# =============================================================================
# API CONFIGURATION
# =============================================================================

ABSENCE_API_KEY = os.environ.get("ABSENCE_API_KEY", "")
API_HOST = os.environ.get("API_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("API_PORT", "8000"))
API_DEBUG = os.environ.get("API_DEBUG", "false").lower() == "true"
MAX_UPLOAD_SIZE_MB = int(os.environ.get("MAX_UPLOAD_SIZE_MB", "20"))
MAX_UPLOAD_SIZE_BYTES = MAX_UPLOAD_SIZE_MB * 1024 * 1024
API_VERSION = "1.0.0"
