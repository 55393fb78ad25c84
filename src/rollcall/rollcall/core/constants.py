"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_EDIT_WINDOW_DAYS = 7
DEFAULT_TIMEZONE = "Asia/Kolkata"
DEFAULT_HISTORY_LIMIT = 50
DEFAULT_AUDIT_FEED_LIMIT = 200
MAX_NOTES_LENGTH = 1000

# Two semesters per year.
YEAR_SEMESTERS = {1: (1, 2), 2: (3, 4), 3: (5, 6), 4: (7, 8)}

COMPOSITE_KEY_SEPARATOR = "_"
