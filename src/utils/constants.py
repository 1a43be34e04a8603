"""
Application constants to replace magic numbers throughout the codebase.
"""

# API timeouts (seconds)
API_TIMEOUT_SHORT = 5

# Activity feed window (days)
DEFAULT_HISTORY_DAYS = 30
MAX_HISTORY_DAYS = 365
