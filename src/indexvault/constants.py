"""Magic number constants used throughout the IndexVault codebase.

This module centralizes numeric values and names that would otherwise be
scattered literals.
"""

# Archive defaults
DEFAULT_ARCHIVE_PATH = "_all.tar.gz"
ALL_INDICES = "_all"

# Reserved packet keys
SETTINGS_TYPE = "_settings"
MAPPING_ID = "_mapping"
ALIAS_ID = "_alias"
SOURCE_FIELD = "_source"
DEFAULT_TYPE = "_doc"

# Scroll defaults
DEFAULT_SCROLL_TIMEOUT = "1m"
DEFAULT_SCROLL_SIZE = 100
MAX_SCROLL_SIZE = 10000

# Worker pool
DEFAULT_WORKERS = 4
MAX_WORKERS = 32

# Summaries of finished jobs kept for a later wait()
FINISHED_SUMMARY_LIMIT = 100

# Retry and timeout constants
DEFAULT_MAX_RETRIES = 5
DEFAULT_RETRY_MIN_WAIT_SECONDS = 1
DEFAULT_RETRY_MAX_WAIT_SECONDS = 30
DEFAULT_CLUSTER_TIMEOUT_SECONDS = 120
SQLITE_BUSY_TIMEOUT_SECONDS = 60

# HTTP statuses treated as transient
TRANSIENT_HTTP_STATUSES = frozenset({429, 502, 503, 504})

# Byte rate window for the progress watcher
RATE_WINDOW_SECONDS = 5.0

# Percentage calculations
PERCENTAGE_MULTIPLIER = 100.0
PERCENTAGE_MAX = 100.0
