"""Centralized configuration for fitutils."""

import os

# Worker pool
DEFAULT_MAX_WORKERS = int(
    os.environ.get("FITUTILS_WORKERS", min(8, os.cpu_count() or 1))
)

# Rename configuration
DEFAULT_RENAME_PATTERN = os.environ.get(
    "FITUTILS_PATTERN",
    "%year-%month-%day %hour.%minute.%second %activity"
)
MAX_RENAME_ATTEMPTS = int(os.environ.get("FITUTILS_MAX_RENAME_ATTEMPTS", 10000))

# Logging
DEFAULT_DEBUG_LEVEL = int(os.environ.get("FITUTILS_DEBUG", 0))
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Export configuration
STDOUT_SENTINEL = "-"
SESSION_SUFFIX = "_session"
LAPS_SUFFIX = "_laps"
RECORDS_SUFFIX = "_records"
WAYPOINTS_SUFFIX = "_waypoints"

# Written into the output directory (or the working directory) by --json-array
JSON_ARRAY_FILENAME = "activities.json"
