"""
Configuration for the facequiz bot.

Contains:
- Storage configuration (where learned knowledge lives)
- Round timing (poll intervals, outcome timeout)
- Identity hashing parameters
- Reporting cadence

All values are read from environment variables with sensible defaults.
The timing defaults match the browser bot this project grew out of:
a 100ms presentation poll and a 10ms outcome check.
"""

import os

# =============================================================================
# Storage Configuration
# =============================================================================

DATA_DIR = os.getenv("DATA_DIR", "data")

# One fixed, versioned store. Bump the suffix together with
# persistence.SCHEMA_VERSION when the document shape changes.
STORE_FILENAME = os.getenv("STORE_FILENAME", "face_game_data_v4.json")
STORE_PATH = os.path.join(DATA_DIR, STORE_FILENAME)

# =============================================================================
# Host Configuration
# =============================================================================

QUIZ_URL = os.getenv("QUIZ_URL", "")
HEADLESS = os.getenv("HEADLESS", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# =============================================================================
# Round Timing (seconds)
# =============================================================================

# Learning mode: how often the presentation source is polled
POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", "0.1"))

# How often the outcome surface is checked while a guess is pending
OUTCOME_POLL_INTERVAL = float(os.getenv("OUTCOME_POLL_INTERVAL", "0.01"))

# Pending learning is discarded after this long without a revealed answer.
# The quiz reveals the right answer almost instantly after a click, so a
# few seconds covers slow renders without stalling the loop.
OUTCOME_TIMEOUT = float(os.getenv("OUTCOME_TIMEOUT", "5.0"))

# =============================================================================
# Identity Hashing
# =============================================================================

# Images are downsampled to GRID x GRID cells, one hex digit per cell
HASH_GRID_SIZE = int(os.getenv("HASH_GRID_SIZE", "6"))

# Last-resort key: this many trailing characters of the source locator
FALLBACK_SUFFIX_LENGTH = int(os.getenv("FALLBACK_SUFFIX_LENGTH", "16"))

IMAGE_FETCH_TIMEOUT = float(os.getenv("IMAGE_FETCH_TIMEOUT", "5.0"))

# =============================================================================
# Reporting
# =============================================================================

DETAILED_PROGRESS_EVERY = int(os.getenv("DETAILED_PROGRESS_EVERY", "10"))
GUESSING_REPORT_EVERY = int(os.getenv("GUESSING_REPORT_EVERY", "50"))
