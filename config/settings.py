"""
Configuration Settings for Bluesky Comments

This module centralizes all configuration settings for the Bluesky Comments
application, including environment variables, service endpoints, and the
timing constants of the thread synchronization engine.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Determine the application root directory
APP_ROOT = Path(__file__).resolve().parent.parent

# Load environment variables from .env file
load_dotenv(dotenv_path=os.path.join(APP_ROOT, '.env'))

# AT Protocol (BlueSky) Authentication
# Both unset means the thread is read anonymously.
AT_PROTOCOL_USERNAME = os.getenv("AT_PROTOCOL_USERNAME")
AT_PROTOCOL_PASSWORD = os.getenv("AT_PROTOCOL_PASSWORD")

# =============================================================================
# Service Endpoints
# =============================================================================

BLUESKY_SERVICE_URL = os.getenv("BLUESKY_SERVICE_URL", "https://bsky.social")
BLUESKY_PUBLIC_API_URL = os.getenv("BLUESKY_PUBLIC_API_URL", "https://public.api.bsky.app")
BLUESKY_WEB_URL = os.getenv("BLUESKY_WEB_URL", "https://bsky.app")

# Post identifiers
AT_URI_SCHEME = "at"
POST_COLLECTION = "app.bsky.feed.post"
BLOCK_DIRECTIVE_PATTERN = r"{{bluesky:(.*?)}}"

# =============================================================================
# Synchronization Settings
# =============================================================================

POLL_INTERVAL_SECONDS = float(os.getenv("POLL_INTERVAL_SECONDS", "30"))    # Background polling period
FETCH_COOLDOWN_SECONDS = float(os.getenv("FETCH_COOLDOWN_SECONDS", "5"))   # Min gap between background fetches
FETCH_TIMEOUT_SECONDS = float(os.getenv("FETCH_TIMEOUT_SECONDS", "15"))    # Per-fetch timeout
THREAD_FETCH_DEPTH = int(os.getenv("THREAD_FETCH_DEPTH", "10"))            # Reply depth requested from the service

# =============================================================================
# View Settings
# =============================================================================

REPLY_PAGE_SIZE = 3                  # Top-level replies revealed per "show more"
MEDIA_GRID_COLUMNS = 2               # Columns used when a post carries several images

# =============================================================================
# Reply Settings
# =============================================================================

MAX_REPLY_LENGTH = 300               # Bluesky post length limit
