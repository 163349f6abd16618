"""
Centralized configuration for Rewind

All environment variables and defaults are defined here.
Import from this module instead of hardcoding values.

NOTE: Credentials are passed via docker-compose.yml environment variables.
This file only provides fallback defaults for local development.
"""

import os

# =============================================================================
# Temporal Configuration
# =============================================================================

TEMPORAL_HOST = os.getenv("TEMPORAL_HOST", "localhost:7233")
TEMPORAL_NAMESPACE = os.getenv("TEMPORAL_NAMESPACE", "default")

# One task queue per stage so each gets its own worker limits
REWIND_TASK_QUEUE = os.getenv("REWIND_TASK_QUEUE", "rewind")
LIST_TASK_QUEUE = os.getenv("LIST_TASK_QUEUE", "scan-list")
FETCH_TASK_QUEUE = os.getenv("FETCH_TASK_QUEUE", "scan-fetch")

# =============================================================================
# Database Configuration
# Credentials passed via MONGODB_URI env var from docker-compose.yml
# =============================================================================

MONGODB_URI = os.getenv("MONGODB_URI") or os.getenv("MONGODB_URL", "mongodb://localhost:27017/")
MONGODB_DB = os.getenv("MONGODB_DB", "rewind")
PROGRESS_COLLECTION = "progress_kv"

# =============================================================================
# MinIO S3-Compatible Storage Configuration
# =============================================================================

S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL", "http://localhost:9000")
S3_ACCESS_KEY = os.getenv("S3_ACCESS_KEY", "")  # Required - no default
S3_SECRET_KEY = os.getenv("S3_SECRET_KEY", "")  # Required - no default
S3_BUCKET_NAME = os.getenv("S3_BUCKET_NAME", "riftcoach")
S3_REGION = os.getenv("S3_REGION", "eu-west-1")

# =============================================================================
# Riot API
# =============================================================================

RIOT_API_KEY = os.getenv("RIOT_API_KEY", "")
RIOT_TIMEOUT_SECONDS = float(os.getenv("RIOT_TIMEOUT_SECONDS", "15"))
RIOT_USER_AGENT = os.getenv("RIOT_USER_AGENT", "rewind-crawler/1.0")

# =============================================================================
# Crawl Configuration
# =============================================================================

# Progress record, open counters and job mapping all expire after 7 days idle
REWIND_TTL_SECONDS = 7 * 86400

# Match-V5 caps match id pages at 100
PAGE_SIZE = 100

# Pause between match and timeline calls to smooth upstream load
TIMELINE_DELAY_SECONDS = float(os.getenv("TIMELINE_DELAY_SECONDS", "1.0"))

# List stage is serialized system-wide (strict upstream quota)
LIST_MAX_CONCURRENT = 1
LIST_MAX_PER_SECOND = 1.0

FETCH_MAX_CONCURRENT = int(os.getenv("FETCH_MAX_CONCURRENT", "2"))
FETCH_MAX_PER_SECOND = float(os.getenv("FETCH_MAX_PER_SECOND", "5"))

REWIND_MAX_PER_SECOND = 10.0

# Per-job retry policy (attempts include the first try)
JOB_MAX_ATTEMPTS = int(os.getenv("JOB_MAX_ATTEMPTS", "3"))
JOB_INITIAL_BACKOFF_SECONDS = 2.0
JOB_BACKOFF_COEFFICIENT = 2.0

# Default queue types: FLEX, SOLO, NORMALS
ALLOWED_QUEUE_IDS = (440, 420, 400)
