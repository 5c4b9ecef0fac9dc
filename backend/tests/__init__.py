"""Test package initialization."""

import os

# Keep tests independent of any local .env overrides
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SOCRATA_APP_TOKEN", "")
os.environ.setdefault("SOCRATA_MAX_ATTEMPTS", "1")
