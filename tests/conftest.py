"""Root test fixtures shared across all test types.

Database-specific fixtures are in tests/integration/conftest.py.
"""

import os

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DATABASE_SSL_MODE", "disable")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-with-at-least-32-characters")
# No Resend key: notification emails are logged, not sent
os.environ.setdefault("RESEND_API_KEY", "")

# ruff: noqa: E402 - Imports must be after env var setup
from src.marketplace.core.config import get_settings

# Clear settings cache to ensure test environment variables are picked up
get_settings.cache_clear()
