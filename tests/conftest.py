"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os

# Session tokens are signed with this key; set before taskcred imports it.
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("TASKCRED_STORAGE", "memory")

# Re-export all fixtures from fixtures modules
from tests.fixtures.api_client import *  # noqa: E402, F401, F403
from tests.fixtures.domain_objects import *  # noqa: E402, F401, F403
from tests.fixtures.mocks import *  # noqa: E402, F401, F403
