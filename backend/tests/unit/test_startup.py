"""
Unit Tests — application lifespan
═════════════════════════════════
  • SESSION_SECRET — built-in default refused in production, warned elsewhere
"""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest

from thunderdome.core.config import DEFAULT_SESSION_SECRET, settings
from thunderdome.main import app, lifespan


@pytest.mark.unit
@pytest.mark.auth
class TestSessionSecretGuard:

    async def test_default_secret_refused_in_production(self):
        with patch.object(settings, "session_secret", DEFAULT_SESSION_SECRET), \
             patch.object(settings, "app_env", "production"):
            with pytest.raises(RuntimeError, match="SESSION_SECRET"):
                async with lifespan(app):
                    pass

    async def test_default_secret_warns_in_development(self, caplog):
        with patch.object(settings, "session_secret", DEFAULT_SESSION_SECRET), \
             patch.object(settings, "app_env", "development"), \
             caplog.at_level(logging.WARNING, logger="thunderdome.main"):
            async with lifespan(app):
                pass

        assert any("SESSION_SECRET" in r.getMessage() for r in caplog.records)

    async def test_custom_secret_starts_quietly(self, caplog):
        with patch.object(settings, "session_secret", "a-deployment-specific-secret-of-40-chars"), \
             patch.object(settings, "app_env", "production"), \
             caplog.at_level(logging.WARNING, logger="thunderdome.main"):
            async with lifespan(app):
                pass

        assert not any("SESSION_SECRET" in r.getMessage() for r in caplog.records)
