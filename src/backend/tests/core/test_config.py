"""
Tests for application settings.
"""

import pytest
from pydantic import ValidationError

from core.config import Settings


@pytest.mark.unit
class TestSettings:
    """Tests for Settings validation."""

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.LEDGER_BACKEND == "memory"
        assert settings.EXPORT_FILENAME_PREFIX == "Election_Details"

    def test_http_backend_requires_url(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, LEDGER_BACKEND="http", LEDGER_URL=None)

    def test_unknown_backend(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, LEDGER_BACKEND="sqlite")

    def test_backend_normalized(self):
        settings = Settings(_env_file=None, LEDGER_BACKEND=" HTTP ", LEDGER_URL="http://ledger.test/rpc")
        assert settings.LEDGER_BACKEND == "http"

    def test_cors_origins_list(self):
        settings = Settings(_env_file=None, CORS_ORIGINS="http://a.test, http://b.test")
        assert settings.cors_origins_list == ["http://a.test", "http://b.test"]

    def test_cors_origins_json_list(self):
        settings = Settings(_env_file=None, CORS_ORIGINS='["http://a.test", "http://b.test"]')
        assert settings.cors_origins_list == ["http://a.test", "http://b.test"]
