"""Tests for settings parsing."""

import pytest
from pydantic import ValidationError

from core.config import Settings


@pytest.mark.unit
class TestSettings:
    def test_cors_origins_comma_separated(self):
        settings = Settings(CORS_ORIGINS="http://a.test, http://b.test,")
        assert settings.cors_origins_list == ["http://a.test", "http://b.test"]

    def test_cors_origins_json(self):
        settings = Settings(CORS_ORIGINS='["http://a.test"]')
        assert settings.cors_origins_list == ["http://a.test"]

    def test_cosmos_enabled_by_connection_string(self):
        assert Settings(AZURE_COSMOS_ENDPOINT="", AZURE_COSMOS_CONNECTION_STRING="").cosmos_enabled is False
        assert Settings(AZURE_COSMOS_CONNECTION_STRING="AccountEndpoint=x;AccountKey=y;").cosmos_enabled is True

    @pytest.mark.parametrize("field", ["DEFAULT_FUNDING_THRESHOLD", "VOTE_RETRY_MAX_ATTEMPTS"])
    def test_rejects_non_positive(self, field):
        with pytest.raises(ValidationError):
            Settings(**{field: 0})
