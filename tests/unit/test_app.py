from __future__ import annotations

from trustwork.api.main import allowed_origins
from trustwork.core.config import Settings


def test_deployed_environments_only_allow_configured_origins() -> None:
    settings = Settings(APP_ENV="production", CORS_ORIGINS=["https://app.trustwork.example"])

    assert allowed_origins(settings) == ["https://app.trustwork.example"]


def test_local_environment_allows_any_origin() -> None:
    assert allowed_origins(Settings(APP_ENV="local")) == ["*"]
