"""Shared fixtures: settings isolated from the environment and a mocked HTTP transport."""

import httpx
import pytest

from github_bump_client.api import GitHubAPI
from github_bump_client.models import Credentials
from github_bump_client.settings import Settings

_ENV_VARS = (
    "HOMEBREW_GITHUB_API_TOKEN",
    "GITHUB_TOKEN",
    "HOMEBREW_NO_GITHUB_API",
    "HOMEBREW_TEST_BOT_AUTOBUMP",
    "GITHUB_REPOSITORY_OWNER",
)


@pytest.fixture
def settings(tmp_path, monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return Settings(
        _env_file=None,
        github_token="test-token",
        cache_dir=tmp_path / "cache",
        use_credential_helper=False,
        fork_poll_interval=0.0,
        fork_poll_max_attempts=5,
    )


@pytest.fixture
def make_api(settings):
    """Build a GitHubAPI whose requests are answered by `handler(request)`."""

    def _make(handler, credentials=None, settings_overrides=None):
        s = settings.model_copy(update=settings_overrides or {})
        creds = credentials if credentials is not None else Credentials.env_token("test-token")
        client = httpx.Client(transport=httpx.MockTransport(handler))
        return GitHubAPI(settings=s, credentials=creds, client=client)

    return _make
