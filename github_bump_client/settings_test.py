"""Unit tests for environment-driven settings."""

from .settings import Settings


def describe_Settings():
    def it_reads_the_homebrew_token_first(monkeypatch):
        monkeypatch.setenv("HOMEBREW_GITHUB_API_TOKEN", "brew-token")
        monkeypatch.setenv("GITHUB_TOKEN", "gh-token")

        assert Settings(_env_file=None).github_token == "brew-token"

    def it_falls_back_to_github_token(monkeypatch):
        monkeypatch.delenv("HOMEBREW_GITHUB_API_TOKEN", raising=False)
        monkeypatch.setenv("GITHUB_TOKEN", "gh-token")

        assert Settings(_env_file=None).github_token == "gh-token"

    def it_reads_boolean_switches(monkeypatch):
        monkeypatch.setenv("HOMEBREW_NO_GITHUB_API", "1")
        monkeypatch.setenv("HOMEBREW_TEST_BOT_AUTOBUMP", "true")
        monkeypatch.setenv("GITHUB_REPOSITORY_OWNER", "Homebrew")

        settings = Settings(_env_file=None)

        assert settings.no_github_api is True
        assert settings.test_bot_autobump is True
        assert settings.github_repository_owner == "Homebrew"

    def it_has_bounded_fork_polling_by_default():
        settings = Settings(_env_file=None)

        assert settings.fork_poll_interval == 1.0
        assert settings.fork_poll_max_attempts == 120
