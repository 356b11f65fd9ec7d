"""Resolve GitHub credentials from the environment or the git credential store."""

import os
import subprocess

from .models import Credentials
from .settings import Settings

CREDENTIAL_HELPER_INPUT = "protocol=https\nhost=github.com\n\n"


def _credential_helper_token() -> str | None:
    """Ask `git credential fill` for a stored github.com password/token."""
    env = {**os.environ, "GIT_TERMINAL_PROMPT": "0", "GIT_ASKPASS": "true"}
    try:
        result = subprocess.run(
            ["git", "credential", "fill"],
            input=CREDENTIAL_HELPER_INPUT,
            capture_output=True,
            text=True,
            env=env,
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    for line in result.stdout.splitlines():
        key, _, value = line.partition("=")
        if key == "password" and value:
            return value
    return None


def resolve_credentials(settings: Settings) -> Credentials:
    """Environment token first, then the credential store, else none."""
    if settings.github_token:
        return Credentials.env_token(settings.github_token)
    if settings.use_credential_helper and not settings.no_github_api:
        token = _credential_helper_token()
        if token:
            return Credentials.keychain_token(token)
    return Credentials.none()
