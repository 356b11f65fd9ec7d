"""Data models and constants for the GitHub client."""

from dataclasses import dataclass, field
from enum import Enum

API_MAX_PAGES = 50  # Hard cap on REST pages fetched in one traversal
API_MAX_ITEMS = 5000  # GitHub refuses to list more than this many items
DEFAULT_PER_PAGE = 100

CREATE_GIST_SCOPES = ("gist",)
CREATE_ISSUE_FORK_OR_PR_SCOPES = ("repo",)
CREATE_WORKFLOW_SCOPES = ("workflow",)
ALL_SCOPES = CREATE_GIST_SCOPES + CREATE_ISSUE_FORK_OR_PR_SCOPES + CREATE_WORKFLOW_SCOPES

OFFICIAL_OWNER = "Homebrew"
BOT_LOGIN = "BrewTestBot"

PAT_URL = "https://github.com/settings/tokens/new"


class CredentialsType(str, Enum):
    NONE = "none"
    ENV_TOKEN = "env_token"
    KEYCHAIN_TOKEN = "keychain_token"


@dataclass(frozen=True)
class Credentials:
    """Where the API token came from, and the token itself."""

    type: CredentialsType = CredentialsType.NONE
    token: str | None = None
    scopes: frozenset[str] | None = None  # None until the server reports them

    @classmethod
    def none(cls) -> "Credentials":
        return cls()

    @classmethod
    def env_token(cls, token: str) -> "Credentials":
        return cls(CredentialsType.ENV_TOKEN, token)

    @classmethod
    def keychain_token(cls, token: str) -> "Credentials":
        return cls(CredentialsType.KEYCHAIN_TOKEN, token)

    @property
    def authenticated(self) -> bool:
        return self.token is not None


@dataclass(frozen=True)
class PageInfo:
    """Continuation state returned by the server after each page."""

    has_next_page: bool
    end_cursor: str | None = None

    @classmethod
    def from_graphql(cls, data: dict | None) -> "PageInfo":
        data = data or {}
        return cls(bool(data.get("hasNextPage")), data.get("endCursor"))


@dataclass
class WorkflowRunLookup:
    """Check suites of a pull request's newest commit for one workflow."""

    check_suites: list[dict]
    user: str
    repo: str
    pull_request: int
    workflow_id: str
    artifact_pattern: str
    scopes: tuple[str, ...] = field(default=CREATE_ISSUE_FORK_OR_PR_SCOPES)
