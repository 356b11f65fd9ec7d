"""Pull request searches, duplicate detection and open-PR limits."""

import re

from .cache import ExpiringCache, bucket_expiry
from .errors import AuthenticationFailedError, FatalError, RateLimitExceededError
from .github import GitHub
from .models import BOT_LOGIN, OFFICIAL_OWNER, PageInfo
from .output import ohai, opoo
from .pagination import STOP, paginate_graphql, paginate_rest
from .settings import Settings, get_settings

# Open pull requests are memoized per repository for the current 3-minute bucket
OPEN_PULL_REQUESTS_TTL = 3 * 60
MAXIMUM_OPEN_PRS = 15
CLOSED_PRS_SHOWN = 20

SEARCH_PULL_REQUESTS_QUERY = """
  query($query: String!, $after: String) {
    search(query: $query, type: ISSUE, first: 100, after: $after) {
      nodes {
        ... on PullRequest { number title url state }
      }
      pageInfo { hasNextPage endCursor }
    }
  }
"""

OPEN_PULL_REQUESTS_QUERY = """
  query($owner: String!, $repo: String!, $states: [PullRequestState!], $after: String) {
    repository(owner: $owner, name: $repo) {
      pullRequests(states: $states, first: 100, after: $after) {
        nodes { number title url }
        pageInfo { hasNextPage endCursor }
      }
    }
  }
"""

VIEWER_OPEN_PULL_REQUESTS_QUERY = """
  query($after: String) {
    viewer {
      login
      pullRequests(first: 100, states: OPEN, after: $after) {
        totalCount
        nodes { baseRepository { owner { login } } }
        pageInfo { hasNextPage endCursor }
      }
    }
  }
"""


def pull_request_title_regex(name: str, version: str | None = None) -> re.Pattern:
    """Match PR titles that mention `name` (and `version`) as whole words."""
    if not version:
        return re.compile(rf"(^|\s){re.escape(name)}(:|,|\s|$)", re.IGNORECASE)
    return re.compile(
        rf"(^|\s){re.escape(name)}(:|,|\s)(.*\s)?{re.escape(version)}(:|,|\s|$)", re.IGNORECASE
    )


class DuplicatePullRequestError(FatalError):
    def __init__(self, message: str, pull_requests: list[dict]):
        super().__init__(message)
        self.pull_requests = pull_requests


class PullRequestFinder:
    """Finds existing pull requests for a package before a bump is opened."""

    def __init__(
        self,
        github: GitHub,
        cache: ExpiringCache | None = None,
        settings: Settings | None = None,
    ):
        self.github = github
        self.api = github.api
        self.cache = cache if cache is not None else ExpiringCache()
        self.settings = settings or get_settings()

    def fetch_pull_requests(
        self,
        name: str,
        tap_remote_repo: str,
        state: str | None = None,
        version: str | None = None,
    ) -> list[dict]:
        """Pull requests in tap_remote_repo whose titles mention name/version.

        Each result has number, title, html_url and a lowercase state. On rate
        limiting, warns and returns whatever was collected.
        """
        if self.api.disabled:
            return []

        regex = pull_request_title_regex(name, version)
        query = f"is:pr {name} {version or ''}".strip()

        # Unauthenticated users cannot use GraphQL, so fall back to the search REST API.
        if not self.api.credentials.authenticated:
            # The search API allows only 30 requests a minute.
            try:
                issues = self.github.issues_for_formula(query, tap_remote_repo, state=state)
            except RateLimitExceededError as e:
                opoo(e.message)
                return []
            return [
                pr
                for pr in issues
                if "/pull/" in pr.get("html_url", "") and regex.search(pr.get("title", ""))
            ]
        if state == "open" and self.settings.github_repository_owner == OFFICIAL_OWNER:
            return self.fetch_open_pull_requests(name, tap_remote_repo, version=version)

        query += f" repo:{tap_remote_repo} in:title"
        if state:
            query += f" state:{state}"

        pull_requests: list[dict] = []

        def collect(data, _page):
            search = data["search"]
            pull_requests.extend(
                pr for pr in search["nodes"] if pr and pr.get("title") and regex.search(pr["title"])
            )
            return PageInfo.from_graphql(search["pageInfo"])

        try:
            paginate_graphql(self.api, SEARCH_PULL_REQUESTS_QUERY, collect, variables={"query": query})
        except RateLimitExceededError as e:
            opoo(e.message)

        return [
            {
                "number": pr["number"],
                "title": pr["title"],
                "html_url": pr["url"],
                "state": pr["state"].lower(),
            }
            for pr in pull_requests
        ]

    def fetch_open_pull_requests(
        self, name: str, tap_remote_repo: str, version: str | None = None
    ) -> list[dict]:
        if not tap_remote_repo:
            return []

        now = self.cache.now()
        expires_at = bucket_expiry(now, OPEN_PULL_REQUESTS_TTL)
        cache_key = f"{tap_remote_repo}_{int(expires_at - OPEN_PULL_REQUESTS_TTL)}"

        open_prs = self.cache.get(cache_key)
        if open_prs is None:
            owner, _, repo = tap_remote_repo.partition("/")
            open_prs = []

            def collect(data, _page):
                connection = data["repository"]["pullRequests"]
                open_prs.extend(connection["nodes"])
                return PageInfo.from_graphql(connection["pageInfo"])

            try:
                paginate_graphql(
                    self.api,
                    OPEN_PULL_REQUESTS_QUERY,
                    collect,
                    variables={"owner": owner, "repo": repo, "states": ["OPEN"]},
                )
            except RateLimitExceededError as e:
                opoo(e.message)
            else:
                self.cache.set(cache_key, open_prs, expires_at)

        regex = pull_request_title_regex(name, version)
        return [
            {"number": pr["number"], "title": pr["title"], "html_url": pr["url"]}
            for pr in open_prs
            if regex.search(pr["title"])
        ]

    def changed_files(self, tap_remote_repo: str, pull_request: int) -> list[dict]:
        return paginate_rest(self.api, self.api.url_to("repos", tap_remote_repo, "pulls", pull_request, "files"))

    def check_for_duplicate_pull_requests(
        self,
        name: str,
        tap_remote_repo: str,
        file: str,
        quiet: bool = False,
        state: str | None = None,
        version: str | None = None,
        official_tap: bool = True,
        strict: bool = False,
    ) -> list[dict]:
        """Find pull requests that modify the same file.

        Raises DuplicatePullRequestError if strict, or if both version and
        official_tap; otherwise warns. Returns the duplicates found.
        """
        pull_requests = [
            pr
            for pr in self.fetch_pull_requests(name, tap_remote_repo, state=state, version=version)
            if any(f["filename"] == file for f in self.changed_files(tap_remote_repo, pr["number"]))
        ]
        if not pull_requests:
            return []

        confidence = "are" if version else "might be"
        listing = "\n".join(f"{pr['title']} {pr['html_url']}" for pr in pull_requests)
        state_word = f"{state} " if state else ""
        duplicates_message = f"These {state_word}pull requests {confidence} duplicates:\n{listing}"
        error_message = (
            "Duplicate PRs must not be opened.\n"
            "Manually open these PRs if you are sure that they are not duplicates (and tell us that in the PR)."
        )

        if strict or (version and official_tap):
            raise DuplicatePullRequestError(f"{duplicates_message}\n{error_message}", pull_requests)
        if not official_tap:
            opoo(duplicates_message)
        elif quiet:
            opoo(error_message)
        else:
            opoo(f"{duplicates_message}\n{error_message}")
        return pull_requests

    def too_many_open_prs(self, official_tap: bool = True) -> bool:
        """Whether the current user already has too many open PRs to the official owner."""
        # Unofficial taps are not limited.
        if not official_tap:
            return False
        # The automation bot may open as many PRs as it wants.
        if self.settings.test_bot_autobump:
            return False
        if self.api.disabled:
            raise FatalError("Cannot count PRs, HOMEBREW_NO_GITHUB_API set!")

        too_many = False
        official_count = 0

        def count(data, _page):
            nonlocal too_many, official_count
            viewer = data["viewer"]
            if viewer["login"].lower() == BOT_LOGIN.lower():
                return STOP
            pull_requests = viewer["pullRequests"]
            if pull_requests["totalCount"] < MAXIMUM_OPEN_PRS:
                return STOP
            official_count += sum(
                1
                for node in pull_requests["nodes"]
                if (((node.get("baseRepository") or {}).get("owner") or {}).get("login") or "").lower()
                == OFFICIAL_OWNER.lower()
            )
            if official_count >= MAXIMUM_OPEN_PRS:
                too_many = True
                return STOP
            return PageInfo.from_graphql(pull_requests["pageInfo"])

        try:
            paginate_graphql(self.api, VIEWER_OPEN_PULL_REQUESTS_QUERY, count)
        except AuthenticationFailedError as e:
            if e.access_policy_denied:
                return False
            raise
        return too_many

    def print_pull_requests_matching(self, query: str, only: str | None = None) -> None:
        found = self.github.search_issues(query, is_=only, type="pr", user=OFFICIAL_OWNER)
        open_prs = [f"{pr['title']} ({pr['html_url']})" for pr in found if pr.get("state") == "open"]
        closed_prs = [f"{pr['title']} ({pr['html_url']})" for pr in found if pr.get("state") != "open"]

        if open_prs:
            ohai("Open pull requests")
            for pr in open_prs:
                print(pr)

        if closed_prs:
            if open_prs:
                print()
            ohai("Closed pull requests")
            for pr in closed_prs[:CLOSED_PRS_SHOWN]:
                print(pr)
            if len(closed_prs) > CLOSED_PRS_SHOWN:
                print("...")

        if not open_prs and not closed_prs:
            print(f"No pull requests found for {query!r}")
