"""Repository, user, search and organisation helpers over the GitHub API."""

import re
from datetime import datetime

from .actions import Actions
from .api import GitHubAPI, get_api
from .errors import APIError, AuthenticationFailedError, FatalError, NotFoundError
from .models import (
    API_MAX_ITEMS,
    CREATE_GIST_SCOPES,
    CREATE_ISSUE_FORK_OR_PR_SCOPES,
    DEFAULT_PER_PAGE,
)
from .output import opoo
from .pagination import STOP, paginate_graphql_nodes, paginate_rest
from .releases import Releases

_ETAG_SHA = re.compile(r'^"?([0-9a-fA-F]+)"?$')


class GitHub:
    """GitHub operations used by the bump and release tooling."""

    def __init__(self, api: GitHubAPI | None = None):
        self.api = api or get_api()
        self.actions = Actions(self.api)
        self.releases = Releases(self.api)
        self._user: dict | None = None

    def url_to(self, *subroutes) -> str:
        return self.api.url_to(*subroutes)

    # Users and permissions

    def user(self) -> dict:
        if self._user is None:
            self._user = self.api.open_rest(self.url_to("user"))
        return self._user

    def permission(self, repo: str, user: str) -> dict:
        return self.api.open_rest(self.url_to("repos", repo, "collaborators", user, "permission"))

    def write_access(self, repo: str, user: str | None = None) -> bool:
        user = user or self.user()["login"]
        return self.permission(repo, user).get("permission") in ("admin", "write")

    # Repositories

    def repository(self, user: str, repo: str) -> dict:
        return self.api.open_rest(self.url_to("repos", user, repo))

    def private_repo(self, full_name: str) -> bool:
        return bool(self.api.open_rest(self.url_to("repos", full_name)).get("private"))

    def branch_exists(self, user: str, repo: str, branch: str) -> bool:
        try:
            self.api.open_rest(self.url_to("repos", user, repo, "branches", branch))
        except NotFoundError:
            return False
        return True

    def create_fork(self, repo: str, org: str | None = None) -> dict:
        data = {"organization": org} if org else {}
        return self.api.open_rest(
            self.url_to("repos", repo, "forks"), data=data, scopes=CREATE_ISSUE_FORK_OR_PR_SCOPES
        )

    def fork_exists(self, repo: str, org: str | None = None) -> bool:
        _, _, reponame = repo.partition("/")
        username = org or self.user()["login"]
        try:
            self.api.open_rest(self.url_to("repos", username, reponame))
        except NotFoundError:
            return False
        return True

    def get_repo_license(self, user: str, repo: str, ref: str | None = None) -> str | None:
        """SPDX id of the repository's license, or None if it has none."""
        params = {"ref": ref} if ref else None
        try:
            response = self.api.cached_rest(self.url_to("repos", user, repo, "license"), params)
        except NotFoundError:
            return None
        except AuthenticationFailedError as e:
            if e.access_policy_denied:
                return None
            raise
        license_info = response.get("license") if isinstance(response, dict) else None
        if not license_info:
            return None
        return license_info.get("spdx_id")

    # Issues and search

    def issues(self, repo: str, **filters) -> list:
        return self.api.open_rest(self.url_to("repos", repo, "issues"), params=filters or None)

    def create_issue(self, repo: str, title: str, body: str) -> str:
        data = {"title": title, "body": body}
        response = self.api.open_rest(
            self.url_to("repos", repo, "issues"), data=data, scopes=CREATE_ISSUE_FORK_OR_PR_SCOPES
        )
        return response["html_url"]

    def create_gist(self, files: dict, description: str, private: bool) -> str:
        data = {"public": not private, "files": files, "description": description}
        return self.api.open_rest(self.url_to("gists"), data=data, scopes=CREATE_GIST_SCOPES)["html_url"]

    @staticmethod
    def search_query_string(*main_params, **qualifiers) -> dict:
        """Build search query parameters.

        `from`/`to` become a `created:` range; other qualifiers become
        `key:value` terms (underscores turn into dashes, a trailing underscore
        is dropped so `in_` and `is_` can be passed).
        """
        params = [p for p in main_params if p]
        date_from = qualifiers.pop("from_", None) or qualifiers.pop("from", None)
        date_to = qualifiers.pop("to", None)
        if date_from and date_to:
            params.append(f"created:{date_from}..{date_to}")
        elif date_from:
            params.append(f"created:>={date_from}")
        elif date_to:
            params.append(f"created:<={date_to}")

        for key, value in qualifiers.items():
            if value is None:
                continue
            name = key.rstrip("_").replace("_", "-")
            values = value if isinstance(value, (list, tuple)) else [value]
            params.extend(f"{name}:{v}" for v in values if v is not None)

        return {"q": " ".join(params), "per_page": DEFAULT_PER_PAGE}

    def search(self, entity: str, *queries, **qualifiers) -> dict:
        return self.api.open_rest(
            self.url_to("search", entity), params=self.search_query_string(*queries, **qualifiers)
        )

    def search_results_items(self, entity: str, *queries, **qualifiers) -> list:
        return self.search(entity, *queries, **qualifiers).get("items", [])

    def search_results_count(self, entity: str, *queries, **qualifiers) -> int:
        return self.search(entity, *queries, **qualifiers).get("total_count", 0)

    def search_issues(self, query: str, **qualifiers) -> list:
        return self.search_results_items("issues", query, **qualifiers)

    def count_issues(self, query: str, **qualifiers) -> int:
        return self.search_results_count("issues", query, **qualifiers)

    def issues_for_formula(
        self, name: str, tap_remote_repo: str | None, state: str | None = None, type: str | None = None
    ) -> list:
        if not tap_remote_repo:
            return []
        return self.search_issues(name, repo=tap_remote_repo, state=state, type=type, in_="title")

    # Pull requests

    def pull_requests(self, repo: str, **options) -> list:
        return self.api.open_rest(self.url_to("repos", repo, "pulls"), params=options or None)

    def create_pull_request(self, repo: str, title: str, head: str, base: str, body: str) -> dict:
        data = {"title": title, "head": head, "base": base, "body": body, "maintainer_can_modify": True}
        return self.api.open_rest(
            self.url_to("repos", repo, "pulls"), data=data, scopes=CREATE_ISSUE_FORK_OR_PR_SCOPES
        )

    def merge_pull_request(
        self, repo: str, number: int, sha: str, merge_method: str, commit_message: str | None = None
    ) -> dict:
        data = {"sha": sha, "merge_method": merge_method}
        if commit_message:
            data["commit_message"] = commit_message
        return self.api.open_rest(
            self.url_to("repos", repo, "pulls", number, "merge"),
            data=data,
            request_method="PUT",
            scopes=CREATE_ISSUE_FORK_OR_PR_SCOPES,
        )

    def pull_request_commits(self, user: str, repo: str, pull_request: int, per_page: int = DEFAULT_PER_PAGE) -> list[str]:
        """SHAs of every commit in a pull request."""
        pr_data = self.api.open_rest(self.url_to("repos", user, repo, "pulls", pull_request))
        commit_count = pr_data["commits"]
        if commit_count > API_MAX_ITEMS:
            raise APIError(
                f"Getting {commit_count} commits for {user}/{repo}#{pull_request} would exceed "
                f"limit of {API_MAX_ITEMS} API items!"
            )

        shas: list[str] = []

        def collect(result, page):
            shas.extend(c["sha"] for c in result)
            if len(shas) == commit_count:
                return STOP
            if not result or page * per_page >= commit_count:
                raise APIError(
                    f"Expected {commit_count} commits for {user}/{repo}#{pull_request} "
                    f"but actually got {len(shas)}!"
                )
            return None

        paginate_rest(self.api, pr_data["commits_url"], per_page=per_page, on_page=collect)
        return shas

    def pull_request_labels(self, user: str, repo: str, pull_request: int) -> list[str]:
        pr_data = self.api.open_rest(self.url_to("repos", user, repo, "pulls", pull_request))
        return [label["name"] for label in pr_data.get("labels", [])]

    def approved_reviews(self, user: str, repo: str, pull_request: int, commit: str | None = None) -> list[dict]:
        """Approvals from members/owners, optionally only those on `commit`."""
        query = """
          query($user: String!, $repo: String!, $pr: Int!) {
            repository(name: $repo, owner: $user) {
              pullRequest(number: $pr) {
                reviews(states: APPROVED, first: 100) {
                  nodes {
                    author {
                      ... on User { email login name databaseId }
                      ... on Organization { email login name databaseId }
                    }
                    authorAssociation
                    commit { oid }
                  }
                }
              }
            }
          }
        """
        variables = {"user": user, "repo": repo, "pr": int(pull_request)}
        result = self.api.open_graphql(query, variables=variables, scopes=("user:email",))
        reviews = result["repository"]["pullRequest"]["reviews"]["nodes"]

        approvals = []
        for review in reviews:
            if commit and commit != (review.get("commit") or {}).get("oid"):
                continue
            if review.get("authorAssociation") not in ("MEMBER", "OWNER"):
                continue
            author = review["author"]
            email = author.get("email") or f"{author['databaseId']}+{author['login']}@users.noreply.github.com"
            approvals.append(
                {"email": email, "name": author.get("name") or author["login"], "login": author["login"]}
            )
        return approvals

    # Commits

    def last_commit(self, user: str, repo: str, ref: str) -> str | None:
        """Full SHA that `ref` points at, read from the ETag of a HEAD request."""
        if self.api.disabled:
            return None
        response = self.api.head(self.url_to("repos", user, repo, "commits", ref), accept="application/vnd.github.sha")
        if response.status_code != 200:
            return None
        match = _ETAG_SHA.match(response.headers.get("etag", "").removeprefix("W/"))
        return match.group(1) if match else None

    def multiple_short_commits_exist(self, user: str, repo: str, commit: str) -> bool:
        """True unless the abbreviated SHA resolves to exactly one commit."""
        if self.api.disabled:
            return False
        response = self.api.head(
            self.url_to("repos", user, repo, "commits", commit), accept="application/vnd.github.sha"
        )
        return response.status_code != 200

    def repo_commits_for_user(
        self,
        nwo: str,
        user: str,
        role: str,
        date_from: str | None = None,
        date_to: str | None = None,
        limit: int | None = None,
    ) -> list[str] | None:
        if self.api.disabled:
            return None
        params = {role: user}
        if date_from:
            params["since"] = datetime.fromisoformat(date_from).isoformat()
        if date_to:
            params["until"] = datetime.fromisoformat(date_to).isoformat()

        shas: list[str] = []

        def collect(result, _page):
            shas.extend(c["sha"] for c in result)
            if limit is not None and len(shas) >= limit:
                opoo(f"{user} exceeded {limit} {nwo} commits as {role}, stopped counting!")
                return STOP
            return None

        paginate_rest(self.api, self.url_to("repos", nwo, "commits"), params=params, on_page=collect)
        return shas

    def count_repo_commits(
        self, nwo: str, user: str, date_from: str | None = None, date_to: str | None = None, limit: int | None = None
    ) -> tuple[int, int]:
        """(authored, committed-but-not-authored) commit counts for a user."""
        if self.api.disabled:
            raise FatalError("Cannot count commits, HOMEBREW_NO_GITHUB_API set!")
        author_shas = self.repo_commits_for_user(nwo, user, "author", date_from, date_to, limit) or []
        committer_shas = self.repo_commits_for_user(nwo, user, "committer", date_from, date_to, limit) or []
        if not author_shas and not committer_shas:
            return 0, 0
        authored = set(author_shas)
        return len(author_shas), len([sha for sha in committer_shas if sha not in authored])

    # Organisations

    def public_member_usernames(self, org: str, per_page: int = DEFAULT_PER_PAGE) -> list[str]:
        members = paginate_rest(self.api, self.url_to("orgs", org, "public_members"), per_page=per_page)
        return [member["login"] for member in members]

    def members_by_team(self, org: str, team: str) -> dict[str, str | None]:
        query = """
          query($org: String!, $team: String!) {
            organization(login: $org) {
              teams(first: 100) { nodes { ... on Team { name } } }
              team(slug: $team) {
                members(first: 100) { nodes { ... on User { login name } } }
              }
            }
          }
        """
        result = self.api.open_graphql(
            query, variables={"org": org, "team": team}, scopes=("read:org", "user")
        )
        organization = result.get("organization") or {}
        if not (organization.get("teams") or {}).get("nodes"):
            raise APIError("Your token needs the 'read:org' scope to access this API")
        if not organization.get("team"):
            raise APIError(f"The team {org}/{team} does not exist")
        return {m["login"]: m.get("name") for m in organization["team"]["members"]["nodes"]}

    def sponsorships(self, user: str) -> list[dict]:
        """Sponsors of an organisation with their monthly tier amounts.

        Some sponsoring organisations refuse to be listed through the API and
        come back as null nodes with errors; those errors are only raised if
        no sponsorship at all could be read.
        """
        query = """
          query($user: String!, $after: String) {
            organization(login: $user) {
              sponsorshipsAsMaintainer(first: 100, after: $after) {
                pageInfo { hasNextPage endCursor }
                nodes {
                  tier {
                    monthlyPriceInDollars
                    closestLesserValueTier { monthlyPriceInDollars }
                  }
                  sponsorEntity {
                    ... on Organization { login name }
                    ... on User { login name }
                  }
                }
              }
            }
          }
        """
        nodes = paginate_graphql_nodes(
            self.api,
            query,
            ("organization", "sponsorshipsAsMaintainer"),
            variables={"user": user},
            scopes=("user",),
            raise_errors=False,
        )

        sponsors = []
        for node in nodes:
            sponsor = node.get("sponsorEntity") or {}
            tier = node.get("tier") or {}
            closest = tier.get("closestLesserValueTier") or {}
            sponsors.append(
                {
                    "name": sponsor.get("name") or sponsor.get("login"),
                    "login": sponsor.get("login"),
                    "monthly_amount": tier.get("monthlyPriceInDollars") or 0,
                    "closest_tier_monthly_amount": closest.get("monthlyPriceInDollars") or 0,
                }
            )
        return sponsors


# Singleton
_github: GitHub | None = None


def get_github() -> GitHub:
    """Get or create a GitHub facade over the process-wide API client."""
    global _github
    if _github is None:
        _github = GitHub()
    return _github
