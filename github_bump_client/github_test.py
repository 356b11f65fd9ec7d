"""Unit tests for the GitHub repository, search and organisation helpers."""

import json

import httpx
import pytest

from .errors import APIError, AuthenticationFailedError, FatalError
from .github import GitHub


def _routes(table: dict, calls: list | None = None):
    """Answer `(method, path)` lookups from a table of (status, body) pairs."""

    def handler(request: httpx.Request):
        if calls is not None:
            calls.append(request)
        status, body = table.get((request.method, request.url.path), (404, {"message": "Not Found"}))
        return httpx.Response(status, json=body)

    return handler


def describe_GitHub():
    def describe_user_and_permissions():
        def it_memoizes_the_current_user(make_api):
            calls = []
            github = GitHub(make_api(_routes({("GET", "/user"): (200, {"login": "octocat"})}, calls)))

            assert github.user()["login"] == "octocat"
            assert github.user()["login"] == "octocat"
            assert len(calls) == 1

        def it_checks_write_access(make_api):
            table = {
                ("GET", "/user"): (200, {"login": "octocat"}),
                ("GET", "/repos/o/r/collaborators/octocat/permission"): (200, {"permission": "write"}),
                ("GET", "/repos/o/r/collaborators/guest/permission"): (200, {"permission": "read"}),
            }
            github = GitHub(make_api(_routes(table)))

            assert github.write_access("o/r") is True
            assert github.write_access("o/r", "guest") is False

    def describe_repositories():
        def it_reports_missing_branches(make_api):
            table = {("GET", "/repos/o/r/branches/main"): (200, {"name": "main"})}
            github = GitHub(make_api(_routes(table)))

            assert github.branch_exists("o", "r", "main") is True
            assert github.branch_exists("o", "r", "gone") is False

        def it_checks_for_a_fork_under_the_user_or_org(make_api):
            table = {
                ("GET", "/user"): (200, {"login": "octocat"}),
                ("GET", "/repos/octocat/homebrew-core"): (200, {"fork": True}),
            }
            github = GitHub(make_api(_routes(table)))

            assert github.fork_exists("Homebrew/homebrew-core") is True
            assert github.fork_exists("Homebrew/homebrew-core", org="acme") is False

        def it_creates_forks_into_an_organization(make_api):
            calls = []
            table = {("POST", "/repos/Homebrew/homebrew-core/forks"): (202, {"full_name": "acme/homebrew-core"})}
            github = GitHub(make_api(_routes(table, calls)))

            github.create_fork("Homebrew/homebrew-core", org="acme")

            assert json.loads(calls[0].content) == {"organization": "acme"}

        def it_reads_private_repositories(make_api):
            table = {("GET", "/repos/o/secret"): (200, {"private": True})}
            github = GitHub(make_api(_routes(table)))

            assert github.private_repo("o/secret") is True

    def describe_get_repo_license():
        def it_returns_the_spdx_id(make_api):
            table = {("GET", "/repos/o/r/license"): (200, {"license": {"spdx_id": "BSD-2-Clause"}})}
            github = GitHub(make_api(_routes(table)))

            assert github.get_repo_license("o", "r") == "BSD-2-Clause"

        def it_returns_none_when_missing(make_api):
            github = GitHub(make_api(_routes({})))

            assert github.get_repo_license("o", "r") is None

        def it_returns_none_when_an_org_policy_blocks_access(make_api):
            body = {"message": "Resource protected by organization SAML enforcement."}
            github = GitHub(make_api(_routes({("GET", "/repos/o/r/license"): (403, body)})))

            assert github.get_repo_license("o", "r") is None

        def it_raises_other_authentication_failures(make_api):
            github = GitHub(make_api(_routes({("GET", "/repos/o/r/license"): (401, {"message": "Bad credentials"})})))

            with pytest.raises(AuthenticationFailedError):
                github.get_repo_license("o", "r")

    def describe_search_query_string():
        def it_builds_qualifiers():
            params = GitHub.search_query_string("wget", repo="Homebrew/homebrew-core", in_="title", is_="open")

            assert params == {"q": "wget repo:Homebrew/homebrew-core in:title is:open", "per_page": 100}

        def it_turns_dates_into_created_ranges():
            both = GitHub.search_query_string("x", from_="2024-01-01", to="2024-02-01")
            start = GitHub.search_query_string("x", from_="2024-01-01")

            assert both["q"] == "x created:2024-01-01..2024-02-01"
            assert start["q"] == "x created:>=2024-01-01"

        def it_skips_empty_qualifiers_and_dasherizes_names():
            params = GitHub.search_query_string("x", state=None, review_requested="octocat", label=["a", "b"])

            assert params["q"] == "x review-requested:octocat label:a label:b"

    def describe_issues_for_formula():
        def it_searches_titles_in_the_tap(make_api):
            calls = []
            table = {("GET", "/search/issues"): (200, {"total_count": 1, "items": [{"title": "wget 1.0"}]})}
            github = GitHub(make_api(_routes(table, calls)))

            items = github.issues_for_formula("wget", "Homebrew/homebrew-core", state="open")

            assert items == [{"title": "wget 1.0"}]
            assert calls[0].url.params["q"] == "wget repo:Homebrew/homebrew-core state:open in:title"

        def it_returns_nothing_without_a_tap(make_api):
            calls = []
            github = GitHub(make_api(_routes({}, calls)))

            assert github.issues_for_formula("wget", None) == []
            assert calls == []

    def describe_pull_request_commits():
        def _handler(commit_count, pages):
            def handler(request):
                if request.url.path == "/repos/o/r/pulls/5":
                    return httpx.Response(
                        200, json={"commits": commit_count, "commits_url": "https://api.github.com/repos/o/r/pulls/5/commits"}
                    )
                page = int(request.url.params["page"])
                return httpx.Response(200, json=pages[page - 1] if page <= len(pages) else [])

            return handler

        def it_collects_every_sha(make_api):
            pages = [[{"sha": "a"}, {"sha": "b"}], [{"sha": "c"}]]
            github = GitHub(make_api(_handler(3, pages)))

            assert github.pull_request_commits("o", "r", 5, per_page=2) == ["a", "b", "c"]

        def it_stops_once_the_count_is_reached(make_api):
            pages = [[{"sha": "a"}, {"sha": "b"}], [{"sha": "c"}, {"sha": "d"}]]
            github = GitHub(make_api(_handler(2, pages)))

            assert github.pull_request_commits("o", "r", 5, per_page=2) == ["a", "b"]

        def it_raises_when_commits_are_missing(make_api):
            github = GitHub(make_api(_handler(3, [[{"sha": "a"}, {"sha": "b"}]])))

            with pytest.raises(APIError, match="Expected 3 commits"):
                github.pull_request_commits("o", "r", 5, per_page=2)

        def it_refuses_huge_pull_requests(make_api):
            github = GitHub(make_api(_handler(6000, [])))

            with pytest.raises(APIError, match="exceed"):
                github.pull_request_commits("o", "r", 5)

    def describe_approved_reviews():
        def it_keeps_member_approvals_for_the_commit(make_api):
            nodes = [
                {
                    "author": {"login": "maintainer", "name": "May", "email": "", "databaseId": 1},
                    "authorAssociation": "MEMBER",
                    "commit": {"oid": "abc"},
                },
                {
                    "author": {"login": "drive-by", "name": None, "email": "d@example.com", "databaseId": 2},
                    "authorAssociation": "CONTRIBUTOR",
                    "commit": {"oid": "abc"},
                },
                {
                    "author": {"login": "owner", "name": None, "email": "o@example.com", "databaseId": 3},
                    "authorAssociation": "OWNER",
                    "commit": {"oid": "old"},
                },
            ]
            body = {"data": {"repository": {"pullRequest": {"reviews": {"nodes": nodes}}}}}
            github = GitHub(make_api(lambda request: httpx.Response(200, json=body)))

            approvals = github.approved_reviews("o", "r", 1, commit="abc")

            assert approvals == [
                {"email": "1+maintainer@users.noreply.github.com", "name": "May", "login": "maintainer"}
            ]

    def describe_commits():
        def it_reads_the_last_commit_from_the_etag(make_api):
            sha = "0123456789abcdef0123456789abcdef01234567"
            seen = {}

            def handler(request):
                seen["method"] = request.method
                seen["accept"] = request.headers["accept"]
                return httpx.Response(200, headers={"ETag": f'W/"{sha}"'})

            github = GitHub(make_api(handler))

            assert github.last_commit("o", "r", "main") == sha
            assert seen == {"method": "HEAD", "accept": "application/vnd.github.sha"}

        def it_returns_none_for_unknown_refs(make_api):
            github = GitHub(make_api(lambda request: httpx.Response(404)))

            assert github.last_commit("o", "r", "nope") is None

        def it_flags_ambiguous_short_commits(make_api):
            github = GitHub(make_api(lambda request: httpx.Response(422)))

            assert github.multiple_short_commits_exist("o", "r", "abc") is True

        def it_counts_authored_and_committed_commits(make_api):
            def handler(request):
                if "author" in request.url.params:
                    return httpx.Response(200, json=[{"sha": "a"}, {"sha": "b"}])
                return httpx.Response(200, json=[{"sha": "b"}, {"sha": "c"}])

            github = GitHub(make_api(handler))

            assert github.count_repo_commits("o/r", "octocat") == (2, 1)

        def it_stops_counting_at_the_limit(make_api, capsys):
            github = GitHub(make_api(lambda request: httpx.Response(200, json=[{"sha": str(i)} for i in range(100)])))

            shas = github.repo_commits_for_user("o/r", "octocat", "author", limit=50)

            assert len(shas) == 100
            assert "stopped counting" in capsys.readouterr().err

        def it_refuses_to_count_when_the_api_is_disabled(make_api):
            github = GitHub(make_api(_routes({}), settings_overrides={"no_github_api": True}))

            with pytest.raises(FatalError):
                github.count_repo_commits("o/r", "octocat")

    def describe_organisations():
        def it_lists_public_members(make_api):
            table = {("GET", "/orgs/Homebrew/public_members"): (200, [{"login": "a"}, {"login": "b"}])}
            github = GitHub(make_api(_routes(table)))

            assert github.public_member_usernames("Homebrew") == ["a", "b"]

        def it_maps_team_members_to_names(make_api):
            body = {
                "data": {
                    "organization": {
                        "teams": {"nodes": [{"name": "maintainers"}]},
                        "team": {"members": {"nodes": [{"login": "a", "name": "Ann"}, {"login": "b", "name": None}]}},
                    }
                }
            }
            github = GitHub(make_api(lambda request: httpx.Response(200, json=body)))

            assert github.members_by_team("Homebrew", "maintainers") == {"a": "Ann", "b": None}

        def it_explains_a_missing_read_org_scope(make_api):
            body = {"data": {"organization": {"teams": {"nodes": []}, "team": None}}}
            github = GitHub(make_api(lambda request: httpx.Response(200, json=body)))

            with pytest.raises(APIError, match="read:org"):
                github.members_by_team("Homebrew", "maintainers")

        def it_lists_sponsors_and_skips_hidden_ones(make_api):
            nodes = [
                {
                    "tier": {"monthlyPriceInDollars": 10, "closestLesserValueTier": {"monthlyPriceInDollars": 5}},
                    "sponsorEntity": {"login": "acme", "name": "Acme"},
                },
                None,
            ]
            body = {
                "data": {
                    "organization": {
                        "sponsorshipsAsMaintainer": {
                            "nodes": nodes,
                            "pageInfo": {"hasNextPage": False, "endCursor": None},
                        }
                    }
                },
                "errors": [{"message": "Sponsor entity is hidden"}],
            }
            github = GitHub(make_api(lambda request: httpx.Response(200, json=body)))

            assert github.sponsorships("Homebrew") == [
                {"name": "Acme", "login": "acme", "monthly_amount": 10, "closest_tier_monthly_amount": 5}
            ]
