"""GitHub Actions: check runs, dispatches, workflow runs and artifacts."""

import fnmatch
import re

from .api import GitHubAPI
from .errors import APIError
from .models import CREATE_ISSUE_FORK_OR_PR_SCOPES, WorkflowRunLookup
from .pagination import paginate_rest

ARTIFACTS_PER_PAGE = 50

_BRACE = re.compile(r"\{([^{}]*)\}")


def expand_braces(pattern: str) -> list[str]:
    """Expand shell-style `{a,b}` alternatives into separate glob patterns."""
    match = _BRACE.search(pattern)
    if match is None:
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end() :]
    expanded = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(f"{head}{option}{tail}"))
    return expanded


def artifact_name_matches(name: str, pattern: str) -> bool:
    return any(fnmatch.fnmatchcase(name, p) for p in expand_braces(pattern))


class Actions:
    """Workflow and check-run endpoints."""

    def __init__(self, api: GitHubAPI):
        self.api = api

    def check_runs(
        self, repo: str | None = None, commit: str | None = None, pull_request: dict | None = None
    ) -> dict:
        if pull_request:
            repo = pull_request["base"]["repo"]["full_name"]
            commit = pull_request["head"]["sha"]
        return self.api.open_rest(self.api.url_to("repos", repo, "commits", commit, "check-runs"))

    def create_check_run(self, repo: str, data: dict) -> dict:
        return self.api.open_rest(self.api.url_to("repos", repo, "check-runs"), data=data)

    def dispatch_event(self, user: str, repo: str, event: str, **payload) -> dict:
        return self.api.open_rest(
            self.api.url_to("repos", user, repo, "dispatches"),
            data={"event_type": event, "client_payload": payload},
            request_method="POST",
            scopes=CREATE_ISSUE_FORK_OR_PR_SCOPES,
        )

    def workflow_dispatch_event(self, user: str, repo: str, workflow: str, ref: str, **inputs) -> dict:
        return self.api.open_rest(
            self.api.url_to("repos", user, repo, "actions", "workflows", workflow, "dispatches"),
            data={"ref": ref, "inputs": inputs},
            request_method="POST",
            scopes=CREATE_ISSUE_FORK_OR_PR_SCOPES,
        )

    def get_workflow_run(
        self,
        user: str,
        repo: str,
        pull_request: int,
        workflow_id: str = "tests.yml",
        artifact_pattern: str = "bottles{,_*}",
    ) -> WorkflowRunLookup:
        """Find the check suites of a PR's newest commit that belong to a workflow."""
        scopes = CREATE_ISSUE_FORK_OR_PR_SCOPES

        # GraphQL has no way to get the workflow file name, so look up its id over REST first.
        workflow = self.api.open_rest(
            self.api.url_to("repos", user, repo, "actions", "workflows", workflow_id), scopes=scopes
        )
        workflow_id_num = workflow["id"]

        query = """
          query($user: String!, $repo: String!, $pr: Int!) {
            repository(owner: $user, name: $repo) {
              pullRequest(number: $pr) {
                commits(last: 1) {
                  nodes {
                    commit {
                      checkSuites(first: 100) {
                        nodes {
                          status
                          workflowRun {
                            databaseId
                            url
                            workflow { databaseId }
                          }
                        }
                      }
                    }
                  }
                }
              }
            }
          }
        """
        variables = {"user": user, "repo": repo, "pr": int(pull_request)}
        result = self.api.open_graphql(query, variables=variables, scopes=scopes)

        commit_nodes = result["repository"]["pullRequest"]["commits"]["nodes"]
        check_suites = []
        if commit_nodes:
            check_suites = [
                suite
                for suite in commit_nodes[0]["commit"]["checkSuites"]["nodes"]
                if ((suite.get("workflowRun") or {}).get("workflow") or {}).get("databaseId") == workflow_id_num
            ]

        return WorkflowRunLookup(
            check_suites=check_suites,
            user=user,
            repo=repo,
            pull_request=int(pull_request),
            workflow_id=workflow_id,
            artifact_pattern=artifact_pattern,
            scopes=scopes,
        )

    def get_artifact_urls(self, lookup: WorkflowRunLookup) -> list[str]:
        """Download URLs of the newest artifacts whose names match the pattern."""
        if not lookup.check_suites:
            raise APIError(
                "No matching check suite found for these criteria!\n"
                f"  Pull request: {lookup.pull_request}\n"
                f"  Workflow:     {lookup.workflow_id}"
            )

        latest = lookup.check_suites[-1]
        status = latest["status"].replace("_", " ", 1).lower()
        run_url = latest["workflowRun"]["url"]
        if status != "completed":
            raise APIError(f"The newest workflow run for #{lookup.pull_request} is still {status}!\n  {run_url}")

        run_id = latest["workflowRun"]["databaseId"]
        artifacts = paginate_rest(
            self.api,
            self.api.url_to("repos", lookup.user, lookup.repo, "actions", "runs", run_id, "artifacts"),
            per_page=ARTIFACTS_PER_PAGE,
            scopes=lookup.scopes,
            items_key="artifacts",
        )

        # Later artifacts with the same name replace earlier ones
        by_name: dict[str, dict] = {}
        for artifact in artifacts:
            by_name[artifact["name"]] = artifact
        matching = [a for name, a in by_name.items() if artifact_name_matches(name, lookup.artifact_pattern)]

        if not matching:
            raise APIError(
                f"No artifacts with the pattern `{lookup.artifact_pattern}` were found!\n  {run_url}"
            )
        return [a["archive_download_url"] for a in matching]
