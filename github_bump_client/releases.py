"""GitHub release endpoints, including binary asset uploads."""

from pathlib import Path

from .api import GitHubAPI
from .models import CREATE_ISSUE_FORK_OR_PR_SCOPES


class Releases:
    def __init__(self, api: GitHubAPI):
        self.api = api

    def get_release(self, user: str, repo: str, tag: str) -> dict:
        return self.api.open_rest(self.api.url_to("repos", user, repo, "releases", "tags", tag))

    def get_latest_release(self, user: str, repo: str) -> dict:
        return self.api.open_rest(self.api.url_to("repos", user, repo, "releases", "latest"))

    def generate_release_notes(self, user: str, repo: str, tag: str, previous_tag: str | None = None) -> dict:
        data = {"tag_name": tag}
        if previous_tag:
            data["previous_tag_name"] = previous_tag
        return self.api.open_rest(
            self.api.url_to("repos", user, repo, "releases", "generate-notes"),
            data=data,
            request_method="POST",
            scopes=CREATE_ISSUE_FORK_OR_PR_SCOPES,
        )

    def create_or_update_release(
        self,
        user: str,
        repo: str,
        tag: str,
        id: int | None = None,
        name: str | None = None,
        body: str | None = None,
        draft: bool = False,
    ) -> dict:
        """Create a release, or update release `id` when given."""
        if id is not None:
            url = self.api.url_to("repos", user, repo, "releases", id)
            method = "PATCH"
        else:
            url = self.api.url_to("repos", user, repo, "releases")
            method = "POST"
        data = {"tag_name": tag, "name": name or tag, "draft": draft}
        if body:
            data["body"] = body
        return self.api.open_rest(url, data=data, request_method=method, scopes=CREATE_ISSUE_FORK_OR_PR_SCOPES)

    def upload_release_asset(
        self, user: str, repo: str, id: int, local_file: str | Path, remote_file: str | None = None
    ) -> dict:
        """Upload a file to the uploads host as a release asset."""
        url = f"{self.api.settings.uploads_url.rstrip('/')}/repos/{user}/{repo}/releases/{id}/assets"
        params = {"name": remote_file or Path(local_file).name}
        return self.api.open_rest(
            url,
            data_binary_path=local_file,
            request_method="POST",
            scopes=CREATE_ISSUE_FORK_OR_PR_SCOPES,
            params=params,
        )
