"""GitHub API client for opening version-bump pull requests.

Wraps the REST and GraphQL APIs with response classification, pagination
and duplicate pull request detection, and drives the fork/branch/commit/push
workflow that opens a bump pull request.
"""

from .api import GitHubAPI, get_api
from .bump import BumpOptions, BumpRequest, FileEdit, create_bump_pr
from .cli import main
from .errors import APIError, FatalError
from .github import GitHub, get_github
from .pull_requests import PullRequestFinder

__all__ = [
    "main",
    "GitHubAPI",
    "get_api",
    "GitHub",
    "get_github",
    "PullRequestFinder",
    "BumpOptions",
    "BumpRequest",
    "FileEdit",
    "create_bump_pr",
    "APIError",
    "FatalError",
]

if __name__ == "__main__":
    main()
