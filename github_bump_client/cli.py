"""CLI commands for querying GitHub and opening bump pull requests."""

import argparse
import json
import logging
import sys
from pathlib import Path


def _pairs(values: list[str]) -> dict[str, str]:
    pairs = {}
    for value in values:
        k, _, v = value.partition("=")
        pairs[k] = v
    return pairs


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="github-bump",
        description="Query GitHub and open version-bump pull requests",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every API request",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # api subcommand
    api_parser = subparsers.add_parser(
        "api",
        help="Make a GitHub API call (GET responses are cached)",
    )
    api_parser.add_argument(
        "endpoint",
        help="API endpoint path (e.g., repos/owner/repo/pulls)",
    )
    api_parser.add_argument(
        "--param",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Query parameter (repeatable, e.g., --param per_page=100)",
    )
    api_parser.add_argument(
        "--field",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="JSON body field (repeatable)",
    )
    api_parser.add_argument(
        "--method",
        default="GET",
        help="HTTP method (default: GET)",
    )
    api_parser.add_argument(
        "--skip-cache",
        action="store_true",
        help="Skip reading from cache (still writes to cache)",
    )
    api_parser.add_argument(
        "--graphql",
        action="store_true",
        help="Treat endpoint as a GraphQL query (or use --query)",
    )
    api_parser.add_argument(
        "--query",
        default=None,
        help="GraphQL query string (requires --graphql)",
    )

    # pull-requests subcommand
    prs_parser = subparsers.add_parser(
        "pull-requests",
        help="List pull requests matching a search query",
    )
    prs_parser.add_argument("query", help="Search query (e.g., a package name)")
    prs_parser.add_argument(
        "--only",
        choices=["open", "closed"],
        default=None,
        help="Only show open or closed pull requests",
    )

    # check-duplicates subcommand
    dup_parser = subparsers.add_parser(
        "check-duplicates",
        help="Check for pull requests that already change a file",
    )
    dup_parser.add_argument("name", help="Package name as it appears in PR titles")
    dup_parser.add_argument("--repo", required=True, help="Repository (owner/repo)")
    dup_parser.add_argument("--file", required=True, help="Path of the file within the repository")
    dup_parser.add_argument("--version", default=None, help="Version the bump targets")
    dup_parser.add_argument("--state", choices=["open", "closed"], default=None)
    dup_parser.add_argument("--strict", action="store_true", help="Fail on any duplicate")
    dup_parser.add_argument("--quiet", action="store_true", help="Only print the short warning")
    dup_parser.add_argument(
        "--unofficial-tap",
        action="store_true",
        help="Treat the repository as an unofficial tap (duplicates only warn)",
    )

    # bump-pr subcommand
    bump_parser = subparsers.add_parser(
        "bump-pr",
        help="Commit file edits to a new branch and open a pull request",
    )
    bump_parser.add_argument("--tap-path", type=Path, required=True, help="Local checkout of the repository")
    bump_parser.add_argument("--repo", required=True, help="Repository the PR is opened against (owner/repo)")
    bump_parser.add_argument("--branch", required=True, help="Name of the new branch")
    bump_parser.add_argument("--title", required=True, help="Pull request title (also the commit message)")
    bump_parser.add_argument("--pr-message", default="", help="Pull request body")
    bump_parser.add_argument(
        "--edit",
        action="append",
        default=[],
        required=True,
        metavar="PATH=SOURCE",
        help="Replace PATH with the contents of SOURCE (repeatable)",
    )
    bump_parser.add_argument("--message", default=None, help="Message prepended to the PR body")
    bump_parser.add_argument("--no-fork", action="store_true", help="Push to the origin remote instead of a fork")
    bump_parser.add_argument("--fork-org", default=None, help="Organization to fork into")
    bump_parser.add_argument("--dry-run", action="store_true", help="Print what would be done")
    bump_parser.add_argument("--write-only", action="store_true", help="Commit locally but do not push")
    bump_parser.add_argument("--remote", default="origin")
    bump_parser.add_argument("--remote-branch", default="main")

    return parser


def _run_api(args) -> None:
    from .api import get_api

    api = get_api()
    if args.graphql:
        result = api.open_graphql(args.query or args.endpoint)
    else:
        url = args.endpoint
        if not url.startswith(("https://", "http://")):
            url = api.url_to(url.lstrip("/"))
        params = _pairs(args.param) or None
        method = args.method.upper()
        if method == "GET" and not args.field:
            result = api.cached_rest(url, params=params, skip_cache=args.skip_cache)
        else:
            result = api.open_rest(url, data=_pairs(args.field) or None, request_method=method, params=params)
    json.dump(result, sys.stdout, indent=2)
    sys.stdout.write("\n")


def _run_check_duplicates(args) -> None:
    from .github import get_github
    from .pull_requests import PullRequestFinder

    finder = PullRequestFinder(get_github())
    duplicates = finder.check_for_duplicate_pull_requests(
        args.name,
        args.repo,
        args.file,
        quiet=args.quiet,
        state=args.state,
        version=args.version,
        official_tap=not args.unofficial_tap,
        strict=args.strict,
    )
    if not duplicates:
        print(f"No duplicate pull requests found for {args.name}")


def _run_bump_pr(args) -> None:
    from .bump import BumpOptions, BumpRequest, FileEdit, create_bump_pr
    from .github import get_github

    edits = []
    for value in args.edit:
        path, _, source = value.partition("=")
        edits.append(
            FileEdit(
                path=args.tap_path / path,
                new_contents=Path(source).read_text(),
                commit_message=args.title,
            )
        )
    request = BumpRequest(
        tap_path=args.tap_path,
        tap_remote_repo=args.repo,
        branch_name=args.branch,
        pr_title=args.title,
        pr_message=args.pr_message,
        edits=edits,
        remote=args.remote,
        remote_branch=args.remote_branch,
    )
    options = BumpOptions(
        no_fork=args.no_fork,
        fork_org=args.fork_org,
        dry_run=args.dry_run,
        write_only=args.write_only,
        message=args.message,
    )
    result = create_bump_pr(get_github(), request, options)
    if result.url:
        print(result.url)


def main(argv: list[str] | None = None):
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    from .errors import APIError, FatalError

    try:
        if args.command == "api":
            _run_api(args)
        elif args.command == "pull-requests":
            from .github import get_github
            from .pull_requests import PullRequestFinder

            PullRequestFinder(get_github()).print_pull_requests_matching(args.query, only=args.only)
        elif args.command == "check-duplicates":
            _run_check_duplicates(args)
        elif args.command == "bump-pr":
            _run_bump_pr(args)
        else:
            parser.print_help()
    except (APIError, FatalError) as e:
        sys.stderr.write(f"Error: {e}\n")
        sys.exit(1)


if __name__ == "__main__":
    main()
