"""Authenticated GitHub REST/GraphQL transport using httpx + Cachetta."""

import hashlib
import json
import logging
from datetime import timedelta
from pathlib import Path

import httpx
from cachetta import Cachetta

from .credentials import resolve_credentials
from .errors import (
    APIError,
    AuthenticationFailedError,
    ErrorCategory,
    classify_graphql_errors,
    classify_response,
    parse_scopes,
)
from .models import Credentials
from .settings import Settings, get_settings

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

USER_AGENT = "github-bump-client"
API_VERSION = "2022-11-28"


def _cache_path(cache_dir: Path):
    def _path(url, params=None):
        raw = f"{url}|{json.dumps(params or {}, sort_keys=True)}"
        key = hashlib.sha256(raw.encode()).hexdigest()[:16]
        return Path(cache_dir) / f"{key}.json"

    return _path


class GitHubAPI:
    """GitHub REST and GraphQL client. Each call makes exactly one request; nothing is retried."""

    def __init__(
        self,
        settings: Settings | None = None,
        credentials: Credentials | None = None,
        client: httpx.Client | None = None,
    ):
        self.settings = settings or get_settings()
        self.credentials = credentials if credentials is not None else resolve_credentials(self.settings)
        self._observed_scopes: frozenset[str] | None = None

        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": USER_AGENT,
        }
        if self.credentials.token:
            headers["Authorization"] = f"bearer {self.credentials.token}"
        if client is None:
            client = httpx.Client(timeout=self.settings.request_timeout)
        client.headers.update(headers)
        self._client = client

        # Errors propagate out of the cached wrapper, so only successful bodies are written
        def _do_fetch(url, params=None):
            return self.open_rest(url, params=params)

        cache = Cachetta(
            path=_cache_path(self.settings.cache_dir),
            duration=timedelta(hours=self.settings.cache_duration_hours),
        )
        self._cached_fetch = cache(_do_fetch)
        self._skip_read_fetch = cache.copy(read=False)(_do_fetch)

    @property
    def disabled(self) -> bool:
        return self.settings.no_github_api

    @property
    def token_scopes(self) -> frozenset[str] | None:
        """Scopes the token grants, as declared or last reported by the server."""
        if self.credentials.scopes is not None:
            return self.credentials.scopes
        return self._observed_scopes

    def url_to(self, *subroutes) -> str:
        return "/".join([self.settings.api_url.rstrip("/"), *(str(s) for s in subroutes)])

    def _check_url(self, url: str) -> None:
        if not url.startswith(("https://", "http://")):
            raise ValueError(f"GitHub API URL must be absolute: {url}")

    def _ensure_enabled(self, url: str) -> None:
        if self.disabled:
            raise APIError(
                f"GitHub API calls are disabled (HOMEBREW_NO_GITHUB_API is set): {url}",
                url=url,
                category=ErrorCategory.DISABLED,
            )

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        self._check_url(url)
        self._ensure_enabled(url)
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise APIError(f"GitHub API request failed: {method} {url}: {exc}", url=url) from exc
        logger.debug("%s %s -> %s", method, url, response.status_code)

        scopes = parse_scopes(response.headers.get("x-oauth-scopes"))
        if scopes is not None:
            self._observed_scopes = scopes
        return response

    def open_rest(
        self,
        url: str,
        data: dict | None = None,
        data_binary_path: str | Path | None = None,
        request_method: str | None = None,
        scopes=(),
        params: dict | None = None,
    ):
        """Perform one REST request and return the parsed JSON body.

        Args:
            url: Absolute API URL
            data: JSON request body
            data_binary_path: File whose bytes are sent as the request body
            request_method: HTTP method (default POST with a body, else GET)
            scopes: Token scopes the call needs; only used in error messages
            params: Query parameters

        Raises:
            APIError (or a subclass) for any non-2xx response.
        """
        method = request_method or ("POST" if data is not None or data_binary_path else "GET")
        kwargs: dict = {"params": params}
        if data_binary_path is not None:
            kwargs["content"] = Path(data_binary_path).read_bytes()
            kwargs["headers"] = {"Content-Type": "application/octet-stream"}
        elif data is not None:
            kwargs["json"] = data

        response = self._send(method.upper(), url, **kwargs)
        body = _parse_body(response)
        error = classify_response(
            response.status_code,
            response.headers,
            body,
            url=url,
            scopes=scopes,
            token_scopes=self.token_scopes,
        )
        if error is not None:
            raise error
        return body if body is not None else {}

    def open_graphql(
        self,
        query: str,
        variables: dict | None = None,
        scopes=(),
        raise_errors: bool = True,
    ) -> dict:
        """POST a GraphQL query.

        Returns `data` when raise_errors, else the whole `{data, errors}` body.
        """
        url = self.url_to("graphql")
        if not self.credentials.authenticated:
            raise AuthenticationFailedError(
                "The GitHub GraphQL API requires authentication; set HOMEBREW_GITHUB_API_TOKEN.",
                url=url,
                category=ErrorCategory.MISSING_CREDENTIALS,
            )
        payload = {"query": query}
        if variables is not None:
            payload["variables"] = variables

        body = self.open_rest(url, data=payload, request_method="POST", scopes=scopes)
        if not raise_errors:
            return body
        if body.get("errors"):
            raise classify_graphql_errors(body["errors"], url=url)
        return body.get("data") or {}

    def cached_rest(self, url: str, params: dict | None = None, skip_cache: bool = False):
        """GET through the on-disk response cache.

        Only successful responses are cached; skip_cache still writes.
        """
        Path(self.settings.cache_dir).mkdir(parents=True, exist_ok=True)
        if skip_cache:
            return self._skip_read_fetch(url, params)
        return self._cached_fetch(url, params)

    def head(self, url: str, accept: str | None = None) -> httpx.Response:
        """Raw HEAD request; the caller inspects status and headers."""
        headers = {"Accept": accept} if accept else None
        return self._send("HEAD", url, headers=headers, follow_redirects=True)

    def close(self):
        self._client.close()


def _parse_body(response: httpx.Response):
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


# Singleton
_api: GitHubAPI | None = None


def get_api() -> GitHubAPI:
    """Get or create the process-wide API client."""
    global _api
    if _api is None:
        _api = GitHubAPI()
    return _api
