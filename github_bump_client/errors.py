"""GitHub API errors and the classifier that maps responses onto them."""

import time
from enum import Enum

from .models import PAT_URL

# Substrings GitHub uses for organisation access-policy rejections
_SAML_MESSAGE = "Resource protected by organization SAML enforcement"
_IP_ALLOWLIST_MESSAGE = "your IP address is not permitted to access this resource"

BODY_EXCERPT_LENGTH = 200


class ErrorCategory(str, Enum):
    NOT_FOUND = "not_found"
    AUTHENTICATION = "authentication"
    MISSING_CREDENTIALS = "missing_credentials"
    SAML_ENFORCEMENT = "saml_enforcement"
    IP_ALLOWLIST = "ip_allowlist"
    RATE_LIMITED = "rate_limited"
    VALIDATION = "validation"
    DISABLED = "disabled"
    GENERIC = "generic"


class APIError(Exception):
    """Base exception for GitHub API errors; also the generic variant."""

    category = ErrorCategory.GENERIC

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        url: str | None = None,
        category: ErrorCategory | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.url = url
        if category is not None:
            self.category = category


class NotFoundError(APIError):
    category = ErrorCategory.NOT_FOUND


class AuthenticationFailedError(APIError):
    category = ErrorCategory.AUTHENTICATION

    @property
    def access_policy_denied(self) -> bool:
        """True when an organisation policy, not the token, refused access."""
        return self.category in (ErrorCategory.SAML_ENFORCEMENT, ErrorCategory.IP_ALLOWLIST)


class RateLimitExceededError(APIError):
    category = ErrorCategory.RATE_LIMITED

    def __init__(self, message: str, *, reset: int | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.reset = reset

    @property
    def seconds_until_reset(self) -> int:
        if self.reset is None:
            return 0
        return max(0, int(self.reset - time.time()))


class ValidationFailedError(APIError):
    category = ErrorCategory.VALIDATION

    def __init__(self, message: str, *, errors: list | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []


class FatalError(Exception):
    """A user-visible failure that should abort the current command."""


API_ERRORS = (APIError,)


def _lower_headers(headers) -> dict[str, str]:
    return {str(k).lower(): v for k, v in dict(headers or {}).items()}


def _int_header(headers: dict[str, str], name: str) -> int | None:
    try:
        return int(headers[name])
    except (KeyError, TypeError, ValueError):
        return None


def _body_message(body) -> str:
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    if body in (None, "", b""):
        return ""
    text = body if isinstance(body, str) else str(body)
    return text[:BODY_EXCERPT_LENGTH]


def parse_scopes(header: str | None) -> frozenset[str] | None:
    """Parse an X-OAuth-Scopes header into a set of scope names."""
    if header is None:
        return None
    return frozenset(s.strip() for s in header.split(",") if s.strip())


def access_policy_category(message: str) -> ErrorCategory | None:
    if _SAML_MESSAGE.lower() in message.lower():
        return ErrorCategory.SAML_ENFORCEMENT
    if _IP_ALLOWLIST_MESSAGE.lower() in message.lower():
        return ErrorCategory.IP_ALLOWLIST
    return None


def scopes_hint(scopes, token_scopes: frozenset[str] | None) -> str:
    """Explain which scopes a request needed versus what the token has."""
    if not scopes:
        return ""
    needed = sorted(scopes)
    lines = [f"Scopes required: {', '.join(needed)}"]
    if token_scopes is not None:
        present = ", ".join(sorted(token_scopes)) or "none"
        lines.append(f"Scopes present: {present}")
        missing = [s for s in needed if s not in token_scopes]
        if missing:
            lines.append(f"Your token needs the {', '.join(missing)} scope(s): {PAT_URL}")
    return "\n".join(lines)


def format_reset(reset: int | None) -> str:
    if reset is None:
        return "Try again later."
    minutes = max(0, int(reset - time.time())) // 60
    if minutes < 1:
        return "Try again in less than a minute."
    return f"Try again in {minutes} minute{'s' if minutes != 1 else ''}."


def classify_response(
    status: int,
    headers,
    body,
    *,
    url: str | None = None,
    scopes=(),
    token_scopes: frozenset[str] | None = None,
) -> APIError | None:
    """Map an HTTP response onto an APIError, or None for 2xx.

    Pure function of the response metadata.
    """
    if 200 <= status < 300:
        return None

    headers = _lower_headers(headers)
    message = _body_message(body)
    where = f" ({url})" if url else ""

    if status == 404:
        detail = f": {message}" if message and message != "Not Found" else ""
        return NotFoundError(f"Not Found{where}{detail}", status=status, url=url)

    if status == 429 or (status == 403 and headers.get("x-ratelimit-remaining") == "0"):
        reset = _int_header(headers, "x-ratelimit-reset")
        if reset is None and (retry_after := _int_header(headers, "retry-after")) is not None:
            reset = int(time.time()) + retry_after
        return RateLimitExceededError(
            f"GitHub API Error: {message or 'API rate limit exceeded'}{where}\n{format_reset(reset)}",
            reset=reset,
            status=status,
            url=url,
        )

    if status in (401, 403):
        category = access_policy_category(message) or ErrorCategory.AUTHENTICATION
        text = f"GitHub API Error: {message or 'Authentication failed'}{where}"
        hint = scopes_hint(scopes, token_scopes)
        if hint and category == ErrorCategory.AUTHENTICATION:
            text = f"{text}\n{hint}"
        return AuthenticationFailedError(text, status=status, url=url, category=category)

    if status == 422:
        errors = body.get("errors", []) if isinstance(body, dict) else []
        details = "; ".join(_describe_field_error(e) for e in errors)
        text = f"Validation Failed{where}: {message}"
        if details:
            text = f"{text} ({details})"
        return ValidationFailedError(text, errors=errors, status=status, url=url)

    return APIError(f"GitHub API Error {status}{where}: {message}", status=status, url=url)


def _describe_field_error(error) -> str:
    if not isinstance(error, dict):
        return str(error)
    if error.get("message"):
        return str(error["message"])
    parts = [str(error[k]) for k in ("resource", "field", "code") if error.get(k)]
    return " ".join(parts)


def classify_graphql_errors(errors: list[dict], *, url: str | None = None) -> APIError:
    """Map a GraphQL `errors` list onto a single APIError."""
    message = "\n".join(str(e.get("message", e)) for e in errors) or "GraphQL request failed"
    types = {e.get("type") for e in errors if isinstance(e, dict)}

    if "RATE_LIMITED" in types:
        return RateLimitExceededError(f"GitHub API Error: {message}", url=url)
    if "FORBIDDEN" in types or access_policy_category(message):
        category = access_policy_category(message) or ErrorCategory.AUTHENTICATION
        return AuthenticationFailedError(f"GitHub API Error: {message}", url=url, category=category)
    if types == {"NOT_FOUND"}:
        return NotFoundError(f"GitHub API Error: {message}", url=url)
    return APIError(f"GitHub API Error: {message}", url=url)
