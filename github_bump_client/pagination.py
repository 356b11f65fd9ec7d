"""Pagination over REST page numbers and GraphQL cursors."""

from collections.abc import Callable, Sequence

from .api import GitHubAPI
from .errors import APIError, classify_graphql_errors
from .models import API_MAX_PAGES, DEFAULT_PER_PAGE, PageInfo


class _Stop:
    def __repr__(self):
        return "STOP"


# Returned from an on_page callback to end the traversal early
STOP = _Stop()


def paginate_rest(
    api: GitHubAPI,
    url: str,
    per_page: int = DEFAULT_PER_PAGE,
    params: dict | None = None,
    scopes=(),
    items_key: str | None = None,
    on_page: Callable[[list, int], object] | None = None,
) -> list:
    """Fetch pages 1..API_MAX_PAGES and return all items in order.

    A page shorter than per_page is treated as the last one. on_page(items, page)
    sees every page and may return STOP.
    """
    items: list = []
    for page in range(1, API_MAX_PAGES + 1):
        query = {**(params or {}), "per_page": per_page, "page": page}
        result = api.open_rest(url, params=query, scopes=scopes)
        page_items = result.get(items_key, []) if items_key else result
        items.extend(page_items)

        if on_page is not None and on_page(page_items, page) is STOP:
            break
        if len(page_items) < per_page:
            break
    return items


def paginate_graphql(
    api: GitHubAPI,
    query: str,
    on_page: Callable[[dict, int], object],
    variables: dict | None = None,
    scopes=(),
    raise_errors: bool = True,
) -> list[dict]:
    """Follow `after` cursors until hasNextPage is false or on_page returns STOP.

    on_page(data, page) returns the connection's PageInfo (or raw pageInfo
    dict). With raise_errors=False, GraphQL errors are collected and returned
    instead of raised.
    """
    variables = dict(variables or {})
    errors: list[dict] = []
    page_info = PageInfo(has_next_page=True)
    seen_cursors: set[str] = set()
    page = 0

    while page_info.has_next_page:
        page += 1
        variables["after"] = page_info.end_cursor
        body = api.open_graphql(query, variables=variables, scopes=scopes, raise_errors=False)

        page_errors = body.get("errors") or []
        if page_errors and raise_errors:
            raise classify_graphql_errors(page_errors, url=api.url_to("graphql"))
        errors.extend(page_errors)

        result = on_page(body.get("data") or {}, page)
        if result is STOP:
            break
        page_info = result if isinstance(result, PageInfo) else PageInfo.from_graphql(result)

        if page_info.has_next_page:
            if page_info.end_cursor is None or page_info.end_cursor in seen_cursors:
                raise APIError(
                    f"GraphQL pagination cursor did not advance after page {page}: "
                    f"{page_info.end_cursor!r}"
                )
            seen_cursors.add(page_info.end_cursor)
    return errors


def _dig(data: dict, path: Sequence[str]):
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def paginate_graphql_nodes(
    api: GitHubAPI,
    query: str,
    path: Sequence[str],
    variables: dict | None = None,
    scopes=(),
    raise_errors: bool = True,
) -> list:
    """Accumulate the non-null nodes of the connection found at `path`.

    In soft mode (raise_errors=False), collected errors are raised only if no
    node could be fetched at all.
    """
    nodes: list = []

    def collect(data, _page):
        connection = _dig(data, path)
        if not connection:
            return STOP
        nodes.extend(n for n in connection.get("nodes") or [] if n is not None)
        return PageInfo.from_graphql(connection.get("pageInfo"))

    errors = paginate_graphql(
        api, query, collect, variables=variables, scopes=scopes, raise_errors=raise_errors
    )
    if errors and not nodes:
        raise classify_graphql_errors(errors, url=api.url_to("graphql"))
    return nodes
