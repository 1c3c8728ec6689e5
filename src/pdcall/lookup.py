from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pdcall.core.paginator import Paginator
from pdcall.core.result import Result

"""
Resolve resource ids from human-readable names and emails, and incident
priorities from their names.

The API's `query` filter matches substrings, so every candidate it returns is
checked client-side for an exact match. Not finding anything is a Success whose
data is None; only a failed page fetch is a Failure.
"""


async def _find_id(
    paginator: Paginator,
    endpoint: str,
    query: str,
    matches: Callable[[dict[str, Any]], bool],
    collection_key: str | None = None,
) -> Result:
    fetched = await paginator.fetch_all(
        endpoint, params={"query": query}, collection_key=collection_key
    )
    if fetched.is_failure:
        return fetched
    for candidate in fetched.data:
        if isinstance(candidate, dict) and matches(candidate):
            return Result.success(
                fetched.status or 200,
                candidate.get("id"),
                attempts=fetched.attempts,
                endpoint=fetched.endpoint,
            )
    return Result.success(
        fetched.status or 200, None, attempts=fetched.attempts, endpoint=fetched.endpoint
    )


async def find_id_by_name(
    paginator: Paginator, endpoint: str, name: str, collection_key: str | None = None
) -> Result:
    """
    Find the id of the first item of a collection whose name is exactly `name`.

    Args:
        paginator (Paginator): Paginator to query with
        endpoint (str): Collection endpoint, e.g. "escalation_policies"
        name (str): Exact name to look for
        collection_key (str | None): Response key if it differs from the endpoint

    Returns:
        Result: Success with the id (or None if no exact match), or the fetch Failure

    Example:
        >>> r = await find_id_by_name(paginator, "teams", "Ops")
        >>> r.data  # "Ops Team" is ignored even though the API returned it
        'PTEAM01'
    """
    return await _find_id(
        paginator, endpoint, name, lambda item: item.get("name") == name, collection_key
    )


async def find_id_by_email(
    paginator: Paginator, email: str, endpoint: str = "users", collection_key: str | None = None
) -> Result:
    """
    Find the id of the user whose login email is `email`.

    Emails are compared case-insensitively; anything else must match exactly.
    """
    wanted = email.casefold()

    def matches(item: dict[str, Any]) -> bool:
        value = item.get("email")
        return isinstance(value, str) and value.casefold() == wanted

    return await _find_id(paginator, endpoint, email, matches, collection_key)


async def ep_id_for_name(paginator: Paginator, name: str) -> Result:
    return await find_id_by_name(paginator, "escalation_policies", name)


async def schedule_id_for_name(paginator: Paginator, name: str) -> Result:
    return await find_id_by_name(paginator, "schedules", name)


async def service_id_for_name(paginator: Paginator, name: str) -> Result:
    return await find_id_by_name(paginator, "services", name)


async def team_id_for_name(paginator: Paginator, name: str) -> Result:
    return await find_id_by_name(paginator, "teams", name)


async def user_id_for_email(paginator: Paginator, email: str) -> Result:
    return await find_id_by_email(paginator, email)


async def priorities_by_name(paginator: Paginator) -> Result:
    """
    Map incident priority names to their priority objects.

    Accounts without the priorities feature list no priorities, so the map is
    empty rather than a Failure. If two priorities share a name, the first in
    page order is kept.

    Returns:
        Result: Success with `{name: priority}`, or the fetch Failure
    """
    fetched = await paginator.fetch_all("priorities")
    if fetched.is_failure:
        return fetched
    by_name: dict[str, Any] = {}
    for priority in fetched.data:
        if isinstance(priority, dict) and isinstance(priority.get("name"), str):
            by_name.setdefault(priority["name"], priority)
    return Result.success(
        fetched.status, by_name, attempts=fetched.attempts, endpoint=fetched.endpoint
    )
