from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from loguru import logger

from pdcall.core.executor import RequestExecutor
from pdcall.core.models import ParamValue, RequestSpec
from pdcall.core.result import Result
from pdcall.errors import MalformedResponseError

"""
Collection fetching across pages.

List endpoints answer with `{"<collection>": [...], "more": bool, ...}` for offset
pagination, or `{"<collection>": [...], "next_cursor": str | null}` for cursor
pagination. Pages are requested strictly one after another because each page's
position depends on the previous response.
"""


@dataclass
class PageCursor:
    offset: int = 0
    cursor: str | None = None
    use_cursor: bool = False
    more: bool = True

    def page_params(self, page_size: int) -> dict[str, ParamValue]:
        if self.use_cursor:
            params: dict[str, ParamValue] = {"limit": page_size}
            if self.cursor is not None:
                params["cursor"] = self.cursor
            return params
        return {"offset": self.offset, "limit": page_size}

    def advance(self, payload: Mapping[str, Any], items_on_page: int) -> None:
        if "next_cursor" in payload:
            self.use_cursor = True
            self.cursor = payload.get("next_cursor")
            self.more = self.cursor is not None
        else:
            self.offset += items_on_page
            self.more = bool(payload.get("more", False))
        if items_on_page == 0:
            self.more = False


class Paginator:
    """
    Assembles full collections from paginated list endpoints.

    Attributes:
        executor (RequestExecutor): Executor used for every page request
        page_size (int): `limit` parameter sent with each page request
    """

    def __init__(self, executor: RequestExecutor, page_size: int = 25) -> None:
        self.executor = executor
        self.page_size = page_size

    async def fetch_all(
        self,
        endpoint: str,
        params: Mapping[str, ParamValue] | None = None,
        item_limit: int | None = None,
        headers: Mapping[str, str] | None = None,
        collection_key: str | None = None,
    ) -> Result:
        """
        Fetch every item of a collection, in the API's page order.

        Args:
            endpoint (str): Collection endpoint, e.g. "teams" or
                "field_schemas/PABC123/field_configurations"
            params (Mapping[str, ParamValue] | None): Extra query parameters
                (filters such as "query")
            item_limit (int | None): Stop after this many items; the last page is
                truncated to hit the limit exactly
            headers (Mapping[str, str] | None): Extra request headers
            collection_key (str | None): Response key holding the items; defaults to
                the endpoint's last path segment

        Returns:
            Result: Success whose data is the list of items, or the Failure of the
                first page that failed (items fetched before it are discarded).
                With item_limit=0 no request is sent: an empty Success with
                status None and 0 attempts
        """
        if item_limit is not None and item_limit < 0:
            raise ValueError("item_limit must not be negative")

        base = RequestSpec(endpoint=endpoint, params=params or {}, headers=headers or {})
        key = collection_key or base.endpoint.rstrip("/").split("/")[-1]
        page = PageCursor()
        items: list[Any] = []
        attempts = 0
        status: int | None = None

        while page.more and (item_limit is None or len(items) < item_limit):
            result = await self.executor.execute(
                base.with_params(**page.page_params(self.page_size))
            )
            attempts += result.attempts
            if result.is_failure:
                logger.debug(
                    f"{base.endpoint}: page failed after {len(items)} items, discarding them"
                )
                return Result.failure(result.error, attempts=attempts, endpoint=base.endpoint)

            payload = result.data
            page_items = payload.get(key) if isinstance(payload, dict) else None
            if not isinstance(page_items, list):
                error = MalformedResponseError(
                    result.status or 200,
                    f"missing {key!r} list in page: {json.dumps(payload)}",
                )
                return Result.failure(error, attempts=attempts, endpoint=base.endpoint)

            status = result.status
            if item_limit is not None:
                page_items = page_items[: item_limit - len(items)]
            items.extend(page_items)
            page.advance(payload, len(payload[key]))
            logger.debug(f"{base.endpoint}: fetched page, {len(items)} items so far")

        # status is None and attempts 0 only when item_limit=0 sent no request.
        return Result.success(status, items, attempts=attempts, endpoint=base.endpoint)
