import pytest
from aiohttp import web

from pdcall import APIError, MalformedResponseError
from tests.conftest import json_response

PAGE_SIZES = [25, 25, 10]


def paged_users_app(fail_on_page: int | None = None) -> tuple[web.Application, list[dict], list[dict]]:
    """Serve 60 users as pages of 25, 25 and 10, optionally failing one page."""
    users = [{"id": f"PUSER{i:02d}", "name": f"User {i}"} for i in range(sum(PAGE_SIZES))]
    requests: list[dict] = []
    starts = [sum(PAGE_SIZES[:i]) for i in range(len(PAGE_SIZES))]

    async def list_users(request: web.Request) -> web.Response:
        requests.append(dict(request.query))
        offset = int(request.query.get("offset", 0))
        page = starts.index(offset)
        if fail_on_page is not None and page == fail_on_page:
            return json_response({"error": {"message": "Internal Error"}}, status=500)
        items = users[offset : offset + PAGE_SIZES[page]]
        return json_response(
            {
                "users": items,
                "offset": offset,
                "limit": 25,
                "more": page < len(PAGE_SIZES) - 1,
            }
        )

    app = web.Application()
    app.router.add_get("/users", list_users)
    return app, users, requests


class TestOffsetPagination:
    """Tests for offset/limit pagination."""

    @pytest.mark.asyncio
    async def test_fetches_every_page_in_order(self, make_client) -> None:
        """Test that all pages are concatenated in arrival order."""
        app, users, requests = paged_users_app()
        client = await make_client(app)

        result = await client.fetch_all("users")

        assert result.is_success
        assert result.data == users
        assert [r["offset"] for r in requests] == ["0", "25", "50"]
        assert all(r["limit"] == "25" for r in requests)

    @pytest.mark.asyncio
    async def test_item_limit_truncates_mid_page(self, make_client) -> None:
        """Test that a limit of 30 returns page 1 plus the first 5 items of page 2."""
        app, users, requests = paged_users_app()
        client = await make_client(app)

        result = await client.fetch_all("users", item_limit=30)

        assert result.is_success
        assert len(result.data) == 30
        assert result.data == users[:25] + users[25:30]
        assert len(requests) == 2

    @pytest.mark.asyncio
    async def test_item_limit_on_page_boundary_stops_fetching(self, make_client) -> None:
        """Test that no further page is requested once the limit is reached exactly."""
        app, users, requests = paged_users_app()
        client = await make_client(app)

        result = await client.fetch_all("users", item_limit=25)

        assert result.data == users[:25]
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_zero_item_limit_sends_nothing(self, make_client) -> None:
        """Test that item_limit=0 is an empty Success with no status and no attempts."""
        app, _, requests = paged_users_app()
        client = await make_client(app)

        result = await client.fetch_all("users", item_limit=0)

        assert result.is_success
        assert result.data == []
        assert result.status is None
        assert result.attempts == 0
        assert result.retries == 0
        assert requests == []

    @pytest.mark.asyncio
    async def test_failed_page_discards_partial_results(self, make_client) -> None:
        """Test that a failure on page 2 of 3 gives a Failure, not a 25-item list."""
        app, _, requests = paged_users_app(fail_on_page=1)
        client = await make_client(app)

        result = await client.fetch_all("users")

        assert result.is_failure
        assert result.status == 500
        assert isinstance(result.error, APIError)
        assert len(requests) == 2

    @pytest.mark.asyncio
    async def test_filter_params_are_sent_with_every_page(self, make_client) -> None:
        """Test that caller params accompany the pagination params."""
        app, _, requests = paged_users_app()
        client = await make_client(app)

        await client.fetch_all("users", params={"query": "User"})

        assert all(r["query"] == "User" for r in requests)

    @pytest.mark.asyncio
    async def test_empty_page_stops(self, make_client) -> None:
        """Test that an empty page ends pagination even if 'more' is true."""
        calls = []

        async def handler(request: web.Request) -> web.Response:
            calls.append(1)
            return json_response({"teams": [], "more": True})

        app = web.Application()
        app.router.add_get("/teams", handler)
        client = await make_client(app)

        result = await client.fetch_all("teams")

        assert result.is_success
        assert result.data == []
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_nested_endpoint_uses_last_segment_as_key(self, make_client) -> None:
        """Test that the items key defaults to the endpoint's last path segment."""

        async def handler(request: web.Request) -> web.Response:
            assert request.headers["X-EARLY-ACCESS"] == "flex-service-early-access"
            return json_response({"field_configurations": [{"id": "PFC0001"}], "more": False})

        app = web.Application()
        app.router.add_get("/field_schemas/{id}/field_configurations", handler)
        client = await make_client(app)

        result = await client.fetch_all(
            "field_schemas/PSCHEMA/field_configurations",
            headers={"X-EARLY-ACCESS": "flex-service-early-access"},
        )

        assert result.is_success
        assert result.data == [{"id": "PFC0001"}]

    @pytest.mark.asyncio
    async def test_missing_collection_key_is_malformed(self, make_client) -> None:
        """Test that a page without the expected list is a Failure."""

        async def handler(request: web.Request) -> web.Response:
            return json_response({"something_else": []})

        app = web.Application()
        app.router.add_get("/services", handler)
        client = await make_client(app)

        result = await client.fetch_all("services")

        assert result.is_failure
        assert isinstance(result.error, MalformedResponseError)


class TestCursorPagination:
    """Tests for cursor-based pagination."""

    @pytest.mark.asyncio
    async def test_follows_next_cursor(self, make_client) -> None:
        """Test that next_cursor is passed back until it is null."""
        pages = {
            None: ({"records": [{"id": 1}, {"id": 2}], "next_cursor": "c2"}),
            "c2": ({"records": [{"id": 3}], "next_cursor": "c3"}),
            "c3": ({"records": [{"id": 4}], "next_cursor": None}),
        }
        cursors = []

        async def handler(request: web.Request) -> web.Response:
            cursor = request.query.get("cursor")
            cursors.append(cursor)
            assert "offset" not in request.query or cursor is None
            return json_response(pages[cursor])

        app = web.Application()
        app.router.add_get("/audit/records", handler)
        client = await make_client(app)

        result = await client.fetch_all("audit/records")

        assert result.is_success
        assert [r["id"] for r in result.data] == [1, 2, 3, 4]
        assert cursors == [None, "c2", "c3"]
