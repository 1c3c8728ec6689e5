import asyncio

import pytest
from aiohttp import web

from pdcall import (
    APIError,
    ClientConfig,
    Credential,
    CredentialKind,
    InvalidRequestSpecError,
    MalformedResponseError,
    RateLimitError,
    RequestSpec,
    RetryConfig,
    TransportError,
)
from tests.conftest import json_response


class TestSuccessfulRequests:
    """Tests for requests answered with a 2xx status."""

    @pytest.mark.asyncio
    async def test_success_returns_parsed_payload(self, make_client) -> None:
        """Test that a 200 response becomes a Success with the parsed JSON body."""

        async def get_team(request: web.Request) -> web.Response:
            return json_response({"team": {"id": request.match_info["id"], "name": "Ops"}})

        app = web.Application()
        app.router.add_get("/teams/{id}", get_team)
        client = await make_client(app)

        result = await client.execute(RequestSpec("teams/PTEAM01"))

        assert result.is_success
        assert result.status == 200
        assert result.data == {"team": {"id": "PTEAM01", "name": "Ops"}}
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_no_content_is_success_without_data(self, make_client) -> None:
        """Test that a 204 response (e.g. DELETE) is a Success with None data."""

        async def delete(request: web.Request) -> web.Response:
            return web.Response(status=204)

        app = web.Application()
        app.router.add_delete("/teams/{team}/escalation_policies/{ep}", delete)
        client = await make_client(app)

        result = await client.execute(
            RequestSpec("teams/PTEAM01/escalation_policies/PEP0001", method="DELETE")
        )

        assert result.is_success
        assert result.status == 204
        assert result.data is None

    @pytest.mark.asyncio
    async def test_malformed_success_body_is_failure(self, make_client) -> None:
        """Test that an unparsable body on a 200 is a Failure, not a crash."""

        async def broken(request: web.Request) -> web.Response:
            return web.Response(text="<html>oops</html>", content_type="text/html")

        app = web.Application()
        app.router.add_get("/users/me", broken)
        client = await make_client(app)

        result = await client.execute(RequestSpec("users/me"))

        assert result.is_failure
        assert isinstance(result.error, MalformedResponseError)
        assert result.status == 200
        assert "malformed response" in result.formatted_error()

    @pytest.mark.asyncio
    async def test_body_params_and_headers_are_sent(self, make_client) -> None:
        """Test that the request carries auth, JSON body, query params and spec headers."""
        seen = {}

        async def create(request: web.Request) -> web.Response:
            seen["headers"] = dict(request.headers)
            seen["query"] = list(request.query.items())
            seen["body"] = await request.json()
            return json_response({"escalation_policy": {"id": "PNEW001"}}, status=201)

        app = web.Application()
        app.router.add_post("/escalation_policies", create)
        client = await make_client(app)

        result = await client.execute(
            RequestSpec(
                "escalation_policies",
                method="post",
                params={"include[]": ["teams", "targets"]},
                body={"escalation_policy": {"name": "Copy"}},
                headers={"From": "ops@example.com"},
            )
        )

        assert result.is_success
        assert result.status == 201
        assert seen["headers"]["Authorization"] == "Bearer test-token"
        assert seen["headers"]["Accept"] == "application/vnd.pagerduty+json;version=2"
        assert seen["headers"]["Content-Type"] == "application/json"
        assert seen["headers"]["From"] == "ops@example.com"
        assert seen["query"] == [("include[]", "teams"), ("include[]", "targets")]
        assert seen["body"] == {"escalation_policy": {"name": "Copy"}}

    @pytest.mark.asyncio
    async def test_legacy_key_uses_token_scheme(self, make_client) -> None:
        """Test that legacy API keys authenticate with 'Token token=...'."""
        seen = {}

        async def handler(request: web.Request) -> web.Response:
            seen["authorization"] = request.headers["Authorization"]
            return json_response({"services": []})

        app = web.Application()
        app.router.add_get("/services", handler)
        client = await make_client(
            app, credential=Credential(token="legacy-key", kind=CredentialKind.LEGACY)
        )

        await client.execute(RequestSpec("services"))

        assert seen["authorization"] == "Token token=legacy-key"

    @pytest.mark.asyncio
    async def test_spec_headers_override_shared_headers(self, make_client) -> None:
        """Test that a spec header replaces a shared header of the same name."""
        seen = {}

        async def handler(request: web.Request) -> web.Response:
            seen["accept"] = request.headers["Accept"]
            return json_response({"fields": []})

        app = web.Application()
        app.router.add_get("/fields", handler)
        client = await make_client(app)

        await client.execute(RequestSpec("fields", headers={"Accept": "application/json"}))

        assert seen["accept"] == "application/json"


class TestFailedRequests:
    """Tests for API and transport failures."""

    @pytest.mark.asyncio
    async def test_structured_api_error_is_formatted(self, make_client) -> None:
        """Test that the API's error envelope ends up in the formatted error."""

        async def invalid(request: web.Request) -> web.Response:
            return json_response(
                {
                    "error": {
                        "message": "Invalid Input Provided",
                        "code": 2001,
                        "errors": ["Name has already been taken"],
                    }
                },
                status=400,
            )

        app = web.Application()
        app.router.add_post("/escalation_policies", invalid)
        client = await make_client(app)

        result = await client.execute(
            RequestSpec("escalation_policies", method="POST", body={"escalation_policy": {}})
        )

        assert result.is_failure
        assert result.status == 400
        assert isinstance(result.error, APIError)
        assert result.error.code == 2001
        assert result.formatted_error() == (
            "400 Bad Request: Invalid Input Provided (code 2001): Name has already been taken"
        )

    @pytest.mark.asyncio
    async def test_unstructured_api_error_falls_back_to_status_line(self, make_client) -> None:
        """Test that a non-JSON error body still yields a readable message."""

        async def gateway(request: web.Request) -> web.Response:
            return web.Response(status=502, text="Bad Gateway")

        app = web.Application()
        app.router.add_get("/incidents", gateway)
        client = await make_client(app)

        result = await client.execute(RequestSpec("incidents"))

        assert result.is_failure
        assert result.status == 502
        assert result.formatted_error().startswith("502 Bad Gateway")

    @pytest.mark.asyncio
    async def test_api_errors_are_not_retried(self, make_client) -> None:
        """Test that a 404 is returned after a single attempt."""
        calls = []

        async def missing(request: web.Request) -> web.Response:
            calls.append(1)
            return json_response({"error": {"message": "Not Found", "code": 2100}}, status=404)

        app = web.Application()
        app.router.add_get("/schedules/{id}", missing)
        client = await make_client(app)

        result = await client.execute(RequestSpec("schedules/PNOPE00"))

        assert result.is_failure
        assert result.attempts == 1
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_connection_refused_is_transport_failure(self, make_client) -> None:
        """Test that an unreachable server resolves to a Failure without a status."""
        app = web.Application()
        client = await make_client(app)
        client.config.base_url = "http://127.0.0.1:1"

        result = await client.execute(RequestSpec("users/me"))

        assert result.is_failure
        assert result.status is None
        assert isinstance(result.error, TransportError)
        assert result.formatted_error().startswith("Network error")

    @pytest.mark.asyncio
    async def test_timeout_is_transport_failure(self, make_client) -> None:
        """Test that a call exceeding the timeout resolves to a Failure."""

        async def slow(request: web.Request) -> web.Response:
            await asyncio.sleep(1.0)
            return json_response({"users": []})

        app = web.Application()
        app.router.add_get("/users", slow)
        client = await make_client(app, config=ClientConfig(timeout_seconds=0.1))

        result = await client.execute(RequestSpec("users"))

        assert result.is_failure
        assert result.status is None
        assert isinstance(result.error, TransportError)

    @pytest.mark.asyncio
    async def test_non_spec_argument_raises(self, make_client) -> None:
        """Test that passing something other than a RequestSpec is a programming error."""
        client = await make_client(web.Application())

        with pytest.raises(InvalidRequestSpecError):
            await client.execute({"endpoint": "users"})  # type: ignore[arg-type]


class TestRateLimitRetry:
    """Tests for retrying rate-limited (429) requests."""

    @pytest.mark.asyncio
    async def test_retries_until_success(self, make_client, sleeps) -> None:
        """Test that two 429s followed by a 200 give a Success after two retries."""
        responses = iter([429, 429, 200])

        async def flaky(request: web.Request) -> web.Response:
            status = next(responses)
            if status == 429:
                return json_response(
                    {"error": {"message": "Rate Limit Exceeded", "code": 2020}},
                    status=429,
                    **{"ratelimit-reset": "2"},
                )
            return json_response({"oncalls": []})

        app = web.Application()
        app.router.add_get("/oncalls", flaky)
        client = await make_client(app)

        result = await client.execute(RequestSpec("oncalls"))

        assert result.is_success
        assert result.attempts == 3
        assert result.retries == 2
        assert sleeps.delays == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_backoff_used_without_reset_header(self, make_client, sleeps) -> None:
        """Test that exponential backoff is used when the 429 carries no reset hint."""
        responses = iter([429, 429, 200])

        async def flaky(request: web.Request) -> web.Response:
            status = next(responses)
            return json_response({} if status == 200 else {"error": "slow down"}, status=status)

        app = web.Application()
        app.router.add_get("/services", flaky)
        client = await make_client(
            app, retry=RetryConfig(base_delay_seconds=1.0, max_delay_seconds=10.0, jitter=0.0)
        )

        result = await client.execute(RequestSpec("services"))

        assert result.is_success
        assert sleeps.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_persistent_rate_limit_is_bounded(self, make_client, sleeps) -> None:
        """Test that an API that always answers 429 yields a Failure after max_attempts."""
        calls = []

        async def throttled(request: web.Request) -> web.Response:
            calls.append(1)
            return json_response(
                {"error": {"message": "Rate Limit Exceeded"}}, status=429, **{"retry-after": "1"}
            )

        app = web.Application()
        app.router.add_get("/incidents", throttled)
        client = await make_client(app, retry=RetryConfig(max_attempts=4))

        result = await client.execute(RequestSpec("incidents"))

        assert result.is_failure
        assert result.status == 429
        assert isinstance(result.error, RateLimitError)
        assert result.attempts == 4
        assert len(calls) == 4
        assert len(sleeps.delays) == 3
        assert "Rate Limit Exceeded" in result.formatted_error()

    @pytest.mark.asyncio
    async def test_reset_header_delay_is_capped(self, make_client, sleeps) -> None:
        """Test that a huge reset hint is capped at max_delay_seconds."""
        responses = iter([429, 200])

        async def handler(request: web.Request) -> web.Response:
            status = next(responses)
            return json_response({}, status=status, **{"ratelimit-reset": "3600"})

        app = web.Application()
        app.router.add_get("/teams", handler)
        client = await make_client(app, retry=RetryConfig(max_delay_seconds=5.0))

        result = await client.execute(RequestSpec("teams"))

        assert result.is_success
        assert sleeps.delays == [5.0]
