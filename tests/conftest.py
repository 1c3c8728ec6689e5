"""Shared fixtures: an in-process fake of the PagerDuty API."""

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from pdcall import ClientConfig, Credential, PagerDutyClient

ClientFactory = Callable[..., Awaitable[PagerDutyClient]]


class RecordingSleep:
    """Stands in for asyncio.sleep in retry paths; records each requested delay."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


def json_response(payload: Any, status: int = 200, **headers: str) -> web.Response:
    return web.json_response(payload, status=status, headers=headers or None)


@pytest.fixture
def sleeps() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def credential() -> Credential:
    return Credential(token="test-token", alias="test", subdomain="acme", is_default=True)


@pytest_asyncio.fixture
async def make_client(
    sleeps: RecordingSleep, credential: Credential
) -> AsyncGenerator[ClientFactory, None]:
    """
    Start a fake API from an aiohttp application and return a client bound to it.

    Keyword arguments are passed to PagerDutyClient; `config` has its base_url
    replaced by the fake server's address.
    """
    servers: list[TestServer] = []
    clients: list[PagerDutyClient] = []

    async def factory(app: web.Application, **kwargs: Any) -> PagerDutyClient:
        server = TestServer(app)
        await server.start_server()
        servers.append(server)

        config = kwargs.pop("config", None) or ClientConfig()
        config.base_url = str(server.make_url("/")).rstrip("/")
        kwargs.setdefault("sleep", sleeps)
        client = PagerDutyClient(kwargs.pop("credential", credential), config=config, **kwargs)
        await client.__aenter__()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        await client.__aexit__(None, None, None)
    for server in servers:
        await server.close()
