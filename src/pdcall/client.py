from __future__ import annotations

from collections.abc import Mapping, Sequence
from types import TracebackType
from urllib.parse import urlparse

from aiohttp import ClientSession
from loguru import logger

from pdcall import lookup
from pdcall.auth import Authenticator, Credential
from pdcall.core.batch import BatchScheduler
from pdcall.core.executor import RequestExecutor, SleepFunc
from pdcall.core.models import (
    ClientConfig,
    ParamValue,
    RateLimitConfig,
    RequestSpec,
    RetryConfig,
)
from pdcall.core.paginator import Paginator
from pdcall.core.result import BatchResult, Result


class PagerDutyClient:
    """
    Entry point for the command layer.

    Owns one aiohttp session for its lifetime and exposes single requests,
    paginated fetches, concurrent batches and id lookups.

    Example:
        >>> credential = Credential(token=os.environ["PAGERDUTY_TOKEN"])
        >>> async with PagerDutyClient(credential) as pd:
        ...     teams = await pd.fetch_all("teams", params={"query": "Ops"})
        ...     if teams.is_success:
        ...         specs = [RequestSpec(f"teams/{t['id']}") for t in teams.data]
        ...         batch = await pd.run_batch(specs)
        ...         for index in batch.failed_indices():
        ...             print(batch.result_at(index).formatted_error())

    Raises:
        NoCredentialError: At construction, if `credential` is None or empty
    """

    def __init__(
        self,
        credential: Credential | None,
        config: ClientConfig | None = None,
        retry: RetryConfig | None = None,
        rate_limit: RateLimitConfig | None = None,
        session: ClientSession | None = None,
        sleep: SleepFunc | None = None,
    ) -> None:
        self.credential = credential
        self.authenticator = Authenticator(credential)
        self.authenticator.headers()  # fail fast on a missing credential
        self.config = config or ClientConfig()
        self.retry = retry or RetryConfig()
        self.rate_limit = rate_limit
        self._sleep = sleep
        self._session = session
        self._owns_session = session is None
        self._executor: RequestExecutor | None = None
        self._paginator: Paginator | None = None
        self._scheduler: BatchScheduler | None = None

    async def __aenter__(self) -> PagerDutyClient:
        if self._session is None:
            self._session = ClientSession()
        extra = {"sleep": self._sleep} if self._sleep is not None else {}
        self._executor = RequestExecutor(
            session=self._session,
            authenticator=self.authenticator,
            config=self.config,
            retry=self.retry,
            rate_limit=self.rate_limit,
            **extra,
        )
        self._paginator = Paginator(self._executor, page_size=self.config.page_size)
        self._scheduler = BatchScheduler(self._executor)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
        self._executor = self._paginator = self._scheduler = None

    def _require_open(self) -> None:
        if self._executor is None or self._paginator is None or self._scheduler is None:
            raise RuntimeError("PagerDutyClient must be used as 'async with PagerDutyClient(...)'")

    @property
    def executor(self) -> RequestExecutor:
        self._require_open()
        return self._executor  # type: ignore[return-value]

    @property
    def paginator(self) -> Paginator:
        self._require_open()
        return self._paginator  # type: ignore[return-value]

    @property
    def scheduler(self) -> BatchScheduler:
        self._require_open()
        return self._scheduler  # type: ignore[return-value]

    async def execute(self, spec: RequestSpec) -> Result:
        return await self.executor.execute(spec)

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        params: Mapping[str, ParamValue] | None = None,
        body: object | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Result:
        """Build a RequestSpec from keyword arguments and execute it."""
        spec = RequestSpec(
            endpoint=endpoint,
            method=method,
            params=params or {},
            body=body,
            headers=headers or {},
        )
        return await self.execute(spec)

    async def fetch_all(
        self,
        endpoint: str,
        params: Mapping[str, ParamValue] | None = None,
        item_limit: int | None = None,
        headers: Mapping[str, str] | None = None,
        collection_key: str | None = None,
    ) -> Result:
        return await self.paginator.fetch_all(
            endpoint,
            params=params,
            item_limit=item_limit,
            headers=headers,
            collection_key=collection_key,
        )

    async def run_batch(
        self,
        specs: Sequence[RequestSpec],
        concurrency: int | None = None,
        show_progress: bool = False,
        description: str = "Completed requests",
    ) -> BatchResult:
        return await self.scheduler.run_batch(
            specs,
            concurrency=concurrency if concurrency is not None else self.config.concurrency,
            show_progress=show_progress,
            description=description,
        )

    async def find_id_by_name(self, endpoint: str, name: str) -> Result:
        return await lookup.find_id_by_name(self.paginator, endpoint, name)

    async def find_id_by_email(self, email: str, endpoint: str = "users") -> Result:
        return await lookup.find_id_by_email(self.paginator, email, endpoint=endpoint)

    async def ep_id_for_name(self, name: str) -> Result:
        return await lookup.ep_id_for_name(self.paginator, name)

    async def schedule_id_for_name(self, name: str) -> Result:
        return await lookup.schedule_id_for_name(self.paginator, name)

    async def service_id_for_name(self, name: str) -> Result:
        return await lookup.service_id_for_name(self.paginator, name)

    async def team_id_for_name(self, name: str) -> Result:
        return await lookup.team_id_for_name(self.paginator, name)

    async def user_id_for_email(self, email: str) -> Result:
        return await lookup.user_id_for_email(self.paginator, email)

    async def priorities_by_name(self) -> Result:
        return await lookup.priorities_by_name(self.paginator)

    async def me(self) -> Result:
        """The authenticated user. Legacy API keys are not tied to a user and fail."""
        return await self.execute(RequestSpec("users/me"))

    async def domain(self) -> str | None:
        """
        PagerDuty subdomain of the account, e.g. "acme" for acme.pagerduty.com.

        Derived from the current user's html_url; falls back to the subdomain
        stored with the credential when that lookup fails.
        """
        r = await self.me()
        if r.is_success:
            user = r.data.get("user") if isinstance(r.data, dict) else None
            html_url = user.get("html_url") if isinstance(user, dict) else None
            host = urlparse(html_url).hostname if isinstance(html_url, str) else None
            if host:
                return host.split(".")[0]
        else:
            logger.debug(f"Could not read the current user: {r.formatted_error()}")
        return self.credential.subdomain if self.credential else None
