"""API ticket client + single-flight TTL cache."""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
from cachetools import TTLCache
from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fchat.errors import AuthError

# Transient failures worth another attempt when retry is enabled
TRANSIENT_ERRORS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
    httpx.ReadError,
    httpx.WriteError,
)

_FALLBACK_ERROR = "Unable to parse ticket response"


@dataclass(frozen=True)
class Ticket:
    """Issued API ticket plus the account data returned with it."""

    value: str
    issued_at: float
    account: str
    expiration_period: float
    characters: tuple[str, ...] = ()
    default_character: str | None = None
    friends: tuple[dict[str, Any], ...] = ()
    bookmarks: tuple[str, ...] = field(default=())

    @property
    def expires_at(self) -> float:
        return self.issued_at + self.expiration_period

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class TicketClient:
    """Form-POST client for the ticket endpoint.

    Request body: account, password and optional no_characters / no_friends /
    no_bookmarks flags. Response: {ticket, characters?, default_character?,
    friends?, bookmarks?} or {error}.
    """

    def __init__(
        self,
        ticket_url: str,
        *,
        timeout: float = 10.0,
        attempts: int = 1,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = ticket_url
        self._timeout = timeout
        self._attempts = attempts
        self._transport = transport

    def _form(self, account: str, password: str, account_data: bool) -> dict[str, str]:
        form = {"account": account, "password": password}
        if not account_data:
            form.update(no_characters="true", no_friends="true", no_bookmarks="true")
        return form

    async def _post(self, form: dict[str, str]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._attempts),
                wait=wait_exponential(multiplier=1, min=2, max=30),
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
                reraise=True,
            ):
                with attempt:
                    resp = await client.post(self._url, data=form)
                    resp.raise_for_status()
                    return resp
        raise AssertionError("unreachable")  # pragma: no cover

    async def request(self, account: str, password: str, *, account_data: bool = False) -> dict[str, Any]:
        """POST credentials; return the response dict or raise AuthError."""
        try:
            resp = await self._post(self._form(account, password, account_data))
        except httpx.HTTPError as exc:
            raise AuthError(
                f"Ticket request failed: {exc}",
                code="http_error",
                original_error=exc,
            ) from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise AuthError(_FALLBACK_ERROR, code="unparsable", original_error=exc) from exc
        if not isinstance(data, dict):
            raise AuthError(_FALLBACK_ERROR, code="unparsable")
        if data.get("error"):
            raise AuthError(str(data["error"]), code="rejected")
        if not data.get("ticket"):
            raise AuthError(_FALLBACK_ERROR, code="missing_ticket")
        return data


class TicketBroker:
    """Caches one account's ticket; concurrent refreshes share one request."""

    def __init__(
        self,
        client: TicketClient,
        account: str,
        password: str,
        *,
        expiration_period: float = 1800,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._account = account
        self._password = password
        self._period = expiration_period
        self._clock = clock
        self._cache: TTLCache[str, Ticket] = TTLCache(maxsize=1, ttl=expiration_period, timer=clock)
        self._inflight: asyncio.Task[Ticket] | None = None
        self._last: Ticket | None = None

    @property
    def account(self) -> str:
        return self._account

    @property
    def current_ticket(self) -> Ticket | None:
        """Last issued ticket, expired or not. No network access."""
        return self._last

    @property
    def refreshing(self) -> bool:
        return self._inflight is not None

    def invalidate(self) -> None:
        """Drop the cached ticket so the next get_ticket refreshes."""
        self._cache.pop(self._account, None)

    async def get_ticket(self, force_refresh: bool = False) -> Ticket:
        """Return a valid ticket, refreshing at most once across concurrent callers."""
        if not force_refresh and self._inflight is None:
            cached = self._cache.get(self._account)
            if cached is not None:
                logger.debug("Ticket cache hit: account={}", self._account)
                return cached
        if self._inflight is None:
            logger.debug(
                "Ticket cache miss: account={} forced={}",
                self._account,
                force_refresh,
            )
            self._start_refresh(account_data=False)
        return await self._join()

    async def fetch_account_data(self) -> Ticket:
        """Refresh the ticket with characters, friends and bookmarks included."""
        if self._inflight is not None:
            with contextlib.suppress(AuthError):
                await self._join()
        if self._inflight is None:
            self._start_refresh(account_data=True)
        return await self._join()

    def _start_refresh(self, *, account_data: bool) -> None:
        self._inflight = asyncio.get_running_loop().create_task(self._refresh(account_data))

    async def _join(self) -> Ticket:
        task = self._inflight
        if task is None:  # pragma: no cover
            raise RuntimeError("no ticket refresh in flight")
        # Shield so a cancelled waiter does not cancel the shared request
        return await asyncio.shield(task)

    async def _refresh(self, account_data: bool) -> Ticket:
        try:
            data = await self._client.request(self._account, self._password, account_data=account_data)
            ticket = Ticket(
                value=str(data["ticket"]),
                issued_at=self._clock(),
                account=self._account,
                expiration_period=self._period,
                characters=tuple(data.get("characters") or ()),
                default_character=data.get("default_character"),
                friends=tuple(data.get("friends") or ()),
                bookmarks=tuple(
                    b["name"] if isinstance(b, dict) else str(b) for b in data.get("bookmarks") or ()
                ),
            )
            self._cache[self._account] = ticket
            self._last = ticket
            logger.info("Ticket issued: account={}", self._account)
            return ticket
        except AuthError as exc:
            logger.warning("Ticket request failed: account={} reason={}", self._account, exc)
            raise
        finally:
            self._inflight = None
