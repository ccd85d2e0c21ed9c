"""JSON API client: authenticated form POSTs to the site's helper endpoints."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from fchat.config import Config
from fchat.errors import ApiError
from fchat.ticket import TRANSIENT_ERRORS, TicketBroker

ENDPOINTS: dict[str, str] = {
    "bookmark_add": "bookmark-add.php",
    "bookmark_list": "bookmark-list.php",
    "bookmark_remove": "bookmark-remove.php",
    "character_data": "character-data.php",
    "character_list": "character-list.php",
    "group_list": "group-list.php",
    "ignore_list": "ignore-list.php",
    "info_list": "info-list.php",
    "kink_list": "kink-list.php",
    "mapping_list": "mapping-list.php",
    "friend_list": "friend-list.php",
    "friend_remove": "friend-remove.php",
    "request_accept": "request-accept.php",
    "request_cancel": "request-cancel.php",
    "request_deny": "request-deny.php",
    "request_list": "request-list.php",
    "request_pending": "request-pending.php",
    "request_send": "request-send.php",
}

# Public endpoints: no account/ticket fields
NO_ACCOUNT_REQUIRED: frozenset[str] = frozenset(("info_list", "kink_list", "mapping_list"))


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ApiClient:
    """Sends helper-endpoint requests, attaching account and a fresh ticket."""

    def __init__(
        self,
        broker: TicketBroker,
        base_url: str,
        *,
        timeout: float = 10.0,
        attempts: int = 1,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._broker = broker
        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._timeout = timeout
        self._attempts = attempts
        self._transport = transport

    @classmethod
    def from_config(cls, config: Config, broker: TicketBroker) -> ApiClient:
        return cls(
            broker,
            config.api_base_url,
            timeout=config.http_timeout_seconds,
            attempts=config.ticket_retry_attempts,
        )

    def url_for(self, endpoint: str) -> str:
        try:
            return self._base_url + ENDPOINTS[endpoint]
        except KeyError:
            raise ApiError(f"Unknown endpoint {endpoint!r}", code="unknown_endpoint") from None

    async def send_authenticated_request(self, endpoint: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        """POST payload to endpoint; returns the response JSON or raises ApiError."""
        url = self.url_for(endpoint)
        form = {k: _form_value(v) for k, v in (payload or {}).items()}
        if endpoint not in NO_ACCOUNT_REQUIRED:
            ticket = await self._broker.get_ticket()
            form["account"] = self._broker.account
            form["ticket"] = ticket.value

        logger.debug("API request: {}", endpoint)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(self._attempts),
                    wait=wait_exponential(multiplier=1, min=2, max=30),
                    retry=retry_if_exception_type(TRANSIENT_ERRORS),
                    reraise=True,
                ):
                    with attempt:
                        resp = await client.post(url, data=form)
                        resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise ApiError(f"{endpoint} request failed: {exc}", code="http_error", original_error=exc) from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise ApiError(f"{endpoint} returned unparsable JSON", code="unparsable", original_error=exc) from exc
        if not isinstance(data, dict):
            raise ApiError(f"{endpoint} returned unparsable JSON", code="unparsable")
        if data.get("error"):
            raise ApiError(str(data["error"]), code="rejected", details={"endpoint": endpoint})
        return data

    # -- bookmarks ---------------------------------------------------------------

    async def add_bookmark(self, name: str) -> dict[str, Any]:
        return await self.send_authenticated_request("bookmark_add", {"name": name})

    async def list_bookmarks(self) -> dict[str, Any]:
        return await self.send_authenticated_request("bookmark_list")

    async def remove_bookmark(self, name: str) -> dict[str, Any]:
        return await self.send_authenticated_request("bookmark_remove", {"name": name})

    # -- characters ----------------------------------------------------------------

    async def character_data(self, name: str) -> dict[str, Any]:
        return await self.send_authenticated_request("character_data", {"name": name})

    async def character_list(self) -> dict[str, Any]:
        return await self.send_authenticated_request("character_list")

    async def group_list(self) -> dict[str, Any]:
        return await self.send_authenticated_request("group_list")

    async def ignore_list(self) -> dict[str, Any]:
        return await self.send_authenticated_request("ignore_list")

    async def info_list(self) -> dict[str, Any]:
        return await self.send_authenticated_request("info_list")

    async def kink_list(self) -> dict[str, Any]:
        return await self.send_authenticated_request("kink_list")

    async def mapping_list(self) -> dict[str, Any]:
        return await self.send_authenticated_request("mapping_list")

    # -- friends -------------------------------------------------------------------

    async def list_friends(self) -> dict[str, Any]:
        return await self.send_authenticated_request("friend_list")

    async def remove_friend(self, source_name: str, dest_name: str) -> dict[str, Any]:
        return await self.send_authenticated_request(
            "friend_remove", {"source_name": source_name, "dest_name": dest_name}
        )

    async def send_friend_request(self, source_name: str, dest_name: str) -> dict[str, Any]:
        return await self.send_authenticated_request(
            "request_send", {"source_name": source_name, "dest_name": dest_name}
        )

    async def accept_friend_request(self, request_id: int) -> dict[str, Any]:
        return await self.send_authenticated_request("request_accept", {"request_id": request_id})

    async def cancel_friend_request(self, request_id: int) -> dict[str, Any]:
        return await self.send_authenticated_request("request_cancel", {"request_id": request_id})

    async def deny_friend_request(self, request_id: int) -> dict[str, Any]:
        return await self.send_authenticated_request("request_deny", {"request_id": request_id})

    async def list_friend_requests(self) -> dict[str, Any]:
        return await self.send_authenticated_request("request_list")

    async def list_pending_friend_requests(self) -> dict[str, Any]:
        return await self.send_authenticated_request("request_pending")
