"""Socket transport: aiohttp WebSocket behind a small event-stream interface."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Literal, Protocol

import aiohttp
from loguru import logger


@dataclass(frozen=True)
class TransportEvent:
    """One inbound transport occurrence: a text message, an error, or the close."""

    kind: Literal["message", "error", "close"]
    data: str = ""
    error: BaseException | None = None


class Transport(Protocol):
    """Open connection. Iterating yields events until (and including) close or error."""

    async def send(self, text: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[TransportEvent]: ...


TransportFactory = Callable[[str], Awaitable[Transport]]


class AiohttpTransport:
    """aiohttp WebSocket client connection."""

    def __init__(self, session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse) -> None:
        self._session = session
        self._ws = ws

    @classmethod
    async def open(cls, url: str, *, heartbeat: float | None = None) -> AiohttpTransport:
        """Connect and return once the socket is open."""
        session = aiohttp.ClientSession()
        try:
            ws = await session.ws_connect(url, heartbeat=heartbeat, max_msg_size=0)
        except BaseException:
            await session.close()
            raise
        logger.debug("WebSocket open: {}", url)
        return cls(session, ws)

    async def send(self, text: str) -> None:
        await self._ws.send_str(text)

    async def close(self) -> None:
        try:
            await self._ws.close()
        finally:
            await self._session.close()

    async def __aiter__(self) -> AsyncIterator[TransportEvent]:
        while True:
            msg = await self._ws.receive()
            if msg.type == aiohttp.WSMsgType.TEXT:
                yield TransportEvent("message", msg.data)
            elif msg.type == aiohttp.WSMsgType.BINARY:
                yield TransportEvent("message", msg.data.decode("utf-8", errors="replace"))
            elif msg.type == aiohttp.WSMsgType.ERROR:
                yield TransportEvent("error", error=self._ws.exception())
                return
            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                yield TransportEvent("close")
                return


async def open_aiohttp_transport(url: str) -> Transport:
    return await AiohttpTransport.open(url)
