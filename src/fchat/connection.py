"""Chat socket lifecycle: ticket, open, identify, read loop, teardown."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from loguru import logger

from fchat.dispatcher import Dispatcher, Payload
from fchat.errors import AuthError, FchatError, TransportError
from fchat.protocol import ClientCommand, ServerCommand, encode
from fchat.ticket import TicketBroker
from fchat.transport import Transport, TransportFactory, open_aiohttp_transport

OpenCallback = Callable[[str], Any]
MessageCallback = Callable[[str], Any]
CloseCallback = Callable[[], Any]
ErrorCallback = Callable[[FchatError], Any]


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    AWAITING_TICKET = "awaiting_ticket"
    CONNECTING = "connecting"
    OPEN = "open"
    IDENTIFIED = "identified"
    CLOSED = "closed"
    ERRORED = "errored"


_LIVE_STATES = frozenset(
    (
        ConnectionState.AWAITING_TICKET,
        ConnectionState.CONNECTING,
        ConnectionState.OPEN,
        ConnectionState.IDENTIFIED,
    )
)


class ConnectionManager:
    """Owns one socket session at a time.

    `connect` tears down any previous session, obtains a ticket, opens the
    transport and sends IDN. Inbound frames are dispatched strictly in arrival
    order from a single reader task; outbound frames go through a FIFO queue
    drained by a writer task. Each session carries a generation number so a
    ticket or socket that resolves after `disconnect` is discarded.
    """

    def __init__(
        self,
        broker: TicketBroker,
        dispatcher: Dispatcher,
        *,
        url: str,
        client_name: str,
        client_version: str,
        transport_factory: TransportFactory = open_aiohttp_transport,
        log_server_commands: bool = False,
        log_client_commands: bool = False,
    ) -> None:
        self._broker = broker
        self._dispatcher = dispatcher
        self._url = url
        self._client_name = client_name
        self._client_version = client_version
        self._transport_factory = transport_factory
        self._log_server = log_server_commands
        self._log_client = log_client_commands

        self._state = ConnectionState.DISCONNECTED
        self._generation = 0
        self._character: str | None = None
        self._transport: Transport | None = None
        self._reader: asyncio.Task | None = None
        self._writer: asyncio.Task | None = None
        self._outbound: asyncio.Queue[str] | None = None

        self._open_callback: OpenCallback | None = None
        self._message_callback: MessageCallback | None = None
        self._close_callback: CloseCallback | None = None

    # -- properties ---------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def character(self) -> str | None:
        return self._character

    @property
    def account(self) -> str:
        return self._broker.account

    @property
    def is_open(self) -> bool:
        return self._transport is not None and self._state in (ConnectionState.OPEN, ConnectionState.IDENTIFIED)

    # -- callbacks ----------------------------------------------------------

    def on_open(self, callback: OpenCallback | None) -> None:
        """Called with the ticket value once the socket is open and IDN is sent."""
        self._open_callback = callback

    def on_message(self, callback: MessageCallback | None) -> None:
        """Called with every raw inbound frame before decoding."""
        self._message_callback = callback

    def on_close(self, callback: CloseCallback | None) -> None:
        self._close_callback = callback

    def on_error(self, callback: ErrorCallback | None) -> None:
        """Single error sink shared with the dispatcher (ERR frames, decode failures)."""
        self._dispatcher.on_error(callback)

    # -- lifecycle ----------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        if state != self._state:
            logger.debug("Connection state {} -> {}", self._state, state)
            self._state = state

    def _fail(self, exc: FchatError) -> None:
        self._set_state(ConnectionState.ERRORED)
        self._dispatcher.report_error(exc)

    async def connect(self, character: str, ticket: str | None = None) -> None:
        """Start a session as character. Raises AuthError or TransportError after reporting it."""
        await self.disconnect()
        self._generation += 1
        generation = self._generation
        self._character = character
        self._dispatcher.store.reset(character)
        self._dispatcher.set_reply(self._reply)

        self._set_state(ConnectionState.AWAITING_TICKET)
        if ticket is None:
            try:
                ticket = (await self._broker.get_ticket()).value
            except AuthError as exc:
                if generation != self._generation:
                    logger.debug("Ticket failure for superseded session ignored: {}", exc)
                    return
                logger.error("Ticket acquisition failed: {}", exc)
                self._fail(exc)
                raise
        if generation != self._generation:
            logger.info("Session superseded while awaiting ticket; discarding")
            return

        self._set_state(ConnectionState.CONNECTING)
        try:
            transport = await self._transport_factory(self._url)
        except Exception as exc:
            err = TransportError(f"Unable to open {self._url}: {exc}", code="open_failed", original_error=exc)
            if generation != self._generation:
                logger.debug("Open failure for superseded session ignored: {}", exc)
                return
            logger.error("{}", err)
            self._fail(err)
            raise err from exc
        if generation != self._generation:
            logger.info("Session superseded while connecting; closing socket")
            await transport.close()
            return

        self._transport = transport
        self._set_state(ConnectionState.OPEN)
        logger.info("Connected to {} as {}", self._url, character)

        identify = encode(
            ClientCommand.IDN,
            {
                "method": "ticket",
                "account": self._broker.account,
                "ticket": ticket,
                "character": character,
                "cname": self._client_name,
                "cversion": self._client_version,
            },
        )
        if self._log_client:
            logger.info(">> IDN (character={})", character)
        try:
            await transport.send(identify)
        except Exception as exc:
            if generation != self._generation:
                logger.debug("Identify failure for superseded session ignored: {}", exc)
                return
            err = TransportError(f"Unable to identify: {exc}", code="send_failed", original_error=exc)
            self._fail(err)
            await self._teardown(transport)
            raise err from exc
        if generation != self._generation:
            logger.info("Session superseded while identifying; closing socket")
            with contextlib.suppress(Exception):
                await transport.close()
            return

        self._outbound = asyncio.Queue()
        self._writer = asyncio.create_task(self._write_loop(transport, self._outbound, generation))
        self._reader = asyncio.create_task(self._read_loop(transport, generation))
        if self._open_callback is not None:
            self._dispatcher.invoke(self._open_callback, ticket, label="open")

    async def disconnect(self) -> None:
        """Close the current session if any. Safe to call repeatedly."""
        self._generation += 1
        transport = self._transport
        was_live = self._state in _LIVE_STATES
        self._transport = None
        await self._stop_tasks()
        if transport is not None:
            with contextlib.suppress(Exception):
                await transport.close()
        if was_live:
            self._set_state(ConnectionState.CLOSED)
            logger.info("Disconnected")
            if transport is not None and self._close_callback is not None:
                self._dispatcher.invoke(self._close_callback, label="close")

    async def wait_closed(self) -> None:
        """Wait until the current session's read loop ends."""
        reader = self._reader
        if reader is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await reader

    async def _stop_tasks(self) -> None:
        current = asyncio.current_task()
        tasks = [t for t in (self._writer, self._reader) if t is not None and t is not current]
        self._writer = None
        self._reader = None
        self._outbound = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task

    async def _teardown(self, transport: Transport) -> None:
        self._transport = None
        with contextlib.suppress(Exception):
            await transport.close()

    # -- outbound -----------------------------------------------------------

    def send(self, opcode: str | ClientCommand, payload: Payload | None = None) -> bool:
        """Queue one frame. Returns False (and logs) when no session is open."""
        message = encode(str(opcode), payload)
        if self._outbound is None or not self.is_open:
            logger.warning("Not connected; dropping {}", opcode)
            return False
        if self._log_client:
            logger.info(">> {}", message)
        self._outbound.put_nowait(message)
        return True

    def _reply(self, opcode: str, payload: Payload | None) -> None:
        self.send(opcode, payload)

    async def _write_loop(self, transport: Transport, queue: asyncio.Queue[str], generation: int) -> None:
        while True:
            message = await queue.get()
            try:
                await transport.send(message)
            except Exception as exc:
                if generation == self._generation:
                    await self._on_transport_failure(
                        TransportError(f"Send failed: {exc}", code="send_failed", original_error=exc),
                        generation,
                    )
                return

    # -- inbound ------------------------------------------------------------

    async def _read_loop(self, transport: Transport, generation: int) -> None:
        try:
            async for event in transport:
                if generation != self._generation:
                    return
                if event.kind == "message":
                    await self._handle_frame(event.data, generation)
                elif event.kind == "error":
                    await self._on_transport_failure(
                        TransportError(
                            f"Socket error: {event.error}",
                            code="socket_error",
                            original_error=event.error,
                        ),
                        generation,
                    )
                    return
                else:
                    break
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await self._on_transport_failure(
                TransportError(f"Socket error: {exc}", code="socket_error", original_error=exc),
                generation,
            )
            return
        await self._on_transport_closed(generation)

    async def _handle_frame(self, raw: str, generation: int) -> None:
        if self._log_server:
            logger.info("<< {}", raw)
        if self._message_callback is not None:
            await self._dispatcher.call(self._message_callback, raw, label="message")
            if generation != self._generation:
                return
        # State is IDENTIFIED before IDN callbacks run
        if raw[:3] == ServerCommand.IDN and self._state == ConnectionState.OPEN:
            self._set_state(ConnectionState.IDENTIFIED)
            logger.info("Identified as {}", self._character)
        await self._dispatcher.feed(raw)

    async def _on_transport_failure(self, exc: TransportError, generation: int) -> None:
        if generation != self._generation:
            return
        logger.error("{}", exc)
        self._fail(exc)
        await self._close_after_failure(generation)

    async def _on_transport_closed(self, generation: int) -> None:
        if generation != self._generation:
            return
        if self._state != ConnectionState.ERRORED:
            self._set_state(ConnectionState.CLOSED)
        logger.info("Connection closed by server")
        await self._close_after_failure(generation)

    async def _close_after_failure(self, generation: int) -> None:
        # Bump the generation so no task of this session touches state again
        self._generation += 1
        transport = self._transport
        await self._stop_tasks()
        if transport is not None:
            await self._teardown(transport)
        if self._close_callback is not None:
            self._dispatcher.invoke(self._close_callback, label="close")
