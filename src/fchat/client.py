"""FchatClient: one account's ticket broker, state mirror, dispatcher and socket."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from fchat.api import ApiClient
from fchat.config import Config
from fchat.connection import (
    CloseCallback,
    ConnectionManager,
    ConnectionState,
    ErrorCallback,
    MessageCallback,
    OpenCallback,
)
from fchat.dispatcher import CommandCallback, Dispatcher, Payload, ProfileCallback, RawCommandCallback
from fchat.errors import ApiError
from fchat.protocol import ClientCommand, ServerCommand
from fchat.state import Channel, Character, StateStore
from fchat.ticket import TicketBroker, TicketClient
from fchat.transport import TransportFactory, open_aiohttp_transport


class FchatClient:
    """High-level chat client.

    Register handlers with `on` (one per command, last registration wins),
    `connect` as a character, then use the command methods below. State
    accessors return snapshots of the mirrored server state.
    """

    def __init__(
        self,
        broker: TicketBroker,
        *,
        url: str,
        client_name: str,
        client_version: str,
        auto_ping: bool = True,
        join_on_invite: bool = False,
        prune_offline_from_channels: bool = False,
        log_server_commands: bool = False,
        log_client_commands: bool = False,
        transport_factory: TransportFactory = open_aiohttp_transport,
        api: ApiClient | None = None,
    ) -> None:
        self._broker = broker
        self._api = api
        self._store = StateStore()
        self._dispatcher = Dispatcher(
            self._store,
            auto_ping=auto_ping,
            join_on_invite=join_on_invite,
            prune_offline_from_channels=prune_offline_from_channels,
        )
        self._connection = ConnectionManager(
            broker,
            self._dispatcher,
            url=url,
            client_name=client_name,
            client_version=client_version,
            transport_factory=transport_factory,
            log_server_commands=log_server_commands,
            log_client_commands=log_client_commands,
        )

    @classmethod
    def from_config(
        cls,
        config: Config,
        account: str,
        password: str,
        *,
        transport_factory: TransportFactory = open_aiohttp_transport,
    ) -> FchatClient:
        ticket_client = TicketClient(
            config.ticket_url,
            timeout=config.http_timeout_seconds,
            attempts=config.ticket_retry_attempts,
        )
        broker = TicketBroker(
            ticket_client,
            account,
            password,
            expiration_period=config.ticket_expiration_seconds,
        )
        return cls(
            broker,
            url=config.chat_url,
            client_name=config.client_name,
            client_version=config.client_version,
            auto_ping=config.auto_ping,
            join_on_invite=config.join_on_invite,
            prune_offline_from_channels=config.prune_offline_from_channels,
            log_server_commands=config.log_server_commands,
            log_client_commands=config.log_client_commands,
            transport_factory=transport_factory,
            api=ApiClient.from_config(config, broker),
        )

    # -- plumbing -----------------------------------------------------------

    @property
    def broker(self) -> TicketBroker:
        return self._broker

    @property
    def api(self) -> ApiClient:
        """JSON API client sharing this client's ticket broker."""
        if self._api is None:
            raise ApiError("No API base URL configured", code="no_api")
        return self._api

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def connection(self) -> ConnectionManager:
        return self._connection

    @property
    def state(self) -> ConnectionState:
        return self._connection.state

    @property
    def character(self) -> str | None:
        return self._connection.character

    async def connect(self, character: str, ticket: str | None = None) -> None:
        await self._connection.connect(character, ticket)

    async def disconnect(self) -> None:
        await self._connection.disconnect()

    async def wait_closed(self) -> None:
        await self._connection.wait_closed()

    def send(self, opcode: str | ClientCommand, payload: Payload | None = None) -> bool:
        return self._connection.send(opcode, payload)

    # -- handler registration ------------------------------------------------

    def on(self, opcode: str | ServerCommand, callback: CommandCallback | None) -> None:
        self._dispatcher.on(opcode, callback)

    def on_command(self, callback: RawCommandCallback | None) -> None:
        self._dispatcher.on_command(callback)

    def on_profile(self, callback: ProfileCallback | None) -> None:
        self._dispatcher.on_profile(callback)

    def on_open(self, callback: OpenCallback | None) -> None:
        self._connection.on_open(callback)

    def on_message(self, callback: MessageCallback | None) -> None:
        self._connection.on_message(callback)

    def on_close(self, callback: CloseCallback | None) -> None:
        self._connection.on_close(callback)

    def on_error(self, callback: ErrorCallback | None) -> None:
        self._connection.on_error(callback)

    # -- state views ------------------------------------------------------------

    def characters(self) -> Mapping[str, Character]:
        return self._store.characters()

    def channels(self) -> Mapping[str, Channel]:
        return self._store.channels()

    def channel(self, name: str) -> Channel | None:
        return self._store.channel(name)

    def chatops(self) -> frozenset[str]:
        return self._store.chatops()

    def ignore_list(self) -> frozenset[str]:
        return self._store.ignore_list()

    def friends(self) -> frozenset[str]:
        return self._store.friends()

    def server_variables(self) -> Mapping[str, Any]:
        return self._store.server_variables()

    # -- commands: server administration (chatop / admin only) ---------------

    def server_ban(self, character: str) -> bool:
        return self.send(ClientCommand.ACB, {"character": character})

    def promote_chatop(self, character: str) -> bool:
        return self.send(ClientCommand.AOP, {"character": character})

    def demote_chatop(self, character: str) -> bool:
        return self.send(ClientCommand.DOP, {"character": character})

    def request_alts(self, character: str) -> bool:
        return self.send(ClientCommand.AWC, {"character": character})

    def broadcast(self, message: str) -> bool:
        return self.send(ClientCommand.BRO, {"message": message})

    def create_official_channel(self, channel: str) -> bool:
        return self.send(ClientCommand.CRC, {"channel": channel})

    def server_kick(self, character: str) -> bool:
        return self.send(ClientCommand.KIK, {"character": character})

    def reward(self, character: str) -> bool:
        return self.send(ClientCommand.RWD, {"character": character})

    def server_timeout(self, character: str, minutes: int, reason: str) -> bool:
        return self.send(ClientCommand.TMO, {"character": character, "time": minutes, "reason": reason})

    def server_unban(self, character: str) -> bool:
        return self.send(ClientCommand.UNB, {"character": character})

    # -- commands: channel moderation --------------------------------------------

    def request_channel_bans(self, channel: str) -> bool:
        return self.send(ClientCommand.CBL, {"channel": channel})

    def channel_ban(self, channel: str, character: str) -> bool:
        return self.send(ClientCommand.CBU, {"channel": channel, "character": character})

    def channel_unban(self, channel: str, character: str) -> bool:
        return self.send(ClientCommand.CUB, {"channel": channel, "character": character})

    def channel_kick(self, channel: str, character: str) -> bool:
        return self.send(ClientCommand.CKU, {"channel": channel, "character": character})

    def channel_timeout(self, channel: str, character: str, length: int) -> bool:
        return self.send(ClientCommand.CTU, {"channel": channel, "character": character, "length": length})

    def promote_chanop(self, channel: str, character: str) -> bool:
        return self.send(ClientCommand.COA, {"channel": channel, "character": character})

    def demote_chanop(self, channel: str, character: str) -> bool:
        return self.send(ClientCommand.COR, {"channel": channel, "character": character})

    def request_chanops(self, channel: str) -> bool:
        return self.send(ClientCommand.COL, {"channel": channel})

    def set_channel_owner(self, channel: str, character: str) -> bool:
        return self.send(ClientCommand.CSO, {"channel": channel, "character": character})

    def set_channel_description(self, channel: str, description: str) -> bool:
        return self.send(ClientCommand.CDS, {"channel": channel, "description": description})

    def set_channel_mode(self, channel: str, mode: str) -> bool:
        """mode is one of chat, ads, both."""
        return self.send(ClientCommand.RMO, {"channel": channel, "mode": mode})

    def set_channel_public(self, channel: str) -> bool:
        return self.send(ClientCommand.RST, {"channel": channel, "status": "public"})

    def set_channel_private(self, channel: str) -> bool:
        return self.send(ClientCommand.RST, {"channel": channel, "status": "private"})

    def delete_channel(self, channel: str) -> bool:
        return self.send(ClientCommand.KIC, {"channel": channel})

    def invite_to_channel(self, channel: str, character: str) -> bool:
        return self.send(ClientCommand.CIU, {"channel": channel, "character": character})

    # -- commands: channels --------------------------------------------------------

    def create_private_channel(self, channel: str) -> bool:
        return self.send(ClientCommand.CCR, {"channel": channel})

    def request_public_channels(self) -> bool:
        return self.send(ClientCommand.CHA)

    def request_private_channels(self) -> bool:
        return self.send(ClientCommand.ORS)

    def join_channel(self, channel: str) -> bool:
        return self.send(ClientCommand.JCH, {"channel": channel})

    def leave_channel(self, channel: str) -> bool:
        return self.send(ClientCommand.LCH, {"channel": channel})

    def send_channel_message(self, channel: str, message: str) -> bool:
        return self.send(ClientCommand.MSG, {"channel": channel, "message": message})

    def send_ad(self, channel: str, message: str) -> bool:
        return self.send(ClientCommand.LRP, {"channel": channel, "message": message})

    def roll_dice(self, channel: str, dice: str) -> bool:
        """dice like '1d6' or '2d10+1d20'."""
        return self.send(ClientCommand.RLL, {"channel": channel, "dice": dice})

    def spin_bottle(self, channel: str) -> bool:
        return self.send(ClientCommand.RLL, {"channel": channel, "dice": "bottle"})

    # -- commands: characters -----------------------------------------------------

    def send_private_message(self, recipient: str, message: str) -> bool:
        return self.send(ClientCommand.PRI, {"recipient": recipient, "message": message})

    def set_status(self, status: str, message: str = "") -> bool:
        return self.send(ClientCommand.STA, {"status": status, "statusmsg": message})

    def set_typing_status(self, recipient: str, status: str) -> bool:
        return self.send(ClientCommand.TPN, {"character": recipient, "status": status})

    def character_search(self, **criteria: Any) -> bool:
        return self.send(ClientCommand.FKS, criteria)

    def request_kinks(self, character: str) -> bool:
        return self.send(ClientCommand.KIN, {"character": character})

    def request_profile_tags(self, character: str) -> bool:
        return self.send(ClientCommand.PRO, {"character": character})

    def ignore(self, character: str) -> bool:
        return self.send(ClientCommand.IGN, {"action": "add", "character": character})

    def unignore(self, character: str) -> bool:
        return self.send(ClientCommand.IGN, {"action": "delete", "character": character})

    def notify_ignored(self, character: str) -> bool:
        return self.send(ClientCommand.IGN, {"action": "notify", "character": character})

    def request_ignore_list(self) -> bool:
        return self.send(ClientCommand.IGN, {"action": "list"})

    def report(self, report: str, character: str) -> bool:
        return self.send(ClientCommand.SFC, {"action": "report", "report": report, "character": character})

    # -- commands: misc -----------------------------------------------------------

    def ping(self) -> bool:
        return self.send(ClientCommand.PIN)

    def request_stats(self) -> bool:
        return self.send(ClientCommand.UPT)
