"""Test the FchatClient facade: wiring from config and outbound commands."""

import json

import pytest

from fchat import FchatClient
from fchat.config import Config
from fchat.connection import ConnectionState
from fchat.errors import ApiError
from tests.mocks import FakeTransportFactory, flush, make_broker


async def connected_client(**kwargs):
    _, broker = make_broker()
    factory = FakeTransportFactory()
    client = FchatClient(
        broker,
        url="wss://chat.example/chat2",
        client_name="tests",
        client_version="1.0",
        transport_factory=factory,
        **kwargs,
    )
    await client.connect("Me")
    return client, factory


def sent_frames(transport):
    """Outbound frames after IDN as (opcode, payload) pairs."""
    frames = []
    for raw in transport.sent[1:]:
        frames.append((raw[:3], json.loads(raw[4:]) if len(raw) > 3 else None))
    return frames


class TestFromConfig:
    def test_uses_config_urls_and_options(self, monkeypatch):
        # Arrange
        monkeypatch.delenv("FCHAT_DEV_MODE", raising=False)
        config = Config(
            {
                "ticket_url": "https://tickets.example/get",
                "chat_url": "wss://chat.example/chat2",
                "ticket_expiration_seconds": 600,
                "client": {"name": "bot", "version": "9.9"},
                "options": {"auto_ping": False, "join_on_invite": True},
            }
        )

        # Act
        client = FchatClient.from_config(config, "acct", "pw", transport_factory=FakeTransportFactory())

        # Assert
        assert client.broker.account == "acct"
        assert client.dispatcher.auto_ping is False
        assert client.dispatcher.join_on_invite is True
        assert client.state is ConnectionState.DISCONNECTED

    def test_api_client_uses_configured_base_url(self, monkeypatch):
        monkeypatch.delenv("FCHAT_DEV_MODE", raising=False)
        config = Config({"api_base_url": "https://site.example/json/api/"})

        client = FchatClient.from_config(config, "acct", "pw", transport_factory=FakeTransportFactory())

        assert client.api.url_for("friend_list") == "https://site.example/json/api/friend-list.php"

    def test_api_without_config_raises(self):
        _, broker = make_broker()
        client = FchatClient(broker, url="wss://chat.example/chat2", client_name="tests", client_version="1.0")

        with pytest.raises(ApiError):
            client.api

    @pytest.mark.asyncio
    async def test_connects_to_dev_url_in_dev_mode(self, monkeypatch):
        monkeypatch.setenv("FCHAT_DEV_MODE", "true")
        config = Config({"chat_dev_url": "wss://dev.example:8799"})
        factory = FakeTransportFactory()
        client = FchatClient.from_config(config, "acct", "pw", transport_factory=factory)

        await client.connect("Me", ticket="given")

        assert factory.urls == ["wss://dev.example:8799"]
        idn = json.loads(factory.last.sent[0][4:])
        assert idn["cname"] == "fchat-client"
        await client.disconnect()


class TestCommands:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method, args, expected",
        [
            ("join_channel", ("Frontpage",), ("JCH", {"channel": "Frontpage"})),
            ("leave_channel", ("Frontpage",), ("LCH", {"channel": "Frontpage"})),
            (
                "send_channel_message",
                ("Frontpage", "hello"),
                ("MSG", {"channel": "Frontpage", "message": "hello"}),
            ),
            ("send_ad", ("Frontpage", "ad"), ("LRP", {"channel": "Frontpage", "message": "ad"})),
            (
                "send_private_message",
                ("Bob", "hi"),
                ("PRI", {"recipient": "Bob", "message": "hi"}),
            ),
            ("set_status", ("busy", "brb"), ("STA", {"status": "busy", "statusmsg": "brb"})),
            ("set_typing_status", ("Bob", "typing"), ("TPN", {"character": "Bob", "status": "typing"})),
            ("roll_dice", ("Dice", "2d6"), ("RLL", {"channel": "Dice", "dice": "2d6"})),
            ("spin_bottle", ("Dice",), ("RLL", {"channel": "Dice", "dice": "bottle"})),
            ("ignore", ("Troll",), ("IGN", {"action": "add", "character": "Troll"})),
            ("unignore", ("Troll",), ("IGN", {"action": "delete", "character": "Troll"})),
            ("request_ignore_list", (), ("IGN", {"action": "list"})),
            ("set_channel_private", ("ADH-1",), ("RST", {"channel": "ADH-1", "status": "private"})),
            ("set_channel_mode", ("ADH-1", "ads"), ("RMO", {"channel": "ADH-1", "mode": "ads"})),
            (
                "channel_timeout",
                ("ADH-1", "Bob", 30),
                ("CTU", {"channel": "ADH-1", "character": "Bob", "length": 30}),
            ),
            (
                "server_timeout",
                ("Bob", 60, "spam"),
                ("TMO", {"character": "Bob", "time": 60, "reason": "spam"}),
            ),
            (
                "report",
                ("harassment", "Bob"),
                ("SFC", {"action": "report", "report": "harassment", "character": "Bob"}),
            ),
            ("request_profile_tags", ("Bob",), ("PRO", {"character": "Bob"})),
            ("request_public_channels", (), ("CHA", None)),
            ("ping", (), ("PIN", None)),
            ("request_stats", (), ("UPT", None)),
        ],
    )
    async def test_command_frames(self, method, args, expected):
        # Arrange
        client, factory = await connected_client()

        # Act
        assert getattr(client, method)(*args) is True
        await flush(factory.last)

        # Assert
        assert sent_frames(factory.last) == [expected]
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_character_search_passes_criteria(self):
        client, factory = await connected_client()

        client.character_search(kinks=["523"], genders=["Male"])
        await flush(factory.last)

        assert sent_frames(factory.last) == [("FKS", {"kinks": ["523"], "genders": ["Male"]})]
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_commands_before_connect_return_false(self):
        _, broker = make_broker()
        client = FchatClient(
            broker,
            url="wss://chat.example/chat2",
            client_name="tests",
            client_version="1.0",
            transport_factory=FakeTransportFactory(),
        )
        assert client.join_channel("Frontpage") is False


class TestStateViews:
    @pytest.mark.asyncio
    async def test_views_reflect_dispatched_frames(self):
        # Arrange
        client, factory = await connected_client()
        seen = []
        client.on("JCH", seen.append)

        # Act
        factory.last.push(
            'JCH {"character":{"identity":"Me"},"channel":"Frontpage","title":"Frontpage"}',
            'NLN {"identity":"Bob","gender":"Male","status":"online"}',
            'FRL {"characters":["Bob"]}',
            'VAR {"variable":"chat_max","value":4096}',
        )
        await flush(factory.last)

        # Assert
        assert len(seen) == 1
        assert client.channel("FRONTPAGE") is not None
        assert "Bob" in client.characters()
        assert client.friends() == frozenset({"Bob"})
        assert client.server_variables()["chat_max"] == 4096
        await client.disconnect()
