"""F-Chat client engine: ticket broker, socket protocol, state mirror."""

__version__ = "0.4.0"

from fchat.api import ApiClient  # noqa: E402
from fchat.client import FchatClient  # noqa: E402
from fchat.connection import ConnectionManager, ConnectionState  # noqa: E402
from fchat.dispatcher import Dispatcher  # noqa: E402
from fchat.errors import (  # noqa: E402
    ApiError,
    AuthError,
    DecodeError,
    FchatConfigurationError,
    FchatError,
    ProtocolError,
    TransportError,
)
from fchat.state import Channel, Character, Profile, StateStore  # noqa: E402
from fchat.ticket import Ticket, TicketBroker, TicketClient  # noqa: E402

__all__ = [
    "ApiClient",
    "ApiError",
    "AuthError",
    "Channel",
    "Character",
    "ConnectionManager",
    "ConnectionState",
    "DecodeError",
    "Dispatcher",
    "FchatClient",
    "FchatConfigurationError",
    "FchatError",
    "Profile",
    "ProtocolError",
    "StateStore",
    "Ticket",
    "TicketBroker",
    "TicketClient",
    "TransportError",
    "__version__",
]
