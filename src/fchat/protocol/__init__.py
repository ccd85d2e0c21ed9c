"""Chat socket protocol: opcode tables and frame codec."""

from fchat.protocol.codec import Frame, decode, encode
from fchat.protocol.opcodes import ClientCommand, ServerCommand

__all__ = ["ClientCommand", "Frame", "ServerCommand", "decode", "encode"]
