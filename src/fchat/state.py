"""In-memory mirror of server-pushed chat state.

The dispatcher is the only writer. Every mutator is idempotent: applying the
same event twice leaves the store as applying it once. Accessors hand out
copies so callers never hold live references into the store.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Literal

from loguru import logger

TypingStatus = Literal["clear", "typing", "paused"]
TYPING_STATUSES: frozenset[str] = frozenset(("clear", "typing", "paused"))


def channel_key(name: str) -> str:
    """Channel names compare case-insensitively."""
    return name.lower()


@dataclass
class Character:
    """Online character."""

    name: str
    gender: str = ""
    status: str = "online"
    status_message: str = ""
    typing_status: TypingStatus = "clear"


@dataclass
class Channel:
    """Joined channel. `name` keeps the server's display casing."""

    name: str
    title: str = ""
    description: str = ""
    mode: str = ""
    owner: str | None = None
    chanops: list[str] = field(default_factory=list)
    members: set[str] = field(default_factory=set)

    def snapshot(self) -> Channel:
        return replace(self, chanops=list(self.chanops), members=set(self.members))


@dataclass(frozen=True)
class Profile:
    """Profile tags assembled from a PRD start/info/end sequence."""

    character: str
    start_message: str
    end_message: str
    fields: Mapping[str, Any]


@dataclass
class _PendingProfile:
    start_message: str
    fields: dict[str, Any] = field(default_factory=dict)


class StateStore:
    """Rosters of characters, channels, chatops, ignores, friends and server variables."""

    def __init__(self, own_character: str | None = None) -> None:
        self._own_character = own_character
        self._characters: dict[str, Character] = {}
        self._channels: dict[str, Channel] = {}
        self._chatops: set[str] = set()
        self._ignore_list: set[str] = set()
        self._friends: set[str] = set()
        self._server_variables: dict[str, Any] = {}
        self._pending_profiles: dict[str, _PendingProfile] = {}

    def reset(self, own_character: str | None = None) -> None:
        """Drop all state; called when a new session starts."""
        self._own_character = own_character
        self._characters.clear()
        self._channels.clear()
        self._chatops.clear()
        self._ignore_list.clear()
        self._friends.clear()
        self._server_variables.clear()
        self._pending_profiles.clear()

    # -- read accessors ---------------------------------------------------

    @property
    def own_character(self) -> str | None:
        return self._own_character

    def characters(self) -> Mapping[str, Character]:
        return MappingProxyType({name: replace(c) for name, c in self._characters.items()})

    def character(self, name: str) -> Character | None:
        c = self._characters.get(name)
        return replace(c) if c else None

    def channels(self) -> Mapping[str, Channel]:
        return MappingProxyType({key: c.snapshot() for key, c in self._channels.items()})

    def channel(self, name: str) -> Channel | None:
        c = self._channels.get(channel_key(name))
        return c.snapshot() if c else None

    def chatops(self) -> frozenset[str]:
        return frozenset(self._chatops)

    def ignore_list(self) -> frozenset[str]:
        return frozenset(self._ignore_list)

    def friends(self) -> frozenset[str]:
        return frozenset(self._friends)

    def server_variables(self) -> Mapping[str, Any]:
        return MappingProxyType(dict(self._server_variables))

    # -- characters -------------------------------------------------------

    def add_characters(self, entries: Iterable[Sequence[str]]) -> None:
        """LIS batch: [name, gender, status, statusmsg] rows, added to the roster."""
        for entry in entries:
            if not entry:
                continue
            row = [*entry, "", "", ""]
            name, gender, status, message = row[:4]
            self._characters[name] = Character(name, gender, status or "online", message)

    def character_online(self, name: str, gender: str = "", status: str = "online") -> None:
        existing = self._characters.get(name)
        if existing:
            existing.gender = gender
            existing.status = status
            return
        self._characters[name] = Character(name, gender, status)

    def character_offline(self, name: str, *, prune_channels: bool = False) -> bool:
        """Remove a character. Returns False if it was not in the roster."""
        removed = self._characters.pop(name, None) is not None
        if prune_channels:
            for chan in self._channels.values():
                chan.members.discard(name)
        return removed

    def set_status(self, name: str, status: str, message: str = "") -> None:
        c = self._characters.get(name)
        if c is None:
            return
        c.status = status
        c.status_message = message

    def set_typing(self, name: str, status: str) -> None:
        c = self._characters.get(name)
        if c is None:
            return
        if status not in TYPING_STATUSES:
            logger.debug("Ignoring unknown typing status {!r} for {}", status, name)
            return
        c.typing_status = status  # type: ignore[assignment]

    # -- channels ---------------------------------------------------------

    def _ensure_channel(self, name: str) -> Channel:
        key = channel_key(name)
        chan = self._channels.get(key)
        if chan is None:
            chan = Channel(name=name)
            self._channels[key] = chan
        return chan

    def channel_joined(self, channel: str, character: str, title: str = "") -> None:
        """JCH: our own join creates the channel; anyone else is added as a member."""
        if character == self._own_character:
            chan = self._ensure_channel(channel)
            if title:
                chan.title = title
            return
        chan = self._channels.get(channel_key(channel))
        if chan is not None:
            chan.members.add(character)

    def channel_left(self, channel: str, character: str) -> None:
        """LCH: our own leave destroys the channel; anyone else is removed as a member."""
        key = channel_key(channel)
        if character == self._own_character:
            self._channels.pop(key, None)
            return
        chan = self._channels.get(key)
        if chan is not None:
            chan.members.discard(character)

    def initial_channel_data(self, channel: str, users: Iterable[str], mode: str = "") -> None:
        """ICH: full member list replacement."""
        chan = self._ensure_channel(channel)
        chan.members = set(users)
        if mode:
            chan.mode = mode

    def set_description(self, channel: str, description: str) -> None:
        chan = self._channels.get(channel_key(channel))
        if chan is not None:
            chan.description = description

    def set_mode(self, channel: str, mode: str) -> None:
        chan = self._channels.get(channel_key(channel))
        if chan is not None:
            chan.mode = mode

    def set_chanops(self, channel: str, oplist: Sequence[str]) -> None:
        """COL: an empty first entry means no owner slot; it is dropped.

        Either way the (remaining) first entry is recorded as owner and stays
        in the chanop list.
        """
        chan = self._channels.get(channel_key(channel))
        if chan is None or not oplist:
            return
        ops = list(oplist)
        if not ops[0]:
            ops.pop(0)
        chan.chanops = ops
        chan.owner = ops[0] if ops else None

    def add_chanop(self, channel: str, character: str) -> None:
        chan = self._channels.get(channel_key(channel))
        if chan is not None and character not in chan.chanops:
            chan.chanops.append(character)

    def remove_chanop(self, channel: str, character: str) -> None:
        chan = self._channels.get(channel_key(channel))
        if chan is not None:
            chan.chanops = [op for op in chan.chanops if op != character]

    def set_owner(self, channel: str, character: str) -> None:
        chan = self._channels.get(channel_key(channel))
        if chan is not None:
            chan.owner = character

    # -- name sets --------------------------------------------------------

    def set_chatops(self, names: Iterable[str]) -> None:
        self._chatops = set(names)

    def add_chatop(self, name: str) -> None:
        self._chatops.add(name)

    def remove_chatop(self, name: str) -> None:
        self._chatops.discard(name)

    def set_ignore_list(self, names: Iterable[str]) -> None:
        self._ignore_list = set(names)

    def add_ignore(self, name: str) -> None:
        self._ignore_list.add(name)

    def remove_ignore(self, name: str) -> None:
        self._ignore_list.discard(name)

    def set_friends(self, names: Iterable[str]) -> None:
        self._friends = set(names)

    def add_friend(self, name: str) -> None:
        self._friends.add(name)

    def remove_friend(self, name: str) -> None:
        self._friends.discard(name)

    # -- server variables -------------------------------------------------

    def set_variable(self, name: str, value: Any) -> None:
        self._server_variables[name] = value

    # -- profiles ---------------------------------------------------------

    def profile_start(self, character: str, message: str = "") -> None:
        self._pending_profiles[character] = _PendingProfile(message)

    def profile_info(self, character: str, key: str, value: Any) -> None:
        pending = self._pending_profiles.get(character)
        if pending is not None:
            pending.fields[key] = value

    def profile_end(self, character: str, message: str = "") -> Profile | None:
        pending = self._pending_profiles.pop(character, None)
        if pending is None:
            return None
        return Profile(
            character=character,
            start_message=pending.start_message,
            end_message=message,
            fields=MappingProxyType(dict(pending.fields)),
        )
