"""Command dispatcher: built-in state mutation first, caller callback second."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, ClassVar

from loguru import logger

from fchat.errors import DecodeError, FchatError, ProtocolError
from fchat.protocol import ClientCommand, Frame, ServerCommand, decode
from fchat.state import Profile, StateStore

Payload = dict[str, Any]
CommandCallback = Callable[[Payload], Any]
RawCommandCallback = Callable[[str, Payload], Any]
ErrorCallback = Callable[[FchatError], Any]
ProfileCallback = Callable[[Profile], Any]
Reply = Callable[[str, Payload | None], Any]

_Mutator = Callable[["Dispatcher", Payload], None]


def handles(command: ServerCommand) -> Callable[[_Mutator], _Mutator]:
    """Mark a Dispatcher method as the built-in mutator for a server command."""

    def decorator(f: _Mutator) -> _Mutator:
        f.COMMAND = command  # type: ignore[attr-defined]
        return f

    return decorator


class Dispatcher:
    """Routes decoded frames to StateStore mutators and caller callbacks.

    One callback per opcode; registering again replaces the previous one.
    Callbacks may be plain functions or coroutine functions. `feed` awaits a
    frame's coroutine callbacks before returning, so they observe the state
    their own frame produced and the next frame waits for them. The sync
    `dispatch_raw` / `dispatch` entry points only schedule coroutines.
    """

    MUTATORS: ClassVar[dict[ServerCommand, _Mutator]] = {}

    def __init__(
        self,
        store: StateStore,
        *,
        reply: Reply | None = None,
        auto_ping: bool = True,
        join_on_invite: bool = False,
        prune_offline_from_channels: bool = False,
    ) -> None:
        self._store = store
        self._reply = reply
        self.auto_ping = auto_ping
        self.join_on_invite = join_on_invite
        self.prune_offline_from_channels = prune_offline_from_channels
        self._callbacks: dict[ServerCommand, CommandCallback] = {}
        self._command_callback: RawCommandCallback | None = None
        self._error_callback: ErrorCallback | None = None
        self._profile_callback: ProfileCallback | None = None
        self._tasks: set[asyncio.Task] = set()
        self._deferred: list[tuple[Awaitable[Any], str]] | None = None

    @property
    def store(self) -> StateStore:
        return self._store

    def set_reply(self, reply: Reply | None) -> None:
        self._reply = reply

    # -- registration -----------------------------------------------------

    def on(self, opcode: str | ServerCommand, callback: CommandCallback | None) -> None:
        """Set (or with None, clear) the callback for one server command."""
        command = ServerCommand.parse(str(opcode))
        if command is None:
            raise ValueError(f"unknown server command {opcode!r}")
        if callback is None:
            self._callbacks.pop(command, None)
        else:
            self._callbacks[command] = callback

    def on_command(self, callback: RawCommandCallback | None) -> None:
        """Callback for every decoded frame, including unknown opcodes."""
        self._command_callback = callback

    def on_error(self, callback: ErrorCallback | None) -> None:
        self._error_callback = callback

    def on_profile(self, callback: ProfileCallback | None) -> None:
        self._profile_callback = callback

    # -- dispatch ---------------------------------------------------------

    async def feed(self, raw: str) -> Frame | None:
        """Dispatch one wire string and await its coroutine callbacks in order."""
        self._deferred = []
        try:
            frame = self.dispatch_raw(raw)
        finally:
            deferred, self._deferred = self._deferred, None
        for awaitable, label in deferred:
            await self._await_callback(awaitable, label)
        return frame

    async def call(self, callback: Callable[..., Any], *args: Any, label: str) -> None:
        """Call a handler and await it if it returns an awaitable; failures are logged."""
        try:
            result = callback(*args)
        except Exception as exc:
            logger.exception("{} callback failed: {}", label, exc)
            return
        if inspect.isawaitable(result):
            await self._await_callback(result, label)

    async def _await_callback(self, awaitable: Awaitable[Any], label: str) -> None:
        try:
            await awaitable
        except Exception as exc:
            logger.exception("{} callback failed: {}", label, exc)

    def dispatch_raw(self, raw: str) -> Frame | None:
        """Decode one wire string and dispatch it. Decode failures are reported, not raised."""
        try:
            frame = decode(raw)
        except DecodeError as exc:
            logger.warning("Dropping malformed frame: {}", exc)
            self.report_error(exc)
            return None
        if frame is None:
            logger.debug("Ignoring short frame {!r}", raw)
            return None
        self.dispatch(frame)
        return frame

    def dispatch(self, frame: Frame) -> None:
        command = ServerCommand.parse(frame.opcode)
        if command is None:
            logger.debug("Unknown server command {}", frame.opcode)
        else:
            mutator = self.MUTATORS.get(command)
            if mutator is not None:
                try:
                    mutator(self, frame.payload)
                except Exception as exc:
                    logger.exception("State update for {} failed: {}", frame.opcode, exc)
            callback = self._callbacks.get(command)
            if callback is not None:
                self.invoke(callback, frame.payload, label=frame.opcode)
        if self._command_callback is not None:
            self.invoke(self._command_callback, frame.opcode, frame.payload, label="command")

    def report_error(self, exc: FchatError) -> None:
        """Pass an error to the error callback, if any."""
        if self._error_callback is not None:
            self.invoke(self._error_callback, exc, label="error")

    def invoke(self, callback: Callable[..., Any], *args: Any, label: str) -> None:
        """Call a caller-supplied handler; failures are logged.

        Coroutines are deferred to the running `feed`, or scheduled on the loop
        when called outside one.
        """
        try:
            result = callback(*args)
        except Exception as exc:
            logger.exception("{} callback failed: {}", label, exc)
            return
        if inspect.isawaitable(result):
            if self._deferred is not None:
                self._deferred.append((result, label))
                return
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)  # type: ignore[arg-type]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("Async callback failed: {}", exc)

    def _send_reply(self, opcode: ClientCommand, payload: Payload | None = None) -> None:
        if self._reply is None:
            logger.debug("No reply channel; not sending {}", opcode)
            return
        self._reply(opcode.value, payload)

    # -- built-in mutators --------------------------------------------------

    @handles(ServerCommand.ADL)
    def _adl(self, data: Payload) -> None:
        self._store.set_chatops(data["ops"])

    @handles(ServerCommand.AOP)
    def _aop(self, data: Payload) -> None:
        self._store.add_chatop(data["character"])

    @handles(ServerCommand.DOP)
    def _dop(self, data: Payload) -> None:
        self._store.remove_chatop(data["character"])

    @handles(ServerCommand.CDS)
    def _cds(self, data: Payload) -> None:
        self._store.set_description(data["channel"], data.get("description", ""))

    @handles(ServerCommand.CIU)
    def _ciu(self, data: Payload) -> None:
        if self.join_on_invite:
            self._send_reply(ClientCommand.JCH, {"channel": data["name"]})

    @handles(ServerCommand.COA)
    def _coa(self, data: Payload) -> None:
        self._store.add_chanop(data["channel"], data["character"])

    @handles(ServerCommand.COL)
    def _col(self, data: Payload) -> None:
        self._store.set_chanops(data["channel"], data.get("oplist") or [])

    @handles(ServerCommand.COR)
    def _cor(self, data: Payload) -> None:
        self._store.remove_chanop(data["channel"], data["character"])

    @handles(ServerCommand.CSO)
    def _cso(self, data: Payload) -> None:
        self._store.set_owner(data["channel"], data["character"])

    @handles(ServerCommand.ERR)
    def _err(self, data: Payload) -> None:
        try:
            number = int(data.get("number", -1))
        except (TypeError, ValueError):
            number = -1
        exc = ProtocolError(number, str(data.get("message", "")))
        logger.warning("Server error {}: {}", exc.number, exc.message)
        self.report_error(exc)

    @handles(ServerCommand.FLN)
    def _fln(self, data: Payload) -> None:
        self._store.character_offline(data["character"], prune_channels=self.prune_offline_from_channels)

    @handles(ServerCommand.FRL)
    def _frl(self, data: Payload) -> None:
        self._store.set_friends(data.get("characters") or [])

    @handles(ServerCommand.ICH)
    def _ich(self, data: Payload) -> None:
        users = [u["identity"] if isinstance(u, dict) else str(u) for u in data.get("users") or []]
        self._store.initial_channel_data(data["channel"], users, data.get("mode", ""))

    @handles(ServerCommand.IGN)
    def _ign(self, data: Payload) -> None:
        action = data.get("action")
        if action in ("init", "list"):
            self._store.set_ignore_list(data.get("characters") or [])
        elif action == "add":
            self._store.add_ignore(data["character"])
        elif action == "delete":
            self._store.remove_ignore(data["character"])

    @handles(ServerCommand.JCH)
    def _jch(self, data: Payload) -> None:
        character = data["character"]
        identity = character["identity"] if isinstance(character, dict) else str(character)
        self._store.channel_joined(data["channel"], identity, data.get("title", ""))

    @handles(ServerCommand.LCH)
    def _lch(self, data: Payload) -> None:
        self._store.channel_left(data["channel"], data["character"])

    @handles(ServerCommand.LIS)
    def _lis(self, data: Payload) -> None:
        self._store.add_characters(data.get("characters") or [])

    @handles(ServerCommand.NLN)
    def _nln(self, data: Payload) -> None:
        self._store.character_online(data["identity"], data.get("gender", ""), data.get("status", "online"))

    @handles(ServerCommand.PIN)
    def _pin(self, data: Payload) -> None:
        if self.auto_ping:
            self._send_reply(ClientCommand.PIN)

    @handles(ServerCommand.PRD)
    def _prd(self, data: Payload) -> None:
        kind = data.get("type")
        character = data["character"]
        if kind == "start":
            self._store.profile_start(character, data.get("message", ""))
        elif kind == "info":
            self._store.profile_info(character, data["key"], data.get("value"))
        elif kind == "end":
            profile = self._store.profile_end(character, data.get("message", ""))
            if profile is not None and self._profile_callback is not None:
                self.invoke(self._profile_callback, profile, label="profile")

    @handles(ServerCommand.RMO)
    def _rmo(self, data: Payload) -> None:
        self._store.set_mode(data["channel"], data["mode"])

    @handles(ServerCommand.STA)
    def _sta(self, data: Payload) -> None:
        self._store.set_status(data["character"], data["status"], data.get("statusmsg", ""))

    @handles(ServerCommand.TPN)
    def _tpn(self, data: Payload) -> None:
        self._store.set_typing(data["character"], data["status"])

    @handles(ServerCommand.VAR)
    def _var(self, data: Payload) -> None:
        self._store.set_variable(data["variable"], data.get("value"))


def _collect_mutators(cls: type) -> dict[ServerCommand, _Mutator]:
    table: dict[ServerCommand, _Mutator] = {}
    for attr in vars(cls).values():
        command = getattr(attr, "COMMAND", None)
        if command is None:
            continue
        if command in table:
            raise TypeError(f"{cls.__name__}: duplicate mutator for {command}")
        table[command] = attr
    return table


Dispatcher.MUTATORS = _collect_mutators(Dispatcher)
