"""Client domain exceptions."""

from __future__ import annotations


class FchatError(Exception):
    """Base for client domain errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str | int | None = None,
        details: dict[str, object] | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.original_error = original_error


class FchatConfigurationError(FchatError):
    """Config validation or load failure."""


class AuthError(FchatError):
    """Ticket request was rejected or its response could not be read."""


class ApiError(FchatError):
    """Authenticated JSON API call failed."""


class DecodeError(FchatError):
    """Inbound frame could not be decoded. The connection stays open."""

    def __init__(self, message: str, *, frame: str, original_error: BaseException | None = None) -> None:
        super().__init__(
            message,
            code="decode_error",
            details={"frame": frame},
            original_error=original_error,
        )
        self.frame = frame


class TransportError(FchatError):
    """Socket failure. Terminates the session."""


class ProtocolError(FchatError):
    """Server-sent ERR frame."""

    def __init__(self, number: int, message: str) -> None:
        super().__init__(message, code=number, details={"number": number})
        self.number = number

    def __str__(self) -> str:
        return f"server error {self.number}: {self.message}"
