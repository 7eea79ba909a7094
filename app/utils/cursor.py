"""
Opaque message cursors.

A cursor pins a position in a conversation's message history as the pair
(created_at, message_id). The pair totally orders messages even when several
share a timestamp. Clients only ever see the URL-safe base64 form.
"""
import base64
import binascii
from dataclasses import dataclass
from datetime import datetime

from app.utils.datetime_utils import ensure_utc, parse_iso_utc, to_iso_utc

_SEPARATOR = "|"


class InvalidCursorError(ValueError):
    """Raised when a cursor string was not issued by this server."""


@dataclass(frozen=True)
class MessageCursor:
    created_at: datetime
    message_id: str

    def encode(self) -> str:
        raw = f"{to_iso_utc(self.created_at)}{_SEPARATOR}{self.message_id}"
        return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")

    @classmethod
    def decode(cls, value: str) -> "MessageCursor":
        padded = value + "=" * (-len(value) % 4)
        try:
            raw = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
        except (binascii.Error, UnicodeError, ValueError) as e:
            raise InvalidCursorError(f"Malformed cursor: {value!r}") from e

        timestamp, sep, message_id = raw.partition(_SEPARATOR)
        if not sep or not message_id:
            raise InvalidCursorError(f"Malformed cursor: {value!r}")

        try:
            created_at = parse_iso_utc(timestamp)
        except ValueError as e:
            raise InvalidCursorError(f"Malformed cursor timestamp: {value!r}") from e

        return cls(created_at=created_at, message_id=message_id)


def make_message_cursor(created_at: datetime, message_id: str) -> str:
    """Canonical way to produce a cursor for a stored message."""
    return MessageCursor(ensure_utc(created_at), message_id).encode()


def parse_message_cursor(value: str) -> MessageCursor:
    return MessageCursor.decode(value)
