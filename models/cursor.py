from typing import Literal

from pydantic import BaseModel, ConfigDict

import config
from models.errors import MalformedContinuation
from models.identity import IdIdentity, Identity, NameIdentity
from models.revision import ContributionRow


class Cursor(BaseModel):
    """Sort key of the last row served, the next page starts strictly after it"""

    model_config = ConfigDict(frozen=True)

    mode: Literal["id", "name"] | None = None
    identity_value: str | None = None
    timestamp: str
    row_id: int


def is_row_number(value: str) -> bool:
    return value.isascii() and value.isdigit()


def identity_mode(identity: Identity) -> Literal["id", "name"]:
    if isinstance(identity, IdIdentity):
        return "id"
    return "name"


def cursor_from_row(row: ContributionRow, identity: Identity) -> Cursor:
    if not identity.multi:
        return Cursor(timestamp=row.rev_timestamp, row_id=row.rev_id)
    mode = identity_mode(identity)
    value = str(row.rev_user) if mode == "id" else row.rev_user_text
    return Cursor(mode=mode, identity_value=value, timestamp=row.rev_timestamp, row_id=row.rev_id)


def cursor_before_row(row: ContributionRow, identity: Identity, direction: str) -> Cursor:
    """A cursor whose next page starts with row itself"""
    cursor = cursor_from_row(row, identity)
    step = 1 if direction == "older" else -1
    return cursor.model_copy(update={"row_id": cursor.row_id + step})


def encode_cursor(cursor: Cursor) -> str:
    if cursor.mode is None:
        return f"{cursor.timestamp}|{cursor.row_id}"
    return f"{cursor.mode}|{cursor.identity_value}|{cursor.timestamp}|{cursor.row_id}"


def decode_cursor(value: str, identity: Identity) -> tuple[Cursor, Identity]:
    """Parse a continuation token for the request's identity.

    Returns the cursor and the identity to continue with. Accounts created
    after the first page was served may have turned a name list into an id
    list; such a request keeps going in name mode."""
    parts = value.split("|")
    mode = None
    identity_value = None
    if identity.multi:
        if len(parts) != 4:
            raise MalformedContinuation(value)
        mode, identity_value = parts[0], parts[1]
        if mode not in ("id", "name"):
            raise MalformedContinuation(value)
        if isinstance(identity, IdIdentity) and mode == "name":
            if not identity.names:
                raise MalformedContinuation(value)
            identity = NameIdentity(names=identity.names, multi=identity.multi)
        if mode != identity_mode(identity):
            raise MalformedContinuation(value)
        if mode == "id" and not is_row_number(identity_value):
            raise MalformedContinuation(value)
        parts = parts[2:]
    elif len(parts) != 2:
        raise MalformedContinuation(value)

    timestamp, row_id = parts
    if not config.TIMESTAMP_PATTERN.fullmatch(timestamp):
        raise MalformedContinuation(value)
    if not is_row_number(row_id):
        raise MalformedContinuation(value)
    return (
        Cursor(mode=mode, identity_value=identity_value, timestamp=timestamp, row_id=int(row_id)),
        identity,
    )
