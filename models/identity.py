import ipaddress
import logging
import re
from typing import Callable, Union

from pydantic import BaseModel, ConfigDict

import config
from models.errors import EmptyParameter, InvalidIdentity

logger = logging.getLogger(__name__)

# Old-style IPv4 range notation, still accepted as an anonymous editor name
IPV4_XXX_PATTERN = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.(?:xxx|\d{1,3})$", re.IGNORECASE)


class PrefixIdentity(BaseModel):
    """All editors whose display name starts with the prefix"""

    model_config = ConfigDict(frozen=True)

    prefix: str

    @property
    def multi(self) -> bool:
        return True


class IdIdentity(BaseModel):
    """
    Editors by numeric user id.

    names is set when the ids were obtained by upgrading a name list, so that
    a continuation issued in name mode can fall back to it.
    """

    model_config = ConfigDict(frozen=True)

    ids: tuple[int, ...]
    multi: bool
    names: tuple[str, ...] = ()


class NameIdentity(BaseModel):
    """Editors by display name or IP address"""

    model_config = ConfigDict(frozen=True)

    names: tuple[str, ...]
    multi: bool


Identity = Union[PrefixIdentity, IdIdentity, NameIdentity]


def is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return bool(IPV4_XXX_PATTERN.match(value))
    return True


def canonical_username(name: str) -> str | None:
    """Return the canonical form of a registered user name, or None if the
    name can not belong to an account."""
    name = " ".join(name.replace("_", " ").split())
    if not name:
        return None
    name = name[0].upper() + name[1:]
    if len(name.encode("utf-8")) > config.MAX_USERNAME_LENGTH:
        return None
    if config.INVALID_USERNAME_CHARACTERS.search(name):
        return None
    if is_ip(name):
        return None
    return name


def resolve_identity(
    user: list[str] | None = None,
    userids: list[int] | None = None,
    userprefix: str | None = None,
    lookup_user_ids: Callable[[list[str]], list[int]] | None = None,
) -> Identity:
    """Turn exactly one of the identity parameters into an Identity.

    A name list in which every name belongs to an account is upgraded to
    id mode, as rev_user is the more selective index. lookup_user_ids is
    only consulted in that case."""
    given = [p for p in (user, userids, userprefix) if p is not None]
    if len(given) != 1:
        raise ValueError("Exactly one of user, userids and userprefix is required")

    if userprefix is not None:
        return PrefixIdentity(prefix=userprefix)

    if userids is not None:
        if not userids:
            raise EmptyParameter("userids")
        for uid in userids:
            if uid <= 0:
                raise InvalidIdentity(uid, param="userids")
        return IdIdentity(ids=tuple(userids), multi=len(userids) > 1)

    if not user:
        raise EmptyParameter("user")
    any_ips = False
    names = []
    for u in user:
        if u == "":
            raise EmptyParameter("user")
        if is_ip(u):
            any_ips = True
            names.append(u)
            continue
        name = canonical_username(u)
        if name is None:
            raise InvalidIdentity(u)
        names.append(name)
    multi = len(user) > 1

    if not any_ips and lookup_user_ids is not None:
        ids = lookup_user_ids(names)
        if len(ids) == len(names):
            logger.debug(f"All {len(names)} user names resolved, using id mode")
            return IdIdentity(ids=tuple(ids), multi=multi, names=tuple(names))
        logger.debug(f"Resolved {len(ids)} of {len(names)} user names, using name mode")
    return NameIdentity(names=tuple(names), multi=multi)
