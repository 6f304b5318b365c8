"""
Composition of the contributions listing query.

The query is kept as data (tables, joins, conditions, order) until it is
rendered for a database dialect, so that the join topology can be chosen
from the requested output and tested without a database.
"""

import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

import config
from models.cursor import Cursor
from models.errors import ConflictingShowFlags, PermissionDenied
from models.identity import IdIdentity, Identity, NameIdentity, PrefixIdentity
from models.permissions import CallerPermissions, exclusion_mask

logger = logging.getLogger(__name__)

LIKE_ESCAPE = "`"


class OutputFields(BaseModel):
    """Which optional output fields were requested"""

    model_config = ConfigDict(frozen=True)

    ids: bool = False
    title: bool = False
    timestamp: bool = False
    comment: bool = False
    parsedcomment: bool = False
    size: bool = False
    sizediff: bool = False
    flags: bool = False
    patrolled: bool = False
    tags: bool = False

    @classmethod
    def from_props(cls, props: list[str]) -> "OutputFields":
        return cls(**{p: True for p in props})

    @property
    def any_comment(self) -> bool:
        return self.comment or self.parsedcomment


class ShowFlags(BaseModel):
    """Row filters of the show parameter, None meaning no filter on that axis"""

    model_config = ConfigDict(frozen=True)

    minor: bool | None = None
    patrolled: bool | None = None
    top: bool | None = None
    new: bool | None = None

    @classmethod
    def from_list(cls, show: list[str]) -> "ShowFlags":
        values = {}
        conflicts = []
        for axis in cls.model_fields:
            on, off = axis in show, f"!{axis}" in show
            if on and off:
                conflicts += [axis, f"!{axis}"]
            elif on or off:
                values[axis] = on
        if conflicts:
            raise ConflictingShowFlags(conflicts)
        return cls(**values)

    @property
    def filters_patrol(self) -> bool:
        return self.patrolled is not None


def check_patrol_access(fields: OutputFields, show: ShowFlags, permissions: CallerPermissions):
    if (fields.patrolled or show.filters_patrol) and not permissions.can_patrol:
        raise PermissionDenied()


class Join(BaseModel):
    model_config = ConfigDict(frozen=True)

    table: str
    kind: Literal["JOIN", "LEFT JOIN"] = "JOIN"
    on: tuple[str, ...]
    index: str | None = None


class Dialect(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    placeholder: str
    # STRAIGHT_JOIN and USE INDEX
    supports_hints: bool


MYSQL = Dialect(name="mysql", placeholder="%s", supports_hints=True)
SQLITE = Dialect(name="sqlite", placeholder="?", supports_hints=False)


class ComposedQuery(BaseModel):
    from_table: str
    joins: list[Join] = []
    fields: list[str] = []
    where: list[str] = []
    params: list[Any] = []
    order_by: list[str] = []
    limit: int
    straight_join: bool = False

    def add_where(self, condition: str, *params):
        self.where.append(condition)
        self.params.extend(params)

    def to_sql(self, dialect: Dialect = MYSQL) -> tuple[str, list[Any]]:
        """Render the query. Conditions are written with %s placeholders."""
        select = "SELECT STRAIGHT_JOIN" if self.straight_join and dialect.supports_hints else "SELECT"
        lines = [f"{select} {', '.join(self.fields)}", f"FROM {self.from_table}"]
        for join in self.joins:
            table = join.table
            if join.index and dialect.supports_hints:
                table += f" USE INDEX ({join.index})"
            lines.append(f"{join.kind} {table} ON {' AND '.join(join.on)}")
        if self.where:
            lines.append("WHERE " + " AND ".join(f"({w})" for w in self.where))
        if self.order_by:
            lines.append("ORDER BY " + ", ".join(self.order_by))
        lines.append(f"LIMIT {int(self.limit)}")
        sql = "\n".join(lines)
        if dialect.placeholder != "%s":
            sql = sql.replace("%s", dialect.placeholder)
        return sql, list(self.params)


def escape_like(value: str) -> str:
    for char in (LIKE_ESCAPE, "%", "_"):
        value = value.replace(char, LIKE_ESCAPE + char)
    return value


def in_list(field: str, values) -> tuple[str, list]:
    values = list(values)
    return f"{field} IN ({', '.join(['%s'] * len(values))})", values


def identity_field(identity: Identity) -> str:
    if isinstance(identity, IdIdentity):
        return "rev_user"
    return "rev_user_text"


def cursor_condition(cursor: Cursor, identity: Identity, op: str) -> tuple[str, list]:
    """Keyset condition selecting everything after the cursor row"""
    condition = f"rev_timestamp {op} %s OR (rev_timestamp = %s AND rev_id {op} %s)"
    params = [cursor.timestamp, cursor.timestamp, cursor.row_id]
    if not identity.multi:
        return condition, params
    field = identity_field(identity)
    value = int(cursor.identity_value) if isinstance(identity, IdIdentity) else cursor.identity_value
    return (
        f"{field} {op} %s OR ({field} = %s AND ({condition}))",
        [value, value] + params,
    )


def identity_condition(identity: Identity) -> tuple[str, list]:
    if isinstance(identity, PrefixIdentity):
        return f"rev_user_text LIKE %s ESCAPE '{LIKE_ESCAPE}'", [escape_like(identity.prefix) + "%"]
    if isinstance(identity, IdIdentity):
        return in_list("rev_user", identity.ids)
    if isinstance(identity, NameIdentity):
        return in_list("rev_user_text", identity.names)
    raise TypeError(f"Unknown identity {identity!r}")


def show_conditions(show: ShowFlags) -> list[str]:
    conditions = []
    if show.minor is not None:
        conditions.append("rev_minor_edit != 0" if show.minor else "rev_minor_edit = 0")
    if show.patrolled is not None:
        conditions.append("rc_patrolled != 0" if show.patrolled else "rc_patrolled = 0")
    if show.top is not None:
        conditions.append("rev_id = page_latest" if show.top else "rev_id != page_latest")
    if show.new is not None:
        conditions.append("rev_parent_id = 0" if show.new else "rev_parent_id != 0")
    return conditions


def select_fields(fields: OutputFields) -> list[str]:
    # rev_timestamp and rev_id continue the listing, rev_user_text too when
    # several users were asked for, rev_deleted drives redaction
    selected = [
        "rev_id",
        "rev_timestamp",
        "page_namespace",
        "page_title",
        "rev_user",
        "rev_user_text",
        "rev_deleted",
    ]
    optional = [
        ("rev_page", fields.ids),
        ("page_latest", fields.flags),
        ("rev_len", fields.size or fields.sizediff),
        ("rev_minor_edit", fields.flags),
        ("rev_parent_id", fields.flags or fields.sizediff or fields.ids),
        ("rc_patrolled", fields.patrolled),
        ("comment_text AS rev_comment_text", fields.any_comment),
        ("ts_tags", fields.tags),
    ]
    return selected + [field for field, wanted in optional if wanted]


def patrol_join(kind: Literal["JOIN", "LEFT JOIN"]) -> Join:
    # The redundant conditions on user and timestamp let the rc_user_text
    # index do the work
    return Join(
        table="recentchanges",
        kind=kind,
        on=("rc_user_text = rev_user_text", "rc_timestamp = rev_timestamp", "rc_this_oldid = rev_id"),
        index="rc_user_text",
    )


def base_tables(fields: OutputFields, show: ShowFlags) -> tuple[str, list[Join]]:
    page_join = Join(table="page", on=("page_id = rev_page",))
    if show.filters_patrol:
        # Filtering on the patrol flag walks recentchanges, so the tables
        # are forced into revision, recentchanges, page order
        return config.REVISION_TABLE, [patrol_join("JOIN"), page_join]
    joins = [Join(table=config.REVISION_TABLE, on=("page_id = rev_page",))]
    if fields.patrolled:
        joins.append(patrol_join("LEFT JOIN"))
    return "page", joins


def enrichment_joins(fields: OutputFields, tag: str | None) -> list[Join]:
    joins = []
    if fields.any_comment:
        joins.append(
            Join(table=config.COMMENT_TABLE, kind="LEFT JOIN", on=("comment_id = rev_comment_id",))
        )
    if fields.tags:
        joins.append(Join(table="tag_summary", kind="LEFT JOIN", on=("ts_rev_id = rev_id",)))
    if tag is not None:
        joins.append(Join(table="change_tag", on=("ct_rev_id = rev_id",)))
    return joins


def compose_query(
    identity: Identity,
    permissions: CallerPermissions,
    fields: OutputFields,
    show: ShowFlags,
    limit: int,
    direction: Literal["older", "newer"] = "older",
    cursor: Cursor | None = None,
    start: str | None = None,
    end: str | None = None,
    namespaces: list[int] | None = None,
    tag: str | None = None,
) -> ComposedQuery:
    from_table, joins = base_tables(fields, show)
    query = ComposedQuery(
        from_table=from_table,
        joins=joins + enrichment_joins(fields, tag),
        fields=select_fields(fields),
        # one extra row tells whether there is a next page
        limit=limit + 1,
        straight_join=show.filters_patrol,
    )
    op = "<" if direction == "older" else ">"

    if cursor is not None:
        query.add_where(*_flatten(cursor_condition(cursor, identity, op)))

    mask = exclusion_mask(permissions)
    if mask:
        query.add_where(f"(rev_deleted & {mask}) != {mask}")

    query.add_where(*_flatten(identity_condition(identity)))

    lower, upper = (end, start) if direction == "older" else (start, end)
    if lower is not None:
        query.add_where("rev_timestamp >= %s", lower)
    if upper is not None:
        query.add_where("rev_timestamp <= %s", upper)

    if namespaces:
        query.add_where(*_flatten(in_list("page_namespace", namespaces)))
    for condition in show_conditions(show):
        query.add_where(condition)
    if tag is not None:
        query.add_where("ct_tag = %s", tag)

    order = "DESC" if direction == "older" else "ASC"
    if identity.multi:
        # same direction as the timestamp so the user/timestamp index is usable
        query.order_by.append(f"{identity_field(identity)} {order}")
    query.order_by += [f"rev_timestamp {order}", f"rev_id {order}"]

    logger.debug(f"Composed contributions query: {query.to_sql()[0]}")
    return query


def _flatten(condition: tuple[str, list]) -> tuple:
    text, params = condition
    return (text, *params)
