from typing import Callable

from pydantic import BaseModel

from models.comment import format_comment
from models.contribution import Contribution
from models.cursor import Cursor, cursor_before_row, cursor_from_row
from models.identity import Identity
from models.permissions import CallerPermissions, can_view_field
from models.query import OutputFields
from models.revision import (
    DELETED_COMMENT,
    DELETED_RESTRICTED,
    DELETED_TEXT,
    DELETED_USER,
    ContributionRow,
)
from models.timestamp import to_iso_timestamp
from models.title import Title


class Projector(BaseModel):
    fields: OutputFields
    permissions: CallerPermissions
    # length of each parent revision, only filled in for sizediff
    parent_lengths: dict[int, int] = {}

    def project(self, row: ContributionRow) -> Contribution:
        fields = self.fields
        any_hidden = False
        # Rows whose user the caller may not see never got this far
        record = Contribution(userid=row.rev_user, user=row.rev_user_text)

        if row.is_deleted(DELETED_TEXT):
            record.texthidden = True
            any_hidden = True
        if row.is_deleted(DELETED_USER):
            record.userhidden = True
            any_hidden = True

        if fields.ids:
            record.pageid = row.rev_page
            record.revid = row.rev_id
            if row.rev_parent_id is not None:
                record.parentid = row.rev_parent_id

        title = Title(namespace=row.page_namespace, dbkey=row.page_title)
        if fields.title:
            record.ns = title.namespace
            record.title = title.prefixed_text

        if fields.timestamp:
            record.timestamp = to_iso_timestamp(row.rev_timestamp)

        if fields.flags:
            record.new = row.is_new
            record.minor = row.is_minor
            record.top = row.is_top

        if fields.any_comment:
            if row.is_deleted(DELETED_COMMENT):
                record.commenthidden = True
                any_hidden = True
            if can_view_field(row.rev_deleted, DELETED_COMMENT, self.permissions):
                comment = row.rev_comment_text or ""
                if fields.comment:
                    record.comment = comment
                if fields.parsedcomment:
                    record.parsedcomment = format_comment(comment, title)

        if fields.patrolled:
            record.patrolled = row.is_patrolled

        if fields.size and row.rev_len is not None:
            record.size = row.rev_len

        if fields.sizediff and row.rev_len is not None and row.rev_parent_id is not None:
            # A parent missing from the lookup counts as empty
            record.sizediff = row.rev_len - self.parent_lengths.get(row.rev_parent_id, 0)

        if fields.tags:
            record.tags = row.tags

        if any_hidden and row.is_deleted(DELETED_RESTRICTED):
            record.suppressed = True
        return record


class ResultSizeBudget(BaseModel):
    """Caps the serialized size of the records of one response"""

    max_size: int
    used: int = 0

    def fits(self, row: ContributionRow, record: Contribution) -> bool:
        size = len(record.model_dump_json(exclude_none=True).encode("utf-8"))
        if self.used and self.used + size > self.max_size:
            return False
        self.used += size
        return True


def project_page(
    rows: list[ContributionRow],
    identity: Identity,
    limit: int,
    projector: Projector,
    accept: Callable[[ContributionRow, Contribution], bool] | None = None,
    direction: str = "older",
) -> tuple[list[Contribution], Cursor | None]:
    """Project up to limit rows.

    The returned cursor continues after the last projected row. It is only
    set when rows remain: the overflow row exists, or accept turned a row
    down, in which case the next page starts with that row."""
    records = []
    last = None
    for count, row in enumerate(rows, start=1):
        if count > limit:
            return records, cursor_from_row(last, identity)
        record = projector.project(row)
        if accept is not None and not accept(row, record):
            if last is None:
                return records, cursor_before_row(row, identity, direction)
            return records, cursor_from_row(last, identity)
        records.append(record)
        last = row
    return records, None
