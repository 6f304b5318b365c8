from pydantic import BaseModel, field_validator

# RevisionDelete bits of rev_deleted
# https://www.mediawiki.org/wiki/Manual:RevisionDelete
DELETED_TEXT = 1
DELETED_COMMENT = 2
DELETED_USER = 4
DELETED_RESTRICTED = 8


def decode(value):
    """The replicas hand out binary columns as bytes"""
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8")
    return value


class ContributionRow(BaseModel):
    """
    A read-only snapshot of one revision joined with its page and the
    optional enrichment tables. Columns that were not selected stay None.

    rc_patrolled: now has three states:
        "0" for unpatrolled,
        "1" for manually patrolled
        "2" for autopatrolled actions
    see https://www.mediawiki.org/wiki/Manual:Recentchanges_table#rc_patrolled
    """

    rev_id: int
    rev_timestamp: str
    rev_user: int
    rev_user_text: str
    rev_deleted: int = 0
    page_namespace: int
    page_title: str
    rev_page: int | None = None
    rev_parent_id: int | None = None
    rev_len: int | None = None
    rev_minor_edit: int | None = None
    page_latest: int | None = None
    rev_comment_text: str | None = None
    rc_patrolled: int | None = None
    ts_tags: str | None = None

    # noinspection PyMethodParameters
    @field_validator(
        "rev_timestamp", "rev_user_text", "page_title", "rev_comment_text", "ts_tags", mode="before"
    )
    def decode_binary(cls, v):
        return decode(v)

    # noinspection PyMethodParameters
    @field_validator("rev_user", mode="before")
    def anonymous_user_is_zero(cls, v):
        # rev_user is NULL or a Decimal on the compat views
        return 0 if v is None else int(v)

    def is_deleted(self, field: int) -> bool:
        return bool(self.rev_deleted & field)

    @property
    def is_new(self):
        return self.rev_parent_id == 0

    @property
    def is_minor(self):
        return bool(self.rev_minor_edit)

    @property
    def is_top(self):
        return self.page_latest == self.rev_id

    @property
    def is_patrolled(self):
        """Both manually patrolled and autopatrolled count as patrolled"""
        return bool(self.rc_patrolled)

    @property
    def tags(self) -> list[str]:
        if not self.ts_tags:
            return []
        return self.ts_tags.split(",")
