from pydantic import BaseModel, ConfigDict, Field


class Contribution(BaseModel):
    """One entry of a user's contributions.

    Optional fields are only present when requested and visible to the
    caller, the *hidden markers only when true."""

    userid: int
    user: str
    userhidden: bool | None = None
    pageid: int | None = None
    revid: int | None = None
    parentid: int | None = None
    ns: int | None = None
    title: str | None = None
    timestamp: str | None = None
    new: bool | None = None
    minor: bool | None = None
    top: bool | None = None
    comment: str | None = None
    parsedcomment: str | None = None
    commenthidden: bool | None = None
    patrolled: bool | None = None
    size: int | None = None
    sizediff: int | None = None
    tags: list[str] | None = None
    texthidden: bool | None = None
    suppressed: bool | None = None


class ContributionsPage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    usercontribs: list[Contribution]
    continue_: str | None = Field(default=None, alias="continue")
    warnings: list[str] | None = None
