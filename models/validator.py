from typing import Literal

from pydantic import BaseModel, field_validator, model_validator

import config
from models.timestamp import to_mw_timestamp


class Validator(BaseModel):
    """Shape checks of a contributions request.

    Semantic checks that need the caller's rights or the database (limits,
    patrol access, user names) are left to the listing itself."""

    user: list[str] | None = None
    userids: list[int] | None = None
    userprefix: str | None = None
    limit: int | Literal["max"] = config.DEFAULT_LIMIT
    start: str | None = None
    end: str | None = None
    continuation: str | None = None
    dir: Literal["older", "newer"] = "older"
    namespace: list[int] | None = None
    prop: list[str] = config.DEFAULT_PROPS
    show: list[str] = []
    tag: str | None = None
    toponly: bool = False

    # noinspection PyMethodParameters
    @field_validator("limit")
    def validate_limit(cls, v):
        if v != "max" and v < 1:
            raise ValueError("limit must be at least 1")
        return v

    # noinspection PyMethodParameters
    @field_validator("prop")
    def validate_prop(cls, v):
        for p in v:
            if p not in config.ALLOWED_PROPS:
                raise ValueError(f"Unrecognized value for prop: {p}")
        return v

    # noinspection PyMethodParameters
    @field_validator("show")
    def validate_show(cls, v):
        for s in v:
            if s not in config.ALLOWED_SHOW:
                raise ValueError(f"Unrecognized value for show: {s}")
        return v

    # noinspection PyMethodParameters
    @field_validator("start", "end")
    def validate_timestamp_format(cls, v, info):
        if v is None:
            return v
        try:
            return to_mw_timestamp(v)
        except ValueError:
            raise ValueError(f"Invalid {info.field_name} format: {v}") from None

    @model_validator(mode="after")
    def check_only_one_identity(self):
        given = [
            name
            for name in ("user", "userids", "userprefix")
            if getattr(self, name) is not None
        ]
        if len(given) != 1:
            raise ValueError("Exactly one of the parameters user, userids and userprefix is required")
        return self

    @model_validator(mode="after")
    def check_dates_order(self):
        start = self.start
        end = self.end
        if start and end:
            if self.dir == "older" and start < end:
                raise ValueError("start must be later than or equal to end when dir is older")
            if self.dir == "newer" and start > end:
                raise ValueError("start must be earlier than or equal to end when dir is newer")
        return self

    @property
    def show_values(self) -> list[str]:
        if self.toponly:
            return self.show + ["top"]
        return self.show
