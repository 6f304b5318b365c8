class ContributionsError(Exception):
    """Base class for caller-facing errors of the contributions listing.

    None of these are retried, the caller has to correct the request."""

    code = "error"
    status_code = 400

    def __init__(self, info: str):
        super().__init__(info)
        self.info = info

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "info": self.info}


class EmptyParameter(ContributionsError):
    def __init__(self, param: str):
        super().__init__(f"The {param} parameter may not be empty.")
        self.param = param
        self.code = f"paramempty_{param}"


class InvalidIdentity(ContributionsError):
    code = "baduser"

    def __init__(self, value: str | int, param: str = "user"):
        super().__init__(f"Invalid value {value!r} for {param} parameter.")
        self.value = value
        if param == "userids":
            self.code = "invaliduserid"


class ConflictingShowFlags(ContributionsError):
    code = "show"

    def __init__(self, flags: list[str]):
        super().__init__(
            "Incorrect parameter - mutually exclusive values may not be supplied: "
            + ", ".join(flags)
        )
        self.flags = flags


class PermissionDenied(ContributionsError):
    code = "permissiondenied"
    status_code = 403

    def __init__(self, info: str = "You need the patrol or patrolmarks right to request the patrolled flag."):
        super().__init__(info)


class MalformedContinuation(ContributionsError):
    code = "badcontinue"

    def __init__(self, value: str):
        super().__init__(f"Invalid continue param: {value!r}. You should pass the original value returned by the previous query.")
        self.value = value


class BackendUnavailable(ContributionsError):
    code = "backend-unavailable"
    status_code = 503

    def __init__(self, info: str = "The database backend is currently unavailable."):
        super().__init__(info)
