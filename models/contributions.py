import logging

from pydantic import BaseModel, ConfigDict

import config
from models.contribution import ContributionsPage
from models.cursor import decode_cursor, encode_cursor
from models.identity import resolve_identity
from models.permissions import CallerPermissions
from models.projector import Projector, ResultSizeBudget, project_page
from models.query import OutputFields, ShowFlags, check_patrol_access, compose_query
from models.read import Read
from models.validator import Validator

logger = logging.getLogger(__name__)


class UserContributions(BaseModel):
    """One page of the contributions of one or more users"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    params: Validator
    permissions: CallerPermissions
    read: Read
    warnings: list[str] = []

    def resolve_limit(self) -> int:
        max_limit = self.permissions.max_limit
        if self.params.limit == "max":
            return max_limit
        if self.params.limit > max_limit:
            message = f"limit may not be over {max_limit} (set to {max_limit}) for users"
            logger.warning(message)
            self.warnings.append(message)
            return max_limit
        return self.params.limit

    def fetch(self) -> ContributionsPage:
        params = self.params
        # Everything that can be rejected without the database is checked first
        fields = OutputFields.from_props(params.prop)
        show = ShowFlags.from_list(params.show_values)
        check_patrol_access(fields, show, self.permissions)
        if params.toponly:
            self.warnings.append('The parameter "toponly" is deprecated, use show=top instead.')
        limit = self.resolve_limit()

        identity = resolve_identity(
            user=params.user,
            userids=params.userids,
            userprefix=params.userprefix,
            lookup_user_ids=self.read.fetch_user_ids,
        )
        cursor = None
        if params.continuation is not None:
            cursor, identity = decode_cursor(params.continuation, identity)

        query = compose_query(
            identity=identity,
            permissions=self.permissions,
            fields=fields,
            show=show,
            limit=limit,
            direction=params.dir,
            cursor=cursor,
            start=params.start,
            end=params.end,
            namespaces=params.namespace,
            tag=params.tag,
        )
        rows = self.read.fetch_contributions(query)

        parent_lengths = {}
        if fields.sizediff:
            parent_lengths = self.read.fetch_parent_lengths(
                [row.rev_parent_id for row in rows if row.rev_parent_id]
            )

        projector = Projector(
            fields=fields, permissions=self.permissions, parent_lengths=parent_lengths
        )
        budget = ResultSizeBudget(max_size=config.MAX_RESULT_SIZE)
        records, next_cursor = project_page(
            rows, identity, limit, projector, accept=budget.fits, direction=params.dir
        )
        return ContributionsPage(
            usercontribs=records,
            continue_=encode_cursor(next_cursor) if next_cursor is not None else None,
            warnings=self.warnings or None,
        )
