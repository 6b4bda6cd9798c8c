"""Teams and team members: ``/v1/teams``."""

from ..page import NavigablePage
from .base import CrudResource, JsonDict


class TeamResource(CrudResource):
    base_path = "/v1/teams"

    async def list_members(
        self, team_id: str, params: JsonDict | None = None
    ) -> NavigablePage[JsonDict]:
        """List the members of a team."""
        params = dict(params or {})
        response = await self.http.post(self._path(team_id, "members", "list"), params)
        return self._page(
            response, lambda page: self.list_members(team_id, {**params, "page": page})
        )

    async def get_member(self, team_id: str, member_id: str) -> JsonDict:
        return await self.http.get(self._path(team_id, "members", member_id))
