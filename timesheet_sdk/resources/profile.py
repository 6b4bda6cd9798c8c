"""The authenticated user's profile: ``/v1/profiles/me``."""

from .base import JsonDict, Resource


class ProfileResource(Resource):
    base_path = "/v1/profiles/me"

    async def get(self) -> JsonDict:
        return await self.http.get(self.base_path)

    async def update(self, data: JsonDict) -> JsonDict:
        return await self.http.put(self.base_path, data)
