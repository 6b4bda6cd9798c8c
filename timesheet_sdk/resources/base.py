"""Shared plumbing for API resource classes."""

from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import quote

from ..http import ApiClient
from ..page import NavigablePage

JsonDict = dict[str, Any]


class Resource:
    """Base class for resources rooted at one API path."""

    base_path: str = ""

    def __init__(self, http: ApiClient, base_path: str | None = None) -> None:
        self.http = http
        if base_path is not None:
            self.base_path = base_path

    def __repr__(self) -> str:
        return f"{type(self).__name__}(base_path={self.base_path!r})"

    def _path(self, *segments: str) -> str:
        """Join URL-encoded segments onto the base path."""
        encoded = "/".join(quote(str(segment), safe="") for segment in segments)
        return f"{self.base_path}/{encoded}" if encoded else self.base_path

    @staticmethod
    def _page(
        response: JsonDict,
        loader: Callable[[int], Awaitable[NavigablePage[JsonDict]]],
    ) -> NavigablePage[JsonDict]:
        return NavigablePage.from_dict(response or {}, loader)


class CrudResource(Resource):
    """Resource with the standard list/create/get/update/delete/search endpoints."""

    async def list(self, params: JsonDict | None = None) -> NavigablePage[JsonDict]:
        """List items (GET with query parameters)."""
        params = dict(params or {})
        response = await self.http.get(self.base_path, params)
        return self._page(response, lambda page: self.list({**params, "page": page}))

    async def create(self, data: JsonDict) -> JsonDict:
        return await self.http.post(self.base_path, data)

    async def update(self, item_id: str, data: JsonDict) -> JsonDict:
        return await self.http.put(self._path(item_id), data)

    async def get(self, item_id: str) -> JsonDict:
        return await self.http.get(self._path(item_id))

    async def delete(self, item_id: str) -> None:
        await self.http.delete(self._path(item_id))

    async def search(self, params: JsonDict | None = None) -> NavigablePage[JsonDict]:
        """Search items (POST with the filter as body)."""
        params = dict(params or {})
        response = await self.http.post(self._path("search"), params)
        return self._page(response, lambda page: self.search({**params, "page": page}))
