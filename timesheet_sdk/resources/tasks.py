"""Tasks (time entries): ``/v1/tasks``.

Start and end times are normalized to the API timestamp format before
they are sent, so callers may pass datetimes or ISO-8601 strings.
"""

from ..dates import format_timestamp
from ..page import NavigablePage
from .base import JsonDict, Resource


def _with_times(
    data: JsonDict, *, default_start: bool = False, default_end: bool = False
) -> JsonDict:
    formatted = dict(data)
    for key, default in (("startDateTime", default_start), ("endDateTime", default_end)):
        value = formatted.get(key)
        if value is not None or default:
            formatted[key] = format_timestamp(value)
    return formatted


class TaskResource(Resource):
    base_path = "/v1/tasks"

    async def create(self, data: JsonDict) -> JsonDict:
        """Create a task; ``startDateTime`` defaults to now."""
        return await self.http.post(self.base_path, _with_times(data, default_start=True))

    async def update(self, task_id: str, data: JsonDict) -> JsonDict:
        return await self.http.put(self._path(task_id), _with_times(data))

    async def get(self, task_id: str) -> JsonDict:
        return await self.http.get(self._path(task_id))

    async def delete(self, task_id: str) -> None:
        await self.http.delete(self._path(task_id))

    async def search(self, params: JsonDict | None = None) -> NavigablePage[JsonDict]:
        params = dict(params or {})
        response = await self.http.post(self._path("search"), params)
        return self._page(response, lambda page: self.search({**params, "page": page}))

    async def update_status(self, data: JsonDict) -> JsonDict:
        """Update the status of one or more tasks."""
        return await self.http.put(self._path("updateStatus"), data)

    async def update_times(self, data: JsonDict) -> JsonDict:
        """Update start and end times; both default to now when omitted."""
        return await self.http.put(
            self._path("updateTimes"), _with_times(data, default_start=True, default_end=True)
        )
