"""The running timer: ``/v1/timer``."""

from ..dates import format_timestamp
from .base import JsonDict, Resource


def _stamped(data: JsonDict | None, key: str) -> JsonDict:
    """Copy ``data`` with ``key`` formatted, defaulting to now."""
    formatted = dict(data or {})
    formatted[key] = format_timestamp(formatted.get(key))
    return formatted


class TimerResource(Resource):
    base_path = "/v1/timer"

    async def get(self) -> JsonDict:
        return await self.http.get(self.base_path)

    async def start(self, data: JsonDict | None = None) -> JsonDict:
        """Start the timer (``startDateTime`` defaults to now)."""
        return await self.http.post(self._path("start"), _stamped(data, "startDateTime"))

    async def stop(self, data: JsonDict | None = None) -> JsonDict:
        """Stop the timer (``endDateTime`` defaults to now)."""
        return await self.http.post(self._path("stop"), _stamped(data, "endDateTime"))

    async def pause(self, data: JsonDict | None = None) -> JsonDict:
        """Pause the timer (the pause starts at ``startDateTime``, default now)."""
        return await self.http.post(self._path("pause"), _stamped(data, "startDateTime"))

    async def resume(self, data: JsonDict | None = None) -> JsonDict:
        """Resume the timer (the pause ends at ``endDateTime``, default now)."""
        return await self.http.post(self._path("resume"), _stamped(data, "endDateTime"))

    async def update(self, data: JsonDict) -> JsonDict:
        formatted = dict(data)
        if formatted.get("startDateTime") is not None:
            formatted["startDateTime"] = format_timestamp(formatted["startDateTime"])
        return await self.http.put(self._path("update"), formatted)
