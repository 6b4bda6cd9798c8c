"""Typed entry points for the Timesheet API resources."""

from .base import CrudResource, Resource
from .profile import ProfileResource
from .projects import ProjectResource
from .tags import TagResource
from .tasks import TaskResource
from .teams import TeamResource
from .timer import TimerResource

__all__ = [
    "Resource",
    "CrudResource",
    "ProjectResource",
    "TagResource",
    "TeamResource",
    "TaskResource",
    "TimerResource",
    "ProfileResource",
]
