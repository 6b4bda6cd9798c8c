"""Projects: ``/v1/projects``."""

from .base import CrudResource


class ProjectResource(CrudResource):
    base_path = "/v1/projects"
