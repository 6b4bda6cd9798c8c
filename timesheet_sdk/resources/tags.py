"""Tags: ``/v1/tags``."""

from .base import CrudResource


class TagResource(CrudResource):
    base_path = "/v1/tags"
