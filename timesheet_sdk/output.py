"""Output formatters for the CLI: human-readable or JSON."""

import json
import sys
from typing import Any

import click

from .exceptions import TimesheetApiError


def format_json(data: Any) -> str:
    """Wrap data in a success envelope and format it as JSON."""
    return json.dumps({"success": True, "data": data}, indent=2, default=str)


def error_payload(error: Exception, help_text: str | None = None) -> dict[str, Any]:
    """Describe an error as a dict, including API status details when present."""
    details: dict[str, Any] = {
        "type": type(error).__name__,
        "message": str(error),
    }
    if isinstance(error, TimesheetApiError):
        details["status_code"] = error.status_code
        details["error_code"] = error.error_code
    if help_text:
        details["help"] = help_text
    return {"success": False, "error": details}


class OutputHandler:
    """Handles output formatting based on mode (JSON or human)."""

    def __init__(self, json_mode: bool = False):
        self.json_mode = json_mode

    def success(self, data: Any, human_message: str | None = None) -> None:
        """Output success response."""
        if self.json_mode:
            click.echo(format_json(data))
        elif human_message:
            click.echo(human_message)
        else:
            click.echo(json.dumps(data, indent=2, default=str))

    def fields(self, data: dict[str, Any], title: str | None = None) -> None:
        """Output a flat mapping as aligned ``key: value`` lines."""
        if self.json_mode:
            click.echo(format_json(data))
            return

        if title:
            click.secho(title, bold=True)
        width = max((len(key) for key in data), default=0)
        for key, value in data.items():
            shown = "-" if value is None else value
            if isinstance(shown, (list, tuple)):
                shown = ", ".join(str(v) for v in shown) or "-"
            click.echo(f"  {key.ljust(width)}  {shown}")

    def error(self, error: Exception, help_text: str | None = None) -> None:
        """Output an error and exit with status 1."""
        if self.json_mode:
            click.echo(json.dumps(error_payload(error, help_text), indent=2, default=str))
        else:
            click.secho(f"Error: {error}", fg="red", err=True)
            if help_text:
                click.echo(f"\n{help_text}", err=True)
        sys.exit(1)
