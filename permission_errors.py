"""Errors raised while assigning field permissions.

Each one is a ``click.ClickException`` so the command exits non-zero with the
message shown in red.
"""

import click


class PermissionAssignError(click.ClickException):
    """Base class for every terminal failure of the assign command."""

    def show(self, file=None) -> None:
        click.echo(click.style(self.format_message(), fg='red'), file=file, err=True)


class InvalidArgument(PermissionAssignError):
    """The requested permission level is neither Read nor Edit."""


class NotFound(PermissionAssignError):
    """The field or the running user could not be found."""


class PolicyViolation(PermissionAssignError):
    """The field cannot receive the requested permission."""


class AlreadyGranted(PermissionAssignError):
    """The requested permission already exists for the field."""


class PersistenceFailure(PermissionAssignError):
    """The org rejected the permission record write."""


class UnexpectedEmptyResult(PermissionAssignError):
    """A lookup that should always return a row returned none."""


class DataServiceError(PermissionAssignError):
    """The Salesforce CLI rejected a call or returned unreadable output."""


class ConfigurationError(PermissionAssignError):
    """config.ini is missing, incomplete or names an unknown org."""
