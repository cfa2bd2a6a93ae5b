"""Command-line entry point: ``object fields permission assign``."""

from pathlib import Path

import click

from field_permissions import PermissionAssigner, format_access_display, parse_permission_level
from sf_data import SfDataService
from tool_utils import resolve_target_org


@click.group()
def cli():
    """Salesforce field security commands."""


@cli.group('object')
def object_group():
    """Work with object metadata."""


@object_group.group('fields')
def fields_group():
    """Work with the fields of an object."""


@fields_group.group('permission')
def permission_group():
    """Manage field-level security."""


@permission_group.command('assign')
@click.option('-o', '--object', 'object_name', required=True, help='Object API Name')
@click.option('-p', '--permission', required=True, help='"Read" or "Edit" permission')
@click.option('-f', '--fieldname', 'field_name', required=True, help='Field API Name')
@click.option('-u', '--target-org', default=None, help='Org alias or username. Defaults to the active org in config.ini.')
@click.option('--config', 'config_path', default='config.ini', type=click.Path(dir_okay=False, path_type=Path), help='Path to config.ini.')
@click.option('--dry-run', is_flag=True, help='Report the permission change without writing it.')
@click.option('--verbose', is_flag=True, help='Echo every Salesforce CLI call.')
def assign(object_name, permission, field_name, target_org, config_path, dry_run, verbose):
    """Grant Read or Edit access on a field to your profile."""

    parse_permission_level(permission)

    alias, api_version = resolve_target_org(target_org, config_path)
    if verbose:
        click.echo(click.style(f"Target org: {alias}", fg='cyan'))
    if dry_run:
        click.echo(click.style("DRY RUN MODE ENABLED", fg='yellow', bold=True))

    service = SfDataService(alias, api_version=api_version, echo=verbose)
    outcome = PermissionAssigner(service, dry_run=dry_run).assign(object_name, field_name, permission)

    if outcome.dry_run:
        record = outcome.record
        click.echo(
            click.style(
                f"Would {outcome.action} FieldPermissions for {record.field} "
                f"({format_access_display(record.permissions_read, record.permissions_edit)}) "
                f"on permission set {record.parent_id}.",
                fg='yellow',
            )
        )
        return

    click.echo(click.style("Executed Successfully!", fg='green'))


def main():
    cli()


if __name__ == '__main__':
    main()
