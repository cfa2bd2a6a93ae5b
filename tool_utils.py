"""Utility helpers shared by the field permission command: subprocess and config."""

import configparser
import datetime
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

import click
import questionary

from permission_errors import ConfigurationError


class NavigationInterrupt(Exception):
    """Raised when the user cancels an interactive prompt with Ctrl+C."""


def prompt_with_navigation(prompt):
    """Execute a questionary prompt and translate cancellations into navigation."""

    try:
        answer = prompt.ask()
    except KeyboardInterrupt:
        raise NavigationInterrupt() from None

    if answer is None:
        raise NavigationInterrupt()

    return answer


@dataclass
class CommandResult:
    """Outcome of executing a subprocess command."""

    success: bool
    returncode: int | None
    stdout: str | None
    duration_seconds: float


@dataclass
class OrgConfig:
    """Configuration describing a single Salesforce org target."""

    name: str
    target_org_url: str
    persistent_alias: str


@dataclass
class ConfigSettings:
    """Org entries and tool options read from config.ini."""

    available_orgs: list[OrgConfig]
    active_org_name: str
    api_version: str | None


def run_command(command: list[str], echo: bool = False) -> CommandResult:
    """Run a command, capturing its output, with optional status reporting.

    The executable is resolved on PATH first so wrapper scripts such as
    ``sf.cmd`` on Windows run without going through a shell.
    """

    command_str = subprocess.list2cmdline(command)
    start = datetime.datetime.now()
    if echo:
        click.echo(
            click.style(
                f"[{start:%H:%M:%S}] > Executing: {command_str}",
                fg='yellow',
            )
        )

    executable = shutil.which(command[0]) or command[0]
    try:
        result = subprocess.run(
            [executable, *command[1:]],
            capture_output=True,
            text=True,
            encoding='utf-8',
            errors='replace',
            check=False,
        )
    except OSError as exc:
        duration = (datetime.datetime.now() - start).total_seconds()
        if echo:
            click.echo(
                click.style(
                    f"✗ Could not start '{command[0]}' after {duration:.2f}s: {exc}",
                    fg='red',
                )
            )
        return CommandResult(False, None, None, duration)

    duration = (datetime.datetime.now() - start).total_seconds()
    success = result.returncode == 0
    if echo:
        click.echo(
            click.style(f"✓ Command successful. (took {duration:.2f}s)", fg='green')
            if success
            else click.style(
                f"✗ Command returned code {result.returncode} (took {duration:.2f}s)",
                fg='red',
            )
        )
    return CommandResult(success, result.returncode, result.stdout, duration)


def read_config(config_path: Path) -> ConfigSettings:
    """Read the org sections and tool options from an INI configuration file."""

    parser = configparser.ConfigParser()
    parser.read(config_path)

    available_orgs: list[OrgConfig] = []
    for section in parser.sections():
        if not section.startswith('Org '):
            continue
        available_orgs.append(
            OrgConfig(
                name=section[4:].strip() or 'default',
                target_org_url=parser.get(section, 'target_org_url', fallback='').strip(),
                persistent_alias=parser.get(section, 'persistent_alias', fallback='').strip(),
            )
        )

    # Backwards compatibility with the legacy single-org format.
    if not available_orgs and parser.has_section('Salesforce'):
        available_orgs.append(
            OrgConfig(
                name='default',
                target_org_url=parser.get('Salesforce', 'target_org_url', fallback='').strip(),
                persistent_alias=parser.get('Salesforce', 'persistent_alias', fallback='').strip(),
            )
        )

    api_version = parser.get('ToolOptions', 'api_version', fallback='').strip()
    return ConfigSettings(
        available_orgs=available_orgs,
        active_org_name=parser.get('SalesforceOrgs', 'active_org', fallback='').strip(),
        api_version=api_version or None,
    )


def _choose_org(config: ConfigSettings) -> OrgConfig:
    """Return the active org, asking the user when several are configured."""

    if config.active_org_name:
        active_org = next(
            (org for org in config.available_orgs if org.name == config.active_org_name),
            None,
        )
        if active_org is None:
            available_names = ', '.join(org.name for org in config.available_orgs) or 'none found'
            raise ConfigurationError(
                f"Active org '{config.active_org_name}' was not found. Available orgs: {available_names}."
            )
        return active_org

    if len(config.available_orgs) == 1:
        return config.available_orgs[0]

    if not config.available_orgs:
        raise ConfigurationError(
            "No Salesforce org configured. Pass --target-org or add an [Org <name>] section to config.ini."
        )

    org_choices = [
        questionary.Choice(title=f"{org.name} ({org.persistent_alias})", value=org.name)
        for org in config.available_orgs
    ]
    try:
        selection = prompt_with_navigation(
            questionary.select("Select the org to assign permissions in:", choices=org_choices)
        )
    except NavigationInterrupt:
        raise ConfigurationError("No org selected.") from None
    return next(org for org in config.available_orgs if org.name == selection)


def resolve_target_org(target_org: str | None, config_path: Path) -> tuple[str, str | None]:
    """Return the alias to run against and the configured API version.

    An explicit ``target_org`` wins over config.ini; the file may then be absent.
    """

    config = read_config(config_path) if config_path.is_file() else None
    api_version = config.api_version if config else None

    if target_org:
        return target_org, api_version

    if config is None:
        raise ConfigurationError(
            f"Configuration file '{config_path}' not found. Pass --target-org or create it."
        )

    org = _choose_org(config)
    if not org.persistent_alias:
        raise ConfigurationError(
            f"Missing required configuration value: Org {org.name}.persistent_alias"
        )
    return org.persistent_alias, api_version
