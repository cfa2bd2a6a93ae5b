"""Record-level access to a Salesforce org through the ``sf`` CLI.

Every call runs ``sf ... --json`` and reads the JSON envelope the CLI prints to
stdout, ``{"status": 0, "result": ...}`` on success and
``{"status": 1, "name": ..., "message": ...}`` on failure. The exit code alone
is not trusted; the envelope is.
"""

import json
from dataclasses import dataclass, field

from permission_errors import DataServiceError
from tool_utils import run_command


@dataclass
class SaveResult:
    """Outcome of writing a single record."""

    id: str | None
    success: bool
    errors: list[str] = field(default_factory=list)


def quote_soql(value: str) -> str:
    """Return ``value`` as a SOQL string literal."""

    escaped = value.replace('\\', '\\\\').replace("'", "\\'")
    return f"'{escaped}'"


def format_record_values(values: dict) -> str:
    """Render a record as the space separated ``Key=value`` list ``sf data`` expects."""

    pairs = []
    for key, value in values.items():
        if isinstance(value, bool):
            pairs.append(f"{key}={str(value).lower()}")
        else:
            pairs.append(f"{key}={quote_soql(str(value))}")
    return ' '.join(pairs)


def _parse_envelope(stdout: str | None) -> dict:
    if not stdout:
        raise DataServiceError("The Salesforce CLI returned no output.")
    try:
        envelope = json.loads(stdout)
    except json.JSONDecodeError as exc:
        raise DataServiceError(f"Unable to parse Salesforce CLI output: {exc}") from exc
    if not isinstance(envelope, dict):
        raise DataServiceError("Unexpected Salesforce CLI output.")
    return envelope


def _envelope_message(envelope: dict) -> str:
    return envelope.get('message') or envelope.get('name') or 'Unknown Salesforce CLI error.'


class SfDataService:
    """Queries and record writes against one authenticated org alias."""

    def __init__(self, target_org: str, api_version: str | None = None, echo: bool = False):
        self.target_org = target_org
        self.api_version = api_version
        self.echo = echo

    def _run(self, command: list[str]) -> dict:
        command = [*command, '--target-org', self.target_org, '--json']
        if self.api_version:
            command.extend(['--api-version', self.api_version])
        result = run_command(command, echo=self.echo)
        return _parse_envelope(result.stdout)

    def username(self) -> str:
        """Return the username the target org alias is authenticated as."""

        envelope = self._run(['sf', 'org', 'display'])
        if envelope.get('status') != 0:
            raise DataServiceError(
                f"Not authenticated to org '{self.target_org}': {_envelope_message(envelope)}"
            )
        username = (envelope.get('result') or {}).get('username')
        if not username:
            raise DataServiceError(f"No username reported for org '{self.target_org}'.")
        return username

    def query(self, soql: str, tooling: bool = False) -> list[dict]:
        """Run a SOQL query and return its records without their ``attributes``."""

        command = ['sf', 'data', 'query', '--query', soql]
        if tooling:
            command.append('--use-tooling-api')
        envelope = self._run(command)
        if envelope.get('status') != 0:
            raise DataServiceError(_envelope_message(envelope))

        records = (envelope.get('result') or {}).get('records') or []
        return [
            {key: value for key, value in record.items() if key != 'attributes'}
            for record in records
        ]

    def _save(self, command: list[str]) -> list[SaveResult]:
        envelope = self._run(command)
        if envelope.get('status') != 0:
            return [SaveResult(id=None, success=False, errors=[_envelope_message(envelope)])]

        result = envelope.get('result') or {}
        errors = [
            error.get('message', str(error)) if isinstance(error, dict) else str(error)
            for error in result.get('errors') or []
        ]
        return [SaveResult(id=result.get('id'), success=bool(result.get('success', True)), errors=errors)]

    def create(self, sobject: str, values: dict) -> list[SaveResult]:
        """Insert one record and return its save results."""

        return self._save(
            [
                'sf', 'data', 'create', 'record',
                '--sobject', sobject,
                '--values', format_record_values(values),
            ]
        )

    def update(self, sobject: str, record_id: str, values: dict) -> list[SaveResult]:
        """Update one record by id and return its save results."""

        return self._save(
            [
                'sf', 'data', 'update', 'record',
                '--sobject', sobject,
                '--record-id', record_id,
                '--values', format_record_values(values),
            ]
        )
