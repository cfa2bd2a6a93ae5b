import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import assign_permission
from assign_permission import cli
from fake_org import FakeOrg

ASSIGN = ['object', 'fields', 'permission', 'assign']


@pytest.fixture
def org(monkeypatch):
    fake = FakeOrg()
    fake.add_field('Account', 'Foo__c')
    fake.add_field('Account', 'Bar__c')
    created = []

    def fake_service(alias, api_version=None, echo=False):
        created.append((alias, api_version, echo))
        return fake

    monkeypatch.setattr(assign_permission, 'SfDataService', fake_service)
    fake.created = created
    return fake


def _invoke(*args):
    return CliRunner().invoke(cli, [*ASSIGN, *args], catch_exceptions=False)


def test_read_then_edit_end_to_end(org):
    result = _invoke('--object', 'Account', '--permission', 'read', '--fieldname', 'Foo__c', '--target-org', 'scratch')

    assert result.exit_code == 0
    assert 'Executed Successfully!' in result.output
    assert org.created == [('scratch', None, False)]
    assert [(row['PermissionsRead'], row['PermissionsEdit']) for row in org.field_permissions] == [(True, False)]

    result = _invoke('-o', 'Account', '-p', 'edit', '-f', 'Foo__c', '-u', 'scratch')

    assert result.exit_code == 0
    assert [(row['PermissionsRead'], row['PermissionsEdit']) for row in org.field_permissions] == [(True, True)]


def test_invalid_permission_exits_before_org_is_resolved(org, tmp_path):
    result = _invoke('-o', 'Account', '-p', 'write', '-f', 'Foo__c', '--config', str(tmp_path / 'missing.ini'))

    assert result.exit_code == 1
    assert "Permission requested should be either 'Read' or 'Edit'" in result.output
    assert org.created == []


def test_duplicate_grant_exits_non_zero(org):
    _invoke('-o', 'Account', '-p', 'Read', '-f', 'Foo__c', '-u', 'scratch')

    result = _invoke('-o', 'Account', '-p', 'Read', '-f', 'Foo__c', '-u', 'scratch')

    assert result.exit_code == 1
    assert 'Read access already exists for field: Account.Foo__c' in result.output


def test_unknown_field_exits_non_zero(org):
    result = _invoke('-o', 'Account', '-p', 'Read', '-f', 'Missing__c', '-u', 'scratch')

    assert result.exit_code == 1
    assert 'Field "Missing__c" is not found on Object "Account".' in result.output


def test_write_failure_exits_non_zero(org):
    org.write_errors = ['insufficient access rights on cross-reference id']

    result = _invoke('-o', 'Account', '-p', 'Edit', '-f', 'Foo__c', '-u', 'scratch')

    assert result.exit_code == 1
    assert 'insufficient access rights on cross-reference id' in result.output
    assert 'Executed Successfully!' not in result.output


def test_dry_run_describes_planned_change(org):
    result = _invoke('-o', 'Account', '-p', 'Edit', '-f', 'Foo__c', '-u', 'scratch', '--dry-run')

    assert result.exit_code == 0
    assert 'DRY RUN MODE ENABLED' in result.output
    assert 'Would insert FieldPermissions for Account.Foo__c (RW) on permission set 0PS000000000001.' in result.output
    assert org.field_permissions == []


def test_target_org_comes_from_config(org, tmp_path):
    config_path = tmp_path / 'config.ini'
    config_path.write_text(
        "[Org sandbox]\npersistent_alias = my-sandbox\n\n[ToolOptions]\napi_version = 60.0\n",
        encoding='utf-8',
    )

    result = _invoke('-o', 'Account', '-p', 'Read', '-f', 'Bar__c', '--config', str(config_path), '--verbose')

    assert result.exit_code == 0
    assert 'Target org: my-sandbox' in result.output
    assert org.created == [('my-sandbox', '60.0', True)]


def test_missing_required_option_is_a_usage_error(org):
    result = _invoke('-o', 'Account', '-p', 'Read')

    assert result.exit_code == 2
    assert "Missing option '-f' / '--fieldname'" in result.output


def test_missing_config_is_reported_in_red(org, tmp_path):
    missing = tmp_path / 'missing.ini'

    result = CliRunner().invoke(
        cli,
        [*ASSIGN, '-o', 'Account', '-p', 'Read', '-f', 'Foo__c', '--config', str(missing)],
        color=True,
    )

    assert result.exit_code == 1
    assert '\x1b[31m' in result.output
    assert f"Configuration file '{missing}' not found." in result.output
    assert org.created == []
