"""Grant Read or Edit field-level security to the running user's profile.

The assignment is a straight pipeline of org lookups followed by a single
FieldPermissions insert or update:

1. validate the requested level (before anything touches the org),
2. look the field up in EntityParticle and check it can take the grant,
3. resolve the user's profile and the permission set that profile owns,
4. read any FieldPermissions already linking that permission set to the field,
5. refuse a duplicate grant, otherwise promote an existing Read row to Edit or
   insert a new row.

The data service is anything with ``username()``, ``query(soql, tooling)``,
``create(sobject, values)`` and ``update(sobject, record_id, values)``; see
``sf_data.SfDataService``.
"""

from dataclasses import dataclass, field
from enum import Enum

from permission_errors import (
    AlreadyGranted,
    InvalidArgument,
    NotFound,
    PersistenceFailure,
    PolicyViolation,
    UnexpectedEmptyResult,
)
from sf_data import SaveResult, quote_soql

FIELD_PERMISSIONS_SOBJECT = 'FieldPermissions'

ACCESS_RW = "RW"
ACCESS_R_ONLY = "R-"
ACCESS_NONE = "--"


class PermissionLevel(Enum):
    READ = 'READ'
    EDIT = 'EDIT'


def parse_permission_level(value: str) -> PermissionLevel:
    """Return the level named by ``value``, ignoring case."""

    try:
        return PermissionLevel((value or '').upper())
    except ValueError:
        raise InvalidArgument("Permission requested should be either 'Read' or 'Edit'") from None


@dataclass
class FieldMetadata:
    qualified_api_name: str
    is_permissionable: bool
    is_updatable: bool

    @classmethod
    def from_record(cls, record: dict) -> 'FieldMetadata':
        return cls(
            qualified_api_name=record['QualifiedApiName'],
            is_permissionable=bool(record.get('IsPermissionable')),
            is_updatable=bool(record.get('IsUpdatable')),
        )


@dataclass
class FieldPermissionRecord:
    """One FieldPermissions row binding a permission set to a field."""

    parent_id: str
    sobject_type: str
    field: str
    permissions_read: bool
    permissions_edit: bool
    id: str | None = None

    @classmethod
    def from_record(cls, record: dict, parent_id: str) -> 'FieldPermissionRecord':
        return cls(
            parent_id=record.get('ParentId', parent_id),
            sobject_type=record['SobjectType'],
            field=record['Field'],
            permissions_read=bool(record.get('PermissionsRead')),
            permissions_edit=bool(record.get('PermissionsEdit')),
            id=record.get('Id'),
        )

    def to_values(self) -> dict:
        return {
            'ParentId': self.parent_id,
            'SobjectType': self.sobject_type,
            'Field': self.field,
            'PermissionsRead': self.permissions_read,
            'PermissionsEdit': self.permissions_edit,
        }


@dataclass
class AssignmentOutcome:
    """What the assignment did, or would have done on a dry run."""

    action: str  # 'insert' or 'update'
    record: FieldPermissionRecord
    results: list[SaveResult] = field(default_factory=list)
    dry_run: bool = False


def format_access_display(readable: bool, editable: bool) -> str:
    if editable:
        return ACCESS_RW
    if readable:
        return ACCESS_R_ONLY
    return ACCESS_NONE


def query_field_metadata(service, object_name: str, field_name: str) -> FieldMetadata:
    """Return the EntityParticle describing ``object_name.field_name``.

    The LIKE filter lets the org return candidates whose stored name differs
    in case from what the user typed; the match itself is done here.
    """

    soql = (
        "SELECT IsPermissionable, QualifiedApiName, IsUpdatable "
        "FROM EntityParticle "
        f"WHERE EntityDefinition.QualifiedApiName = {quote_soql(object_name)} "
        f"AND QualifiedApiName LIKE {quote_soql(field_name)}"
    )
    wanted = field_name.upper()
    match = None
    for record in service.query(soql, tooling=True):
        if (record.get('QualifiedApiName') or '').upper() == wanted:
            match = record

    if match is None:
        raise NotFound(f'Field "{field_name}" is not found on Object "{object_name}".')
    return FieldMetadata.from_record(match)


def check_field_policy(metadata: FieldMetadata, qualified_field: str, level: PermissionLevel) -> None:
    if not metadata.is_permissionable:
        raise PolicyViolation(f"{qualified_field} is not permissable")
    if not metadata.is_updatable and level is PermissionLevel.EDIT:
        raise PolicyViolation(
            f"{qualified_field} is not updatable, so Edit permission cannot be granted"
        )


def get_user_profile_id(service, username: str) -> str:
    records = service.query(
        f"SELECT Id,ProfileId FROM User WHERE username={quote_soql(username)} LIMIT 1"
    )
    if not records:
        raise NotFound("Username not found.")
    return records[0]['ProfileId']


def get_permission_set_id_for_profile(service, profile_id: str) -> str:
    """Return the permission set every profile implicitly owns."""

    records = service.query(f"SELECT Id FROM PermissionSet WHERE ProfileId={quote_soql(profile_id)}")
    if not records:
        raise UnexpectedEmptyResult("Something went wrong!")
    return records[0]['Id']


def query_existing_permission_records(
    service, permission_set_id: str, object_name: str, qualified_field: str
) -> list[FieldPermissionRecord]:
    soql = (
        "SELECT Id,Field,SobjectType,PermissionsRead,PermissionsEdit "
        f"FROM {FIELD_PERMISSIONS_SOBJECT} "
        f"WHERE ParentId={quote_soql(permission_set_id)} "
        f"AND SobjectType = {quote_soql(object_name)} "
        f"AND Field={quote_soql(qualified_field)}"
    )
    return [
        FieldPermissionRecord.from_record(record, permission_set_id)
        for record in service.query(soql)
    ]


def process_results(results: list[SaveResult]) -> None:
    """Raise PersistenceFailure carrying every error message if any save failed."""

    failed = False
    error_messages = ''
    for result in results:
        if not result.success:
            failed = True
            for message in result.errors:
                error_messages += message

    if failed:
        raise PersistenceFailure(error_messages or 'The permission record could not be saved.')


class PermissionAssigner:
    """Grants field permissions to the profile of the user the service runs as."""

    def __init__(self, service, dry_run: bool = False):
        self.service = service
        self.dry_run = dry_run

    def assign(self, object_name: str, field_name: str, permission: str) -> AssignmentOutcome:
        level = parse_permission_level(permission)
        qualified_field = f"{object_name}.{field_name}"

        metadata = query_field_metadata(self.service, object_name, field_name)
        check_field_policy(metadata, qualified_field, level)

        profile_id = get_user_profile_id(self.service, self.service.username())
        permission_set_id = get_permission_set_id_for_profile(self.service, profile_id)
        existing = query_existing_permission_records(
            self.service, permission_set_id, object_name, qualified_field
        )

        for record in existing:
            if (level is PermissionLevel.READ and record.permissions_read) or (
                level is PermissionLevel.EDIT and record.permissions_edit
            ):
                raise AlreadyGranted(
                    f"{permission} access already exists for field: {qualified_field}"
                )

        if level is PermissionLevel.EDIT:
            readable = [record for record in existing if record.permissions_read]
            if readable:
                return self._update(readable[-1])
            return self._insert(
                FieldPermissionRecord(
                    parent_id=permission_set_id,
                    sobject_type=object_name,
                    field=qualified_field,
                    permissions_read=True,
                    permissions_edit=True,
                )
            )

        # Read always inserts; an Edit-only row for the field is not looked for.
        return self._insert(
            FieldPermissionRecord(
                parent_id=permission_set_id,
                sobject_type=object_name,
                field=qualified_field,
                permissions_read=True,
                permissions_edit=False,
            )
        )

    def _insert(self, record: FieldPermissionRecord) -> AssignmentOutcome:
        if self.dry_run:
            return AssignmentOutcome('insert', record, dry_run=True)

        results = self.service.create(FIELD_PERMISSIONS_SOBJECT, record.to_values())
        process_results(results)
        if results and results[0].id:
            record.id = results[0].id
        return AssignmentOutcome('insert', record, results)

    def _update(self, record: FieldPermissionRecord) -> AssignmentOutcome:
        record.permissions_edit = True
        if self.dry_run:
            return AssignmentOutcome('update', record, dry_run=True)

        results = self.service.update(
            FIELD_PERMISSIONS_SOBJECT,
            record.id,
            {'PermissionsRead': record.permissions_read, 'PermissionsEdit': True},
        )
        process_results(results)
        return AssignmentOutcome('update', record, results)
