import copy
import uuid

import pytest

from scimcore.scim.errors import ErrorKind, SCIMError
from scimcore.scim.resource import Resource
from scimcore.scim.schema import GROUP_SCHEMA_URN, USER_SCHEMA_URN
from scimcore.scim.serializers import ResourceSerializer
from scimcore.scim.validator import check_required, validate_for_create, validate_for_update

from .conftest import DEVICE_RESOURCE_TYPE, DEVICE_SCHEMA_URN, GROUP_DOCUMENT_UPDATED, GROUP_ID

DISPLAY_NAME = f"{GROUP_SCHEMA_URN}:displayName"
MEMBERS = f"{GROUP_SCHEMA_URN}:members"
SERIAL_NUMBER = f"{DEVICE_SCHEMA_URN}:serialNumber"
DEVICE_NAME = f"{DEVICE_SCHEMA_URN}:name"


def _device(serial=None, name="printer", resource_id="d1"):
    resource = Resource(id=resource_id)
    resource.set(DEVICE_NAME, name)
    resource.set(SERIAL_NUMBER, serial)
    return resource


class TestValidateForCreate:
    def test_assigns_server_fields(self, group_schema, group_document):
        resource = ResourceSerializer.from_scim(group_document, group_schema)
        created = validate_for_create(resource, group_schema)

        assert created.id != GROUP_ID
        assert uuid.UUID(created.id)
        assert created.schemas == [GROUP_SCHEMA_URN]
        assert created.meta.resource_type == "Group"
        assert created.meta.created == created.meta.last_modified
        assert created.meta.created.year > 2019
        assert created.meta.location is None

    def test_input_is_not_modified(self, group_schema, group_document):
        resource = ResourceSerializer.from_scim(group_document, group_schema)
        snapshot = resource.copy()

        created = validate_for_create(resource, group_schema)
        created.get(MEMBERS)[0]["display"] = "changed"

        assert created is not resource
        assert resource == snapshot
        assert resource.id == GROUP_ID

    def test_missing_required_attribute(self, group_schema):
        resource = ResourceSerializer.from_scim({"members": [{"value": "u1"}]}, group_schema)
        with pytest.raises(SCIMError) as excinfo:
            validate_for_create(resource, group_schema)
        assert excinfo.value.kind is ErrorKind.BAD_REQUEST
        assert "displayName" in excinfo.value.detail

    def test_extension_schema_declared(self, user_schema, user_document):
        resource = ResourceSerializer.from_scim(user_document, user_schema)
        created = validate_for_create(resource, user_schema)
        assert created.schemas == [
            USER_SCHEMA_URN,
            "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User",
        ]


class TestValidateForUpdate:
    def test_replaces_display_name(self, group_schema, stored_group):
        new = ResourceSerializer.from_scim(copy.deepcopy(GROUP_DOCUMENT_UPDATED), group_schema)
        merged = validate_for_update(stored_group, new, group_schema)

        assert merged.id == GROUP_ID
        assert merged.get(DISPLAY_NAME) == "PRIMARY/manager_sales"
        assert merged.get(MEMBERS) == stored_group.get(MEMBERS)
        assert merged.meta.created == stored_group.meta.created
        assert merged.meta.location == stored_group.meta.location
        assert merged.meta.last_modified > stored_group.meta.last_modified
        assert merged.meta.resource_type == "Group"

    def test_inputs_are_not_modified(self, group_schema, stored_group):
        new = ResourceSerializer.from_scim(copy.deepcopy(GROUP_DOCUMENT_UPDATED), group_schema)
        old_snapshot, new_snapshot = stored_group.copy(), new.copy()

        merged = validate_for_update(stored_group, new, group_schema)
        merged.get(MEMBERS)[0]["display"] = "changed"

        assert stored_group == old_snapshot
        assert new == new_snapshot

    def test_client_id_is_ignored(self, group_schema, stored_group):
        new = Resource(id="something-else")
        new.set(DISPLAY_NAME, "renamed")
        assert validate_for_update(stored_group, new, group_schema).id == GROUP_ID

    def test_absent_attribute_keeps_old_value(self, user_schema, user_document):
        old = ResourceSerializer.from_scim(user_document, user_schema)
        old.id = "u1"
        new = ResourceSerializer.from_scim({"userName": "kim@example.com"}, user_schema)

        merged = validate_for_update(old, new, user_schema)
        assert merged.get(f"{USER_SCHEMA_URN}:password") == "s3cret!"
        assert merged.get(f"{USER_SCHEMA_URN}:displayName") == "Kim Lee"

    def test_single_valued_complex_merges_per_sub_attribute(self, user_schema, user_document):
        old = ResourceSerializer.from_scim(user_document, user_schema)
        new = ResourceSerializer.from_scim(
            {"userName": "kim@example.com", "name": {"givenName": "Kimberly"}}, user_schema
        )
        merged = validate_for_update(old, new, user_schema)
        assert merged.get(f"{USER_SCHEMA_URN}:name") == {"givenName": "Kimberly", "familyName": "Lee"}

    def test_multi_valued_replaced_as_a_whole(self, user_schema, user_document):
        old = ResourceSerializer.from_scim(user_document, user_schema)
        new = ResourceSerializer.from_scim(
            {"userName": "kim@example.com", "emails": [{"value": "kim@home.example", "type": "home"}]},
            user_schema,
        )
        merged = validate_for_update(old, new, user_schema)
        assert merged.get(f"{USER_SCHEMA_URN}:emails") == [
            {"value": "kim@home.example", "type": "home"}
        ]

    def test_read_only_value_carried_from_old(self, user_schema, user_document):
        groups_uri = f"{USER_SCHEMA_URN}:groups"
        old = ResourceSerializer.from_scim(user_document, user_schema)
        old.set(groups_uri, [{"value": "g1"}])
        new = ResourceSerializer.from_scim(user_document, user_schema, client_input=False)
        new.set(groups_uri, [{"value": "g2"}])

        merged = validate_for_update(old, new, user_schema)
        assert merged.get(groups_uri) == [{"value": "g1"}]

    def test_immutable_change_rejected(self):
        with pytest.raises(SCIMError) as excinfo:
            validate_for_update(_device("A-1"), _device("B-2"), DEVICE_RESOURCE_TYPE)
        assert excinfo.value.kind is ErrorKind.BAD_REQUEST
        assert excinfo.value.scim_type == "mutability"

    def test_immutable_set_once(self):
        merged = validate_for_update(_device(None), _device("B-2"), DEVICE_RESOURCE_TYPE)
        assert merged.get(SERIAL_NUMBER) == "B-2"

    @pytest.mark.parametrize("new_serial", ["a-1", None])
    def test_immutable_unchanged_or_omitted(self, new_serial):
        merged = validate_for_update(_device("A-1"), _device(new_serial), DEVICE_RESOURCE_TYPE)
        assert merged.get(SERIAL_NUMBER) == "A-1"

    def test_required_checked_after_merge(self, group_schema):
        old = Resource(id=GROUP_ID)
        new = Resource()
        new.set(MEMBERS, [{"value": "u1"}])
        with pytest.raises(SCIMError) as excinfo:
            validate_for_update(old, new, group_schema)
        assert excinfo.value.kind is ErrorKind.BAD_REQUEST


def test_check_required_passes_for_complete_resource(group_schema, stored_group):
    check_required(stored_group, group_schema)
