import dataclasses

import pytest

from scimcore.scim import schema as schema_module
from scimcore.scim.errors import ErrorKind, SCIMError
from scimcore.scim.schema import (
    ENTERPRISE_USER_SCHEMA_URN,
    GROUP_SCHEMA,
    GROUP_SCHEMA_URN,
    ID_URI,
    AttributeSchema,
    AttributeType,
    Mutability,
    Returned,
    SchemaDefinition,
    SchemaRegistry,
    get_registry,
    init_registry,
    reset_registry,
)

from .conftest import DEVICE_RESOURCE_TYPE, DEVICE_SCHEMA_URN


def test_registry_contains_default_resource_types(registry):
    assert registry.names() == ["User", "Group"]
    assert "Group" in registry
    assert "Widget" not in registry


def test_group_schema_attributes(group_schema):
    assert group_schema.endpoint == "/Groups"
    assert group_schema.schema_urn == GROUP_SCHEMA_URN

    display_name = group_schema.get_attribute(f"{GROUP_SCHEMA_URN}:displayName")
    assert display_name.required
    assert display_name.path == "displayName"

    member_value = group_schema.get_attribute(f"{GROUP_SCHEMA_URN}:members.value")
    assert member_value.mutability is Mutability.IMMUTABLE
    assert member_value.path == "members.value"


def test_common_attributes_come_first(group_schema):
    names = [attr.name for attr in group_schema.attributes]
    assert names == ["schemas", "id", "externalId", "meta", "displayName", "members"]
    assert group_schema.get_attribute(ID_URI).returned is Returned.ALWAYS


def test_unknown_resource_type_is_not_found(registry):
    with pytest.raises(SCIMError) as excinfo:
        registry.get("Widget")
    assert excinfo.value.kind is ErrorKind.NOT_FOUND


def test_init_registry_returns_published_registry(registry):
    assert init_registry() is registry
    assert get_registry() is registry


def test_get_registry_before_init_raises(registry):
    reset_registry()
    try:
        with pytest.raises(RuntimeError):
            get_registry()
    finally:
        schema_module._registry = registry


def test_attribute_definitions_are_frozen(group_schema):
    attr = group_schema.attributes[0]
    with pytest.raises(dataclasses.FrozenInstanceError):
        attr.required = True
    with pytest.raises(TypeError):
        group_schema.uri_index["urn:example:new"] = attr


def test_lookup_aliases(user_schema):
    assert user_schema.lookup("USERNAME") == ("urn:ietf:params:scim:schemas:core:2.0:User:userName",)
    assert user_schema.lookup(" name.givenName ") == (
        "urn:ietf:params:scim:schemas:core:2.0:User:name.givenName",
    )
    assert user_schema.lookup("id") == (ID_URI,)
    assert user_schema.lookup(f"{ENTERPRISE_USER_SCHEMA_URN}:employeeNumber") == (
        f"{ENTERPRISE_USER_SCHEMA_URN}:employeeNumber",
    )
    assert len(user_schema.lookup(ENTERPRISE_USER_SCHEMA_URN)) == 6
    assert user_schema.lookup("bogus") == ()


def test_unique_attribute(user_schema, group_schema):
    assert user_schema.unique_attribute.name == "userName"
    assert group_schema.unique_attribute.name == "displayName"
    assert DEVICE_RESOURCE_TYPE.unique_attribute is None


def test_duplicate_sub_attribute_names_rejected():
    with pytest.raises(ValueError):
        SchemaDefinition(
            urn="urn:example:bad",
            name="Bad",
            description="",
            attributes=(
                AttributeSchema(
                    "address",
                    type=AttributeType.COMPLEX,
                    sub_attributes=(AttributeSchema("street"), AttributeSchema("STREET")),
                ),
            ),
        )


def test_duplicate_resource_type_rejected():
    with pytest.raises(ValueError):
        SchemaRegistry([DEVICE_RESOURCE_TYPE, DEVICE_RESOURCE_TYPE])


def test_schema_definitions_are_distinct(registry):
    urns = [definition.urn for definition in registry.schema_definitions()]
    assert urns == [
        "urn:ietf:params:scim:schemas:core:2.0:User",
        ENTERPRISE_USER_SCHEMA_URN,
        GROUP_SCHEMA_URN,
    ]
    assert registry.find_schema(DEVICE_SCHEMA_URN) is None


def test_schema_rendering():
    rendered = GROUP_SCHEMA.to_scim("https://example.com/scim")
    assert rendered["id"] == GROUP_SCHEMA_URN
    assert rendered["meta"]["location"] == f"https://example.com/scim/v2/Schemas/{GROUP_SCHEMA_URN}"

    members = rendered["attributes"][1]
    assert members["multiValued"] is True
    assert [sub["name"] for sub in members["subAttributes"]] == ["value", "$ref", "display", "type"]
    assert members["subAttributes"][0]["mutability"] == "immutable"


def test_resource_type_rendering(user_schema):
    rendered = user_schema.to_scim("https://example.com/scim")
    assert rendered["endpoint"] == "/v2/Users"
    assert rendered["schemaExtensions"] == [
        {"schema": ENTERPRISE_USER_SCHEMA_URN, "required": False}
    ]
