"""
Shared pytest fixtures for the SCIM engine test suite.
"""

import copy
import json

import pytest

from scimcore import create_app
from scimcore.model.base import db
from scimcore.scim.schema import (
    AttributeSchema,
    Mutability,
    ResourceTypeSchema,
    SchemaDefinition,
    init_registry,
)
from scimcore.scim.serializers import ResourceSerializer

GROUP_ID = "71239"
GROUP_ENDPOINT = "https://localhost:9443/scim2/Groups"

GROUP_DOCUMENT = {
    "schemas": ["urn:ietf:params:scim:schemas:core:2.0:Group"],
    "id": GROUP_ID,
    "displayName": "PRIMARY/manager",
    "meta": {
        "created": "2019-08-26T14:27:36",
        "location": "https://localhost:9443/scim2/Groups/7bac6a86-1f21-4937-9fb1-5be4a93ef469",
        "lastModified": "2019-08-26T14:27:36",
    },
    "members": [
        {
            "$ref": "https://localhost:9443/scim2/Users/3a12bae9-4386-44be-befd-caf349297f45",
            "display": "kim",
            "value": "008bba85-451d-414b-87de-c03b5a1f4217",
        }
    ],
}

GROUP_DOCUMENT_UPDATED = {
    **GROUP_DOCUMENT,
    "displayName": "PRIMARY/manager_sales",
    "meta": {
        "created": "2019-08-26T14:27:36",
        "location": "https://localhost:9443/scim2/Groups/7bac6a86-1f21-4937-9fb1-5be4a93ef469",
        "lastModified": "2019-08-26T14:28:36",
    },
}

USER_DOCUMENT = {
    "schemas": [
        "urn:ietf:params:scim:schemas:core:2.0:User",
        "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User",
    ],
    "externalId": "ext-1001",
    "userName": "kim@example.com",
    "name": {"givenName": "Kim", "familyName": "Lee"},
    "displayName": "Kim Lee",
    "active": True,
    "password": "s3cret!",
    "emails": [{"value": "kim@example.com", "type": "work", "primary": True}],
    "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User": {
        "employeeNumber": "42",
        "manager": {"value": "boss-1", "displayName": "The Boss"},
    },
}

DEVICE_SCHEMA_URN = "urn:example:scim:schemas:1.0:Device"

DEVICE_RESOURCE_TYPE = ResourceTypeSchema(
    name="Device",
    endpoint="/Devices",
    description="Provisioned device",
    core=SchemaDefinition(
        urn=DEVICE_SCHEMA_URN,
        name="Device",
        description="Provisioned device",
        attributes=(
            AttributeSchema("name", required=True),
            AttributeSchema("serialNumber", mutability=Mutability.IMMUTABLE),
        ),
    ),
)


def as_bytes(document: dict) -> bytes:
    return json.dumps(document).encode("utf-8")


@pytest.fixture(scope="session", autouse=True)
def registry():
    return init_registry()


@pytest.fixture
def group_schema(registry):
    return registry.get("Group")


@pytest.fixture
def user_schema(registry):
    return registry.get("User")


@pytest.fixture
def group_document():
    return copy.deepcopy(GROUP_DOCUMENT)


@pytest.fixture
def user_document():
    return copy.deepcopy(USER_DOCUMENT)


@pytest.fixture
def stored_group(group_schema):
    """Group as the store would return it."""
    return ResourceSerializer.from_scim(
        copy.deepcopy(GROUP_DOCUMENT), group_schema, client_input=False
    )


@pytest.fixture
def app(monkeypatch):
    monkeypatch.delenv("SCIM_BASE_URL", raising=False)
    app = create_app({"TESTING": True})
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()
