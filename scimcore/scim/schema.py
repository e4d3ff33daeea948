"""
SCIM schema registry.

Resource-type schemas are built once from the static definitions below and
published through init_registry(). Every structure here is frozen: attribute
trees are tuples of frozen dataclasses and lookup indexes are read-only
mappings, so the registry can be shared by any number of concurrent requests
without copying or locking.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .errors import SCIMError

logger = logging.getLogger(__name__)


COMMON_SCHEMA_URN = "urn:ietf:params:scim:schemas:core:2.0"
USER_SCHEMA_URN = "urn:ietf:params:scim:schemas:core:2.0:User"
GROUP_SCHEMA_URN = "urn:ietf:params:scim:schemas:core:2.0:Group"
ENTERPRISE_USER_SCHEMA_URN = "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User"

ID_URI = f"{COMMON_SCHEMA_URN}:id"
EXTERNAL_ID_URI = f"{COMMON_SCHEMA_URN}:externalId"
META_URI = f"{COMMON_SCHEMA_URN}:meta"
SCHEMAS_URI = f"{COMMON_SCHEMA_URN}:schemas"

# Attributes held on Resource fields rather than in Resource.attributes
CORE_FIELD_URIS = frozenset({ID_URI, META_URI, SCHEMAS_URI})


class AttributeType(str, Enum):
    STRING = "string"
    BOOLEAN = "boolean"
    DECIMAL = "decimal"
    INTEGER = "integer"
    DATE_TIME = "dateTime"
    BINARY = "binary"
    REFERENCE = "reference"
    COMPLEX = "complex"


class Mutability(str, Enum):
    READ_WRITE = "readWrite"
    READ_ONLY = "readOnly"
    IMMUTABLE = "immutable"
    WRITE_ONLY = "writeOnly"


class Returned(str, Enum):
    ALWAYS = "always"
    NEVER = "never"
    DEFAULT = "default"
    REQUEST = "request"


class Uniqueness(str, Enum):
    NONE = "none"
    SERVER = "server"
    GLOBAL = "global"


@dataclass(frozen=True)
class AttributeSchema:
    """
    Definition of one attribute (or sub-attribute) of a SCIM schema.

    `uri` and `schema_urn` are filled in when the attribute is bound to its
    schema; static definitions leave them empty.
    """

    name: str
    type: AttributeType = AttributeType.STRING
    multi_valued: bool = False
    required: bool = False
    case_exact: bool = False
    mutability: Mutability = Mutability.READ_WRITE
    returned: Returned = Returned.DEFAULT
    uniqueness: Uniqueness = Uniqueness.NONE
    description: str = ""
    canonical_values: Tuple[str, ...] = ()
    reference_types: Tuple[str, ...] = ()
    sub_attributes: Tuple["AttributeSchema", ...] = ()
    uri: str = ""
    schema_urn: str = ""

    @property
    def is_complex(self) -> bool:
        return self.type is AttributeType.COMPLEX

    @property
    def path(self) -> str:
        """Dotted attribute path relative to the schema, e.g. 'members.value'."""
        return self.uri[len(self.schema_urn) + 1:]

    def get_sub_attribute(self, name: str) -> Optional["AttributeSchema"]:
        lowered = name.lower()
        for sub in self.sub_attributes:
            if sub.name.lower() == lowered:
                return sub
        return None

    def to_scim(self) -> Dict[str, Any]:
        """Render the attribute definition for the /Schemas endpoint."""
        data: Dict[str, Any] = {
            "name": self.name,
            "type": self.type.value,
            "multiValued": self.multi_valued,
            "description": self.description,
            "required": self.required,
            "caseExact": self.case_exact,
            "mutability": self.mutability.value,
            "returned": self.returned.value,
            "uniqueness": self.uniqueness.value,
        }
        if self.canonical_values:
            data["canonicalValues"] = list(self.canonical_values)
        if self.reference_types:
            data["referenceTypes"] = list(self.reference_types)
        if self.sub_attributes:
            data["subAttributes"] = [sub.to_scim() for sub in self.sub_attributes]
        return data


def _bind(attr: AttributeSchema, schema_urn: str, parent_path: str = "") -> AttributeSchema:
    path = f"{parent_path}.{attr.name}" if parent_path else attr.name
    names = [sub.name.lower() for sub in attr.sub_attributes]
    if len(names) != len(set(names)):
        raise ValueError(f"Duplicate sub-attribute names under {schema_urn}:{path}")
    if attr.sub_attributes and not attr.is_complex:
        raise ValueError(f"Only complex attributes may declare sub-attributes: {path}")
    return replace(
        attr,
        uri=f"{schema_urn}:{path}",
        schema_urn=schema_urn,
        sub_attributes=tuple(_bind(sub, schema_urn, path) for sub in attr.sub_attributes),
    )


@dataclass(frozen=True)
class SchemaDefinition:
    """A single SCIM schema (core or extension) and its attribute tree."""

    urn: str
    name: str
    description: str
    attributes: Tuple[AttributeSchema, ...]

    def __post_init__(self):
        object.__setattr__(
            self, "attributes", tuple(_bind(attr, self.urn) for attr in self.attributes)
        )

    def to_scim(self, base_url: str = "") -> Dict[str, Any]:
        return {
            "schemas": ["urn:ietf:params:scim:schemas:core:2.0:Schema"],
            "id": self.urn,
            "name": self.name,
            "description": self.description,
            "attributes": [attr.to_scim() for attr in self.attributes],
            "meta": {
                "resourceType": "Schema",
                "location": f"{base_url}/v2/Schemas/{self.urn}",
            },
        }


def _walk(attributes: Iterable[AttributeSchema]) -> Iterator[AttributeSchema]:
    for attr in attributes:
        yield attr
        yield from _walk(attr.sub_attributes)


@dataclass(frozen=True)
class ResourceTypeSchema:
    """
    Complete attribute tree of one resource type.

    Top-level attributes are ordered common attributes first, then the core
    schema's, then each extension's. `uri_index` resolves every attribute URI
    (at any depth) to its definition; `alias_index` resolves lowercase short
    paths, full URIs and extension URNs to the URIs they name.
    """

    name: str
    endpoint: str
    description: str
    core: SchemaDefinition
    extensions: Tuple[SchemaDefinition, ...] = ()
    attributes: Tuple[AttributeSchema, ...] = field(init=False)
    uri_index: Mapping[str, AttributeSchema] = field(init=False, repr=False)
    alias_index: Mapping[str, Tuple[str, ...]] = field(init=False, repr=False)

    def __post_init__(self):
        attributes = COMMON_SCHEMA.attributes + self.core.attributes
        for extension in self.extensions:
            attributes += extension.attributes

        uri_index: Dict[str, AttributeSchema] = {}
        aliases: Dict[str, Tuple[str, ...]] = {}
        for attr in _walk(attributes):
            if attr.uri in uri_index:
                raise ValueError(f"Duplicate attribute URI {attr.uri} in {self.name}")
            uri_index[attr.uri] = attr
            aliases[attr.uri.lower()] = (attr.uri,)

        # Short paths: common and core first, so extensions never shadow them
        for attr in _walk(attributes):
            aliases.setdefault(attr.path.lower(), (attr.uri,))
        for extension in self.extensions:
            aliases[extension.urn.lower()] = tuple(a.uri for a in extension.attributes)

        object.__setattr__(self, "attributes", attributes)
        object.__setattr__(self, "uri_index", MappingProxyType(uri_index))
        object.__setattr__(self, "alias_index", MappingProxyType(aliases))

    @property
    def schema_urn(self) -> str:
        return self.core.urn

    @property
    def schema_urns(self) -> Tuple[str, ...]:
        return (self.core.urn,) + tuple(ext.urn for ext in self.extensions)

    def get_attribute(self, uri: str) -> Optional[AttributeSchema]:
        return self.uri_index.get(uri)

    def iter_attributes(self) -> Iterator[AttributeSchema]:
        """Every attribute and sub-attribute, depth first in schema order."""
        return _walk(self.attributes)

    def lookup(self, name: str) -> Tuple[str, ...]:
        """URIs named by `name` in an attributes/excludedAttributes list."""
        return self.alias_index.get(name.strip().lower(), ())

    def extension_attributes(self, urn: str) -> Tuple[AttributeSchema, ...]:
        for extension in self.extensions:
            if extension.urn == urn:
                return extension.attributes
        return ()

    @property
    def unique_attribute(self) -> Optional[AttributeSchema]:
        """First top-level attribute with server uniqueness, other than id."""
        for attr in self.attributes:
            if attr.uri != ID_URI and attr.uniqueness is not Uniqueness.NONE:
                return attr
        return None

    def to_scim(self, base_url: str = "") -> Dict[str, Any]:
        """Render the ResourceType representation for /ResourceTypes."""
        data: Dict[str, Any] = {
            "schemas": ["urn:ietf:params:scim:schemas:core:2.0:ResourceType"],
            "id": self.name,
            "name": self.name,
            "endpoint": f"/v2{self.endpoint}",
            "description": self.description,
            "schema": self.core.urn,
            "meta": {
                "location": f"{base_url}/v2/ResourceTypes/{self.name}",
                "resourceType": "ResourceType",
            },
        }
        if self.extensions:
            data["schemaExtensions"] = [
                {"schema": ext.urn, "required": False} for ext in self.extensions
            ]
        return data


# ============================================================================
# Static schema definitions (RFC 7643 §3, §4, §8.7.1)
# ============================================================================

_S = AttributeType.STRING
_RO = Mutability.READ_ONLY

COMMON_SCHEMA = SchemaDefinition(
    urn=COMMON_SCHEMA_URN,
    name="Common",
    description="Attributes common to all resources",
    attributes=(
        AttributeSchema(
            "schemas",
            multi_valued=True,
            case_exact=True,
            returned=Returned.ALWAYS,
            reference_types=("uri",),
            description="Schema URNs the resource conforms to",
        ),
        AttributeSchema(
            "id",
            case_exact=True,
            mutability=_RO,
            returned=Returned.ALWAYS,
            uniqueness=Uniqueness.SERVER,
            description="Unique identifier issued by the service provider",
        ),
        AttributeSchema(
            "externalId",
            case_exact=True,
            description="Identifier defined by the provisioning client",
        ),
        AttributeSchema(
            "meta",
            type=AttributeType.COMPLEX,
            mutability=_RO,
            description="Resource metadata",
            sub_attributes=(
                AttributeSchema("resourceType", case_exact=True, mutability=_RO),
                AttributeSchema("created", type=AttributeType.DATE_TIME, mutability=_RO),
                AttributeSchema("lastModified", type=AttributeType.DATE_TIME, mutability=_RO),
                AttributeSchema(
                    "location",
                    type=AttributeType.REFERENCE,
                    case_exact=True,
                    mutability=_RO,
                    reference_types=("uri",),
                ),
                AttributeSchema("version", case_exact=True, mutability=_RO),
            ),
        ),
    ),
)


def _multi_valued_sub_attributes(value_type: AttributeType = _S) -> Tuple[AttributeSchema, ...]:
    return (
        AttributeSchema("value", type=value_type),
        AttributeSchema("display"),
        AttributeSchema("type"),
        AttributeSchema("primary", type=AttributeType.BOOLEAN),
    )


USER_SCHEMA = SchemaDefinition(
    urn=USER_SCHEMA_URN,
    name="User",
    description="User Account",
    attributes=(
        AttributeSchema(
            "userName",
            required=True,
            uniqueness=Uniqueness.SERVER,
            description="Unique identifier for the User",
        ),
        AttributeSchema(
            "name",
            type=AttributeType.COMPLEX,
            sub_attributes=(
                AttributeSchema("formatted"),
                AttributeSchema("familyName"),
                AttributeSchema("givenName"),
                AttributeSchema("middleName"),
                AttributeSchema("honorificPrefix"),
                AttributeSchema("honorificSuffix"),
            ),
        ),
        AttributeSchema("displayName"),
        AttributeSchema("nickName"),
        AttributeSchema(
            "profileUrl", type=AttributeType.REFERENCE, reference_types=("external",)
        ),
        AttributeSchema("title"),
        AttributeSchema("userType"),
        AttributeSchema("preferredLanguage"),
        AttributeSchema("locale"),
        AttributeSchema("timezone"),
        AttributeSchema("active", type=AttributeType.BOOLEAN),
        AttributeSchema(
            "password",
            mutability=Mutability.WRITE_ONLY,
            returned=Returned.NEVER,
            description="Cleartext password, never returned",
        ),
        AttributeSchema(
            "emails",
            type=AttributeType.COMPLEX,
            multi_valued=True,
            sub_attributes=(
                AttributeSchema("value"),
                AttributeSchema("display"),
                AttributeSchema("type", canonical_values=("work", "home", "other")),
                AttributeSchema("primary", type=AttributeType.BOOLEAN),
            ),
        ),
        AttributeSchema(
            "phoneNumbers",
            type=AttributeType.COMPLEX,
            multi_valued=True,
            sub_attributes=_multi_valued_sub_attributes(),
        ),
        AttributeSchema(
            "addresses",
            type=AttributeType.COMPLEX,
            multi_valued=True,
            sub_attributes=(
                AttributeSchema("formatted"),
                AttributeSchema("streetAddress"),
                AttributeSchema("locality"),
                AttributeSchema("region"),
                AttributeSchema("postalCode"),
                AttributeSchema("country"),
                AttributeSchema("type", canonical_values=("work", "home", "other")),
                AttributeSchema("primary", type=AttributeType.BOOLEAN),
            ),
        ),
        AttributeSchema(
            "groups",
            type=AttributeType.COMPLEX,
            multi_valued=True,
            mutability=_RO,
            description="Groups the User belongs to, maintained by the service provider",
            sub_attributes=(
                AttributeSchema("value", mutability=_RO),
                AttributeSchema(
                    "$ref",
                    type=AttributeType.REFERENCE,
                    mutability=_RO,
                    reference_types=("User", "Group"),
                ),
                AttributeSchema("display", mutability=_RO),
                AttributeSchema(
                    "type", mutability=_RO, canonical_values=("direct", "indirect")
                ),
            ),
        ),
        AttributeSchema(
            "roles",
            type=AttributeType.COMPLEX,
            multi_valued=True,
            sub_attributes=_multi_valued_sub_attributes(),
        ),
        AttributeSchema(
            "x509Certificates",
            type=AttributeType.COMPLEX,
            multi_valued=True,
            sub_attributes=_multi_valued_sub_attributes(AttributeType.BINARY),
        ),
    ),
)

ENTERPRISE_USER_SCHEMA = SchemaDefinition(
    urn=ENTERPRISE_USER_SCHEMA_URN,
    name="EnterpriseUser",
    description="Enterprise User",
    attributes=(
        AttributeSchema("employeeNumber"),
        AttributeSchema("costCenter"),
        AttributeSchema("organization"),
        AttributeSchema("division"),
        AttributeSchema("department"),
        AttributeSchema(
            "manager",
            type=AttributeType.COMPLEX,
            sub_attributes=(
                AttributeSchema("value"),
                AttributeSchema(
                    "$ref", type=AttributeType.REFERENCE, reference_types=("User",)
                ),
                AttributeSchema("displayName", mutability=_RO),
            ),
        ),
    ),
)

GROUP_SCHEMA = SchemaDefinition(
    urn=GROUP_SCHEMA_URN,
    name="Group",
    description="Group",
    attributes=(
        AttributeSchema(
            "displayName",
            required=True,
            uniqueness=Uniqueness.SERVER,
            description="Human-readable name for the Group",
        ),
        AttributeSchema(
            "members",
            type=AttributeType.COMPLEX,
            multi_valued=True,
            description="A list of members of the Group",
            sub_attributes=(
                AttributeSchema(
                    "value", case_exact=True, mutability=Mutability.IMMUTABLE
                ),
                AttributeSchema(
                    "$ref",
                    type=AttributeType.REFERENCE,
                    case_exact=True,
                    mutability=Mutability.IMMUTABLE,
                    reference_types=("User", "Group"),
                ),
                AttributeSchema("display", mutability=Mutability.IMMUTABLE),
                AttributeSchema(
                    "type",
                    mutability=Mutability.IMMUTABLE,
                    canonical_values=("User", "Group"),
                ),
            ),
        ),
    ),
)

USER_RESOURCE_TYPE = ResourceTypeSchema(
    name="User",
    endpoint="/Users",
    description="User Account",
    core=USER_SCHEMA,
    extensions=(ENTERPRISE_USER_SCHEMA,),
)

GROUP_RESOURCE_TYPE = ResourceTypeSchema(
    name="Group",
    endpoint="/Groups",
    description="Group",
    core=GROUP_SCHEMA,
)

DEFAULT_RESOURCE_TYPES = (USER_RESOURCE_TYPE, GROUP_RESOURCE_TYPE)


# ============================================================================
# Registry
# ============================================================================


class SchemaRegistry:
    """Read-only catalogue of resource-type schemas keyed by name."""

    def __init__(self, resource_types: Iterable[ResourceTypeSchema]):
        types: Dict[str, ResourceTypeSchema] = {}
        for resource_type in resource_types:
            if resource_type.name in types:
                raise ValueError(f"Duplicate resource type {resource_type.name}")
            types[resource_type.name] = resource_type
        self._types = MappingProxyType(types)

    def get(self, resource_type: str) -> ResourceTypeSchema:
        try:
            return self._types[resource_type]
        except KeyError:
            raise SCIMError.not_found(f"Resource type {resource_type} not found") from None

    def names(self) -> List[str]:
        return list(self._types)

    def __iter__(self) -> Iterator[ResourceTypeSchema]:
        return iter(self._types.values())

    def __contains__(self, resource_type: str) -> bool:
        return resource_type in self._types

    def schema_definitions(self) -> List[SchemaDefinition]:
        """Distinct core and extension schemas, in registration order."""
        seen: Dict[str, SchemaDefinition] = {}
        for resource_type in self:
            for definition in (resource_type.core,) + resource_type.extensions:
                seen.setdefault(definition.urn, definition)
        return list(seen.values())

    def find_schema(self, urn: str) -> Optional[SchemaDefinition]:
        for definition in self.schema_definitions():
            if definition.urn == urn:
                return definition
        return None


_registry: Optional[SchemaRegistry] = None
_registry_lock = threading.Lock()


def init_registry(resource_types: Optional[Iterable[ResourceTypeSchema]] = None) -> SchemaRegistry:
    """
    Publish the process-wide schema registry.

    Must run once at process start. Repeat calls return the already published
    registry and ignore `resource_types`.
    """
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                registry = SchemaRegistry(resource_types or DEFAULT_RESOURCE_TYPES)
                logger.info("SCIM schema registry initialized: %s", ", ".join(registry.names()))
                _registry = registry
    return _registry


def get_registry() -> SchemaRegistry:
    """
    Return the published registry.

    Raises:
        RuntimeError: If init_registry() never ran
    """
    if _registry is None:
        raise RuntimeError("SCIM schema registry has not been initialized")
    return _registry


def reset_registry() -> None:
    """Drop the published registry. Intended for tests."""
    global _registry
    with _registry_lock:
        _registry = None
