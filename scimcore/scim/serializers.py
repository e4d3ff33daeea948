"""
SCIM serializers for converting between SCIM JSON documents and Resources.

Decoding walks the resource type's attribute tree and type-checks every value
it finds; encoding walks the same tree and emits only what the FilterSet
includes.
"""

import base64
import binascii
import json
import logging
from typing import Any, Dict, List, Optional, Union

from .errors import SCIMError
from .filter import FilterSet
from .resource import AttributeValue, Meta, Resource
from .schema import (
    COMMON_SCHEMA_URN,
    CORE_FIELD_URIS,
    META_URI,
    AttributeSchema,
    AttributeType,
    Mutability,
    ResourceTypeSchema,
)
from .utils import format_datetime, parse_datetime

logger = logging.getLogger(__name__)

_STRING_TYPES = (AttributeType.STRING, AttributeType.REFERENCE)


def parse_document(data: Union[bytes, str]) -> Dict[str, Any]:
    """
    Parse a raw request body into a JSON object.

    Raises:
        SCIMError: INTERNAL_ERROR if the body is not a JSON object
    """
    try:
        document = json.loads(data)
    except (ValueError, TypeError) as e:
        logger.warning("Unable to parse SCIM document: %s", e, exc_info=True)
        raise SCIMError.internal("Error in decoding the SCIM document") from e
    if not isinstance(document, dict):
        raise SCIMError.internal("SCIM document must be a JSON object")
    return document


def dump_document(document: Dict[str, Any]) -> bytes:
    return json.dumps(document).encode("utf-8")


def _lower_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    # Attribute names are case-insensitive (RFC 7643 §2.1)
    return {key.lower(): value for key, value in data.items()}


def _type_error(attr: AttributeSchema) -> SCIMError:
    kind = "multi-valued " if attr.multi_valued else ""
    return SCIMError.bad_request(
        f"Attribute '{attr.path}' must be a {kind}{attr.type.value} value"
    )


class ResourceSerializer:
    """Serializer for SCIM document ↔ Resource under a resource type schema."""

    @staticmethod
    def from_scim(
        document: Dict[str, Any],
        schema: ResourceTypeSchema,
        resource: Optional[Resource] = None,
        client_input: bool = True,
    ) -> Resource:
        """
        Decode a SCIM document into a Resource.

        Missing attributes are left unset; required attributes are checked
        later by the validator. Unknown keys are ignored.

        Args:
            document: Parsed SCIM JSON object
            schema: Resource type schema to decode against
            resource: Blank resource to populate (a new one if omitted)
            client_input: Drop readOnly attributes, as the client cannot set them

        Returns:
            The populated Resource

        Raises:
            SCIMError: BAD_REQUEST on a type mismatch, INTERNAL_ERROR if the
                document is not an object
        """
        if not isinstance(document, dict):
            raise SCIMError.internal("SCIM document must be a JSON object")
        if resource is None:
            resource = Resource()

        data = _lower_keys(document)

        schemas = data.get("schemas")
        if schemas is not None:
            if not isinstance(schemas, list) or not all(isinstance(s, str) for s in schemas):
                raise SCIMError.bad_request("'schemas' must be a list of URNs", "invalidSyntax")
            resource.schemas = list(schemas)

        resource_id = data.get("id")
        if resource_id is not None:
            if not isinstance(resource_id, str):
                raise SCIMError.bad_request("'id' must be a string")
            resource.id = resource_id

        if data.get("meta") is not None:
            if client_input:
                logger.debug("Dropping read-only meta from client input")
            else:
                resource.meta = ResourceSerializer._decode_meta(data["meta"], schema)

        containers = {COMMON_SCHEMA_URN: data, schema.schema_urn: data}
        for extension in schema.extensions:
            ext_data = data.get(extension.urn.lower())
            if ext_data is None:
                continue
            if not isinstance(ext_data, dict):
                raise SCIMError.bad_request(f"Extension '{extension.urn}' must be an object")
            containers[extension.urn] = _lower_keys(ext_data)

        for attr in schema.attributes:
            if attr.uri in CORE_FIELD_URIS:
                continue
            container = containers.get(attr.schema_urn)
            if container is None:
                continue
            raw = container.get(attr.name.lower())
            if raw is None:
                continue
            if client_input and attr.mutability is Mutability.READ_ONLY:
                logger.debug("Dropping read-only attribute %s from client input", attr.uri)
                continue
            resource.set(attr.uri, _decode_value(attr, raw, client_input))

        return resource

    @staticmethod
    def _decode_meta(raw: Any, schema: ResourceTypeSchema) -> Meta:
        value = _decode_single(schema.get_attribute(META_URI), raw, client_input=False) or {}
        return Meta(
            resource_type=value.get("resourceType"),
            created=value.get("created"),
            last_modified=value.get("lastModified"),
            location=value.get("location"),
            version=value.get("version"),
        )

    @staticmethod
    def to_scim(
        resource: Resource, schema: ResourceTypeSchema, filter_set: FilterSet
    ) -> Dict[str, Any]:
        """
        Encode a Resource into a SCIM document.

        `schemas` and `id` are always emitted. Every other attribute is
        emitted only if present and included by `filter_set`; sub-attributes
        are filtered only inside parents that survived.

        Args:
            resource: Resource to encode
            schema: Resource type schema
            filter_set: Attributes visible in this response

        Returns:
            SCIM resource dictionary
        """
        document: Dict[str, Any] = {
            "schemas": list(resource.schemas) or declared_schemas(resource, schema),
        }
        if resource.id is not None:
            document["id"] = resource.id

        for attr in schema.attributes:
            if attr.uri in CORE_FIELD_URIS or not filter_set.includes(attr.uri):
                continue
            value = resource.get(attr.uri)
            if value is None:
                continue
            encoded = _encode_value(attr, value, filter_set)
            if encoded is None:
                continue
            if attr.schema_urn in (COMMON_SCHEMA_URN, schema.schema_urn):
                document[attr.name] = encoded
            else:
                document.setdefault(attr.schema_urn, {})[attr.name] = encoded

        if filter_set.includes(META_URI) and not resource.meta.is_empty():
            meta = _encode_meta(resource.meta, schema, filter_set)
            if meta:
                document["meta"] = meta

        return document


def declared_schemas(resource: Resource, schema: ResourceTypeSchema) -> List[str]:
    """Core schema URN plus each extension URN with populated attributes."""
    urns = [schema.schema_urn]
    for extension in schema.extensions:
        if any(resource.has(attr.uri) for attr in extension.attributes):
            urns.append(extension.urn)
    return urns


def _decode_value(attr: AttributeSchema, raw: Any, client_input: bool) -> Optional[AttributeValue]:
    if attr.multi_valued:
        if not isinstance(raw, list):
            raise _type_error(attr)
        values = []
        for item in raw:
            if item is None:
                continue
            decoded = _decode_single(attr, item, client_input)
            if decoded is not None:
                values.append(decoded)
        return values or None
    return _decode_single(attr, raw, client_input)


def _decode_single(attr: AttributeSchema, raw: Any, client_input: bool) -> Optional[AttributeValue]:
    if attr.is_complex:
        if not isinstance(raw, dict):
            raise _type_error(attr)
        data = _lower_keys(raw)
        value = {}
        for sub in attr.sub_attributes:
            raw_sub = data.get(sub.name.lower())
            if raw_sub is None:
                continue
            if client_input and sub.mutability is Mutability.READ_ONLY:
                continue
            decoded = _decode_value(sub, raw_sub, client_input)
            if decoded is not None:
                value[sub.name] = decoded
        return value or None
    return _decode_scalar(attr, raw)


def _decode_scalar(attr: AttributeSchema, raw: Any) -> AttributeValue:
    if attr.type in _STRING_TYPES:
        if isinstance(raw, str):
            return raw
    elif attr.type is AttributeType.BOOLEAN:
        if isinstance(raw, bool):
            return raw
    elif attr.type is AttributeType.INTEGER:
        if isinstance(raw, int) and not isinstance(raw, bool):
            return raw
    elif attr.type is AttributeType.DECIMAL:
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return float(raw)
    elif attr.type is AttributeType.DATE_TIME:
        if isinstance(raw, str):
            try:
                return parse_datetime(raw)
            except ValueError:
                raise SCIMError.bad_request(
                    f"Attribute '{attr.path}' is not a valid dateTime: {raw!r}"
                ) from None
    elif attr.type is AttributeType.BINARY:
        if isinstance(raw, str):
            try:
                base64.b64decode(raw, validate=True)
            except binascii.Error:
                raise SCIMError.bad_request(
                    f"Attribute '{attr.path}' is not valid base64"
                ) from None
            return raw
    raise _type_error(attr)


def _encode_value(attr: AttributeSchema, value: AttributeValue, filter_set: FilterSet) -> Any:
    if attr.multi_valued:
        items = [_encode_single(attr, item, filter_set) for item in value]
        items = [item for item in items if item is not None]
        return items or None
    return _encode_single(attr, value, filter_set)


def _encode_single(attr: AttributeSchema, value: AttributeValue, filter_set: FilterSet) -> Any:
    if attr.is_complex:
        encoded = {}
        for sub in attr.sub_attributes:
            if not filter_set.includes(sub.uri):
                continue
            sub_value = value.get(sub.name)
            if sub_value is None:
                continue
            sub_encoded = _encode_value(sub, sub_value, filter_set)
            if sub_encoded is not None:
                encoded[sub.name] = sub_encoded
        return encoded or None
    if attr.type is AttributeType.DATE_TIME:
        return format_datetime(value)
    return value


def _encode_meta(meta: Meta, schema: ResourceTypeSchema, filter_set: FilterSet) -> Dict[str, Any]:
    values = {
        "resourceType": meta.resource_type,
        "created": format_datetime(meta.created),
        "lastModified": format_datetime(meta.last_modified),
        "location": meta.location,
        "version": meta.version,
    }
    encoded = {}
    for sub in schema.get_attribute(META_URI).sub_attributes:
        if filter_set.includes(sub.uri) and values.get(sub.name) is not None:
            encoded[sub.name] = values[sub.name]
    return encoded
