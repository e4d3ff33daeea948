"""
Server-side validation of resources submitted by clients.

validate_for_create() prepares a decoded POST body for the store;
validate_for_update() merges a PUT body with the stored resource according to
each attribute's mutability (RFC 7644 §3.5.1).
"""

import copy
import logging
from typing import Any, Dict, Iterable, Optional

from .errors import SCIMError
from .resource import AttributeValue, Meta, Resource
from .schema import (
    CORE_FIELD_URIS,
    AttributeSchema,
    AttributeType,
    Mutability,
    ResourceTypeSchema,
)
from .serializers import declared_schemas
from .utils import generate_scim_id, utcnow

logger = logging.getLogger(__name__)


def validate_for_create(resource: Resource, schema: ResourceTypeSchema) -> Resource:
    """
    Validate a new resource and assign its server-controlled fields.

    Any id or meta supplied by the client is discarded. A provisional id is
    assigned; the store may replace it.

    Returns:
        New validated Resource; the input is not modified

    Raises:
        SCIMError: BAD_REQUEST if a required attribute is missing
    """
    validated = resource.copy()
    now = utcnow()
    validated.id = generate_scim_id()
    validated.meta = Meta(resource_type=schema.name, created=now, last_modified=now)
    validated.schemas = declared_schemas(validated, schema)
    check_required(validated, schema)
    return validated


def validate_for_update(old: Resource, new: Resource, schema: ResourceTypeSchema) -> Resource:
    """
    Merge a replacement resource with the stored one.

    Args:
        old: Resource currently held by the store
        new: Resource decoded from the PUT body
        schema: Resource type schema

    Returns:
        New merged Resource; neither input is modified

    Raises:
        SCIMError: BAD_REQUEST if an immutable attribute would change or a
            required attribute is missing after the merge
    """
    merged = Resource(
        id=old.id,
        meta=Meta(
            resource_type=schema.name,
            created=old.meta.created,
            last_modified=utcnow(),
            location=old.meta.location,
            version=old.meta.version,
        ),
    )
    for attr in schema.attributes:
        if attr.uri in CORE_FIELD_URIS:
            continue
        value = _merge(attr, old.get(attr.uri), new.get(attr.uri))
        merged.set(attr.uri, copy.deepcopy(value))

    merged.schemas = declared_schemas(merged, schema)
    check_required(merged, schema)
    return merged


def _merge(
    attr: AttributeSchema,
    old_value: Optional[AttributeValue],
    new_value: Optional[AttributeValue],
) -> Optional[AttributeValue]:
    if attr.mutability is Mutability.READ_ONLY:
        return old_value

    if attr.mutability is Mutability.IMMUTABLE:
        if old_value is None:
            return new_value
        if new_value is not None and not _values_equal(attr, old_value, new_value):
            logger.info("Rejected change to immutable attribute %s", attr.uri)
            raise SCIMError.bad_request(
                f"Attribute '{attr.path}' is immutable and cannot be modified", "mutability"
            )
        return old_value

    if new_value is None:
        return old_value
    if attr.is_complex and not attr.multi_valued and old_value is not None:
        return _merge_complex(attr, old_value, new_value)
    return new_value


def _merge_complex(
    attr: AttributeSchema, old_value: Dict[str, Any], new_value: Dict[str, Any]
) -> Optional[Dict[str, Any]]:
    merged = {}
    for sub in attr.sub_attributes:
        value = _merge(sub, old_value.get(sub.name), new_value.get(sub.name))
        if value is not None:
            merged[sub.name] = value
    return merged or None


def _values_equal(attr: AttributeSchema, left: Any, right: Any) -> bool:
    if attr.multi_valued:
        if len(left) != len(right):
            return False
        return all(_single_equal(attr, a, b) for a, b in zip(left, right))
    return _single_equal(attr, left, right)


def _single_equal(attr: AttributeSchema, left: Any, right: Any) -> bool:
    if attr.is_complex:
        for sub in attr.sub_attributes:
            a, b = left.get(sub.name), right.get(sub.name)
            if (a is None) != (b is None):
                return False
            if a is not None and not _values_equal(sub, a, b):
                return False
        return True
    if attr.type is AttributeType.STRING and not attr.case_exact:
        return left.lower() == right.lower()
    return left == right


def check_required(resource: Resource, schema: ResourceTypeSchema) -> None:
    """
    Check every required attribute has a value.

    Required sub-attributes are checked inside each populated complex value.

    Raises:
        SCIMError: BAD_REQUEST naming the first missing attribute
    """
    for attr in schema.attributes:
        if attr.uri in CORE_FIELD_URIS:
            continue
        value = resource.get(attr.uri)
        if value is None:
            if attr.required:
                raise SCIMError.bad_request(
                    f"Required attribute '{attr.path}' is missing", "invalidValue"
                )
            continue
        if attr.is_complex:
            values = value if attr.multi_valued else [value]
            _check_required_sub_attributes(attr, values)


def _check_required_sub_attributes(attr: AttributeSchema, values: Iterable[Dict[str, Any]]) -> None:
    for value in values:
        for sub in attr.sub_attributes:
            if sub.required and value.get(sub.name) is None:
                raise SCIMError.bad_request(
                    f"Required sub-attribute '{sub.path}' is missing", "invalidValue"
                )
