"""
Entry points used by the dispatch layer.

Each operation looks its resource type up in the schema registry and raises
only SCIMError; unexpected failures are logged and collapsed to
INTERNAL_ERROR. An uninitialized registry is a programming error and
propagates as RuntimeError.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from . import validator
from .errors import SCIMError
from .filter import FilterSet, all_attributes, resolve
from .resource import Resource
from .schema import ResourceTypeSchema, SchemaRegistry, get_registry
from .serializers import ResourceSerializer, dump_document, parse_document

logger = logging.getLogger(__name__)


def _schema(resource_type: str, registry: Optional[SchemaRegistry]) -> ResourceTypeSchema:
    return (registry or get_registry()).get(resource_type)


@contextmanager
def _engine_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SCIMError:
        raise
    except Exception as e:
        logger.exception("Unexpected failure while %s", operation)
        raise SCIMError.internal(f"Error while {operation}") from e


def decode(
    document: bytes, resource_type: str, registry: Optional[SchemaRegistry] = None
) -> Resource:
    """Decode a request body into a Resource of `resource_type`."""
    schema = _schema(resource_type, registry)
    with _engine_errors("decoding resource"):
        return ResourceSerializer.from_scim(parse_document(document), schema)


def encode(
    resource: Resource,
    requested: Optional[str],
    excluded: Optional[str],
    resource_type: str,
    registry: Optional[SchemaRegistry] = None,
) -> bytes:
    """Encode a Resource for a response, honouring attributes/excludedAttributes."""
    schema = _schema(resource_type, registry)
    with _engine_errors("encoding resource"):
        filter_set = resolve(schema, requested, excluded)
        return dump_document(ResourceSerializer.to_scim(resource, schema, filter_set))


def resolve_filter(
    requested: Optional[str],
    excluded: Optional[str],
    resource_type: str,
    registry: Optional[SchemaRegistry] = None,
) -> FilterSet:
    schema = _schema(resource_type, registry)
    with _engine_errors("resolving attributes"):
        return resolve(schema, requested, excluded)


def required_fetch_projection(
    resource_type: str, registry: Optional[SchemaRegistry] = None
) -> FilterSet:
    """
    Attributes the store must load before a full replace.

    Every attribute of the schema is included, including those never
    returned to clients, so the merge sees the complete prior resource.
    """
    return all_attributes(_schema(resource_type, registry))


def validate_for_create(
    resource: Resource, resource_type: str, registry: Optional[SchemaRegistry] = None
) -> Resource:
    schema = _schema(resource_type, registry)
    with _engine_errors("validating new resource"):
        return validator.validate_for_create(resource, schema)


def validate_for_update(
    old: Resource,
    new: Resource,
    resource_type: str,
    registry: Optional[SchemaRegistry] = None,
) -> Resource:
    schema = _schema(resource_type, registry)
    with _engine_errors("validating updated resource"):
        return validator.validate_for_update(old, new, schema)
