"""
SCIM resource manager.

Turns decoded requests into SCIMResponse objects: runs the engine, calls the
backing store and maps every failure to its protocol status. Framework
independent; routes.py adapts it to Flask.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from . import engine
from .errors import ErrorKind, SCIMError
from .schema import SchemaRegistry
from .serializers import dump_document
from .store import ResourceStore
from .utils import SCIM_CONTENT_TYPE

logger = logging.getLogger(__name__)

CONTENT_TYPE_HEADER = "Content-Type"
LOCATION_HEADER = "Location"


@dataclass
class SCIMResponse:
    status: int
    body: Optional[bytes] = None
    headers: Dict[str, str] = field(default_factory=dict)


def build_location(endpoint_url: Optional[str], resource_id: str) -> str:
    """
    Location of a resource under its endpoint.

    An unset endpoint URL yields the literal "null/<id>".
    """
    base = "null" if endpoint_url is None else endpoint_url
    return f"{base}/{resource_id}"


def encode_scim_error(error: SCIMError) -> SCIMResponse:
    """Map a failure to its status and SCIM Error body."""
    if error.kind is ErrorKind.INTERNAL_ERROR:
        logger.error("SCIM request failed: %s", error.detail)
    return SCIMResponse(
        status=error.status,
        body=dump_document(error.to_dict()),
        headers={CONTENT_TYPE_HEADER: SCIM_CONTENT_TYPE},
    )


def _unexpected(operation: str) -> SCIMError:
    logger.exception("Unexpected failure while %s", operation)
    return SCIMError.internal()


def _require_store(store: Optional[ResourceStore]) -> ResourceStore:
    if store is None:
        raise SCIMError.internal("Provided store is null")
    return store


class ResourceManager:
    """
    Handles get/create/replace/delete for one resource type.

    Args:
        resource_type: Registered resource type name (e.g. "Group")
        endpoint_url: Absolute URL of the resource endpoint, used for
            Location headers and meta.location; may be None
        registry: Schema registry (the published one if omitted)
    """

    def __init__(
        self,
        resource_type: str,
        endpoint_url: Optional[str] = None,
        registry: Optional[SchemaRegistry] = None,
    ):
        self.resource_type = resource_type
        self.endpoint_url = endpoint_url
        self.registry = registry

    def _ok(self, body: bytes, status: int = 200, location: Optional[str] = None) -> SCIMResponse:
        headers = {CONTENT_TYPE_HEADER: SCIM_CONTENT_TYPE}
        if location is not None:
            headers[LOCATION_HEADER] = location
        return SCIMResponse(status=status, body=body, headers=headers)

    def get(
        self,
        resource_id: str,
        store: Optional[ResourceStore],
        attributes: Optional[str] = None,
        excluded_attributes: Optional[str] = None,
    ) -> SCIMResponse:
        """Retrieve one resource (RFC 7644 §3.4.1)."""
        try:
            store = _require_store(store)
            projection = engine.resolve_filter(
                attributes, excluded_attributes, self.resource_type, self.registry
            )
            resource = store.get(self.resource_type, resource_id, projection)
            if resource is None:
                raise SCIMError.not_found(f"{self.resource_type} {resource_id} not found")
            body = engine.encode(
                resource, attributes, excluded_attributes, self.resource_type, self.registry
            )
            return self._ok(body)
        except SCIMError as e:
            return encode_scim_error(e)
        except Exception:
            return encode_scim_error(_unexpected(f"getting {self.resource_type}"))

    def create(
        self,
        document: bytes,
        store: Optional[ResourceStore],
        attributes: Optional[str] = None,
        excluded_attributes: Optional[str] = None,
    ) -> SCIMResponse:
        """Create a resource from a POST body (RFC 7644 §3.3)."""
        try:
            resource = engine.decode(document, self.resource_type, self.registry)
            resource = engine.validate_for_create(resource, self.resource_type, self.registry)
            resource.meta.location = build_location(self.endpoint_url, resource.id)

            created = _require_store(store).create(self.resource_type, resource)
            if created is None:
                raise SCIMError.internal(f"Newly created {self.resource_type} resource is null")

            body = engine.encode(
                created, attributes, excluded_attributes, self.resource_type, self.registry
            )
            logger.info("Created %s %s", self.resource_type, created.id)
            return self._ok(
                body, status=201, location=build_location(self.endpoint_url, created.id)
            )
        except SCIMError as e:
            return encode_scim_error(e)
        except Exception:
            return encode_scim_error(_unexpected(f"creating {self.resource_type}"))

    def update_with_put(
        self,
        resource_id: str,
        document: bytes,
        store: Optional[ResourceStore],
        attributes: Optional[str] = None,
        excluded_attributes: Optional[str] = None,
    ) -> SCIMResponse:
        """Replace a resource from a PUT body (RFC 7644 §3.5.1)."""
        try:
            store = _require_store(store)
            new = engine.decode(document, self.resource_type, self.registry)

            projection = engine.required_fetch_projection(self.resource_type, self.registry)
            old = store.get(self.resource_type, resource_id, projection)
            if old is None:
                raise SCIMError.not_found(f"{self.resource_type} {resource_id} not found")

            validated = engine.validate_for_update(old, new, self.resource_type, self.registry)
            response_filter = engine.resolve_filter(
                attributes, excluded_attributes, self.resource_type, self.registry
            )
            updated = store.update(self.resource_type, old, validated, response_filter)
            if updated is None:
                raise SCIMError.internal(f"Updated {self.resource_type} resource is null")

            body = engine.encode(
                updated, attributes, excluded_attributes, self.resource_type, self.registry
            )
            logger.info("Replaced %s %s", self.resource_type, updated.id)
            return self._ok(body, location=build_location(self.endpoint_url, updated.id))
        except SCIMError as e:
            return encode_scim_error(e)
        except Exception:
            return encode_scim_error(_unexpected(f"replacing {self.resource_type}"))

    def delete(self, resource_id: str, store: Optional[ResourceStore]) -> SCIMResponse:
        """Delete a resource (RFC 7644 §3.6)."""
        try:
            _require_store(store).delete(self.resource_type, resource_id)
            logger.info("Deleted %s %s", self.resource_type, resource_id)
            return SCIMResponse(status=204)
        except SCIMError as e:
            return encode_scim_error(e)
        except Exception:
            return encode_scim_error(_unexpected(f"deleting {self.resource_type}"))
