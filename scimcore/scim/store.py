"""
Backing store contract and the SQLAlchemy-backed reference store.

The engine never persists anything itself: the dispatch layer hands validated
resources to a ResourceStore and encodes whatever the store returns.
"""

import abc
import logging
from typing import Optional

import sqlalchemy

from ..model.base import db
from ..model.resource_record import ResourceRecord
from .errors import SCIMError
from .filter import FilterSet, all_attributes
from .resource import Resource
from .schema import ResourceTypeSchema, SchemaRegistry, get_registry
from .serializers import ResourceSerializer
from .utils import utcnow

logger = logging.getLogger(__name__)


class ResourceStore(abc.ABC):
    """
    Pluggable persistence for SCIM resources.

    Implementations may raise SCIMError of any kind; the dispatch layer
    passes them through unchanged. Any other exception is reported as an
    internal error.
    """

    @abc.abstractmethod
    def get(
        self, resource_type: str, resource_id: str, projection: Optional[FilterSet] = None
    ) -> Optional[Resource]:
        """Return the resource, or None if it does not exist."""

    @abc.abstractmethod
    def create(self, resource_type: str, resource: Resource) -> Optional[Resource]:
        """Persist a validated new resource and return what was stored."""

    @abc.abstractmethod
    def update(
        self,
        resource_type: str,
        old: Resource,
        new: Resource,
        projection: Optional[FilterSet] = None,
    ) -> Optional[Resource]:
        """Replace `old` with the validated `new` and return what was stored."""

    @abc.abstractmethod
    def delete(self, resource_type: str, resource_id: str) -> None:
        """
        Delete a resource.

        Raises:
            SCIMError: NOT_FOUND if the resource does not exist
        """


class SQLAlchemyResourceStore(ResourceStore):
    """Stores each resource as a JSON document in the scim_resource table."""

    def __init__(self, registry: Optional[SchemaRegistry] = None):
        self._registry = registry

    def _schema(self, resource_type: str) -> ResourceTypeSchema:
        return (self._registry or get_registry()).get(resource_type)

    @staticmethod
    def _unique_key(resource: Resource, schema: ResourceTypeSchema) -> Optional[str]:
        attr = schema.unique_attribute
        if attr is None:
            return None
        value = resource.get(attr.uri)
        if value is None:
            return None
        return value if attr.case_exact else value.lower()

    @staticmethod
    def _to_document(resource: Resource, schema: ResourceTypeSchema) -> dict:
        return ResourceSerializer.to_scim(resource, schema, all_attributes(schema))

    @staticmethod
    def _from_document(
        document: dict, schema: ResourceTypeSchema, projection: Optional[FilterSet] = None
    ) -> Resource:
        resource = ResourceSerializer.from_scim(document, schema, client_input=False)
        if projection is not None:
            for uri in list(resource.attributes):
                if not projection.includes(uri):
                    del resource.attributes[uri]
        return resource

    def _conflict(self, resource: Resource, schema: ResourceTypeSchema) -> SCIMError:
        db.session.rollback()
        attr = schema.unique_attribute
        if attr is not None and resource.get(attr.uri) is not None:
            return SCIMError.conflict(
                f"{schema.name} with {attr.name} '{resource.get(attr.uri)}' already exists"
            )
        return SCIMError.conflict(f"{schema.name} already exists")

    def get(self, resource_type, resource_id, projection=None):
        schema = self._schema(resource_type)
        record = ResourceRecord.get_by_id(resource_type, resource_id)
        if record is None:
            return None
        return self._from_document(record.document, schema, projection)

    def create(self, resource_type, resource):
        schema = self._schema(resource_type)
        document = self._to_document(resource, schema)
        try:
            ResourceRecord.add(
                id=resource.id,
                resource_type=resource_type,
                document=document,
                unique_key=self._unique_key(resource, schema),
                created=resource.meta.created or utcnow(),
                last_modified=resource.meta.last_modified or utcnow(),
            )
        except sqlalchemy.exc.IntegrityError as e:
            logger.info("Rejected %s create: %s", resource_type, e.orig)
            raise self._conflict(resource, schema) from e
        return self._from_document(document, schema)

    def update(self, resource_type, old, new, projection=None):
        schema = self._schema(resource_type)
        record = ResourceRecord.get_by_id(resource_type, old.id)
        if record is None:
            raise SCIMError.not_found(f"{resource_type} {old.id} not found")

        new.meta.last_modified = utcnow()
        document = self._to_document(new, schema)
        try:
            record.replace(
                document=document,
                unique_key=self._unique_key(new, schema),
                last_modified=new.meta.last_modified,
            )
        except sqlalchemy.exc.IntegrityError as e:
            logger.info("Rejected %s update: %s", resource_type, e.orig)
            raise self._conflict(new, schema) from e
        return self._from_document(document, schema, projection)

    def delete(self, resource_type, resource_id):
        record = ResourceRecord.get_by_id(resource_type, resource_id)
        if record is None:
            raise SCIMError.not_found(f"{resource_type} {resource_id} not found")
        record.remove()
