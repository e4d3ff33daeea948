"""
In-memory representation of SCIM resources.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Union

ScalarValue = Union[str, bool, int, float, datetime]
# Complex values are dicts keyed by sub-attribute name, multi-valued ones lists
AttributeValue = Union[ScalarValue, Dict[str, "AttributeValue"], List["AttributeValue"]]


@dataclass
class Meta:
    """Server-controlled resource metadata."""

    resource_type: Optional[str] = None
    created: Optional[datetime] = None
    last_modified: Optional[datetime] = None
    location: Optional[str] = None
    version: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(
            (self.resource_type, self.created, self.last_modified, self.location, self.version)
        )


@dataclass
class Resource:
    """
    One resource instance.

    `attributes` maps the canonical URI of each populated top-level attribute
    (other than id, meta and schemas) to its value.
    """

    id: Optional[str] = None
    schemas: List[str] = field(default_factory=list)
    meta: Meta = field(default_factory=Meta)
    attributes: Dict[str, AttributeValue] = field(default_factory=dict)

    def get(self, uri: str, default: Optional[AttributeValue] = None) -> Optional[AttributeValue]:
        return self.attributes.get(uri, default)

    def set(self, uri: str, value: Optional[AttributeValue]) -> None:
        if value is None:
            self.attributes.pop(uri, None)
        else:
            self.attributes[uri] = value

    def has(self, uri: str) -> bool:
        return uri in self.attributes

    def copy(self) -> "Resource":
        return copy.deepcopy(self)
