"""
Attribute filter resolution.

Computes which attribute URIs a response may contain, from the schema's
`returned` characteristics and the request's `attributes` and
`excludedAttributes` parameters (RFC 7644 §3.9). Resolution is a pure
function: it reads the shared schema and returns a new FilterSet.
"""

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import FrozenSet, Iterable, Iterator, List, Optional, Set

from .schema import AttributeSchema, ResourceTypeSchema, Returned

logger = logging.getLogger(__name__)


class FilterSet(Mapping):
    """Read-only mapping of attribute URI to whether it is included."""

    def __init__(self, entries: Optional[Mapping] = None):
        self._entries = MappingProxyType(dict(entries or {}))

    def __getitem__(self, uri: str) -> bool:
        return self._entries[uri]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self):
        return f"FilterSet({sorted(self.included)!r})"

    def includes(self, uri: str) -> bool:
        return self._entries.get(uri, False)

    @property
    def included(self) -> FrozenSet[str]:
        return frozenset(uri for uri, include in self._entries.items() if include)


def parse_attribute_list(value: Optional[str]) -> Optional[List[str]]:
    """
    Split an attributes/excludedAttributes parameter.

    Returns None when the parameter is absent, otherwise the non-empty,
    stripped names (possibly an empty list).
    """
    if value is None:
        return None
    return [name.strip() for name in value.split(",") if name.strip()]


def _descendants(attr: AttributeSchema) -> Iterator[AttributeSchema]:
    for sub in attr.sub_attributes:
        yield sub
        yield from _descendants(sub)


def _expand(
    schema: ResourceTypeSchema, names: Iterable[str], with_ancestors: bool
) -> Set[str]:
    """Resolve names to URIs, adding descendants and optionally ancestors."""
    uris: Set[str] = set()
    for name in names:
        matched = schema.lookup(name)
        if not matched:
            logger.debug("Ignoring unknown attribute %r for %s", name, schema.name)
        for uri in matched:
            attr = schema.get_attribute(uri)
            uris.add(uri)
            uris.update(sub.uri for sub in _descendants(attr))
            if with_ancestors:
                path = attr.path.split(".")
                for depth in range(1, len(path)):
                    uris.add(f"{attr.schema_urn}:{'.'.join(path[:depth])}")
    return uris


def resolve(
    schema: ResourceTypeSchema,
    requested: Optional[str] = None,
    excluded: Optional[str] = None,
) -> FilterSet:
    """
    Compute the attributes visible in a response.

    Args:
        schema: Resource type schema
        requested: Raw `attributes` parameter, or None if absent
        excluded: Raw `excludedAttributes` parameter, or None if absent

    Returns:
        New FilterSet covering every attribute URI of the schema
    """
    requested_names = parse_attribute_list(requested)
    excluded_names = parse_attribute_list(excluded)

    entries = {
        attr.uri: attr.returned in (Returned.ALWAYS, Returned.DEFAULT)
        for attr in schema.iter_attributes()
    }

    # Both parameters present but empty: only always-returned attributes
    only_always = (
        requested is not None
        and excluded is not None
        and not requested.strip()
        and not excluded.strip()
    )

    if requested_names or only_always:
        named = _expand(schema, requested_names or [], with_ancestors=True)
        for attr in schema.iter_attributes():
            entries[attr.uri] = attr.returned is Returned.ALWAYS or (
                attr.uri in named and attr.returned is not Returned.NEVER
            )

    if excluded_names:
        for uri in _expand(schema, excluded_names, with_ancestors=False):
            if schema.get_attribute(uri).returned is not Returned.ALWAYS:
                entries[uri] = False

    filter_set = FilterSet(entries)
    logger.debug(
        "Resolved %s filter (attributes=%r, excludedAttributes=%r): %s",
        schema.name,
        requested,
        excluded,
        filter_set,
    )
    return filter_set


def all_attributes(schema: ResourceTypeSchema) -> FilterSet:
    """FilterSet including every attribute regardless of `returned`."""
    return FilterSet({attr.uri: True for attr in schema.iter_attributes()})
