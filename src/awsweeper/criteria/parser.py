"""Criteria document parser.

Turns a loaded criteria document into an immutable CriteriaModel, rejecting
anything malformed before a single provider call is made.

Document shape::

    load-balancer:
      ids: [lb-foo]
    instance:
      tags:
        Owner: ci
      state: running
      image_id: {regex: "^ami-0"}
    security-group:
      - tags: {team: a}
      - tags: {team: b}
    subnet:
      all:
        - tags: {env: test}
        - vpc_id: vpc-123
    vpc:                      # no filter: every VPC

Within one filter object every present filter kind must match. A list of
filter objects (or ``any:``) matches when one object matches; ``all:``
requires every object to match.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from ..errors import ConfigError
from ..models.filter_clause import (
    CriteriaModel,
    FilterClause,
    FilterGroup,
    IdsClause,
    MatchAllClause,
    RawAttributeClause,
    TagsClause,
    TypeCriteria,
)
from ..registry.registry import ResourceRegistry

logger = logging.getLogger(__name__)

IDS_KEY = "ids"
TAGS_KEY = "tags"
REGEX_KEY = "regex"
COMBINATOR_KEYS = {"any": False, "all": True}

_SCALARS = (str, int, float, bool)


def parse(raw: Any, registry: ResourceRegistry) -> CriteriaModel:
    """Parse and validate a criteria document.

    Args:
        raw: Loaded document (mapping of resource type to filter)
        registry: Registry used to validate resource type names

    Returns:
        Immutable CriteriaModel

    Raises:
        ConfigError: If the document is invalid
    """
    if not isinstance(raw, Mapping):
        raise ConfigError(f"criteria document must be a mapping of resource type to filter, got {_kind(raw)}")
    if not raw:
        raise ConfigError("criteria document does not list any resource types")

    types: Dict[str, TypeCriteria] = {}
    for resource_type, filter_spec in raw.items():
        if not isinstance(resource_type, str):
            raise ConfigError(f"resource type names must be strings, got {_kind(resource_type)}")
        if resource_type not in registry:
            known = ", ".join(registry.names())
            raise ConfigError(f"unknown resource type '{resource_type}' (known types: {known})", path=resource_type)

        types[resource_type] = _parse_type(resource_type, filter_spec)
        logger.debug(f"Criteria for {resource_type}: {types[resource_type].describe()}")

    return CriteriaModel(types)


def _parse_type(resource_type: str, filter_spec: Any) -> TypeCriteria:
    if filter_spec is None or (isinstance(filter_spec, Mapping) and not filter_spec):
        return TypeCriteria(resource_type, (FilterGroup((MatchAllClause(),)),))

    if isinstance(filter_spec, list):
        groups = _parse_group_list(resource_type, filter_spec)
        return TypeCriteria(resource_type, groups)

    if isinstance(filter_spec, Mapping):
        if len(filter_spec) == 1:
            key = next(iter(filter_spec))
            if key in COMBINATOR_KEYS:
                items = filter_spec[key]
                path = f"{resource_type}.{key}"
                if not isinstance(items, list):
                    raise ConfigError(f"expected a list of filter objects, got {_kind(items)}", path=path)
                groups = _parse_group_list(path, items)
                return TypeCriteria(resource_type, groups, match_all=COMBINATOR_KEYS[key])

        return TypeCriteria(resource_type, (_parse_group(resource_type, filter_spec),))

    raise ConfigError(f"filter must be a mapping or a list of mappings, got {_kind(filter_spec)}", path=resource_type)


def _parse_group_list(path: str, items: List[Any]) -> tuple:
    if not items:
        raise ConfigError("filter list cannot be empty", path=path)

    groups = []
    for index, item in enumerate(items):
        item_path = f"{path}[{index}]"
        if not isinstance(item, Mapping) or not item:
            raise ConfigError(f"expected a non-empty filter object, got {_kind(item)}", path=item_path)
        groups.append(_parse_group(item_path, item))
    return tuple(groups)


def _parse_group(path: str, spec: Mapping[str, Any]) -> FilterGroup:
    clauses: List[FilterClause] = []

    for key, value in spec.items():
        key_path = f"{path}.{key}"
        if not isinstance(key, str):
            raise ConfigError(f"filter keys must be strings, got {_kind(key)}", path=path)

        if key == IDS_KEY:
            clauses.append(_parse_ids(key_path, value))
        elif key == TAGS_KEY:
            clauses.append(_parse_tags(key_path, value))
        else:
            clauses.append(_parse_raw_attribute(key_path, key, value))

    return FilterGroup(tuple(clauses))


def _parse_ids(path: str, value: Any) -> IdsClause:
    if not isinstance(value, list):
        raise ConfigError(f"ids must be a list, got {_kind(value)}", path=path)
    if not value:
        raise ConfigError("ids cannot be empty", path=path)

    for index, resource_id in enumerate(value):
        if not isinstance(resource_id, str) or not resource_id:
            raise ConfigError(f"ids must be non-empty strings, got {resource_id!r}", path=f"{path}[{index}]")

    return IdsClause(frozenset(value))


def _parse_tags(path: str, value: Any) -> TagsClause:
    if not isinstance(value, Mapping):
        raise ConfigError(f"tags must be a mapping of key to value, got {_kind(value)}", path=path)
    if not value:
        raise ConfigError("tags cannot be empty", path=path)

    tags: Dict[str, str] = {}
    for key, tag_value in value.items():
        if not isinstance(key, str) or not key:
            raise ConfigError(f"tag keys must be non-empty strings, got {key!r}", path=path)
        if not isinstance(tag_value, _SCALARS):
            raise ConfigError(f"tag values must be scalars, got {_kind(tag_value)}", path=f"{path}.{key}")
        tags[key] = _scalar_to_string(tag_value)

    return TagsClause.from_mapping(tags)


def _parse_raw_attribute(path: str, key: str, value: Any) -> RawAttributeClause:
    if isinstance(value, Mapping):
        if set(value) != {REGEX_KEY}:
            raise ConfigError(f"attribute filter objects only support the '{REGEX_KEY}' key", path=path)
        pattern = value[REGEX_KEY]
        if not isinstance(pattern, str):
            raise ConfigError(f"regex must be a string, got {_kind(pattern)}", path=f"{path}.{REGEX_KEY}")
        try:
            compiled = re.compile(pattern)
        except re.error as e:
            raise ConfigError(f"invalid regex {pattern!r}: {e}", path=f"{path}.{REGEX_KEY}") from e
        return RawAttributeClause(key=key, pattern=compiled)

    if not isinstance(value, _SCALARS):
        raise ConfigError(f"attribute filter must be a scalar or {{regex: ...}}, got {_kind(value)}", path=path)

    return RawAttributeClause(key=key, value=_scalar_to_string(value))


def _scalar_to_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _kind(value: Optional[Any]) -> str:
    if value is None:
        return "null"
    return type(value).__name__
