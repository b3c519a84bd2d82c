"""Filter clause and criteria models.

A criteria document maps resource types to one or more filter objects. Each
filter object becomes a FilterGroup whose clauses are ANDed together; the
groups of a type are ORed unless the document asks for "all" semantics.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterator, Mapping, Optional, Pattern, Tuple

from .resource_record import ResourceRecord


class FilterClause(ABC):
    """Predicate over a single resource record."""

    @abstractmethod
    def matches(self, record: ResourceRecord) -> bool:
        """Return True if the record satisfies this clause."""

    @abstractmethod
    def describe(self) -> str:
        """Short human-readable form used in logs and reports."""


@dataclass(frozen=True)
class IdsClause(FilterClause):
    """Matches records whose id is in an explicit set."""

    ids: FrozenSet[str]

    def matches(self, record: ResourceRecord) -> bool:
        return record.id in self.ids

    def describe(self) -> str:
        return f"ids in [{', '.join(sorted(self.ids))}]"


@dataclass(frozen=True)
class TagsClause(FilterClause):
    """Matches records carrying ALL of the given tags with equal values."""

    tags: Tuple[Tuple[str, str], ...]

    @classmethod
    def from_mapping(cls, tags: Mapping[str, str]) -> TagsClause:
        return cls(tags=tuple(sorted(tags.items())))

    def matches(self, record: ResourceRecord) -> bool:
        return all(record.tags.get(key) == value for key, value in self.tags)

    def describe(self) -> str:
        return "tags " + ", ".join(f"{k}={v}" for k, v in self.tags)


@dataclass(frozen=True)
class RawAttributeClause(FilterClause):
    """Matches a provider attribute by string equality or regex search.

    Attribute values are compared in their string form; booleans render as
    "true"/"false" so documents can say ``is_default: false``.
    """

    key: str
    value: Optional[str] = None
    pattern: Optional[Pattern[str]] = None

    def __post_init__(self) -> None:
        if (self.value is None) == (self.pattern is None):
            raise ValueError("RawAttributeClause needs exactly one of value or pattern")

    def matches(self, record: ResourceRecord) -> bool:
        if self.key not in record.raw_attributes:
            return False

        actual = attribute_to_string(record.raw_attributes[self.key])
        if self.pattern is not None:
            return self.pattern.search(actual) is not None
        return actual == self.value

    def describe(self) -> str:
        if self.pattern is not None:
            return f"{self.key} =~ /{self.pattern.pattern}/"
        return f"{self.key} == {self.value}"


@dataclass(frozen=True)
class MatchAllClause(FilterClause):
    """Matches every record. Used when a type is listed without filters."""

    def matches(self, record: ResourceRecord) -> bool:
        return True

    def describe(self) -> str:
        return "all resources"


@dataclass(frozen=True)
class FilterGroup:
    """One filter object from the document. All clauses must match."""

    clauses: Tuple[FilterClause, ...]

    def matches(self, record: ResourceRecord) -> bool:
        return all(clause.matches(record) for clause in self.clauses)

    def describe(self) -> str:
        return " and ".join(clause.describe() for clause in self.clauses)


@dataclass(frozen=True)
class TypeCriteria:
    """All filter groups configured for one resource type.

    Attributes:
        resource_type: Resource type name
        groups: Filter groups (one per filter object)
        match_all: When True every group must match, otherwise any one does
    """

    resource_type: str
    groups: Tuple[FilterGroup, ...]
    match_all: bool = False

    def matches(self, record: ResourceRecord) -> bool:
        if record.type != self.resource_type:
            return False
        if self.match_all:
            return all(group.matches(record) for group in self.groups)
        return any(group.matches(record) for group in self.groups)

    def describe(self) -> str:
        joiner = " AND " if self.match_all else " OR "
        return joiner.join(f"({group.describe()})" for group in self.groups)


class CriteriaModel(Mapping[str, TypeCriteria]):
    """Immutable mapping of resource type to its criteria.

    Types absent from the model are never touched.
    """

    def __init__(self, types: Mapping[str, TypeCriteria]) -> None:
        self._types = MappingProxyType(dict(types))

    def __getitem__(self, resource_type: str) -> TypeCriteria:
        return self._types[resource_type]

    def __iter__(self) -> Iterator[str]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)

    def __repr__(self) -> str:
        return f"CriteriaModel({sorted(self._types)})"

    def to_dict(self) -> Dict[str, str]:
        """Describe each type's criteria for logs and audit records."""
        return {name: criteria.describe() for name, criteria in sorted(self._types.items())}


def attribute_to_string(value: Any) -> str:
    """Render a raw attribute value for comparison."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)

