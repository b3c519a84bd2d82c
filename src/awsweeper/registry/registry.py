"""Resource type registry.

Static table of resource type descriptors, populated once at startup and
read-only afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Sequence

from ..models.resource_record import ResourceRecord

logger = logging.getLogger(__name__)

Lister = Callable[[], Sequence[Any]]
Deleter = Callable[[str], None]
AttributeExtractor = Callable[[Any], ResourceRecord]


@dataclass(frozen=True)
class ResourceTypeDescriptor:
    """Everything the engine needs to know about one resource type.

    Attributes:
        name: Resource type name used in criteria documents
        lister: Returns every live raw record of this type
        deleter: Issues exactly one delete call for an id
        extractor: Converts a raw record into a ResourceRecord
        dependency_rank: Lower ranks are deleted first
        description: Human-readable description (optional)
    """

    name: str
    lister: Lister
    deleter: Deleter
    extractor: AttributeExtractor
    dependency_rank: int
    description: str = ""


class ResourceRegistry:
    """Registry of resource type descriptors.

    Provider clients are bound into the lister and deleter callables at
    registration time, so the engine never touches credentials or sessions.
    Call freeze() once registration is complete.
    """

    def __init__(self) -> None:
        self._descriptors: Dict[str, ResourceTypeDescriptor] = {}
        self._frozen = False

    def register(
        self,
        resource_type: str,
        lister: Lister,
        deleter: Deleter,
        attribute_extractor: AttributeExtractor,
        dependency_rank: int,
        description: str = "",
    ) -> ResourceTypeDescriptor:
        """Register a resource type.

        Args:
            resource_type: Resource type name (e.g. "load-balancer")
            lister: Callable returning raw provider records
            deleter: Callable deleting one resource by id
            attribute_extractor: Callable normalizing a raw record
            dependency_rank: Deletion ordering hint, lower deleted first
            description: Human-readable description

        Returns:
            The registered descriptor

        Raises:
            RuntimeError: If the registry is frozen
            ValueError: If the type is already registered or arguments are invalid
        """
        if self._frozen:
            raise RuntimeError(f"Registry is frozen; cannot register '{resource_type}'")
        if not resource_type:
            raise ValueError("resource_type cannot be empty")
        if resource_type in self._descriptors:
            raise ValueError(f"Resource type '{resource_type}' is already registered")
        if dependency_rank < 0:
            raise ValueError(f"dependency_rank must be >= 0, got {dependency_rank}")

        descriptor = ResourceTypeDescriptor(
            name=resource_type,
            lister=lister,
            deleter=deleter,
            extractor=attribute_extractor,
            dependency_rank=dependency_rank,
            description=description,
        )
        self._descriptors[resource_type] = descriptor
        logger.debug(f"Registered resource type {resource_type} (rank {dependency_rank})")
        return descriptor

    def freeze(self) -> ResourceRegistry:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, resource_type: str) -> ResourceTypeDescriptor:
        """Look up a descriptor.

        Raises:
            KeyError: If the type is not registered
        """
        try:
            return self._descriptors[resource_type]
        except KeyError:
            raise KeyError(f"Unknown resource type: {resource_type}")

    def rank(self, resource_type: str) -> int:
        return self.get(resource_type).dependency_rank

    def names(self) -> List[str]:
        """Registered type names ordered by (rank, name)."""
        return [d.name for d in self.descriptors()]

    def descriptors(self) -> List[ResourceTypeDescriptor]:
        return sorted(self._descriptors.values(), key=lambda d: (d.dependency_rank, d.name))

    def __contains__(self, resource_type: object) -> bool:
        return resource_type in self._descriptors

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._descriptors)
