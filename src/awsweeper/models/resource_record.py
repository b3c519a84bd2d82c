"""Resource record model.

Normalized snapshot of one live resource as returned by a lister.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping


@dataclass(frozen=True)
class ResourceRecord:
    """One live resource instance.

    Records are produced fresh by every list call and never mutated. Tags and
    raw attributes are exposed through read-only mappings.

    Attributes:
        type: Resource type name (e.g. "load-balancer")
        id: Provider identifier, unique within its type at listing time
        tags: Resource tags (may be empty)
        raw_attributes: Provider-specific fields used by raw attribute filters
    """

    type: str
    id: str
    tags: Mapping[str, str] = field(default_factory=dict)
    raw_attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.type:
            raise ValueError("type cannot be empty")
        if not self.id:
            raise ValueError("id cannot be empty")

        object.__setattr__(self, "tags", MappingProxyType({str(k): str(v) for k, v in self.tags.items()}))
        object.__setattr__(self, "raw_attributes", MappingProxyType(dict(self.raw_attributes)))

    @property
    def key(self) -> tuple[str, str]:
        return (self.type, self.id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to a plain dictionary."""
        return {
            "type": self.type,
            "id": self.id,
            "tags": dict(self.tags),
            "raw_attributes": dict(self.raw_attributes),
        }
