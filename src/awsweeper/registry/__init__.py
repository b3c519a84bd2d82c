"""Resource type registry and AWS resource type descriptors."""

from __future__ import annotations

from .aws_types import AWS_RESOURCE_TYPES, build_aws_registry
from .registry import ResourceRegistry, ResourceTypeDescriptor

__all__ = [
    "AWS_RESOURCE_TYPES",
    "ResourceRegistry",
    "ResourceTypeDescriptor",
    "build_aws_registry",
]
