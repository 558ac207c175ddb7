"""
Plugin system for the Cloudflare extended provider.

This package provides the plugin architecture for resource types: each
resource type is handled by one ResourcePlugin registered with the
PluginRegistry.
"""

from plugins.base import (
    Diagnostic,
    Operation,
    ResourceContext,
    ResourceResponse,
    Severity,
)
from plugins.registry import PluginRegistry, get_registry
from plugins.resources.base import ResourcePlugin

__all__ = [
    "Diagnostic",
    "Operation",
    "ResourceContext",
    "ResourceResponse",
    "Severity",
    "ResourcePlugin",
    "PluginRegistry",
    "get_registry",
]
