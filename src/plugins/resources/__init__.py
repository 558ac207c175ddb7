"""Resource plugins for Cloudflare objects."""

from plugins.resources.base import ResourcePlugin

__all__ = ["ResourcePlugin"]
