"""
Plugin Registry - Discovery and registration of resource plugins.

This module provides the central registry for all resource plugins,
handling discovery, registration, and instantiation.
"""

import logging
from importlib.metadata import entry_points
from typing import Any, Dict, List, Optional, Type

from client import CloudflareClient
from plugins.resources.base import ResourcePlugin
from validation import validate_resource_schema

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "cloudflare_extended.resources"


class PluginRegistry:
    """
    Central registry for resource plugins.

    Plugins are registered by class and instantiated lazily, once, bound to
    the provider's shared API client.
    """

    def __init__(self):
        # Registered plugin classes (not instantiated)
        self._resource_plugins: Dict[str, Type[ResourcePlugin]] = {}

        # Cached plugin metadata to avoid repeated instantiation
        self._resource_plugin_info: Dict[str, Dict[str, Any]] = {}

        # Instantiated and initialized plugin instances
        self._resource_instances: Dict[str, ResourcePlugin] = {}

        # Plugin configurations loaded from environment
        self._resource_plugin_configs: Dict[str, Dict[str, Any]] = {}

        # Mapping from resource type name to plugin name
        self._type_to_plugin: Dict[str, str] = {}

    # Registration methods

    def register_resource_plugin(self, plugin_class: Type[ResourcePlugin]) -> None:
        """
        Register a resource plugin class.

        Args:
            plugin_class: The ResourcePlugin subclass to register

        Raises:
            ValueError: If the schema is invalid or the resource type is
                already claimed by another plugin
        """
        # Create temporary instance to get name/version (only once at registration)
        temp_instance = plugin_class()
        name = temp_instance.name
        version = temp_instance.version
        type_name = temp_instance.type_name

        valid, error = validate_resource_schema(temp_instance.schema)
        if not valid:
            raise ValueError(f"Resource plugin '{name}' has an invalid schema: {error}")

        existing = self._type_to_plugin.get(type_name)
        if existing and existing != name:
            raise ValueError(
                f"Resource type '{type_name}' is already claimed by "
                f"plugin '{existing}'. Cannot register '{name}'."
            )

        if name in self._resource_plugins:
            logger.warning(f"Overwriting existing resource plugin: {name}")
            self._resource_instances.pop(name, None)

        self._resource_plugins[name] = plugin_class
        self._resource_plugin_info[name] = {
            "name": name,
            "version": version,
            "type_name": type_name,
            "supports_import": temp_instance.supports_import,
        }
        # Load plugin config from environment
        self._resource_plugin_configs[name] = plugin_class.load_config_from_env()
        self._type_to_plugin[type_name] = name

        logger.info(f"Registered resource plugin: {name} v{version} ({type_name})")

    # Instantiation methods

    async def get_resource_plugin(
        self,
        name: str,
        client: CloudflareClient,
        config: Optional[Dict[str, Any]] = None,
    ) -> ResourcePlugin:
        """
        Get an initialized resource plugin instance.

        Args:
            name: The plugin name to retrieve
            client: The shared API client handed to initialize()
            config: Optional configuration to pass to initialize()

        Returns:
            An initialized ResourcePlugin instance

        Raises:
            ValueError: If the plugin name is not registered
            TypeError: If ``client`` is not a CloudflareClient
        """
        if name not in self._resource_plugins:
            available = ", ".join(self._resource_plugins.keys()) or "none"
            raise ValueError(
                f"Unknown resource plugin: {name}. Available plugins: {available}"
            )

        if name not in self._resource_instances:
            plugin = self._resource_plugins[name]()
            plugin_config = dict(self._resource_plugin_configs.get(name, {}))
            plugin_config.update(config or {})
            await plugin.initialize(client, plugin_config)
            self._resource_instances[name] = plugin
            logger.info(f"Initialized resource plugin: {name}")

        return self._resource_instances[name]

    async def get_plugin_for_type(
        self,
        type_name: str,
        client: CloudflareClient,
        config: Optional[Dict[str, Any]] = None,
    ) -> Optional[ResourcePlugin]:
        """
        Get the initialized plugin that manages a resource type.

        Returns:
            A ResourcePlugin instance, or None if no plugin handles the type
        """
        name = self._type_to_plugin.get(type_name)
        if name is None:
            return None
        return await self.get_resource_plugin(name, client, config)

    # Discovery methods

    def list_resource_plugins(self) -> List[str]:
        """List all registered resource plugin names."""
        return list(self._resource_plugins.keys())

    def list_resource_types(self) -> List[str]:
        """List all resource type names handled by registered plugins."""
        return list(self._type_to_plugin.keys())

    def has_resource_plugin(self, name: str) -> bool:
        """Check if a resource plugin is registered."""
        return name in self._resource_plugins

    def has_plugin_for_type(self, type_name: str) -> bool:
        """Check if any plugin handles the given resource type."""
        return type_name in self._type_to_plugin

    def get_resource_plugin_info(self, name: str) -> Optional[Dict[str, Any]]:
        """
        Get information about a registered resource plugin.

        Args:
            name: The plugin name

        Returns:
            Dictionary with 'name', 'version', 'type_name' and
            'supports_import', or None if not found
        """
        return self._resource_plugin_info.get(name)

    def get_resource_plugin_config(self, name: str) -> Dict[str, Any]:
        """
        Get configuration for a resource plugin.

        Args:
            name: The plugin name

        Returns:
            Dictionary of configuration values, or empty dict if not found
        """
        return self._resource_plugin_configs.get(name, {})


# Global registry instance
_registry: Optional[PluginRegistry] = None


def get_registry() -> PluginRegistry:
    """Get the global plugin registry singleton."""
    global _registry
    if _registry is None:
        _registry = PluginRegistry()
    return _registry


def reset_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _registry
    _registry = None


def register_builtin_plugins() -> None:
    """
    Register all built-in resource plugins and discover additional ones
    via entry points.

    This function is called during provider startup.
    """
    registry = get_registry()

    from plugins.resources.queue_consumer import QueueConsumerPlugin
    from plugins.resources.r2_event_notification import R2EventNotificationPlugin
    from plugins.resources.vectorize_index import VectorizeIndexPlugin
    from plugins.resources.workers_script import WorkersScriptPlugin

    for plugin_class in (
        VectorizeIndexPlugin,
        QueueConsumerPlugin,
        WorkersScriptPlugin,
        R2EventNotificationPlugin,
    ):
        registry.register_resource_plugin(plugin_class)

    # Discover and register third-party resource plugins via entry points
    discovered = entry_points(group=ENTRY_POINT_GROUP)
    for ep in discovered:
        try:
            plugin_class = ep.load()
            registry.register_resource_plugin(plugin_class)
        except Exception as e:
            logger.warning(f"Could not load resource plugin {ep.name}: {e}")
