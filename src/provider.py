"""
Provider - Host-facing entry point for resource operations.

The host (an infrastructure-as-code orchestrator) calls one coroutine per
lifecycle operation. The provider resolves the plugin for the resource type,
runs the operation and turns every failure into diagnostics instead of
raising.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from client import CloudflareClient
from config import Config, get_config
from errors import NotFoundError, ProviderError, ValidationError
from plugins.base import Operation, ResourceContext, ResourceResponse
from plugins.registry import PluginRegistry, get_registry, register_builtin_plugins
from plugins.resources.base import ResourcePlugin

logger = logging.getLogger(__name__)


class Provider:
    """Dispatches host operations to resource plugins."""

    def __init__(
        self,
        config: Optional[Config] = None,
        client: Optional[CloudflareClient] = None,
        registry: Optional[PluginRegistry] = None,
    ):
        self.config = config or get_config()
        self.client = client
        self.registry = registry
        self.initialized = False

    async def initialize(self) -> None:
        """Build the shared API client and register plugins."""
        if self.initialized:
            return

        logger.info("Initializing Cloudflare extended provider")

        if self.registry is None:
            register_builtin_plugins()
            self.registry = get_registry()

        if self.client is None:
            self.client = CloudflareClient(self.config.cloudflare)

        self.initialized = True
        logger.info(
            f"Provider ready, resource types: {', '.join(self.resource_types())}"
        )

    def resource_types(self) -> List[str]:
        """Resource type names this provider serves."""
        return [info["type_name"] for info in self.describe_resource_types()]

    def describe_resource_types(self) -> List[Dict[str, Any]]:
        """Name, version and import support of every served resource type."""
        if self.registry is None:
            return []
        enabled = self.config.plugins.enabled_resource_plugins
        return [
            self.registry.get_resource_plugin_info(name)
            for name in self.registry.list_resource_plugins()
            if not enabled or name in enabled
        ]

    # Lifecycle operations

    async def create(
        self,
        type_name: str,
        desired: Dict[str, Any],
        timeouts: Optional[Dict[str, float]] = None,
    ) -> ResourceResponse:
        ctx = ResourceContext(
            type_name=type_name,
            operation=Operation.CREATE,
            desired=desired,
            timeouts=dict(timeouts or {}),
        )

        async def run(plugin: ResourcePlugin, response: ResourceResponse) -> None:
            self._validate(plugin, desired)
            response.state = await plugin.create(ctx)

        return await self._dispatch(ctx, run)

    async def read(self, type_name: str, prior: Dict[str, Any]) -> ResourceResponse:
        ctx = ResourceContext(type_name=type_name, operation=Operation.READ, prior=prior)

        async def run(plugin: ResourcePlugin, response: ResourceResponse) -> None:
            try:
                response.state = await plugin.read(ctx)
            except NotFoundError as e:
                logger.warning(
                    f"{type_name} no longer exists, removing from state: {e}"
                )
                response.removed = True

        return await self._dispatch(ctx, run)

    async def update(
        self,
        type_name: str,
        desired: Dict[str, Any],
        prior: Dict[str, Any],
        timeouts: Optional[Dict[str, float]] = None,
    ) -> ResourceResponse:
        ctx = ResourceContext(
            type_name=type_name,
            operation=Operation.UPDATE,
            desired=desired,
            prior=prior,
            timeouts=dict(timeouts or {}),
        )

        async def run(plugin: ResourcePlugin, response: ResourceResponse) -> None:
            self._validate(plugin, desired)

            replace = plugin.plan_replacement(desired, prior)
            if replace:
                response.requires_replace = replace
                response.add_error(
                    "resource must be replaced",
                    f"{', '.join(replace)} cannot be changed in place; "
                    f"destroy and recreate the resource",
                    attribute=replace[0],
                )
                return

            response.state = await plugin.update(ctx)

        return await self._dispatch(ctx, run)

    async def delete(self, type_name: str, prior: Dict[str, Any]) -> ResourceResponse:
        ctx = ResourceContext(type_name=type_name, operation=Operation.DELETE, prior=prior)

        async def run(plugin: ResourcePlugin, response: ResourceResponse) -> None:
            await plugin.delete(ctx)
            response.removed = True

        return await self._dispatch(ctx, run)

    async def import_state(self, type_name: str, import_id: str) -> ResourceResponse:
        ctx = ResourceContext(
            type_name=type_name, operation=Operation.IMPORT, import_id=import_id
        )

        async def run(plugin: ResourcePlugin, response: ResourceResponse) -> None:
            response.state = await plugin.import_state(ctx)

        return await self._dispatch(ctx, run)

    # Internals

    @staticmethod
    def _validate(plugin: ResourcePlugin, desired: Dict[str, Any]) -> None:
        valid, error = plugin.validate_attributes(desired)
        if not valid:
            raise ValidationError(f"invalid {plugin.type_name} configuration", error)

    async def _get_plugin(self, type_name: str) -> Optional[ResourcePlugin]:
        for info in self.describe_resource_types():
            if info["type_name"] == type_name:
                # PLUGIN_CONFIGS overrides what the plugin loads from the environment
                return await self.registry.get_resource_plugin(
                    info["name"],
                    self.client,
                    self.config.plugins.get_plugin_config(info["name"]),
                )
        return None

    async def _dispatch(
        self,
        ctx: ResourceContext,
        run: Callable[[ResourcePlugin, ResourceResponse], Awaitable[None]],
    ) -> ResourceResponse:
        """
        Run one operation and collect its outcome.

        Any error aborts the operation; the response then carries no state.
        """
        response = ResourceResponse(operation=ctx.operation, type_name=ctx.type_name)

        try:
            await self.initialize()
            plugin = await self._get_plugin(ctx.type_name)
            if plugin is None:
                available = ", ".join(self.resource_types()) or "none"
                response.add_error(
                    f"unknown resource type {ctx.type_name}",
                    f"Available resource types: {available}",
                )
                return response

            logger.info(f"{ctx.operation.value} {ctx.type_name}")
            await run(plugin, response)
        except ProviderError as e:
            logger.error(f"{ctx.operation.value} {ctx.type_name} failed: {e}")
            response.state = None
            response.add_error(e.summary, e.detail)
        except Exception as e:
            logger.error(
                f"Unexpected error during {ctx.operation.value} {ctx.type_name}: {e}",
                exc_info=True,
            )
            response.state = None
            response.add_error(f"unexpected error during {ctx.operation.value}", str(e))

        return response
