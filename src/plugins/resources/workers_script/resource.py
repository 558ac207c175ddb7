"""
Workers Script Resource Plugin.

The scripts API has no partial update: create and update both re-upload
every part together with the full metadata.
"""

import logging
from typing import Any, Dict

from plugins.base import ResourceContext
from plugins.resources.base import ResourcePlugin, parse_import_id, parse_model
from plugins.resources.workers_script.model import RESOURCE_SCHEMA, WorkersScriptModel

logger = logging.getLogger(__name__)

IMPORT_ID_FORMAT = "<account_id>/<script_name>"


class WorkersScriptPlugin(ResourcePlugin):
    """Resource plugin for Workers script deployments."""

    requires_replace = ("account_id", "script_name")

    @property
    def name(self) -> str:
        return "workers_script"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def type_name(self) -> str:
        return "cloudflare-extended_workers_script"

    @property
    def schema(self) -> Dict[str, Any]:
        return RESOURCE_SCHEMA

    async def create(self, ctx: ResourceContext) -> Dict[str, Any]:
        data = parse_model(WorkersScriptModel, ctx.desired, "workers script")
        data = await self._upload(data)
        logger.info(f"Uploaded workers script {data.script_name} ({len(data.parts)} parts)")
        return data.to_state()

    async def read(self, ctx: ResourceContext) -> Dict[str, Any]:
        data = parse_model(WorkersScriptModel, ctx.prior, "workers script")

        settings = await self.client.get(data.settings_path)
        return data.with_settings(settings or {}).to_state()

    async def update(self, ctx: ResourceContext) -> Dict[str, Any]:
        data = parse_model(WorkersScriptModel, ctx.desired, "workers script")
        data = await self._upload(data)
        logger.info(f"Re-uploaded workers script {data.script_name}")
        return data.to_state()

    async def delete(self, ctx: ResourceContext) -> None:
        data = parse_model(WorkersScriptModel, ctx.prior, "workers script")

        await self.client.delete(data.script_path)
        logger.info(f"Deleted workers script {data.script_name}")

    async def import_state(self, ctx: ResourceContext) -> Dict[str, Any]:
        account_id, script_name = parse_import_id(ctx.import_id, IMPORT_ID_FORMAT)
        data = WorkersScriptModel(
            id=script_name, account_id=account_id, script_name=script_name
        )

        settings = await self.client.get(data.settings_path)
        return data.with_settings(settings or {}).to_state()

    async def _upload(self, data: WorkersScriptModel) -> WorkersScriptModel:
        body = data.to_multipart()
        result = await self.client.put(data.script_path, data=body)
        return data.with_api_result(result or {})
