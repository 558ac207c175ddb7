"""
Vectorize Index Resource Plugin.

Vectorize indexes cannot be modified after creation: every attribute that
shapes the index forces a replacement and update is rejected outright.
"""

import logging
from typing import Any, Dict

from errors import UnsupportedOperationError
from plugins.base import ResourceContext
from plugins.resources.base import ResourcePlugin, parse_import_id, parse_model
from plugins.resources.vectorize_index.model import RESOURCE_SCHEMA, VectorizeIndexModel

logger = logging.getLogger(__name__)

IMPORT_ID_FORMAT = "<account_id>/<name>"


class VectorizeIndexPlugin(ResourcePlugin):
    """Resource plugin for Vectorize vector indexes."""

    requires_replace = (
        "account_id",
        "name",
        "dimensions",
        "metric",
        "metadata_indexes",
    )

    @property
    def name(self) -> str:
        return "vectorize_index"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def type_name(self) -> str:
        return "cloudflare-extended_vectorize_index"

    @property
    def schema(self) -> Dict[str, Any]:
        return RESOURCE_SCHEMA

    async def create(self, ctx: ResourceContext) -> Dict[str, Any]:
        data = parse_model(VectorizeIndexModel, ctx.desired, "vectorize index")

        result = await self.client.post(data.indexes_path, json_body=data.to_create_payload())
        data = data.with_api_result(result or {})
        logger.info(f"Created vectorize index {data.name}")

        for payload in data.metadata_index_payloads():
            await self.client.post(
                f"{data.index_path}/metadata_index/create", json_body=payload
            )
            logger.info(
                f"Created metadata index {payload['propertyName']} "
                f"({payload['indexType']}) on {data.name}"
            )

        return data.to_state()

    async def read(self, ctx: ResourceContext) -> Dict[str, Any]:
        data = parse_model(VectorizeIndexModel, ctx.prior, "vectorize index")

        result = await self.client.get(data.index_path)
        data = data.with_api_result(result or {})

        listing = await self.client.get(f"{data.index_path}/metadata_index/list")
        indexes = (listing or {}).get("metadataIndexes") or []
        data.metadata_indexes = {
            index["propertyName"]: index["indexType"] for index in indexes
        } or None

        return data.to_state()

    async def update(self, ctx: ResourceContext) -> Dict[str, Any]:
        raise UnsupportedOperationError(
            "failed to update Vectorize database", "Not implemented"
        )

    async def delete(self, ctx: ResourceContext) -> None:
        data = parse_model(VectorizeIndexModel, ctx.prior, "vectorize index")

        await self.client.delete(data.index_path)
        logger.info(f"Deleted vectorize index {data.id or data.name}")

    async def import_state(self, ctx: ResourceContext) -> Dict[str, Any]:
        account_id, name = parse_import_id(ctx.import_id, IMPORT_ID_FORMAT)
        return {"account_id": account_id, "id": name, "name": name}
