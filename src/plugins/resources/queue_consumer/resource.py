"""
Queue Consumer Resource Plugin.

Binds a Worker (or an HTTP pull consumer) to a queue. Updates send only the
attributes that changed since the prior state.
"""

import logging
from typing import Any, Dict

from errors import NotFoundError
from plugins.base import ResourceContext
from plugins.resources.base import ResourcePlugin, parse_model
from plugins.resources.queue_consumer.model import (
    COMPUTED_OPTIONAL_FIELDS,
    RESOURCE_SCHEMA,
    QueueConsumerModel,
)

logger = logging.getLogger(__name__)


class QueueConsumerPlugin(ResourcePlugin):
    """Resource plugin for queue consumers."""

    requires_replace = ("account_id", "queue_id")

    @property
    def name(self) -> str:
        return "queue_consumer"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def type_name(self) -> str:
        return "cloudflare-extended_queue_consumer"

    @property
    def schema(self) -> Dict[str, Any]:
        return RESOURCE_SCHEMA

    async def create(self, ctx: ResourceContext) -> Dict[str, Any]:
        data = parse_model(QueueConsumerModel, ctx.desired, "queue consumer")

        result = await self.client.post(
            data.consumers_path, json_body=data.to_api_payload()
        )
        data = data.with_api_result(result or {})
        logger.info(f"Created consumer {data.consumer_id} on queue {data.queue_id}")

        return data.to_state()

    async def read(self, ctx: ResourceContext) -> Dict[str, Any]:
        data = parse_model(QueueConsumerModel, ctx.prior, "queue consumer")

        consumers = await self.client.get(data.consumers_path) or []
        for consumer in consumers:
            if data.matches(consumer):
                return data.with_api_result(consumer).to_state()

        raise NotFoundError(
            "could not read queue consumer",
            f"no consumer {data.consumer_id or data.script_name} on queue {data.queue_id}",
        )

    async def update(self, ctx: ResourceContext) -> Dict[str, Any]:
        data = parse_model(QueueConsumerModel, ctx.desired, "queue consumer")
        state = parse_model(QueueConsumerModel, ctx.prior, "queue consumer")

        payload = data.to_update_payload(state)
        logger.debug(f"Updating consumer {state.consumer_id}: {sorted(payload)}")

        result = await self.client.put(state.consumer_path, json_body=payload)
        data = data.model_copy(
            update={
                field: getattr(state, field)
                for field in ("consumer_id", "queue_name", "created_on", *COMPUTED_OPTIONAL_FIELDS)
                if getattr(data, field) is None
            }
        )

        return data.with_api_result(result or {}).to_state()

    async def delete(self, ctx: ResourceContext) -> None:
        data = parse_model(QueueConsumerModel, ctx.prior, "queue consumer")

        await self.client.delete(data.consumer_path)
        logger.info(f"Deleted consumer {data.consumer_id} from queue {data.queue_id}")
