"""
R2 Event Notification Resource Plugin.

Manages the notification rules binding an R2 bucket to a queue. Create and
update go through the rule-set reconciler and only return state once the
remote configuration shows the desired rules.
"""

import logging
import os
from typing import Any, Dict, Optional

from client import CloudflareClient
from errors import NotFoundError
from plugins.base import ResourceContext
from plugins.resources.base import ResourcePlugin, parse_model
from plugins.resources.r2_event_notification.model import (
    DEFAULT_TIMEOUT,
    RESOURCE_SCHEMA,
    R2EventNotificationModel,
    R2EventNotificationRule,
)
from plugins.resources.r2_event_notification.reconciler import (
    DEFAULT_POLL_INTERVAL,
    RuleSetReconciler,
    plan_rule_changes,
)

logger = logging.getLogger(__name__)


class R2EventNotificationPlugin(ResourcePlugin):
    """Resource plugin for R2 bucket event notification rules."""

    requires_replace = ("account_id", "bucket_name", "queue_id")

    def __init__(self):
        super().__init__()
        self.poll_interval: float = DEFAULT_POLL_INTERVAL
        self.default_timeout: float = DEFAULT_TIMEOUT
        self.reconciler: Optional[RuleSetReconciler] = None

    @property
    def name(self) -> str:
        return "r2_event_notification"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def type_name(self) -> str:
        return "cloudflare-extended_r2_event_notification"

    @property
    def schema(self) -> Dict[str, Any]:
        return RESOURCE_SCHEMA

    @classmethod
    def load_config_from_env(cls) -> Dict[str, Any]:
        """Load R2 event notification settings from environment variables."""
        return {
            "poll_interval": float(
                os.getenv("R2_EVENT_NOTIFICATION_POLL_INTERVAL", str(DEFAULT_POLL_INTERVAL))
            ),
            "default_timeout": float(
                os.getenv("R2_EVENT_NOTIFICATION_TIMEOUT", str(DEFAULT_TIMEOUT))
            ),
        }

    async def initialize(
        self, client: CloudflareClient, config: Optional[Dict[str, Any]] = None
    ) -> None:
        await super().initialize(client, config)
        self.poll_interval = float(self.config.get("poll_interval", self.poll_interval))
        self.default_timeout = float(
            self.config.get("default_timeout", self.default_timeout)
        )
        self.reconciler = RuleSetReconciler(client, poll_interval=self.poll_interval)

        logger.debug(
            f"R2 event notification plugin initialized: "
            f"poll_interval={self.poll_interval}s, timeout={self.default_timeout}s"
        )

    async def create(self, ctx: ResourceContext) -> Dict[str, Any]:
        data = parse_model(R2EventNotificationModel, ctx.desired, "r2 event notification")
        deadline = self.reconciler.deadline_after(ctx.timeout_for(self.default_timeout))

        plan = plan_rule_changes([], data.rules)
        await self.reconciler.apply(data, plan, deadline)

        queue = await self.reconciler.wait_for_convergence(data, deadline)
        return self._converged_state(data, queue)

    async def read(self, ctx: ResourceContext) -> Dict[str, Any]:
        data = parse_model(R2EventNotificationModel, ctx.prior, "r2 event notification")

        queue = await self.reconciler.get_queue(data)
        if queue is None:
            raise NotFoundError(
                "could not read r2 event notification",
                f"could not find queue {data.queue_id} associated with bucket "
                f"{data.bucket_name}",
            )

        return self._converged_state(data, queue)

    async def update(self, ctx: ResourceContext) -> Dict[str, Any]:
        data = parse_model(R2EventNotificationModel, ctx.desired, "r2 event notification")
        state = parse_model(R2EventNotificationModel, ctx.prior, "r2 event notification")
        deadline = self.reconciler.deadline_after(ctx.timeout_for(self.default_timeout))

        plan = plan_rule_changes(state.rules, data.rules)
        await self.reconciler.apply(data, plan, deadline)

        queue = await self.reconciler.wait_for_convergence(data, deadline)
        return self._converged_state(data, queue)

    async def delete(self, ctx: ResourceContext) -> None:
        data = parse_model(R2EventNotificationModel, ctx.prior, "r2 event notification")

        await self.client.delete(data.queue_path)
        logger.info(
            f"Deleted event notification configuration for bucket "
            f"{data.bucket_name} / queue {data.queue_id}"
        )

    @staticmethod
    def _converged_state(
        data: R2EventNotificationModel, queue: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Take rule IDs, timestamps and the queue name from the remote entry."""
        observed = data.model_copy(
            update={
                "rules": [
                    R2EventNotificationRule.from_api(rule)
                    for rule in queue.get("rules") or []
                ],
                "queue_name": queue.get("queueName", data.queue_name),
            }
        )
        return observed.to_state()
