"""
Rule-Set Reconciler - Converge R2 notification rules onto a desired set.

The R2 API has neither an atomic "replace all rules" nor a "patch one rule"
primitive: rules are immutable, addressed by a server-assigned ID, and the
listing endpoint is eventually consistent after a write. Reconciliation is
therefore done in three steps:

1. plan_rule_changes() diffs the previously applied rules against the desired
   rules and decides which rule IDs to delete and which rules to create.
2. RuleSetReconciler.apply() issues at most one bulk delete and one bulk
   create.
3. RuleSetReconciler.wait_for_convergence() polls the configuration until
   the remote rule set equals the desired one, or the deadline passes.

Rules created out of band are never considered: deletions are derived from
the previously applied rules only.
"""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from client import CloudflareClient
from errors import ConvergenceTimeoutError, NotFoundError, RequestError
from plugins.resources.r2_event_notification.model import (
    R2EventNotificationModel,
    R2EventNotificationRule,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0


@dataclass
class RulePlan:
    """Remote writes needed to move from the applied rules to the desired rules."""

    rule_ids_to_delete: List[str] = field(default_factory=list)
    rules_to_add: List[R2EventNotificationRule] = field(default_factory=list)
    rules_to_keep: List[R2EventNotificationRule] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.rule_ids_to_delete or self.rules_to_add)

    @property
    def summary(self) -> Dict[str, int]:
        return {
            "keep": len(self.rules_to_keep),
            "delete": len(self.rule_ids_to_delete),
            "add": len(self.rules_to_add),
        }


def rules_equal(a: R2EventNotificationRule, b: R2EventNotificationRule) -> bool:
    """Compare rule content: prefix, suffix and the action set."""
    return a.content_key() == b.content_key()


def rule_sets_equal(
    a: Sequence[R2EventNotificationRule], b: Sequence[R2EventNotificationRule]
) -> bool:
    """Compare two rule collections by content, ignoring IDs and timestamps."""
    return Counter(r.content_key() for r in a) == Counter(r.content_key() for r in b)


def plan_rule_changes(
    prior_rules: Sequence[R2EventNotificationRule],
    desired_rules: Sequence[R2EventNotificationRule],
) -> RulePlan:
    """
    Diff previously applied rules against desired rules.

    Args:
        prior_rules: Rules from the last known-good state, carrying rule IDs
        desired_rules: Rules from the new configuration; a rule ID means
            "keep, possibly modified", no rule ID means "new"

    Returns:
        RulePlan. A rule is deleted only when its ID is no longer desired or
        its content changed; a changed rule is deleted and re-created since
        rules cannot be modified in place. Rule IDs unknown to the prior
        state are treated as new rules.
    """
    prior_by_id: Dict[str, R2EventNotificationRule] = {}
    for rule in prior_rules:
        if rule.has_id:
            prior_by_id[rule.rule_id] = rule

    desired_by_id: Dict[str, R2EventNotificationRule] = {}
    unmatched: List[R2EventNotificationRule] = []
    for rule in desired_rules:
        if rule.has_id and rule.rule_id in prior_by_id:
            desired_by_id[rule.rule_id] = rule
        else:
            # No ID, or an ID the prior state does not know: a new rule
            unmatched.append(rule)

    # A new rule whose content equals an applied rule nobody else claims is
    # that rule; adopt its ID instead of deleting and re-creating it.
    unclaimed = {
        rule_id: rule
        for rule_id, rule in prior_by_id.items()
        if rule_id not in desired_by_id
    }
    new_rules: List[R2EventNotificationRule] = []
    for rule in unmatched:
        match = next(
            (rid for rid, prior in unclaimed.items() if rules_equal(prior, rule)),
            None,
        )
        if match is None:
            new_rules.append(rule)
        else:
            desired_by_id[match] = unclaimed.pop(match)

    plan = RulePlan()
    for rule_id in prior_by_id:
        if rule_id not in desired_by_id:
            plan.rule_ids_to_delete.append(rule_id)

    changed: List[R2EventNotificationRule] = []
    for rule_id, new_rule in desired_by_id.items():
        old_rule = prior_by_id[rule_id]
        if not rules_equal(old_rule, new_rule):
            plan.rule_ids_to_delete.append(rule_id)
            changed.append(new_rule)
        else:
            plan.rules_to_keep.append(old_rule)

    plan.rules_to_add = new_rules + changed
    return plan


class RuleSetReconciler:
    """
    Applies a RulePlan and waits until the remote configuration reflects it.

    All calls share a single deadline expressed in event-loop time, so the
    writes and the convergence poll together never outlive the operation's
    timeout budget.
    """

    def __init__(
        self, client: CloudflareClient, poll_interval: float = DEFAULT_POLL_INTERVAL
    ):
        self.client = client
        self.poll_interval = poll_interval

    @staticmethod
    def deadline_after(timeout: float) -> float:
        return asyncio.get_running_loop().time() + timeout

    @staticmethod
    def _remaining(deadline: float) -> float:
        return deadline - asyncio.get_running_loop().time()

    async def _before_deadline(self, coro, deadline: float, what: str) -> Any:
        remaining = self._remaining(deadline)
        if remaining <= 0:
            coro.close()
            raise RequestError(f"{what} was not attempted", "operation deadline passed")
        try:
            return await asyncio.wait_for(coro, timeout=remaining)
        except asyncio.TimeoutError as e:
            raise RequestError(
                f"{what} timed out", "operation deadline passed before the API answered"
            ) from e

    async def apply(
        self, model: R2EventNotificationModel, plan: RulePlan, deadline: float
    ) -> None:
        """
        Issue the bulk delete and bulk create calls of ``plan``.

        Either call is skipped when it has nothing to do.

        Raises:
            RequestError: If a call fails or does not finish before the deadline.
        """
        logger.info(
            f"Reconciling rules for bucket {model.bucket_name} / queue "
            f"{model.queue_id}: {plan.summary}"
        )

        if plan.rule_ids_to_delete:
            await self._before_deadline(
                self.client.delete(
                    model.queue_path, json_body={"ruleIds": plan.rule_ids_to_delete}
                ),
                deadline,
                "deleting rules",
            )
            logger.info(f"Deleted rules: {', '.join(plan.rule_ids_to_delete)}")

        if plan.rules_to_add:
            await self._before_deadline(
                self.client.put(
                    model.queue_path,
                    json_body={
                        "rules": [rule.to_api_payload() for rule in plan.rules_to_add]
                    },
                ),
                deadline,
                "updating r2 event notifications",
            )
            logger.info(f"Submitted {len(plan.rules_to_add)} rule(s)")

    async def get_queue(self, model: R2EventNotificationModel) -> Optional[Dict[str, Any]]:
        """
        Fetch the queue entry of this configuration.

        Returns:
            The queue entry, or None if the bucket has no configuration or no
            entry for the queue.

        Raises:
            RequestError: If the configuration cannot be fetched.
        """
        try:
            configuration = await self.client.get(model.configuration_path)
        except NotFoundError:
            return None
        return model.find_queue(configuration)

    async def wait_for_convergence(
        self, model: R2EventNotificationModel, deadline: float
    ) -> Dict[str, Any]:
        """
        Poll until the remote rules equal ``model.rules``.

        Returns:
            The converged queue entry. Rule IDs and timestamps from earlier,
            non-matching observations are discarded.

        Raises:
            ConvergenceTimeoutError: If the deadline passes first.
            RequestError: If reading the configuration fails.
        """
        attempts = 0
        while True:
            remaining = self._remaining(deadline)
            if remaining <= 0:
                raise ConvergenceTimeoutError(
                    "Timed out waiting for R2 event notification to become available",
                    f"The resource did not become available within the allotted "
                    f"time ({attempts} check(s))",
                )

            try:
                queue = await asyncio.wait_for(self.get_queue(model), timeout=remaining)
            except asyncio.TimeoutError as e:
                raise ConvergenceTimeoutError(
                    "Timed out waiting for R2 event notification to become available",
                    "The resource did not become available within the allotted time",
                ) from e
            attempts += 1

            if queue is None:
                if not model.rules:
                    return {"queueId": model.queue_id, "rules": []}
                logger.debug(
                    f"Queue {model.queue_id} not yet visible on bucket "
                    f"{model.bucket_name}, waiting {self.poll_interval}s..."
                )
            else:
                observed = [
                    R2EventNotificationRule.from_api(rule)
                    for rule in queue.get("rules") or []
                ]
                if rule_sets_equal(observed, model.rules):
                    logger.info(
                        f"Rules for queue {model.queue_id} converged after "
                        f"{attempts} check(s)"
                    )
                    return queue
                logger.debug(
                    f"Queue {model.queue_id} shows {len(observed)} rule(s), "
                    f"expecting {len(model.rules)}, waiting {self.poll_interval}s..."
                )

            remaining = self._remaining(deadline)
            if remaining > 0:
                await asyncio.sleep(min(self.poll_interval, remaining))
