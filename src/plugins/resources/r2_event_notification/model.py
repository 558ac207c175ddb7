"""
Attribute model for R2 event notification configurations.

A configuration binds an R2 bucket to a queue through a set of rules. Rules
are immutable on the remote side and identified by a server-assigned
``rule_id``; content (prefix, suffix, action set) is what the operator
declares.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


class RuleAction(str, Enum):
    """R2 object actions that can trigger a notification."""

    PUT_OBJECT = "PutObject"
    COPY_OBJECT = "CopyObject"
    DELETE_OBJECT = "DeleteObject"
    COMPLETE_MULTIPART_UPLOAD = "CompleteMultipartUpload"
    LIFECYCLE_DELETION = "LifecycleDeletion"


RULE_ACTIONS = [action.value for action in RuleAction]

DEFAULT_TIMEOUT = 300.0


def normalize_queue_id(queue_id: Optional[str]) -> str:
    """Queue IDs are returned with hyphens by some endpoints and without by others."""
    return (queue_id or "").replace("-", "")


class R2EventNotificationRule(BaseModel):
    """A single notification rule."""

    rule_id: Optional[str] = None
    prefix: Optional[str] = None
    suffix: Optional[str] = None
    actions: List[str] = Field(default_factory=list)
    created_at: Optional[str] = None

    @field_validator("actions")
    @classmethod
    def dedupe_actions(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(v))

    @property
    def has_id(self) -> bool:
        return bool(self.rule_id)

    def content_key(self) -> Tuple[str, str, Tuple[str, ...]]:
        """
        Identity of the rule's content.

        A missing prefix or suffix equals the empty string and the action set
        is compared without regard to order or duplicates.
        """
        return (self.prefix or "", self.suffix or "", tuple(sorted(set(self.actions))))

    def to_api_payload(self) -> Dict[str, Any]:
        return {
            "prefix": self.prefix or "",
            "suffix": self.suffix or "",
            "actions": list(self.actions),
        }

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "R2EventNotificationRule":
        return cls(
            rule_id=data.get("ruleId"),
            prefix=data.get("prefix", ""),
            suffix=data.get("suffix", ""),
            actions=data.get("actions") or [],
            created_at=data.get("createdAt"),
        )


class R2EventNotificationTimeouts(BaseModel):
    create: Optional[float] = None
    update: Optional[float] = None


class R2EventNotificationModel(BaseModel):
    """Desired or observed state of one bucket/queue notification configuration."""

    account_id: str
    bucket_name: str
    queue_id: str
    queue_name: Optional[str] = None
    description: Optional[str] = None
    rules: List[R2EventNotificationRule] = Field(default_factory=list)
    timeouts: Optional[R2EventNotificationTimeouts] = None

    @field_validator("rules")
    @classmethod
    def dedupe_rules(
        cls, v: List[R2EventNotificationRule]
    ) -> List[R2EventNotificationRule]:
        # Unique by rule_id once assigned, by content before that
        seen = set()
        unique = []
        for rule in v:
            key = ("id", rule.rule_id) if rule.has_id else ("content", rule.content_key())
            if key not in seen:
                seen.add(key)
                unique.append(rule)
        return unique

    @property
    def configuration_path(self) -> str:
        return (
            f"accounts/{self.account_id}/event_notifications/r2/"
            f"{self.bucket_name}/configuration"
        )

    @property
    def queue_path(self) -> str:
        return f"{self.configuration_path}/queues/{self.queue_id}"

    def to_state(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def find_queue(self, configuration: Any) -> Optional[Dict[str, Any]]:
        """Pick this configuration's queue entry out of a bucket configuration."""
        if not isinstance(configuration, dict):
            return None
        wanted = normalize_queue_id(self.queue_id)
        for queue in configuration.get("queues") or []:
            if normalize_queue_id(queue.get("queueId")) == wanted:
                return queue
        return None


RESOURCE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["account_id", "bucket_name", "queue_id", "rules"],
    "properties": {
        "account_id": {"type": "string", "minLength": 1},
        "bucket_name": {"type": "string", "minLength": 1},
        "queue_id": {"type": "string", "minLength": 1},
        "queue_name": {"type": ["string", "null"]},
        "description": {"type": ["string", "null"]},
        "rules": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["actions"],
                "properties": {
                    "rule_id": {"type": ["string", "null"]},
                    "prefix": {"type": ["string", "null"]},
                    "suffix": {"type": ["string", "null"]},
                    "created_at": {"type": ["string", "null"]},
                    "actions": {
                        "type": "array",
                        "minItems": 1,
                        "items": {"type": "string", "enum": RULE_ACTIONS},
                    },
                },
                "additionalProperties": False,
            },
        },
        "timeouts": {
            "type": ["object", "null"],
            "properties": {
                "create": {"type": ["number", "null"], "exclusiveMinimum": 0},
                "update": {"type": ["number", "null"], "exclusiveMinimum": 0},
            },
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
}
