"""Attribute model for queue consumers."""

from typing import Any, Dict, Optional

from pydantic import BaseModel

CONSUMER_TYPES = ["worker", "http_pull"]

# Attributes sent in request bodies; the rest are path parameters or computed
API_FIELDS = ("script_name", "dead_letter_queue", "environment", "type", "settings")

# Sent on every update even when unchanged
ALWAYS_SENT_FIELDS = ("type",)

# Server fills these in when unset, so omitting them is not a clear
COMPUTED_OPTIONAL_FIELDS = ("environment", "settings")


class QueueConsumerSettings(BaseModel):
    batch_size: Optional[float] = None
    max_retries: Optional[float] = None
    max_wait_time_ms: Optional[float] = None


class QueueConsumerModel(BaseModel):
    account_id: str
    queue_id: str
    consumer_id: Optional[str] = None
    type: Optional[str] = None
    script_name: Optional[str] = None
    dead_letter_queue: Optional[str] = None
    environment: Optional[str] = None
    queue_name: Optional[str] = None
    created_on: Optional[str] = None
    settings: Optional[QueueConsumerSettings] = None

    @property
    def consumers_path(self) -> str:
        return f"accounts/{self.account_id}/queues/{self.queue_id}/consumers"

    @property
    def consumer_path(self) -> str:
        return f"{self.consumers_path}/{self.consumer_id}"

    def _api_values(self) -> Dict[str, Any]:
        values = self.model_dump(include=set(API_FIELDS), exclude_none=True)
        if "settings" in values and not values["settings"]:
            del values["settings"]
        return values

    def to_api_payload(self) -> Dict[str, Any]:
        """Full request body for creating the consumer."""
        return self._api_values()

    def to_update_payload(self, state: "QueueConsumerModel") -> Dict[str, Any]:
        """
        Request body for updating from ``state`` to this model.

        Unchanged attributes are omitted, attributes removed from the
        configuration are sent as null so the API clears them.
        """
        planned = self._api_values()
        current = state._api_values()

        payload: Dict[str, Any] = {}
        for key in API_FIELDS:
            if key in planned:
                if key in ALWAYS_SENT_FIELDS or planned[key] != current.get(key):
                    payload[key] = planned[key]
            elif key in current and key not in COMPUTED_OPTIONAL_FIELDS:
                payload[key] = None
        return payload

    def with_api_result(self, result: Dict[str, Any]) -> "QueueConsumerModel":
        """Merge a consumer description returned by the API."""
        settings = result.get("settings")
        return self.model_copy(
            update={
                "consumer_id": result.get("consumer_id", self.consumer_id),
                "type": result.get("type", self.type),
                "script_name": result.get("script_name")
                or result.get("service")
                or self.script_name,
                "dead_letter_queue": result.get(
                    "dead_letter_queue", self.dead_letter_queue
                ),
                "environment": result.get("environment", self.environment),
                "queue_name": result.get("queue_name", self.queue_name),
                "created_on": result.get("created_on", self.created_on),
                "settings": (
                    QueueConsumerSettings.model_validate(settings)
                    if isinstance(settings, dict)
                    else self.settings
                ),
            }
        )

    def matches(self, consumer: Dict[str, Any]) -> bool:
        """Whether a listed consumer is the one this model tracks."""
        if self.consumer_id and consumer.get("consumer_id"):
            return consumer["consumer_id"] == self.consumer_id
        service = consumer.get("script_name") or consumer.get("service")
        return bool(self.script_name) and service == self.script_name

    def to_state(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


_NUMBER_OR_NULL = {"type": ["number", "null"]}

RESOURCE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["account_id", "queue_id", "type"],
    "properties": {
        "account_id": {"type": "string", "minLength": 1},
        "queue_id": {"type": "string", "minLength": 1},
        "consumer_id": {"type": ["string", "null"]},
        "type": {"type": "string", "enum": CONSUMER_TYPES},
        "script_name": {"type": ["string", "null"]},
        "dead_letter_queue": {"type": ["string", "null"]},
        "environment": {"type": ["string", "null"]},
        "queue_name": {"type": ["string", "null"]},
        "created_on": {"type": ["string", "null"]},
        "settings": {
            "type": ["object", "null"],
            "properties": {
                "batch_size": _NUMBER_OR_NULL,
                "max_retries": _NUMBER_OR_NULL,
                "max_wait_time_ms": _NUMBER_OR_NULL,
            },
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
}
