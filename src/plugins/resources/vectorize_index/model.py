"""Attribute model for Vectorize indexes."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, field_validator


class VectorizeMetric(str, Enum):
    COSINE = "cosine"
    EUCLIDEAN = "euclidean"
    DOT_PRODUCT = "dot-product"


class MetadataIndexType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"


METRICS = [metric.value for metric in VectorizeMetric]
METADATA_INDEX_TYPES = [index_type.value for index_type in MetadataIndexType]


def validate_metric(value: str) -> str:
    if value not in METRICS:
        raise ValueError("variable Metric must be 'cosine', 'euclidean', or 'dot-product'")
    return value


class VectorizeIndexModel(BaseModel):
    id: Optional[str] = None
    account_id: str
    name: str
    dimensions: Optional[int] = None
    metric: Optional[str] = None
    description: Optional[str] = None
    created_on: Optional[str] = None
    modified_on: Optional[str] = None
    metadata_indexes: Optional[Dict[str, str]] = None

    @field_validator("metric")
    @classmethod
    def check_metric(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else validate_metric(v)

    @property
    def indexes_path(self) -> str:
        return f"accounts/{self.account_id}/vectorize/v2/indexes"

    @property
    def index_path(self) -> str:
        return f"{self.indexes_path}/{self.id or self.name}"

    def to_create_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "config": {"dimensions": self.dimensions, "metric": self.metric},
        }
        if self.description is not None:
            payload["description"] = self.description
        return payload

    def metadata_index_payloads(self) -> List[Dict[str, str]]:
        return [
            {"propertyName": prop, "indexType": index_type}
            for prop, index_type in sorted((self.metadata_indexes or {}).items())
        ]

    def with_api_result(self, result: Dict[str, Any]) -> "VectorizeIndexModel":
        """Merge an index description returned by the API."""
        config = result.get("config") or {}
        name = result.get("name", self.name)
        return self.model_copy(
            update={
                "id": name,
                "name": name,
                "description": result.get("description", self.description),
                "dimensions": config.get("dimensions", self.dimensions),
                "metric": config.get("metric", self.metric),
                "created_on": result.get("created_on", self.created_on),
                "modified_on": result.get("modified_on", self.modified_on),
            }
        )

    def to_state(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


RESOURCE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["account_id", "name", "dimensions", "metric"],
    "properties": {
        "id": {"type": ["string", "null"]},
        "account_id": {"type": "string", "minLength": 1},
        "name": {"type": "string", "minLength": 1},
        "dimensions": {"type": "integer", "minimum": 1},
        "metric": {"type": "string", "enum": METRICS},
        "description": {"type": ["string", "null"]},
        "created_on": {"type": ["string", "null"]},
        "modified_on": {"type": ["string", "null"]},
        "metadata_indexes": {
            "type": ["object", "null"],
            "additionalProperties": {"type": "string", "enum": METADATA_INDEX_TYPES},
        },
    },
    "additionalProperties": False,
}
