"""
Attribute model and multipart encoding for Workers scripts.

Scripts are uploaded as multipart/form-data: one ``metadata`` part with the
JSON settings, then one part per script module.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Optional

import aiohttp
from aiohttp import hdrs
from pydantic import BaseModel, ConfigDict, Field, field_validator

from errors import SerializationError

MODULE_CONTENT_TYPE = "text/javascript+module"
SCRIPT_CONTENT_TYPE = "text/javascript"


class UsageModel(str, Enum):
    BUNDLED = "bundled"
    UNBOUND = "unbound"


USAGE_MODELS = [usage_model.value for usage_model in UsageModel]


def escape_quotes(value: str) -> str:
    """Escape a form-data parameter value for a Content-Disposition header."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _unique(values: Optional[List[Any]]) -> Optional[List[Any]]:
    if values is None:
        return None
    seen: List[Any] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


class WorkersScriptPart(BaseModel):
    part: str
    module: Optional[bool] = None

    @property
    def content_type(self) -> str:
        return MODULE_CONTENT_TYPE if self.module else SCRIPT_CONTENT_TYPE


class WorkersScriptBinding(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    bucket_name: Optional[str] = None
    service: Optional[str] = None
    environment: Optional[str] = None
    class_name: Optional[str] = None
    script_name: Optional[str] = None
    queue_name: Optional[str] = None
    id: Optional[str] = None
    certificate_id: Optional[str] = None


class RenamedClass(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None


class TransferredClass(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: Optional[str] = Field(default=None, alias="from")
    from_script: Optional[str] = None
    to: Optional[str] = None


class MigrationStep(BaseModel):
    deleted_classes: Optional[List[str]] = None
    new_classes: Optional[List[str]] = None
    new_sqlite_classes: Optional[List[str]] = None
    renamed_classes: Optional[List[RenamedClass]] = None
    transferred_classes: Optional[List[TransferredClass]] = None


class Migrations(MigrationStep):
    new_tag: Optional[str] = None
    old_tag: Optional[str] = None
    steps: Optional[List[MigrationStep]] = None


class TailConsumer(BaseModel):
    service: str
    environment: Optional[str] = None
    namespace: Optional[str] = None


class WorkersScriptModel(BaseModel):
    id: Optional[str] = None
    account_id: str
    script_name: str
    parts: Dict[str, WorkersScriptPart] = Field(default_factory=dict)
    bindings: Optional[List[WorkersScriptBinding]] = None
    compatibility_date: Optional[str] = None
    compatibility_flags: Optional[List[str]] = None
    keep_bindings: Optional[List[str]] = None
    main_module: Optional[str] = None
    body_part: Optional[str] = None
    migrations: Optional[Migrations] = None
    tags: Optional[List[str]] = None
    version_tags: Optional[Dict[str, str]] = None
    message: Optional[str] = None
    logpush: Optional[bool] = None
    placement_mode: Optional[str] = None
    usage_model: Optional[str] = None
    tail_consumers: Optional[List[TailConsumer]] = None
    startup_time_ms: Optional[int] = None
    created_on: Optional[str] = None
    modified_on: Optional[str] = None
    etag: Optional[str] = None

    @field_validator("compatibility_flags", "keep_bindings", "tags")
    @classmethod
    def dedupe_strings(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _unique(v)

    @field_validator("tail_consumers")
    @classmethod
    def dedupe_tail_consumers(
        cls, v: Optional[List[TailConsumer]]
    ) -> Optional[List[TailConsumer]]:
        return _unique(v)

    @field_validator("usage_model")
    @classmethod
    def check_usage_model(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if v.lower() not in USAGE_MODELS:
            raise ValueError("usage_model must be 'bundled' or 'unbound'")
        return v.lower()

    @property
    def script_path(self) -> str:
        return f"accounts/{self.account_id}/workers/scripts/{self.script_name}"

    @property
    def settings_path(self) -> str:
        return f"accounts/{self.account_id}/workers/scripts/{self.id or self.script_name}/settings"

    def metadata(self) -> Dict[str, Any]:
        """Settings object sent in the ``metadata`` part of an upload."""
        metadata = self.model_dump(
            include={
                "bindings",
                "body_part",
                "compatibility_date",
                "compatibility_flags",
                "keep_bindings",
                "main_module",
                "migrations",
                "tags",
                "tail_consumers",
                "usage_model",
                "version_tags",
                "logpush",
            },
            exclude_none=True,
            by_alias=True,
        )
        if self.placement_mode is not None:
            metadata["placement"] = {"mode": self.placement_mode}
        return metadata

    def to_multipart(self) -> aiohttp.MultipartWriter:
        """
        Encode the script for upload.

        Raises:
            SerializationError: If the metadata or any part cannot be encoded.
        """
        try:
            writer = aiohttp.MultipartWriter("form-data")

            metadata = aiohttp.payload.BytesPayload(
                json.dumps(self.metadata()).encode("utf-8"),
                content_type="application/json",
                headers={hdrs.CONTENT_DISPOSITION: 'form-data; name="metadata"'},
            )
            writer.append_payload(metadata)

            for name, part in sorted(self.parts.items()):
                escaped = escape_quotes(name)
                payload = aiohttp.payload.BytesPayload(
                    part.part.encode("utf-8"),
                    content_type=part.content_type,
                    headers={
                        hdrs.CONTENT_DISPOSITION: (
                            f'form-data; name="{escaped}"; filename="{escaped}"'
                        )
                    },
                )
                writer.append_payload(payload)
        except (TypeError, ValueError, UnicodeError) as e:
            raise SerializationError(
                "failed to serialize multipart http request", str(e)
            ) from e
        return writer

    def with_api_result(self, result: Dict[str, Any]) -> "WorkersScriptModel":
        """Merge the script description returned by an upload."""
        update: Dict[str, Any] = {
            "id": result.get("id") or self.script_name,
            "etag": result.get("etag", self.etag),
            "logpush": result.get("logpush", self.logpush),
            "created_on": result.get("created_on", self.created_on),
            "modified_on": result.get("modified_on", self.modified_on),
            "placement_mode": result.get("placement_mode", self.placement_mode),
            "startup_time_ms": result.get("startup_time_ms", self.startup_time_ms),
        }
        if result.get("usage_model"):
            update["usage_model"] = result["usage_model"].lower()
        if "tail_consumers" in result:
            update["tail_consumers"] = _tail_consumers(result["tail_consumers"])
        return self.model_copy(update=update)

    def with_settings(self, settings: Dict[str, Any]) -> "WorkersScriptModel":
        """Merge the script settings returned by the settings endpoint."""
        placement = settings.get("placement") or {}
        update: Dict[str, Any] = {
            "logpush": settings.get("logpush", self.logpush),
            "placement_mode": placement.get("mode", self.placement_mode),
        }
        if settings.get("usage_model"):
            update["usage_model"] = settings["usage_model"].lower()
        if "tail_consumers" in settings:
            update["tail_consumers"] = _tail_consumers(settings["tail_consumers"])
        return self.model_copy(update=update)

    def to_state(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def _tail_consumers(values: Optional[List[Dict[str, Any]]]) -> Optional[List[TailConsumer]]:
    if values is None:
        return None
    return _unique([TailConsumer.model_validate(value) for value in values])


_STRING_OR_NULL = {"type": ["string", "null"]}
_STRING_SET = {"type": ["array", "null"], "items": {"type": "string"}, "uniqueItems": True}

_RENAMED_CLASS = {
    "type": "object",
    "properties": {"from": _STRING_OR_NULL, "to": _STRING_OR_NULL},
    "additionalProperties": False,
}

_TRANSFERRED_CLASS = {
    "type": "object",
    "properties": {
        "from": _STRING_OR_NULL,
        "from_script": _STRING_OR_NULL,
        "to": _STRING_OR_NULL,
    },
    "additionalProperties": False,
}

_MIGRATION_STEP_PROPERTIES = {
    "deleted_classes": {"type": ["array", "null"], "items": {"type": "string"}},
    "new_classes": {"type": ["array", "null"], "items": {"type": "string"}},
    "new_sqlite_classes": {"type": ["array", "null"], "items": {"type": "string"}},
    "renamed_classes": {"type": ["array", "null"], "items": _RENAMED_CLASS},
    "transferred_classes": {"type": ["array", "null"], "items": _TRANSFERRED_CLASS},
}

RESOURCE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["account_id", "script_name", "parts"],
    "properties": {
        "id": _STRING_OR_NULL,
        "account_id": {"type": "string", "minLength": 1},
        "script_name": {"type": "string", "minLength": 1},
        "parts": {
            "type": "object",
            "minProperties": 1,
            "additionalProperties": {
                "type": "object",
                "required": ["part"],
                "properties": {
                    "part": {"type": "string"},
                    "module": {"type": ["boolean", "null"]},
                },
                "additionalProperties": False,
            },
        },
        "bindings": {
            "type": ["array", "null"],
            "items": {
                "type": "object",
                "properties": {
                    key: _STRING_OR_NULL
                    for key in WorkersScriptBinding.model_fields
                },
                "additionalProperties": False,
            },
        },
        "compatibility_date": _STRING_OR_NULL,
        "compatibility_flags": _STRING_SET,
        "keep_bindings": _STRING_SET,
        "main_module": _STRING_OR_NULL,
        "body_part": _STRING_OR_NULL,
        "migrations": {
            "type": ["object", "null"],
            "properties": {
                **_MIGRATION_STEP_PROPERTIES,
                "new_tag": _STRING_OR_NULL,
                "old_tag": _STRING_OR_NULL,
                "steps": {
                    "type": ["array", "null"],
                    "items": {
                        "type": "object",
                        "properties": _MIGRATION_STEP_PROPERTIES,
                        "additionalProperties": False,
                    },
                },
            },
            "additionalProperties": False,
        },
        "tags": _STRING_SET,
        "version_tags": {
            "type": ["object", "null"],
            "additionalProperties": {"type": "string"},
        },
        "message": _STRING_OR_NULL,
        "logpush": {"type": ["boolean", "null"]},
        "placement_mode": _STRING_OR_NULL,
        "usage_model": {
            "type": ["string", "null"],
            "pattern": "^(?i:bundled|unbound)$",
        },
        "tail_consumers": {
            "type": ["array", "null"],
            "items": {
                "type": "object",
                "required": ["service"],
                "properties": {
                    "service": {"type": "string"},
                    "environment": _STRING_OR_NULL,
                    "namespace": _STRING_OR_NULL,
                },
                "additionalProperties": False,
            },
        },
        "startup_time_ms": {"type": ["integer", "null"]},
        "created_on": _STRING_OR_NULL,
        "modified_on": _STRING_OR_NULL,
        "etag": _STRING_OR_NULL,
    },
    "additionalProperties": False,
}
