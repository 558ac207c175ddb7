"""
Resource Plugin Base - Abstract interface for managed Cloudflare resources.

Resource plugins translate declarative attributes into calls against the
Cloudflare API. Each plugin implements a standard interface for create,
read, update and delete; plugins that can adopt existing objects also
implement import_state.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from client import CloudflareClient
from errors import ImportFormatError, UnsupportedOperationError, ValidationError
from plugins.base import ResourceContext
from validation import validate_attributes_against_schema

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_model(model_cls: Type[ModelT], data: Optional[Dict[str, Any]], what: str) -> ModelT:
    """
    Build an attribute model from host-supplied state.

    Raises:
        ValidationError: If the state does not fit the model.
    """
    try:
        return model_cls.model_validate(data or {})
    except PydanticValidationError as e:
        raise ValidationError(f"invalid {what}", str(e)) from e


def _empty_as_none(value: Any) -> Any:
    return None if value in (None, "", [], {}) else value


def parse_import_id(import_id: str, fmt: str) -> List[str]:
    """
    Split a composite import identifier on ``/``.

    Args:
        import_id: The identifier supplied by the operator, e.g. ``acct/name``
        fmt: The expected format, e.g. ``<account_id>/<name>``

    Returns:
        The identifier segments, one per placeholder in ``fmt``.

    Raises:
        ImportFormatError: If the number of segments does not match ``fmt``
            or a segment is empty.
    """
    expected = len(fmt.split("/"))
    parts = (import_id or "").split("/")
    if len(parts) != expected or not all(parts):
        raise ImportFormatError(
            "invalid import ID",
            f'invalid ID "{import_id}" specified. Please specify the ID as "{fmt}"',
        )
    return parts


class ResourcePlugin(ABC):
    """
    Abstract base class for resource plugins.

    A plugin instance is bound to the shared API client once, in
    initialize(), and handles one operation at a time per resource.
    """

    # Attributes whose change cannot be applied in place
    requires_replace: Tuple[str, ...] = ()

    def __init__(self):
        self.client: Optional[CloudflareClient] = None
        self.config: Dict[str, Any] = {}

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this plugin (e.g., 'vectorize_index')."""
        pass

    @property
    @abstractmethod
    def version(self) -> str:
        """Plugin version string."""
        pass

    @property
    @abstractmethod
    def type_name(self) -> str:
        """Resource type name exposed to the host."""
        pass

    @property
    @abstractmethod
    def schema(self) -> Dict[str, Any]:
        """JSON schema describing the resource attributes."""
        pass

    @property
    def supports_import(self) -> bool:
        return type(self).import_state is not ResourcePlugin.import_state

    async def initialize(
        self, client: CloudflareClient, config: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Bind the plugin to the shared API client.

        Args:
            client: The provider's API client
            config: Plugin-specific configuration dictionary

        Raises:
            TypeError: If ``client`` is not a CloudflareClient
        """
        if not isinstance(client, CloudflareClient):
            raise TypeError(
                f"Expected CloudflareClient, got: {type(client).__name__}. "
                "Please report this issue to the provider developers."
            )
        self.client = client
        self.config = dict(config or {})

    def validate_attributes(self, attributes: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        """
        Validate desired attributes against the resource schema.

        Returns:
            Tuple of (is_valid, error_message). If valid, error_message is None.
        """
        return validate_attributes_against_schema(attributes, self.schema)

    def plan_replacement(
        self, desired: Dict[str, Any], prior: Optional[Dict[str, Any]]
    ) -> List[str]:
        """
        List the immutable attributes that differ between prior and desired.

        A non-empty result means the host must destroy and recreate the
        resource instead of updating it.
        """
        if not prior:
            return []
        return [
            attr
            for attr in self.requires_replace
            if _empty_as_none(desired.get(attr)) != _empty_as_none(prior.get(attr))
        ]

    @abstractmethod
    async def create(self, ctx: ResourceContext) -> Dict[str, Any]:
        """
        Create the remote object described by ``ctx.desired``.

        Returns:
            The observed state, including server-assigned attributes.
        """
        pass

    @abstractmethod
    async def read(self, ctx: ResourceContext) -> Dict[str, Any]:
        """
        Refresh ``ctx.prior`` from the remote object.

        Raises:
            NotFoundError: If the remote object no longer exists.
        """
        pass

    @abstractmethod
    async def update(self, ctx: ResourceContext) -> Dict[str, Any]:
        """
        Move the remote object from ``ctx.prior`` to ``ctx.desired``.

        Returns:
            The observed state after the update.
        """
        pass

    @abstractmethod
    async def delete(self, ctx: ResourceContext) -> None:
        """Delete the remote object identified by ``ctx.prior``."""
        pass

    async def import_state(self, ctx: ResourceContext) -> Dict[str, Any]:
        """
        Build initial state from an import identifier.

        Optional; the default rejects the import.
        """
        raise UnsupportedOperationError(
            f"{self.type_name} does not support import", "Not implemented"
        )

    @classmethod
    def load_config_from_env(cls) -> Dict[str, Any]:
        """
        Load plugin-specific configuration from environment variables.

        Override this method in subclasses to define how the plugin
        loads its configuration from the environment.

        Returns:
            Dictionary of configuration values for this plugin.
        """
        return {}
