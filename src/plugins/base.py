"""
Core plugin types and dataclasses.

This module contains shared types used across the plugin system.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Operation(Enum):
    """Lifecycle operations the host can request for a resource."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    IMPORT = "import"


class Severity(Enum):
    """Diagnostic severity."""

    ERROR = "error"
    WARNING = "warning"


@dataclass
class Diagnostic:
    """A single message returned to the host."""

    severity: Severity
    summary: str
    detail: str = ""
    attribute: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "severity": self.severity.value,
            "summary": self.summary,
            "detail": self.detail,
        }
        if self.attribute:
            data["attribute"] = self.attribute
        return data


@dataclass
class ResourceResponse:
    """Standard result of a resource operation."""

    operation: Operation
    type_name: str
    state: Optional[Dict[str, Any]] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)
    removed: bool = False
    requires_replace: List[str] = field(default_factory=list)

    @property
    def has_error(self) -> bool:
        return any(d.severity == Severity.ERROR for d in self.diagnostics)

    @property
    def success(self) -> bool:
        return not self.has_error

    def add_error(
        self, summary: str, detail: str = "", attribute: Optional[str] = None
    ) -> None:
        self.diagnostics.append(
            Diagnostic(Severity.ERROR, summary, detail, attribute=attribute)
        )

    def add_warning(
        self, summary: str, detail: str = "", attribute: Optional[str] = None
    ) -> None:
        self.diagnostics.append(
            Diagnostic(Severity.WARNING, summary, detail, attribute=attribute)
        )


@dataclass
class ResourceContext:
    """Context passed to resource plugins for a single operation."""

    type_name: str
    operation: Operation
    desired: Optional[Dict[str, Any]] = None
    prior: Optional[Dict[str, Any]] = None
    import_id: Optional[str] = None
    timeouts: Dict[str, float] = field(default_factory=dict)

    def timeout_for(self, default: float) -> float:
        """
        Resolve the timeout budget (seconds) for this operation.

        Explicit context timeouts win over a ``timeouts`` block in the desired
        state, which wins over ``default``.
        """
        key = self.operation.value
        if key in self.timeouts:
            return float(self.timeouts[key])
        block = (self.desired or {}).get("timeouts") or {}
        if block.get(key) is not None:
            return float(block[key])
        return default
