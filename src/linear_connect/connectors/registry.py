"""Operation registry: every trigger, search and create the host can call."""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .exceptions import ConnectorPreconditionError

logger = logging.getLogger(__name__)

OPERATION_KINDS = ("trigger", "search", "create")

Perform = Callable[..., Awaitable[Any]]


@dataclass
class Operation:
    """One host-visible operation.

    ``perform`` takes a Bundle. Instant triggers also carry
    ``perform_subscribe`` / ``perform_unsubscribe`` and ``perform_list``
    (used by the host to load samples).
    """

    kind: str
    key: str
    noun: str
    label: str
    perform: Perform
    description: str = ""
    hidden: bool = False
    instant: bool = False
    input_fields: List[Dict[str, Any]] = field(default_factory=list)
    perform_subscribe: Optional[Perform] = None
    perform_unsubscribe: Optional[Perform] = None
    perform_list: Optional[Perform] = None


class OperationRegistry:
    """Registry of operations keyed by (kind, key)."""

    def __init__(self):
        self._operations: Dict[Tuple[str, str], Operation] = {}

    def register(self, operation: Operation):
        if operation.kind not in OPERATION_KINDS:
            raise ValueError(f"Unknown operation kind: {operation.kind}")
        self._operations[(operation.kind, operation.key)] = operation
        logger.debug("Registered %s: %s", operation.kind, operation.key)

    def get(self, kind: str, key: str) -> Optional[Operation]:
        return self._operations.get((kind, key))

    def require(self, kind: str, key: str) -> Operation:
        operation = self.get(kind, key)
        if operation is None:
            raise ConnectorPreconditionError(f"Unknown {kind}: {key}")
        return operation

    def list_operations(self, kind: Optional[str] = None) -> List[Operation]:
        return [
            op for op in self._operations.values()
            if kind is None or op.kind == kind
        ]

    def describe(self, operation: Operation) -> Dict[str, Any]:
        """Serializable summary for the host's app definition."""
        return {
            "kind": operation.kind,
            "key": operation.key,
            "noun": operation.noun,
            "label": operation.label,
            "description": operation.description,
            "hidden": operation.hidden,
            "instant": operation.instant,
            "input_fields": operation.input_fields,
        }


# Global operation registry instance
operation_registry = OperationRegistry()


def register_operation(
    kind: str,
    key: str,
    noun: str,
    label: str,
    description: str = "",
    hidden: bool = False,
    input_fields: Optional[List[Dict[str, Any]]] = None,
):
    """Decorator to register a perform function as an operation."""
    def decorator(perform: Perform):
        operation_registry.register(Operation(
            kind=kind,
            key=key,
            noun=noun,
            label=label,
            description=description,
            hidden=hidden,
            input_fields=list(input_fields or []),
            perform=perform,
        ))
        return perform
    return decorator
