"""Linear connector: operations exposed to the automation host."""

from .base import Bundle, BundleMeta
from .registry import OperationRegistry, operation_registry

# Import operation modules to trigger registration
from . import dropdowns  # noqa: F401
from . import linear  # noqa: F401
from . import attachments  # noqa: F401
from . import customers  # noqa: F401

__all__ = ["Bundle", "BundleMeta", "OperationRegistry", "operation_registry"]
