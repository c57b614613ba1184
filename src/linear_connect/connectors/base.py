"""Host-facing interfaces: the invocation bundle and the cursor store.

The automation host owns credentials, cursor persistence and delivery.
Each invocation hands us a ``Bundle``; anything that must survive to the
next invocation (the cursor, the subscription handle) goes back out on it.
"""

import logging
from typing import Any, Dict, Optional, Protocol

from pydantic import BaseModel, Field

from ..config import get_settings
from .graphql import GraphQLClient
from .http_client import auth_header_value
from .webhooks import SubscriptionManager

logger = logging.getLogger(__name__)


class BundleMeta(BaseModel):
    """Invocation metadata. ``page`` > 0 means the host is paging."""

    page: int = 0


class Bundle(BaseModel):
    """Everything one trigger/search/create invocation receives."""

    auth_data: Dict[str, Any] = Field(default_factory=dict)
    input_data: Dict[str, Any] = Field(default_factory=dict)
    meta: BundleMeta = Field(default_factory=BundleMeta)
    target_url: Optional[str] = None
    subscribe_data: Optional[Dict[str, Any]] = None
    cursor: Optional[str] = None


class CursorStore(Protocol):
    """Opaque cursor persistence provided by the host."""

    async def get(self) -> Optional[str]:
        ...

    async def set(self, value: Optional[str]) -> None:
        ...


class BundleCursorStore:
    """Keeps the cursor on the bundle; the host persists it between calls."""

    def __init__(self, bundle: Bundle):
        self.bundle = bundle

    async def get(self) -> Optional[str]:
        return self.bundle.cursor

    async def set(self, value: Optional[str]) -> None:
        self.bundle.cursor = value


def graphql_client_for(bundle: Bundle) -> GraphQLClient:
    """GraphQL client authenticated with the bundle's credentials."""
    settings = get_settings()
    return GraphQLClient(
        endpoint=settings.linear_api_url,
        auth_value=auth_header_value(bundle.auth_data),
    )


def subscription_manager_for(bundle: Bundle) -> SubscriptionManager:
    """Webhook subscription manager authenticated with the bundle's credentials."""
    settings = get_settings()
    return SubscriptionManager(
        base_url=settings.linear_webhook_base_url,
        auth_value=auth_header_value(bundle.auth_data),
    )
