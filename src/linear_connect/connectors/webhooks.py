"""Webhook subscription lifecycle for instant triggers.

Subscribe on activation, normalize each delivery, unsubscribe on
deactivation. Unsubscribe is best-effort: a remote subscription that
outlives its trigger is garbage Linear can collect, so failures are logged
and never block deactivation.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ConnectorError, ConnectorSchemaMismatchError, ConnectorTransportError
from .http_client import read_json, send_request
from .normalize import normalize_record
from .query_builder import is_present

logger = logging.getLogger(__name__)


class SubscriptionHandle(BaseModel):
    """What the host stores between subscribe and unsubscribe.

    Dumped with ``by_alias=True`` so the host sees ``targetUrl``/``inputData``.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    target_url: str = Field(alias="targetUrl")
    input_data: Optional[Dict[str, Any]] = Field(default=None, alias="inputData")


class SubscriptionManager:
    """Creates and deletes Linear webhook subscriptions for one credential."""

    def __init__(self, base_url: str, auth_value: str, request=None):
        self.base_url = base_url.rstrip("/")
        self.auth_value = auth_value
        self._request = request or send_request

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": self.auth_value,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def subscribe(
        self,
        event_type: str,
        target_url: str,
        filter_config: Optional[Mapping[str, Any]] = None,
    ) -> SubscriptionHandle:
        """Register ``target_url`` for ``event_type`` deliveries.

        ``inputData`` is left out of the body entirely when no filter is set.

        Raises:
            ConnectorError: Any failure; the trigger must not activate.
        """
        input_data = {
            key: value
            for key, value in (filter_config or {}).items()
            if is_present(value)
        }

        body: Dict[str, Any] = {"url": target_url}
        if input_data:
            body["inputData"] = input_data

        response = await self._request(
            "POST",
            f"{self.base_url}/subscribe/{event_type}",
            headers=self._headers(),
            json=body,
        )
        payload = read_json(response)
        if not isinstance(payload, dict) or not payload.get("id"):
            raise ConnectorSchemaMismatchError(
                f"Subscribe to {event_type} returned no subscription id"
            )

        logger.info("Subscribed %s webhook %s", event_type, payload["id"])
        return SubscriptionHandle(
            id=str(payload["id"]),
            target_url=target_url,
            input_data=input_data or None,
        )

    @staticmethod
    def receive(payload: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """Normalize one inbound delivery into the polling record shape."""
        return [normalize_record(payload)]

    async def unsubscribe(
        self, handle: Optional[Union[SubscriptionHandle, Mapping[str, Any]]]
    ) -> None:
        """Delete the subscription. Never raises.

        Accepts the handle itself or the raw dict the host stored.
        """
        hook_id = None
        if isinstance(handle, SubscriptionHandle):
            hook_id = handle.id
        elif isinstance(handle, Mapping):
            hook_id = handle.get("id")

        if not hook_id:
            logger.info("No subscription to remove; subscribe never completed")
            return

        try:
            await self._request(
                "DELETE",
                f"{self.base_url}/unsubscribe/{hook_id}",
                headers=self._headers(),
            )
        except ConnectorError as exc:
            if isinstance(exc, ConnectorTransportError) and exc.status_code == 404:
                logger.info("Subscription %s already removed", hook_id)
            else:
                logger.warning("Failed to remove subscription %s: %s", hook_id, exc)
            return

        logger.info("Unsubscribed webhook %s", hook_id)
