"""Response envelope classification and record normalization.

Turns ``{data, errors}`` envelopes into either the ``data`` payload or a
typed exception, and shapes remote objects into the records the host sees.
Polling and webhook delivery go through the same ``normalize_record`` so a
consumer cannot tell push from pull.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .exceptions import (
    ConnectorAuthExpiredError,
    ConnectorSchemaMismatchError,
    ConnectorValidationError,
)

logger = logging.getLogger(__name__)

# Webhook payloads name some fields differently from the query API.
# Records always use the query API name.
FIELD_RENAMES: Dict[str, str] = {
    "milestone": "projectMilestone",
}

# Keys the host adds to inbound webhook bodies
HOST_ONLY_KEYS = ("querystring",)

AUTH_ERROR_TYPES = {"authentication error"}
AUTH_ERROR_CODES = {"AUTHENTICATION_ERROR"}


def _is_auth_error(error: Mapping[str, Any]) -> bool:
    extensions = error.get("extensions") or {}
    error_type = str(extensions.get("type") or "").lower()
    error_code = str(extensions.get("code") or "").upper()
    return error_type in AUTH_ERROR_TYPES or error_code in AUTH_ERROR_CODES


def classify_errors(errors: List[Mapping[str, Any]]) -> Exception:
    """Map a non-empty GraphQL ``errors`` array to a connector exception.

    An authentication-typed error anywhere in the list wins; otherwise the
    first error's user-presentable message (or plain message) is used verbatim.
    """
    for error in errors:
        if _is_auth_error(error):
            return ConnectorAuthExpiredError(
                error.get("message") or "Linear authentication failed"
            )

    first = errors[0]
    extensions = first.get("extensions") or {}
    message = extensions.get("userPresentableMessage") or first.get("message")
    return ConnectorValidationError(message or "Unknown Linear error")


def classify_envelope(body: Any) -> Dict[str, Any]:
    """Return ``body["data"]`` or raise the matching connector exception."""
    if not isinstance(body, dict):
        raise ConnectorSchemaMismatchError("Linear response is not a JSON object")

    errors = body.get("errors")
    if errors:
        if not isinstance(errors, list) or not all(isinstance(e, Mapping) for e in errors):
            raise ConnectorSchemaMismatchError("Linear response has malformed errors")
        raise classify_errors(errors)

    data = body.get("data")
    if not isinstance(data, dict):
        raise ConnectorSchemaMismatchError("Linear response has no data")
    return data


def dig(data: Mapping[str, Any], path: str) -> Any:
    """Follow a dot-separated path, raising when any step is missing."""
    current: Any = data
    for key in path.split("."):
        if not isinstance(current, Mapping) or current.get(key) is None:
            raise ConnectorSchemaMismatchError(
                f"Linear response is missing '{path}'"
            )
        current = current[key]
    return current


def unwrap_mutation(data: Mapping[str, Any], mutation: str, entity: Optional[str]) -> Any:
    """Return the entity from a ``{success, <entity>}`` mutation payload."""
    payload = dig(data, mutation)
    if not payload.get("success"):
        raise ConnectorSchemaMismatchError(f"Failed to run {mutation}")
    if entity is None:
        return payload
    if payload.get(entity) is None:
        raise ConnectorSchemaMismatchError(
            f"{mutation} succeeded but returned no {entity}"
        )
    return payload[entity]


def normalize_record(node: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy a remote object into record shape."""
    record = {k: v for k, v in node.items() if k not in HOST_ONLY_KEYS}
    for source, target in FIELD_RENAMES.items():
        if source in record:
            value = record.pop(source)
            record.setdefault(target, value)
    return record


def with_composite_id(
    record: Mapping[str, Any],
    timestamp_field: str,
    remote_id_key: str,
) -> Dict[str, Any]:
    """Give a polled record an ``<id>-<timestamp>`` identity.

    The host deduplicates on ``id``; suffixing the timestamp lets an updated
    object trigger again while a re-polled unchanged one does not. The bare
    id is kept under ``remote_id_key``.
    """
    remote_id = record.get("id")
    timestamp = record.get(timestamp_field)
    if remote_id is None or timestamp is None:
        raise ConnectorSchemaMismatchError(
            f"Record is missing 'id' or '{timestamp_field}'"
        )
    result = dict(record)
    result["id"] = f"{remote_id}-{timestamp}"
    result[remote_id_key] = remote_id
    return result


def normalize_polled(
    nodes: Iterable[Mapping[str, Any]],
    timestamp_field: str,
    remote_id_key: str,
) -> List[Dict[str, Any]]:
    """Normalize a page of polled nodes with composite identities."""
    return [
        with_composite_id(normalize_record(node), timestamp_field, remote_id_key)
        for node in nodes
    ]


def flatten_connections(record: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    """Replace nested ``{nodes: [...]}`` connections with plain lists."""
    for key in keys:
        value = record.get(key)
        if isinstance(value, dict) and "nodes" in value:
            record[key] = value["nodes"]
    return record
