"""HTTP surface for running operations and handling webhook lifecycles.

Each request carries a host bundle; each response carries the results plus
the cursor the host must persist for the next invocation.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..connectors.base import Bundle
from ..connectors.exceptions import ConnectorError, ConnectorPreconditionError
from ..connectors.registry import Operation, operation_registry
from ..observability.logging import connector_error_fields, log_context

logger = logging.getLogger(__name__)

router = APIRouter()


def error_response(exc: ConnectorError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content={"error": exc.to_host_error()})


def _describe_result(result: Any) -> str:
    if isinstance(result, list):
        return f"{len(result)} records"
    return "1 record" if result else "nothing"


def _instant_trigger(key: str) -> Operation:
    operation = operation_registry.require("trigger", key)
    if not operation.instant:
        raise ConnectorPreconditionError(f"Trigger {key} does not support webhooks")
    return operation


async def _invoke(kind: str, operation_key: str, perform, bundle: Bundle):
    with log_context(kind, operation_key, uuid.uuid4().hex[:12]):
        try:
            result = await perform(bundle)
        except ConnectorError as exc:
            logger.warning(
                "%s failed: %s", operation_key, exc.message, extra=connector_error_fields(exc)
            )
            return error_response(exc)
        logger.debug("%s returned %s", operation_key, _describe_result(result))
        return {"results": result, "cursor": bundle.cursor}


@router.get("/operations")
async def list_operations(kind: Optional[str] = None, include_hidden: bool = False):
    """List registered operations, optionally filtered by kind."""
    operations: List[Dict[str, Any]] = []
    for operation in operation_registry.list_operations(kind):
        if operation.hidden and not include_hidden:
            continue
        operations.append(operation_registry.describe(operation))
    return {"operations": operations}


@router.post("/operations/{kind}/{key}")
async def run_operation(kind: str, key: str, bundle: Bundle):
    """Run one trigger, search or create.

    Instant triggers answer here with their sample list (``perform_list``).
    """
    try:
        operation = operation_registry.require(kind, key)
    except ConnectorError as exc:
        return error_response(exc)

    perform = operation.perform_list if operation.instant else operation.perform
    return await _invoke(kind, f"{kind}.{key}", perform, bundle)


@router.post("/hooks/{key}/subscribe")
async def subscribe_hook(key: str, bundle: Bundle):
    try:
        operation = _instant_trigger(key)
    except ConnectorError as exc:
        return error_response(exc)
    return await _invoke("trigger", f"{key}.subscribe", operation.perform_subscribe, bundle)


@router.post("/hooks/{key}/unsubscribe")
async def unsubscribe_hook(key: str, bundle: Bundle):
    try:
        operation = _instant_trigger(key)
    except ConnectorError as exc:
        return error_response(exc)
    return await _invoke("trigger", f"{key}.unsubscribe", operation.perform_unsubscribe, bundle)


@router.post("/hooks/{key}")
async def receive_hook(key: str, request: Request):
    """Accept a raw webhook delivery and return the normalized records."""
    try:
        operation = _instant_trigger(key)
    except ConnectorError as exc:
        return error_response(exc)

    try:
        payload = await request.json()
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        return error_response(ConnectorPreconditionError("Webhook body must be a JSON object"))

    bundle = Bundle(input_data=payload)
    return await _invoke("trigger", f"{key}.receive", operation.perform, bundle)
