"""Forward-only cursor cycle for list-producing operations.

One policy everywhere: the cursor is the server's ``pageInfo.endCursor``.
It is stored only when ``hasNextPage`` is true and cleared otherwise, so the
next poll after the last page starts from the beginning again.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..config import get_settings
from .base import CursorStore
from .exceptions import ConnectorSchemaMismatchError
from .graphql import GraphQLClient
from .normalize import dig
from .query_builder import ListQuery

logger = logging.getLogger(__name__)


def extract_page(data: Mapping[str, Any], connection_path: str) -> Dict[str, Any]:
    """Pull ``{nodes, pageInfo}`` out of a response, validating the shape."""
    connection = dig(data, connection_path)
    nodes = connection.get("nodes")
    page_info = connection.get("pageInfo")
    if not isinstance(nodes, list):
        raise ConnectorSchemaMismatchError(
            f"Linear response is missing '{connection_path}.nodes'"
        )
    if not isinstance(page_info, dict):
        raise ConnectorSchemaMismatchError(
            f"Linear response is missing '{connection_path}.pageInfo'"
        )
    return {"nodes": nodes, "pageInfo": page_info}


def next_cursor(page_info: Mapping[str, Any]) -> Optional[str]:
    """The cursor to store after this page, or None when the list is done."""
    if page_info.get("hasNextPage") and page_info.get("endCursor"):
        return page_info["endCursor"]
    return None


async def read_page(
    client: GraphQLClient,
    list_query: ListQuery,
    values: Mapping[str, Any],
    cursor_store: CursorStore,
    *,
    resume: bool = False,
    order_by: Optional[str] = None,
    page_size: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Fetch one page of ``list_query`` and advance the stored cursor.

    Args:
        client: Authenticated GraphQL client.
        list_query: The connection to read.
        values: Filter input values (absent keys produce no clause).
        cursor_store: Host-persisted cursor.
        resume: Continue from the stored cursor. False starts over.
        order_by: ``createdAt`` or ``updatedAt``.
        page_size: Overrides the configured page size.

    Returns:
        The page's nodes in server order.
    """
    after = await cursor_store.get() if resume else None
    request = list_query.build(
        values,
        order_by=order_by,
        after=after,
        page_size=page_size or get_settings().page_size,
    )

    data = await client.execute(request.query, request.variables)
    page = extract_page(data, list_query.connection_path)

    cursor = next_cursor(page["pageInfo"])
    if cursor is not None and cursor == after:
        # Server handed back the cursor we sent; storing it would loop forever
        logger.warning("%s returned a non-advancing cursor, resetting", list_query.name)
        cursor = None
    await cursor_store.set(cursor)

    logger.debug(
        "%s page: %d nodes, next cursor %s",
        list_query.name,
        len(page["nodes"]),
        "set" if cursor else "cleared",
    )
    return page["nodes"]
