"""Lightweight async GraphQL client for the Linear API.

Handles single queries and full Relay-style walks. Single-page reads with a
host-persisted cursor live in ``pagination.read_page``.
"""

import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Set

from ..config import get_settings
from .http_client import read_json, send_request
from .normalize import classify_envelope, dig

logger = logging.getLogger(__name__)

RequestFn = Callable[..., Awaitable[Any]]


class GraphQLClient:
    """Async GraphQL client that issues one POST per query."""

    def __init__(
        self,
        endpoint: str,
        auth_value: str = "",
        auth_header: str = "Authorization",
        request: Optional[RequestFn] = None,
    ):
        self.endpoint = endpoint
        self.auth_header = auth_header
        self.auth_value = auth_value
        self._request = request or send_request

    async def execute(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Execute a single GraphQL query.

        Args:
            query: GraphQL query string.
            variables: Optional query variables.

        Returns:
            The "data" portion of the response.

        Raises:
            ConnectorAuthExpiredError: Credentials rejected (HTTP or GraphQL).
            ConnectorValidationError: Any other GraphQL error.
            ConnectorSchemaMismatchError: No usable "data" in the response.
            ConnectorTransportError: HTTP-level failure.
        """
        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        response = await self._request(
            "POST",
            self.endpoint,
            headers={
                self.auth_header: self.auth_value,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            json=payload,
        )
        return classify_envelope(read_json(response))

    async def paginate_connection(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        connection_path: str = "",
        page_size: int = 50,
        max_pages: Optional[int] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        """Paginate a Relay-style GraphQL connection.

        Expects the query to accept $first (Int) and $after (String) variables,
        and the connection to have the shape:
            { nodes: [...], pageInfo: { hasNextPage, endCursor } }

        Args:
            query: GraphQL query with $first and $after variables.
            variables: Base variables (first/after will be injected).
            connection_path: Dot-separated path to the connection in the data,
                             e.g. "users" or "team.states".
            page_size: Number of items per page.
            max_pages: Safety limit on total pages fetched. Defaults to the
                       configured `max_pages`.

        Yields:
            Individual node dicts, each id at most once.
        """
        max_pages = max_pages or get_settings().max_pages
        vars_ = dict(variables or {})
        vars_["first"] = page_size
        cursor: Optional[str] = None
        seen: Set[str] = set()

        for _ in range(max_pages):
            if cursor:
                vars_["after"] = cursor
            elif "after" in vars_:
                del vars_["after"]

            data = await self.execute(query, vars_)
            connection = dig(data, connection_path) if connection_path else data

            nodes = connection.get("nodes") or []
            for node in nodes:
                node_id = node.get("id")
                if node_id is not None:
                    if node_id in seen:
                        continue
                    seen.add(node_id)
                yield node

            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage") or not nodes:
                break

            next_cursor = page_info.get("endCursor")
            if not next_cursor or next_cursor == cursor:
                break
            cursor = next_cursor
        else:
            logger.warning(
                "paginate_connection stopped at max_pages=%d (%s)",
                max_pages,
                connection_path,
            )

    async def collect_connection(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        connection_path: str = "",
        page_size: int = 50,
        max_items: int = 10_000,
    ) -> List[Dict[str, Any]]:
        """Collect all nodes from a Relay connection into a list."""
        items: List[Dict[str, Any]] = []
        async for node in self.paginate_connection(
            query, variables, connection_path, page_size
        ):
            items.append(node)
            if len(items) >= max_items:
                logger.warning("collect_connection hit max_items=%d", max_items)
                break
        return items
