import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Callable, Optional

import httpx

from .models import Board, Group, RawItem, User

DEFAULT_BOARD_ID = "6500270039"

ProgressCallback = Callable[[int, int, int], None]

ME_QUERY = """
    query {
        me {
            id
            name
            email
        }
    }
"""

BOARD_QUERY = """
    query GetBoard($boardId: ID!) {
        boards(ids: [$boardId]) {
            id
            name
            groups {
                id
                title
            }
        }
    }
"""

ITEMS_PAGE_QUERY = """
    query GetItemsPage($boardId: ID!, $groupId: String!, $limit: Int!) {
        boards(ids: [$boardId]) {
            groups(ids: [$groupId]) {
                items_page(limit: $limit) {
                    cursor
                    items {
                        id
                        name
                        column_values {
                            id
                            value
                            text
                        }
                    }
                }
            }
        }
    }
"""

ITEMS_NEXT_PAGE_QUERY = """
    query GetItemsPage($boardId: ID!, $groupId: String!, $limit: Int!, $cursor: String!) {
        boards(ids: [$boardId]) {
            groups(ids: [$groupId]) {
                items_page(limit: $limit, cursor: $cursor) {
                    cursor
                    items {
                        id
                        name
                        column_values {
                            id
                            value
                            text
                        }
                    }
                }
            }
        }
    }
"""

CREATE_ITEM_MUTATION = """
    mutation CreateItem($boardId: ID!, $groupId: String!, $itemName: String!, $columnValues: JSON!) {
        create_item(
            board_id: $boardId,
            group_id: $groupId,
            item_name: $itemName,
            column_values: $columnValues
        ) {
            id
        }
    }
"""

UPDATE_ITEM_MUTATION = """
    mutation UpdateItem($itemId: ID!, $boardId: ID!, $columnValues: JSON!) {
        change_multiple_column_values(
            item_id: $itemId,
            board_id: $boardId,
            column_values: $columnValues
        ) {
            id
        }
    }
"""

DELETE_ITEM_MUTATION = """
    mutation DeleteItem($itemId: ID!) {
        delete_item(item_id: $itemId) {
            id
        }
    }
"""


class MondayError(Exception):
    """Base exception for monday.com operations"""

    pass


class AuthError(MondayError):
    """Raised when no API key is configured"""

    pass


class RemoteError(MondayError):
    """Raised when the transport or the GraphQL layer reports a failure"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(MondayError):
    """Raised when an expected board, group or item is absent"""

    pass


class MondayClient:
    """Handles all monday.com GraphQL operations"""

    API_URL = "https://api.monday.com/v2"
    API_VERSION = "2023-10"
    PAGE_SIZE = 500
    MAX_PAGES = 20
    PAGE_DELAY_SECONDS = 0.001
    QUERY_STRATEGIES = ("paginated", "direct")

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        api_version: Optional[str] = None,
        page_size: int = PAGE_SIZE,
        max_pages: int = MAX_PAGES,
        page_delay: float = PAGE_DELAY_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        if max_pages < 1:
            raise ValueError("max_pages must be positive")

        self.api_key = api_key
        self.api_url = api_url or self.API_URL
        self.api_version = api_version or self.API_VERSION
        # The API rejects pages above 500 items
        self.page_size = min(page_size, self.PAGE_SIZE)
        self.max_pages = max_pages
        self.page_delay = page_delay
        self.logger = logger or logging.getLogger(__name__)
        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient()

    async def close(self) -> None:
        if self._owns_http_client:
            await self.http_client.aclose()

    async def __aenter__(self) -> "MondayClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    def set_api_key(self, api_key: str) -> None:
        self.api_key = api_key
        self.logger.info("API key set")

    async def _execute(self, query: str, variables: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Send one GraphQL request and return its data block"""
        if not self.api_key:
            self.logger.error("API key not set")
            raise AuthError("API key not set")

        headers = {
            "Authorization": self.api_key,
            "Content-Type": "application/json",
            "API-Version": self.api_version,
        }
        try:
            response = await self.http_client.post(
                self.api_url,
                json={"query": query, "variables": variables or {}},
                headers=headers,
            )
        except httpx.HTTPError as e:
            self.logger.error(f"monday.com request failed: {e}")
            raise RemoteError(f"monday.com request failed: {str(e)}") from e

        if not response.is_success:
            self.logger.error(f"monday.com returned HTTP {response.status_code}")
            raise RemoteError(
                f"HTTP error! status: {response.status_code}, response: {response.text}",
                status_code=response.status_code,
            )

        try:
            result = response.json()
        except ValueError as e:
            raise RemoteError(f"monday.com returned invalid JSON: {str(e)}") from e

        errors = result.get("errors") or []
        if errors:
            messages = ", ".join(
                str(error.get("message", error)) if isinstance(error, dict) else str(error)
                for error in errors
            )
            self.logger.error(f"monday.com API error: {messages}")
            raise RemoteError(f"monday.com API error: {messages}", status_code=response.status_code)

        return result.get("data") or {}

    async def fetch_user(self) -> User:
        """Return the user owning the configured API key"""
        self.logger.info("Getting current user...")
        data = await self._execute(ME_QUERY)
        me = data.get("me")
        if not me:
            raise NotFoundError("monday.com did not return a current user")

        user = User(id=str(me["id"]), name=me.get("name") or "", email=me.get("email") or "")
        self.logger.info(f"User loaded: {user.name} ({user.email})")
        return user

    async def fetch_board(self, board_id: str) -> Board:
        """Return a board with its groups"""
        self.logger.info(f"Getting board with groups: {board_id}")
        data = await self._execute(BOARD_QUERY, {"boardId": board_id})
        boards = data.get("boards") or []
        if not boards:
            self.logger.error(f"No board found for id {board_id}")
            raise NotFoundError(f"No board found for id {board_id}")

        raw = boards[0]
        groups = [Group(id=str(g["id"]), title=g.get("title") or "") for g in raw.get("groups") or []]
        board = Board(id=str(raw.get("id", board_id)), name=raw.get("name") or "", groups=groups)
        self.logger.info(f"Board loaded: {board.name} with {len(groups)} groups")
        return board

    @staticmethod
    def _current_year() -> str:
        return str(datetime.now().year)

    async def fetch_group(self, board_id: str, year_or_group_id: Optional[str] = None) -> Group:
        """Find the group holding one year of claims.

        Matches, in order: a group whose id equals the argument, a title equal
        to the requested year, a title equal to the current year, a title
        containing the requested year, and finally the first group.
        """
        board = await self.fetch_board(board_id)
        if not board.groups:
            raise NotFoundError(f"Board {board_id} has no groups")

        current_year = self._current_year()
        wanted = str(year_or_group_id) if year_or_group_id else current_year
        self.logger.info(
            f"Looking for group {wanted} among: "
            + ", ".join(f"{g.title} ({g.id})" for g in board.groups)
        )

        matchers = [
            ("group id", lambda g: g.id == wanted),
            ("exact year", lambda g: g.title == wanted),
            ("current year", lambda g: g.title == current_year),
            ("partial year", lambda g: wanted in g.title),
        ]
        for label, matches in matchers:
            for group in board.groups:
                if matches(group):
                    self.logger.info(f"Found {label} match: {group.title} ({group.id})")
                    return group

        group = board.groups[0]
        self.logger.warning(f"Using first group as fallback: {group.title} ({group.id})")
        return group

    @staticmethod
    def _items_page(data: dict[str, Any]) -> Optional[dict[str, Any]]:
        boards = data.get("boards") or []
        if not boards:
            return None
        groups = boards[0].get("groups") or []
        if not groups:
            return None
        return groups[0].get("items_page")

    def _report_progress(
        self, on_progress: Optional[ProgressCallback], total: int, page_count: int, page: int
    ) -> None:
        if on_progress is None:
            return
        try:
            on_progress(total, page_count, page)
        except Exception as e:
            self.logger.warning(f"Progress callback error: {e}")

    async def fetch_all_items(
        self, board_id: str, group_id: str, on_progress: Optional[ProgressCallback] = None
    ) -> list[RawItem]:
        """Fetch every item of a group, one cursor page after another.

        Stops when a page comes back without a cursor or short, or after
        ``max_pages`` pages, in which case the items gathered so far are
        returned. A failing page aborts the whole fetch.
        """
        self.logger.info(f"Querying items with pagination: {group_id}")
        items: list[RawItem] = []
        cursor: Optional[str] = None
        page = 1

        while True:
            variables: dict[str, Any] = {
                "boardId": board_id,
                "groupId": str(group_id),
                "limit": self.page_size,
            }
            if cursor:
                variables["cursor"] = cursor
            query = ITEMS_NEXT_PAGE_QUERY if cursor else ITEMS_PAGE_QUERY

            try:
                data = await self._execute(query, variables)
            except MondayError as e:
                self.logger.error(f"Error in paginated query page {page}: {e}")
                raise

            items_page = self._items_page(data)
            if items_page is None:
                break

            page_items = [RawItem.from_api(raw) for raw in items_page.get("items") or []]
            items.extend(page_items)
            self.logger.info(f"Page {page}: {len(page_items)} items (Total: {len(items)})")
            self._report_progress(on_progress, len(items), len(page_items), page)

            cursor = items_page.get("cursor")
            if not cursor or len(page_items) < self.page_size:
                break

            if page >= self.max_pages:
                self.logger.warning(
                    f"Reached safety limit of {self.max_pages} pages "
                    f"({self.max_pages * self.page_size} items)"
                )
                break

            page += 1
            await asyncio.sleep(self.page_delay)

        self.logger.info(f"Paginated query completed: {len(items)} total items")
        return items

    async def fetch_items_direct(
        self, board_id: str, group_id: str, on_progress: Optional[ProgressCallback] = None
    ) -> list[RawItem]:
        """Fetch a single page of items without following the cursor"""
        self.logger.info(f"Attempting direct query for all items in group: {group_id}")
        data = await self._execute(
            ITEMS_PAGE_QUERY,
            {"boardId": board_id, "groupId": str(group_id), "limit": self.page_size},
        )
        items_page = self._items_page(data)
        if items_page is None:
            return []

        items = [RawItem.from_api(raw) for raw in items_page.get("items") or []]
        self.logger.info(f"Direct query successful: {len(items)} items")
        self._report_progress(on_progress, len(items), len(items), 1)
        return items

    async def fetch_items(
        self, board_id: str, group_id: str, on_progress: Optional[ProgressCallback] = None
    ) -> list[RawItem]:
        """Fetch a group's items, falling back across query shapes.

        Each shape in ``QUERY_STRATEGIES`` is tried in turn until one returns
        items. A shape that fails with a RemoteError is skipped; if none
        returned items and any of them failed, the last failure is raised.
        """
        strategies = {
            "paginated": lambda: self.fetch_all_items(board_id, group_id, on_progress),
            "direct": lambda: self.fetch_items_direct(board_id, group_id, on_progress),
        }
        last_error: Optional[RemoteError] = None

        for name in self.QUERY_STRATEGIES:
            self.logger.info(f"Attempting {name} query...")
            try:
                items = await strategies[name]()
            except RemoteError as e:
                self.logger.warning(f"{name} query failed: {e}")
                last_error = e
                continue

            if items:
                self.logger.info(f"{name} query successful: {len(items)} items found")
                return items
            self.logger.warning(f"{name} query returned 0 items")

        if last_error is not None:
            raise last_error
        return []

    async def create_item(
        self, board_id: str, group_id: str, item_name: str, column_values: dict[str, Any]
    ) -> dict[str, Any]:
        self.logger.info(f"Creating item: {item_name}")
        data = await self._execute(
            CREATE_ITEM_MUTATION,
            {
                "boardId": board_id,
                "groupId": str(group_id),
                "itemName": item_name,
                "columnValues": json.dumps(column_values),
            },
        )
        created = data.get("create_item") or {}
        self.logger.info(f"Item created successfully: {created.get('id')}")
        return created

    async def update_item(
        self, item_id: str, column_values: dict[str, Any], board_id: str = DEFAULT_BOARD_ID
    ) -> dict[str, Any]:
        self.logger.info(f"Updating item: {item_id}")
        data = await self._execute(
            UPDATE_ITEM_MUTATION,
            {"itemId": item_id, "boardId": board_id, "columnValues": json.dumps(column_values)},
        )
        self.logger.info(f"Item updated successfully: {item_id}")
        return data.get("change_multiple_column_values") or {}

    async def delete_item(self, item_id: str) -> dict[str, Any]:
        self.logger.info(f"Deleting item: {item_id}")
        data = await self._execute(DELETE_ITEM_MUTATION, {"itemId": item_id})
        self.logger.info(f"Item deleted successfully: {item_id}")
        return data.get("delete_item") or {}

    async def test_connection(self) -> dict[str, Any]:
        """Check the API key by loading the current user"""
        self.logger.info("Testing monday.com connection...")
        try:
            user = await self.fetch_user()
        except MondayError as e:
            self.logger.error(f"Connection test failed: {e}")
            return {"success": False, "error": str(e)}

        self.logger.info("Connection test successful")
        return {"success": True, "user": user}
