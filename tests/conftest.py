import json
from typing import Any, Optional

import httpx
import pytest

from claim_calendar.monday.client import MondayClient
from claim_calendar.monday.models import ColumnValue, RawItem, User


USER = User(id="4242", name="Ada Lovelace", email="ada@example.com")


def column(column_id: str, value: Any = None, text: Optional[str] = None) -> dict[str, Any]:
    """API shaped column; dict/list values are JSON-encoded like the real API does"""
    if isinstance(value, (dict, list)):
        value = json.dumps(value)
    return {"id": column_id, "value": value, "text": text}


def claim_item(
    item_id: str,
    day: str,
    name: str = "Ada Lovelace",
    customer: str = "Acme",
    work_item: str = "Migration",
    hours: str = "8",
    status_index: int = 1,
    comment: Optional[str] = None,
    person_id: Optional[str] = None,
) -> dict[str, Any]:
    columns = [
        column("date4", {"date": day}, day),
        column("status", {"index": status_index}, None),
        column("text__1", json.dumps(customer), customer),
        column("text8__1", json.dumps(work_item), work_item),
        column("numbers__1", json.dumps(hours), hours),
    ]
    if comment is not None:
        columns.append(column("text2__1", json.dumps(comment), comment))
    if person_id is not None:
        columns.append(column("person", {"personsAndTeams": [{"id": int(person_id), "kind": "person"}]}, None))
    return {"id": item_id, "name": name, "column_values": columns}


def raw_item(*args: Any, **kwargs: Any) -> RawItem:
    return RawItem.from_api(claim_item(*args, **kwargs))


def bare_item(item_id: str, name: str, *columns: ColumnValue) -> RawItem:
    return RawItem(id=item_id, name=name, column_values=tuple(columns))


class FakeMonday:
    """In-memory stand-in for the monday.com GraphQL endpoint"""

    def __init__(
        self,
        items: Optional[list[dict[str, Any]]] = None,
        groups: Optional[list[dict[str, str]]] = None,
        always_cursor: bool = False,
    ):
        self.items = items or []
        self.groups = groups if groups is not None else [{"id": "group_2025", "title": "2025"}]
        self.always_cursor = always_cursor
        self.requests: list[dict[str, Any]] = []
        self.fail_with: Optional[httpx.Response] = None
        self.graphql_errors: Optional[list[dict[str, Any]]] = None

    def operations(self, name: str) -> list[dict[str, Any]]:
        return [r for r in self.requests if name in r["query"]]

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        body["headers"] = dict(request.headers)
        self.requests.append(body)

        if self.fail_with is not None:
            return self.fail_with
        if self.graphql_errors is not None:
            return httpx.Response(200, json={"errors": self.graphql_errors})

        query = body["query"]
        variables = body.get("variables") or {}
        if "me {" in query:
            data = {"me": {"id": int(USER.id), "name": USER.name, "email": USER.email}}
        elif "GetBoard" in query:
            data = {"boards": [{"id": variables["boardId"], "name": "Claims", "groups": self.groups}]}
        elif "GetItemsPage" in query:
            data = self._items_page(variables)
        elif "CreateItem" in query:
            data = {"create_item": {"id": f"new-{len(self.operations('CreateItem'))}"}}
        elif "UpdateItem" in query:
            data = {"change_multiple_column_values": {"id": variables["itemId"]}}
        elif "DeleteItem" in query:
            data = {"delete_item": {"id": variables["itemId"]}}
        else:
            return httpx.Response(400, text="unknown operation")
        return httpx.Response(200, json={"data": data})

    def _items_page(self, variables: dict[str, Any]) -> dict[str, Any]:
        limit = variables["limit"]
        offset = int(variables.get("cursor") or 0)
        page = self.items[offset : offset + limit]
        next_offset = offset + limit
        has_more = next_offset < len(self.items)
        cursor = str(next_offset) if (has_more or self.always_cursor) else None
        return {
            "boards": [
                {"groups": [{"items_page": {"cursor": cursor, "items": page}}]}
            ]
        }


def make_client(fake: FakeMonday, api_key: Optional[str] = "test-key", **kwargs: Any) -> MondayClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake.handle))
    kwargs.setdefault("page_delay", 0)
    return MondayClient(api_key=api_key, http_client=http_client, **kwargs)


@pytest.fixture
def fake_monday() -> FakeMonday:
    return FakeMonday()


@pytest.fixture
def client(fake_monday: FakeMonday) -> MondayClient:
    return make_client(fake_monday)
