import asyncio
import json
from datetime import date

import pytest

from claim_calendar.claims.memory import CustomerWorkMemory
from claim_calendar.claims.tracker import (
    API_KEY_STORAGE_KEY,
    FALLBACK_GROUP_ID,
    ClaimDraft,
    ClaimTracker,
    build_column_values,
    build_update_values,
)
from claim_calendar.db.kv_store import SQLiteKeyValueStore
from claim_calendar.monday.client import AuthError, NotFoundError, RemoteError

from .conftest import USER, FakeMonday, claim_item, make_client


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def store(tmp_path) -> SQLiteKeyValueStore:
    return SQLiteKeyValueStore(tmp_path)


def make_tracker(fake: FakeMonday, store: SQLiteKeyValueStore, **kwargs) -> ClaimTracker:
    tracker = ClaimTracker(
        monday_client=make_client(fake, api_key=None),
        memory=CustomerWorkMemory(store),
        store=store,
        board_id="1",
        week_start="2025-03-12",
        **kwargs,
    )
    run(tracker.validate_api_key("secret"))
    return tracker


def draft(**overrides) -> ClaimDraft:
    values = dict(date="2025-03-11", activity_type=1, customer="Acme", work_item="Audit", hours="8")
    values.update(overrides)
    return ClaimDraft(**values)


def test_validate_api_key_persists_only_valid_keys(store: SQLiteKeyValueStore) -> None:
    fake = FakeMonday()
    tracker = ClaimTracker(make_client(fake, api_key=None), store=store)

    fake.graphql_errors = [{"message": "Not Authenticated"}]
    with pytest.raises(RemoteError):
        run(tracker.validate_api_key("bad"))
    assert store.get(API_KEY_STORAGE_KEY) is None
    assert tracker.user is None

    fake.graphql_errors = None
    assert run(tracker.validate_api_key("  good  ")) == USER
    assert store.get(API_KEY_STORAGE_KEY) == "good"


def test_restore_api_key_uses_stored_key(store: SQLiteKeyValueStore) -> None:
    store.set(API_KEY_STORAGE_KEY, "stored")
    fake = FakeMonday()
    tracker = ClaimTracker(make_client(fake, api_key=None), store=store)

    assert run(tracker.restore_api_key()) == USER
    assert fake.requests[0]["headers"]["authorization"] == "stored"


def test_week_navigation_snaps_to_monday(store: SQLiteKeyValueStore) -> None:
    tracker = ClaimTracker(make_client(FakeMonday()), store=store, week_start="2025-03-13")

    assert tracker.week_start == date(2025, 3, 10)
    assert tracker.next_week() == date(2025, 3, 17)
    assert tracker.previous_week() == date(2025, 3, 10)
    assert tracker.select_week("2025-01-01") == date(2024, 12, 30)


def test_load_week_requires_user(store: SQLiteKeyValueStore) -> None:
    tracker = ClaimTracker(make_client(FakeMonday()), store=store)
    with pytest.raises(AuthError):
        run(tracker.load_week())


def test_load_week_builds_index_and_learns_pairs(store: SQLiteKeyValueStore) -> None:
    fake = FakeMonday(
        items=[
            claim_item("1", "2025-03-11", customer="Acme", work_item="Audit"),
            claim_item("2", "2025-03-04", customer="Old", work_item="Gone"),
            claim_item("3", "2025-03-11", name="Grace Hopper", customer="Navy", work_item="COBOL"),
            claim_item("4", "2025-03-14", customer="Initech", work_item="TPS", status_index=6),
        ]
    )
    tracker = make_tracker(fake, store)

    index = run(tracker.load_week())

    assert list(index) == tracker.week_dates
    assert [e.id for e in index["2025-03-11"]] == ["1"]
    assert [e.id for e in index["2025-03-14"]] == ["4"]
    assert tracker.week_index is index
    assert tracker.memory.active_pairs() == [("Acme", "Audit"), ("Initech", "TPS")]
    assert tracker.find_entry("4").activity_type == 6
    with pytest.raises(NotFoundError):
        tracker.find_entry("2")


def test_reload_replaces_previous_index(store: SQLiteKeyValueStore) -> None:
    fake = FakeMonday(items=[claim_item("1", "2025-03-11")])
    tracker = make_tracker(fake, store)
    run(tracker.load_week())

    fake.items = [claim_item("7", "2025-03-12")]
    index = run(tracker.load_week())

    assert index["2025-03-11"] == []
    assert [e.id for e in index["2025-03-12"]] == ["7"]


def test_week_across_new_year_reads_both_year_groups(store: SQLiteKeyValueStore) -> None:
    fake = FakeMonday(groups=[{"id": "g2024", "title": "2024"}, {"id": "g2025", "title": "2025"}])
    tracker = make_tracker(fake, store)

    run(tracker.load_week("2024-12-31"))

    group_ids = {r["variables"]["groupId"] for r in fake.operations("GetItemsPage")}
    assert group_ids == {"g2024", "g2025"}


def test_save_entry_creates_item_in_year_group(store: SQLiteKeyValueStore) -> None:
    fake = FakeMonday()
    tracker = make_tracker(fake, store)

    created = run(tracker.save_entry(draft(comment="  kickoff ")))

    assert created == {"id": "new-1"}
    variables = fake.operations("CreateItem")[0]["variables"]
    assert variables["groupId"] == "group_2025"
    assert variables["itemName"] == USER.name
    assert json.loads(variables["columnValues"]) == {
        "person": {"personsAndTeams": [{"id": USER.id, "kind": "person"}]},
        "date4": {"date": "2025-03-11"},
        "status": {"index": 1},
        "text__1": "Acme",
        "text8__1": "Audit",
        "numbers__1": "8",
        "text2__1": "kickoff",
    }
    assert tracker.memory.suggestions("Acme") == ["Audit"]


def test_save_entry_uses_fallback_group_when_board_has_none(store: SQLiteKeyValueStore) -> None:
    fake = FakeMonday(groups=[])
    tracker = make_tracker(fake, store)

    run(tracker.save_entry(draft()))

    assert fake.operations("CreateItem")[0]["variables"]["groupId"] == FALLBACK_GROUP_ID


def test_save_entries_stops_at_first_failure(store: SQLiteKeyValueStore) -> None:
    fake = FakeMonday()
    tracker = make_tracker(fake, store)

    created = run(tracker.save_entries([draft(), draft(date="2025-03-12")]))
    assert len(created) == 2

    fake.graphql_errors = [{"message": "Board is read only"}]
    with pytest.raises(RemoteError, match="Board is read only"):
        run(tracker.save_entries([draft(), draft()]))


def test_update_and_delete_entry(store: SQLiteKeyValueStore) -> None:
    fake = FakeMonday()
    tracker = make_tracker(fake, store)

    run(tracker.update_entry("55", draft(customer="Globex", work_item="Support", hours="3.5")))
    run(tracker.delete_entry("55"))

    update_vars = fake.operations("UpdateItem")[0]["variables"]
    assert update_vars["itemId"] == "55"
    assert update_vars["boardId"] == "1"
    assert json.loads(update_vars["columnValues"]) == {
        "date4": {"date": "2025-03-11"},
        "status": {"index": 1},
        "text__1": "Globex",
        "text8__1": "Support",
        "numbers__1": "3.5",
    }
    assert fake.operations("DeleteItem")[0]["variables"] == {"itemId": "55"}
    assert tracker.memory.suggestions("Globex") == ["Support"]


def test_column_payloads_omit_empty_comment() -> None:
    values = build_column_values(draft(comment=""), "7")
    assert "text2__1" not in values
    assert "text2__1" in build_update_values(draft(comment="note"))


@pytest.mark.parametrize(
    "overrides",
    [
        {"activity_type": 13},
        {"hours": "eight"},
        {"hours": "-1"},
        {"hours": "nan"},
        {"date": "11/03/2025"},
        {"customer": "   "},
        {"work_item": "  "},
    ],
)
def test_invalid_drafts_are_rejected(overrides) -> None:
    with pytest.raises(ValueError):
        draft(**overrides)
