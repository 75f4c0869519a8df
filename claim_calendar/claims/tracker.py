import logging
import math
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from ..db.kv_store import SQLiteKeyValueStore
from ..monday.client import (
    DEFAULT_BOARD_ID,
    AuthError,
    MondayClient,
    MondayError,
    NotFoundError,
    ProgressCallback,
)
from ..monday.models import (
    COMMENT_COLUMN,
    CUSTOMER_COLUMN,
    DATE_COLUMN,
    HOURS_COLUMN,
    PERSON_COLUMN,
    STATUS_COLUMN,
    WORK_ITEM_COLUMN,
    ActivityType,
    CanonicalEntry,
    Group,
    User,
    WeekIndex,
)
from .memory import CustomerWorkMemory
from .normalizer import EntryNormalizer
from .week import FULL_WEEK, DateLike, get_monday, shift_week, to_date, week_dates

logger = logging.getLogger(__name__)

API_KEY_STORAGE_KEY = "monday_api_key"
FALLBACK_GROUP_ID = "new_group_mkkbbd2q"


@dataclass
class ClaimDraft:
    """User input for a new or edited claim"""

    date: str
    activity_type: int
    customer: str
    work_item: str
    hours: str
    comment: str = ""

    def __post_init__(self):
        self.date = to_date(self.date).isoformat()
        self.activity_type = int(self.activity_type)
        if self.activity_type not in {t.value for t in ActivityType}:
            raise ValueError(f"Unknown activity type: {self.activity_type}")
        self.customer = self.customer.strip()
        self.work_item = self.work_item.strip()
        if not self.customer or not self.work_item:
            raise ValueError("Customer and work item are required")
        self.comment = (self.comment or "").strip()
        self.hours = str(self.hours).strip()
        try:
            hours = float(self.hours)
        except ValueError:
            raise ValueError(f"Hours must be a number, got {self.hours!r}")
        if not math.isfinite(hours) or hours < 0:
            raise ValueError(f"Hours must be a non-negative number, got {self.hours!r}")


def build_update_values(draft: ClaimDraft) -> dict[str, Any]:
    """Column values patched onto an existing claim"""
    column_values: dict[str, Any] = {
        DATE_COLUMN: {"date": draft.date},
        STATUS_COLUMN: {"index": draft.activity_type},
        CUSTOMER_COLUMN: draft.customer,
        WORK_ITEM_COLUMN: draft.work_item,
        HOURS_COLUMN: draft.hours,
    }
    if draft.comment:
        column_values[COMMENT_COLUMN] = draft.comment
    return column_values


def build_column_values(draft: ClaimDraft, user_id: str) -> dict[str, Any]:
    """Column values for a new claim item"""
    column_values: dict[str, Any] = {
        PERSON_COLUMN: {"personsAndTeams": [{"id": user_id, "kind": "person"}]},
    }
    column_values.update(build_update_values(draft))
    return column_values


class ClaimTracker:
    """Loads the selected week of claims and writes changes back to the board"""

    def __init__(
        self,
        monday_client: MondayClient,
        normalizer: Optional[EntryNormalizer] = None,
        memory: Optional[CustomerWorkMemory] = None,
        store: Optional[SQLiteKeyValueStore] = None,
        board_id: str = DEFAULT_BOARD_ID,
        fallback_group_id: str = FALLBACK_GROUP_ID,
        week_days: int = FULL_WEEK,
        week_start: Optional[DateLike] = None,
    ):
        self.monday_client = monday_client
        self.normalizer = normalizer or EntryNormalizer()
        self.store = store
        self.memory = memory or CustomerWorkMemory(store)
        self.board_id = board_id
        self.fallback_group_id = fallback_group_id
        self.week_days = week_days
        self.week_start: date = get_monday(week_start)
        self.user: Optional[User] = None
        self.week_index: WeekIndex = {}

    @property
    def week_dates(self) -> list[str]:
        return week_dates(self.week_start, self.week_days)

    def _require_user(self) -> User:
        if self.user is None:
            raise AuthError("Please save your API key first")
        return self.user

    async def validate_api_key(self, api_key: str) -> User:
        """Check a key against the API and persist it only if it works"""
        api_key = (api_key or "").strip()
        if not api_key:
            raise AuthError("Please enter an API key")

        previous_key = self.monday_client.api_key
        self.monday_client.set_api_key(api_key)
        try:
            user = await self.monday_client.fetch_user()
        except MondayError:
            logger.exception("API key validation failed")
            self.monday_client.api_key = previous_key
            raise

        self.user = user
        if self.store is not None:
            self.store.set(API_KEY_STORAGE_KEY, api_key)
        logger.info(f"API key saved for {user.name} ({user.email})")
        return user

    async def restore_api_key(self) -> Optional[User]:
        """Validate the persisted API key at startup, if there is one"""
        stored_key = self.store.get(API_KEY_STORAGE_KEY) if self.store is not None else None
        if not stored_key:
            return None
        try:
            return await self.validate_api_key(stored_key)
        except MondayError as e:
            logger.warning(f"Stored API key could not be validated: {e}")
            return None

    def select_week(self, day: DateLike) -> date:
        self.week_start = get_monday(day)
        return self.week_start

    def next_week(self) -> date:
        self.week_start = shift_week(self.week_start, 1)
        return self.week_start

    def previous_week(self) -> date:
        self.week_start = shift_week(self.week_start, -1)
        return self.week_start

    async def _groups_for(self, dates: list[str]) -> list[Group]:
        """Year groups covering the dates; a week across New Year spans two"""
        groups: list[Group] = []
        for year in sorted({day[:4] for day in dates}):
            group = await self.monday_client.fetch_group(self.board_id, year)
            if group.id not in {g.id for g in groups}:
                groups.append(group)
        return groups

    async def load_week(
        self, week_start: Optional[DateLike] = None, on_progress: Optional[ProgressCallback] = None
    ) -> WeekIndex:
        """Fetch the board and rebuild the index of the selected week"""
        user = self._require_user()
        if week_start is not None:
            self.select_week(week_start)

        dates = self.week_dates
        started = time.perf_counter()
        logger.info(f"Loading week {dates[0]}..{dates[-1]} for {user.name} (ID: {user.id})")

        items = []
        for group in await self._groups_for(dates):
            items.extend(await self.monday_client.fetch_items(self.board_id, group.id, on_progress))

        week_index = await self.normalizer.normalize_chunked(items, user, dates)
        self.memory.learn_many(
            (entry.customer, entry.work_item) for entries in week_index.values() for entry in entries
        )
        self.week_index = week_index

        elapsed_ms = (time.perf_counter() - started) * 1000
        days_with_entries = sum(1 for entries in week_index.values() if entries)
        logger.info(
            f"Data load completed in {elapsed_ms:.0f}ms - {len(items)} items, "
            f"entries on {days_with_entries} days"
        )
        return week_index

    def find_entry(self, entry_id: str) -> CanonicalEntry:
        for entries in self.week_index.values():
            for entry in entries:
                if entry.id == entry_id:
                    return entry
        raise NotFoundError(f"Entry {entry_id} not found in the selected week")

    async def _group_id_for(self, day: str) -> str:
        try:
            group = await self.monday_client.fetch_group(self.board_id, day[:4])
        except NotFoundError:
            logger.warning(f"No year group found, using fallback group {self.fallback_group_id}")
            return self.fallback_group_id
        return group.id

    async def save_entry(self, draft: ClaimDraft) -> dict[str, Any]:
        user = self._require_user()
        logger.info(
            f"Saving entry for {draft.date}: {draft.customer} / {draft.work_item} - {draft.hours} hours"
        )
        group_id = await self._group_id_for(draft.date)
        created = await self.monday_client.create_item(
            self.board_id, group_id, user.name, build_column_values(draft, user.id)
        )
        self.memory.learn(draft.customer, draft.work_item)
        return created

    async def save_entries(self, drafts: list[ClaimDraft]) -> list[dict[str, Any]]:
        """Create several claims one after another, stopping at the first failure"""
        created = []
        for draft in drafts:
            created.append(await self.save_entry(draft))
        logger.info(f"Saved {len(created)} entries")
        return created

    async def update_entry(self, entry_id: str, draft: ClaimDraft) -> dict[str, Any]:
        self._require_user()
        updated = await self.monday_client.update_item(
            entry_id, build_update_values(draft), board_id=self.board_id
        )
        self.memory.learn(draft.customer, draft.work_item)
        return updated

    async def delete_entry(self, entry_id: str) -> dict[str, Any]:
        self._require_user()
        return await self.monday_client.delete_item(entry_id)
