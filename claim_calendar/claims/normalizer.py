import asyncio
import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

from ..monday.models import (
    COMMENT_COLUMN,
    CUSTOMER_COLUMN,
    DATE_COLUMN,
    DEFAULT_ACTIVITY_TYPE,
    HOURS_COLUMN,
    PERSON_COLUMN,
    STATUS_COLUMN,
    WORK_ITEM_COLUMN,
    ActivityType,
    CanonicalEntry,
    ColumnValue,
    RawItem,
    User,
    WeekIndex,
    cell_string,
)

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Values the API uses for "nothing here"
EMPTY_SENTINELS = {"", "null", '""'}

ACTIVITY_CODES = {activity_type.value for activity_type in ActivityType}

ACTIVITY_KEYWORDS = {
    "vacation": ActivityType.VACATION,
    "billable": ActivityType.BILLABLE,
    "holding": ActivityType.HOLDING,
    "education": ActivityType.EDUCATION,
    "work reduction": ActivityType.WORK_REDUCTION,
    "tbd": ActivityType.TBD,
    "holiday": ActivityType.HOLIDAY,
    "presales": ActivityType.PRESALES,
    "illness": ActivityType.ILLNESS,
    "paid not worked": ActivityType.PAID_NOT_WORKED,
    "intellectual capital": ActivityType.INTELLECTUAL_CAPITAL,
    "business development": ActivityType.BUSINESS_DEVELOPMENT,
    "overhead": ActivityType.OVERHEAD,
}


@dataclass(frozen=True)
class Structured:
    """A cell payload that decoded as JSON"""

    data: Any


@dataclass(frozen=True)
class PlainText:
    """A cell payload that is a plain string"""

    text: str


@dataclass(frozen=True)
class Absent:
    """No usable payload"""

    pass


CellPayload = Union[Structured, PlainText, Absent]

ABSENT = Absent()


@dataclass(frozen=True)
class DecodedCell:
    """Both representations of one column, decoded once"""

    value: CellPayload
    text: CellPayload
    raw_value: Optional[str] = None


def decode_value(raw: Any) -> CellPayload:
    raw = cell_string(raw)
    if raw is None or raw in EMPTY_SENTINELS:
        return ABSENT
    try:
        return Structured(json.loads(raw))
    except ValueError:
        return PlainText(raw)


def decode_text(raw: Any) -> CellPayload:
    raw = cell_string(raw)
    if raw is None or raw in EMPTY_SENTINELS:
        return ABSENT
    return PlainText(raw)


def decode_column(column: Optional[ColumnValue]) -> Optional[DecodedCell]:
    if column is None:
        return None
    return DecodedCell(
        value=decode_value(column.value),
        text=decode_text(column.text),
        raw_value=cell_string(column.value),
    )


@dataclass(frozen=True)
class WeekSummary:
    total_hours: float
    total_entries: int


def summarize_week(week_index: WeekIndex) -> WeekSummary:
    """Total hours and entry count of a week; unparseable or non-finite hours count as zero"""
    total_hours = 0.0
    total_entries = 0
    for entries in week_index.values():
        total_entries += len(entries)
        for entry in entries:
            try:
                hours = float(entry.hours)
            except (TypeError, ValueError):
                continue
            if math.isfinite(hours):
                total_hours += hours
    return WeekSummary(total_hours=round(total_hours, 2), total_entries=total_entries)


class EntryNormalizer:
    """Turns raw board items into calendar entries for one user and one week.

    Every per-item problem (not the user's item, no date, odd payloads)
    excludes the item or defaults the field; normalization never raises
    for a malformed item.
    """

    CHUNK_SIZE = 250

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def is_user_item(self, item: RawItem, user: User) -> bool:
        if user.name and user.name in item.name:
            return True

        cell = decode_column(item.column(PERSON_COLUMN))
        if cell is None:
            return False

        if isinstance(cell.value, Structured) and isinstance(cell.value.data, dict):
            persons = cell.value.data.get("personsAndTeams")
            if isinstance(persons, list):
                for person in persons:
                    if isinstance(person, dict) and str(person.get("id")) == str(user.id):
                        return True

        if isinstance(cell.text, PlainText):
            if (user.name and user.name in cell.text.text) or (
                user.email and user.email in cell.text.text
            ):
                return True

        return False

    def extract_date(self, item: RawItem) -> Optional[str]:
        cell = decode_column(item.column(DATE_COLUMN))
        if cell is None:
            return None

        if isinstance(cell.value, Structured) and isinstance(cell.value.data, dict):
            value = cell.value.data.get("date")
            if isinstance(value, str) and value:
                return value.split("T")[0]

        if isinstance(cell.text, PlainText):
            date_str = cell.text.text.split("T")[0]
            if ISO_DATE_RE.match(date_str):
                return date_str
            self.logger.debug(f"Invalid date format in text for item {item.id}: {date_str}")

        return None

    def extract_text(self, item: RawItem, column_id: str) -> str:
        cell = decode_column(item.column(column_id))
        if cell is None:
            return ""

        if isinstance(cell.text, PlainText):
            return cell.text.text
        if isinstance(cell.value, Structured):
            data = cell.value.data
            if isinstance(data, str):
                return data
            if isinstance(data, dict) and data.get("text"):
                return str(data["text"])
        if isinstance(cell.value, Absent):
            return ""
        return cell.raw_value or ""

    def extract_activity_type(self, item: RawItem) -> int:
        cell = decode_column(item.column(STATUS_COLUMN))
        if cell is None:
            return DEFAULT_ACTIVITY_TYPE

        if isinstance(cell.value, Structured) and isinstance(cell.value.data, dict):
            index = cell.value.data.get("index")
            if isinstance(index, int) and not isinstance(index, bool):
                if index in ACTIVITY_CODES:
                    return index

        if isinstance(cell.text, PlainText):
            text = cell.text.text.lower()
            for keyword, activity_type in ACTIVITY_KEYWORDS.items():
                if keyword in text:
                    return activity_type.value

        return DEFAULT_ACTIVITY_TYPE

    def to_entry(self, item: RawItem, date: str) -> CanonicalEntry:
        return CanonicalEntry(
            id=item.id,
            date=date,
            activity_type=self.extract_activity_type(item),
            customer=self.extract_text(item, CUSTOMER_COLUMN),
            work_item=self.extract_text(item, WORK_ITEM_COLUMN),
            comment=self.extract_text(item, COMMENT_COLUMN),
            hours=self.extract_text(item, HOURS_COLUMN),
        )

    def _place(self, index: WeekIndex, item: RawItem, user: User) -> None:
        if not self.is_user_item(item, user):
            self.logger.debug(f"User mismatch: item {item.id} ({item.name!r})")
            return

        date = self.extract_date(item)
        if date is None:
            self.logger.debug(f"No date: could not extract date for item {item.id} ({item.name!r})")
            return

        if date not in index:
            self.logger.debug(f"Date outside week: {date} for item {item.id}")
            return

        index[date].append(self.to_entry(item, date))

    @staticmethod
    def _empty_index(week_dates: Iterable[str]) -> WeekIndex:
        return {str(date): [] for date in week_dates}

    def normalize(self, items: Iterable[RawItem], user: User, week_dates: Iterable[str]) -> WeekIndex:
        """Group the user's items of the given week by date, in arrival order"""
        index = self._empty_index(week_dates)
        count = 0
        for item in items:
            self._place(index, item, user)
            count += 1
        self._log_summary(count, index)
        return index

    async def normalize_chunked(
        self,
        items: list[RawItem],
        user: User,
        week_dates: Iterable[str],
        chunk_size: int = CHUNK_SIZE,
    ) -> WeekIndex:
        """Same result as normalize, yielding to the event loop between chunks"""
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")

        index = self._empty_index(week_dates)
        for start in range(0, len(items), chunk_size):
            for item in items[start : start + chunk_size]:
                self._place(index, item, user)
            await asyncio.sleep(0)
        self._log_summary(len(items), index)
        return index

    def _log_summary(self, item_count: int, index: WeekIndex) -> None:
        placed = sum(len(entries) for entries in index.values())
        self.logger.info(f"Processed {item_count} items: {placed} entries in the selected week")
