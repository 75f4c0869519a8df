# claim_calendar/monday/models.py
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


# Column ids on the claims board
PERSON_COLUMN = "person"
DATE_COLUMN = "date4"
STATUS_COLUMN = "status"
CUSTOMER_COLUMN = "text__1"
WORK_ITEM_COLUMN = "text8__1"
COMMENT_COLUMN = "text2__1"
HOURS_COLUMN = "numbers__1"


class ActivityType(Enum):
    """Activity categories a claim can be booked against"""

    VACATION = 0
    BILLABLE = 1
    HOLDING = 2
    EDUCATION = 3
    WORK_REDUCTION = 4
    TBD = 5
    HOLIDAY = 6
    PRESALES = 7
    ILLNESS = 8
    PAID_NOT_WORKED = 9
    INTELLECTUAL_CAPITAL = 10
    BUSINESS_DEVELOPMENT = 11
    OVERHEAD = 12

    @property
    def label(self) -> str:
        if self is ActivityType.TBD:
            return "TBD"
        return self.name.replace("_", " ").title()

    @classmethod
    def label_for(cls, code: int) -> str:
        """Display label for a code, "Unknown" outside the table"""
        try:
            return cls(code).label
        except ValueError:
            return "Unknown"


DEFAULT_ACTIVITY_TYPE = ActivityType.BILLABLE.value


@dataclass(frozen=True)
class ColumnValue:
    """One cell of a board item as returned by the API"""

    id: str
    value: Optional[str] = None
    text: Optional[str] = None


def cell_string(raw: Any) -> Optional[str]:
    """Cells occasionally arrive as bare JSON values instead of encoded strings"""
    if raw is None or isinstance(raw, str):
        return raw
    return json.dumps(raw)


@dataclass(frozen=True)
class RawItem:
    """A board item exactly as received from the remote API"""

    id: str
    name: str
    column_values: tuple[ColumnValue, ...] = ()

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "RawItem":
        columns = tuple(
            ColumnValue(
                id=str(col.get("id", "")),
                value=cell_string(col.get("value")),
                text=cell_string(col.get("text")),
            )
            for col in data.get("column_values") or []
        )
        return cls(id=str(data.get("id", "")), name=data.get("name") or "", column_values=columns)

    def column(self, column_id: str) -> Optional[ColumnValue]:
        for col in self.column_values:
            if col.id == column_id:
                return col
        return None


@dataclass(frozen=True)
class CanonicalEntry:
    """A claim entry placed on the calendar"""

    id: str
    date: str
    activity_type: int
    customer: str
    work_item: str
    comment: str
    hours: str


@dataclass(frozen=True)
class User:
    id: str
    name: str
    email: str


@dataclass(frozen=True)
class Group:
    id: str
    title: str


@dataclass(frozen=True)
class Board:
    id: str
    name: str
    groups: list[Group] = field(default_factory=list)


WeekIndex = dict[str, list[CanonicalEntry]]
