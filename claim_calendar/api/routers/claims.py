from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from claim_calendar.api.dependencies import get_tracker
from claim_calendar.claims.normalizer import summarize_week
from claim_calendar.claims.tracker import ClaimDraft, ClaimTracker
from claim_calendar.monday.models import ActivityType, CanonicalEntry, WeekIndex


router = APIRouter(prefix="/claims", tags=["claims"])


class ClaimIn(BaseModel):
    date: date
    activity_type: int = Field(default=ActivityType.BILLABLE.value, ge=0, le=12)
    customer: str = Field(min_length=1)
    work_item: str = Field(min_length=1)
    comment: str = ""
    hours: Decimal = Field(default=Decimal("8"), ge=0)

    def to_draft(self) -> ClaimDraft:
        return ClaimDraft(
            date=self.date.isoformat(),
            activity_type=self.activity_type,
            customer=self.customer,
            work_item=self.work_item,
            comment=self.comment,
            hours=str(self.hours),
        )


class EntryOut(BaseModel):
    id: str
    date: str
    activity_type: int
    activity_label: str
    customer: str
    work_item: str
    comment: str
    hours: str


class WeekResponse(BaseModel):
    week_start: date
    dates: list[str]
    entries: dict[str, list[EntryOut]]
    total_hours: float
    total_entries: int


class ItemResponse(BaseModel):
    id: str | None = None


def _entry_out(entry: CanonicalEntry) -> EntryOut:
    return EntryOut(
        id=entry.id,
        date=entry.date,
        activity_type=entry.activity_type,
        activity_label=ActivityType.label_for(entry.activity_type),
        customer=entry.customer,
        work_item=entry.work_item,
        comment=entry.comment,
        hours=entry.hours,
    )


def _week_response(tracker: ClaimTracker, week_index: WeekIndex) -> WeekResponse:
    summary = summarize_week(week_index)
    return WeekResponse(
        week_start=tracker.week_start,
        dates=list(week_index),
        entries={day: [_entry_out(entry) for entry in entries] for day, entries in week_index.items()},
        total_hours=summary.total_hours,
        total_entries=summary.total_entries,
    )


@router.get("/week")
async def get_week(start: date | None = None, tracker: ClaimTracker = Depends(get_tracker)) -> WeekResponse:
    """Load the user's entries for the week containing start (the selected week by default)."""
    week_index = await tracker.load_week(start)
    return _week_response(tracker, week_index)


@router.post("/week/next")
async def next_week(tracker: ClaimTracker = Depends(get_tracker)) -> WeekResponse:
    """Move to the following week and load it."""
    tracker.next_week()
    return _week_response(tracker, await tracker.load_week())


@router.post("/week/previous")
async def previous_week(tracker: ClaimTracker = Depends(get_tracker)) -> WeekResponse:
    """Move to the preceding week and load it."""
    tracker.previous_week()
    return _week_response(tracker, await tracker.load_week())


@router.get("/entries/{entry_id}")
async def get_entry(entry_id: str, tracker: ClaimTracker = Depends(get_tracker)) -> EntryOut:
    """Return one entry of the loaded week, for pre-filling an edit."""
    return _entry_out(tracker.find_entry(entry_id))


@router.post("/entries", status_code=201)
async def create_entry(body: ClaimIn, tracker: ClaimTracker = Depends(get_tracker)) -> ItemResponse:
    """Create one claim."""
    created = await tracker.save_entry(body.to_draft())
    return ItemResponse(id=created.get("id"))


@router.post("/entries/bulk", status_code=201)
async def create_entries(body: list[ClaimIn], tracker: ClaimTracker = Depends(get_tracker)) -> list[ItemResponse]:
    """Create several claims in order, stopping at the first failure."""
    created = await tracker.save_entries([claim.to_draft() for claim in body])
    return [ItemResponse(id=item.get("id")) for item in created]


@router.put("/entries/{entry_id}")
async def update_entry(
    entry_id: str, body: ClaimIn, tracker: ClaimTracker = Depends(get_tracker)
) -> ItemResponse:
    """Update the fields of an existing claim."""
    updated = await tracker.update_entry(entry_id, body.to_draft())
    return ItemResponse(id=updated.get("id", entry_id))


@router.delete("/entries/{entry_id}")
async def delete_entry(entry_id: str, tracker: ClaimTracker = Depends(get_tracker)) -> ItemResponse:
    """Delete a claim."""
    deleted = await tracker.delete_entry(entry_id)
    return ItemResponse(id=deleted.get("id", entry_id))
