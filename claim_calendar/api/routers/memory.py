from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, Field

from claim_calendar.api.dependencies import get_memory
from claim_calendar.claims.memory import CustomerWorkMemory


router = APIRouter(prefix="/memory", tags=["memory"])


class PairIn(BaseModel):
    customer: str = Field(min_length=1)
    work_item: str = Field(min_length=1, alias="workItem")

    model_config = {"populate_by_name": True}


class PairOut(BaseModel):
    customer: str
    workItem: str


class MemoryDocument(BaseModel):
    active: list[PairOut]
    expired: list[PairOut]


class MemoryOverview(BaseModel):
    customers: dict[str, list[str]]
    expired: list[PairOut]


def _overview(memory: CustomerWorkMemory) -> MemoryOverview:
    customers: dict[str, list[str]] = {}
    for customer, work_item in memory.active_pairs():
        customers.setdefault(customer, []).append(work_item)
    return MemoryOverview(
        customers=customers,
        expired=[PairOut(customer=c, workItem=w) for c, w in memory.expired_pairs()],
    )


@router.get("")
async def get_memory_overview(memory: CustomerWorkMemory = Depends(get_memory)) -> MemoryOverview:
    """Return active work items per customer and the expired pairs."""
    return _overview(memory)


@router.get("/suggestions")
async def get_suggestions(customer: str | None = None, memory: CustomerWorkMemory = Depends(get_memory)) -> list[str]:
    """Return known customers, or the active work items of one customer."""
    if customer is None:
        return memory.customers()
    return memory.suggestions(customer)


@router.post("/expire")
async def expire_pair(body: PairIn, memory: CustomerWorkMemory = Depends(get_memory)) -> MemoryOverview:
    """Hide a customer/work item pair from suggestions."""
    memory.expire(body.customer, body.work_item)
    return _overview(memory)


@router.post("/restore")
async def restore_pair(body: PairIn, memory: CustomerWorkMemory = Depends(get_memory)) -> MemoryOverview:
    """Bring an expired pair back into suggestions."""
    memory.restore(body.customer, body.work_item)
    return _overview(memory)


@router.get("/export")
async def export_memory(memory: CustomerWorkMemory = Depends(get_memory)) -> MemoryDocument:
    """Export the memory as a single JSON document."""
    return MemoryDocument(**memory.export_document())


@router.post("/import")
async def import_memory(
    document: dict = Body(...),
    replace: bool = False,
    memory: CustomerWorkMemory = Depends(get_memory),
) -> MemoryOverview:
    """Merge (or replace the memory with) an exported document."""
    memory.import_document(document, replace=replace)
    return _overview(memory)
