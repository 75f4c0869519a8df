from fastapi import Request

from claim_calendar.claims.memory import CustomerWorkMemory
from claim_calendar.claims.tracker import ClaimTracker


def get_tracker(request: Request) -> ClaimTracker:
    return request.app.state.tracker


def get_memory(request: Request) -> CustomerWorkMemory:
    return request.app.state.tracker.memory
