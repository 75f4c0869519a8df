from fastapi import APIRouter, Depends
from pydantic import BaseModel

from claim_calendar.api.dependencies import get_tracker
from claim_calendar.claims.tracker import ClaimTracker
from claim_calendar.monday.client import AuthError


router = APIRouter(prefix="/auth", tags=["authentication"])


class ApiKeyRequest(BaseModel):
    api_key: str


class UserResponse(BaseModel):
    id: str
    name: str
    email: str


@router.post("/api-key")
async def save_api_key(body: ApiKeyRequest, tracker: ClaimTracker = Depends(get_tracker)) -> UserResponse:
    """Validate an API key, store it and return its owner."""
    user = await tracker.validate_api_key(body.api_key)
    return UserResponse(id=user.id, name=user.name, email=user.email)


@router.get("/me")
async def current_user(tracker: ClaimTracker = Depends(get_tracker)) -> UserResponse:
    """Return the user of the stored API key."""
    if tracker.user is None:
        raise AuthError("Please save your API key first")
    return UserResponse(id=tracker.user.id, name=tracker.user.name, email=tracker.user.email)


class ConnectionStatus(BaseModel):
    success: bool
    user: UserResponse | None = None
    error: str | None = None


@router.get("/test-connection")
async def test_connection(tracker: ClaimTracker = Depends(get_tracker)) -> ConnectionStatus:
    """Check the current API key against monday.com without raising"""
    result = await tracker.monday_client.test_connection()
    if not result["success"]:
        return ConnectionStatus(success=False, error=result["error"])
    user = result["user"]
    return ConnectionStatus(success=True, user=UserResponse(id=user.id, name=user.name, email=user.email))
