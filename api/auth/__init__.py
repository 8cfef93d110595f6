"""Authentication API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Security, status
from pydantic import BaseModel

from auth import (
    AuthError, AuthManager, AuthUser, SessionExpiredError, get_auth_manager, get_current_user
)

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)

class SessionRequest(BaseModel):
    """Request model for starting a session."""
    token: str

@router.post("/session")
async def start_session(
    request: SessionRequest,
    manager: AuthManager = Depends(get_auth_manager)
):
    """Sign in with a session token.

    Notifies auth subscribers, which creates or refreshes the user's profile.
    """
    try:
        user = await manager.authenticate(request.token)
        return {"user": user.to_dict()}
    except SessionExpiredError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session has expired"
        )
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )

@router.get("/verify")
async def verify_token(user: AuthUser = Security(get_current_user)):
    """Verify the current session token."""
    return {
        "valid": True,
        "uid": user.uid
    }

# Export the router
__all__ = ['router']
