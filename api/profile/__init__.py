"""Profile management endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Security, status
from pydantic import BaseModel

from auth import AuthUser, get_current_user
from database import DatabaseError
from users import ProfileManager
from ..dependencies import get_document_store

router = APIRouter(
    prefix="/profile",
    tags=["Profile"]
)

class ProfileUpdate(BaseModel):
    """Model for profile updates. An empty nickname clears it."""
    nickname: Optional[str] = None

@router.get("")
async def get_profile(
    user: AuthUser = Security(get_current_user),
    store=Depends(get_document_store)
):
    """Get the authenticated user's profile."""
    try:
        return await ProfileManager(store).get_profile(user)
    except DatabaseError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

@router.patch("")
async def update_profile(
    update: ProfileUpdate,
    user: AuthUser = Security(get_current_user),
    store=Depends(get_document_store)
):
    """Update the authenticated user's nickname."""
    try:
        return await ProfileManager(store).update_nickname(user, update.nickname)
    except DatabaseError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
