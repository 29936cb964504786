"""
User Router - The player's profile, preferences, stats and achievements
"""
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy.orm import Session

from scavenger_hunt.api.common import CamelModel, ok
from scavenger_hunt.db.models import User
from scavenger_hunt.dependencies import get_current_user, get_db
from scavenger_hunt.services.user_service import user_service

logger = logging.getLogger(__name__)
router = APIRouter()


class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    email: Optional[str] = Field(None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    avatar: Optional[str] = Field(None, max_length=500)
    language: Optional[Literal["en", "ar"]] = None
    notifications: Optional[bool] = None


class PreferencesUpdate(CamelModel):
    language: Optional[Literal["en", "ar"]] = None
    notifications: Optional[bool] = None


# Declared before the /{phone_number} routes so "rankings" is not read as a phone number
@router.get("/rankings")
async def rankings(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(user_service.rankings(db, page, limit))


@router.get("/{phone_number}/profile")
async def get_profile(
    phone_number: str,
    user: User = Depends(get_current_user),
):
    user_service.authorize(user, phone_number)
    return ok({"user": user_service.profile(user)})


@router.put("/{phone_number}/profile")
async def update_profile(
    phone_number: str,
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user_service.authorize(user, phone_number)
    profile = user_service.update_profile(db, user, body.model_dump(exclude_none=True))
    return ok({"user": profile}, "Profile updated successfully")


@router.get("/{phone_number}/stats")
async def get_stats(
    phone_number: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user_service.authorize(user, phone_number)
    return ok({"stats": user_service.stats(db, user)})


@router.get("/{phone_number}/achievements")
async def get_achievements(
    phone_number: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user_service.authorize(user, phone_number)
    return ok(user_service.achievements(db, user))


@router.post("/{phone_number}/preferences")
async def update_preferences(
    phone_number: str,
    body: PreferencesUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user_service.authorize(user, phone_number)
    preferences = user_service.update_preferences(db, user, body.model_dump(exclude_none=True))
    return ok({"preferences": preferences}, "Preferences updated successfully")


@router.delete("/{phone_number}")
async def delete_account(
    phone_number: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user_service.authorize(user, phone_number)
    user_service.delete(db, user)
    return ok(message="User account deleted successfully")
