"""
Admin Router - Player reporting and prize-claim management

All routes require the X-Admin-Key header.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy.orm import Session

from scavenger_hunt.api.common import CamelModel, ok
from scavenger_hunt.dependencies import get_db, verify_admin_key
from scavenger_hunt.services.admin_service import admin_service

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(verify_admin_key)])


class ToggleClaimRequest(CamelModel):
    user_id: int


class PrizeClaimRequest(CamelModel):
    user_id: int
    prize_type: str = Field(..., min_length=1, max_length=20)
    claimed: bool


class MarkClaimedRequest(CamelModel):
    voucher_code: str = Field(..., min_length=1, max_length=32)


class GenerateVoucherRequest(CamelModel):
    phone_number: str = Field(..., min_length=1, max_length=20)


@router.get("/users")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    search: Optional[str] = Query(None, max_length=50),
    db: Session = Depends(get_db),
):
    """Users with progress counts, searchable by phone number or voucher code"""
    return ok(admin_service.list_users(db, page=page, limit=limit, search=search))


@router.get("/all-users")
async def all_users(db: Session = Depends(get_db)):
    total = admin_service.total_users(db)
    return ok(admin_service.list_users(db, page=1, limit=max(total, 1)))


@router.get("/stats")
async def stats(db: Session = Depends(get_db)):
    return ok({"stats": admin_service.stats(db)})


@router.get("/total-users")
async def total_users(db: Session = Depends(get_db)):
    return ok({"totalUsers": admin_service.total_users(db)})


@router.post("/toggle-claim-status")
async def toggle_claim_status(body: ToggleClaimRequest, db: Session = Depends(get_db)):
    result = admin_service.toggle_claim(db, body.user_id)
    return ok(result, "Claim status updated")


@router.post("/prize-claim")
async def prize_claim(body: PrizeClaimRequest, db: Session = Depends(get_db)):
    """Mark or unmark one prize type for a player"""
    result = admin_service.set_prize_claim(db, body.user_id, body.prize_type, body.claimed)
    message = "Prize claim marked" if body.claimed else "Prize claim unmarked"
    return ok(result, message)


@router.post("/mark-claimed")
async def mark_claimed(body: MarkClaimedRequest, db: Session = Depends(get_db)):
    result = admin_service.mark_claimed(db, body.voucher_code)
    message = "Voucher already claimed" if result["alreadyClaimed"] else "Voucher marked as claimed"
    return ok(result, message)


@router.post("/generate-voucher")
async def generate_voucher(body: GenerateVoucherRequest, db: Session = Depends(get_db)):
    return ok(admin_service.generate_voucher(db, body.phone_number))


@router.get("/check-claimed/{phone_number}")
async def check_claimed(phone_number: str, db: Session = Depends(get_db)):
    return ok(admin_service.check_claimed(db, phone_number))
