"""
Game Router - Hunt sessions, QR scans, hints and the session leaderboard
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import Field
from sqlalchemy.orm import Session

from scavenger_hunt.api.common import CamelModel, ok
from scavenger_hunt.db.models import User
from scavenger_hunt.dependencies import client_ip, get_current_user, get_db
from scavenger_hunt.services.checkpoint_service import checkpoint_service
from scavenger_hunt.services.game_service import game_service

logger = logging.getLogger(__name__)
router = APIRouter()


class ScanRequest(CamelModel):
    qr_data: str = Field(..., min_length=1, max_length=200)
    checkpoint_id: Optional[int] = None


class HintRequest(CamelModel):
    checkpoint_id: int


@router.get("/checkpoints")
async def list_checkpoints(db: Session = Depends(get_db)):
    """Active catalog entries, without QR strings or hints"""
    checkpoints = checkpoint_service.list_active(db)
    return ok({"checkpoints": [checkpoint_service.to_public_dict(cp) for cp in checkpoints]})


@router.post("/start")
async def start_game(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    session = game_service.start_session(
        db,
        user,
        user_agent=request.headers.get("user-agent"),
        ip_address=client_ip(request),
    )
    return ok({"session": game_service.to_dict(session)}, "Game session started")


@router.post("/scan")
async def scan_qr(
    body: ScanRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Validate a scanned QR payload against the active session"""
    result = game_service.scan(db, user, body.qr_data, body.checkpoint_id)
    message = "Checkpoint already found" if result["alreadyScanned"] else "Checkpoint found"
    return ok(result, message)


@router.post("/hint")
async def use_hint(
    body: HintRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok(game_service.use_hint(db, user, body.checkpoint_id))


@router.post("/abandon")
async def abandon_game(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    session = game_service.abandon(db, user)
    return ok({"sessionId": session.session_id, "status": session.status}, "Game abandoned")


@router.get("/session")
async def current_session(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    session = game_service.require_active_session(db, user)
    return ok({"session": game_service.to_dict(session)})


@router.get("/progress")
async def game_progress(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok(game_service.get_progress(db, user))


@router.get("/history")
async def game_history(
    limit: int = Query(10, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok({"games": game_service.history(db, user, limit)})


@router.get("/leaderboard")
async def game_leaderboard(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return ok({"leaderboard": game_service.leaderboard(db, limit)})
