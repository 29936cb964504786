"""
Progress Router - Dashboard games, scavenger checkpoints, hints and resume state
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from pydantic import Field
from sqlalchemy.orm import Session

from scavenger_hunt.api.common import CamelModel, ok
from scavenger_hunt.db.models import User
from scavenger_hunt.dependencies import get_current_user, get_db
from scavenger_hunt.services.progress_service import progress_service

logger = logging.getLogger(__name__)
router = APIRouter()


class DashboardCompleteRequest(CamelModel):
    completion_time: Optional[int] = Field(None, ge=0)


class CheckpointCompleteRequest(CamelModel):
    location: Optional[str] = Field(None, max_length=255)
    qr_code: Optional[str] = Field(None, max_length=200)


class StateRequest(CamelModel):
    current_page: str
    checkpoint: Optional[int] = None


class CompleteGameRequest(CamelModel):
    final_score: Optional[int] = Field(None, ge=0)
    time_elapsed: Optional[int] = Field(None, ge=0)


@router.get("")
async def get_progress(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Full progress record plus summary and completion percentage"""
    progress = progress_service.get_or_create(db, user)
    data = progress_service.to_dict(progress)
    data["completionPercentage"] = progress_service.completion_percentage(progress)
    data["summary"] = progress_service.summary(progress)
    return ok(data)


@router.post("/dashboard/{game_id}/complete")
async def complete_dashboard_game(
    game_id: str,
    body: Optional[DashboardCompleteRequest] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    completion_time = body.completion_time if body else None
    progress = progress_service.complete_dashboard_game(db, user, game_id, completion_time)
    return ok(
        {
            "gameCompleted": game_id,
            "progress": progress_service.summary(progress),
            "completionPercentage": progress_service.completion_percentage(progress),
        },
        f"Dashboard game {game_id} updated",
    )


@router.post("/scavenger/start")
async def start_scavenger_hunt(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    progress = progress_service.start_hunt(db, user)
    return ok(
        {
            "startedAt": progress.hunt_started_at,
            "hintCredits": progress.hint_credits,
            "totalCheckpoints": progress.total_checkpoints,
        },
        "Scavenger hunt started",
    )


@router.post("/scavenger/checkpoint/{checkpoint_id}/complete")
async def complete_checkpoint(
    checkpoint_id: int = Path(..., ge=1),
    body: Optional[CheckpointCompleteRequest] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    body = body or CheckpointCompleteRequest()
    result = progress_service.complete_checkpoint(
        db, user, checkpoint_id, location=body.location, qr_code=body.qr_code
    )
    return ok(result, f"Checkpoint {checkpoint_id} completed")


@router.post("/scavenger/checkpoint/{checkpoint_id}/hint")
async def use_checkpoint_hint(
    checkpoint_id: int = Path(..., ge=1),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok(progress_service.use_hint(db, user, checkpoint_id))


@router.post("/state")
async def update_state(
    body: StateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    progress = progress_service.update_state(db, user, body.current_page, body.checkpoint)
    return ok(
        {
            "currentPage": progress.current_page,
            "lastCheckpoint": progress.last_checkpoint,
            "canResume": progress.can_resume,
        }
    )


@router.post("/complete")
async def complete_game(
    body: Optional[CompleteGameRequest] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    body = body or CompleteGameRequest()
    result = progress_service.complete_game(db, user, body.final_score, body.time_elapsed)
    return ok(result, "Game completed")


@router.get("/leaderboard")
async def progress_leaderboard(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return ok({"leaderboard": progress_service.leaderboard(db, limit)})
