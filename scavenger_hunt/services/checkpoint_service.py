"""
Checkpoint Service - The read-mostly checkpoint catalog and its scan statistics
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from scavenger_hunt.config import settings
from scavenger_hunt.db.models import Checkpoint
from scavenger_hunt.errors import NotFoundError

logger = logging.getLogger(__name__)


DEFAULT_CHECKPOINTS: List[Dict[str, Any]] = [
    {
        "id": 1,
        "name": "Reception",
        "location": "Reception Desk",
        "clue": "Where visitors first arrive and greet the team, this place holds the main gateway.",
        "hint": "Look near the main entrance for a welcome sign.",
        "qr_code": "TALABAT_HUNT_RECEPTION_DESK",
        "difficulty": "easy",
        "category": "services",
    },
    {
        "id": 2,
        "name": "Conference Room",
        "location": "Conference Room",
        "clue": "Round tables and big screens, where important meetings convene.",
        "hint": "Check the large room with glass walls.",
        "qr_code": "TALABAT_HUNT_CONFERENCE_ROOM",
        "difficulty": "easy",
        "category": "services",
    },
    {
        "id": 3,
        "name": "Kitchen",
        "location": "Kitchen Area",
        "clue": "Coffee brews and lunch is made, where hungry workers get fed.",
        "hint": "Look for appliances and the coffee machine.",
        "qr_code": "TALABAT_HUNT_KITCHEN_AREA",
        "difficulty": "easy",
        "category": "food",
    },
    {
        "id": 4,
        "name": "Supply Closet",
        "location": "Supply Closet",
        "clue": "Papers, pens, and office gear, stored neatly for all to share.",
        "hint": "Find the room with shelves full of office supplies.",
        "qr_code": "TALABAT_HUNT_SUPPLY_CLOSET",
        "difficulty": "medium",
        "category": "services",
    },
    {
        "id": 5,
        "name": "Manager Office",
        "location": "Manager Office",
        "clue": "Corner room with the best view, where important decisions come through.",
        "hint": "Look for the private office with windows.",
        "qr_code": "TALABAT_HUNT_MANAGER_OFFICE",
        "difficulty": "medium",
        "category": "landmarks",
    },
    {
        "id": 6,
        "name": "Break Room",
        "location": "Break Room",
        "clue": "Relax and unwind, leave your work behind, comfy chairs you will find.",
        "hint": "Check the area with couches and recreational items.",
        "qr_code": "TALABAT_HUNT_BREAK_ROOM",
        "difficulty": "medium",
        "category": "entertainment",
    },
    {
        "id": 7,
        "name": "IT Department",
        "location": "IT Department",
        "clue": "Cables and servers, tech support that never defers.",
        "hint": "Look for the area with lots of computer equipment.",
        "qr_code": "TALABAT_HUNT_IT_DEPARTMENT",
        "difficulty": "hard",
        "category": "services",
    },
    {
        "id": 8,
        "name": "Main Workspace",
        "location": "Main Workspace",
        "clue": "Desks in rows, where daily productivity flows.",
        "hint": "Find the open area with multiple workstations.",
        "qr_code": "TALABAT_HUNT_MAIN_WORKSPACE",
        "difficulty": "hard",
        "category": "landmarks",
    },
]


def normalize_qr_code(qr_code: str) -> str:
    """Catalog QR strings are stored trimmed and upper-cased"""
    return qr_code.strip().upper()


class CheckpointService:
    """Service for the checkpoint catalog"""

    def list_active(self, db: Session, venue: Optional[str] = None) -> List[Checkpoint]:
        query = db.query(Checkpoint).filter(Checkpoint.is_active == True)
        if venue:
            query = query.filter(Checkpoint.venue == venue)
        return query.order_by(Checkpoint.order).all()

    def get(self, db: Session, checkpoint_id: int) -> Checkpoint:
        checkpoint = db.query(Checkpoint).filter(Checkpoint.id == checkpoint_id).first()
        if not checkpoint:
            raise NotFoundError(f"Checkpoint {checkpoint_id} not found")
        return checkpoint

    def record_scan(self, db: Session, checkpoint_id: int, successful: bool) -> None:
        checkpoint = db.query(Checkpoint).filter(Checkpoint.id == checkpoint_id).first()
        if not checkpoint:
            return
        checkpoint.total_scans += 1
        if successful:
            checkpoint.successful_scans += 1

    def record_hint_usage(self, db: Session, checkpoint_id: int) -> None:
        checkpoint = db.query(Checkpoint).filter(Checkpoint.id == checkpoint_id).first()
        if checkpoint:
            checkpoint.hints_used += 1

    def update_average_time(self, db: Session, checkpoint_id: int, time_to_find: float) -> None:
        """Running mean over successful scans; call after record_scan(successful=True)"""
        checkpoint = db.query(Checkpoint).filter(Checkpoint.id == checkpoint_id).first()
        if not checkpoint:
            return
        current = checkpoint.average_time_to_find or 0
        found = checkpoint.successful_scans
        if found <= 1:
            checkpoint.average_time_to_find = time_to_find
        else:
            checkpoint.average_time_to_find = ((current * (found - 1)) + time_to_find) / found

    def to_public_dict(self, checkpoint: Checkpoint) -> Dict[str, Any]:
        """Catalog entry as shown to players: no QR string, no hint"""
        return {
            "id": checkpoint.id,
            "name": checkpoint.name,
            "location": checkpoint.location,
            "clue": checkpoint.clue,
            "venue": checkpoint.venue,
            "floor": checkpoint.floor,
            "section": checkpoint.section,
            "difficulty": checkpoint.difficulty,
            "order": checkpoint.order,
        }

    def to_stats_dict(self, checkpoint: Checkpoint) -> Dict[str, Any]:
        return {
            "id": checkpoint.id,
            "location": checkpoint.location,
            "totalScans": checkpoint.total_scans,
            "successfulScans": checkpoint.successful_scans,
            "successRate": round(checkpoint.success_rate, 2),
            "hintsUsed": checkpoint.hints_used,
            "averageTimeToFind": checkpoint.average_time_to_find,
        }

    def seed_default_catalog(self, db: Session, venue: Optional[str] = None) -> int:
        """Insert any missing default checkpoints. Returns how many were created."""
        venue = venue or settings.HUNT_VENUE
        existing = {row[0] for row in db.query(Checkpoint.id).all()}
        created = 0
        for order, item in enumerate(DEFAULT_CHECKPOINTS, start=1):
            if item["id"] in existing:
                continue
            data = dict(item)
            data["qr_code"] = normalize_qr_code(data["qr_code"])
            db.add(Checkpoint(venue=venue, order=order, **data))
            created += 1
        if created:
            db.commit()
            logger.info(f"Seeded {created} checkpoints for {venue}")
        return created


checkpoint_service = CheckpointService()
