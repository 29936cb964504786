"""
Client-side hunt helpers: QR payload constants, matching and optimistic reward tiers
"""
import re
import time
from typing import Dict, Optional

CHECKPOINT_QR_CODES: Dict[int, str] = {
    1: "TALABAT_HUNT_RECEPTION_DESK",
    2: "TALABAT_HUNT_CONFERENCE_ROOM",
    3: "TALABAT_HUNT_KITCHEN_AREA",
    4: "TALABAT_HUNT_SUPPLY_CLOSET",
    5: "TALABAT_HUNT_MANAGER_OFFICE",
    6: "TALABAT_HUNT_BREAK_ROOM",
    7: "TALABAT_HUNT_IT_DEPARTMENT",
    8: "TALABAT_HUNT_MAIN_WORKSPACE",
}

DASHBOARD_QR_CODES: Dict[str, str] = {
    "lunchbox-matcher": "TALABAT_LUNCHBOX_MATCHER_COMPLETE",
    "city-run": "TALABAT_CITY_RUN_COMPLETE",
    "talabeats": "TALABAT_TALABEATS_COMPLETE",
}


def _same_code(scanned: str, expected: str) -> bool:
    return scanned.strip().upper() == expected.strip().upper()


def matches_checkpoint(scanned: str, checkpoint_id: int) -> bool:
    """Case-insensitive, whitespace-trimmed comparison against the checkpoint's code"""
    expected = CHECKPOINT_QR_CODES.get(checkpoint_id)
    return expected is not None and _same_code(scanned, expected)


def matches_dashboard_game(scanned: str, game_id: str) -> bool:
    expected = DASHBOARD_QR_CODES.get(game_id)
    return expected is not None and _same_code(scanned, expected)


def identify_checkpoint(scanned: str) -> Optional[int]:
    for checkpoint_id, code in CHECKPOINT_QR_CODES.items():
        if _same_code(scanned, code):
            return checkpoint_id
    return None


def identify_dashboard_game(scanned: str) -> Optional[str]:
    for game_id, code in DASHBOARD_QR_CODES.items():
        if _same_code(scanned, code):
            return game_id
    return None


def canonical_code(scanned: str) -> str:
    """The form the server stores: trimmed and upper-cased"""
    return scanned.strip().upper()


def calculate_reward_tier(minutes: float) -> str:
    """Optimistic tier shown while playing; the server's tier is authoritative"""
    if minutes < 20:
        return "Gold"
    if minutes <= 40:
        return "Silver"
    return "Bronze"


def format_time(seconds: int) -> str:
    mins, secs = divmod(int(seconds), 60)
    return f"{mins:02d}:{secs:02d}"


def validate_phone_number(phone: str) -> bool:
    """The local part only: exactly 8 digits"""
    return re.fullmatch(r"\d{8}", phone or "") is not None


def to_international(phone: str) -> str:
    return f"+974{phone}"


def mask_phone_number(phone: str) -> str:
    return re.sub(r"(\+974)(\d{4})(\d{4})", r"\1****\3", phone)


def generate_reward_token(phone: str, now_ms: Optional[int] = None) -> str:
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"TLB-{phone[-4:]}-{str(now_ms)[-6:]}"
