"""
Services package - Business logic layer
"""
from scavenger_hunt.services.sms_service import sms_service
from scavenger_hunt.services.token_service import token_service
from scavenger_hunt.services.rewards_service import rewards_service
from scavenger_hunt.services.checkpoint_service import checkpoint_service
from scavenger_hunt.services.progress_service import progress_service
from scavenger_hunt.services.otp_service import otp_service
from scavenger_hunt.services.game_service import game_service
from scavenger_hunt.services.admin_service import admin_service
from scavenger_hunt.services.user_service import user_service

__all__ = [
    "sms_service",
    "token_service",
    "rewards_service",
    "checkpoint_service",
    "progress_service",
    "otp_service",
    "game_service",
    "admin_service",
    "user_service",
]
