"""
Client session state, optionally persisted to a JSON file between runs
"""
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class ClientSession:
    """Everything the client remembers about the signed-in player"""

    token: Optional[str] = None
    phone_number: Optional[str] = None
    user_id: Optional[int] = None
    game_session: Optional[Dict[str, Any]] = None
    current_checkpoint: Optional[int] = None
    completion_data: Optional[Dict[str, Any]] = None
    path: Optional[str] = field(default=None, repr=False, compare=False)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @classmethod
    def load(cls, path: str) -> "ClientSession":
        """Read a saved session; a missing or unreadable file gives an empty one"""
        if not os.path.exists(path):
            return cls(path=path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session file {path}: {e}")
            return cls(path=path)
        if not isinstance(data, dict):
            logger.warning(f"Ignoring session file {path}: not a JSON object")
            return cls(path=path)

        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__ and k != "path"}
        return cls(path=path, **known)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("path")
        return data

    def save(self) -> None:
        if not self.path:
            return
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, default=str)
        os.replace(tmp_path, self.path)

    def sign_in(self, token: str, phone_number: str, user_id: Optional[int] = None) -> None:
        self.token = token
        self.phone_number = phone_number
        self.user_id = user_id
        self.save()

    def clear(self) -> None:
        """Forget the player entirely (logout)"""
        self.token = None
        self.phone_number = None
        self.user_id = None
        self.game_session = None
        self.current_checkpoint = None
        self.completion_data = None
        if self.path and os.path.exists(self.path):
            os.remove(self.path)
