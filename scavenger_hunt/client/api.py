"""
HTTP client for the Scavenger Hunt API
"""
import logging
from typing import Any, Dict, Optional

import httpx

from scavenger_hunt.client.session import ClientSession

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A non-success response from the API"""

    def __init__(self, status_code: int, message: str, code: Optional[str] = None, details: Any = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.code = code
        self.details = details


class HuntClient:
    """Thin wrapper over an httpx.Client that carries the player's session"""

    def __init__(
        self,
        http: httpx.Client,
        session: Optional[ClientSession] = None,
        admin_key: Optional[str] = None,
    ):
        self.http = http
        self.session = session or ClientSession()
        self.admin_key = admin_key

    @classmethod
    def connect(
        cls,
        base_url: str,
        session_path: Optional[str] = None,
        admin_key: Optional[str] = None,
        timeout: float = 10.0,
    ) -> "HuntClient":
        session = ClientSession.load(session_path) if session_path else ClientSession()
        return cls(httpx.Client(base_url=base_url, timeout=timeout), session, admin_key)

    def close(self) -> None:
        self.http.close()

    def _headers(self, admin: bool = False) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.session.token:
            headers["Authorization"] = f"Bearer {self.session.token}"
        if admin and self.admin_key:
            headers["X-Admin-Key"] = self.admin_key
        return headers

    def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        admin: bool = False,
    ) -> Dict[str, Any]:
        response = self.http.request(
            method, path, json=json, params=params, headers=self._headers(admin)
        )
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_error or body.get("success") is False:
            message = body.get("error") or body.get("message") or response.reason_phrase
            logger.debug(f"{method} {path} failed with {response.status_code}: {message}")
            raise ApiError(response.status_code, message, body.get("code"), body.get("details"))
        return body.get("data", body)

    # Auth

    def register(self, phone_number: str) -> Dict[str, Any]:
        return self._request("POST", "/api/auth/register", json={"phoneNumber": phone_number})

    def resend_otp(self, phone_number: str) -> Dict[str, Any]:
        return self._request("POST", "/api/auth/resend-otp", json={"phoneNumber": phone_number})

    def verify_otp(self, phone_number: str, otp_code: str) -> Dict[str, Any]:
        """Verify the code and remember the issued token"""
        data = self._request(
            "POST",
            "/api/auth/verify-otp",
            json={"phoneNumber": phone_number, "otpCode": otp_code},
        )
        session = data["session"]
        self.session.sign_in(data["token"], session["phoneNumber"], session["userId"])
        return data

    def logout(self) -> None:
        try:
            self._request("POST", "/api/auth/logout")
        finally:
            self.session.clear()

    # Game sessions

    def checkpoints(self) -> Dict[str, Any]:
        return self._request("GET", "/api/game/checkpoints")

    def start_game(self) -> Dict[str, Any]:
        data = self._request("POST", "/api/game/start")
        self.session.game_session = {
            "sessionId": data["session"]["sessionId"],
            "startTime": data["session"]["startTime"],
        }
        self.session.save()
        return data

    def scan(self, qr_data: str, checkpoint_id: Optional[int] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"qrData": qr_data}
        if checkpoint_id is not None:
            payload["checkpointId"] = checkpoint_id
        data = self._request("POST", "/api/game/scan", json=payload)
        self.session.current_checkpoint = data["checkpoint"]["id"]
        if data.get("gameComplete"):
            self.session.completion_data = {
                "rewardTier": data.get("rewardTier"),
                "rewardToken": data.get("rewardToken"),
            }
        self.session.save()
        return data

    def use_hint(self, checkpoint_id: int) -> Dict[str, Any]:
        return self._request("POST", "/api/game/hint", json={"checkpointId": checkpoint_id})

    def abandon_game(self) -> Dict[str, Any]:
        data = self._request("POST", "/api/game/abandon")
        self.session.game_session = None
        self.session.save()
        return data

    def game_session(self) -> Dict[str, Any]:
        return self._request("GET", "/api/game/session")

    def game_progress(self) -> Dict[str, Any]:
        return self._request("GET", "/api/game/progress")

    def game_history(self, limit: int = 10) -> Dict[str, Any]:
        return self._request("GET", "/api/game/history", params={"limit": limit})

    def game_leaderboard(self, limit: int = 10) -> Dict[str, Any]:
        return self._request("GET", "/api/game/leaderboard", params={"limit": limit})

    # Progress

    def progress(self) -> Dict[str, Any]:
        return self._request("GET", "/api/progress")

    def complete_dashboard_game(self, game_id: str, completion_time: Optional[int] = None) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/api/progress/dashboard/{game_id}/complete",
            json={"completionTime": completion_time},
        )

    def start_scavenger_hunt(self) -> Dict[str, Any]:
        return self._request("POST", "/api/progress/scavenger/start")

    def complete_checkpoint(
        self,
        checkpoint_id: int,
        location: Optional[str] = None,
        qr_code: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/api/progress/scavenger/checkpoint/{checkpoint_id}/complete",
            json={"location": location, "qrCode": qr_code},
        )

    def reveal_hint(self, checkpoint_id: int) -> Dict[str, Any]:
        return self._request("POST", f"/api/progress/scavenger/checkpoint/{checkpoint_id}/hint")

    def update_state(self, current_page: str, checkpoint: Optional[int] = None) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/api/progress/state",
            json={"currentPage": current_page, "checkpoint": checkpoint},
        )

    def complete_game(self, final_score: Optional[int] = None, time_elapsed: Optional[int] = None) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/api/progress/complete",
            json={"finalScore": final_score, "timeElapsed": time_elapsed},
        )

    def progress_leaderboard(self, limit: int = 10) -> Dict[str, Any]:
        return self._request("GET", "/api/progress/leaderboard", params={"limit": limit})

    # User

    def _phone(self) -> str:
        if not self.session.phone_number:
            raise ApiError(401, "Not signed in", "unauthorized")
        return self.session.phone_number

    def profile(self) -> Dict[str, Any]:
        return self._request("GET", f"/api/user/{self._phone()}/profile")

    def update_profile(self, **changes: Any) -> Dict[str, Any]:
        return self._request("PUT", f"/api/user/{self._phone()}/profile", json=changes)

    def stats(self) -> Dict[str, Any]:
        return self._request("GET", f"/api/user/{self._phone()}/stats")

    def achievements(self) -> Dict[str, Any]:
        return self._request("GET", f"/api/user/{self._phone()}/achievements")

    # Admin

    def admin_users(self, page: int = 1, limit: int = 20, search: Optional[str] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if search:
            params["search"] = search
        return self._request("GET", "/api/admin/users", params=params, admin=True)

    def admin_stats(self) -> Dict[str, Any]:
        return self._request("GET", "/api/admin/stats", admin=True)

    def total_users(self) -> int:
        return self._request("GET", "/api/admin/total-users", admin=True)["totalUsers"]

    def generate_voucher(self, phone_number: str) -> Dict[str, Any]:
        return self._request(
            "POST", "/api/admin/generate-voucher", json={"phoneNumber": phone_number}, admin=True
        )

    def mark_claimed(self, voucher_code: str) -> Dict[str, Any]:
        return self._request(
            "POST", "/api/admin/mark-claimed", json={"voucherCode": voucher_code}, admin=True
        )

    def toggle_claim_status(self, user_id: int) -> Dict[str, Any]:
        return self._request(
            "POST", "/api/admin/toggle-claim-status", json={"userId": user_id}, admin=True
        )

    def update_prize_claim(self, user_id: int, prize_type: str, claimed: bool) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/api/admin/prize-claim",
            json={"userId": user_id, "prizeType": prize_type, "claimed": claimed},
            admin=True,
        )

    def check_claimed(self, phone_number: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/admin/check-claimed/{phone_number}", admin=True)
