"""Hunt sessions: start, QR scans, hints, completion, abandonment and expiry."""

from datetime import datetime, timedelta

import pytest

from conftest import PHONE, get_user
from scavenger_hunt.client.hunt import CHECKPOINT_QR_CODES
from scavenger_hunt.db.models import Checkpoint, GameSession
from scavenger_hunt.services.game_service import game_service


@pytest.fixture
def player(client, login):
    headers = login()
    resp = client.post("/api/game/start", headers=headers)
    assert resp.status_code == 200, resp.text
    return headers


def scan(client, headers, qr_data, checkpoint_id=None):
    body = {"qrData": qr_data}
    if checkpoint_id is not None:
        body["checkpointId"] = checkpoint_id
    return client.post("/api/game/scan", json=body, headers=headers)


def active_session(db):
    db.expire_all()
    return db.query(GameSession).order_by(GameSession.id.desc()).first()


def test_checkpoints_hide_codes_and_hints(client):
    resp = client.get("/api/game/checkpoints")
    assert resp.status_code == 200
    checkpoints = resp.json()["data"]["checkpoints"]
    assert [cp["id"] for cp in checkpoints] == list(range(1, 9))
    assert all("qrCode" not in cp and "hint" not in cp for cp in checkpoints)


def test_start_returns_existing_active_session(client, player):
    first = client.get("/api/game/session", headers=player).json()["data"]["session"]
    again = client.post("/api/game/start", headers=player).json()["data"]["session"]
    assert again["sessionId"] == first["sessionId"]
    assert first["totalCheckpoints"] == 8
    assert first["hintCredits"] == 3
    assert first["status"] == "active"


def test_full_hunt_end_to_end(client, player, db):
    for checkpoint_id, code in CHECKPOINT_QR_CODES.items():
        resp = scan(client, player, code)
        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert data["isValid"] is True
        assert data["checkpoint"]["id"] == checkpoint_id

    assert data["gameComplete"] is True
    assert data["nextClue"] is None
    assert data["rewardTier"] == "Gold"
    assert data["rewardToken"].startswith("TLB-5678-")
    assert data["progress"] == {"completed": 8, "total": 8, "percentage": 100.0}

    progress = client.get("/api/game/progress", headers=player).json()["data"]
    assert progress["totalFound"] == 8
    assert progress["totalCheckpoints"] == 8
    assert progress["isCompleted"] is True
    assert progress["currentTier"] == "Gold"

    history = client.get("/api/game/history", headers=player).json()["data"]["games"]
    assert history[0]["status"] == "completed"
    assert history[0]["rewardTier"] == "Gold"

    # No active session is left behind
    assert client.get("/api/game/session", headers=player).status_code == 404

    user = get_user(db)
    assert user.completed_games == 1
    assert user.total_games == 1
    assert user.total_rewards == 100
    assert user.voucher_code.startswith("TLB")
    assert user.last_qr_scan_at is not None


def test_slow_hunt_earns_silver(client, player, db):
    codes = list(CHECKPOINT_QR_CODES.values())
    for code in codes[:-1]:
        assert scan(client, player, code).status_code == 200

    session = active_session(db)
    session.start_time = datetime.utcnow() - timedelta(minutes=30)
    db.commit()

    data = scan(client, player, codes[-1]).json()["data"]
    assert data["gameComplete"] is True
    assert data["rewardTier"] == "Silver"

    session = active_session(db)
    assert 30 * 60 <= session.time_elapsed < 31 * 60
    assert get_user(db).total_rewards == 75


def test_invalid_code_changes_nothing_but_catalog_stats(client, player, db):
    resp = scan(client, player, "NOT_A_CHECKPOINT")
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_qr_code"

    progress = client.get("/api/game/progress", headers=player).json()["data"]
    assert progress["totalFound"] == 0
    session = active_session(db)
    assert session.completed_checkpoints == 0
    assert all(cp.scan_count == 0 for cp in session.checkpoints)

    checkpoint = db.query(Checkpoint).filter(Checkpoint.id == 1).one()
    assert checkpoint.total_scans == 1
    assert checkpoint.successful_scans == 0


def test_server_match_is_exact(client, player):
    resp = scan(client, player, CHECKPOINT_QR_CODES[1].lower())
    assert resp.status_code == 400


def test_code_for_a_different_checkpoint_is_rejected(client, player, db):
    resp = scan(client, player, CHECKPOINT_QR_CODES[2], checkpoint_id=1)
    assert resp.status_code == 400
    db.expire_all()
    assert db.query(Checkpoint).filter(Checkpoint.id == 1).one().total_scans == 1


def test_rescan_only_bumps_the_counter(client, player, db):
    first = scan(client, player, CHECKPOINT_QR_CODES[3]).json()["data"]
    second = scan(client, player, CHECKPOINT_QR_CODES[3]).json()["data"]

    assert first["alreadyScanned"] is False
    assert second["alreadyScanned"] is True
    assert second["checkpoint"]["scanCount"] == 2
    assert second["checkpoint"]["scannedAt"] == first["checkpoint"]["scannedAt"]
    assert second["progress"]["completed"] == 1

    progress = client.get("/api/game/progress", headers=player).json()["data"]
    assert progress["totalFound"] == 1

    checkpoint = db.query(Checkpoint).filter(Checkpoint.id == 3).one()
    assert checkpoint.successful_scans == 2


def test_hints_are_idempotent_and_limited(client, player):
    first = client.post("/api/game/hint", json={"checkpointId": 1}, headers=player).json()["data"]
    assert first["alreadyRevealed"] is False
    assert first["hintCredits"] == 2
    assert first["hint"]

    again = client.post("/api/game/hint", json={"checkpointId": 1}, headers=player).json()["data"]
    assert again["alreadyRevealed"] is True
    assert again["hintCredits"] == 2
    assert again["hint"] == first["hint"]

    for checkpoint_id in (2, 3):
        assert client.post(
            "/api/game/hint", json={"checkpointId": checkpoint_id}, headers=player
        ).status_code == 200

    resp = client.post("/api/game/hint", json={"checkpointId": 4}, headers=player)
    assert resp.status_code == 400
    assert resp.json()["code"] == "no_credits"

    session = client.get("/api/game/session", headers=player).json()["data"]["session"]
    assert session["hintCredits"] == 0
    assert session["hintsUsed"] == 3
    revealed = {cp["id"] for cp in session["checkpoints"] if cp["hint"]}
    assert revealed == {1, 2, 3}


def test_session_hints_spend_the_player_pool(client, player):
    for checkpoint_id in (1, 2, 3):
        assert client.post(
            "/api/game/hint", json={"checkpointId": checkpoint_id}, headers=player
        ).status_code == 200

    progress = client.get("/api/game/progress", headers=player).json()["data"]
    assert progress["hintCredits"] == 0

    resp = client.post("/api/progress/scavenger/checkpoint/4/hint", headers=player)
    assert resp.status_code == 400
    assert resp.json()["code"] == "no_credits"

    # A hint already revealed in the session stays free on the progress route
    resp = client.post("/api/progress/scavenger/checkpoint/2/hint", headers=player)
    assert resp.status_code == 200
    assert resp.json()["data"]["alreadyRevealed"] is True

    data = client.get("/api/progress", headers=player).json()["data"]
    assert data["scavengerHuntProgress"]["revealedHints"] == [1, 2, 3]
    assert data["gameStats"]["totalHintsUsed"] == 3


def test_progress_hints_carry_into_new_sessions(client, login):
    headers = login()
    client.post("/api/progress/scavenger/checkpoint/5/hint", headers=headers)
    client.post("/api/progress/scavenger/checkpoint/6/hint", headers=headers)

    session = client.post("/api/game/start", headers=headers).json()["data"]["session"]
    assert session["hintCredits"] == 1

    # Revealed through progress already, so no credit is spent
    free = client.post("/api/game/hint", json={"checkpointId": 5}, headers=headers).json()["data"]
    assert free["hintCredits"] == 1
    assert free["hintsUsed"] == 0
    assert free["hint"]

    paid = client.post("/api/game/hint", json={"checkpointId": 1}, headers=headers).json()["data"]
    assert paid["hintCredits"] == 0

    resp = client.post("/api/game/hint", json={"checkpointId": 2}, headers=headers)
    assert resp.json()["code"] == "no_credits"


def test_hint_for_unknown_checkpoint_is_404(client, player):
    resp = client.post("/api/game/hint", json={"checkpointId": 99}, headers=player)
    assert resp.status_code == 404


def test_scan_without_session_is_404(client, login):
    headers = login()
    resp = scan(client, headers, CHECKPOINT_QR_CODES[1])
    assert resp.status_code == 404


def test_abandon(client, player, db):
    resp = client.post("/api/game/abandon", headers=player)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "abandoned"

    resp = client.post("/api/game/abandon", headers=player)
    assert resp.status_code == 409
    assert resp.json()["code"] == "session_not_active"

    user = get_user(db)
    assert user.total_games == 1
    assert user.completed_games == 0


def test_stale_sessions_expire(client, player, db):
    session = active_session(db)
    session.start_time = datetime.utcnow() - timedelta(minutes=200)
    db.commit()

    assert game_service.expire_stale_sessions(db) == 1
    assert active_session(db).status == "expired"
    assert client.get("/api/game/session", headers=player).status_code == 404
    assert game_service.expire_stale_sessions(db) == 0


def test_expiry_task(player, db):
    from scavenger_hunt.worker.tasks import expire_stale_sessions

    session = active_session(db)
    session.start_time = datetime.utcnow() - timedelta(minutes=200)
    db.commit()

    assert expire_stale_sessions() == {"expired": 1}
    assert active_session(db).status == "expired"


def test_stale_session_is_expired_on_read(client, player, db):
    session = active_session(db)
    session.start_time = datetime.utcnow() - timedelta(minutes=200)
    db.commit()

    new = client.post("/api/game/start", headers=player).json()["data"]["session"]
    assert new["sessionId"] != session.session_id
    assert db.query(GameSession).filter(GameSession.status == "expired").count() == 1


def test_leaderboard_masks_phone(client, player):
    for code in CHECKPOINT_QR_CODES.values():
        scan(client, player, code)

    board = client.get("/api/game/leaderboard").json()["data"]["leaderboard"]
    assert len(board) == 1
    assert board[0]["phoneNumber"] == "+974****5678"
    assert board[0]["rank"] == 1
    assert board[0]["rewardTier"] == "Gold"
    assert PHONE not in str(board)
