"""Per-user progress: dashboard games, checkpoint completions, hints, resume state and completion."""

import pytest

from scavenger_hunt.client.hunt import CHECKPOINT_QR_CODES

DASHBOARD_GAMES = ["lunchbox-matcher", "city-run", "talabeats"]


@pytest.fixture
def headers(login):
    return login()


def complete_checkpoint(client, headers, checkpoint_id, **body):
    return client.post(
        f"/api/progress/scavenger/checkpoint/{checkpoint_id}/complete",
        json=body or None,
        headers=headers,
    )


def finish_everything(client, headers):
    for game in DASHBOARD_GAMES:
        assert client.post(f"/api/progress/dashboard/{game}/complete", headers=headers).status_code == 200
    for checkpoint_id in CHECKPOINT_QR_CODES:
        assert complete_checkpoint(client, headers, checkpoint_id).status_code == 200


def test_progress_is_created_on_first_read(client, headers):
    resp = client.get("/api/progress", headers=headers)
    assert resp.status_code == 200
    data = resp.json()["data"]

    assert set(data["dashboardGames"]) == {"lunchbox-matcher", "city-run", "talabeats", "scavenger-hunt"}
    assert not any(g["isCompleted"] for g in data["dashboardGames"].values())
    assert data["scavengerHuntProgress"]["hintCredits"] == 3
    assert data["scavengerHuntProgress"]["totalCheckpoints"] == 8
    assert data["completionPercentage"] == 0
    assert data["isGameCompleted"] is False
    assert data["gameStats"]["loginCount"] == 1


def test_complete_dashboard_game(client, headers):
    resp = client.post(
        "/api/progress/dashboard/lunchbox-matcher/complete",
        json={"completionTime": 95},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["completionPercentage"] == 25

    game = client.get("/api/progress", headers=headers).json()["data"]["dashboardGames"]["lunchbox-matcher"]
    assert game["isCompleted"] is True
    assert game["completionTime"] == 95


def test_unknown_dashboard_game_is_rejected(client, headers):
    resp = client.post("/api/progress/dashboard/tetris/complete", headers=headers)
    assert resp.status_code == 400
    assert "scavenger-hunt" in resp.json()["details"]["allowed"]


def test_scavenger_hunt_via_dashboard_only_starts(client, headers):
    resp = client.post("/api/progress/dashboard/scavenger-hunt/complete", headers=headers)
    assert resp.status_code == 200

    hunt = client.get("/api/progress", headers=headers).json()["data"]["dashboardGames"]["scavenger-hunt"]
    assert hunt["isStarted"] is True
    assert hunt["isCompleted"] is False


def test_start_scavenger_hunt(client, headers):
    data = client.post("/api/progress/scavenger/start", headers=headers).json()["data"]
    assert data["startedAt"] is not None
    assert data["hintCredits"] == 3

    state = client.get("/api/progress", headers=headers).json()["data"]["currentState"]
    assert state["currentPage"] == "scavenger-hunt"
    assert state["canResume"] is True


def test_checkpoint_completion_is_idempotent(client, headers):
    first = complete_checkpoint(client, headers, 2).json()["data"]
    second = complete_checkpoint(client, headers, 2).json()["data"]

    assert first["newlyCompleted"] is True
    assert second["newlyCompleted"] is False
    assert second["scanCount"] == 2
    assert second["totalCompleted"] == 1
    assert second["location"] == "Conference Room"

    data = client.get("/api/progress", headers=headers).json()["data"]
    assert len(data["scavengerHuntProgress"]["completedCheckpoints"]) == 1
    assert data["gameStats"]["totalScans"] == 2


def test_checkpoint_with_wrong_code_is_rejected(client, headers):
    resp = complete_checkpoint(client, headers, 1, qrCode=CHECKPOINT_QR_CODES[2])
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_qr_code"

    resp = complete_checkpoint(client, headers, 1, qrCode=CHECKPOINT_QR_CODES[1])
    assert resp.status_code == 200
    assert resp.json()["data"]["totalCompleted"] == 1


def test_unknown_checkpoint_is_404(client, headers):
    assert complete_checkpoint(client, headers, 99).status_code == 404


def test_hint_reveal_is_idempotent(client, headers):
    url = "/api/progress/scavenger/checkpoint/{}/hint"
    first = client.post(url.format(5), headers=headers).json()["data"]
    assert first["alreadyRevealed"] is False
    assert first["hintsRemaining"] == 2

    again = client.post(url.format(5), headers=headers).json()["data"]
    assert again["alreadyRevealed"] is True
    assert again["hintsRemaining"] == 2
    assert again["hint"] == first["hint"]

    client.post(url.format(6), headers=headers)
    client.post(url.format(7), headers=headers)
    resp = client.post(url.format(8), headers=headers)
    assert resp.status_code == 400
    assert resp.json()["code"] == "no_credits"

    # Already revealed hints stay free with no credits left
    assert client.post(url.format(5), headers=headers).status_code == 200

    data = client.get("/api/progress", headers=headers).json()["data"]
    assert data["scavengerHuntProgress"]["revealedHints"] == [5, 6, 7]
    assert data["gameStats"]["totalHintsUsed"] == 3


def test_complete_rejected_until_everything_is_done(client, headers):
    resp = client.post("/api/progress/complete", headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Game is not finished yet"

    for checkpoint_id in CHECKPOINT_QR_CODES:
        complete_checkpoint(client, headers, checkpoint_id)
    # Checkpoints alone are not enough
    assert client.post("/api/progress/complete", headers=headers).status_code == 400


def test_full_completion(client, headers):
    finish_everything(client, headers)

    data = client.get("/api/progress", headers=headers).json()["data"]
    assert data["isGameCompleted"] is True
    assert data["completionPercentage"] == 100
    assert data["dashboardGames"]["scavenger-hunt"]["isCompleted"] is True
    assert data["currentState"]["currentPage"] == "completed"

    resp = client.post("/api/progress/complete", json={"finalScore": 420}, headers=headers)
    assert resp.status_code == 200
    result = resp.json()["data"]
    assert result["gameCompleted"] is True
    assert result["finalScore"] == 420
    assert result["rank"] == 1

    # Idempotent afterwards
    again = client.post("/api/progress/complete", json={"finalScore": 1}, headers=headers).json()["data"]
    assert again["finalScore"] == 420


def test_state_update(client, headers):
    resp = client.post(
        "/api/progress/state",
        json={"currentPage": "scavenger-hunt", "checkpoint": 3},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["data"] == {"currentPage": "scavenger-hunt", "lastCheckpoint": 3, "canResume": True}

    resp = client.post("/api/progress/state", json={"currentPage": "nowhere"}, headers=headers)
    assert resp.status_code == 400


def test_completion_is_one_way(client, headers):
    finish_everything(client, headers)
    resp = client.post("/api/progress/state", json={"currentPage": "dashboard"}, headers=headers)
    assert resp.json()["data"]["currentPage"] == "completed"

    complete_checkpoint(client, headers, 1)
    assert client.get("/api/progress", headers=headers).json()["data"]["isGameCompleted"] is True


def test_progress_leaderboard(client, login):
    headers = login()
    finish_everything(client, headers)
    other = login("+97487654321")
    complete_checkpoint(client, other, 1)

    board = client.get("/api/progress/leaderboard").json()["data"]["leaderboard"]
    assert len(board) == 1
    assert board[0]["phoneNumber"] == "+974****5678"
    assert board[0]["checkpointsFound"] == 8
