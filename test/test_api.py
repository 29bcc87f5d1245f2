"""
HTTP surface: player play-through, error mapping, and admin endpoints behind the bearer token.
"""

from datetime import timedelta

from taletrail.api import models
from taletrail.engine.access import utcnow


def redeem(client, code="ABCD1234"):
    return client.post("/play/redeem", json={"code": code})


def test_root(client):
    assert client.get("/").json()["message"] == "Tale & Trail API"


def test_redeem_and_play_through(client):
    response = redeem(client)
    assert response.status_code == 200
    body = response.json()
    sid = body["session_id"]
    assert body["code"]["status"] == "active"
    assert body["position"]["current_puzzle"]["id"] == "P1"
    assert "answer" not in body["position"]["current_puzzle"]
    assert [s["id"] for s in body["position"]["pending_splash_screens"]] == ["S1"]
    assert 0 < body["time_remaining_seconds"] <= 12 * 3600

    wrong = client.post(f"/play/sessions/{sid}/submit", json={"puzzle_id": "P1", "answer": "torch"})
    assert wrong.status_code == 200
    assert wrong.json()["result"]["next_clue"] == "first clue"
    assert wrong.json()["position"]["revealed_clues"] == ["first clue"]

    right = client.post(f"/play/sessions/{sid}/submit", json={"puzzle_id": "P1", "answer": "Lantern"})
    assert right.json()["result"]["correct"] is True
    assert right.json()["position"]["current_puzzle"]["id"] == "P2"
    assert [s["id"] for s in right.json()["position"]["pending_splash_screens"]] == ["S2"]

    viewed = client.post(f"/play/sessions/{sid}/splash-viewed", json={"splash_screen_id": "S2"})
    assert viewed.json()["position"]["pending_splash_screens"] == []

    done = client.post(f"/play/sessions/{sid}/submit", json={"puzzle_id": "P2", "answer": "harbour"})
    assert done.json()["position"]["status"] == "finished"
    assert [e["type"] for e in done.json()["events"]] == ["puzzle_completed", "completed"]

    resumed = redeem(client)
    assert resumed.json()["session_id"] == sid
    assert resumed.json()["position"]["progress"] == {"completed": 2, "total": 2, "position": 2}


def test_error_mapping(client, seeded_db):
    missing = redeem(client, "NOPE0000")
    assert missing.status_code == 404
    assert missing.json()["error"] == "not_found"

    sid = redeem(client).json()["session_id"]
    bad = client.post(f"/play/sessions/{sid}/submit", json={"puzzle_id": "P1", "answer": 7})
    assert bad.status_code == 400
    assert bad.json()["error"] == "validation_error"

    assert client.get("/play/sessions/missing").status_code == 404

    seeded_db.query(models.AccessCode).filter_by(id="code-1").update(
        {"expires_at": utcnow() - timedelta(minutes=1)})
    seeded_db.commit()
    expired = redeem(client)
    assert expired.status_code == 410
    assert expired.json()["error"] == "expired"
    assert client.get(f"/play/sessions/{sid}").status_code == 410


def test_deactivated_code_is_forbidden(client, admin_headers):
    redeem(client)
    response = client.post("/admin/codes/code-1/deactivate", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "deactivated"
    blocked = redeem(client)
    assert blocked.status_code == 403
    assert blocked.json()["error"] == "deactivated"


def test_player_email(client):
    sid = redeem(client).json()["session_id"]
    ok = client.put(f"/play/sessions/{sid}/email", json={"email": "player@example.com"})
    assert ok.json()["player_email"] == "player@example.com"
    assert client.put(f"/play/sessions/{sid}/email", json={"email": "nope"}).status_code == 400


# ===== admin =====

def test_admin_requires_token(client):
    assert client.get("/admin/me").status_code == 401
    assert client.get("/admin/me", headers={"Authorization": "Bearer junk"}).status_code == 401
    assert client.post("/admin/login", json={"email": "admin@example.com", "password": "x"}).status_code == 401


def test_admin_me(client, admin_headers):
    assert client.get("/admin/me", headers=admin_headers).json() == {
        "id": "admin-1", "email": "admin@example.com", "role": "admin",
    }


def test_viewer_cannot_change_data(client, admin_headers):
    login = client.post("/admin/login", json={"email": "viewer@example.com", "password": "s3cret"})
    headers = {"Authorization": f"Bearer {login.json()['access_token']}"}
    assert client.get("/admin/games/game-1/timeline", headers=headers).status_code == 200
    assert client.post("/admin/codes/code-1/deactivate", headers=headers).status_code == 403


def test_generate_codes_and_inspect(client, admin_headers):
    response = client.post("/admin/games/game-1/codes", json={"quantity": 3}, headers=admin_headers)
    assert response.status_code == 200
    codes = response.json()["codes"]
    assert len(codes) == 3
    assert all(c["status"] == "unused" for c in codes)

    redeemed = redeem(client, codes[0]["code"].lower())
    assert redeemed.status_code == 200

    report = client.get(f"/admin/codes/{codes[0]['id']}", headers=admin_headers).json()
    assert report["status"] == "active"
    assert report["session"]["id"] == redeemed.json()["session_id"]
    usage = client.get(f"/admin/codes/{codes[0]['id']}/usage", headers=admin_headers).json()["usage"]
    assert [u["action"] for u in usage] == ["activated"]

    too_many = client.post("/admin/games/game-1/codes", json={"quantity": 500}, headers=admin_headers)
    assert too_many.status_code == 400
    assert client.get("/admin/codes/missing", headers=admin_headers).status_code == 404


def test_timeline_and_ordering(client, admin_headers):
    timeline = client.get("/admin/games/game-1/timeline", headers=admin_headers).json()
    assert [e["id"] for e in timeline["entries"]] == ["S1", "P1", "S2", "P2"]
    assert timeline["orphans"] == []

    anchor = client.post("/admin/splash-screens/S2/anchor", json={"kind": "end"}, headers=admin_headers)
    assert anchor.json()["anchor"]["kind"] == "end"
    client.post("/admin/puzzles/P2/move", json={"direction": "up"}, headers=admin_headers)
    timeline = client.get("/admin/games/game-1/timeline", headers=admin_headers).json()
    assert [e["id"] for e in timeline["entries"]] == ["S1", "P2", "P1", "S2"]

    bad = client.post("/admin/splash-screens/S1/move", json={"direction": "sideways"}, headers=admin_headers)
    assert bad.status_code == 400
    assert client.get("/admin/games/missing/timeline", headers=admin_headers).status_code == 404


def test_orphaned_splash_is_flagged(client, admin_headers, seeded_db):
    seeded_db.add(models.SplashScreen(
        id="S-lost", game_id="game-1", title="Lost", content="", sequence_order=5.0,
        anchor_kind="puzzle", anchor_puzzle_id="deleted",
    ))
    seeded_db.commit()
    timeline = client.get("/admin/games/game-1/timeline", headers=admin_headers).json()
    assert timeline["orphans"] == [{"splash_screen_id": "S-lost", "missing_puzzle_id": "deleted"}]
    assert [e["id"] for e in timeline["entries"]][:2] == ["S1", "S-lost"]


def test_reset_test_session(client, admin_headers):
    sid = redeem(client, "TEST2025").json()["session_id"]
    client.post(f"/play/sessions/{sid}/submit", json={"puzzle_id": "P1", "answer": "lantern"})
    reset = client.post(f"/admin/sessions/{sid}/reset", headers=admin_headers)
    assert reset.status_code == 200
    assert reset.json()["position"]["current_puzzle"]["id"] == "P1"
    assert [e["type"] for e in reset.json()["events"]] == ["session_reset"]

    regular = redeem(client).json()["session_id"]
    assert client.post(f"/admin/sessions/{regular}/reset", headers=admin_headers).status_code == 400
