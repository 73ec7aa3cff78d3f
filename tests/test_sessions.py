import json

from fastapi.testclient import TestClient

HIIT_CONFIG = {"typeConfig": {"hiit": {"workSeconds": 20, "restSeconds": 10, "totalDurationSeconds": 60}}}


def _create_session(client: TestClient, name: str = "Morning", **fields) -> dict:
    response = client.post("/api/sessions/", json={"name": name, **fields})
    assert response.status_code == 201
    return response.json()


def _add_exercise(client: TestClient, session_id: int, **fields) -> dict:
    response = client.post(f"/api/sessions/{session_id}/exercises", json=fields)
    assert response.status_code == 201
    return response.json()


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


def test_list_empty(client: TestClient):
    response = client.get("/api/sessions/")
    assert response.status_code == 200
    assert response.json() == []


def test_create_custom(client: TestClient):
    body = _create_session(client)
    assert body["type"] == "CUSTOM"
    assert body["mode"] == "DEFAULT"
    assert body["config_json"] is None
    assert body["exercises"] == []


def test_create_hiit_stores_config(client: TestClient):
    body = _create_session(client, "Tabata", type="HIIT", config=HIIT_CONFIG)
    assert body["mode"] == "HIIT"
    assert json.loads(body["config_json"]) == HIIT_CONFIG


def test_hiit_without_config_runs_free_form(client: TestClient):
    body = _create_session(client, "Broken", type="HIIT")
    assert body["mode"] == "DEFAULT"


def test_get_not_found(client: TestClient):
    assert client.get("/api/sessions/9999").status_code == 404


def test_update_type_and_config(client: TestClient):
    created = _create_session(client)
    response = client.patch(
        f"/api/sessions/{created['id']}",
        json={"type": "EMOM", "config": {"typeConfig": {"emom": {"intervalSeconds": 45}}}},
    )
    assert response.status_code == 200
    assert response.json()["mode"] == "EMOM"
    assert response.json()["name"] == "Morning"


def test_update_clears_config(client: TestClient):
    created = _create_session(client, type="HIIT", config=HIIT_CONFIG)
    response = client.patch(f"/api/sessions/{created['id']}", json={"config": None})
    assert response.json()["config_json"] is None
    assert response.json()["mode"] == "DEFAULT"


def test_delete(client: TestClient):
    created = _create_session(client)
    _add_exercise(client, created["id"], custom_name="Squat")
    assert client.delete(f"/api/sessions/{created['id']}").status_code == 204
    assert client.get(f"/api/sessions/{created['id']}").status_code == 404


def test_delete_not_found(client: TestClient):
    assert client.delete("/api/sessions/9999").status_code == 404


# ---------------------------------------------------------------------------
# Session exercises
# ---------------------------------------------------------------------------


def test_add_exercises_in_order(client: TestClient, factory):
    squat = factory.exercise("Squat")
    created = _create_session(client)
    first = _add_exercise(client, created["id"], exercise_id=squat.id, sets=3, target_reps=10)
    second = _add_exercise(client, created["id"])

    assert first["name"] == "Squat"
    assert first["order_index"] == 0
    assert second["name"] == "Exercise 2"
    assert second["order_index"] == 1

    detail = client.get(f"/api/sessions/{created['id']}").json()
    assert [ex["name"] for ex in detail["exercises"]] == ["Squat", "Exercise 2"]


def test_add_exercise_unknown_exercise(client: TestClient):
    created = _create_session(client)
    response = client.post(f"/api/sessions/{created['id']}/exercises", json={"exercise_id": 9999})
    assert response.status_code == 404


def test_add_exercise_unknown_session(client: TestClient):
    response = client.post("/api/sessions/9999/exercises", json={"custom_name": "Plank"})
    assert response.status_code == 404


def test_update_exercise(client: TestClient):
    created = _create_session(client)
    se = _add_exercise(client, created["id"], custom_name="Plank")
    response = client.patch(
        f"/api/sessions/{created['id']}/exercises/{se['id']}",
        json={"target_duration_seconds": 60},
    )
    assert response.status_code == 200
    assert response.json()["exercises"][0]["target_duration_seconds"] == 60
    assert response.json()["exercises"][0]["custom_name"] == "Plank"


def test_update_exercise_of_other_session(client: TestClient):
    one = _create_session(client, "One")
    two = _create_session(client, "Two")
    se = _add_exercise(client, one["id"], custom_name="Plank")
    response = client.patch(f"/api/sessions/{two['id']}/exercises/{se['id']}", json={"sets": 2})
    assert response.status_code == 404


def test_remove_exercise_compacts(client: TestClient):
    created = _create_session(client)
    a = _add_exercise(client, created["id"], custom_name="A")
    _add_exercise(client, created["id"], custom_name="B")

    assert client.delete(f"/api/sessions/{created['id']}/exercises/{a['id']}").status_code == 204

    exercises = client.get(f"/api/sessions/{created['id']}").json()["exercises"]
    assert [(ex["name"], ex["order_index"]) for ex in exercises] == [("B", 0)]


def test_reorder(client: TestClient):
    created = _create_session(client)
    a = _add_exercise(client, created["id"], custom_name="A")
    b = _add_exercise(client, created["id"], custom_name="B")

    response = client.put(
        f"/api/sessions/{created['id']}/exercises/order", json={"ids": [b["id"], a["id"]]}
    )

    assert response.status_code == 200
    assert [ex["name"] for ex in response.json()["exercises"]] == ["B", "A"]


def test_reorder_incomplete(client: TestClient):
    created = _create_session(client)
    a = _add_exercise(client, created["id"], custom_name="A")
    _add_exercise(client, created["id"], custom_name="B")
    response = client.put(
        f"/api/sessions/{created['id']}/exercises/order", json={"ids": [a["id"]]}
    )
    assert response.status_code == 400


# ---------------------------------------------------------------------------
# Last summary
# ---------------------------------------------------------------------------


def test_last_summary_empty(client: TestClient):
    created = _create_session(client)
    response = client.get(f"/api/sessions/{created['id']}/last-summary")
    assert response.status_code == 200
    assert response.json() == {"workout": None}


def test_last_summary_after_run(client: TestClient):
    created = _create_session(client, "Pull day")
    _add_exercise(client, created["id"], custom_name="Pull-up")
    run = client.post("/api/runs/", json={"session_id": created["id"]}).json()
    workout_id = run["workout_id"]
    client.post(f"/api/runs/{workout_id}/reps", json={"delta": 6})
    client.post(f"/api/runs/{workout_id}/complete-set", json={})
    client.post(f"/api/runs/{workout_id}/finish", json={})

    summary = client.get(f"/api/sessions/{created['id']}/last-summary").json()["workout"]

    assert summary["workout_id"] == workout_id
    assert summary["session_name"] == "Pull day"
    assert summary["completed"] is True
    assert summary["total_reps"] == 6
    assert summary["exercises"][0]["name"] == "Pull-up"


def test_last_summary_unknown_session(client: TestClient):
    assert client.get("/api/sessions/9999/last-summary").status_code == 404
