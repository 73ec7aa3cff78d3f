from fastapi.testclient import TestClient

from pacer.models import SessionType


def _run(client: TestClient, session_id: int) -> int:
    response = client.post("/api/runs/", json={"session_id": session_id})
    assert response.status_code == 201
    return response.json()["workout_id"]


# ---------------------------------------------------------------------------
# List / detail
# ---------------------------------------------------------------------------


def test_list_empty(client: TestClient):
    response = client.get("/api/workouts/")
    assert response.status_code == 200
    assert response.json() == []


def test_list_newest_first(client: TestClient, factory):
    ts = factory.session_with_exercises(["A"])
    first = _run(client, ts.id)
    second = _run(client, ts.id)

    items = client.get("/api/workouts/").json()

    assert [item["id"] for item in items] == [second, first]
    assert items[0]["completed"] is False


def test_detail_has_sets(client: TestClient, factory):
    ts = factory.session_with_exercises(["Squat", "Lunge"])
    workout_id = _run(client, ts.id)
    client.post(f"/api/runs/{workout_id}/reps", json={"delta": 10})
    client.post(f"/api/runs/{workout_id}/complete-set", json={"weight_kg": 40})
    client.post(f"/api/runs/{workout_id}/finish", json={"notes": "Solid"})

    response = client.get(f"/api/workouts/{workout_id}")

    assert response.status_code == 200
    body = response.json()
    assert body["session_id"] == ts.id
    assert body["completed"] is True
    assert body["notes"] == "Solid"
    squat, lunge = body["workout_exercises"]
    assert squat["total_reps"] == 10
    assert squat["sets"] == [
        {
            "id": squat["sets"][0]["id"],
            "set_number": 1,
            "reps": 10,
            "weight_kg": 40.0,
            "duration_seconds": None,
            "rest_seconds": None,
        }
    ]
    assert lunge["sets"] == []
    assert lunge["total_reps"] == 0


def test_detail_not_found(client: TestClient):
    assert client.get("/api/workouts/9999").status_code == 404


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


def test_summary(client: TestClient, factory, scheduler):
    ts = factory.session_with_exercises(
        ["Sprint"],
        type=SessionType.HIIT,
        type_config={"hiit": {"workSeconds": 20, "restSeconds": 10, "totalDurationSeconds": 60}},
    )
    workout_id = _run(client, ts.id)
    client.post(f"/api/runs/{workout_id}/toggle")
    scheduler.advance(60)

    body = client.get(f"/api/workouts/{workout_id}/summary").json()["workout"]

    assert body["mode"] == "HIIT"
    assert body["completed"] is True
    assert body["total_duration_seconds"] == 40
    assert body["total_time_seconds"] == 60
    assert body["exercises"][0]["set_count"] == 2


def test_summary_of_missing_workout(client: TestClient):
    response = client.get("/api/workouts/9999/summary")
    assert response.status_code == 200
    assert response.json() == {"workout": None}


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


def test_delete_workout(client: TestClient, factory):
    ts = factory.session_with_exercises(["A"])
    workout_id = _run(client, ts.id)
    client.post(f"/api/runs/{workout_id}/complete-set", json={})
    client.post(f"/api/runs/{workout_id}/finish", json={})

    assert client.delete(f"/api/workouts/{workout_id}").status_code == 204
    assert client.get(f"/api/workouts/{workout_id}").status_code == 404


def test_delete_nonexistent(client: TestClient):
    assert client.delete("/api/workouts/9999").status_code == 404
