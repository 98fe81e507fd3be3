"""API tests for branch resources and class schedules."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from class_schedules.main import (
    app,
    branch_repo,
    classroom_repo,
    schedule_repo,
    teacher_repo,
    timeline_repo,
)


def _clear() -> None:
    branch_repo._store.clear()
    classroom_repo._store.clear()
    teacher_repo._store.clear()
    schedule_repo._store.clear()
    timeline_repo._entries.clear()


@pytest.fixture(autouse=True)
def _clear_repos():
    _clear()
    yield
    _clear()


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture()
def branch(client: TestClient) -> dict:
    """A branch with two rooms and two teachers, returned as ids."""
    branch_id = client.post("/branches", json={"name": "Main"}).json()["id"]
    room_a = client.post(f"/branches/{branch_id}/classrooms", json={"name": "Room A"}).json()
    room_b = client.post(f"/branches/{branch_id}/classrooms", json={"name": "Room B"}).json()
    jane = client.post(
        f"/branches/{branch_id}/teacher-profiles",
        json={"user_id": "user-1", "first_name": "Jane", "last_name": "Doe"},
    ).json()
    omar = client.post(
        f"/branches/{branch_id}/teacher-profiles",
        json={"user_id": "user-2", "first_name": "Omar"},
    ).json()
    return {
        "id": branch_id,
        "room_a": room_a["id"],
        "room_b": room_b["id"],
        "jane": jane["id"],
        "omar": omar["id"],
    }


def _payload(branch: dict, **overrides) -> dict:
    body = {
        "title": "Maths",
        "day_of_week": "MONDAY",
        "start_time": "09:00",
        "end_time": "10:00",
        "classroom_id": branch["room_a"],
        "teacher_profile_id": branch["jane"],
    }
    body.update(overrides)
    return body


# ---------------------------------------------------------------------------
# Branch resources
# ---------------------------------------------------------------------------


def test_create_and_get_branch(client: TestClient):
    resp = client.post("/branches", json={"name": "Riverside"})
    assert resp.status_code == 201
    branch_id = resp.json()["id"]

    assert client.get(f"/branches/{branch_id}").json()["name"] == "Riverside"
    assert [b["id"] for b in client.get("/branches").json()] == [branch_id]


def test_unknown_branch_returns_404(client: TestClient):
    resp = client.get("/branches/missing/schedules")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Branch missing not found"


def test_classrooms_are_listed_per_branch(client: TestClient, branch: dict):
    other = client.post("/branches", json={"name": "North"}).json()["id"]
    client.post(f"/branches/{other}/classrooms", json={"name": "North 1"})

    names = [c["name"] for c in client.get(f"/branches/{branch['id']}/classrooms").json()]
    assert names == ["Room A", "Room B"]


def test_teacher_profiles_are_listed_per_branch(client: TestClient, branch: dict):
    resp = client.get(f"/branches/{branch['id']}/teacher-profiles")
    assert [p["user_id"] for p in resp.json()] == ["user-1", "user-2"]


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


def test_create_schedule(client: TestClient, branch: dict):
    resp = client.post(f"/branches/{branch['id']}/schedules", json=_payload(branch))
    assert resp.status_code == 201
    body = resp.json()

    assert body["title"] == "Maths"
    assert body["time_slot"] == {
        "day_of_week": "MONDAY",
        "start_time": "09:00:00",
        "end_time": "10:00:00",
    }
    assert body["classroom_id"] == branch["room_a"]
    assert body["is_recurring"] is True


def test_create_accepts_iso_datetimes(client: TestClient, branch: dict):
    resp = client.post(
        f"/branches/{branch['id']}/schedules",
        json=_payload(
            branch,
            start_time="2024-02-01T09:00:00.000Z",
            end_time="2024-02-01T10:00:00.000Z",
        ),
    )
    assert resp.status_code == 201
    assert resp.json()["time_slot"]["start_time"] == "09:00:00"


def test_create_inverted_range_returns_400(client: TestClient, branch: dict):
    resp = client.post(
        f"/branches/{branch['id']}/schedules",
        json=_payload(branch, start_time="11:00", end_time="10:00"),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Class end time must be greater than start time."


def test_create_malformed_payload_returns_422(client: TestClient, branch: dict):
    resp = client.post(
        f"/branches/{branch['id']}/schedules",
        json=_payload(branch, day_of_week="FUNDAY"),
    )
    assert resp.status_code == 422


def test_unassigned_classes_do_not_share_a_blank_room(client: TestClient, branch: dict):
    first = client.post(
        f"/branches/{branch['id']}/schedules",
        json=_payload(branch, classroom_id="", teacher_profile_id=None),
    )
    assert first.status_code == 422

    for title in ("Maths", "Science"):
        resp = client.post(
            f"/branches/{branch['id']}/schedules",
            json=_payload(branch, title=title, classroom_id=None, teacher_profile_id=None),
        )
        assert resp.status_code == 201


def test_create_with_foreign_classroom_returns_409(client: TestClient, branch: dict):
    other = client.post("/branches", json={"name": "North"}).json()["id"]
    foreign_room = client.post(f"/branches/{other}/classrooms", json={"name": "N1"}).json()["id"]

    resp = client.post(
        f"/branches/{branch['id']}/schedules",
        json=_payload(branch, classroom_id=foreign_room),
    )
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Selected classroom belongs to a different branch."


def test_clash_returns_409_with_itemized_body(client: TestClient, branch: dict):
    existing = client.post(
        f"/branches/{branch['id']}/schedules",
        json=_payload(branch, additional_staff=[{"user_id": "user-7"}]),
    ).json()

    resp = client.post(
        f"/branches/{branch['id']}/schedules",
        json=_payload(
            branch,
            title="Science",
            start_time="09:30",
            end_time="10:30",
            additional_staff=[{"user_id": "user-7"}, {"user_id": "user-8"}],
        ),
    )

    assert resp.status_code == 409
    body = resp.json()
    assert body["message"] == (
        "Selected classroom is already booked for this time. "
        "Lead teacher already has a class scheduled during this time. "
        "One or more assigned staff members have another class at this time."
    )
    clashes = body["clashes"]
    assert [s["id"] for s in clashes["classroom"]] == [existing["id"]]
    assert clashes["classroom"][0]["classroom"] == {"id": branch["room_a"], "name": "Room A"}
    assert clashes["teacher_profiles"][0]["teacher_profile"]["first_name"] == "Jane"
    assert clashes["teacher_profiles"][0]["start_time"] == "09:00:00"
    assert clashes["staff_assignments"] == [
        {"schedule": clashes["classroom"][0], "user_ids": ["user-7"]}
    ]

    listed = client.get(f"/branches/{branch['id']}/schedules").json()
    assert [s["id"] for s in listed] == [existing["id"]]


def test_adjacent_slots_are_accepted(client: TestClient, branch: dict):
    client.post(f"/branches/{branch['id']}/schedules", json=_payload(branch))
    resp = client.post(
        f"/branches/{branch['id']}/schedules",
        json=_payload(branch, title="Science", start_time="10:00", end_time="11:00"),
    )
    assert resp.status_code == 201


# ---------------------------------------------------------------------------
# Dry-run check
# ---------------------------------------------------------------------------


def test_check_endpoint_reports_without_saving(client: TestClient, branch: dict):
    client.post(f"/branches/{branch['id']}/schedules", json=_payload(branch))

    resp = client.post(
        f"/branches/{branch['id']}/schedules/check",
        json=_payload(branch, title="Science", teacher_profile_id=branch["omar"]),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["has_conflicts"] is True
    assert body["message"] == "Selected classroom is already booked for this time."
    assert len(body["clashes"]["classroom"]) == 1
    assert len(client.get(f"/branches/{branch['id']}/schedules").json()) == 1


def test_check_endpoint_clear_slot(client: TestClient, branch: dict):
    resp = client.post(f"/branches/{branch['id']}/schedules/check", json=_payload(branch))
    assert resp.json() == {
        "has_conflicts": False,
        "message": None,
        "clashes": {"classroom": [], "teacher_profiles": [], "staff_assignments": []},
    }


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------


def test_patch_moves_schedule(client: TestClient, branch: dict):
    created = client.post(f"/branches/{branch['id']}/schedules", json=_payload(branch)).json()

    resp = client.patch(
        f"/branches/{branch['id']}/schedules/{created['id']}",
        json={"day_of_week": "TUESDAY", "classroom_id": None},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["time_slot"]["day_of_week"] == "TUESDAY"
    assert body["classroom_id"] is None
    assert body["teacher_profile_id"] == branch["jane"]


def test_patch_into_clash_returns_409(client: TestClient, branch: dict):
    client.post(f"/branches/{branch['id']}/schedules", json=_payload(branch))
    other = client.post(
        f"/branches/{branch['id']}/schedules",
        json=_payload(branch, title="Science", day_of_week="TUESDAY", teacher_profile_id=branch["omar"]),
    ).json()

    resp = client.patch(
        f"/branches/{branch['id']}/schedules/{other['id']}",
        json={"day_of_week": "MONDAY"},
    )
    assert resp.status_code == 409
    assert resp.json()["clashes"]["classroom"][0]["title"] == "Maths"

    stored = client.get(f"/branches/{branch['id']}/schedules/{other['id']}").json()
    assert stored["time_slot"]["day_of_week"] == "TUESDAY"


def test_patch_missing_schedule_returns_404(client: TestClient, branch: dict):
    resp = client.patch(f"/branches/{branch['id']}/schedules/missing", json={})
    assert resp.status_code == 404


def test_delete_schedule_and_timeline(client: TestClient, branch: dict):
    created = client.post(f"/branches/{branch['id']}/schedules", json=_payload(branch)).json()
    url = f"/branches/{branch['id']}/schedules/{created['id']}"

    resp = client.delete(url)
    assert resp.status_code == 200
    assert resp.json()["id"] == created["id"]
    assert client.get(url).status_code == 404

    timeline = client.get(f"{url}/timeline")
    assert timeline.status_code == 200
    assert [e["type"] for e in timeline.json()] == ["created", "removed"]


def test_timeline_for_unknown_schedule_returns_404(client: TestClient, branch: dict):
    resp = client.get(f"/branches/{branch['id']}/schedules/missing/timeline")
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


def test_sessions_expand_recurring_schedules(client: TestClient, branch: dict):
    client.post(f"/branches/{branch['id']}/schedules", json=_payload(branch))
    client.post(
        f"/branches/{branch['id']}/schedules",
        json=_payload(branch, title="One-off", day_of_week="FRIDAY", is_recurring=False),
    )

    resp = client.get(
        f"/branches/{branch['id']}/sessions",
        params={"reference": "2026-03-04T12:00:00+00:00"},
    )
    assert resp.status_code == 200
    sessions = resp.json()
    assert [s["title"] for s in sessions] == ["Maths", "Maths"]
    assert sessions[0]["start_time"].startswith("2026-03-09T09:00:00")
    assert sessions[1]["start_time"].startswith("2026-03-16T09:00:00")
