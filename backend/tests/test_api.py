"""API tests using FastAPI TestClient over the in-memory ledger."""
import pytest
from fastapi.testclient import TestClient

from app import container
from app.core import config
from conftest import ADMIN, OUTSIDER, SECOND_NODE, STUDENT, STUDENT_KEY


def _clear_container():
    for name in dir(container):
        provider = getattr(container, name)
        if name.startswith("get_") and hasattr(provider, "cache_clear"):
            provider.cache_clear()


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "DATABASE_PATH", str(tmp_path / "api.db"))
    monkeypatch.setattr(config, "LEDGER_BACKEND", "memory")
    monkeypatch.setattr(config, "LEDGER_MEMORY_ACCOUNTS", [ADMIN, SECOND_NODE])
    monkeypatch.setattr(config, "LEDGER_PRIVATE_KEYS", [STUDENT_KEY])
    monkeypatch.setattr(config, "ADMIN_SYNC_ON_STARTUP", False)
    monkeypatch.setattr(config, "FEEDBACK_SPONSORSHIP_ENABLED", False)
    _clear_container()

    from app.main import app
    with TestClient(app) as test_client:
        yield test_client
    _clear_container()


@pytest.fixture
def course(client):
    resp = client.post(
        "/courses/",
        json={
            "course_id": 101,
            "course_name": "Algorithms",
            "branch": "CSE",
            "course_time": "Mon 09:00",
            "teachers": [
                {"teacher_id": "T1", "teacher_name": "Ada"},
                {"teacher_id": "T2", "teacher_name": "Grace"},
            ],
        },
    )
    assert resp.status_code == 201
    client.post("/students/", json={"wallet_address": STUDENT, "name": "Sam"})
    return resp.json()


def _feedback(ratings=(5, 4, 3, 2), teacher_id="T1", student=STUDENT):
    return {
        "student_address": student,
        "course_id": "101",
        "teacher_id": teacher_id,
        "ratings": list(ratings),
        "comment": "clear lectures",
    }


# ------------------------------------------------------------------
# Health
# ------------------------------------------------------------------
def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


# ------------------------------------------------------------------
# Registration
# ------------------------------------------------------------------
def test_register_teacher_twice(client):
    first = client.post("/teachers/", json={"teacher_id": "T1", "teacher_name": "Ada"})
    assert first.status_code == 201
    assert first.json()["created"] is True
    assert first.json()["state"] == "registered"

    second = client.post("/teachers/", json={"teacher_id": "T1", "teacher_name": "Ada"})
    assert second.status_code == 200
    assert second.json()["created"] is False
    assert second.json()["state"] == "pre_existing"


def test_register_student(client):
    resp = client.post("/students/", json={"wallet_address": STUDENT, "name": "Sam"})
    assert resp.status_code == 201
    assert resp.json()["sender"] == STUDENT

    again = client.post("/students/", json={"wallet_address": STUDENT, "name": "Sam"})
    assert again.status_code == 200
    assert again.json()["created"] is False


def test_register_student_bad_address(client):
    resp = client.post("/students/", json={"wallet_address": "nope", "name": "Sam"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "ValidationError"


# ------------------------------------------------------------------
# Courses
# ------------------------------------------------------------------
def test_create_course(course):
    assert course["warnings"] == []
    assert course["tx_hash"].startswith("0x")
    assert course["course"]["course_id"] == "101"
    assert course["course"]["teacher_ids"] == ["T1", "T2"]


def test_duplicate_course(client, course):
    resp = client.post(
        "/courses/",
        json={"course_id": "101", "course_name": "Again", "teachers": [{"teacher_id": "T1", "teacher_name": "Ada"}]},
    )
    assert resp.status_code == 409


def test_invalid_course(client):
    resp = client.post("/courses/", json={"course_id": "abc", "course_name": "X", "teachers": []})
    assert resp.status_code == 400


def test_course_creator_without_key(client):
    resp = client.post(
        "/courses/",
        json={
            "course_id": 5,
            "course_name": "Networks",
            "teachers": [{"teacher_id": "T1", "teacher_name": "Ada"}],
            "sender": OUTSIDER,
        },
    )
    assert resp.status_code == 503
    assert resp.json()["error"] == "SenderUnavailableError"


def test_list_and_get_courses(client, course):
    listed = client.get("/courses/").json()
    assert [c["course_id"] for c in listed] == ["101"]

    detail = client.get("/courses/101").json()
    assert detail["branch"] == "CSE"
    assert [t["name"] for t in detail["teachers"]] == ["Ada", "Grace"]

    assert client.get("/courses/999").status_code == 404
    assert [c["course_id"] for c in client.get("/teachers/T2/courses").json()] == ["101"]


# ------------------------------------------------------------------
# Feedback
# ------------------------------------------------------------------
def test_submit_feedback_and_results(client, course):
    empty = client.get("/courses/101/teachers/T1/results").json()
    assert empty["has_feedback"] is False
    assert empty["averages"] is None

    resp = client.post("/feedback/", json=_feedback())
    assert resp.status_code == 201
    body = resp.json()
    assert body["staged"] is True
    assert body["sponsored"] is False

    results = client.get("/courses/101/teachers/T1/results").json()
    assert results["has_feedback"] is True
    assert results["averages"] == {"teaching": 5.0, "communication": 4.0, "fairness": 3.0, "engagement": 2.0}
    assert results["overall"] == 3.5


def test_duplicate_feedback(client, course):
    assert client.post("/feedback/", json=_feedback()).status_code == 201
    resp = client.post("/feedback/", json=_feedback(ratings=(1, 1, 1, 1)))
    assert resp.status_code == 409


@pytest.mark.parametrize("ratings", [(5, 4, 3), (5, 4, 3, 9), (5, 4, 3, 2.5), (True, 4, 3, 2)])
def test_bad_ratings(client, course, ratings):
    resp = client.post("/feedback/", json=_feedback(ratings=ratings))
    assert resp.status_code == 400
    assert client.get("/feedback/staging").json() == []


def test_feedback_from_student_without_key(client, course):
    client.post("/students/", json={"wallet_address": OUTSIDER, "name": "Olu"})
    resp = client.post("/feedback/", json=_feedback(student=OUTSIDER))
    assert resp.status_code == 503


def test_feedback_listing_and_status(client, course):
    client.post("/feedback/", json=_feedback(teacher_id="T1"))
    client.post("/feedback/", json=_feedback(teacher_id="T2", ratings=(3, 3, 3, 3)))

    records = client.get("/feedback/").json()
    assert [r["teacher_id"] for r in records] == ["T1", "T2"]
    assert records[0]["total_score"] == 14

    grouped = client.get("/feedback/", params={"group": True}).json()
    assert set(grouped["by_teacher"]) == {"T1", "T2"}
    assert len(grouped["by_course"]["101"]) == 2

    status = client.get(f"/feedback/status/{STUDENT}/101/T1").json()
    assert status["submitted"] is True
    assert status["staging_status"] == "CONFIRMED"

    submissions = client.get(f"/students/{STUDENT}/submissions").json()
    assert {s["teacher_id"] for s in submissions} == {"T1", "T2"}


def test_staging_endpoints(client, course):
    client.post("/feedback/", json=_feedback())
    staged = client.get("/feedback/staging").json()
    assert [s["status"] for s in staged] == ["CONFIRMED"]

    assert client.delete("/feedback/staging").json() == {"purged": 0}
    assert client.delete("/feedback/staging", params={"include_unexpired": True}).json() == {"purged": 1}
    assert client.get("/feedback/staging").json() == []


# ------------------------------------------------------------------
# Admin
# ------------------------------------------------------------------
def test_admin_and_rotation(client):
    current = client.get("/admin/").json()
    assert current["admin"].lower() == ADMIN.lower()
    assert current["can_sign"] is True

    noop = client.post("/admin/ensure", json={"address": ADMIN}).json()
    assert noop["rotated"] is False

    rotated = client.post("/admin/ensure", json={"address": SECOND_NODE}).json()
    assert rotated["rotated"] is True
    assert rotated["tx_hash"]
    assert client.get("/admin/").json()["admin"].lower() == SECOND_NODE.lower()


def test_admin_rotation_to_a_malformed_address(client):
    resp = client.post("/admin/ensure", json={"address": "0x12"})
    assert resp.status_code == 400
