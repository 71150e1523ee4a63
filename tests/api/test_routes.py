"""
API tests for the HTTP routes.

The app runs in mock mode: mock text generation, an in-memory roster and
import registry. The shared instances are reset around every test so each
one starts from an empty club.
"""

import asyncio
from uuid import uuid4

import httpx
import pytest
from fastapi.testclient import TestClient

from src.api.dependencies import get_text_generator, reset_shared_instances
from src.config.settings import Settings, get_settings
from src.main import create_app


API_KEY = "test-key"
HEADERS = {"X-API-Key": API_KEY}
MOCK_REPLY = "Great work in class today! Keep it up."

ROSTER_TEXT = "\n".join([
    "Name\tAge\tBirthday\tGender\tBelt\tStripes",
    "Mia\t7\t\tFemale\tYellow Belt\t1",
    "Ben\t9\t\tMale\tPurple Dragon\t2",
])


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        api_keys=API_KEY,
        anthropic_mock_mode=True,
        roster_mock_mode=True,
        club_name="Tiger Dojo",
        coach_bonus_enabled=True,
    )


@pytest.fixture
def app(settings):
    reset_shared_instances()
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings

    yield app

    app.dependency_overrides.clear()
    reset_shared_instances()


@pytest.fixture
def client(app):
    return TestClient(app)


def enroll(client, **body) -> dict:
    payload = {"name": "Mia", "belt": "White Belt", **body}
    response = client.post("/api/v1/students", json=payload, headers=HEADERS)
    assert response.status_code == 201, response.text
    return response.json()["student"]


def all_greens(student_id: str, bonus: int = 0) -> dict:
    return {
        "coach_name": "Sensei Kim",
        "bulk": {"score": 2},
        "entries": [{"student_id": student_id, "bonus": bonus}],
    }


# ---------------------------------------------------------------------------
# Health and Auth
# ---------------------------------------------------------------------------

class TestHealth:
    def test_health_needs_no_key(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["details"]["mock_mode"]["roster"] is True

    def test_ready_in_mock_mode(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"


class TestAuth:
    def test_missing_key_is_forbidden(self, client):
        assert client.get("/api/v1/students").status_code == 403

    def test_wrong_key_is_forbidden(self, client):
        response = client.get("/api/v1/students", headers={"X-API-Key": "nope"})
        assert response.status_code == 403


# ---------------------------------------------------------------------------
# Club
# ---------------------------------------------------------------------------

class TestClub:
    def test_club_setup(self, client):
        body = client.get("/api/v1/club", headers=HEADERS).json()

        assert body["club_name"] == "Tiger Dojo"
        assert body["belts"][0]["id"] == "wt-1"
        assert body["belts"][0]["points_per_stripe"] == 64
        assert body["classes"]["Main Location"][0] == "General Class"
        assert body["coach_bonus_enabled"] is True

    def test_coach_welcome(self, client):
        response = client.post(
            "/api/v1/club/coaches/welcome",
            json={"coach_name": "Sensei Kim"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json() == {"message": MOCK_REPLY, "is_ai_generated": True}


# ---------------------------------------------------------------------------
# Students
# ---------------------------------------------------------------------------

class TestStudents:
    def test_enroll_student(self, client):
        response = client.post(
            "/api/v1/students",
            json={"name": "Mia", "belt": "yellow belt", "stripes": 2},
            headers=HEADERS,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["student"]["belt_id"] == "wt-3"
        assert body["student"]["total_points"] == 128
        assert body["welcome_message"] is None

    def test_parent_email_gets_welcome_message(self, client):
        response = client.post(
            "/api/v1/students",
            json={"name": "Mia", "belt": "1", "parent_email": "mom@example.com"},
            headers=HEADERS,
        )
        assert response.json()["welcome_message"] == MOCK_REPLY

    def test_unknown_belt_is_bad_request(self, client):
        response = client.post(
            "/api/v1/students",
            json={"name": "Mia", "belt": "Purple Dragon"},
            headers=HEADERS,
        )
        assert response.status_code == 400

    def test_list_filters_by_class(self, client):
        enroll(client, name="Ana", assigned_class="Kids Class")
        enroll(client, name="Ben", assigned_class="Adult Class")

        response = client.get(
            "/api/v1/students", params={"assigned_class": "Kids Class"}, headers=HEADERS
        )
        assert [s["name"] for s in response.json()] == ["Ana"]

    def test_unknown_student_is_not_found(self, client):
        response = client.get(f"/api/v1/students/{uuid4()}", headers=HEADERS)
        assert response.status_code == 404

    def test_readiness_is_locked_without_stripes(self, client):
        student = enroll(client)

        response = client.post(
            f"/api/v1/students/{student['id']}/readiness",
            json={"ready": True},
            headers=HEADERS,
        )

        assert response.status_code == 409
        assert "0 of 4 stripes" in response.json()["detail"]

    def test_promote_without_readiness_does_nothing(self, client):
        student = enroll(client)

        body = client.post(f"/api/v1/students/{student['id']}/promote", headers=HEADERS).json()

        assert body["promoted"] is False
        assert body["reason"] == "not_ready"
        assert body["student"]["belt_id"] == "wt-1"

    def test_stripes_follow_current_stripe_cost(self, app, client, settings):
        """Raising the stripe cost takes stripes away from points already earned."""
        student = enroll(client, stripes=4)
        assert student["total_points"] == 256
        assert student["can_mark_ready"] is True

        pricier = settings.model_copy(update={"points_per_stripe": 100})
        app.dependency_overrides[get_settings] = lambda: pricier

        body = client.get(f"/api/v1/students/{student['id']}", headers=HEADERS).json()
        assert body["total_points"] == 256
        assert body["stripes"] == 2
        assert body["can_mark_ready"] is False

        response = client.post(
            f"/api/v1/students/{student['id']}/readiness",
            json={"ready": True},
            headers=HEADERS,
        )
        assert response.status_code == 409
        assert "2 of 4 stripes" in response.json()["detail"]


class SlowGenerator:
    """Holds every message until the test lets it go."""

    def __init__(self, text: str = "Congratulations on your new belt!"):
        self.text = text
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def generate_text(self, kind, context) -> str:
        self.started.set()
        await self.release.wait()
        return self.text


class TestPromotionMessage:
    @pytest.mark.asyncio
    async def test_promotion_is_saved_before_the_message(self, app):
        """
        While the congratulation is still being written the new belt is
        already visible, and a session saved meanwhile survives.
        """
        generator = SlowGenerator()
        app.dependency_overrides[get_text_generator] = lambda: generator
        transport = httpx.ASGITransport(app=app)

        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            created = await client.post(
                "/api/v1/students",
                json={"name": "Mia", "belt": "White Belt", "stripes": 4},
                headers=HEADERS,
            )
            mia = created.json()["student"]
            created = await client.post(
                "/api/v1/students", json={"name": "Ben", "belt": "White Belt"}, headers=HEADERS
            )
            ben = created.json()["student"]
            ready = await client.post(
                f"/api/v1/students/{mia['id']}/readiness", json={"ready": True}, headers=HEADERS
            )
            assert ready.status_code == 200

            promotion = asyncio.create_task(
                client.post(f"/api/v1/students/{mia['id']}/promote", headers=HEADERS)
            )
            await asyncio.wait_for(generator.started.wait(), timeout=5)

            pending = (await client.get(f"/api/v1/students/{mia['id']}", headers=HEADERS)).json()
            assert pending["belt_id"] == "wt-2"
            assert pending["feedback_history"] == []

            session = {
                "coach_name": "Sensei Kim",
                "bulk": {"score": 2},
                "entries": [{"student_id": mia["id"]}, {"student_id": ben["id"]}],
            }
            commit = await client.post("/api/v1/sessions/commit", json=session, headers=HEADERS)
            assert commit.status_code == 200

            generator.release.set()
            promoted = (await asyncio.wait_for(promotion, timeout=5)).json()

            stored_mia = (await client.get(f"/api/v1/students/{mia['id']}", headers=HEADERS)).json()
            stored_ben = (await client.get(f"/api/v1/students/{ben['id']}", headers=HEADERS)).json()

        assert promoted["promoted"] is True
        assert promoted["student"]["feedback_history"][-1]["text"] == generator.text

        assert stored_mia["belt_id"] == "wt-2"
        assert stored_mia["total_points"] == 8
        assert stored_mia["attendance_count"] == 1
        assert stored_mia["feedback_history"][-1]["source"] == "system"
        assert stored_ben["total_points"] == 8
        assert stored_ben["attendance_count"] == 1


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

class TestSessions:
    def test_session_to_promotion(self, client):
        """Three stripes, one good class, then the grading."""
        student = enroll(client, stripes=3)
        assert student["total_points"] == 192

        commit = client.post(
            "/api/v1/sessions/commit",
            json=all_greens(student["id"], bonus=56),
            headers=HEADERS,
        )
        assert commit.status_code == 200
        body = commit.json()
        assert body["summary"] == "1 students updated. 1 new stripes earned!"
        assert body["progress"][0]["session_total"] == 64
        assert body["progress"][0]["can_mark_ready"] is True
        assert body["students"][0]["stripes"] == 4
        assert body["students"][0]["attendance_count"] == 1

        ready = client.post(
            f"/api/v1/students/{student['id']}/readiness",
            json={"ready": True},
            headers=HEADERS,
        )
        assert ready.status_code == 200
        assert ready.json()["is_ready_for_grading"] is True

        promoted = client.post(f"/api/v1/students/{student['id']}/promote", headers=HEADERS).json()
        assert promoted["promoted"] is True
        assert promoted["to_belt_id"] == "wt-2"
        assert promoted["student"]["total_points"] == 0
        assert promoted["student"]["stripes"] == 0
        assert promoted["student"]["feedback_history"][-1]["source"] == "system"

        stored = client.get(f"/api/v1/students/{student['id']}", headers=HEADERS).json()
        assert stored["belt_id"] == "wt-2"
        assert len(stored["performance_history"]) == 1

    def test_parent_messages_are_recorded(self, client):
        student = enroll(client)
        request = all_greens(student["id"])
        request["parent_messages"] = {student["id"]: "Well done today."}

        body = client.post("/api/v1/sessions/commit", json=request, headers=HEADERS).json()

        feedback = body["students"][0]["feedback_history"]
        assert feedback[0]["text"] == "Well done today."
        assert feedback[0]["source"] == "coach"

    def test_absent_student_is_not_updated(self, client):
        student = enroll(client)
        request = {
            "entries": [{"student_id": student["id"], "present": False, "scores": {}}],
        }

        body = client.post("/api/v1/sessions/commit", json=request, headers=HEADERS).json()

        assert body["updated_count"] == 0
        assert body["students"] == []

    def test_feedback_preview(self, client):
        student = enroll(client)

        response = client.post(
            "/api/v1/sessions/feedback", json=all_greens(student["id"]), headers=HEADERS
        )

        assert response.status_code == 200
        assert response.json()["messages"] == {student["id"]: MOCK_REPLY}

    def test_unknown_skill_is_bad_request(self, client):
        student = enroll(client)
        request = {"entries": [{"student_id": student["id"], "scores": {"skill-99": 2}}]}

        response = client.post("/api/v1/sessions/commit", json=request, headers=HEADERS)
        assert response.status_code == 400

    def test_unknown_student_is_not_found(self, client):
        response = client.post(
            "/api/v1/sessions/commit", json=all_greens(str(uuid4())), headers=HEADERS
        )
        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Roster Import
# ---------------------------------------------------------------------------

class TestRosterImport:
    def test_paste_fix_and_commit(self, client):
        created = client.post("/api/v1/roster/imports", json={"text": ROSTER_TEXT}, headers=HEADERS)
        assert created.status_code == 201
        batch = created.json()
        assert batch["header_detected"] is True
        assert batch["valid_count"] == 1
        assert batch["rows"][1]["belt_id"] == "INVALID_BELT"
        assert batch["rows"][1]["belt_raw"] == "Purple Dragon"

        fixed = client.patch(
            f"/api/v1/roster/imports/{batch['batch_id']}/rows/1",
            json={"belt_id": "wt-2"},
            headers=HEADERS,
        ).json()
        assert fixed["error_count"] == 0
        assert fixed["rows"][1]["total_points"] == 128

        committed = client.post(
            f"/api/v1/roster/imports/{batch['batch_id']}/commit", headers=HEADERS
        ).json()
        assert committed["added_count"] == 2
        assert committed["skipped_count"] == 0

        roster = client.get("/api/v1/students", headers=HEADERS).json()
        assert [s["name"] for s in roster] == ["Mia", "Ben"]

        gone = client.get(f"/api/v1/roster/imports/{batch['batch_id']}", headers=HEADERS)
        assert gone.status_code == 404

    def test_invalid_rows_are_skipped_on_commit(self, client):
        batch = client.post(
            "/api/v1/roster/imports", json={"text": ROSTER_TEXT}, headers=HEADERS
        ).json()

        committed = client.post(
            f"/api/v1/roster/imports/{batch['batch_id']}/commit", headers=HEADERS
        ).json()

        assert committed["added_count"] == 1
        assert committed["skipped_count"] == 1

    def test_remove_row(self, client):
        batch = client.post(
            "/api/v1/roster/imports", json={"text": ROSTER_TEXT}, headers=HEADERS
        ).json()

        trimmed = client.delete(
            f"/api/v1/roster/imports/{batch['batch_id']}/rows/1", headers=HEADERS
        ).json()

        assert [r["name"] for r in trimmed["rows"]] == ["Mia"]

    def test_row_out_of_range_is_not_found(self, client):
        batch = client.post(
            "/api/v1/roster/imports", json={"text": ROSTER_TEXT}, headers=HEADERS
        ).json()

        response = client.patch(
            f"/api/v1/roster/imports/{batch['batch_id']}/rows/9",
            json={"name": "Nobody"},
            headers=HEADERS,
        )
        assert response.status_code == 404

    def test_unknown_batch_is_not_found(self, client):
        response = client.get(f"/api/v1/roster/imports/{uuid4()}", headers=HEADERS)
        assert response.status_code == 404

    def test_csv_upload(self, client):
        response = client.post(
            "/api/v1/roster/imports/upload",
            files={"file": ("roster.csv", b"Mia,7,,Female,White Belt,1", "text/csv")},
            headers=HEADERS,
        )

        assert response.status_code == 201
        assert response.json()["rows"][0]["belt_id"] == "wt-1"

    def test_legacy_excel_upload_is_rejected(self, client):
        response = client.post(
            "/api/v1/roster/imports/upload",
            files={"file": ("roster.xls", b"\xd0\xcf\x11\xe0", "application/vnd.ms-excel")},
            headers=HEADERS,
        )

        assert response.status_code == 400
        assert ".xls" in response.json()["detail"]

    def test_template_download(self, client):
        response = client.get("/api/v1/roster/template", headers=HEADERS)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "student_import_template.csv" in response.headers["content-disposition"]
        assert "John Doe" in response.text
