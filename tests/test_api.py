"""End-to-end flows over HTTP."""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from meditrack.core.database import get_db
from meditrack.main import app

API = "/api/v1/appointments"

BOOKING = {"date": "2025-06-10", "time": "09:00", "health_concern": "headache"}
PARACETAMOL = {"name": "Paracetamol", "dosage": "500mg", "frequency": "3x daily"}


@pytest.fixture
def as_patient(headers_for, patient):
    return headers_for(patient)


@pytest.fixture
def as_doctor(headers_for, doctor):
    return headers_for(doctor)


@pytest.fixture
def booked(client, as_patient, doctor):
    response = client.post(API, json={**BOOKING, "preferred_doctor_id": doctor.id}, headers=as_patient)
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def completed(client, booked, as_doctor):
    appointment_id = booked["id"]
    client.post(f"{API}/{appointment_id}/claim", headers=as_doctor)
    client.post(f"{API}/{appointment_id}/advance", headers=as_doctor)
    response = client.post(f"{API}/{appointment_id}/advance", headers=as_doctor)
    assert response.json()["status"] == "completed"
    return response.json()


class TestVisitScenario:

    def test_book_treat_prescribe_and_rate(self, client, as_patient, as_doctor, patient, doctor):
        response = client.post(API, json={**BOOKING, "preferred_doctor_id": doctor.id}, headers=as_patient)
        assert response.status_code == 201
        appointment = response.json()
        assert appointment["status"] == "pending"
        assert appointment["next_status"] == "confirmed"
        assert appointment["patient_name"] == "Pat Patient"
        assert appointment["preferred_doctor_name"] == "Dana Doctor"
        assert appointment["claimed_doctor_id"] is None
        appointment_id = appointment["id"]

        pending = client.get(f"{API}/pending", headers=as_doctor).json()
        assert [a["id"] for a in pending] == [appointment_id]

        response = client.post(f"{API}/{appointment_id}/claim", headers=as_doctor)
        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"
        assert response.json()["claimed_doctor_name"] == "Dana Doctor"

        statuses = [
            client.post(f"{API}/{appointment_id}/advance", headers=as_doctor).json()["status"]
            for _ in range(2)
        ]
        assert statuses == ["in-progress", "completed"]

        response = client.post(
            f"{API}/{appointment_id}/prescription",
            json={"medicines": [PARACETAMOL]},
            headers=as_doctor,
        )
        assert response.status_code == 201
        assert response.json()["medicines"] == [PARACETAMOL]

        response = client.post(
            f"{API}/{appointment_id}/feedback",
            json={"rating": 5, "comment": "Great"},
            headers=as_patient,
        )
        assert response.status_code == 201
        assert response.json()["doctor_id"] == doctor.id

        response = client.post(
            f"{API}/{appointment_id}/feedback",
            json={"rating": 4, "comment": "Again"},
            headers=as_patient,
        )
        assert response.status_code == 409
        assert response.json()["error"] == "AlreadyExists"

        rating = client.get(f"/api/v1/stats/doctors/{doctor.id}/rating", headers=as_patient).json()
        assert rating == {"average": 5.0, "count": 1}

        mine = client.get(API, headers=as_patient).json()
        assert [a["status"] for a in mine] == ["completed"]
        assert mine[0]["next_status"] is None


class TestErrorEnvelope:

    def test_domain_errors_share_one_shape(self, client, as_patient, doctor):
        response = client.post(
            API,
            json={**BOOKING, "preferred_doctor_id": doctor.id, "time": "17:30"},
            headers=as_patient,
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "InvalidSlot"
        assert body["retryable"] is False
        assert body["message"]

    def test_missing_fields(self, client, as_patient):
        response = client.post(API, json={}, headers=as_patient)
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInput"

    def test_past_date(self, client, as_patient, doctor):
        response = client.post(
            API,
            json={**BOOKING, "preferred_doctor_id": doctor.id, "date": "2025-06-01"},
            headers=as_patient,
        )
        assert response.json()["error"] == "InvalidDate"

    def test_daily_limit(self, client, as_patient, doctor):
        for time in ("09:00", "09:30"):
            request = {**BOOKING, "preferred_doctor_id": doctor.id, "time": time}
            assert client.post(API, json=request, headers=as_patient).status_code == 201

        request = {**BOOKING, "preferred_doctor_id": doctor.id, "time": "10:00"}
        response = client.post(API, json=request, headers=as_patient)
        assert response.status_code == 429
        assert response.json()["error"] == "DailyLimitExceeded"

    def test_unknown_appointment_is_not_found(self, client, as_doctor):
        response = client.post(f"{API}/does-not-exist/claim", headers=as_doctor)
        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    def test_unknown_route_keeps_plain_404(self, client):
        response = client.get("/api/v1/nowhere")
        assert response.status_code == 404
        assert response.json()["error"] == "Not Found"

    def test_second_claim_conflicts(self, client, booked, as_doctor, headers_for, other_doctor):
        client.post(f"{API}/{booked['id']}/claim", headers=as_doctor)

        response = client.post(f"{API}/{booked['id']}/claim", headers=headers_for(other_doctor))
        assert response.status_code == 409
        assert response.json()["error"] == "AlreadyClaimed"

    def test_advance_pending_is_invalid_transition(self, client, booked, as_doctor):
        response = client.post(f"{API}/{booked['id']}/advance", headers=as_doctor)
        assert response.status_code == 409
        assert response.json()["error"] == "InvalidTransition"

    def test_advance_by_other_doctor(self, client, booked, as_doctor, headers_for, other_doctor):
        client.post(f"{API}/{booked['id']}/claim", headers=as_doctor)

        response = client.post(f"{API}/{booked['id']}/advance", headers=headers_for(other_doctor))
        assert response.status_code == 403
        assert response.json()["error"] == "NotOwner"

    def test_prescription_before_completion(self, client, booked, as_doctor):
        client.post(f"{API}/{booked['id']}/claim", headers=as_doctor)

        response = client.post(
            f"{API}/{booked['id']}/prescription",
            json={"medicines": [PARACETAMOL]},
            headers=as_doctor,
        )
        assert response.status_code == 409
        assert response.json()["error"] == "NotCompleted"

    def test_invalid_medicine(self, client, completed, as_doctor):
        response = client.post(
            f"{API}/{completed['id']}/prescription",
            json={"medicines": [{"name": "Paracetamol", "dosage": "", "frequency": "daily"}]},
            headers=as_doctor,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidMedicine"

    @pytest.mark.parametrize("rating", [0, 6, 4.5, True, "5", None])
    def test_invalid_rating(self, client, completed, as_patient, rating):
        response = client.post(
            f"{API}/{completed['id']}/feedback", json={"rating": rating}, headers=as_patient
        )
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidRating"

        # Nothing was stored, so a valid rating still goes through
        response = client.post(
            f"{API}/{completed['id']}/feedback", json={"rating": 5}, headers=as_patient
        )
        assert response.status_code == 201

    def test_comment_too_long(self, client, completed, as_patient):
        response = client.post(
            f"{API}/{completed['id']}/feedback",
            json={"rating": 5, "comment": "x" * 151},
            headers=as_patient,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "CommentTooLong"


class TestStoreOutage:

    @pytest.fixture
    def unreachable_db(self):
        engine = create_engine("sqlite:////nonexistent_dir/meditrack.db")
        Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        def _get_db():
            session = Session()
            try:
                yield session
            finally:
                session.close()

        app.dependency_overrides[get_db] = _get_db
        yield
        app.dependency_overrides.pop(get_db, None)
        engine.dispose()

    def _assert_retryable(self, response):
        assert response.status_code == 503
        body = response.json()
        assert body["error"] == "StoreUnavailable"
        assert body["retryable"] is True

    def test_engine_endpoints_report_store_unavailable(self, client, as_patient, unreachable_db):
        self._assert_retryable(client.get(API, headers=as_patient))

    def test_booking_reports_store_unavailable(self, client, as_patient, doctor, unreachable_db):
        response = client.post(
            API, json={**BOOKING, "preferred_doctor_id": doctor.id}, headers=as_patient
        )
        self._assert_retryable(response)

    def test_login_reports_store_unavailable(self, client, unreachable_db):
        response = client.post(
            "/api/v1/auth/login",
            json={"email": "pat@meditrack.local", "password": "TestPassword123"},
        )
        self._assert_retryable(response)


class TestRoles:

    def test_doctor_cannot_book(self, client, as_doctor, other_doctor):
        response = client.post(
            API, json={**BOOKING, "preferred_doctor_id": other_doctor.id}, headers=as_doctor
        )
        assert response.status_code == 403

    def test_patient_cannot_claim(self, client, booked, as_patient):
        response = client.post(f"{API}/{booked['id']}/claim", headers=as_patient)
        assert response.status_code == 403

    def test_patient_cannot_see_pending_queue(self, client, as_patient):
        assert client.get(f"{API}/pending", headers=as_patient).status_code == 403

    def test_doctor_cannot_leave_feedback(self, client, completed, as_doctor):
        response = client.post(
            f"{API}/{completed['id']}/feedback", json={"rating": 5}, headers=as_doctor
        )
        assert response.status_code == 403

    def test_requires_authentication(self, client):
        response = client.get(API)
        assert response.status_code == 401
        assert response.json()["error"] == "AuthError"

    def test_other_patient_cannot_read(self, client, booked, headers_for, other_patient):
        response = client.get(f"{API}/{booked['id']}", headers=headers_for(other_patient))
        assert response.status_code == 403
        assert response.json()["error"] == "NotOwner"


class TestReadEndpoints:

    def test_slots(self, client):
        slots = client.get(f"{API}/slots").json()
        assert slots[0] == "09:00"
        assert slots[-1] == "17:00"
        assert len(slots) == 17

    def test_annotations_are_readable_by_participants(self, client, completed, as_patient, as_doctor):
        appointment_id = completed["id"]
        client.post(f"{API}/{appointment_id}/prescription", json={"medicines": [PARACETAMOL]}, headers=as_doctor)
        client.post(f"{API}/{appointment_id}/feedback", json={"rating": 3}, headers=as_patient)

        for headers in (as_patient, as_doctor):
            assert client.get(f"{API}/{appointment_id}/prescription", headers=headers).status_code == 200
            feedback = client.get(f"{API}/{appointment_id}/feedback", headers=headers).json()
            assert feedback["rating"] == 3
            assert feedback["comment"] is None

    def test_dashboard(self, client, completed, as_patient, as_doctor):
        client.post(f"{API}/{completed['id']}/feedback", json={"rating": 4, "comment": "Kind"}, headers=as_patient)

        dashboard = client.get("/api/v1/stats/me", headers=as_doctor).json()
        assert dashboard["role"] == "doctor"
        assert dashboard["stats"]["completed"] == 1
        assert dashboard["rating"] == {"average": 4.0, "count": 1}

        patient_view = client.get("/api/v1/stats/me", headers=as_patient).json()
        assert patient_view["stats"]["total"] == 1
        assert patient_view["rating"] is None

    def test_recent_feedback(self, client, completed, as_patient, as_doctor, doctor):
        client.post(f"{API}/{completed['id']}/feedback", json={"rating": 4, "comment": "Kind"}, headers=as_patient)

        recent = client.get(f"/api/v1/stats/doctors/{doctor.id}/feedback", headers=as_doctor).json()
        assert len(recent) == 1
        assert recent[0]["patient_name"] == "Pat Patient"
        assert recent[0]["rating"] == 4
