import pytest
from fastapi.testclient import TestClient

import routers.admin_confirmation as admin_confirmation
from auth import create_access_token, get_password_hash
from database import get_db
from models import Admin, AdminLog, VerificationStatus
from security import require_admin, require_participant
from server import app


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def as_admin(db, factory):
    admin = factory.admin()
    app.dependency_overrides[require_admin] = lambda: admin
    return admin


@pytest.fixture
def sent_mail(monkeypatch):
    sent = []
    monkeypatch.setattr(
        admin_confirmation,
        "notify_confirmation",
        lambda to_email, event_name, participant_id, bucket=None: sent.append((to_email, event_name, participant_id)),
    )
    return sent


def _as_participant(participant_id):
    app.dependency_overrides[require_participant] = lambda: participant_id


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_admin_login_issues_a_token_that_opens_admin_routes(client, db):
    db.add(Admin(username="festadmin", hashed_password=get_password_hash("correct horse"), is_active=True))
    db.commit()

    bad = client.post("/api/admin/auth/login", json={"username": "festadmin", "password": "wrong"})
    assert bad.status_code == 401

    login = client.post("/api/admin/auth/login", json={"username": "festadmin", "password": "correct horse"})
    assert login.status_code == 200
    token = login.json()["access_token"]

    events = client.get("/api/admin/events", headers={"Authorization": f"Bearer {token}"})
    assert events.status_code == 200
    assert events.json() == []


def test_participant_token_cannot_reach_admin_routes(client):
    token = create_access_token("NCP001", "ncp")
    response = client.get("/api/admin/events", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_register_confirm_and_list_over_http(client, db, factory, as_admin, sent_mail):
    event = factory.event(slots=1)
    factory.ncp("NCP001")
    factory.ncp("NCP002")

    _as_participant("NCP001")
    registered = client.post("/api/participant/registrations/solo", json={"event_id": event.id})
    assert registered.status_code == 200
    assert registered.json()["bucket"] == "open"
    _as_participant("NCP002")
    assert client.post("/api/participant/registrations/solo", json={"event_id": event.id}).status_code == 200

    confirmed = client.post("/api/admin/confirmations/confirm", json={"participant_id": "ncp001", "event_id": event.id})
    assert confirmed.status_code == 200
    body = confirmed.json()
    assert body["participant_id"] == "NCP001"
    assert body["slots_remaining"] == 0
    assert sent_mail == [("ncp001@mail.com", "Quiz", "NCP001")]

    again = client.post("/api/admin/confirmations/confirm", json={"participant_id": "NCP001", "event_id": event.id})
    assert again.status_code == 409
    full = client.post("/api/admin/confirmations/confirm", json={"participant_id": "NCP002", "event_id": event.id})
    assert full.status_code == 409
    assert len(sent_mail) == 1

    listing = client.get("/api/admin/confirmations", params={"event_id": event.id})
    assert listing.status_code == 200
    bucket = listing.json()[0]["buckets"]["open"]
    assert [row["participant"] for row in bucket["confirmed"]] == ["NCP001"]
    assert [row["participant"] for row in bucket["pending"]] == ["NCP002"]

    assert db.query(AdminLog).filter(AdminLog.action == "Confirm participant").count() == 1


def test_confirm_sends_both_discriminators_is_rejected(client, factory, as_admin, sent_mail):
    event = factory.event(name="Mr. and Ms. Fest", slots={"male": 1, "female": 1})
    response = client.post(
        "/api/admin/confirmations/confirm",
        json={"participant_id": "NCP001", "event_id": event.id, "sex": "male", "weight_category": "heavyWeight"},
    )
    assert response.status_code == 422


def test_replace_over_http(client, db, factory, as_admin, sent_mail):
    event = factory.event(name="Mr. and Ms. Fest", slots={"male": 1, "female": 1})
    factory.ncp("NCP001")
    factory.ncp("NCP002")
    _as_participant("NCP001")
    client.post("/api/participant/registrations/solo", json={"event_id": event.id, "sex": "male"})
    _as_participant("NCP002")
    client.post("/api/participant/registrations/solo", json={"event_id": event.id, "sex": "male"})
    client.post("/api/admin/confirmations/confirm", json={"participant_id": "NCP001", "event_id": event.id, "sex": "male"})

    response = client.post(
        "/api/admin/confirmations/replace",
        json={"participant_id": "NCP001", "replacement_participant_id": "NCP002", "event_id": event.id, "sex": "male"},
    )

    assert response.status_code == 200
    assert response.json()["arriving_id"] == "NCP002"
    assert response.json()["slots_remaining"] == 0
    assert sent_mail[-1] == ("ncp002@mail.com", "Mr. and Ms. Fest", "NCP002")


def test_dummy_substitution_over_multipart(client, db, factory, as_admin, monkeypatch):
    monkeypatch.setattr("participant_directory.upload_identity_document", lambda file: f"https://files.test/{file.filename}")
    event = factory.event(slots=2)
    factory.cc("CC001")
    _as_participant("CC001")
    client.post("/api/participant/registrations/solo", json={"event_id": event.id, "is_dummy": True})
    identity = factory.identity("Meera", "Iyer")

    response = client.post(
        "/api/admin/substitutions/solo",
        data={
            "participant_id": "CC001",
            "event_id": str(event.id),
            "is_dummy": "true",
            "substitute_data": identity.model_dump_json(),
        },
        files={
            "id_proof": ("id.png", b"png", "image/png"),
            "govt_id_proof": ("govt.png", b"png", "image/png"),
        },
    )

    assert response.status_code == 200
    assert response.json()["substituted"] == 1

    broken = client.post(
        "/api/admin/substitutions/solo",
        data={"participant_id": "CC001", "event_id": str(event.id), "is_dummy": "true", "substitute_data": "{}"},
    )
    assert broken.status_code == 400


def test_walk_in_and_export(client, factory, as_admin):
    event = factory.event(slots=2)

    walk_in = client.post(
        "/api/admin/walk-ins/solo",
        json={
            "event_id": event.id,
            "participant": {
                "first_name": "Kiran",
                "last_name": "Das",
                "phone_number": "9123456780",
                "email": "kiran@mail.com",
            },
        },
    )
    assert walk_in.status_code == 200
    assert walk_in.json()["slots_remaining"] == 1

    export = client.get("/api/admin/confirmations/export")
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("application/vnd.openxmlformats")


def test_event_lifecycle_and_points_over_http(client, factory, as_admin):
    created = client.post(
        "/api/admin/events",
        json={
            "name": "Debate",
            "description": "Parliamentary debate",
            "event_type": "FLAGSHIP",
            "format": "SOLO",
            "slots": 2,
            "date": "2030-01-15T10:00:00+00:00",
            "points": {
                "registration": 10,
                "qualification": 20,
                "npr": 5,
                "npq": 3,
                "first_podium": 50,
                "second_podium": 30,
            },
        },
    )
    assert created.status_code == 200
    event_id = created.json()["id"]
    assert created.json()["slots"] == {"open": 2}

    duplicate = client.post("/api/admin/events", json={**created.json(), "name": "debate", "slots": 2})
    assert duplicate.status_code == 400

    factory.ncp("NCP001")
    _as_participant("NCP001")
    client.post("/api/participant/registrations/solo", json={"event_id": event_id})
    unconfirmed = client.post(
        "/api/admin/points/award",
        json={"participant_id": "NCP001", "event_id": event_id, "award": "qualification"},
    )
    assert unconfirmed.status_code == 400

    status_change = client.put(f"/api/admin/events/{event_id}/status", json={"status": "ONGOING"})
    assert status_change.json()["status"] == "ONGOING"
    assert client.delete(f"/api/admin/events/{event_id}").status_code == 200
    assert client.get("/api/events").json() == []


def test_verification_over_http(client, factory, as_admin):
    user = factory.ncp("NCP001", verified=VerificationStatus.PENDING)

    pending = client.get("/api/admin/verifications/pending")
    assert [row["external_id"] for row in pending.json()] == ["NCP001"]

    decided = client.post(
        "/api/admin/verifications",
        json={"participant_kind": "NCP", "participant_id": user.id, "verified": "VERIFIED"},
    )
    assert decided.status_code == 200
    again = client.post(
        "/api/admin/verifications",
        json={"participant_kind": "NCP", "participant_id": user.id, "verified": "REJECTED"},
    )
    assert again.status_code == 400


def test_bucket_value_must_belong_to_its_own_field(client, factory, as_admin, sent_mail):
    event = factory.event(name="MMA", slots={"lightWeight": 1, "middleWeight": 1, "heavyWeight": 1})
    factory.ncp("NCP001")
    _as_participant("NCP001")

    wrong_field = client.post("/api/participant/registrations/solo", json={"event_id": event.id, "sex": "lightWeight"})
    assert wrong_field.status_code == 422
    wrong_scheme = client.post("/api/participant/registrations/solo", json={"event_id": event.id, "sex": "male"})
    assert wrong_scheme.status_code == 400
    registered = client.post(
        "/api/participant/registrations/solo",
        json={"event_id": event.id, "weight_category": "lightWeight"},
    )
    assert registered.json()["bucket"] == "lightWeight"

    confirmed = client.post(
        "/api/admin/confirmations/confirm",
        json={"participant_id": "NCP001", "event_id": event.id, "sex": "lightWeight"},
    )
    assert confirmed.status_code == 422
    assert sent_mail == []


def test_bets_and_participant_details_over_http(client, db, factory, as_admin):
    event = factory.event(slots=2)
    factory.cc("CC001")
    _as_participant("CC001")
    client.post("/api/participant/registrations/solo", json={"event_id": event.id, "is_dummy": True})

    placed = client.post("/api/admin/bets", json={"participant_id": "cc001", "event_id": event.id, "amount": 80})
    assert placed.status_code == 200
    assert placed.json()["participant_id"] == "CC001"
    assert client.post("/api/admin/bets", json={"participant_id": "CC001", "event_id": event.id, "amount": 0}).status_code == 422

    assert [bet["amount"] for bet in client.get("/api/admin/bets").json()] == [80]
    assert [bet["amount"] for bet in client.get("/api/admin/bets/CC001").json()] == [80]
    assert db.query(AdminLog).filter(AdminLog.action == "Place bet").count() == 1

    mine = client.get("/api/participant/me")
    assert mine.status_code == 200
    assert mine.json()["registered_solos"][0]["participant"] == "dummy"
    assert mine.json()["bets"][0]["event_name"] == "Quiz"

    admin_view = client.get("/api/admin/participants/CC001")
    assert admin_view.status_code == 200
    assert admin_view.json()["participant_id"] == "CC001"
    assert client.get("/api/admin/participants/CC404").status_code == 404
