from datetime import datetime, timedelta, timezone

import pytest

from checkin.errors import NotFoundError, ValidationError
from checkin.models import Cadence
from checkin.verification import VerificationService, calculate_next_checkin

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "frequency, delta",
    [
        ("daily", timedelta(hours=24)),
        ("weekly", timedelta(days=7)),
        ("biweekly", timedelta(days=14)),
        ("monthly", timedelta(days=30)),
        (Cadence.DAILY, timedelta(hours=24)),
    ],
)
def test_cadence_advances_by_fixed_duration(frequency, delta):
    assert calculate_next_checkin(frequency, NOW) - NOW == delta


@pytest.mark.parametrize("frequency", ["yearly", "", None, "Weekly"])
def test_unknown_cadence_falls_back_to_weekly(frequency):
    assert calculate_next_checkin(frequency, NOW) - NOW == timedelta(days=7)


def test_defaults_to_current_time():
    before = datetime.now(timezone.utc)
    due = calculate_next_checkin("daily")
    assert before + timedelta(hours=24) <= due <= datetime.now(timezone.utc) + timedelta(hours=24)


@pytest.fixture
def verification(users, mailer, audit):
    return VerificationService(users, mailer, audit, base_url="https://checkin.example.com/")


def test_register_creates_unverified_user_and_sends_link(verification, users, mailer, audit_store):
    user = verification.register("  Jane@X.com ", "daily")

    assert user.email == "jane@x.com"
    assert user.is_verified is False
    assert user.checkin_frequency == "daily"
    stored = users.rows[user.id]
    assert stored.verification_token
    assert mailer.verifications == [
        ("jane@x.com", f"https://checkin.example.com/api/verify?token={stored.verification_token}")
    ]
    assert "user_registered" in audit_store.actions("success")


def test_register_rejects_unknown_cadence_and_duplicates(verification, users):
    with pytest.raises(ValidationError):
        verification.register("a@x.com", "hourly")
    users.add("b@x.com")
    with pytest.raises(ValidationError):
        verification.register("B@x.com", "weekly")


def test_verify_token_is_single_use(verification, users):
    user = verification.register("jane@x.com")
    token = users.rows[user.id].verification_token

    assert verification.verify(token) == {"message": "Email verified successfully"}
    assert users.rows[user.id].is_verified is True
    assert users.rows[user.id].verification_token is None

    with pytest.raises(NotFoundError):
        verification.verify(token)


def test_verify_requires_token(verification):
    with pytest.raises(ValidationError):
        verification.verify("")


def test_register_and_verify_over_http(client, users, mailer):
    r = client.post("/api/users/register", json={"email": "new@x.com", "checkin_frequency": "biweekly"})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert "verification_token" not in body["user"]

    token = users.rows[body["user"]["id"]].verification_token
    r = client.get("/api/verify", params={"token": token})
    assert r.status_code == 200
    assert r.json()["message"] == "Email verified successfully"

    r = client.get("/api/verify", params={"token": token})
    assert r.status_code == 404
    assert r.json() == {"error": "Invalid or expired verification token"}
