"""Shared pytest fixtures: in-memory stand-ins for storage, mail and analysis."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from checkin.ai import PlaceholderAnalyzer
from checkin.audit import AuditSink
from checkin.deps import Services
from checkin.errors import TransientDependencyError
from checkin.inbound import WebhookIngestor
from checkin.main import create_app
from checkin.models import Campaign, Draft, DraftStatus, Reply, UserRecord
from checkin.review import ReviewController
from checkin.scheduler import CheckInScheduler
from checkin.verification import VerificationService
from checkin.workflow import WorkflowEngine

WEBHOOK_SECRET = "whsec_test_secret"
ADMIN_TOKEN = "operator-token"


def _now():
    return datetime.now(timezone.utc)


class MemoryAuditStore:
    def __init__(self):
        self.entries = []

    def append(self, entry):
        self.entries.append(entry)

    def actions(self, status=None):
        return [e.action for e in self.entries if status is None or e.status.value == status]

    def for_action(self, action):
        return [e for e in self.entries if e.action == action]


class FakeUsers:
    def __init__(self):
        self.rows = {}
        self.fail_reschedule_for = set()

    def add(self, email, *, verified=True, frequency="weekly", due=None, token=None):
        user = UserRecord(
            id=str(uuid.uuid4()),
            email=email,
            is_verified=verified,
            verification_token=token,
            checkin_frequency=frequency,
            next_checkin_due=due or (_now() - timedelta(minutes=5)),
        )
        self.rows[user.id] = user
        return user

    def due_for_checkin(self, now):
        return [u for u in self.rows.values() if u.is_verified and u.next_checkin_due <= now]

    def find_by_email(self, email):
        email = email.strip().lower()
        return next((u for u in self.rows.values() if u.email == email), None)

    def find_verified_by_email(self, email):
        user = self.find_by_email(email)
        return user if user and user.is_verified else None

    def find_by_token(self, token):
        return next((u for u in self.rows.values() if u.verification_token == token), None)

    def create(self, *, email, checkin_frequency, verification_token, next_checkin_due):
        return self.add(
            email,
            verified=False,
            frequency=checkin_frequency,
            due=next_checkin_due,
            token=verification_token,
        )

    def mark_verified(self, user_id):
        u = self.rows[user_id]
        self.rows[user_id] = u.model_copy(update={"is_verified": True, "verification_token": None})

    def reschedule(self, user_id, next_checkin_due):
        if user_id in self.fail_reschedule_for:
            raise TransientDependencyError("storage error: OperationalError")
        u = self.rows[user_id]
        self.rows[user_id] = u.model_copy(update={"next_checkin_due": next_checkin_due})


class FakeCampaigns:
    def __init__(self):
        self.rows = []

    def add(self, prompt_text, *, active=True, created_at=None):
        c = Campaign(
            id=str(uuid.uuid4()),
            prompt_text=prompt_text,
            is_active=active,
            created_at=created_at or _now(),
        )
        self.rows.append(c)
        return c

    def current(self):
        active = [c for c in self.rows if c.is_active]
        return max(active, key=lambda c: c.created_at) if active else None


class FakeReplies:
    def __init__(self):
        self.rows = []

    def create(self, **fields):
        reply = Reply(id=str(uuid.uuid4()), **fields)
        self.rows.append(reply)
        return reply


class FakeDrafts:
    def __init__(self):
        self.rows = {}
        self.fail_create = False

    def create(self, submission_id, ai_response):
        if self.fail_create:
            raise TransientDependencyError('storage error: relation "ai_drafts" does not exist')
        d = Draft(
            id=str(uuid.uuid4()),
            submission_id=submission_id,
            ai_response=ai_response,
            status=DraftStatus.PENDING_REVIEW,
            created_at=_now(),
            updated_at=_now(),
        )
        self.rows[d.id] = d
        return d

    def get(self, draft_id):
        return self.rows.get(draft_id)

    def list_by_status(self, status):
        rows = [d for d in self.rows.values() if d.status == status]
        return sorted(rows, key=lambda d: d.created_at, reverse=True)

    def transition(self, draft_id, *, expected, status, reviewer_notes=None):
        d = self.rows.get(draft_id)
        if d is None or d.status != expected:
            return None
        update = {"status": status, "updated_at": _now()}
        if reviewer_notes is not None:
            update["reviewer_notes"] = reviewer_notes
        self.rows[draft_id] = d.model_copy(update=update)
        return self.rows[draft_id]

    def replace_response(self, draft_id, ai_response, *, expected):
        d = self.rows.get(draft_id)
        if d is None or d.status != expected:
            return None
        self.rows[draft_id] = d.model_copy(update={"ai_response": ai_response, "updated_at": _now()})
        return self.rows[draft_id]


class FakeMailer:
    def __init__(self):
        self.checkins = []
        self.verifications = []
        self.fail_for = set()

    def send_checkin(self, to_email, prompt_text, campaign_id):
        if to_email in self.fail_for:
            raise TransientDependencyError("mail provider answered 422")
        self.checkins.append((to_email, prompt_text, campaign_id))
        return {"id": "msg_" + uuid.uuid4().hex[:8]}

    def send_verification(self, to_email, url):
        self.verifications.append((to_email, url))
        return {"id": "msg_" + uuid.uuid4().hex[:8]}


@pytest.fixture
def audit_store():
    return MemoryAuditStore()


@pytest.fixture
def audit(audit_store):
    return AuditSink(audit_store)


@pytest.fixture
def users():
    return FakeUsers()


@pytest.fixture
def campaigns():
    return FakeCampaigns()


@pytest.fixture
def replies():
    return FakeReplies()


@pytest.fixture
def drafts():
    return FakeDrafts()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def workflow(drafts, audit):
    return WorkflowEngine(drafts, PlaceholderAnalyzer(), audit)


@pytest.fixture
def review(drafts, audit):
    return ReviewController(drafts, audit)


@pytest.fixture
def scheduler(users, campaigns, mailer, audit):
    return CheckInScheduler(users, campaigns, mailer, audit, max_workers=2)


@pytest.fixture
def ingestor(users, campaigns, replies, workflow, audit):
    return WebhookIngestor(users, campaigns, replies, workflow, audit, secret=WEBHOOK_SECRET)


@pytest.fixture
def services(audit, workflow, review, ingestor, scheduler, users, mailer):
    return Services(
        audit=audit,
        workflow=workflow,
        review=review,
        webhooks=ingestor,
        scheduler=scheduler,
        verification=VerificationService(users, mailer, audit, base_url="https://checkin.example.com"),
        admin_token=ADMIN_TOKEN,
    )


@pytest.fixture
def client(services):
    with TestClient(create_app(services, start_background=False)) as c:
        yield c


@pytest.fixture
def operator_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
