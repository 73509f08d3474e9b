import json

import pytest
import requests

from checkin.ai import OpenAIAnalyzer, _normalize
from checkin.errors import TransientDependencyError
from checkin.mailer import QueuedMailer, ResendMailer


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body if body is not None else {"id": "email_1"}

    def json(self):
        return self._body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def test_checkin_mail_carries_campaign_header():
    session = FakeSession()
    mailer = ResendMailer("re_key", "Check-Ins <checkin@x.com>", reply_to="replies@x.com", session=session)

    assert mailer.send_checkin("a@x.com", "What's new?", "c-1") == {"id": "email_1"}

    [(url, kwargs)] = session.calls
    assert url == "https://api.resend.com/emails"
    assert kwargs["headers"]["Authorization"] == "Bearer re_key"
    assert kwargs["timeout"] == 20
    sent = json.loads(kwargs["data"])
    assert sent["to"] == ["a@x.com"]
    assert sent["reply_to"] == "replies@x.com"
    assert sent["headers"] == {"X-Campaign-ID": "c-1"}
    assert "What's new?" in sent["text"]


def test_demo_mode_skips_provider():
    session = FakeSession()
    mailer = ResendMailer("", "x@x.com", demo=True, session=session)
    assert mailer.send_verification("a@x.com", "https://v") == {"demo": True}
    assert session.calls == []


@pytest.mark.parametrize(
    "session",
    [FakeSession(FakeResponse(422, {"message": "invalid"})), FakeSession(error=requests.ConnectionError())],
)
def test_provider_failures_are_transient(session):
    mailer = ResendMailer("re_key", "x@x.com", session=session)
    with pytest.raises(TransientDependencyError):
        mailer.send("a@x.com", "s", "t")


def test_missing_api_key_is_transient():
    with pytest.raises(TransientDependencyError):
        ResendMailer("", "x@x.com", session=FakeSession()).send("a@x.com", "s", "t")


class FakeJob:
    id = "job-1"


class FakeQueue:
    def __init__(self):
        self.enqueued = []

    def enqueue(self, func, *args):
        self.enqueued.append((func, args))
        return FakeJob()


def test_queued_mailer_enqueues_jobs():
    q = FakeQueue()
    result = QueuedMailer(q).send_checkin("a@x.com", "prompt", 7)
    assert result == {"queued": True, "job_id": "job-1"}
    assert q.enqueued == [("checkin.jobs.send_checkin_email", ("a@x.com", "prompt", "7"))]


# -----------------------------
# Analysis
# -----------------------------

def test_normalize_cleans_model_output():
    out = _normalize({"summary": " Saving up ", "suggested_actions": "Open an ISA", "risk_profile": "HIGH"})
    assert out.summary == "Saving up"
    assert out.suggested_actions == ["Open an ISA"]
    assert out.risk_profile == "high"
    assert _normalize({"summary": "x", "risk_profile": "extreme"}).risk_profile == "moderate"
    with pytest.raises(ValueError):
        _normalize({"summary": ""})


class _Completions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error

    def create(self, **kwargs):
        if self.error is not None:
            raise self.error
        message = type("M", (), {"content": self.content})
        choice = type("C", (), {"message": message})
        return type("R", (), {"choices": [choice]})


class FakeOpenAI:
    def __init__(self, completions):
        self.chat = type("Chat", (), {"completions": completions})


def test_openai_analyzer_parses_json():
    content = json.dumps({"summary": "Wants a house", "suggested_actions": ["Save"], "risk_profile": "low"})
    analyzer = OpenAIAnalyzer("sk", client=FakeOpenAI(_Completions(content)))
    assert analyzer.analyze("House", None).summary == "Wants a house"


@pytest.mark.parametrize("completions", [_Completions("not json"), _Completions(error=TimeoutError())])
def test_openai_analyzer_failures_are_transient(completions):
    analyzer = OpenAIAnalyzer("sk", client=FakeOpenAI(completions))
    with pytest.raises(TransientDependencyError):
        analyzer.analyze("House", None)
