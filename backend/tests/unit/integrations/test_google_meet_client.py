# backend/tests/unit/integrations/test_google_meet_client.py
from datetime import date, time
import json
from types import SimpleNamespace
from urllib.parse import parse_qs

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
import httpx
import jwt
import pytest

from coursebook.core.config import Settings
from coursebook.core.exceptions import ExternalServiceDegradedException
from coursebook.integrations import google_meet_client
from coursebook.integrations.google_meet_client import (
    CALENDAR_SCOPE,
    DisabledMeetingClient,
    FakeMeetingClient,
    GoogleMeetClient,
    GoogleMeetError,
    build_event_body,
    build_meeting_client,
)

TOKEN_URI = "https://oauth2.googleapis.com/token"
EVENTS_PATH = "/calendar/v3/calendars/primary/events"

TRAINER = SimpleNamespace(name="Tara Trainer", email="tara@example.com")
STUDENT = SimpleNamespace(name="Sam Student", email="sam@example.com")
CONTENT = SimpleNamespace(title="Decorators")


@pytest.fixture(scope="module")
def key_pair():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


@pytest.fixture
def meet_client(key_pair):
    return GoogleMeetClient(
        client_email="svc@project.iam.gserviceaccount.com",
        private_key=key_pair[0],
        subject="lms@example.com",
        timezone_name="Asia/Kolkata",
        duration_minutes=45,
    )


def _route(monkeypatch, handler):
    """Send every httpx.Client request in the module through ``handler``."""
    real_client = httpx.Client

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(google_meet_client.httpx, "Client", client_factory)


class TestBuildEventBody:
    def test_event_shape(self):
        body = build_event_body(
            TRAINER,
            STUDENT,
            CONTENT,
            date(2026, 3, 2),
            time(10, 30),
            timezone_name="Asia/Kolkata",
            duration_minutes=60,
        )

        assert body["summary"] == "Decorators - Sam Student"
        assert body["description"] == "Training class with Sam Student by Tara Trainer"
        assert body["start"] == {"dateTime": "2026-03-02T10:30:00", "timeZone": "Asia/Kolkata"}
        assert body["end"] == {"dateTime": "2026-03-02T11:30:00", "timeZone": "Asia/Kolkata"}
        assert body["attendees"] == [{"email": "tara@example.com"}, {"email": "sam@example.com"}]
        request = body["conferenceData"]["createRequest"]
        assert request["requestId"].startswith("meet-")
        assert request["conferenceSolutionKey"] == {"type": "hangoutsMeet"}

    def test_late_class_ends_next_day(self):
        body = build_event_body(
            TRAINER,
            STUDENT,
            CONTENT,
            date(2026, 3, 2),
            time(23, 30),
            timezone_name="UTC",
            duration_minutes=60,
        )

        assert body["end"]["dateTime"] == "2026-03-03T00:30:00"


class TestGoogleMeetClient:
    def test_creates_event_with_service_account_token(self, monkeypatch, meet_client, key_pair):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == TOKEN_URI:
                form = parse_qs(request.content.decode())
                seen["claims"] = jwt.decode(
                    form["assertion"][0], key_pair[1], algorithms=["RS256"], audience=TOKEN_URI
                )
                seen["grant_type"] = form["grant_type"][0]
                return httpx.Response(200, json={"access_token": "tok-1", "expires_in": 3600})
            seen["auth"] = request.headers["Authorization"]
            seen["params"] = dict(request.url.params)
            seen["path"] = request.url.path
            seen["event"] = json.loads(request.content)
            return httpx.Response(
                200, json={"id": "evt_1", "hangoutLink": "https://meet.google.com/abc-defg-hij"}
            )

        _route(monkeypatch, handler)

        meeting = meet_client.create_meeting(TRAINER, STUDENT, CONTENT, date(2026, 3, 2), time(10, 0))

        assert meeting.meet_link == "https://meet.google.com/abc-defg-hij"
        assert meeting.event_id == "evt_1"
        assert meeting.provisioned
        assert seen["claims"]["iss"] == "svc@project.iam.gserviceaccount.com"
        assert seen["claims"]["sub"] == "lms@example.com"
        assert seen["claims"]["scope"] == CALENDAR_SCOPE
        assert seen["grant_type"] == google_meet_client.JWT_BEARER_GRANT
        assert seen["auth"] == "Bearer tok-1"
        assert seen["params"] == {"conferenceDataVersion": "1"}
        assert seen["path"] == EVENTS_PATH
        assert seen["event"]["end"]["dateTime"] == "2026-03-02T10:45:00"

    def test_access_token_is_cached(self, monkeypatch, meet_client):
        token_requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == TOKEN_URI:
                token_requests.append(request)
                return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
            return httpx.Response(200, json={"id": "evt", "hangoutLink": "https://meet.google.com/x"})

        _route(monkeypatch, handler)

        meet_client.create_meeting(TRAINER, STUDENT, CONTENT, date(2026, 3, 2), time(10, 0))
        meet_client.create_meeting(TRAINER, STUDENT, CONTENT, date(2026, 3, 3), time(10, 0))

        assert len(token_requests) == 1

    def test_oauth_failure(self, monkeypatch, meet_client):
        _route(monkeypatch, lambda request: httpx.Response(401, json={"error": "invalid_grant"}))

        with pytest.raises(GoogleMeetError) as exc_info:
            meet_client.create_meeting(TRAINER, STUDENT, CONTENT, date(2026, 3, 2), time(10, 0))

        assert exc_info.value.response_status == 401
        assert exc_info.value.service == "google_meet"
        assert isinstance(exc_info.value, ExternalServiceDegradedException)

    def test_calendar_failure(self, monkeypatch, meet_client):
        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == TOKEN_URI:
                return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
            return httpx.Response(500, text="backend error")

        _route(monkeypatch, handler)

        with pytest.raises(GoogleMeetError, match="Google Calendar API request failed") as exc_info:
            meet_client.create_meeting(TRAINER, STUDENT, CONTENT, date(2026, 3, 2), time(10, 0))

        assert exc_info.value.details["body"] == "backend error"

    def test_unreachable_provider(self, monkeypatch, meet_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        _route(monkeypatch, handler)

        with pytest.raises(GoogleMeetError, match="unreachable"):
            meet_client.create_meeting(TRAINER, STUDENT, CONTENT, date(2026, 3, 2), time(10, 0))


class TestFakeMeetingClient:
    def test_returns_numbered_links_and_records_calls(self):
        client = FakeMeetingClient()

        first = client.create_meeting(TRAINER, STUDENT, CONTENT, date(2026, 3, 2), time(10, 0))
        second = client.create_meeting(TRAINER, STUDENT, CONTENT, date(2026, 3, 3), time(10, 0))

        assert first.meet_link == "https://meet.google.com/fake-001"
        assert second.event_id == "fake_event_2"
        assert [call["title"] for call in client._calls] == ["Decorators", "Decorators"]

    def test_configured_error(self):
        client = FakeMeetingClient()
        client.set_error(GoogleMeetError("down"))

        with pytest.raises(GoogleMeetError):
            client.create_meeting(TRAINER, STUDENT, CONTENT, date(2026, 3, 2), time(10, 0))


class TestBuildMeetingClient:
    def test_disabled_without_credentials(self):
        settings = Settings(google_client_email=None, google_private_key=None)

        client = build_meeting_client(settings)

        assert isinstance(client, DisabledMeetingClient)
        meeting = client.create_meeting(TRAINER, STUDENT, CONTENT, date(2026, 3, 2), time(10, 0))
        assert meeting.meet_link is None
        assert meeting.event_id is None
        assert meeting.provisioned is False

    def test_real_client_with_credentials(self, key_pair):
        escaped_key = key_pair[0].replace("\n", "\\n")
        settings = Settings(
            google_client_email="svc@project.iam.gserviceaccount.com",
            google_private_key=escaped_key,
        )

        client = build_meeting_client(settings)

        assert isinstance(client, GoogleMeetClient)
        assert client._private_key == key_pair[0]


class TestMeetingClientDependency:
    def test_fresh_disabled_client_per_request(self, monkeypatch):
        from coursebook.api.dependencies import services as service_deps

        monkeypatch.setattr(service_deps.settings, "google_client_email", None)
        monkeypatch.setattr(service_deps.settings, "google_private_key", None)

        first = service_deps.get_meeting_client()
        second = service_deps.get_meeting_client()

        assert isinstance(first, DisabledMeetingClient)
        assert first is not second
