"""Google Calendar / Meet Integration Client.

Creates a calendar event with an attached Google Meet conference for a
scheduled class. Authentication uses a service account with domain-wide
delegation: a JWT assertion (RS256, signed with the service account key)
is exchanged for an access token impersonating the shared calendar owner.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time as dt_time, timedelta
import logging
import time
from typing import Any, Protocol, cast

import httpx
import jwt
from pydantic import SecretStr

from ..core.config import Settings
from ..core.exceptions import ExternalServiceDegradedException

logger = logging.getLogger(__name__)

CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


@dataclass(frozen=True)
class MeetingDetails:
    """Result of a provisioning attempt; both fields None when it failed."""

    meet_link: str | None = None
    event_id: str | None = None

    @property
    def provisioned(self) -> bool:
        return bool(self.meet_link or self.event_id)


class MeetingParty(Protocol):
    name: Any
    email: Any


class MeetingTopic(Protocol):
    title: Any


class MeetingProvisioner(Protocol):
    def create_meeting(
        self,
        trainer: MeetingParty,
        student: MeetingParty,
        content: MeetingTopic,
        scheduled_date: date,
        scheduled_time: dt_time,
    ) -> MeetingDetails: ...


class GoogleMeetError(ExternalServiceDegradedException):
    """Raised when Google OAuth or the Calendar API responds with an error."""

    def __init__(
        self,
        message: str,
        response_status: int | None = None,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            service="google_meet",
            details={"response_status": response_status, **(details or {})},
        )
        self.response_status = response_status


def build_event_body(
    trainer: MeetingParty,
    student: MeetingParty,
    content: MeetingTopic,
    scheduled_date: date,
    scheduled_time: dt_time,
    *,
    timezone_name: str,
    duration_minutes: int,
) -> dict[str, Any]:
    """Calendar event payload for one class, with a Meet conference request."""
    start = datetime.combine(scheduled_date, scheduled_time).replace(microsecond=0)
    end = start + timedelta(minutes=duration_minutes)
    return {
        "summary": f"{content.title} - {student.name}",
        "description": f"Training class with {student.name} by {trainer.name}",
        "start": {"dateTime": start.isoformat(), "timeZone": timezone_name},
        "end": {"dateTime": end.isoformat(), "timeZone": timezone_name},
        "attendees": [{"email": trainer.email}, {"email": student.email}],
        "conferenceData": {
            "createRequest": {
                "requestId": f"meet-{int(time.time() * 1000)}",
                "conferenceSolutionKey": {"type": "hangoutsMeet"},
            }
        },
    }


class GoogleMeetClient:
    """HTTP client for the Google Calendar v3 REST API."""

    def __init__(
        self,
        *,
        client_email: str,
        private_key: str | SecretStr,
        subject: str,
        token_uri: str = "https://oauth2.googleapis.com/token",
        base_url: str = "https://www.googleapis.com/calendar/v3",
        timezone_name: str = "Asia/Kolkata",
        duration_minutes: int = 60,
        timeout: float = 10.0,
    ) -> None:
        self._client_email = client_email
        self._private_key = (
            private_key.get_secret_value() if isinstance(private_key, SecretStr) else private_key
        )
        self._subject = subject
        self._token_uri = token_uri
        self._base_url = base_url.rstrip("/")
        self._timezone_name = timezone_name
        self._duration_minutes = duration_minutes
        self._timeout = timeout
        self._access_token: str | None = None
        self._access_token_refresh_at: float = 0.0

    def _build_assertion(self) -> str:
        """Service account JWT, signed RS256 with the account's private key."""
        now = int(time.time())
        payload = {
            "iss": self._client_email,
            "sub": self._subject,
            "scope": CALENDAR_SCOPE,
            "aud": self._token_uri,
            "iat": now,
            "exp": now + 3600,
        }
        token: str = jwt.encode(payload, self._private_key, algorithm="RS256")
        return token

    def _get_access_token(self) -> str:
        """Return a cached access token, exchanging a fresh assertion before expiry."""
        now = time.monotonic()
        if self._access_token is not None and now < self._access_token_refresh_at:
            return self._access_token

        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.post(
                    self._token_uri,
                    data={"grant_type": JWT_BEARER_GRANT, "assertion": self._build_assertion()},
                )
        except httpx.TransportError as exc:
            logger.error("Google OAuth unreachable: %s", exc)
            raise GoogleMeetError(f"Google OAuth unreachable: {exc}") from exc

        if response.status_code >= 400:
            logger.error(
                "Google OAuth error %s: %s", response.status_code, response.text[:500]
            )
            raise GoogleMeetError(
                "Google OAuth token exchange failed",
                response_status=response.status_code,
                details={"body": response.text[:500]},
            )

        body = cast(dict[str, Any], response.json())
        self._access_token = cast(str, body["access_token"])
        # Rotate ahead of the advertised lifetime
        expires_in = int(body.get("expires_in", 3600))
        self._access_token_refresh_at = now + max(expires_in - 300, 60)
        return self._access_token

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated request to the Calendar API."""
        url = f"{self._base_url}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {self._get_access_token()}",
            "Content-Type": "application/json",
        }

        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.request(method, url, headers=headers, json=json_body, params=params)
        except httpx.TransportError as exc:
            logger.error("Google Calendar API unreachable for %s %s: %s", method, path, exc)
            raise GoogleMeetError(f"Google Calendar API unreachable: {exc}") from exc

        if response.status_code >= 400:
            logger.error(
                "Google Calendar API error %s for %s %s: %s",
                response.status_code,
                method,
                path,
                response.text[:500],
            )
            raise GoogleMeetError(
                "Google Calendar API request failed",
                response_status=response.status_code,
                details={"body": response.text[:500]},
            )

        return cast(dict[str, Any], response.json())

    def create_meeting(
        self,
        trainer: MeetingParty,
        student: MeetingParty,
        content: MeetingTopic,
        scheduled_date: date,
        scheduled_time: dt_time,
    ) -> MeetingDetails:
        """Insert a calendar event with a Meet link on the shared calendar."""
        event = build_event_body(
            trainer,
            student,
            content,
            scheduled_date,
            scheduled_time,
            timezone_name=self._timezone_name,
            duration_minutes=self._duration_minutes,
        )
        data = self._request(
            "POST",
            "calendars/primary/events",
            json_body=event,
            params={"conferenceDataVersion": 1},
        )
        return MeetingDetails(meet_link=data.get("hangoutLink"), event_id=data.get("id"))


class DisabledMeetingClient:
    """Provisioner used when Google credentials are absent; never creates a link."""

    def create_meeting(
        self,
        trainer: MeetingParty,
        student: MeetingParty,
        content: MeetingTopic,
        scheduled_date: date,
        scheduled_time: dt_time,
    ) -> MeetingDetails:
        logger.debug(
            "Meeting provisioning disabled; %s on %s %s booked without a link",
            content.title,
            scheduled_date,
            scheduled_time,
        )
        return MeetingDetails()


class FakeMeetingClient:
    """In-memory stand-in for tests; records calls and hands out fake links."""

    def __init__(self, **kwargs: Any) -> None:
        self._calls: list[dict[str, Any]] = []
        self._error: Exception | None = None

    def set_error(self, error: Exception | None) -> None:
        """Make every following create_meeting call raise ``error``."""
        self._error = error

    def create_meeting(
        self,
        trainer: MeetingParty,
        student: MeetingParty,
        content: MeetingTopic,
        scheduled_date: date,
        scheduled_time: dt_time,
    ) -> MeetingDetails:
        self._calls.append(
            {
                "method": "create_meeting",
                "trainer_email": trainer.email,
                "student_email": student.email,
                "title": content.title,
                "scheduled_date": scheduled_date,
                "scheduled_time": scheduled_time,
            }
        )
        if self._error is not None:
            raise self._error
        index = len(self._calls)
        return MeetingDetails(
            meet_link=f"https://meet.google.com/fake-{index:03d}",
            event_id=f"fake_event_{index}",
        )


def build_meeting_client(settings: Settings) -> MeetingProvisioner:
    """Real client when service account credentials are configured, a no-op otherwise."""
    if settings.meeting_provisioning_configured:
        return GoogleMeetClient(
            client_email=cast(str, settings.google_client_email),
            private_key=cast(SecretStr, settings.google_private_key),
            subject=settings.google_shared_email,
            token_uri=settings.google_token_uri,
            base_url=settings.google_calendar_base_url,
            timezone_name=settings.meeting_timezone,
            duration_minutes=settings.meeting_duration_minutes,
            timeout=settings.meeting_timeout_seconds,
        )
    logger.warning("Google service account not configured; classes are booked without meeting links")
    return DisabledMeetingClient()
