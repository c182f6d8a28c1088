"""
Tests for the inbound SMS reply webhook (/api/v1/slot-offers/reply).

``handle_reply`` is exercised directly against a mocked service; the route
tests cover Twilio signature verification and the TwiML response.
"""

from unittest.mock import MagicMock

from fastapi.testclient import TestClient
from pydantic import SecretStr
import pytest
from twilio.request_validator import RequestValidator

from app.api.dependencies.services import get_slot_recovery_service
from app.core.config import settings
from app.core.exceptions import ConflictException
from app.main import app
from app.routes.v1.slot_offers import handle_reply
from app.services.sms_templates import (
    SLOT_OFFER_DECLINED,
    SLOT_OFFER_HINT,
    SLOT_OFFER_NO_OPEN_OFFER,
    SLOT_OFFER_UNAVAILABLE,
)

AUTH_TOKEN = "twilio-auth-token"
REPLY_URL = "http://testserver/api/v1/slot-offers/reply"
PHONE = "+15557654321"


class TestHandleReply:
    @pytest.fixture
    def service(self):
        service = MagicMock()
        service.find_latest_open_offer.return_value = MagicMock(id="O1")
        return service

    @pytest.mark.parametrize("body", ["yes", " Y ", "YES"])
    def test_accept(self, service, body):
        assert handle_reply(service, PHONE, body) is None
        service.accept_offer.assert_called_once_with(service.find_latest_open_offer.return_value)

    @pytest.mark.parametrize("body", ["no", "N"])
    def test_decline(self, service, body):
        assert handle_reply(service, PHONE, body) == SLOT_OFFER_DECLINED.template
        service.decline_offer.assert_called_once()
        service.accept_offer.assert_not_called()

    def test_unknown_command_gets_hint(self, service):
        assert handle_reply(service, PHONE, "maybe later") == SLOT_OFFER_HINT.template
        service.find_latest_open_offer.assert_not_called()

    def test_no_open_offer(self, service):
        service.find_latest_open_offer.return_value = None
        assert handle_reply(service, PHONE, "YES") == SLOT_OFFER_NO_OPEN_OFFER.template

    def test_lost_race(self, service):
        service.accept_offer.side_effect = ConflictException(
            "Slot is no longer available", code="SLOT_NO_LONGER_AVAILABLE"
        )
        assert handle_reply(service, PHONE, "YES") == SLOT_OFFER_UNAVAILABLE.template


class TestReplyWebhook:
    @pytest.fixture
    def service(self, monkeypatch):
        monkeypatch.setattr(settings, "twilio_auth_token", SecretStr(AUTH_TOKEN))
        monkeypatch.setattr(settings, "app_url", None)
        service = MagicMock()
        service.find_latest_open_offer.return_value = MagicMock(id="O1")
        app.dependency_overrides[get_slot_recovery_service] = lambda: service
        yield service
        app.dependency_overrides.clear()

    @pytest.fixture
    def client(self, service):
        return TestClient(app)

    def _signed(self, params):
        signature = RequestValidator(AUTH_TOKEN).compute_signature(REPLY_URL, params)
        return {"X-Twilio-Signature": signature}

    def test_signed_reply_is_handled(self, client, service):
        params = {"From": PHONE, "Body": "maybe"}

        response = client.post(
            "/api/v1/slot-offers/reply", data=params, headers=self._signed(params)
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert f"<Message>{SLOT_OFFER_HINT.template}</Message>" in response.text

    def test_accept_answers_with_empty_twiml(self, client, service):
        params = {"From": PHONE, "Body": "YES"}

        response = client.post(
            "/api/v1/slot-offers/reply", data=params, headers=self._signed(params)
        )

        assert response.status_code == 200
        assert "<Message>" not in response.text
        service.find_latest_open_offer.assert_called_once_with(PHONE)
        service.accept_offer.assert_called_once()

    def test_missing_signature(self, client, service):
        response = client.post("/api/v1/slot-offers/reply", data={"From": PHONE, "Body": "YES"})

        assert response.status_code == 401
        service.accept_offer.assert_not_called()

    def test_invalid_signature(self, client, service):
        response = client.post(
            "/api/v1/slot-offers/reply",
            data={"From": PHONE, "Body": "YES"},
            headers={"X-Twilio-Signature": "forged"},
        )

        assert response.status_code == 403
        service.accept_offer.assert_not_called()

    def test_unconfigured_token(self, client, monkeypatch):
        monkeypatch.setattr(settings, "twilio_auth_token", None)

        response = client.post(
            "/api/v1/slot-offers/reply",
            data={"From": PHONE, "Body": "YES"},
            headers={"X-Twilio-Signature": "anything"},
        )

        assert response.status_code == 500

    def test_missing_sender(self, client):
        params = {"Body": "YES"}

        response = client.post(
            "/api/v1/slot-offers/reply", data=params, headers=self._signed(params)
        )

        assert response.status_code == 400

    def test_signature_uses_public_url(self, client, service, monkeypatch):
        monkeypatch.setattr(settings, "app_url", "https://api.example.com")
        params = {"From": PHONE, "Body": "NO"}
        signature = RequestValidator(AUTH_TOKEN).compute_signature(
            "https://api.example.com/api/v1/slot-offers/reply", params
        )

        response = client.post(
            "/api/v1/slot-offers/reply", data=params, headers={"X-Twilio-Signature": signature}
        )

        assert response.status_code == 200
        service.decline_offer.assert_called_once()
