"""Tests del webhook de Clerk (firmas svix reales)."""

import json
from datetime import datetime, timezone

import pytest
from svix.webhooks import Webhook

from cedar.api import create_app

from conftest import WEBHOOK_SECRET, make_settings

URL = "/api/webhooks/clerk"


def _user(**extra):
    data = {
        "id": "user_2abc",
        "first_name": "Jane",
        "last_name": "Doe",
        "primary_email_address_id": "idn_1",
        "email_addresses": [
            {"id": "idn_0", "email_address": "old@example.com"},
            {"id": "idn_1", "email_address": "jane@example.com"},
        ],
        "phone_numbers": [{"id": "idn_2", "phone_number": "+13375550100", "primary": True}],
        "public_metadata": {"investorType": "Flipper", "interests": ["flips", "rentals"]},
    }
    data.update(extra)
    return data


def signed(event_type, data, secret=WEBHOOK_SECRET, msg_id="msg_1", body=None):
    """Body y headers firmados como los envía Clerk."""
    if body is None:
        body = json.dumps({"type": event_type, "object": "event", "data": data})
    timestamp = datetime.now(timezone.utc)
    signature = Webhook(secret).sign(msg_id, timestamp, body)
    headers = {
        "svix-id": msg_id,
        "svix-timestamp": str(int(timestamp.timestamp())),
        "svix-signature": signature,
        "Content-Type": "application/json",
    }
    return body, headers


class TestSignature:
    async def test_missing_headers(self, api):
        resp = await api.post(URL, data=json.dumps({"type": "user.created"}))
        assert resp.status == 400
        assert await resp.json() == {"error": "Missing required headers"}

    async def test_invalid_signature(self, api, sf_state):
        body, headers = signed("user.created", _user())
        headers["svix-signature"] = "v1,aW52YWxpZA=="

        resp = await api.post(URL, data=body, headers=headers)

        assert resp.status == 400
        assert (await resp.json())["error"] == "Invalid webhook signature"
        assert sf_state.leads == []

    async def test_tampered_body(self, api, sf_state):
        body, headers = signed("user.created", _user())
        resp = await api.post(URL, data=body.replace("Jane", "Mallory"), headers=headers)

        assert resp.status == 400
        assert sf_state.leads == []

    async def test_signed_body_that_is_not_an_event(self, api, sf_state):
        body, headers = signed(None, None, body=json.dumps({"data": _user()}))
        resp = await api.post(URL, data=body, headers=headers)

        assert resp.status == 400
        assert (await resp.json())["error"] == "Invalid webhook payload"
        assert sf_state.leads == []

    async def test_secret_not_configured(self, aiohttp_client, property_repo, sync_status_repo):
        app = create_app(
            make_settings(clerk_webhook_secret=None),
            properties_repo=property_repo,
            sync_status_repo=sync_status_repo,
        )
        client = await aiohttp_client(app)
        body, headers = signed("user.created", _user())

        resp = await client.post(URL, data=body, headers=headers)

        assert resp.status == 500
        assert (await resp.json())["error"] == "Webhook secret not configured"


class TestUserCreated:
    async def test_creates_lead(self, api, sf_state):
        body, headers = signed("user.created", _user())
        resp = await api.post(URL, data=body, headers=headers)

        assert resp.status == 200
        assert await resp.json() == {
            "success": True,
            "message": "Lead created successfully",
            "salesforceLeadId": "00Q000000000001",
        }
        (lead,) = sf_state.leads
        assert lead["Email"] == "jane@example.com"
        assert lead["FirstName"] == "Jane"
        assert lead["Phone"] == "+13375550100"
        assert lead["LeadSource"] == "Website Registration"

    async def test_missing_names_use_defaults(self, api, sf_state):
        body, headers = signed("user.created", _user(first_name=None, last_name=None))
        resp = await api.post(URL, data=body, headers=headers)

        assert resp.status == 200
        assert sf_state.leads[0]["FirstName"] == "Unknown"
        assert sf_state.leads[0]["LastName"] == "Investor"

    async def test_no_primary_email(self, api, sf_state):
        body, headers = signed(
            "user.created", _user(primary_email_address_id="idn_missing")
        )
        resp = await api.post(URL, data=body, headers=headers)

        assert resp.status == 400
        assert (await resp.json())["error"] == "No primary email found"
        assert sf_state.leads == []

    async def test_invalid_user_payload(self, api):
        body, headers = signed("user.created", {"first_name": "No id"})
        resp = await api.post(URL, data=body, headers=headers)

        assert resp.status == 400
        assert (await resp.json())["error"] == "Invalid user payload"

    @pytest.mark.parametrize("lead_status", [400, 500])
    async def test_salesforce_rejects_lead(self, api, sf_state, lead_status):
        sf_state.lead_status = lead_status
        body, headers = signed("user.created", _user())

        resp = await api.post(URL, data=body, headers=headers)
        payload = await resp.json()

        assert resp.status == 500
        assert payload["error"] == "Failed to create Salesforce Lead"
        assert "Required fields are missing" in payload["message"]

    async def test_unsuccessful_lead_result(self, api, sf_state):
        sf_state.lead_response = {
            "id": None,
            "success": False,
            "errors": [{"message": "duplicate", "statusCode": "DUPLICATES_DETECTED"}],
        }
        body, headers = signed("user.created", _user())

        resp = await api.post(URL, data=body, headers=headers)
        payload = await resp.json()

        assert resp.status == 500
        assert payload["details"]


class TestOtherEvents:
    async def test_user_updated(self, api, sf_state):
        body, headers = signed("user.updated", _user())
        resp = await api.post(URL, data=body, headers=headers)

        assert resp.status == 200
        assert (await resp.json())["message"] == "User update processed"
        assert sf_state.leads == []

    async def test_unhandled_event(self, api):
        body, headers = signed("session.created", {"id": "sess_1"})
        resp = await api.post(URL, data=body, headers=headers)

        assert resp.status == 200
        assert (await resp.json()) == {"success": True, "message": "Webhook received"}

    async def test_get_not_allowed(self, api):
        resp = await api.get(URL)
        assert resp.status == 405
