"""Tests del cliente REST de Salesforce contra el servidor falso."""

import pytest

from cedar.crm import (
    SalesforceAuthError,
    SalesforceClient,
    SalesforceConfigError,
    SalesforceError,
    SalesforceNotFoundError,
    soql_quote,
)
from cedar.models import LeadPayload

from conftest import make_settings


class TestSoqlQuote:
    def test_escapes_quotes_and_backslashes(self):
        assert soql_quote("O'Brien") == "'O\\'Brien'"
        assert soql_quote("a\\b") == "'a\\\\b'"
        assert soql_quote(42) == "'42'"


class TestAuthentication:
    async def test_password_grant_includes_security_token(self, salesforce, sf_state):
        await salesforce.authenticate()

        form = sf_state.token_requests[-1]
        assert form["grant_type"] == "password"
        assert form["username"] == "sync@cedarsells.com"
        assert form["password"] == "passwordTOKEN"

    async def test_token_is_reused(self, salesforce, sf_state):
        await salesforce.query("SELECT Id FROM Lead")
        await salesforce.query("SELECT Id FROM Lead")
        assert len(sf_state.token_requests) == 1

    async def test_missing_credentials(self):
        client = SalesforceClient(make_settings(salesforce_password=None))
        with pytest.raises(SalesforceConfigError):
            await client.authenticate()
        await client.close()

    async def test_rejected_login(self, salesforce_server):
        settings = make_settings(
            salesforce_login_url=str(salesforce_server.make_url("/")).rstrip("/"),
            salesforce_password="wrong",
        )
        async with SalesforceClient(settings) as client:
            with pytest.raises(SalesforceAuthError):
                await client.query("SELECT Id FROM Lead")

    async def test_reauthenticates_on_expired_session(self, salesforce, sf_state):
        await salesforce.authenticate()
        # Salesforce invalida el token antes de lo previsto
        sf_state.valid_tokens.discard(sf_state.service_token)
        sf_state.service_token = "service-token-2"
        sf_state.valid_tokens.add("service-token-2")

        result = await salesforce.query("SELECT Id FROM Lead")

        assert result["done"] is True
        assert len(sf_state.token_requests) == 2

    async def test_user_tokens_skip_password_grant(self, salesforce, sf_state, settings):
        salesforce.use_tokens(sf_state.user_token, settings.salesforce_login_url)
        await salesforce.query("SELECT Id FROM Lead")

        assert sf_state.token_requests == []
        assert sf_state.requests[-1][2] == sf_state.user_token

    async def test_invalid_user_token_is_not_retried(self, salesforce, sf_state, settings):
        salesforce.use_tokens("stale-token", settings.salesforce_login_url)
        with pytest.raises(SalesforceError) as exc:
            await salesforce.query("SELECT Id FROM Lead")

        assert exc.value.status == 401
        assert exc.value.error_code == "INVALID_SESSION_ID"
        assert sf_state.token_requests == []


class TestQueries:
    async def test_query_all_follows_pagination(self, salesforce, sf_state):
        sf_state.query_results["Property__c"] = [
            {
                "totalSize": 3,
                "done": False,
                "nextRecordsUrl": "/services/data/v58.0/query/01gXX-2",
                "records": [{"Id": "1"}, {"Id": "2"}],
            },
            {"locator": "01gXX-2", "totalSize": 3, "done": True, "records": [{"Id": "3"}]},
        ]
        records = await salesforce.query_all("SELECT Id FROM Property__c")
        assert [r["Id"] for r in records] == ["1", "2", "3"]

    async def test_query_transactions_builds_filters(self, salesforce, sf_state):
        await salesforce.query_transactions(
            deal_types=["Fix & Flip", "Rental"],
            markets=["lafayette"],
            access_tier="vip",
            is_off_market=False,
            limit=5,
            offset=10,
        )
        soql = sf_state.queries[-1]

        assert "FROM Transaction__c" in soql
        assert "Status__c != 'Sold'" in soql
        assert "Deal_Type__c IN ('Fix & Flip','Rental')" in soql
        assert "Market__c IN ('lafayette')" in soql
        assert "Access_Tier__c = 'vip'" in soql
        assert "Is_Off_Market__c = false" in soql
        assert soql.endswith("ORDER BY CreatedDate DESC LIMIT 5 OFFSET 10")

    async def test_query_listings_maps_markets_to_cities(self, salesforce, sf_state):
        await salesforce.query_listings(markets=["baton-rouge", "lafayette"], limit=20)
        soql = sf_state.queries[-1]

        assert "FROM Left_Main__Transactions__c" in soql
        assert "Left_Main__Dispo_Status__c != null" in soql
        assert "Left_Main__Dispo_Status__c != 'Flip'" in soql
        assert "Left_Main__Dispo_Status__c != 'Rental'" in soql
        assert "Left_Main__City__c IN ('Baton Rouge','Lafayette')" in soql
        assert soql.endswith("LIMIT 20 OFFSET 0")

    async def test_query_error(self, salesforce, sf_state):
        sf_state.query_status = 400
        with pytest.raises(SalesforceError) as exc:
            await salesforce.query("SELECT Bogus FROM Lead")
        assert "Salesforce API error: unexpected token" == str(exc.value)
        assert exc.value.error_code == "MALFORMED_QUERY"


class TestRecords:
    async def test_get_transaction(self, salesforce, sf_state):
        sf_state.records["a02XX01"] = {"Id": "a02XX01", "Name": "123 Oak"}
        record = await salesforce.get_transaction("a02XX01")
        assert record["Name"] == "123 Oak"

    async def test_not_found(self, salesforce):
        with pytest.raises(SalesforceNotFoundError) as exc:
            await salesforce.get_transaction("missing")
        assert "NOT_FOUND" in str(exc.value)

    async def test_create_and_update_lead(self, salesforce, sf_state):
        lead = LeadPayload(
            first_name="Jane",
            last_name="Doe",
            email="jane@example.com",
            website_user_id="user_1",
        )
        result = await salesforce.create_lead(lead)

        assert result.success is True
        assert result.id == "00Q000000000001"
        assert sf_state.leads[0]["Email"] == "jane@example.com"
        assert "Phone" not in sf_state.leads[0]

        assert await salesforce.update_lead(result.id, {"Status": "Working"}) is None
        assert sf_state.leads[1] == {"id": "00Q000000000001", "Status": "Working"}

    async def test_describe(self, salesforce, sf_state):
        sf_state.sobjects = [{"name": "Lead"}]
        sf_state.describes["Lead"] = {"name": "Lead", "fields": []}

        assert (await salesforce.describe_global())["sobjects"] == [{"name": "Lead"}]
        assert (await salesforce.describe_object("Lead"))["name"] == "Lead"
