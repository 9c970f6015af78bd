"""
Fixtures compartidas.

- FakeSupabase: query builder en memoria con la interfaz de PostgREST
- Salesforce falso: app aiohttp.web servida con aiohttp_server
"""

import base64
import re
from typing import Any, Optional

import pytest
from aiohttp import web

from cedar.api import create_app
from cedar.config import Settings
from cedar.crm import SalesforceClient
from cedar.database import PropertyRepository, SyncStatusRepository

WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"cedar-sells-webhook-test-secret!").decode()
SYNC_API_KEY = "sync-secret"
AUTH_PROXY_SECRET = "proxy-secret"
API_VERSION = "v58.0"


def make_settings(**overrides: Any) -> Settings:
    """Settings aislados del .env local."""
    values = {
        "supabase_url": "https://test.supabase.co",
        "supabase_key": "anon-key",
        "supabase_service_key": "service-key",
        "salesforce_client_id": "client-id",
        "salesforce_client_secret": "client-secret",
        "salesforce_username": "sync@cedarsells.com",
        "salesforce_password": "password",
        "salesforce_security_token": "TOKEN",
        "clerk_webhook_secret": WEBHOOK_SECRET,
        "sync_api_key": SYNC_API_KEY,
        "auth_proxy_secret": AUTH_PROXY_SECRET,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


# ----------------------------------------------------------
# Supabase
# ----------------------------------------------------------


class FakeResponse:
    def __init__(self, data: list):
        self.data = data


class FakeQuery:
    """Builder encadenable que registra cada llamada y filtra en memoria."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.calls: list[tuple] = []
        self._filters: list = []
        self._order: Optional[tuple[str, bool]] = None
        self._slice: Optional[tuple[int, int]] = None
        self._upsert: Optional[tuple[list, Optional[str]]] = None

    def select(self, columns: str = "*"):
        self.calls.append(("select", columns))
        return self

    def eq(self, column: str, value: Any):
        self.calls.append(("eq", column, value))
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column: str, values: list):
        self.calls.append(("in_", column, list(values)))
        self._filters.append(lambda row: row.get(column) in values)
        return self

    def or_(self, filters: str):
        # Sólo se registra: los tests verifican el filtro enviado
        self.calls.append(("or_", filters))
        return self

    def order(self, column: str, desc: bool = False):
        self.calls.append(("order", column, desc))
        self._order = (column, desc)
        return self

    def range(self, start: int, end: int):
        self.calls.append(("range", start, end))
        self._slice = (start, end + 1)
        return self

    def limit(self, count: int):
        self.calls.append(("limit", count))
        self._slice = (0, count)
        return self

    def upsert(self, data: Any, on_conflict: Optional[str] = None):
        rows = data if isinstance(data, list) else [data]
        self.calls.append(("upsert", rows, on_conflict))
        self._upsert = (rows, on_conflict)
        return self

    def execute(self) -> FakeResponse:
        self.db.queries.append(self)
        if self.db.error:
            raise RuntimeError(self.db.error)

        table = self.db.tables.setdefault(self.table_name, [])

        if self._upsert is not None:
            rows, key = self._upsert
            key = key or "id"
            for row in rows:
                existing = next((r for r in table if r.get(key) == row.get(key)), None)
                if existing is None:
                    table.append(dict(row))
                else:
                    existing.update(row)
            return FakeResponse(rows)

        result = [row for row in table if all(f(row) for f in self._filters)]
        if self._order:
            column, desc = self._order
            result.sort(key=lambda row: row.get(column) or "", reverse=desc)
        if self._slice:
            result = result[self._slice[0]:self._slice[1]]
        return FakeResponse(result)


class FakeSupabase:
    """Reemplaza a SupabaseClient: expone table() sobre tablas en memoria."""

    def __init__(self, tables: Optional[dict] = None):
        self.tables: dict[str, list[dict]] = tables or {}
        self.queries: list[FakeQuery] = []
        self.error: Optional[str] = None

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def calls_for(self, table: str) -> list[list[tuple]]:
        return [q.calls for q in self.queries if q.table_name == table]


@pytest.fixture
def fake_db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def property_repo(fake_db) -> PropertyRepository:
    return PropertyRepository(fake_db, admin_client=fake_db)


@pytest.fixture
def sync_status_repo(fake_db) -> SyncStatusRepository:
    return SyncStatusRepository(fake_db)


# ----------------------------------------------------------
# Salesforce falso
# ----------------------------------------------------------


class FakeSalesforceState:
    """Datos y registro de requests del Salesforce falso."""

    def __init__(self):
        self.service_token = "service-token"
        self.user_token = "user-token"
        self.valid_tokens = {self.service_token, self.user_token}
        self.auth_code = "good-code"
        self.refresh_token = "refresh-token"

        self.token_requests: list[dict] = []
        self.queries: list[str] = []
        self.requests: list[tuple[str, str, Optional[str]]] = []
        self.leads: list[dict] = []

        # sobject -> respuesta de query (o lista de páginas)
        self.query_results: dict[str, Any] = {}
        self.records: dict[str, dict] = {}
        self.lead_response: dict = {"id": "00Q000000000001", "success": True, "errors": []}
        self.lead_status = 201
        self.query_status: Optional[int] = None
        self.sobjects: list[dict] = []
        self.describes: dict[str, dict] = {}


def _sf_error(status: int, code: str, message: str) -> web.Response:
    return web.json_response([{"errorCode": code, "message": message}], status=status)


def build_fake_salesforce(state: FakeSalesforceState) -> web.Application:
    """Imita los endpoints de OAuth y REST que usa el cliente."""
    base = f"/services/data/{API_VERSION}"

    def authorized(request: web.Request) -> bool:
        header = request.headers.get("Authorization", "")
        token = header.removeprefix("Bearer ")
        state.requests.append((request.method, request.path, token))
        return token in state.valid_tokens

    def invalid_session() -> web.Response:
        return _sf_error(401, "INVALID_SESSION_ID", "Session expired or invalid")

    async def token(request: web.Request) -> web.Response:
        form = dict(await request.post())
        state.token_requests.append(form)
        instance_url = str(request.url.origin())
        grant = form.get("grant_type")

        if grant == "password" and form.get("password") == "passwordTOKEN":
            return web.json_response(
                {"access_token": state.service_token, "instance_url": instance_url}
            )
        if grant == "authorization_code" and form.get("code") == state.auth_code:
            return web.json_response({
                "access_token": state.user_token,
                "refresh_token": state.refresh_token,
                "instance_url": instance_url,
            })
        if grant == "refresh_token" and form.get("refresh_token") == state.refresh_token:
            return web.json_response(
                {"access_token": state.user_token, "instance_url": instance_url}
            )
        return web.json_response(
            {"error": "invalid_grant", "error_description": "authentication failure"},
            status=400,
        )

    async def query(request: web.Request) -> web.Response:
        if not authorized(request):
            return invalid_session()
        soql = request.query["q"]
        state.queries.append(soql)
        if state.query_status:
            return _sf_error(state.query_status, "MALFORMED_QUERY", "unexpected token")

        match = re.search(r"FROM (\w+)", soql)
        result = state.query_results.get(match.group(1) if match else "", None)
        if result is None:
            result = {"totalSize": 0, "done": True, "records": []}
        if isinstance(result, list):
            return web.json_response(result[0])
        return web.json_response(result)

    async def query_more(request: web.Request) -> web.Response:
        if not authorized(request):
            return invalid_session()
        locator = request.match_info["locator"]
        for result in state.query_results.values():
            if isinstance(result, list):
                for page in result[1:]:
                    if page.get("locator") == locator:
                        return web.json_response(page)
        return _sf_error(404, "NOT_FOUND", "Invalid query locator")

    async def describe_global(request: web.Request) -> web.Response:
        if not authorized(request):
            return invalid_session()
        return web.json_response({"sobjects": state.sobjects})

    async def describe(request: web.Request) -> web.Response:
        if not authorized(request):
            return invalid_session()
        name = request.match_info["sobject"]
        if name not in state.describes:
            return _sf_error(404, "NOT_FOUND", "The requested resource does not exist")
        return web.json_response(state.describes[name])

    async def get_record(request: web.Request) -> web.Response:
        if not authorized(request):
            return invalid_session()
        record = state.records.get(request.match_info["record_id"])
        if record is None:
            return _sf_error(404, "NOT_FOUND", "The requested resource does not exist")
        return web.json_response(record)

    async def create_lead(request: web.Request) -> web.Response:
        if not authorized(request):
            return invalid_session()
        state.leads.append(await request.json())
        if state.lead_status >= 400:
            return _sf_error(
                state.lead_status, "REQUIRED_FIELD_MISSING", "Required fields are missing: [LastName]"
            )
        return web.json_response(state.lead_response, status=state.lead_status)

    async def update_lead(request: web.Request) -> web.Response:
        if not authorized(request):
            return invalid_session()
        state.leads.append({"id": request.match_info["record_id"], **(await request.json())})
        return web.Response(status=204)

    app = web.Application()
    app.router.add_post("/services/oauth2/token", token)
    app.router.add_get(f"{base}/query/", query)
    app.router.add_get(f"{base}/query/{{locator}}", query_more)
    app.router.add_get(f"{base}/sobjects/", describe_global)
    app.router.add_post(f"{base}/sobjects/Lead/", create_lead)
    app.router.add_patch(f"{base}/sobjects/Lead/{{record_id}}", update_lead)
    app.router.add_get(f"{base}/sobjects/{{sobject}}/describe/", describe)
    app.router.add_get(f"{base}/sobjects/{{sobject}}/{{record_id}}", get_record)
    return app


@pytest.fixture
def sf_state() -> FakeSalesforceState:
    return FakeSalesforceState()


@pytest.fixture
async def salesforce_server(aiohttp_server, sf_state):
    return await aiohttp_server(build_fake_salesforce(sf_state))


@pytest.fixture
def settings(salesforce_server) -> Settings:
    login_url = str(salesforce_server.make_url("/")).rstrip("/")
    return make_settings(salesforce_login_url=login_url)


@pytest.fixture
async def salesforce(settings):
    client = SalesforceClient(settings)
    yield client
    await client.close()


@pytest.fixture
async def api(aiohttp_client, settings, property_repo, sync_status_repo, salesforce):
    app = create_app(
        settings,
        properties_repo=property_repo,
        sync_status_repo=sync_status_repo,
        salesforce=salesforce,
    )
    return await aiohttp_client(app)
