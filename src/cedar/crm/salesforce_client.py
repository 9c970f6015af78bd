"""
Cliente de la REST API de Salesforce.

Soporta dos modos de autenticación:
- Usuario de servicio (password grant) para el sync y los leads
- Tokens OAuth del usuario (cookies del Web Server Flow)
"""

import asyncio
import json
import time
from typing import Any, Optional

import aiohttp
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cedar.config import Settings, get_settings
from cedar.crm import oauth
from cedar.crm.mapping import city_for_market
from cedar.crm.errors import (
    SalesforceConfigError,
    SalesforceError,
    SalesforceNotFoundError,
)
from cedar.models import LeadPayload, LeadResult

logger = structlog.get_logger()

TRANSACTION_FIELDS = [
    "Id", "Name", "Description__c", "Street_Address__c", "City__c", "State__c",
    "Zip_Code__c", "Parish__c", "Bedrooms__c", "Bathrooms__c", "Square_Feet__c",
    "Lot_Size__c", "Year_Built__c", "Property_Type__c", "Deal_Type__c", "Market__c",
    "List_Price__c", "Purchase_Price__c", "Status__c", "Access_Tier__c",
    "Is_Off_Market__c", "ARV__c", "Rehab_Estimate__c", "Spread__c", "ROI__c",
    "Gross_Yield__c", "Cap_Rate__c", "Monthly_Rent__c", "CreatedDate",
    "LastModifiedDate", "OwnerId", "Tags__c", "Notes__c", "Showing_Instructions__c",
]

LISTING_FIELDS = [
    "Id", "Name", "Left_Main__Street_Address__c", "Left_Main__City__c",
    "Left_Main__State__c", "Left_Main__Zipcode__c", "Left_Main__Dispo_Status__c",
    "Left_Main__Contract_Purchase_Price__c", "CreatedDate", "LastModifiedDate",
]

# Dispo statuses que no se publican en el listado en vivo
EXCLUDED_DISPO_STATUSES = ["Flip", "Rental"]

_TRANSIENT_ERRORS = (aiohttp.ClientConnectionError, asyncio.TimeoutError)


def soql_quote(value: Any) -> str:
    """Literal SOQL entre comillas simples, con escapes."""
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def soql_in(values: list) -> str:
    return "(" + ",".join(soql_quote(v) for v in values) + ")"


class SalesforceClient:
    """
    Wrapper async de la REST API de Salesforce.

    Uso:
        async with SalesforceClient() as sf:
            data = await sf.query("SELECT Id FROM Lead LIMIT 1")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.settings = settings or get_settings()
        self._session = session
        self._owns_session = session is None

        self._access_token: Optional[str] = None
        self._instance_url: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._token_expiry: float = 0.0
        self._user_tokens = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Cierra la sesión HTTP si fue creada por el cliente."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=30)
            )
            self._owns_session = True
        return self._session

    @property
    def api_base(self) -> str:
        return f"{self._instance_url}/services/data/{self.settings.salesforce_api_version}"

    @property
    def has_service_credentials(self) -> bool:
        s = self.settings
        return bool(
            s.salesforce_client_id
            and s.salesforce_client_secret
            and s.salesforce_username
            and s.salesforce_password
        )

    # ------------------------------------------------------
    # Autenticación
    # ------------------------------------------------------

    def use_tokens(
        self,
        access_token: str,
        instance_url: str,
        refresh_token: Optional[str] = None,
    ) -> None:
        """Usa los tokens OAuth de un usuario en lugar del usuario de servicio."""
        self._access_token = access_token
        self._instance_url = instance_url.rstrip("/")
        self._refresh_token = refresh_token
        self._token_expiry = time.monotonic() + self.settings.salesforce_token_ttl_seconds
        self._user_tokens = True

    async def authenticate(self) -> None:
        """
        Obtiene un token con el usuario de servicio (password grant).

        Raises:
            SalesforceConfigError: si faltan credenciales
            SalesforceAuthError: si Salesforce rechaza el login
        """
        if not self.has_service_credentials:
            raise SalesforceConfigError(
                "Salesforce credentials not configured. Please set "
                "SALESFORCE_CLIENT_ID, SALESFORCE_CLIENT_SECRET, "
                "SALESFORCE_USERNAME, and SALESFORCE_PASSWORD environment variables."
            )

        s = self.settings
        tokens = await oauth.request_token(
            self.session,
            s,
            {
                "grant_type": "password",
                "client_id": s.salesforce_client_id,
                "client_secret": s.salesforce_client_secret,
                "username": s.salesforce_username,
                "password": f"{s.salesforce_password}{s.salesforce_security_token}",
            },
        )
        self._access_token = tokens.access_token
        self._instance_url = tokens.instance_url.rstrip("/")
        self._token_expiry = time.monotonic() + s.salesforce_token_ttl_seconds
        self._user_tokens = False
        logger.info("Autenticado en Salesforce", instance_url=self._instance_url)

    async def _refresh_user_token(self) -> None:
        tokens = await oauth.refresh_access_token(
            self.session, self.settings, self._refresh_token
        )
        self.use_tokens(tokens.access_token, tokens.instance_url, tokens.refresh_token)
        logger.info("Token OAuth renovado", instance_url=self._instance_url)

    async def _ensure_authenticated(self) -> None:
        if self._access_token and time.monotonic() < self._token_expiry:
            return
        if self._user_tokens and self._refresh_token:
            await self._refresh_user_token()
        elif self._user_tokens:
            # Sin refresh token: se sigue usando el token hasta que Salesforce lo rechace
            return
        else:
            await self.authenticate()

    # ------------------------------------------------------
    # HTTP
    # ------------------------------------------------------

    def _url(self, path: str) -> str:
        if path.startswith("http"):
            return path
        if path.startswith("/services/"):
            return f"{self._instance_url}{path}"
        return f"{self.api_base}{path}"

    @staticmethod
    def _error_from(status: int, body: str) -> SalesforceError:
        message, error_code = body, None
        try:
            payload = json.loads(body)
            first = payload[0] if isinstance(payload, list) and payload else payload
            if isinstance(first, dict):
                message = first.get("message", body)
                error_code = first.get("errorCode")
        except ValueError:
            pass

        if status == 404 or error_code == "NOT_FOUND":
            return SalesforceNotFoundError(
                f"NOT_FOUND: {message}", status=status, error_code=error_code or "NOT_FOUND"
            )
        return SalesforceError(
            f"Salesforce API error: {message}", status=status, error_code=error_code
        )

    @retry(
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        body: Optional[dict] = None,
    ) -> tuple[int, str]:
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }
        async with self.session.request(
            method, self._url(path), params=params, json=body, headers=headers
        ) as response:
            return response.status, await response.text()

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        body: Optional[dict] = None,
    ) -> Any:
        """
        Ejecuta un request autenticado.

        Si el token del usuario de servicio expiró (401) se reautentica una vez.

        Returns:
            JSON decodificado o None para respuestas vacías (204)
        """
        await self._ensure_authenticated()
        status, text = await self._send(method, path, params, body)

        if status == 401 and not self._user_tokens:
            logger.info("Token expirado, reautenticando")
            await self.authenticate()
            status, text = await self._send(method, path, params, body)

        if status >= 400:
            raise self._error_from(status, text)
        return json.loads(text) if text else None

    # ------------------------------------------------------
    # Queries
    # ------------------------------------------------------

    async def query(self, soql: str) -> dict:
        """Ejecuta una query SOQL (primera página)."""
        logger.debug("Ejecutando SOQL", soql=" ".join(soql.split()))
        return await self.request("GET", "/query/", params={"q": soql})

    async def query_all(self, soql: str) -> list[dict]:
        """Ejecuta una query siguiendo `nextRecordsUrl` hasta el final."""
        page = await self.query(soql)
        records = list(page.get("records", []))
        while not page.get("done", True) and page.get("nextRecordsUrl"):
            page = await self.request("GET", page["nextRecordsUrl"])
            records.extend(page.get("records", []))
        return records

    async def query_transactions(
        self,
        deal_types: Optional[list[str]] = None,
        markets: Optional[list[str]] = None,
        access_tier: Optional[str] = None,
        is_off_market: Optional[bool] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> dict:
        """Transactions disponibles (no vendidas) con filtros opcionales."""
        where = ["Status__c != 'Sold'"]
        if deal_types:
            where.append(f"Deal_Type__c IN {soql_in(deal_types)}")
        if markets:
            where.append(f"Market__c IN {soql_in(markets)}")
        if access_tier:
            where.append(f"Access_Tier__c = {soql_quote(access_tier)}")
        if is_off_market is not None:
            where.append(f"Is_Off_Market__c = {'true' if is_off_market else 'false'}")

        soql = (
            f"SELECT {', '.join(TRANSACTION_FIELDS)} FROM Transaction__c "
            f"WHERE {' AND '.join(where)} "
            f"ORDER BY CreatedDate DESC LIMIT {int(limit)} OFFSET {int(offset)}"
        )
        return await self.query(soql)

    async def query_listings(
        self,
        markets: Optional[list[str]] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> dict:
        """
        Registros de Left_Main__Transactions__c para el listado en vivo.

        Los mercados (slugs) se traducen a ciudad, que es lo que guarda el objeto.
        """
        where = ["Left_Main__Dispo_Status__c != null"]
        where.extend(
            f"Left_Main__Dispo_Status__c != {soql_quote(status)}"
            for status in EXCLUDED_DISPO_STATUSES
        )
        if markets:
            cities = [city_for_market(m) for m in markets]
            where.append(f"Left_Main__City__c IN {soql_in(cities)}")

        soql = (
            f"SELECT {', '.join(LISTING_FIELDS)} FROM Left_Main__Transactions__c "
            f"WHERE {' AND '.join(where)} "
            f"ORDER BY LastModifiedDate DESC LIMIT {int(limit)} OFFSET {int(offset)}"
        )
        return await self.query(soql)

    async def get_record(self, sobject: str, record_id: str) -> dict:
        return await self.request("GET", f"/sobjects/{sobject}/{record_id}")

    async def get_transaction(self, record_id: str) -> dict:
        """
        Raises:
            SalesforceNotFoundError: si el Transaction__c no existe
        """
        return await self.get_record("Transaction__c", record_id)

    # ------------------------------------------------------
    # Leads
    # ------------------------------------------------------

    async def create_lead(self, lead: LeadPayload) -> LeadResult:
        """Crea un Lead en Salesforce."""
        data = await self.request("POST", "/sobjects/Lead/", body=lead.to_salesforce())
        result = LeadResult.model_validate(data or {})
        logger.info(
            "Lead creado",
            lead_id=result.id,
            success=result.success,
            website_user_id=lead.website_user_id,
        )
        return result

    async def update_lead(self, lead_id: str, data: dict) -> None:
        await self.request("PATCH", f"/sobjects/Lead/{lead_id}", body=data)

    # ------------------------------------------------------
    # Metadata
    # ------------------------------------------------------

    async def describe_global(self) -> dict:
        return await self.request("GET", "/sobjects/")

    async def describe_object(self, sobject: str) -> dict:
        return await self.request("GET", f"/sobjects/{sobject}/describe/")
