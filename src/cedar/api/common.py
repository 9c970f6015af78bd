"""
Utilidades compartidas por los handlers HTTP.
"""

import asyncio
from typing import Any, Optional

import aiohttp
from aiohttp import web

from cedar.access import viewer_tier
from cedar.config import Settings
from cedar.crm import SalesforceClient, SalesforceError
from cedar.database import PropertyRepository, SyncStatusRepository
from cedar.models import AccessTier
from cedar.sync import PropertySync

# Dependencias guardadas en la app
SETTINGS = web.AppKey("settings", Settings)
PROPERTIES = web.AppKey("properties", PropertyRepository)
SYNC_STATUS = web.AppKey("sync_status", SyncStatusRepository)
SALESFORCE = web.AppKey("salesforce", SalesforceClient)
PROPERTY_SYNC = web.AppKey("property_sync", PropertySync)

# Cookies del flujo OAuth
ACCESS_TOKEN_COOKIE = "sf_access_token"
REFRESH_TOKEN_COOKIE = "sf_refresh_token"
INSTANCE_URL_COOKIE = "sf_instance_url"
REDIRECT_COOKIE = "sf_redirect_uri"
VERIFIER_COOKIE = "sf_code_verifier"
STATE_COOKIE = "sf_oauth_state"

USER_ID_HEADER = "X-User-Id"
USER_TIER_HEADER = "X-User-Tier"
PROXY_SECRET_HEADER = "X-Auth-Proxy-Secret"

# Fallas esperables al hablar con Salesforce
CRM_ERRORS = (SalesforceError, aiohttp.ClientError, asyncio.TimeoutError)


def json_error(status: int, error: str, message: Optional[str] = None, **extra: Any) -> web.Response:
    """Envelope de error {"success": false, "error": ..., "message": ...}."""
    body: dict = {"success": False, "error": error}
    if message is not None:
        body["message"] = message
    body.update(extra)
    return web.json_response(body, status=status)


def request_viewer(request: web.Request) -> AccessTier:
    """
    Tier del viewer según los headers que agrega el proxy de autenticación.

    Los headers de identidad sólo se aceptan junto con el secreto del proxy;
    sin él la request se trata como anónima.
    """
    expected = request.app[SETTINGS].auth_proxy_secret
    token = request.headers.get(PROXY_SECRET_HEADER)
    if not expected or token != expected:
        return AccessTier.PUBLIC
    return viewer_tier(
        request.headers.get(USER_ID_HEADER),
        request.headers.get(USER_TIER_HEADER),
    )


def int_param(request: web.Request, name: str, default: int, minimum: int = 0) -> int:
    """Query param entero; valores inválidos usan el default."""
    try:
        value = int(request.query.get(name, default))
    except ValueError:
        return default
    return max(value, minimum)


def list_param(request: web.Request, name: str) -> list[str]:
    """Query param con lista separada por comas ('a,b' -> ['a', 'b'])."""
    raw = request.query.get(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


def is_authorized(request: web.Request) -> bool:
    """Valida el bearer SYNC_API_KEY. Sin clave configurada no se exige."""
    api_key = request.app[SETTINGS].sync_api_key
    if not api_key:
        return True
    return request.headers.get("Authorization") == f"Bearer {api_key}"


def token_client(request: web.Request) -> Optional[SalesforceClient]:
    """
    Cliente de Salesforce con los tokens OAuth de las cookies.

    Devuelve None si el usuario no conectó Salesforce.
    """
    access_token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    instance_url = request.cookies.get(INSTANCE_URL_COOKIE)
    if not access_token or not instance_url:
        return None

    client = SalesforceClient(request.app[SETTINGS])
    client.use_tokens(
        access_token,
        instance_url,
        request.cookies.get(REFRESH_TOKEN_COOKIE),
    )
    return client
