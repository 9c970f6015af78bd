"""
OAuth2 contra Salesforce.

Web Server Flow con PKCE (login interactivo desde el sitio) y los
canjes de token que usa también el cliente REST.
"""

import base64
import hashlib
import secrets
from typing import Optional
from urllib.parse import urlencode

import aiohttp
import structlog
from pydantic import BaseModel, ConfigDict

from cedar.config import Settings
from cedar.crm.errors import SalesforceAuthError

logger = structlog.get_logger()

OAUTH_SCOPE = "full refresh_token"


class OAuthTokens(BaseModel):
    """Respuesta del endpoint /services/oauth2/token."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    instance_url: str
    refresh_token: Optional[str] = None
    id: Optional[str] = None
    token_type: Optional[str] = None
    issued_at: Optional[str] = None
    scope: Optional[str] = None


def _base64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_code_verifier() -> str:
    """Verifier PKCE: 32 bytes aleatorios en base64url sin padding."""
    return _base64url(secrets.token_bytes(32))


def generate_code_challenge(verifier: str) -> str:
    """Challenge S256 = base64url(sha256(verifier))."""
    return _base64url(hashlib.sha256(verifier.encode("ascii")).digest())


def generate_state() -> str:
    return secrets.token_urlsafe(16)


def build_authorize_url(settings: Settings, code_challenge: str, state: str) -> str:
    """URL de autorización a la que se redirige al usuario."""
    params = {
        "response_type": "code",
        "client_id": settings.salesforce_client_id or "",
        "redirect_uri": settings.salesforce_oauth_callback_url,
        "scope": OAUTH_SCOPE,
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }
    base_url = settings.salesforce_login_url.rstrip("/")
    return f"{base_url}/services/oauth2/authorize?{urlencode(params)}"


async def request_token(
    session: aiohttp.ClientSession, settings: Settings, data: dict
) -> OAuthTokens:
    """
    POST form-urlencoded al endpoint de tokens.

    Raises:
        SalesforceAuthError: si Salesforce responde con error
    """
    token_url = f"{settings.salesforce_login_url.rstrip('/')}/services/oauth2/token"
    async with session.post(token_url, data=data) as response:
        body = await response.text()
        if response.status >= 400:
            logger.error(
                "Error obteniendo token de Salesforce",
                grant_type=data.get("grant_type"),
                status=response.status,
            )
            raise SalesforceAuthError(
                f"Salesforce authentication failed: {body}", status=response.status
            )
        return OAuthTokens.model_validate_json(body)


async def exchange_code(
    session: aiohttp.ClientSession,
    settings: Settings,
    code: str,
    code_verifier: str,
) -> OAuthTokens:
    """Canjea el authorization code por tokens (paso final del Web Server Flow)."""
    tokens = await request_token(
        session,
        settings,
        {
            "grant_type": "authorization_code",
            "client_id": settings.salesforce_client_id or "",
            "client_secret": settings.salesforce_client_secret or "",
            "redirect_uri": settings.salesforce_oauth_callback_url,
            "code": code,
            "code_verifier": code_verifier,
        },
    )
    logger.info("Token OAuth obtenido", instance_url=tokens.instance_url)
    return tokens


async def refresh_access_token(
    session: aiohttp.ClientSession,
    settings: Settings,
    refresh_token: str,
) -> OAuthTokens:
    """Obtiene un access token nuevo a partir del refresh token."""
    tokens = await request_token(
        session,
        settings,
        {
            "grant_type": "refresh_token",
            "client_id": settings.salesforce_client_id or "",
            "client_secret": settings.salesforce_client_secret or "",
            "refresh_token": refresh_token,
        },
    )
    # Salesforce no devuelve el refresh token en este grant
    if not tokens.refresh_token:
        tokens = tokens.model_copy(update={"refresh_token": refresh_token})
    return tokens
