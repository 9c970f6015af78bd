"""
Conexión de un usuario con Salesforce (OAuth2 Web Server Flow + PKCE).

El verifier, el state y la ruta de retorno viajan en cookies httpOnly
de corta duración; los tokens obtenidos quedan en cookies para que el
listado en vivo los use.
"""

from typing import Optional

import aiohttp
import structlog
from aiohttp import web

from cedar.api.common import (
    ACCESS_TOKEN_COOKIE,
    INSTANCE_URL_COOKIE,
    REDIRECT_COOKIE,
    REFRESH_TOKEN_COOKIE,
    SETTINGS,
    STATE_COOKIE,
    VERIFIER_COOKIE,
)
from cedar.config import DEFAULT_REDIRECT_PATH
from cedar.crm import SalesforceAuthError, oauth

logger = structlog.get_logger()

FLOW_COOKIE_MAX_AGE = 60 * 10  # 10 minutos
ACCESS_TOKEN_MAX_AGE = 60 * 60 * 2  # 2 horas
LONG_COOKIE_MAX_AGE = 60 * 60 * 24 * 30  # 30 días


def _safe_redirect(path: Optional[str]) -> str:
    """Sólo rutas relativas del sitio, para no redirigir a dominios ajenos."""
    if not path or not path.startswith("/") or path.startswith("//"):
        return DEFAULT_REDIRECT_PATH
    return path


def _redirect(location: str) -> web.Response:
    return web.Response(status=302, headers={"Location": location})


def _error_redirect(code: str) -> web.Response:
    return _redirect(f"{DEFAULT_REDIRECT_PATH}?error={code}")


def _set_cookie(response: web.Response, request: web.Request, name: str, value: str, max_age: int):
    response.set_cookie(
        name,
        value,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=request.app[SETTINGS].is_production,
        samesite="Lax",
    )


async def start_authorization(request: web.Request) -> web.Response:
    """GET /api/auth/salesforce?redirect=/ruta"""
    settings = request.app[SETTINGS]
    verifier = oauth.generate_code_verifier()
    state = oauth.generate_state()
    url = oauth.build_authorize_url(
        settings, oauth.generate_code_challenge(verifier), state
    )

    redirect_path = _safe_redirect(request.query.get("redirect"))

    response = _redirect(url)
    _set_cookie(response, request, REDIRECT_COOKIE, redirect_path, FLOW_COOKIE_MAX_AGE)
    _set_cookie(response, request, VERIFIER_COOKIE, verifier, FLOW_COOKIE_MAX_AGE)
    _set_cookie(response, request, STATE_COOKIE, state, FLOW_COOKIE_MAX_AGE)
    return response


async def authorization_callback(request: web.Request) -> web.Response:
    """GET /api/auth/salesforce/callback?code=...&state=..."""
    error = request.query.get("error")
    if error:
        logger.error("Salesforce rechazó la autorización", error=error)
        return _error_redirect("auth_failed")

    code = request.query.get("code")
    if not code:
        logger.error("Callback sin authorization code")
        return _error_redirect("no_code")

    verifier = request.cookies.get(VERIFIER_COOKIE)
    if not verifier:
        logger.error("Callback sin code verifier")
        return _error_redirect("no_verifier")

    expected_state = request.cookies.get(STATE_COOKIE)
    if not expected_state or request.query.get("state") != expected_state:
        logger.warning("State OAuth no coincide")
        return _error_redirect("invalid_state")

    settings = request.app[SETTINGS]
    try:
        async with aiohttp.ClientSession() as session:
            tokens = await oauth.exchange_code(session, settings, code, verifier)
    except (SalesforceAuthError, aiohttp.ClientError, ValueError) as e:
        logger.error("Canje de código fallido", error=str(e))
        return _error_redirect("token_exchange_failed")

    response = _redirect(_safe_redirect(request.cookies.get(REDIRECT_COOKIE)))
    _set_cookie(response, request, ACCESS_TOKEN_COOKIE, tokens.access_token, ACCESS_TOKEN_MAX_AGE)
    if tokens.refresh_token:
        _set_cookie(response, request, REFRESH_TOKEN_COOKIE, tokens.refresh_token, LONG_COOKIE_MAX_AGE)
    _set_cookie(response, request, INSTANCE_URL_COOKIE, tokens.instance_url, LONG_COOKIE_MAX_AGE)

    for name in (REDIRECT_COOKIE, VERIFIER_COOKIE, STATE_COOKIE):
        response.del_cookie(name, path="/")

    logger.info("Salesforce conectado", instance_url=tokens.instance_url)
    return response
