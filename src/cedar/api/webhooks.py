"""
Webhook de Clerk: crea un Lead en Salesforce por cada usuario registrado.

Clerk firma los eventos con svix; sin firma válida no se procesa nada.
"""

import structlog
from aiohttp import web
from pydantic import ValidationError
from svix.webhooks import Webhook, WebhookVerificationError

from cedar.api.common import CRM_ERRORS, SALESFORCE, SETTINGS
from cedar.crm.mapping import build_lead_payload
from cedar.models import ClerkUser, ClerkWebhookEvent

logger = structlog.get_logger()

SVIX_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


def _error(status: int, error: str, **extra) -> web.Response:
    return web.json_response({"error": error, **extra}, status=status)


async def clerk_webhook(request: web.Request) -> web.Response:
    """POST /api/webhooks/clerk"""
    secret = request.app[SETTINGS].clerk_webhook_secret
    if not secret:
        logger.error("CLERK_WEBHOOK_SECRET no configurado")
        return _error(500, "Webhook secret not configured")

    headers = {name: request.headers.get(name) for name in SVIX_HEADERS}
    if not all(headers.values()):
        return _error(400, "Missing required headers")

    body = await request.read()
    try:
        # verify sólo valida la firma, no devuelve el evento
        Webhook(secret).verify(body, headers)
    except WebhookVerificationError as e:
        logger.warning("Firma de webhook inválida", svix_id=headers["svix-id"], error=str(e))
        return _error(400, "Invalid webhook signature")

    try:
        event = ClerkWebhookEvent.model_validate_json(body)
    except ValidationError as e:
        logger.warning("Evento de webhook inválido", svix_id=headers["svix-id"], error=str(e))
        return _error(400, "Invalid webhook payload")

    logger.info("Webhook de Clerk recibido", type=event.type, svix_id=headers["svix-id"])

    if event.type == "user.created":
        try:
            user = ClerkUser.model_validate(event.data)
        except ValidationError as e:
            logger.error("Payload de usuario inválido", error=str(e))
            return _error(400, "Invalid user payload")
        return await _handle_user_created(request, user)

    if event.type == "user.updated":
        logger.info("Usuario actualizado", user_id=event.data.get("id"))
        return web.json_response({"success": True, "message": "User update processed"})

    return web.json_response({"success": True, "message": "Webhook received"})


async def _handle_user_created(request: web.Request, user: ClerkUser) -> web.Response:
    try:
        lead = build_lead_payload(user)
    except ValueError:
        logger.error("Usuario sin email primario", user_id=user.id)
        return _error(400, "No primary email found")

    try:
        result = await request.app[SALESFORCE].create_lead(lead)
    except CRM_ERRORS as e:
        logger.error("Error creando Lead en Salesforce", user_id=user.id, error=str(e))
        return _error(500, "Failed to create Salesforce Lead", message=str(e))

    if not result.success:
        logger.error("Salesforce rechazó el Lead", user_id=user.id, errors=result.errors)
        return _error(500, "Failed to create Salesforce Lead", details=result.errors)

    return web.json_response({
        "success": True,
        "message": "Lead created successfully",
        "salesforceLeadId": result.id,
    })


async def method_not_allowed(request: web.Request) -> web.Response:
    return _error(405, "Method not allowed")
