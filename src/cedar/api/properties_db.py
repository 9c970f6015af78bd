"""
Propiedades servidas desde Supabase.

- GET /api/properties-db: listado filtrado por tier
- POST /api/properties-db/upsert: carga desde integraciones externas (n8n)
- GET /api/properties-db/upsert: documentación del formato
"""

from datetime import datetime

import structlog
from aiohttp import web

from cedar.access import effective_tier
from cedar.api.common import (
    PROPERTIES,
    SETTINGS,
    SYNC_STATUS,
    int_param,
    is_authorized,
    json_error,
    request_viewer,
)
from cedar.crm.mapping import normalize_upsert_payload

logger = structlog.get_logger()

UPSERT_FORMAT = {
    "endpoint": "/api/properties-db/upsert",
    "method": "POST",
    "description": "Upsert properties from external systems like n8n",
    "authentication": "Bearer token required (SYNC_API_KEY)",
    "body_format": {
        "single_property": {
            "salesforce_id": "string (required, falls back to id)",
            "name": "string",
            "address": "string",
            "city": "string",
            "state": "string",
            "zip_code": "string",
            "price": "number",
            "bedrooms": "number",
            "bathrooms": "number",
            "square_footage": "number",
            "lot_size": "number",
            "year_built": "number",
            "property_type": "string",
            "description": "string",
            "status": "string",
            "images": "array or comma-separated string",
            "tier": "public|registered|vip (optional, auto-assigned by price)",
            "lead_source": "string (optional)",
            "investment_path": "string (optional)",
            "actual_profit": "number (optional)",
            "projected_profit": "number (optional)",
            "sales_date": "string (optional)",
            "salesforce_status": "string (optional)",
        },
        "multiple_properties": "Array of property objects",
    },
}


async def list_properties(request: web.Request) -> web.Response:
    """Listado desde la base con el tier más restrictivo entre viewer y query."""
    limit = int_param(request, "limit", 20, minimum=1)
    offset = int_param(request, "offset", 0)
    viewer = request_viewer(request)
    tier = effective_tier(viewer, request.query.get("tier", "public"))

    try:
        properties = request.app[PROPERTIES].list_visible(tier, limit=limit, offset=offset)
        last_sync = request.app[SYNC_STATUS].get_last_sync_at()
    except Exception as e:
        logger.error("Error leyendo propiedades de la base", error=str(e))
        return json_error(
            500,
            "Failed to fetch properties from database",
            str(e),
            data={"properties": [], "totalCount": 0, "hasMore": False},
        )

    logger.info(
        "Propiedades desde la base",
        tier=tier.value,
        viewer=viewer.value,
        count=len(properties),
    )
    return web.json_response({
        "success": True,
        "data": {
            "properties": [p.to_api_dict() for p in properties],
            "totalCount": len(properties),
            "hasMore": len(properties) == limit,
            "tier": tier.value,
            "lastSyncedAt": last_sync,
            "source": "database",
            "message": f"Serving {len(properties)} properties from database",
        },
    })


async def upsert_properties(request: web.Request) -> web.Response:
    """Recibe una propiedad o un array y las upsertea por salesforce_id."""
    if not is_authorized(request):
        return web.json_response({"error": "Unauthorized"}, status=401)

    try:
        body = await request.json()
    except ValueError:
        # JSONDecodeError o body que no es UTF-8
        return json_error(400, "Invalid JSON body")

    items = body if isinstance(body, list) else [body]
    now = datetime.utcnow()
    settings = request.app[SETTINGS]

    try:
        properties = [normalize_upsert_payload(item, settings, now) for item in items]
    except ValueError as e:
        return json_error(400, "Invalid property payload", str(e))

    logger.info("Upsert de propiedades via API", count=len(properties))
    try:
        count = request.app[PROPERTIES].upsert_many(properties)
    except Exception as e:
        logger.error("Error en upsert de propiedades", error=str(e))
        return json_error(500, str(e), "Failed to upsert properties")

    request.app[SYNC_STATUS].touch(now)
    return web.json_response({
        "success": True,
        "message": f"Successfully upserted {count} properties",
        "count": count,
        "timestamp": now.isoformat(),
    })


async def upsert_format(request: web.Request) -> web.Response:
    return web.json_response(UPSERT_FORMAT)
