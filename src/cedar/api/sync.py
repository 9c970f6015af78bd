"""
Disparo manual del sync Salesforce -> Supabase.
"""

from dataclasses import asdict
from datetime import datetime

import structlog
from aiohttp import web

from cedar.api.common import PROPERTY_SYNC, is_authorized

logger = structlog.get_logger()


async def run_sync(request: web.Request) -> web.Response:
    """POST /api/sync/salesforce"""
    if not is_authorized(request):
        return web.json_response({"error": "Unauthorized"}, status=401)

    logger.info("Sync manual iniciado")
    result = await request.app[PROPERTY_SYNC].sync_properties()

    if not result.success:
        return web.json_response(
            {"success": False, "message": "Sync failed", "errors": result.errors},
            status=500,
        )

    return web.json_response({
        "success": True,
        "message": f"Successfully synced {result.count} properties",
        "count": result.count,
        "errors": result.errors,
        "timestamp": datetime.utcnow().isoformat(),
    })


async def sync_status(request: web.Request) -> web.Response:
    """GET /api/sync/salesforce: estado y prueba de conexión."""
    check = await request.app[PROPERTY_SYNC].test_connection()
    return web.json_response({
        "status": "Sync API is running",
        "salesforceConnection": asdict(check),
        "timestamp": datetime.utcnow().isoformat(),
    })
