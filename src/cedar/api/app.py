"""
Aplicación HTTP (aiohttp.web).

Registra las rutas y las dependencias compartidas. Las dependencias
se pueden inyectar (tests) o se crean desde la configuración.
"""

from typing import Optional

import structlog
from aiohttp import web

from cedar.api import explorer, properties, properties_db, salesforce_auth, sync, webhooks
from cedar.api.common import (
    PROPERTIES,
    PROPERTY_SYNC,
    SALESFORCE,
    SETTINGS,
    SYNC_STATUS,
    json_error,
)
from cedar.config import Settings, get_settings
from cedar.crm import SalesforceClient
from cedar.database import PropertyRepository, SyncStatusRepository
from cedar.sync import PropertySync

logger = structlog.get_logger()


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Convierte excepciones no manejadas en un envelope JSON 500."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.exception("Error no manejado", path=request.path, method=request.method)
        return json_error(500, "Internal server error", str(e))


async def health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


async def _close_salesforce(app: web.Application):
    await app[SALESFORCE].close()


def create_app(
    settings: Optional[Settings] = None,
    properties_repo: Optional[PropertyRepository] = None,
    sync_status_repo: Optional[SyncStatusRepository] = None,
    salesforce: Optional[SalesforceClient] = None,
    property_sync: Optional[PropertySync] = None,
) -> web.Application:
    """
    Construye la aplicación.

    Args:
        settings: Configuración (default: get_settings())
        properties_repo: Repositorio de propiedades
        sync_status_repo: Repositorio de sync_status
        salesforce: Cliente con el usuario de servicio
        property_sync: Servicio de sync (default: armado con lo anterior)
    """
    settings = settings or get_settings()
    properties_repo = properties_repo or PropertyRepository()
    sync_status_repo = sync_status_repo or SyncStatusRepository()
    salesforce = salesforce or SalesforceClient(settings)
    property_sync = property_sync or PropertySync(
        salesforce=salesforce,
        properties=properties_repo,
        sync_status=sync_status_repo,
        settings=settings,
    )

    app = web.Application(middlewares=[error_middleware])
    app[SETTINGS] = settings
    app[PROPERTIES] = properties_repo
    app[SYNC_STATUS] = sync_status_repo
    app[SALESFORCE] = salesforce
    app[PROPERTY_SYNC] = property_sync
    app.on_cleanup.append(_close_salesforce)

    app.router.add_get("/health", health)

    # Propiedades
    app.router.add_get("/api/properties", properties.list_properties)
    app.router.add_get("/api/properties/{property_id}", properties.get_property)
    app.router.add_get("/api/properties-db", properties_db.list_properties)
    app.router.add_post("/api/properties-db/upsert", properties_db.upsert_properties)
    app.router.add_get("/api/properties-db/upsert", properties_db.upsert_format)

    # Sync
    app.router.add_post("/api/sync/salesforce", sync.run_sync)
    app.router.add_get("/api/sync/salesforce", sync.sync_status)

    # Webhooks
    app.router.add_post("/api/webhooks/clerk", webhooks.clerk_webhook)
    app.router.add_get("/api/webhooks/clerk", webhooks.method_not_allowed)

    # OAuth y exploración de Salesforce
    app.router.add_get("/api/auth/salesforce", salesforce_auth.start_authorization)
    app.router.add_get("/api/auth/salesforce/callback", salesforce_auth.authorization_callback)
    app.router.add_get("/api/salesforce/objects", explorer.list_objects)
    app.router.add_get("/api/salesforce/fields", explorer.list_fields)

    logger.info("Aplicación HTTP creada", environment=settings.environment)
    return app
