"""
Propiedades en vivo desde Salesforce.

- GET /api/properties: listado (con fallback a datos de demo)
- GET /api/properties/{property_id}: detalle con control de acceso
"""

from typing import Optional

import structlog
from aiohttp import web

from cedar.access import (
    AccessDenied,
    RegistrationRequired,
    check_access,
    filter_visible,
    redact_detail,
)
from cedar.api.common import (
    CRM_ERRORS,
    SALESFORCE,
    SETTINGS,
    int_param,
    json_error,
    list_param,
    request_viewer,
    token_client,
)
from cedar.crm import SalesforceNotFoundError
from cedar.crm.mapping import transform_listing_record, transform_transaction
from cedar.sample_data import DEMO_MESSAGE, filter_samples

logger = structlog.get_logger()

LIVE_MESSAGE = "Live data from Salesforce"


async def _query_listings(
    request: web.Request, markets: list[str], limit: int, offset: int
) -> dict:
    client = token_client(request)
    if client is None:
        return await request.app[SALESFORCE].query_listings(markets, limit, offset)
    async with client:
        return await client.query_listings(markets, limit, offset)


async def _get_transaction(request: web.Request, property_id: str) -> dict:
    client = token_client(request)
    if client is None:
        return await request.app[SALESFORCE].get_transaction(property_id)
    async with client:
        return await client.get_transaction(property_id)


async def list_properties(request: web.Request) -> web.Response:
    """
    Listado en vivo.

    Si Salesforce falla o no devuelve registros se sirven las propiedades
    de demo con los mismos filtros y paginación.
    """
    deal_types = list_param(request, "dealTypes")
    markets = list_param(request, "markets")
    limit = int_param(request, "limit", 20, minimum=1)
    offset = int_param(request, "offset", 0)
    viewer = request_viewer(request)

    data: Optional[dict] = None
    try:
        data = await _query_listings(request, markets, limit, offset)
    except CRM_ERRORS as e:
        logger.warning("Salesforce no disponible, usando demo", error=str(e))

    records = (data or {}).get("records") or []
    if records:
        properties = [transform_listing_record(record) for record in records]
        # El objeto no tiene tipo de deal: se filtra después del mapeo
        if deal_types:
            properties = [p for p in properties if p.deal_type in deal_types]
        visible = filter_visible(properties, viewer)

        logger.info("Propiedades en vivo", count=len(visible), viewer=viewer.value)
        return web.json_response({
            "success": True,
            "data": {
                "properties": [p.to_api_dict() for p in visible],
                "totalCount": data.get("totalSize", len(records)),
                "hasMore": not data.get("done", True),
                "message": LIVE_MESSAGE,
            },
        })

    samples = filter_visible(filter_samples(deal_types, markets), viewer)
    page = samples[offset:offset + limit]
    return web.json_response({
        "success": True,
        "data": {
            "properties": [p.to_api_dict() for p in page],
            "totalCount": len(samples),
            "hasMore": offset + limit < len(samples),
            "message": DEMO_MESSAGE,
        },
    })


async def get_property(request: web.Request) -> web.Response:
    """Detalle de un Transaction__c, con gate por tier y campos ocultos para públicos."""
    property_id = request.match_info["property_id"]
    viewer = request_viewer(request)

    try:
        record = await _get_transaction(request, property_id)
    except SalesforceNotFoundError:
        return json_error(
            404,
            "Property not found",
            "The requested property does not exist or has been removed",
        )
    except CRM_ERRORS as e:
        logger.error("Error obteniendo propiedad", property_id=property_id, error=str(e))
        return json_error(500, "Failed to fetch property", str(e))

    detail = transform_transaction(record, settings=request.app[SETTINGS])

    try:
        check_access(detail.access_tier, viewer)
    except (AccessDenied, RegistrationRequired) as e:
        logger.info(
            "Acceso denegado",
            property_id=property_id,
            property_tier=detail.access_tier.value,
            viewer=viewer.value,
        )
        return json_error(e.status, e.error, e.message)

    detail = redact_detail(detail, viewer)
    return web.json_response({
        "success": True,
        "data": {"property": detail.to_api_dict()},
    })
