"""
Exploración del esquema de Salesforce con los tokens del usuario.

Sirve para descubrir objetos y campos al mapear una org nueva.
"""

import re

import structlog
from aiohttp import web

from cedar.api.common import CRM_ERRORS, json_error, token_client

logger = structlog.get_logger()

RELEVANT_OBJECT_KEYWORDS = (
    "transaction",
    "property",
    "deal",
    "listing",
    "opportunity",
    "account",
    "contact",
    "lead",
)
RELEVANT_REFERENCE_KEYWORDS = ("owner", "account", "contact")
DEFAULT_OBJECT = "Left_Main__Property__c"
_OBJECT_NAME_RE = re.compile(r"^\w+$")

NO_TOKENS = "No Salesforce tokens found. Please authenticate first."


def _is_relevant_object(sobject: dict) -> bool:
    name = sobject.get("name", "").lower()
    return sobject.get("custom") is True or any(k in name for k in RELEVANT_OBJECT_KEYWORDS)


def _is_relevant_field(field: dict) -> bool:
    if field.get("type") != "reference":
        return True
    name = field.get("name", "").lower()
    return any(k in name for k in RELEVANT_REFERENCE_KEYWORDS)


async def list_objects(request: web.Request) -> web.Response:
    """GET /api/salesforce/objects"""
    client = token_client(request)
    if client is None:
        return json_error(401, NO_TOKENS)

    try:
        async with client:
            described = await client.describe_global()
    except CRM_ERRORS as e:
        logger.error("Error listando objetos de Salesforce", error=str(e))
        return json_error(500, "Failed to query Salesforce objects", str(e))

    sobjects = described.get("sobjects", [])
    relevant = [
        {
            "name": obj.get("name"),
            "label": obj.get("label"),
            "custom": obj.get("custom"),
            "createable": obj.get("createable"),
            "queryable": obj.get("queryable"),
        }
        for obj in sobjects
        if _is_relevant_object(obj)
    ]
    return web.json_response({
        "success": True,
        "data": {"totalObjects": len(sobjects), "relevantObjects": relevant},
    })


async def list_fields(request: web.Request) -> web.Response:
    """GET /api/salesforce/fields?object=Nombre__c"""
    object_name = request.query.get("object") or DEFAULT_OBJECT
    if not _OBJECT_NAME_RE.match(object_name):
        return json_error(400, "Invalid object name")

    client = token_client(request)
    if client is None:
        return json_error(401, NO_TOKENS)

    try:
        async with client:
            described = await client.describe_object(object_name)
    except CRM_ERRORS as e:
        logger.error("Error describiendo objeto", object=object_name, error=str(e))
        return json_error(500, "Failed to query Salesforce fields", str(e))

    fields = described.get("fields", [])
    relevant = [
        {
            "name": field.get("name"),
            "label": field.get("label"),
            "type": field.get("type"),
            "length": field.get("length"),
            "required": not field.get("nillable", True),
            "custom": field.get("custom"),
            "picklistValues": [pv.get("value") for pv in field.get("picklistValues") or []],
        }
        for field in fields
        if _is_relevant_field(field)
    ]
    return web.json_response({
        "success": True,
        "data": {
            "objectName": described.get("name"),
            "objectLabel": described.get("label"),
            "totalFields": len(fields),
            "relevantFields": relevant,
        },
    })
