"""
Mapeo de campos Salesforce -> modelo interno.

Todas las funciones son puras: reciben el dict crudo de la REST API
(o del payload externo) y devuelven modelos validados.
"""

import json
import math
import re
from datetime import date, datetime
from typing import Any, Iterable, Optional

import structlog

from cedar.config import (
    CITY_MARKETS,
    CITY_PARISHES,
    DEFAULT_MARKET,
    DEFAULT_PARISH,
    PLACEHOLDER_IMAGE_URL,
    Settings,
    get_settings,
)
from cedar.models import (
    AccessTier,
    ClerkUser,
    FlipMetrics,
    LeadPayload,
    Property,
    PropertyAddress,
    PropertyDetail,
    PropertyImage,
    RentalMetrics,
)

logger = structlog.get_logger()

_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")

OFF_MARKET_DISPO_STATUS = "Closed/Won"


# ----------------------------------------------------------
# Helpers numéricos (semántica laxa: basura -> default)
# ----------------------------------------------------------

def to_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    """
    Parsea un número de forma tolerante.

    Acepta 250000, "250000", "$250,000", "3.5 baths". Devuelve `default`
    para None, vacío o texto sin número al inicio.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else default

    cleaned = str(value).strip().replace(",", "").replace("$", "")
    match = _NUMBER_RE.match(cleaned)
    if not match:
        return default
    number = float(match.group(0))
    return number if math.isfinite(number) else default


def to_int(value: Any, default: Optional[int] = 0) -> Optional[int]:
    """Como to_float pero trunca hacia cero ("3.9" -> 3)."""
    number = to_float(value, None)
    if number is None:
        return default
    return int(number)


def optional_float(value: Any) -> Optional[float]:
    """None si el valor está vacío, float en otro caso."""
    if value is None or value == "":
        return None
    return to_float(value, None)


def parse_image_urls(value: Any) -> list[str]:
    """
    Normaliza el campo de imágenes.

    Puede venir como lista, como string JSON (`'["a","b"]'`) o como
    string separado por comas.
    """
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v and str(v).strip()]

    text = str(value).strip()
    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = None
    if isinstance(parsed, list):
        return [str(v).strip() for v in parsed if v and str(v).strip()]

    return [part.strip() for part in text.split(",") if part.strip()]


def _split_tags(value: Any) -> Optional[list[str]]:
    if not value:
        return None
    return [tag.strip() for tag in str(value).split(",") if tag.strip()]


def _date_only(value: Any) -> str:
    """'2024-01-15T10:00:00.000+0000' -> '2024-01-15'."""
    if value:
        return str(value)[:10]
    return date.today().isoformat()


def _pick(payload: dict, *keys: str) -> Any:
    """Primer valor no vacío entre varias claves alternativas."""
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return None


# ----------------------------------------------------------
# Tiers
# ----------------------------------------------------------

def derive_tier(
    explicit: Any,
    price: Optional[float],
    *,
    vip_threshold: float,
    registered_threshold: float,
) -> AccessTier:
    """
    Determina el tier de una propiedad.

    Si la fuente trae un tier válido se respeta; si no, se asigna por precio.
    """
    tier = AccessTier.parse(explicit)
    if tier is not None:
        return tier

    if explicit not in (None, ""):
        logger.warning("Tier desconocido, se deriva por precio", tier=explicit)

    price = price or 0
    if price >= vip_threshold:
        return AccessTier.VIP
    if price >= registered_threshold:
        return AccessTier.REGISTERED
    return AccessTier.PUBLIC


def _tier_for(explicit: Any, price: Optional[float], settings: Settings) -> AccessTier:
    return derive_tier(
        explicit,
        price,
        vip_threshold=settings.vip_price_threshold,
        registered_threshold=settings.registered_price_threshold,
    )


# ----------------------------------------------------------
# Ubicación
# ----------------------------------------------------------

def parish_for_city(city: Optional[str]) -> str:
    return CITY_PARISHES.get((city or "").strip().lower(), DEFAULT_PARISH)


def market_for_city(city: Optional[str]) -> str:
    return CITY_MARKETS.get((city or "").strip().lower(), DEFAULT_MARKET)


def city_for_market(market: str) -> str:
    """Slug de mercado -> nombre de ciudad ('baton-rouge' -> 'Baton Rouge')."""
    for city, slug in CITY_MARKETS.items():
        if slug == market:
            return city.title()
    return market


# ----------------------------------------------------------
# Property__c -> Property (sync)
# ----------------------------------------------------------

def transform_property_record(
    record: dict,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> Property:
    """
    Transforma un registro Property__c en Property.

    Raises:
        ValueError: si el registro no trae Id
    """
    settings = settings or get_settings()
    synced_at = (now or datetime.utcnow()).isoformat()

    salesforce_id = record.get("Id")
    if not salesforce_id:
        raise ValueError("Registro de Salesforce sin Id")

    price = to_float(record.get("Price__c"))

    return Property(
        salesforce_id=salesforce_id,
        name=record.get("Name") or "Unnamed Property",
        address=record.get("Address__c") or "",
        city=record.get("City__c") or "",
        state=record.get("State__c") or "",
        zip_code=record.get("Zip_Code__c") or "",
        price=price,
        bedrooms=to_int(record.get("Bedrooms__c")),
        bathrooms=to_float(record.get("Bathrooms__c")),
        square_footage=to_int(record.get("Square_Footage__c")),
        lot_size=to_float(record.get("Lot_Size__c")),
        year_built=to_int(record.get("Year_Built__c")),
        property_type=record.get("Property_Type__c") or "Unknown",
        description=record.get("Description__c") or "",
        status=record.get("Status__c") or "Active",
        images=parse_image_urls(record.get("Image_URLs__c")),
        tier=_tier_for(record.get("Tier__c"), price, settings),
        created_at=record.get("CreatedDate"),
        updated_at=record.get("LastModifiedDate"),
        last_synced_at=synced_at,
    )


# ----------------------------------------------------------
# Payload externo (n8n, integraciones) -> Property
# ----------------------------------------------------------

def normalize_upsert_payload(
    payload: dict,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> Property:
    """
    Normaliza un payload externo con claves snake_case o camelCase.

    `salesforce_id` es la clave única; si falta se usa `id`.

    Raises:
        ValueError: si no hay forma de identificar el registro
    """
    if not isinstance(payload, dict):
        raise ValueError("Cada propiedad debe ser un objeto JSON")

    settings = settings or get_settings()
    timestamp = (now or datetime.utcnow()).isoformat()

    salesforce_id = _pick(payload, "salesforce_id", "salesforceId", "id")
    if not salesforce_id:
        raise ValueError("salesforce_id es requerido")

    price = to_float(payload.get("price"))

    return Property(
        salesforce_id=str(salesforce_id),
        name=payload.get("name") or "Unnamed Property",
        address=payload.get("address") or "",
        city=payload.get("city") or "",
        state=payload.get("state") or "",
        zip_code=_pick(payload, "zip_code", "zipCode") or "",
        price=price,
        bedrooms=to_int(payload.get("bedrooms")),
        bathrooms=to_float(payload.get("bathrooms")),
        square_footage=to_int(_pick(payload, "square_footage", "squareFootage")),
        lot_size=to_float(_pick(payload, "lot_size", "lotSize")),
        year_built=to_int(_pick(payload, "year_built", "yearBuilt")),
        property_type=_pick(payload, "property_type", "propertyType") or "Unknown",
        description=payload.get("description") or "",
        status=payload.get("status") or "Active",
        images=parse_image_urls(payload.get("images")),
        tier=_tier_for(payload.get("tier"), price, settings),
        created_at=_pick(payload, "created_at", "created_date", "createdAt") or timestamp,
        updated_at=_pick(payload, "updated_at", "last_modified_date", "updatedAt") or timestamp,
        last_synced_at=timestamp,
        lead_source=_pick(payload, "lead_source", "leadSource"),
        investment_path=_pick(payload, "investment_path", "investmentPath"),
        actual_profit=optional_float(_pick(payload, "actual_profit", "actualProfit")),
        projected_profit=optional_float(_pick(payload, "projected_profit", "projectedProfit")),
        sales_date=_pick(payload, "sales_date", "salesDate"),
        salesforce_status=_pick(payload, "salesforce_status", "salesforceStatus"),
    )


# ----------------------------------------------------------
# Transaction__c -> PropertyDetail
# ----------------------------------------------------------

def transform_transaction(
    record: dict,
    images: Optional[Iterable[PropertyImage]] = None,
    settings: Optional[Settings] = None,
) -> PropertyDetail:
    """Transforma un Transaction__c en la vista de detalle."""
    settings = settings or get_settings()
    images = list(images or [])
    deal_type = record.get("Deal_Type__c")
    list_price = optional_float(record.get("List_Price__c"))

    flip_metrics = None
    if deal_type == "Fix & Flip":
        flip_metrics = FlipMetrics(
            arv=to_float(record.get("ARV__c")),
            rehab_estimate=to_float(record.get("Rehab_Estimate__c")),
            spread=to_float(record.get("Spread__c")),
            roi=to_float(record.get("ROI__c")),
        )

    rental_metrics = None
    if deal_type == "Rental":
        rental_metrics = RentalMetrics(
            gross_yield=to_float(record.get("Gross_Yield__c")),
            cap_rate=to_float(record.get("Cap_Rate__c")),
            monthly_rent=optional_float(record.get("Monthly_Rent__c")),
        )

    return PropertyDetail(
        id=record["Id"],
        title=record.get("Name") or "Property Listing",
        description=record.get("Description__c") or "",
        address=PropertyAddress(
            street=record.get("Street_Address__c") or "",
            city=record.get("City__c") or "",
            state=record.get("State__c") or "",
            zip_code=record.get("Zip_Code__c") or "",
            parish=record.get("Parish__c") or "",
        ),
        bedrooms=optional_float(record.get("Bedrooms__c")),
        bathrooms=optional_float(record.get("Bathrooms__c")),
        square_feet=optional_float(record.get("Square_Feet__c")),
        lot_size=optional_float(record.get("Lot_Size__c")),
        year_built=to_int(record.get("Year_Built__c"), None),
        property_type=record.get("Property_Type__c"),
        deal_type=deal_type,
        market=record.get("Market__c"),
        list_price=list_price,
        purchase_price=optional_float(record.get("Purchase_Price__c")),
        status=record.get("Status__c"),
        access_tier=_tier_for(record.get("Access_Tier__c"), list_price, settings),
        is_off_market=bool(record.get("Is_Off_Market__c")),
        images=images,
        thumbnail_url=images[0].url if images else PLACEHOLDER_IMAGE_URL,
        flip_metrics=flip_metrics,
        rental_metrics=rental_metrics,
        created_date=record.get("CreatedDate"),
        updated_date=record.get("LastModifiedDate"),
        owner_id=record.get("OwnerId"),
        tags=_split_tags(record.get("Tags__c")),
        notes=record.get("Notes__c"),
        showing_instructions=record.get("Showing_Instructions__c"),
    )


# ----------------------------------------------------------
# Left_Main__Transactions__c -> PropertyDetail (listado en vivo)
# ----------------------------------------------------------

def transform_listing_record(record: dict) -> PropertyDetail:
    """
    Transforma un registro de Left_Main__Transactions__c.

    Este objeto no tiene detalles físicos, tipo de deal ni tier (se publica
    como público): se completan dirección, mercado y parish derivados de
    la ciudad.
    """
    street = record.get("Left_Main__Street_Address__c") or "Address Not Available"
    city = record.get("Left_Main__City__c") or "City Not Available"
    state = record.get("Left_Main__State__c") or "LA"
    dispo_status = record.get("Left_Main__Dispo_Status__c")

    description = f"Investment property in {city}."
    if dispo_status:
        description = f"{description} Status: {dispo_status}"

    return PropertyDetail(
        id=record["Id"],
        title=record.get("Name") or f"{street}, {city}",
        description=description,
        address=PropertyAddress(
            street=street,
            city=city,
            state=state,
            zip_code=record.get("Left_Main__Zipcode__c") or "",
            parish=parish_for_city(city),
        ),
        deal_type="Wholesale",
        market=market_for_city(city),
        purchase_price=optional_float(record.get("Left_Main__Contract_Purchase_Price__c")),
        status="Available",
        access_tier=AccessTier.PUBLIC,
        is_off_market=dispo_status == OFF_MARKET_DISPO_STATUS,
        thumbnail_url=PLACEHOLDER_IMAGE_URL,
        created_date=_date_only(record.get("CreatedDate")),
        updated_date=_date_only(record.get("LastModifiedDate")),
        owner_id=record.get("OwnerId") or "unknown",
    )


# ----------------------------------------------------------
# Clerk user -> Lead
# ----------------------------------------------------------

def build_lead_payload(user: ClerkUser) -> LeadPayload:
    """
    Arma el Lead de Salesforce para un usuario recién registrado.

    Raises:
        ValueError: si el usuario no tiene email primario
    """
    email = user.primary_email
    if not email:
        raise ValueError(f"Usuario {user.id} sin email primario")

    metadata = user.public_metadata or {}
    interests = metadata.get("interests")

    return LeadPayload(
        first_name=user.first_name or "Unknown",
        last_name=user.last_name or "Investor",
        email=email,
        phone=user.primary_phone,
        company=metadata.get("company") or None,
        investor_type=metadata.get("investorType") or None,
        interests=";".join(str(i) for i in interests) if isinstance(interests, list) else None,
        website_user_id=user.id,
    )
