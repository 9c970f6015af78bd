"""
Modelos de propiedad.

- Property: fila de la tabla 'properties' en Supabase (sincronizada desde Property__c)
- PropertyDetail: vista de detalle armada desde Transaction__c de Salesforce
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class AccessTier(str, Enum):
    """Nivel de acceso que habilita ver una propiedad."""

    PUBLIC = "public"
    REGISTERED = "registered"
    VIP = "vip"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    @classmethod
    def parse(
        cls, value: Any, default: Optional["AccessTier"] = None
    ) -> Optional["AccessTier"]:
        """
        Convierte un valor libre ('VIP', ' registered ', AccessTier) en AccessTier.

        Devuelve `default` si el valor no es un tier válido.
        """
        if isinstance(value, cls):
            return value
        if value is None:
            return default
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default


_TIER_RANK = {
    AccessTier.PUBLIC: 0,
    AccessTier.REGISTERED: 1,
    AccessTier.VIP: 2,
}


class CamelModel(BaseModel):
    """Base con alias camelCase para la API JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_api_dict(self) -> dict:
        """Serializa con claves camelCase para el frontend."""
        return self.model_dump(by_alias=True, mode="json")


class Property(CamelModel):
    """
    Propiedad publicada en el sitio.

    Se identifica de forma única por `salesforce_id` (upsert idempotente);
    `id` es el UUID que genera Supabase.
    """

    # Identificadores
    id: Optional[str] = Field(None, description="UUID generado por Supabase")
    salesforce_id: str = Field(..., description="Id del registro en Salesforce")

    # Identificación
    name: str = Field(default="Unnamed Property")
    address: str = Field(default="")
    city: str = Field(default="")
    state: str = Field(default="")
    zip_code: str = Field(default="")

    # Atributos numéricos
    price: Optional[float] = Field(default=0)
    bedrooms: Optional[int] = Field(default=0)
    bathrooms: Optional[float] = Field(default=0)
    square_footage: Optional[int] = Field(default=0)
    lot_size: Optional[float] = Field(default=0)
    year_built: Optional[int] = Field(default=0)

    # Texto libre
    property_type: str = Field(default="Unknown")
    description: str = Field(default="")
    status: str = Field(default="Active")

    # Media
    images: list[str] = Field(default_factory=list, description="URLs de imágenes")

    # Acceso
    tier: AccessTier = Field(default=AccessTier.PUBLIC)

    # Metadatos
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_synced_at: str = Field(
        default_factory=lambda: datetime.utcnow().isoformat(),
        description="Última vez que se sincronizó desde Salesforce",
    )

    # Campos de Transaction usados para filtrar
    lead_source: Optional[str] = None
    investment_path: Optional[str] = None
    actual_profit: Optional[float] = None
    projected_profit: Optional[float] = None
    sales_date: Optional[str] = None
    salesforce_status: Optional[str] = None

    @field_validator("tier", mode="before")
    @classmethod
    def _coerce_tier(cls, value: Any) -> AccessTier:
        return AccessTier.parse(value, AccessTier.PUBLIC)

    @field_validator("images", mode="before")
    @classmethod
    def _coerce_images(cls, value: Any) -> list:
        return value or []

    @field_validator("name", "address", "city", "state", "zip_code", "description", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else value

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para upsert en Supabase (sin id)."""
        return self.model_dump(exclude={"id"}, mode="json")

    @classmethod
    def from_db_row(cls, row: dict) -> "Property":
        """Construye el modelo desde una fila de Supabase."""
        data = {k: v for k, v in row.items() if k in cls.model_fields}
        for key in ("property_type", "status"):
            if data.get(key) is None:
                data.pop(key, None)
        return cls.model_validate(data)


# ----------------------------------------------------------
# Vista de detalle (Transaction__c)
# ----------------------------------------------------------


class PropertyAddress(CamelModel):
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    parish: str = ""


class PropertyImage(CamelModel):
    id: str
    url: str
    alt_text: Optional[str] = None
    order: int = 0


class FlipMetrics(CamelModel):
    """Métricas de un Fix & Flip."""

    arv: float = 0  # After Repair Value
    rehab_estimate: float = 0
    spread: float = 0  # ARV - (compra + rehab)
    roi: float = 0


class RentalMetrics(CamelModel):
    """Métricas de una propiedad de renta."""

    gross_yield: float = 0
    cap_rate: float = 0
    monthly_rent: Optional[float] = None


class PropertyDetail(CamelModel):
    """
    Propiedad tal como se muestra en la card / página de detalle.

    Se arma a partir de un Transaction__c (o de un registro de
    Left_Main__Transactions__c para el listado en vivo).
    """

    id: str
    title: str
    description: str = ""
    address: PropertyAddress = Field(default_factory=PropertyAddress)

    # Detalles físicos
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    square_feet: Optional[float] = None
    lot_size: Optional[float] = None
    year_built: Optional[int] = None
    property_type: Optional[str] = None

    # Deal
    deal_type: Optional[str] = None
    market: Optional[str] = None
    list_price: Optional[float] = None
    purchase_price: Optional[float] = None
    status: Optional[str] = None

    # Acceso
    access_tier: AccessTier = AccessTier.PUBLIC
    is_off_market: bool = False

    # Imágenes
    images: list[PropertyImage] = Field(default_factory=list)
    thumbnail_url: str = ""

    # Métricas según tipo de deal
    flip_metrics: Optional[FlipMetrics] = None
    rental_metrics: Optional[RentalMetrics] = None

    # Metadatos de Salesforce
    created_date: Optional[str] = None
    updated_date: Optional[str] = None
    owner_id: Optional[str] = None

    tags: Optional[list[str]] = None
    notes: Optional[str] = None
    showing_instructions: Optional[str] = None

    @field_validator("access_tier", mode="before")
    @classmethod
    def _coerce_tier(cls, value: Any) -> AccessTier:
        return AccessTier.parse(value, AccessTier.PUBLIC)
