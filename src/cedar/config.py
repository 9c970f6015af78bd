"""
Configuración centralizada del sistema.
Carga variables de entorno y define settings globales.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Encontrar la raíz del proyecto (donde está el .env)
# config.py -> cedar/ -> src/ -> project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Configuración principal de la aplicación."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Supabase
    supabase_url: Optional[str] = Field(None, description="URL del proyecto Supabase")
    supabase_key: Optional[str] = Field(None, description="Anon key de Supabase")
    supabase_service_key: Optional[str] = Field(
        None, description="Service role key para escrituras (sync/upsert)"
    )

    # Salesforce
    salesforce_client_id: Optional[str] = Field(None, description="Consumer key de la Connected App")
    salesforce_client_secret: Optional[str] = Field(None, description="Consumer secret")
    salesforce_username: Optional[str] = Field(None, description="Usuario de servicio para el sync")
    salesforce_password: Optional[str] = Field(None, description="Password del usuario de servicio")
    salesforce_security_token: str = Field("", description="Security token (se concatena al password)")
    salesforce_login_url: str = Field(
        "https://login.salesforce.com", description="Host de login/OAuth"
    )
    salesforce_api_version: str = Field("v58.0", description="Versión de la REST API")
    salesforce_oauth_callback_url: str = Field(
        "http://localhost:8000/api/auth/salesforce/callback",
        description="redirect_uri registrado en la Connected App",
    )
    salesforce_token_ttl_seconds: int = Field(
        5400, description="Vida útil asumida del token (los de Salesforce duran ~2h)"
    )

    # Webhooks / API
    clerk_webhook_secret: Optional[str] = Field(
        None, description="Secreto svix para los webhooks de Clerk (whsec_...)"
    )
    sync_api_key: Optional[str] = Field(
        None, description="Bearer token para /api/sync y /api/properties-db/upsert"
    )
    auth_proxy_secret: Optional[str] = Field(
        None, description="Secreto que envía el proxy de auth junto a X-User-Id / X-User-Tier"
    )

    # Tiers
    vip_price_threshold: float = Field(
        1_000_000, ge=0, description="Precio a partir del cual una propiedad es VIP"
    )
    registered_price_threshold: float = Field(
        300_000, ge=0, description="Precio a partir del cual requiere registro"
    )

    # Servidor HTTP
    api_host: str = Field("0.0.0.0", description="Host de escucha")
    api_port: int = Field(8000, description="Puerto de escucha")
    environment: str = Field("development", description="development o production")

    # Logging
    log_level: str = Field("INFO", description="Nivel de logging")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Obtiene la configuración cacheada."""
    return Settings()


# Ciudad (en minúsculas) -> parish de Louisiana
CITY_PARISHES = {
    "lafayette": "Lafayette",
    "baton rouge": "East Baton Rouge",
    "new orleans": "Orleans",
    "shreveport": "Caddo",
    "lake charles": "Calcasieu",
    "monroe": "Ouachita",
    "alexandria": "Rapides",
}

# Ciudad (en minúsculas) -> slug de mercado
CITY_MARKETS = {
    "lafayette": "lafayette",
    "baton rouge": "baton-rouge",
    "new orleans": "new-orleans",
    "shreveport": "shreveport",
    "lake charles": "lake-charles",
    "monroe": "monroe",
    "alexandria": "alexandria",
}

DEFAULT_PARISH = "Lafayette"
DEFAULT_MARKET = "lafayette"

# Estados de Property__c que se traen en el sync
SYNC_STATUSES = ["Active", "Pending", "Under Contract"]

# investment_path que nunca se publica
CANCELLED_INVESTMENT_PATH = "Contract Cancelled/Lost"

PLACEHOLDER_IMAGE_URL = "/placeholder-house.jpg"

DEFAULT_REDIRECT_PATH = "/listings"
