"""
Cliente de Supabase.

Dos singletons: uno con la anon key para lecturas y otro con la
service key para escrituras (sync y upsert).
"""

from functools import lru_cache
from typing import Optional

import structlog
from supabase import create_client, Client

from cedar.config import get_settings

logger = structlog.get_logger()


class SupabaseClient:
    """Wrapper del cliente de Supabase con métodos de utilidad."""

    def __init__(self, client: Client):
        self._client = client

    @property
    def client(self) -> Client:
        """Acceso directo al cliente de Supabase."""
        return self._client

    def table(self, name: str):
        """Acceso a una tabla específica."""
        return self._client.table(name)


def _build_client(key: Optional[str], key_name: str) -> SupabaseClient:
    settings = get_settings()

    if not settings.supabase_url or not key:
        raise ValueError(
            f"SUPABASE_URL y {key_name} son requeridos. "
            "Configura las variables de entorno."
        )

    client = create_client(settings.supabase_url, key)
    logger.info(
        "Cliente de Supabase inicializado",
        url=settings.supabase_url,
        key=key_name.lower(),
    )
    return SupabaseClient(client)


@lru_cache
def get_supabase_client() -> SupabaseClient:
    """
    Cliente de lectura (anon key, sujeto a RLS).

    Raises:
        ValueError: Si las credenciales no están configuradas
    """
    return _build_client(get_settings().supabase_key, "SUPABASE_KEY")


@lru_cache
def get_supabase_admin_client() -> SupabaseClient:
    """
    Cliente de escritura (service role key, saltea RLS).

    Raises:
        ValueError: Si las credenciales no están configuradas
    """
    return _build_client(get_settings().supabase_service_key, "SUPABASE_SERVICE_KEY")
