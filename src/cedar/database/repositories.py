"""
Repositorios para operaciones CRUD en Supabase.

Cada repositorio maneja una tabla/entidad específica.
"""

from datetime import datetime
from typing import Iterable, Optional

import structlog

from cedar.access import allowed_tiers
from cedar.config import CANCELLED_INVESTMENT_PATH
from cedar.database.supabase_client import (
    SupabaseClient,
    get_supabase_admin_client,
    get_supabase_client,
)
from cedar.models import AccessTier, Property

logger = structlog.get_logger()


class BaseRepository:
    """Clase base para repositorios."""

    def __init__(self, client: Optional[SupabaseClient] = None):
        self._client = client or get_supabase_client()

    @property
    def client(self) -> SupabaseClient:
        return self._client


class PropertyRepository(BaseRepository):
    """
    Repositorio de la tabla properties.

    Las lecturas usan el cliente anon; las escrituras requieren un
    cliente admin (service key), que se crea al primer upsert si no
    fue inyectado.
    """

    TABLE = "properties"

    def __init__(
        self,
        client: Optional[SupabaseClient] = None,
        admin_client: Optional[SupabaseClient] = None,
    ):
        super().__init__(client)
        self._admin_client = admin_client

    @property
    def admin_client(self) -> SupabaseClient:
        if self._admin_client is None:
            self._admin_client = get_supabase_admin_client()
        return self._admin_client

    def list_visible(
        self, tier: AccessTier, limit: int = 50, offset: int = 0
    ) -> list[Property]:
        """
        Propiedades activas visibles para un tier, más recientes primero.

        Excluye las transacciones canceladas. Ante un error de la base
        devuelve una lista vacía.
        """
        tiers = [t.value for t in allowed_tiers(tier)]
        try:
            response = (
                self.client.table(self.TABLE)
                .select("*")
                .eq("status", "Active")
                .or_(
                    f'investment_path.is.null,'
                    f'investment_path.neq."{CANCELLED_INVESTMENT_PATH}"'
                )
                .in_("tier", tiers)
                .order("updated_at", desc=True)
                .range(offset, offset + limit - 1)
                .execute()
            )
        except Exception as e:
            logger.error("Error leyendo propiedades", tier=tier.value, error=str(e))
            return []

        return [Property.from_db_row(row) for row in response.data or []]

    def get_by_id(self, property_id: str) -> Optional[Property]:
        """Obtiene una propiedad por su UUID."""
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("id", property_id)
            .limit(1)
            .execute()
        )
        return Property.from_db_row(response.data[0]) if response.data else None

    def get_by_salesforce_id(self, salesforce_id: str) -> Optional[Property]:
        """Obtiene una propiedad por el Id del registro en Salesforce."""
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("salesforce_id", salesforce_id)
            .limit(1)
            .execute()
        )
        return Property.from_db_row(response.data[0]) if response.data else None

    def upsert_many(self, properties: Iterable[Property]) -> int:
        """
        Inserta o actualiza propiedades usando salesforce_id como clave.

        Returns:
            Cantidad de filas enviadas
        """
        rows = [p.to_db_dict() for p in properties]
        if not rows:
            return 0

        (
            self.admin_client.table(self.TABLE)
            .upsert(rows, on_conflict="salesforce_id")
            .execute()
        )
        logger.info("Propiedades upserted", count=len(rows))
        return len(rows)


class SyncStatusRepository(BaseRepository):
    """Tabla sync_status: una única fila (id=1) con la fecha del último sync."""

    TABLE = "sync_status"
    ROW_ID = 1

    def __init__(self, client: Optional[SupabaseClient] = None):
        super().__init__(client or get_supabase_admin_client())

    def get_last_sync_at(self) -> Optional[str]:
        """Fecha ISO del último sync exitoso, o None si nunca hubo uno."""
        try:
            response = (
                self.client.table(self.TABLE)
                .select("last_sync_at")
                .eq("id", self.ROW_ID)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.warning("No se pudo leer sync_status", error=str(e))
            return None

        if not response.data:
            return None
        return response.data[0].get("last_sync_at")

    def touch(self, now: Optional[datetime] = None) -> Optional[str]:
        """
        Registra un sync exitoso.

        Un fallo acá no invalida el sync, por eso sólo se loguea.
        """
        timestamp = (now or datetime.utcnow()).isoformat()
        try:
            (
                self.client.table(self.TABLE)
                .upsert({"id": self.ROW_ID, "last_sync_at": timestamp})
                .execute()
            )
        except Exception as e:
            logger.error("Error actualizando sync_status", error=str(e))
            return None
        return timestamp
