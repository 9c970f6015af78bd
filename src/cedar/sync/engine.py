"""
Sincronización Salesforce -> Supabase.

Trae los Property__c publicables, los normaliza y los upsertea en la
tabla properties usando salesforce_id como clave.
"""

from dataclasses import dataclass, field
from typing import Optional

import structlog

from cedar.config import Settings, SYNC_STATUSES, get_settings
from cedar.crm import SalesforceClient
from cedar.crm.mapping import transform_property_record
from cedar.crm.salesforce_client import soql_in
from cedar.database import PropertyRepository, SyncStatusRepository
from cedar.models import Property

logger = structlog.get_logger()

PROPERTY_FIELDS = [
    "Id", "Name", "Address__c", "City__c", "State__c", "Zip_Code__c",
    "Price__c", "Bedrooms__c", "Bathrooms__c", "Square_Footage__c",
    "Lot_Size__c", "Year_Built__c", "Property_Type__c", "Description__c",
    "Status__c", "Image_URLs__c", "Tier__c", "CreatedDate", "LastModifiedDate",
]


@dataclass
class SyncResult:
    """Resultado de una corrida de sync."""

    success: bool
    count: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class ConnectionCheck:
    success: bool
    message: str


class PropertySync:
    """
    Sync completo de propiedades.

    Flujo:
    1. Query paginada de Property__c con estados publicables
    2. Transformación registro a registro (los inválidos se reportan)
    3. Upsert en lote
    4. Actualización de sync_status
    """

    def __init__(
        self,
        salesforce: Optional[SalesforceClient] = None,
        properties: Optional[PropertyRepository] = None,
        sync_status: Optional[SyncStatusRepository] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.salesforce = salesforce or SalesforceClient(self.settings)
        self.properties = properties or PropertyRepository()
        self.sync_status = sync_status or SyncStatusRepository()

    async def fetch_records(self) -> list[dict]:
        soql = (
            f"SELECT {', '.join(PROPERTY_FIELDS)} FROM Property__c "
            f"WHERE Status__c IN {soql_in(SYNC_STATUSES)} "
            "ORDER BY LastModifiedDate DESC"
        )
        return await self.salesforce.query_all(soql)

    def _transform(self, records: list[dict]) -> tuple[list[Property], list[str]]:
        properties, errors = [], []
        for record in records:
            try:
                properties.append(transform_property_record(record, self.settings))
            except ValueError as e:
                logger.warning("Registro descartado", record_id=record.get("Id"), error=str(e))
                errors.append(f"{record.get('Id') or 'unknown'}: {e}")
        return properties, errors

    async def sync_properties(self) -> SyncResult:
        """
        Ejecuta el sync.

        Nunca lanza: cualquier error termina en SyncResult(success=False).
        """
        logger.info("Iniciando sync de propiedades")
        try:
            records = await self.fetch_records()
            if not records:
                logger.info("Salesforce no devolvió propiedades")
                return SyncResult(
                    success=True, count=0, errors=["No properties found in Salesforce"]
                )

            properties, errors = self._transform(records)
            count = self.properties.upsert_many(properties)
            self.sync_status.touch()
        except Exception as e:
            logger.error("Sync fallido", error=str(e))
            return SyncResult(success=False, count=0, errors=[str(e)])

        logger.info("Sync completado", count=count, skipped=len(errors))
        return SyncResult(success=True, count=count, errors=errors)

    async def test_connection(self) -> ConnectionCheck:
        """Verifica credenciales y acceso a Property__c."""
        try:
            result = await self.salesforce.query("SELECT Id FROM Property__c LIMIT 1")
        except Exception as e:
            logger.warning("Conexión a Salesforce fallida", error=str(e))
            return ConnectionCheck(success=False, message=str(e))

        total = result.get("totalSize", 0)
        return ConnectionCheck(
            success=True,
            message=f"Connected successfully. Found {total} property records.",
        )
