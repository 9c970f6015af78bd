"""
Script para sincronizar propiedades desde Salesforce.

Pensado para correr desde cron.

Uso:
    python -m cedar.scripts.run_sync
    python -m cedar.scripts.run_sync --check
"""

import argparse
import asyncio
import logging
import sys

import structlog

from cedar.config import get_settings
from cedar.crm import SalesforceClient
from cedar.sync import PropertySync

# Configurar logging
settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(message)s",
    force=True,
)

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


async def run_sync(check_only: bool = False) -> bool:
    """
    Ejecuta el sync (o sólo la prueba de conexión).

    Returns:
        True si terminó bien
    """
    async with SalesforceClient(settings) as salesforce:
        service = PropertySync(salesforce=salesforce, settings=settings)

        if check_only:
            check = await service.test_connection()
            logger.info("Prueba de conexión", success=check.success, message=check.message)
            return check.success

        result = await service.sync_properties()

    if result.success:
        logger.info("Sync finalizado", count=result.count, errors=result.errors)
    else:
        logger.error("Sync con errores", errors=result.errors)

    return result.success


def main():
    """Entry point del script."""
    parser = argparse.ArgumentParser(
        description="Sincroniza propiedades de Salesforce a Supabase"
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Sólo probar la conexión con Salesforce",
    )
    args = parser.parse_args()

    try:
        ok = asyncio.run(run_sync(check_only=args.check))
    except KeyboardInterrupt:
        logger.info("Sync interrumpido por usuario")
        sys.exit(130)
    except ValueError as e:
        # Faltan credenciales de Supabase
        logger.error("Configuración inválida", error=str(e))
        sys.exit(1)

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
