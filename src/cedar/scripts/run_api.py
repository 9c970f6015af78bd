"""
Servidor HTTP de la API de listados.

Uso:
    python -m cedar.scripts.run_api
    python -m cedar.scripts.run_api --port 8080
"""

import argparse
import logging
import sys

import structlog
from aiohttp import web

from cedar.api import create_app
from cedar.config import get_settings

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


def main():
    """Entry point del servidor."""
    parser = argparse.ArgumentParser(description="API de propiedades Cedar Sells")
    parser.add_argument("--host", type=str, default=settings.api_host, help="Host de escucha")
    parser.add_argument("--port", type=int, default=settings.api_port, help="Puerto de escucha")
    args = parser.parse_args()

    try:
        app = create_app(settings)
    except ValueError as e:
        # Faltan credenciales de Supabase
        logger.error("Configuración inválida", error=str(e))
        sys.exit(1)

    logger.info("Iniciando API", host=args.host, port=args.port)
    web.run_app(app, host=args.host, port=args.port, print=None)


if __name__ == "__main__":
    main()
