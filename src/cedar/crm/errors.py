"""Errores del cliente de Salesforce."""

from typing import Optional


class SalesforceError(Exception):
    """Error genérico de la REST API de Salesforce."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.status = status
        self.error_code = error_code


class SalesforceConfigError(SalesforceError):
    """Faltan credenciales en la configuración."""


class SalesforceAuthError(SalesforceError):
    """Falló la obtención o el canje del token OAuth."""


class SalesforceNotFoundError(SalesforceError):
    """El registro pedido no existe (NOT_FOUND)."""
