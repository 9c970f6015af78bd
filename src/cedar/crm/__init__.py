"""
Módulo de integración con Salesforce.

Provee el cliente REST, el flujo OAuth y el mapeo de campos.
"""

from cedar.crm.errors import (
    SalesforceError,
    SalesforceAuthError,
    SalesforceConfigError,
    SalesforceNotFoundError,
)
from cedar.crm.salesforce_client import SalesforceClient, soql_quote
from cedar.crm.oauth import OAuthTokens

__all__ = [
    "SalesforceClient",
    "soql_quote",
    "OAuthTokens",
    "SalesforceError",
    "SalesforceAuthError",
    "SalesforceConfigError",
    "SalesforceNotFoundError",
]
