"""
Modelos de datos del sistema.

- Property: propiedad persistida en Supabase
- PropertyDetail: vista de detalle desde Salesforce
- Clerk / Lead: alta de usuarios y creación de leads
"""

from cedar.models.property import (
    AccessTier,
    Property,
    PropertyAddress,
    PropertyImage,
    FlipMetrics,
    RentalMetrics,
    PropertyDetail,
)
from cedar.models.user import (
    ClerkUser,
    ClerkWebhookEvent,
    LeadPayload,
    LeadResult,
)

__all__ = [
    # Propiedades
    "AccessTier",
    "Property",
    "PropertyAddress",
    "PropertyImage",
    "FlipMetrics",
    "RentalMetrics",
    "PropertyDetail",
    # Usuarios
    "ClerkUser",
    "ClerkWebhookEvent",
    "LeadPayload",
    "LeadResult",
]
