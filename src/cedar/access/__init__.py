"""
Módulo de control de acceso.

Filtra y oculta información de propiedades según el tier del viewer.
"""

from cedar.access.tiers import (
    AccessDenied,
    RegistrationRequired,
    REDACTED_STREET,
    allowed_tiers,
    viewer_tier,
    effective_tier,
    can_view,
    check_access,
    redact_detail,
    filter_visible,
)

__all__ = [
    "AccessDenied",
    "RegistrationRequired",
    "REDACTED_STREET",
    "allowed_tiers",
    "viewer_tier",
    "effective_tier",
    "can_view",
    "check_access",
    "redact_detail",
    "filter_visible",
]
