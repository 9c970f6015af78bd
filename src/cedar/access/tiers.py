"""
Control de acceso por tier.

Un viewer con tier X ve las propiedades de tier <= X. En el detalle,
los viewers públicos reciben la propiedad con campos sensibles ocultos.
"""

from typing import Any, Iterable, Optional

from cedar.models import AccessTier, Property, PropertyDetail

REDACTED_STREET = "Address available after registration"


class AccessDenied(Exception):
    """La propiedad es VIP y el viewer no lo es (HTTP 403)."""

    status = 403
    error = "Access denied"
    message = "This property is only available to VIP members"


class RegistrationRequired(Exception):
    """La propiedad requiere registro y el viewer es anónimo (HTTP 401)."""

    status = 401
    error = "Registration required"
    message = "Please register to view property details"


def allowed_tiers(tier: AccessTier) -> list[AccessTier]:
    """Tiers visibles para un viewer (public < registered < vip)."""
    return [t for t in AccessTier if t.rank <= tier.rank]


def viewer_tier(user_id: Optional[str], claimed_tier: Any = None) -> AccessTier:
    """
    Tier del viewer a partir de la sesión.

    Anónimo -> public. Logueado -> registered, o vip si su metadata lo indica.
    """
    if not user_id:
        return AccessTier.PUBLIC
    if AccessTier.parse(claimed_tier) is AccessTier.VIP:
        return AccessTier.VIP
    return AccessTier.REGISTERED


def effective_tier(viewer: AccessTier, requested: Any) -> AccessTier:
    """El más restrictivo entre el tier del viewer y el pedido por query."""
    requested_tier = AccessTier.parse(requested, AccessTier.PUBLIC)
    return requested_tier if requested_tier.rank <= viewer.rank else viewer


def can_view(property_tier: AccessTier, viewer: AccessTier) -> bool:
    return property_tier.rank <= viewer.rank


def check_access(property_tier: AccessTier, viewer: AccessTier) -> None:
    """
    Raises:
        AccessDenied: propiedad VIP para viewer no VIP
        RegistrationRequired: propiedad registered para viewer público
    """
    if can_view(property_tier, viewer):
        return
    if property_tier is AccessTier.VIP:
        raise AccessDenied()
    raise RegistrationRequired()


def redact_detail(detail: PropertyDetail, viewer: AccessTier) -> PropertyDetail:
    """Devuelve una copia sin datos sensibles si el viewer es público."""
    if viewer is not AccessTier.PUBLIC:
        return detail

    update: dict = {
        "address": detail.address.model_copy(update={"street": REDACTED_STREET}),
        "notes": None,
        "showing_instructions": None,
    }
    if detail.flip_metrics is not None:
        update["flip_metrics"] = detail.flip_metrics.model_copy(update={"spread": 0})
    if detail.rental_metrics is not None:
        update["rental_metrics"] = detail.rental_metrics.model_copy(
            update={"monthly_rent": None}
        )
    return detail.model_copy(update=update)


def filter_visible(items: Iterable[Any], viewer: AccessTier) -> list:
    """Filtra en memoria Property o PropertyDetail según el tier del viewer."""
    visible = []
    for item in items:
        tier = item.tier if isinstance(item, Property) else item.access_tier
        if can_view(tier, viewer):
            visible.append(item)
    return visible
