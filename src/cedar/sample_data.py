"""
Propiedades de demo.

Se sirven cuando Salesforce no está disponible o no devuelve registros.
"""

from datetime import date
from typing import Optional

from cedar.models import (
    AccessTier,
    FlipMetrics,
    PropertyAddress,
    PropertyDetail,
    PropertyImage,
    RentalMetrics,
)

DEMO_MESSAGE = "Demo properties - Connect Salesforce for live data"
DEMO_OWNER_ID = "cedar-sells"

_UNSPLASH = "https://images.unsplash.com"


def _photo(sample_id: str, photo: str) -> tuple[list[PropertyImage], str]:
    images = [
        PropertyImage(
            id=f"{sample_id}-1",
            url=f"{_UNSPLASH}/{photo}?w=800",
            alt_text="Property photo",
            order=1,
        )
    ]
    return images, f"{_UNSPLASH}/{photo}?w=400"


def sample_properties(today: Optional[date] = None) -> list[PropertyDetail]:
    """Las tres propiedades de demo, con fecha de hoy."""
    stamp = (today or date.today()).isoformat()

    flip_images, flip_thumb = _photo("sample-1", "photo-1568605114967-8130f3a36994")
    rental_images, rental_thumb = _photo("sample-2", "photo-1570129477492-45c003edd2be")
    wholesale_images, wholesale_thumb = _photo("sample-3", "photo-1560518883-ce09059eeffa")

    return [
        PropertyDetail(
            id="sample-1",
            title="123 Oak Street, Lafayette",
            description=(
                "Great investment property in desirable Lafayette neighborhood. "
                "Perfect for fix and flip opportunity."
            ),
            address=PropertyAddress(
                street="123 Oak Street",
                city="Lafayette",
                state="LA",
                zip_code="70501",
                parish="Lafayette",
            ),
            bedrooms=3,
            bathrooms=2,
            square_feet=1200,
            lot_size=0.25,
            year_built=1990,
            property_type="Single Family",
            deal_type="Fix & Flip",
            market="lafayette",
            list_price=75000,
            status="Available",
            access_tier=AccessTier.PUBLIC,
            images=flip_images,
            thumbnail_url=flip_thumb,
            flip_metrics=FlipMetrics(arv=95000, rehab_estimate=15000, spread=5000, roi=15.4),
            created_date=stamp,
            updated_date=stamp,
            owner_id=DEMO_OWNER_ID,
        ),
        PropertyDetail(
            id="sample-2",
            title="456 Pine Avenue, Baton Rouge",
            description=(
                "Excellent rental property in growing Baton Rouge area. "
                "Currently rented at market rate."
            ),
            address=PropertyAddress(
                street="456 Pine Avenue",
                city="Baton Rouge",
                state="LA",
                zip_code="70802",
                parish="East Baton Rouge",
            ),
            bedrooms=3,
            bathrooms=2,
            square_feet=1400,
            lot_size=0.30,
            year_built=2005,
            property_type="Single Family",
            deal_type="Rental",
            market="baton-rouge",
            list_price=120000,
            status="Available",
            access_tier=AccessTier.PUBLIC,
            images=rental_images,
            thumbnail_url=rental_thumb,
            rental_metrics=RentalMetrics(gross_yield=8.5, cap_rate=7.2, monthly_rent=1200),
            created_date=stamp,
            updated_date=stamp,
            owner_id=DEMO_OWNER_ID,
        ),
        PropertyDetail(
            id="sample-3",
            title="789 Cypress Lane, Lafayette",
            description=(
                "Wholesale opportunity in Lafayette. Quick close available for cash buyers."
            ),
            address=PropertyAddress(
                street="789 Cypress Lane",
                city="Lafayette",
                state="LA",
                zip_code="70503",
                parish="Lafayette",
            ),
            bedrooms=2,
            bathrooms=1,
            square_feet=900,
            lot_size=0.20,
            year_built=1985,
            property_type="Single Family",
            deal_type="Wholesale",
            market="lafayette",
            list_price=65000,
            status="Available",
            access_tier=AccessTier.PUBLIC,
            images=wholesale_images,
            thumbnail_url=wholesale_thumb,
            created_date=stamp,
            updated_date=stamp,
            owner_id=DEMO_OWNER_ID,
        ),
    ]


def filter_samples(
    deal_types: Optional[list[str]] = None,
    markets: Optional[list[str]] = None,
) -> list[PropertyDetail]:
    """Propiedades de demo filtradas por tipo de deal y mercado."""
    samples = sample_properties()
    if deal_types:
        samples = [p for p in samples if p.deal_type in deal_types]
    if markets:
        samples = [p for p in samples if p.market in markets]
    return samples
