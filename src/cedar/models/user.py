"""
Modelo de Usuario y Lead

Eventos de usuario que llegan por webhook desde Clerk y el payload
de Lead que se crea en Salesforce a partir de ellos.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ClerkEmailAddress(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    email_address: str
    primary: bool = False


class ClerkPhoneNumber(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    phone_number: str
    primary: bool = False


class ClerkUser(BaseModel):
    """Usuario tal como lo envía Clerk en `data`."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="ID de usuario en Clerk")
    email_addresses: list[ClerkEmailAddress] = Field(default_factory=list)
    phone_numbers: list[ClerkPhoneNumber] = Field(default_factory=list)
    primary_email_address_id: Optional[str] = None
    primary_phone_number_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    public_metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @property
    def primary_email(self) -> Optional[str]:
        """Email primario (flag `primary` o `primary_email_address_id`)."""
        for email in self.email_addresses:
            if email.primary or (
                self.primary_email_address_id and email.id == self.primary_email_address_id
            ):
                return email.email_address
        return None

    @property
    def primary_phone(self) -> Optional[str]:
        for phone in self.phone_numbers:
            if phone.primary or (
                self.primary_phone_number_id and phone.id == self.primary_phone_number_id
            ):
                return phone.phone_number
        return None


class ClerkWebhookEvent(BaseModel):
    """Envoltorio del evento de webhook."""

    model_config = ConfigDict(extra="ignore")

    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    object: Optional[str] = None
    timestamp: Optional[int] = None


class LeadPayload(BaseModel):
    """
    Payload para crear un Lead en Salesforce.

    Los alias son los API names del objeto Lead.
    """

    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(..., alias="FirstName")
    last_name: str = Field(..., alias="LastName")
    email: str = Field(..., alias="Email")
    phone: Optional[str] = Field(None, alias="Phone")
    company: Optional[str] = Field(None, alias="Company")
    lead_source: str = Field("Website Registration", alias="LeadSource")
    status: str = Field("New", alias="Status")
    investor_type: Optional[str] = Field(None, alias="Investor_Type__c")
    interests: Optional[str] = Field(None, alias="Interests__c")
    website_user_id: str = Field(..., alias="Website_User_ID__c")

    def to_salesforce(self) -> dict:
        """Body JSON para POST /sobjects/Lead/ (sin campos vacíos)."""
        return self.model_dump(by_alias=True, exclude_none=True)


class LeadResult(BaseModel):
    """Respuesta de Salesforce al crear un registro."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    success: bool = False
    errors: list[Any] = Field(default_factory=list)
