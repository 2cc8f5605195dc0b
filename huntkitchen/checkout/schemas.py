from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ShippingDestination(_CamelModel):
    street_address1: str = Field(alias="streetAddress1", min_length=1)
    street_address2: Optional[str] = Field(default=None, alias="streetAddress2")
    city: str = Field(min_length=1)
    state: str = Field(min_length=2)
    postal_code: str = Field(alias="postalCode", min_length=5)
    country: str = "US"


class Address(ShippingDestination):
    first_name: str = Field(alias="firstName", min_length=1)
    last_name: str = Field(alias="lastName", min_length=1)
    phone: Optional[str] = None


class ShippingRateChoice(_CamelModel):
    # Seul l'id compte: nom et prix sont recalculés côté serveur
    id: str = Field(min_length=1)
    name: Optional[str] = None
    price: Optional[float] = None


class CreateSessionRequest(_CamelModel):
    shipping_address: Address = Field(alias="shippingAddress")
    billing_address: Optional[Address] = Field(default=None, alias="billingAddress")
    email: EmailStr
    shipping_rate: ShippingRateChoice = Field(alias="shippingRate")
    discount_code_id: Optional[str] = Field(default=None, alias="discountCodeId")
    same_as_shipping: bool = Field(default=True, alias="sameAsShipping")
