import json
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.models.property import PropertyType, TransactionType, icon_key
from app.schemas.common import CamelModel, blank_to_none


# ─── Coordinates ──────────────────────────────────────────────────────────────

class Coords(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    @model_validator(mode="before")
    @classmethod
    def accept_pair(cls, v):
        """Map clients send either {"lat": .., "lng": ..} or [lat, lng]."""
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except (json.JSONDecodeError, TypeError):
                raise ValueError("coords must be valid JSON")
        if isinstance(v, (list, tuple)):
            if len(v) != 2:
                raise ValueError("coords must be a [lat, lng] pair")
            return {"lat": v[0], "lng": v[1]}
        return v


# ─── Price rules ──────────────────────────────────────────────────────────────

def check_prices(
    transaction_type: str,
    sale_price: Optional[Decimal],
    rental_price: Optional[Decimal],
    rental_period: Optional[str],
) -> None:
    """
    Raise ValueError unless the prices match the transaction type:
    Sell needs salePrice > 0, Rent needs rentalPrice > 0, Both needs both.
    """
    for label, price in (("salePrice", sale_price), ("rentalPrice", rental_price)):
        if price is not None and price < 0:
            raise ValueError(f"{label} cannot be negative")

    if transaction_type in (TransactionType.SELL.value, TransactionType.BOTH.value):
        if sale_price is None or sale_price <= 0:
            raise ValueError(f"salePrice must be greater than zero for transaction type {transaction_type}")

    if transaction_type in (TransactionType.RENT.value, TransactionType.BOTH.value):
        if rental_price is None or rental_price <= 0:
            raise ValueError(f"rentalPrice must be greater than zero for transaction type {transaction_type}")

    if rental_price is not None and not rental_period:
        raise ValueError("rentalPeriod is required when a rental price is given")


class _PropertyFields(CamelModel):
    """Validators shared by the create and update payloads."""

    @field_validator("sale_price", "rental_price", "rental_period", "neighborhood", mode="before", check_fields=False)
    @classmethod
    def empty_string_is_null(cls, v):
        # Multipart forms send "" for cleared inputs
        return blank_to_none(v)

    @field_validator("name", "description", "contact", "contact_method", "property_type", mode="before", check_fields=False)
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("transaction_type", mode="before", check_fields=False)
    @classmethod
    def transaction_type_case_insensitive(cls, v):
        if isinstance(v, str):
            for member in TransactionType:
                if member.value.lower() == v.strip().lower():
                    return member
        return v


# ─── Create ───────────────────────────────────────────────────────────────────

class PropertyCreate(_PropertyFields):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    contact: str = Field(..., min_length=1, max_length=100)
    contact_method: str = Field("whatsapp", min_length=1, max_length=20)
    coords: Coords
    transaction_type: TransactionType = TransactionType.SELL
    property_type: str = Field(PropertyType.HOUSE.value, min_length=1, max_length=50)
    sale_price: Optional[Decimal] = Field(None, max_digits=12, decimal_places=2)
    rental_price: Optional[Decimal] = Field(None, max_digits=12, decimal_places=2)
    rental_period: Optional[str] = Field(None, max_length=50)
    neighborhood: Optional[str] = Field(None, max_length=100)

    @model_validator(mode="after")
    def prices_match_transaction_type(self):
        check_prices(self.transaction_type.value, self.sale_price, self.rental_price, self.rental_period)
        return self


# ─── Update ───────────────────────────────────────────────────────────────────
# Every field is optional. A field left out of the payload is absent from
# `model_fields_set` and keeps its stored value; a field sent as empty/null
# is in `model_fields_set` with value None and clears the stored value.

# Columns that must never be nulled by an update
UPDATE_NOT_NULLABLE = (
    "name", "description", "contact", "contact_method", "coords", "transaction_type", "property_type",
)


class PropertyUpdate(_PropertyFields):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    contact: Optional[str] = Field(None, min_length=1, max_length=100)
    contact_method: Optional[str] = Field(None, min_length=1, max_length=20)
    coords: Optional[Coords] = None
    transaction_type: Optional[TransactionType] = None
    property_type: Optional[str] = Field(None, min_length=1, max_length=50)
    sale_price: Optional[Decimal] = Field(None, max_digits=12, decimal_places=2)
    rental_price: Optional[Decimal] = Field(None, max_digits=12, decimal_places=2)
    rental_period: Optional[str] = Field(None, max_length=50)
    neighborhood: Optional[str] = Field(None, max_length=100)

    @model_validator(mode="after")
    def required_fields_not_cleared(self):
        for field_name in UPDATE_NOT_NULLABLE:
            if field_name in self.model_fields_set and getattr(self, field_name) is None:
                raise ValueError(f"{to_camel(field_name)} cannot be empty")
        return self


# ─── Image removal ────────────────────────────────────────────────────────────

class ImageRemoval(CamelModel):
    image_path: str = Field(..., min_length=1)


# ─── Response ─────────────────────────────────────────────────────────────────

def _as_float(value) -> Optional[float]:
    return float(value) if value is not None else None


class PropertyResponse(CamelModel):
    id: str
    name: str
    description: str
    contact_method: str
    contact: str
    transaction_type: str
    property_type: str
    icon: str
    sale_price: Optional[float] = None
    rental_price: Optional[float] = None
    rental_period: Optional[str] = None
    coords: Coords
    neighborhood: Optional[str] = None
    owner_id: str
    owner_username: Optional[str] = None
    owner_email: Optional[str] = None
    owner_phone: Optional[str] = None
    images: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_property(cls, prop) -> "PropertyResponse":
        # Contact details come from the live owner row, never a stored copy
        owner = prop.owner
        return cls(
            id=str(prop.id),
            name=prop.name,
            description=prop.description,
            contact_method=prop.contact_method,
            contact=prop.contact,
            transaction_type=prop.transaction_type,
            property_type=prop.property_type,
            icon=icon_key(prop.property_type),
            sale_price=_as_float(prop.sale_price),
            rental_price=_as_float(prop.rental_price),
            rental_period=prop.rental_period,
            coords=Coords(lat=prop.latitude, lng=prop.longitude),
            neighborhood=prop.neighborhood,
            owner_id=str(prop.owner_id),
            owner_username=prop.owner_username,
            owner_email=owner.email if owner is not None else None,
            owner_phone=owner.phone if owner is not None else None,
            images=prop.image_urls,
            created_at=prop.created_at,
            updated_at=prop.updated_at,
        )
