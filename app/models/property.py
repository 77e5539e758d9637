import enum

from sqlalchemy import Column, Float, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.models.base import BaseModel


class TransactionType(str, enum.Enum):
    SELL = "Sell"
    RENT = "Rent"
    BOTH = "Both"


class PropertyType(str, enum.Enum):
    HOUSE = "House"
    APARTMENT = "Apartment"
    POOL_HOUSE = "Pool House"
    FARM = "Farm"
    COMMERCIAL = "Commercial"


# Map marker icon per known property type; anything else gets the generic pin
PROPERTY_TYPE_ICONS = {
    PropertyType.HOUSE.value: "house",
    PropertyType.APARTMENT.value: "building",
    PropertyType.POOL_HOUSE.value: "droplet",
    PropertyType.FARM.value: "lodge",
    PropertyType.COMMERCIAL.value: "shop",
}
GENERIC_ICON = "generic"


def icon_key(property_type) -> str:
    return PROPERTY_TYPE_ICONS.get(property_type or "", GENERIC_ICON)


class Property(BaseModel):
    __tablename__ = "properties"

    # Basic Info
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    transaction_type = Column(String(20), nullable=False, default=TransactionType.SELL.value)
    property_type = Column(String(50), nullable=False, default=PropertyType.HOUSE.value)

    # Contact
    contact_method = Column(String(20), nullable=False, default="whatsapp")
    contact = Column(String(100), nullable=False)

    # Location
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    neighborhood = Column(String(100), nullable=True)

    # Pricing
    sale_price = Column(Numeric(12, 2), nullable=True)
    rental_price = Column(Numeric(12, 2), nullable=True)
    rental_period = Column(String(50), nullable=True)

    # Ownership
    owner_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_username = Column(String(100), nullable=True)
    owner = relationship(
        "User",
        back_populates="properties",
        foreign_keys=[owner_id],
        lazy="joined",
    )

    images = relationship(
        "PropertyImage",
        back_populates="property",
        cascade="all, delete-orphan",
        order_by="PropertyImage.display_order",
        lazy="selectin",
    )

    @property
    def image_urls(self) -> list:
        return [img.image_url for img in self.images]


class PropertyImage(BaseModel):
    __tablename__ = "property_images"

    property_id = Column(Uuid(as_uuid=True), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(String(500), nullable=False)
    display_order = Column(Integer, default=0, nullable=False)

    property = relationship("Property", back_populates="images")
