"""
Property repository.

Every mutation loads the stored row first and checks the caller against the
row's own owner_id (or the moderator claim) before a single field is
touched. Writes are row-level statements keyed by id.

Concurrent partial updates to the same property are last-write-wins: there
is no version column or ETag check.
"""

import logging
from collections import namedtuple
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.core.permissions import ensure_can_mutate
from app.models.base import utcnow
from app.models.property import Property, PropertyImage, PropertyType, TransactionType
from app.schemas.property import PropertyCreate, PropertyUpdate, check_prices
from app.utils import content_filter

logger = logging.getLogger(__name__)

OwnerListing = namedtuple("OwnerListing", ["id", "images"])

# PropertyUpdate field → Property column, for the plain scalar fields
_SCALAR_FIELDS = {
    "name": "name",
    "description": "description",
    "contact": "contact",
    "contact_method": "contact_method",
    "property_type": "property_type",
    "sale_price": "sale_price",
    "rental_price": "rental_price",
    "rental_period": "rental_period",
    "neighborhood": "neighborhood",
}


def _as_uuid(value) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


async def list_all(db: AsyncSession) -> List[Property]:
    result = await db.execute(select(Property).order_by(Property.created_at.asc()))
    return list(result.unique().scalars().all())


async def find_by_id(db: AsyncSession, property_id) -> Optional[Property]:
    pid = _as_uuid(property_id)
    if pid is None:
        return None
    result = await db.execute(
        select(Property).where(Property.id == pid).execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def list_by_owner(db: AsyncSession, owner_id) -> List[OwnerListing]:
    """Lightweight (id, images) projection of everything a user owns."""
    oid = _as_uuid(owner_id)
    if oid is None:
        return []
    rows = await db.execute(
        select(Property.id, PropertyImage.image_url)
        .outerjoin(PropertyImage, PropertyImage.property_id == Property.id)
        .where(Property.owner_id == oid)
        .order_by(Property.id, PropertyImage.display_order)
    )
    listings = {}
    for pid, url in rows.all():
        images = listings.setdefault(pid, [])
        if url:
            images.append(url)
    return [OwnerListing(pid, images) for pid, images in listings.items()]


def _append_images(prop: Property, image_urls: Iterable[str], start: int) -> None:
    for offset, url in enumerate(image_urls):
        prop.images.append(PropertyImage(image_url=url, display_order=start + offset))


async def create(
    db: AsyncSession,
    data: PropertyCreate,
    owner_id,
    owner_username: str,
    image_urls: Iterable[str] = (),
) -> Property:
    content_filter.ensure_clean(name=data.name, description=data.description)

    prop = Property(
        name=data.name,
        description=data.description,
        contact=data.contact,
        contact_method=data.contact_method,
        transaction_type=(data.transaction_type or TransactionType.SELL).value,
        property_type=data.property_type or PropertyType.HOUSE.value,
        sale_price=data.sale_price,
        rental_price=data.rental_price,
        rental_period=data.rental_period,
        latitude=data.coords.lat,
        longitude=data.coords.lng,
        neighborhood=data.neighborhood,
        owner_id=_as_uuid(owner_id),
        owner_username=owner_username,
        images=[],
    )
    _append_images(prop, image_urls, start=0)
    db.add(prop)
    await db.commit()
    logger.info("Created property %s for owner %s", prop.id, owner_username)
    return await find_by_id(db, prop.id)


async def get_for_mutation(db: AsyncSession, property_id, acting_user_id, is_moderator: bool) -> Property:
    """Load a property and make sure the caller may change it."""
    prop = await find_by_id(db, property_id)
    if prop is None:
        raise NotFoundError("Property not found.")
    ensure_can_mutate(acting_user_id, is_moderator, prop)
    return prop


async def update(
    db: AsyncSession,
    property_id,
    changes: PropertyUpdate,
    acting_user_id,
    is_moderator: bool,
    new_images: Iterable[str] = (),
) -> Property:
    prop = await get_for_mutation(db, property_id, acting_user_id, is_moderator)
    fields = changes.model_fields_set
    new_images = list(new_images)

    if not fields and not new_images:
        return prop

    # Validate the merged result before anything is written
    content_filter.ensure_clean(
        name=changes.name if "name" in fields else None,
        description=changes.description if "description" in fields else None,
    )

    def merged(field_name, column):
        return getattr(changes, field_name) if field_name in fields else getattr(prop, column)

    transaction_type = (
        changes.transaction_type.value if "transaction_type" in fields else prop.transaction_type
    )
    try:
        check_prices(
            transaction_type,
            merged("sale_price", "sale_price"),
            merged("rental_price", "rental_price"),
            merged("rental_period", "rental_period"),
        )
    except ValueError as e:
        raise ValidationError(str(e))

    for field_name, column in _SCALAR_FIELDS.items():
        if field_name in fields:
            setattr(prop, column, getattr(changes, field_name))
    if "transaction_type" in fields:
        prop.transaction_type = transaction_type
    # Location only moves when the client explicitly sends new coordinates
    if "coords" in fields:
        prop.latitude = changes.coords.lat
        prop.longitude = changes.coords.lng

    if new_images:
        last = await db.scalar(
            select(func.max(PropertyImage.display_order)).where(PropertyImage.property_id == prop.id)
        )
        _append_images(prop, new_images, start=(last + 1) if last is not None else 0)
        # Image rows live in their own table, so the parent row is touched explicitly
        prop.updated_at = utcnow()

    await db.commit()
    return await find_by_id(db, prop.id)


async def delete_property(db: AsyncSession, property_id, acting_user_id, is_moderator: bool) -> int:
    """
    Delete a property. Returns the number of rows removed: 0 means it was
    already gone, which callers treat as "nothing happened", not a failure.
    """
    prop = await find_by_id(db, property_id)
    if prop is None:
        return 0
    ensure_can_mutate(acting_user_id, is_moderator, prop)

    pid = prop.id
    db.expunge(prop)
    await db.execute(delete(PropertyImage).where(PropertyImage.property_id == pid))
    result = await db.execute(delete(Property).where(Property.id == pid))
    await db.commit()
    return result.rowcount or 0


async def remove_image(db: AsyncSession, property_id, image_ref: str, acting_user_id, is_moderator: bool) -> Property:
    """Drop every stored reference equal to `image_ref`. Unknown references are a no-op."""
    prop = await get_for_mutation(db, property_id, acting_user_id, is_moderator)
    if image_ref not in prop.image_urls:
        return prop

    await db.execute(
        delete(PropertyImage).where(
            PropertyImage.property_id == prop.id,
            PropertyImage.image_url == image_ref,
        )
    )
    prop.updated_at = utcnow()
    await db.commit()
    return await find_by_id(db, prop.id)
