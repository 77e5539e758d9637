import logging
from typing import List, Type, TypeVar

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_active_user, require_owner_role
from app.core.database import get_db
from app.core.exceptions import NotFoundError, ValidationError, validation_message
from app.crud import properties as property_crud
from app.schemas.property import ImageRemoval, PropertyCreate, PropertyResponse, PropertyUpdate
from app.schemas.user import SessionUser
from app.utils import content_filter
from app.utils.file_storage import BlobStore, get_blob_store, prepare_images, save_property_images

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/imoveis", tags=["Properties"])

IMAGE_FIELD = "imagens"

# Form keys accepted for a property, in the camelCase the clients send
_FORM_FIELDS = (
    "name", "description", "contactMethod", "contact", "coords", "transactionType",
    "propertyType", "salePrice", "rentalPrice", "rentalPeriod", "neighborhood",
)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _parse_form(form, schema: Type[SchemaT]) -> SchemaT:
    """
    Build `schema` from only the keys actually present in the form, so an
    omitted field stays unset while a field sent empty is an explicit clear.
    Listing text is screened here, before any image reaches the blob store.
    """
    payload = {key: form.get(key) for key in _FORM_FIELDS if key in form}
    try:
        data = schema.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(validation_message(e.errors()))

    content_filter.ensure_clean(
        name=data.name if "name" in data.model_fields_set else None,
        description=data.description if "description" in data.model_fields_set else None,
    )
    return data


def _response(message: str, prop) -> dict:
    return {
        "message": message,
        "property": PropertyResponse.from_property(prop).model_dump(mode="json", by_alias=True),
    }


async def _upload(store: BlobStore, form) -> List[str]:
    images = await prepare_images(form.getlist(IMAGE_FIELD))
    if not images:
        return []
    return await save_property_images(store, images)


# ─── LIST / GET (public) ──────────────────────────────────────────────────────

@router.get("", response_model=List[PropertyResponse])
async def list_properties(db: AsyncSession = Depends(get_db)):
    """Every property, with images and the owner's current contact details."""
    properties = await property_crud.list_all(db)
    return [PropertyResponse.from_property(p) for p in properties]


@router.get("/{property_id}", response_model=PropertyResponse)
async def get_property(property_id: str, db: AsyncSession = Depends(get_db)):
    prop = await property_crud.find_by_id(db, property_id)
    if prop is None:
        raise NotFoundError("Property not found.")
    return PropertyResponse.from_property(prop)


# ─── CREATE: multipart form + image uploads ───────────────────────────────────

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_property(
    request: Request,
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
    current_user: SessionUser = Depends(require_owner_role),
):
    """
    Create a listing from multipart/form-data. Up to five files may be sent
    in the `imagens` field; they are validated before any is stored.
    """
    form = await request.form()
    data = _parse_form(form, PropertyCreate)

    image_urls = await _upload(store, form)
    try:
        prop = await property_crud.create(db, data, current_user.id, current_user.username, image_urls)
    except Exception:
        # Nothing references the blobs if the row was not written
        await store.delete_many(image_urls)
        raise

    return _response("Property created successfully.", prop)


# ─── UPDATE: partial, multipart ───────────────────────────────────────────────

@router.put("/{property_id}")
async def update_property(
    property_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
    current_user: SessionUser = Depends(get_current_active_user),
):
    """Update the fields present in the form. New images are appended to the existing ones."""
    await property_crud.get_for_mutation(db, property_id, current_user.id, current_user.is_moderator)

    form = await request.form()
    changes = _parse_form(form, PropertyUpdate)

    image_urls = await _upload(store, form)
    try:
        prop = await property_crud.update(
            db, property_id, changes, current_user.id, current_user.is_moderator, new_images=image_urls
        )
    except Exception:
        await store.delete_many(image_urls)
        raise

    return _response("Property updated successfully.", prop)


# ─── DELETE ───────────────────────────────────────────────────────────────────

@router.delete("/{property_id}")
async def delete_property(
    property_id: str,
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
    current_user: SessionUser = Depends(get_current_active_user),
):
    prop = await property_crud.find_by_id(db, property_id)
    images = list(prop.image_urls) if prop is not None else []

    deleted = await property_crud.delete_property(db, property_id, current_user.id, current_user.is_moderator)
    if not deleted:
        raise NotFoundError("Property not found.")

    await store.delete_many(images)
    logger.info("Property %s deleted by %s", property_id, current_user.username)
    return {"message": "Property deleted successfully."}


@router.delete("/{property_id}/images")
async def remove_property_image(
    property_id: str,
    removal: ImageRemoval,
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
    current_user: SessionUser = Depends(get_current_active_user),
):
    """Remove one image reference. Removing an image that is not listed is a no-op."""
    prop = await property_crud.get_for_mutation(db, property_id, current_user.id, current_user.is_moderator)
    referenced = removal.image_path in prop.image_urls

    prop = await property_crud.remove_image(
        db, property_id, removal.image_path, current_user.id, current_user.is_moderator
    )
    if referenced:
        await store.delete_one(removal.image_path)

    return _response("Image removed successfully.", prop)
