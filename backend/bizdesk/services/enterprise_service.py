# Overview: Service-layer operations for the enterprise profile.

from ..errors import InvalidStateError, NotFoundError
from ..extensions import db
from ..models import Enterprise, User
from ..validation import ModelValidationPolicy, validate_payload
from .invalidation_service import PAGE_ENTERPRISE_SETTINGS, PAGE_STOREFRONT, invalidate


ENTERPRISE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "cep",
        "address",
        "number",
        "complement",
        "city",
        "state",
        "instagram_url",
        "phone_number",
        "register",
        "avatar_image_url",
    },
    required_on_create={"name"},
    ignored_fields={"id", "is_active", "created_at", "updated_at"},
)


def create_enterprise(payload: dict, owner_user_id: int | None = None) -> Enterprise:
    """
    Create a new tenant. When owner_user_id is given, that user (who must
    not belong to another enterprise yet) is attached to it.
    """
    patch = validate_payload(model=Enterprise, payload=payload, policy=ENTERPRISE_POLICY, partial=False)

    owner = None
    if owner_user_id is not None:
        owner = db.session.get(User, owner_user_id)
        if owner is None:
            raise NotFoundError("User not found")
        if owner.enterprise_id is not None:
            raise InvalidStateError("User already belongs to an enterprise")

    enterprise = Enterprise(is_active=True, **patch)
    db.session.add(enterprise)
    db.session.flush()
    if owner is not None:
        owner.enterprise_id = enterprise.id
    db.session.commit()

    invalidate(enterprise.id, PAGE_ENTERPRISE_SETTINGS)
    return enterprise


def get_enterprise(enterprise_id: int) -> Enterprise:
    """The acting tenant's own profile; never an arbitrary 'first' row."""
    enterprise = db.session.get(Enterprise, enterprise_id)
    if enterprise is None:
        raise NotFoundError("Enterprise not found")
    return enterprise


def update_enterprise(enterprise_id: int, payload: dict) -> Enterprise:
    enterprise = get_enterprise(enterprise_id)
    patch = validate_payload(model=Enterprise, payload=payload, policy=ENTERPRISE_POLICY, partial=True)
    for key, value in patch.items():
        setattr(enterprise, key, value)
    db.session.commit()

    invalidate(enterprise_id, PAGE_ENTERPRISE_SETTINGS, PAGE_STOREFRONT)
    return enterprise


def list_enterprises() -> list[Enterprise]:
    return db.session.query(Enterprise).order_by(Enterprise.id.asc()).all()
