"""
Homepage advertisements shown in the shopper carousel, managed by platform admins.

Admins are users holding the "admin" role in the userrole collection.
"""
import logging
from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from pymongo import ReturnDocument

from database import to_public
from schemas import Advertisement, AdvertisementCreate, UserRole

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


def has_role(db, user_id: str, role: str) -> bool:
    return db["userrole"].find_one({"user_id": user_id, "role": role}) is not None


def is_admin(db, user_id: Optional[str]) -> bool:
    return bool(user_id) and has_role(db, user_id, ADMIN_ROLE)


def grant_role(db, user_role: UserRole) -> None:
    db["userrole"].update_one(
        {"user_id": user_role.user_id, "role": user_role.role},
        {"$setOnInsert": {"created_at": datetime.utcnow()}},
        upsert=True,
    )


def list_advertisements(db, active_only: bool = True) -> List[Advertisement]:
    """Advertisements by display_order; the carousel only gets the active ones."""
    filter_dict = {"is_active": {"$ne": False}} if active_only else {}
    docs = db["advertisement"].find(filter_dict).sort([("display_order", 1), ("created_at", 1)])
    return [Advertisement(**to_public(d)) for d in docs]


def create_advertisement(db, payload: AdvertisementCreate) -> Advertisement:
    now = datetime.utcnow()
    doc = {**payload.model_dump(), "created_at": now, "updated_at": now}
    doc["_id"] = db["advertisement"].insert_one(doc).inserted_id
    logger.info("Created advertisement %s", doc["_id"])
    return Advertisement(**to_public(doc))


def toggle_advertisement(db, advertisement_id: ObjectId) -> Optional[Advertisement]:
    """Flip is_active; None when the advertisement does not exist."""
    doc = db["advertisement"].find_one({"_id": advertisement_id})
    if not doc:
        return None
    active = not Advertisement(**to_public(doc)).is_active
    updated = db["advertisement"].find_one_and_update(
        {"_id": advertisement_id},
        {"$set": {"is_active": active, "updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    return Advertisement(**to_public(updated))


def delete_advertisement(db, advertisement_id: ObjectId) -> bool:
    return db["advertisement"].delete_one({"_id": advertisement_id}).deleted_count > 0
